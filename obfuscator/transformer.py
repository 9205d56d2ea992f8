"""
Content transformation: comment/whitespace stripping and encryption.

This module turns one readable PHP source file into a protected
artifact. It is intentionally dumb about policy and filesystem
traversal: which files to transform, and what to do when a file
fails, is decided by the pipeline.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import DECRYPT_HEADER, PAYLOAD_SEPARATOR
from .encryption import EncryptionPrimitive
from .lexer import COMMENT, WHITESPACE, Lexer, PhpLexer, Token, render
from .utils import ensure_parent_dir

_OPEN_TAG_RE = re.compile(r"^\s*<\?php\s*", re.IGNORECASE)


class TransformError(RuntimeError):
    """A single file could not be transformed."""


@dataclass(frozen=True)
class TransformOptions:
    strip_comments: bool = True
    strip_whitespace: bool = True


class Transformer:
    def __init__(
        self,
        primitive: EncryptionPrimitive,
        options: Optional[TransformOptions] = None,
        lexer: Optional[Lexer] = None,
    ):
        self.primitive = primitive
        self.options = options or TransformOptions()
        self.lexer = lexer or PhpLexer()

    # ------------------------------------------------------------------
    # Content stages
    # ------------------------------------------------------------------

    def strip_comments(self, content: str) -> str:
        """Drop comment and doc-comment tokens, keep everything else verbatim."""
        tokens = self.lexer.tokenize(content)
        return render([t for t in tokens if t.kind != COMMENT])

    def strip_whitespace(self, content: str) -> str:
        """Collapse every whitespace token to a single space."""
        tokens = self.lexer.tokenize(content)
        return render([Token(t.kind, " ") if t.kind == WHITESPACE else t for t in tokens])

    def prepare(self, content: str) -> str:
        """Apply the enabled stripping passes and remove the open tag."""
        if self.options.strip_comments:
            content = self.strip_comments(content)

        if self.options.strip_whitespace:
            content = self.strip_whitespace(content)

        return _OPEN_TAG_RE.sub("", content, count=1)

    def transform(self, content: str, key: str) -> bytes:
        """
        Produce the framed, encrypted artifact for ``content``.

        Raises:
            TransformError: if the primitive fails
        """

        prepared = self.prepare(content)

        try:
            encrypted = self.primitive.encrypt(prepared, key)
        except Exception as e:
            raise TransformError(f"{self.primitive.name} encryption failed: {e}") from e

        if encrypted is None:
            raise TransformError(f"{self.primitive.name} returned no output")

        return (DECRYPT_HEADER + PAYLOAD_SEPARATOR).encode("utf-8") + encrypted

    # ------------------------------------------------------------------
    # File API
    # ------------------------------------------------------------------

    def transform_file(self, source: str | Path, destination: str | Path, key: str) -> None:
        source = Path(source)
        destination = Path(destination)

        try:
            content = source.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise TransformError(f"Failed to read file: {source}: {e}") from e

        payload = self.transform(content, key)

        try:
            ensure_parent_dir(destination)
            destination.write_bytes(payload)
        except OSError as e:
            raise TransformError(f"Failed to write encrypted file: {destination}: {e}") from e


def split_payload(data: bytes) -> bytes:
    """Return the encrypted blob that follows the decrypt header."""
    marker = (DECRYPT_HEADER + PAYLOAD_SEPARATOR).encode("utf-8")
    if not data.startswith(marker):
        raise ValueError("Missing decrypt header")
    return data[len(marker):]
