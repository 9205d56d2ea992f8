"""
Minimal PHP tokenizer.

The transformer only needs to know which parts of a file are
comments, which are whitespace, and which are everything else. This
lexer partitions content into exactly those three kinds; joining the
token texts always reproduces the input.

Recognised PHP constructs:
- inline HTML outside ``<?php`` / ``<?=`` ... ``?>`` blocks
- ``//`` and ``#`` line comments (``#[`` is an attribute, not a comment)
- ``/* */`` block and ``/** */`` doc comments
- single, double and backtick quoted strings
- heredoc and nowdoc bodies

Anything inside a string or heredoc is never a comment or whitespace.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Protocol

COMMENT = "comment"
WHITESPACE = "whitespace"
OTHER = "other"


@dataclass(frozen=True)
class Token:
    kind: str
    text: str


class Lexer(Protocol):
    def tokenize(self, content: str) -> List[Token]:
        ...


_OPEN_TAG_RE = re.compile(r"<\?php(?:\s|$)|<\?=", re.IGNORECASE)

_PHP_TOKEN_RE = re.compile(
    r"""
      (?P<close>\?>(?:\r?\n)?)
    | (?P<whitespace>\s+)
    | (?P<block_comment>/\*.*?(?:\*/|\Z))
    | (?P<line_comment>(?://|\#(?!\[))(?:[^\r\n?]|\?(?!>))*)
    | (?P<heredoc><<<[ \t]*(?P<quote>["']?)(?P<label>[A-Za-z_]\w*)(?P=quote)\r?\n
                  .*?^[ \t]*(?P=label)\b)
    | (?P<string>'(?:[^'\\]|\\.)*'?
                | "(?:[^"\\]|\\.)*"?
                | `(?:[^`\\]|\\.)*`?)
    | (?P<word>[A-Za-z0-9_$\x80-\U0010ffff]+)
    | (?P<char>.)
    """,
    re.VERBOSE | re.DOTALL | re.MULTILINE,
)


class PhpLexer:
    def tokenize(self, content: str) -> List[Token]:
        tokens: List[Token] = []
        pos = 0
        length = len(content)
        in_php = False

        while pos < length:
            if not in_php:
                match = _OPEN_TAG_RE.search(content, pos)
                if match is None:
                    tokens.append(Token(OTHER, content[pos:]))
                    break
                if match.start() > pos:
                    tokens.append(Token(OTHER, content[pos:match.start()]))
                tokens.append(Token(OTHER, match.group(0)))
                pos = match.end()
                in_php = True
                continue

            match = _PHP_TOKEN_RE.match(content, pos)
            kind = match.lastgroup
            text = match.group(0)

            if kind == "close":
                in_php = False
                tokens.append(Token(OTHER, text))
            elif kind == "whitespace":
                tokens.append(Token(WHITESPACE, text))
            elif kind in ("block_comment", "line_comment"):
                tokens.append(Token(COMMENT, text))
            else:
                tokens.append(Token(OTHER, text))

            pos = match.end()

        return tokens


def render(tokens: List[Token]) -> str:
    return "".join(token.text for token in tokens)
