"""
Path resolution relative to the project root.

Pure string functions: nothing here touches the filesystem, and
malformed input is tolerated rather than rejected.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

_DRIVE_RE = re.compile(r"^[a-zA-Z]:[\\/]")
_SEPARATORS_RE = re.compile(r"[\\/]")


def is_absolute_path(path: str) -> bool:
    """Unix-style leading separator or a Windows drive letter."""
    if path.startswith("/") or path.startswith(os.sep):
        return True
    return bool(_DRIVE_RE.match(path))


class PathResolver:
    def __init__(self, root: str | Path):
        root = str(root)
        self._root = root.rstrip(os.sep) or os.sep

    @property
    def root(self) -> str:
        return self._root

    def resolve(self, path: str | Path) -> str:
        """
        Resolve ``path`` against the project root.

        Absolute paths are returned unchanged; relative ones are
        normalized before joining so ``relative_to(resolve(p))``
        round-trips to ``normalize(p)``.
        """

        path = str(path)
        if is_absolute_path(path):
            return path

        return self._root.rstrip(os.sep) + os.sep + self.normalize(path)

    def relative_to(self, path: str | Path) -> str:
        """
        Strip the project root prefix.

        Paths outside the root come back unchanged.
        """

        path = str(path)
        prefix = self._root.rstrip(os.sep) + os.sep
        if path == self._root or path.startswith(prefix):
            return path[len(self._root):].lstrip(os.sep)

        return path

    def normalize(self, path: str | Path) -> str:
        """Collapse ``.`` and ``..`` segments without touching the disk."""
        path = str(path)
        parts = [part for part in _SEPARATORS_RE.split(path) if part]
        stack = []

        for part in parts:
            if part == ".":
                continue
            if part == "..":
                if stack:
                    stack.pop()
            else:
                stack.append(part)

        result = os.sep.join(stack)

        if is_absolute_path(path) and not _DRIVE_RE.match(path):
            result = os.sep + result

        return result

    def join(self, *segments: str) -> str:
        return os.sep.join(segments)
