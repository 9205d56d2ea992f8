"""
Filesystem scanning and rule application.

This module is responsible for:
- walking the configured include roots
- applying the Matcher to every candidate file
- returning a deduplicated selection plus aggregate statistics

This module does NOT:
- encrypt or copy data
- modify files
- load configuration files

Permission errors while walking are NOT caught: an unreadable
directory aborts the scan.
"""

from __future__ import annotations

import logging
import os
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Sequence, Set

from .rules import Matcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileRecord:
    path: str
    size: int
    extension: str

    @classmethod
    def from_path(cls, path: str) -> "FileRecord":
        suffix = os.path.splitext(path)[1]
        return cls(
            path=path,
            size=os.path.getsize(path),
            extension=suffix[1:].lower() if suffix else "",
        )


@dataclass
class ScanResult:
    files: List[FileRecord] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.files)

    def __iter__(self) -> Iterator[FileRecord]:
        return iter(self.files)

    def __bool__(self) -> bool:
        return bool(self.files)

    @property
    def paths(self) -> List[str]:
        return [record.path for record in self.files]

    @property
    def total_files(self) -> int:
        return len(self.files)

    @property
    def total_size(self) -> int:
        return sum(record.size for record in self.files)

    @property
    def by_extension(self) -> Dict[str, int]:
        return dict(Counter(record.extension for record in self.files))


class FileScanner:
    def __init__(self, matcher: Matcher, source_extensions: Sequence[str] = ("php",)):
        self.matcher = matcher
        self.source_extensions = tuple(ext.lower().lstrip(".") for ext in source_extensions)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def scan(self, roots: Iterable[str | Path]) -> ScanResult:
        """
        Walk every root and collect files accepted by the matcher.

        The same absolute path is never returned twice, even when
        roots overlap. First occurrence wins.
        """

        seen: Set[str] = set()
        result = ScanResult()

        for root in roots:
            for path in self._candidates(str(root)):
                if path in seen:
                    continue
                if not self.matcher.should_include(path):
                    logger.debug("Excluded: %s", path)
                    continue
                seen.add(path)
                result.files.append(FileRecord.from_path(path))

        logger.debug("Scan selected %d file(s)", len(result))
        return result

    def file_count(self, roots: Iterable[str | Path]) -> int:
        return len(self.scan(roots))

    def statistics(self, roots: Iterable[str | Path]) -> Dict[str, Any]:
        """
        Aggregate counts for the current selection.

        Always re-scans; nothing from a previous call is reused.
        """

        result = self.scan(roots)
        source_files = sum(1 for r in result if r.extension in self.source_extensions)

        return {
            "total_files": result.total_files,
            "source_files": source_files,
            "other_files": result.total_files - source_files,
            "by_extension": result.by_extension,
            "total_size": result.total_size,
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _candidates(self, root: str) -> Iterator[str]:
        if os.path.isfile(root):
            yield root
            return

        if not os.path.isdir(root):
            logger.warning("Include path does not exist: %s", root)
            return

        yield from walk_files(root)


def walk_files(root: str) -> Iterator[str]:
    """
    Yield every file below ``root``, parents before children.

    Iterative: an explicit stack keeps deep trees off the call stack.
    Siblings come out in the directory's native enumeration order.
    """

    stack = [root]
    while stack:
        directory = stack.pop()
        subdirs = []

        with os.scandir(directory) as entries:
            for entry in entries:
                if entry.is_dir(follow_symlinks=False):
                    subdirs.append(entry.path)
                elif entry.is_file():
                    yield entry.path

        # Reversed so the first subdirectory is visited first
        stack.extend(reversed(subdirs))
