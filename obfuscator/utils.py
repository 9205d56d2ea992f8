"""
Shared filesystem helpers.

This module contains small, reusable helpers that do not belong to
rule evaluation, transformation, or pipeline orchestration. Every
tree operation here is iterative (explicit worklist) so pathological
directory depth cannot exhaust the call stack.
"""

from __future__ import annotations

import logging
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import FrozenSet, Iterator, Optional, Tuple

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Filesystem helpers
# ---------------------------------------------------------------------------


def ensure_parent_dir(path: str | Path) -> None:
    """Ensure the parent directory of a file exists."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)


def ensure_dir(path: str | Path) -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


def copy_file(source: str | Path, destination: str | Path) -> None:
    """Byte-identical copy, creating the destination's parent."""
    ensure_parent_dir(destination)
    shutil.copyfile(source, destination)


def is_broken_link(entry: os.DirEntry) -> bool:
    return entry.is_symlink() and not os.path.exists(entry.path)


def resolve_dir_link(path: str, ancestors: FrozenSet[str]) -> Optional[str]:
    """
    Return the real path of directory ``path``, or None when it points
    back into one of its own ancestors.
    """

    real = os.path.realpath(path)
    return None if real in ancestors else real


def copy_tree(source: str | Path, destination: str | Path) -> None:
    """
    Recursively copy a file or directory.

    Existing destination directories are merged into, existing files
    overwritten. Directory symlinks are followed unless they loop back
    into an ancestor; broken links are skipped.
    """

    source = str(source)
    destination = str(destination)

    if os.path.isfile(source):
        copy_file(source, destination)
        return

    stack = [(source, destination, frozenset([os.path.realpath(source)]))]
    while stack:
        src_dir, dst_dir, ancestors = stack.pop()
        ensure_dir(dst_dir)

        with os.scandir(src_dir) as entries:
            for entry in entries:
                target = os.path.join(dst_dir, entry.name)
                if is_broken_link(entry):
                    logger.warning("Skipping broken symlink: %s", entry.path)
                elif entry.is_dir():
                    real = resolve_dir_link(entry.path, ancestors)
                    if real is None:
                        logger.warning("Skipping symlink loop: %s", entry.path)
                        continue
                    stack.append((entry.path, target, ancestors | {real}))
                else:
                    shutil.copyfile(entry.path, target)


def delete_tree(path: str | Path) -> None:
    """Delete a directory and everything below it. Missing is fine."""
    path = str(path)
    if not os.path.isdir(path):
        return

    # Collect bottom-up so every directory is empty when removed
    directories = []
    stack = [path]
    while stack:
        current = stack.pop()
        directories.append(current)
        with os.scandir(current) as entries:
            for entry in entries:
                if entry.is_dir(follow_symlinks=False):
                    stack.append(entry.path)
                else:
                    os.unlink(entry.path)

    for directory in reversed(directories):
        os.rmdir(directory)


def iter_tree_files(path: str | Path) -> Iterator[os.DirEntry]:
    stack = [str(path)]
    while stack:
        with os.scandir(stack.pop()) as entries:
            for entry in entries:
                if entry.is_dir(follow_symlinks=False):
                    stack.append(entry.path)
                elif entry.is_file():
                    yield entry


def tree_summary(path: str | Path) -> Tuple[int, int, Optional[datetime]]:
    """Return (file count, total bytes, newest mtime) for a directory."""
    count = 0
    size = 0
    newest = 0.0

    for entry in iter_tree_files(path):
        stat = entry.stat()
        count += 1
        size += stat.st_size
        newest = max(newest, stat.st_mtime)

    return count, size, datetime.fromtimestamp(newest) if newest else None


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_bytes(size: float) -> str:
    """Human-readable size: ``1536`` -> ``1.5 KB``."""
    units = ["B", "KB", "MB", "GB"]
    i = 0
    while size >= 1024 and i < len(units) - 1:
        size /= 1024
        i += 1
    return f"{round(size, 2):g} {units[i]}"
