"""
Pre-run source backups.

Layout: ``<backup_root>/<YYYY-MM-DD_HHMMSS>/<include root basename>/...``

Only the ``keep_last`` most recent backups survive; names sort
chronologically, so retention is a reverse string sort.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from .config import BACKUP_TIMESTAMP_FORMAT, DEFAULT_KEEP_LAST
from .utils import copy_tree, delete_tree, ensure_dir

logger = logging.getLogger(__name__)


class BackupManager:
    def __init__(
        self,
        backup_root: str | Path,
        keep_last: int = DEFAULT_KEEP_LAST,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.backup_root = str(backup_root)
        self.keep_last = keep_last
        self.clock = clock

    def list_backups(self) -> List[str]:
        """Backup directory names, newest first."""
        if not os.path.isdir(self.backup_root):
            return []
        return sorted(os.listdir(self.backup_root), reverse=True)

    def create(self, sources: Iterable[str]) -> str:
        """
        Copy every existing source into a new timestamped backup.

        Args:
            sources: absolute include roots (files or directories)

        Returns:
            str: path of the new backup directory
        """

        backup_dir = os.path.join(self.backup_root, self.clock().strftime(BACKUP_TIMESTAMP_FORMAT))
        ensure_dir(backup_dir)

        for source in sources:
            if not os.path.exists(source):
                logger.warning("Skipping missing backup source: %s", source)
                continue
            name = os.path.basename(source.rstrip(os.sep))
            copy_tree(source, os.path.join(backup_dir, name))

        logger.info("Backup created at: %s", backup_dir)

        self.prune()
        return backup_dir

    def prune(self, keep_last: Optional[int] = None) -> List[str]:
        """Delete everything beyond the newest ``keep_last`` backups."""
        keep = self.keep_last if keep_last is None else keep_last
        removed = []

        for name in self.list_backups()[max(keep, 0):]:
            path = os.path.join(self.backup_root, name)
            if os.path.isdir(path):
                delete_tree(path)
            else:
                os.unlink(path)
            removed.append(path)
            logger.debug("Removed old backup: %s", path)

        return removed

    def clear(self) -> bool:
        """Remove the whole backup root. Returns False if it did not exist."""
        if not os.path.isdir(self.backup_root):
            return False
        delete_tree(self.backup_root)
        return True
