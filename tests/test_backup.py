"""
Backup Tests
============
Timestamped backups and keep-last retention.
"""

import os
from datetime import datetime, timedelta

import pytest

from obfuscator.backup import BackupManager


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now += timedelta(minutes=1)
        return current


@pytest.fixture
def sources(tmp_path):
    app = tmp_path / "project" / "app"
    (app / "Models").mkdir(parents=True)
    (app / "Models" / "User.php").write_text("<?php class User {}", encoding="utf-8")
    routes = tmp_path / "project" / "routes.php"
    routes.write_text("<?php // routes", encoding="utf-8")
    return [str(app), str(routes), str(tmp_path / "project" / "missing")]


class TestCreate:
    def test_copies_include_roots_under_timestamp(self, tmp_path, sources):
        manager = BackupManager(tmp_path / "backups", clock=FakeClock(datetime(2024, 1, 2, 3, 4, 5)))

        backup_dir = manager.create(sources)

        assert backup_dir.endswith("2024-01-02_030405")
        assert (tmp_path / "backups" / "2024-01-02_030405" / "app" / "Models" / "User.php").read_text(
            encoding="utf-8"
        ) == "<?php class User {}"
        assert (tmp_path / "backups" / "2024-01-02_030405" / "routes.php").exists()
        assert not (tmp_path / "backups" / "2024-01-02_030405" / "missing").exists()

    def test_list_backups_newest_first(self, tmp_path, sources):
        manager = BackupManager(tmp_path / "backups", clock=FakeClock(datetime(2024, 1, 1)))
        manager.create(sources)
        manager.create(sources)

        assert manager.list_backups() == ["2024-01-01_000100", "2024-01-01_000000"]


class TestRetention:
    def test_sixth_backup_deletes_only_the_oldest(self, tmp_path, sources):
        root = tmp_path / "backups"
        for day in range(1, 6):
            (root / f"2023-12-0{day}_120000").mkdir(parents=True)

        manager = BackupManager(root, keep_last=5, clock=FakeClock(datetime(2024, 1, 1)))
        manager.create(sources)

        remaining = manager.list_backups()
        assert len(remaining) == 5
        assert "2024-01-01_000000" in remaining
        assert "2023-12-01_120000" not in remaining
        assert "2023-12-02_120000" in remaining

    def test_exactly_one_pruned_when_at_limit(self, tmp_path):
        root = tmp_path / "backups"
        for day in range(1, 7):
            (root / f"2023-12-0{day}_120000").mkdir(parents=True)

        removed = BackupManager(root, keep_last=5).prune()

        assert [os.path.basename(p) for p in removed] == ["2023-12-01_120000"]
        assert len(BackupManager(root).list_backups()) == 5

    def test_clear_removes_root(self, tmp_path):
        root = tmp_path / "backups"
        (root / "2024-01-01_000000").mkdir(parents=True)
        manager = BackupManager(root)

        assert manager.clear() is True
        assert not root.exists()
        assert manager.clear() is False
