"""定时备份"""
import os

from farm_office.services.scheduler import (
    BACKUP_PREFIX, auto_backup, cleanup_old_backups, get_db_path
)


def test_get_db_path():
    assert get_db_path("sqlite:///./farm.db") == "./farm.db"
    assert get_db_path("sqlite+aiosqlite:////data/farm.db") == "/data/farm.db"
    assert get_db_path("sqlite+aiosqlite:///:memory:") is None
    assert get_db_path("postgresql://localhost/farm") is None


def test_auto_backup_copies_database(tmp_path):
    db_file = tmp_path / "farm.db"
    db_file.write_bytes(b"sqlite-data")

    backup_path = auto_backup(f"sqlite:///{db_file}", keep_count=3)

    assert backup_path is not None
    assert os.path.dirname(backup_path) == str(tmp_path / "backups")
    with open(backup_path, "rb") as f:
        assert f.read() == b"sqlite-data"


def test_auto_backup_skips_missing_database(tmp_path):
    assert auto_backup(f"sqlite:///{tmp_path / 'missing.db'}") is None


def test_cleanup_keeps_newest(tmp_path):
    names = [f"{BACKUP_PREFIX}2026010{i}_030000_000000.db" for i in range(1, 6)]
    for name in names:
        (tmp_path / name).write_bytes(b"")
    (tmp_path / "manual.db").write_bytes(b"")

    removed = cleanup_old_backups(str(tmp_path), keep_count=2)

    assert removed == 3
    assert sorted(os.listdir(tmp_path)) == sorted([names[3], names[4], "manual.db"])
