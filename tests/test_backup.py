"""Tests for notes snapshots and quarantine."""
import time

from notekeeper.backup import QUARANTINE_DIR, BackupManager


def _notes_file(tmp_path, content='{"schema_version": 1, "notes": []}'):
    path = tmp_path / "notes.json"
    path.write_text(content)
    return path


class TestSnapshots:
    def test_snapshot_round_trip(self, tmp_path):
        source = _notes_file(tmp_path)
        manager = BackupManager(tmp_path / "backups")
        snapshot = manager.snapshot(source, label="startup")
        assert snapshot.name.startswith("notes_")
        assert snapshot.name.endswith("_startup.json.gz")
        assert manager.read_snapshot(snapshot) == source.read_bytes()

    def test_missing_source(self, tmp_path):
        manager = BackupManager(tmp_path / "backups")
        assert manager.snapshot(tmp_path / "absent.json") is None
        assert manager.list_snapshots() == []

    def test_rotation_keeps_newest(self, tmp_path):
        source = _notes_file(tmp_path)
        manager = BackupManager(tmp_path / "backups", max_backups=2)
        created = []
        for i in range(4):
            source.write_text(f'{{"n": {i}}}')
            created.append(manager.snapshot(source))
            time.sleep(0.002)
        kept = manager.list_snapshots()
        assert kept == [created[3], created[2]]
        assert manager.read_snapshot(kept[0]) == b'{"n": 3}'


class TestQuarantine:
    def test_copy_is_byte_identical_and_original_stays(self, tmp_path):
        source = _notes_file(tmp_path, "\x00 broken {")
        manager = BackupManager(tmp_path / "backups")
        copy = manager.quarantine(source)
        assert copy.parent == tmp_path / "backups" / QUARANTINE_DIR
        assert copy.read_bytes() == source.read_bytes()
        assert source.exists()

    def test_quarantine_not_rotated(self, tmp_path):
        source = _notes_file(tmp_path)
        manager = BackupManager(tmp_path / "backups", max_backups=1)
        copy = manager.quarantine(source)
        manager.snapshot(source)
        manager.snapshot(source)
        assert copy.exists()
        assert len(manager.list_snapshots()) == 1

    def test_quarantine_failure_returns_none(self, tmp_path):
        manager = BackupManager(tmp_path / "backups")
        assert manager.quarantine(tmp_path / "absent.json") is None
