"""Common test fixtures for the note store."""

import datetime
import tempfile
from datetime import timezone
from pathlib import Path

import pytest

from notekeeper.backup import BackupManager
from notekeeper.config import NotesConfig, config
from notekeeper.services.note_store import NoteStore
from notekeeper.storage.persistence import NoteFileStore


class TickingClock:
    """Deterministic clock: every call is one second after the previous one."""

    def __init__(self, start=None):
        self.now = start or datetime.datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime.datetime:
        self.now += datetime.timedelta(seconds=1)
        return self.now


@pytest.fixture
def data_dir():
    """Create a temporary data directory."""
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp)


@pytest.fixture
def test_config(data_dir, monkeypatch):
    """Fast autosave timings rooted in a temp directory (global config patched too)."""
    cfg = NotesConfig(
        data_dir=data_dir,
        autosave_debounce_ms=50,
        autosave_max_latency_ms=2000,
        save_max_retries=2,
        save_retry_backoff_ms=1,
        max_backups=3,
    )
    monkeypatch.setattr(config, "data_dir", data_dir)
    yield cfg


@pytest.fixture
def backups(test_config):
    return BackupManager(test_config.get_backup_dir(), max_backups=test_config.max_backups)


@pytest.fixture
def file_store(test_config, backups):
    return NoteFileStore(test_config.get_notes_path(), backups=backups)


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def note_store(file_store, backups, test_config, clock):
    """A loaded store; closed (with its final save) after the test."""
    store = NoteStore(
        file_store, backups=backups, notes_config=test_config, clock=clock
    )
    store.load_on_startup()
    yield store
    store.close()
