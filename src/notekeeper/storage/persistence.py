"""Crash-safe persistence of the note collection.

The whole collection lives in one JSON file carrying a schema version. Saves
go through :func:`notekeeper.utils.atomic_write_bytes`, so readers only ever
see the previous file or the new one. Files written by the earlier plain-text
version of the app (a bare JSON array of notes) are migrated on load.
"""
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from notekeeper.backup import BackupManager
from notekeeper.exceptions import CorruptDataError, ErrorCode, StorageIOError
from notekeeper.models.content import Document
from notekeeper.models.schema import SCHEMA_VERSION, NoteRecord, NotesFile
from notekeeper.observability import timed_operation
from notekeeper.utils import atomic_write_bytes, temp_path_for

logger = logging.getLogger(__name__)


class NoteFileStore:
    """Reads and writes the notes file.

    Args:
        path: Location of the canonical notes file.
        backups: Optional backup manager whose snapshots are used as
            recovery candidates.
    """

    def __init__(self, path: Path, backups: Optional[BackupManager] = None) -> None:
        self.path = Path(path)
        self.backups = backups

    @property
    def temp_path(self) -> Path:
        return temp_path_for(self.path)

    def exists(self) -> bool:
        return self.path.exists()

    def save(self, notes: Sequence[NoteRecord]) -> None:
        """Atomically replace the notes file with ``notes``.

        Raises:
            StorageIOError: If the file could not be written. The previous
                file is left untouched.
        """
        with timed_operation("save", notes=len(notes)) as op:
            payload = NotesFile(notes=list(notes)).model_dump_json(indent=2).encode("utf-8")
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                atomic_write_bytes(self.path, payload)
            except OSError as e:
                raise StorageIOError(
                    f"Failed to save notes: {e}",
                    operation="save",
                    path=str(self.path),
                    original_error=e,
                ) from e
            op["bytes"] = len(payload)
        logger.debug(f"Saved {len(notes)} notes to {self.path.name}")

    def load(self) -> Optional[NotesFile]:
        """Read the notes file.

        Returns:
            The parsed file, or None when no file exists yet.

        Raises:
            CorruptDataError: If the file is unparsable or fails validation.
            StorageIOError: If the file exists but cannot be read.
        """
        with timed_operation("load") as op:
            try:
                data = self.path.read_bytes()
            except FileNotFoundError:
                op["found"] = False
                return None
            except OSError as e:
                raise StorageIOError(
                    f"Failed to read notes: {e}",
                    operation="load",
                    path=str(self.path),
                    original_error=e,
                ) from e
            notes_file = decode_notes(data, source=self.path.name)
            op["notes"] = len(notes_file.notes)
            return notes_file

    def recover(self) -> Optional[Tuple[NotesFile, str]]:
        """Look for a readable copy after the main file failed to load.

        Tries a leftover temp file from an interrupted save first, then
        backup snapshots from newest to oldest.

        Returns:
            The recovered file and the name of its source, or None.
        """
        for name, read in self._recovery_candidates():
            try:
                notes_file = decode_notes(read(), source=name)
            except (CorruptDataError, OSError) as e:
                logger.info(f"Recovery candidate {name} rejected: {e}")
                continue
            logger.warning(f"Recovered {len(notes_file.notes)} notes from {name}")
            return notes_file, name
        return None

    def _recovery_candidates(self) -> List[Tuple[str, Any]]:
        candidates: List[Tuple[str, Any]] = []
        if self.temp_path.exists():
            candidates.append((self.temp_path.name, self.temp_path.read_bytes))
        if self.backups is not None:
            for snapshot in self.backups.list_snapshots():
                candidates.append(
                    (snapshot.name, lambda p=snapshot: self.backups.read_snapshot(p))
                )
        return candidates


def decode_notes(data: bytes, source: str = "notes file") -> NotesFile:
    """Parse and validate the bytes of a notes file.

    Raises:
        CorruptDataError: If the data is not a valid notes file.
    """
    try:
        raw = json.loads(data)
    except ValueError as e:
        raise CorruptDataError(
            f"{source} is not valid JSON", path=source, original_error=e
        ) from e

    if isinstance(raw, list):
        return _migrate_legacy(raw, source)
    if not isinstance(raw, dict):
        raise CorruptDataError(f"{source} does not hold a notes object", path=source)

    version = raw.get("schema_version")
    if isinstance(version, int) and version > SCHEMA_VERSION:
        raise CorruptDataError(
            f"{source} uses schema version {version}, newer than supported "
            f"version {SCHEMA_VERSION}",
            path=source,
            code=ErrorCode.SCHEMA_UNSUPPORTED,
        )
    try:
        return NotesFile.model_validate(raw)
    except ValidationError as e:
        raise CorruptDataError(
            f"{source} failed schema validation ({e.error_count()} errors)",
            path=source,
            original_error=e,
        ) from e


def _migrate_legacy(items: List[Any], source: str) -> NotesFile:
    """Convert the plain-text array format into the current schema.

    Legacy entries look like ``{"id": 123, "title": ..., "body": ...,
    "modified": <unix seconds>}``; list position was the display order.
    """
    notes = []
    try:
        for position, item in enumerate(items):
            if not isinstance(item, dict):
                raise TypeError(f"entry {position} is not an object")
            modified = datetime.fromtimestamp(item.get("modified", 0), tz=timezone.utc)
            notes.append(
                NoteRecord(
                    id=str(item["id"]),
                    title=item.get("title", ""),
                    content=Document.from_text(item.get("body", "")),
                    order_key=float(position),
                    created_at=modified,
                    updated_at=modified,
                )
            )
        notes_file = NotesFile(notes=notes)
    except (KeyError, TypeError, ValueError, OverflowError, OSError) as e:
        raise CorruptDataError(
            f"{source} is not a valid legacy notes list", path=source, original_error=e
        ) from e
    logger.info(f"Migrated {len(notes)} notes from legacy format in {source}")
    return notes_file
