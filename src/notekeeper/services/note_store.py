"""Store facade: the single entry point for reading and changing notes.

The store owns the note collection together with the ordering engine and
the search index and keeps the three consistent. Every mutation is
validated before anything changes and then applied to all three under one
lock, so readers never observe a partial change. Persistence is scheduled,
never awaited, by mutations; it happens on the autosave worker.
"""
import datetime
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from notekeeper.backup import BackupManager
from notekeeper.config import NotesConfig, config
from notekeeper.exceptions import (
    CorruptDataError,
    ErrorCode,
    FormatError,
    NotFoundError,
    StorageError,
)
from notekeeper.models.content import Document, parse
from notekeeper.models.schema import ChangeEvent, ChangeKind, NoteRecord, utc_now
from notekeeper.models.settings import AppSettings
from notekeeper.observability import timed_operation
from notekeeper.services.autosave import AutosaveScheduler
from notekeeper.storage.ordering import OrderingEngine
from notekeeper.storage.persistence import NoteFileStore
from notekeeper.storage.search_index import SearchIndex
from notekeeper.storage.settings_repository import SettingsRepository
from notekeeper.utils import word_count

logger = logging.getLogger(__name__)

Listener = Callable[[ChangeEvent], None]


@dataclass
class LoadReport:
    """Outcome of :meth:`NoteStore.load_on_startup`.

    Attributes:
        notes_loaded: Number of notes now in the store.
        warning: Non-fatal problem to show the user, if any.
        recovered_from: Name of the temp file or snapshot data came from
            when the main file was unreadable.
        quarantined_to: Where a copy of the unreadable file was kept.
    """

    notes_loaded: int = 0
    warning: Optional[str] = None
    recovered_from: Optional[str] = None
    quarantined_to: Optional[Path] = None


class NoteStore:
    """Ordered, searchable, autosaved collection of notes.

    Once closed, the store rejects mutations with ``StorageError``
    (``STORE_CLOSED``); reads keep working.

    Args:
        persistence: Reads and writes the notes file.
        settings: User settings; only ``auto_save`` is used here.
        backups: Snapshot/quarantine manager. Defaults to a ``backups``
            directory next to the notes file.
        notes_config: Tuning values (autosave timing, ordering keys,
            new-note position). Defaults to the global config.
        clock: Source of timestamps for ``created_at``/``updated_at``.
    """

    def __init__(
        self,
        persistence: NoteFileStore,
        settings: Optional[AppSettings] = None,
        backups: Optional[BackupManager] = None,
        notes_config: Optional[NotesConfig] = None,
        clock: Callable[[], datetime.datetime] = utc_now,
    ) -> None:
        cfg = notes_config or config
        self._persistence = persistence
        self.settings = settings or AppSettings()
        self._backups = backups or BackupManager(persistence.path.parent / "backups")
        if self._persistence.backups is None:
            self._persistence.backups = self._backups
        self._clock = clock
        self._new_note_position = cfg.new_note_position

        self._lock = threading.RLock()
        self._notes: Dict[str, NoteRecord] = {}
        self._ordering = OrderingEngine(
            spacing=cfg.order_key_spacing, min_gap=cfg.order_key_min_gap
        )
        self._index = SearchIndex()
        self._listeners: List[Listener] = []
        self._closed = False
        # Set while an unreadable notes file could not be copied aside
        self._protect_unreadable = False

        self._scheduler = AutosaveScheduler(
            self._save_snapshot,
            debounce=cfg.autosave_debounce_ms / 1000,
            max_latency=cfg.autosave_max_latency_ms / 1000,
            max_retries=cfg.save_max_retries,
            retry_backoff=cfg.save_retry_backoff_ms / 1000,
            enabled=self.settings.auto_save,
            on_success=lambda: self._emit(ChangeEvent(ChangeKind.SAVED)),
            on_failure=self._on_save_failed,
        )
        self._scheduler.start()

    @classmethod
    def from_config(cls, notes_config: Optional[NotesConfig] = None) -> "NoteStore":
        """Build a store with files laid out as ``notes_config`` describes."""
        cfg = notes_config or config
        backups = BackupManager(cfg.get_backup_dir(), max_backups=cfg.max_backups)
        settings = SettingsRepository(cfg.get_settings_path()).load()
        persistence = NoteFileStore(cfg.get_notes_path(), backups=backups)
        return cls(persistence, settings=settings, backups=backups, notes_config=cfg)

    def __enter__(self) -> "NoteStore":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._notes)

    @property
    def scheduler(self) -> AutosaveScheduler:
        return self._scheduler

    # ------------------------------------------------------------------
    # Change notifications
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener.

        Listeners run on the thread that caused the change; ``SAVED`` and
        ``SAVE_FAILED`` arrive on the autosave worker.

        Returns:
            A function that unsubscribes the listener.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: ChangeEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception(f"Change listener failed on {event.kind.value} event")

    def _changed(self, event: ChangeEvent) -> None:
        self._emit(event)
        self._scheduler.notify()

    # ------------------------------------------------------------------
    # Startup / shutdown
    # ------------------------------------------------------------------

    def load_on_startup(self) -> LoadReport:
        """Load the notes file into memory.

        An unreadable file never stops startup: a copy is quarantined, a
        readable temp file or snapshot is used if one exists, otherwise the
        store starts empty. The problem is reported in the returned
        :class:`LoadReport` and as a ``LOAD_WARNING`` event.

        Raises:
            StorageIOError: If the notes file exists but cannot be read at all.
        """
        report = LoadReport()
        path = self._persistence.path
        try:
            notes_file = self._persistence.load()
        except CorruptDataError as e:
            logger.error(f"Notes file is unreadable: {e}")
            report.warning = f"Your notes file could not be read ({e.message})."
            report.quarantined_to = self._backups.quarantine(path)
            recovered = self._persistence.recover()
            if recovered is not None:
                notes_file, report.recovered_from = recovered
                report.warning += f" Notes were restored from {report.recovered_from}."
            else:
                notes_file = None
                report.warning += " Starting with an empty collection."
            if report.quarantined_to is None:
                # Saving now would overwrite the only copy of the unreadable file
                self._scheduler.set_enabled(False)
                self._protect_unreadable = True
                report.warning += " Autosave is off until you save explicitly."
            else:
                report.warning += f" The original was kept at {report.quarantined_to}."

        records = notes_file.notes if notes_file is not None else []
        with self._lock:
            self._replace_collection(records)
            report.notes_loaded = len(self._notes)

        if notes_file is not None and report.warning is None:
            self._backups.snapshot(path, label="startup")

        logger.info(f"Loaded {report.notes_loaded} notes from {path.name}")
        self._emit(ChangeEvent(ChangeKind.LOADED, detail=f"{report.notes_loaded} notes"))
        if report.warning:
            self._emit(ChangeEvent(ChangeKind.LOAD_WARNING, detail=report.warning))
            if report.recovered_from and self._scheduler.enabled:
                self._scheduler.notify()
        return report

    def force_save(self) -> None:
        """Save synchronously, waiting for any in-flight save first.

        Raises:
            StorageIOError: If the save fails after all retries.
        """
        self._scheduler.flush()
        if self._protect_unreadable:
            self._protect_unreadable = False
            self._scheduler.set_enabled(self.settings.auto_save)

    def set_auto_save(self, enabled: bool) -> None:
        """Turn background saving on or off.

        While an unreadable notes file is being protected the worker stays
        off; the preference takes effect after the next :meth:`force_save`.
        """
        self.settings.auto_save = enabled
        if self._protect_unreadable:
            logger.warning("Autosave stays off until the notes are saved explicitly")
            return
        self._scheduler.set_enabled(enabled)

    def close(self) -> None:
        """Stop autosaving after a final synchronous save."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._scheduler.shutdown(final_save=not self._protect_unreadable)
        logger.debug("Note store closed")

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_note(
        self,
        title: Optional[str] = None,
        content: Union[Document, str, bytes, None] = None,
        position: Optional[int] = None,
    ) -> NoteRecord:
        """Create a note.

        Args:
            title: Title; defaults to ``"Note {n}"``.
            content: Document or serialized document; defaults to empty.
            position: List index for the note; defaults to the head or tail
                according to configuration.

        Returns:
            The new note record.
        """
        document = self._coerce_document(content) if content is not None else Document()
        with self._lock:
            self._check_open("create")
            if title is None:
                title = f"Note {len(self._notes) + 1}"
            self._check_title(title)
            now = self._clock()
            record = NoteRecord(title=title, content=document, created_at=now, updated_at=now)
            if position is None:
                position = 0 if self._new_note_position == "head" else len(self._notes)

            renumbers = self._ordering.renumber_count
            key = self._ordering.insert(record.id, position)
            record = record.model_copy(update={"order_key": key})
            self._notes[record.id] = record
            self._index.update(record.id, record.title, record.text, record.updated_at)
            self._sync_order_keys(renumbers)
            record = self._notes[record.id]

        logger.debug(f"Created note {record.id}")
        self._changed(ChangeEvent(ChangeKind.CREATED, note_id=record.id))
        return record

    def update_title(self, note_id: str, text: str) -> NoteRecord:
        """Replace a note's title.

        Raises:
            NotFoundError: If the note does not exist.
        """
        self._check_title(text)
        with self._lock:
            self._check_open("update")
            record = self._require(note_id).touched(self._clock(), title=text)
            self._notes[note_id] = record
            self._index.update(note_id, record.title, record.text, record.updated_at)
        self._changed(ChangeEvent(ChangeKind.UPDATED, note_id=note_id, detail="title"))
        return record

    def update_content(
        self, note_id: str, document: Union[Document, str, bytes]
    ) -> NoteRecord:
        """Replace a note's body.

        Raises:
            NotFoundError: If the note does not exist.
            FormatError: If a serialized document is malformed.
        """
        document = self._coerce_document(document)
        with self._lock:
            self._check_open("update")
            record = self._require(note_id).touched(self._clock(), content=document)
            self._notes[note_id] = record
            self._index.update(note_id, record.title, record.text, record.updated_at)
        self._changed(ChangeEvent(ChangeKind.UPDATED, note_id=note_id, detail="content"))
        return record

    def edit_content(
        self, note_id: str, edit: Callable[[Document], Document]
    ) -> NoteRecord:
        """Apply a content edit such as :func:`~notekeeper.models.content.insert_text`.

        Example:
            store.edit_content(note_id, lambda d: apply_format(d, 0, 4, bold=True))

        Raises:
            NotFoundError: If the note does not exist.
            RangeError: If the edit addresses text outside the document; the
                note is left unchanged.
            StorageError: If the store has been closed.
        """
        with self._lock:
            self._check_open("edit")
            current = self._require(note_id)
            document = self._coerce_document(edit(current.content))
            record = current.touched(self._clock(), content=document)
            self._notes[note_id] = record
            self._index.update(note_id, record.title, record.text, record.updated_at)
        self._changed(ChangeEvent(ChangeKind.UPDATED, note_id=note_id, detail="content"))
        return record

    def delete_note(self, note_id: str) -> None:
        """Remove a note from the collection, the order and the index.

        Raises:
            NotFoundError: If the note does not exist.
        """
        with self._lock:
            self._check_open("delete")
            self._require(note_id)
            self._ordering.remove(note_id)
            self._index.remove(note_id)
            del self._notes[note_id]
        logger.debug(f"Deleted note {note_id}")
        self._changed(ChangeEvent(ChangeKind.DELETED, note_id=note_id))

    def move_note(self, note_id: str, target_position: int) -> float:
        """Move a note so it sits at ``target_position`` in the list.

        Returns:
            The note's new order key.

        Raises:
            NotFoundError: If the note does not exist.
        """
        with self._lock:
            self._check_open("move")
            record = self._require(note_id)
            renumbers = self._ordering.renumber_count
            key = self._ordering.move(note_id, target_position)
            record = record.touched(self._clock(), order_key=key)
            self._notes[note_id] = record
            self._index.update(note_id, record.title, record.text, record.updated_at)
            self._sync_order_keys(renumbers)
        self._changed(
            ChangeEvent(ChangeKind.MOVED, note_id=note_id, detail=str(target_position))
        )
        return key

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_note(self, note_id: str) -> NoteRecord:
        """Raises NotFoundError for unknown ids."""
        with self._lock:
            return self._require(note_id)

    def list_in_order(self) -> List[str]:
        with self._lock:
            return self._ordering.list_in_order()

    def list_notes(self) -> List[NoteRecord]:
        """All note records in display order."""
        with self._lock:
            return [self._notes[note_id] for note_id in self._ordering.list_in_order()]

    def search(self, query: str) -> List[str]:
        """Ids matching ``query``, best first; an empty query lists everything."""
        if not query.strip():
            return self.list_in_order()
        with timed_operation("search") as op:
            with self._lock:
                ids = self._index.search(query)
            op["result_count"] = len(ids)
        return ids

    def word_count(self, note_id: str) -> int:
        return word_count(self.get_note(note_id).text)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_open(self, operation: str) -> None:
        if self._closed:
            raise StorageError(
                "Note store is closed; the change would not be saved",
                operation=operation,
                code=ErrorCode.STORE_CLOSED,
            )

    def _require(self, note_id: str) -> NoteRecord:
        try:
            return self._notes[note_id]
        except KeyError:
            raise NotFoundError(note_id) from None

    @staticmethod
    def _check_title(title: Any) -> None:
        if not isinstance(title, str):
            raise FormatError(f"Title must be a string, got {type(title).__name__}")

    @staticmethod
    def _coerce_document(content: Union[Document, str, bytes]) -> Document:
        if isinstance(content, Document):
            return content
        return parse(content)

    def _sync_order_keys(self, renumbers_before: int) -> None:
        """Copy keys back onto records after the engine renumbered the list."""
        if self._ordering.renumber_count == renumbers_before:
            return
        for note_id, key in self._ordering.keys().items():
            record = self._notes[note_id]
            if record.order_key != key:
                self._notes[note_id] = record.model_copy(update={"order_key": key})

    def _replace_collection(self, records: List[NoteRecord]) -> None:
        self._notes = {record.id: record for record in records}
        self._ordering.load({record.id: record.order_key for record in records})
        self._index.clear()
        for record in records:
            self._index.update(record.id, record.title, record.text, record.updated_at)

    def _save_snapshot(self) -> None:
        # Records are immutable, so this list is a consistent point-in-time view
        with self._lock:
            records = [self._notes[note_id] for note_id in self._ordering.list_in_order()]
        self._persistence.save(records)

    def _on_save_failed(self, error: Exception) -> None:
        self._emit(ChangeEvent(ChangeKind.SAVE_FAILED, detail=str(error)))
