"""Data models for the note store."""

import datetime
import os
import threading
from dataclasses import dataclass
from datetime import timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from notekeeper.models.content import Document, plain_text

# Version marker written into every notes file
SCHEMA_VERSION = 1


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.datetime.now(timezone.utc)


def ensure_timezone_aware(dt_value: datetime.datetime) -> datetime.datetime:
    """Ensure a datetime is timezone-aware, treating naive datetimes as UTC.

    Files written by older versions stored naive timestamps; those are
    assumed to be UTC.
    """
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value


# Thread-safe counter for uniqueness (seeded from PID for cross-process safety)
_id_lock = threading.Lock()
_last_timestamp = 0
_counter = (os.getpid() * 7) % 1_000_000


def generate_id() -> str:
    """Generate a timestamp-based note ID with guaranteed uniqueness.

    Returns:
        A string in format "YYYYMMDDTHHMMSSsssssscccccc" where the trailing
        six digits are a counter that disambiguates IDs generated within the
        same microsecond.
    """
    global _last_timestamp, _counter

    with _id_lock:
        now = utc_now()
        current_timestamp = int(now.timestamp() * 1_000_000)

        if current_timestamp == _last_timestamp:
            _counter += 1
        else:
            _last_timestamp = current_timestamp
            _counter = (os.getpid() * 7) % 1_000_000

        _counter %= 1_000_000

        date_time = now.strftime("%Y%m%dT%H%M%S")
        return f"{date_time}{now.microsecond:06d}{_counter:06d}"


class NoteRecord(BaseModel):
    """A single note: metadata, rich-text content and display order key.

    Records are immutable; the store replaces a record with an updated copy
    on every mutation so that a snapshot of the collection is always a
    consistent point-in-time view.
    """

    id: str = Field(default_factory=generate_id, min_length=1)
    title: str = Field(default="", description="Short title shown in the list")
    content: Document = Field(default_factory=Document)
    order_key: float = Field(
        default=0.0, allow_inf_nan=False, description="Display position key"
    )
    created_at: datetime.datetime = Field(default_factory=utc_now)
    updated_at: datetime.datetime = Field(default_factory=utc_now)

    model_config = {"frozen": True, "extra": "forbid"}

    @field_validator("created_at", "updated_at")
    @classmethod
    def _aware(cls, v: datetime.datetime) -> datetime.datetime:
        return ensure_timezone_aware(v)

    @property
    def text(self) -> str:
        """Unformatted body text."""
        return plain_text(self.content)

    def touched(self, when: datetime.datetime, **changes) -> "NoteRecord":
        """Return a copy with ``changes`` applied and ``updated_at`` refreshed."""
        return self.model_copy(update={**changes, "updated_at": when})


class NotesFile(BaseModel):
    """On-disk layout of the notes file."""

    schema_version: int = SCHEMA_VERSION
    saved_at: datetime.datetime = Field(default_factory=utc_now)
    notes: List[NoteRecord] = Field(default_factory=list)

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def _unique_ids(self) -> "NotesFile":
        seen = set()
        for note in self.notes:
            if note.id in seen:
                raise ValueError(f"duplicate note id '{note.id}'")
            seen.add(note.id)
        return self


class ChangeKind(str, Enum):
    """Kinds of change notifications emitted by the store."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    MOVED = "moved"
    LOADED = "loaded"
    SAVED = "saved"
    SAVE_FAILED = "save_failed"
    LOAD_WARNING = "load_warning"


@dataclass(frozen=True)
class ChangeEvent:
    """Notification sent to store subscribers.

    Attributes:
        kind: What happened.
        note_id: The affected note, when the change concerns a single note.
        detail: Human-readable context (error text for failures).
    """

    kind: ChangeKind
    note_id: Optional[str] = None
    detail: Optional[str] = None
