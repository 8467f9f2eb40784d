"""Configuration module for the note store."""

import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from notekeeper.exceptions import ConfigurationError

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config, lives alongside the notes
_USER_ENV = Path.home() / ".notekeeper" / ".env"
load_dotenv(_USER_ENV)


class NotesConfig(BaseModel):
    """Configuration for the note store."""

    # Base directory for all data files
    data_dir: Path = Field(
        default_factory=lambda: Path(
            os.getenv("NOTEKEEPER_DATA_DIR", str(Path.home() / ".notekeeper"))
        )
    )
    # File names / sub-directories, relative to data_dir unless absolute
    notes_file: Path = Field(
        default_factory=lambda: Path(os.getenv("NOTEKEEPER_NOTES_FILE", "notes.json"))
    )
    settings_file: Path = Field(
        default_factory=lambda: Path(
            os.getenv("NOTEKEEPER_SETTINGS_FILE", "settings.json")
        )
    )
    backup_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("NOTEKEEPER_BACKUP_DIR", "backups"))
    )
    log_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("NOTEKEEPER_LOG_DIR", "logs"))
    )
    max_backups: int = Field(
        default_factory=lambda: int(os.getenv("NOTEKEEPER_MAX_BACKUPS", "10"))
    )
    # Autosave timing: quiet period after the last edit, and the ceiling on
    # how long continuous editing may defer a save
    autosave_debounce_ms: int = Field(
        default_factory=lambda: int(os.getenv("NOTEKEEPER_AUTOSAVE_DEBOUNCE_MS", "400"))
    )
    autosave_max_latency_ms: int = Field(
        default_factory=lambda: int(
            os.getenv("NOTEKEEPER_AUTOSAVE_MAX_LATENCY_MS", "3000")
        )
    )
    save_max_retries: int = Field(
        default_factory=lambda: int(os.getenv("NOTEKEEPER_SAVE_MAX_RETRIES", "3"))
    )
    save_retry_backoff_ms: int = Field(
        default_factory=lambda: int(
            os.getenv("NOTEKEEPER_SAVE_RETRY_BACKOFF_MS", "200")
        )
    )
    # Where new notes appear in the list
    new_note_position: Literal["head", "tail"] = Field(
        default_factory=lambda: os.getenv("NOTEKEEPER_NEW_NOTE_POSITION", "head")
    )
    # Ordering keys: distance between renumbered neighbours, and the gap below
    # which the list is renumbered before inserting between two keys
    order_key_spacing: float = Field(default=1.0)
    order_key_min_gap: float = Field(default=1e-9)

    @model_validator(mode="after")
    def _validate_timing(self) -> "NotesConfig":
        """Reject inconsistent autosave and ordering settings."""
        if self.autosave_debounce_ms < 0:
            raise ValueError("autosave_debounce_ms must be >= 0")
        if self.autosave_max_latency_ms < self.autosave_debounce_ms:
            raise ValueError("autosave_max_latency_ms must be >= autosave_debounce_ms")
        if self.save_max_retries < 0:
            raise ValueError("save_max_retries must be >= 0")
        if self.max_backups < 1:
            raise ValueError("max_backups must be >= 1")
        if self.order_key_spacing <= 0 or self.order_key_min_gap <= 0:
            raise ValueError("order key spacing and min gap must be positive")
        if self.order_key_min_gap >= self.order_key_spacing:
            raise ValueError("order_key_min_gap must be smaller than order_key_spacing")
        return self

    def ensure_data_dir(self) -> Path:
        """Create the data directory if needed.

        Raises:
            ConfigurationError: If the directory cannot be created.
        """
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(
                f"Cannot create data directory {self.data_dir}: {e}",
                config_key="data_dir",
            ) from e
        return self.data_dir

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on data_dir."""
        if path.is_absolute():
            return path
        return self.data_dir / path

    def get_notes_path(self) -> Path:
        return self.get_absolute_path(self.notes_file)

    def get_settings_path(self) -> Path:
        return self.get_absolute_path(self.settings_file)

    def get_backup_dir(self) -> Path:
        return self.get_absolute_path(self.backup_dir)

    def get_log_dir(self) -> Path:
        return self.get_absolute_path(self.log_dir)


# Create a global config instance
config = NotesConfig()
