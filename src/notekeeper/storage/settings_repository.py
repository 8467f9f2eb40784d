"""Persistence for application settings."""
import logging
from pathlib import Path

from pydantic import ValidationError

from notekeeper.exceptions import StorageIOError
from notekeeper.models.settings import AppSettings
from notekeeper.utils import atomic_write_bytes

logger = logging.getLogger(__name__)


class SettingsRepository:
    """Loads and saves :class:`AppSettings` as JSON."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> AppSettings:
        """Read settings, falling back to defaults.

        A missing file yields defaults silently; an unreadable one yields
        defaults and a warning. Settings are never worth failing startup for.
        """
        try:
            data = self.path.read_bytes()
        except FileNotFoundError:
            return AppSettings()
        except OSError as e:
            logger.warning(f"Could not read settings from {self.path.name}: {e}")
            return AppSettings()
        try:
            return AppSettings.model_validate_json(data)
        except ValidationError as e:
            logger.warning(
                f"Ignoring invalid settings in {self.path.name} "
                f"({e.error_count()} errors); using defaults"
            )
            return AppSettings()

    def save(self, settings: AppSettings) -> None:
        """Atomically write settings.

        Raises:
            StorageIOError: If the file could not be written.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            atomic_write_bytes(self.path, settings.model_dump_json(indent=2).encode("utf-8"))
        except OSError as e:
            raise StorageIOError(
                f"Failed to save settings: {e}",
                operation="save",
                path=str(self.path),
                original_error=e,
            ) from e
