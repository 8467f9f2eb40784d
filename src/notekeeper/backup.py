"""Backup utilities for the note store.

Provides:
- Gzip snapshots of the notes file with count-based rotation
- Quarantine copies of unreadable notes files, kept byte-for-byte for
  manual recovery
"""
import gzip
import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import List, Optional, Union

logger = logging.getLogger(__name__)

# Backup retention settings
DEFAULT_MAX_BACKUPS = 10  # Keep last N snapshots

QUARANTINE_DIR = "corrupt"


class BackupManager:
    """Manages snapshots of the notes file.

    Features:
    - Gzip compression for space efficiency
    - Automatic rotation by count
    - Quarantine of corrupt files outside the rotation
    """

    def __init__(
        self,
        backup_dir: Union[str, Path],
        max_backups: int = DEFAULT_MAX_BACKUPS,
    ):
        """Initialize the backup manager.

        Args:
            backup_dir: Directory for backups.
            max_backups: Maximum number of snapshots to keep
        """
        self.backup_dir = Path(backup_dir)
        self.max_backups = max_backups
        self._lock = Lock()

    def snapshot(self, source: Path, label: Optional[str] = None) -> Optional[Path]:
        """Create a compressed snapshot of ``source``.

        Args:
            source: File to back up.
            label: Optional label to include in filename

        Returns:
            Path to the snapshot, or None if the source is missing or the
            backup failed.

        Example:
            manager.snapshot(notes_path, label="startup")
        """
        with self._lock:
            if not source.exists():
                logger.debug(f"Nothing to back up: {source.name} does not exist")
                return None
            try:
                self.backup_dir.mkdir(parents=True, exist_ok=True)
                timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
                label_part = f"_{label}" if label else ""
                backup_path = self.backup_dir / f"{source.stem}_{timestamp}{label_part}.json.gz"

                with open(source, "rb") as f_in:
                    with gzip.open(backup_path, "wb", compresslevel=6) as f_out:
                        shutil.copyfileobj(f_in, f_out)

                size_kb = backup_path.stat().st_size / 1024
                logger.info(f"Notes snapshot created: {backup_path.name} ({size_kb:.1f} KB)")

                self._rotate()
                return backup_path

            except OSError as e:
                logger.error(f"Notes snapshot failed: {e}", exc_info=True)
                return None

    def quarantine(self, source: Path) -> Optional[Path]:
        """Copy an unreadable file aside, unmodified.

        The original stays where it is; the copy survives the next save
        replacing it.

        Returns:
            Path to the quarantined copy, or None if copying failed.
        """
        with self._lock:
            try:
                target_dir = self.backup_dir / QUARANTINE_DIR
                target_dir.mkdir(parents=True, exist_ok=True)
                timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
                target = target_dir / f"{source.name}.{timestamp}"
                shutil.copy2(source, target)
                logger.warning(f"Unreadable notes file preserved as {target}")
                return target
            except OSError as e:
                logger.error(f"Failed to quarantine {source.name}: {e}")
                return None

    def list_snapshots(self) -> List[Path]:
        """All snapshots, newest first."""
        if not self.backup_dir.exists():
            return []
        # Names embed a UTC timestamp, so name order is creation order
        return sorted(self.backup_dir.glob("*.json.gz"), key=lambda p: p.name, reverse=True)

    def read_snapshot(self, path: Path) -> bytes:
        """Return the decompressed contents of a snapshot."""
        with gzip.open(path, "rb") as f:
            return f.read()

    def _rotate(self) -> None:
        """Delete snapshots beyond max_backups (oldest first)."""
        for old in self.list_snapshots()[self.max_backups:]:
            try:
                old.unlink()
                logger.debug(f"Rotated out old snapshot: {old.name}")
            except OSError as e:
                logger.warning(f"Failed to delete old snapshot {old.name}: {e}")
