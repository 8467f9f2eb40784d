"""Utility functions for the note store."""
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def temp_path_for(path: Path) -> Path:
    """Return the staging path used while ``path`` is being rewritten."""
    return path.with_name(path.name + ".tmp")


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Atomically replace ``path`` with ``data``.

    The bytes are written to a sibling temp file, flushed and fsynced, then
    renamed over ``path``. A crash before the rename leaves the previous file
    intact; a crash after it leaves the new one. The parent directory is
    fsynced afterwards so the rename itself survives power loss.

    Raises:
        OSError: If any step fails. A partially written temp file is removed.
    """
    tmp = temp_path_for(path)
    try:
        with open(tmp, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except OSError:
        try:
            tmp.unlink()
        except FileNotFoundError:
            pass
        raise
    _fsync_directory(path.parent)


def _fsync_directory(directory: Path) -> None:
    # Directories cannot be opened for fsync on Windows
    if os.name != "posix":
        return
    try:
        fd = os.open(str(directory), os.O_RDONLY)
    except OSError as e:
        logger.debug(f"Could not open {directory} for fsync: {e}")
        return
    try:
        os.fsync(fd)
    except OSError as e:
        logger.debug(f"Directory fsync failed for {directory}: {e}")
    finally:
        os.close(fd)


def word_count(text: str) -> int:
    """Count whitespace-separated words.

    Examples:
        >>> word_count("  two   words ")
        2
        >>> word_count("")
        0
    """
    return len(text.split())
