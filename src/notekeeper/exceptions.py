"""Custom exceptions for the note store.

Provides a structured exception hierarchy with error codes and
machine-readable error information so the UI shell can decide how
to surface each failure.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Note errors (1xxx)
    NOTE_NOT_FOUND = 1001

    # Content errors (2xxx)
    CONTENT_RANGE_INVALID = 2001
    CONTENT_FORMAT_INVALID = 2002

    # Storage errors (4xxx)
    STORAGE_READ_FAILED = 4001
    STORAGE_WRITE_FAILED = 4002
    DATA_CORRUPTED = 4005
    SCHEMA_UNSUPPORTED = 4006
    STORE_CLOSED = 4007

    # Configuration errors (6xxx)
    CONFIG_INVALID = 6001


class NotesError(Exception):
    """Base exception for all note store errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CONTENT_FORMAT_INVALID,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class NotFoundError(NotesError):
    """Raised when an operation references an unknown note id."""

    def __init__(self, note_id: str, message: Optional[str] = None):
        super().__init__(
            message or f"Note with ID '{note_id}' not found",
            code=ErrorCode.NOTE_NOT_FOUND,
            details={"note_id": note_id},
        )
        self.note_id = note_id


class RangeError(NotesError):
    """Raised when a content edit addresses text outside the document."""

    def __init__(self, start: int, end: int, length: int):
        super().__init__(
            f"Range {start}:{end} is outside document of length {length}",
            code=ErrorCode.CONTENT_RANGE_INVALID,
            details={"start": start, "end": end, "length": length},
        )
        self.start = start
        self.end = end
        self.length = length


class FormatError(NotesError):
    """Raised when serialized content is structurally invalid."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        details = {}
        if original_error:
            details["original_error"] = str(original_error)[:200]
        super().__init__(
            message, code=ErrorCode.CONTENT_FORMAT_INVALID, details=details
        )
        self.original_error = original_error


class StorageError(NotesError):
    """Raised for storage/persistence errors."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        path: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_READ_FAILED,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if path:
            # Only the file name, never the full path
            details["path_hint"] = path.replace("\\", "/").split("/")[-1]
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.path = path
        self.original_error = original_error


class StorageIOError(StorageError):
    """Raised when writing (or reading) the notes file fails at the OS level."""

    def __init__(
        self,
        message: str,
        operation: str = "save",
        path: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        code = (
            ErrorCode.STORAGE_WRITE_FAILED
            if operation == "save"
            else ErrorCode.STORAGE_READ_FAILED
        )
        super().__init__(
            message,
            operation=operation,
            path=path,
            code=code,
            original_error=original_error,
        )


class CorruptDataError(StorageError):
    """Raised when the persisted notes file cannot be parsed or validated."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        code: ErrorCode = ErrorCode.DATA_CORRUPTED,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message,
            operation="load",
            path=path,
            code=code,
            original_error=original_error,
        )


class ConfigurationError(NotesError):
    """Raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONFIG_INVALID,
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, code=code, details=details)
        self.config_key = config_key
