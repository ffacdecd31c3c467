"""Custom exceptions for quicknote.

Provides a structured exception hierarchy with error codes and
machine-readable error information. Every error crossing the service
boundary is one of these; callers show ``exc.message`` to the user.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Note errors (1xxx)
    NOTE_NOT_FOUND = 1001
    NOTE_VALIDATION_FAILED = 1002

    # Storage errors (4xxx)
    STORAGE_IO_FAILED = 4001
    SCHEMA_CREATION_FAILED = 4002
    STORAGE_READ_FAILED = 4003
    STORAGE_WRITE_FAILED = 4004
    STORAGE_DELETE_FAILED = 4005
    INDEX_REBUILD_FAILED = 4006

    # Search errors (5xxx)
    SEARCH_FAILED = 5001

    # Configuration errors (6xxx)
    CONFIG_INVALID = 6001

    # Validation errors (7xxx)
    VALIDATION_FAILED = 7001
    INVALID_PAGINATION = 7002


class QuicknoteError(Exception):
    """Base exception for all quicknote errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None
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
            "details": self.details
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class StorageIOError(QuicknoteError):
    """Raised when the storage directory or database file cannot be created."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if path:
            # Don't expose full paths in error messages
            details["path_hint"] = path.replace("\\", "/").split("/")[-1]
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=ErrorCode.STORAGE_IO_FAILED, details=details)
        self.path = path
        self.original_error = original_error


class SchemaError(QuicknoteError):
    """Raised when the tables cannot be created.

    Unrecoverable for the current process: storage is unusable.
    """

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(
            message, code=ErrorCode.SCHEMA_CREATION_FAILED, details=details
        )
        self.original_error = original_error


class DatabaseError(QuicknoteError):
    """Raised for any query or transaction failure at runtime."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_READ_FAILED,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.original_error = original_error


class NoteNotFoundError(QuicknoteError):
    """Raised when a note cannot be found."""

    def __init__(self, note_id: int, message: Optional[str] = None):
        super().__init__(
            message or f"Note with ID {note_id} not found",
            code=ErrorCode.NOTE_NOT_FOUND,
            details={"note_id": note_id}
        )
        self.note_id = note_id


class ValidationError(QuicknoteError):
    """Raised for input validation errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value


class ConfigurationError(QuicknoteError):
    """Raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONFIG_INVALID
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, code=code, details=details)
        self.config_key = config_key
