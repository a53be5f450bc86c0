"""Exception hierarchy for NoteVault.

Every error carries an ``ErrorCode`` and a ``details`` dict so callers can
map failures to their own presentation. Messages are diagnostic only.
"""
from enum import Enum
from typing import Any, Dict, Optional

MAX_DETAIL_CHARS = 300


class ErrorCode(Enum):
    """Machine-readable failure identifiers, grouped by thousands."""

    # Storage (4xxx)
    STORAGE_CONNECTION_FAILED = 4001
    FOREIGN_KEYS_UNAVAILABLE = 4002
    QUERY_FAILED = 4003
    INSERT_FAILED = 4004
    UPDATE_FAILED = 4005
    DELETE_FAILED = 4006
    ROW_NOT_FOUND = 4007
    CONSTRAINT_VIOLATION = 4008
    DUPLICATE_STORED_PATH = 4009
    TRANSACTION_FAILED = 4010
    DATABASE_CORRUPTED = 4011

    # Files (5xxx)
    FILE_OPEN_FAILED = 5001
    FILE_COPY_FAILED = 5002
    FILE_DELETE_FAILED = 5003
    FILE_ENTRY_MISSING = 5004

    # Configuration (6xxx)
    CONFIG_INVALID = 6001

    # Validation (7xxx)
    VALIDATION_FAILED = 7001
    INVALID_RESOURCE_TYPE = 7002


def _collect(base: Optional[Dict[str, Any]] = None, **fields: Any) -> Dict[str, Any]:
    """Merge ``fields`` into a copy of ``base``, skipping None values."""
    details = dict(base or {})
    for key, value in fields.items():
        if value is None:
            continue
        if isinstance(value, BaseException):
            value = str(value)[:MAX_DETAIL_CHARS]
        details[key] = value
    return details


class NoteVaultError(Exception):
    """Root of the hierarchy.

    Attributes:
        message: Diagnostic text.
        code: ``ErrorCode`` for programmatic handling.
        details: Context such as the operation, path or offending value.
    """

    default_code = ErrorCode.VALIDATION_FAILED

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        text = f"[{self.code.name}] {self.message}"
        if not self.details:
            return text
        pairs = ", ".join(f"{k}={v}" for k, v in self.details.items())
        return f"{text} ({pairs})"


class StorageError(NoteVaultError):
    """A statement against the relational store failed.

    The engine's message is kept in ``details["original_error"]``.
    """

    default_code = ErrorCode.QUERY_FAILED

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        code: Optional[ErrorCode] = None,
        original_error: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            code=code,
            details=_collect(details, operation=operation, original_error=original_error),
        )
        self.operation = operation
        self.original_error = original_error


class DatabaseOpenError(StorageError):
    """The store could not be opened or configured; no handle was produced."""

    default_code = ErrorCode.STORAGE_CONNECTION_FAILED

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        code: Optional[ErrorCode] = None,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(
            message,
            operation="open",
            code=code,
            original_error=original_error,
            details=_collect(path=path),
        )
        self.path = path


class ConstraintViolationError(StorageError):
    """An insert or update broke a uniqueness or foreign-key constraint."""

    default_code = ErrorCode.CONSTRAINT_VIOLATION


class MissingRowError(StorageError):
    """A row the operation depends on does not exist."""

    default_code = ErrorCode.ROW_NOT_FOUND

    def __init__(
        self,
        message: str,
        resource_id: int,
        operation: str,
        code: Optional[ErrorCode] = None,
    ):
        super().__init__(
            message, operation=operation, code=code, details={"resource_id": resource_id}
        )
        self.resource_id = resource_id


class FileAccessError(NoteVaultError):
    """A file could not be opened, read, copied or removed."""

    default_code = ErrorCode.FILE_OPEN_FAILED

    def __init__(
        self,
        message: str,
        path: str,
        operation: Optional[str] = None,
        code: Optional[ErrorCode] = None,
        original_error: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            code=code,
            details=_collect(
                details, path=path, operation=operation, original_error=original_error
            ),
        )
        self.path = path
        self.operation = operation
        self.original_error = original_error


class ValidationError(NoteVaultError):
    """Caller input was rejected."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: Optional[ErrorCode] = None,
    ):
        shown = None if value is None else str(value)[:100]
        super().__init__(message, code=code, details=_collect(field=field, value=shown))
        self.field = field
        self.value = value


class ConfigurationError(NoteVaultError):
    """A configured value cannot be used."""

    default_code = ErrorCode.CONFIG_INVALID

    def __init__(self, message: str, config_key: Optional[str] = None, value: Any = None):
        super().__init__(message, details=_collect(config_key=config_key, value=value))
        self.config_key = config_key
