"""
Exceptions raised by the migration engine.

Row-scoped problems never surface as exceptions; they are collected as
issues and row outcomes. Everything here is either file/configuration
scoped or a rejected user action.
"""
from typing import Optional


class MigrationError(Exception):
    """Base exception for migration operations."""
    pass


class UnreadableSource(MigrationError):
    """Raised when an uploaded file cannot be opened or has no columns."""
    pass


class FileTooLarge(MigrationError):
    """Raised when an upload exceeds the configured size cap."""

    def __init__(self, size_bytes: int, limit_bytes: int):
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes
        super().__init__(
            f"File is {size_bytes} bytes; the maximum upload size is {limit_bytes} bytes"
        )


class ConnectorNotFound(MigrationError):
    pass


class MappingError(MigrationError):
    """Raised when a mapping is incomplete or names unknown fields."""

    def __init__(self, message: str, missing_fields: Optional[list] = None):
        self.missing_fields = list(missing_fields or [])
        super().__init__(message)


class InvalidTransition(MigrationError):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move job from {current} to {target}")


class ConfirmationRequired(MigrationError):
    def __init__(self, expected: str):
        self.expected = expected
        super().__init__(f'Confirmation must be the literal "{expected}"')


class RollbackUnavailable(MigrationError):
    pass


class JobNotFound(MigrationError):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Migration job {job_id} not found")


class TemplateNotFound(MigrationError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Mapping template '{name}' not found")


class JobBusy(MigrationError):
    """Raised when a job already has an active background task."""
    pass


class RowCommitTimeout(MigrationError):
    """Raised inside a row transaction that ran past its time budget."""
    pass
