"""Domain-specific exceptions for the budgeting core services."""

from typing import Iterable, Tuple


class ValidationError(ValueError):
    """Raised when provided data does not meet validation requirements."""


class RecordNotFoundError(LookupError):
    """Raised when an expense or parked item cannot be located."""


class PersistenceError(IOError):
    """Raised when the persistence layer encounters unrecoverable issues."""


class ConfirmationRequiredError(Exception):
    """Raised when a purchase needs an explicit confirmation before it is recorded."""

    def __init__(self, reasons: Iterable[str]) -> None:
        self.reasons: Tuple[str, ...] = tuple(reasons)
        super().__init__(f"Confirmation required: {', '.join(self.reasons)}")


class BackupError(Exception):
    """Base class for backup import failures."""


class DecryptionError(BackupError):
    """Raised when an encrypted backup cannot be decrypted with the given passphrase."""


class BackupFormatError(BackupError):
    """Raised when a backup file is not a valid export document."""
