"""Core business logic package for the budgeting engine."""

from .backup import BackupDocument, export_backup, parse_backup, restore_backup
from .config import AppConfig
from .exceptions import (
    BackupError,
    BackupFormatError,
    ConfirmationRequiredError,
    DecryptionError,
    PersistenceError,
    RecordNotFoundError,
    ValidationError,
)
from .models import Expense, ExpenseDraft, Mood, ParkedItem, Runway, RunwayKind, Setting
from .services import LedgerEngine, LedgerSession, feedback_for, requires_confirmation
from .storage import JSONStorage

__all__ = [
    "AppConfig",
    "BackupDocument",
    "BackupError",
    "BackupFormatError",
    "ConfirmationRequiredError",
    "DecryptionError",
    "Expense",
    "ExpenseDraft",
    "JSONStorage",
    "LedgerEngine",
    "LedgerSession",
    "Mood",
    "ParkedItem",
    "PersistenceError",
    "RecordNotFoundError",
    "Runway",
    "RunwayKind",
    "Setting",
    "ValidationError",
    "export_backup",
    "feedback_for",
    "parse_backup",
    "requires_confirmation",
    "restore_backup",
]
