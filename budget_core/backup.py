"""Export and import of the full ledger, optionally passphrase-encrypted.

Exports are a single JSON document::

    {"expenses": [...], "parking": [...], "settings": [...], "exportDate": "..."}

An encrypted export is the Fernet token of that document, prefixed with the
PBKDF2 salt and encoded as URL-safe base64. Import treats anything that does
not start with ``{`` as encrypted.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .exceptions import BackupFormatError, DecryptionError
from .models import Expense, ParkedItem, Setting, isoformat_utc
from .services import LedgerEngine
from .validators import validate_passphrase

logger = logging.getLogger(__name__)

SALT_SIZE = 16
KDF_ITERATIONS = 480_000


@dataclass(frozen=True)
class BackupDocument:
    expenses: List[Expense] = field(default_factory=list)
    parking: List[ParkedItem] = field(default_factory=list)
    settings: List[Setting] = field(default_factory=list)
    export_date: Optional[str] = None


def backup_filename(now: datetime) -> str:
    return f"zenspend_backup_{now.date().isoformat()}.json"


def _derive_key(passphrase: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=KDF_ITERATIONS,
    )
    return base64.urlsafe_b64encode(kdf.derive(passphrase.encode("utf-8")))


def encrypt(plaintext: str, passphrase: str) -> str:
    salt = os.urandom(SALT_SIZE)
    token = Fernet(_derive_key(passphrase, salt)).encrypt(plaintext.encode("utf-8"))
    return base64.urlsafe_b64encode(salt + token).decode("ascii")


def decrypt(ciphertext: str, passphrase: Optional[str]) -> str:
    if not passphrase:
        raise DecryptionError("Backup is encrypted; a passphrase is required")
    try:
        raw = base64.urlsafe_b64decode(ciphertext.strip().encode("ascii"))
    except (binascii.Error, UnicodeEncodeError, ValueError) as exc:
        raise DecryptionError("Decryption failed. Wrong password?") from exc
    salt, token = raw[:SALT_SIZE], raw[SALT_SIZE:]
    try:
        plaintext = Fernet(_derive_key(passphrase, salt)).decrypt(token)
    except InvalidToken as exc:
        raise DecryptionError("Decryption failed. Wrong password?") from exc
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecryptionError("Decryption failed. Wrong password?") from exc


def export_backup(engine: LedgerEngine, passphrase: Optional[str] = None) -> str:
    """Serialise every collection, encrypting the result when a passphrase is given."""
    document = {
        "expenses": engine.expenses.records(),
        "parking": engine.parking.records(),
        "settings": engine.settings.records(),
        "exportDate": isoformat_utc(engine.now()),
    }
    data = json.dumps(document)
    if passphrase is not None:
        data = encrypt(data, validate_passphrase(passphrase))
    logger.info(
        "Exported %d expenses, %d parked items%s",
        len(document["expenses"]),
        len(document["parking"]),
        " (encrypted)" if passphrase is not None else "",
    )
    return data


def parse_backup(content: str, passphrase: Optional[str] = None) -> BackupDocument:
    """Decode backup file contents without touching the store."""
    if not content.startswith("{"):
        content = decrypt(content, passphrase)

    try:
        payload = json.loads(content, parse_constant=_reject_constant)
    except ValueError as exc:
        raise BackupFormatError("Import failed. Invalid file format.") from exc
    if not isinstance(payload, dict):
        raise BackupFormatError("Import failed. Invalid file format.")

    try:
        return BackupDocument(
            expenses=[Expense.from_dict(raw) for raw in _records(payload, "expenses")],
            parking=[ParkedItem.from_dict(raw) for raw in _records(payload, "parking")],
            settings=[Setting.from_dict(raw) for raw in _records(payload, "settings")],
            export_date=payload.get("exportDate"),
        )
    except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
        raise BackupFormatError("Import failed. Invalid file format.") from exc


def restore_backup(engine: LedgerEngine, document: BackupDocument) -> None:
    """Replace all stored data with the document's records."""
    engine.replace_all(document.expenses, document.parking, document.settings)
    logger.info(
        "Imported %d expenses, %d parked items, %d settings",
        len(document.expenses),
        len(document.parking),
        len(document.settings),
    )


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not a valid amount")


def _records(payload: Dict[str, Any], name: str) -> List[Dict[str, Any]]:
    records = payload.get(name) or []
    if not isinstance(records, list) or not all(isinstance(raw, dict) for raw in records):
        raise BackupFormatError(f"Import failed. '{name}' must be a list of records.")
    return records
