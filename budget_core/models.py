"""Data models for the budgeting domain."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from .exceptions import ValidationError

__all__ = [
    "CATEGORIES",
    "ConfirmationReason",
    "DashboardSummary",
    "Expense",
    "ExpenseDraft",
    "Mood",
    "ParkedItem",
    "PARKING_PERIOD",
    "Runway",
    "RunwayKind",
    "Setting",
    "isoformat_utc",
    "parse_datetime",
]

CATEGORIES = (
    "Food",
    "Travel",
    "Fees/Bills",
    "Home",
    "Groceries",
    "Shopping",
    "Gifting",
    "Entertainment",
)

PARKING_PERIOD = timedelta(days=30)


def isoformat_utc(dt: datetime) -> str:
    """Return an ISO 8601 string with trailing Z for UTC-aware datetimes."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    iso = dt.isoformat(timespec="milliseconds")
    return iso.replace("+00:00", "Z")


def parse_datetime(value: str) -> datetime:
    """Parse ISO 8601 datetime strings with optional trailing Z into UTC-aware datetime."""
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _format_amount(amount: Decimal) -> str:
    return f"{amount:.2f}"


def _stored_amount(raw: Any, field: str) -> Decimal:
    """Read a persisted amount, rejecting values no ledger operation can produce."""
    if isinstance(raw, bool):
        raise ValidationError(f"{field} must be a numeric value")
    amount = Decimal(str(raw))
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"{field} must be a finite, non-negative number")
    return amount


class RunwayKind(str, Enum):
    INFINITE = "infinite"
    OVERRUN = "overrun"
    DATE = "date"


class Mood(str, Enum):
    ZEN = "zen"
    SUSPICIOUS = "suspicious"
    PANICKED = "panicked"
    PROUD = "proud"
    DISAPPOINTED = "disappointed"


class ConfirmationReason(str, Enum):
    DELIBERATE_WANT = "deliberate_want"
    COST_PER_USE_REFLECTION = "cost_per_use_reflection"


@dataclass(frozen=True)
class ExpenseDraft:
    """An expense that has been entered but not yet recorded."""

    amount: Decimal
    category: str
    description: str = ""
    is_want: bool = False


@dataclass(frozen=True)
class Expense:
    id: int
    amount: Decimal
    category: str
    description: str
    is_want: bool
    date: datetime
    month: str

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the expense using the persisted field names."""
        return {
            "id": self.id,
            "amount": _format_amount(self.amount),
            "category": self.category,
            "description": self.description,
            "isWant": self.is_want,
            "date": isoformat_utc(self.date),
            "month": self.month,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Expense":
        """Hydrate an Expense from JSON-native data."""
        return cls(
            id=int(data["id"]),
            amount=_stored_amount(data["amount"], "amount"),
            category=data["category"],
            description=data.get("description") or "",
            is_want=bool(data["isWant"]),
            date=parse_datetime(data["date"]),
            month=data["month"],
        )


@dataclass(frozen=True)
class ParkedItem:
    id: int
    amount: Decimal
    category: str
    description: str
    park_date: datetime
    expiry_date: datetime

    def days_left(self, now: datetime) -> int:
        """Whole days until the cooling-off period ends, never negative."""
        remaining = (self.expiry_date - now) / timedelta(days=1)
        return max(0, math.ceil(remaining))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "amount": _format_amount(self.amount),
            "category": self.category,
            "description": self.description,
            "parkDate": isoformat_utc(self.park_date),
            "expiryDate": isoformat_utc(self.expiry_date),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParkedItem":
        return cls(
            id=int(data["id"]),
            amount=_stored_amount(data["amount"], "amount"),
            category=data["category"],
            description=data.get("description") or "",
            park_date=parse_datetime(data["parkDate"]),
            expiry_date=parse_datetime(data["expiryDate"]),
        )


@dataclass(frozen=True)
class Setting:
    key: str
    value: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "value": _format_amount(self.value)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Setting":
        return cls(key=str(data["key"]), value=_stored_amount(data["value"], "value"))


@dataclass(frozen=True)
class Runway:
    kind: RunwayKind
    date: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "date": self.date.isoformat() if self.date else None,
        }


@dataclass(frozen=True)
class DashboardSummary:
    budget: Decimal
    spent: Decimal
    safe_to_spend: Decimal
    runway: Runway
    impulse_tax: Decimal
    progress: Decimal
    mood: Mood
    low_balance: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "budget": _format_amount(self.budget),
            "spent": _format_amount(self.spent),
            "safe_to_spend": _format_amount(self.safe_to_spend),
            "runway": self.runway.to_dict(),
            "impulse_tax": _format_amount(self.impulse_tax),
            "progress": f"{self.progress:.1f}",
            "mood": self.mood.value,
            "low_balance": self.low_balance,
        }
