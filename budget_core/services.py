"""Framework-agnostic business services for the budgeting engine."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from . import calculations
from .exceptions import ConfirmationRequiredError, PersistenceError, RecordNotFoundError
from .models import (
    CATEGORIES,
    PARKING_PERIOD,
    ConfirmationReason,
    DashboardSummary,
    Expense,
    ExpenseDraft,
    Mood,
    ParkedItem,
    Runway,
    Setting,
)
from .storage import EXPENSES, PARKING, SETTINGS, JSONStorage
from .validators import (
    parse_amount,
    parse_non_negative_amount,
    validate_category,
    validate_optional_str,
)

logger = logging.getLogger(__name__)

BUDGET = "budget"
IMPULSE_TAX = "impulseTax"

REFLECTION_CATEGORIES = frozenset({"Shopping", "Entertainment"})

Clock = Callable[[], datetime]


def local_now() -> datetime:
    """Current time as an aware datetime in the local timezone."""
    return datetime.now(timezone.utc).astimezone()


def _next_id(records: Iterable[int]) -> int:
    return max(records, default=0) + 1


def _truncate_to_millis(dt: datetime) -> datetime:
    return dt.replace(microsecond=dt.microsecond // 1000 * 1000)


class ExpenseService:
    """Manages expense records and mediates persistence."""

    def __init__(self, storage: JSONStorage, resource: str = EXPENSES) -> None:
        self._storage = storage
        self._resource = resource
        self._expenses: Dict[int, Expense] = {}
        self.load()

    def add(self, draft: ExpenseDraft, now: datetime) -> Expense:
        expense = Expense(
            id=_next_id(self._expenses),
            amount=draft.amount,
            category=draft.category,
            description=draft.description,
            is_want=draft.is_want,
            date=_truncate_to_millis(now),
            month=calculations.month_key(now.date()),
        )
        self._expenses[expense.id] = expense
        self._persist()
        return expense

    def delete(self, expense_id: int) -> bool:
        if self._expenses.pop(expense_id, None) is None:
            return False
        self._persist()
        return True

    def get(self, expense_id: int) -> Expense:
        try:
            return self._expenses[expense_id]
        except KeyError as exc:
            raise RecordNotFoundError(f"Expense {expense_id} not found") from exc

    def list(self, month: Optional[str] = None) -> List[Expense]:
        records = [
            expense for expense in self._expenses.values()
            if month is None or expense.month == month
        ]
        return sorted(records, key=lambda exp: (exp.date, exp.id))

    def total(self, month: str) -> Decimal:
        return sum((expense.amount for expense in self.list(month)), start=Decimal("0.00"))

    def load(self) -> None:
        raw_records = self._storage.load(self._resource)
        self._expenses = {
            expense.id: expense for expense in map(Expense.from_dict, raw_records)
        }

    def records(self) -> List[Dict[str, object]]:
        return [expense.to_dict() for expense in self.list()]

    def _persist(self) -> None:
        self._storage.save(
            self._resource, [expense.to_dict() for expense in self._expenses.values()]
        )


class ParkingService:
    """Manages parked purchases waiting out their cooling-off period."""

    def __init__(self, storage: JSONStorage, resource: str = PARKING) -> None:
        self._storage = storage
        self._resource = resource
        self._items: Dict[int, ParkedItem] = {}
        self.load()

    def add(self, draft: ExpenseDraft, now: datetime) -> ParkedItem:
        park_date = _truncate_to_millis(now)
        item = ParkedItem(
            id=_next_id(self._items),
            amount=draft.amount,
            category=draft.category,
            description=draft.description,
            park_date=park_date,
            expiry_date=park_date + PARKING_PERIOD,
        )
        self._items[item.id] = item
        self._persist()
        return item

    def get(self, item_id: int) -> Optional[ParkedItem]:
        return self._items.get(item_id)

    def delete(self, item_id: int) -> bool:
        if self._items.pop(item_id, None) is None:
            return False
        self._persist()
        return True

    def list(self) -> List[ParkedItem]:
        return sorted(self._items.values(), key=lambda item: (item.park_date, item.id))

    def load(self) -> None:
        raw_records = self._storage.load(self._resource)
        self._items = {item.id: item for item in map(ParkedItem.from_dict, raw_records)}

    def records(self) -> List[Dict[str, object]]:
        return [item.to_dict() for item in self.list()]

    def _persist(self) -> None:
        self._storage.save(self._resource, [item.to_dict() for item in self._items.values()])


class SettingsService:
    """Key/value settings such as the monthly budget and the impulse tax total."""

    def __init__(self, storage: JSONStorage, resource: str = SETTINGS) -> None:
        self._storage = storage
        self._resource = resource
        self._settings: Dict[str, Setting] = {}
        self.load()

    def get(self, key: str, default: Decimal = Decimal("0")) -> Decimal:
        setting = self._settings.get(key)
        return setting.value if setting else default

    def put(self, key: str, value: Decimal) -> Setting:
        setting = Setting(key=key, value=value)
        self._settings[key] = setting
        self._persist()
        return setting

    def load(self) -> None:
        raw_records = self._storage.load(self._resource)
        self._settings = {
            setting.key: setting for setting in map(Setting.from_dict, raw_records)
        }

    def records(self) -> List[Dict[str, object]]:
        return [setting.to_dict() for setting in self._settings.values()]

    def _persist(self) -> None:
        self._storage.save(
            self._resource, [setting.to_dict() for setting in self._settings.values()]
        )


@dataclass
class LedgerSession:
    """In-memory copies of the settings the dashboard reads on every refresh."""

    budget: Decimal = Decimal("0")
    impulse_tax: Decimal = Decimal("0")

    def reset(self) -> None:
        self.budget = Decimal("0")
        self.impulse_tax = Decimal("0")


def confirmation_reasons(draft: ExpenseDraft) -> Tuple[ConfirmationReason, ...]:
    reasons = []
    if draft.is_want:
        reasons.append(ConfirmationReason.DELIBERATE_WANT)
    if (
        draft.category in REFLECTION_CATEGORIES
        and draft.amount > calculations.HIGH_VALUE_THRESHOLD
    ):
        reasons.append(ConfirmationReason.COST_PER_USE_REFLECTION)
    return tuple(reasons)


def requires_confirmation(draft: ExpenseDraft) -> bool:
    return bool(confirmation_reasons(draft))


def feedback_for(expense: Expense) -> Optional[Mood]:
    """Negative feedback signal for a large discretionary purchase."""
    if expense.is_want and expense.amount > calculations.HIGH_VALUE_THRESHOLD:
        return Mood.DISAPPOINTED
    return None


def build_draft(
    amount: object,
    category: object,
    description: object = None,
    is_want: bool = False,
) -> ExpenseDraft:
    return ExpenseDraft(
        amount=parse_amount(amount, "amount"),
        category=validate_category(category, CATEGORIES),
        description=validate_optional_str(description, "description", 200),
        is_want=bool(is_want),
    )


class LedgerEngine:
    """Owns the expense, parking and settings records and derives budget metrics."""

    def __init__(self, storage: JSONStorage, clock: Optional[Clock] = None) -> None:
        self._storage = storage
        self._clock = clock or local_now
        self._lock = threading.RLock()
        self.expenses = ExpenseService(storage)
        self.parking = ParkingService(storage)
        self.settings = SettingsService(storage)
        self.session = LedgerSession()
        self.load_settings()

    def now(self) -> datetime:
        return self._clock()

    def load_settings(self) -> None:
        self.session.budget = self.settings.get(BUDGET)
        self.session.impulse_tax = self.settings.get(IMPULSE_TAX)

    # Record operations ----------------------------------------------------
    def add_expense(
        self,
        amount: object,
        category: object,
        description: object = None,
        is_want: bool = False,
        *,
        confirmed: bool = False,
    ) -> Expense:
        draft = build_draft(amount, category, description, is_want)
        reasons = confirmation_reasons(draft)
        if reasons and not confirmed:
            raise ConfirmationRequiredError(reason.value for reason in reasons)
        with self._lock:
            return self._record_expense(draft)

    def delete_expense(self, expense_id: int) -> None:
        with self._lock:
            if self.expenses.delete(expense_id):
                logger.info("Deleted expense %s", expense_id)

    def get_expense(self, expense_id: int) -> Expense:
        return self.expenses.get(expense_id)

    def list_expenses(self, month: Optional[str] = None) -> List[Expense]:
        """Expenses for ``month`` (default: current month), newest first."""
        month = month or self.current_month()
        return list(reversed(self.expenses.list(month)))

    def park_item(self, amount: object, category: object, description: object = None) -> ParkedItem:
        draft = build_draft(amount, category, description, is_want=True)
        with self._lock:
            item = self.parking.add(draft, self.now())
        logger.info("Parked item %s until %s", item.id, item.expiry_date.isoformat())
        return item

    def list_parked(self) -> List[ParkedItem]:
        return self.parking.list()

    def convert_parked_to_expense(self, item_id: int) -> Optional[Expense]:
        with self._lock:
            item = self.parking.get(item_id)
            if item is None:
                return None
            draft = ExpenseDraft(
                amount=item.amount,
                category=item.category,
                description=item.description,
                is_want=True,
            )
            # The expense is recorded before the item goes; a failure leaves the item parked.
            expense = self._record_expense(draft)
            self.parking.delete(item_id)
        logger.info("Converted parked item %s into expense %s", item_id, expense.id)
        return expense

    def delete_parked_item(self, item_id: int) -> None:
        with self._lock:
            self.parking.delete(item_id)

    def set_budget(self, amount: object) -> Decimal:
        value = parse_non_negative_amount(amount, "budget")
        with self._lock:
            self.settings.put(BUDGET, value)
            self.session.budget = value
        return value

    def clear_all(self) -> None:
        with self._lock:
            self._storage.replace_many({EXPENSES: [], PARKING: [], SETTINGS: []})
            self._reload()
            self.session.reset()
        logger.warning("All ledger data cleared")

    def replace_all(
        self,
        expenses: List[Expense],
        parking: List[ParkedItem],
        settings: List[Setting],
    ) -> None:
        """Swap every collection for the given records in a single write."""
        with self._lock:
            self._storage.replace_many({
                EXPENSES: [expense.to_dict() for expense in expenses],
                PARKING: [item.to_dict() for item in parking],
                SETTINGS: [setting.to_dict() for setting in settings],
            })
            self._reload()
            self.load_settings()

    # Derived metrics ------------------------------------------------------
    def current_month(self) -> str:
        return calculations.month_key(self.now().date())

    def monthly_spending(self, month: Optional[str] = None) -> Decimal:
        return self.expenses.total(month or self.current_month())

    def safe_to_spend(self) -> Decimal:
        return calculations.safe_to_spend(
            self.session.budget, self.monthly_spending(), self.now().date()
        )

    def runway(self) -> Runway:
        return calculations.runway(
            self.session.budget, self.monthly_spending(), self.now().date()
        )

    @property
    def impulse_tax_total(self) -> Decimal:
        return self.session.impulse_tax

    def mood(self) -> Mood:
        return calculations.mood(
            self.session.budget, self.monthly_spending(), self.safe_to_spend()
        )

    def spending_by_category(self, month: Optional[str] = None) -> Dict[str, Decimal]:
        totals: Dict[str, Decimal] = {}
        for expense in self.expenses.list(month or self.current_month()):
            totals[expense.category] = totals.get(expense.category, Decimal("0.00")) + expense.amount
        return totals

    def monthly_trend(self, months: int = 6) -> List[Tuple[str, Decimal]]:
        keys = calculations.previous_month_keys(self.now().date(), months)
        return [(key, self.monthly_spending(key)) for key in keys]

    def dashboard(self) -> DashboardSummary:
        budget = self.session.budget
        spent = self.monthly_spending()
        safe = self.safe_to_spend()
        return DashboardSummary(
            budget=budget,
            spent=spent,
            safe_to_spend=safe,
            runway=self.runway(),
            impulse_tax=self.session.impulse_tax,
            progress=calculations.budget_progress(budget, spent),
            mood=calculations.mood(budget, spent, safe),
            low_balance=safe < calculations.LOW_BALANCE_THRESHOLD,
        )

    # Internal helpers -----------------------------------------------------
    def _record_expense(self, draft: ExpenseDraft) -> Expense:
        expense = self.expenses.add(draft, self.now())
        if draft.is_want:
            tax = calculations.impulse_tax(draft.amount)
            if tax > 0:
                self._save_impulse_tax(tax)
        logger.info(
            "Recorded %s expense %s: %s in %s",
            "want" if draft.is_want else "need",
            expense.id,
            expense.amount,
            expense.category,
        )
        return expense

    def _save_impulse_tax(self, amount: Decimal) -> None:
        total = self.session.impulse_tax + amount
        self.settings.put(IMPULSE_TAX, total)
        self.session.impulse_tax = total

    def _reload(self) -> None:
        try:
            self.expenses.load()
            self.parking.load()
            self.settings.load()
        except (KeyError, TypeError, ValueError) as exc:
            raise PersistenceError("Stored records could not be reloaded") from exc
