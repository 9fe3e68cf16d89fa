"""Pure budget formulas.

Every function here is a function of its arguments only; the engine supplies
the current date and the stored totals.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from decimal import Decimal, ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP
from typing import List, Optional

from .exceptions import ValidationError
from .models import Mood, Runway, RunwayKind

ZERO = Decimal("0")
HUNDRED = Decimal("100")

LOW_BALANCE_THRESHOLD = Decimal("100")
HIGH_VALUE_THRESHOLD = Decimal("2000")
MEAL_TRANSLATION_THRESHOLD = Decimal("1000")
MEAL_COST = Decimal("90")
COFFEE_COST = Decimal("180")


def month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def previous_month_keys(day: date, count: int) -> List[str]:
    """Month keys for the ``count`` months ending with ``day``'s month, oldest first."""
    keys = []
    year, month = day.year, day.month
    for _ in range(count):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


def days_in_month(day: date) -> int:
    return calendar.monthrange(day.year, day.month)[1]


def days_remaining(day: date) -> int:
    """Days left in the month, counting today."""
    return max(1, days_in_month(day) - day.day + 1)


def days_passed(day: date) -> int:
    return max(1, day.day)


def safe_to_spend(budget: Decimal, spent: Decimal, today: date) -> Decimal:
    if budget <= 0:
        return ZERO
    remaining = budget - spent
    daily = (remaining / days_remaining(today)).to_integral_value(rounding=ROUND_FLOOR)
    return max(ZERO, daily)


def runway(budget: Decimal, spent: Decimal, today: date) -> Runway:
    remaining = budget - spent
    if spent <= 0:
        return Runway(RunwayKind.INFINITE)
    if remaining <= 0:
        return Runway(RunwayKind.OVERRUN)

    avg_daily = spent / days_passed(today)
    days_until_zero = (remaining / avg_daily).to_integral_value(rounding=ROUND_FLOOR)
    return Runway(RunwayKind.DATE, today + timedelta(days=int(days_until_zero)))


def impulse_tax(amount: Decimal) -> Decimal:
    """Gap between ``amount`` and the next multiple of 100."""
    if amount % HUNDRED == 0:
        return ZERO
    rounded_up = (amount / HUNDRED).to_integral_value(rounding=ROUND_CEILING) * HUNDRED
    return rounded_up - amount


def cost_per_use(amount: Decimal, uses: int) -> Decimal:
    if uses < 1:
        raise ValidationError("uses must be at least 1")
    return (amount / uses).to_integral_value(rounding=ROUND_HALF_UP)


def coffee_equivalent(per_use: Decimal) -> int:
    return int((per_use / COFFEE_COST).to_integral_value(rounding=ROUND_HALF_UP))


def meal_equivalent(amount: Decimal) -> Optional[int]:
    """Days of essential meals an amount would buy, for amounts worth mentioning."""
    if amount <= MEAL_TRANSLATION_THRESHOLD:
        return None
    return int((amount / MEAL_COST).to_integral_value(rounding=ROUND_FLOOR))


def budget_progress(budget: Decimal, spent: Decimal) -> Decimal:
    if budget <= 0:
        return ZERO
    return min(HUNDRED, spent / budget * HUNDRED)


def mood(budget: Decimal, spent: Decimal, safe: Decimal) -> Mood:
    ratio = (budget - spent) / budget if budget > 0 else Decimal(1)
    if safe < LOW_BALANCE_THRESHOLD:
        return Mood.PANICKED
    if ratio < Decimal("0.5"):
        return Mood.SUSPICIOUS
    return Mood.ZEN
