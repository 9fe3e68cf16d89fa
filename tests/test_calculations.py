from datetime import date
from decimal import Decimal

import pytest

from budget_core import calculations
from budget_core.exceptions import ValidationError
from budget_core.models import Mood, RunwayKind

JUNE_10 = date(2024, 6, 10)


class TestImpulseTax:
    def test_non_round_amount_is_taxed_up_to_next_hundred(self):
        assert calculations.impulse_tax(Decimal("137")) == Decimal("63")

    def test_round_amounts_are_free(self):
        for amount in ("100", "200.00", "4500"):
            assert calculations.impulse_tax(Decimal(amount)) == 0

    def test_zero_amount_is_free(self):
        assert calculations.impulse_tax(Decimal("0")) == 0

    @pytest.mark.parametrize("amount", ["1", "99.50", "101", "250.75", "1999.99"])
    def test_tax_is_strictly_between_zero_and_hundred(self, amount):
        tax = calculations.impulse_tax(Decimal(amount))
        assert Decimal("0") < tax < Decimal("100")
        assert (Decimal(amount) + tax) % 100 == 0


class TestSafeToSpend:
    def test_worked_example(self):
        # 3000 budget, 450 spent, 21 days left in June counting today.
        assert calculations.days_remaining(JUNE_10) == 21
        assert calculations.safe_to_spend(Decimal("3000"), Decimal("450"), JUNE_10) == 121

    def test_no_budget_means_nothing_to_spend(self):
        assert calculations.safe_to_spend(Decimal("0"), Decimal("0"), JUNE_10) == 0

    def test_overspent_budget_is_clamped_to_zero(self):
        assert calculations.safe_to_spend(Decimal("1000"), Decimal("1500"), JUNE_10) == 0

    def test_last_day_of_month_counts_as_one_day(self):
        last_day = date(2024, 2, 29)
        assert calculations.days_remaining(last_day) == 1
        assert calculations.safe_to_spend(Decimal("1000"), Decimal("400"), last_day) == 600

    def test_monotonic_in_spending_and_budget(self):
        spends = [Decimal(value) for value in (0, 100, 450, 2999, 3000, 5000)]
        results = [calculations.safe_to_spend(Decimal("3000"), spent, JUNE_10) for spent in spends]
        assert results == sorted(results, reverse=True)
        assert all(result >= 0 for result in results)

        budgets = [Decimal(value) for value in (1, 500, 3000, 10000)]
        results = [calculations.safe_to_spend(budget, Decimal("450"), JUNE_10) for budget in budgets]
        assert results == sorted(results)


class TestRunway:
    def test_nothing_spent_is_infinite(self):
        assert calculations.runway(Decimal("3000"), Decimal("0"), JUNE_10).kind is RunwayKind.INFINITE

    def test_exhausted_budget_is_overrun(self):
        result = calculations.runway(Decimal("3000"), Decimal("3000"), JUNE_10)
        assert result.kind is RunwayKind.OVERRUN
        assert result.date is None

    def test_projects_zero_balance_date(self):
        # 45 a day on average; 2550 left lasts 56 more whole days.
        result = calculations.runway(Decimal("3000"), Decimal("450"), JUNE_10)
        assert result.kind is RunwayKind.DATE
        assert result.date == date(2024, 8, 5)


class TestCostPerUse:
    def test_rounds_half_up(self):
        assert calculations.cost_per_use(Decimal("5000"), 3) == 1667
        assert calculations.cost_per_use(Decimal("5"), 2) == 3

    def test_rejects_fewer_than_one_use(self):
        with pytest.raises(ValidationError):
            calculations.cost_per_use(Decimal("5000"), 0)

    def test_coffee_equivalent(self):
        assert calculations.coffee_equivalent(Decimal("1667")) == 9


def test_meal_equivalent_only_for_large_amounts():
    assert calculations.meal_equivalent(Decimal("1000")) is None
    assert calculations.meal_equivalent(Decimal("1800")) == 20


def test_budget_progress_is_capped():
    assert calculations.budget_progress(Decimal("0"), Decimal("10")) == 0
    assert calculations.budget_progress(Decimal("1000"), Decimal("250")) == 25
    assert calculations.budget_progress(Decimal("1000"), Decimal("2500")) == 100


def test_mood_thresholds():
    assert calculations.mood(Decimal("0"), Decimal("0"), Decimal("0")) is Mood.PANICKED
    assert calculations.mood(Decimal("3000"), Decimal("450"), Decimal("121")) is Mood.ZEN
    assert calculations.mood(Decimal("30000"), Decimal("16000"), Decimal("666")) is Mood.SUSPICIOUS
    assert calculations.mood(Decimal("3000"), Decimal("2000"), Decimal("47")) is Mood.PANICKED


def test_month_keys():
    assert calculations.month_key(date(2024, 1, 31)) == "2024-01"
    assert calculations.previous_month_keys(date(2024, 2, 15), 6) == [
        "2023-09",
        "2023-10",
        "2023-11",
        "2023-12",
        "2024-01",
        "2024-02",
    ]
