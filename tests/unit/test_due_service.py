"""Unit tests for the due calculator."""

from datetime import date
from decimal import Decimal

import pytest

from society_dues.schemas.society import Expense, FeeSchedule, Unit
from society_dues.services.due_service import (
    MONTH_LABELS,
    compute_due,
    current_month_index,
    period_breakdown,
    summarize_society,
)


@pytest.fixture
def fee_schedule():
    return FeeSchedule(residential_fee=1000, commercial_fee=200)


def flat(**kwargs) -> Unit:
    return Unit(id="flat-101", label="Flat 101", **kwargs)


def shop(**kwargs) -> Unit:
    return Unit(id="shop-S1", label="Shop S1", **kwargs)


class TestComputeDue:
    """Test compute_due totals."""

    def test_residential_scenario_march(self, fee_schedule):
        """Jan paid, Feb half paid, Mar unpaid plus 200 carried over."""
        unit = flat(prior_due=200, payments={0: 1000, 1: 500})

        result = compute_due(unit, fee_schedule, 2)

        # 0 (Jan) + 500 (Feb) + 1000 (Mar) = 1500 shortfall
        assert result.periodic_fee == Decimal(1000)
        assert result.total_paid == Decimal(1500)
        assert result.total_due == Decimal(1700)

    def test_commercial_unit_first_month(self, fee_schedule):
        """Commercial unit, nothing paid, January."""
        result = compute_due(shop(), fee_schedule, 0)

        assert result.periodic_fee == Decimal(200)
        assert result.total_due == Decimal(200)
        assert result.total_paid == Decimal(0)

    @pytest.mark.parametrize("current_month", [0, 5, 11])
    @pytest.mark.parametrize("unit", [flat(), shop()], ids=["flat", "shop"])
    def test_no_payments_accrues_full_fee(self, fee_schedule, unit, current_month):
        """Without payments the due is fee times elapsed periods."""
        result = compute_due(unit, fee_schedule, current_month)

        assert result.total_due == result.periodic_fee * (current_month + 1)

    @pytest.mark.parametrize("prior_due", [0, 350, "75.50"])
    def test_paying_exact_fee_leaves_prior_due(self, fee_schedule, prior_due):
        """Paying the fee in every elapsed period adds no shortfall."""
        unit = flat(prior_due=prior_due, payments={p: 1000 for p in range(7)})

        result = compute_due(unit, fee_schedule, 6)

        assert result.total_due == unit.prior_due

    def test_overpayment_does_not_credit_other_periods(self, fee_schedule):
        """Overpaying January leaves February's shortfall intact."""
        unit = flat(payments={0: 5000})

        result = compute_due(unit, fee_schedule, 1)

        assert result.total_due == Decimal(1000)
        assert result.total_paid == Decimal(5000)

    def test_future_payments_count_as_paid_but_not_against_due(self, fee_schedule):
        """Payments recorded for later months show in total paid only."""
        unit = flat(payments={0: 1000, 6: 1000})

        result = compute_due(unit, fee_schedule, 1)

        assert result.total_paid == Decimal(2000)
        assert result.total_due == Decimal(1000)

    def test_malformed_amounts_are_zero(self, fee_schedule):
        """Garbage payment and prior due values count as nothing."""
        unit = flat(prior_due="not a number", payments={0: "abc", 1: None})

        result = compute_due(unit, fee_schedule, 1)

        assert result.total_paid == Decimal(0)
        assert result.total_due == Decimal(2000)

    def test_negative_payment_passes_through(self, fee_schedule):
        """Negative entries are not rejected (known gap); they raise the shortfall."""
        unit = flat(payments={0: -100})

        result = compute_due(unit, fee_schedule, 0)

        assert result.total_paid == Decimal(-100)
        assert result.total_due == Decimal(1100)

    def test_repeated_calls_are_identical(self, fee_schedule):
        unit = flat(prior_due=10, payments={0: 250})

        assert compute_due(unit, fee_schedule, 4) == compute_due(unit, fee_schedule, 4)

    @pytest.mark.parametrize("current_month", [-1, 12])
    def test_out_of_range_month_raises(self, fee_schedule, current_month):
        with pytest.raises(ValueError):
            compute_due(flat(), fee_schedule, current_month)

    def test_only_flat_prefix_is_residential(self, fee_schedule):
        """Any id without the residential prefix bills the commercial fee."""
        unit = Unit(id="office-1")

        assert compute_due(unit, fee_schedule, 0).periodic_fee == Decimal(200)


class TestPeriodBreakdown:
    """Test per-period breakdown."""

    def test_breakdown_matches_shortfall(self, fee_schedule):
        unit = flat(payments={0: 1000, 1: 500})

        periods = period_breakdown(unit, fee_schedule, 2)

        assert [p.label for p in periods] == ["Jan", "Feb", "Mar"]
        assert [p.shortfall for p in periods] == [Decimal(0), Decimal(500), Decimal(1000)]
        assert sum(p.shortfall for p in periods) + unit.prior_due == compute_due(
            unit, fee_schedule, 2
        ).total_due

    def test_full_year_labels(self, fee_schedule):
        periods = period_breakdown(shop(), fee_schedule, 11)

        assert tuple(p.label for p in periods) == MONTH_LABELS


class TestHelpers:
    """Test date mapping and society totals."""

    @pytest.mark.parametrize(
        "today,expected",
        [(date(2024, 1, 31), 0), (date(2024, 3, 1), 2), (date(2024, 12, 15), 11)],
    )
    def test_current_month_index(self, today, expected):
        assert current_month_index(today) == expected

    def test_summarize_society(self):
        units = [flat(payments={0: 1000, 1: 500}), shop(payments={0: 200})]
        expenses = [
            Expense(id="e1", description="Lift repair", amount=900, date=date(2024, 2, 1)),
            Expense(id="e2", description="Cleaning", amount="100.50", date=date(2024, 2, 3)),
        ]

        summary = summarize_society(units, expenses)

        assert summary.total_collected == Decimal(1700)
        assert summary.total_expenses == Decimal("1000.50")
        assert summary.balance == Decimal("699.50")
