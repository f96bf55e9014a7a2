"""Due calculation for units and society-wide totals.

Due formula for the current calendar year:
    total_due = prior_due + sum(max(0, fee - paid[p]) for p in 0..current_month)

The due is re-derived from the payment history on every call instead of being kept
as a running balance, so editing any past month's payment recomputes everything
downstream. Future periods never accrue shortfall; overpaying a period never credits
another one.

All functions here are pure: the current period is always passed in.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, NamedTuple

from society_dues.schemas.society import (
    Expense,
    FeeSchedule,
    Unit,
    category_for_unit_id,
    coerce_money,
)

PERIODS_PER_YEAR = 12
MONTH_LABELS = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)


class DueResult(NamedTuple):
    """Due calculation result for one unit."""

    periodic_fee: Decimal
    total_paid: Decimal
    total_due: Decimal


class PeriodStatus(NamedTuple):
    """Payment status of a single period."""

    index: int
    label: str
    paid: Decimal
    shortfall: Decimal


class SocietySummary(NamedTuple):
    """Society-wide totals shown on the dashboard."""

    total_collected: Decimal
    total_expenses: Decimal
    balance: Decimal


def current_month_index(today: date) -> int:
    """Period index (0 = January) for a calendar date."""
    return today.month - 1


def _check_period(current_month: int) -> None:
    if not 0 <= current_month < PERIODS_PER_YEAR:
        raise ValueError(f"current_month must be within 0-11, got {current_month}")


def periodic_fee_for(unit: Unit, fee_schedule: FeeSchedule) -> Decimal:
    """Monthly fee owed by a unit under the given schedule."""
    return coerce_money(fee_schedule.fee_for(category_for_unit_id(unit.id)))


def _paid_in(unit: Unit, period: int) -> Decimal:
    return coerce_money(unit.payments.get(period))


def compute_due(unit: Unit, fee_schedule: FeeSchedule, current_month: int) -> DueResult:
    """Compute fee, total paid and total due for a unit.

    Args:
        unit: Unit with prior due and sparse period->amount payments
        fee_schedule: Residential and commercial monthly fees
        current_month: Current period index, 0-11 inclusive

    Returns:
        DueResult(periodic_fee, total_paid, total_due)

    Raises:
        ValueError: current_month outside 0-11
    """
    _check_period(current_month)
    fee = periodic_fee_for(unit, fee_schedule)

    # Every recorded entry counts as paid, including periods after current_month
    total_paid = sum((coerce_money(amount) for amount in unit.payments.values()), Decimal(0))

    shortfall = Decimal(0)
    for period in range(current_month + 1):
        paid = _paid_in(unit, period)
        if paid < fee:
            shortfall += fee - paid

    return DueResult(
        periodic_fee=fee,
        total_paid=total_paid,
        total_due=coerce_money(unit.prior_due) + shortfall,
    )


def period_breakdown(
    unit: Unit, fee_schedule: FeeSchedule, current_month: int
) -> list[PeriodStatus]:
    """Per-period paid amount and shortfall for periods 0..current_month.

    Args:
        unit: Unit to break down
        fee_schedule: Fee schedule in force
        current_month: Current period index, 0-11 inclusive

    Returns:
        One PeriodStatus per elapsed period, in calendar order
    """
    _check_period(current_month)
    fee = periodic_fee_for(unit, fee_schedule)
    breakdown = []
    for period in range(current_month + 1):
        paid = _paid_in(unit, period)
        breakdown.append(
            PeriodStatus(
                index=period,
                label=MONTH_LABELS[period],
                paid=paid,
                shortfall=max(Decimal(0), fee - paid),
            )
        )
    return breakdown


def summarize_society(units: Iterable[Unit], expenses: Iterable[Expense]) -> SocietySummary:
    """Total collected across all units, total expenses and what remains."""
    total_collected = sum(
        (coerce_money(amount) for unit in units for amount in unit.payments.values()),
        Decimal(0),
    )
    total_expenses = sum((coerce_money(expense.amount) for expense in expenses), Decimal(0))
    return SocietySummary(
        total_collected=total_collected,
        total_expenses=total_expenses,
        balance=total_collected - total_expenses,
    )


__all__ = [
    "PERIODS_PER_YEAR",
    "MONTH_LABELS",
    "DueResult",
    "PeriodStatus",
    "SocietySummary",
    "current_month_index",
    "periodic_fee_for",
    "compute_due",
    "period_breakdown",
    "summarize_society",
]
