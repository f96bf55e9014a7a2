"""Pydantic schemas for the society model."""

from society_dues.schemas.society import (
    DEFAULT_UNIT_PASSWORD,
    Expense,
    FeeSchedule,
    Money,
    SocietyState,
    Unit,
    UnitCategory,
    category_for_unit_id,
    coerce_money,
)

__all__ = [
    "DEFAULT_UNIT_PASSWORD",
    "Expense",
    "FeeSchedule",
    "Money",
    "SocietyState",
    "Unit",
    "UnitCategory",
    "category_for_unit_id",
    "coerce_money",
]
