"""Pydantic schemas for the society model: units, expenses, fee schedule.

Field names are snake_case; documents and local storage use the camelCase aliases
(unitNumber, ownerName, previousDue, flatMonthlyFee, ...) so state written by the
earlier web client is readable as-is.
"""

import datetime as dt
import math
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
)

RESIDENTIAL_PREFIX = "flat"
DEFAULT_UNIT_PASSWORD = "password"


def coerce_money(value: Any) -> Decimal:
    """Coerce a stored amount to Decimal, mapping anything non-numeric to zero.

    Negative amounts pass through unchanged.

    Args:
        value: Raw amount (number, numeric string, None, garbage)

    Returns:
        Decimal amount (Decimal(0) for malformed input)
    """
    if value is None or isinstance(value, bool):
        return Decimal(0)
    if isinstance(value, Decimal):
        return value if value.is_finite() else Decimal(0)
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value)) if math.isfinite(value) else Decimal(0)
    if isinstance(value, str):
        try:
            parsed = Decimal(value.strip())
        except InvalidOperation:
            return Decimal(0)
        return parsed if parsed.is_finite() else Decimal(0)
    return Decimal(0)


def _money_to_json(value: Decimal) -> int | float:
    # Whole amounts stay integers in JSON documents
    return int(value) if value == value.to_integral_value() else float(value)


Money = Annotated[
    Decimal,
    BeforeValidator(coerce_money),
    PlainSerializer(_money_to_json, return_type=Any, when_used="json"),
]


class UnitCategory(str, Enum):
    """Fee tier of a unit, encoded by its id prefix."""

    FLAT = "flat"
    SHOP = "shop"


def category_for_unit_id(unit_id: str) -> UnitCategory:
    """Residential ids start with "flat"; everything else bills as commercial."""
    return UnitCategory.FLAT if unit_id.startswith(RESIDENTIAL_PREFIX) else UnitCategory.SHOP


class Unit(BaseModel):
    """One flat or shop tracked by the society."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    label: str = Field(
        default="",
        validation_alias=AliasChoices("label", "unitNumber"),
        serialization_alias="unitNumber",
    )
    owner_name: str = Field(
        default="",
        validation_alias=AliasChoices("owner_name", "ownerName"),
        serialization_alias="ownerName",
    )
    prior_due: Money = Field(
        default=Decimal(0),
        validation_alias=AliasChoices("prior_due", "previousDue"),
        serialization_alias="previousDue",
    )
    payments: dict[int, Money] = Field(default_factory=dict)
    email: str = ""
    password: str = DEFAULT_UNIT_PASSWORD

    @field_validator("owner_name", mode="before")
    @classmethod
    def _owner_name_not_null(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("payments", mode="before")
    @classmethod
    def _drop_bad_period_keys(cls, value: Any) -> dict[int, Any]:
        if not isinstance(value, dict):
            return {}
        payments: dict[int, Any] = {}
        for key, amount in value.items():
            try:
                payments[int(key)] = amount
            except (TypeError, ValueError):
                continue
        return payments

    @property
    def category(self) -> UnitCategory:
        return category_for_unit_id(self.id)

    @property
    def is_residential(self) -> bool:
        return self.category is UnitCategory.FLAT


class Expense(BaseModel):
    """A shared society expense."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    description: str = ""
    amount: Money = Decimal(0)
    date: dt.date


class FeeSchedule(BaseModel):
    """Monthly maintenance fee per unit category."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    residential_fee: Money = Field(
        default=Decimal(1000),
        validation_alias=AliasChoices("residential_fee", "flatMonthlyFee"),
        serialization_alias="flatMonthlyFee",
    )
    commercial_fee: Money = Field(
        default=Decimal(200),
        validation_alias=AliasChoices("commercial_fee", "shopMonthlyFee"),
        serialization_alias="shopMonthlyFee",
    )

    def fee_for(self, category: UnitCategory) -> Decimal:
        """Monthly fee for a category (exactly two tiers)."""
        return self.residential_fee if category is UnitCategory.FLAT else self.commercial_fee


class SocietyState(BaseModel):
    """Everything the admin edits: the unit roster, expenses and fee schedule."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    units: list[Unit] = Field(
        default_factory=list,
        validation_alias=AliasChoices("units", "residents"),
        serialization_alias="units",
    )
    expenses: list[Expense] = Field(default_factory=list)
    fee_schedule: FeeSchedule = Field(
        default_factory=FeeSchedule,
        validation_alias=AliasChoices("fee_schedule", "feeSchedule", "settings"),
        serialization_alias="feeSchedule",
    )

    def find_unit(self, unit_id: str) -> Unit | None:
        return next((unit for unit in self.units if unit.id == unit_id), None)

    def to_document(self) -> dict[str, Any]:
        """Document body in camelCase JSON form."""
        return self.model_dump(mode="json", by_alias=True)


__all__ = [
    "RESIDENTIAL_PREFIX",
    "DEFAULT_UNIT_PASSWORD",
    "Money",
    "coerce_money",
    "UnitCategory",
    "category_for_unit_id",
    "Unit",
    "Expense",
    "FeeSchedule",
    "SocietyState",
]
