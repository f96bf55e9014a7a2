"""Initial unit roster and conversion between documents and the society model."""

import logging
from typing import Any

from society_dues.schemas.society import (
    DEFAULT_UNIT_PASSWORD,
    FeeSchedule,
    SocietyState,
    Unit,
)

logger = logging.getLogger(__name__)

FLOORS = 4
FLATS_PER_FLOOR = 3
SHOP_COUNT = 6


def generate_initial_units() -> list[Unit]:
    """Build the fixed roster: 4 floors x 3 flats, then 6 shops.

    Flats are numbered floor + "0" + flat (101..403); shops S1..S6. Every unit starts
    with no owner, zero prior due, no payments and the default password.

    Returns:
        18 units in display order
    """
    units: list[Unit] = []

    for floor in range(1, FLOORS + 1):
        for flat in range(1, FLATS_PER_FLOOR + 1):
            number = f"{floor}0{flat}"
            units.append(
                Unit(
                    id=f"flat-{number}",
                    label=f"Flat {number}",
                    email=f"flat{number}@email.com",
                    password=DEFAULT_UNIT_PASSWORD,
                )
            )

    for shop in range(1, SHOP_COUNT + 1):
        units.append(
            Unit(
                id=f"shop-S{shop}",
                label=f"Shop S{shop}",
                email=f"shop{shop}@email.com",
                password=DEFAULT_UNIT_PASSWORD,
            )
        )

    return units


def initial_state(fee_schedule: FeeSchedule | None = None) -> SocietyState:
    """Fresh society model used when nothing has been persisted yet."""
    return SocietyState(
        units=generate_initial_units(),
        expenses=[],
        fee_schedule=fee_schedule or FeeSchedule(),
    )


def state_from_document(
    document: dict[str, Any], default_fee_schedule: FeeSchedule | None = None
) -> SocietyState:
    """Build the society model from a remote document.

    Missing or null sections fall back to the seeded roster, no expenses and the
    default fee schedule. Both current (units/feeSchedule) and legacy
    (residents/settings) section names are accepted.

    Args:
        document: Document body as returned by the store
        default_fee_schedule: Schedule to use when the document has none

    Returns:
        SocietyState

    Raises:
        pydantic.ValidationError: A present section is malformed
    """
    body = {key: value for key, value in document.items() if value is not None}
    if "units" not in body and "residents" not in body:
        logger.debug("Document has no unit list, using seeded roster")
        body["units"] = [unit.model_dump() for unit in generate_initial_units()]
    if "feeSchedule" not in body and "settings" not in body:
        body["feeSchedule"] = (default_fee_schedule or FeeSchedule()).model_dump()
    body.pop("createdAt", None)
    body.pop("updatedAt", None)
    return SocietyState.model_validate(body)


__all__ = [
    "FLOORS",
    "FLATS_PER_FLOOR",
    "SHOP_COUNT",
    "generate_initial_units",
    "initial_state",
    "state_from_document",
]
