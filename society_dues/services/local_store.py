"""Local fallback persistence used while no remote session is bound.

The society model is kept under three fixed keys, each holding a JSON value:
units, expenses and the fee schedule.
"""

import logging
from typing import Protocol

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from society_dues.models.local_entry import LocalEntry
from society_dues.schemas.society import Expense, FeeSchedule, SocietyState, Unit
from society_dues.services.seeding import generate_initial_units

logger = logging.getLogger(__name__)

UNITS_KEY = "residents_v2"
EXPENSES_KEY = "expenses_v2"
FEE_SCHEDULE_KEY = "settings_v2"

_units_adapter = TypeAdapter(list[Unit])
_expenses_adapter = TypeAdapter(list[Expense])
_fee_schedule_adapter = TypeAdapter(FeeSchedule)


class LocalStore(Protocol):
    """Synchronous key/bytes store."""

    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes) -> None: ...


class SqliteLocalStore:
    """LocalStore backed by the local_entries table."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def get(self, key: str) -> bytes | None:
        with self._session_factory() as session:
            entry = session.execute(
                select(LocalEntry).where(LocalEntry.key == key)
            ).scalar_one_or_none()
            return entry.value if entry else None

    def set(self, key: str, value: bytes) -> None:
        with self._session_factory() as session:
            with session.begin():
                entry = session.execute(
                    select(LocalEntry).where(LocalEntry.key == key)
                ).scalar_one_or_none()
                if entry is None:
                    session.add(LocalEntry(key=key, value=value))
                else:
                    entry.value = value


class LocalStateRepository:
    """Reads and writes the society model through a LocalStore.

    Unreadable entries fall back to their defaults rather than failing, the same
    way a missing entry does.
    """

    def __init__(self, store: LocalStore, default_fee_schedule: FeeSchedule | None = None):
        self.store = store
        self.default_fee_schedule = default_fee_schedule or FeeSchedule()

    def load(self) -> SocietyState:
        """Load the persisted model, defaulting each missing or corrupt part."""
        units = self._read(UNITS_KEY, _units_adapter)
        expenses = self._read(EXPENSES_KEY, _expenses_adapter)
        fee_schedule = self._read(FEE_SCHEDULE_KEY, _fee_schedule_adapter)
        return SocietyState(
            units=units if units is not None else generate_initial_units(),
            expenses=expenses if expenses is not None else [],
            fee_schedule=fee_schedule if fee_schedule is not None else self.default_fee_schedule,
        )

    def save(self, state: SocietyState) -> None:
        """Write every part of the model."""
        self.store.set(UNITS_KEY, _units_adapter.dump_json(state.units, by_alias=True))
        self.store.set(EXPENSES_KEY, _expenses_adapter.dump_json(state.expenses, by_alias=True))
        self.store.set(FEE_SCHEDULE_KEY, state.fee_schedule.model_dump_json(by_alias=True).encode())
        logger.debug(
            "local.save: units=%d expenses=%d",
            len(state.units),
            len(state.expenses),
        )

    def has_state(self) -> bool:
        return self.store.get(UNITS_KEY) is not None

    def _read(self, key: str, adapter: TypeAdapter):
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            return adapter.validate_json(raw)
        except ValidationError as e:
            logger.warning("local.load: discarding unreadable %s (%s)", key, e.error_count())
            return None


__all__ = [
    "UNITS_KEY",
    "EXPENSES_KEY",
    "FEE_SCHEDULE_KEY",
    "LocalStore",
    "SqliteLocalStore",
    "LocalStateRepository",
]
