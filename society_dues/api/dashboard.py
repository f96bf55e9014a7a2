"""Dashboard API endpoints: session, units with dues, expenses, fee schedule."""

import datetime as dt
import logging
import time
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, Header, Request, status
from pydantic import BaseModel, Field

from society_dues.api.sessions import SessionRegistry
from society_dues.errors import (
    NotSignedInError,
    PermissionDeniedError,
    SocietyError,
    UnitNotFoundError,
)
from society_dues.schemas.society import Expense, FeeSchedule, Unit
from society_dues.services.due_service import (
    compute_due,
    current_month_index,
    period_breakdown,
    summarize_society,
)
from society_dues.services.session import (
    RemoteState,
    Role,
    SessionState,
    SessionStatus,
)
from society_dues.services.sync_service import SyncController

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["dashboard"])


def _log_debug(endpoint: str, start_time: float, **kwargs: Any) -> None:
    """Log API request with timing at DEBUG level."""
    duration_ms = int((time.time() - start_time) * 1000)
    extra = " ".join(f"{k}={v}" for k, v in kwargs.items())
    logger.debug("dashboard.%s: %sduration_ms=%d", endpoint, f"{extra} " if extra else "", duration_ms)


def _money(value: Decimal) -> str:
    return f"{value:.2f}"


def get_registry(request: Request) -> SessionRegistry:
    """Session registry created by the app lifespan."""
    return request.app.state.sessions


def get_session_token(
    authorization: str | None = Header(None, alias="Authorization"),  # noqa: B008
) -> str | None:
    """Token from an "Authorization: Bearer <token>" header."""
    if authorization:
        auth = authorization.strip()
        if auth.lower().startswith("bearer "):
            return auth[7:].strip() or None
    return None


def get_optional_controller(
    registry: SessionRegistry = Depends(get_registry),
    token: str | None = Depends(get_session_token),
) -> SyncController | None:
    return registry.get(token)


def get_controller(
    controller: SyncController | None = Depends(get_optional_controller),
) -> SyncController:
    """Controller for the caller's session token; 401 without one."""
    if controller is None:
        raise NotSignedInError("You are not logged in.")
    return controller


def get_today() -> dt.date:
    """Date used to decide the current period (overridable in tests)."""
    return dt.date.today()


# Request schemas
class CredentialsRequest(BaseModel):
    email: str
    password: str


class UnitUpdateRequest(BaseModel):
    """Partial unit edit; omitted fields are left unchanged."""

    owner_name: str | None = None
    prior_due: float | str | None = None


class PaymentRequest(BaseModel):
    amount: float | str | None = None


class ExpenseRequest(BaseModel):
    description: str
    amount: float | str | None = None
    date: dt.date


class FeeScheduleRequest(BaseModel):
    residential_fee: float | str | None = None
    commercial_fee: float | str | None = None


# Response schemas
class SessionResponse(BaseModel):
    """Session and remote document state."""

    session_state: str
    remote_state: str
    save_policy: str
    role: str | None = None
    email: str | None = None
    unit_id: str | None = None
    has_unsynced_changes: bool = False
    last_error: str | None = None
    token: str | None = Field(
        default=None, description="Bearer token, returned on login and register only"
    )


class PeriodResponse(BaseModel):
    index: int
    label: str
    paid: str
    shortfall: str


class UnitResponse(BaseModel):
    """A unit with its computed dues (credentials are never included)."""

    id: str
    label: str
    category: str
    owner_name: str
    email: str
    prior_due: str
    payments: dict[int, str]
    periodic_fee: str
    total_paid: str
    total_due: str
    periods: list[PeriodResponse]


class UnitsResponse(BaseModel):
    units: list[UnitResponse]
    total_count: int
    current_period: int


class CredentialsResetResponse(BaseModel):
    unit_id: str
    password: str


class ExpenseResponse(BaseModel):
    id: str
    description: str
    amount: str
    date: dt.date


class ExpensesResponse(BaseModel):
    expenses: list[ExpenseResponse]
    total_count: int


class FeeScheduleResponse(BaseModel):
    residential_fee: str
    commercial_fee: str


class SummaryResponse(BaseModel):
    total_collected: str
    total_expenses: str
    balance: str
    residential_fee: str
    commercial_fee: str
    unit_count: int = Field(description="Units in the society")


def _session_response(status_: SessionStatus) -> SessionResponse:
    return SessionResponse(
        session_state=status_.session_state.value,
        remote_state=status_.remote_state.value,
        save_policy=status_.save_policy.value,
        role=status_.role.value if status_.role else None,
        email=status_.email,
        unit_id=status_.unit_id,
        has_unsynced_changes=status_.has_unsynced_changes,
        last_error=status_.last_error,
    )


def _unit_response(unit: Unit, fee_schedule: FeeSchedule, current_period: int) -> UnitResponse:
    due = compute_due(unit, fee_schedule, current_period)
    return UnitResponse(
        id=unit.id,
        label=unit.label,
        category=unit.category.value,
        owner_name=unit.owner_name,
        email=unit.email,
        prior_due=_money(unit.prior_due),
        payments={period: _money(amount) for period, amount in sorted(unit.payments.items())},
        periodic_fee=_money(due.periodic_fee),
        total_paid=_money(due.total_paid),
        total_due=_money(due.total_due),
        periods=[
            PeriodResponse(
                index=period.index,
                label=period.label,
                paid=_money(period.paid),
                shortfall=_money(period.shortfall),
            )
            for period in period_breakdown(unit, fee_schedule, current_period)
        ],
    )


def _expense_response(expense: Expense) -> ExpenseResponse:
    return ExpenseResponse(
        id=expense.id,
        description=expense.description,
        amount=_money(expense.amount),
        date=expense.date,
    )


def _fee_schedule_response(fee_schedule: FeeSchedule) -> FeeScheduleResponse:
    return FeeScheduleResponse(
        residential_fee=_money(fee_schedule.residential_fee),
        commercial_fee=_money(fee_schedule.commercial_fee),
    )


def _visible_unit(controller: SyncController, unit_id: str) -> Unit:
    unit = next((unit for unit in controller.visible_units() if unit.id == unit_id), None)
    if unit is None:
        raise UnitNotFoundError(f"Unit not found: {unit_id}")
    return unit


def _require_session(controller: SyncController) -> None:
    if controller.session is None:
        raise NotSignedInError("You are not logged in.")


# ----------------------------------------------------------------------
# Session
# ----------------------------------------------------------------------


def _anonymous_response(registry: SessionRegistry) -> SessionResponse:
    return _session_response(
        SessionStatus(
            session_state=SessionState.ANONYMOUS,
            remote_state=RemoteState.UNBOUND,
            save_policy=registry.save_policy,
            role=None,
            email=None,
            unit_id=None,
            has_unsynced_changes=False,
            last_error=None,
        )
    )


async def _authenticate(
    method: str,
    credentials: CredentialsRequest,
    registry: SessionRegistry,
    token: str | None,
) -> SessionResponse:
    """Sign in on the caller's controller, or on a new one issued with a fresh token."""
    controller = registry.get(token)
    created = controller is None
    if created:
        token, controller = await registry.create()
    try:
        await getattr(controller, method)(credentials.email, credentials.password)
    except SocietyError:
        if created:
            await registry.discard(token)
        raise
    response = _session_response(controller.status())
    response.token = token
    return response


@router.get("/session", response_model=SessionResponse)
async def get_session(
    registry: SessionRegistry = Depends(get_registry),
    controller: SyncController | None = Depends(get_optional_controller),
) -> SessionResponse:
    if controller is None:
        return _anonymous_response(registry)
    return _session_response(controller.status())


@router.post("/session/login", response_model=SessionResponse)
async def login(
    credentials: CredentialsRequest,
    registry: SessionRegistry = Depends(get_registry),
    token: str | None = Depends(get_session_token),
) -> SessionResponse:
    """Sign in as admin or resident; 401 when rejected.

    The response carries the bearer token for later requests.
    """
    start_time = time.time()
    response = await _authenticate("login", credentials, registry, token)
    _log_debug("login", start_time, email=credentials.email)
    return response


@router.post("/session/register", response_model=SessionResponse)
async def register(
    credentials: CredentialsRequest,
    registry: SessionRegistry = Depends(get_registry),
    token: str | None = Depends(get_session_token),
) -> SessionResponse:
    """Create a sign-in identity for a unit (or the admin) and sign it in."""
    start_time = time.time()
    response = await _authenticate("register", credentials, registry, token)
    _log_debug("register", start_time, email=credentials.email)
    return response


@router.post("/session/logout", response_model=SessionResponse)
async def logout(
    registry: SessionRegistry = Depends(get_registry),
    token: str | None = Depends(get_session_token),
) -> SessionResponse:
    """Sign out and invalidate the caller's token."""
    if token:
        await registry.discard(token)
    return _anonymous_response(registry)


@router.post("/session/retry", response_model=SessionResponse)
async def retry_remote(controller: SyncController = Depends(get_controller)) -> SessionResponse:
    """Resubscribe to the remote document after a load error."""
    await controller.retry_remote()
    return _session_response(controller.status())


@router.post("/save", response_model=SessionResponse)
async def save(controller: SyncController = Depends(get_controller)) -> SessionResponse:
    """Write all changes to the remote document; 502 when the store rejects it."""
    start_time = time.time()
    await controller.save()
    _log_debug("save", start_time)
    return _session_response(controller.status())


# ----------------------------------------------------------------------
# Units
# ----------------------------------------------------------------------


@router.get("/units", response_model=UnitsResponse)
async def list_units(
    controller: SyncController = Depends(get_controller),
    today: dt.date = Depends(get_today),
) -> UnitsResponse:
    """Units visible to the session with dues as of today."""
    start_time = time.time()
    _require_session(controller)
    current_period = current_month_index(today)
    fee_schedule = controller.state.fee_schedule
    units = [
        _unit_response(unit, fee_schedule, current_period) for unit in controller.visible_units()
    ]
    _log_debug("units", start_time, count=len(units))
    return UnitsResponse(units=units, total_count=len(units), current_period=current_period)


@router.get("/units/{unit_id}", response_model=UnitResponse)
async def get_unit(
    unit_id: str,
    controller: SyncController = Depends(get_controller),
    today: dt.date = Depends(get_today),
) -> UnitResponse:
    _require_session(controller)
    unit = _visible_unit(controller, unit_id)
    return _unit_response(unit, controller.state.fee_schedule, current_month_index(today))


@router.patch("/units/{unit_id}", response_model=UnitResponse)
async def update_unit(
    unit_id: str,
    request: UnitUpdateRequest,
    controller: SyncController = Depends(get_controller),
    today: dt.date = Depends(get_today),
) -> UnitResponse:
    """Edit owner name and/or prior due (admin only)."""
    unit = None
    if request.owner_name is not None:
        unit = controller.set_owner_name(unit_id, request.owner_name)
    if "prior_due" in request.model_fields_set:
        unit = controller.set_prior_due(unit_id, request.prior_due)
    if unit is None:
        _require_session(controller)
        unit = _visible_unit(controller, unit_id)
    return _unit_response(unit, controller.state.fee_schedule, current_month_index(today))


@router.put("/units/{unit_id}/payments/{period}", response_model=UnitResponse)
async def record_payment(
    unit_id: str,
    period: int,
    request: PaymentRequest,
    controller: SyncController = Depends(get_controller),
    today: dt.date = Depends(get_today),
) -> UnitResponse:
    """Set the amount paid for a period, 0 = January (admin only)."""
    unit = controller.record_payment(unit_id, period, request.amount)
    return _unit_response(unit, controller.state.fee_schedule, current_month_index(today))


@router.post("/units/{unit_id}/reset-credentials", response_model=CredentialsResetResponse)
async def reset_credentials(
    unit_id: str, controller: SyncController = Depends(get_controller)
) -> CredentialsResetResponse:
    password = controller.reset_unit_credentials(unit_id)
    return CredentialsResetResponse(unit_id=unit_id, password=password)


# ----------------------------------------------------------------------
# Expenses and fee schedule
# ----------------------------------------------------------------------


@router.get("/expenses", response_model=ExpensesResponse)
async def list_expenses(controller: SyncController = Depends(get_controller)) -> ExpensesResponse:
    _require_session(controller)
    expenses = [_expense_response(expense) for expense in controller.state.expenses]
    return ExpensesResponse(expenses=expenses, total_count=len(expenses))


@router.post("/expenses", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
async def add_expense(
    request: ExpenseRequest, controller: SyncController = Depends(get_controller)
) -> ExpenseResponse:
    expense = controller.add_expense(request.description, request.amount, request.date)
    return _expense_response(expense)


@router.delete("/expenses/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_expense(
    expense_id: str, controller: SyncController = Depends(get_controller)
) -> None:
    controller.delete_expense(expense_id)


@router.get("/fee-schedule", response_model=FeeScheduleResponse)
async def get_fee_schedule(
    controller: SyncController = Depends(get_controller),
) -> FeeScheduleResponse:
    _require_session(controller)
    return _fee_schedule_response(controller.state.fee_schedule)


@router.put("/fee-schedule", response_model=FeeScheduleResponse)
async def update_fee_schedule(
    request: FeeScheduleRequest, controller: SyncController = Depends(get_controller)
) -> FeeScheduleResponse:
    fee_schedule = controller.set_fee_schedule(request.residential_fee, request.commercial_fee)
    return _fee_schedule_response(fee_schedule)


@router.get("/summary", response_model=SummaryResponse)
async def get_summary(controller: SyncController = Depends(get_controller)) -> SummaryResponse:
    """Society totals: collected payments, expenses and what remains (admin only)."""
    _require_session(controller)
    if controller.session.role is not Role.ADMIN:
        raise PermissionDeniedError("Only the admin can view society totals")
    state = controller.state
    summary = summarize_society(state.units, state.expenses)
    return SummaryResponse(
        total_collected=_money(summary.total_collected),
        total_expenses=_money(summary.total_expenses),
        balance=_money(summary.balance),
        residential_fee=_money(state.fee_schedule.residential_fee),
        commercial_fee=_money(state.fee_schedule.commercial_fee),
        unit_count=len(controller.visible_units()),
    )


__all__ = ["router", "get_registry", "get_session_token", "get_controller", "get_today"]
