"""Sync controller: session lifecycle and persistence of the society model.

Keeps the in-memory model, resolves sign-ins to roles, binds the per-user remote
document while a session is active and decides where each edit is persisted:

- no remote document bound: every edit is written to the local store right away;
- remote bound, SavePolicy.MANUAL: edits stay in memory until save();
- remote bound, SavePolicy.DEBOUNCED: edits schedule one write after a quiet period.

Edits not yet confirmed by the remote store are tracked as unsynced changes instead
of being dropped when a write fails.
"""

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Any

from pydantic import ValidationError

from society_dues.errors import (
    AuthRejectedError,
    DocumentReadError,
    DocumentWriteError,
    ExpenseNotFoundError,
    InvalidPeriodError,
    NotSignedInError,
    PermissionDeniedError,
    UnitNotFoundError,
)
from society_dues.schemas.society import (
    DEFAULT_UNIT_PASSWORD,
    Expense,
    FeeSchedule,
    SocietyState,
    Unit,
    coerce_money,
)
from society_dues.services.credentials import CredentialVerifier, PlaintextVerifier
from society_dues.services.debounce import Debouncer
from society_dues.services.document_store import DocumentStore, Unsubscribe
from society_dues.services.due_service import PERIODS_PER_YEAR
from society_dues.services.identity_provider import IdentityProvider, IdentitySession
from society_dues.services.local_store import LocalStateRepository
from society_dues.services.seeding import state_from_document
from society_dues.services.session import (
    RemoteState,
    ResolvedRole,
    Role,
    RoleResolver,
    SavePolicy,
    Session,
    SessionState,
    SessionStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_AUTOSAVE_DELAY = 1.5


class SyncController:
    """Owns the society model and its session/remote state machines.

    Use as an async context manager: entering subscribes to identity-provider
    session changes, exiting flushes pending writes and releases every subscription.
    """

    def __init__(
        self,
        identity: IdentityProvider,
        local: LocalStateRepository,
        documents: DocumentStore | None = None,
        admin_email: str = "admin@sbdivine.com",
        save_policy: SavePolicy = SavePolicy.MANUAL,
        autosave_delay: float = DEFAULT_AUTOSAVE_DELAY,
        unit_credentials: CredentialVerifier | None = None,
    ):
        """Initialize the controller.

        Args:
            identity: Identity provider used for sign-in/sign-out
            local: Local fallback persistence
            documents: Remote document store (None keeps everything local)
            admin_email: Email of the single admin identity
            save_policy: Remote persistence policy
            autosave_delay: Quiet period for SavePolicy.DEBOUNCED, in seconds
            unit_credentials: Scheme used for unit passwords (default: plaintext)
        """
        self._identity = identity
        self._local = local
        self._documents = documents
        self.save_policy = SavePolicy(save_policy)
        self._unit_credentials = unit_credentials or PlaintextVerifier()
        self._roles = RoleResolver(admin_email, self._unit_credentials)

        self._state: SocietyState = local.load()
        self._session: Session | None = None
        self._session_state = SessionState.ANONYMOUS
        self._remote_state = RemoteState.UNBOUND
        self._last_error: str | None = None

        self._revision = 0
        self._synced_revision = 0
        self._autosave = Debouncer(autosave_delay, self._autosave_write)
        self._unsubscribe_remote: Unsubscribe | None = None
        self._unsubscribe_identity: Unsubscribe | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> "SyncController":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def start(self) -> None:
        """Subscribe to identity-provider session changes."""
        if self._unsubscribe_identity is None:
            self._unsubscribe_identity = self._identity.on_session_change(
                self._on_session_change
            )

    async def aclose(self) -> None:
        """Flush pending writes and release every subscription."""
        await self._autosave.flush()
        self._stop_remote()
        if self._unsubscribe_identity is not None:
            self._unsubscribe_identity()
            self._unsubscribe_identity = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> SocietyState:
        return self._state

    @property
    def session(self) -> Session | None:
        """Active session, None when anonymous or unresolved."""
        return self._session if self._session_state is SessionState.ACTIVE else None

    @property
    def session_state(self) -> SessionState:
        return self._session_state

    @property
    def remote_state(self) -> RemoteState:
        return self._remote_state

    @property
    def has_unsynced_changes(self) -> bool:
        return self._revision != self._synced_revision

    def status(self) -> SessionStatus:
        session = self.session
        return SessionStatus(
            session_state=self._session_state,
            remote_state=self._remote_state,
            save_policy=self.save_policy,
            role=session.role if session else None,
            email=session.email if session else None,
            unit_id=session.unit_id if session else None,
            has_unsynced_changes=self.has_unsynced_changes,
            last_error=self._last_error,
        )

    def visible_units(self) -> list[Unit]:
        """Units the current session may see: all for admin, own unit for residents."""
        session = self.session
        if session is None:
            return []
        if session.is_admin:
            return list(self._state.units)
        unit = self._state.find_unit(session.unit_id or "")
        return [unit] if unit else []

    # ------------------------------------------------------------------
    # Session transitions
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str) -> Session:
        """Sign in and resolve the session role.

        Raises:
            AuthRejectedError: Identity provider rejected the credentials or failed,
                or the identity resolves to neither admin nor a unit
        """
        return await self._authenticate(self._identity.sign_in, email, password)

    async def register(self, email: str, password: str) -> Session:
        """Create an identity, sign it in and resolve the session role.

        Raises:
            AuthRejectedError: Sign-up rejected, or no role for the email
        """
        return await self._authenticate(self._identity.sign_up, email, password)

    async def _authenticate(self, method, email: str, password: str) -> Session:
        if self._session_state in (SessionState.ACTIVE, SessionState.UNRESOLVED):
            await self.logout()

        self._session_state = SessionState.AUTHENTICATING
        try:
            identity = await method(email, password)
        except AuthRejectedError:
            self._session_state = SessionState.ANONYMOUS
            raise
        except Exception as e:
            self._session_state = SessionState.ANONYMOUS
            logger.error("Identity provider failure during sign-in: %s", e, exc_info=True)
            raise AuthRejectedError("Sign-in failed") from e

        resolved = self._roles.resolve(identity.email, self._state.units, password=password)
        if resolved is None:
            self._mark_unresolved(identity)
            raise AuthRejectedError("Invalid credentials")

        return await self._activate(identity, resolved)

    async def logout(self) -> None:
        """End the session and revert the model to the local store's copy."""
        await self._autosave.flush()
        # Deactivate first so the provider's sign-out notification finds nothing to end
        self._deactivate()
        await self._identity.sign_out()

    async def _on_session_change(self, identity: IdentitySession | None) -> None:
        # Transitions started by login()/register() are resolved there, with the password
        if self._session_state is SessionState.AUTHENTICATING:
            return

        if identity is None:
            if self._session is not None or self._session_state is not SessionState.ANONYMOUS:
                logger.info("Identity signed out externally, ending session")
                await self._autosave.flush()
                self._deactivate()
            return

        if self._session is not None and self._session.uid == identity.uid:
            return

        resolved = self._roles.resolve(identity.email, self._state.units)
        if resolved is None:
            self._mark_unresolved(identity)
            return
        await self._activate(identity, resolved)

    async def _activate(self, identity: IdentitySession, resolved: ResolvedRole) -> Session:
        self._stop_remote()
        self._session = Session(
            uid=identity.uid,
            email=identity.email,
            role=resolved.role,
            unit_id=resolved.unit_id,
        )
        self._session_state = SessionState.ACTIVE
        self._last_error = None
        logger.info(
            "session.active: uid=%s role=%s unit=%s",
            identity.uid,
            resolved.role.value,
            resolved.unit_id,
        )
        if self._documents is not None:
            await self._bind_remote()
        return self._session

    def _mark_unresolved(self, identity: IdentitySession) -> None:
        self._stop_remote()
        self._session = None
        self._session_state = SessionState.UNRESOLVED
        logger.warning("session.unresolved: email=%s has no admin or unit role", identity.email)

    def _deactivate(self) -> None:
        self._stop_remote()
        self._session = None
        self._session_state = SessionState.ANONYMOUS
        self._last_error = None
        self._state = self._local.load()
        self._revision = self._synced_revision = 0
        logger.info("session.ended: model reloaded from local store")

    # ------------------------------------------------------------------
    # Remote document binding
    # ------------------------------------------------------------------

    async def retry_remote(self) -> None:
        """Resubscribe to the remote document after an error.

        Raises:
            NotSignedInError: No active session
        """
        if self.session is None:
            raise NotSignedInError("You are not logged in.")
        self._stop_remote()
        await self._bind_remote()

    async def _bind_remote(self) -> None:
        session = self._session
        if session is None or self._documents is None:
            return

        self._remote_state = RemoteState.LOADING
        self._last_error = None
        try:
            unsubscribe = await self._documents.subscribe(
                session.uid, self._on_remote_snapshot, self._on_remote_error
            )
        except DocumentReadError as e:
            self._fail_remote(e)
            return

        if self._session is session:
            self._unsubscribe_remote = unsubscribe
        else:
            unsubscribe()

    def _stop_remote(self) -> None:
        if self._unsubscribe_remote is not None:
            self._unsubscribe_remote()
            self._unsubscribe_remote = None
        self._remote_state = RemoteState.UNBOUND

    async def _on_remote_snapshot(self, document: dict[str, Any] | None) -> None:
        session = self._session
        if session is None or self._documents is None:
            return

        if document is None:
            # First writer creates the document from whatever is in memory now
            try:
                await self._documents.create(session.uid, self._state.to_document())
            except DocumentWriteError as e:
                self._fail_remote(e)
                return
            logger.info("remote.created: uid=%s seeded from local model", session.uid)
            self._synced_revision = self._revision
            self._remote_state = RemoteState.BOUND
            return

        if self.has_unsynced_changes:
            if self._remote_state is not RemoteState.BOUND:
                # Rebind after an error: keep the unsynced edits and write them later
                self._remote_state = RemoteState.BOUND
                logger.warning(
                    "remote.rebound: uid=%s keeping %d unsynced revision(s)",
                    session.uid,
                    self._revision - self._synced_revision,
                )
                if self.save_policy is SavePolicy.DEBOUNCED:
                    self._autosave.schedule()
                return
            logger.debug("remote.snapshot ignored: local changes pending for uid=%s", session.uid)
            return

        try:
            state = state_from_document(document, self._state.fee_schedule)
        except ValidationError as e:
            self._fail_remote(DocumentReadError(f"Malformed remote document: {e}"))
            return

        self._state = state
        self._synced_revision = self._revision
        self._remote_state = RemoteState.BOUND
        logger.info("remote.loaded: uid=%s units=%d", session.uid, len(state.units))

    async def _on_remote_error(self, error: Exception) -> None:
        self._fail_remote(error)

    def _fail_remote(self, error: Exception) -> None:
        self._remote_state = RemoteState.ERROR
        self._last_error = str(error)
        logger.error("remote.error: %s", error)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def save(self) -> None:
        """Write the full model to the remote document.

        Raises:
            NotSignedInError: No active session
            PermissionDeniedError: Session is not admin
            DocumentWriteError: No bound remote document, or the store rejected the
                write; the model is unchanged
        """
        session = self._require_admin()
        if self._documents is None:
            raise DocumentWriteError("No remote document store configured")
        if self._remote_state is not RemoteState.BOUND:
            reason = self._last_error or f"remote document is {self._remote_state.value}"
            raise DocumentWriteError(f"Remote document unavailable: {reason}")

        await self._autosave.cancel()
        revision = self._revision
        try:
            await self._documents.update(session.uid, self._state.to_document())
        except DocumentWriteError as e:
            logger.error("save failed: uid=%s error=%s", session.uid, e)
            raise
        self._synced_revision = revision
        logger.info("save: uid=%s revision=%d", session.uid, revision)

    async def sync_unsynced(self) -> None:
        """Retry writing unsynced changes with the auto-save policy."""
        if self.has_unsynced_changes:
            await self._autosave_write()

    async def flush_pending(self) -> None:
        """Run a pending debounced write now."""
        await self._autosave.flush()

    async def _autosave_write(self) -> None:
        session = self._session
        if session is None or self._documents is None:
            return
        if self._remote_state is not RemoteState.BOUND:
            return

        revision = self._revision
        document = self._state.to_document()
        try:
            await self._documents.update(session.uid, document)
        except DocumentWriteError as e:
            logger.warning("autosave update failed, creating document: %s", e)
            try:
                await self._documents.create(session.uid, document)
            except DocumentWriteError as create_error:
                logger.error(
                    "autosave failed: uid=%s revision=%d error=%s (changes kept as unsynced)",
                    session.uid,
                    revision,
                    create_error,
                )
                return

        self._synced_revision = revision
        logger.debug("autosave: uid=%s revision=%d", session.uid, revision)

    def _commit(self, state: SocietyState) -> None:
        self._state = state
        if self._remote_state is RemoteState.BOUND:
            self._revision += 1
            if self.save_policy is SavePolicy.DEBOUNCED:
                self._autosave.schedule()
        else:
            self._local.save(state)

    # ------------------------------------------------------------------
    # Admin edits
    # ------------------------------------------------------------------

    def _require_admin(self) -> Session:
        session = self.session
        if session is None:
            raise NotSignedInError("You are not logged in.")
        if not session.is_admin:
            raise PermissionDeniedError("Only the admin can change society data")
        return session

    def _unit(self, unit_id: str) -> Unit:
        unit = self._state.find_unit(unit_id)
        if unit is None:
            raise UnitNotFoundError(f"Unit not found: {unit_id}")
        return unit

    def _replace_unit(self, updated: Unit) -> None:
        units = [updated if unit.id == updated.id else unit for unit in self._state.units]
        self._commit(self._state.model_copy(update={"units": units}))

    def set_owner_name(self, unit_id: str, owner_name: str) -> Unit:
        self._require_admin()
        updated = self._unit(unit_id).model_copy(update={"owner_name": owner_name or ""})
        self._replace_unit(updated)
        return updated

    def set_prior_due(self, unit_id: str, amount: Any) -> Unit:
        self._require_admin()
        updated = self._unit(unit_id).model_copy(update={"prior_due": coerce_money(amount)})
        self._replace_unit(updated)
        return updated

    def record_payment(self, unit_id: str, period: int, amount: Any) -> Unit:
        """Set the amount paid by a unit in a period (0 = January).

        Raises:
            InvalidPeriodError: period outside 0-11
        """
        self._require_admin()
        if not 0 <= period < PERIODS_PER_YEAR:
            raise InvalidPeriodError(f"Period must be within 0-11, got {period}")
        unit = self._unit(unit_id)
        payments = {**unit.payments, period: coerce_money(amount)}
        updated = unit.model_copy(update={"payments": payments})
        self._replace_unit(updated)
        return updated

    def reset_unit_credentials(self, unit_id: str) -> str:
        """Restore a unit's default password and return it for display."""
        self._require_admin()
        updated = self._unit(unit_id).model_copy(
            update={"password": self._unit_credentials.hash(DEFAULT_UNIT_PASSWORD)}
        )
        self._replace_unit(updated)
        logger.info("credentials.reset: unit=%s", unit_id)
        return DEFAULT_UNIT_PASSWORD

    def add_expense(self, description: str, amount: Any, spent_on: date) -> Expense:
        self._require_admin()
        expense = Expense(
            id=uuid.uuid4().hex,
            description=description,
            amount=amount,
            date=spent_on,
        )
        self._commit(self._state.model_copy(update={"expenses": [*self._state.expenses, expense]}))
        return expense

    def delete_expense(self, expense_id: str) -> None:
        self._require_admin()
        expenses = [expense for expense in self._state.expenses if expense.id != expense_id]
        if len(expenses) == len(self._state.expenses):
            raise ExpenseNotFoundError(f"Expense not found: {expense_id}")
        self._commit(self._state.model_copy(update={"expenses": expenses}))

    def set_fee_schedule(self, residential_fee: Any, commercial_fee: Any) -> FeeSchedule:
        self._require_admin()
        fee_schedule = FeeSchedule(
            residential_fee=coerce_money(residential_fee),
            commercial_fee=coerce_money(commercial_fee),
        )
        self._commit(self._state.model_copy(update={"fee_schedule": fee_schedule}))
        return fee_schedule


def fee_schedule_from_settings(flat_fee: Decimal, shop_fee: Decimal) -> FeeSchedule:
    """Default fee schedule built from configured amounts."""
    return FeeSchedule(residential_fee=flat_fee, commercial_fee=shop_fee)


__all__ = ["DEFAULT_AUTOSAVE_DELAY", "SyncController", "fee_schedule_from_settings"]
