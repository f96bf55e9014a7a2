"""Session lifecycle types and role resolution.

Session states:
    ANONYMOUS -> AUTHENTICATING -> ACTIVE -> ANONYMOUS (logout)
    AUTHENTICATING -> UNRESOLVED when the identity provider accepts the sign-in but
    no role can be resolved; UNRESOLVED behaves as logged out for every view.

Remote states (orthogonal, only meaningful while ACTIVE):
    UNBOUND -> LOADING -> BOUND, LOADING/BOUND -> ERROR (until retried)
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from society_dues.schemas.society import Unit
from society_dues.services.credentials import CredentialVerifier

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    ACTIVE = "active"
    UNRESOLVED = "unresolved"


class RemoteState(str, Enum):
    UNBOUND = "unbound"
    LOADING = "loading"
    BOUND = "bound"
    ERROR = "error"


class Role(str, Enum):
    ADMIN = "admin"
    RESIDENT = "resident"


class SavePolicy(str, Enum):
    """How edits reach the remote document while a session is bound."""

    MANUAL = "manual"
    DEBOUNCED = "debounced"


@dataclass(frozen=True)
class ResolvedRole:
    """Role of a signed-in identity; residents carry their unit id."""

    role: Role
    unit_id: str | None = None


@dataclass(frozen=True)
class Session:
    """Authenticated identity plus resolved role."""

    uid: str
    email: str
    role: Role
    unit_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@dataclass(frozen=True)
class SessionStatus:
    """Point-in-time view of the controller for display."""

    session_state: SessionState
    remote_state: RemoteState
    save_policy: SavePolicy
    role: Role | None
    email: str | None
    unit_id: str | None
    has_unsynced_changes: bool
    last_error: str | None


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class RoleResolver:
    """Resolve a signed-in email to the admin role or a resident unit.

    The admin is a single configured email. Residents are matched on the unit's
    contact email; when a password is supplied it must also match the unit's stored
    credential.
    """

    def __init__(self, admin_email: str, unit_credentials: CredentialVerifier):
        self.admin_email = normalize_email(admin_email)
        self.unit_credentials = unit_credentials

    def resolve(
        self, email: str, units: Iterable[Unit], password: str | None = None
    ) -> ResolvedRole | None:
        """Resolve the role for an email.

        Args:
            email: Signed-in email
            units: Current unit roster
            password: Password from an interactive login, or None for restored sessions

        Returns:
            ResolvedRole, or None when neither admin nor any unit matches
        """
        normalized = normalize_email(email)
        if not normalized:
            return None
        if normalized == self.admin_email:
            return ResolvedRole(role=Role.ADMIN)

        for unit in units:
            if normalize_email(unit.email) != normalized:
                continue
            if password is not None and not self.unit_credentials.verify(password, unit.password):
                logger.info("Unit credential mismatch for %s", unit.id)
                return None
            return ResolvedRole(role=Role.RESIDENT, unit_id=unit.id)

        return None


__all__ = [
    "SessionState",
    "RemoteState",
    "Role",
    "SavePolicy",
    "ResolvedRole",
    "Session",
    "SessionStatus",
    "normalize_email",
    "RoleResolver",
]
