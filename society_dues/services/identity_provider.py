"""Identity provider: email/password sign-in with session-change notifications.

The provider holds at most one signed-in identity (it plays the role of a client-side
auth SDK). Every transition, sign-in, sign-up or sign-out, is pushed to the registered
session-change handlers.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from society_dues.errors import AuthRejectedError
from society_dues.models.identity import Identity
from society_dues.services.credentials import CredentialVerifier, Pbkdf2Verifier
from society_dues.services.session import normalize_email

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class IdentitySession:
    """A signed-in identity as reported by the provider."""

    uid: str
    email: str


SessionChangeHandler = Callable[[IdentitySession | None], Awaitable[None]]
Unsubscribe = Callable[[], None]


class IdentityProvider(Protocol):
    """Sign-in boundary consumed by the sync controller."""

    @property
    def current(self) -> IdentitySession | None: ...

    async def sign_in(self, email: str, password: str) -> IdentitySession: ...

    async def sign_up(self, email: str, password: str) -> IdentitySession: ...

    async def sign_out(self) -> None: ...

    def on_session_change(self, handler: SessionChangeHandler) -> Unsubscribe: ...


class SqlIdentityProvider:
    """IdentityProvider backed by the identities table with PBKDF2 password hashes."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        verifier: CredentialVerifier | None = None,
    ):
        """Initialize with an async session factory.

        Args:
            session_factory: Factory from create_async_db()
            verifier: Password hashing scheme (default: PBKDF2)
        """
        self._session_factory = session_factory
        self._verifier = verifier or Pbkdf2Verifier()
        self._handlers: list[SessionChangeHandler] = []
        self._current: IdentitySession | None = None

    @property
    def current(self) -> IdentitySession | None:
        return self._current

    def on_session_change(self, handler: SessionChangeHandler) -> Unsubscribe:
        """Register a handler awaited on every session transition.

        Returns:
            Callable removing the handler
        """
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    async def _notify(self) -> None:
        for handler in list(self._handlers):
            try:
                await handler(self._current)
            except Exception as e:
                logger.error("Session change handler failed: %s", e, exc_info=True)

    async def _find(self, session: AsyncSession, email: str) -> Identity | None:
        result = await session.execute(select(Identity).where(Identity.email == email))
        return result.scalar_one_or_none()

    async def register(self, email: str, password: str) -> IdentitySession:
        """Create an identity without signing it in.

        Raises:
            AuthRejectedError: Invalid email/password, email already registered,
                or identity service failure
        """
        normalized = normalize_email(email)
        if "@" not in normalized:
            raise AuthRejectedError("Invalid email address")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise AuthRejectedError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )

        identity = Identity(
            uid=uuid.uuid4().hex,
            email=normalized,
            password_hash=self._verifier.hash(password),
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    if await self._find(session, normalized) is not None:
                        raise AuthRejectedError("Email already in use")
                    session.add(identity)
        except IntegrityError as e:
            raise AuthRejectedError("Email already in use") from e
        except SQLAlchemyError as e:
            raise AuthRejectedError(f"Identity service unavailable: {e}") from e

        logger.info("identity.register: email=%s uid=%s", normalized, identity.uid)
        return IdentitySession(uid=identity.uid, email=identity.email)

    async def sign_up(self, email: str, password: str) -> IdentitySession:
        """Create an identity and sign it in.

        Raises:
            AuthRejectedError: See register()
        """
        created = await self.register(email, password)
        self._current = created
        await self._notify()
        return created

    async def sign_in(self, email: str, password: str) -> IdentitySession:
        """Check credentials and make the identity current.

        Raises:
            AuthRejectedError: Unknown email, wrong password, or identity service failure
        """
        normalized = normalize_email(email)
        try:
            async with self._session_factory() as session:
                identity = await self._find(session, normalized)
        except SQLAlchemyError as e:
            raise AuthRejectedError(f"Identity service unavailable: {e}") from e

        if identity is None or not self._verifier.verify(password or "", identity.password_hash):
            logger.warning("identity.sign_in rejected: email=%s", normalized)
            raise AuthRejectedError("Invalid credentials")

        self._current = IdentitySession(uid=identity.uid, email=identity.email)
        logger.info("identity.sign_in: email=%s uid=%s", identity.email, identity.uid)
        await self._notify()
        return self._current

    async def sign_out(self) -> None:
        """Clear the current identity (no-op notification if nobody is signed in)."""
        if self._current is None:
            return
        logger.info("identity.sign_out: uid=%s", self._current.uid)
        self._current = None
        await self._notify()

    async def ensure_identity(self, email: str, password: str) -> IdentitySession:
        """Return the identity for email, registering it first if missing."""
        normalized = normalize_email(email)
        try:
            async with self._session_factory() as session:
                identity = await self._find(session, normalized)
        except SQLAlchemyError as e:
            raise AuthRejectedError(f"Identity service unavailable: {e}") from e

        if identity is not None:
            return IdentitySession(uid=identity.uid, email=identity.email)
        return await self.register(normalized, password)


__all__ = [
    "MIN_PASSWORD_LENGTH",
    "IdentitySession",
    "SessionChangeHandler",
    "IdentityProvider",
    "SqlIdentityProvider",
]
