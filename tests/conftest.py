"""Shared fixtures: in-memory fakes for the identity provider and stores."""

import uuid
from typing import Any

import pytest

from society_dues.errors import AuthRejectedError, DocumentReadError, DocumentWriteError
from society_dues.services.identity_provider import IdentitySession
from society_dues.services.local_store import LocalStateRepository
from society_dues.services.session import SavePolicy
from society_dues.services.sync_service import SyncController

ADMIN_EMAIL = "admin@sbdivine.com"
ADMIN_PASSWORD = "admin-secret"


class FakeIdentityProvider:
    """IdentityProvider keeping accounts in a dict."""

    def __init__(self):
        self.accounts: dict[str, tuple[str, str]] = {}
        self.current: IdentitySession | None = None
        self.handlers: list = []
        self.fail_with: Exception | None = None
        self.sign_out_calls = 0

    def add_account(self, email: str, password: str) -> IdentitySession:
        uid = uuid.uuid4().hex
        self.accounts[email] = (uid, password)
        return IdentitySession(uid=uid, email=email)

    async def sign_in(self, email: str, password: str) -> IdentitySession:
        if self.fail_with is not None:
            raise self.fail_with
        account = self.accounts.get(email)
        if account is None or account[1] != password:
            raise AuthRejectedError("Invalid credentials")
        self.current = IdentitySession(uid=account[0], email=email)
        await self.emit(self.current)
        return self.current

    async def sign_up(self, email: str, password: str) -> IdentitySession:
        if email in self.accounts:
            raise AuthRejectedError("Email already in use")
        self.current = self.add_account(email, password)
        await self.emit(self.current)
        return self.current

    async def sign_out(self) -> None:
        self.sign_out_calls += 1
        if self.current is None:
            return
        self.current = None
        await self.emit(None)

    def on_session_change(self, handler):
        self.handlers.append(handler)
        return lambda: self.handlers.remove(handler)

    async def emit(self, identity: IdentitySession | None) -> None:
        for handler in list(self.handlers):
            await handler(identity)


class FakeDocumentStore:
    """DocumentStore recording every write in `calls`."""

    def __init__(self):
        self.documents: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        self.listeners: dict[str, list] = {}
        self.fail_update = False
        self.fail_create = False
        self.fail_subscribe = False

    def writes(self, op: str | None = None) -> list[tuple[str, str, dict[str, Any]]]:
        return [call for call in self.calls if op is None or call[0] == op]

    async def get(self, key: str) -> dict[str, Any] | None:
        return self.documents.get(key)

    async def create(self, key: str, document: dict[str, Any]) -> None:
        self.calls.append(("create", key, document))
        if self.fail_create:
            raise DocumentWriteError("create refused")
        self.documents[key] = dict(document)
        await self._notify(key)

    async def update(self, key: str, partial: dict[str, Any]) -> None:
        self.calls.append(("update", key, partial))
        if self.fail_update:
            raise DocumentWriteError("update refused")
        if key not in self.documents:
            raise DocumentWriteError(f"No document to update: {key}")
        self.documents[key] = {**self.documents[key], **partial}
        await self._notify(key)

    async def subscribe(self, key, on_change, on_error):
        if self.fail_subscribe:
            await on_error(DocumentReadError("permission denied"))
            return lambda: None
        await on_change(self.documents.get(key))
        self.listeners.setdefault(key, []).append(on_change)
        return lambda: self.listeners[key].remove(on_change)

    async def _notify(self, key: str) -> None:
        for on_change in list(self.listeners.get(key, [])):
            await on_change(self.documents.get(key))


class MemoryLocalStore:
    """LocalStore keeping bytes in a dict."""

    def __init__(self):
        self.entries: dict[str, bytes] = {}
        self.set_calls = 0

    def get(self, key: str) -> bytes | None:
        return self.entries.get(key)

    def set(self, key: str, value: bytes) -> None:
        self.set_calls += 1
        self.entries[key] = value


@pytest.fixture
def identity() -> FakeIdentityProvider:
    provider = FakeIdentityProvider()
    provider.add_account(ADMIN_EMAIL, ADMIN_PASSWORD)
    provider.add_account("flat101@email.com", "password")
    provider.add_account("stranger@email.com", "password")
    return provider


@pytest.fixture
def documents() -> FakeDocumentStore:
    return FakeDocumentStore()


@pytest.fixture
def local_store() -> MemoryLocalStore:
    return MemoryLocalStore()


@pytest.fixture
def local(local_store) -> LocalStateRepository:
    return LocalStateRepository(local_store)


@pytest.fixture
async def make_controller(identity, documents, local):
    """Factory for started controllers; all are closed at teardown."""
    controllers: list[SyncController] = []

    async def factory(**kwargs) -> SyncController:
        kwargs.setdefault("documents", documents)
        kwargs.setdefault("admin_email", ADMIN_EMAIL)
        kwargs.setdefault("autosave_delay", 0.05)
        controller = SyncController(identity, local, **kwargs)
        await controller.start()
        controllers.append(controller)
        return controller

    yield factory

    for controller in controllers:
        await controller.aclose()


@pytest.fixture
async def admin_controller(make_controller) -> SyncController:
    controller = await make_controller(save_policy=SavePolicy.MANUAL)
    await controller.login(ADMIN_EMAIL, ADMIN_PASSWORD)
    return controller
