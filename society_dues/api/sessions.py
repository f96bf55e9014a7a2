"""Per-client sync controllers keyed by bearer session tokens."""

import logging
import secrets
from typing import Awaitable, Callable

from society_dues.services.session import SavePolicy
from society_dues.services.sync_service import SyncController

logger = logging.getLogger(__name__)

ControllerFactory = Callable[[], Awaitable[SyncController]]


class SessionRegistry:
    """Holds one started SyncController per API session token.

    Each controller owns its own identity provider, so signing in through one
    token never changes what another token can see or edit.
    """

    def __init__(self, factory: ControllerFactory, save_policy: SavePolicy):
        self._factory = factory
        self._controllers: dict[str, SyncController] = {}
        self.save_policy = save_policy

    def __len__(self) -> int:
        return len(self._controllers)

    async def create(self) -> tuple[str, SyncController]:
        """Start a new controller and issue a token for it."""
        controller = await self._factory()
        token = secrets.token_urlsafe(32)
        self._controllers[token] = controller
        logger.debug("api.session created: active=%d", len(self._controllers))
        return token, controller

    def get(self, token: str | None) -> SyncController | None:
        if not token:
            return None
        return self._controllers.get(token)

    async def discard(self, token: str) -> None:
        """Sign out and release the controller for a token, if any."""
        controller = self._controllers.pop(token, None)
        if controller is None:
            return
        try:
            await controller.logout()
        finally:
            await controller.aclose()
        logger.debug("api.session discarded: active=%d", len(self._controllers))

    async def aclose(self) -> None:
        for token in list(self._controllers):
            await self.discard(token)


__all__ = ["SessionRegistry", "ControllerFactory"]
