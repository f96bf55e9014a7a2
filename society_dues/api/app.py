"""FastAPI application factory for the society dues dashboard."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from society_dues.api.dashboard import router as dashboard_router
from society_dues.api.errors import register_error_handlers
from society_dues.api.sessions import SessionRegistry
from society_dues.config import Settings, get_settings
from society_dues.services.credentials import verifier_for
from society_dues.services.db import (
    create_async_db,
    create_sync_db,
    create_tables,
    create_tables_sync,
)
from society_dues.services.document_store import SqlDocumentStore
from society_dues.services.identity_provider import SqlIdentityProvider
from society_dues.services.local_store import LocalStateRepository, SqliteLocalStore
from society_dues.services.session import SavePolicy
from society_dues.services.sync_service import SyncController, fee_schedule_from_settings

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the API app.

    Engines and stores are created in the lifespan, along with a registry that
    starts one sync controller per signed-in client. The app can be constructed
    without touching the database.

    Args:
        settings: Settings to use (default: get_settings())

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        async_engine, async_sessions = create_async_db(
            settings.database_url, echo=settings.database_echo
        )
        sync_engine, sync_sessions = create_sync_db(
            settings.local_store_url, echo=settings.database_echo
        )
        try:
            await create_tables(async_engine)
            create_tables_sync(sync_engine)

            local = LocalStateRepository(
                SqliteLocalStore(sync_sessions),
                default_fee_schedule=fee_schedule_from_settings(
                    settings.flat_monthly_fee, settings.shop_monthly_fee
                ),
            )
            documents = SqlDocumentStore(async_sessions)
            save_policy = SavePolicy(settings.save_policy)

            async def start_controller() -> SyncController:
                # One identity provider per client keeps sign-ins apart
                controller = SyncController(
                    SqlIdentityProvider(async_sessions),
                    local,
                    documents=documents,
                    admin_email=settings.admin_email,
                    save_policy=save_policy,
                    autosave_delay=settings.autosave_delay_seconds,
                    unit_credentials=verifier_for(settings.unit_password_hashing),
                )
                await controller.start()
                return controller

            sessions = SessionRegistry(start_controller, save_policy)
            app.state.sessions = sessions
            logger.info(
                "API starting: save_policy=%s database=%s",
                settings.save_policy,
                settings.database_url,
            )
            try:
                yield
            finally:
                await sessions.aclose()
            logger.info("API stopped")
        finally:
            await async_engine.dispose()
            sync_engine.dispose()

    app = FastAPI(
        title=settings.api_title,
        description="Residential society maintenance dues",
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    @app.get("/health")
    async def health_check() -> dict:
        """Health check endpoint for monitoring."""
        return {"status": "ok"}

    app.include_router(dashboard_router)
    return app


__all__ = ["create_app"]
