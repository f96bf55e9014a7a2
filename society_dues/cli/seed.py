"""CLI entry point for seeding identities and the local fallback store.

Usage:
    python -m society_dues.cli.seed

Exit Codes:
    0 - Success: tables exist, identities registered, local store seeded
    1 - Failure: see logs/seed.log

Existing identities and an already seeded local store are left untouched, so the
command can be run repeatedly.
"""

import asyncio
import logging
import sys

from dotenv import load_dotenv

from society_dues.config import Settings, get_settings
from society_dues.errors import SocietyError
from society_dues.schemas.society import DEFAULT_UNIT_PASSWORD
from society_dues.services.credentials import verifier_for
from society_dues.services.db import (
    create_async_db,
    create_sync_db,
    create_tables,
    create_tables_sync,
)
from society_dues.services.identity_provider import SqlIdentityProvider
from society_dues.services.local_store import LocalStateRepository, SqliteLocalStore
from society_dues.services.logging import setup_server_logging
from society_dues.services.seeding import initial_state
from society_dues.services.sync_service import fee_schedule_from_settings

logger = logging.getLogger(__name__)


async def seed(settings: Settings) -> int:
    """Create tables, register the admin and unit identities, seed the local store.

    Args:
        settings: Database URLs, admin credentials and fee defaults

    Returns:
        Number of identities newly registered or already present
    """
    if not settings.admin_password:
        raise SocietyError("ADMIN_PASSWORD must be set to seed the admin identity")

    async_engine, async_sessions = create_async_db(settings.database_url)
    sync_engine, sync_sessions = create_sync_db(settings.local_store_url)
    try:
        await create_tables(async_engine)
        create_tables_sync(sync_engine)

        fee_schedule = fee_schedule_from_settings(
            settings.flat_monthly_fee, settings.shop_monthly_fee
        )
        local = LocalStateRepository(SqliteLocalStore(sync_sessions), fee_schedule)
        if local.has_state():
            state = local.load()
            logger.info("Local store already seeded (%d units)", len(state.units))
        else:
            state = initial_state(fee_schedule)
            unit_credentials = verifier_for(settings.unit_password_hashing)
            state = state.model_copy(
                update={
                    "units": [
                        unit.model_copy(update={"password": unit_credentials.hash(unit.password)})
                        for unit in state.units
                    ]
                }
            )
            local.save(state)
            logger.info("Local store seeded with %d units", len(state.units))

        identity = SqlIdentityProvider(async_sessions)
        await identity.ensure_identity(settings.admin_email, settings.admin_password)
        logger.info("Admin identity ready: %s", settings.admin_email)

        count = 1
        for unit in state.units:
            if not unit.email:
                continue
            await identity.ensure_identity(unit.email, DEFAULT_UNIT_PASSWORD)
            count += 1
        logger.info("Unit identities ready: %d", count - 1)
        return count
    finally:
        await async_engine.dispose()
        sync_engine.dispose()


async def main() -> int:
    """Seed using settings from the environment and .env.

    Returns:
        Exit code: 0 for success, 1 for failure
    """
    load_dotenv()
    settings = get_settings()
    setup_server_logging(log_file="logs/seed.log", level=settings.log_level)
    logger.info("Starting seed: database=%s", settings.database_url)

    try:
        await seed(settings)
    except KeyboardInterrupt:
        logger.warning("Seed interrupted by user")
        return 1
    except SocietyError as e:
        logger.error("Seed failed: %s", e)
        return 1
    except Exception as e:
        logger.error("Seed failed: %s", e, exc_info=True)
        return 1

    logger.info("Seed complete")
    return 0


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
