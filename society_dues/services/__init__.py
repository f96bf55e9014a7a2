"""Services: due calculation, persistence adapters and the sync controller."""

from society_dues.services.db import (
    create_async_db,
    create_sync_db,
    create_tables,
    create_tables_sync,
)
from society_dues.services.document_store import DocumentStore, SqlDocumentStore
from society_dues.services.due_service import (
    DueResult,
    compute_due,
    current_month_index,
    summarize_society,
)
from society_dues.services.identity_provider import (
    IdentityProvider,
    IdentitySession,
    SqlIdentityProvider,
)
from society_dues.services.local_store import (
    LocalStateRepository,
    LocalStore,
    SqliteLocalStore,
)
from society_dues.services.session import RemoteState, Role, SavePolicy, SessionState
from society_dues.services.sync_service import SyncController

__all__ = [
    "create_async_db",
    "create_sync_db",
    "create_tables",
    "create_tables_sync",
    "DocumentStore",
    "SqlDocumentStore",
    "DueResult",
    "compute_due",
    "current_month_index",
    "summarize_society",
    "IdentityProvider",
    "IdentitySession",
    "SqlIdentityProvider",
    "LocalStateRepository",
    "LocalStore",
    "SqliteLocalStore",
    "RemoteState",
    "Role",
    "SavePolicy",
    "SessionState",
    "SyncController",
]
