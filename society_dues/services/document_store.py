"""Remote per-user document store.

Documents are keyed by session identity and hold the full society model. Subscribers
receive the current document (or None when absent) once on subscribe and again after
every write made through the same store instance.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from society_dues.errors import DocumentReadError, DocumentWriteError
from society_dues.models.society_document import SocietyDocument

logger = logging.getLogger(__name__)

Document = dict[str, Any]
ChangeHandler = Callable[[Document | None], Awaitable[None]]
ErrorHandler = Callable[[Exception], Awaitable[None]]
Unsubscribe = Callable[[], None]

TIMESTAMP_FIELDS = ("createdAt", "updatedAt")


class DocumentStore(Protocol):
    """Key/document service used for remote persistence."""

    async def get(self, key: str) -> Document | None: ...

    async def create(self, key: str, document: Document) -> None: ...

    async def update(self, key: str, partial: Document) -> None: ...

    async def subscribe(
        self, key: str, on_change: ChangeHandler, on_error: ErrorHandler
    ) -> Unsubscribe: ...


@dataclass(eq=False)
class _Listener:
    on_change: ChangeHandler
    on_error: ErrorHandler


def _body(document: Document) -> Document:
    return {key: value for key, value in document.items() if key not in TIMESTAMP_FIELDS}


class SqlDocumentStore:
    """DocumentStore backed by the society_documents table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """Initialize with an async session factory.

        Args:
            session_factory: Factory from create_async_db()
        """
        self._session_factory = session_factory
        self._listeners: dict[str, list[_Listener]] = defaultdict(list)

    async def _load(self, session: AsyncSession, key: str) -> SocietyDocument | None:
        result = await session.execute(select(SocietyDocument).where(SocietyDocument.key == key))
        return result.scalar_one_or_none()

    async def get(self, key: str) -> Document | None:
        """Read a document.

        Returns:
            Document with createdAt/updatedAt, or None if absent

        Raises:
            DocumentReadError: Database failure
        """
        try:
            async with self._session_factory() as session:
                row = await self._load(session, key)
                return row.to_document() if row else None
        except SQLAlchemyError as e:
            raise DocumentReadError(f"Failed to read document {key}: {e}") from e

    async def create(self, key: str, document: Document) -> None:
        """Write a whole document, replacing any existing one.

        Raises:
            DocumentWriteError: Database failure
        """
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    row = await self._load(session, key)
                    if row is None:
                        session.add(SocietyDocument(key=key, payload=_body(document)))
                    else:
                        row.payload = _body(document)
        except SQLAlchemyError as e:
            raise DocumentWriteError(f"Failed to create document {key}: {e}") from e

        logger.info("document.create: key=%s", key)
        await self._notify(key)

    async def update(self, key: str, partial: Document) -> None:
        """Merge top-level fields into an existing document.

        Raises:
            DocumentWriteError: Document does not exist, or database failure
        """
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    row = await self._load(session, key)
                    if row is None:
                        raise DocumentWriteError(f"No document to update: {key}")
                    # Reassign so SQLAlchemy sees the JSON change
                    row.payload = {**(row.payload or {}), **_body(partial)}
        except SQLAlchemyError as e:
            raise DocumentWriteError(f"Failed to update document {key}: {e}") from e

        logger.debug("document.update: key=%s fields=%s", key, sorted(partial))
        await self._notify(key)

    async def subscribe(
        self, key: str, on_change: ChangeHandler, on_error: ErrorHandler
    ) -> Unsubscribe:
        """Deliver the current document now and after every later write.

        A failed initial read is reported to on_error and ends the subscription.

        Args:
            key: Document key
            on_change: Awaited with the document, or None when absent
            on_error: Awaited with a DocumentReadError

        Returns:
            Callable that stops further deliveries
        """
        listener = _Listener(on_change=on_change, on_error=on_error)

        try:
            document = await self.get(key)
        except DocumentReadError as e:
            logger.warning("document.subscribe failed: key=%s error=%s", key, e)
            await on_error(e)
            return lambda: None

        await on_change(document)
        self._listeners[key].append(listener)
        logger.debug("document.subscribe: key=%s listeners=%d", key, len(self._listeners[key]))

        def unsubscribe() -> None:
            listeners = self._listeners.get(key, [])
            if listener in listeners:
                listeners.remove(listener)
                logger.debug("document.unsubscribe: key=%s", key)

        return unsubscribe

    async def _notify(self, key: str) -> None:
        listeners = list(self._listeners.get(key, []))
        if not listeners:
            return

        try:
            document = await self.get(key)
        except DocumentReadError as e:
            for listener in listeners:
                await listener.on_error(e)
            return

        for listener in listeners:
            try:
                await listener.on_change(document)
            except Exception as e:
                logger.error("Document listener failed for key=%s: %s", key, e, exc_info=True)


__all__ = [
    "Document",
    "ChangeHandler",
    "ErrorHandler",
    "Unsubscribe",
    "DocumentStore",
    "SqlDocumentStore",
]
