"""
SQL-backed document store (SQLAlchemy async).

Used when STORE_BACKEND=sql, which is the default outside development.
"""

import logging
from typing import Any, Optional

from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models import Document
from app.services.store.base import (
    BaseDocumentStore,
    DocumentExistsError,
    DocumentNotFoundError,
    matches,
    new_document_id,
)

logger = logging.getLogger(__name__)


def _body(data: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if key != "id"}


def _out(row: Document) -> dict[str, Any]:
    document = dict(row.data or {})
    document["id"] = row.id
    return document


class SQLDocumentStore(BaseDocumentStore):
    """
    Each call runs in its own session and transaction.

    Writes are last-write-wins; there is no optimistic concurrency check.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker
        logger.info("SQLDocumentStore initialized")

    @property
    def provider_name(self) -> str:
        return "sql"

    async def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        async with self._session_maker() as session:
            row = await session.get(Document, (collection, doc_id))
            return _out(row) if row is not None else None

    async def add(
        self,
        collection: str,
        data: dict[str, Any],
        doc_id: Optional[str] = None,
    ) -> str:
        doc_id = doc_id or new_document_id()
        async with self._session_maker() as session:
            if await session.get(Document, (collection, doc_id)) is not None:
                raise DocumentExistsError(collection, doc_id)
            session.add(Document(collection=collection, id=doc_id, data=_body(data)))
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DocumentExistsError(collection, doc_id) from e
        logger.debug(f"SQL: Added {collection}/{doc_id}")
        return doc_id

    async def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        async with self._session_maker() as session:
            row = await session.get(Document, (collection, doc_id))
            if row is None:
                session.add(Document(collection=collection, id=doc_id, data=_body(data)))
            else:
                row.data = _body(data)
            await session.commit()

    async def update(
        self,
        collection: str,
        doc_id: str,
        changes: dict[str, Any],
    ) -> dict[str, Any]:
        async with self._session_maker() as session:
            row = await session.get(Document, (collection, doc_id))
            if row is None:
                raise DocumentNotFoundError(collection, doc_id)
            # Reassign so the JSON column is flagged dirty
            row.data = {**(row.data or {}), **_body(changes)}
            await session.commit()
            return _out(row)

    async def delete(self, collection: str, doc_id: str) -> bool:
        async with self._session_maker() as session:
            row = await session.get(Document, (collection, doc_id))
            if row is None:
                return False
            await session.delete(row)
            await session.commit()
            return True

    async def list(
        self,
        collection: str,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[dict[str, Any]]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(Document).where(Document.collection == collection)
            )
            return [
                _out(row)
                for row in result.scalars().all()
                if matches(row.data or {}, filters)
            ]

    async def health_check(self) -> bool:
        try:
            async with self._session_maker() as session:
                await session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"SQL store health check failed: {e}")
            return False
