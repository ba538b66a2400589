"""
In-memory document store, used in development mode and in tests.
"""

import asyncio
import copy
import logging
from typing import Any, Optional

from app.services.store.base import (
    BaseDocumentStore,
    DocumentExistsError,
    DocumentNotFoundError,
    matches,
    new_document_id,
)

logger = logging.getLogger(__name__)


class InMemoryDocumentStore(BaseDocumentStore):
    """Dict-of-dicts store. Documents are deep-copied in and out."""

    def __init__(self):
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = asyncio.Lock()
        logger.info("InMemoryDocumentStore initialized")

    @property
    def provider_name(self) -> str:
        return "memory"

    def _collection(self, name: str) -> dict[str, dict[str, Any]]:
        return self._collections.setdefault(name, {})

    @staticmethod
    def _out(doc_id: str, data: dict[str, Any]) -> dict[str, Any]:
        document = copy.deepcopy(data)
        document["id"] = doc_id
        return document

    async def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        data = self._collection(collection).get(doc_id)
        return self._out(doc_id, data) if data is not None else None

    async def add(
        self,
        collection: str,
        data: dict[str, Any],
        doc_id: Optional[str] = None,
    ) -> str:
        async with self._lock:
            docs = self._collection(collection)
            doc_id = doc_id or new_document_id()
            if doc_id in docs:
                raise DocumentExistsError(collection, doc_id)
            body = copy.deepcopy(data)
            body.pop("id", None)
            docs[doc_id] = body
        logger.debug(f"Memory: Added {collection}/{doc_id}")
        return doc_id

    async def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        async with self._lock:
            body = copy.deepcopy(data)
            body.pop("id", None)
            self._collection(collection)[doc_id] = body

    async def update(
        self,
        collection: str,
        doc_id: str,
        changes: dict[str, Any],
    ) -> dict[str, Any]:
        async with self._lock:
            docs = self._collection(collection)
            if doc_id not in docs:
                raise DocumentNotFoundError(collection, doc_id)
            body = copy.deepcopy(changes)
            body.pop("id", None)
            docs[doc_id].update(body)
            return self._out(doc_id, docs[doc_id])

    async def delete(self, collection: str, doc_id: str) -> bool:
        async with self._lock:
            return self._collection(collection).pop(doc_id, None) is not None

    async def list(
        self,
        collection: str,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[dict[str, Any]]:
        return [
            self._out(doc_id, data)
            for doc_id, data in self._collection(collection).items()
            if matches(data, filters)
        ]

    async def health_check(self) -> bool:
        return True
