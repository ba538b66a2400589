"""
Document Store Abstract Base Class

The storefront keeps its data in a hosted document database. This interface
is the narrow slice of it the application uses: JSON documents grouped in
named collections, addressed by string id.

Timestamps inside documents are ISO 8601 UTC strings so that every backend
stores and orders them the same way.
"""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

MENU_ITEMS = "menuItems"
ORDERS = "orders"


class DocumentStoreError(Exception):
    """Base class for document store failures."""


class DocumentNotFoundError(DocumentStoreError, LookupError):
    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"{collection}/{doc_id} not found")
        self.collection = collection
        self.doc_id = doc_id


class DocumentExistsError(DocumentStoreError):
    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"{collection}/{doc_id} already exists")
        self.collection = collection
        self.doc_id = doc_id


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_document_id() -> str:
    return uuid.uuid4().hex


def matches(document: dict[str, Any], filters: Optional[dict[str, Any]]) -> bool:
    """Equality match on top-level fields."""
    if not filters:
        return True
    return all(document.get(key) == value for key, value in filters.items())


class BaseDocumentStore(ABC):
    """
    Abstract base class for document stores.

    Documents come back as plain dicts with their id under ``"id"``.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        """Return the document, or None if it does not exist."""
        pass

    @abstractmethod
    async def add(
        self,
        collection: str,
        data: dict[str, Any],
        doc_id: Optional[str] = None,
    ) -> str:
        """
        Create a document and return its id.

        Raises:
            DocumentExistsError: ``doc_id`` is already taken
        """
        pass

    @abstractmethod
    async def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Create or replace a document."""
        pass

    @abstractmethod
    async def update(
        self,
        collection: str,
        doc_id: str,
        changes: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Merge ``changes`` into a document and return the result.

        Raises:
            DocumentNotFoundError: No such document
        """
        pass

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document. Returns False if it did not exist."""
        pass

    @abstractmethod
    async def list(
        self,
        collection: str,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[dict[str, Any]]:
        """All documents of a collection matching ``filters`` (field equality)."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        pass
