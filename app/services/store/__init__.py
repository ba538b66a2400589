"""
Document Store Factory

Returns the in-memory or SQL document store based on configuration.

Usage:
    from app.services.store import get_document_store, ORDERS

    store = get_document_store()
    order = await store.get(ORDERS, order_id)
"""

import logging
from functools import lru_cache

from app.core.config import StoreBackend, get_settings
from app.services.store.base import (
    MENU_ITEMS,
    ORDERS,
    BaseDocumentStore,
    DocumentExistsError,
    DocumentNotFoundError,
    DocumentStoreError,
    utcnow_iso,
)
from app.services.store.memory import InMemoryDocumentStore

logger = logging.getLogger(__name__)


@lru_cache()
def get_document_store() -> BaseDocumentStore:
    """Get the configured document store (cached)."""
    settings = get_settings()

    if settings.effective_store_backend == StoreBackend.MEMORY:
        logger.info("Document Store: Using InMemoryDocumentStore")
        return InMemoryDocumentStore()

    from app.database import get_session_maker
    from app.services.store.sql import SQLDocumentStore

    logger.info("Document Store: Using SQLDocumentStore")
    return SQLDocumentStore(get_session_maker())


def reset_document_store() -> None:
    """Clear the cached store instance."""
    get_document_store.cache_clear()


__all__ = [
    "get_document_store",
    "reset_document_store",
    "BaseDocumentStore",
    "DocumentExistsError",
    "DocumentNotFoundError",
    "DocumentStoreError",
    "InMemoryDocumentStore",
    "MENU_ITEMS",
    "ORDERS",
    "utcnow_iso",
]
