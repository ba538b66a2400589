import os

# Settings are read at import time by app.main; pin development mode first
os.environ["ENV_MODE"] = "development"
os.environ["STORE_BACKEND"] = "memory"
os.environ.setdefault("REDIS_URL", "redis://localhost:6399/0")

import pytest

from app.core.config import get_settings
from app.services.cart import CartLine, CartSnapshot
from app.services.identity import Identity
from app.services.payment import MockPaymentGateway
from app.services.store import InMemoryDocumentStore

get_settings.cache_clear()


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def gateway() -> MockPaymentGateway:
    return MockPaymentGateway()


@pytest.fixture
def user() -> Identity:
    return Identity(user_id="u1", email="asha@example.com", name="Asha")


@pytest.fixture
def cart_360() -> CartSnapshot:
    return CartSnapshot(lines=(
        CartLine(item_id="m1", name="Butter Chicken", price=120, quantity=2),
        CartLine(item_id="m2", name="Garlic Naan", price=60, quantity=2),
    ))
