"""
Checkout Flow

Drives one checkout attempt:

    Idle -> Validating -> Submitting -> Redirected
                                     -> Failed -> Idle

Cart and identity arrive in an explicit CheckoutSession rather than from
shared globals. Every error is caught here, logged, and turned into one
user-facing notice; the per-user in-progress guard is always released, so
a failed attempt can be retried straight away.
"""

import logging
import secrets
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Optional

from app.core.config import get_settings
from app.core.exceptions import ValidationError
from app.schemas import CheckoutStateEnum as CheckoutState
from app.schemas import OrderStatusEnum
from app.services.cart import CartSnapshot, order_total
from app.services.identity import Identity
from app.services.payment import (
    BasePaymentGateway,
    GatewayRejection,
    PaymentError,
    PaymentRequest,
    get_payment_gateway,
)
from app.services.store import (
    ORDERS,
    BaseDocumentStore,
    DocumentExistsError,
    DocumentStoreError,
    get_document_store,
    utcnow_iso,
)

logger = logging.getLogger(__name__)

LOGIN_REQUIRED = "Please login to proceed with checkout"
EMPTY_CART = "Your cart is empty"
ALREADY_IN_PROGRESS = "Checkout already in progress"
GENERIC_FAILURE = "Failed to initiate payment. Please try again."

# Attempts at a free order id before giving up
MAX_ORDER_ID_ATTEMPTS = 3


def make_order_id(timestamp_ms: int, user_id: str) -> str:
    """
    >>> make_order_id(1700000000000, "u1")
    'ORDER_1700000000000_u1'
    """
    return f"ORDER_{timestamp_ms}_{user_id}"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _random_suffix() -> str:
    return secrets.token_hex(3)


@dataclass(frozen=True)
class CheckoutSession:
    """Everything one checkout needs, passed in explicitly."""
    identity: Optional[Identity]
    cart: CartSnapshot
    origin: str


@dataclass
class CheckoutOutcome:
    """
    Result shown to the user.

    ``error`` classifies failures: authentication, validation, in_progress,
    gateway or network.
    """
    state: CheckoutState
    order_id: Optional[str] = None
    redirect_url: Optional[str] = None
    amount: Optional[float] = None
    notice: Optional[str] = None
    error: Optional[str] = None

    @property
    def redirected(self) -> bool:
        return self.state == CheckoutState.REDIRECTED


class CheckoutFlow:
    """
    Args:
        gateway: Payment gateway client
        store: Document store holding orders
        delivery_fee: Flat fee added to the cart subtotal
        clock: Milliseconds since the epoch
        suffix_factory: Disambiguates an order id that is already taken
    """

    def __init__(
        self,
        gateway: BasePaymentGateway,
        store: BaseDocumentStore,
        delivery_fee: float,
        clock: Callable[[], int] = _now_ms,
        suffix_factory: Callable[[], str] = _random_suffix,
    ):
        self._gateway = gateway
        self._store = store
        self._delivery_fee = delivery_fee
        self._clock = clock
        self._suffix_factory = suffix_factory
        self._in_progress: set[str] = set()
        self._states: dict[str, CheckoutState] = {}

    def state_for(self, user_id: str) -> CheckoutState:
        """State of the attempt in flight for a user, Idle when there is none."""
        return self._states.get(user_id, CheckoutState.IDLE)

    def is_in_progress(self, user_id: str) -> bool:
        return user_id in self._in_progress

    async def checkout(self, session: CheckoutSession) -> CheckoutOutcome:
        identity = session.identity
        if identity is None:
            logger.info("Checkout refused: no authenticated user")
            return CheckoutOutcome(
                state=CheckoutState.IDLE,
                notice=LOGIN_REQUIRED,
                error="authentication",
            )

        user_id = identity.user_id
        # Check and claim with no await in between
        if user_id in self._in_progress:
            logger.warning(f"Checkout for {user_id} ignored: already in progress")
            return CheckoutOutcome(
                state=CheckoutState.SUBMITTING,
                notice=ALREADY_IN_PROGRESS,
                error="in_progress",
            )
        self._in_progress.add(user_id)
        self._states[user_id] = CheckoutState.VALIDATING

        # Only attempts in flight are tracked; the outcome carries the final state
        try:
            return await self._run(identity, session)
        finally:
            self._in_progress.discard(user_id)
            self._states.pop(user_id, None)

    async def _run(self, identity: Identity, session: CheckoutSession) -> CheckoutOutcome:
        user_id = identity.user_id
        order_id: Optional[str] = None
        amount: Optional[float] = None

        try:
            if session.cart.is_empty:
                raise ValidationError(EMPTY_CART)

            amount = order_total(session.cart.subtotal, self._delivery_fee)
            order_id = await self._create_pending_order(identity, session.cart, amount)

            self._states[user_id] = CheckoutState.SUBMITTING
            redirect = await self._gateway.initiate_payment(
                PaymentRequest(
                    amount=amount,
                    order_id=order_id,
                    user_id=user_id,
                    user_email=identity.email,
                    user_name=identity.name,
                ),
                session.origin,
            )

        except ValidationError as e:
            logger.info(f"Checkout for {user_id} rejected: {e.message}")
            return CheckoutOutcome(
                state=CheckoutState.IDLE,
                notice=e.message,
                error="validation",
            )

        except GatewayRejection as e:
            self._states[user_id] = CheckoutState.FAILED
            logger.warning(f"Checkout {order_id} rejected by gateway: {e.message}")
            await self._mark_failed(order_id, e.code)
            return CheckoutOutcome(
                state=CheckoutState.IDLE,
                order_id=order_id,
                amount=amount,
                notice=e.message,
                error="gateway",
            )

        except (PaymentError, DocumentStoreError) as e:
            self._states[user_id] = CheckoutState.FAILED
            logger.error(f"Checkout {order_id} failed: {e}")
            await self._mark_failed(order_id, None)
            return CheckoutOutcome(
                state=CheckoutState.IDLE,
                order_id=order_id,
                amount=amount,
                notice=GENERIC_FAILURE,
                error="network",
            )

        except Exception as e:
            self._states[user_id] = CheckoutState.FAILED
            logger.exception(f"Unexpected checkout error for {user_id}: {e}")
            await self._mark_failed(order_id, None)
            return CheckoutOutcome(
                state=CheckoutState.IDLE,
                order_id=order_id,
                amount=amount,
                notice=GENERIC_FAILURE,
                error="network",
            )

        logger.info(f"Checkout {order_id} redirected to {self._gateway.provider_name}")
        return CheckoutOutcome(
            state=CheckoutState.REDIRECTED,
            order_id=order_id,
            redirect_url=redirect.redirect_url,
            amount=amount,
        )

    async def _create_pending_order(
        self,
        identity: Identity,
        cart: CartSnapshot,
        amount: float,
    ) -> str:
        """
        Persist the order as pending and return its id.

        The first try uses the plain timestamp id; if a rapid retry already
        took it, a random suffix is appended.
        """
        base_id = make_order_id(self._clock(), identity.user_id)
        now = utcnow_iso()
        document = {
            "status": OrderStatusEnum.PENDING.value,
            "total": amount,
            "subtotal": cart.subtotal,
            "deliveryFee": self._delivery_fee,
            "items": [line.to_document() for line in cart.lines],
            "userId": identity.user_id,
            "userEmail": identity.email,
            "userName": identity.name,
            "createdAt": now,
            "updatedAt": now,
        }

        order_id = base_id
        for _ in range(MAX_ORDER_ID_ATTEMPTS):
            try:
                return await self._store.add(ORDERS, document, doc_id=order_id)
            except DocumentExistsError:
                logger.warning(f"Order id {order_id} already used, retrying with suffix")
                order_id = f"{base_id}_{self._suffix_factory()}"
        raise DocumentExistsError(ORDERS, order_id)

    async def _mark_failed(self, order_id: Optional[str], code: Optional[str]) -> None:
        if order_id is None:
            return
        try:
            await self._store.update(
                ORDERS,
                order_id,
                {
                    "status": OrderStatusEnum.FAILED.value,
                    "gatewayCode": code,
                    "updatedAt": utcnow_iso(),
                },
            )
        except DocumentStoreError as e:
            logger.error(f"Could not mark order {order_id} as failed: {e}")


@lru_cache()
def get_checkout_flow() -> CheckoutFlow:
    """Shared flow instance, so the in-progress guard spans requests."""
    return CheckoutFlow(
        gateway=get_payment_gateway(),
        store=get_document_store(),
        delivery_fee=get_settings().delivery_fee,
    )


def reset_checkout_flow() -> None:
    get_checkout_flow.cache_clear()
