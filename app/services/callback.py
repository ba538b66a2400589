"""
Payment Callback Handler

Reconciles orders with the gateway's view of their payment.

Two entry points:
    - handle_redirect: the browser POSTs back to /payment/callback. Nothing
      in that form is trusted except the transaction id, which is used to
      ask the gateway's status API for the real outcome.
    - handle_server_callback: the gateway POSTs to /api/payment/callback.
      The body is trusted only once its X-VERIFY checksum checks out.

A completed order is never moved back to pending or failed, so replayed
callbacks are harmless.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Mapping, Optional

from pydantic import ValidationError as SchemaValidationError

from app.core.exceptions import OrderNotFoundError
from app.schemas import OrderStatusEnum
from app.services.payment import (
    BasePaymentGateway,
    CallbackVerificationError,
    PaymentError,
    PaymentStatusResult,
    get_payment_gateway,
)
from app.services.payment.encoder import to_minor_units
from app.services.payment.phonepe_schemas import GatewayStatusResponse
from app.services.store import (
    ORDERS,
    BaseDocumentStore,
    DocumentStoreError,
    get_document_store,
    utcnow_iso,
)

logger = logging.getLogger(__name__)

# Form fields the gateway may use for our order id on the browser redirect
TRANSACTION_ID_FIELDS = ("transactionId", "merchantTransactionId")


@dataclass
class ReconciliationResult:
    order_id: str
    status: OrderStatusEnum
    changed: bool
    code: Optional[str] = None
    message: Optional[str] = None


class CallbackHandler:
    def __init__(self, gateway: BasePaymentGateway, store: BaseDocumentStore):
        self._gateway = gateway
        self._store = store

    async def handle_redirect(self, form: Mapping[str, str]) -> ReconciliationResult:
        """
        Handle the browser redirect back from the pay page.

        Raises:
            CallbackVerificationError: No transaction id in the form
            OrderNotFoundError: Unknown order
            PaymentError: The status check failed
        """
        order_id = next(
            (form[name] for name in TRANSACTION_ID_FIELDS if form.get(name)),
            None,
        )
        if not order_id:
            raise CallbackVerificationError("Callback did not include a transaction id")

        logger.info(
            f"Redirect callback for {order_id} "
            f"(client-reported code={form.get('code')}), checking status"
        )
        status = await self._gateway.check_status(order_id)
        return await self.reconcile(status)

    async def handle_server_callback(self, response: str, x_verify: str) -> ReconciliationResult:
        """
        Handle the gateway's server-to-server callback.

        Raises:
            CallbackVerificationError: Bad signature or payload
            OrderNotFoundError: Unknown order
        """
        payload = self._gateway.verify_callback(response, x_verify)
        try:
            parsed = GatewayStatusResponse.model_validate(payload)
        except SchemaValidationError as e:
            raise CallbackVerificationError("Malformed callback payload") from e
        if parsed.data is None:
            raise CallbackVerificationError("Callback payload has no transaction data")

        status = parsed.to_status_result()
        logger.info(f"Verified server callback for {status.merchant_transaction_id}: {status.code}")
        return await self.reconcile(status)

    async def reconcile(self, status: PaymentStatusResult) -> ReconciliationResult:
        """Apply an authoritative gateway status to the matching order."""
        order_id = status.merchant_transaction_id
        order = await self._store.get(ORDERS, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)

        current = OrderStatusEnum(order.get("status", OrderStatusEnum.PENDING.value))

        def unchanged(message: Optional[str] = None) -> ReconciliationResult:
            return ReconciliationResult(order_id, current, False, status.code, message)

        if current == OrderStatusEnum.COMPLETED:
            logger.debug(f"Order {order_id} already completed, ignoring {status.code}")
            return unchanged()

        if status.is_success:
            expected = to_minor_units(order["total"])
            if status.amount != expected:
                logger.error(
                    f"Order {order_id}: gateway reports {status.amount} paise, "
                    f"expected {expected}; leaving status {current.value}"
                )
                return unchanged("Amount mismatch")
            target = OrderStatusEnum.COMPLETED
        elif status.is_failure:
            target = OrderStatusEnum.FAILED
        else:
            logger.info(f"Order {order_id} still {status.code}")
            return unchanged(status.message)

        await self._store.update(
            ORDERS,
            order_id,
            {
                "status": target.value,
                "gatewayCode": status.code,
                "gatewayState": status.state,
                "gatewayTransactionId": status.transaction_id,
                "updatedAt": utcnow_iso(),
            },
        )
        logger.info(f"Order {order_id}: {current.value} -> {target.value}")
        return ReconciliationResult(order_id, target, target != current, status.code, status.message)

    async def reconcile_stale(self, older_than_minutes: int) -> list[ReconciliationResult]:
        """
        Re-check pending orders older than ``older_than_minutes`` with the gateway.

        Covers users who closed the pay page before the redirect back and
        server callbacks that never arrived. One failing order does not stop
        the others.
        """
        cutoff = (datetime.now(timezone.utc) - timedelta(minutes=older_than_minutes)).isoformat()
        pending = await self._store.list(ORDERS, {"status": OrderStatusEnum.PENDING.value})
        stale = [o for o in pending if o.get("createdAt", "") < cutoff]

        results = []
        for order in stale:
            try:
                status = await self._gateway.check_status(order["id"])
                results.append(await self.reconcile(status))
            except PaymentError as e:
                logger.warning(f"Status check for {order['id']} failed: {e}")
            except (DocumentStoreError, OrderNotFoundError) as e:
                logger.error(f"Could not reconcile {order['id']}: {e}")
        logger.info(f"Reconciled {len(results)}/{len(stale)} stale pending orders")
        return results


@lru_cache()
def get_callback_handler() -> CallbackHandler:
    return CallbackHandler(get_payment_gateway(), get_document_store())


def reset_callback_handler() -> None:
    get_callback_handler.cache_clear()
