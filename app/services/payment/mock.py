"""
Mock Payment Gateway Implementation

Simulates the PhonePe redirect flow without making real API calls.
Used in development mode (ENV_MODE=development) to:
    - Test the complete checkout -> callback flow locally
    - Develop without gateway credentials or internet connectivity

Behavior:
    - Encodes and signs every request exactly like the real client
    - Redirects to a local simulated pay page (/payment/mock-pay/{order_id})
    - Reports a configurable outcome from check_status, or the one chosen
      on the simulated pay page for that transaction
    - Can be told to reject or to fail at the network level
"""

import asyncio
import logging
import uuid
from typing import Optional

from app.services.payment.base import (
    CODE_PAYMENT_SUCCESS,
    BasePaymentGateway,
    CallbackVerificationError,
    GatewayRejection,
    NetworkError,
    PaymentRedirect,
    PaymentRequest,
    PaymentStatusResult,
)
from app.services.payment.encoder import build_envelope, decode_envelope, encode_envelope
from app.services.payment.signer import PAY_PATH, compute_checksum, verify_checksum

logger = logging.getLogger(__name__)

MOCK_MERCHANT_ID = "MOCKMERCHANT"
MOCK_SALT_KEY = "mock-salt-key"
MOCK_SALT_INDEX = "1"


class MockPaymentGateway(BasePaymentGateway):
    """
    Mock implementation of the payment gateway.

    Attributes:
        outcome: Code reported by check_status unless a transaction was completed
        reject_with: If set, initiate_payment raises GatewayRejection with it
        fail_network: If True, initiate_payment raises NetworkError
        latency: Simulated response time in seconds
        submissions: Decoded envelopes of every initiation, in order

    Example:
        >>> gateway = MockPaymentGateway(reject_with="insufficient funds")
        >>> await gateway.initiate_payment(request, "http://localhost:8001")
        Traceback (most recent call last):
        GatewayRejection: insufficient funds
    """

    def __init__(
        self,
        outcome: str = CODE_PAYMENT_SUCCESS,
        reject_with: Optional[str] = None,
        fail_network: bool = False,
        latency: float = 0.0,
    ):
        self.outcome = outcome
        self.reject_with = reject_with
        self.fail_network = fail_network
        self.latency = latency
        self.submissions: list[dict] = []
        self.checksums: list[str] = []
        self._transactions: dict[str, str] = {}
        self._outcomes: dict[str, str] = {}

        logger.info(
            f"MockPaymentGateway initialized "
            f"(outcome={outcome}, latency={latency}s)"
        )

    @property
    def provider_name(self) -> str:
        return "mock"

    @property
    def merchant_id(self) -> str:
        return MOCK_MERCHANT_ID

    async def _simulate_latency(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)

    async def initiate_payment(
        self,
        request: PaymentRequest,
        origin: str,
    ) -> PaymentRedirect:
        envelope = build_envelope(request, MOCK_MERCHANT_ID, origin)
        encoded = encode_envelope(envelope)
        checksum = compute_checksum(encoded, PAY_PATH, MOCK_SALT_KEY, MOCK_SALT_INDEX)

        self.submissions.append(decode_envelope(encoded))
        self.checksums.append(checksum)

        await self._simulate_latency()

        if self.fail_network:
            logger.debug(f"Mock: Simulated network failure for {request.order_id}")
            raise NetworkError("Payment initiation failed")

        if self.reject_with:
            logger.debug(f"Mock: Simulated rejection for {request.order_id}")
            raise GatewayRejection(self.reject_with, code="PAYMENT_ERROR")

        self._transactions[request.order_id] = f"T{uuid.uuid4().hex[:20].upper()}"

        logger.info(f"Mock: Payment initiated - {request.order_id} - {envelope['amount']} paise")

        return PaymentRedirect(
            redirect_url=f"{origin.rstrip('/')}/payment/mock-pay/{request.order_id}",
            merchant_transaction_id=request.order_id,
            provider=self.provider_name,
        )

    def amount_for(self, merchant_transaction_id: str) -> Optional[int]:
        """Paise submitted for a transaction, if it was ever initiated."""
        for envelope in reversed(self.submissions):
            if envelope["merchantTransactionId"] == merchant_transaction_id:
                return envelope["amount"]
        return None

    def complete(self, merchant_transaction_id: str, code: str) -> None:
        """Record the result picked on the simulated pay page."""
        self._outcomes[merchant_transaction_id] = code
        logger.info(f"Mock: {merchant_transaction_id} completed with {code}")

    async def check_status(self, merchant_transaction_id: str) -> PaymentStatusResult:
        await self._simulate_latency()

        if merchant_transaction_id not in self._transactions:
            return PaymentStatusResult(
                merchant_transaction_id=merchant_transaction_id,
                code="TRANSACTION_NOT_FOUND",
                message="No transaction found",
            )

        code = self._outcomes.get(merchant_transaction_id, self.outcome)
        state = {
            "PAYMENT_SUCCESS": "COMPLETED",
            "PAYMENT_PENDING": "PENDING",
        }.get(code, "FAILED")

        return PaymentStatusResult(
            merchant_transaction_id=merchant_transaction_id,
            code=code,
            amount=self.amount_for(merchant_transaction_id),
            transaction_id=self._transactions[merchant_transaction_id],
            state=state,
            message="Mock status",
        )

    def verify_callback(self, response: str, x_verify: str) -> dict:
        if not verify_checksum(x_verify, response, MOCK_SALT_KEY, MOCK_SALT_INDEX):
            raise CallbackVerificationError("Invalid callback signature")
        try:
            return decode_envelope(response)
        except ValueError as e:
            raise CallbackVerificationError("Undecodable callback payload") from e

    async def health_check(self) -> bool:
        logger.debug("Mock: Health check passed")
        return True
