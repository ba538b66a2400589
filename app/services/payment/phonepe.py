"""
PhonePe Payment Gateway Implementation

Production implementation talking to the PhonePe PG API over HTTPS with httpx.
Used when ENV_MODE=production or ENV_MODE=staging.

Requirements:
    - PHONEPE_MERCHANT_ID and PHONEPE_SALT_KEY must be set
    - PHONEPE_BASE_URL points at the sandbox host for staging

Security Notes:
    - Never log the salt key or full checksums
    - Callback bodies are only trusted after checksum verification
"""

import logging
from datetime import datetime
from typing import Optional

import httpx
from pydantic import ValidationError as SchemaValidationError

from app.core.config import get_settings
from app.services.payment.base import (
    BasePaymentGateway,
    CallbackVerificationError,
    GatewayRejection,
    NetworkError,
    PaymentRedirect,
    PaymentRequest,
    PaymentStatusResult,
    REQUEST_ERROR_CODES,
    SignedEnvelope,
)
from app.services.payment.encoder import build_envelope, decode_envelope, encode_envelope
from app.services.payment.phonepe_schemas import GatewayPayResponse, GatewayStatusResponse
from app.services.payment.signer import (
    PAY_PATH,
    compute_checksum,
    status_checksum,
    status_path,
    verify_checksum,
)

logger = logging.getLogger(__name__)

DEFAULT_REJECTION_MESSAGE = "Payment initiation failed"

# Failures that happen before the request reached the gateway; safe to retry
RETRYABLE_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)


class PhonePeGateway(BasePaymentGateway):
    """
    PhonePe PG client.

    Every argument defaults to the corresponding setting. ``transport`` lets
    tests plug in ``httpx.MockTransport``.

    Example:
        >>> gateway = PhonePeGateway()
        >>> redirect = await gateway.initiate_payment(request, "https://shop.example")
    """

    def __init__(
        self,
        merchant_id: Optional[str] = None,
        salt_key: Optional[str] = None,
        salt_index: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Raises:
            ValueError: If the merchant id or salt key is not configured
        """
        settings = get_settings()

        self._merchant_id = merchant_id or settings.phonepe_merchant_id
        self._salt_key = salt_key or settings.phonepe_salt_key
        self._salt_index = salt_index or settings.phonepe_salt_index
        self._base_url = (base_url or settings.phonepe_base_url).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.gateway_timeout_seconds
        self._max_retries = (
            max_retries if max_retries is not None else settings.gateway_max_retries
        )
        self._transport = transport

        if not self._merchant_id or not self._salt_key:
            raise ValueError(
                "PHONEPE_MERCHANT_ID and PHONEPE_SALT_KEY are required outside "
                "development mode. Set them in your .env file or environment."
            )

        logger.info(
            f"PhonePeGateway initialized "
            f"(base_url={self._base_url}, timeout={self._timeout}s, "
            f"retries={self._max_retries})"
        )

    @property
    def provider_name(self) -> str:
        return "phonepe"

    @property
    def merchant_id(self) -> str:
        return self._merchant_id

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )

    def sign_request(self, request: PaymentRequest, origin: str) -> SignedEnvelope:
        """Build, encode and sign the pay envelope for ``request``."""
        envelope = build_envelope(request, self._merchant_id, origin)
        encoded = encode_envelope(envelope)
        return SignedEnvelope(
            encoded_payload=encoded,
            checksum=compute_checksum(encoded, PAY_PATH, self._salt_key, self._salt_index),
        )

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Issue a request, retrying only failures that never reached the gateway."""
        attempts = self._max_retries + 1
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            try:
                async with self._client() as client:
                    return await client.request(method, path, **kwargs)
            except RETRYABLE_ERRORS as e:
                last_error = e
                logger.warning(
                    f"PhonePe: {method} {path} could not connect "
                    f"(attempt {attempt}/{attempts}) - {e}"
                )
            except httpx.HTTPError as e:
                logger.error(f"PhonePe: {method} {path} failed - {e}")
                raise NetworkError(DEFAULT_REJECTION_MESSAGE) from e

        raise NetworkError(DEFAULT_REJECTION_MESSAGE) from last_error

    @staticmethod
    def _json_body(response: httpx.Response) -> dict:
        try:
            body = response.json()
        except ValueError:
            logger.error(
                f"PhonePe: Non-JSON response (HTTP {response.status_code})"
            )
            raise GatewayRejection(DEFAULT_REJECTION_MESSAGE)
        if not isinstance(body, dict):
            raise GatewayRejection(DEFAULT_REJECTION_MESSAGE)
        return body

    async def initiate_payment(
        self,
        request: PaymentRequest,
        origin: str,
    ) -> PaymentRedirect:
        """
        POST the signed envelope to /pg/v1/pay and return the pay page URL.

        The gateway signals failures with ``success: false`` in a JSON body,
        often alongside a 4xx status, so the body is read regardless of the
        status code.
        """
        start_time = datetime.now()
        signed = self.sign_request(request, origin)

        logger.info(f"PhonePe: Initiating payment for {request.order_id}")

        response = await self._send(
            "POST",
            PAY_PATH,
            json={"request": signed.encoded_payload},
            headers={
                "Content-Type": "application/json",
                "X-VERIFY": signed.checksum,
            },
        )
        body = self._json_body(response)

        try:
            parsed = GatewayPayResponse.model_validate(body)
        except SchemaValidationError as e:
            logger.error(f"PhonePe: Unexpected pay response shape - {e}")
            raise GatewayRejection(DEFAULT_REJECTION_MESSAGE)

        if not parsed.success:
            logger.warning(
                f"PhonePe: Payment initiation rejected for {request.order_id} - "
                f"{parsed.code}: {parsed.message}"
            )
            raise GatewayRejection(parsed.message or DEFAULT_REJECTION_MESSAGE, code=parsed.code)

        if parsed.data is None:
            logger.error(f"PhonePe: Success response without data for {request.order_id}")
            raise GatewayRejection("Gateway response did not include a redirect URL")

        elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
        logger.info(f"PhonePe: Payment initiated for {request.order_id} in {elapsed_ms:.0f}ms")

        return PaymentRedirect(
            redirect_url=parsed.data.instrument_response.redirect_info.url,
            merchant_transaction_id=request.order_id,
            provider=self.provider_name,
            response_time_ms=elapsed_ms,
        )

    async def check_status(self, merchant_transaction_id: str) -> PaymentStatusResult:
        """GET /pg/v1/status/{merchantId}/{merchantTransactionId}."""
        path = status_path(self._merchant_id, merchant_transaction_id)
        checksum = status_checksum(
            self._merchant_id,
            merchant_transaction_id,
            self._salt_key,
            self._salt_index,
        )

        response = await self._send(
            "GET",
            path,
            headers={
                "Content-Type": "application/json",
                "X-VERIFY": checksum,
                "X-MERCHANT-ID": self._merchant_id,
            },
        )
        body = self._json_body(response)

        try:
            parsed = GatewayStatusResponse.model_validate(body)
        except SchemaValidationError as e:
            logger.error(f"PhonePe: Unexpected status response shape - {e}")
            raise GatewayRejection("Unreadable payment status response")

        if parsed.code in REQUEST_ERROR_CODES or (
            not response.is_success and not parsed.success and parsed.data is None
        ):
            logger.error(
                f"PhonePe: Status check for {merchant_transaction_id} refused "
                f"(HTTP {response.status_code}, {parsed.code})"
            )
            raise GatewayRejection(
                parsed.message or "Payment status check was refused", code=parsed.code
            )

        result = parsed.to_status_result(merchant_transaction_id)
        logger.info(f"PhonePe: Status for {merchant_transaction_id} is {result.code}")
        return result

    def verify_callback(self, response: str, x_verify: str) -> dict:
        if not verify_checksum(x_verify, response, self._salt_key, self._salt_index):
            logger.warning("PhonePe: Callback checksum mismatch")
            raise CallbackVerificationError("Invalid callback signature")
        try:
            return decode_envelope(response)
        except ValueError as e:
            raise CallbackVerificationError("Undecodable callback payload") from e

    async def health_check(self) -> bool:
        """
        The PG API has no ping endpoint; check the host answers at all.
        """
        try:
            async with self._client() as client:
                await client.get("/")
            return True
        except httpx.HTTPError as e:
            logger.error(f"PhonePe: Health check failed - {e}")
            return False
