"""
Payment Gateway Abstract Base Class

Defines the interface contract for all payment gateway implementations.
Both MockPaymentGateway and PhonePeGateway implement these methods,
ensuring the checkout flow and the callback handler behave identically
regardless of which gateway is active.

Design Pattern: Strategy Pattern
    - Allows runtime switching between the mock and the real gateway
    - Facilitates testing with the mock implementation

The gateway flow is redirect based: initiating a payment only yields the
URL of the gateway-hosted pay page. Completion is learnt later, through the
callback or a status check.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional


# Gateway response codes for a payment's final state
CODE_PAYMENT_SUCCESS = "PAYMENT_SUCCESS"
CODE_PAYMENT_PENDING = "PAYMENT_PENDING"
FAILURE_CODES = frozenset({
    "PAYMENT_ERROR",
    "PAYMENT_DECLINED",
    "TIMED_OUT",
    "TRANSACTION_NOT_FOUND",
})

# Codes describing our own request, not the payment; never applied to an order
REQUEST_ERROR_CODES = frozenset({
    "AUTHORIZATION_FAILED",
    "BAD_REQUEST",
    "INTERNAL_SERVER_ERROR",
})


# =============================================================================
# ERRORS
# =============================================================================

class PaymentError(Exception):
    """Base class for failures while talking to the payment gateway."""

    def __init__(self, message: str = "Payment initiation failed"):
        super().__init__(message)
        self.message = message


class GatewayRejection(PaymentError):
    """The gateway answered, but not with a usable success response."""

    def __init__(
        self,
        message: str = "Payment initiation failed",
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.code = code


class NetworkError(PaymentError):
    """The request to the gateway could not complete."""


class CallbackVerificationError(PaymentError):
    """A gateway callback failed checksum verification or could not be decoded."""


# =============================================================================
# DATA
# =============================================================================

@dataclass(frozen=True)
class PaymentRequest:
    """
    One checkout attempt, as handed to the gateway client.

    Attributes:
        amount: Total in display currency units (rupees), delivery included.
            The conversion to paise is done by the payload encoder, once.
        order_id: Unique per attempt, sent as merchantTransactionId
        user_id: Sent as merchantUserId
        user_email: Shown on the gateway's pay page
        user_name: Shown on the gateway's pay page
    """
    amount: float
    order_id: str
    user_id: str
    user_email: str
    user_name: str

    def __post_init__(self):
        if self.amount <= 0:
            raise ValueError("amount must be positive")
        if not self.order_id:
            raise ValueError("order_id is required")


@dataclass(frozen=True)
class SignedEnvelope:
    """Encoded request body plus the X-VERIFY value that authenticates it."""
    encoded_payload: str
    checksum: str


@dataclass
class PaymentRedirect:
    """Successful initiation: where to send the browser."""
    redirect_url: str
    merchant_transaction_id: str
    provider: str = "unknown"
    response_time_ms: float = 0.0


@dataclass
class PaymentStatusResult:
    """
    Authoritative state of a transaction, as reported by the gateway.

    Attributes:
        merchant_transaction_id: Our order id
        code: Gateway code (PAYMENT_SUCCESS, PAYMENT_PENDING, PAYMENT_ERROR, ...)
        amount: Amount in paise as recorded by the gateway
        transaction_id: Gateway-side transaction reference
        state: Gateway state string (COMPLETED, PENDING, FAILED)
        message: Human-readable gateway message
    """
    merchant_transaction_id: str
    code: str
    amount: Optional[int] = None
    transaction_id: Optional[str] = None
    state: Optional[str] = None
    message: Optional[str] = None
    raw: dict = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return self.code == CODE_PAYMENT_SUCCESS

    @property
    def is_pending(self) -> bool:
        return self.code == CODE_PAYMENT_PENDING

    @property
    def is_failure(self) -> bool:
        return self.code in FAILURE_CODES


class BasePaymentGateway(ABC):
    """
    Abstract base class for payment gateways.

    Example:
        >>> gateway = get_payment_gateway()  # Mock or PhonePe
        >>> redirect = await gateway.initiate_payment(request, origin)
        >>> redirect.redirect_url
        'https://mercury.phonepe.com/transact/...'
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of the gateway (e.g., "mock", "phonepe")."""
        pass

    @abstractmethod
    async def initiate_payment(
        self,
        request: PaymentRequest,
        origin: str,
    ) -> PaymentRedirect:
        """
        Submit a payment request and return the hosted pay page URL.

        Args:
            request: The checkout attempt (amount in display units)
            origin: Scheme + host the gateway should redirect back to

        Raises:
            GatewayRejection: Non-success or malformed gateway response
            NetworkError: The gateway could not be reached
        """
        pass

    @abstractmethod
    async def check_status(self, merchant_transaction_id: str) -> PaymentStatusResult:
        """
        Ask the gateway for the authoritative state of a transaction.

        Raises:
            GatewayRejection: The gateway answered with an unreadable body
            NetworkError: The gateway could not be reached
        """
        pass

    @abstractmethod
    def verify_callback(self, response: str, x_verify: str) -> dict:
        """
        Verify and decode a server-to-server callback body.

        Args:
            response: Base64 ``response`` field of the callback body
            x_verify: X-VERIFY header sent with the callback

        Returns:
            The decoded callback payload

        Raises:
            CallbackVerificationError: Bad checksum or undecodable body
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify the gateway is usable.

        Returns:
            bool: True if the gateway is configured and reachable
        """
        pass
