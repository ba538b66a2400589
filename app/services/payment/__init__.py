"""
Payment Gateway Factory

Provides a single entry point for obtaining a payment gateway instance.
The factory keeps the checkout flow and the callback handler agnostic
about which implementation is being used.

Usage:
    from app.services.payment import get_payment_gateway

    # Returns MockPaymentGateway or PhonePeGateway based on ENV_MODE
    gateway = get_payment_gateway()

    redirect = await gateway.initiate_payment(request, origin)

Environment Switching:
    - ENV_MODE=development → MockPaymentGateway (no API calls)
    - ENV_MODE=staging → PhonePeGateway (sandbox host)
    - ENV_MODE=production → PhonePeGateway (production host)
"""

import logging
from functools import lru_cache

from app.core.config import get_settings
from app.services.payment.base import (
    BasePaymentGateway,
    CallbackVerificationError,
    GatewayRejection,
    NetworkError,
    PaymentError,
    PaymentRedirect,
    PaymentRequest,
    PaymentStatusResult,
    SignedEnvelope,
)
from app.services.payment.mock import MockPaymentGateway
from app.services.payment.phonepe import PhonePeGateway

logger = logging.getLogger(__name__)


@lru_cache()
def get_payment_gateway() -> BasePaymentGateway:
    """
    Get the configured payment gateway instance.

    The instance is cached so every caller shares one gateway.

    Raises:
        ValueError: If not in development mode and gateway keys are missing
    """
    settings = get_settings()

    if settings.is_development:
        logger.info("Payment Gateway: Using MockPaymentGateway (development mode)")
        return MockPaymentGateway(latency=0.3)

    logger.info(
        f"Payment Gateway: Using PhonePeGateway "
        f"({settings.env_mode.value} mode)"
    )
    return PhonePeGateway()


def reset_payment_gateway() -> None:
    """
    Clear the cached gateway instance.

    The next call to get_payment_gateway() will create a new instance.
    """
    get_payment_gateway.cache_clear()
    logger.debug("Payment gateway cache cleared")


__all__ = [
    "get_payment_gateway",
    "reset_payment_gateway",
    "BasePaymentGateway",
    "CallbackVerificationError",
    "GatewayRejection",
    "NetworkError",
    "PaymentError",
    "PaymentRedirect",
    "PaymentRequest",
    "PaymentStatusResult",
    "SignedEnvelope",
    "MockPaymentGateway",
    "PhonePeGateway",
]
