"""
Gateway envelope construction and encoding.

Turns a PaymentRequest into the JSON structure the pay API expects and
encodes it as base64 of canonical JSON. The redirect and callback URLs are
built from the origin passed in at call time.
"""

import base64
import binascii
import json
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from app.services.payment.base import PaymentRequest

REDIRECT_PATH = "/payment/callback"
CALLBACK_PATH = "/api/payment/callback"
REDIRECT_MODE = "POST"
INSTRUMENT_PAY_PAGE = "PAY_PAGE"


def to_minor_units(amount: float) -> int:
    """
    Convert a display amount (rupees) to the gateway's unit (paise).

    This is the only place the x100 conversion happens.

    >>> to_minor_units(400)
    40000
    """
    if amount <= 0:
        raise ValueError("amount must be positive")
    paise = (Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(paise)


def build_envelope(request: PaymentRequest, merchant_id: str, origin: str) -> dict[str, Any]:
    """
    Build the pay API envelope for a request.

    Args:
        request: Checkout attempt, amount in display units
        merchant_id: Merchant ID issued by the gateway
        origin: Scheme + host of this deployment, e.g. ``https://shop.example``
    """
    base = origin.rstrip("/")
    return {
        "merchantId": merchant_id,
        "merchantTransactionId": request.order_id,
        "merchantUserId": request.user_id,
        "amount": to_minor_units(request.amount),
        "redirectUrl": f"{base}{REDIRECT_PATH}",
        "redirectMode": REDIRECT_MODE,
        "callbackUrl": f"{base}{CALLBACK_PATH}",
        "paymentInstrument": {
            "type": INSTRUMENT_PAY_PAGE,
        },
        "userDetail": {
            "name": request.user_name,
            "email": request.user_email,
        },
    }


def canonical_json(envelope: dict[str, Any]) -> str:
    return json.dumps(envelope, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def encode_envelope(envelope: dict[str, Any]) -> str:
    """Base64 of the canonical JSON form of ``envelope``."""
    return base64.b64encode(canonical_json(envelope).encode("utf-8")).decode("ascii")


def decode_envelope(encoded: str) -> dict[str, Any]:
    """
    Inverse of encode_envelope; also decodes the gateway's callback ``response``.

    Raises:
        ValueError: Not base64, or not a JSON object
    """
    try:
        raw = base64.b64decode(encoded, validate=True)
        decoded = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError(f"Undecodable envelope: {e}") from e
    if not isinstance(decoded, dict):
        raise ValueError("Envelope is not a JSON object")
    return decoded
