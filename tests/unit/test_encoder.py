import base64
import json

import pytest

from app.services.payment.base import PaymentRequest
from app.services.payment.encoder import (
    build_envelope,
    canonical_json,
    decode_envelope,
    encode_envelope,
    to_minor_units,
)


def make_request(amount: float = 400) -> PaymentRequest:
    return PaymentRequest(
        amount=amount,
        order_id="ORDER_1700000000000_u1",
        user_id="u1",
        user_email="asha@example.com",
        user_name="Asha",
    )


def test_envelope_has_gateway_fields() -> None:
    envelope = build_envelope(make_request(), "M1", "https://shop.example/")

    assert envelope == {
        "merchantId": "M1",
        "merchantTransactionId": "ORDER_1700000000000_u1",
        "merchantUserId": "u1",
        "amount": 40000,
        "redirectUrl": "https://shop.example/payment/callback",
        "redirectMode": "POST",
        "callbackUrl": "https://shop.example/api/payment/callback",
        "paymentInstrument": {"type": "PAY_PAGE"},
        "userDetail": {"name": "Asha", "email": "asha@example.com"},
    }


def test_urls_follow_the_origin_given_at_call_time() -> None:
    staging = build_envelope(make_request(), "M1", "https://staging.shop.example")
    local = build_envelope(make_request(), "M1", "http://localhost:8001")

    assert staging["redirectUrl"] == "https://staging.shop.example/payment/callback"
    assert local["callbackUrl"] == "http://localhost:8001/api/payment/callback"


def test_amount_is_converted_exactly_once() -> None:
    request = make_request(400)
    envelope = build_envelope(request, "M1", "https://shop.example")

    assert request.amount == 400
    assert envelope["amount"] == 40000
    assert decode_envelope(encode_envelope(envelope))["amount"] == 40000


def test_to_minor_units_handles_fractional_rupees() -> None:
    assert to_minor_units(199.99) == 19999
    assert to_minor_units(0.1) == 10


def test_to_minor_units_rejects_non_positive() -> None:
    with pytest.raises(ValueError):
        to_minor_units(0)


def test_payment_request_rejects_non_positive_amount() -> None:
    with pytest.raises(ValueError):
        make_request(0)


def test_encoded_payload_round_trips_byte_for_byte() -> None:
    envelope = build_envelope(make_request(), "M1", "https://shop.example")
    encoded = encode_envelope(envelope)

    raw = base64.b64decode(encoded).decode("utf-8")
    assert raw == canonical_json(envelope)
    assert json.loads(raw) == envelope
    assert decode_envelope(encoded) == envelope


def test_encoding_is_deterministic_for_equal_envelopes() -> None:
    first = build_envelope(make_request(), "M1", "https://shop.example")
    second = dict(reversed(list(first.items())))
    assert encode_envelope(first) == encode_envelope(second)


def test_non_ascii_names_survive_encoding() -> None:
    request = PaymentRequest(400, "ORDER_1_u2", "u2", "", "Zoë Ñandú")
    envelope = build_envelope(request, "M1", "https://shop.example")
    assert decode_envelope(encode_envelope(envelope))["userDetail"]["name"] == "Zoë Ñandú"


@pytest.mark.parametrize("bad", ["not base64!", base64.b64encode(b"[1, 2]").decode()])
def test_decode_rejects_garbage(bad: str) -> None:
    with pytest.raises(ValueError):
        decode_envelope(bad)
