import asyncio
import json

import httpx
import pytest

from app.services.payment.base import GatewayRejection, NetworkError, PaymentRequest
from app.services.payment.encoder import decode_envelope
from app.services.payment.phonepe import PhonePeGateway
from app.services.payment.signer import PAY_PATH, compute_checksum, status_checksum

BASE_URL = "https://gateway.test/apis/hermes"
PAY_PAGE_URL = "https://mercury.gateway.test/transact/abc"


def make_request() -> PaymentRequest:
    return PaymentRequest(
        amount=400,
        order_id="ORDER_1700000000000_u1",
        user_id="u1",
        user_email="asha@example.com",
        user_name="Asha",
    )


def make_gateway(handler, max_retries: int = 1) -> PhonePeGateway:
    return PhonePeGateway(
        merchant_id="M1",
        salt_key="salt",
        salt_index="1",
        base_url=BASE_URL,
        timeout=2.0,
        max_retries=max_retries,
        transport=httpx.MockTransport(handler),
    )


def pay_success_body() -> dict:
    return {
        "success": True,
        "code": "PAYMENT_INITIATED",
        "message": "Payment initiated",
        "data": {
            "merchantId": "M1",
            "merchantTransactionId": "ORDER_1700000000000_u1",
            "instrumentResponse": {
                "type": "PAY_PAGE",
                "redirectInfo": {"url": PAY_PAGE_URL, "method": "GET"},
            },
        },
    }


def test_missing_credentials_are_rejected() -> None:
    with pytest.raises(ValueError):
        PhonePeGateway(merchant_id="", salt_key="", base_url=BASE_URL)


def test_successful_initiation_returns_pay_page_url() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=pay_success_body())

    redirect = asyncio.run(make_gateway(handler).initiate_payment(make_request(), "https://shop.example"))

    assert redirect.redirect_url == PAY_PAGE_URL
    assert redirect.merchant_transaction_id == "ORDER_1700000000000_u1"
    assert redirect.provider == "phonepe"

    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/apis/hermes/pg/v1/pay"

    encoded = json.loads(request.content)["request"]
    assert request.headers["X-VERIFY"] == compute_checksum(encoded, PAY_PATH, "salt", "1")
    envelope = decode_envelope(encoded)
    assert envelope["amount"] == 40000
    assert envelope["merchantId"] == "M1"
    assert envelope["redirectUrl"] == "https://shop.example/payment/callback"


def test_sign_request_matches_what_is_sent() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=pay_success_body())

    gateway = make_gateway(handler)
    signed = gateway.sign_request(make_request(), "https://shop.example")
    asyncio.run(gateway.initiate_payment(make_request(), "https://shop.example"))

    assert json.loads(seen[0].content)["request"] == signed.encoded_payload
    assert seen[0].headers["X-VERIFY"] == signed.checksum


def test_rejection_carries_gateway_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={"success": False, "code": "BAD_REQUEST", "message": "insufficient funds"},
        )

    with pytest.raises(GatewayRejection) as exc_info:
        asyncio.run(make_gateway(handler).initiate_payment(make_request(), "https://shop.example"))

    assert exc_info.value.message == "insufficient funds"
    assert exc_info.value.code == "BAD_REQUEST"


def test_rejection_without_message_uses_default() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False})

    with pytest.raises(GatewayRejection) as exc_info:
        asyncio.run(make_gateway(handler).initiate_payment(make_request(), "https://shop.example"))

    assert exc_info.value.message == "Payment initiation failed"


@pytest.mark.parametrize(
    "body",
    [
        {"success": True, "data": {"instrumentResponse": {"type": "PAY_PAGE"}}},
        {"success": True, "data": {"instrumentResponse": {"redirectInfo": {"url": ""}}}},
        {"code": "PAYMENT_INITIATED"},
    ],
)
def test_malformed_success_body_is_a_rejection(body: dict) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=body)

    with pytest.raises(GatewayRejection):
        asyncio.run(make_gateway(handler).initiate_payment(make_request(), "https://shop.example"))


def test_success_without_data_is_a_rejection() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": True, "code": "PAYMENT_INITIATED"})

    with pytest.raises(GatewayRejection) as exc_info:
        asyncio.run(make_gateway(handler).initiate_payment(make_request(), "https://shop.example"))

    assert "redirect URL" in exc_info.value.message


def test_non_json_body_is_a_rejection() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>Bad Gateway</html>")

    with pytest.raises(GatewayRejection):
        asyncio.run(make_gateway(handler).initiate_payment(make_request(), "https://shop.example"))


def test_connect_errors_are_retried_then_reported() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NetworkError):
        asyncio.run(
            make_gateway(handler, max_retries=2).initiate_payment(make_request(), "https://shop.example")
        )

    assert len(calls) == 3


def test_connect_error_then_success() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json=pay_success_body())

    redirect = asyncio.run(make_gateway(handler).initiate_payment(make_request(), "https://shop.example"))

    assert redirect.redirect_url == PAY_PAGE_URL
    assert len(calls) == 2


def test_read_timeout_is_not_retried() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(NetworkError):
        asyncio.run(make_gateway(handler, max_retries=3).initiate_payment(make_request(), "https://shop.example"))

    assert len(calls) == 1


def test_check_status_signs_path_and_parses_result() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={
            "success": True,
            "code": "PAYMENT_SUCCESS",
            "message": "Your payment is successful.",
            "data": {
                "merchantId": "M1",
                "merchantTransactionId": "ORDER_1",
                "transactionId": "T123",
                "amount": 40000,
                "state": "COMPLETED",
                "responseCode": "SUCCESS",
            },
        })

    result = asyncio.run(make_gateway(handler).check_status("ORDER_1"))

    assert result.is_success
    assert result.amount == 40000
    assert result.transaction_id == "T123"
    assert result.state == "COMPLETED"

    request = seen[0]
    assert request.method == "GET"
    assert request.url.path == "/apis/hermes/pg/v1/status/M1/ORDER_1"
    assert request.headers["X-MERCHANT-ID"] == "M1"
    assert request.headers["X-VERIFY"] == status_checksum("M1", "ORDER_1", "salt", "1")


def test_check_status_without_data_keeps_order_id() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False, "code": "PAYMENT_PENDING"})

    result = asyncio.run(make_gateway(handler).check_status("ORDER_2"))

    assert result.merchant_transaction_id == "ORDER_2"
    assert result.is_pending
    assert result.amount is None


def test_health_check_reports_unreachable_host() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    assert asyncio.run(make_gateway(handler).health_check()) is False


@pytest.mark.parametrize(
    "status_code, body",
    [
        (401, {"success": False, "code": "AUTHORIZATION_FAILED", "message": "Key not found"}),
        (200, {"success": False, "code": "BAD_REQUEST"}),
        (500, {"success": False, "code": "INTERNAL_SERVER_ERROR"}),
        (503, {"success": False}),
    ],
)
def test_refused_status_check_is_a_rejection(status_code: int, body: dict) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=body)

    with pytest.raises(GatewayRejection) as exc_info:
        asyncio.run(make_gateway(handler).check_status("ORDER_1"))

    assert exc_info.value.code == body.get("code")
