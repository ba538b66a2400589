"""
PhonePe Response Schemas

Pydantic models for the gateway's pay, status and callback payloads.
Parsing through these models replaces unchecked nested property access:
a body that does not match raises pydantic.ValidationError, which the
client turns into a GatewayRejection.

Example pay response:
    {
        "success": true,
        "code": "PAYMENT_INITIATED",
        "message": "Payment initiated",
        "data": {
            "merchantId": "MERCHANTUAT",
            "merchantTransactionId": "ORDER_1700000000000_u1",
            "instrumentResponse": {
                "type": "PAY_PAGE",
                "redirectInfo": {
                    "url": "https://mercury-uat.phonepe.com/transact/...",
                    "method": "GET"
                }
            }
        }
    }
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.services.payment.base import PaymentStatusResult


class RedirectInfo(BaseModel):
    """Where the browser must go to pay."""
    url: str = Field(..., min_length=1)
    method: Optional[str] = None


class InstrumentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str
    redirect_info: RedirectInfo = Field(..., alias="redirectInfo")


class PayResponseData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    merchant_id: Optional[str] = Field(None, alias="merchantId")
    merchant_transaction_id: Optional[str] = Field(None, alias="merchantTransactionId")
    instrument_response: InstrumentResponse = Field(..., alias="instrumentResponse")


class GatewayEnvelope(BaseModel):
    """Fields common to every gateway answer."""
    success: bool
    code: Optional[str] = None
    message: Optional[str] = None


class GatewayPayResponse(GatewayEnvelope):
    """Answer to POST /pg/v1/pay. ``data`` is only present on success."""
    data: Optional[PayResponseData] = None


class TransactionData(BaseModel):
    """Transaction details returned by the status API and the S2S callback."""
    model_config = ConfigDict(populate_by_name=True)

    merchant_id: Optional[str] = Field(None, alias="merchantId")
    merchant_transaction_id: str = Field(..., alias="merchantTransactionId")
    transaction_id: Optional[str] = Field(None, alias="transactionId")
    amount: Optional[int] = None
    state: Optional[str] = None
    response_code: Optional[str] = Field(None, alias="responseCode")


class GatewayStatusResponse(GatewayEnvelope):
    """Answer to GET /pg/v1/status/..., and the decoded callback ``response``."""
    data: Optional[TransactionData] = None

    def to_status_result(self, merchant_transaction_id: str = "") -> PaymentStatusResult:
        """Flatten into a PaymentStatusResult; ``data`` wins over the fallback id."""
        data = self.data
        return PaymentStatusResult(
            merchant_transaction_id=(
                data.merchant_transaction_id if data else merchant_transaction_id
            ),
            code=self.code or "UNKNOWN",
            amount=data.amount if data else None,
            transaction_id=data.transaction_id if data else None,
            state=data.state if data else None,
            message=self.message,
            raw=self.model_dump(by_alias=True),
        )


class ServerCallbackBody(BaseModel):
    """Body the gateway POSTs to callbackUrl."""
    response: str = Field(..., min_length=1)
