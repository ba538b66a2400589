"""
Pydantic Schemas for Request/Response Validation

Document fields are camelCase (as stored in the document database); the
response models use snake_case attributes with camelCase aliases, so the
API serializes the same field names the store uses.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Any
from datetime import datetime
from enum import Enum


# =============================================================================
# ENUMS
# =============================================================================

class OrderStatusEnum(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class CheckoutStateEnum(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    SUBMITTING = "submitting"
    REDIRECTED = "redirected"
    FAILED = "failed"


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class CartLineIn(BaseModel):
    """One cart line as sent by the client. Prices are looked up server-side."""
    item_id: str = Field(..., min_length=1, examples=["b1c2d3"])
    quantity: int = Field(..., ge=0, le=99, examples=[2])


class CartRequest(BaseModel):
    """Cart contents for a quote or a checkout."""
    items: List[CartLineIn] = Field(default_factory=list)


def _strip_required(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Please fill in all required fields")
    return v


class MenuItemCreate(BaseModel):
    """Request schema for adding a menu item."""
    name: str = Field(..., min_length=1, max_length=100, examples=["Paneer Tikka"])
    price: float = Field(..., gt=0, examples=[240])
    category: str = Field(..., min_length=1, max_length=50, examples=["Starters"])
    description: str = Field(default="", max_length=500)
    image: str = Field(default="", max_length=500)

    @field_validator("name", "category")
    @classmethod
    def strip_required(cls, v: str) -> str:
        return _strip_required(v)


class MenuItemUpdate(BaseModel):
    """Partial update of a menu item; omitted fields are kept."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    price: Optional[float] = Field(None, gt=0)
    category: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=500)
    image: Optional[str] = Field(None, max_length=500)

    @field_validator("name", "category")
    @classmethod
    def strip_if_given(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _strip_required(v)


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class MenuItemResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    price: float
    description: str = ""
    category: str
    image: str = ""
    created_at: Optional[str] = Field(None, alias="createdAt")
    updated_at: Optional[str] = Field(None, alias="updatedAt")


class MenuListResponse(BaseModel):
    total: int
    items: List[MenuItemResponse]


class CartLineResponse(BaseModel):
    item_id: str
    name: str
    price: float
    quantity: int
    line_total: float


class CartQuoteResponse(BaseModel):
    """Cart priced against the current menu."""
    lines: List[CartLineResponse]
    total_items: int
    subtotal: float
    delivery_fee: float
    total: float
    currency_symbol: str


class CheckoutResponse(BaseModel):
    """
    Outcome of a checkout attempt.

    On success the client performs a full-page navigation to redirect_url.
    """
    success: bool
    state: CheckoutStateEnum
    order_id: Optional[str] = None
    redirect_url: Optional[str] = None
    amount: Optional[float] = None
    message: Optional[str] = None


class OrderResponse(BaseModel):
    """Response schema for a single order."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    status: OrderStatusEnum
    total: float
    subtotal: Optional[float] = None
    delivery_fee: Optional[float] = Field(None, alias="deliveryFee")
    items: List[dict[str, Any]] = Field(default_factory=list)
    user_id: Optional[str] = Field(None, alias="userId")
    gateway_code: Optional[str] = Field(None, alias="gatewayCode")
    gateway_transaction_id: Optional[str] = Field(None, alias="gatewayTransactionId")
    created_at: Optional[str] = Field(None, alias="createdAt")
    updated_at: Optional[str] = Field(None, alias="updatedAt")


class OrderListResponse(BaseModel):
    """Response for listing multiple orders."""
    total: int
    orders: List[OrderResponse]


class DashboardResponse(BaseModel):
    """Admin dashboard figures."""
    total_items: int
    total_orders: int
    completed_orders: int
    pending_orders: int
    failed_orders: int
    completed_revenue: float


class PopulateMenuResponse(BaseModel):
    success: bool
    added: int


class CallbackAckResponse(BaseModel):
    """Answer to the gateway's server-to-server callback."""
    success: bool
    order_id: str
    status: OrderStatusEnum


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    document_store: str
    redis: str
    payment_gateway: str
    timestamp: datetime
