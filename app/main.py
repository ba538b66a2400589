"""
FastAPI Application Entry Point

Restaurant Storefront - Hybrid Architecture
Supports both Mock services (development) and Real APIs (production).

Endpoints:
    - GET  /api/menu: Browse the menu
    - POST /api/cart/quote: Price a cart
    - POST /api/checkout: Start a payment, returns the gateway redirect URL
    - POST /payment/callback: Browser redirect back from the gateway
    - POST /api/payment/callback: Gateway server-to-server callback
    - GET  /api/orders/{order_id}: Order status
    - /api/admin/...: Menu and order management (admin only)
    - GET  /health: System health check
"""

import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Depends, Query, Request, Header
from fastapi.responses import JSONResponse, HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from fastapi.middleware.cors import CORSMiddleware
import redis

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Internal imports
from app.core.config import StoreBackend, get_settings, setup_logging
from app.core.exceptions import MenuItemNotFoundError, OrderNotFoundError, ValidationError
from app.database import dispose_db, init_db
from app.schemas import (
    CallbackAckResponse,
    CartLineResponse,
    CartQuoteResponse,
    CartRequest,
    CheckoutResponse,
    DashboardResponse,
    ErrorResponse,
    HealthResponse,
    MenuItemCreate,
    MenuItemResponse,
    MenuItemUpdate,
    MenuListResponse,
    OrderListResponse,
    OrderResponse,
    OrderStatusEnum,
    PopulateMenuResponse,
)
from app.services.callback import get_callback_handler
from app.services.cart import CartSnapshot, order_total, price_cart
from app.services.checkout import CheckoutSession, get_checkout_flow
from app.services.identity import Identity, get_identity, require_admin, require_identity
from app.services.menu import MenuService
from app.services.payment import (
    CallbackVerificationError,
    MockPaymentGateway,
    PaymentError,
    get_payment_gateway,
)
from app.services.payment.phonepe_schemas import ServerCallbackBody
from app.services.store import ORDERS, get_document_store

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

# Template configuration
templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))

# HTTP status for each checkout failure class
CHECKOUT_ERROR_STATUS = {
    "authentication": 401,
    "validation": 400,
    "in_progress": 409,
    "gateway": 402,
    "network": 502,
}


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    if settings.effective_store_backend == StoreBackend.SQL:
        await init_db()
        logger.info("✅ Database initialized")

    store = get_document_store()
    gateway = get_payment_gateway()
    logger.info(f"✅ Document Store: {store.provider_name}")
    logger.info(f"✅ Payment Gateway: {gateway.provider_name}")

    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")

    logger.info("✅ Application ready!")

    yield  # Application runs

    logger.info("Shutting down...")
    if settings.effective_store_backend == StoreBackend.SQL:
        await dispose_db()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Restaurant storefront API: menu, cart, checkout through the PhonePe "
        "payment gateway, and admin management."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_menu_service() -> MenuService:
    return MenuService(get_document_store())


def request_origin(request: Request) -> str:
    """Origin the gateway should send the browser back to."""
    if settings.public_base_url:
        return settings.public_base_url.rstrip("/")
    return str(request.base_url).rstrip("/")


def quote_response(cart: CartSnapshot) -> CartQuoteResponse:
    return CartQuoteResponse(
        lines=[
            CartLineResponse(
                item_id=line.item_id,
                name=line.name,
                price=line.price,
                quantity=line.quantity,
                line_total=line.line_total,
            )
            for line in cart.lines
        ],
        total_items=cart.total_items,
        subtotal=cart.subtotal,
        delivery_fee=settings.delivery_fee,
        total=order_total(cart.subtotal, settings.delivery_fee),
        currency_symbol=settings.currency_symbol,
    )


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"🍛 Welcome to {settings.restaurant_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "menu": "/api/menu",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check() -> HealthResponse:
    """Verify all system components are operational."""

    store_status = "healthy" if await get_document_store().health_check() else "unhealthy"

    # Check Redis (Celery broker)
    redis_status = "healthy"
    try:
        r = redis.Redis.from_url(settings.redis_url, socket_timeout=2)
        r.ping()
        r.close()
    except redis.RedisError as e:
        redis_status = f"unhealthy: {str(e)}"
        logger.error(f"Redis health check failed: {e}")

    gateway_status = "healthy" if await get_payment_gateway().health_check() else "unhealthy"

    overall = "operational" if all(
        s == "healthy" for s in [store_status, redis_status, gateway_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        document_store=store_status,
        redis=redis_status,
        payment_gateway=gateway_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# MENU & CART ENDPOINTS
# =============================================================================

@app.get("/api/menu", response_model=MenuListResponse, tags=["Menu"])
async def list_menu(
    category: Optional[str] = Query(None),
    menu: MenuService = Depends(get_menu_service),
) -> MenuListResponse:
    """Menu items, one per name, optionally filtered by category."""
    items = await menu.list_items(category)
    return MenuListResponse(
        total=len(items),
        items=[MenuItemResponse.model_validate(i) for i in items],
    )


@app.get("/api/menu/{item_id}", response_model=MenuItemResponse, tags=["Menu"])
async def get_menu_item(
    item_id: str,
    menu: MenuService = Depends(get_menu_service),
) -> MenuItemResponse:
    try:
        return MenuItemResponse.model_validate(await menu.get_item(item_id))
    except MenuItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@app.post(
    "/api/cart/quote",
    response_model=CartQuoteResponse,
    responses={400: {"model": ErrorResponse}},
    tags=["Cart"],
)
async def quote_cart(
    body: CartRequest,
    menu: MenuService = Depends(get_menu_service),
) -> CartQuoteResponse:
    """Price a cart against current menu prices, delivery fee included."""
    try:
        cart = price_cart(body.items, await menu.menu_index())
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return quote_response(cart)


# =============================================================================
# CHECKOUT & PAYMENT CALLBACK ENDPOINTS
# =============================================================================

@app.post(
    "/api/checkout",
    response_model=CheckoutResponse,
    responses={
        400: {"model": CheckoutResponse},
        401: {"model": CheckoutResponse},
        402: {"model": CheckoutResponse},
        409: {"model": CheckoutResponse},
        502: {"model": CheckoutResponse},
    },
    tags=["Checkout"],
    summary="Start Checkout",
)
async def checkout(
    body: CartRequest,
    request: Request,
    identity: Optional[Identity] = Depends(get_identity),
    menu: MenuService = Depends(get_menu_service),
) -> JSONResponse:
    """
    Create a pending order and initiate payment with the gateway.

    On success the response carries ``redirect_url``; the client must do a
    full-page navigation to it. Payment completion arrives later through
    the callbacks.
    """
    cart = CartSnapshot()
    if identity is not None:
        try:
            cart = price_cart(body.items, await menu.menu_index())
        except ValidationError as e:
            response = CheckoutResponse(success=False, state="idle", message=e.message)
            return JSONResponse(status_code=400, content=response.model_dump(mode="json"))

    outcome = await get_checkout_flow().checkout(
        CheckoutSession(identity=identity, cart=cart, origin=request_origin(request))
    )

    response = CheckoutResponse(
        success=outcome.redirected,
        state=outcome.state,
        order_id=outcome.order_id,
        redirect_url=outcome.redirect_url,
        amount=outcome.amount,
        message=outcome.notice,
    )
    status_code = 200 if outcome.redirected else CHECKOUT_ERROR_STATUS.get(outcome.error, 400)
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))


@app.post(
    "/payment/callback",
    response_class=HTMLResponse,
    tags=["Payment Callback"],
    summary="Browser Redirect From Gateway",
)
async def payment_redirect_callback(request: Request) -> HTMLResponse:
    """
    Where the gateway sends the browser after the pay page.

    The posted form is not proof of payment; the handler confirms the
    outcome with the gateway's status API before touching the order.
    """
    form = dict(await request.form())
    context: dict[str, Any] = {"restaurant_name": settings.restaurant_name}
    status_code = 200

    try:
        result = await get_callback_handler().handle_redirect(form)
        context.update(order_id=result.order_id, status=result.status.value)
    except CallbackVerificationError as e:
        logger.warning(f"Unusable redirect callback: {e}")
        context.update(status="invalid", message=e.message)
        status_code = 400
    except OrderNotFoundError as e:
        context.update(status="unknown", message=e.message)
        status_code = 404
    except PaymentError as e:
        logger.error(f"Could not confirm payment status: {e}")
        context.update(
            status="unverified",
            message="We could not confirm your payment yet. It will update shortly.",
        )
        status_code = 502

    return templates.TemplateResponse(
        request, "payment_callback.html", context, status_code=status_code
    )


@app.post(
    "/api/payment/callback",
    response_model=CallbackAckResponse,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    tags=["Payment Callback"],
    summary="Gateway Server-to-Server Callback",
)
async def payment_server_callback(
    body: ServerCallbackBody,
    x_verify: Optional[str] = Header(None, alias="X-VERIFY"),
) -> CallbackAckResponse:
    """Signed payment result posted by the gateway."""
    try:
        result = await get_callback_handler().handle_server_callback(body.response, x_verify or "")
    except CallbackVerificationError as e:
        raise HTTPException(status_code=401, detail=e.message)
    except OrderNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)

    return CallbackAckResponse(success=True, order_id=result.order_id, status=result.status)


@app.get(
    "/payment/mock-pay/{order_id}",
    response_class=HTMLResponse,
    tags=["Simulation"],
    summary="Simulated Pay Page (Development)",
)
async def mock_pay_page(request: Request, order_id: str) -> HTMLResponse:
    """Stand-in for the gateway's hosted pay page in development mode."""
    if not settings.is_development:
        raise HTTPException(
            status_code=403,
            detail="Simulated pay page only available in development mode"
        )
    return templates.TemplateResponse(
        request,
        "mock_pay.html",
        {"order_id": order_id, "restaurant_name": settings.restaurant_name},
    )


MOCK_PAY_CODES = ("PAYMENT_SUCCESS", "PAYMENT_PENDING", "PAYMENT_ERROR")


@app.post(
    "/payment/mock-pay/{order_id}",
    tags=["Simulation"],
    summary="Simulated Pay Page Result (Development)",
)
async def mock_pay_submit(request: Request, order_id: str) -> RedirectResponse:
    """
    Record the button pressed on the simulated pay page, then send the
    browser on to the redirect callback like the real gateway does.
    """
    if not settings.is_development:
        raise HTTPException(
            status_code=403,
            detail="Simulated pay page only available in development mode"
        )

    form = await request.form()
    code = form.get("code")
    if code not in MOCK_PAY_CODES:
        raise HTTPException(status_code=400, detail=f"Unknown payment result: {code}")

    gateway = get_payment_gateway()
    if isinstance(gateway, MockPaymentGateway):
        gateway.complete(order_id, code)

    # 307 re-posts the form, transactionId included
    return RedirectResponse(url="/payment/callback", status_code=307)


# =============================================================================
# ORDER ENDPOINTS
# =============================================================================

@app.get(
    "/api/orders/{order_id}",
    response_model=OrderResponse,
    tags=["Orders"],
)
async def get_order(
    order_id: str,
    identity: Identity = Depends(require_identity),
) -> OrderResponse:
    """Get an order; visible to its owner and to admins."""
    order = await get_document_store().get(ORDERS, order_id)

    if order is None or (order.get("userId") != identity.user_id and not identity.is_admin):
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found")

    return OrderResponse.model_validate(order)


# =============================================================================
# ADMIN ENDPOINTS
# =============================================================================

@app.get(
    "/api/admin/dashboard",
    response_model=DashboardResponse,
    tags=["Admin"],
)
async def admin_dashboard(
    _: Identity = Depends(require_admin),
    menu: MenuService = Depends(get_menu_service),
) -> DashboardResponse:
    """Menu and order totals."""
    return DashboardResponse(**await menu.dashboard_stats())


@app.get(
    "/api/admin/orders",
    response_model=OrderListResponse,
    tags=["Admin"],
)
async def admin_list_orders(
    status: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    _: Identity = Depends(require_admin),
) -> OrderListResponse:
    """Orders, newest first."""
    filters = None
    if status:
        try:
            filters = {"status": OrderStatusEnum(status.lower()).value}
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid status. Options: {[s.value for s in OrderStatusEnum]}"
            )

    orders = await get_document_store().list(ORDERS, filters)
    orders.sort(key=lambda o: o.get("createdAt", ""), reverse=True)

    return OrderListResponse(
        total=len(orders),
        orders=[OrderResponse.model_validate(o) for o in orders[skip:skip + limit]],
    )


@app.post(
    "/api/admin/menu",
    response_model=MenuItemResponse,
    status_code=201,
    tags=["Admin"],
)
async def admin_add_menu_item(
    body: MenuItemCreate,
    _: Identity = Depends(require_admin),
    menu: MenuService = Depends(get_menu_service),
) -> MenuItemResponse:
    return MenuItemResponse.model_validate(await menu.add_item(body))


@app.put(
    "/api/admin/menu/{item_id}",
    response_model=MenuItemResponse,
    tags=["Admin"],
)
async def admin_update_menu_item(
    item_id: str,
    body: MenuItemUpdate,
    _: Identity = Depends(require_admin),
    menu: MenuService = Depends(get_menu_service),
) -> MenuItemResponse:
    try:
        return MenuItemResponse.model_validate(await menu.update_item(item_id, body))
    except MenuItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@app.delete(
    "/api/admin/menu/{item_id}",
    status_code=204,
    tags=["Admin"],
)
async def admin_delete_menu_item(
    item_id: str,
    _: Identity = Depends(require_admin),
    menu: MenuService = Depends(get_menu_service),
) -> None:
    try:
        await menu.delete_item(item_id)
    except MenuItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@app.post(
    "/api/admin/menu/populate",
    response_model=PopulateMenuResponse,
    tags=["Admin"],
)
async def admin_populate_menu(
    _: Identity = Depends(require_admin),
    menu: MenuService = Depends(get_menu_service),
) -> PopulateMenuResponse:
    """Seed the default menu; items already present by name are skipped."""
    added = await menu.populate_menu()
    return PopulateMenuResponse(success=True, added=added)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.api_host, port=settings.api_port, reload=settings.debug)
