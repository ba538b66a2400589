"""
Storefront exceptions raised by the service layer.

Gateway failures live with the gateway code in app.services.payment.base.
"""


class StorefrontError(Exception):
    """Base class carrying a message fit to show the user."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StorefrontError):
    """Input the user can fix: missing login, empty cart, bad menu data."""


class OrderNotFoundError(StorefrontError, LookupError):
    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class MenuItemNotFoundError(StorefrontError, LookupError):
    def __init__(self, item_id: str):
        super().__init__(f"Menu item {item_id} not found")
        self.item_id = item_id
