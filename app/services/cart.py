"""
Cart pricing.

The client owns the cart; the server never trusts client-side prices. Each
line is repriced against the current menu before quoting or checking out.
"""

from dataclasses import dataclass, field
from typing import Iterable, Mapping

from app.core.exceptions import ValidationError
from app.schemas import CartLineIn


@dataclass(frozen=True)
class CartLine:
    item_id: str
    name: str
    price: float
    quantity: int

    @property
    def line_total(self) -> float:
        return round(self.price * self.quantity, 2)

    def to_document(self) -> dict:
        return {
            "id": self.item_id,
            "name": self.name,
            "price": self.price,
            "quantity": self.quantity,
        }


@dataclass(frozen=True)
class CartSnapshot:
    """Priced, immutable view of a cart at one point in time."""
    lines: tuple[CartLine, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def total_items(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def subtotal(self) -> float:
        return round(sum(line.line_total for line in self.lines), 2)


def order_total(subtotal: float, delivery_fee: float) -> float:
    """Amount charged: cart subtotal plus the flat delivery fee."""
    return round(subtotal + delivery_fee, 2)


def price_cart(lines: Iterable[CartLineIn], menu: Mapping[str, dict]) -> CartSnapshot:
    """
    Reprice client cart lines against ``menu`` (item id -> menu document).

    Lines with quantity 0 are dropped, repeated items are merged.

    Raises:
        ValidationError: A line references an item not on the menu
    """
    quantities: dict[str, int] = {}
    for line in lines:
        if line.quantity < 1:
            continue
        if line.item_id not in menu:
            raise ValidationError(f"Item {line.item_id} is no longer on the menu")
        quantities[line.item_id] = quantities.get(line.item_id, 0) + line.quantity

    priced = tuple(
        CartLine(
            item_id=item_id,
            name=menu[item_id]["name"],
            price=menu[item_id]["price"],
            quantity=quantity,
        )
        for item_id, quantity in quantities.items()
    )
    return CartSnapshot(lines=priced)
