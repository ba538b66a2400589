"""
Menu and admin dashboard operations over the document store.
"""

import logging
from typing import Optional

from app.core.exceptions import MenuItemNotFoundError
from app.schemas import MenuItemCreate, MenuItemUpdate, OrderStatusEnum
from app.services.store import MENU_ITEMS, ORDERS, BaseDocumentStore, utcnow_iso

logger = logging.getLogger(__name__)


# Seed menu for a fresh store (prices in rupees)
DEFAULT_MENU = [
    {
        "name": "Paneer Tikka",
        "price": 240,
        "category": "Starters",
        "description": "Cottage cheese cubes marinated in spiced yogurt, chargrilled.",
        "image": "https://images.unsplash.com/photo-1567188040759-fb8a883dc6d8",
    },
    {
        "name": "Chicken 65",
        "price": 260,
        "category": "Starters",
        "description": "Crisp fried chicken tossed with curry leaves and chillies.",
        "image": "https://images.unsplash.com/photo-1610057099443-fde8c4d50f91",
    },
    {
        "name": "Butter Chicken",
        "price": 320,
        "category": "Main Course",
        "description": "Tandoori chicken simmered in a tomato and butter gravy.",
        "image": "https://images.unsplash.com/photo-1603894584373-5ac82b2ae398",
    },
    {
        "name": "Dal Makhani",
        "price": 220,
        "category": "Main Course",
        "description": "Black lentils slow-cooked overnight with cream.",
        "image": "https://images.unsplash.com/photo-1546833999-b9f581a1996d",
    },
    {
        "name": "Veg Biryani",
        "price": 250,
        "category": "Rice",
        "description": "Basmati rice layered with vegetables and saffron.",
        "image": "https://images.unsplash.com/photo-1563379091339-03b21ab4a4f8",
    },
    {
        "name": "Garlic Naan",
        "price": 60,
        "category": "Breads",
        "description": "Leavened flatbread with garlic and coriander.",
        "image": "https://images.unsplash.com/photo-1601050690597-df0568f70950",
    },
    {
        "name": "Gulab Jamun",
        "price": 90,
        "category": "Desserts",
        "description": "Milk dumplings soaked in cardamom syrup.",
        "image": "https://images.unsplash.com/photo-1666190092159-3171cf0fbb12",
    },
    {
        "name": "Masala Chai",
        "price": 50,
        "category": "Beverages",
        "description": "Spiced milk tea.",
        "image": "https://images.unsplash.com/photo-1561336313-0bd5e0b27ec8",
    },
]


def _is_newer(candidate: dict, current: dict) -> bool:
    created, existing = candidate.get("createdAt"), current.get("createdAt")
    return bool(created and existing and created > existing)


def deduplicate(items: list[dict]) -> list[dict]:
    """
    One item per case-insensitive name.

    The first item seen for a name wins unless a later one has a newer
    createdAt; items without timestamps never displace each other.
    """
    unique: dict[str, dict] = {}
    for item in items:
        key = item.get("name", "").lower()
        if key not in unique or _is_newer(item, unique[key]):
            unique[key] = item
    return list(unique.values())


class MenuService:
    def __init__(self, store: BaseDocumentStore):
        self._store = store

    async def list_items(self, category: Optional[str] = None) -> list[dict]:
        items = deduplicate(await self._store.list(MENU_ITEMS))
        if category:
            items = [i for i in items if i.get("category", "").lower() == category.lower()]
        return sorted(items, key=lambda i: (i.get("category", ""), i.get("name", "")))

    async def menu_index(self) -> dict[str, dict]:
        """Every stored menu document by id, duplicates included, for pricing carts."""
        return {item["id"]: item for item in await self._store.list(MENU_ITEMS)}

    async def get_item(self, item_id: str) -> dict:
        item = await self._store.get(MENU_ITEMS, item_id)
        if item is None:
            raise MenuItemNotFoundError(item_id)
        return item

    async def add_item(self, data: MenuItemCreate) -> dict:
        now = utcnow_iso()
        document = {**data.model_dump(), "createdAt": now, "updatedAt": now}
        item_id = await self._store.add(MENU_ITEMS, document)
        logger.info(f"Menu item added: {data.name} ({item_id})")
        return {**document, "id": item_id}

    async def update_item(self, item_id: str, data: MenuItemUpdate) -> dict:
        await self.get_item(item_id)
        changes = data.model_dump(exclude_none=True)
        changes["updatedAt"] = utcnow_iso()
        updated = await self._store.update(MENU_ITEMS, item_id, changes)
        logger.info(f"Menu item updated: {item_id}")
        return updated

    async def delete_item(self, item_id: str) -> None:
        if not await self._store.delete(MENU_ITEMS, item_id):
            raise MenuItemNotFoundError(item_id)
        logger.info(f"Menu item deleted: {item_id}")

    async def populate_menu(self) -> int:
        """Add any DEFAULT_MENU item whose name is not on the menu yet."""
        existing = {item.get("name", "").lower() for item in await self._store.list(MENU_ITEMS)}
        added = 0
        for entry in DEFAULT_MENU:
            if entry["name"].lower() in existing:
                continue
            await self.add_item(MenuItemCreate(**entry))
            added += 1
        logger.info(f"Menu populated with {added} items")
        return added

    async def dashboard_stats(self) -> dict:
        items = deduplicate(await self._store.list(MENU_ITEMS))
        orders = await self._store.list(ORDERS)

        def count(status: OrderStatusEnum) -> int:
            return sum(1 for o in orders if o.get("status") == status.value)

        revenue = sum(
            o.get("total", 0) for o in orders
            if o.get("status") == OrderStatusEnum.COMPLETED.value
        )
        return {
            "total_items": len(items),
            "total_orders": len(orders),
            "completed_orders": count(OrderStatusEnum.COMPLETED),
            "pending_orders": count(OrderStatusEnum.PENDING),
            "failed_orders": count(OrderStatusEnum.FAILED),
            "completed_revenue": round(revenue, 2),
        }
