import asyncio

import pytest
from pydantic import ValidationError as SchemaValidationError

from app.core.exceptions import MenuItemNotFoundError
from app.schemas import MenuItemCreate, MenuItemUpdate
from app.services.menu import DEFAULT_MENU, MenuService, deduplicate
from app.services.store import MENU_ITEMS, ORDERS


def test_deduplicate_keeps_first_without_timestamps() -> None:
    items = [
        {"id": "a", "name": "Masala Chai"},
        {"id": "b", "name": "masala chai"},
    ]
    assert [i["id"] for i in deduplicate(items)] == ["a"]


def test_deduplicate_prefers_newer_item() -> None:
    items = [
        {"id": "a", "name": "Masala Chai", "createdAt": "2024-01-01T00:00:00+00:00"},
        {"id": "b", "name": "Masala Chai", "createdAt": "2024-03-01T00:00:00+00:00"},
        {"id": "c", "name": "Garlic Naan"},
    ]
    assert sorted(i["id"] for i in deduplicate(items)) == ["b", "c"]


def test_add_and_get_item(store) -> None:
    service = MenuService(store)

    created = asyncio.run(service.add_item(MenuItemCreate(name="  Samosa ", price=40, category="Starters")))

    assert created["name"] == "Samosa"
    fetched = asyncio.run(service.get_item(created["id"]))
    assert fetched["price"] == 40
    assert fetched["createdAt"] == fetched["updatedAt"]


def test_update_only_changes_given_fields(store) -> None:
    service = MenuService(store)
    created = asyncio.run(service.add_item(MenuItemCreate(name="Samosa", price=40, category="Starters")))

    updated = asyncio.run(service.update_item(created["id"], MenuItemUpdate(price=45)))

    assert updated["price"] == 45
    assert updated["name"] == "Samosa"


def test_update_missing_item_raises(store) -> None:
    with pytest.raises(MenuItemNotFoundError):
        asyncio.run(MenuService(store).update_item("nope", MenuItemUpdate(price=10)))


def test_delete_item(store) -> None:
    service = MenuService(store)
    created = asyncio.run(service.add_item(MenuItemCreate(name="Samosa", price=40, category="Starters")))

    asyncio.run(service.delete_item(created["id"]))

    with pytest.raises(MenuItemNotFoundError):
        asyncio.run(service.delete_item(created["id"]))


def test_populate_is_idempotent(store) -> None:
    service = MenuService(store)

    first = asyncio.run(service.populate_menu())
    second = asyncio.run(service.populate_menu())

    assert first == len(DEFAULT_MENU)
    assert second == 0
    assert len(asyncio.run(store.list(MENU_ITEMS))) == len(DEFAULT_MENU)


def test_list_items_filters_and_sorts(store) -> None:
    service = MenuService(store)
    asyncio.run(service.populate_menu())

    starters = asyncio.run(service.list_items("starters"))
    everything = asyncio.run(service.list_items())

    assert [i["name"] for i in starters] == ["Chicken 65", "Paneer Tikka"]
    keys = [(i["category"], i["name"]) for i in everything]
    assert keys == sorted(keys)


def test_dashboard_stats(store) -> None:
    service = MenuService(store)
    asyncio.run(service.populate_menu())
    for doc_id, status, total in [("o1", "completed", 400), ("o2", "completed", 150.5), ("o3", "pending", 90), ("o4", "failed", 60)]:
        asyncio.run(store.set(ORDERS, doc_id, {"status": status, "total": total}))

    stats = asyncio.run(service.dashboard_stats())

    assert stats == {
        "total_items": len(DEFAULT_MENU),
        "total_orders": 4,
        "completed_orders": 2,
        "pending_orders": 1,
        "failed_orders": 1,
        "completed_revenue": 550.5,
    }


@pytest.mark.parametrize("field", ["name", "category"])
def test_update_rejects_blank_text(field: str) -> None:
    with pytest.raises(SchemaValidationError):
        MenuItemUpdate(**{field: "   "})


def test_update_strips_given_text() -> None:
    update = MenuItemUpdate(name="  Paneer Tikka ")

    assert update.name == "Paneer Tikka"
    assert update.category is None
