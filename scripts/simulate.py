"""
Checkout Simulation Script

Drives the storefront API in development mode: seeds the menu, fires many
concurrent checkouts, fires a burst of checkouts from one user (only one
must reach the gateway), then completes payments through the redirect
callback.
Run from project root with the API running: python scripts/simulate.py
"""

import asyncio
import sys
import random
import time
import argparse
from datetime import datetime
from typing import Any

import httpx

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:8001"
TOTAL_CHECKOUTS = 20
BURST_SIZE = 5

ADMIN_HEADERS = {"X-User-Id": "admin", "X-User-Name": "Admin", "X-User-Admin": "true"}

FIRST_NAMES = ["Aarav", "Diya", "Ishaan", "Meera", "Kabir", "Ananya", "Rohan", "Priya"]


def user_headers(n: int) -> dict[str, str]:
    name = random.choice(FIRST_NAMES)
    return {
        "X-User-Id": f"sim{n}",
        "X-User-Name": name,
        "X-User-Email": f"{name.lower()}{n}@example.com",
    }


def random_cart(menu: list[dict]) -> dict[str, Any]:
    picks = random.sample(menu, k=min(len(menu), random.randint(1, 3)))
    return {"items": [{"item_id": m["id"], "quantity": random.randint(1, 3)} for m in picks]}


async def seed_menu(client: httpx.AsyncClient) -> list[dict]:
    await client.post(f"{API_BASE_URL}/api/admin/menu/populate", headers=ADMIN_HEADERS)
    response = await client.get(f"{API_BASE_URL}/api/menu")
    response.raise_for_status()
    return response.json()["items"]


async def send_checkout(
    client: httpx.AsyncClient,
    headers: dict[str, str],
    cart: dict[str, Any],
) -> dict[str, Any]:
    """POST /api/checkout and summarize the answer."""
    start_time = time.time()
    try:
        response = await client.post(
            f"{API_BASE_URL}/api/checkout",
            json=cart,
            headers=headers,
            timeout=30.0,
        )
        data = response.json()
        return {
            "status_code": response.status_code,
            "success": data.get("success", False),
            "order_id": data.get("order_id"),
            "amount": data.get("amount"),
            "message": data.get("message"),
            "time": round(time.time() - start_time, 3),
        }
    except httpx.HTTPError as e:
        return {
            "status_code": None,
            "success": False,
            "message": str(e)[:100],
            "time": round(time.time() - start_time, 3),
        }


async def complete_payment(client: httpx.AsyncClient, order_id: str) -> int:
    """Post the browser redirect the simulated pay page would send."""
    response = await client.post(
        f"{API_BASE_URL}/payment/callback",
        data={"transactionId": order_id, "code": "PAYMENT_SUCCESS"},
    )
    return response.status_code


async def run_simulation(num_checkouts: int = TOTAL_CHECKOUTS) -> dict[str, Any]:
    print("=" * 70)
    print("🔥 CHECKOUT SIMULATION")
    print("=" * 70)
    print(f"📋 Checkouts: {num_checkouts}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()

    async with httpx.AsyncClient() as client:
        menu = await seed_menu(client)
        print(f"\n🍛 Menu has {len(menu)} items")

        print("\n🚀 Firing concurrent checkouts from distinct users...")
        results = await asyncio.gather(*[
            send_checkout(client, user_headers(i), random_cart(menu))
            for i in range(num_checkouts)
        ])

        print(f"\n🖱️  Firing a burst of {BURST_SIZE} checkouts from one user...")
        burst_headers = user_headers(10_000)
        burst_cart = random_cart(menu)
        burst = await asyncio.gather(*[
            send_checkout(client, burst_headers, burst_cart) for _ in range(BURST_SIZE)
        ])

        redirected = [r for r in results + burst if r["success"]]
        print(f"\n💳 Completing {len(redirected)} payments via callback...")
        callback_codes = await asyncio.gather(*[
            complete_payment(client, r["order_id"]) for r in redirected
        ])

        dashboard = (await client.get(
            f"{API_BASE_URL}/api/admin/dashboard", headers=ADMIN_HEADERS
        )).json()

    total_time = round(time.time() - start_time, 2)
    burst_redirected = sum(1 for r in burst if r["success"])

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n✅ Redirected: {sum(1 for r in results if r['success'])}/{num_checkouts}")
    print(f"🖱️  Burst reaching the gateway: {burst_redirected}/{BURST_SIZE} (expected ≤ 1)")
    print(f"💳 Callbacks accepted: {sum(1 for c in callback_codes if c == 200)}/{len(callback_codes)}")
    print(f"📦 Dashboard: {dashboard}")
    print(f"⏱️  Total Time: {total_time}s")

    failed = [r for r in results if not r["success"]]
    if failed:
        print("\n⚠️  Failed checkouts (first 5):")
        for f in failed[:5]:
            print(f"   HTTP {f['status_code']}: {f['message']}")
    print("=" * 70)

    return {
        "total": num_checkouts,
        "redirected": len(redirected),
        "burst_redirected": burst_redirected,
        "total_time": total_time,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Checkout Simulation Script")
    parser.add_argument("--checkouts", type=int, default=TOTAL_CHECKOUTS, help="Number of checkouts")
    parser.add_argument("--url", default=API_BASE_URL, help="API base URL")
    args = parser.parse_args()

    API_BASE_URL = args.url.rstrip("/")
    asyncio.run(run_simulation(args.checkouts))
