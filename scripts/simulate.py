"""
Order Lifecycle Simulation Script

Fires concurrent orders at a running server and walks each one through
the lifecycle (confirm -> assign -> out_for_delivery -> delivered), with a
share of orders cancelled by the customer instead.
Run from project root after seeding: python scripts/seed.py && python scripts/simulate.py
"""

import asyncio
import json
import os
import random
import sys
import time
import argparse
from datetime import datetime
from pathlib import Path
from typing import Any

import httpx

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:5000")
TOTAL_ORDERS = 50
TOKENS_FILE = Path("data") / "seed_tokens.json"
CANCEL_RATE = 0.2

STREETS = ["Temple Street", "Nathan Road", "Queen's Road Central", "Des Voeux Road", "Hennessy Road"]


def load_seed() -> dict[str, Any]:
    if not TOKENS_FILE.exists():
        print(f"Seed file {TOKENS_FILE} not found. Run: python scripts/seed.py")
        sys.exit(1)
    return json.loads(TOKENS_FILE.read_text())


def headers_for(seed: dict[str, Any], key: str) -> dict[str, str]:
    return {"x-auth-token": seed["users"][key]["token"]}


def generate_order_payload(seed: dict[str, Any]) -> dict[str, Any]:
    """Random order against one seeded restaurant, with a correct total."""
    restaurant = random.choice(seed["restaurants"])
    picks = random.sample(restaurant["menu"], k=random.randint(1, len(restaurant["menu"])))
    items = [{"menuItem": m["id"], "quantity": random.randint(1, 3)} for m in picks]
    prices = {m["id"]: m["price"] for m in restaurant["menu"]}
    total = round(sum(prices[i["menuItem"]] * i["quantity"] for i in items), 2)
    return {
        "restaurant": restaurant["id"],
        "items": items,
        "totalAmount": total,
        "deliveryAddress": f"{random.randint(1, 200)} {random.choice(STREETS)}",
    }


async def run_order_flow(
    client: httpx.AsyncClient,
    seed: dict[str, Any],
    order_num: int,
) -> dict[str, Any]:
    """Place one order and drive it to a terminal state."""
    start_time = time.time()
    steps = []

    async def step(method: str, path: str, who: str, body: dict | None = None) -> httpx.Response:
        response = await client.request(
            method,
            f"{API_BASE_URL}{path}",
            json=body,
            headers=headers_for(seed, who),
            timeout=30.0,
        )
        steps.append(f"{method} {path} -> {response.status_code}")
        response.raise_for_status()
        return response

    try:
        created = await step("POST", "/api/orders", "customer", generate_order_payload(seed))
        order = created.json()
        order_id = order["id"]

        if random.random() < CANCEL_RATE:
            await step("DELETE", f"/api/orders/{order_id}", "customer")
            final = "cancelled"
        else:
            await step("PATCH", f"/api/orders/{order_id}/status", "owner", {"status": "confirmed"})
            await step(
                "PATCH",
                f"/api/orders/{order_id}/assign",
                "owner",
                {"deliveryPersonId": seed["users"]["driver"]["id"]},
            )
            await step("PATCH", f"/api/orders/{order_id}/status", "owner", {"status": "preparing"})
            await step("PATCH", f"/api/orders/{order_id}/status", "driver", {"status": "out_for_delivery"})
            done = await step("PATCH", f"/api/orders/{order_id}/status", "driver", {"status": "delivered"})
            final = done.json()["status"]

        return {
            "order_num": order_num,
            "success": True,
            "order_id": order_id,
            "total": order["totalAmount"],
            "final_status": final,
            "time": round(time.time() - start_time, 3),
        }
    except httpx.HTTPStatusError as e:
        return {
            "order_num": order_num,
            "success": False,
            "error": f"{steps[-1]}: {e.response.text[:100]}",
            "time": round(time.time() - start_time, 3),
        }
    except httpx.HTTPError as e:
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": round(time.time() - start_time, 3),
        }


async def run_simulation(num_orders: int = TOTAL_ORDERS) -> dict[str, Any]:
    """
    Run the lifecycle simulation.

    Args:
        num_orders: Number of concurrent order flows
    """
    seed = load_seed()

    print("=" * 70)
    print("ORDER LIFECYCLE SIMULATION")
    print("=" * 70)
    print(f"Total Orders: {num_orders}")
    print(f"Target: {API_BASE_URL}")
    print(f"Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()
    async with httpx.AsyncClient() as client:
        health = await client.get(f"{API_BASE_URL}/health")
        print(f"Health: {health.json().get('status')}")

        tasks = [run_order_flow(client, seed, i + 1) for i in range(num_orders)]
        results = await asyncio.gather(*tasks)

    total_time = round(time.time() - start_time, 2)

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]
    delivered = [r for r in successful if r["final_status"] == "delivered"]
    cancelled = [r for r in successful if r["final_status"] == "cancelled"]

    print("\n" + "=" * 70)
    print("SIMULATION RESULTS")
    print("=" * 70)
    print(f"\nCompleted Flows: {len(successful)}/{num_orders}")
    print(f"   Delivered: {len(delivered)}")
    print(f"   Cancelled: {len(cancelled)}")
    print(f"Failed Flows: {len(failed)}/{num_orders}")
    print(f"Total Time: {total_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        revenue = sum(r["total"] for r in delivered)
        print(f"\nAverage Flow Time: {avg_time}s")
        print(f"Delivered Revenue: {revenue:.2f}")

    if failed:
        print("\nFailed Flow Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")

    print("=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "total_time": total_time,
        "results": results,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Order Lifecycle Simulation")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    args = parser.parse_args()

    asyncio.run(run_simulation(args.orders))
