import asyncio
import json

import pytest

import app.main as main
from app.core.errors import Forbidden
from app.models import new_id
from app.services.auth import SignedTokenAuthService
from app.services.notifications import InMemoryEventBus


def order_body(world, total=25.0, **overrides):
    body = {
        "restaurant": world.restaurant.id,
        "items": [
            {"menuItem": world.item_a.id, "quantity": 2},
            {"menuItem": world.item_b.id, "quantity": 1},
        ],
        "totalAmount": total,
        "deliveryAddress": "1 Harbour Road",
    }
    body.update(overrides)
    return body


@pytest.fixture
def create(client, world, tokens):
    async def _create(who="customer", **kwargs):
        response = await client.post("/api/orders", json=order_body(world, **kwargs), headers=tokens[who])
        assert response.status_code == 201, response.text
        return response.json()

    return _create


# =============================================================================
# ROOT, HEALTH & RESTAURANTS
# =============================================================================

async def test_root_and_health(client):
    root = await client.get("/")
    assert root.status_code == 200
    assert root.json()["health"] == "/health"

    health = await client.get("/health")
    assert health.status_code == 200
    assert health.json()["database"] == "healthy"
    assert health.json()["eventBus"] == "healthy"


async def test_list_restaurants(client, world):
    response = await client.get("/api/restaurants")
    assert response.status_code == 200
    assert [r["name"] for r in response.json()] == ["Burger Barn", "Pizza Palace"]


async def test_restaurant_detail_shows_available_menu(client, world):
    response = await client.get(f"/api/restaurants/{world.restaurant.id}")
    assert response.status_code == 200
    data = response.json()
    assert data["restaurant"]["ownerId"] == world.users["owner"].id
    assert {m["name"] for m in data["menu"]} == {"Margherita", "Garlic Bread"}

    assert (await client.get(f"/api/restaurants/{new_id()}")).status_code == 404
    assert (await client.get("/api/restaurants/not-an-id")).status_code == 400


# =============================================================================
# CREATE
# =============================================================================

async def test_create_order(create, world):
    order = await create()

    assert order["status"] == "placed"
    assert order["totalAmount"] == 25.0
    assert order["customer"]["id"] == world.users["customer"].id
    assert order["restaurant"]["name"] == "Pizza Palace"
    assert [(i["menuItem"]["name"], i["quantity"], i["unitPrice"], i["lineTotal"]) for i in order["items"]] == [
        ("Margherita", 2, 10.0, 20.0),
        ("Garlic Bread", 1, 5.0, 5.0),
    ]
    assert order["assignedTo"] is None
    assert order["version"] == 1


async def test_create_order_amount_mismatch(client, world, tokens):
    response = await client.post("/api/orders", json=order_body(world, total=20), headers=tokens["customer"])
    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "amount_mismatch",
        "message": "Total amount does not match calculated total",
        "expected": 25.0,
        "received": 20.0,
    }


async def test_create_order_requires_token(client, world):
    response = await client.post("/api/orders", json=order_body(world))
    assert response.status_code == 401
    assert response.json()["message"] == "No token, authorization denied"

    response = await client.post("/api/orders", json=order_body(world), headers={"x-auth-token": "garbage"})
    assert response.status_code == 401
    assert response.json()["message"] == "Token is not valid"


async def test_create_order_missing_fields(client, world, tokens):
    response = await client.post(
        "/api/orders", json=order_body(world, deliveryAddress=None), headers=tokens["customer"]
    )
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_input"
    assert "deliveryAddress" in response.json()["message"]


async def test_malformed_body_is_invalid_input(client, world, tokens):
    response = await client.post(
        "/api/orders", json=order_body(world, items="everything"), headers=tokens["customer"]
    )
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_input"


async def test_unknown_menu_item_is_not_found(client, world, tokens):
    body = order_body(world, items=[{"menuItem": world.burger.id, "quantity": 1}], total=7)
    response = await client.post("/api/orders", json=body, headers=tokens["customer"])
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


# =============================================================================
# LIFECYCLE OVER HTTP
# =============================================================================

async def test_status_updates(client, create, tokens):
    order = await create()
    url = f"/api/orders/{order['id']}/status"

    response = await client.patch(url, json={"status": "preparing"}, headers=tokens["customer"])
    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"

    response = await client.patch(url, json={"status": "preparing"}, headers=tokens["owner"])
    assert response.status_code == 200
    assert response.json()["status"] == "preparing"

    response = await client.patch(url, json={"status": "confirmed"}, headers=tokens["owner"])
    assert response.status_code == 409
    assert response.json()["error"] == "conflict_of_state"

    response = await client.patch(url, json={"status": "teleported"}, headers=tokens["owner"])
    assert response.status_code == 400


async def test_assign_then_deliver(client, create, tokens, world, bus):
    order = await create()
    driver_id = world.users["driver"].id

    response = await client.patch(
        f"/api/orders/{order['id']}/assign", json={"deliveryPersonId": driver_id}, headers=tokens["customer"]
    )
    assert response.status_code == 403

    response = await client.patch(
        f"/api/orders/{order['id']}/assign", json={"deliveryPersonId": driver_id}, headers=tokens["owner"]
    )
    assert response.status_code == 200
    assert response.json()["assignedTo"]["name"] == "Devon"

    assignments = await client.get("/api/orders/delivery/my-assignments", headers=tokens["driver"])
    assert [o["id"] for o in assignments.json()] == [order["id"]]

    response = await client.patch(
        f"/api/orders/{order['id']}/status", json={"status": "delivered"}, headers=tokens["driver"]
    )
    assert response.status_code == 200
    assert response.json()["deliveredAt"] is not None
    assert bus.published_to(f"restaurant_{world.restaurant.id}")[-1]["status"] == "delivered"


async def test_cancel(client, create, tokens):
    order = await create()

    response = await client.delete(f"/api/orders/{order['id']}", headers=tokens["owner"])
    assert response.status_code == 403

    response = await client.delete(f"/api/orders/{order['id']}", headers=tokens["customer"])
    assert response.status_code == 200
    assert response.json()["message"] == "Order cancelled successfully"
    assert response.json()["order"]["status"] == "cancelled"
    assert response.json()["order"]["cancelledBy"]["name"] == "Casey"

    response = await client.delete(f"/api/orders/{order['id']}", headers=tokens["customer"])
    assert response.status_code == 409


# =============================================================================
# READS
# =============================================================================

async def test_get_order_access(client, create, tokens):
    order = await create()

    assert (await client.get(f"/api/orders/{order['id']}", headers=tokens["owner"])).status_code == 200
    assert (await client.get(f"/api/orders/{order['id']}", headers=tokens["other_customer"])).status_code == 403
    assert (await client.get(f"/api/orders/{new_id()}", headers=tokens["other_customer"])).status_code == 404
    assert (await client.get("/api/orders/bogus", headers=tokens["customer"])).status_code == 400


async def test_list_endpoints(client, create, tokens, world):
    mine = await create()
    await create("other_customer")

    response = await client.get("/api/orders/my-orders", headers=tokens["customer"])
    assert [o["id"] for o in response.json()] == [mine["id"]]

    response = await client.get(f"/api/orders/restaurant/{world.restaurant.id}", headers=tokens["owner"])
    assert len(response.json()) == 2
    response = await client.get(f"/api/orders/restaurant/{world.restaurant.id}", headers=tokens["other_owner"])
    assert response.status_code == 403

    response = await client.get("/api/orders/delivery/my-assignments", headers=tokens["customer"])
    assert response.status_code == 403


async def test_admin_listing(client, create, tokens):
    for _ in range(3):
        await create()

    response = await client.get("/api/orders", params={"page": 2, "limit": 2}, headers=tokens["admin"])
    assert response.status_code == 200
    data = response.json()
    assert (data["total"], data["totalPages"], data["currentPage"], len(data["orders"])) == (3, 2, 2, 1)

    response = await client.get("/api/orders", params={"status": "delivered"}, headers=tokens["admin"])
    assert response.json()["total"] == 0

    assert (await client.get("/api/orders", headers=tokens["owner"])).status_code == 403
    assert (await client.get("/api/orders", params={"limit": 0}, headers=tokens["admin"])).status_code == 400
    assert (await client.get("/api/orders", params={"page": "x"}, headers=tokens["admin"])).status_code == 400


# =============================================================================
# TRACKING SOCKET MESSAGES
# =============================================================================

class RecordingSocket:
    def __init__(self):
        self.sent = []

    async def send_json(self, data):
        self.sent.append(data)


async def test_socket_join_and_leave(monkeypatch, session_maker, create, world):
    order = await create()
    monkeypatch.setattr(main, "async_session_maker", session_maker)
    socket = RecordingSocket()
    subscription = InMemoryEventBus().subscribe()
    customer = world.actors["customer"]

    await main._handle_socket_message(socket, subscription, customer, {"action": "join_order", "orderId": order["id"]})
    room = f"order_{order['id']}"
    assert socket.sent[-1] == {"event": "joined", "room": room}
    assert subscription.rooms == {room}

    await main._handle_socket_message(socket, subscription, customer, {"action": "dance"})
    assert socket.sent[-1]["event"] == "error"

    await main._handle_socket_message(socket, subscription, customer, {"action": "leave", "room": room})
    assert subscription.rooms == frozenset()

    with pytest.raises(Forbidden):
        await main._handle_socket_message(
            socket, subscription, world.actors["other_customer"], {"action": "join_order", "orderId": order["id"]}
        )
    with pytest.raises(Forbidden):
        await main._handle_socket_message(
            socket, subscription, customer, {"action": "join_restaurant", "restaurantId": world.restaurant.id}
        )
    await subscription.close()


# =============================================================================
# HOSTILE INPUT
# =============================================================================

@pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
async def test_non_finite_total_is_invalid_input(client, world, tokens, literal):
    raw = json.dumps(order_body(world)).replace("25.0", literal)
    response = await client.post(
        "/api/orders",
        content=raw,
        headers={**tokens["customer"], "content-type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_input"
    assert (await client.get("/api/orders/my-orders", headers=tokens["customer"])).json() == []


async def test_oversized_quantity_is_invalid_input(client, world, tokens):
    quantity = 10**20
    body = order_body(world, items=[{"menuItem": world.item_a.id, "quantity": quantity}], total=quantity * 10.0)
    response = await client.post("/api/orders", json=body, headers=tokens["customer"])
    assert response.status_code == 400
    assert "cannot exceed" in response.json()["message"]


async def test_undecodable_signed_token_is_unauthenticated(client, monkeypatch):
    monkeypatch.setattr(main, "get_auth_service", lambda: SignedTokenAuthService("s3cret"))
    response = await client.get(
        "/api/orders/my-orders", headers={"x-auth-token": "\xe9.abc".encode("latin-1")}
    )
    assert response.status_code == 401
    assert response.json()["message"] == "Token is not valid"


class ClosedSocket:
    async def send_json(self, data):
        raise RuntimeError('Cannot call "send" once a close message has been sent.')


async def test_forwarder_stops_when_socket_is_gone():
    bus = InMemoryEventBus()
    subscription = bus.subscribe()
    await subscription.join("order_1")
    await bus.publish("order_1", {"event": "order_created"})

    await asyncio.wait_for(main._forward_events(ClosedSocket(), subscription), timeout=1)
    await subscription.close()
