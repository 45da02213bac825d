"""
Order Notification Fan-out

Post-commit hook of the lifecycle engine. Each method publishes one event
per affected room and never raises: a transport failure is logged and the
already committed mutation stands.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from app.models import Order
from app.services.auth.base import Actor
from app.services.notifications.base import BaseEventBus, order_room, restaurant_room

logger = logging.getLogger(__name__)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class OrderNotifier:
    """Builds lifecycle events and hands them to the event bus."""

    def __init__(self, bus: BaseEventBus):
        self.bus = bus

    async def _publish(self, room: str, event: dict[str, Any]) -> None:
        try:
            await self.bus.publish(room, event)
        except Exception as e:
            logger.warning(f"Failed to publish {event['event']} to {room}: {e}")

    @staticmethod
    def _event(name: str, order: Order, message: str, **context: Any) -> dict[str, Any]:
        return {
            "event": name,
            "orderId": order.id,
            "status": order.status.value,
            "message": message,
            **context,
        }

    async def order_created(self, order: Order) -> None:
        await self._publish(
            order_room(order.id),
            self._event("order_created", order, "New order has been placed"),
        )

    async def status_updated(self, order: Order, actor: Actor, by_delivery_person: bool) -> None:
        status = order.status.value
        await self._publish(
            order_room(order.id),
            self._event(
                "order_status_updated",
                order,
                f"Order status updated to: {status}",
                updatedAt=_iso(order.updated_at),
            ),
        )
        if by_delivery_person:
            await self._publish(
                restaurant_room(order.restaurant_id),
                self._event(
                    "order_status_updated",
                    order,
                    f"Delivery person updated status to: {status}",
                    updatedBy=actor.display_name,
                ),
            )

    async def assigned(self, order: Order) -> None:
        person = order.assigned_to
        await self._publish(
            order_room(order.id),
            self._event(
                "order_assigned",
                order,
                f"Order assigned to delivery person: {person.name}",
                assignedTo={"id": person.id, "name": person.name, "phone": person.phone},
            ),
        )

    async def cancelled(self, order: Order, actor: Actor) -> None:
        await self._publish(
            order_room(order.id),
            self._event(
                "order_cancelled",
                order,
                "Order has been cancelled",
                cancelledBy=actor.display_name,
            ),
        )
