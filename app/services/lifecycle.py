"""
Order Lifecycle Engine

Owns the order state machine:

    placed -> confirmed -> preparing -> out_for_delivery -> delivered
    placed | confirmed -> cancelled

Every operation receives the acting user explicitly, asks the
authorization policy, mutates through the record store, commits, and only
then hands the committed order to the notifier.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Union

from sqlalchemy.orm.exc import StaleDataError

from app.core.config import get_settings
from app.core.errors import ConflictOfState, InvalidInput, NotFound, Unauthenticated
from app.models import Order, OrderItem, OrderStatus, UserRole, utc_now
from app.services import authorization as policy
from app.services.auth.base import Actor
from app.services.notifications.base import order_room, restaurant_room
from app.services.notifications.fanout import OrderNotifier
from app.services.pricing import validate_order_draft
from app.services.repository import OrderRepository, ensure_record_id

logger = logging.getLogger(__name__)

MAIN_CHAIN = (
    OrderStatus.PLACED,
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)
TERMINAL = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})
CANCELLABLE = frozenset({OrderStatus.PLACED, OrderStatus.CONFIRMED})
UPDATABLE = tuple(s.value for s in OrderStatus if s != OrderStatus.PLACED)


def is_forward(current: OrderStatus, target: OrderStatus) -> bool:
    """True if ``target`` lies strictly ahead of ``current`` on the main chain."""
    if current in TERMINAL or target not in MAIN_CHAIN or current not in MAIN_CHAIN:
        return False
    return MAIN_CHAIN.index(target) > MAIN_CHAIN.index(current)


@dataclass
class OrderPage:
    orders: list[Order]
    total: int
    total_pages: int
    current_page: int


class OrderLifecycleEngine:
    """Order state machine bound to one request's record store."""

    def __init__(self, repo: OrderRepository, notifier: OrderNotifier):
        self.repo = repo
        self.notifier = notifier
        self.settings = get_settings()

    # =========================================================================
    # INTERNALS
    # =========================================================================

    async def _load(self, order_id: str) -> Order:
        ensure_record_id(order_id, "order ID")
        order = await self.repo.get_order(order_id)
        if order is None:
            raise NotFound("Order not found")
        return order

    async def _commit_and_reload(self, order: Order) -> Order:
        try:
            await self.repo.commit()
        except StaleDataError:
            await self.repo.rollback()
            logger.warning(f"Concurrent update lost the race on order {order.id}")
            raise ConflictOfState("Order was modified by another request. Reload and retry.")
        return await self.repo.get_order(order.id)

    # =========================================================================
    # CREATION
    # =========================================================================

    async def create_order(
        self,
        actor: Actor,
        restaurant_id: Optional[str],
        items: Optional[Sequence[Any]],
        total_amount: Optional[float],
        delivery_address: Optional[str],
    ) -> Order:
        """Validate, price and persist a new order in ``placed``."""
        if await self.repo.get_user(actor.user_id) is None:
            raise Unauthenticated("User account not found")

        draft = await validate_order_draft(
            self.repo,
            restaurant_id,
            items,
            total_amount,
            delivery_address,
            tolerance=self.settings.amount_tolerance,
        )

        order = Order(
            customer_id=actor.user_id,
            restaurant_id=draft.restaurant.id,
            total_amount=draft.total_amount,
            delivery_address=draft.delivery_address,
            status=OrderStatus.PLACED,
            items=[
                OrderItem(
                    menu_item_id=line.menu_item_id,
                    position=position,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                )
                for position, line in enumerate(draft.lines)
            ],
        )
        self.repo.add(order)
        order = await self._commit_and_reload(order)

        logger.info(
            f"Order {order.id} placed by {actor.user_id} at restaurant "
            f"{order.restaurant_id} (total={order.total_amount:.2f}, lines={len(order.items)})"
        )
        await self.notifier.order_created(order)
        return order

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    async def update_status(
        self,
        actor: Actor,
        order_id: str,
        status: Union[str, OrderStatus, None],
    ) -> Order:
        """Move an order to ``status`` if the actor's relationship allows it."""
        try:
            target = OrderStatus(status)
        except ValueError:
            raise InvalidInput(f"Invalid status. Must be one of: {', '.join(UPDATABLE)}")

        if target == OrderStatus.CANCELLED:
            return await self.cancel_order(actor, order_id)

        order = await self._load(order_id)
        rel = policy.relationship_to(actor, order)
        policy.require(
            rel.any, "Access denied. You are not authorized to update this order.", actor
        )
        if not policy.can_set_status(rel, target):
            if rel.is_owner and not (rel.is_restaurant_owner or rel.is_delivery_person):
                message = "Customers cannot update order status. Please contact the restaurant."
            else:
                message = "You are not authorized to perform this status update."
            policy.require(False, message, actor)

        current = order.status
        if not is_forward(current, target):
            raise ConflictOfState(
                f"Cannot change order status from {current.value} to {target.value}"
            )

        by_delivery_person = policy.acting_as_delivery_person(rel, target)
        order.status = target
        if target == OrderStatus.DELIVERED:
            order.delivered_at = utc_now()
        order = await self._commit_and_reload(order)

        logger.info(f"Order {order.id}: {current.value} -> {target.value} by {actor.user_id}")
        await self.notifier.status_updated(order, actor, by_delivery_person)
        return order

    async def assign_delivery(
        self,
        actor: Actor,
        order_id: str,
        delivery_person_id: Optional[str],
    ) -> Order:
        """Set ``assigned_to`` on a non-terminal order."""
        if not delivery_person_id:
            raise InvalidInput("Delivery person ID is required")
        ensure_record_id(delivery_person_id, "delivery person ID")

        order = await self._load(order_id)
        rel = policy.relationship_to(actor, order)
        policy.require(
            policy.can_assign(rel),
            "Access denied. Only restaurant owners or admins can assign orders.",
            actor,
        )
        if order.status in TERMINAL:
            raise ConflictOfState(f"Cannot assign an order that is {order.status.value}")

        person = await self.repo.get_user(delivery_person_id)
        if person is None:
            raise NotFound("Delivery person not found")
        if person.role != UserRole.DELIVERY_PERSON:
            raise InvalidInput("User is not a delivery person")

        order.assigned_to_id = person.id
        order = await self._commit_and_reload(order)

        logger.info(f"Order {order.id} assigned to {person.id} by {actor.user_id}")
        await self.notifier.assigned(order)
        return order

    async def cancel_order(self, actor: Actor, order_id: str) -> Order:
        """Cancel a placed or confirmed order; the record is kept."""
        order = await self._load(order_id)
        rel = policy.relationship_to(actor, order)
        policy.require(
            policy.can_cancel(rel),
            "Access denied. You can only cancel your own orders.",
            actor,
        )
        if order.status not in CANCELLABLE:
            raise ConflictOfState(
                "Order cannot be cancelled at this stage. Please contact support."
            )

        order.status = OrderStatus.CANCELLED
        order.cancelled_at = utc_now()
        order.cancelled_by_id = actor.user_id
        order = await self._commit_and_reload(order)

        logger.info(f"Order {order.id} cancelled by {actor.user_id}")
        await self.notifier.cancelled(order, actor)
        return order

    # =========================================================================
    # READS
    # =========================================================================

    async def get_order(self, actor: Actor, order_id: str) -> Order:
        order = await self._load(order_id)
        rel = policy.relationship_to(actor, order)
        policy.require(
            policy.can_read(rel), "Access denied. You can only view your own orders.", actor
        )
        return order

    async def tracking_room(self, actor: Actor, order_id: Optional[str]) -> str:
        """Room name for live tracking of an order the actor may read."""
        order = await self.get_order(actor, order_id)
        return order_room(order.id)

    async def restaurant_feed_room(self, actor: Actor, restaurant_id: Optional[str]) -> str:
        """Room name for a restaurant's live feed (owner or admin)."""
        ensure_record_id(restaurant_id, "restaurant ID")
        restaurant = await self.repo.get_restaurant(restaurant_id)
        if restaurant is None:
            raise NotFound("Restaurant not found")
        policy.require(
            policy.can_follow_restaurant(actor, restaurant),
            "Access denied. Not the restaurant owner.",
            actor,
        )
        return restaurant_room(restaurant.id)

    async def list_my_orders(self, actor: Actor) -> list[Order]:
        return await self.repo.list_orders(customer_id=actor.user_id)

    async def list_restaurant_orders(self, actor: Actor, restaurant_id: str) -> list[Order]:
        ensure_record_id(restaurant_id, "restaurant ID")
        restaurant = await self.repo.get_restaurant(restaurant_id)
        if restaurant is None:
            raise NotFound("Restaurant not found")
        policy.require(
            policy.can_view_restaurant_orders(actor, restaurant),
            "Access denied. Not the restaurant owner.",
            actor,
        )
        return await self.repo.list_orders(restaurant_id=restaurant_id)

    async def list_assignments(self, actor: Actor) -> list[Order]:
        policy.require(
            policy.can_view_assignments(actor),
            "Access denied. Only delivery personnel can view assigned orders.",
            actor,
        )
        return await self.repo.list_orders(assigned_to_id=actor.user_id)

    async def list_all_orders(
        self,
        actor: Actor,
        page: int = 1,
        limit: Optional[int] = None,
        status: Optional[str] = None,
    ) -> OrderPage:
        """Admin listing, newest first, optionally filtered by status."""
        policy.require(policy.can_list_all(actor), "Access denied. Admin role required.", actor)

        if limit is None:
            limit = self.settings.default_page_size
        if page < 1:
            raise InvalidInput("page must be at least 1")
        if not 1 <= limit <= self.settings.max_page_size:
            raise InvalidInput(f"limit must be between 1 and {self.settings.max_page_size}")

        status_filter = None
        if status:
            try:
                status_filter = OrderStatus(status.lower())
            except ValueError:
                valid = [s.value for s in OrderStatus]
                raise InvalidInput(f"Invalid status. Options: {valid}")

        total = await self.repo.count_orders(status=status_filter)
        orders = await self.repo.list_orders(
            status=status_filter, skip=(page - 1) * limit, limit=limit
        )
        return OrderPage(
            orders=orders,
            total=total,
            total_pages=math.ceil(total / limit),
            current_page=page,
        )
