"""
Authorization Policy

Single source of truth for who may do what to an order. Decisions are
keyed by the actor's relationship to the specific order (customer of
record, owner of the restaurant, assigned delivery person, admin), not
just by the actor's global role.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from app.core.errors import Forbidden
from app.models import Order, OrderStatus, Restaurant, UserRole
from app.services.auth.base import Actor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Relationship:
    """How one actor relates to one order."""
    is_owner: bool = False
    is_restaurant_owner: bool = False
    is_delivery_person: bool = False
    is_admin: bool = False

    @property
    def any(self) -> bool:
        return self.is_owner or self.is_restaurant_owner or self.is_delivery_person or self.is_admin

    def holds(self, name: str) -> bool:
        return getattr(self, f"is_{name}")


# Who may move an order INTO each status. "placed" is creation-only.
STATUS_WRITERS: dict[OrderStatus, frozenset[str]] = {
    OrderStatus.PLACED: frozenset(),
    OrderStatus.CONFIRMED: frozenset({"restaurant_owner", "admin"}),
    OrderStatus.PREPARING: frozenset({"restaurant_owner", "admin"}),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({"restaurant_owner", "delivery_person", "admin"}),
    OrderStatus.DELIVERED: frozenset({"delivery_person", "admin"}),
    OrderStatus.CANCELLED: frozenset({"owner", "admin"}),
}

ASSIGNERS = frozenset({"restaurant_owner", "admin"})
CANCELLERS = STATUS_WRITERS[OrderStatus.CANCELLED]


def relationship_to(actor: Actor, order: Order) -> Relationship:
    restaurant = order.restaurant
    return Relationship(
        is_owner=order.customer_id == actor.user_id,
        is_restaurant_owner=bool(
            restaurant is not None and restaurant.owner_id and restaurant.owner_id == actor.user_id
        ),
        is_delivery_person=bool(order.assigned_to_id and order.assigned_to_id == actor.user_id),
        is_admin=actor.role == UserRole.ADMIN,
    )


def _any_of(rel: Relationship, allowed: frozenset[str]) -> bool:
    return any(rel.holds(name) for name in allowed)


def can_read(rel: Relationship) -> bool:
    return rel.any


def can_set_status(rel: Relationship, target: OrderStatus) -> bool:
    return _any_of(rel, STATUS_WRITERS.get(target, frozenset()))


def can_assign(rel: Relationship) -> bool:
    return _any_of(rel, ASSIGNERS)


def can_cancel(rel: Relationship) -> bool:
    return _any_of(rel, CANCELLERS)


def acting_as_delivery_person(rel: Relationship, target: OrderStatus) -> bool:
    """True when a status write is permitted only through the delivery relationship."""
    if not rel.is_delivery_person:
        return False
    others = STATUS_WRITERS.get(target, frozenset()) - {"delivery_person"}
    return not _any_of(rel, others)


def can_view_restaurant_orders(actor: Actor, restaurant: Restaurant) -> bool:
    # Unowned restaurants are not restricted.
    if actor.role == UserRole.ADMIN:
        return True
    return not restaurant.owner_id or restaurant.owner_id == actor.user_id


def can_follow_restaurant(actor: Actor, restaurant: Restaurant) -> bool:
    """Live restaurant feed: owner of record or admin only."""
    if actor.role == UserRole.ADMIN:
        return True
    return bool(restaurant.owner_id) and restaurant.owner_id == actor.user_id


def can_view_assignments(actor: Actor) -> bool:
    return actor.role == UserRole.DELIVERY_PERSON


def can_list_all(actor: Actor) -> bool:
    return actor.role == UserRole.ADMIN


def require(allowed: bool, message: str, actor: Optional[Actor] = None) -> None:
    """Raise Forbidden unless ``allowed``."""
    if not allowed:
        if actor is not None:
            logger.warning(f"Denied {actor.role.value} {actor.user_id}: {message}")
        raise Forbidden(message)
