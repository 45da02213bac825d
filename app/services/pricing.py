"""
Pricing & Validation

Turns a client's order request into a validated draft whose line prices
come from the authoritative menu, never from the client.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from app.core.config import get_settings
from app.core.errors import AmountMismatch, InvalidInput, NotFound
from app.models import Restaurant
from app.services.repository import OrderRepository, ensure_record_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DraftLine:
    menu_item_id: str
    quantity: int
    unit_price: float

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


@dataclass
class OrderDraft:
    """A priced, validated order that has not been persisted yet."""
    restaurant: Restaurant
    delivery_address: str
    lines: list[DraftLine] = field(default_factory=list)

    @property
    def total_amount(self) -> float:
        return round(sum(line.line_total for line in self.lines), 2)


def _field(item: Any, *names: str) -> Any:
    """Read a line field from a dict or an object, accepting alias names."""
    for name in names:
        if isinstance(item, dict):
            if name in item:
                return item[name]
        elif hasattr(item, name):
            return getattr(item, name)
    return None


def _parse_quantity(raw: Any, max_quantity: int) -> int:
    if isinstance(raw, bool) or raw is None:
        raise InvalidInput("Invalid quantity for menu item")
    try:
        quantity = int(raw)
    except (TypeError, ValueError):
        raise InvalidInput("Invalid quantity for menu item")
    if quantity != raw or quantity < 1:
        raise InvalidInput("Invalid quantity for menu item")
    if quantity > max_quantity:
        raise InvalidInput(f"Quantity cannot exceed {max_quantity} per menu item")
    return quantity


async def validate_order_draft(
    repo: OrderRepository,
    restaurant_id: Optional[str],
    items: Optional[Sequence[Any]],
    total_amount: Optional[float],
    delivery_address: Optional[str],
    tolerance: Optional[float] = None,
) -> OrderDraft:
    """
    Validate and re-price an order request.

    Args:
        repo: Record store access
        restaurant_id: Restaurant the order is placed with
        items: Line requests, each carrying a menu item id and a quantity
        total_amount: Total asserted by the client
        delivery_address: Free-text delivery address
        tolerance: Maximum accepted |computed - asserted| (defaults to settings)

    Returns:
        OrderDraft with one line per requested item, priced from the menu

    Raises:
        InvalidInput: Missing fields, empty item list or bad quantity
        NotFound: Restaurant or a menu item does not exist
        AmountMismatch: Asserted total differs from the computed one
    """
    settings = get_settings()
    if tolerance is None:
        tolerance = settings.amount_tolerance

    if not restaurant_id or items is None or total_amount is None or not delivery_address:
        raise InvalidInput(
            "Please provide restaurant, items, totalAmount, and deliveryAddress"
        )
    if isinstance(items, (str, bytes, dict)) or len(items) == 0:
        raise InvalidInput("Items must be a non-empty array")

    ensure_record_id(restaurant_id, "restaurant ID")
    restaurant = await repo.get_restaurant(restaurant_id)
    if restaurant is None:
        raise NotFound("Restaurant not found")

    requested = []
    for item in items:
        menu_item_id = _field(item, "menu_item", "menuItem", "menu_item_id")
        ensure_record_id(menu_item_id, "menu item ID")
        requested.append((menu_item_id, _field(item, "quantity")))

    menu = await repo.get_menu_items(menu_item_id for menu_item_id, _ in requested)

    lines = []
    for menu_item_id, raw_quantity in requested:
        menu_item = menu.get(menu_item_id)
        if menu_item is None or menu_item.restaurant_id != restaurant.id:
            raise NotFound(f"Menu item {menu_item_id} not found")
        quantity = _parse_quantity(raw_quantity, settings.max_line_quantity)
        lines.append(DraftLine(menu_item_id, quantity, menu_item.price))

    draft = OrderDraft(restaurant=restaurant, delivery_address=delivery_address, lines=lines)

    try:
        asserted = float(total_amount)
    except (TypeError, ValueError, OverflowError):
        raise InvalidInput("totalAmount must be a number")
    if not math.isfinite(asserted):
        raise InvalidInput("totalAmount must be a finite number")

    if abs(draft.total_amount - asserted) > tolerance + 1e-9:
        logger.warning(
            f"Total mismatch for restaurant {restaurant.id}: "
            f"computed={draft.total_amount:.2f} received={asserted:.2f}"
        )
        raise AmountMismatch(
            "Total amount does not match calculated total",
            expected=draft.total_amount,
            received=asserted,
        )

    return draft
