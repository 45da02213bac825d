"""
Record Store Access

Thin repository over an ``AsyncSession``: store and fetch users,
restaurants, menu items and orders by id or filter. The lifecycle engine
only talks to the database through this class.
"""

import logging
import re
from typing import Iterable, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InvalidInput
from app.models import MenuItem, Order, OrderStatus, Restaurant, User

logger = logging.getLogger(__name__)

_RECORD_ID = re.compile(r"^[0-9a-f]{32}$")


def ensure_record_id(value, label: str = "ID") -> str:
    """Reject ids that cannot name a record."""
    if not isinstance(value, str) or not _RECORD_ID.match(value):
        raise InvalidInput(f"Invalid {label} format")
    return value


class OrderRepository:
    """Store/fetch records for one request-scoped session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # =========================================================================
    # LOOKUPS BY ID
    # =========================================================================

    async def get_user(self, user_id: str) -> Optional[User]:
        return await self.session.get(User, user_id)

    async def get_restaurant(self, restaurant_id: str) -> Optional[Restaurant]:
        return await self.session.get(Restaurant, restaurant_id)

    async def get_menu_items(self, menu_item_ids: Iterable[str]) -> dict[str, MenuItem]:
        ids = set(menu_item_ids)
        if not ids:
            return {}
        result = await self.session.execute(select(MenuItem).where(MenuItem.id.in_(ids)))
        return {item.id: item for item in result.scalars().all()}

    async def get_order(self, order_id: str) -> Optional[Order]:
        """Fetch an order with its references freshly loaded."""
        result = await self.session.execute(
            select(Order)
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    # =========================================================================
    # FILTERED LISTINGS
    # =========================================================================

    async def list_active_restaurants(self) -> list[Restaurant]:
        result = await self.session.execute(
            select(Restaurant).where(Restaurant.is_active.is_(True)).order_by(Restaurant.name)
        )
        return list(result.scalars().all())

    async def list_available_menu(self, restaurant_id: str) -> list[MenuItem]:
        result = await self.session.execute(
            select(MenuItem)
            .where(MenuItem.restaurant_id == restaurant_id, MenuItem.is_available.is_(True))
            .order_by(MenuItem.category, MenuItem.name)
        )
        return list(result.scalars().all())

    async def list_orders(
        self,
        *,
        customer_id: Optional[str] = None,
        restaurant_id: Optional[str] = None,
        assigned_to_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> list[Order]:
        query = self._filtered(
            select(Order), customer_id, restaurant_id, assigned_to_id, status
        ).order_by(Order.created_at.desc())
        if skip:
            query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count_orders(self, *, status: Optional[OrderStatus] = None) -> int:
        query = self._filtered(select(func.count(Order.id)), None, None, None, status)
        result = await self.session.execute(query)
        return result.scalar() or 0

    @staticmethod
    def _filtered(query, customer_id, restaurant_id, assigned_to_id, status):
        if customer_id is not None:
            query = query.where(Order.customer_id == customer_id)
        if restaurant_id is not None:
            query = query.where(Order.restaurant_id == restaurant_id)
        if assigned_to_id is not None:
            query = query.where(Order.assigned_to_id == assigned_to_id)
        if status is not None:
            query = query.where(Order.status == status)
        return query

    # =========================================================================
    # WRITES
    # =========================================================================

    def add(self, record) -> None:
        self.session.add(record)

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
