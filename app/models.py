"""
SQLAlchemy Database Models

Record store for the ordering system:
- Users (customers, restaurant owners, delivery personnel, admins)
- Restaurants and their menu items
- Orders with price-snapshot line items
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Float, DateTime, Text, Enum, Boolean, ForeignKey
from sqlalchemy.orm import relationship

from app.database import Base


def new_id() -> str:
    """Opaque record id: 32 lowercase hex characters."""
    return uuid.uuid4().hex


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, enum.Enum):
    """Global account role."""
    CUSTOMER = "customer"
    RESTAURANT_OWNER = "restaurant_owner"
    DELIVERY_PERSON = "delivery_person"
    ADMIN = "admin"


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PLACED = "placed"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class User(Base):
    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True, unique=True)
    phone = Column(String(30), nullable=True)
    role = Column(Enum(UserRole), default=UserRole.CUSTOMER, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)

    def __repr__(self):
        return f"<User {self.id} - {self.name} - {self.role.value}>"


class Restaurant(Base):
    """
    A restaurant listed in the app.

    ``owner_id`` decides who may manage the restaurant's orders.
    """
    __tablename__ = "restaurants"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    address = Column(String(255), nullable=False)
    phone = Column(String(30), nullable=True)
    cuisine = Column(String(50), nullable=True)
    delivery_time = Column(String(30), default="30-40 min")
    rating = Column(Float, default=0.0)
    image = Column(String(500), default="https://via.placeholder.com/300x200?text=Restaurant+Image")
    owner_id = Column(String(32), ForeignKey("users.id"), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    def __repr__(self):
        return f"<Restaurant {self.id} - {self.name}>"


class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(String(32), primary_key=True, default=new_id)
    restaurant_id = Column(String(32), ForeignKey("restaurants.id"), nullable=False, index=True)
    name = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False)  # authoritative price
    category = Column(String(50), default="Main Course")
    image = Column(String(500), default="https://via.placeholder.com/150x150?text=Food+Item")
    is_available = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    def __repr__(self):
        return f"<MenuItem {self.id} - {self.name} - {self.price:.2f}>"


class Order(Base):
    """
    Main Order table.

    Tracks the lifecycle from placement to delivery or cancellation.
    Orders are never deleted; ``version`` guards against lost updates.
    """
    __tablename__ = "orders"

    id = Column(String(32), primary_key=True, default=new_id)

    # =========================================================================
    # PARTIES
    # =========================================================================
    customer_id = Column(String(32), ForeignKey("users.id"), nullable=False, index=True)
    restaurant_id = Column(String(32), ForeignKey("restaurants.id"), nullable=False, index=True)
    assigned_to_id = Column(String(32), ForeignKey("users.id"), nullable=True, index=True)

    # =========================================================================
    # ORDER DETAILS
    # =========================================================================
    total_amount = Column(Float, nullable=False)
    delivery_address = Column(String(255), nullable=False)
    status = Column(
        Enum(OrderStatus),
        default=OrderStatus.PLACED,
        nullable=False,
        index=True
    )

    # =========================================================================
    # LIFECYCLE STAMPS
    # =========================================================================
    cancelled_by_id = Column(String(32), ForeignKey("users.id"), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, index=True)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    version = Column(Integer, nullable=False)

    customer = relationship("User", foreign_keys=[customer_id], lazy="selectin")
    restaurant = relationship("Restaurant", lazy="selectin")
    assigned_to = relationship("User", foreign_keys=[assigned_to_id], lazy="selectin")
    cancelled_by = relationship("User", foreign_keys=[cancelled_by_id], lazy="selectin")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Order {self.id} - {self.restaurant_id} - {self.status.value}>"


class OrderItem(Base):
    """One line of an order; ``unit_price`` is the menu price at order time."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(32), ForeignKey("orders.id"), nullable=False, index=True)
    menu_item_id = Column(String(32), ForeignKey("menu_items.id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)

    order = relationship("Order", back_populates="items")
    menu_item = relationship("MenuItem", lazy="selectin")

    @property
    def line_total(self) -> float:
        return round(self.unit_price * self.quantity, 2)
