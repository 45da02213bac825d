"""
Pydantic Schemas for Request/Response Validation

Field names are snake_case in Python and camelCase on the wire
(``totalAmount``, ``deliveryAddress``, ``menuItem``); requests accept
either spelling.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.models import OrderStatus, UserRole


class APIModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class OrderItemCreate(APIModel):
    """Single line in an order request. The price is never taken from the client."""
    menu_item: Optional[str] = Field(None, examples=["5f1c0a8e9b2d4c7e8a1b3c5d7e9f0a12"])
    quantity: Optional[int] = Field(None, examples=[2])


class OrderCreate(APIModel):
    """Request schema for creating a new order."""
    restaurant: Optional[str] = Field(None, examples=["0d6c2f0a4b8e4e1f9a7c3b5d2e8f1a64"])
    items: Optional[List[OrderItemCreate]] = None
    total_amount: Optional[float] = Field(None, allow_inf_nan=False, examples=[25.0])
    delivery_address: Optional[str] = Field(None, max_length=255, examples=["18 Temple Street"])


class StatusUpdate(APIModel):
    status: Optional[str] = Field(None, examples=["confirmed"])


class AssignDelivery(APIModel):
    delivery_person_id: Optional[str] = None


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class UserSummary(APIModel):
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    role: UserRole


class RestaurantSummary(APIModel):
    id: str
    name: str
    address: str
    phone: Optional[str] = None
    image: Optional[str] = None
    cuisine: Optional[str] = None
    owner_id: Optional[str] = None


class RestaurantResponse(RestaurantSummary):
    description: Optional[str] = None
    delivery_time: Optional[str] = None
    rating: float = 0.0
    is_active: bool = True


class MenuItemResponse(APIModel):
    id: str
    restaurant_id: str
    name: str
    description: Optional[str] = None
    price: float
    category: Optional[str] = None
    image: Optional[str] = None
    is_available: bool = True


class RestaurantDetailResponse(APIModel):
    restaurant: RestaurantResponse
    menu: List[MenuItemResponse]


class OrderLineResponse(APIModel):
    menu_item: MenuItemResponse
    quantity: int
    unit_price: float
    line_total: float


class OrderResponse(APIModel):
    """Response schema for a single order with references resolved."""
    id: str
    customer: UserSummary
    restaurant: RestaurantSummary
    items: List[OrderLineResponse]
    total_amount: float
    delivery_address: str
    status: OrderStatus
    assigned_to: Optional[UserSummary] = None
    cancelled_by: Optional[UserSummary] = None
    cancelled_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int


class OrderPageResponse(APIModel):
    """Paginated admin listing."""
    orders: List[OrderResponse]
    total_pages: int
    current_page: int
    total: int


class CancelResponse(APIModel):
    message: str
    order: OrderResponse


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    message: Optional[str] = None
    detail: Optional[str] = None


class HealthResponse(APIModel):
    """Health check response."""
    status: str
    database: str
    event_bus: str
    timestamp: datetime
