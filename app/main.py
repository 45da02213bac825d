"""
FastAPI Application Entry Point

Food ordering API: restaurant/menu browsing, order placement and
real-time order tracking.

Endpoints:
    - GET  /api/restaurants: Active restaurants
    - GET  /api/restaurants/{id}: Restaurant with available menu
    - POST /api/orders: Place an order
    - GET  /api/orders/my-orders: Caller's orders
    - GET  /api/orders/restaurant/{id}: Restaurant's orders (owner/admin)
    - GET  /api/orders/delivery/my-assignments: Delivery assignments
    - GET  /api/orders: All orders, paginated (admin)
    - GET  /api/orders/{id}: Single order
    - PATCH /api/orders/{id}/status: Status transition
    - PATCH /api/orders/{id}/assign: Assign delivery person
    - DELETE /api/orders/{id}: Cancel order
    - WS   /ws: Live order/restaurant event stream
    - GET  /health: System health check
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Optional

from fastapi import FastAPI, Depends, Query, Request, Header, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings, setup_logging
from app.core.errors import NotFound, OrderServiceError, Unauthenticated
from app.database import get_db, init_db, engine, async_session_maker
from app.schemas import (
    OrderCreate,
    StatusUpdate,
    AssignDelivery,
    OrderResponse,
    OrderPageResponse,
    CancelResponse,
    RestaurantResponse,
    RestaurantDetailResponse,
    MenuItemResponse,
    ErrorResponse,
    HealthResponse,
)
from app.services.auth import Actor, get_auth_service
from app.services.lifecycle import OrderLifecycleEngine
from app.services.notifications import (
    BaseSubscription,
    OrderNotifier,
    get_event_bus,
    get_order_notifier,
)
from app.services.repository import OrderRepository, ensure_record_id

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    await init_db()

    bus = get_event_bus()
    auth_service = get_auth_service()
    logger.info(f"Event Bus: {bus.provider_name}")
    logger.info(f"Auth Service: {auth_service.provider_name}")

    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"Missing production config: {missing}")

    logger.info("Application ready")

    yield  # Application runs

    logger.info("Shutting down...")
    await bus.close()
    await engine.dispose()
    logger.info("Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description="Restaurant browsing, order placement and real-time order tracking.",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# DEPENDENCIES
# =============================================================================

async def get_current_actor(
    x_auth_token: Optional[str] = Header(None, alias="x-auth-token"),
) -> Actor:
    """Authenticate the request; the actor is passed explicitly downstream."""
    if not x_auth_token:
        raise Unauthenticated("No token, authorization denied")
    actor = get_auth_service().authenticate(x_auth_token)
    if actor is None:
        raise Unauthenticated("Token is not valid")
    return actor


async def get_lifecycle(
    db: AsyncSession = Depends(get_db),
    notifier: OrderNotifier = Depends(get_order_notifier),
) -> OrderLifecycleEngine:
    return OrderLifecycleEngine(OrderRepository(db), notifier)


def to_response(order) -> OrderResponse:
    return OrderResponse.model_validate(order)


ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"{settings.app_name} is running!",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db)
) -> HealthResponse:
    """Verify the record store and event bus are reachable."""
    db_status = "healthy"
    try:
        await db.execute(select(1))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    bus = get_event_bus()
    bus_status = "healthy" if await bus.health_check() else "unhealthy"

    overall = "operational" if db_status == bus_status == "healthy" else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        event_bus=bus_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# RESTAURANT ENDPOINTS
# =============================================================================

@app.get(
    "/api/restaurants",
    response_model=list[RestaurantResponse],
    tags=["Restaurants"],
)
async def list_restaurants(db: AsyncSession = Depends(get_db)) -> list[RestaurantResponse]:
    """All active restaurants."""
    restaurants = await OrderRepository(db).list_active_restaurants()
    return [RestaurantResponse.model_validate(r) for r in restaurants]


@app.get(
    "/api/restaurants/{restaurant_id}",
    response_model=RestaurantDetailResponse,
    responses=ERROR_RESPONSES,
    tags=["Restaurants"],
)
async def get_restaurant(
    restaurant_id: str,
    db: AsyncSession = Depends(get_db),
) -> RestaurantDetailResponse:
    """A restaurant with its currently available menu."""
    ensure_record_id(restaurant_id, "restaurant ID")
    repo = OrderRepository(db)
    restaurant = await repo.get_restaurant(restaurant_id)
    if restaurant is None:
        raise NotFound("Restaurant not found")

    menu = await repo.list_available_menu(restaurant_id)
    return RestaurantDetailResponse(
        restaurant=RestaurantResponse.model_validate(restaurant),
        menu=[MenuItemResponse.model_validate(m) for m in menu],
    )


# =============================================================================
# ORDER ENDPOINTS
# =============================================================================

@app.post(
    "/api/orders",
    response_model=OrderResponse,
    status_code=201,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Place Order",
)
async def create_order(
    order_data: OrderCreate,
    actor: Actor = Depends(get_current_actor),
    lifecycle: OrderLifecycleEngine = Depends(get_lifecycle),
) -> OrderResponse:
    """
    Place a new order.

    Line prices are taken from the menu; ``totalAmount`` must match their
    sum within the configured tolerance.
    """
    order = await lifecycle.create_order(
        actor,
        restaurant_id=order_data.restaurant,
        items=order_data.items,
        total_amount=order_data.total_amount,
        delivery_address=order_data.delivery_address,
    )
    return to_response(order)


@app.get(
    "/api/orders/my-orders",
    response_model=list[OrderResponse],
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def my_orders(
    actor: Actor = Depends(get_current_actor),
    lifecycle: OrderLifecycleEngine = Depends(get_lifecycle),
) -> list[OrderResponse]:
    """Orders placed by the caller, newest first."""
    return [to_response(o) for o in await lifecycle.list_my_orders(actor)]


@app.get(
    "/api/orders/restaurant/{restaurant_id}",
    response_model=list[OrderResponse],
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def restaurant_orders(
    restaurant_id: str,
    actor: Actor = Depends(get_current_actor),
    lifecycle: OrderLifecycleEngine = Depends(get_lifecycle),
) -> list[OrderResponse]:
    """Orders of one restaurant (restaurant owner or admin)."""
    orders = await lifecycle.list_restaurant_orders(actor, restaurant_id)
    return [to_response(o) for o in orders]


@app.get(
    "/api/orders/delivery/my-assignments",
    response_model=list[OrderResponse],
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def my_assignments(
    actor: Actor = Depends(get_current_actor),
    lifecycle: OrderLifecycleEngine = Depends(get_lifecycle),
) -> list[OrderResponse]:
    """Orders assigned to the calling delivery person."""
    return [to_response(o) for o in await lifecycle.list_assignments(actor)]


@app.get(
    "/api/orders",
    response_model=OrderPageResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="List All Orders (Admin)",
)
async def list_orders(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    actor: Actor = Depends(get_current_actor),
    lifecycle: OrderLifecycleEngine = Depends(get_lifecycle),
) -> OrderPageResponse:
    """Retrieve paginated list of orders."""
    result = await lifecycle.list_all_orders(actor, page=page, limit=limit, status=status)
    return OrderPageResponse(
        orders=[to_response(o) for o in result.orders],
        total_pages=result.total_pages,
        current_page=result.current_page,
        total=result.total,
    )


@app.get(
    "/api/orders/{order_id}",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def get_order(
    order_id: str,
    actor: Actor = Depends(get_current_actor),
    lifecycle: OrderLifecycleEngine = Depends(get_lifecycle),
) -> OrderResponse:
    """Get a specific order by ID."""
    return to_response(await lifecycle.get_order(actor, order_id))


@app.patch(
    "/api/orders/{order_id}/status",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def update_order_status(
    order_id: str,
    body: StatusUpdate,
    actor: Actor = Depends(get_current_actor),
    lifecycle: OrderLifecycleEngine = Depends(get_lifecycle),
) -> OrderResponse:
    """Move an order forward in its lifecycle."""
    order = await lifecycle.update_status(actor, order_id, body.status)
    return to_response(order)


@app.patch(
    "/api/orders/{order_id}/assign",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def assign_order(
    order_id: str,
    body: AssignDelivery,
    actor: Actor = Depends(get_current_actor),
    lifecycle: OrderLifecycleEngine = Depends(get_lifecycle),
) -> OrderResponse:
    """Assign a delivery person to an order."""
    order = await lifecycle.assign_delivery(actor, order_id, body.delivery_person_id)
    return to_response(order)


@app.delete(
    "/api/orders/{order_id}",
    response_model=CancelResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def cancel_order(
    order_id: str,
    actor: Actor = Depends(get_current_actor),
    lifecycle: OrderLifecycleEngine = Depends(get_lifecycle),
) -> CancelResponse:
    """Cancel an order that has not started preparation."""
    order = await lifecycle.cancel_order(actor, order_id)
    return CancelResponse(message="Order cancelled successfully", order=to_response(order))


# =============================================================================
# REAL-TIME TRACKING
# =============================================================================

async def _forward_events(websocket: WebSocket, subscription: BaseSubscription) -> None:
    try:
        async for event in subscription.events():
            await websocket.send_json(event)
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug(f"Stopped forwarding events: {e!r}")


async def _handle_socket_message(
    websocket: WebSocket,
    subscription: BaseSubscription,
    actor: Actor,
    message: dict[str, Any],
) -> None:
    action = message.get("action")

    if action == "leave":
        room = message.get("room")
        await subscription.leave(room)
        await websocket.send_json({"event": "left", "room": room})
        return

    async with async_session_maker() as session:
        lifecycle = OrderLifecycleEngine(OrderRepository(session), get_order_notifier())
        if action == "join_order":
            room = await lifecycle.tracking_room(actor, message.get("orderId"))
        elif action == "join_restaurant":
            room = await lifecycle.restaurant_feed_room(actor, message.get("restaurantId"))
        else:
            await websocket.send_json(
                {"event": "error", "error": "invalid_input", "detail": f"Unknown action: {action}"}
            )
            return

    await subscription.join(room)
    logger.info(f"{actor.user_id} joined room {room}")
    await websocket.send_json({"event": "joined", "room": room})


@app.websocket("/ws")
async def tracking_socket(websocket: WebSocket, token: Optional[str] = Query(None)):
    """
    Live event stream.

    Clients send ``{"action": "join_order", "orderId": ...}`` or
    ``{"action": "join_restaurant", "restaurantId": ...}`` and then receive
    lifecycle events published to those rooms.
    """
    actor = get_auth_service().authenticate(token)
    if actor is None:
        await websocket.close(code=4401)
        return

    await websocket.accept()
    subscription = get_event_bus().subscribe()
    forwarder = asyncio.create_task(_forward_events(websocket, subscription))

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
                if not isinstance(message, dict):
                    raise ValueError("expected a JSON object")
            except ValueError as e:
                await websocket.send_json(
                    {"event": "error", "error": "invalid_input", "detail": str(e)}
                )
                continue

            try:
                await _handle_socket_message(websocket, subscription, actor, message)
            except OrderServiceError as e:
                await websocket.send_json({"event": "error", "error": e.code, "detail": e.message})
    except WebSocketDisconnect:
        logger.info(f"Tracking socket closed for {actor.user_id}")
    finally:
        forwarder.cancel()
        await subscription.close()
        await asyncio.gather(forwarder, return_exceptions=True)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(OrderServiceError)
async def order_service_exception_handler(request: Request, exc: OrderServiceError) -> JSONResponse:
    """Client-facing errors with a stable category."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies are InvalidInput, not 422."""
    fields = [".".join(str(p) for p in err["loc"] if p != "body") for err in exc.errors()]
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": "invalid_input",
            "message": "Validation error",
            "detail": ", ".join(f for f in fields if f) or None,
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )
