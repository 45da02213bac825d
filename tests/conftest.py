"""
Shared fixtures: a fresh in-memory SQLite record store per test, an
in-memory event bus, and a small seeded world of users, restaurants and
menu items.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ENV_MODE"] = "development"
os.environ.pop("AUTH_SECRET_KEY", None)

from types import SimpleNamespace

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.database import Base, build_engine, get_db
from app.models import MenuItem, Restaurant, User, UserRole
from app.services.auth import Actor, MockAuthService
from app.services.lifecycle import OrderLifecycleEngine
from app.services.notifications import InMemoryEventBus, OrderNotifier, get_order_notifier
from app.services.repository import OrderRepository


@pytest.fixture
async def db_engine():
    engine = build_engine("sqlite+aiosqlite://")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as s:
        yield s


@pytest.fixture
def bus():
    return InMemoryEventBus(queue_size=10)


@pytest.fixture
def notifier(bus):
    return OrderNotifier(bus)


@pytest.fixture
def repo(session):
    return OrderRepository(session)


@pytest.fixture
def lifecycle(repo, notifier):
    return OrderLifecycleEngine(repo, notifier)


def actor_for(user: User) -> Actor:
    return Actor(user_id=user.id, role=user.role, name=user.name)


@pytest.fixture
async def world(session):
    """Users, two restaurants and their menus."""
    users = {
        "customer": User(name="Casey", email="casey@example.com", role=UserRole.CUSTOMER),
        "other_customer": User(name="Chris", email="chris@example.com", role=UserRole.CUSTOMER),
        "owner": User(name="Olivia", email="olivia@example.com", role=UserRole.RESTAURANT_OWNER),
        "other_owner": User(name="Oscar", email="oscar@example.com", role=UserRole.RESTAURANT_OWNER),
        "driver": User(name="Devon", email="devon@example.com", phone="555-0100", role=UserRole.DELIVERY_PERSON),
        "other_driver": User(name="Dana", email="dana@example.com", role=UserRole.DELIVERY_PERSON),
        "admin": User(name="Ada", email="ada@example.com", role=UserRole.ADMIN),
    }
    session.add_all(users.values())
    await session.flush()

    restaurant = Restaurant(name="Pizza Palace", address="18 Temple Street", owner_id=users["owner"].id)
    other = Restaurant(name="Burger Barn", address="75 Nathan Road", owner_id=users["other_owner"].id)
    session.add_all([restaurant, other])
    await session.flush()

    item_a = MenuItem(restaurant_id=restaurant.id, name="Margherita", price=10.0, category="Pizza")
    item_b = MenuItem(restaurant_id=restaurant.id, name="Garlic Bread", price=5.0, category="Sides")
    hidden = MenuItem(restaurant_id=restaurant.id, name="Seasonal", price=8.0, is_available=False)
    burger = MenuItem(restaurant_id=other.id, name="Cheeseburger", price=7.0, category="Burgers")
    session.add_all([item_a, item_b, hidden, burger])
    await session.commit()

    return SimpleNamespace(
        users=users,
        actors={key: actor_for(user) for key, user in users.items()},
        restaurant=restaurant,
        other_restaurant=other,
        item_a=item_a,
        item_b=item_b,
        hidden=hidden,
        burger=burger,
    )


@pytest.fixture
def place_order(lifecycle, world):
    """Place the reference order: 2 x item A (10.00) + 1 x item B (5.00)."""

    async def _place(actor_key: str = "customer", total: float = 25.0):
        return await lifecycle.create_order(
            world.actors[actor_key],
            restaurant_id=world.restaurant.id,
            items=[
                {"menuItem": world.item_a.id, "quantity": 2},
                {"menuItem": world.item_b.id, "quantity": 1},
            ],
            total_amount=total,
            delivery_address="1 Harbour Road",
        )

    return _place


@pytest.fixture
def tokens(world):
    auth = MockAuthService()
    return {
        key: {"x-auth-token": auth.issue_token(user.id, user.role, user.name)}
        for key, user in world.users.items()
    }


@pytest.fixture
async def client(session_maker, notifier):
    from app.main import app

    async def override_get_db():
        async with session_maker() as s:
            yield s

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_order_notifier] = lambda: notifier

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
