"""
Sample Data Loader

Creates demo users, restaurants and menus in the configured database and
writes an auth token per user to data/seed_tokens.json for the
simulation script.
Existing data is dropped first.
Run from project root: python scripts/seed.py
"""

import asyncio
import json
import os
import sys
from pathlib import Path

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.database import Base, async_session_maker, engine, init_db
from app.models import MenuItem, Restaurant, User, UserRole
from app.services.auth import get_auth_service

TOKENS_FILE = Path("data") / "seed_tokens.json"

USERS = [
    {"key": "customer", "name": "Casey Customer", "email": "casey@example.com", "role": UserRole.CUSTOMER},
    {"key": "owner", "name": "Olivia Owner", "email": "olivia@example.com", "role": UserRole.RESTAURANT_OWNER},
    {"key": "driver", "name": "Devon Driver", "email": "devon@example.com", "role": UserRole.DELIVERY_PERSON},
    {"key": "admin", "name": "Ada Admin", "email": "ada@example.com", "role": UserRole.ADMIN},
]

RESTAURANTS = [
    {
        "name": "Pizza Palace",
        "description": "The best pizza in town with fresh ingredients and authentic recipes",
        "address": "18 Temple Street, Yau Ma Tei",
        "phone": "(852) 2384 5678",
        "cuisine": "Italian",
        "delivery_time": "25-35 min",
        "rating": 4.5,
        "menu": [
            ("Margherita Pizza", "Classic pizza with tomato sauce, fresh mozzarella, and basil", 110, "Pizza"),
            ("Pepperoni Pizza", "Traditional pizza with pepperoni and mozzarella cheese", 130, "Pizza"),
            ("Garlic Breadsticks", "Freshly baked breadsticks with garlic butter", 40, "Appetizers"),
            ("Caesar Salad", "Fresh romaine lettuce with Caesar dressing and croutons", 60, "Salads"),
        ],
    },
    {
        "name": "Burger Barn",
        "description": "Juicy burgers, crispy fries, and cold drinks",
        "address": "75 Nathan Road, Tsim Sha Tsui",
        "phone": "(852) 2367 3344",
        "cuisine": "American",
        "delivery_time": "20-30 min",
        "rating": 4.2,
        "menu": [
            ("Classic Cheeseburger", "Beef patty with cheese, lettuce, tomato, and special sauce", 70, "Burgers"),
            ("Bacon Burger", "Beef patty with crispy bacon and cheddar cheese", 85, "Burgers"),
            ("French Fries", "Crispy golden fries with sea salt", 32, "Sides"),
            ("Chocolate Milkshake", "Creamy chocolate milkshake with whipped cream", 27, "Drinks"),
        ],
    },
    {
        "name": "Sushi Spot",
        "description": "Fresh sushi and authentic Japanese cuisine",
        "address": "42 Queen's Road Central, Central",
        "phone": "(852) 2521 8899",
        "cuisine": "Japanese",
        "delivery_time": "35-45 min",
        "rating": 4.7,
        "menu": [
            ("California Roll", "Crab, avocado, and cucumber roll", 39.9, "Sushi Rolls"),
            ("Salmon Nigiri", "Fresh salmon over seasoned rice", 69.9, "Nigiri"),
            ("Miso Soup", "Traditional Japanese soybean soup", 14.9, "Soups"),
            ("Edamame", "Steamed soybeans with sea salt", 24.9, "Appetizers"),
        ],
    },
]


async def seed() -> dict:
    """Drop all tables, recreate them and load the sample data."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await init_db()

    auth = get_auth_service()
    summary = {"users": {}, "restaurants": []}

    async with async_session_maker() as session:
        users = {}
        for spec in USERS:
            user = User(name=spec["name"], email=spec["email"], role=spec["role"])
            session.add(user)
            users[spec["key"]] = user
        await session.flush()

        for spec in RESTAURANTS:
            restaurant = Restaurant(
                owner_id=users["owner"].id,
                **{k: v for k, v in spec.items() if k != "menu"},
            )
            session.add(restaurant)
            await session.flush()
            menu = []
            for name, description, price, category in spec["menu"]:
                item = MenuItem(
                    restaurant_id=restaurant.id,
                    name=name,
                    description=description,
                    price=price,
                    category=category,
                )
                session.add(item)
                menu.append(item)
            await session.flush()
            summary["restaurants"].append({
                "id": restaurant.id,
                "name": restaurant.name,
                "menu": [{"id": m.id, "name": m.name, "price": m.price} for m in menu],
            })

        await session.commit()

        for key, user in users.items():
            summary["users"][key] = {
                "id": user.id,
                "name": user.name,
                "role": user.role.value,
                "token": auth.issue_token(user.id, user.role, user.name),
            }

    return summary


if __name__ == "__main__":
    result = asyncio.run(seed())

    TOKENS_FILE.parent.mkdir(parents=True, exist_ok=True)
    TOKENS_FILE.write_text(json.dumps(result, indent=2))

    print("=" * 60)
    print(f"Added {len(result['restaurants'])} restaurants and "
          f"{sum(len(r['menu']) for r in result['restaurants'])} menu items")
    for key, user in result["users"].items():
        print(f"   {key:<9} {user['id']}  token={user['token']}")
    print(f"Tokens written to {TOKENS_FILE}")
    print("=" * 60)
