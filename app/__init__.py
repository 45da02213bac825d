"""
                FoodApp Ordering API

Restaurant browsing, order placement and real-time order tracking
built on FastAPI, async SQLAlchemy and Redis pub/sub.
"""

__version__ = "1.0.0"
