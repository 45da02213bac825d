"""
Core module initialization.
Exports configuration, logging and error utilities.
"""

from app.core.config import get_settings, setup_logging, Settings, EnvironmentMode
from app.core.errors import (
    OrderServiceError,
    InvalidInput,
    NotFound,
    Forbidden,
    AmountMismatch,
    ConflictOfState,
    Unauthenticated,
)

__all__ = [
    "get_settings",
    "setup_logging",
    "Settings",
    "EnvironmentMode",
    "OrderServiceError",
    "InvalidInput",
    "NotFound",
    "Forbidden",
    "AmountMismatch",
    "ConflictOfState",
    "Unauthenticated",
]
