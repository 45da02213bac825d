"""
Authentication Service Factory

Returns the mock or signed-token authenticator based on ENV_MODE.
"""

import logging
from functools import lru_cache

from app.core.config import get_settings
from app.services.auth.base import Actor, BaseAuthService
from app.services.auth.mock import MockAuthService
from app.services.auth.signed import SignedTokenAuthService

logger = logging.getLogger(__name__)


@lru_cache()
def get_auth_service() -> BaseAuthService:
    """Get the configured authentication service."""
    settings = get_settings()

    if settings.is_development and not settings.auth_secret_key:
        logger.info("Auth Service: Using MockAuthService (development mode)")
        return MockAuthService()
    else:
        logger.info(f"Auth Service: Using SignedTokenAuthService ({settings.env_mode.value} mode)")
        return SignedTokenAuthService(
            settings.auth_secret_key, max_age=settings.auth_token_max_age
        )


def reset_auth_service() -> None:
    """Clear the cached service instance."""
    get_auth_service.cache_clear()


__all__ = [
    "get_auth_service",
    "reset_auth_service",
    "Actor",
    "BaseAuthService",
    "MockAuthService",
    "SignedTokenAuthService",
]
