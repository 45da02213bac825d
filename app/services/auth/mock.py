"""
Mock Authentication Service

Development-only tokens of the form ``<user_id>:<role>`` (optionally
``<user_id>:<role>:<name>``). Nothing is signed.
"""

import logging
from typing import Optional

from app.models import UserRole
from app.services.auth.base import Actor, BaseAuthService

logger = logging.getLogger(__name__)


class MockAuthService(BaseAuthService):
    """Accepts plain, unsigned identity tokens."""

    @property
    def provider_name(self) -> str:
        return "mock"

    def authenticate(self, token: Optional[str]) -> Optional[Actor]:
        if not token:
            return None
        parts = token.split(":", 2)
        if len(parts) < 2 or not parts[0]:
            logger.debug("Mock token rejected: malformed")
            return None
        try:
            role = UserRole(parts[1])
        except ValueError:
            logger.debug(f"Mock token rejected: unknown role {parts[1]!r}")
            return None
        name = parts[2] if len(parts) == 3 else None
        return Actor(user_id=parts[0], role=role, name=name)

    def issue_token(self, user_id: str, role: UserRole, name: Optional[str] = None) -> str:
        token = f"{user_id}:{UserRole(role).value}"
        if name:
            token += f":{name}"
        return token
