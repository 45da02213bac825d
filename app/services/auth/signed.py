"""
Signed Token Authentication Service

Production implementation: tokens are ``itsdangerous`` URL-safe timed
signatures over ``{"sub", "role", "name"}``, keyed with ``AUTH_SECRET_KEY``.
Tokens older than ``max_age`` seconds are rejected.
"""

import logging
from typing import Optional

from itsdangerous import BadData, SignatureExpired, URLSafeTimedSerializer

from app.models import UserRole
from app.services.auth.base import Actor, BaseAuthService

logger = logging.getLogger(__name__)

TOKEN_SALT = "foodapp-auth-token"


class SignedTokenAuthService(BaseAuthService):
    """Timed, signed identity tokens."""

    def __init__(self, secret_key: str, max_age: Optional[int] = None):
        if not secret_key:
            raise ValueError("AUTH_SECRET_KEY is required for signed tokens")
        self.max_age = max_age
        self._serializer = URLSafeTimedSerializer(secret_key, salt=TOKEN_SALT)

    @property
    def provider_name(self) -> str:
        return "signed"

    def issue_token(self, user_id: str, role: UserRole, name: Optional[str] = None) -> str:
        body = {"sub": user_id, "role": UserRole(role).value}
        if name:
            body["name"] = name
        return self._serializer.dumps(body)

    def authenticate(self, token: Optional[str]) -> Optional[Actor]:
        if not token:
            return None
        try:
            body = self._serializer.loads(token, max_age=self.max_age)
        except SignatureExpired:
            logger.info("Rejected expired token")
            return None
        except BadData as e:
            logger.warning(f"Rejected invalid token: {e}")
            return None

        try:
            return Actor(
                user_id=str(body["sub"]),
                role=UserRole(body["role"]),
                name=body.get("name"),
            )
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Rejected malformed token payload: {e}")
            return None
