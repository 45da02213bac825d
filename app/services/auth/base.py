"""
Authentication Service Abstract Base Class

Authentication is an external collaborator: the API only needs
"authenticate request, yield {user_id, role}". Implementations turn an
opaque token into an ``Actor`` that is passed explicitly into every
authorization and lifecycle call.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from app.models import UserRole


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of a request."""
    user_id: str
    role: UserRole
    name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.user_id


class BaseAuthService(ABC):
    """Abstract base class for token authentication."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    def authenticate(self, token: Optional[str]) -> Optional[Actor]:
        """Return the actor for a valid token, or None."""
        pass

    @abstractmethod
    def issue_token(self, user_id: str, role: UserRole, name: Optional[str] = None) -> str:
        """Create a token that ``authenticate`` accepts (tooling and tests)."""
        pass
