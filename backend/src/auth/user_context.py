"""
Actor context passed from the HTTP layer into the services.
"""

from typing import Optional

from core.constants import ROLE_ADMIN, ROLE_SERVICE_PROVIDER


class UserContext:
    """Authenticated user context extracted from JWT token."""

    def __init__(
        self,
        user_id: int,
        roles: list[str],
        provider_id: Optional[int] = None,
        name: Optional[str] = None
    ):
        self.user_id = user_id
        self.roles = roles  # List of roles: ["admin"], ["service_provider"], etc.
        self.provider_id = provider_id  # ServiceProvider the user acts as, if any
        self.name = name

    def has_role(self, role: str) -> bool:
        """Check if user has a specific role."""
        return role in self.roles

    def is_admin(self) -> bool:
        """Admins hold approval authority over bookings and extensions."""
        return self.has_role(ROLE_ADMIN)

    def is_service_provider(self) -> bool:
        return self.has_role(ROLE_SERVICE_PROVIDER) and self.provider_id is not None

    def acts_as_provider(self, provider_id: int) -> bool:
        """Check if the user is the given service provider."""
        return self.provider_id is not None and self.provider_id == provider_id

    def __repr__(self) -> str:
        return f"UserContext(user_id={self.user_id}, roles={self.roles}, provider_id={self.provider_id})"
