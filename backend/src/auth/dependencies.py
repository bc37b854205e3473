# pyright: reportMissingTypeStubs=false
"""
Authentication and authorization dependencies for FastAPI.

Provides dependency injection functions for bearer-token authentication and
role-based access control.
"""

import logging
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from auth.user_context import UserContext
from services.jwt_service import jwt_service, TokenPayload

logger = logging.getLogger(__name__)

__all__ = ["UserContext", "get_current_user", "require_authenticated", "require_admin"]


# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


def get_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[TokenPayload]:
    """Extract and validate JWT token payload."""
    if not credentials:
        return None

    return jwt_service.verify_token(credentials.credentials)


def get_current_user(
    payload: Optional[TokenPayload] = Depends(get_token_payload)
) -> UserContext:
    """Get authenticated user context from JWT token."""
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication credentials not provided"
        )

    try:
        user_id = int(payload.sub)
    except ValueError:
        logger.warning(f"Rejected token with non-numeric subject: {payload.sub!r}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token subject"
        )

    return UserContext(
        user_id=user_id,
        roles=payload.roles,
        provider_id=payload.provider_id,
        name=payload.name,
    )


def require_authenticated(user: UserContext = Depends(get_current_user)) -> UserContext:
    """Require any authenticated user."""
    return user


def require_admin(user: UserContext = Depends(get_current_user)) -> UserContext:
    """Require admin role."""
    if not user.is_admin():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return user
