"""
Authentication dependencies for FastAPI routes.

Every route that reads or writes user data depends on get_current_user,
so a missing or invalid session is rejected before any side effect.
"""

from typing import Annotated, Optional

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from salesbot.dependencies.common import SettingsDep
from salesbot.exceptions.app import UnauthorizedException
from salesbot.models.auth import AuthenticatedUser
from salesbot.service.auth import AuthService

logger = structlog.get_logger(__name__)

# Missing credentials are reported as 401 by get_current_user
security = HTTPBearer(auto_error=False)


def get_auth_service(settings: SettingsDep) -> AuthService:
    """Dependency to get AuthService instance.

    Returns:
        AuthService instance configured with application settings
    """
    return AuthService(config=settings.JWT)


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> AuthenticatedUser:
    """Dependency to get the current authenticated user from the session token.

    Args:
        credentials: HTTP Bearer credentials from Authorization header
        auth_service: AuthService instance for token verification

    Returns:
        AuthenticatedUser instance with the user id

    Raises:
        UnauthorizedException: If the token is missing, invalid or expired
    """
    if credentials is None or not credentials.credentials:
        logger.warning("No token provided in request")
        raise UnauthorizedException("Authentication token required")

    user = auth_service.verify_token(credentials.credentials)
    logger.debug("User authenticated successfully", user_id=user.user_id)
    return user


CurrentUserDep = Annotated[AuthenticatedUser, Depends(get_current_user)]
