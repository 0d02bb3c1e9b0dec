"""
Authentication service for session token verification.

Sessions are issued by an external identity provider. This service only
verifies the signed JWT with PyJWT and extracts the user identifier.
"""

from typing import Optional

import jwt
import structlog

from salesbot.exceptions.app import UnauthorizedException
from salesbot.models.auth import AuthenticatedUser
from salesbot.settings.jwt import JWTConfig

logger = structlog.get_logger(__name__)


class AuthService:
    """Service for JWT session verification.

    Attributes:
        config: JWTConfig instance with verification settings
    """

    def __init__(self, config: Optional[JWTConfig] = None):
        """Initialize AuthService with JWT configuration.

        Args:
            config: JWTConfig instance. If None, uses default configuration.
        """
        self.config = config or JWTConfig()
        logger.debug("AuthService initialized", algorithm=self.config.ALGORITHM)

    def verify_token(self, token: str) -> AuthenticatedUser:
        """Verify and decode a session token.

        Args:
            token: JWT token string to verify

        Returns:
            AuthenticatedUser with the identifier found in the first
            configured user id claim

        Raises:
            UnauthorizedException: If token is invalid, expired, or carries
                no user id

        Example:
            >>> user = auth_service.verify_token(token)
            >>> print(user.user_id)
        """
        options = {"verify_aud": self.config.AUDIENCE is not None}
        try:
            payload = jwt.decode(
                token,
                self.config.SECRET_KEY,
                algorithms=[self.config.ALGORITHM],
                audience=self.config.AUDIENCE,
                issuer=self.config.ISSUER,
                leeway=self.config.LEEWAY_SECONDS,
                options=options,
            )
        except jwt.ExpiredSignatureError:
            logger.warning("Token has expired")
            raise UnauthorizedException("Token has expired")
        except jwt.InvalidTokenError as e:
            logger.warning("Invalid token", error=str(e))
            raise UnauthorizedException("Invalid token")

        for claim in self.config.USER_ID_CLAIMS:
            user_id = payload.get(claim)
            if user_id:
                logger.debug("Token verified successfully", user_id=str(user_id))
                return AuthenticatedUser(user_id=str(user_id))

        logger.warning("Token has no user id claim", claims=self.config.USER_ID_CLAIMS)
        raise UnauthorizedException("Invalid token")
