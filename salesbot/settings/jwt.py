"""
JWT configuration settings.

Sessions are issued by an external identity provider; this service only
verifies them.
"""

from typing import Optional

from pydantic import BaseModel, Field


class JWTConfig(BaseModel):
    """JWT verification settings."""

    SECRET_KEY: str = Field(
        default="change-this-secret-key-in-production",
        description="Shared secret or public key used to verify session tokens",
    )
    ALGORITHM: str = Field(
        default="HS256", description="Algorithm the identity provider signs with"
    )
    AUDIENCE: Optional[str] = Field(
        default=None, description="Expected audience claim, if any"
    )
    ISSUER: Optional[str] = Field(
        default=None, description="Expected issuer claim, if any"
    )
    USER_ID_CLAIMS: list[str] = Field(
        default=["sub", "user_id"],
        description="Claims checked, in order, for the user identifier",
    )
    LEEWAY_SECONDS: int = Field(
        default=30, description="Clock skew tolerated when checking exp/nbf"
    )
