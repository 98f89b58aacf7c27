"""Access token verification.

Tokens are minted by the authentication service; this module only checks them.
"""

from typing import Any

from jose import JWTError, jwt

from app.config import settings

ROLES = frozenset({"patient", "doctor", "admin"})


def decode_access_token(token: str) -> dict[str, Any] | None:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token to decode

    Returns:
        Decoded payload or None if invalid
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )

        # Verify token type
        if payload.get("type") != "access":
            return None

        if payload.get("role") not in ROLES:
            return None

        return payload
    except JWTError:
        return None
