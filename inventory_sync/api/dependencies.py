"""
JWT-based authentication dependencies.

Tokens are issued by the auth service at Steam sign-in; this service only
verifies them and reads the internal user id from the ``sub`` claim.
"""
import logging

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from inventory_sync.core.config import get_settings
from inventory_sync.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)
security = HTTPBearer(auto_error=True)


def _get_verification_key() -> str:
    settings = get_settings()
    if not settings.JWT_SECRET_KEY:
        raise ConfigurationError(
            "JWT_SECRET_KEY is not configured",
            setting="JWT_SECRET_KEY",
        )
    return settings.JWT_SECRET_KEY


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    """
    Validate JWT from Authorization: Bearer <token>.

    Verifies the signature and expiration and requires a ``sub`` claim.

    Returns:
        user_id (str): User ID from token payload (sub claim)

    Raises:
        HTTPException 401: If token is invalid, expired, or missing
        HTTPException 503: If JWT verification is not configured
    """
    token = credentials.credentials
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        key = _get_verification_key()
        payload = jwt.decode(
            token,
            key,
            algorithms=[get_settings().JWT_ALGORITHM],
            options={"require": ["exp", "sub"]},
        )
    except ConfigurationError as e:
        logger.error(f"JWT configuration error: {e.detail}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service configuration error",
        )
    except jwt.ExpiredSignatureError:
        logger.warning("JWT token expired")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired. Please sign in again.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        logger.debug(f"Invalid JWT token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    if not user_id:
        logger.error("JWT payload missing 'sub' claim")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing user identifier",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return str(user_id)
