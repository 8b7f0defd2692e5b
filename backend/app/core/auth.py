"""
JWT token utilities.

WHY: Every invoice endpoint acts for a user, and through that user for a
company. Tokens are issued by the login flow (outside this service) and
verified here on each request. They are stateless, so any instance can
verify them with the shared JWT_SECRET.
"""

from datetime import datetime, timedelta
from typing import Dict, Any, Optional
from jose import jwt, JWTError

from app.core.config import settings
from app.core.exceptions import (
    TokenExpiredError,
    TokenInvalidError,
)


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token.

    Token includes:
    - User data (user_id, company_id)
    - exp: Expiration time (default: JWT_EXPIRATION_MINUTES)
    - iat: Issued at time
    - nbf: Not before time

    Args:
        data: Claims to encode in the token
        expires_delta: Optional custom expiration time

    Returns:
        JWT token string

    Example:
        >>> token = create_access_token({"user_id": 1})
        >>> verify_token(token)["user_id"]
        1
    """
    to_encode = data.copy()

    now = datetime.utcnow()
    expire = now + (expires_delta or timedelta(minutes=settings.JWT_EXPIRATION_MINUTES))
    to_encode.update({"exp": expire, "iat": now, "nbf": now})

    return jwt.encode(
        to_encode,
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


def verify_token(token: str) -> Dict[str, Any]:
    """
    Verify and decode a JWT token.

    Args:
        token: JWT token string

    Returns:
        Decoded token payload

    Raises:
        TokenExpiredError: If token has expired
        TokenInvalidError: If token is malformed or signature invalid
    """
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )

    except jwt.ExpiredSignatureError:
        # WHY: Distinct error so clients can refresh instead of re-login
        raise TokenExpiredError(message="Token has expired")

    except JWTError as e:
        raise TokenInvalidError(
            message="Invalid token",
            error=str(e),
        )
