"""
FastAPI dependencies for authentication and tenant resolution.

WHY: Dependencies turn the bearer token into the current user and the
user into a company id, so route handlers receive the tenant they act for
and never read it from the request body.
"""

from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import verify_token
from app.core.exceptions import (
    AuthenticationError,
    CompanyRequiredError,
    TokenExpiredError,
    TokenInvalidError,
)
from app.db.session import get_db
from app.models.user import User
from app.dao.user import UserDAO


# HTTP Bearer token security scheme
# Format: "Authorization: Bearer <token>"
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Get current authenticated user from JWT token.

    WHY: This dependency:
    1. Verifies token signature and expiration
    2. Fetches the user from the database (token data may be stale)
    3. Ensures the user still exists and is active

    Args:
        credentials: JWT token from Authorization header
        db: Database session

    Returns:
        Authenticated User instance

    Raises:
        AuthenticationError: If token is invalid, expired, or user not found
    """
    try:
        payload = verify_token(credentials.credentials)
    except (TokenExpiredError, TokenInvalidError) as e:
        raise AuthenticationError(
            message=str(e),
            status_code=e.status_code,
        )

    user_id: Optional[int] = payload.get("user_id")
    if not user_id:
        raise AuthenticationError(message="Invalid token: missing user_id")

    user = await UserDAO(db).get_by_id(user_id)

    if not user:
        raise AuthenticationError(message="User not found", user_id=user_id)

    if not user.is_active:
        raise AuthenticationError(message="User account is inactive", user_id=user_id)

    return user


def get_current_company_id(current_user: User = Depends(get_current_user)) -> int:
    """
    Get the company the current user acts for.

    Usage:
        @router.get("/invoices")
        async def list_invoices(company_id: int = Depends(get_current_company_id)):
            ...

    Raises:
        CompanyRequiredError: If the user has not joined or created a company
    """
    if current_user.company_id is None:
        raise CompanyRequiredError(user_id=current_user.id)
    return current_user.company_id

