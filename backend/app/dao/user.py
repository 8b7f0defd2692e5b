"""
User Data Access Object.

WHY: UserDAO resolves identities for authentication and counts company
members for the dashboard team widget.
"""

from typing import Optional
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.base import BaseDAO
from app.models.user import User


class UserDAO(BaseDAO[User]):
    """Data Access Object for User model."""

    def __init__(self, session: AsyncSession):
        """Initialize UserDAO with session."""
        super().__init__(User, session)

    async def get_by_email(self, email: str) -> Optional[User]:
        """
        Retrieve user by email address.

        WHY: Case-insensitive comparison so USER@EXAMPLE.COM and
        user@example.com resolve to the same account.

        Args:
            email: User's email address

        Returns:
            User instance if found, None otherwise
        """
        result = await self.session.execute(
            select(User).where(func.lower(User.email) == email.lower())
        )
        return result.scalar_one_or_none()

    async def count_by_company(self, company_id: int, include_inactive: bool = False) -> int:
        """
        Count users in a company.

        Args:
            company_id: Company ID
            include_inactive: Whether to include inactive users

        Returns:
            Number of users
        """
        query = select(func.count(User.id)).where(User.company_id == company_id)

        if not include_inactive:
            query = query.where(User.is_active)

        result = await self.session.execute(query)
        return result.scalar_one()
