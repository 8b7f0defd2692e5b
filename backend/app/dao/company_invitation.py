"""
Company invitation Data Access Object.

WHY: Invitation delivery is handled elsewhere; the dashboard only needs
the number of invitations still waiting for an answer.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.base import BaseDAO
from app.models.company_invitation import CompanyInvitation


class CompanyInvitationDAO(BaseDAO[CompanyInvitation]):
    """Data Access Object for CompanyInvitation model."""

    def __init__(self, session: AsyncSession):
        super().__init__(CompanyInvitation, session)

    async def count_pending(self, company_id: int, now: Optional[datetime] = None) -> int:
        """
        Count invitations not yet accepted and not yet expired.

        Args:
            company_id: Company ID
            now: Reference time, defaults to current UTC time

        Returns:
            Number of pending invitations
        """
        result = await self.session.execute(
            select(func.count(CompanyInvitation.id)).where(
                CompanyInvitation.company_id == company_id,
                CompanyInvitation.accepted_at.is_(None),
                CompanyInvitation.expires_at > (now or datetime.utcnow()),
            )
        )
        return result.scalar_one()
