"""
Company invitation model.

WHY: Invitation delivery lives outside the invoicing core, but the
dashboard reports how many invitations are still pending (not accepted
and not yet expired) next to the active member count.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from app.models.base import Base, PrimaryKeyMixin
from datetime import datetime


class CompanyInvitation(Base, PrimaryKeyMixin):
    """Invitation for an email address to join a company."""

    __tablename__ = "company_invitations"

    email = Column(String(255), nullable=False)
    token = Column(String(255), nullable=False, unique=True)
    company_id = Column(
        Integer,
        ForeignKey("companies.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    expires_at = Column(DateTime, nullable=False)
    accepted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    company = relationship("Company")

    @property
    def is_pending(self) -> bool:
        """Not yet accepted and still within its validity window."""
        return self.accepted_at is None and self.expires_at > datetime.utcnow()

    def __repr__(self) -> str:
        return f"<CompanyInvitation(id={self.id}, email={self.email}, company_id={self.company_id})>"
