"""
User model.

WHY: Users are the callers behind every request. The invoicing core only
needs two facts about them: which company (tenant) they belong to, and
how many active users a company has for the dashboard team widget.
"""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey
from sqlalchemy.orm import relationship

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin


class User(Base, PrimaryKeyMixin, TimestampMixin):
    """Member of a company."""

    __tablename__ = "users"

    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)

    # WHY: Nullable because a freshly registered user may not have created
    # or joined a company yet; such users cannot touch invoices.
    company_id = Column(
        Integer,
        ForeignKey("companies.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    is_active = Column(Boolean, nullable=False, default=True)

    company = relationship("Company", back_populates="users")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, company_id={self.company_id})>"
