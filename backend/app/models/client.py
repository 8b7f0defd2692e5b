"""
Client model.

WHY: Invoices are issued against a client of the tenant company. The
client's name and address fill the bordered client box on the document,
and the client name groups revenue for the dashboard's top clients.
"""

from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin


class Client(Base, PrimaryKeyMixin, TimestampMixin):
    """Customer of a tenant company."""

    __tablename__ = "clients"

    company_id = Column(
        Integer,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name = Column(String(255), nullable=False)

    street = Column(String(255), nullable=True)
    city = Column(String(120), nullable=True)
    postal_code = Column(String(20), nullable=True)
    state = Column(String(120), nullable=True)
    country = Column(String(120), nullable=True)

    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    vat_number = Column(String(50), nullable=True)

    company = relationship("Company", back_populates="clients")
    invoices = relationship("Invoice", back_populates="client", lazy="raise")

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, name={self.name})>"
