"""
Company model.

WHY: A company is the tenant of the billing product. It owns invoices,
clients and users, and its details (address, tax id, bank account) are
printed as the issuer block of every invoice document.

The core never writes companies; they are managed by the company CRUD
collaborator and only read here.
"""

from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin


class Company(Base, PrimaryKeyMixin, TimestampMixin):
    """Tenant company issuing invoices."""

    __tablename__ = "companies"

    name = Column(String(255), nullable=False, index=True)

    # Address, split into fields so the document can omit empty lines
    street = Column(String(255), nullable=True)
    city = Column(String(120), nullable=True)
    postal_code = Column(String(20), nullable=True)
    state = Column(String(120), nullable=True)
    country = Column(String(120), nullable=True)

    # Contact
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)

    # Fiscal
    vat_number = Column(String(50), nullable=True)
    bank_account_number = Column(
        String(64),
        nullable=True,
        comment="IBAN printed on bank-transfer invoices",
    )

    users = relationship("User", back_populates="company", lazy="raise")
    clients = relationship("Client", back_populates="company", lazy="raise")
    invoices = relationship("Invoice", back_populates="company", lazy="raise")

    def __repr__(self) -> str:
        return f"<Company(id={self.id}, name={self.name})>"
