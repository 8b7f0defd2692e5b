"""
Invoice models for the billing lifecycle.

WHAT: SQLAlchemy models for invoices and their line items, plus the
status enums and the derived display status.

WHY: Invoices are legal financial documents that:
1. Move through a strict lifecycle (DRAFT -> PENDING -> PAID)
2. Receive a gap-free legal number per (company, series) on confirmation
3. Render as a PDF and roll up into dashboard statistics

HOW: Uses SQLAlchemy 2.0 with:
- Company and client relationships (tenant scoping)
- Ordered line items with cascade delete
- A partial unique index that rejects duplicate numbers among
  non-draft invoices of the same company and series
- Totals are never stored; they are computed from the items
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, TYPE_CHECKING
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    Enum as SQLEnum,
    text,
)
from sqlalchemy.orm import relationship, Mapped

from app.models.base import Base

if TYPE_CHECKING:
    from app.models.client import Client
    from app.models.company import Company


# Emission date of an invoice that has not been confirmed yet
DRAFT_EMISSION_DATE = datetime(1970, 1, 1)


class InvoiceStatus(str, Enum):
    """
    Stored invoice lifecycle status.

    WHY: Only three states are persisted:
    - DRAFT: Editable, unnumbered, invisible to the legal sequence
    - PENDING: Confirmed and numbered, awaiting payment
    - PAID: Payment received (terminal)
    """

    DRAFT = "DRAFT"
    PENDING = "PENDING"
    PAID = "PAID"


class DisplayStatus(str, Enum):
    """
    Status shown to users and accepted by list filters.

    WHY: OVERDUE depends on the clock, so it is derived on read and never
    stored. See derive_status().
    """

    DRAFT = "DRAFT"
    PENDING = "PENDING"
    PAID = "PAID"
    OVERDUE = "OVERDUE"


class PaymentMethod(str, Enum):
    """How the client is expected to pay."""

    BANK_TRANSFER = "BANK_TRANSFER"
    CASH = "CASH"
    CREDIT_CARD = "CREDIT_CARD"
    PAYPAL = "PAYPAL"
    OTHER = "OTHER"


def derive_status(
    status: InvoiceStatus,
    due_date: Optional[datetime],
    now: Optional[datetime] = None,
) -> DisplayStatus:
    """
    Derive the display status of an invoice.

    WHAT: PENDING invoices whose due date has passed read as OVERDUE.

    Args:
        status: Stored status
        due_date: Invoice due date (naive UTC)
        now: Reference time, defaults to the current UTC time

    Returns:
        DisplayStatus for the invoice
    """
    now = now or datetime.utcnow()
    if status == InvoiceStatus.PENDING and due_date is not None and due_date < now:
        return DisplayStatus.OVERDUE
    return DisplayStatus(InvoiceStatus(status).value)


def _enum_values(enum):
    return [e.value for e in enum]


class Invoice(Base):
    """
    Invoice issued by a company to one of its clients.

    Attributes:
        id: Primary key
        company_id: Issuing company (tenant)
        client_id: Billed client
        invoice_series: Numbering series, defaults to the current year
        invoice_number: Zero-padded legal number, "" while DRAFT
        status: Stored lifecycle status
        currency: ISO currency code used for display only

        Dates:
        emission_date: Legal issue date, epoch sentinel while DRAFT
        operation_date: Date of the underlying operation (optional)
        due_days: Payment term in days
        due_date: emission_date (or creation time for drafts) + due_days

        Text:
        description, reference, observations: Free text printed on the PDF
        payment_method: Expected payment method
    """

    __tablename__ = "invoices"
    __table_args__ = (
        # WHY: Two confirmations racing for the same number must not both
        # commit. Drafts all share "" and are excluded.
        Index(
            "uq_invoices_company_series_number",
            "company_id",
            "invoice_series",
            "invoice_number",
            unique=True,
            postgresql_where=text("status != 'DRAFT'"),
            sqlite_where=text("status != 'DRAFT'"),
        ),
    )

    id: Mapped[int] = Column(Integer, primary_key=True, index=True)

    company_id: Mapped[int] = Column(
        Integer,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Issuing company (tenant)",
    )
    client_id: Mapped[int] = Column(
        Integer,
        ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="Billed client",
    )

    # Numbering
    invoice_series: Mapped[str] = Column(
        String(50),
        nullable=False,
        comment="Numbering series (e.g., 2025)",
    )
    invoice_number: Mapped[str] = Column(
        String(20),
        nullable=False,
        default="",
        comment="Zero-padded legal number, empty while draft",
    )

    # WHY: values_callable stores the enum value rather than the member name
    status: Mapped[InvoiceStatus] = Column(
        SQLEnum(
            InvoiceStatus,
            name="invoicestatus",
            create_type=False,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=InvoiceStatus.DRAFT,
        index=True,
    )
    currency: Mapped[str] = Column(String(3), nullable=False, default="EUR")

    # Dates
    emission_date: Mapped[datetime] = Column(
        DateTime,
        nullable=False,
        default=DRAFT_EMISSION_DATE,
        comment="Legal issue date, 1970-01-01 while draft",
    )
    operation_date: Mapped[Optional[datetime]] = Column(DateTime, nullable=True)
    due_days: Mapped[int] = Column(Integer, nullable=False, default=30)
    due_date: Mapped[datetime] = Column(DateTime, nullable=False)

    # Free text
    description: Mapped[Optional[str]] = Column(Text, nullable=True)
    reference: Mapped[Optional[str]] = Column(String(255), nullable=True)
    observations: Mapped[Optional[str]] = Column(Text, nullable=True)

    payment_method: Mapped[Optional[PaymentMethod]] = Column(
        SQLEnum(
            PaymentMethod,
            name="paymentmethod",
            create_type=False,
            values_callable=_enum_values,
        ),
        nullable=True,
    )

    # Timestamps
    created_at: Mapped[datetime] = Column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        index=True,
    )
    updated_at: Mapped[datetime] = Column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    # Relationships
    company: Mapped["Company"] = relationship("Company", back_populates="invoices")
    client: Mapped["Client"] = relationship("Client", back_populates="invoices")
    items: Mapped[List["InvoiceItem"]] = relationship(
        "InvoiceItem",
        back_populates="invoice",
        order_by="InvoiceItem.position",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<Invoice(id={self.id}, number={self.invoice_series}-{self.invoice_number}, status={self.status})>"

    @property
    def is_draft(self) -> bool:
        return self.status == InvoiceStatus.DRAFT

    def display_status(self, now: Optional[datetime] = None) -> DisplayStatus:
        """Status as shown to users, with OVERDUE derived from the due date."""
        return derive_status(self.status, self.due_date, now)


class InvoiceItem(Base):
    """
    Line item of an invoice.

    WHY: Quantities are whole units and prices carry two decimals. The tax
    rate is a percentage (21.00 means 21%). Items keep their insertion order
    through `position`, which is also their print order.
    """

    __tablename__ = "invoice_items"

    id: Mapped[int] = Column(Integer, primary_key=True, index=True)
    invoice_id: Mapped[int] = Column(
        Integer,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = Column(Integer, nullable=False, default=0)

    name: Mapped[str] = Column(String(255), nullable=False)
    description: Mapped[Optional[str]] = Column(Text, nullable=True)
    quantity: Mapped[int] = Column(Integer, nullable=False, default=1)
    price: Mapped[Decimal] = Column(Numeric(12, 2), nullable=False)
    tax_rate: Mapped[Decimal] = Column(
        Numeric(5, 2),
        nullable=False,
        default=Decimal("21.00"),
        comment="Tax percentage applied to the line",
    )

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="items")

    def __repr__(self) -> str:
        return f"<InvoiceItem(id={self.id}, name={self.name}, quantity={self.quantity})>"
