"""
Invoice schemas for API request/response validation.

WHAT: Pydantic schemas for invoice data validation.

WHY: Schemas provide:
1. Type-safe request/response handling
2. Automatic validation with clear error messages
3. OpenAPI documentation generation

HOW: Uses Pydantic v2 with Field constraints and model_config. Money
arrives as Decimal and leaves as float rounded to cents; totals are
computed from the items, never accepted from the client.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field, ConfigDict, field_validator

from app.models.invoice import DisplayStatus, InvoiceStatus, PaymentMethod


# ============================================================================
# Request Schemas
# ============================================================================


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Convert an offset-aware datetime to naive UTC.

    WHY: Date columns are naive UTC. An input such as "2026-01-05T10:00:00Z"
    must be stored as 10:00 and compared with naive values, and the
    PostgreSQL driver rejects aware values for these columns.
    """
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class InvoiceItemCreate(BaseModel):
    """
    Schema for one invoice line.

    WHY: A zero quantity is allowed; such lines print as section or note
    rows and add nothing to the totals.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255, description="Article name")
    description: Optional[str] = Field(
        default=None,
        max_length=5000,
        description="Article description printed under the name",
    )
    quantity: int = Field(..., ge=0, description="Whole units")
    price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2, description="Unit price")
    tax_rate: Optional[Decimal] = Field(
        default=None,
        ge=0,
        max_digits=5,
        decimal_places=2,
        description="Tax percentage (defaults to 21.00)",
    )


class InvoiceCreate(BaseModel):
    """
    Schema for creating an invoice.

    WHY: Most invoices start as drafts. Passing status PENDING or PAID
    confirms the invoice immediately and assigns its number.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    client_id: int = Field(..., description="Billed client (must belong to your company)")
    invoice_series: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=50,
        description="Numbering series (defaults to the current year)",
    )
    status: Optional[InvoiceStatus] = Field(
        default=None,
        description="Initial status (defaults to DRAFT)",
    )
    currency: Optional[str] = Field(
        default=None,
        min_length=3,
        max_length=3,
        description="ISO currency code (defaults to EUR)",
    )
    emission_date: Optional[datetime] = Field(
        default=None,
        description="Emission date for invoices created already confirmed",
    )
    operation_date: Optional[datetime] = Field(default=None, description="Operation date")
    due_days: Optional[int] = Field(default=None, ge=0, description="Payment term in days")
    description: Optional[str] = Field(default=None, max_length=5000)
    reference: Optional[str] = Field(default=None, max_length=255)
    observations: Optional[str] = Field(default=None, max_length=5000)
    payment_method: Optional[PaymentMethod] = Field(default=None)
    items: List[InvoiceItemCreate] = Field(default_factory=list)

    @field_validator("emission_date", "operation_date")
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class InvoiceUpdate(BaseModel):
    """
    Schema for partially updating an invoice.

    WHY: Only fields present in the request are applied. The number and
    the status are not editable here: status changes go through the
    confirm and pay endpoints. The series can only change while DRAFT.
    When given, `items` replaces the whole item list.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    client_id: Optional[int] = None
    invoice_series: Optional[str] = Field(default=None, min_length=1, max_length=50)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    emission_date: Optional[datetime] = None
    operation_date: Optional[datetime] = None
    due_days: Optional[int] = Field(default=None, ge=0)
    description: Optional[str] = Field(default=None, max_length=5000)
    reference: Optional[str] = Field(default=None, max_length=255)
    observations: Optional[str] = Field(default=None, max_length=5000)
    payment_method: Optional[PaymentMethod] = None
    items: Optional[List[InvoiceItemCreate]] = None

    @field_validator("emission_date", "operation_date")
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class InvoiceFilter(BaseModel):
    """
    Query filters for listing invoices.

    WHY: All filters combine with AND. The price range applies to the
    computed total with tax.
    """

    date_from: Optional[datetime] = Field(default=None, description="Created at or after")
    date_to: Optional[datetime] = Field(default=None, description="Created at or before")
    status: Optional[DisplayStatus] = Field(
        default=None,
        description="DRAFT, PENDING, PAID or OVERDUE (pending and past due)",
    )
    client_id: Optional[int] = None
    reference: Optional[str] = Field(default=None, description="Case-insensitive substring")
    price_min: Optional[Decimal] = Field(default=None, ge=0)
    price_max: Optional[Decimal] = Field(default=None, ge=0)

    @field_validator("date_from", "date_to")
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


# ============================================================================
# Response Schemas
# ============================================================================


class ClientSummary(BaseModel):
    """Client fields embedded in invoice responses."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: Optional[str] = None
    vat_number: Optional[str] = None


class InvoiceItemResponse(BaseModel):
    """Invoice line with its computed amounts."""

    id: int
    position: int
    name: str
    description: Optional[str]
    quantity: int
    price: float
    tax_rate: float
    subtotal: float
    tax: float
    total: float


class TaxBreakdownResponse(BaseModel):
    rate: float
    base: float
    tax: float


class InvoiceResponse(BaseModel):
    """
    Schema for invoice response data.

    WHY: Complete invoice data for display including:
    - Stored fields and the derived display status
    - Items with line amounts
    - Computed totals and tax breakdown
    """

    id: int
    company_id: int
    client_id: int
    client: Optional[ClientSummary] = None

    invoice_series: str
    invoice_number: str
    status: InvoiceStatus
    display_status: DisplayStatus
    currency: str

    # Dates
    emission_date: datetime
    operation_date: Optional[datetime]
    due_days: int
    due_date: datetime

    description: Optional[str]
    reference: Optional[str]
    observations: Optional[str]
    payment_method: Optional[PaymentMethod]

    items: List[InvoiceItemResponse]

    # Computed totals
    base_amount: float
    total_tax: float
    total_with_tax: float
    tax_breakdown: List[TaxBreakdownResponse]

    created_at: datetime
    updated_at: datetime


class InvoiceListResponse(BaseModel):
    """List response for invoices."""

    items: List[InvoiceResponse]
    total: int


class InvoiceDeleteResponse(BaseModel):
    message: str
