"""
Database models package.

WHY: Centralizing model imports ensures Alembic can discover all models
for migration generation and makes it easier to import models elsewhere.
"""

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin
from app.models.company import Company
from app.models.client import Client
from app.models.user import User
from app.models.company_invitation import CompanyInvitation
from app.models.invoice import (
    DRAFT_EMISSION_DATE,
    DisplayStatus,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    PaymentMethod,
    derive_status,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "PrimaryKeyMixin",
    "Company",
    "Client",
    "User",
    "CompanyInvitation",
    "DRAFT_EMISSION_DATE",
    "DisplayStatus",
    "Invoice",
    "InvoiceItem",
    "InvoiceStatus",
    "PaymentMethod",
    "derive_status",
]
