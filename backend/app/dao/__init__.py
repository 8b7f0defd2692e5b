"""
Data Access Objects for the invoicing core.

WHY: Services decide lifecycle rules; DAOs own every query, including
the company scoping that keeps one tenant out of another's invoices.
"""

from app.dao.base import BaseDAO
from app.dao.client import ClientDAO
from app.dao.company_invitation import CompanyInvitationDAO
from app.dao.invoice import InvoiceDAO
from app.dao.user import UserDAO

__all__ = [
    "BaseDAO",
    "ClientDAO",
    "CompanyInvitationDAO",
    "InvoiceDAO",
    "UserDAO",
]
