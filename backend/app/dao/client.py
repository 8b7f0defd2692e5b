"""
Client Data Access Object.

WHY: The invoicing core only reads clients, to check that an invoice's
client belongs to the caller's company.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.base import BaseDAO
from app.models.client import Client


class ClientDAO(BaseDAO[Client]):
    """Data Access Object for Client model."""

    def __init__(self, session: AsyncSession):
        super().__init__(Client, session)
