"""
Invoice Data Access Object (DAO).

WHAT: Database operations for the Invoice and InvoiceItem models.

WHY: The DAO pattern:
1. Separates data access from lifecycle rules
2. Enforces company scoping for multi-tenancy
3. Keeps eager-loading decisions in one place, since async sessions
   cannot lazy-load relationships on attribute access

HOW: Extends BaseDAO with invoice-specific queries:
- Relation-complete loads for responses and rendering
- Conjunctive list filters (dates, status, client, reference)
- Counting confirmed invoices of a numbering series
- Item replacement and cascading delete
"""

from datetime import datetime
from typing import Any, Iterable, List, Optional
from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.dao.base import BaseDAO
from app.models.invoice import (
    DisplayStatus,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
)


class InvoiceDAO(BaseDAO[Invoice]):
    """
    Data Access Object for Invoice model.

    WHAT: Provides CRUD and query operations for invoices and their items.

    HOW: Extends BaseDAO; every list query is scoped by company_id.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize InvoiceDAO.

        Args:
            session: Async database session
        """
        super().__init__(Invoice, session)

    async def get_with_relations(self, invoice_id: int) -> Optional[Invoice]:
        """
        Load an invoice with items, client and company.

        WHY: populate_existing refreshes an instance already present in the
        identity map, so callers always see the state just written.

        Args:
            invoice_id: Invoice ID

        Returns:
            Invoice with relationships loaded, None if not found
        """
        result = await self.session.execute(
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .options(
                selectinload(Invoice.items),
                selectinload(Invoice.client),
                selectinload(Invoice.company),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_for_company(
        self,
        company_id: int,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        status: Optional[DisplayStatus] = None,
        client_id: Optional[int] = None,
        reference: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[Invoice]:
        """
        List a company's invoices matching all given filters.

        WHAT: Newest first, with items and client loaded.

        WHY: OVERDUE is not stored; it is matched as PENDING invoices whose
        due date is before `now`.

        Args:
            company_id: Owning company
            date_from: Inclusive lower bound on created_at
            date_to: Inclusive upper bound on created_at
            status: Display status to match
            client_id: Billed client
            reference: Case-insensitive substring of the reference
            now: Reference time for OVERDUE, defaults to current UTC time

        Returns:
            List of matching invoices
        """
        query = select(Invoice).where(Invoice.company_id == company_id)

        if date_from is not None:
            query = query.where(Invoice.created_at >= date_from)
        if date_to is not None:
            query = query.where(Invoice.created_at <= date_to)

        if status is not None:
            if status == DisplayStatus.OVERDUE:
                query = query.where(
                    Invoice.status == InvoiceStatus.PENDING,
                    Invoice.due_date < (now or datetime.utcnow()),
                )
            else:
                query = query.where(Invoice.status == InvoiceStatus(status.value))

        if client_id is not None:
            query = query.where(Invoice.client_id == client_id)
        if reference:
            query = query.where(Invoice.reference.ilike(f"%{reference}%"))

        result = await self.session.execute(
            query.options(
                selectinload(Invoice.items),
                selectinload(Invoice.client),
            ).order_by(Invoice.created_at.desc(), Invoice.id.desc())
        )
        return list(result.scalars().all())

    async def all_for_company(self, company_id: int) -> List[Invoice]:
        """
        Load every invoice of a company with items and client.

        WHY: Dashboard statistics are computed over the full set.
        """
        result = await self.session.execute(
            select(Invoice)
            .where(Invoice.company_id == company_id)
            .options(
                selectinload(Invoice.items),
                selectinload(Invoice.client),
            )
        )
        return list(result.scalars().all())

    async def count_confirmed(self, company_id: int, invoice_series: str) -> int:
        """
        Count non-draft invoices of a (company, series).

        WHY: The next legal number is this count plus one. Drafts never
        consume a number.
        """
        result = await self.session.execute(
            select(func.count(Invoice.id)).where(
                Invoice.company_id == company_id,
                Invoice.invoice_series == invoice_series,
                Invoice.status != InvoiceStatus.DRAFT,
            )
        )
        return result.scalar_one()

    async def highest_number(self, company_id: int, invoice_series: str) -> int:
        """
        Highest numeric invoice number issued in a (company, series).

        WHY: Deleting a numbered invoice lowers the confirmed count below
        numbers already issued. The next number must stay above both.
        Longer strings sort first so "10000" outranks "9999".

        Returns:
            The highest number as an int, 0 when none was issued
        """
        result = await self.session.execute(
            select(Invoice.invoice_number)
            .where(
                Invoice.company_id == company_id,
                Invoice.invoice_series == invoice_series,
                Invoice.status != InvoiceStatus.DRAFT,
            )
            .order_by(func.length(Invoice.invoice_number).desc(), Invoice.invoice_number.desc())
        )
        for number in result.scalars():
            if number.isdigit():
                return int(number)
        return 0

    async def add_items(self, invoice_id: int, items: Iterable[dict[str, Any]]) -> None:
        """
        Insert line items in the given order.

        Args:
            invoice_id: Owning invoice
            items: Field dicts (name, description, quantity, price, tax_rate)
        """
        for position, fields in enumerate(items):
            self.session.add(InvoiceItem(invoice_id=invoice_id, position=position, **fields))
        await self.session.flush()

    async def delete_items(self, invoice_id: int) -> None:
        """Delete every line item of an invoice."""
        await self.session.execute(
            delete(InvoiceItem).where(InvoiceItem.invoice_id == invoice_id)
        )

    async def replace_items(self, invoice_id: int, items: Iterable[dict[str, Any]]) -> None:
        """
        Replace the whole item set of an invoice.

        WHY: Item edits are wholesale; positions restart at zero.
        """
        await self.delete_items(invoice_id)
        await self.add_items(invoice_id, items)

    async def delete_with_items(self, invoice_id: int) -> bool:
        """
        Delete an invoice after its items.

        Returns:
            True if the invoice row was deleted
        """
        await self.delete_items(invoice_id)
        return await self.delete(invoice_id)
