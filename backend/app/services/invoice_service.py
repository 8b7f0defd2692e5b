"""
Invoice Service.

WHAT: Business logic for the invoice lifecycle.

WHY: The service layer:
1. Enforces the state machine DRAFT -> PENDING -> PAID
2. Scopes every operation to the caller's company
3. Assigns legal numbers on confirmation through the numbering service
4. Keeps due dates consistent with emission dates and payment terms

HOW: Orchestrates InvoiceDAO, ClientDAO and InvoiceNumberingService on the
request's session. Every rule violation raises a domain exception that
carries the invoice id and the expected vs. current state.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    ClientNotFoundError,
    CompanyRequiredError,
    CrossTenantAccessError,
    ImmutableInvoiceFieldError,
    InvalidStateTransitionError,
    InvoiceNotFoundError,
)
from app.dao.client import ClientDAO
from app.dao.invoice import InvoiceDAO
from app.models.client import Client
from app.models.invoice import DRAFT_EMISSION_DATE, Invoice, InvoiceStatus
from app.schemas.invoice import InvoiceCreate, InvoiceFilter, InvoiceUpdate
from app.services.invoice_numbering import InvoiceNumberingService
from app.services.invoice_totals import invoice_total, resolve_tax_rate

logger = logging.getLogger(__name__)

# Columns that cannot be cleared by an explicit null in an update
_REQUIRED_FIELDS = {"client_id", "invoice_series", "currency", "due_days"}


def _require_company(company_id: Optional[int]) -> int:
    if company_id is None:
        raise CompanyRequiredError()
    return company_id


def _item_fields(items: Iterable[Any]) -> List[Dict[str, Any]]:
    return [
        {
            "name": item.name,
            "description": item.description,
            "quantity": item.quantity,
            "price": item.price,
            "tax_rate": resolve_tax_rate(item.tax_rate),
        }
        for item in items
    ]


class InvoiceService:
    """
    Service for invoice lifecycle operations.

    WHAT: Create, confirm, pay, update, delete and query invoices.

    HOW: One instance per request. Methods that return an invoice reload
    it with items, client and company so callers can serialize or render
    it without further queries.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize InvoiceService.

        Args:
            session: Async database session
        """
        self.session = session
        self.invoice_dao = InvoiceDAO(session)
        self.client_dao = ClientDAO(session)
        self.numbering = InvoiceNumberingService(session)

    async def _get_owned_invoice(self, invoice_id: int, company_id: int) -> Invoice:
        """
        Load an invoice and check it belongs to the company.

        Raises:
            InvoiceNotFoundError: If no invoice has this id
            CrossTenantAccessError: If another company owns it
        """
        invoice = await self.invoice_dao.get_by_id(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(
                message=f"Invoice with ID {invoice_id} not found",
                invoice_id=invoice_id,
            )
        if invoice.company_id != company_id:
            raise CrossTenantAccessError(invoice_id=invoice_id)
        return invoice

    async def _get_owned_client(self, client_id: int, company_id: int) -> Client:
        client = await self.client_dao.get_by_id_and_company(client_id, company_id)
        if client is None:
            raise ClientNotFoundError(
                message=f"Client with ID {client_id} not found",
                client_id=client_id,
            )
        return client

    async def _reload(self, invoice_id: int) -> Invoice:
        invoice = await self.invoice_dao.get_with_relations(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id=invoice_id)
        return invoice

    async def create(self, company_id: Optional[int], data: InvoiceCreate) -> Invoice:
        """
        Create an invoice with its items.

        WHAT: Drafts get an empty number, the epoch emission date and a due
        date counted from now. A PENDING or PAID status confirms the
        invoice straight away: it is inserted as a draft, then numbered,
        with the emission date defaulting to now.

        Args:
            company_id: Caller's company
            data: Invoice fields and items

        Returns:
            Created Invoice with relationships loaded

        Raises:
            CompanyRequiredError: If the caller has no company
            ClientNotFoundError: If the client is not one of the company's
            InvoiceNumberConflictError: If numbering kept colliding
        """
        company_id = _require_company(company_id)
        await self._get_owned_client(data.client_id, company_id)

        now = datetime.utcnow()
        due_days = data.due_days if data.due_days is not None else settings.DEFAULT_DUE_DAYS
        status = data.status or InvoiceStatus.DRAFT

        invoice = await self.invoice_dao.create(
            company_id=company_id,
            client_id=data.client_id,
            invoice_series=data.invoice_series or str(now.year),
            invoice_number="",
            status=InvoiceStatus.DRAFT,
            currency=data.currency or settings.DEFAULT_CURRENCY,
            emission_date=DRAFT_EMISSION_DATE,
            operation_date=data.operation_date,
            due_days=due_days,
            due_date=now + timedelta(days=due_days),
            description=data.description,
            reference=data.reference,
            observations=data.observations,
            payment_method=data.payment_method,
        )
        invoice_id = invoice.id
        await self.invoice_dao.add_items(invoice_id, _item_fields(data.items))

        if status != InvoiceStatus.DRAFT:
            emission_date = data.emission_date or now
            await self.numbering.assign(
                invoice,
                status=status,
                emission_date=emission_date,
                due_date=emission_date + timedelta(days=due_days),
            )

        logger.info(
            f"Created invoice {invoice_id} for company {company_id} with status {status.value}"
        )
        return await self._reload(invoice_id)

    async def confirm(self, invoice_id: int, company_id: Optional[int]) -> Invoice:
        """
        Confirm a draft invoice.

        WHAT: Assigns the next legal number, sets the emission date to now,
        moves the invoice to PENDING and recomputes the due date from the
        stored payment term.

        Raises:
            InvoiceNotFoundError: If the invoice does not exist
            CrossTenantAccessError: If another company owns it
            InvalidStateTransitionError: If the invoice is not a draft
            InvoiceNumberConflictError: If numbering kept colliding
        """
        company_id = _require_company(company_id)
        invoice = await self._get_owned_invoice(invoice_id, company_id)

        if invoice.status != InvoiceStatus.DRAFT:
            raise InvalidStateTransitionError(
                message="Only draft invoices can be confirmed",
                invoice_id=invoice_id,
                current_state=invoice.status.value,
                expected_state=InvoiceStatus.DRAFT.value,
            )

        now = datetime.utcnow()
        number = await self.numbering.assign(
            invoice,
            status=InvoiceStatus.PENDING,
            emission_date=now,
            due_date=now + timedelta(days=invoice.due_days),
        )

        logger.info(f"Invoice {invoice_id} confirmed with number {number}")
        return await self._reload(invoice_id)

    async def mark_paid(self, invoice_id: int, company_id: Optional[int]) -> Invoice:
        """
        Mark a pending invoice as paid.

        WHY: PAID is terminal. Paying a draft or paying twice is rejected,
        never silently accepted.

        Raises:
            InvoiceNotFoundError: If the invoice does not exist
            CrossTenantAccessError: If another company owns it
            InvalidStateTransitionError: If the invoice is not PENDING
        """
        company_id = _require_company(company_id)
        invoice = await self._get_owned_invoice(invoice_id, company_id)

        if invoice.status != InvoiceStatus.PENDING:
            raise InvalidStateTransitionError(
                message="Only pending invoices can be marked as paid",
                invoice_id=invoice_id,
                current_state=invoice.status.value,
                expected_state=InvoiceStatus.PENDING.value,
            )

        await self.invoice_dao.update(invoice, status=InvoiceStatus.PAID)

        logger.info(f"Invoice {invoice_id} marked as paid")
        return await self._reload(invoice_id)

    async def update(
        self,
        invoice_id: int,
        company_id: Optional[int],
        data: InvoiceUpdate,
    ) -> Invoice:
        """
        Apply a partial update to an invoice.

        WHAT: Only fields present in the request change. `items` replaces
        the whole list. A change of emission date or payment term
        recomputes the due date: drafts count from now, numbered invoices
        from their (new or stored) emission date.

        Raises:
            InvoiceNotFoundError: If the invoice does not exist
            CrossTenantAccessError: If another company owns it
            ImmutableInvoiceFieldError: If the series of a numbered invoice changes
            ClientNotFoundError: If the new client is not one of the company's
        """
        company_id = _require_company(company_id)
        invoice = await self._get_owned_invoice(invoice_id, company_id)

        changes = data.model_dump(exclude_unset=True, exclude={"items"})
        for field in _REQUIRED_FIELDS & changes.keys():
            if changes[field] is None:
                del changes[field]
        if changes.get("emission_date") is None:
            changes.pop("emission_date", None)

        is_draft = invoice.status == InvoiceStatus.DRAFT

        series = changes.get("invoice_series")
        if series is not None and series != invoice.invoice_series and not is_draft:
            raise ImmutableInvoiceFieldError(
                invoice_id=invoice_id,
                current_state=invoice.status.value,
                expected_state=InvoiceStatus.DRAFT.value,
            )

        if "client_id" in changes:
            await self._get_owned_client(changes["client_id"], company_id)

        if "emission_date" in changes or "due_days" in changes:
            base = datetime.utcnow() if is_draft else changes.get("emission_date", invoice.emission_date)
            due_days = changes.get("due_days", invoice.due_days)
            changes["due_date"] = base + timedelta(days=due_days)

        await self.invoice_dao.update(invoice, **changes)

        if data.items is not None:
            await self.invoice_dao.replace_items(invoice_id, _item_fields(data.items))

        logger.info(f"Updated invoice {invoice_id} fields: {sorted(changes)}")
        return await self._reload(invoice_id)

    async def remove(self, invoice_id: int, company_id: Optional[int]) -> str:
        """
        Delete an invoice and its items.

        Returns:
            Confirmation message naming the invoice number
        """
        company_id = _require_company(company_id)
        invoice = await self._get_owned_invoice(invoice_id, company_id)
        number = invoice.invoice_number

        await self.invoice_dao.delete_with_items(invoice_id)
        self.session.expunge(invoice)

        logger.info(f"Deleted invoice {invoice_id} (number '{number}') of company {company_id}")
        return f"Invoice #{number} has been deleted successfully"

    async def find_all(
        self,
        company_id: Optional[int],
        filters: Optional[InvoiceFilter] = None,
    ) -> List[Invoice]:
        """
        List the company's invoices matching the filters, newest first.

        WHY: The price range applies to the computed total, which is not a
        column, so it is filtered after loading.
        """
        company_id = _require_company(company_id)
        filters = filters or InvoiceFilter()

        invoices = await self.invoice_dao.find_for_company(
            company_id,
            date_from=filters.date_from,
            date_to=filters.date_to,
            status=filters.status,
            client_id=filters.client_id,
            reference=filters.reference,
        )

        if filters.price_min is None and filters.price_max is None:
            return invoices

        matching = []
        for invoice in invoices:
            total = invoice_total(invoice)
            if filters.price_min is not None and total < filters.price_min:
                continue
            if filters.price_max is not None and total > filters.price_max:
                continue
            matching.append(invoice)
        return matching

    async def find_one(self, invoice_id: int, company_id: Optional[int]) -> Invoice:
        """
        Get one invoice with items, client and company.

        Raises:
            InvoiceNotFoundError: If the invoice does not exist
            CrossTenantAccessError: If another company owns it
        """
        company_id = _require_company(company_id)
        await self._get_owned_invoice(invoice_id, company_id)
        return await self._reload(invoice_id)
