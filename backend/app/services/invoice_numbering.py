"""
Invoice numbering service.

WHAT: Assigns legal invoice numbers at confirmation time.

WHY: Legal numbering must be gap-free and unique per (company, series).
Numbers are computed when an invoice leaves DRAFT, never at creation, so
drafts never consume a number and concurrent drafts cannot collide.

HOW: The count-then-write sequence runs inside a SAVEPOINT:
1. On PostgreSQL, a transaction-scoped advisory lock keyed by
   (company, series) queues concurrent confirmations of the same series
2. next number = count of non-draft invoices in the series + 1, or the
   highest issued number + 1 when a deletion left the count behind
3. The partial unique index on (company_id, invoice_series,
   invoice_number) rejects any duplicate that still slips through; the
   savepoint is rolled back and the assignment retried a bounded number
   of times before giving up with a 409
"""

import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import InvoiceNumberConflictError
from app.dao.invoice import InvoiceDAO
from app.models.invoice import Invoice

logger = logging.getLogger(__name__)


def format_invoice_number(sequence: int, width: int = 4) -> str:
    """
    Zero-pad a sequence number.

    There is no upper bound: past 9999 the string simply grows.

    >>> format_invoice_number(7)
    '0007'
    >>> format_invoice_number(10000)
    '10000'
    """
    return str(sequence).zfill(width)


class InvoiceNumberingService:
    """
    Assigns gap-free invoice numbers per (company, series).

    WHY: One instance per request, sharing the request's session so the
    number is written in the same transaction as the status change.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.invoice_dao = InvoiceDAO(session)

    async def next_number(self, company_id: int, invoice_series: str) -> str:
        """
        Compute the next number of a series without reserving it.

        WHY: Normally the confirmed count plus one. After a numbered invoice
        was deleted the count falls behind, so the highest issued number
        wins and no number is ever issued twice.

        Args:
            company_id: Owning company
            invoice_series: Numbering series

        Returns:
            Zero-padded next number
        """
        confirmed = await self.invoice_dao.count_confirmed(company_id, invoice_series)
        highest = await self.invoice_dao.highest_number(company_id, invoice_series)
        return format_invoice_number(max(confirmed, highest) + 1, settings.INVOICE_NUMBER_WIDTH)

    async def _lock_series(self, company_id: int, invoice_series: str) -> None:
        if self.session.get_bind().dialect.name != "postgresql":
            return
        await self.session.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
            {"key": f"{company_id}:{invoice_series}"},
        )

    async def assign(self, invoice: Invoice, **changes: Any) -> str:
        """
        Assign the next number to an invoice and apply accompanying changes.

        WHAT: Writes the number together with `changes` (status, emission and
        due dates) and flushes, so a duplicate is detected here and not at
        commit time.

        Args:
            invoice: Persistent draft invoice
            **changes: Additional attributes to set with the number

        Returns:
            The assigned number

        Raises:
            InvoiceNumberConflictError: If every attempt collided
        """
        # Read before the loop; a rolled back savepoint expires the instance
        invoice_id = invoice.id
        company_id = invoice.company_id
        invoice_series = invoice.invoice_series
        max_attempts = settings.INVOICE_NUMBER_MAX_RETRIES

        for attempt in range(1, max_attempts + 1):
            try:
                async with self.session.begin_nested():
                    await self._lock_series(company_id, invoice_series)
                    number = await self.next_number(company_id, invoice_series)
                    await self.invoice_dao.update(invoice, invoice_number=number, **changes)
            except IntegrityError:
                logger.warning(
                    f"Invoice number collision for invoice {invoice_id} "
                    f"(company={company_id}, series={invoice_series}), "
                    f"attempt {attempt}/{max_attempts}"
                )
                continue

            logger.info(
                f"Assigned number {invoice_series}-{number} to invoice {invoice_id} "
                f"(company={company_id})"
            )
            return number

        raise InvoiceNumberConflictError(
            invoice_id=invoice_id,
            invoice_series=invoice_series,
            attempts=max_attempts,
        )
