"""
Dashboard Service.

WHAT: Aggregates a company's invoices into dashboard statistics.

WHY: The dashboard answers "how much did we earn, how much is still owed,
who are our best clients" in one call. Statistics are recomputed from
the invoices on every request; nothing is cached.

HOW: summarize_invoices() is a pure function over loaded invoices so it
can be tested without a database. DashboardService loads the invoices
and adds the team counts from the user and invitation DAOs.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import CompanyRequiredError
from app.dao.company_invitation import CompanyInvitationDAO
from app.dao.invoice import InvoiceDAO
from app.dao.user import UserDAO
from app.models.invoice import Invoice, InvoiceStatus
from app.schemas.dashboard import (
    ClientRevenue,
    DashboardStats,
    InvoiceCounts,
    MonthlyRevenue,
    TeamStats,
)
from app.services.invoice_totals import invoice_total, round_amount

TOP_CLIENTS_LIMIT = 5
UNKNOWN_CLIENT = "Unknown"


@dataclass
class InvoiceSummary:
    """Financial figures of a set of invoices, before team counts are added."""

    total_revenue: Decimal
    outstanding_amount: Decimal
    counts: InvoiceCounts
    top_clients: list[tuple[str, Decimal]]
    monthly_revenue: list[tuple[str, Decimal]]


def is_overdue(invoice: Invoice, now: datetime) -> bool:
    """Past its due date and not paid."""
    return invoice.due_date < now and invoice.status != InvoiceStatus.PAID


def summarize_invoices(invoices: Iterable[Invoice], now: Optional[datetime] = None) -> InvoiceSummary:
    """
    Compute revenue, outstanding amount, counts and rankings.

    WHAT: Paid, overdue, draft and pending are tallied independently: a
    past-due PENDING invoice counts as both overdue and pending. The
    outstanding amount sums each unpaid invoice once, even when it falls
    in several of those groups.

    Args:
        invoices: Invoices with items and client loaded
        now: Reference time, defaults to current UTC time

    Returns:
        InvoiceSummary
    """
    now = now or datetime.utcnow()
    invoices = list(invoices)

    paid = [i for i in invoices if i.status == InvoiceStatus.PAID]
    overdue = [i for i in invoices if is_overdue(i, now)]
    draft = [i for i in invoices if i.status == InvoiceStatus.DRAFT]
    pending = [i for i in invoices if i.status == InvoiceStatus.PENDING]

    totals = {invoice.id: invoice_total(invoice) for invoice in invoices}

    total_revenue = sum((totals[i.id] for i in paid), Decimal("0"))

    unpaid_ids = {i.id for i in overdue + draft + pending}
    outstanding_amount = sum((totals[i] for i in unpaid_ids), Decimal("0"))

    by_client: dict[str, Decimal] = defaultdict(Decimal)
    by_month: dict[str, Decimal] = defaultdict(Decimal)
    for invoice in paid:
        name = (invoice.client.name if invoice.client is not None else None) or UNKNOWN_CLIENT
        by_client[name] += totals[invoice.id]
        by_month[invoice.created_at.strftime("%Y-%m")] += totals[invoice.id]

    top_clients = sorted(by_client.items(), key=lambda entry: entry[1], reverse=True)
    monthly_revenue = sorted(by_month.items())

    return InvoiceSummary(
        total_revenue=total_revenue,
        outstanding_amount=outstanding_amount,
        counts=InvoiceCounts(
            total=len(invoices),
            paid=len(paid),
            overdue=len(overdue),
            draft=len(draft),
            pending=len(pending),
        ),
        top_clients=top_clients[:TOP_CLIENTS_LIMIT],
        monthly_revenue=monthly_revenue,
    )


class DashboardService:
    """
    Service for dashboard statistics.

    WHAT: Combines invoice figures with team membership counts.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.invoice_dao = InvoiceDAO(session)
        self.user_dao = UserDAO(session)
        self.invitation_dao = CompanyInvitationDAO(session)

    async def get_stats(self, company_id: Optional[int], now: Optional[datetime] = None) -> DashboardStats:
        """
        Build the dashboard for a company.

        Args:
            company_id: Company ID
            now: Reference time, defaults to current UTC time

        Returns:
            DashboardStats with amounts rounded to cents
        """
        if company_id is None:
            raise CompanyRequiredError()
        now = now or datetime.utcnow()
        invoices = await self.invoice_dao.all_for_company(company_id)
        summary = summarize_invoices(invoices, now)

        return DashboardStats(
            total_revenue=float(round_amount(summary.total_revenue)),
            outstanding_amount=float(round_amount(summary.outstanding_amount)),
            invoice_count=summary.counts,
            top_clients=[
                ClientRevenue(name=name, total=float(round_amount(total)))
                for name, total in summary.top_clients
            ],
            monthly_revenue=[
                MonthlyRevenue(month=month, total=float(round_amount(total)))
                for month, total in summary.monthly_revenue
            ],
            team=TeamStats(
                active_members=await self.user_dao.count_by_company(company_id),
                pending_invitations=await self.invitation_dao.count_pending(company_id, now),
            ),
        )
