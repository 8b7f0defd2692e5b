"""
Dashboard schemas.

WHAT: Response model for the invoice dashboard statistics.
"""

from typing import List

from pydantic import BaseModel, Field


class InvoiceCounts(BaseModel):
    """
    Invoice tallies by status.

    WHY: Overdue overlaps with pending (and, for past-due drafts, draft),
    so the counts do not add up to `total`.
    """

    total: int
    paid: int
    overdue: int
    draft: int
    pending: int


class ClientRevenue(BaseModel):
    name: str = Field(description="Client name, 'Unknown' when missing or blank")
    total: float


class MonthlyRevenue(BaseModel):
    month: str = Field(description="Creation month as YYYY-MM")
    total: float


class TeamStats(BaseModel):
    active_members: int
    pending_invitations: int


class DashboardStats(BaseModel):
    """Financial overview of a company's invoices."""

    total_revenue: float = Field(description="Sum of totals of paid invoices")
    outstanding_amount: float = Field(
        description="Sum of totals of overdue, draft and pending invoices"
    )
    invoice_count: InvoiceCounts
    top_clients: List[ClientRevenue] = Field(description="Top 5 clients by paid revenue")
    monthly_revenue: List[MonthlyRevenue] = Field(description="Paid revenue per month")
    team: TeamStats
