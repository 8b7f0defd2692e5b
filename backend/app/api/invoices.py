"""
Invoice management API endpoints.

WHAT: RESTful API for the invoice lifecycle, dashboard and PDF output.

WHY: Invoices are critical for:
1. Billing clients with legally numbered documents
2. Tracking payment status
3. Producing the PDF handed to clients
4. Summarizing revenue on the dashboard

HOW: FastAPI router with:
- Company-scoped operations (tenant resolved from the bearer token)
- Business rules delegated to InvoiceService
- Totals computed from items on every response
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import get_current_company_id
from app.db.session import get_db
from app.models.invoice import DisplayStatus, Invoice
from app.schemas.dashboard import DashboardStats
from app.schemas.invoice import (
    ClientSummary,
    InvoiceCreate,
    InvoiceDeleteResponse,
    InvoiceFilter,
    InvoiceItemResponse,
    InvoiceListResponse,
    InvoiceResponse,
    InvoiceUpdate,
    TaxBreakdownResponse,
)
from app.services.dashboard_service import DashboardService
from app.services.invoice_service import InvoiceService
from app.services.invoice_totals import compute_totals, line_amounts, round_amount
from app.services.pdf_service import PDFService, get_pdf_service


router = APIRouter(prefix="/invoices", tags=["invoices"])


def _money(amount: Decimal) -> float:
    return float(round_amount(amount))


def _invoice_to_response(invoice: Invoice, now: Optional[datetime] = None) -> InvoiceResponse:
    """
    Convert Invoice model to InvoiceResponse schema.

    WHY: Centralized conversion computes totals and the display status in
    one place and rounds money to cents only here.

    Args:
        invoice: Invoice with items and client loaded
        now: Reference time for the display status

    Returns:
        InvoiceResponse schema instance
    """
    totals = compute_totals(invoice.items)
    items = []
    for item in invoice.items:
        amounts = line_amounts(item)
        items.append(
            InvoiceItemResponse(
                id=item.id,
                position=item.position,
                name=item.name,
                description=item.description,
                quantity=item.quantity,
                price=float(item.price),
                tax_rate=float(item.tax_rate),
                subtotal=_money(amounts.subtotal),
                tax=_money(amounts.tax),
                total=_money(amounts.total),
            )
        )

    return InvoiceResponse(
        id=invoice.id,
        company_id=invoice.company_id,
        client_id=invoice.client_id,
        client=ClientSummary.model_validate(invoice.client) if invoice.client else None,
        invoice_series=invoice.invoice_series,
        invoice_number=invoice.invoice_number,
        status=invoice.status,
        display_status=invoice.display_status(now),
        currency=invoice.currency,
        emission_date=invoice.emission_date,
        operation_date=invoice.operation_date,
        due_days=invoice.due_days,
        due_date=invoice.due_date,
        description=invoice.description,
        reference=invoice.reference,
        observations=invoice.observations,
        payment_method=invoice.payment_method,
        items=items,
        base_amount=_money(totals.base_amount),
        total_tax=_money(totals.total_tax),
        total_with_tax=_money(totals.total_with_tax),
        tax_breakdown=[
            TaxBreakdownResponse(rate=float(entry.rate), base=_money(entry.base), tax=_money(entry.tax))
            for entry in totals.tax_breakdown
        ],
        created_at=invoice.created_at,
        updated_at=invoice.updated_at,
    )


def _pdf_response(pdf_bytes: bytes, filename: str, disposition: str) -> Response:
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'{disposition}; filename="{filename}"'},
    )


@router.post(
    "",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create invoice",
    description="Create a draft invoice, or a confirmed one when status is PENDING or PAID",
)
async def create_invoice(
    data: InvoiceCreate,
    company_id: int = Depends(get_current_company_id),
    db: AsyncSession = Depends(get_db),
) -> InvoiceResponse:
    """
    Create a new invoice.

    Raises:
        ClientNotFoundError (404): If the client is not one of the company's
        InvoiceNumberConflictError (409): If no unique number could be assigned
    """
    invoice = await InvoiceService(db).create(company_id, data)
    return _invoice_to_response(invoice)


@router.get(
    "/dashboard",
    response_model=DashboardStats,
    status_code=status.HTTP_200_OK,
    summary="Invoice dashboard",
    description="Revenue, outstanding amount, counts, top clients and team size",
)
async def get_dashboard(
    company_id: int = Depends(get_current_company_id),
    db: AsyncSession = Depends(get_db),
) -> DashboardStats:
    return await DashboardService(db).get_stats(company_id)


@router.get(
    "",
    response_model=InvoiceListResponse,
    status_code=status.HTTP_200_OK,
    summary="List invoices",
    description="List the company's invoices, newest first, with optional filters",
)
async def list_invoices(
    date_from: Optional[datetime] = Query(default=None, description="Created at or after"),
    date_to: Optional[datetime] = Query(default=None, description="Created at or before"),
    status_filter: Optional[DisplayStatus] = Query(
        default=None,
        alias="status",
        description="DRAFT, PENDING, PAID or OVERDUE",
    ),
    client_id: Optional[int] = Query(default=None),
    reference: Optional[str] = Query(default=None, description="Case-insensitive substring"),
    price_min: Optional[Decimal] = Query(default=None, ge=0, description="Minimum total with tax"),
    price_max: Optional[Decimal] = Query(default=None, ge=0, description="Maximum total with tax"),
    company_id: int = Depends(get_current_company_id),
    db: AsyncSession = Depends(get_db),
) -> InvoiceListResponse:
    """
    List invoices with filters.

    WHY: All filters combine with AND. OVERDUE selects pending invoices
    whose due date has passed.
    """
    filters = InvoiceFilter(
        date_from=date_from,
        date_to=date_to,
        status=status_filter,
        client_id=client_id,
        reference=reference,
        price_min=price_min,
        price_max=price_max,
    )
    invoices = await InvoiceService(db).find_all(company_id, filters)
    now = datetime.utcnow()

    return InvoiceListResponse(
        items=[_invoice_to_response(invoice, now) for invoice in invoices],
        total=len(invoices),
    )


@router.get(
    "/{invoice_id}",
    response_model=InvoiceResponse,
    status_code=status.HTTP_200_OK,
    summary="Get invoice",
)
async def get_invoice(
    invoice_id: int,
    company_id: int = Depends(get_current_company_id),
    db: AsyncSession = Depends(get_db),
) -> InvoiceResponse:
    invoice = await InvoiceService(db).find_one(invoice_id, company_id)
    return _invoice_to_response(invoice)


@router.patch(
    "/{invoice_id}/confirm",
    response_model=InvoiceResponse,
    status_code=status.HTTP_200_OK,
    summary="Confirm invoice",
    description="Assign the next legal number and move a draft to PENDING",
)
async def confirm_invoice(
    invoice_id: int,
    company_id: int = Depends(get_current_company_id),
    db: AsyncSession = Depends(get_db),
) -> InvoiceResponse:
    """
    Confirm a draft invoice.

    Raises:
        InvalidStateTransitionError (400): If the invoice is not a draft
        CrossTenantAccessError (403): If another company owns the invoice
        InvoiceNumberConflictError (409): If no unique number could be assigned
    """
    invoice = await InvoiceService(db).confirm(invoice_id, company_id)
    return _invoice_to_response(invoice)


@router.patch(
    "/{invoice_id}/pay",
    response_model=InvoiceResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark invoice as paid",
)
async def pay_invoice(
    invoice_id: int,
    company_id: int = Depends(get_current_company_id),
    db: AsyncSession = Depends(get_db),
) -> InvoiceResponse:
    """
    Mark a pending invoice as paid.

    Raises:
        InvalidStateTransitionError (400): If the invoice is not PENDING
    """
    invoice = await InvoiceService(db).mark_paid(invoice_id, company_id)
    return _invoice_to_response(invoice)


@router.patch(
    "/{invoice_id}",
    response_model=InvoiceResponse,
    status_code=status.HTTP_200_OK,
    summary="Update invoice",
    description="Partially update an invoice; items, when given, replace the existing ones",
)
async def update_invoice(
    invoice_id: int,
    data: InvoiceUpdate,
    company_id: int = Depends(get_current_company_id),
    db: AsyncSession = Depends(get_db),
) -> InvoiceResponse:
    """
    Update an invoice.

    Raises:
        ImmutableInvoiceFieldError (422): If the series of a numbered invoice changes
    """
    invoice = await InvoiceService(db).update(invoice_id, company_id, data)
    return _invoice_to_response(invoice)


@router.delete(
    "/{invoice_id}",
    response_model=InvoiceDeleteResponse,
    status_code=status.HTTP_200_OK,
    summary="Delete invoice",
)
async def delete_invoice(
    invoice_id: int,
    company_id: int = Depends(get_current_company_id),
    db: AsyncSession = Depends(get_db),
) -> InvoiceDeleteResponse:
    message = await InvoiceService(db).remove(invoice_id, company_id)
    return InvoiceDeleteResponse(message=message)


@router.get(
    "/{invoice_id}/pdf/preview",
    status_code=status.HTTP_200_OK,
    summary="Preview invoice PDF",
    description="Render the invoice PDF for display in the browser",
)
async def preview_invoice_pdf(
    invoice_id: int,
    company_id: int = Depends(get_current_company_id),
    db: AsyncSession = Depends(get_db),
    pdf_service: PDFService = Depends(get_pdf_service),
) -> Response:
    invoice = await InvoiceService(db).find_one(invoice_id, company_id)
    pdf_bytes = pdf_service.generate_invoice_pdf(invoice)
    filename = f"{invoice.invoice_series}-{invoice.invoice_number}.pdf"
    return _pdf_response(pdf_bytes, filename, "inline")


@router.get(
    "/{invoice_id}/pdf/download",
    status_code=status.HTTP_200_OK,
    summary="Download invoice PDF",
    description="Render the invoice PDF as a file attachment",
)
async def download_invoice_pdf(
    invoice_id: int,
    company_id: int = Depends(get_current_company_id),
    db: AsyncSession = Depends(get_db),
    pdf_service: PDFService = Depends(get_pdf_service),
) -> Response:
    """
    Download invoice as PDF.

    Returns:
        PDF attachment named "<series>-<number>.pdf"

    Raises:
        DocumentRenderError (500): If rendering fails
    """
    invoice = await InvoiceService(db).find_one(invoice_id, company_id)
    pdf_bytes = pdf_service.generate_invoice_pdf(invoice)
    filename = f"{invoice.invoice_series}-{invoice.invoice_number}.pdf"
    return _pdf_response(pdf_bytes, filename, "attachment")
