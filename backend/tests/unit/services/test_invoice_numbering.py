"""
Unit tests for invoice numbering.

WHAT: Tests for number formatting, next-number computation and the
collision handling of InvoiceNumberingService.assign.

WHY: Legal numbering must be:
1. Zero-padded to four digits, growing past 9999
2. Counted over confirmed invoices only (drafts never consume a number)
3. Independent per company and per series
4. Safe under concurrent confirmation (checked against PostgreSQL)
"""

import asyncio
import os
import pytest
from datetime import datetime

from app.core.config import settings
from app.core.exceptions import InvoiceNumberConflictError
from app.models.invoice import InvoiceStatus
from app.services.invoice_numbering import InvoiceNumberingService, format_invoice_number
from tests.factories import ClientFactory, CompanyFactory, InvoiceFactory


class TestFormatInvoiceNumber:
    """Tests for zero padding."""

    @pytest.mark.parametrize(
        "sequence, expected",
        [(1, "0001"), (42, "0042"), (9999, "9999"), (10000, "10000"), (123456, "123456")],
    )
    def test_padding(self, sequence, expected):
        assert format_invoice_number(sequence) == expected

    def test_custom_width(self):
        assert format_invoice_number(7, width=6) == "000007"


class TestNextNumber:
    """Tests for next-number computation."""

    @pytest.mark.asyncio
    async def test_first_number_of_series(self, db_session, test_company):
        numbering = InvoiceNumberingService(db_session)

        assert await numbering.next_number(test_company.id, "2026") == "0001"

    @pytest.mark.asyncio
    async def test_drafts_are_not_counted(self, db_session, test_company, test_client_record):
        await InvoiceFactory.create(
            db_session, test_company, test_client_record,
            status=InvoiceStatus.PENDING, invoice_number="0001",
        )
        await InvoiceFactory.create(db_session, test_company, test_client_record)
        await InvoiceFactory.create(db_session, test_company, test_client_record)

        numbering = InvoiceNumberingService(db_session)

        assert await numbering.next_number(test_company.id, "2026") == "0002"

    @pytest.mark.asyncio
    async def test_paid_invoices_are_counted(self, db_session, test_company, test_client_record):
        await InvoiceFactory.create(
            db_session, test_company, test_client_record,
            status=InvoiceStatus.PAID, invoice_number="0001",
        )

        numbering = InvoiceNumberingService(db_session)

        assert await numbering.next_number(test_company.id, "2026") == "0002"

    @pytest.mark.asyncio
    async def test_series_are_independent(self, db_session, test_company, test_client_record):
        await InvoiceFactory.create(
            db_session, test_company, test_client_record,
            status=InvoiceStatus.PENDING, invoice_series="2025", invoice_number="0001",
        )

        numbering = InvoiceNumberingService(db_session)

        assert await numbering.next_number(test_company.id, "2025") == "0002"
        assert await numbering.next_number(test_company.id, "2026") == "0001"

    @pytest.mark.asyncio
    async def test_companies_are_independent(
        self, db_session, test_company, other_company, test_client_record
    ):
        await InvoiceFactory.create(
            db_session, test_company, test_client_record,
            status=InvoiceStatus.PENDING, invoice_number="0001",
        )

        numbering = InvoiceNumberingService(db_session)

        assert await numbering.next_number(other_company.id, "2026") == "0001"

    @pytest.mark.asyncio
    async def test_deleted_invoice_never_reissues_number(
        self, db_session, test_company, test_client_record
    ):
        """Deleting 0001 leaves one confirmed invoice, yet 0002 is taken."""
        await InvoiceFactory.create(
            db_session, test_company, test_client_record,
            status=InvoiceStatus.PENDING, invoice_number="0002",
        )

        numbering = InvoiceNumberingService(db_session)

        assert await numbering.next_number(test_company.id, "2026") == "0003"

    @pytest.mark.asyncio
    async def test_highest_number_compares_numerically(
        self, db_session, test_company, test_client_record
    ):
        await InvoiceFactory.create(
            db_session, test_company, test_client_record,
            status=InvoiceStatus.PAID, invoice_number="9999",
        )
        await InvoiceFactory.create(
            db_session, test_company, test_client_record,
            status=InvoiceStatus.PAID, invoice_number="10000",
        )

        numbering = InvoiceNumberingService(db_session)

        assert await numbering.next_number(test_company.id, "2026") == "10001"


class TestAssign:
    """Tests for number assignment."""

    @pytest.mark.asyncio
    async def test_assign_writes_number_and_changes(
        self, db_session, test_company, test_client_record
    ):
        draft = await InvoiceFactory.create(db_session, test_company, test_client_record)
        emitted = datetime(2026, 3, 1, 10, 0, 0)

        number = await InvoiceNumberingService(db_session).assign(
            draft, status=InvoiceStatus.PENDING, emission_date=emitted
        )

        await db_session.refresh(draft)
        assert number == "0001"
        assert draft.invoice_number == "0001"
        assert draft.status == InvoiceStatus.PENDING
        assert draft.emission_date == emitted

    @pytest.mark.asyncio
    async def test_collision_exhausts_retries(
        self, db_session, test_company, test_client_record, caplog, monkeypatch
    ):
        """
        A number computed before a concurrent writer took it makes every
        attempt collide; the draft is left untouched.
        """
        await InvoiceFactory.create(
            db_session, test_company, test_client_record,
            status=InvoiceStatus.PENDING, invoice_number="0002",
        )
        draft = await InvoiceFactory.create(db_session, test_company, test_client_record)
        draft_id = draft.id

        numbering = InvoiceNumberingService(db_session)

        async def stale_next_number(company_id, invoice_series):
            return "0002"

        monkeypatch.setattr(numbering, "next_number", stale_next_number)

        with pytest.raises(InvoiceNumberConflictError) as exc_info:
            await numbering.assign(draft, status=InvoiceStatus.PENDING)

        assert exc_info.value.status_code == 409
        assert exc_info.value.context["invoice_id"] == draft_id
        assert exc_info.value.context["attempts"] == settings.INVOICE_NUMBER_MAX_RETRIES
        assert "Invoice number collision" in caplog.text

        await db_session.refresh(draft)
        assert draft.status == InvoiceStatus.DRAFT
        assert draft.invoice_number == ""


@pytest.mark.postgres
@pytest.mark.skipif(
    not os.environ.get("TEST_POSTGRES_URL"),
    reason="TEST_POSTGRES_URL not set",
)
class TestConcurrentConfirmation:
    """
    Concurrent confirmation against PostgreSQL.

    WHY: SQLite serialises writers, so the race the advisory lock and the
    partial unique index close only exists on a real server.
    """

    @pytest.mark.asyncio
    async def test_concurrent_confirmations_yield_gap_free_numbers(self):
        from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

        from app.models.base import Base
        from app.services.invoice_service import InvoiceService

        url = os.environ["TEST_POSTGRES_URL"].replace("postgresql://", "postgresql+asyncpg://")
        engine = create_async_engine(url)
        Session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        concurrency = 8

        async with engine.begin() as conn:
            await conn.exec_driver_sql(
                "DO $$ BEGIN "
                "CREATE TYPE invoicestatus AS ENUM ('DRAFT', 'PENDING', 'PAID'); "
                "EXCEPTION WHEN duplicate_object THEN NULL; END $$"
            )
            await conn.exec_driver_sql(
                "DO $$ BEGIN "
                "CREATE TYPE paymentmethod AS ENUM "
                "('BANK_TRANSFER', 'CASH', 'CREDIT_CARD', 'PAYPAL', 'OTHER'); "
                "EXCEPTION WHEN duplicate_object THEN NULL; END $$"
            )
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)

        try:
            async with Session() as session:
                company = await CompanyFactory.create(session, name="Concurrent Co")
                client = await ClientFactory.create(session, company=company)
                drafts = [
                    await InvoiceFactory.create(session, company, client)
                    for _ in range(concurrency)
                ]
                draft_ids = [draft.id for draft in drafts]
                company_id = company.id

            async def confirm(invoice_id: int) -> str:
                async with Session() as session:
                    invoice = await InvoiceService(session).confirm(invoice_id, company_id)
                    await session.commit()
                    return invoice.invoice_number

            numbers = await asyncio.gather(*(confirm(i) for i in draft_ids))

            assert sorted(numbers) == [format_invoice_number(n) for n in range(1, concurrency + 1)]
        finally:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.drop_all)
            await engine.dispose()
