"""
Unit tests for Invoice DAO.

WHAT: Tests for InvoiceDAO and the small DAOs the dashboard reads from.

WHY: Verifies that:
1. Relation-complete loads return items in print order
2. Company scoping is enforced (multi-tenancy security)
3. Only non-draft invoices count toward the next number
4. List filters combine conjunctively, with OVERDUE derived from due dates
5. Item replacement and deletion leave no orphan rows

HOW: Uses pytest-asyncio with the in-memory SQLite test database.
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from sqlalchemy import func, select
from sqlalchemy.exc import InvalidRequestError

from app.dao.base import BaseDAO
from app.dao.client import ClientDAO
from app.dao.company_invitation import CompanyInvitationDAO
from app.dao.invoice import InvoiceDAO
from app.dao.user import UserDAO
from app.models.client import Client
from app.models.company import Company
from app.models.invoice import DisplayStatus, InvoiceItem, InvoiceStatus
from tests.factories import (
    ClientFactory,
    InvitationFactory,
    InvoiceFactory,
    UserFactory,
)


def _item(name: str, price: str = "10.00") -> dict:
    return {
        "name": name,
        "description": None,
        "quantity": 1,
        "price": Decimal(price),
        "tax_rate": Decimal("21.00"),
    }


class TestInvoiceDAOLoad:
    """Tests for loading invoices."""

    @pytest.mark.asyncio
    async def test_get_with_relations(self, db_session, test_company, test_client_record):
        created = await InvoiceFactory.create(
            db_session, test_company, test_client_record,
            items=[(1, "5.00", "21.00"), (2, "7.00", "10.00")],
        )

        invoice = await InvoiceDAO(db_session).get_with_relations(created.id)

        assert invoice.client.name == "Globex Corp"
        assert invoice.company.name == "Acme Servicios S.L."
        assert [item.name for item in invoice.items] == ["Item 1", "Item 2"]

    @pytest.mark.asyncio
    async def test_get_with_relations_missing(self, db_session):
        assert await InvoiceDAO(db_session).get_with_relations(12345) is None

    @pytest.mark.asyncio
    async def test_all_for_company_scoped(
        self, db_session, test_company, test_client_record, other_company
    ):
        other_client = await ClientFactory.create(db_session, company=other_company)
        mine = await InvoiceFactory.create(db_session, test_company, test_client_record)
        await InvoiceFactory.create(db_session, other_company, other_client)

        invoices = await InvoiceDAO(db_session).all_for_company(test_company.id)

        assert [invoice.id for invoice in invoices] == [mine.id]


class TestInvoiceDAOCountConfirmed:
    """Tests for counting numbered invoices."""

    @pytest.mark.asyncio
    async def test_drafts_not_counted(self, db_session, test_company, test_client_record):
        await InvoiceFactory.create(db_session, test_company, test_client_record)
        await InvoiceFactory.create(
            db_session, test_company, test_client_record,
            status=InvoiceStatus.PENDING, invoice_number="0001",
        )
        await InvoiceFactory.create(
            db_session, test_company, test_client_record,
            status=InvoiceStatus.PAID, invoice_number="0002",
        )

        assert await InvoiceDAO(db_session).count_confirmed(test_company.id, "2026") == 2

    @pytest.mark.asyncio
    async def test_scoped_by_series(self, db_session, test_company, test_client_record):
        await InvoiceFactory.create(
            db_session, test_company, test_client_record,
            status=InvoiceStatus.PENDING, invoice_series="A",
        )

        dao = InvoiceDAO(db_session)

        assert await dao.count_confirmed(test_company.id, "A") == 1
        assert await dao.count_confirmed(test_company.id, "B") == 0


class TestInvoiceDAOFind:
    """Tests for find_for_company filters."""

    @pytest.mark.asyncio
    async def test_newest_first(self, db_session, test_company, test_client_record):
        older = await InvoiceFactory.create(
            db_session, test_company, test_client_record, created_at=datetime(2026, 1, 1)
        )
        newer = await InvoiceFactory.create(
            db_session, test_company, test_client_record, created_at=datetime(2026, 2, 1)
        )

        invoices = await InvoiceDAO(db_session).find_for_company(test_company.id)

        assert [invoice.id for invoice in invoices] == [newer.id, older.id]

    @pytest.mark.asyncio
    async def test_date_bounds_inclusive(self, db_session, test_company, test_client_record):
        for day in (1, 10, 20):
            await InvoiceFactory.create(
                db_session, test_company, test_client_record,
                created_at=datetime(2026, 3, day), reference=f"day-{day}",
            )

        invoices = await InvoiceDAO(db_session).find_for_company(
            test_company.id,
            date_from=datetime(2026, 3, 10),
            date_to=datetime(2026, 3, 20),
        )

        assert sorted(invoice.reference for invoice in invoices) == ["day-10", "day-20"]

    @pytest.mark.asyncio
    async def test_overdue_uses_reference_time(
        self, db_session, test_company, test_client_record
    ):
        now = datetime(2026, 6, 1)
        late = await InvoiceFactory.create(
            db_session, test_company, test_client_record,
            status=InvoiceStatus.PENDING, invoice_number="0001",
            due_date=now - timedelta(days=1),
        )
        await InvoiceFactory.create(
            db_session, test_company, test_client_record,
            status=InvoiceStatus.PENDING, invoice_number="0002",
            due_date=now + timedelta(days=1),
        )
        await InvoiceFactory.create(
            db_session, test_company, test_client_record,
            status=InvoiceStatus.PAID, invoice_number="0003",
            due_date=now - timedelta(days=5),
        )
        await InvoiceFactory.create(
            db_session, test_company, test_client_record, due_date=now - timedelta(days=5)
        )

        invoices = await InvoiceDAO(db_session).find_for_company(
            test_company.id, status=DisplayStatus.OVERDUE, now=now
        )

        assert [invoice.id for invoice in invoices] == [late.id]

    @pytest.mark.asyncio
    async def test_stored_status_filter(self, db_session, test_company, test_client_record):
        await InvoiceFactory.create(db_session, test_company, test_client_record)
        paid = await InvoiceFactory.create(
            db_session, test_company, test_client_record, status=InvoiceStatus.PAID
        )

        invoices = await InvoiceDAO(db_session).find_for_company(
            test_company.id, status=DisplayStatus.PAID
        )

        assert [invoice.id for invoice in invoices] == [paid.id]

    @pytest.mark.asyncio
    async def test_reference_case_insensitive(
        self, db_session, test_company, test_client_record
    ):
        match = await InvoiceFactory.create(
            db_session, test_company, test_client_record, reference="PO-2026-ALPHA"
        )
        await InvoiceFactory.create(
            db_session, test_company, test_client_record, reference="PO-2026-BETA"
        )
        await InvoiceFactory.create(db_session, test_company, test_client_record)

        invoices = await InvoiceDAO(db_session).find_for_company(
            test_company.id, reference="alpha"
        )

        assert [invoice.id for invoice in invoices] == [match.id]

    @pytest.mark.asyncio
    async def test_client_filter(self, db_session, test_company, test_client_record):
        second = await ClientFactory.create(db_session, company=test_company, name="Initech")
        await InvoiceFactory.create(db_session, test_company, test_client_record)
        theirs = await InvoiceFactory.create(db_session, test_company, second)

        invoices = await InvoiceDAO(db_session).find_for_company(
            test_company.id, client_id=second.id
        )

        assert [invoice.id for invoice in invoices] == [theirs.id]
        assert invoices[0].client.name == "Initech"


class TestInvoiceDAOItems:
    """Tests for item writes and deletion."""

    @pytest.mark.asyncio
    async def test_add_items_positions(self, db_session, test_company, test_client_record):
        invoice = await InvoiceFactory.create(
            db_session, test_company, test_client_record, items=[]
        )
        dao = InvoiceDAO(db_session)

        await dao.add_items(invoice.id, [_item("first"), _item("second"), _item("third")])
        await db_session.commit()

        loaded = await dao.get_with_relations(invoice.id)
        assert [(item.position, item.name) for item in loaded.items] == [
            (0, "first"), (1, "second"), (2, "third"),
        ]

    @pytest.mark.asyncio
    async def test_replace_items(self, db_session, test_company, test_client_record):
        invoice = await InvoiceFactory.create(
            db_session, test_company, test_client_record,
            items=[(1, "1.00", "21.00"), (1, "2.00", "21.00")],
        )
        dao = InvoiceDAO(db_session)

        await dao.replace_items(invoice.id, [_item("only", "99.00")])
        await db_session.commit()

        loaded = await dao.get_with_relations(invoice.id)
        assert [(item.position, item.name, item.price) for item in loaded.items] == [
            (0, "only", Decimal("99.00")),
        ]

    @pytest.mark.asyncio
    async def test_delete_with_items(self, db_session, test_company, test_client_record):
        invoice = await InvoiceFactory.create(
            db_session, test_company, test_client_record,
            items=[(1, "1.00", "21.00"), (3, "2.00", "10.00")],
        )
        dao = InvoiceDAO(db_session)

        assert await dao.delete_with_items(invoice.id) is True
        await db_session.commit()

        remaining = await db_session.execute(
            select(func.count(InvoiceItem.id)).where(InvoiceItem.invoice_id == invoice.id)
        )
        assert remaining.scalar_one() == 0
        assert await dao.delete_with_items(invoice.id) is False


class TestCompanyScoping:
    """Tests for BaseDAO tenant scoping."""

    @pytest.mark.asyncio
    async def test_get_by_id_and_company(
        self, db_session, test_company, test_client_record, other_company
    ):
        invoice = await InvoiceFactory.create(db_session, test_company, test_client_record)
        dao = InvoiceDAO(db_session)

        assert (await dao.get_by_id_and_company(invoice.id, test_company.id)).id == invoice.id
        assert await dao.get_by_id_and_company(invoice.id, other_company.id) is None

    @pytest.mark.asyncio
    async def test_client_lookup_scoped(
        self, db_session, test_client_record, test_company, other_company
    ):
        dao = ClientDAO(db_session)

        assert await dao.get_by_id_and_company(test_client_record.id, test_company.id) is not None
        assert await dao.get_by_id_and_company(test_client_record.id, other_company.id) is None

    @pytest.mark.asyncio
    async def test_non_tenant_model_rejected(self, db_session, test_company):
        dao = BaseDAO(Company, db_session)

        with pytest.raises(AttributeError, match="not a multi-tenant model"):
            await dao.get_by_id_and_company(test_company.id, test_company.id)


class TestParentCollections:
    """Tests for the reverse collections on Company and Client."""

    @pytest.mark.asyncio
    async def test_company_collections_never_load_implicitly(self, db_session, test_company):
        company_id = test_company.id
        db_session.expunge_all()

        company = (
            await db_session.execute(select(Company).where(Company.id == company_id))
        ).scalar_one()

        for attr in ("users", "clients", "invoices"):
            with pytest.raises(InvalidRequestError):
                getattr(company, attr)

    @pytest.mark.asyncio
    async def test_client_invoices_never_load_implicitly(
        self, db_session, test_company, test_client_record
    ):
        await InvoiceFactory.create(db_session, test_company, test_client_record)
        client_id = test_client_record.id
        db_session.expunge_all()

        client = (await db_session.execute(select(Client).where(Client.id == client_id))).scalar_one()

        with pytest.raises(InvalidRequestError):
            client.invoices


class TestTeamCounts:
    """Tests for the member and invitation counts."""

    @pytest.mark.asyncio
    async def test_count_active_members(self, db_session, test_company, test_user):
        await UserFactory.create(db_session, company=test_company, email="b@acme.test")
        await UserFactory.create(
            db_session, company=test_company, email="c@acme.test", is_active=False
        )
        dao = UserDAO(db_session)

        assert await dao.count_by_company(test_company.id) == 2
        assert await dao.count_by_company(test_company.id, include_inactive=True) == 3

    @pytest.mark.asyncio
    async def test_get_by_email_case_insensitive(self, db_session, test_user):
        user = await UserDAO(db_session).get_by_email("OWNER@ACME.TEST")

        assert user.id == test_user.id

    @pytest.mark.asyncio
    async def test_count_pending_invitations(self, db_session, test_company):
        now = datetime(2026, 6, 1)
        await InvitationFactory.create(
            db_session, company=test_company, email="a@x.test", expires_at=now + timedelta(days=1)
        )
        await InvitationFactory.create(
            db_session, company=test_company, email="b@x.test", expires_at=now - timedelta(days=1)
        )
        await InvitationFactory.create(
            db_session, company=test_company, email="c@x.test",
            expires_at=now + timedelta(days=1), accepted_at=now,
        )

        assert await CompanyInvitationDAO(db_session).count_pending(test_company.id, now) == 1
