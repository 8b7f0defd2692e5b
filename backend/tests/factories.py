"""
Test factories for creating test data.

WHY: Factories provide a consistent, reusable way to create test objects,
reducing duplication and making tests more maintainable. Using factories
instead of manual object creation ensures tests stay consistent when models change.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Sequence, Tuple, Union
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.invoice import InvoiceDAO
from app.models.client import Client
from app.models.company import Company
from app.models.company_invitation import CompanyInvitation
from app.models.invoice import (
    DRAFT_EMISSION_DATE,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    PaymentMethod,
)
from app.models.user import User

# (quantity, price, tax_rate)
ItemSpec = Tuple[int, Union[str, Decimal], Union[str, Decimal]]


class CompanyFactory:
    """
    Factory for creating Company test instances.

    WHY: Companies are the tenants every other record hangs off.
    """

    @staticmethod
    async def create(
        session: AsyncSession,
        name: str = "Test Company",
        street: Optional[str] = "Calle Mayor 1",
        city: Optional[str] = "Madrid",
        postal_code: Optional[str] = "28001",
        state: Optional[str] = "Madrid",
        country: Optional[str] = "Spain",
        phone: Optional[str] = "+34 910 000 000",
        email: Optional[str] = "billing@company.test",
        vat_number: Optional[str] = None,
        bank_account_number: Optional[str] = None,
    ) -> Company:
        company = Company(
            name=name,
            street=street,
            city=city,
            postal_code=postal_code,
            state=state,
            country=country,
            phone=phone,
            email=email,
            vat_number=vat_number,
            bank_account_number=bank_account_number,
        )
        session.add(company)
        await session.commit()
        await session.refresh(company)
        return company


class ClientFactory:
    """Factory for creating billed clients of a company."""

    @staticmethod
    async def create(
        session: AsyncSession,
        company: Company,
        name: str = "Test Client",
        email: Optional[str] = "accounts@client.test",
        vat_number: Optional[str] = "A87654321",
        city: Optional[str] = "Barcelona",
    ) -> Client:
        client = Client(
            company_id=company.id,
            name=name,
            street="Avenida Diagonal 100",
            city=city,
            postal_code="08019",
            country="Spain",
            email=email,
            vat_number=vat_number,
        )
        session.add(client)
        await session.commit()
        await session.refresh(client)
        return client


class UserFactory:
    """
    Factory for creating User test instances.

    WHY: Users resolve bearer tokens to a tenant and feed the dashboard's
    active member count.
    """

    @staticmethod
    async def create(
        session: AsyncSession,
        company: Optional[Company] = None,
        email: str = "user@company.test",
        name: str = "Test User",
        is_active: bool = True,
    ) -> User:
        user = User(
            email=email,
            name=name,
            company_id=company.id if company is not None else None,
            is_active=is_active,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


class InvitationFactory:
    """Factory for company invitations, pending by default."""

    @staticmethod
    async def create(
        session: AsyncSession,
        company: Company,
        email: str = "invitee@company.test",
        token: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        accepted_at: Optional[datetime] = None,
    ) -> CompanyInvitation:
        invitation = CompanyInvitation(
            email=email,
            token=token or f"token-{email}",
            company_id=company.id,
            expires_at=expires_at or datetime.utcnow() + timedelta(days=7),
            accepted_at=accepted_at,
        )
        session.add(invitation)
        await session.commit()
        await session.refresh(invitation)
        return invitation


class InvoiceFactory:
    """
    Factory for creating Invoice test instances.

    WHY: Lets tests place invoices directly in any lifecycle state, with
    any dates, without going through the service rules under test.
    """

    @staticmethod
    def build_items(items: Iterable[ItemSpec]) -> list[InvoiceItem]:
        return [
            InvoiceItem(
                position=position,
                name=f"Item {position + 1}",
                quantity=quantity,
                price=Decimal(str(price)),
                tax_rate=Decimal(str(tax_rate)),
            )
            for position, (quantity, price, tax_rate) in enumerate(items)
        ]

    @staticmethod
    async def create(
        session: AsyncSession,
        company: Company,
        client: Client,
        status: InvoiceStatus = InvoiceStatus.DRAFT,
        invoice_series: str = "2026",
        invoice_number: Optional[str] = None,
        items: Sequence[ItemSpec] = ((1, "100.00", "21.00"),),
        emission_date: Optional[datetime] = None,
        due_days: int = 30,
        due_date: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
        reference: Optional[str] = None,
        description: Optional[str] = None,
        observations: Optional[str] = None,
        payment_method: Optional[PaymentMethod] = None,
    ) -> Invoice:
        """
        Create an invoice with items.

        Args:
            session: Database session
            company: Issuing company
            client: Billed client
            status: Stored status; non-drafts get number "0001" unless given
            items: (quantity, price, tax_rate) per line
            emission_date: Defaults to the epoch sentinel for drafts, now otherwise
            due_date: Defaults to emission (or now for drafts) + due_days

        Returns:
            Invoice with items, client and company loaded
        """
        now = datetime.utcnow()
        is_draft = status == InvoiceStatus.DRAFT
        if emission_date is None:
            emission_date = DRAFT_EMISSION_DATE if is_draft else now
        if due_date is None:
            due_date = (now if is_draft else emission_date) + timedelta(days=due_days)
        if invoice_number is None:
            invoice_number = "" if is_draft else "0001"

        invoice = Invoice(
            company_id=company.id,
            client_id=client.id,
            invoice_series=invoice_series,
            invoice_number=invoice_number,
            status=status,
            currency="EUR",
            emission_date=emission_date,
            due_days=due_days,
            due_date=due_date,
            reference=reference,
            description=description,
            observations=observations,
            payment_method=payment_method,
            created_at=created_at or now,
            items=InvoiceFactory.build_items(items),
        )
        session.add(invoice)
        await session.commit()

        return await InvoiceDAO(session).get_with_relations(invoice.id)
