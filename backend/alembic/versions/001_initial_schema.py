"""Initial invoicing schema

Revision ID: 001
Revises:
Create Date: 2026-10-18

WHAT: Creates companies, users, clients, company_invitations, invoices
and invoice_items.

WHY: Invoices are numbered per (company, series). Only confirmed invoices
take part in the legal sequence, so uniqueness is enforced by a partial
index that ignores drafts (drafts all share the empty number).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


INVOICE_STATUSES = ('DRAFT', 'PENDING', 'PAID')
PAYMENT_METHODS = ('BANK_TRANSFER', 'CASH', 'CREDIT_CARD', 'PAYPAL', 'OTHER')


def _address_columns() -> list:
    return [
        sa.Column('street', sa.String(length=255), nullable=True),
        sa.Column('city', sa.String(length=120), nullable=True),
        sa.Column('postal_code', sa.String(length=20), nullable=True),
        sa.Column('state', sa.String(length=120), nullable=True),
        sa.Column('country', sa.String(length=120), nullable=True),
    ]


def _timestamp_columns() -> list:
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    ]


def upgrade() -> None:
    """
    Create the invoicing tables.

    WHY: Enum types are created explicitly because the models declare
    them with create_type=False.
    """
    op.execute(
        "CREATE TYPE invoicestatus AS ENUM ("
        + ", ".join(f"'{value}'" for value in INVOICE_STATUSES)
        + ")"
    )
    op.execute(
        "CREATE TYPE paymentmethod AS ENUM ("
        + ", ".join(f"'{value}'" for value in PAYMENT_METHODS)
        + ")"
    )

    op.create_table(
        'companies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        *_address_columns(),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('vat_number', sa.String(length=50), nullable=True),
        sa.Column(
            'bank_account_number',
            sa.String(length=64),
            nullable=True,
            comment='IBAN printed on bank-transfer invoices'
        ),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_companies_id', 'companies', ['id'])
    op.create_index('ix_companies_name', 'companies', ['name'])

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamp_columns(),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_company_id', 'users', ['company_id'])

    op.create_table(
        'clients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        *_address_columns(),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('vat_number', sa.String(length=50), nullable=True),
        *_timestamp_columns(),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_clients_id', 'clients', ['id'])
    op.create_index('ix_clients_company_id', 'clients', ['company_id'])

    op.create_table(
        'company_invitations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('token', sa.String(length=255), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('accepted_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token'),
    )
    op.create_index('ix_company_invitations_id', 'company_invitations', ['id'])
    op.create_index('ix_company_invitations_company_id', 'company_invitations', ['company_id'])

    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False, comment='Issuing company (tenant)'),
        sa.Column('client_id', sa.Integer(), nullable=False, comment='Billed client'),
        sa.Column(
            'invoice_series',
            sa.String(length=50),
            nullable=False,
            comment='Numbering series (e.g., 2025)'
        ),
        sa.Column(
            'invoice_number',
            sa.String(length=20),
            nullable=False,
            server_default='',
            comment='Zero-padded legal number, empty while draft'
        ),
        sa.Column(
            'status',
            sa.Enum(*INVOICE_STATUSES, name='invoicestatus', create_type=False),
            nullable=False,
            server_default='DRAFT'
        ),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='EUR'),
        sa.Column(
            'emission_date',
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("'1970-01-01 00:00:00'"),
            comment='Legal issue date, 1970-01-01 while draft'
        ),
        sa.Column('operation_date', sa.DateTime(), nullable=True),
        sa.Column('due_days', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('due_date', sa.DateTime(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('reference', sa.String(length=255), nullable=True),
        sa.Column('observations', sa.Text(), nullable=True),
        sa.Column(
            'payment_method',
            sa.Enum(*PAYMENT_METHODS, name='paymentmethod', create_type=False),
            nullable=True
        ),
        *_timestamp_columns(),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_invoices_id', 'invoices', ['id'])
    op.create_index('ix_invoices_company_id', 'invoices', ['company_id'])
    op.create_index('ix_invoices_client_id', 'invoices', ['client_id'])
    op.create_index('ix_invoices_status', 'invoices', ['status'])
    op.create_index('ix_invoices_created_at', 'invoices', ['created_at'])

    # Drafts all carry the empty number, so they are left out of the index
    op.create_index(
        'uq_invoices_company_series_number',
        'invoices',
        ['company_id', 'invoice_series', 'invoice_number'],
        unique=True,
        postgresql_where=sa.text("status != 'DRAFT'"),
    )

    op.create_table(
        'invoice_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column(
            'tax_rate',
            sa.Numeric(precision=5, scale=2),
            nullable=False,
            server_default='21.00',
            comment='Tax percentage applied to the line'
        ),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_invoice_items_id', 'invoice_items', ['id'])
    op.create_index('ix_invoice_items_invoice_id', 'invoice_items', ['invoice_id'])


def downgrade() -> None:
    """Drop the invoicing tables and enum types."""
    op.drop_table('invoice_items')
    op.drop_index('uq_invoices_company_series_number', table_name='invoices')
    op.drop_table('invoices')
    op.drop_table('company_invitations')
    op.drop_table('clients')
    op.drop_table('users')
    op.drop_table('companies')

    op.execute('DROP TYPE paymentmethod')
    op.execute('DROP TYPE invoicestatus')
