"""
Base model class for all SQLAlchemy models.

WHY: Every table in the invoicing schema shares the same declarative base,
integer primary key and audit timestamps. Keeping them here means the
test suite can build the whole schema from one metadata object.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, DateTime
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base for SQLAlchemy 2.0 models."""

    pass


class TimestampMixin:
    """
    Mixin to add created_at and updated_at timestamps to models.

    WHY: Dashboard revenue is bucketed by creation month and invoice
    listings filter on created_at, so every record carries both stamps.
    """

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class PrimaryKeyMixin:
    """Mixin to add an auto-incrementing integer primary key."""

    id = Column(Integer, primary_key=True, index=True)
