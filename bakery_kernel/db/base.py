"""
Module: bakery_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.
    Provides the string primary key convention, the type annotation map for
    consistent column types, and the TrackedBase mixin for row timestamps.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the persistence layer.  ALL model files import from here.  This
    module MUST NOT import from models/, domain/ or services.

Invariants enforced:
    - String primary keys: ids are assigned by the domain (batch-derived
      payment ids, sales invoice ids), never generated by the database.
    - Integer money: int maps to BigInteger, so minor-unit amounts are
      stored exactly.  NEVER use float for monetary amounts.
    - Rates: Decimal maps to Numeric(38, 18).
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar

from sqlalchemy import BigInteger, Date, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is a caller-assigned string of up to 64 characters.
        - Decimal maps to Numeric(38, 18) (exchange rates).
        - datetime maps to DateTime(timezone=True).
        - int maps to BigInteger (minor units).
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 18),
        datetime: DateTime(timezone=True),
        date: Date,
        int: BigInteger,
        str: String(255),
    }

    id: Mapped[str] = mapped_column(String(64), primary_key=True)


class TrackedBase(Base):
    """
    Abstract base with row timestamps.

    Guarantees:
        - created_at is set to server NOW() on INSERT and never changes.
        - updated_at auto-updates on every UPDATE.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
