"""
Module: bakery_kernel.models.payment
Responsibility: ORM persistence for payment records created by the
    allocation engine.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ (for to_dto/from_dto only).

Invariants enforced:
    - Rows are inserted once per batch and never have their amounts
      updated.  Only status and its audit columns change, through the
      verification service.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import BigInteger, Date, DateTime, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from bakery_kernel.db.base import TrackedBase
from bakery_kernel.models._util import as_utc


class PaymentModel(TrackedBase):
    """
    ORM model for payments.

    Maps to the ``Payment`` frozen dataclass.

    Guarantees:
        - input and settlement amounts are integer minor units, each with
          its own currency code.
        - method, status and source are stored as enum values.
        - reference is stored stripped (blank means absent) and indexed
          for duplicate detection.
    """

    __tablename__ = "payments"

    __table_args__ = (
        Index("idx_payments_customer", "customer_id"),
        Index("idx_payments_reference", "reference"),
        Index("idx_payments_batch", "batch_id"),
        Index("idx_payments_invoice", "invoice_id"),
    )

    customer_id: Mapped[str] = mapped_column(String(64), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    input_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    input_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    settlement_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    settlement_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    exchange_rate: Mapped[Decimal | None] = mapped_column(Numeric(38, 18), nullable=True)
    method: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(64), nullable=True)
    invoice_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    source: Mapped[str | None] = mapped_column(String(32), nullable=True)
    batch_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    notes: Mapped[str] = mapped_column(String(4000), default="")
    status_changed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    status_changed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from bakery_kernel.domain.models import Payment, PaymentSource
        from bakery_kernel.domain.payment_method import PaymentMethod, PaymentStatus
        from bakery_kernel.domain.values import Money

        return Payment(
            id=self.id,
            customer_id=self.customer_id,
            payment_date=self.payment_date,
            input_amount=Money.from_minor(self.input_minor, self.input_currency),
            settlement_amount=Money.from_minor(self.settlement_minor, self.settlement_currency),
            method=PaymentMethod(self.method),
            status=PaymentStatus(self.status),
            exchange_rate=self.exchange_rate,
            reference=self.reference,
            invoice_id=self.invoice_id,
            source=PaymentSource(self.source) if self.source else None,
            batch_id=self.batch_id,
            notes=self.notes or "",
            created_at=as_utc(self.created_at),
            status_changed_at=as_utc(self.status_changed_at),
            status_changed_by=self.status_changed_by,
        )

    @classmethod
    def from_dto(cls, dto) -> "PaymentModel":
        """Create ORM model from frozen dataclass."""
        model = cls(
            id=dto.id,
            customer_id=dto.customer_id,
            payment_date=dto.payment_date,
            input_minor=dto.input_amount.minor_units,
            input_currency=dto.input_amount.currency.code,
            settlement_minor=dto.settlement_amount.minor_units,
            settlement_currency=dto.settlement_amount.currency.code,
            exchange_rate=dto.exchange_rate,
            method=dto.method.value,
            status=dto.status.value,
            reference=(dto.reference or "").strip() or None,
            invoice_id=dto.invoice_id,
            source=dto.source.value if dto.source else None,
            batch_id=dto.batch_id,
            notes=dto.notes,
            status_changed_at=dto.status_changed_at,
            status_changed_by=dto.status_changed_by,
        )
        if dto.created_at is not None:
            model.created_at = dto.created_at
        return model

    def __repr__(self) -> str:
        return f"<PaymentModel {self.id} {self.method} {self.status}>"
