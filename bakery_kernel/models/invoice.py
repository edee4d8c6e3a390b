"""
Module: bakery_kernel.models.invoice
Responsibility: ORM persistence for customer invoices and their
    informational branch subtotals.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ (for to_dto/from_dto only).

Invoices are owned by the sales subsystem.  The payment core reads them and
never updates ``total_minor``; the balance is always derived from payments.
"""

from datetime import date

from sqlalchemy import BigInteger, Date, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bakery_kernel.db.base import Base, TrackedBase


class InvoiceModel(TrackedBase):
    """
    ORM model for invoices.

    Maps to the ``Invoice`` frozen dataclass.

    Guarantees:
        - total is stored as integer minor units plus a currency code.
        - due_date is nullable (invoices without terms never go overdue).
    """

    __tablename__ = "invoices"

    __table_args__ = (
        Index("idx_invoices_customer_issue", "customer_id", "issue_date"),
    )

    customer_id: Mapped[str] = mapped_column(String(64), nullable=False)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    total_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    branch_subtotals: Mapped[list["BranchSubtotalModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="BranchSubtotalModel.position",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from bakery_kernel.domain.models import Invoice
        from bakery_kernel.domain.values import Money

        return Invoice(
            id=self.id,
            customer_id=self.customer_id,
            issue_date=self.issue_date,
            due_date=self.due_date,
            total=Money.from_minor(self.total_minor, self.currency),
            branch_subtotals=tuple(b.to_dto() for b in self.branch_subtotals),
        )

    @classmethod
    def from_dto(cls, dto) -> "InvoiceModel":
        """Create ORM model from frozen dataclass."""
        model = cls(
            id=dto.id,
            customer_id=dto.customer_id,
            issue_date=dto.issue_date,
            due_date=dto.due_date,
            total_minor=dto.total.minor_units,
            currency=dto.total.currency.code,
        )
        model.branch_subtotals = [
            BranchSubtotalModel.from_dto(sub, dto.id, position)
            for position, sub in enumerate(dto.branch_subtotals)
        ]
        return model

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.id} customer={self.customer_id}>"


class BranchSubtotalModel(Base):
    """Per-branch share of an invoice. Informational; never allocated against."""

    __tablename__ = "invoice_branch_subtotals"

    invoice_id: Mapped[str] = mapped_column(
        ForeignKey("invoices.id"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    branch_id: Mapped[str] = mapped_column(String(64), nullable=False)
    amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    invoice: Mapped[InvoiceModel] = relationship(back_populates="branch_subtotals")

    def to_dto(self):
        from bakery_kernel.domain.models import BranchSubtotal
        from bakery_kernel.domain.values import Money

        return BranchSubtotal(
            branch_id=self.branch_id,
            amount=Money.from_minor(self.amount_minor, self.currency),
        )

    @classmethod
    def from_dto(cls, dto, invoice_id: str, position: int) -> "BranchSubtotalModel":
        return cls(
            id=f"{invoice_id}:{position}",
            invoice_id=invoice_id,
            position=position,
            branch_id=dto.branch_id,
            amount_minor=dto.amount.minor_units,
            currency=dto.amount.currency.code,
        )
