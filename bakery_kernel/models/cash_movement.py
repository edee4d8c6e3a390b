"""
Module: bakery_kernel.models.cash_movement
Responsibility: ORM persistence for deposits into the bakery's cash
    accounts.  Account balances are sums over this table.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ (for to_dto/from_dto only).
"""

from datetime import date

from sqlalchemy import BigInteger, Date, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from bakery_kernel.db.base import TrackedBase


class CashMovementModel(TrackedBase):
    """
    One movement per verified, non-credit payment.

    Guarantees:
        - payment_id is unique: a payment lands in an account once.
        - amount is in the account's own currency.
    """

    __tablename__ = "cash_movements"

    __table_args__ = (
        UniqueConstraint("payment_id", name="uq_cash_movements_payment"),
        Index("idx_cash_movements_account", "account"),
    )

    payment_id: Mapped[str] = mapped_column(String(64), nullable=False)
    account: Mapped[str] = mapped_column(String(32), nullable=False)
    amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    movement_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(String(4000), default="")

    def to_dto(self):
        from bakery_kernel.domain.models import CashMovement
        from bakery_kernel.domain.payment_method import SettlementAccount
        from bakery_kernel.domain.values import Money

        return CashMovement(
            payment_id=self.payment_id,
            account=SettlementAccount(self.account),
            amount=Money.from_minor(self.amount_minor, self.currency),
            movement_date=self.movement_date,
            description=self.description or "",
        )

    @classmethod
    def from_dto(cls, dto) -> "CashMovementModel":
        return cls(
            id=f"MOV-{dto.payment_id}",
            payment_id=dto.payment_id,
            account=dto.account.value,
            amount_minor=dto.amount.minor_units,
            currency=dto.amount.currency.code,
            movement_date=dto.movement_date,
            description=dto.description,
        )
