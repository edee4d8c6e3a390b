"""
Module: bakery_kernel.models.exchange_rate
Responsibility: ORM persistence for the date-indexed exchange-rate table.
Architecture position: Kernel > Models.  May import from db/base.py only.

One row per (local currency, effective date).  The rate is quoted as
local units per one settlement unit, as the operators enter it.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from bakery_kernel.db.base import TrackedBase


class ExchangeRateModel(TrackedBase):
    """
    Exchange rate effective from ``effective_date``.

    Guarantees:
        - rate is a positive Decimal with up to 18 decimal places.
        - at most one rate per currency pair per day.
    """

    __tablename__ = "exchange_rates"

    __table_args__ = (
        UniqueConstraint(
            "settlement_currency", "local_currency", "effective_date",
            name="uq_exchange_rates_pair_date",
        ),
        Index("idx_rate_lookup", "local_currency", "effective_date"),
    )

    settlement_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    local_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(38, 18), nullable=False)
    source: Mapped[str] = mapped_column(String(50), default="manual")

    def to_dto(self):
        from bakery_kernel.domain.values import ExchangeRate

        return ExchangeRate.of(self.settlement_currency, self.local_currency, self.rate)

    def __repr__(self) -> str:
        return (
            f"<ExchangeRateModel {self.settlement_currency}/{self.local_currency} "
            f"{self.effective_date} = {self.rate}>"
        )
