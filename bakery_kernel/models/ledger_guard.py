"""
Module: bakery_kernel.models.ledger_guard
Responsibility: Lock rows that serialize writers touching the same customer
    ledger or the same bank reference.
Architecture position: Kernel > Models.  May import from db/base.py only.

Keys are ``customer:<id>`` and ``reference:<ref>``.  A writer locks its keys
with SELECT ... FOR UPDATE in sorted order before re-reading the ledger, and
bumps ``version`` so the row is part of its transaction.
"""

from sqlalchemy.orm import Mapped, mapped_column

from bakery_kernel.db.base import Base


class LedgerGuardModel(Base):
    """One lockable row per guarded key (the key is the primary key)."""

    __tablename__ = "ledger_guards"

    version: Mapped[int] = mapped_column(nullable=False, default=0)

    @staticmethod
    def customer_key(customer_id: str) -> str:
        return f"customer:{customer_id}"

    @staticmethod
    def reference_key(reference: str) -> str:
        return f"reference:{reference}"

    def __repr__(self) -> str:
        return f"<LedgerGuardModel {self.id} v{self.version}>"
