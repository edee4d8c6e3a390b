"""SQLAlchemy ORM models for the payment core."""

from bakery_kernel.models.cash_movement import CashMovementModel
from bakery_kernel.models.exchange_rate import ExchangeRateModel
from bakery_kernel.models.invoice import BranchSubtotalModel, InvoiceModel
from bakery_kernel.models.ledger_guard import LedgerGuardModel
from bakery_kernel.models.payment import PaymentModel

__all__ = [
    "BranchSubtotalModel",
    "CashMovementModel",
    "ExchangeRateModel",
    "InvoiceModel",
    "LedgerGuardModel",
    "PaymentModel",
]
