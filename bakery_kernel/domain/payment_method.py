"""
Payment methods and the cash accounts they settle into.

PaymentMethod is the closed set of ways a customer can pay. Each method
carries three behaviours the engine relies on: whether it needs a bank
reference, the status a new payment of that method starts in, and the
settlement account (if any) the money lands in once verified.
"""

from enum import Enum


class PaymentStatus(str, Enum):
    """Payment lifecycle states. Only VERIFIED counts toward balances."""

    PENDING_VERIFICATION = "pending_verification"
    VERIFIED = "verified"
    REJECTED = "rejected"


class SettlementAccount(str, Enum):
    """Cash accounts a verified payment is deposited into."""

    USD_CASH = "usd_cash"
    LOCAL_CASH = "local_cash"
    LOCAL_ELECTRONIC = "local_electronic"


class PaymentMethod(str, Enum):
    """How a payment was made."""

    CASH_USD = "cash_usd"
    CASH_LOCAL = "cash_local"
    MOBILE_TRANSFER = "mobile_transfer"
    WIRE_TRANSFER = "wire_transfer"
    OTHER = "other"
    ACCOUNT_CREDIT = "account_credit"

    @property
    def requires_reference(self) -> bool:
        """Bank transfers must carry an N-digit reference."""
        return self in _TRANSFER_METHODS

    @property
    def is_transfer(self) -> bool:
        return self in _TRANSFER_METHODS

    @property
    def is_credit(self) -> bool:
        return self is PaymentMethod.ACCOUNT_CREDIT

    @property
    def initial_status(self) -> PaymentStatus:
        """Status of a freshly created payment of this method."""
        if self in _AWAITING_VERIFICATION:
            return PaymentStatus.PENDING_VERIFICATION
        return PaymentStatus.VERIFIED


_TRANSFER_METHODS = frozenset({PaymentMethod.MOBILE_TRANSFER, PaymentMethod.WIRE_TRANSFER})

_AWAITING_VERIFICATION = frozenset({
    PaymentMethod.MOBILE_TRANSFER,
    PaymentMethod.WIRE_TRANSFER,
    PaymentMethod.OTHER,
})
