"""
Module: bakery_engines.settlement
Responsibility:
    Decide which cash account a verified payment lands in and how much
    the account moves, in the account's own currency.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Every payment method maps to exactly one account, or to none for
      account credit (no money moves when credit is drawn down).
    - Only verified payments produce a movement.
    - The movement is the input amount when the input currency is the
      account currency; otherwise settlement * rate, rounded half-up.
"""

from __future__ import annotations

from decimal import Decimal

from bakery_kernel.domain.models import CashMovement, Payment
from bakery_kernel.domain.payment_method import PaymentMethod, SettlementAccount
from bakery_kernel.domain.values import Currency, ExchangeRate, Money


def settlement_account_for(method: PaymentMethod) -> SettlementAccount | None:
    """Cash account for ``method``; None for account credit."""
    match method:
        case PaymentMethod.CASH_USD:
            return SettlementAccount.USD_CASH
        case PaymentMethod.CASH_LOCAL:
            return SettlementAccount.LOCAL_CASH
        case PaymentMethod.MOBILE_TRANSFER | PaymentMethod.WIRE_TRANSFER | PaymentMethod.OTHER:
            return SettlementAccount.LOCAL_ELECTRONIC
        case PaymentMethod.ACCOUNT_CREDIT:
            return None
        case _:
            raise ValueError(f"Unknown payment method: {method}")


def account_currency(
    account: SettlementAccount,
    settlement_currency: Currency,
    local_currency: Currency,
) -> Currency:
    if account is SettlementAccount.USD_CASH:
        return settlement_currency
    return local_currency


def cash_movement_for(
    payment: Payment,
    local_currency: Currency | str,
    description: str | None = None,
    fallback_rate: Decimal | None = None,
) -> CashMovement | None:
    """
    Movement produced by a verified payment, or None.

    ``fallback_rate`` prices settlement-currency transfers that land in a
    local-currency account (the rate of the payment date).

    Raises:
        ValueError: A local-currency account needs a rate the payment does
            not carry (settlement-currency transfer with no rate).
    """
    if not payment.is_verified:
        return None
    account = settlement_account_for(payment.method)
    if account is None:
        return None

    if isinstance(local_currency, str):
        local_currency = Currency(local_currency)
    target = account_currency(account, payment.settlement_amount.currency, local_currency)

    if payment.input_amount.currency == target:
        amount = payment.input_amount
    elif payment.settlement_amount.currency == target:
        amount = payment.settlement_amount
    elif (payment.exchange_rate or fallback_rate) is not None:
        rate = payment.exchange_rate or fallback_rate
        quote = ExchangeRate(payment.settlement_amount.currency, target, rate)
        amount = quote.to_local(payment.settlement_amount)
    else:
        raise ValueError(
            f"Payment {payment.id} has no exchange rate for a {target} account"
        )

    return CashMovement(
        payment_id=payment.id,
        account=account,
        amount=amount,
        movement_date=payment.payment_date,
        description=description or _describe(payment),
    )


def _describe(payment: Payment) -> str:
    target = f"invoice {payment.invoice_id}" if payment.invoice_id else "customer credit"
    ref = f" ref {payment.reference}" if payment.reference else ""
    return f"Payment {payment.id} ({payment.method.value}{ref}) for {target}"


def account_balances(movements) -> dict[SettlementAccount, Money]:
    """Sum movements per account."""
    totals: dict[SettlementAccount, Money] = {}
    for movement in movements:
        current = totals.get(movement.account)
        totals[movement.account] = movement.amount if current is None else current + movement.amount
    return totals
