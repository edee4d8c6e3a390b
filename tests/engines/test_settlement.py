"""Tests for the cash-settlement mapping."""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from bakery_engines.settlement import account_balances, cash_movement_for, settlement_account_for
from bakery_kernel.domain.models import CashMovement
from bakery_kernel.domain.payment_method import PaymentMethod, PaymentStatus, SettlementAccount
from bakery_kernel.domain.values import Money
from tests.conftest import make_payment, usd, ves

DAY = date(2024, 3, 1)


class TestSettlementAccount:

    @pytest.mark.parametrize("method, account", [
        (PaymentMethod.CASH_USD, SettlementAccount.USD_CASH),
        (PaymentMethod.CASH_LOCAL, SettlementAccount.LOCAL_CASH),
        (PaymentMethod.MOBILE_TRANSFER, SettlementAccount.LOCAL_ELECTRONIC),
        (PaymentMethod.WIRE_TRANSFER, SettlementAccount.LOCAL_ELECTRONIC),
        (PaymentMethod.OTHER, SettlementAccount.LOCAL_ELECTRONIC),
        (PaymentMethod.ACCOUNT_CREDIT, None),
    ])
    def test_every_method_mapped(self, method, account):
        assert settlement_account_for(method) is account


class TestCashMovement:

    def test_usd_cash(self):
        movement = cash_movement_for(make_payment("P1", "10.00", invoice_id="A"), "VES")
        assert movement.account is SettlementAccount.USD_CASH
        assert movement.amount == usd("10.00")
        assert "invoice A" in movement.description

    def test_local_cash_uses_input_amount(self):
        payment = replace(
            make_payment("P1", "10.00", method=PaymentMethod.CASH_LOCAL),
            input_amount=ves("365.00"),
            exchange_rate=Decimal("36.50"),
        )
        movement = cash_movement_for(payment, "VES")
        assert movement.account is SettlementAccount.LOCAL_CASH
        assert movement.amount == ves("365.00")

    def test_usd_transfer_into_local_account_needs_rate(self):
        payment = make_payment(
            "P1", "10.00", method=PaymentMethod.MOBILE_TRANSFER,
            reference="123456", status=PaymentStatus.VERIFIED,
        )
        with pytest.raises(ValueError):
            cash_movement_for(payment, "VES")
        movement = cash_movement_for(payment, "VES", fallback_rate=Decimal("36.50"))
        assert movement.amount == ves("365.00")

    def test_pending_payment_moves_nothing(self):
        payment = make_payment("P1", "10.00", method=PaymentMethod.MOBILE_TRANSFER, reference="123456")
        assert cash_movement_for(payment, "VES") is None

    def test_credit_moves_nothing(self):
        payment = make_payment("P1", "10.00", method=PaymentMethod.ACCOUNT_CREDIT)
        assert cash_movement_for(payment, "VES") is None

    def test_account_balances(self):
        movements = [
            CashMovement("P1", SettlementAccount.USD_CASH, usd("10.00"), DAY),
            CashMovement("P2", SettlementAccount.USD_CASH, usd("5.00"), DAY),
            CashMovement("P3", SettlementAccount.LOCAL_CASH, Money.of("100", "VES"), DAY),
        ]
        assert account_balances(movements) == {
            SettlementAccount.USD_CASH: usd("15.00"),
            SettlementAccount.LOCAL_CASH: ves("100.00"),
        }
