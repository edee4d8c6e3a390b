"""Tests for the Invoice Status Resolver."""

from datetime import date

import pytest

from bakery_engines.invoice_status import applied_total, invoice_balance, resolve_status
from bakery_kernel.domain.models import InvoiceStatus
from bakery_kernel.domain.payment_method import PaymentMethod
from tests.conftest import make_invoice, make_payment, usd

TODAY = date(2024, 3, 15)


class TestResolveStatus:

    def setup_method(self):
        self.invoice = make_invoice("A", "100.00", due_date=date(2024, 3, 31))

    def test_unpaid(self):
        assert resolve_status(self.invoice, [], TODAY) is InvoiceStatus.PENDING_PAYMENT

    def test_partially_paid(self):
        payments = [make_payment("P1", "40.00", invoice_id="A")]
        assert resolve_status(self.invoice, payments, TODAY) is InvoiceStatus.PARTIALLY_PAID

    def test_completed_within_tolerance(self):
        payments = [make_payment("P1", "99.99", invoice_id="A")]
        assert resolve_status(self.invoice, payments, TODAY) is InvoiceStatus.COMPLETED

    def test_overpaid_is_completed(self):
        payments = [make_payment("P1", "150.00", invoice_id="A")]
        assert resolve_status(self.invoice, payments, TODAY) is InvoiceStatus.COMPLETED

    @pytest.mark.parametrize("paid", [None, "40.00"])
    def test_overdue_wins_over_partial(self, paid):
        payments = [make_payment("P1", paid, invoice_id="A")] if paid else []
        late = date(2024, 4, 1)
        assert resolve_status(self.invoice, payments, late) is InvoiceStatus.OVERDUE

    def test_completed_wins_over_overdue(self):
        payments = [make_payment("P1", "100.00", invoice_id="A")]
        assert resolve_status(self.invoice, payments, date(2024, 4, 1)) is InvoiceStatus.COMPLETED

    def test_pending_transfer_does_not_count(self):
        payments = [make_payment(
            "P1", "100.00", method=PaymentMethod.MOBILE_TRANSFER, reference="123456", invoice_id="A",
        )]
        assert resolve_status(self.invoice, payments, TODAY) is InvoiceStatus.PENDING_PAYMENT

    def test_credit_fragments_count_toward_invoice(self):
        payments = [make_payment("P1", "100.00", method=PaymentMethod.ACCOUNT_CREDIT, invoice_id="A")]
        assert resolve_status(self.invoice, payments, TODAY) is InvoiceStatus.COMPLETED


class TestBalanceHelpers:

    def test_applied_total_only_for_this_invoice(self):
        invoice = make_invoice("A", "100.00")
        payments = [
            make_payment("P1", "30.00", invoice_id="A"),
            make_payment("P2", "20.00", invoice_id="B"),
            make_payment("P3", "5.00"),
        ]
        assert applied_total(invoice, payments) == usd("30.00")
        assert invoice_balance(invoice, payments) == usd("70.00")
