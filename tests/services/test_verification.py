"""
Tests for PaymentVerificationService.

Covers:
- Verifying a split transfer verifies every fragment
- Rejecting reopens the invoices
- Only pending payments transition
- Reference uniqueness at verification time
- Cash movements written on verification
"""

from datetime import date
from decimal import Decimal

import pytest

from bakery_kernel.domain.models import InvoiceStatus
from bakery_kernel.domain.payment_method import PaymentStatus, SettlementAccount
from bakery_kernel.exceptions import (
    DuplicateReferenceError,
    InvalidStatusTransitionError,
    PaymentNotFoundError,
)
from tests.conftest import CUSTOMER, cash, make_invoice, transfer, usd, ves


@pytest.fixture
def split_transfer(store, batch_service):
    """A 3650 VES transfer (100 USD) split across invoices A (60) and B (40)."""
    store.add_exchange_rate("VES", date(2024, 3, 1), Decimal("36.50"))
    store.add_invoice(make_invoice("A", "60.00", issue_date=date(2024, 3, 1)))
    store.add_invoice(make_invoice("B", "40.00", issue_date=date(2024, 3, 2)))
    result = batch_service.submit_payment_batch(CUSTOMER, [transfer("3650.00", "123456")])
    assert result.accepted
    return result.created_payments


class TestVerifyPayment:

    def test_verifies_every_fragment(self, store, batch_service, verification_service, split_transfer):
        first, second = split_transfer

        updated = verification_service.verify_payment(first.id, actor="ana")

        assert [p.id for p in updated] == [first.id, second.id]
        assert all(p.status is PaymentStatus.VERIFIED for p in updated)
        assert all(p.status_changed_by == "ana" for p in updated)
        assert store.payments.get(second.id).status is PaymentStatus.VERIFIED
        assert batch_service.get_invoice_status("A") is InvoiceStatus.COMPLETED
        assert batch_service.get_invoice_status("B") is InvoiceStatus.COMPLETED
        assert batch_service.get_customer_balance(CUSTOMER).is_zero

    def test_writes_local_electronic_movements(self, store, verification_service, split_transfer):
        verification_service.verify_payment(split_transfer[0].id)

        movements = store.ledger.list_movements(SettlementAccount.LOCAL_ELECTRONIC)
        assert sorted(m.amount.minor_units for m in movements) == [146000, 219000]
        assert {m.amount.currency.code for m in movements} == {"VES"}

    def test_settlement_currency_transfer_priced_at_dated_rate(self, store, batch_service, verification_service):
        store.add_exchange_rate("VES", date(2024, 3, 1), Decimal("36.50"))
        result = batch_service.submit_payment_batch(
            CUSTOMER, [transfer("10.00", "777777", currency="USD")],
        )

        verification_service.verify_payment(result.created_payments[0].id)

        movements = store.ledger.list_movements()
        assert [m.amount for m in movements] == [ves("365.00")]

    def test_cannot_verify_twice(self, verification_service, split_transfer):
        verification_service.verify_payment(split_transfer[0].id)
        with pytest.raises(InvalidStatusTransitionError):
            verification_service.verify_payment(split_transfer[1].id)

    def test_cash_is_already_verified(self, batch_service, verification_service):
        result = batch_service.submit_payment_batch(CUSTOMER, [cash("10.00")])
        with pytest.raises(InvalidStatusTransitionError) as exc:
            verification_service.verify_payment(result.created_payments[0].id)
        assert exc.value.code == "INVALID_STATUS_TRANSITION"

    def test_unknown_payment(self, verification_service):
        with pytest.raises(PaymentNotFoundError):
            verification_service.verify_payment("NOPE")

    def test_second_holder_of_reference_refused(self, store, batch_service, verification_service):
        store.add_exchange_rate("VES", date(2024, 3, 1), Decimal("36.50"))
        first = batch_service.submit_payment_batch(CUSTOMER, [transfer("365.00", "555555")])
        second = batch_service.submit_payment_batch(CUSTOMER, [transfer("365.00", "555555")])
        assert first.accepted and second.accepted

        verification_service.verify_payment(first.created_payments[0].id)
        with pytest.raises(DuplicateReferenceError):
            verification_service.verify_payment(second.created_payments[0].id)
        assert store.payments.get(second.created_payments[0].id).status is PaymentStatus.PENDING_VERIFICATION

    def test_verified_reference_blocks_new_batches(self, batch_service, verification_service, split_transfer):
        verification_service.verify_payment(split_transfer[0].id)
        result = batch_service.submit_payment_batch(CUSTOMER, [transfer("100.00", "123456")])
        assert result.rejection.code == "DUPLICATE_REFERENCE"


class TestRejectPayment:

    def test_reject_reopens_invoices(self, store, batch_service, verification_service, split_transfer):
        updated = verification_service.reject_payment(split_transfer[1].id, reason="not on statement")

        assert [p.id for p in updated] == [split_transfer[1].id, split_transfer[0].id]
        assert all(p.status is PaymentStatus.REJECTED for p in updated)
        assert batch_service.get_invoice_status("A") is InvoiceStatus.PENDING_PAYMENT
        assert batch_service.get_customer_balance(CUSTOMER) == usd("100.00")
        assert store.ledger.list_movements() == []

    def test_rejected_reference_is_free_again(self, batch_service, verification_service, split_transfer):
        verification_service.reject_payment(split_transfer[0].id)
        result = batch_service.submit_payment_batch(CUSTOMER, [transfer("3650.00", "123456")])
        assert result.accepted

    def test_cannot_reject_verified(self, verification_service, split_transfer):
        verification_service.verify_payment(split_transfer[0].id)
        with pytest.raises(InvalidStatusTransitionError):
            verification_service.reject_payment(split_transfer[0].id)

    def test_rejection_logged(self, verification_service, split_transfer, captured_logs):
        verification_service.reject_payment(split_transfer[0].id, actor="luis", reason="bounced")
        record = next(r for r in captured_logs() if r["message"] == "payment_rejected")
        assert record["reason"] == "bounced"
        assert record["actor_id"] == "luis"
        assert record["fragment_count"] == 2


class TestPendingPayments:

    def test_lists_only_pending(self, batch_service, verification_service, split_transfer):
        batch_service.submit_payment_batch(CUSTOMER, [cash("5.00")])
        pending = verification_service.pending_payments(CUSTOMER)
        assert [p.id for p in pending] == [p.id for p in split_transfer]

        verification_service.verify_payment(split_transfer[0].id)
        assert verification_service.pending_payments(CUSTOMER) == []
