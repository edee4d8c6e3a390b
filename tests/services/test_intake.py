"""Tests for analyzer-candidate intake."""

from datetime import date
from decimal import Decimal

import pytest

from bakery_kernel.domain.payment_method import PaymentMethod
from bakery_services.intake import (
    CandidatePayment,
    candidate_from_analyzer_output,
    parse_candidate_date,
    sub_payments_from_candidates,
)
from tests.conftest import CUSTOMER, make_invoice, ves

TODAY = date(2024, 3, 15)


class TestCandidateFromAnalyzerOutput:

    def test_reads_analyzer_keys(self):
        candidate = candidate_from_analyzer_output({
            "referenceNumber": "123456",
            "amount": "1,250.50",
            "date": "14/03/2024",
            "analysisNotes": "Pago movil",
        })
        assert candidate == CandidatePayment(
            amount=Decimal("1250.50"),
            payment_date="14/03/2024",
            reference="123456",
            notes="Pago movil",
        )

    def test_numeric_amount_and_reference(self):
        candidate = candidate_from_analyzer_output({"amount": 365, "referenceNumber": 123456})
        assert candidate.amount == Decimal("365")
        assert candidate.reference == "123456"

    @pytest.mark.parametrize("raw", [None, "", "n/a", True, "Infinity"])
    def test_unreadable_amount(self, raw):
        assert candidate_from_analyzer_output({"amount": raw}).amount is None


class TestParseCandidateDate:

    @pytest.mark.parametrize("raw, expected", [
        ("2024-03-14", date(2024, 3, 14)),
        ("14/03/2024", date(2024, 3, 14)),
        ("14-03-2024", date(2024, 3, 14)),
        (" 2024-03-14 ", date(2024, 3, 14)),
    ])
    def test_accepted_formats(self, raw, expected):
        assert parse_candidate_date(raw, TODAY) == expected

    @pytest.mark.parametrize("raw", [None, "", "March 14", "2024/03/14", "31/02/2024"])
    def test_falls_back_to_today(self, raw):
        assert parse_candidate_date(raw, TODAY) == TODAY


class TestSubPaymentsFromCandidates:

    def test_builds_local_mobile_transfers(self):
        subs = sub_payments_from_candidates(
            [CandidatePayment(Decimal("365.00"), "2024-03-14", " 123456 ", "receipt 1")],
            "VES",
            TODAY,
        )
        assert len(subs) == 1
        assert subs[0].amount == ves("365.00")
        assert subs[0].method is PaymentMethod.MOBILE_TRANSFER
        assert subs[0].payment_date == date(2024, 3, 14)
        assert subs[0].reference == "123456"
        assert subs[0].notes == "receipt 1"

    def test_skips_candidates_without_amount(self, captured_logs):
        subs = sub_payments_from_candidates(
            [CandidatePayment(None, reference="111111"), CandidatePayment(Decimal("10"), reference="222222")],
            "VES",
            TODAY,
        )
        assert [s.reference for s in subs] == ["222222"]
        assert any(r["message"] == "candidate_skipped_no_amount" for r in captured_logs())

    def test_malformed_reference_reaches_validator(self, store, batch_service):
        store.add_exchange_rate("VES", date(2024, 3, 1), Decimal("36.50"))
        store.add_invoice(make_invoice("A", "10.00"))
        subs = sub_payments_from_candidates(
            [candidate_from_analyzer_output({"amount": "365", "referenceNumber": "Ref#12345"})],
            "VES",
            TODAY,
        )

        result = batch_service.submit_payment_batch(CUSTOMER, subs)

        assert result.rejection.code == "INVALID_REFERENCE_FORMAT"
