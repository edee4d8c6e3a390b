"""
Tests for the Currency Normalizer and rate table.

Covers:
- On-or-before rate lookup
- Manual rate override
- Missing-rate rejection
- Batch normalization
"""

from datetime import date
from decimal import Decimal

import pytest

from bakery_engines.currency import CurrencyNormalizer, RateTable, to_local
from bakery_kernel.domain.values import Money
from bakery_kernel.exceptions import InvalidSubPaymentError, NoExchangeRateAvailableError
from tests.conftest import cash, transfer, usd, ves


@pytest.fixture
def rates():
    return RateTable.from_entries([
        ("VES", date(2024, 3, 1), Decimal("36.00")),
        ("VES", date(2024, 3, 10), Decimal("36.50")),
        ("ves", date(2024, 3, 20), Decimal("37.00")),
    ])


class TestRateTable:

    def test_exact_date(self, rates):
        assert rates.rate_on_or_before("VES", date(2024, 3, 10)) == Decimal("36.50")

    def test_most_recent_earlier(self, rates):
        assert rates.rate_on_or_before("VES", date(2024, 3, 15)) == Decimal("36.50")
        assert rates.rate_on_or_before("VES", date(2024, 4, 1)) == Decimal("37.00")

    def test_never_uses_future_rate(self, rates):
        assert rates.rate_on_or_before("VES", date(2024, 2, 29)) is None

    def test_unknown_currency(self, rates):
        assert rates.rate_on_or_before("COP", date(2024, 3, 15)) is None

    def test_later_entry_replaces_same_day(self):
        table = RateTable.from_entries([
            ("VES", date(2024, 3, 1), Decimal("36.00")),
            ("VES", date(2024, 3, 1), Decimal("36.10")),
        ])
        assert table.rate_on_or_before("VES", date(2024, 3, 1)) == Decimal("36.10")

    def test_non_positive_rate_refused(self):
        with pytest.raises(ValueError):
            RateTable.from_entries([("VES", date(2024, 3, 1), Decimal("0"))])


class TestCurrencyNormalizer:

    def test_settlement_currency_passes_through(self, rates):
        result = CurrencyNormalizer("USD", rates).normalize(usd("12.34"), date(2024, 3, 15))
        assert result.settlement == usd("12.34")
        assert result.rate is None

    def test_converts_with_dated_rate(self, rates):
        result = CurrencyNormalizer("USD", rates).normalize(ves("3650.00"), date(2024, 3, 15))
        assert result.settlement == usd("100.00")
        assert result.rate == Decimal("36.50")

    def test_manual_rate_overrides_lookup(self, rates):
        result = CurrencyNormalizer("USD", rates).normalize(
            ves("400.00"), date(2024, 3, 15), manual_rate=Decimal("40"),
        )
        assert result.settlement == usd("10.00")
        assert result.rate == Decimal("40")

    def test_manual_rate_must_be_positive(self, rates):
        with pytest.raises(InvalidSubPaymentError) as exc:
            CurrencyNormalizer("USD", rates).normalize(
                ves("400.00"), date(2024, 3, 15), manual_rate=Decimal("0"), sub_payment_index=2,
            )
        assert exc.value.sub_payment_index == 2

    def test_missing_rate_rejects(self, rates, captured_logs):
        with pytest.raises(NoExchangeRateAvailableError) as exc:
            CurrencyNormalizer("USD", rates).normalize(
                ves("100.00"), date(2024, 1, 1), sub_payment_index=0,
            )
        assert exc.value.code == "NO_EXCHANGE_RATE_AVAILABLE"
        assert any(r["message"] == "exchange_rate_missing" for r in captured_logs())

    def test_normalize_batch_keeps_order_and_index(self, rates):
        normalizer = CurrencyNormalizer("USD", rates)
        result = normalizer.normalize_batch(sub_payments=(
            cash("5.00"),
            transfer("365.00", "123456", on=date(2024, 3, 12)),
        ))
        assert [n.index for n in result] == [0, 1]
        assert [n.settlement for n in result] == [usd("5.00"), usd("10.00")]
        assert result[1].rate == Decimal("36.50")

    def test_normalize_batch_reports_failing_index(self, rates):
        normalizer = CurrencyNormalizer("USD", rates)
        with pytest.raises(NoExchangeRateAvailableError) as exc:
            normalizer.normalize_batch(sub_payments=(
                cash("5.00"),
                transfer("365.00", "123456", on=date(2023, 12, 31)),
            ))
        assert exc.value.sub_payment_index == 1

    def test_to_local(self):
        assert to_local(usd("2.00"), Decimal("36.50"), "VES") == Money.of("73.00", "VES")
