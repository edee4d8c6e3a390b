"""
Pytest fixtures for the bakery payments test suite.

Provides:
- Structured logging setup and captured_logs
- A deterministic clock
- In-memory and SQLite-backed payment stores
- Builders for invoices, payments and sub-payments
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from itertools import count

import pytest

from bakery_config.schema import PaymentEngineConfig
from bakery_kernel.db.engine import init_engine_from_url, reset_engine
from bakery_kernel.domain.clock import DeterministicClock
from bakery_kernel.domain.models import Invoice, Payment, PaymentSource, SubPayment
from bakery_kernel.domain.payment_method import PaymentMethod
from bakery_kernel.domain.values import Money
from bakery_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from bakery_services.memory import InMemoryStore
from bakery_services.payment_service import PaymentBatchService
from bakery_services.sql_store import SqlPaymentStore
from bakery_services.verification import PaymentVerificationService

CUSTOMER = "cust-001"
OTHER_CUSTOMER = "cust-002"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture bakery logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, batch_service):
            batch_service.submit_payment_batch(...)
            logs = captured_logs()
            assert any(r["message"] == "batch_committed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("bakery")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock and configuration
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def config():
    return PaymentEngineConfig()


@pytest.fixture
def batch_ids():
    """Sequential batch ids, so record ids are predictable."""
    seq = count(1)
    return lambda: f"PAY-P-TEST-{next(seq):04d}"


# =============================================================================
# Stores and services
# =============================================================================


@pytest.fixture
def memory_store():
    return InMemoryStore()


@pytest.fixture
def sql_store():
    engine = init_engine_from_url("sqlite:///:memory:")
    store = SqlPaymentStore(engine)
    store.create_schema()
    yield store
    reset_engine()


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """Runs the test once per store implementation."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def batch_service(store, clock, config, batch_ids):
    return PaymentBatchService.from_store(
        store, clock=clock, config=config, batch_id_factory=batch_ids,
    )


@pytest.fixture
def verification_service(store, clock, config):
    return PaymentVerificationService.from_store(store, clock=clock, config=config)


# =============================================================================
# Builders
# =============================================================================


def usd(amount: str) -> Money:
    return Money.of(amount, "USD")


def ves(amount: str) -> Money:
    return Money.of(amount, "VES")


def make_invoice(
    invoice_id: str,
    total: str,
    issue_date: date = date(2024, 3, 1),
    due_date: date | None = None,
    customer_id: str = CUSTOMER,
) -> Invoice:
    return Invoice(
        id=invoice_id,
        customer_id=customer_id,
        issue_date=issue_date,
        total=usd(total),
        due_date=due_date,
    )


def make_payment(
    payment_id: str,
    amount: str,
    method: PaymentMethod = PaymentMethod.CASH_USD,
    invoice_id: str | None = None,
    reference: str | None = None,
    status=None,
    customer_id: str = CUSTOMER,
    payment_date: date = date(2024, 3, 1),
    batch_id: str | None = None,
) -> Payment:
    return Payment(
        id=payment_id,
        customer_id=customer_id,
        payment_date=payment_date,
        input_amount=usd(amount),
        settlement_amount=usd(amount),
        method=method,
        status=status or method.initial_status,
        reference=reference,
        invoice_id=invoice_id,
        source=PaymentSource.INVOICE_APPLICATION if invoice_id else PaymentSource.BALANCE_ADJUSTMENT,
        batch_id=batch_id,
    )


def cash(amount: str, on: date = date(2024, 3, 15)) -> SubPayment:
    return SubPayment(usd(amount), PaymentMethod.CASH_USD, on)


def transfer(
    amount: str,
    reference: str,
    currency: str = "VES",
    on: date = date(2024, 3, 15),
    rate: Decimal | None = None,
) -> SubPayment:
    return SubPayment(
        Money.of(amount, currency), PaymentMethod.MOBILE_TRANSFER, on,
        reference=reference, exchange_rate=rate,
    )
