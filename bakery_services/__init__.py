"""
bakery_services -- stateful orchestration over the payment engines.

Usage:
    from bakery_services import InMemoryStore, PaymentBatchService

    store = InMemoryStore()
    batches = PaymentBatchService.from_store(store)
    verification = PaymentVerificationService.from_store(store)
"""

from bakery_services.intake import (
    CandidatePayment,
    candidate_from_analyzer_output,
    parse_candidate_date,
    sub_payments_from_candidates,
)
from bakery_services.memory import InMemoryStore
from bakery_services.movements import movements_for
from bakery_services.payment_service import PaymentBatchService
from bakery_services.repositories import (
    CommitGuard,
    ExchangeRateLookup,
    InvoiceRepository,
    LedgerWriter,
    PaymentRepository,
    PaymentStore,
    snapshot_fingerprint,
)
from bakery_services.sql_store import SqlPaymentStore
from bakery_services.verification import PaymentVerificationService

__all__ = [
    "CandidatePayment",
    "CommitGuard",
    "ExchangeRateLookup",
    "InMemoryStore",
    "InvoiceRepository",
    "LedgerWriter",
    "PaymentBatchService",
    "PaymentRepository",
    "PaymentStore",
    "PaymentVerificationService",
    "SqlPaymentStore",
    "candidate_from_analyzer_output",
    "movements_for",
    "parse_candidate_date",
    "snapshot_fingerprint",
    "sub_payments_from_candidates",
]
