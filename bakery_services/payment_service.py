"""
bakery_services.payment_service -- Payment batch submission and queries.

Responsibility:
    Orchestrates one payment batch end to end: validate references,
    normalize currencies, read the customer's credit, allocate, price cash
    movements and commit through the LedgerWriter.  Also answers balance,
    credit and invoice-status queries.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Reads and writes only through the repository protocols; owns no
    storage and no transaction.

Invariants enforced:
    - All-or-nothing: a batch either commits every record of its plan or
      creates none.  Any BatchRejectedError becomes BatchResult.rejection.
    - Optimistic commit: the snapshot fingerprint taken before allocation
      is re-checked by the writer inside its commit.
    - Single clock: created_at, as_of and the batch id timestamp all come
      from the injected Clock.

Failure modes:
    - PersistenceFailureError propagates unchanged; nothing is retried.
    - InvoiceNotFoundError from get_invoice_status for an unknown id.

Usage:
    store = InMemoryStore()
    service = PaymentBatchService.from_store(store)
    result = service.submit_payment_batch(
        "cust-1",
        [SubPayment(Money.of("70.00", "USD"), PaymentMethod.CASH_USD, date(2024, 3, 1))],
    )
    if not result.accepted:
        print(result.rejection.code)
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import date
from uuid import uuid4

from bakery_config.schema import PaymentEngineConfig
from bakery_engines.allocation import PaymentAllocationEngine
from bakery_engines.credit_ledger import CreditLedgerReader
from bakery_engines.currency import CurrencyNormalizer
from bakery_engines.invoice_status import resolve_status
from bakery_engines.references import ReferenceValidator
from bakery_engines.settlement import account_balances
from bakery_kernel.domain.clock import Clock, SystemClock
from bakery_kernel.domain.models import (
    AllocationPlan,
    BatchRejection,
    BatchResult,
    InvoiceStatus,
    InvoiceTarget,
    SubPayment,
)
from bakery_kernel.domain.payment_method import SettlementAccount
from bakery_kernel.domain.values import Money
from bakery_kernel.exceptions import BatchRejectedError, InvoiceNotFoundError
from bakery_kernel.logging_config import LogContext, get_logger
from bakery_services.movements import movements_for
from bakery_services.repositories import (
    CommitGuard,
    ExchangeRateLookup,
    InvoiceRepository,
    LedgerWriter,
    PaymentRepository,
    PaymentStore,
    snapshot_fingerprint,
)

logger = get_logger("services.payment_batch")


class PaymentBatchService:
    """
    Submit payment batches and query customer positions.

    Contract:
        Receives the four repository roles plus an optional Clock and
        PaymentEngineConfig; constructs its engines once from the config.

    Guarantees:
        - submit_payment_batch never raises for a rule violation; it
          returns a BatchResult whose rejection names code, rule and
          sub-payment index.
        - A rejected batch leaves the store untouched, so resubmitting it
          yields the same rejection.

    Non-goals:
        - Does NOT verify or reject pending transfers
          (see PaymentVerificationService).
        - Does NOT retry a failed commit.
    """

    def __init__(
        self,
        rates: ExchangeRateLookup,
        invoices: InvoiceRepository,
        payments: PaymentRepository,
        ledger: LedgerWriter,
        clock: Clock | None = None,
        config: PaymentEngineConfig | None = None,
        batch_id_factory: Callable[[], str] | None = None,
    ):
        self._rates = rates
        self._invoices = invoices
        self._payments = payments
        self._ledger = ledger
        self._clock = clock or SystemClock()
        self._config = config or PaymentEngineConfig()
        self._batch_id_factory = batch_id_factory

        tolerance = self._config.tolerance
        self._normalizer = CurrencyNormalizer(self._config.settlement_currency, rates)
        self._validator = ReferenceValidator(
            self._config.reference_digits,
            self._config.reject_pending_duplicates,
            self._config.settlement_currency,
            self._config.local_currency,
        )
        self._credit = CreditLedgerReader(self._config.settlement_currency, tolerance)
        self._allocator = PaymentAllocationEngine(tolerance)

    @classmethod
    def from_store(cls, store: PaymentStore, **kwargs) -> PaymentBatchService:
        return cls(store.rates, store.invoices, store.payments, store.ledger, **kwargs)

    @property
    def config(self) -> PaymentEngineConfig:
        return self._config

    def new_batch_id(self) -> str:
        if self._batch_id_factory is not None:
            return self._batch_id_factory()
        now = self._clock.now()
        return f"{self._config.batch_id_prefix}-{now:%Y%m%d%H%M%S}-{uuid4().hex[:8]}"

    # =========================================================================
    # Batch submission
    # =========================================================================

    def submit_payment_batch(
        self,
        customer_id: str,
        sub_payments: Sequence[SubPayment],
        target: InvoiceTarget | None = None,
        apply_credit: bool = False,
        notes: str = "",
        actor: str | None = None,
    ) -> BatchResult:
        """
        Validate, allocate and commit one batch.

        Args:
            customer_id: Customer whose invoices receive the money.
            sub_payments: Batch lines in operator order.
            target: Cascade (default), a specific invoice, or debt adjustment.
            apply_credit: Draw existing customer credit before cash.
            notes: Free text copied onto every record.
            actor: Operator id for the log context.

        Returns:
            BatchResult with the created payments, or with a rejection.

        Raises:
            PersistenceFailureError: The store failed during commit.
        """
        target = target or InvoiceTarget.cascade()
        batch_id = self.new_batch_id()
        sub_payments = tuple(sub_payments)

        with LogContext.bind(
            batch_id=batch_id,
            customer_id=customer_id,
            actor_id=actor or self._config.default_actor,
        ):
            logger.info("batch_submitted", extra={
                "sub_payment_count": len(sub_payments),
                "target": target.kind.value,
                "target_invoice_id": target.invoice_id,
                "apply_credit": apply_credit,
            })

            try:
                plan, guard = self._plan(
                    batch_id, customer_id, sub_payments, target, apply_credit, notes,
                )
                movements = movements_for(
                    plan.payments, self._rates, self._config.local_currency,
                )
                self._ledger.commit(plan, guard, movements)
            except BatchRejectedError as exc:
                rejection = BatchRejection(
                    code=exc.code,
                    message=str(exc),
                    rule=exc.rule,
                    sub_payment_index=exc.sub_payment_index,
                )
                logger.warning("batch_rejected", extra={
                    "code": rejection.code,
                    "rule": rejection.rule,
                    "sub_payment_index": rejection.sub_payment_index,
                    "reason": rejection.message,
                })
                return BatchResult(batch_id=batch_id, rejection=rejection)

            logger.info("batch_committed", extra={
                "payment_count": len(plan.payments),
                "movement_count": len(movements),
                "applied_total": str(plan.applied_total.amount),
                "excess_total": str(plan.excess_total.amount),
                "credit_applied": str(plan.credit_applied.amount),
            })
            return BatchResult(
                batch_id=batch_id,
                created_payments=plan.payments,
                applied_total=plan.applied_total,
            )

    def preview_allocation(
        self,
        customer_id: str,
        sub_payments: Sequence[SubPayment],
        target: InvoiceTarget | None = None,
        apply_credit: bool = False,
        notes: str = "",
    ) -> AllocationPlan:
        """
        Compute the plan a submission would commit, without committing.

        Raises:
            BatchRejectedError: The batch would be rejected.
        """
        plan, _ = self._plan(
            self.new_batch_id(), customer_id, tuple(sub_payments),
            target or InvoiceTarget.cascade(), apply_credit, notes,
        )
        return plan

    def _plan(
        self,
        batch_id: str,
        customer_id: str,
        sub_payments: tuple[SubPayment, ...],
        target: InvoiceTarget,
        apply_credit: bool,
        notes: str,
    ) -> tuple[AllocationPlan, CommitGuard]:
        self._validator.validate_batch(
            sub_payments=sub_payments,
            existing_payments=self._payments.list_with_references(),
        )
        normalized = self._normalizer.normalize_batch(sub_payments=sub_payments)

        invoices = self._invoices.list_for_customer(customer_id)
        payments = self._payments.list_for_customer(customer_id)
        snapshot = snapshot_fingerprint(invoices, payments)
        credit = self._credit.usable_credit(customer_id, invoices, payments)

        now = self._clock.now()
        plan = self._allocator.allocate(
            batch_id=batch_id,
            customer_id=customer_id,
            sub_payments=normalized,
            target=target,
            invoices=invoices,
            payments=payments,
            usable_credit=credit,
            apply_credit=apply_credit,
            as_of=now.date(),
            created_at=now,
            notes=notes,
        )
        guard = CommitGuard(
            customer_id=customer_id,
            snapshot=snapshot,
            references=plan.references(),
            include_pending=self._config.reject_pending_duplicates,
        )
        return plan, guard

    # =========================================================================
    # Queries
    # =========================================================================

    def get_invoice_status(self, invoice_id: str, today: date | None = None) -> InvoiceStatus:
        """
        Raises:
            InvoiceNotFoundError: No invoice with ``invoice_id``.
        """
        invoice = self._invoices.get(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)
        payments = self._payments.list_for_customer(invoice.customer_id)
        return resolve_status(
            invoice, payments, today or self._clock.today(), self._config.tolerance,
        )

    def get_customer_balance(self, customer_id: str) -> Money:
        """Net balance: positive is debt, negative is credit."""
        return self._credit.current_balance(
            customer_id,
            self._invoices.list_for_customer(customer_id),
            self._payments.list_for_customer(customer_id),
        )

    def get_usable_credit(self, customer_id: str) -> Money:
        return self._credit.usable_credit(
            customer_id,
            self._invoices.list_for_customer(customer_id),
            self._payments.list_for_customer(customer_id),
        )

    def get_overdue_balance(self, customer_id: str, today: date | None = None) -> Money:
        return self._credit.overdue_balance(
            customer_id,
            self._invoices.list_for_customer(customer_id),
            self._payments.list_for_customer(customer_id),
            today or self._clock.today(),
        )

    def get_account_balances(self) -> dict[SettlementAccount, Money]:
        """Cash per settlement account, summed from recorded movements."""
        return account_balances(self._ledger.list_movements())
