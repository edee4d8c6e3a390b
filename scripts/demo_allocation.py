#!/usr/bin/env python3
"""
Walk one bakery customer through a day of payments.

Seeds three invoices and a VES rate, then:
  1. Submits a split batch: USD cash plus a mobile transfer in VES
  2. Verifies the pending transfer
  3. Submits an overpayment that leaves customer credit
  4. Pays a new invoice from that credit
  5. Submits a batch repeating a reference (rejected)

Usage:
    python3 scripts/demo_allocation.py
    python3 scripts/demo_allocation.py --db sqlite:///demo.db
    python3 scripts/demo_allocation.py --config my_engine.yaml --log
"""

import argparse
import logging
import sys
from datetime import UTC, date, datetime
from decimal import Decimal
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from bakery_config import get_active_config  # noqa: E402
from bakery_kernel.domain.clock import DeterministicClock  # noqa: E402
from bakery_kernel.domain.models import Invoice, SubPayment  # noqa: E402
from bakery_kernel.domain.payment_method import PaymentMethod  # noqa: E402
from bakery_kernel.domain.values import Money  # noqa: E402
from bakery_kernel.logging_config import configure_logging  # noqa: E402
from bakery_services import (  # noqa: E402
    InMemoryStore,
    PaymentBatchService,
    PaymentVerificationService,
    SqlPaymentStore,
)

CUSTOMER = "panaderia-centro"
TODAY = date(2024, 3, 15)


def _build_store(db_url: str | None, settlement: str):
    if db_url is None:
        return InMemoryStore()
    from bakery_kernel.db.engine import init_engine_from_url

    store = SqlPaymentStore(init_engine_from_url(db_url), settlement_currency=settlement)
    store.create_schema()
    return store


def _seed(store, settlement: str, local: str) -> None:
    for invoice_id, total, issued in (
        ("INV-001", "120.00", date(2024, 3, 1)),
        ("INV-002", "80.00", date(2024, 3, 5)),
        ("INV-003", "45.50", date(2024, 3, 10)),
    ):
        store.add_invoice(Invoice(
            id=invoice_id,
            customer_id=CUSTOMER,
            issue_date=issued,
            total=Money.of(total, settlement),
            due_date=date(2024, 3, 31),
        ))
    store.add_exchange_rate(local, date(2024, 3, 1), Decimal("36.50"))


def _show_result(title: str, result) -> None:
    print(f"\n== {title} ==")
    if not result.accepted:
        r = result.rejection
        print(f"  REJECTED {r.code} (rule={r.rule}, index={r.sub_payment_index}): {r.message}")
        return
    print(f"  batch {result.batch_id}  applied {result.applied_total}")
    for p in result.created_payments:
        target = p.invoice_id or "(credit)"
        print(
            f"  {p.id:<32} {p.method.value:<16} {str(p.input_amount):>14} "
            f"-> {str(p.settlement_amount):>10}  {target:<9} {p.status.value}"
        )


def _show_position(store, service: PaymentBatchService) -> None:
    print(f"  balance {service.get_customer_balance(CUSTOMER)}"
          f"  usable credit {service.get_usable_credit(CUSTOMER)}")
    for invoice in store.invoices.list_for_customer(CUSTOMER):
        print(f"    {invoice.id}: {service.get_invoice_status(invoice.id, TODAY).value}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Bakery payment allocation walkthrough")
    parser.add_argument("--db", help="SQLAlchemy URL (default: in-memory store)")
    parser.add_argument("--config", type=Path, help="Engine config YAML")
    parser.add_argument("--log", action="store_true", help="Emit JSON logs to stderr")
    args = parser.parse_args()

    if args.log:
        configure_logging(level=logging.INFO)

    config = get_active_config(args.config)
    settlement, local = config.settlement_currency, config.local_currency
    clock = DeterministicClock(datetime(2024, 3, 15, 9, 30, tzinfo=UTC))

    store = _build_store(args.db, settlement)
    _seed(store, settlement, local)
    batches = PaymentBatchService.from_store(store, clock=clock, config=config)
    verifier = PaymentVerificationService.from_store(store, clock=clock, config=config)

    result = batches.submit_payment_batch(CUSTOMER, [
        SubPayment(Money.of("50.00", settlement), PaymentMethod.CASH_USD, TODAY),
        SubPayment(Money.of("3650.00", local), PaymentMethod.MOBILE_TRANSFER, TODAY,
                   reference="004512"),
    ], actor="cashier")
    _show_result("Split batch: cash + mobile transfer", result)
    transfer_id = next(p.id for p in result.created_payments if p.reference)

    print("\n== Verify pending transfer ==")
    for p in verifier.verify_payment(transfer_id, actor="supervisor"):
        print(f"  {p.id} -> {p.status.value}")
    _show_position(store, batches)

    result = batches.submit_payment_batch(CUSTOMER, [
        SubPayment(Money.of("120.00", settlement), PaymentMethod.CASH_USD, TODAY),
    ], actor="cashier")
    _show_result("Overpayment", result)
    _show_position(store, batches)

    store.add_invoice(Invoice(
        id="INV-004",
        customer_id=CUSTOMER,
        issue_date=TODAY,
        total=Money.of("30.00", settlement),
        due_date=date(2024, 4, 15),
    ))
    result = batches.submit_payment_batch(CUSTOMER, [], apply_credit=True, actor="cashier")
    _show_result("New invoice paid from credit", result)

    result = batches.submit_payment_batch(CUSTOMER, [
        SubPayment(Money.of("365.00", local), PaymentMethod.MOBILE_TRANSFER, TODAY,
                   reference="009911"),
        SubPayment(Money.of("730.00", local), PaymentMethod.MOBILE_TRANSFER, TODAY,
                   reference="009911"),
    ], actor="cashier")
    _show_result("Duplicate reference in batch", result)

    print("\n== Settlement accounts ==")
    for account, amount in sorted(batches.get_account_balances().items(), key=lambda kv: kv[0].value):
        print(f"  {account.value:<18} {amount}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
