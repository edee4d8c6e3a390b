"""
Typed exception hierarchy for the bakery payment core.

Every error has a typed class, a ``code`` class attribute (machine-readable,
API-safe) and structured attributes. Callers catch by type and read fields,
never parse messages.

    PaymentEngineError (base)
    |
    +-- BatchRejectedError                  whole batch refused, nothing written
    |   +-- InvalidReferenceFormatError
    |   +-- DuplicateReferenceError
    |   +-- DuplicateReferenceInBatchError
    |   +-- InvalidSubPaymentError
    |   +-- NoExchangeRateAvailableError
    |   +-- NothingToApplyError
    |   +-- InvoiceNotFoundOrForeignCustomerError
    |   +-- ConcurrentModificationError
    |
    +-- PersistenceFailureError             store failed after a valid plan
    +-- InvoiceNotFoundError
    +-- PaymentNotFoundError
    +-- InvalidStatusTransitionError

Category        | Code                                  | When Raised
----------------|---------------------------------------|------------------------------------
Batch           | INVALID_REFERENCE_FORMAT              | Transfer without an N-digit reference
                | DUPLICATE_REFERENCE                   | Reference held by a verified transfer
                | DUPLICATE_REFERENCE_IN_BATCH          | Reference repeated inside the batch
                | INVALID_SUB_PAYMENT                   | Non-positive amount, credit sub-payment
                | NO_EXCHANGE_RATE_AVAILABLE            | No rate on or before the payment date
                | NOTHING_TO_APPLY                      | Cash plus credit is zero
                | INVOICE_NOT_FOUND_OR_FOREIGN_CUSTOMER | Target invoice missing or not owned
                | CONCURRENT_MODIFICATION               | Snapshot stale at commit time
----------------|---------------------------------------|------------------------------------
Store           | PERSISTENCE_FAILURE                   | Ledger writer could not commit
Lookup          | INVOICE_NOT_FOUND                     | Unknown invoice id
                | PAYMENT_NOT_FOUND                     | Unknown payment id
Lifecycle       | INVALID_STATUS_TRANSITION             | Only pending payments may change
"""


class PaymentEngineError(Exception):
    """
    Base exception for all payment core errors.

    All subclasses must have a ``code`` class attribute.
    """

    code: str = "PAYMENT_ENGINE_ERROR"


# Batch rejections


class BatchRejectedError(PaymentEngineError):
    """
    Base for errors that refuse a whole payment batch.

    ``sub_payment_index`` is the zero-based position of the offending
    sub-payment (None when the rule concerns the batch as a whole) and
    ``rule`` names the rule that failed.
    """

    code: str = "BATCH_REJECTED"
    rule: str = "batch"

    def __init__(self, message: str, sub_payment_index: int | None = None):
        self.sub_payment_index = sub_payment_index
        super().__init__(message)


class InvalidReferenceFormatError(BatchRejectedError):
    """Transfer reference is missing or not exactly N digits."""

    code: str = "INVALID_REFERENCE_FORMAT"
    rule: str = "reference_format"

    def __init__(self, sub_payment_index: int, reference: str | None, digits: int):
        self.reference = reference
        self.digits = digits
        super().__init__(
            f"Sub-payment {sub_payment_index}: reference {reference!r} "
            f"must be exactly {digits} digits",
            sub_payment_index,
        )


class DuplicateReferenceError(BatchRejectedError):
    """Reference already belongs to a verified transfer payment."""

    code: str = "DUPLICATE_REFERENCE"
    rule: str = "duplicate_reference"

    def __init__(
        self,
        reference: str,
        existing_payment_id: str,
        sub_payment_index: int | None = None,
    ):
        self.reference = reference
        self.existing_payment_id = existing_payment_id
        where = f"Sub-payment {sub_payment_index}: " if sub_payment_index is not None else ""
        super().__init__(
            f"{where}reference {reference} already used by payment {existing_payment_id}",
            sub_payment_index,
        )


class DuplicateReferenceInBatchError(BatchRejectedError):
    """Reference repeats within the same incoming batch."""

    code: str = "DUPLICATE_REFERENCE_IN_BATCH"
    rule: str = "duplicate_reference_in_batch"

    def __init__(self, reference: str, sub_payment_index: int, first_index: int):
        self.reference = reference
        self.first_index = first_index
        super().__init__(
            f"Sub-payment {sub_payment_index}: reference {reference} "
            f"repeats sub-payment {first_index} in this batch",
            sub_payment_index,
        )


class InvalidSubPaymentError(BatchRejectedError):
    """Sub-payment cannot be accepted as entered."""

    code: str = "INVALID_SUB_PAYMENT"
    rule: str = "sub_payment"

    def __init__(self, sub_payment_index: int, reason: str):
        self.reason = reason
        super().__init__(f"Sub-payment {sub_payment_index}: {reason}", sub_payment_index)


class NoExchangeRateAvailableError(BatchRejectedError):
    """No exchange rate effective on or before the payment date."""

    code: str = "NO_EXCHANGE_RATE_AVAILABLE"
    rule: str = "exchange_rate"

    def __init__(self, currency: str, on_date: str, sub_payment_index: int | None = None):
        self.currency = currency
        self.on_date = on_date
        where = f"Sub-payment {sub_payment_index}: " if sub_payment_index is not None else ""
        super().__init__(
            f"{where}no {currency} exchange rate on or before {on_date}",
            sub_payment_index,
        )


class NothingToApplyError(BatchRejectedError):
    """Batch carries no cash and no usable credit to apply."""

    code: str = "NOTHING_TO_APPLY"
    rule: str = "nothing_to_apply"

    def __init__(self, customer_id: str, total: str):
        self.customer_id = customer_id
        self.total = total
        super().__init__(f"Nothing to apply for customer {customer_id} (total {total})")


class InvoiceNotFoundOrForeignCustomerError(BatchRejectedError):
    """Target invoice does not exist or belongs to another customer."""

    code: str = "INVOICE_NOT_FOUND_OR_FOREIGN_CUSTOMER"
    rule: str = "target_invoice"

    def __init__(self, invoice_id: str, customer_id: str):
        self.invoice_id = invoice_id
        self.customer_id = customer_id
        super().__init__(
            f"Invoice {invoice_id} not found for customer {customer_id}"
        )


class ConcurrentModificationError(BatchRejectedError):
    """State used to plan the batch changed before commit."""

    code: str = "CONCURRENT_MODIFICATION"
    rule: str = "snapshot"

    def __init__(self, customer_id: str, reason: str):
        self.customer_id = customer_id
        self.reason = reason
        super().__init__(f"Concurrent modification for customer {customer_id}: {reason}")


# Store


class PersistenceFailureError(PaymentEngineError):
    """Ledger writer failed to commit a valid allocation plan."""

    code: str = "PERSISTENCE_FAILURE"

    def __init__(self, batch_id: str | None, reason: str):
        self.batch_id = batch_id
        self.reason = reason
        super().__init__(f"Could not persist batch {batch_id}: {reason}")


# Lookups


class InvoiceNotFoundError(PaymentEngineError):
    """Invoice with given ID was not found."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


class PaymentNotFoundError(PaymentEngineError):
    """Payment with given ID was not found."""

    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment not found: {payment_id}")


# Lifecycle


class InvalidStatusTransitionError(PaymentEngineError):
    """Payment status change is not allowed from its current state."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, payment_id: str, from_status: str, to_status: str):
        self.payment_id = payment_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Payment {payment_id} cannot move from {from_status} to {to_status}"
        )
