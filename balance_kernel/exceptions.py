"""
Typed Exception Hierarchy for the Balance Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (web handlers, API endpoints, CLI tools) need to tell three things
apart without parsing message strings:

  - the request was wrong and the user can fix it   (ValidationError)
  - the thing the request refers to does not exist  (NotFoundError)
  - the request clashes with current state          (ConflictError)
  - the store failed for reasons outside the domain (InfrastructureError)

Every exception carries a CODE class attribute (machine-readable, API-safe)
and keeps its context as attributes (period id, offending date, payee name).

Example:
    try:
        service.create_payment_period(date(2024, 1, 1), Money.of("1000", "USD"))
    except DuplicatePeriodDateError as e:
        return {"error": e.code, "period_date": e.period_date}, 409

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BalanceKernelError (base)
    |
    +-- ValidationError
    |   +-- MissingFieldError
    |   +-- FieldTooLongError
    |   +-- BlankPayeeNameError
    |   +-- MissingPayeeReferenceError
    |   +-- InvalidCurrencyError
    |   +-- MoneyParseError
    |   +-- InvalidDateRangeError
    |
    +-- NotFoundError
    |   +-- PaymentPeriodNotFoundError
    |   +-- PaymentItemNotFoundError
    |   +-- PayeeNotFoundError
    |
    +-- ConflictError
    |   +-- DuplicatePeriodDateError
    |   +-- DuplicatePayeeNameError
    |   +-- PayeeReferencedError
    |   +-- CurrencyMismatchError
    |   +-- ItemNotInPeriodError
    |
    +-- InfrastructureError
        +-- StoreUnavailableError
        +-- TransactionAbortedError
        +-- StoreOperationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | MISSING_FIELD               | Required input is None
                | FIELD_TOO_LONG              | Payee name > 200 or notes > 500 chars
                | BLANK_PAYEE_NAME            | Payee name empty after trimming
                | MISSING_PAYEE_REFERENCE     | Neither payee id nor payee name given
                | INVALID_CURRENCY            | Not a valid ISO 4217 code
                | MONEY_PARSE_ERROR           | Stored "<amount>|<code>" is malformed
                | INVALID_DATE_RANGE          | Range start is after range end
----------------|-----------------------------|-----------------------------------------
Not found       | PAYMENT_PERIOD_NOT_FOUND    | Period id doesn't exist
                | PAYMENT_ITEM_NOT_FOUND      | Item id doesn't exist
                | PAYEE_NOT_FOUND             | Payee id doesn't exist
----------------|-----------------------------|-----------------------------------------
Conflict        | DUPLICATE_PERIOD_DATE       | Another period already uses the date
                | DUPLICATE_PAYEE_NAME        | Payee name taken (case-insensitive)
                | PAYEE_REFERENCED            | Payee still used by payment items
                | CURRENCY_MISMATCH           | Mixed currencies in one operation
                | ITEM_NOT_IN_PERIOD          | Item belongs to a different period
----------------|-----------------------------|-----------------------------------------
Infrastructure  | STORE_UNAVAILABLE           | Database cannot be reached
                | TRANSACTION_ABORTED         | Store aborted the transaction
                | STORE_OPERATION_FAILED      | Store rejected the statement (no retry)

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Map categories, not classes, at the transport edge:

    except ValidationError as e:     -> 400
    except NotFoundError as e:       -> 404
    except ConflictError as e:       -> 409
    except InfrastructureError as e: -> 503

2. Retry only what is transient:

    except InfrastructureError as e:
        if e.transient and attempt < max_attempts:
            continue
        raise

   Validation and conflict errors are never retried: the same input against
   the same state produces the same outcome.
"""


class BalanceKernelError(Exception):
    """
    Base exception for all balance kernel errors.

    Every subclass defines a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "BALANCE_KERNEL_ERROR"


# Validation


class ValidationError(BalanceKernelError):
    """Base exception for malformed or missing input."""

    code: str = "VALIDATION_ERROR"


class MissingFieldError(ValidationError):
    """A required input was not supplied."""

    code: str = "MISSING_FIELD"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"{field} is required")


class FieldTooLongError(ValidationError):
    """A text input exceeds its maximum length."""

    code: str = "FIELD_TOO_LONG"

    def __init__(self, field: str, max_length: int, actual_length: int):
        self.field = field
        self.max_length = max_length
        self.actual_length = actual_length
        super().__init__(
            f"{field} must not exceed {max_length} characters (got {actual_length})"
        )


class BlankPayeeNameError(ValidationError):
    """Payee name is empty or whitespace only."""

    code: str = "BLANK_PAYEE_NAME"

    def __init__(self):
        super().__init__("Payee name cannot be blank")


class MissingPayeeReferenceError(ValidationError):
    """A payment item names neither a payee id nor a payee name."""

    code: str = "MISSING_PAYEE_REFERENCE"

    def __init__(self):
        super().__init__("Either payee_id or payee_name must be provided")


class InvalidCurrencyError(ValidationError):
    """Invalid ISO 4217 currency code provided."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: '{currency}'")


class MoneyParseError(ValidationError):
    """Serialized money value could not be parsed."""

    code: str = "MONEY_PARSE_ERROR"

    def __init__(self, raw_value: str, reason: str):
        self.raw_value = raw_value
        self.reason = reason
        super().__init__(
            f"Failed to parse monetary amount {raw_value!r}: {reason}. "
            "Expected format: amount|currency"
        )


class InvalidDateRangeError(ValidationError):
    """Date range start is after its end."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, start_date: str, end_date: str):
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            f"Start date {start_date} must be before or equal to end date {end_date}"
        )


# Not found


class NotFoundError(BalanceKernelError):
    """Base exception for references to entities that do not exist."""

    code: str = "NOT_FOUND"


class PaymentPeriodNotFoundError(NotFoundError):
    """Payment period with given ID was not found."""

    code: str = "PAYMENT_PERIOD_NOT_FOUND"

    def __init__(self, period_id: str):
        self.period_id = period_id
        super().__init__(f"Payment period not found: {period_id}")


class PaymentItemNotFoundError(NotFoundError):
    """Payment item with given ID was not found."""

    code: str = "PAYMENT_ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Payment item not found: {item_id}")


class PayeeNotFoundError(NotFoundError):
    """Payee with given ID was not found."""

    code: str = "PAYEE_NOT_FOUND"

    def __init__(self, payee_id: str):
        self.payee_id = payee_id
        super().__init__(f"Payee not found: {payee_id}")


# Conflict


class ConflictError(BalanceKernelError):
    """Base exception for requests that clash with current state."""

    code: str = "CONFLICT"


class DuplicatePeriodDateError(ConflictError):
    """A payment period already exists for the date."""

    code: str = "DUPLICATE_PERIOD_DATE"

    def __init__(self, period_date: str):
        self.period_date = period_date
        super().__init__(f"Payment period already exists for date: {period_date}")


class DuplicatePayeeNameError(ConflictError):
    """A payee with the same name (ignoring case) already exists."""

    code: str = "DUPLICATE_PAYEE_NAME"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Payee already exists with name: {name}")


class PayeeReferencedError(ConflictError):
    """Payee cannot be deleted because payment items reference it."""

    code: str = "PAYEE_REFERENCED"

    def __init__(self, payee_id: str):
        self.payee_id = payee_id
        super().__init__(
            f"Payee {payee_id} cannot be deleted: referenced by payment items"
        )


class CurrencyMismatchError(ConflictError):
    """Attempted operation on mismatched currencies."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Currency mismatch: expected {expected}, found {actual}")


class ItemNotInPeriodError(ConflictError):
    """Payment item belongs to a different payment period."""

    code: str = "ITEM_NOT_IN_PERIOD"

    def __init__(self, item_id: str, period_id: str):
        self.item_id = item_id
        self.period_id = period_id
        super().__init__(
            f"Payment item {item_id} does not belong to payment period {period_id}"
        )


# Infrastructure


class InfrastructureError(BalanceKernelError):
    """
    Base exception for store failures outside domain rules.

    ``transient`` tells the calling layer whether a bounded retry may help.
    """

    code: str = "INFRASTRUCTURE_ERROR"
    transient: bool = False


class StoreUnavailableError(InfrastructureError):
    """The database could not be reached."""

    code: str = "STORE_UNAVAILABLE"
    transient: bool = True

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Store unavailable: {detail}")


class TransactionAbortedError(InfrastructureError):
    """The store aborted the transaction (deadlock, serialization failure)."""

    code: str = "TRANSACTION_ABORTED"
    transient: bool = True

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Transaction aborted: {detail}")


class StoreOperationError(InfrastructureError):
    """The store rejected a statement (bad data, schema mismatch)."""

    code: str = "STORE_OPERATION_FAILED"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Store operation failed: {detail}")
