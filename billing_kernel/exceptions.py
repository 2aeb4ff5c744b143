"""
Typed Exception Hierarchy for the Billing Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The engine is driven from two places (the hourly scheduler and a person at a
screen), and both need to tell apart failures that an operator must fix
(a missing column) from failures that a retry may fix (the store is down)
and from failures that left the data half-restored. Parsing message strings
for that is fragile, so every failure here:

  1. Has its own exception CLASS (catch by type, not by message)
  2. Carries a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (table, column, collection, ...)
  4. Declares PARTIAL_EFFECT: whether something may have changed before
     the failure, so the user surface can say "nothing changed" vs.
     "something changed, verify the data".

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BillingKernelError (base)
    |
    +-- SchemaMissingError
    |   +-- AuditSchemaMissingError
    |
    +-- ValidationError
    |   +-- InvalidDueDayError
    |   +-- MalformedCsvError
    |   +-- InvalidSnapshotError
    |   +-- InvalidDateRangeError
    |   +-- InvalidCustomerFieldError
    |
    +-- StoreUnavailableError
    |
    +-- RestoreError
    |   +-- PartialRestoreError
    |
    +-- ConcurrencyError
    |   +-- CycleAlreadyClaimedError
    |
    +-- NotFoundError
    |   +-- CustomerNotFoundError
    |   +-- SnapshotNotFoundError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Schema          | SCHEMA_MISSING              | Expected table/column not provisioned
                | AUDIT_SCHEMA_MISSING        | customer_history table not provisioned
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_DUE_DAY             | Due day outside 1..28 or not a number
                | MALFORMED_CSV               | CSV payload with fewer than 2 lines
                | INVALID_SNAPSHOT            | No customers and no packages present
                | INVALID_DATE_RANGE          | Report start date after end date
                | INVALID_CUSTOMER_FIELD      | Unknown status/type value
----------------|-----------------------------|-----------------------------------------
Store           | STORE_UNAVAILABLE           | Transient I/O failure, no retry
----------------|-----------------------------|-----------------------------------------
Restore         | PARTIAL_RESTORE             | One collection failed, others applied
----------------|-----------------------------|-----------------------------------------
Concurrency     | CYCLE_ALREADY_CLAIMED       | Another run advanced the month key
----------------|-----------------------------|-----------------------------------------
Lookup          | CUSTOMER_NOT_FOUND          | No customer with the given id
                | SNAPSHOT_NOT_FOUND          | No saved snapshot with the given id
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | UPDATE/DELETE of a history entry

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        result = reset_service.run_monthly_reset(silent=True)
    except SchemaMissingError as e:
        surface.notify("Database Update Required", e.operator_hint)
    except StoreUnavailableError:
        # nothing changed; the caller may re-invoke later
        ...
"""


class BillingKernelError(Exception):
    """
    Base exception for all billing kernel errors.

    Every subclass defines a ``code`` class attribute.  ``partial_effect``
    is False when the failing operation left the store untouched.
    """

    code: str = "BILLING_KERNEL_ERROR"
    partial_effect: bool = False

    @property
    def user_message(self) -> str:
        """Human-readable message stating whether anything changed."""
        if self.partial_effect:
            suffix = "Some changes were applied; verify the data before continuing."
        else:
            suffix = "Nothing was changed."
        return f"{self} {suffix}"


# Schema exceptions


class SchemaMissingError(BillingKernelError):
    """The backing store lacks an expected table or column."""

    code: str = "SCHEMA_MISSING"

    def __init__(self, table: str, column: str | None = None):
        self.table = table
        self.column = column
        target = f"{table}.{column}" if column else table
        super().__init__(f"Schema missing: {target} is not provisioned")

    @property
    def operator_hint(self) -> str:
        """What an operator has to provision."""
        if self.column:
            return f"Add column '{self.column}' to table '{self.table}'."
        return f"Create table '{self.table}'."


class AuditSchemaMissingError(SchemaMissingError):
    """The customer history table is not provisioned."""

    code: str = "AUDIT_SCHEMA_MISSING"

    def __init__(self, table: str = "customer_history", column: str | None = None):
        super().__init__(table, column)


# Validation exceptions


class ValidationError(BillingKernelError):
    """Malformed input, rejected before any mutation."""

    code: str = "VALIDATION_ERROR"


class InvalidDueDayError(ValidationError):
    """Due day is not an integer in 1..28."""

    code: str = "INVALID_DUE_DAY"

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Invalid due day {value!r}: enter a day between 1 and 28")


class MalformedCsvError(ValidationError):
    """CSV payload cannot be parsed."""

    code: str = "MALFORMED_CSV"

    def __init__(self, reason: str, line_number: int | None = None):
        self.reason = reason
        self.line_number = line_number
        where = f" (line {line_number})" if line_number is not None else ""
        super().__init__(f"Invalid CSV format{where}: {reason}")


class InvalidSnapshotError(ValidationError):
    """Snapshot payload is missing data or malformed."""

    code: str = "INVALID_SNAPSHOT"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid snapshot: {reason}")


class InvalidDateRangeError(ValidationError):
    """Start date falls after end date."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, start: object, end: object):
        self.start = start
        self.end = end
        super().__init__(f"Invalid date range: {start} is after {end}")


class InvalidCustomerFieldError(ValidationError):
    """A customer field holds a value outside its domain."""

    code: str = "INVALID_CUSTOMER_FIELD"

    def __init__(self, field: str, value: object):
        self.field = field
        self.value = value
        super().__init__(f"Invalid value {value!r} for customer field '{field}'")


# Store exceptions


class StoreUnavailableError(BillingKernelError):
    """Transient failure reaching the record store.  Never retried here."""

    code: str = "STORE_UNAVAILABLE"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Store unavailable during {operation}: {reason}")


# Restore exceptions


class RestoreError(BillingKernelError):
    """Base exception for restore errors."""

    code: str = "RESTORE_ERROR"


class PartialRestoreError(RestoreError):
    """Some snapshot collections failed while others were applied."""

    code: str = "PARTIAL_RESTORE"
    partial_effect: bool = True

    def __init__(self, failed: dict[str, str], applied: tuple[str, ...]):
        self.failed = failed
        self.applied = applied
        # A failed collection is rolled back to its savepoint, so nothing
        # changed unless another collection was applied.
        self.partial_effect = bool(applied)
        names = ", ".join(sorted(failed))
        super().__init__(f"Restore failed for collection(s): {names}")


# Concurrency exceptions


class ConcurrencyError(BillingKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class CycleAlreadyClaimedError(ConcurrencyError):
    """Another run advanced the reset marker first."""

    code: str = "CYCLE_ALREADY_CLAIMED"

    def __init__(self, month_key: str, expected: str | None):
        self.month_key = month_key
        self.expected = expected
        super().__init__(
            f"Billing cycle {month_key} was claimed by another run "
            f"(expected marker {expected!r})"
        )


# Lookup exceptions


class NotFoundError(BillingKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class CustomerNotFoundError(NotFoundError):
    """Customer with the given id was not found."""

    code: str = "CUSTOMER_NOT_FOUND"

    def __init__(self, customer_id: str):
        self.customer_id = customer_id
        super().__init__(f"Customer not found: {customer_id}")


class SnapshotNotFoundError(NotFoundError):
    """Saved snapshot with the given id was not found."""

    code: str = "SNAPSHOT_NOT_FOUND"

    def __init__(self, snapshot_id: str):
        self.snapshot_id = snapshot_id
        super().__init__(f"Saved snapshot not found: {snapshot_id}")


# Immutability exceptions


class ImmutabilityError(BillingKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
