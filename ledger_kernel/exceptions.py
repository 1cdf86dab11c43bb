"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers must be able to react to a failed build or query without parsing
message strings. Every error therefore:
  1. Has its own TYPED exception class (catch by type, not message)
  2. Carries a CODE class attribute (machine-readable, API-safe)
  3. Exposes structured DATA as attributes (not just a message string)

Example:
    try:
        txn_ref = assembler.build()
    except ImbalancedSplitsError as e:
        show_user(f"Off by {e.imbalance}")      # Structured data
        api_response(code=e.code)               # Machine-readable

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- NumericError
    |   +-- DivisionByZeroError
    |   +-- ArithmeticOverflowError
    |
    +-- QueryError
    |   +-- IncompatibleQueryTargetError
    |   +-- NoBookSetError
    |   +-- NoQueryTargetError
    |   +-- UnknownQueryFieldError
    |   +-- InvalidQueryOperandError
    |
    +-- AssemblyError
    |   +-- TransactionAssemblyError
    |   |   +-- InsufficientSplitsError
    |   |   +-- MissingAccountReferenceError
    |   |   +-- ImbalancedSplitsError
    |   +-- InvoiceAssemblyError
    |       +-- MissingOwnerError
    |       +-- EmptyInvoiceError
    |       +-- EngineTotalMismatchError
    |
    +-- EngineError
        +-- ExternalCommitFailedError
        +-- EntityNotFoundError
        +-- InvalidOwnerError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category   | Code                        | When Raised
-----------|-----------------------------|------------------------------------------
Numeric    | DIVISION_BY_ZERO            | Zero (or non-positive) denominator
           | ARITHMETIC_OVERFLOW         | Result leaves the 64/128-bit range
-----------|-----------------------------|------------------------------------------
Query      | INCOMPATIBLE_QUERY_TARGET   | merge/run across different collections
           | NO_BOOK_SET                 | run() without an owning book
           | NO_QUERY_TARGET             | run() on an untyped query
           | UNKNOWN_QUERY_FIELD         | Field path unknown for the collection
           | INVALID_QUERY_OPERAND       | Operand/operator does not fit the field
-----------|-----------------------------|------------------------------------------
Assembly   | INSUFFICIENT_SPLITS         | Fewer than two splits
           | MISSING_ACCOUNT_REFERENCE   | Split/entry account unresolved
           | IMBALANCED_SPLITS           | Split amounts do not sum to zero
           | MISSING_OWNER               | Invoice owner unset or undefined
           | EMPTY_INVOICE               | Invoice without entries
           | ENGINE_TOTAL_MISMATCH       | Engine totals differ after commit
-----------|-----------------------------|------------------------------------------
Engine     | EXTERNAL_COMMIT_FAILED      | Engine failed during the commit step
           | ENTITY_NOT_FOUND            | Reference does not resolve
           | INVALID_OWNER               | Owner cannot own the requested object

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Domain exceptions inherit from Exception, not ValueError/ArithmeticError,
   so the whole family is catchable as LedgerKernelError.
2. Validation errors leave builder state untouched; the caller may correct
   the builder and call build() again.
3. ExternalCommitFailedError chains the engine's original exception via
   ``raise ... from``; it is never retried inside the kernel.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ledger_kernel.domain.rational import RationalValue
    from ledger_kernel.domain.references import EntityRef


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Numeric exceptions


class NumericError(LedgerKernelError):
    """Base exception for rational arithmetic errors."""

    code: str = "NUMERIC_ERROR"


class DivisionByZeroError(NumericError):
    """A rational value has (or would have) a zero or non-positive denominator."""

    code: str = "DIVISION_BY_ZERO"

    def __init__(self, numerator: int, denominator: int, operation: str = "make"):
        self.numerator = numerator
        self.denominator = denominator
        self.operation = operation
        super().__init__(
            f"Division by zero in {operation}: {numerator}/{denominator}"
        )


class ArithmeticOverflowError(NumericError):
    """An intermediate or final result cannot be represented."""

    code: str = "ARITHMETIC_OVERFLOW"

    def __init__(self, operation: str, value: int, bits: int):
        self.operation = operation
        self.value = value
        self.bits = bits
        super().__init__(
            f"Arithmetic overflow in {operation}: {value} exceeds {bits}-bit range"
        )


# Query exceptions


class QueryError(LedgerKernelError):
    """Base exception for predicate query misuse."""

    code: str = "QUERY_ERROR"


class IncompatibleQueryTargetError(QueryError):
    """Two queries (or a query and a run call) target different collections."""

    code: str = "INCOMPATIBLE_QUERY_TARGET"

    def __init__(self, expected: str | None, actual: str | None):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Incompatible query target: expected {expected}, got {actual}"
        )


class NoBookSetError(QueryError):
    """Query was run without an owning book."""

    code: str = "NO_BOOK_SET"

    def __init__(self, target: str | None = None):
        self.target = target
        super().__init__(f"No book set on {target or 'untyped'} query")


class NoQueryTargetError(QueryError):
    """Query was run before a target collection was chosen."""

    code: str = "NO_QUERY_TARGET"

    def __init__(self) -> None:
        super().__init__("Query has no target collection")


class UnknownQueryFieldError(QueryError):
    """Field path does not exist on the target collection."""

    code: str = "UNKNOWN_QUERY_FIELD"

    def __init__(self, target: str, field_path: tuple[str, ...]):
        self.target = target
        self.field_path = field_path
        super().__init__(
            f"Unknown field '{'/'.join(field_path)}' for {target} queries"
        )


class InvalidQueryOperandError(QueryError):
    """Operand or operator does not fit the field's kind."""

    code: str = "INVALID_QUERY_OPERAND"

    def __init__(self, field_path: tuple[str, ...], operator: str, reason: str):
        self.field_path = field_path
        self.operator = operator
        self.reason = reason
        super().__init__(
            f"Invalid operand for '{'/'.join(field_path)}' ({operator}): {reason}"
        )


# Assembly exceptions


class AssemblyError(LedgerKernelError):
    """Base exception for builder validation failures."""

    code: str = "ASSEMBLY_ERROR"


class TransactionAssemblyError(AssemblyError):
    """Base exception for transaction builder failures."""

    code: str = "TRANSACTION_ASSEMBLY_ERROR"


class InsufficientSplitsError(TransactionAssemblyError):
    """A transaction needs at least two splits."""

    code: str = "INSUFFICIENT_SPLITS"

    def __init__(self, split_count: int, required: int = 2):
        self.split_count = split_count
        self.required = required
        super().__init__(
            f"Transaction has {split_count} split(s); at least {required} required"
        )


class MissingAccountReferenceError(TransactionAssemblyError):
    """A split or entry references no account, or one that does not resolve."""

    code: str = "MISSING_ACCOUNT_REFERENCE"

    def __init__(self, position: int, account: EntityRef | None = None):
        self.position = position
        self.account = account
        detail = "no account" if account is None else f"unresolved account {account}"
        super().__init__(f"Line {position} has {detail}")


class ImbalancedSplitsError(TransactionAssemblyError):
    """Split amounts do not sum to zero."""

    code: str = "IMBALANCED_SPLITS"

    def __init__(self, imbalance: RationalValue):
        self.imbalance = imbalance
        super().__init__(f"Transaction is imbalanced by {imbalance}")


class InvoiceAssemblyError(AssemblyError):
    """Base exception for invoice builder failures."""

    code: str = "INVOICE_ASSEMBLY_ERROR"


class MissingOwnerError(InvoiceAssemblyError):
    """Invoice owner is unset or undefined."""

    code: str = "MISSING_OWNER"

    def __init__(self) -> None:
        super().__init__("Invoice owner is unset or undefined")


class EmptyInvoiceError(InvoiceAssemblyError):
    """Invoice has no entries."""

    code: str = "EMPTY_INVOICE"

    def __init__(self, invoice_id: str | None = None):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id or '<unnamed>'} has no entries")


class EngineTotalMismatchError(InvoiceAssemblyError):
    """
    The engine's own totals disagree with the locally computed ones.

    Raised after the invoice has been committed; the committed reference is
    carried on ``invoice`` so the caller can inspect or void it.
    """

    code: str = "ENGINE_TOTAL_MISMATCH"

    def __init__(
        self,
        invoice: EntityRef,
        expected_subtotal: RationalValue,
        engine_subtotal: RationalValue,
        expected_tax: RationalValue,
        engine_tax: RationalValue,
    ):
        self.invoice = invoice
        self.expected_subtotal = expected_subtotal
        self.engine_subtotal = engine_subtotal
        self.expected_tax = expected_tax
        self.engine_tax = engine_tax
        super().__init__(
            f"Engine totals for invoice {invoice.guid} disagree: "
            f"subtotal {engine_subtotal} (expected {expected_subtotal}), "
            f"tax {engine_tax} (expected {expected_tax})"
        )


# Engine exceptions


class EngineError(LedgerKernelError):
    """Base exception for failures reported by the accounting engine."""

    code: str = "ENGINE_ERROR"


class ExternalCommitFailedError(EngineError):
    """The engine failed while committing an assembled object."""

    code: str = "EXTERNAL_COMMIT_FAILED"

    def __init__(self, entity_kind: str, reason: str):
        self.entity_kind = entity_kind
        self.reason = reason
        super().__init__(f"Engine failed to commit {entity_kind}: {reason}")


class EntityNotFoundError(EngineError):
    """A reference does not resolve to an engine entity of the expected kind."""

    code: str = "ENTITY_NOT_FOUND"

    def __init__(self, kind: str, guid: Any):
        self.kind = kind
        self.guid = guid
        super().__init__(f"{kind} not found: {guid}")


class InvalidOwnerError(EngineError):
    """An owner cannot own the requested object (e.g. a job owning a job)."""

    code: str = "INVALID_OWNER"

    def __init__(self, owner_type: str, reason: str):
        self.owner_type = owner_type
        self.reason = reason
        super().__init__(f"Invalid {owner_type} owner: {reason}")
