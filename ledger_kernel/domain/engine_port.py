"""
Engine port -- The only door from the kernel to the bookkeeping engine.

Responsibility:
    Declares what the kernel needs from the external engine: reference
    resolution, the edit (begin/commit/rollback) cycle, the native search
    primitive, commit requests for transactions and invoices, and the
    lookups the invoice builder depends on.  Also defines the immutable
    request payloads handed across the port.

Architecture position:
    Kernel > Domain -- abstract, zero I/O.  Concrete engines live in
    services/ (SqlBookEngine) and are injected by callers.

Invariants enforced:
    - edit_cycle() commits exactly once on success and rolls back whenever
      the body or the commit itself fails; the original error propagates.

Failure modes:
    - Adapters raise EntityNotFoundError for unknown references and may
      raise anything else on commit; the assemblers wrap the latter in
      ExternalCommitFailedError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterator

from ledger_kernel.domain.invoicing import (
    DiscountType,
    InvoiceTotals,
    InvoiceType,
    TaxRate,
)
from ledger_kernel.domain.owner import Owner
from ledger_kernel.domain.query import SearchRequest
from ledger_kernel.domain.rational import RationalValue
from ledger_kernel.domain.references import EntityKind, EntityRef
from ledger_kernel.logging_config import get_logger

logger = get_logger("domain.engine_port")


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SplitRequest:
    account: EntityRef
    amount: RationalValue
    memo: str | None = None


@dataclass(frozen=True, slots=True)
class TransactionRequest:
    """A validated, balanced transaction ready for the engine."""

    splits: tuple[SplitRequest, ...]
    currency: str
    description: str | None = None
    num: str | None = None
    notes: str | None = None
    date_posted: datetime | None = None


@dataclass(frozen=True, slots=True)
class EntryRequest:
    description: str
    unit_price: RationalValue
    quantity: RationalValue
    account: EntityRef
    taxable: bool = False
    tax_table: EntityRef | None = None
    tax_included: bool = False
    discount: RationalValue | None = None
    discount_type: DiscountType = DiscountType.PERCENT
    action: str | None = None


@dataclass(frozen=True, slots=True)
class InvoiceRequest:
    """An invoice header plus its entries, in accumulation order."""

    owner: Owner
    invoice_type: InvoiceType
    entries: tuple[EntryRequest, ...]
    currency: str
    invoice_id: str | None = None
    notes: str | None = None
    billing_id: str | None = None
    date_opened: date | None = None
    expected_totals: InvoiceTotals | None = None


# ---------------------------------------------------------------------------
# Port
# ---------------------------------------------------------------------------


class AccountingEngine(ABC):
    """
    Abstract bookkeeping engine.

    Contract:
        The kernel calls these methods and nothing else.  References handed
        out by the engine are only meaningful to the same engine.

    Guarantees:
        - search() returns references in the engine's native order, never
          more than request.result_limit of them.
        - create_transaction() / create_invoice() each persist one entity
          and return its reference.

    Non-goals:
        - No session management, file formats or account-tree traversal.
    """

    @abstractmethod
    def resolve(
        self,
        ref: EntityRef,
        kind: EntityKind | None = None,
        book: EntityRef | None = None,
    ) -> bool:
        """True if ``ref`` names a live entity, of ``kind`` and in ``book`` when given."""
        ...

    # Edit cycle -----------------------------------------------------------

    @abstractmethod
    def begin_edit(self) -> Any:
        """Open an edit; returns an opaque token for commit/rollback."""
        ...

    @abstractmethod
    def commit_edit(self, token: Any) -> None:
        ...

    @abstractmethod
    def rollback_edit(self, token: Any) -> None:
        ...

    @contextmanager
    def edit_cycle(self) -> Iterator[None]:
        """
        Run the body inside one begin/commit pair.

        A failure in the body or in the commit rolls the edit back and the
        original exception is re-raised.
        """
        token = self.begin_edit()
        try:
            yield
            self.commit_edit(token)
        except Exception:
            self.rollback_edit(token)
            logger.warning("edit_rolled_back", exc_info=True)
            raise

    # Queries --------------------------------------------------------------

    @abstractmethod
    def search(self, request: SearchRequest) -> list[EntityRef]:
        ...

    # Commit requests ------------------------------------------------------

    @abstractmethod
    def create_transaction(self, book: EntityRef, request: TransactionRequest) -> EntityRef:
        ...

    @abstractmethod
    def create_invoice(self, book: EntityRef, request: InvoiceRequest) -> EntityRef:
        ...

    # Lookups --------------------------------------------------------------

    @abstractmethod
    def tax_table_entries(self, ref: EntityRef) -> tuple[TaxRate, ...]:
        """Rates of a tax table; EntityNotFoundError if it does not exist."""
        ...

    @abstractmethod
    def invoice_totals(self, ref: EntityRef) -> InvoiceTotals:
        """The engine's own subtotal and tax for a committed invoice."""
        ...

    @abstractmethod
    def job_owner(self, ref: EntityRef) -> Owner:
        ...
