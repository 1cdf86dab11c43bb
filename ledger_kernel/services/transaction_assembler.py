"""
TransactionAssembler -- Validating builder for balanced transactions.

Responsibility:
    Accumulates a transaction header (description, number, notes, posting
    date, currency) and an ordered list of splits, checks locally that the
    transaction can be committed, and only then asks the engine to create
    it inside one edit cycle.

Architecture position:
    Kernel > Services -- depends on the AccountingEngine port only.

Invariants enforced:
    - At least two splits.
    - Every split names an account the engine resolves within the book.
    - The exact rational sum of split amounts is zero.
    - build() is atomic: one commit request or none, and it never changes
      the assembler, so a failed build can be corrected and retried.

Failure modes:
    - InsufficientSplitsError, MissingAccountReferenceError,
      ImbalancedSplitsError(imbalance) -- local validation.
    - ArithmeticOverflowError -- summing the splits overflowed.
    - ExternalCommitFailedError -- the engine failed to commit; the engine's
      exception is chained as ``__cause__``.  Never retried.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime, time

from ledger_kernel.db.types import validate_currency
from ledger_kernel.domain.engine_port import (
    AccountingEngine,
    SplitRequest,
    TransactionRequest,
)
from ledger_kernel.domain.rational import RationalValue
from ledger_kernel.domain.references import EntityKind, EntityRef
from ledger_kernel.exceptions import (
    ExternalCommitFailedError,
    ImbalancedSplitsError,
    InsufficientSplitsError,
    MissingAccountReferenceError,
)
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.transaction_assembler")

MIN_SPLITS = 2


@dataclass(frozen=True, slots=True)
class SplitSpec:
    """One pending split; consumed by build()."""

    account: EntityRef | None
    amount: RationalValue
    memo: str | None = None


class TransactionAssembler:
    """
    Accumulate splits and header fields, then build() one transaction.

    Contract:
        Every accumulation method returns the assembler for chaining.
        Splits keep the order they were added in.

    Guarantees:
        - build() issues exactly one create_transaction() request, inside
          the engine's edit cycle, or raises without touching the engine.

    Non-goals:
        - No currency conversion: every split is in the transaction currency.
    """

    def __init__(self, engine: AccountingEngine, book: EntityRef, *, currency: str = "USD"):
        self._engine = engine
        self._book = book
        self._currency = validate_currency(currency)
        self._description: str | None = None
        self._num: str | None = None
        self._notes: str | None = None
        self._date_posted: datetime | None = None
        self._splits: list[SplitSpec] = []

    # ------------------------------------------------------------------
    # Header
    # ------------------------------------------------------------------

    def description(self, text: str) -> TransactionAssembler:
        self._description = text
        return self

    def num(self, number: str) -> TransactionAssembler:
        self._num = number
        return self

    def notes(self, text: str) -> TransactionAssembler:
        self._notes = text
        return self

    def date(self, day: int, month: int, year: int) -> TransactionAssembler:
        """
        Set the posting date; stored as midnight UTC of that calendar day.

        Raises:
            ValueError: If the day/month/year do not form a real date.
        """
        posted = date(year, month, day)
        self._date_posted = datetime.combine(posted, time.min, tzinfo=UTC)
        return self

    def currency(self, mnemonic: str) -> TransactionAssembler:
        """
        Raises:
            InvalidCurrencyError: If ``mnemonic`` is not an ISO 4217 code.
        """
        self._currency = validate_currency(mnemonic)
        return self

    # ------------------------------------------------------------------
    # Splits
    # ------------------------------------------------------------------

    def split(
        self,
        account: EntityRef | None,
        amount: RationalValue,
        memo: str | None = None,
    ) -> TransactionAssembler:
        """Add one split; positive amounts debit, negative amounts credit."""
        if not isinstance(amount, RationalValue):
            raise TypeError(f"Split amount must be a RationalValue, got {type(amount).__name__}")
        self._splits.append(SplitSpec(account=account, amount=amount, memo=memo))
        return self

    def transfer(
        self,
        from_account: EntityRef | None,
        to_account: EntityRef | None,
        amount: RationalValue,
        memo: str | None = None,
    ) -> TransactionAssembler:
        """Move ``amount`` out of ``from_account`` into ``to_account`` (two splits)."""
        self.split(from_account, amount.negate(), memo)
        self.split(to_account, amount, memo)
        return self

    @property
    def splits(self) -> tuple[SplitSpec, ...]:
        return tuple(self._splits)

    def imbalance(self) -> RationalValue:
        """Exact sum of the split amounts so far."""
        return RationalValue.sum(spec.amount for spec in self._splits)

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def _validate(self) -> tuple[SplitRequest, ...]:
        if len(self._splits) < MIN_SPLITS:
            raise InsufficientSplitsError(len(self._splits), MIN_SPLITS)

        for position, spec in enumerate(self._splits):
            if spec.account is None or not self._engine.resolve(
                spec.account, EntityKind.ACCOUNT, self._book
            ):
                raise MissingAccountReferenceError(position, spec.account)

        imbalance = self.imbalance()
        if not imbalance.is_zero:
            raise ImbalancedSplitsError(imbalance)

        return tuple(
            SplitRequest(account=spec.account, amount=spec.amount, memo=spec.memo)
            for spec in self._splits
        )

    def build(self) -> EntityRef:
        """
        Validate and commit.

        Returns:
            Reference to the committed transaction.
        """
        split_requests = self._validate()
        request = TransactionRequest(
            splits=split_requests,
            currency=self._currency,
            description=self._description,
            num=self._num,
            notes=self._notes,
            date_posted=self._date_posted,
        )

        try:
            with self._engine.edit_cycle():
                ref = self._engine.create_transaction(self._book, request)
        except Exception as exc:
            logger.error(
                "transaction_commit_failed",
                extra={"book_id": str(self._book.guid), "split_count": len(split_requests)},
            )
            raise ExternalCommitFailedError(
                EntityKind.TRANSACTION.value, f"{type(exc).__name__}: {exc}"
            ) from exc

        logger.info(
            "transaction_assembled",
            extra={
                "transaction_id": str(ref.guid),
                "book_id": str(self._book.guid),
                "split_count": len(split_requests),
                "currency": self._currency,
            },
        )
        return ref
