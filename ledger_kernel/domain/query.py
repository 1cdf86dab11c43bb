"""
Query -- Composable predicate chains over engine-managed collections.

Responsibility:
    PredicateQuery accumulates an ordered chain of QueryTerms against one
    collection (splits, transactions or accounts) in one book, supports
    merging and inversion, and hands the chain to the engine's search
    primitive for execution.

Architecture position:
    Kernel > Domain -- pure construction logic.  Execution is delegated to
    AccountingEngine.search(); this module never touches storage.

Invariants enforced:
    - Terms are evaluated strictly left to right:
          result = t1;  result = result <join_i> t_i  for i = 2..n
      The first term's join is ignored.
    - merge() concatenates chains; the boundary term carries the combinator.
    - invert() negates the chain itself (De Morgan on the left-associative
      chain), never by running the query and subtracting.  invert(invert(q))
      is structurally equal to q.
    - run() never mutates the query; queries are reusable.

Failure modes:
    - IncompatibleQueryTargetError when merging or running across targets.
    - NoQueryTargetError / NoBookSetError when running an incomplete query.
    - InvalidQueryOperandError for operands that cannot match the helper
      they were passed to (e.g. a non-bool to add_boolean_match).
    - UnknownQueryFieldError is raised by the engine when it compiles a
      field path it does not know.

Non-goals:
    - No grouping/precedence beyond left associativity; callers needing
      grouping build and merge sub-queries in the order they need.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Sequence
from uuid import UUID

from ledger_kernel.domain.rational import RationalValue
from ledger_kernel.domain.references import EntityKind, EntityRef
from ledger_kernel.exceptions import (
    IncompatibleQueryTargetError,
    InvalidQueryOperandError,
    NoBookSetError,
    NoQueryTargetError,
)
from ledger_kernel.logging_config import get_logger

if TYPE_CHECKING:
    from ledger_kernel.domain.engine_port import AccountingEngine

logger = get_logger("domain.query")


class SearchTarget(str, Enum):
    """Collections a query can search (values are the engine's type names)."""

    SPLIT = "Split"
    TRANSACTION = "Trans"
    ACCOUNT = "Account"

    @property
    def entity_kind(self) -> EntityKind:
        return _TARGET_KINDS[self]


_TARGET_KINDS = {
    SearchTarget.SPLIT: EntityKind.SPLIT,
    SearchTarget.TRANSACTION: EntityKind.TRANSACTION,
    SearchTarget.ACCOUNT: EntityKind.ACCOUNT,
}


class Combinator(str, Enum):
    """Boolean operator joining a term to the result of the terms before it."""

    AND = "and"
    OR = "or"
    NAND = "nand"
    NOR = "nor"
    XOR = "xor"


class QueryOp(str, Enum):
    """Comparison applied between a field and the term's operand."""

    EQ = "eq"
    NE = "ne"
    LT = "lt"
    LTE = "lte"
    GT = "gt"
    GTE = "gte"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"


# NOT(r AND t) = NOT r OR NOT t, and so on; XOR keeps its term as is.
_INVERTED_JOIN = {
    Combinator.AND: Combinator.OR,
    Combinator.OR: Combinator.AND,
    Combinator.NAND: Combinator.NOR,
    Combinator.NOR: Combinator.NAND,
}

_ORDERING_OPS = frozenset({QueryOp.LT, QueryOp.LTE, QueryOp.GT, QueryOp.GTE})
_STRING_OPS = frozenset({QueryOp.EQ, QueryOp.NE, QueryOp.CONTAINS, QueryOp.NOT_CONTAINS})


class Params:
    """Field path names understood by the engine's search primitive."""

    GUID = "guid"

    SPLIT_TRANS = "trans"
    SPLIT_ACCOUNT = "account"
    SPLIT_VALUE = "value"
    SPLIT_AMOUNT = "amount"
    SPLIT_MEMO = "memo"
    SPLIT_ACTION = "action"
    SPLIT_RECONCILE = "reconcile-flag"

    TRANS_DATE_POSTED = "date-posted"
    TRANS_DATE_ENTERED = "date-entered"
    TRANS_DESCRIPTION = "desc"
    TRANS_NUM = "num"
    TRANS_NOTES = "notes"
    TRANS_CURRENCY = "currency"

    ACCOUNT_NAME = "name"
    ACCOUNT_CODE = "code"
    ACCOUNT_TYPE = "account-type"
    ACCOUNT_DESCRIPTION = "description"
    ACCOUNT_PLACEHOLDER = "placeholder"
    ACCOUNT_HIDDEN = "hidden"
    ACCOUNT_PARENT = "parent"


def parse_field_path(field_path: str | Sequence[str]) -> tuple[str, ...]:
    """Accept ``"account/name"`` or ``("account", "name")``."""
    if isinstance(field_path, str):
        parts = tuple(part for part in field_path.split("/") if part)
    else:
        parts = tuple(field_path)
    if not parts or not all(isinstance(part, str) and part for part in parts):
        raise ValueError(f"Invalid field path: {field_path!r}")
    return parts


@dataclass(frozen=True, slots=True)
class QueryTerm:
    """
    One atomic comparison in a predicate chain.

    ``negated`` applies to this term alone; ``join`` combines the (possibly
    negated) term with everything before it.
    """

    field_path: tuple[str, ...]
    operator: QueryOp
    operand: Any
    join: Combinator = Combinator.AND
    negated: bool = False
    case_sensitive: bool = True


@dataclass(frozen=True, slots=True)
class SearchRequest:
    """Everything the engine's search primitive needs to run one query."""

    target: SearchTarget
    book: EntityRef
    terms: tuple[QueryTerm, ...]
    result_limit: int | None = None


class PredicateQuery:
    """
    Ordered chain of predicate terms targeting one collection in one book.

    Contract:
        Builder methods mutate the query and return it for chaining;
        merge() and invert() return new queries and leave both operands
        untouched.  run() leaves the query unchanged.

    Guarantees:
        - Term order is insertion order and is significant.
        - The result limit truncates results; exceeding it is not an error.
    """

    def __init__(
        self,
        target: SearchTarget | None = None,
        book: EntityRef | None = None,
        terms: Sequence[QueryTerm] = (),
        result_limit: int | None = None,
    ):
        self._target = SearchTarget(target) if target is not None else None
        self._book: EntityRef | None = None
        self._terms: list[QueryTerm] = list(terms)
        self._result_limit: int | None = None
        if book is not None:
            self.set_owning_book(book)
        if result_limit is not None:
            self.set_result_limit(result_limit)

    @classmethod
    def for_type(cls, target: SearchTarget | str) -> PredicateQuery:
        """Create an empty query for one collection."""
        return cls(target=SearchTarget(target))

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def target(self) -> SearchTarget | None:
        return self._target

    @property
    def book(self) -> EntityRef | None:
        return self._book

    @property
    def terms(self) -> tuple[QueryTerm, ...]:
        return tuple(self._terms)

    @property
    def result_limit(self) -> int | None:
        return self._result_limit

    def has_terms(self) -> bool:
        return bool(self._terms)

    def num_terms(self) -> int:
        return len(self._terms)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_target(self, target: SearchTarget | str) -> PredicateQuery:
        self._target = SearchTarget(target)
        return self

    def set_owning_book(self, book: EntityRef) -> PredicateQuery:
        if book.kind != EntityKind.BOOK:
            raise ValueError(f"Owning book must be a book reference, got {book.kind.value}")
        self._book = book
        return self

    def set_result_limit(self, limit: int | None) -> PredicateQuery:
        """Cap the number of results; None removes the cap."""
        if limit is not None and limit < 0:
            raise ValueError(f"Result limit must be non-negative, got {limit}")
        self._result_limit = limit
        return self

    def purge_terms(self) -> PredicateQuery:
        """Drop every term."""
        self._terms.clear()
        return self

    def clear(self) -> PredicateQuery:
        """Drop every term; target, book and limit are kept."""
        return self.purge_terms()

    # ------------------------------------------------------------------
    # Terms
    # ------------------------------------------------------------------

    def add_match(
        self,
        field_path: str | Sequence[str],
        operator: QueryOp | str,
        operand: Any,
        join: Combinator | str = Combinator.AND,
        *,
        case_sensitive: bool = True,
    ) -> PredicateQuery:
        """Append one term to the chain."""
        self._terms.append(
            QueryTerm(
                field_path=parse_field_path(field_path),
                operator=QueryOp(operator),
                operand=operand,
                join=Combinator(join),
                case_sensitive=case_sensitive,
            )
        )
        return self

    def add_boolean_match(
        self,
        field_path: str | Sequence[str],
        value: bool,
        join: Combinator | str = Combinator.AND,
    ) -> PredicateQuery:
        path = parse_field_path(field_path)
        if not isinstance(value, bool):
            raise InvalidQueryOperandError(path, QueryOp.EQ.value, "boolean match needs a bool")
        return self.add_match(path, QueryOp.EQ, value, join)

    def add_guid_match(
        self,
        field_path: str | Sequence[str],
        guid: UUID | EntityRef | None,
        join: Combinator | str = Combinator.AND,
    ) -> PredicateQuery:
        """Match a reference field; None matches an unset reference."""
        path = parse_field_path(field_path)
        if isinstance(guid, EntityRef):
            guid = guid.guid
        if guid is not None and not isinstance(guid, UUID):
            raise InvalidQueryOperandError(path, QueryOp.EQ.value, "guid match needs a UUID")
        return self.add_match(path, QueryOp.EQ, guid, join)

    def add_string_match(
        self,
        field_path: str | Sequence[str],
        value: str,
        operator: QueryOp | str = QueryOp.EQ,
        join: Combinator | str = Combinator.AND,
        *,
        case_sensitive: bool = True,
    ) -> PredicateQuery:
        path = parse_field_path(field_path)
        operator = QueryOp(operator)
        if not isinstance(value, str):
            raise InvalidQueryOperandError(path, operator.value, "string match needs a str")
        if operator not in _STRING_OPS:
            raise InvalidQueryOperandError(path, operator.value, "not a string comparison")
        return self.add_match(path, operator, value, join, case_sensitive=case_sensitive)

    def add_numeric_match(
        self,
        field_path: str | Sequence[str],
        value: RationalValue,
        operator: QueryOp | str = QueryOp.EQ,
        join: Combinator | str = Combinator.AND,
    ) -> PredicateQuery:
        path = parse_field_path(field_path)
        operator = QueryOp(operator)
        if not isinstance(value, RationalValue):
            raise InvalidQueryOperandError(path, operator.value, "numeric match needs a RationalValue")
        if operator not in _ORDERING_OPS | {QueryOp.EQ, QueryOp.NE}:
            raise InvalidQueryOperandError(path, operator.value, "not a numeric comparison")
        return self.add_match(path, operator, value, join)

    def add_date_match(
        self,
        field_path: str | Sequence[str],
        value: date | datetime,
        operator: QueryOp | str = QueryOp.EQ,
        join: Combinator | str = Combinator.AND,
    ) -> PredicateQuery:
        path = parse_field_path(field_path)
        operator = QueryOp(operator)
        if not isinstance(value, (date, datetime)):
            raise InvalidQueryOperandError(path, operator.value, "date match needs a date or datetime")
        if operator not in _ORDERING_OPS | {QueryOp.EQ, QueryOp.NE}:
            raise InvalidQueryOperandError(path, operator.value, "not a date comparison")
        return self.add_match(path, operator, value, join)

    # ------------------------------------------------------------------
    # Combination
    # ------------------------------------------------------------------

    def copy(self) -> PredicateQuery:
        return PredicateQuery(
            target=self._target,
            book=self._book,
            terms=self._terms,
            result_limit=self._result_limit,
        )

    def merge(
        self,
        other: PredicateQuery,
        join: Combinator | str = Combinator.AND,
    ) -> PredicateQuery:
        """
        Concatenate two chains into a new query.

        The first term taken from ``other`` carries ``join``.  An untyped
        side adopts the other side's target; the book and limit come from
        self when set, else from other.

        Raises:
            IncompatibleQueryTargetError: If both targets are set and differ.
        """
        join = Combinator(join)
        if (
            self._target is not None
            and other._target is not None
            and self._target != other._target
        ):
            raise IncompatibleQueryTargetError(self._target.value, other._target.value)

        other_terms = list(other._terms)
        if other_terms:
            other_terms[0] = replace(other_terms[0], join=join)

        return PredicateQuery(
            target=self._target or other._target,
            book=self._book or other._book,
            terms=self._terms + other_terms,
            result_limit=(
                self._result_limit if self._result_limit is not None else other._result_limit
            ),
        )

    def invert(self) -> PredicateQuery:
        """
        Return the query matching exactly the complement of this one.

        Each step ``r' = r <join> t`` is rewritten with De Morgan so that the
        running result is negated at every position:
            AND  -> OR   with t negated
            OR   -> AND  with t negated
            NAND -> NOR  with t negated
            NOR  -> NAND with t negated
            XOR  -> XOR  with t unchanged
        The first term is simply negated.  An empty query stays empty.
        """
        inverted: list[QueryTerm] = []
        for position, term in enumerate(self._terms):
            if position == 0:
                inverted.append(replace(term, negated=not term.negated))
            elif term.join == Combinator.XOR:
                inverted.append(term)
            else:
                inverted.append(
                    replace(term, join=_INVERTED_JOIN[term.join], negated=not term.negated)
                )
        return PredicateQuery(
            target=self._target,
            book=self._book,
            terms=inverted,
            result_limit=self._result_limit,
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def to_request(self) -> SearchRequest:
        """
        Freeze the query into a SearchRequest.

        Raises:
            NoQueryTargetError: If no target collection is set.
            NoBookSetError: If no owning book is set.
        """
        if self._target is None:
            raise NoQueryTargetError()
        if self._book is None:
            raise NoBookSetError(self._target.value)
        return SearchRequest(
            target=self._target,
            book=self._book,
            terms=tuple(self._terms),
            result_limit=self._result_limit,
        )

    def run(self, engine: AccountingEngine) -> list[EntityRef]:
        """
        Execute against the engine; results keep the engine's native order.
        """
        request = self.to_request()
        results = engine.search(request)
        logger.debug(
            "query_executed",
            extra={
                "target": request.target.value,
                "num_terms": len(request.terms),
                "result_limit": request.result_limit,
                "result_count": len(results),
            },
        )
        return results

    def _run_as(self, target: SearchTarget, engine: AccountingEngine) -> list[EntityRef]:
        if self._target != target:
            raise IncompatibleQueryTargetError(
                target.value, self._target.value if self._target else None
            )
        return self.run(engine)

    def run_splits(self, engine: AccountingEngine) -> list[EntityRef]:
        return self._run_as(SearchTarget.SPLIT, engine)

    def run_transactions(self, engine: AccountingEngine) -> list[EntityRef]:
        return self._run_as(SearchTarget.TRANSACTION, engine)

    def run_accounts(self, engine: AccountingEngine) -> list[EntityRef]:
        return self._run_as(SearchTarget.ACCOUNT, engine)

    # ------------------------------------------------------------------
    # Dunder
    # ------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PredicateQuery):
            return NotImplemented
        return (
            self._target == other._target
            and self._book == other._book
            and self._terms == other._terms
            and self._result_limit == other._result_limit
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        target = self._target.value if self._target else None
        return f"PredicateQuery(target={target!r}, num_terms={len(self._terms)})"
