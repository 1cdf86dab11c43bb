"""
Module: ledger_kernel.selectors.search_selector
Responsibility: The reference engine's native search primitive.  Compiles a
    SearchRequest (a left-associative chain of predicate terms) into one
    SQLAlchemy boolean expression and returns matching entity references.
Architecture position: Kernel > Selectors.  Called by SqlBookEngine.search().

Invariants enforced:
    - Chain semantics: r = t1; r = r <join_i> t_i, strictly left to right.
    - Two-valued logic: every compiled term is TRUE or FALSE, never NULL,
      so NOT/NAND/NOR/XOR and query inversion yield exact complements.
      A NULL column fails every comparison except a match against None.
    - Results are scoped to the request's book and returned in insertion
      order (``seq``), truncated to the result limit.

Failure modes:
    - UnknownQueryFieldError for a field path the target does not define.
    - InvalidQueryOperandError when an operand's type or operator does not
      fit the field.
"""

from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import String, and_, false, func, not_, or_, select, true
from sqlalchemy.sql.elements import ColumnElement

from ledger_kernel.domain.query import (
    Combinator,
    QueryOp,
    QueryTerm,
    SearchRequest,
    SearchTarget,
)
from ledger_kernel.domain.rational import RationalValue
from ledger_kernel.domain.references import EntityRef
from ledger_kernel.exceptions import InvalidQueryOperandError, UnknownQueryFieldError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.transaction import Split, Transaction
from ledger_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.search")


class FieldKind(str, Enum):
    STRING = "string"
    GUID = "guid"
    BOOLEAN = "boolean"
    NUMERIC = "numeric"
    DATE = "date"


@dataclass(frozen=True)
class _Field:
    kind: FieldKind
    column: Any
    denominator: Any = None
    via: Any = None


_FIELDS: dict[SearchTarget, dict[tuple[str, ...], _Field]] = {
    SearchTarget.SPLIT: {
        ("guid",): _Field(FieldKind.GUID, Split.id),
        ("memo",): _Field(FieldKind.STRING, Split.memo),
        ("action",): _Field(FieldKind.STRING, Split.action),
        ("reconcile-flag",): _Field(FieldKind.STRING, Split.reconcile_flag),
        ("value",): _Field(FieldKind.NUMERIC, Split.value_num, Split.value_denom),
        ("amount",): _Field(FieldKind.NUMERIC, Split.amount_num, Split.amount_denom),
        ("account",): _Field(FieldKind.GUID, Split.account_id),
        ("trans",): _Field(FieldKind.GUID, Split.transaction_id),
        ("account", "name"): _Field(FieldKind.STRING, Account.name, via=Split.account),
        ("account", "code"): _Field(FieldKind.STRING, Account.code, via=Split.account),
        ("account", "account-type"): _Field(
            FieldKind.STRING, Account.account_type, via=Split.account
        ),
        ("trans", "desc"): _Field(FieldKind.STRING, Transaction.description, via=Split.transaction),
        ("trans", "num"): _Field(FieldKind.STRING, Transaction.num, via=Split.transaction),
        ("trans", "date-posted"): _Field(
            FieldKind.DATE, Transaction.date_posted, via=Split.transaction
        ),
    },
    SearchTarget.TRANSACTION: {
        ("guid",): _Field(FieldKind.GUID, Transaction.id),
        ("desc",): _Field(FieldKind.STRING, Transaction.description),
        ("num",): _Field(FieldKind.STRING, Transaction.num),
        ("notes",): _Field(FieldKind.STRING, Transaction.notes),
        ("currency",): _Field(FieldKind.STRING, Transaction.currency),
        ("date-posted",): _Field(FieldKind.DATE, Transaction.date_posted),
        ("date-entered",): _Field(FieldKind.DATE, Transaction.date_entered),
    },
    SearchTarget.ACCOUNT: {
        ("guid",): _Field(FieldKind.GUID, Account.id),
        ("name",): _Field(FieldKind.STRING, Account.name),
        ("code",): _Field(FieldKind.STRING, Account.code),
        ("account-type",): _Field(FieldKind.STRING, Account.account_type),
        ("description",): _Field(FieldKind.STRING, Account.description),
        ("placeholder",): _Field(FieldKind.BOOLEAN, Account.placeholder),
        ("hidden",): _Field(FieldKind.BOOLEAN, Account.hidden),
        ("parent",): _Field(FieldKind.GUID, Account.parent_id),
    },
}

_MODELS = {
    SearchTarget.SPLIT: Split,
    SearchTarget.TRANSACTION: Transaction,
    SearchTarget.ACCOUNT: Account,
}

_EQUALITY_OPS = frozenset({QueryOp.EQ, QueryOp.NE})


def field_paths(target: SearchTarget) -> frozenset[tuple[str, ...]]:
    """Field paths searchable on a target."""
    return frozenset(_FIELDS[target])


def _compare(left: Any, operator: QueryOp, right: Any) -> ColumnElement[bool]:
    match operator:
        case QueryOp.EQ:
            return left == right
        case QueryOp.NE:
            return left != right
        case QueryOp.LT:
            return left < right
        case QueryOp.LTE:
            return left <= right
        case QueryOp.GT:
            return left > right
        case QueryOp.GTE:
            return left >= right
    raise ValueError(f"Not an ordering operator: {operator}")


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class SearchSelector(BaseSelector):
    """
    Executes predicate chains against the reference engine's tables.

    Guarantees:
        - Read-only; one SELECT per search.
        - Empty chains match every entity of the target in the book.
    """

    def search(self, request: SearchRequest) -> list[EntityRef]:
        model = _MODELS[request.target]
        stmt = select(model.id).where(self._book_scope(request))

        criterion = self.compile_terms(request.target, request.terms)
        if criterion is not None:
            stmt = stmt.where(criterion)

        stmt = stmt.order_by(model.seq)
        if request.result_limit is not None:
            stmt = stmt.limit(request.result_limit)

        kind = request.target.entity_kind
        refs = [EntityRef(kind, guid) for guid in self.session.scalars(stmt)]
        logger.debug(
            "search_executed",
            extra={
                "target": request.target.value,
                "num_terms": len(request.terms),
                "result_count": len(refs),
            },
        )
        return refs

    def _book_scope(self, request: SearchRequest) -> ColumnElement[bool]:
        book_id = request.book.guid
        if request.target == SearchTarget.SPLIT:
            return Split.transaction.has(Transaction.book_id == book_id)
        if request.target == SearchTarget.TRANSACTION:
            return Transaction.book_id == book_id
        return Account.book_id == book_id

    # ------------------------------------------------------------------
    # Chain compilation
    # ------------------------------------------------------------------

    def compile_terms(
        self,
        target: SearchTarget,
        terms: tuple[QueryTerm, ...],
    ) -> ColumnElement[bool] | None:
        """Fold the chain left to right into one expression (None if empty)."""
        result: ColumnElement[bool] | None = None
        for term in terms:
            expr = self.compile_term(target, term)
            if term.negated:
                expr = not_(expr)
            if result is None:
                result = expr
                continue
            match term.join:
                case Combinator.AND:
                    result = and_(result, expr)
                case Combinator.OR:
                    result = or_(result, expr)
                case Combinator.NAND:
                    result = not_(and_(result, expr))
                case Combinator.NOR:
                    result = not_(or_(result, expr))
                case Combinator.XOR:
                    result = or_(and_(result, not_(expr)), and_(not_(result), expr))
        return result

    def compile_term(self, target: SearchTarget, term: QueryTerm) -> ColumnElement[bool]:
        field = _FIELDS[target].get(term.field_path)
        if field is None:
            raise UnknownQueryFieldError(target.value, term.field_path)

        match field.kind:
            case FieldKind.STRING:
                expr = self._string_term(field, term)
            case FieldKind.GUID:
                expr = self._guid_term(field, term)
            case FieldKind.BOOLEAN:
                expr = self._boolean_term(field, term)
            case FieldKind.NUMERIC:
                expr = self._numeric_term(field, term)
            case FieldKind.DATE:
                expr = self._date_term(field, term)

        if field.via is not None:
            return field.via.has(expr)
        return expr

    # ------------------------------------------------------------------
    # Per-kind terms
    # ------------------------------------------------------------------

    def _invalid(self, term: QueryTerm, reason: str) -> InvalidQueryOperandError:
        return InvalidQueryOperandError(term.field_path, term.operator.value, reason)

    def _string_term(self, field: _Field, term: QueryTerm) -> ColumnElement[bool]:
        operand = term.operand
        if isinstance(operand, Enum):
            operand = operand.value
        if not isinstance(operand, str):
            raise self._invalid(term, "string field needs a str operand")

        # NULL text compares as the empty string
        column = func.coalesce(field.column, "")
        if not term.case_sensitive:
            column = func.lower(column, type_=String)
            operand = operand.lower()

        if term.operator == QueryOp.CONTAINS:
            return column.contains(operand, autoescape=True)
        if term.operator == QueryOp.NOT_CONTAINS:
            return not_(column.contains(operand, autoescape=True))
        return _compare(column, term.operator, operand)

    def _guid_term(self, field: _Field, term: QueryTerm) -> ColumnElement[bool]:
        if term.operator not in _EQUALITY_OPS:
            raise self._invalid(term, "guid fields support EQ and NE only")
        operand = term.operand
        if isinstance(operand, EntityRef):
            operand = operand.guid
        if operand is None:
            if term.operator == QueryOp.EQ:
                return field.column.is_(None)
            return field.column.is_not(None)
        if not isinstance(operand, UUID):
            raise self._invalid(term, "guid field needs a UUID operand")
        if term.operator == QueryOp.EQ:
            return and_(field.column.is_not(None), field.column == operand)
        return or_(field.column.is_(None), field.column != operand)

    def _boolean_term(self, field: _Field, term: QueryTerm) -> ColumnElement[bool]:
        if term.operator not in _EQUALITY_OPS:
            raise self._invalid(term, "boolean fields support EQ and NE only")
        if not isinstance(term.operand, bool):
            raise self._invalid(term, "boolean field needs a bool operand")
        wanted = term.operand if term.operator == QueryOp.EQ else not term.operand
        return field.column == (true() if wanted else false())

    def _numeric_term(self, field: _Field, term: QueryTerm) -> ColumnElement[bool]:
        operand = term.operand
        if not isinstance(operand, RationalValue):
            raise self._invalid(term, "numeric field needs a RationalValue operand")
        if term.operator in (QueryOp.CONTAINS, QueryOp.NOT_CONTAINS):
            raise self._invalid(term, "numeric fields do not support containment")
        numerator, denominator = operand.numerator, operand.denominator
        if denominator < 0:
            numerator, denominator = -numerator, -denominator
        # stored denominators are positive, so cross-multiplying keeps order
        left = field.column * denominator
        right = field.denominator * numerator
        return _compare(left, term.operator, right)

    def _date_term(self, field: _Field, term: QueryTerm) -> ColumnElement[bool]:
        operand = term.operand
        if term.operator in (QueryOp.CONTAINS, QueryOp.NOT_CONTAINS):
            raise self._invalid(term, "date fields do not support containment")
        column = field.column

        if isinstance(operand, datetime):
            expr = _compare(column, term.operator, _to_utc(operand))
        elif isinstance(operand, date):
            # a calendar date covers [midnight, next midnight) in UTC
            start = datetime.combine(operand, time.min, tzinfo=UTC)
            end = start + timedelta(days=1)
            match term.operator:
                case QueryOp.EQ:
                    expr = and_(column >= start, column < end)
                case QueryOp.NE:
                    expr = or_(column < start, column >= end)
                case QueryOp.LT:
                    expr = column < start
                case QueryOp.LTE:
                    expr = column < end
                case QueryOp.GT:
                    expr = column >= end
                case QueryOp.GTE:
                    expr = column >= start
        else:
            raise self._invalid(term, "date field needs a date or datetime operand")

        return and_(column.is_not(None), expr)
