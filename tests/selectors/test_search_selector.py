"""
Tests for the SQL search primitive behind PredicateQuery.run().

Fixture ledger (all in the test book, insertion order):
    t1  2024-01-15  "Opening deposit"  equity -1000.00 / bank +1000.00  memo "Initial capital"
    t2  2024-01-20  "Office supplies"  bank -45.50 / expense +45.50     memo "Paper and toner"
    t3  (no date)   "Client payment"   receivable -300.00 / bank +300.00 (no memo)
"""

from dataclasses import dataclass
from datetime import UTC, date, datetime
from uuid import uuid4

import pytest

from ledger_kernel.domain.query import Combinator, Params, PredicateQuery, QueryOp, SearchTarget
from ledger_kernel.domain.rational import RationalValue
from ledger_kernel.domain.references import EntityKind, EntityRef
from ledger_kernel.exceptions import (
    EntityNotFoundError,
    InvalidQueryOperandError,
    UnknownQueryFieldError,
)
from ledger_kernel.models.account import AccountType
from ledger_kernel.selectors.book_selector import BookSelector
from ledger_kernel.selectors.search_selector import field_paths
from ledger_kernel.services.book_engine import SqlBookEngine
from ledger_kernel.services.transaction_assembler import TransactionAssembler
from tests.conftest import money

ZERO = RationalValue.zero()


@dataclass(frozen=True)
class Ledger:
    t1: EntityRef
    t2: EntityRef
    t3: EntityRef
    equity_t1: EntityRef
    bank_t1: EntityRef
    bank_t2: EntityRef
    expense_t2: EntityRef
    receivable_t3: EntityRef
    bank_t3: EntityRef

    @property
    def all_splits(self) -> list[EntityRef]:
        return [
            self.equity_t1,
            self.bank_t1,
            self.bank_t2,
            self.expense_t2,
            self.receivable_t3,
            self.bank_t3,
        ]


@pytest.fixture
def ledger(engine, book, accounts, session) -> Ledger:
    t1 = (
        TransactionAssembler(engine, book)
        .description("Opening deposit")
        .num("1001")
        .date(15, 1, 2024)
        .transfer(accounts.equity, accounts.bank, money("1000.00"), "Initial capital")
        .build()
    )
    t2 = (
        TransactionAssembler(engine, book)
        .description("Office supplies")
        .num("1002")
        .date(20, 1, 2024)
        .transfer(accounts.bank, accounts.expense, money("45.50"), "Paper and toner")
        .build()
    )
    t3 = (
        TransactionAssembler(engine, book)
        .description("Client payment")
        .transfer(accounts.receivable, accounts.bank, money("300.00"))
        .build()
    )
    selector = BookSelector(session)

    def split_refs(txn):
        return [EntityRef(EntityKind.SPLIT, s.id) for s in selector.get_transaction(txn).splits]

    equity_t1, bank_t1 = split_refs(t1)
    bank_t2, expense_t2 = split_refs(t2)
    receivable_t3, bank_t3 = split_refs(t3)
    return Ledger(t1, t2, t3, equity_t1, bank_t1, bank_t2, expense_t2, receivable_t3, bank_t3)


def _splits(book) -> PredicateQuery:
    return PredicateQuery.for_type(SearchTarget.SPLIT).set_owning_book(book)


def _transactions(book) -> PredicateQuery:
    return PredicateQuery.for_type(SearchTarget.TRANSACTION).set_owning_book(book)


def _accounts(book) -> PredicateQuery:
    return PredicateQuery.for_type(SearchTarget.ACCOUNT).set_owning_book(book)


class TestSplitSearch:
    """Tests for single-term split queries."""

    def test_empty_chain_matches_everything_in_order(self, engine, book, ledger):
        assert _splits(book).run(engine) == ledger.all_splits

    def test_account_guid(self, engine, book, accounts, ledger):
        query = _splits(book).add_guid_match(Params.SPLIT_ACCOUNT, accounts.bank)
        assert query.run(engine) == [ledger.bank_t1, ledger.bank_t2, ledger.bank_t3]

    def test_transaction_guid(self, engine, book, ledger):
        query = _splits(book).add_guid_match(Params.SPLIT_TRANS, ledger.t2)
        assert query.run(engine) == [ledger.bank_t2, ledger.expense_t2]

    def test_value_greater_than_zero(self, engine, book, ledger):
        query = _splits(book).add_numeric_match(Params.SPLIT_VALUE, ZERO, QueryOp.GT)
        assert query.run(engine) == [ledger.bank_t1, ledger.expense_t2, ledger.bank_t3]

    def test_value_equality_across_denominators(self, engine, book, ledger):
        query = _splits(book).add_numeric_match(Params.SPLIT_AMOUNT, RationalValue.make(91, 2))
        assert query.run(engine) == [ledger.expense_t2]

    def test_negative_denominator_operand(self, engine, book, ledger):
        query = _splits(book).add_numeric_match(
            Params.SPLIT_VALUE, RationalValue.make(100, -1), QueryOp.LT
        )
        assert query.run(engine) == [ledger.equity_t1, ledger.receivable_t3]

    def test_account_name_path(self, engine, book, ledger):
        query = _splits(book).add_string_match("account/name", "Checking")
        assert query.run(engine) == [ledger.bank_t1, ledger.bank_t2, ledger.bank_t3]

    def test_transaction_description_path(self, engine, book, ledger):
        query = _splits(book).add_string_match("trans/desc", "supplies", QueryOp.CONTAINS)
        assert query.run(engine) == [ledger.bank_t2, ledger.expense_t2]

    def test_transaction_date_path(self, engine, book, ledger):
        query = _splits(book).add_date_match("trans/date-posted", date(2024, 1, 15))
        assert query.run(engine) == [ledger.equity_t1, ledger.bank_t1]

    def test_contains_is_case_sensitive_by_default(self, engine, book, ledger):
        query = _splits(book).add_string_match(Params.SPLIT_MEMO, "CAPITAL", QueryOp.CONTAINS)
        assert query.run(engine) == []

    def test_case_insensitive_contains(self, engine, book, ledger):
        query = _splits(book).add_string_match(
            Params.SPLIT_MEMO, "CAPITAL", QueryOp.CONTAINS, case_sensitive=False
        )
        assert query.run(engine) == [ledger.equity_t1, ledger.bank_t1]

    def test_contains_escapes_wildcards(self, engine, book, ledger):
        query = _splits(book).add_string_match(Params.SPLIT_MEMO, "%", QueryOp.CONTAINS)
        assert query.run(engine) == []

    def test_not_contains_includes_missing_memo(self, engine, book, ledger):
        query = _splits(book).add_string_match(Params.SPLIT_MEMO, "a", QueryOp.NOT_CONTAINS)
        assert query.run(engine) == [ledger.receivable_t3, ledger.bank_t3]

    def test_reconcile_flag_default(self, engine, book, ledger):
        query = _splits(book).add_string_match(Params.SPLIT_RECONCILE, "n")
        assert query.run(engine) == ledger.all_splits


class TestCombinators:
    """Tests for chain folding with each combinator."""

    def _bank_then_positive(self, book, accounts, join):
        return (
            _splits(book)
            .add_guid_match(Params.SPLIT_ACCOUNT, accounts.bank)
            .add_numeric_match(Params.SPLIT_VALUE, ZERO, QueryOp.GT, join)
        )

    def test_and(self, engine, book, accounts, ledger):
        query = self._bank_then_positive(book, accounts, Combinator.AND)
        assert query.run(engine) == [ledger.bank_t1, ledger.bank_t3]

    def test_or(self, engine, book, accounts, ledger):
        query = self._bank_then_positive(book, accounts, Combinator.OR)
        assert query.run(engine) == [
            ledger.bank_t1,
            ledger.bank_t2,
            ledger.expense_t2,
            ledger.bank_t3,
        ]

    def test_nand(self, engine, book, accounts, ledger):
        query = self._bank_then_positive(book, accounts, Combinator.NAND)
        assert query.run(engine) == [
            ledger.equity_t1,
            ledger.bank_t2,
            ledger.expense_t2,
            ledger.receivable_t3,
        ]

    def test_nor(self, engine, book, accounts, ledger):
        query = self._bank_then_positive(book, accounts, Combinator.NOR)
        assert query.run(engine) == [ledger.equity_t1, ledger.receivable_t3]

    def test_xor(self, engine, book, accounts, ledger):
        query = self._bank_then_positive(book, accounts, Combinator.XOR)
        assert query.run(engine) == [ledger.bank_t2, ledger.expense_t2]

    def test_left_associative(self, engine, book, accounts, ledger):
        # (bank OR expense) AND value < 0
        query = (
            _splits(book)
            .add_guid_match(Params.SPLIT_ACCOUNT, accounts.bank)
            .add_guid_match(Params.SPLIT_ACCOUNT, accounts.expense, Combinator.OR)
            .add_numeric_match(Params.SPLIT_VALUE, ZERO, QueryOp.LT, Combinator.AND)
        )
        assert query.run(engine) == [ledger.bank_t2]

    def test_merge(self, engine, book, accounts, ledger):
        bank = _splits(book).add_guid_match(Params.SPLIT_ACCOUNT, accounts.bank)
        credits = _splits(book).add_numeric_match(Params.SPLIT_VALUE, ZERO, QueryOp.LT)
        assert bank.merge(credits, Combinator.AND).run(engine) == [ledger.bank_t2]
        assert bank.run(engine) == [ledger.bank_t1, ledger.bank_t2, ledger.bank_t3]


class TestInvert:
    """Tests that invert() selects the exact complement."""

    def test_complement_with_null_memo(self, engine, book, ledger):
        query = (
            _splits(book)
            .add_string_match(Params.SPLIT_MEMO, "Paper", QueryOp.CONTAINS)
            .add_numeric_match(Params.SPLIT_VALUE, ZERO, QueryOp.LT, Combinator.OR)
        )
        matched = set(query.run(engine))
        complement = set(query.invert().run(engine))
        assert matched.isdisjoint(complement)
        assert matched | complement == set(ledger.all_splits)

    def test_complement_of_xor_chain(self, engine, book, accounts, ledger):
        query = (
            _splits(book)
            .add_guid_match(Params.SPLIT_ACCOUNT, accounts.bank)
            .add_numeric_match(Params.SPLIT_VALUE, ZERO, QueryOp.GT, Combinator.XOR)
            .add_string_match("trans/num", "1001", join=Combinator.NOR)
        )
        matched = set(query.run(engine))
        complement = set(query.invert().run(engine))
        assert matched.isdisjoint(complement)
        assert matched | complement == set(ledger.all_splits)

    def test_inverted_empty_query_matches_everything(self, engine, book, ledger):
        assert _splits(book).invert().run(engine) == ledger.all_splits


class TestLimits:
    """Tests for result limits."""

    def test_limit_truncates_in_order(self, engine, book, ledger):
        assert _splits(book).set_result_limit(2).run(engine) == ledger.all_splits[:2]

    def test_zero_limit(self, engine, book, ledger):
        assert _splits(book).set_result_limit(0).run(engine) == []

    def test_limit_above_count(self, engine, book, ledger):
        assert _splits(book).set_result_limit(50).run(engine) == ledger.all_splits

    def test_engine_default_limit(self, session, book, ledger):
        limited = SqlBookEngine(session, default_result_limit=1)
        assert _splits(book).run(limited) == [ledger.equity_t1]
        assert _splits(book).set_result_limit(3).run(limited) == ledger.all_splits[:3]


class TestTransactionSearch:
    """Tests for transaction queries, including dates."""

    def test_date_equals_calendar_day(self, engine, book, ledger):
        query = _transactions(book).add_date_match(Params.TRANS_DATE_POSTED, date(2024, 1, 15))
        assert query.run_transactions(engine) == [ledger.t1]

    def test_date_after_excludes_undated(self, engine, book, ledger):
        query = _transactions(book).add_date_match(
            Params.TRANS_DATE_POSTED, date(2024, 1, 15), QueryOp.GT
        )
        assert query.run(engine) == [ledger.t2]

    def test_date_not_equal_excludes_undated(self, engine, book, ledger):
        query = _transactions(book).add_date_match(
            Params.TRANS_DATE_POSTED, date(2024, 1, 15), QueryOp.NE
        )
        assert query.run(engine) == [ledger.t2]

    def test_date_on_or_before(self, engine, book, ledger):
        query = _transactions(book).add_date_match(
            Params.TRANS_DATE_POSTED, date(2024, 1, 20), QueryOp.LTE
        )
        assert query.run(engine) == [ledger.t1, ledger.t2]

    def test_datetime_operand(self, engine, book, ledger):
        query = _transactions(book).add_date_match(
            Params.TRANS_DATE_POSTED, datetime(2024, 1, 20, tzinfo=UTC), QueryOp.GTE
        )
        assert query.run(engine) == [ledger.t2]

    def test_num(self, engine, book, ledger):
        query = _transactions(book).add_string_match(Params.TRANS_NUM, "1002")
        assert query.run(engine) == [ledger.t2]

    def test_description_case_insensitive(self, engine, book, ledger):
        query = _transactions(book).add_string_match(
            Params.TRANS_DESCRIPTION, "client payment", case_sensitive=False
        )
        assert query.run(engine) == [ledger.t3]

    def test_currency(self, engine, book, ledger):
        query = _transactions(book).add_string_match(Params.TRANS_CURRENCY, "USD")
        assert query.run(engine) == [ledger.t1, ledger.t2, ledger.t3]


class TestAccountSearch:
    """Tests for account queries."""

    def test_placeholder(self, engine, book, accounts):
        query = _accounts(book).add_boolean_match(Params.ACCOUNT_PLACEHOLDER, True)
        assert query.run_accounts(engine) == [accounts.root, accounts.assets]

    def test_hidden(self, engine, book, accounts):
        query = _accounts(book).add_boolean_match(Params.ACCOUNT_HIDDEN, True)
        assert query.run(engine) == [accounts.cash]

    def test_top_level(self, engine, book, accounts):
        query = _accounts(book).add_guid_match(Params.ACCOUNT_PARENT, None)
        assert query.run(engine) == [accounts.root]

    def test_children(self, engine, book, accounts):
        query = _accounts(book).add_guid_match(Params.ACCOUNT_PARENT, accounts.assets)
        assert query.run(engine) == [accounts.bank, accounts.cash, accounts.receivable]

    def test_account_type(self, engine, book, accounts):
        query = _accounts(book).add_string_match(Params.ACCOUNT_TYPE, AccountType.BANK.value)
        assert query.run(engine) == [accounts.bank]

    def test_code_contains(self, engine, book, accounts):
        query = _accounts(book).add_string_match(Params.ACCOUNT_CODE, "10", QueryOp.CONTAINS)
        assert query.run(engine) == [accounts.assets, accounts.bank, accounts.cash, accounts.expense]

    def test_description(self, engine, book, accounts):
        query = _accounts(book).add_string_match(
            Params.ACCOUNT_DESCRIPTION, "CONSULTING", QueryOp.CONTAINS, case_sensitive=False
        )
        assert query.run(engine) == [accounts.income]

    def test_scoped_to_book(self, engine, book, accounts):
        other_book = engine.create_book("Other Book")
        engine.create_account(other_book, "Checking", AccountType.BANK)
        query = _accounts(book).add_string_match(Params.ACCOUNT_NAME, "Checking")
        assert query.run(engine) == [accounts.bank]


class TestSearchErrors:
    """Tests for failures raised while compiling or running a query."""

    def test_unknown_field(self, engine, book, accounts):
        query = _accounts(book).add_string_match("value", "x")
        with pytest.raises(UnknownQueryFieldError) as exc_info:
            query.run(engine)
        assert exc_info.value.field_path == ("value",)
        assert exc_info.value.target == "Account"

    def test_ordering_on_guid_field(self, engine, book, accounts):
        query = _splits(book).add_match(Params.SPLIT_ACCOUNT, QueryOp.GT, accounts.bank.guid)
        with pytest.raises(InvalidQueryOperandError):
            query.run(engine)

    def test_wrong_operand_type(self, engine, book, accounts):
        query = _splits(book).add_match(Params.SPLIT_MEMO, QueryOp.EQ, 5)
        with pytest.raises(InvalidQueryOperandError):
            query.run(engine)

    def test_unknown_book(self, engine):
        query = _splits(EntityRef(EntityKind.BOOK, uuid4()))
        with pytest.raises(EntityNotFoundError):
            query.run(engine)

    def test_field_catalogue(self):
        assert ("account", "name") in field_paths(SearchTarget.SPLIT)
        assert ("placeholder",) in field_paths(SearchTarget.ACCOUNT)
        assert ("memo",) not in field_paths(SearchTarget.TRANSACTION)
