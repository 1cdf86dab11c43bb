"""
Property-based tests for the assemblers and query merging.

- Every split sequence whose exact sum is zero builds into a balanced
  transaction.
- Every split sequence with a nonzero sum is rejected, and the imbalance
  carried by the error equals the exact sum.
- merge(Q1, Q2, AND) never selects anything outside Q1 and Q2 when Q2 is a
  conjunction.
"""

from dataclasses import replace
from fractions import Fraction

import pytest
from hypothesis import assume, given
from hypothesis import strategies as st

from ledger_kernel.domain.query import Combinator, PredicateQuery, SearchTarget
from ledger_kernel.domain.rational import RationalValue
from ledger_kernel.exceptions import ImbalancedSplitsError
from ledger_kernel.selectors.book_selector import BookSelector
from ledger_kernel.services.transaction_assembler import TransactionAssembler
from tests.fuzzing.test_query_chain_properties import (
    FIXTURE_SETTINGS,
    POOL_SIZE,
    _chain_query,
    _term_pool,
    busy_book,  # noqa: F401
    chains,
)
from tests.fuzzing.test_rational_properties import rationals, small_ints

# Denominators with a small common multiple, so sums stay inside int64
split_amounts = rationals(
    numerators=small_ints,
    denominators=st.sampled_from([1, 2, 3, 7, 100, 1000]),
)

account_picks = st.sampled_from(["bank", "cash", "expense", "equity", "receivable", "payable"])

conjunctions = st.lists(
    st.tuples(st.integers(min_value=0, max_value=POOL_SIZE - 1), st.booleans()),
    min_size=1,
    max_size=4,
)


def _fraction(value) -> Fraction:
    return Fraction(value.numerator, value.denominator)


def _assembler(engine, book, accounts, picks, amounts) -> TransactionAssembler:
    assembler = TransactionAssembler(engine, book)
    for name, amount in zip(picks, amounts):
        assembler.split(getattr(accounts, name), amount)
    return assembler


class TestBalanceProperties:
    """build() accepts exactly the zero-sum split sequences."""

    @given(
        amounts=st.lists(split_amounts, min_size=1, max_size=8),
        picks=st.lists(account_picks, min_size=9, max_size=9),
    )
    @FIXTURE_SETTINGS
    def test_zero_sum_sequence_builds(self, engine, book, accounts, session, amounts, picks):
        balance = -sum((_fraction(a) for a in amounts), Fraction(0))
        amounts = amounts + [RationalValue.make(balance.numerator, balance.denominator)]
        ref = _assembler(engine, book, accounts, picks, amounts).build()

        txn = BookSelector(session).get_transaction(ref)
        assert txn.is_balanced
        assert [_fraction(s.value) for s in txn.splits] == [_fraction(a) for a in amounts]

    @given(
        amounts=st.lists(split_amounts, min_size=2, max_size=8),
        picks=st.lists(account_picks, min_size=8, max_size=8),
    )
    @FIXTURE_SETTINGS
    def test_nonzero_sum_reports_exact_imbalance(
        self, engine, book, accounts, session, amounts, picks
    ):
        exact = sum((_fraction(a) for a in amounts), Fraction(0))
        assume(exact != 0)
        before = len(BookSelector(session).list_transactions(book))

        with pytest.raises(ImbalancedSplitsError) as exc_info:
            _assembler(engine, book, accounts, picks, amounts).build()

        assert _fraction(exc_info.value.imbalance) == exact
        assert len(BookSelector(session).list_transactions(book)) == before


class TestMergeProperties:
    """Merging with AND narrows both operands."""

    @given(first=chains, second=conjunctions)
    @FIXTURE_SETTINGS
    def test_and_merge_within_intersection(self, engine, busy_book, accounts, first, second):
        pool = _term_pool(accounts)
        q1 = _chain_query(busy_book, pool, first)
        q2 = PredicateQuery(
            SearchTarget.SPLIT,
            busy_book,
            [
                replace(pool[index], join=Combinator.AND, negated=negated)
                for index, negated in second
            ],
        )

        merged = set(q1.merge(q2, Combinator.AND).run(engine))
        intersection = set(q1.run(engine)) & set(q2.run(engine))

        assert merged <= intersection
        assert len(merged) <= len(intersection)
