"""
Tests for TransactionAssembler.

Verifies:
- A balanced transaction is committed with its header and splits intact
- Validation order: split count, account references, balance
- The imbalance carried by ImbalancedSplitsError is exact
- Engine failures during commit are wrapped and rolled back
"""

from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from ledger_kernel.db.types import InvalidCurrencyError
from ledger_kernel.domain.owner import CustomerOwner
from ledger_kernel.domain.rational import RationalValue
from ledger_kernel.domain.references import EntityKind, EntityRef
from ledger_kernel.exceptions import (
    ExternalCommitFailedError,
    ImbalancedSplitsError,
    InsufficientSplitsError,
    MissingAccountReferenceError,
)
from ledger_kernel.selectors.book_selector import BookSelector
from ledger_kernel.services.book_engine import SqlBookEngine
from ledger_kernel.services.invoice_assembler import InvoiceAssembler
from ledger_kernel.services.transaction_assembler import TransactionAssembler
from tests.conftest import money


class _FlakyEngine(SqlBookEngine):
    """Fails the first ``failures`` transaction commits after writing the rows."""

    def __init__(self, session, failures=1):
        super().__init__(session)
        self.failures = failures

    def create_transaction(self, book, request):
        ref = super().create_transaction(book, request)
        if self.failures > 0:
            self.failures -= 1
            raise RuntimeError("engine refused the commit")
        return ref


class TestBalancedBuild:
    """Tests for the successful path."""

    def test_two_split_transfer(self, engine, book, accounts, session):
        ref = (
            TransactionAssembler(engine, book)
            .description("Owner investment")
            .num("0001")
            .notes("Seed money")
            .date(15, 1, 2024)
            .split(accounts.equity, money("-50.00"), "from owner")
            .split(accounts.bank, money("50.00"), "deposit")
            .build()
        )
        assert ref.kind == EntityKind.TRANSACTION

        txn = BookSelector(session).get_transaction(ref)
        assert txn.description == "Owner investment"
        assert txn.num == "0001"
        assert txn.notes == "Seed money"
        assert txn.currency == "USD"
        assert txn.date_posted.date() == date(2024, 1, 15)
        assert [s.account_id for s in txn.splits] == [accounts.equity.guid, accounts.bank.guid]
        assert [s.memo for s in txn.splits] == ["from owner", "deposit"]
        assert txn.splits[1].value == money("50.00")
        assert txn.is_balanced

    def test_split_value_keeps_components(self, engine, book, accounts, session):
        ref = (
            TransactionAssembler(engine, book)
            .split(accounts.equity, money("-50.00"))
            .split(accounts.bank, money("50.00"))
            .build()
        )
        split = BookSelector(session).get_transaction(ref).splits[1]
        assert (split.value.numerator, split.value.denominator) == (5000, 100)
        assert split.amount == split.value

    def test_transfer_moves_out_of_first_account(self, engine, book, accounts, session):
        assembler = TransactionAssembler(engine, book).transfer(
            accounts.bank, accounts.expense, money("45.50"), "toner"
        )
        assert [s.amount for s in assembler.splits] == [money("-45.50"), money("45.50")]
        assembler.build()

        selector = BookSelector(session)
        assert selector.account_balance(accounts.bank) == money("-45.50")
        assert selector.account_balance(accounts.expense) == money("45.50")

    def test_multi_split(self, engine, book, accounts):
        ref = (
            TransactionAssembler(engine, book)
            .split(accounts.bank, money("-100.00"))
            .split(accounts.expense, money("60.00"))
            .split(accounts.tax_liability, RationalValue.make(40, 1))
            .build()
        )
        assert engine.resolve(ref, EntityKind.TRANSACTION)

    def test_builds_are_independent(self, engine, book, accounts, session):
        assembler = TransactionAssembler(engine, book).transfer(
            accounts.equity, accounts.bank, money("10.00")
        )
        first = assembler.build()
        second = assembler.build()
        assert first != second
        assert len(BookSelector(session).list_transactions(book)) == 2

    def test_other_currency(self, engine, book, accounts, session):
        ref = (
            TransactionAssembler(engine, book)
            .currency("EUR")
            .transfer(accounts.equity, accounts.bank, money("10.00"))
            .build()
        )
        assert BookSelector(session).get_transaction(ref).currency == "EUR"

    def test_logs_assembly(self, engine, book, accounts, captured_logs):
        TransactionAssembler(engine, book).transfer(
            accounts.equity, accounts.bank, money("1.00")
        ).build()
        records = [r for r in captured_logs() if r["message"] == "transaction_assembled"]
        assert len(records) == 1
        assert records[0]["split_count"] == 2
        assert records[0]["currency"] == "USD"


class TestValidation:
    """Tests for rejection before anything reaches the engine."""

    def test_no_splits(self, engine, book):
        with pytest.raises(InsufficientSplitsError) as exc_info:
            TransactionAssembler(engine, book).build()
        assert exc_info.value.split_count == 0
        assert exc_info.value.required == 2

    def test_single_split_checked_before_accounts(self, engine, book):
        assembler = TransactionAssembler(engine, book).split(None, RationalValue.zero())
        with pytest.raises(InsufficientSplitsError) as exc_info:
            assembler.build()
        assert exc_info.value.split_count == 1

    def test_missing_account(self, engine, book, accounts):
        assembler = (
            TransactionAssembler(engine, book)
            .split(accounts.bank, money("-5.00"))
            .split(None, money("5.00"))
        )
        with pytest.raises(MissingAccountReferenceError) as exc_info:
            assembler.build()
        assert exc_info.value.position == 1

    def test_unresolvable_account(self, engine, book, accounts):
        ghost = EntityRef(EntityKind.ACCOUNT, uuid4())
        assembler = TransactionAssembler(engine, book).transfer(ghost, accounts.bank, money("5.00"))
        with pytest.raises(MissingAccountReferenceError) as exc_info:
            assembler.build()
        assert exc_info.value.position == 0
        assert exc_info.value.account == ghost

    def test_account_from_another_book(self, engine, book, accounts):
        other_book = engine.create_book("Other Book")
        foreign = engine.create_account(other_book, "Foreign Cash", "bank")
        assembler = TransactionAssembler(engine, book).transfer(
            accounts.equity, foreign, money("5.00")
        )
        with pytest.raises(MissingAccountReferenceError) as exc_info:
            assembler.build()
        assert exc_info.value.position == 1
        assert exc_info.value.account == foreign

    def test_non_account_reference(self, engine, book, accounts, customer):
        assembler = TransactionAssembler(engine, book).transfer(
            accounts.bank, customer, money("5.00")
        )
        with pytest.raises(MissingAccountReferenceError):
            assembler.build()

    def test_accounts_checked_before_balance(self, engine, book, accounts):
        assembler = (
            TransactionAssembler(engine, book)
            .split(None, money("-50.00"))
            .split(accounts.bank, money("40.00"))
        )
        with pytest.raises(MissingAccountReferenceError):
            assembler.build()

    def test_imbalance_is_exact(self, engine, book, accounts, session):
        assembler = (
            TransactionAssembler(engine, book)
            .split(accounts.equity, money("-50.00"))
            .split(accounts.bank, money("40.00"))
        )
        with pytest.raises(ImbalancedSplitsError) as exc_info:
            assembler.build()
        imbalance = exc_info.value.imbalance
        assert RationalValue.equals(imbalance, RationalValue.make(-1000, 100))
        assert (imbalance.numerator, imbalance.denominator) == (-1000, 100)
        assert exc_info.value.code == "IMBALANCED_SPLITS"
        assert BookSelector(session).list_transactions(book) == []

    def test_imbalance_with_thirds(self, engine, book, accounts):
        third = RationalValue.make(1, 3)
        assembler = (
            TransactionAssembler(engine, book)
            .split(accounts.bank, third)
            .split(accounts.bank, third)
            .split(accounts.expense, RationalValue.make(-67, 100))
        )
        with pytest.raises(ImbalancedSplitsError) as exc_info:
            assembler.build()
        assert exc_info.value.imbalance == RationalValue.make(-1, 300)

    def test_exact_thirds_balance(self, engine, book, accounts):
        third = RationalValue.make(1, 3)
        ref = (
            TransactionAssembler(engine, book)
            .split(accounts.bank, third)
            .split(accounts.bank, third)
            .split(accounts.bank, third)
            .split(accounts.expense, RationalValue.from_int(-1))
            .build()
        )
        assert ref.kind == EntityKind.TRANSACTION

    def test_amount_must_be_rational(self, engine, book, accounts):
        with pytest.raises(TypeError):
            TransactionAssembler(engine, book).split(accounts.bank, 50)

    def test_invalid_date(self, engine, book):
        with pytest.raises(ValueError):
            TransactionAssembler(engine, book).date(30, 2, 2024)

    def test_invalid_currency(self, engine, book):
        with pytest.raises(InvalidCurrencyError):
            TransactionAssembler(engine, book).currency("ZZZ")


class TestCommitFailure:
    """Tests for engine failures inside the edit cycle."""

    def test_failure_is_wrapped_with_cause(self, session, book, accounts):
        flaky = _FlakyEngine(session)
        assembler = TransactionAssembler(flaky, book).transfer(
            accounts.equity, accounts.bank, money("50.00")
        )
        with pytest.raises(ExternalCommitFailedError) as exc_info:
            assembler.build()
        assert exc_info.value.entity_kind == "transaction"
        assert "RuntimeError: engine refused the commit" in exc_info.value.reason
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_failed_commit_leaves_no_rows(self, session, book, accounts):
        flaky = _FlakyEngine(session)
        assembler = TransactionAssembler(flaky, book).transfer(
            accounts.equity, accounts.bank, money("50.00")
        )
        with pytest.raises(ExternalCommitFailedError):
            assembler.build()
        selector = BookSelector(session)
        assert selector.list_transactions(book) == []
        assert selector.account_balance(accounts.bank).is_zero

    def test_assembler_reusable_after_failure(self, session, book, accounts):
        flaky = _FlakyEngine(session, failures=1)
        assembler = TransactionAssembler(flaky, book).transfer(
            accounts.equity, accounts.bank, money("50.00")
        )
        with pytest.raises(ExternalCommitFailedError):
            assembler.build()
        assert len(assembler.splits) == 2

        ref = assembler.build()
        assert [t.id for t in BookSelector(session).list_transactions(book)] == [ref.guid]

    def test_failure_logged(self, session, book, accounts, captured_logs):
        flaky = _FlakyEngine(session)
        with pytest.raises(ExternalCommitFailedError):
            TransactionAssembler(flaky, book).transfer(
                accounts.equity, accounts.bank, money("1.00")
            ).build()
        messages = [r["message"] for r in captured_logs()]
        assert "edit_rolled_back" in messages
        assert "transaction_commit_failed" in messages
        assert "transaction_assembled" not in messages

    def test_flush_error_leaves_engine_usable(self, engine, book, accounts, customer, session):
        unnamed = (
            InvoiceAssembler(engine, book)
            .owner(CustomerOwner(customer))
            .entry(None, money("1.00"), RationalValue.from_int(1), accounts.income)
        )
        with pytest.raises(ExternalCommitFailedError) as exc_info:
            unnamed.build()
        assert isinstance(exc_info.value.__cause__, IntegrityError)

        ref = (
            TransactionAssembler(engine, book)
            .transfer(accounts.equity, accounts.bank, money("5.00"))
            .build()
        )
        assert BookSelector(session).get_transaction(ref).is_balanced
        assert BookSelector(session).invoice_refs(book) == []
