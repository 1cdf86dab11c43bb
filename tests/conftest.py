"""
Pytest fixtures for the ledger kernel test suite.

Provides:
- An in-memory SQLite engine with every table created once per session
- Per-test sessions isolated by an outer transaction that is rolled back
- A SqlBookEngine, a book with a small chart of accounts, and business
  entities (customer, vendor, employee, job, tax tables)
- Structured-log capture
"""

import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from ledger_kernel.db.engine import create_tables, init_engine_from_url, reset_engine
from ledger_kernel.domain.invoicing import TaxAmountType, TaxRate
from ledger_kernel.domain.owner import CustomerOwner, VendorOwner
from ledger_kernel.domain.rational import RationalValue
from ledger_kernel.domain.references import EntityRef
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.models.account import AccountType
from ledger_kernel.services.book_engine import SqlBookEngine


def money(text: str) -> RationalValue:
    """RationalValue from a decimal string, keeping its scale ("50.00" -> 5000/100)."""
    return RationalValue.from_decimal(Decimal(text))


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, engine):
            ...
            logs = captured_logs()
            assert any(r["message"] == "transaction_assembled" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """In-memory SQLite engine with all tables, shared by the whole run."""
    engine = init_engine_from_url("sqlite://")
    create_tables()
    yield engine
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    """
    Provide a database session for testing.

    The session joins an outer transaction on a dedicated connection; the
    engine's edit cycle uses savepoints inside it, and teardown rolls the
    outer transaction back so no test sees another test's rows.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


@pytest.fixture
def engine(session) -> SqlBookEngine:
    return SqlBookEngine(session)


# =============================================================================
# Book fixtures
# =============================================================================


@pytest.fixture
def book(engine) -> EntityRef:
    return engine.create_book("Test Book", "USD")


@dataclass(frozen=True)
class Chart:
    """Account references of the standard test chart."""

    root: EntityRef
    assets: EntityRef
    bank: EntityRef
    cash: EntityRef
    receivable: EntityRef
    payable: EntityRef
    income: EntityRef
    expense: EntityRef
    tax_liability: EntityRef
    equity: EntityRef


@pytest.fixture
def accounts(engine, book) -> Chart:
    """A small account tree: Root > Assets > {Checking, Petty Cash, A/R}, ..."""
    root = engine.create_account(book, "Root", AccountType.ROOT, placeholder=True)
    assets = engine.create_account(
        book, "Assets", AccountType.ASSET, code="1000", parent=root, placeholder=True
    )
    return Chart(
        root=root,
        assets=assets,
        bank=engine.create_account(book, "Checking", AccountType.BANK, code="1010", parent=assets),
        cash=engine.create_account(
            book, "Petty Cash", AccountType.CASH, code="1020", parent=assets, hidden=True
        ),
        receivable=engine.create_account(
            book, "Accounts Receivable", AccountType.RECEIVABLE, code="1200", parent=assets
        ),
        payable=engine.create_account(
            book, "Accounts Payable", AccountType.PAYABLE, code="2000", parent=root
        ),
        income=engine.create_account(
            book, "Consulting Income", AccountType.INCOME, code="4000", parent=root,
            description="Hourly consulting",
        ),
        expense=engine.create_account(
            book, "Office Supplies", AccountType.EXPENSE, code="6100", parent=root
        ),
        tax_liability=engine.create_account(
            book, "Sales Tax Payable", AccountType.LIABILITY, code="2200", parent=root
        ),
        equity=engine.create_account(
            book, "Opening Balances", AccountType.EQUITY, code="3000", parent=root
        ),
    )


@pytest.fixture
def customer(engine, book) -> EntityRef:
    return engine.create_customer(book, "Acme Corporation", id_code="CUST001")


@pytest.fixture
def vendor(engine, book) -> EntityRef:
    return engine.create_vendor(book, "Office Supplies Inc", id_code="VEND001")


@pytest.fixture
def employee(engine, book) -> EntityRef:
    return engine.create_employee(book, "John Smith", id_code="EMP001")


@pytest.fixture
def customer_job(engine, book, customer) -> EntityRef:
    return engine.create_job(book, CustomerOwner(customer), "Website Redesign", id_code="JOB001")


@pytest.fixture
def vendor_job(engine, book, vendor) -> EntityRef:
    return engine.create_job(book, VendorOwner(vendor), "Supply Contract", id_code="JOB002")


@pytest.fixture
def sales_tax(engine, book, accounts) -> EntityRef:
    """10% sales tax."""
    return engine.create_tax_table(
        book,
        "Sales Tax 10%",
        [TaxRate(TaxAmountType.PERCENT, RationalValue.from_int(10), account=accounts.tax_liability)],
    )


@pytest.fixture
def mixed_tax(engine, book, accounts) -> EntityRef:
    """5% plus a flat 2.00 per line."""
    return engine.create_tax_table(
        book,
        "Mixed Tax",
        [
            TaxRate(TaxAmountType.PERCENT, RationalValue.from_int(5), account=accounts.tax_liability),
            TaxRate(TaxAmountType.VALUE, money("2.00"), account=accounts.tax_liability),
        ],
    )
