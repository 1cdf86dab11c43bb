#!/usr/bin/env python3
"""
Create a small business book end to end and print what was built.

Builds a book with an account tree, a customer, vendor, employee and a job,
a sales-tax table, one customer invoice and one transfer, then queries the
splits that hit the bank account.

Usage:
  python3 scripts/simple_business.py [--config ledger_config/sets/default.yaml]
                                     [--database-url sqlite://] [--tax-rate 8.25]
"""

from __future__ import annotations

import argparse
import sys
from decimal import Decimal
from pathlib import Path

from ledger_config import get_active_config
from ledger_kernel.db.engine import create_tables, init_engine_from_url, session_scope
from ledger_kernel.domain.invoicing import TaxAmountType, TaxRate
from ledger_kernel.domain.owner import CustomerOwner, JobOwner, VendorOwner
from ledger_kernel.domain.query import Params, PredicateQuery, QueryOp, SearchTarget
from ledger_kernel.domain.rational import RationalValue
from ledger_kernel.logging_config import configure_logging
from ledger_kernel.models.account import AccountType
from ledger_kernel.selectors.book_selector import BookSelector
from ledger_kernel.services.book_engine import SqlBookEngine
from ledger_kernel.services.invoice_assembler import InvoiceAssembler
from ledger_kernel.services.transaction_assembler import TransactionAssembler


def _money(text: str) -> RationalValue:
    return RationalValue.from_decimal(Decimal(text))


def run(database_url: str | None, config_path: Path | None, tax_rate: str) -> int:
    config = get_active_config(config_path)
    configure_logging(level=config.logging.level)
    init_engine_from_url(database_url or config.database.url, echo=config.database.echo)
    create_tables()

    with session_scope() as session:
        engine = SqlBookEngine.from_config(session, config)
        currency = config.money.default_currency

        book = engine.create_book("Simple Business", currency)
        root = engine.create_account(book, "Root", AccountType.ROOT, placeholder=True)
        assets = engine.create_account(
            book, "Assets", AccountType.ASSET, parent=root, placeholder=True
        )
        bank = engine.create_account(book, "Checking", AccountType.BANK, code="1000", parent=assets)
        receivable = engine.create_account(
            book, "Accounts Receivable", AccountType.RECEIVABLE, code="1200", parent=assets
        )
        income = engine.create_account(
            book, "Consulting Income", AccountType.INCOME, code="4000", parent=root
        )
        sales_tax = engine.create_account(
            book, "Sales Tax Payable", AccountType.LIABILITY, code="2200", parent=root
        )
        supplies = engine.create_account(
            book, "Office Supplies", AccountType.EXPENSE, code="6100", parent=root
        )

        customer = engine.create_customer(book, "Acme Corporation", id_code="CUST001")
        vendor = engine.create_vendor(book, "Office Supplies Inc", id_code="VEND001")
        engine.create_employee(book, "John Smith", id_code="EMP001")
        job = engine.create_job(
            book,
            CustomerOwner(customer),
            "Website Redesign",
            id_code="JOB001",
            reference="Project #2024-001",
        )
        tax_table = engine.create_tax_table(
            book,
            "Sales Tax",
            [TaxRate(TaxAmountType.PERCENT, _money(tax_rate), account=sales_tax)],
        )

        invoice = (
            InvoiceAssembler(engine, book, currency=currency)
            .id("INV-001")
            .owner(JobOwner(job))
            .notes("Invoice for consulting services")
            .date_opened(1, 1, 2024)
            .entry_with_action(
                "Consulting - Day 1",
                "Hours",
                _money("150.00"),
                RationalValue.from_int(8),
                income,
                taxable=True,
                tax_table=tax_table,
            )
            .entry_with_action(
                "Consulting - Day 2",
                "Hours",
                _money("150.00"),
                RationalValue.from_int(6),
                income,
                taxable=True,
                tax_table=tax_table,
            )
            .build()
        )

        bill = (
            InvoiceAssembler(engine, book, currency=currency)
            .id("BILL-001")
            .owner(VendorOwner(vendor))
            .entry("Printer paper", _money("42.50"), RationalValue.from_int(2), supplies)
            .build()
        )

        payment = (
            TransactionAssembler(engine, book, currency=currency)
            .description("Payment from Acme Corporation")
            .num("1001")
            .date(15, 1, 2024)
            .transfer(receivable, bank, invoice.totals.total, memo="INV-001")
            .build()
        )

        bank_splits = (
            PredicateQuery.for_type(SearchTarget.SPLIT)
            .set_owning_book(book)
            .add_guid_match(Params.SPLIT_ACCOUNT, bank)
            .add_numeric_match(Params.SPLIT_VALUE, RationalValue.zero(), QueryOp.GT)
            .run_splits(engine)
        )

        selector = BookSelector(session)
        print("--- Invoice ---")
        print(f"Type:     {invoice.invoice_type.value}")
        print(f"Subtotal: {invoice.totals.subtotal.to_decimal(2)}")
        print(f"Tax:      {invoice.totals.tax.to_decimal(2)}")
        print(f"Total:    {invoice.totals.total.to_decimal(2)}")
        print("\n--- Bill ---")
        print(f"Type:     {bill.invoice_type.value}")
        print(f"Total:    {bill.totals.total.to_decimal(2)}")
        print("\n--- Payment ---")
        txn = selector.get_transaction(payment)
        for split in txn.splits:
            print(f"  {split.account_id}  {split.value.to_decimal(2):>12}  {split.memo or ''}")
        print(f"Balanced: {txn.is_balanced}")
        print(f"\nSplits into Checking: {len(bank_splits)}")
        print(f"Checking balance:     {selector.account_balance(bank).to_decimal(2)}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Create customers, vendors, jobs, an invoice and a payment in a fresh book.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", type=Path, default=None, help="Configuration YAML file")
    parser.add_argument("--database-url", default=None, help="Override the configured database URL")
    parser.add_argument("--tax-rate", default="8.25", help="Sales tax percentage (default: 8.25)")
    args = parser.parse_args()

    try:
        return run(args.database_url, args.config, args.tax_rate)
    except (FileNotFoundError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
