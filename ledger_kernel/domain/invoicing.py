"""
Invoicing -- Pure entry and invoice arithmetic.

Responsibility:
    Computes, in exact rational arithmetic, what an invoice entry is worth
    (gross, discount, net, tax) and what an invoice totals to.  Also maps an
    owner to the kind of document it receives.

Architecture position:
    Kernel > Domain -- pure functions.  invoice_type_for() reaches the
    engine port only to follow a job to its owner.

Invariants enforced:
    - gross = unit_price * quantity, exact.
    - net = pre-tax amount less the discount; discount is always pre-tax.
    - tax is zero unless the entry is taxable and has rates.
    - subtotal = sum of nets; tax = sum of entry taxes.

Failure modes:
    - ArithmeticOverflowError from any RationalValue operation.
    - InvalidOwnerError from invoice_type_for() for an undefined owner or a
      badly owned job.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Sequence, assert_never

from ledger_kernel.domain.owner import (
    CustomerOwner,
    EmployeeOwner,
    JobOwner,
    Owner,
    UndefinedOwner,
    VendorOwner,
    end_owner,
)
from ledger_kernel.domain.rational import RationalValue
from ledger_kernel.domain.references import EntityRef
from ledger_kernel.exceptions import InvalidOwnerError

if TYPE_CHECKING:
    from ledger_kernel.domain.engine_port import AccountingEngine

_HUNDRED = RationalValue.from_int(100)


class DiscountType(str, Enum):
    PERCENT = "percent"
    VALUE = "value"


class TaxAmountType(str, Enum):
    PERCENT = "percent"
    VALUE = "value"


class InvoiceType(str, Enum):
    """Document kind, determined by who owns it."""

    CUSTOMER_INVOICE = "customer_invoice"
    VENDOR_BILL = "vendor_bill"
    EMPLOYEE_VOUCHER = "employee_voucher"


@dataclass(frozen=True, slots=True)
class TaxRate:
    """One line of a tax table."""

    amount_type: TaxAmountType
    amount: RationalValue
    account: EntityRef | None = None


@dataclass(frozen=True, slots=True)
class EntryAmounts:
    gross: RationalValue
    discount: RationalValue
    net: RationalValue
    tax: RationalValue


@dataclass(frozen=True, slots=True)
class InvoiceTotals:
    subtotal: RationalValue
    tax: RationalValue

    @property
    def total(self) -> RationalValue:
        return self.subtotal.add(self.tax)

    def matches(self, other: InvoiceTotals) -> bool:
        """Value equality on both components."""
        return RationalValue.equals(self.subtotal, other.subtotal) and RationalValue.equals(
            self.tax, other.tax
        )


def _split_rates(rates: Iterable[TaxRate]) -> tuple[RationalValue, RationalValue]:
    percent = RationalValue.zero()
    flat = RationalValue.zero()
    for rate in rates:
        if rate.amount_type == TaxAmountType.PERCENT:
            percent = percent.add(rate.amount)
        else:
            flat = flat.add(rate.amount)
    return percent, flat


def compute_entry_amounts(
    unit_price: RationalValue,
    quantity: RationalValue,
    rates: Sequence[TaxRate] = (),
    *,
    taxable: bool = False,
    tax_included: bool = False,
    discount: RationalValue | None = None,
    discount_type: DiscountType = DiscountType.PERCENT,
) -> EntryAmounts:
    """
    Value one entry.

    With ``tax_included`` the line already contains tax, so the pre-tax
    amount is backed out:  pretax = (gross - flat) * 100 / (100 + percent).
    The discount then applies to the pre-tax amount and tax to the net.
    """
    gross = unit_price.multiply(quantity)
    applies_tax = taxable and len(rates) > 0
    percent, flat = RationalValue.zero(), RationalValue.zero()
    if applies_tax:
        percent, flat = _split_rates(rates)

    pretax = gross
    if applies_tax and tax_included:
        pretax = gross.subtract(flat).multiply(_HUNDRED).divide(_HUNDRED.add(percent))

    if discount is None:
        discount_amount = RationalValue.zero()
    elif discount_type == DiscountType.PERCENT:
        discount_amount = pretax.multiply(discount).divide(_HUNDRED)
    else:
        discount_amount = discount

    net = pretax.subtract(discount_amount)

    tax = RationalValue.zero()
    if applies_tax:
        tax = net.multiply(percent).divide(_HUNDRED).add(flat)

    return EntryAmounts(gross=gross, discount=discount_amount, net=net, tax=tax)


def total_entries(amounts: Iterable[EntryAmounts]) -> InvoiceTotals:
    amounts = list(amounts)
    return InvoiceTotals(
        subtotal=RationalValue.sum(a.net for a in amounts),
        tax=RationalValue.sum(a.tax for a in amounts),
    )


def invoice_type_for(owner: Owner, engine: AccountingEngine) -> InvoiceType:
    """
    Customers get invoices, vendors bills, employees vouchers; a job's
    document follows the job's own owner.
    """
    resolved = end_owner(owner, engine)
    match resolved:
        case CustomerOwner():
            return InvoiceType.CUSTOMER_INVOICE
        case VendorOwner():
            return InvoiceType.VENDOR_BILL
        case EmployeeOwner():
            return InvoiceType.EMPLOYEE_VOUCHER
        case UndefinedOwner() | JobOwner():
            raise InvalidOwnerError(resolved.owner_type.value, "cannot own an invoice")
        case _:
            assert_never(resolved)
