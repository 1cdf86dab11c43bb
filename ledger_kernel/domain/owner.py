"""
Owner -- Closed sum type over the business entities that can own documents.

Responsibility:
    An invoice, bill, voucher or job is attached to exactly one owner:
    a customer, vendor, employee or job (or nothing yet: Undefined).  Each
    variant carries the EntityRef of the engine-owned entity; the kernel
    dispatches on the variant, never on the referenced record.

Architecture position:
    Kernel > Domain -- pure except for end_owner(), which asks the engine
    port (never a concrete engine) for a job's owner.

Invariants enforced:
    - A variant's reference has the matching EntityKind (checked on
      construction).
    - A job is owned by a customer or vendor, never by another job,
      employee or nothing (checked in end_owner).

Failure modes:
    - ValueError when a variant is built around a reference of the wrong kind.
    - InvalidOwnerError when a job's owner is not a customer or vendor.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, ClassVar, Union, assert_never
from uuid import UUID

from ledger_kernel.domain.references import EntityKind, EntityRef
from ledger_kernel.exceptions import InvalidOwnerError

if TYPE_CHECKING:
    from ledger_kernel.domain.engine_port import AccountingEngine


class OwnerType(str, Enum):
    """Owner variants, in the engine's numbering order."""

    UNDEFINED = "undefined"
    CUSTOMER = "customer"
    JOB = "job"
    VENDOR = "vendor"
    EMPLOYEE = "employee"


@dataclass(frozen=True, slots=True)
class UndefinedOwner:
    """No owner assigned yet."""

    owner_type: ClassVar[OwnerType] = OwnerType.UNDEFINED

    @property
    def ref(self) -> None:
        return None


@dataclass(frozen=True, slots=True)
class _DefinedOwner:
    ref: EntityRef

    owner_type: ClassVar[OwnerType]
    entity_kind: ClassVar[EntityKind]

    def __post_init__(self) -> None:
        if self.ref.kind != self.entity_kind:
            raise ValueError(
                f"{type(self).__name__} requires a {self.entity_kind.value} "
                f"reference, got {self.ref.kind.value}"
            )


@dataclass(frozen=True, slots=True)
class CustomerOwner(_DefinedOwner):
    owner_type: ClassVar[OwnerType] = OwnerType.CUSTOMER
    entity_kind: ClassVar[EntityKind] = EntityKind.CUSTOMER


@dataclass(frozen=True, slots=True)
class VendorOwner(_DefinedOwner):
    owner_type: ClassVar[OwnerType] = OwnerType.VENDOR
    entity_kind: ClassVar[EntityKind] = EntityKind.VENDOR


@dataclass(frozen=True, slots=True)
class EmployeeOwner(_DefinedOwner):
    owner_type: ClassVar[OwnerType] = OwnerType.EMPLOYEE
    entity_kind: ClassVar[EntityKind] = EntityKind.EMPLOYEE


@dataclass(frozen=True, slots=True)
class JobOwner(_DefinedOwner):
    owner_type: ClassVar[OwnerType] = OwnerType.JOB
    entity_kind: ClassVar[EntityKind] = EntityKind.JOB


Owner = Union[UndefinedOwner, CustomerOwner, VendorOwner, EmployeeOwner, JobOwner]

_VARIANT_BY_KIND: dict[EntityKind, type[_DefinedOwner]] = {
    EntityKind.CUSTOMER: CustomerOwner,
    EntityKind.VENDOR: VendorOwner,
    EntityKind.EMPLOYEE: EmployeeOwner,
    EntityKind.JOB: JobOwner,
}


def owner_from_ref(ref: EntityRef | None) -> Owner:
    """
    Wrap a reference in the matching owner variant.

    ``None`` yields UndefinedOwner.

    Raises:
        ValueError: If the reference kind cannot own documents.
    """
    if ref is None:
        return UndefinedOwner()
    variant = _VARIANT_BY_KIND.get(ref.kind)
    if variant is None:
        raise ValueError(f"A {ref.kind.value} cannot be an owner")
    return variant(ref)


def owner_guid(owner: Owner) -> UUID | None:
    """GUID of the owning entity, or None for an undefined owner."""
    match owner:
        case UndefinedOwner():
            return None
        case CustomerOwner(ref=ref) | VendorOwner(ref=ref) | EmployeeOwner(ref=ref) | JobOwner(ref=ref):
            return ref.guid
        case _:
            assert_never(owner)


def is_undefined(owner: Owner | None) -> bool:
    return owner is None or isinstance(owner, UndefinedOwner)


def end_owner(owner: Owner, engine: AccountingEngine) -> Owner:
    """
    Follow a job to the customer or vendor that owns it.

    Every other variant is its own end owner.

    Raises:
        InvalidOwnerError: If a job is owned by anything other than a
            customer or vendor.
    """
    match owner:
        case JobOwner(ref=ref):
            parent = engine.job_owner(ref)
            match parent:
                case CustomerOwner() | VendorOwner():
                    return parent
                case UndefinedOwner() | EmployeeOwner() | JobOwner():
                    raise InvalidOwnerError(
                        OwnerType.JOB.value,
                        f"job {ref.guid} is owned by {parent.owner_type.value}",
                    )
                case _:
                    assert_never(parent)
        case UndefinedOwner() | CustomerOwner() | VendorOwner() | EmployeeOwner():
            return owner
        case _:
            assert_never(owner)
