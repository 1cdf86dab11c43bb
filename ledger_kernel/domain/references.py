"""
References -- Opaque handles to engine-owned entities.

Responsibility:
    The accounting engine owns every persisted record (books, accounts,
    transactions, splits, business entities).  The kernel refers to them
    only through EntityRef: a kind tag plus a GUID.  It never holds, reads
    or mutates the underlying record.

Architecture position:
    Kernel > Domain -- pure, zero I/O.
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class EntityKind(str, Enum):
    """Kinds of entity the engine can hand out references for."""

    BOOK = "book"
    ACCOUNT = "account"
    TRANSACTION = "transaction"
    SPLIT = "split"
    CUSTOMER = "customer"
    VENDOR = "vendor"
    EMPLOYEE = "employee"
    JOB = "job"
    TAX_TABLE = "tax_table"
    INVOICE = "invoice"
    ENTRY = "entry"


@dataclass(frozen=True, slots=True)
class EntityRef:
    """
    Opaque, hashable handle to an engine entity.

    Contract:
        Equality is by (kind, guid).  Whether the reference still resolves
        is a question only the engine can answer (AccountingEngine.resolve).
    """

    kind: EntityKind
    guid: UUID

    def __post_init__(self) -> None:
        if not isinstance(self.kind, EntityKind):
            object.__setattr__(self, "kind", EntityKind(self.kind))
        if not isinstance(self.guid, UUID):
            object.__setattr__(self, "guid", UUID(str(self.guid)))

    def is_a(self, kind: EntityKind) -> bool:
        return self.kind == kind

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.guid}"
