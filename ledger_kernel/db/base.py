"""
Module: ledger_kernel.db.base
Responsibility: Declarative base classes for the reference engine's ORM
    models.  Provides the UUID primary key convention, the type annotation
    map, the insertion sequence column and the TrackedBase timestamp mixin.
Architecture position: Kernel > DB.  Lowest-level import target of the
    reference engine.  MUST NOT import from models/, services/, selectors/.

Invariants enforced:
    - UUID primary keys: every model inherits a uuid4-generated key, which
      doubles as the engine GUID handed out in EntityRefs.
    - Native order: every model carries ``seq``, assigned from a process
      counter at INSERT (a flush keeps add order), so searches
      return entities in insertion order independent of the database's row order.
    - Rationals are never stored as floats or decimals; models keep a
      numerator/denominator BigInteger pair per value.

Failure modes:
    - IntegrityError on duplicate UUIDs (protected by the PK constraint).
"""

import itertools
from datetime import datetime
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

_insertion_counter = itertools.count(1)


def next_sequence() -> int:
    """Monotonic insertion number shared by every model."""
    return next(_insertion_counter)


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Guarantees:
        - process_bind_param: UUID -> str on INSERT/UPDATE.
        - process_result_value: str -> UUID on SELECT.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for all reference-engine models.

    Guarantees:
        - id is a uuid4 stored as String(36).
        - datetime maps to DateTime(timezone=True).
        - int maps to BigInteger, wide enough for 64-bit rational components.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )

    seq: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=next_sequence,
        index=True,
    )


class TrackedBase(Base):
    """
    Abstract base with creation and modification timestamps.

    Guarantees:
        - created_at is set by the server on INSERT.
        - updated_at is refreshed on every UPDATE.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

