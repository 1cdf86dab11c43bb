"""
Module: ledger_kernel.selectors.base
Responsibility: Abstract base class for the reference engine's read-only
    selectors.
Architecture position: Kernel > Selectors.  May import from db/, models/
    and the pure domain layer.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: selectors never add, delete, flush or commit.
    - Session ownership: the caller owns the session and its transaction.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ledger_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only
        queries and return DTOs, references or computed results.
    """

    def __init__(self, session: Session):
        self.session = session
