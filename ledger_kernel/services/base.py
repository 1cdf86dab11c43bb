"""
BaseService -- abstract base for the reference engine's write-side services.

Responsibility:
    Common constructor and session-handling contract.  Services use
    ``session.flush()`` and savepoints, never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Transaction boundaries belong to the caller (session_scope() or a
      test fixture); services never commit or roll back the outer
      transaction.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for services holding a caller-owned Session.

    Non-goals:
        - Does NOT manage the outer transaction lifecycle.
        - Does NOT provide read-side DTO queries; those live in selectors/.
    """

    def __init__(self, session: Session):
        self.session = session
