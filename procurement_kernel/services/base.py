"""
BaseService -- abstract base for all procurement services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every service.  Concrete services receive a SQLAlchemy ``Session`` and
    persist via ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Kernel services
    and every module service extend this class.

Invariants enforced:
    Transaction boundaries -- services flush within the caller's
    transaction and never commit.  Savepoints (``begin_nested``) are the
    only nested scope services open themselves.
"""

from abc import ABC

from sqlalchemy.orm import Session

from procurement_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for procurement services.

    Guarantees:
        - The service never calls ``session.commit()``; the caller
          controls transaction boundaries.
        - ``self.clock`` is always set (SystemClock by default).
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
