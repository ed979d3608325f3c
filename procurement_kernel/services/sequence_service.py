"""
SequenceService -- date-scoped document numbers via locked counter rows.

Responsibility:
    Issues the daily counters behind every document number
    (``PO-20260106-001``, ``GR-20260106-0001`` ...).  Uses a dedicated
    counter table with row-level locking (``SELECT ... FOR UPDATE``) so two
    concurrent creations on the same day can never receive the same number.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by every module service that creates a numbered document.

Invariants enforced:
    - Counters are keyed by (entity prefix, calendar date); a new day starts
      at 1 because its key has never been seen.
    - The next value is NEVER derived from a max() over existing document
      numbers -- the locked counter row is the sole source of truth.
    - Transactional: an increment is only visible after the caller's
      transaction commits.  Rollback returns the value.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and re-read under lock).
"""

from datetime import date

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from procurement_kernel.db.base import Base
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.domain.document_numbers import DocumentNumberFormat
from procurement_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row is one named counter (e.g. ``PO-20260106``) with its current
    value.  Row-level locking keeps allocation monotonic under concurrency.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class SequenceService:
    """
    Service for generating transactional counter values.

    Contract:
        ``next_value(name)`` returns the next strictly-monotonic integer for
        ``name``; ``next_document_number(fmt)`` renders it as a document
        number for the clock's current date.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named counter.

        1. Locks the counter row (or creates it if it does not exist)
        2. Increments the counter
        3. Returns the new value

        Returns:
            The next counter value (always > 0).
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use of this counter.  Another transaction may create it
            # at the same moment; the savepoint keeps the caller's work.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a counter without incrementing, or None if unused."""
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

        return counter.current_value if counter else None

    def next_document_number(
        self,
        number_format: DocumentNumberFormat,
        on_date: date | None = None,
    ) -> str:
        """Allocate and render the next document number for ``on_date``.

        ``on_date`` defaults to the clock's current calendar date.
        """
        issue_date = on_date or self._clock.today()
        sequence = self.next_value(number_format.counter_key(issue_date))
        number = number_format.render(issue_date, sequence)
        logger.info(
            "document_number_issued",
            extra={
                "entity_type": number_format.entity_type,
                "document_number": number,
            },
        )
        return number
