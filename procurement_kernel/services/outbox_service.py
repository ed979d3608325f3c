"""
Outbox -- explicit domain events for best-effort side effects.

Responsibility:
    ``OutboxService`` appends ``DomainEvent`` values to the ``outbox_events``
    table after the triggering transition has been flushed.
    ``OutboxDispatcher`` is the separate consumer: it runs the handlers
    registered for each pending event type.

Architecture position:
    Kernel > Services.  Module services publish; module-level consumers
    (e.g. receipt reconciliation) register handlers.

Invariants enforced:
    - The triggering transition is flushed before its event exists, and
      each handler runs in its own savepoint.  A handler failure rolls back
      only that handler's writes.
    - Failures are explicit: the event is marked ``failed`` with the error
      text and attempt count and can be re-run with ``retry_failed()``.

Failure modes:
    - Handler exception -> ``outbox_handler_failed`` error log with the
      exception attached; event status ``failed``.  Never re-raised.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from procurement_kernel.domain.clock import Clock
from procurement_kernel.domain.events import DomainEvent
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.outbox import OutboxEvent, OutboxStatus
from procurement_kernel.services.base import BaseService
from procurement_kernel.utils.serialization import json_safe

logger = get_logger("services.outbox")

EventHandler = Callable[[DomainEvent], None]


@dataclass(frozen=True)
class DispatchReport:
    processed: tuple[UUID, ...] = ()
    failed: tuple[UUID, ...] = ()


class OutboxService(BaseService):
    """Appends domain events to the outbox."""

    def publish(self, event: DomainEvent) -> OutboxEvent:
        row = OutboxEvent(
            event_type=event.event_type,
            aggregate_type=event.aggregate_type,
            aggregate_id=event.aggregate_id,
            actor_id=event.actor_id,
            payload=json_safe(event.payload),
            status=OutboxStatus.PENDING.value,
            attempts=0,
            occurred_at=event.occurred_at,
        )
        self.session.add(row)
        self.session.flush()
        logger.info(
            "outbox_event_published",
            extra={
                "event_type": event.event_type,
                "aggregate_type": event.aggregate_type,
                "aggregate_id": str(event.aggregate_id),
                "outbox_id": str(row.id),
            },
        )
        return row

    def pending(self, event_type: str | None = None) -> list[OutboxEvent]:
        stmt = select(OutboxEvent).where(OutboxEvent.status == OutboxStatus.PENDING.value)
        if event_type is not None:
            stmt = stmt.where(OutboxEvent.event_type == event_type)
        return list(self.session.execute(stmt.order_by(OutboxEvent.occurred_at)).scalars())

    def failed(self) -> list[OutboxEvent]:
        return list(
            self.session.execute(
                select(OutboxEvent)
                .where(OutboxEvent.status == OutboxStatus.FAILED.value)
                .order_by(OutboxEvent.occurred_at)
            ).scalars()
        )


class OutboxDispatcher(BaseService):
    """Runs registered handlers for pending outbox events."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self._outbox = OutboxService(session, self.clock)

    def register(self, event_type: str, handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)

    def dispatch_pending(self, event_type: str | None = None) -> DispatchReport:
        processed: list[UUID] = []
        failed: list[UUID] = []
        for row in self._outbox.pending(event_type):
            if self._dispatch_one(row):
                processed.append(row.id)
            else:
                failed.append(row.id)
        return DispatchReport(processed=tuple(processed), failed=tuple(failed))

    def retry_failed(self) -> DispatchReport:
        for row in self._outbox.failed():
            row.status = OutboxStatus.PENDING.value
        self.session.flush()
        return self.dispatch_pending()

    def _dispatch_one(self, row: OutboxEvent) -> bool:
        event = DomainEvent(
            event_type=row.event_type,
            aggregate_type=row.aggregate_type,
            aggregate_id=row.aggregate_id,
            occurred_at=row.occurred_at,
            actor_id=row.actor_id,
            payload=dict(row.payload or {}),
        )
        row.attempts = (row.attempts or 0) + 1
        errors: list[str] = []

        for handler in self._handlers.get(row.event_type, ()):
            handler_name = getattr(handler, "__qualname__", repr(handler))
            try:
                with self.session.begin_nested():
                    handler(event)
                    self.session.flush()
            except Exception as exc:  # noqa: BLE001
                errors.append(f"{handler_name}: {exc}")
                logger.error(
                    "outbox_handler_failed",
                    extra={
                        "event_type": row.event_type,
                        "aggregate_id": str(row.aggregate_id),
                        "handler": handler_name,
                        "attempt": row.attempts,
                    },
                    exc_info=True,
                )

        if errors:
            row.status = OutboxStatus.FAILED.value
            row.last_error = "; ".join(errors)
        else:
            row.status = OutboxStatus.PROCESSED.value
            row.last_error = None
            row.processed_at = self.clock.now()
        self.session.flush()

        logger.info(
            "outbox_event_dispatched",
            extra={
                "event_type": row.event_type,
                "aggregate_id": str(row.aggregate_id),
                "status": row.status,
                "attempt": row.attempts,
            },
        )
        return not errors
