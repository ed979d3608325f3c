"""Kernel services: sequence counters, audit sink, outbox."""

from procurement_kernel.services.audit_service import AuditLogService
from procurement_kernel.services.base import BaseService
from procurement_kernel.services.outbox_service import (
    DispatchReport,
    OutboxDispatcher,
    OutboxService,
)
from procurement_kernel.services.sequence_service import SequenceCounter, SequenceService

__all__ = [
    "AuditLogService",
    "BaseService",
    "DispatchReport",
    "OutboxDispatcher",
    "OutboxService",
    "SequenceCounter",
    "SequenceService",
]
