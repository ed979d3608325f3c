"""
Approval workflows (``procurement_modules.approvals``).

Persisted routing definitions and evaluation of approver actions.
"""

from procurement_modules.approvals.models import WorkflowDefinition
from procurement_modules.approvals.service import ApprovalRoutingService

__all__ = [
    "ApprovalRoutingService",
    "WorkflowDefinition",
]
