"""
Procurement configuration schema.

Frozen dataclasses that YAML files are parsed into.  Routing workflow
definitions reuse the kernel's ``ApprovalLevel`` / ``RoutingRule`` value
objects so the engines consume configured workflows unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from procurement_kernel.domain.routing import ApprovalLevel, DocumentType, RoutingRule

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProcurementSettings:
    """Defaults applied by module services."""

    currencies: tuple[str, ...] = ("CNY", "USD", "EUR", "JPY", "HKD")
    default_currency: str = "CNY"
    default_payment_terms: str = "Net 30"
    conversion_lead_days: int = 14
    quality_inspection_required: bool = True


# ---------------------------------------------------------------------------
# Approval workflows
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkflowDefinitionDef:
    """One approval workflow: levels plus the rules that select them."""

    name: str
    document_type: DocumentType
    levels: tuple[ApprovalLevel, ...]
    routing_rules: tuple[RoutingRule, ...] = ()
    description: str = ""
    is_default: bool = False


@dataclass(frozen=True)
class ProcurementConfig:
    """Everything ``get_active_config()`` hands out."""

    settings: ProcurementSettings
    workflows: tuple[WorkflowDefinitionDef, ...] = ()
    checksum: str = ""
    source: str = field(default="", compare=False)

    def default_workflow(self, document_type: DocumentType) -> WorkflowDefinitionDef | None:
        for workflow in self.workflows:
            if workflow.document_type == document_type and workflow.is_default:
                return workflow
        return None
