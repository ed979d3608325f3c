"""
Configuration loader (``procurement_config.loader``).

Responsibility
--------------
Loads YAML files and parses them into the frozen dataclasses of
``procurement_config.schema``.  Runtime callers go through
``procurement_config.get_active_config()`` instead.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required keys have no silent defaults.
* Workflow levels are numbered 1..n.
* ``compute_checksum`` is deterministic for identical input.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown enumeration value  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from procurement_config.schema import (
    ProcurementConfig,
    ProcurementSettings,
    WorkflowDefinitionDef,
)
from procurement_kernel.domain.routing import (
    ApprovalLevel,
    ApprovalMode,
    ConditionType,
    DocumentType,
    RoutingOperator,
    RoutingRule,
    validate_level_sequence,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_settings(data: dict[str, Any]) -> ProcurementSettings:
    defaults = ProcurementSettings()
    currencies = tuple(str(c).upper() for c in data.get("currencies", defaults.currencies))
    default_currency = str(data.get("default_currency", defaults.default_currency)).upper()
    if default_currency not in currencies:
        raise ValueError(
            f"default_currency {default_currency!r} is not one of {list(currencies)}"
        )
    lead_days = int(data.get("conversion_lead_days", defaults.conversion_lead_days))
    if lead_days < 0:
        raise ValueError(f"conversion_lead_days must be >= 0, got {lead_days}")
    return ProcurementSettings(
        currencies=currencies,
        default_currency=default_currency,
        default_payment_terms=data.get("default_payment_terms", defaults.default_payment_terms),
        conversion_lead_days=lead_days,
        quality_inspection_required=bool(
            data.get("quality_inspection_required", defaults.quality_inspection_required)
        ),
    )


def parse_level(data: dict[str, Any]) -> ApprovalLevel:
    return ApprovalLevel(
        level_number=int(data["level_number"]),
        name=data["name"],
        approver_roles=tuple(data.get("approver_roles", ())),
        approval_mode=ApprovalMode(data.get("approval_mode", "any")),
        is_mandatory=bool(data.get("is_mandatory", True)),
    )


def parse_rule(data: dict[str, Any]) -> RoutingRule:
    value = data["value"]
    if isinstance(value, list):
        value = tuple(value)
    return RoutingRule(
        name=data.get("name", ""),
        condition_type=ConditionType(data["condition_type"]),
        operator=RoutingOperator(data["operator"]),
        value=value,
        target_levels=tuple(int(n) for n in data["target_levels"]),
        field=data.get("field"),
    )


def parse_workflow(data: dict[str, Any]) -> WorkflowDefinitionDef:
    """
    Parse a ``WorkflowDefinitionDef`` from a dict.

    Raises:
        KeyError: ``name``, ``document_type`` or ``levels`` is missing.
        ValueError: levels are not numbered 1..n, or a rule targets an
            undefined level.
    """
    levels = tuple(parse_level(level) for level in data["levels"])
    validate_level_sequence(levels)
    rules = tuple(parse_rule(rule) for rule in data.get("routing_rules", ()))
    numbers = {level.level_number for level in levels}
    for rule in rules:
        unknown = set(rule.target_levels) - numbers
        if unknown:
            raise ValueError(
                f"Routing rule {rule.name!r} targets undefined levels {sorted(unknown)}"
            )
    return WorkflowDefinitionDef(
        name=data["name"],
        document_type=DocumentType(data["document_type"]),
        levels=levels,
        routing_rules=rules,
        description=data.get("description", ""),
        is_default=bool(data.get("is_default", False)),
    )


def parse_config(data: dict[str, Any], source: str = "") -> ProcurementConfig:
    workflows = tuple(parse_workflow(w) for w in data.get("workflows", ()))
    seen: set[DocumentType] = set()
    for workflow in workflows:
        if not workflow.is_default:
            continue
        if workflow.document_type in seen:
            raise ValueError(
                f"More than one default workflow for {workflow.document_type.value}"
            )
        seen.add(workflow.document_type)
    return ProcurementConfig(
        settings=parse_settings(data.get("settings", {})),
        workflows=workflows,
        checksum=compute_checksum(data),
        source=source,
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
