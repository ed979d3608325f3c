"""
Shared helpers for module services.

Used by procurement_modules/*/service.py for field-level updates, note
appending, and search patterns, so every document applies partial updates
and records audit change sets the same way.

Architecture: Modules layer.  Imports only from procurement_kernel.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy import or_

from procurement_kernel.exceptions import ValidationError
from procurement_kernel.utils.serialization import json_safe


def reject_unknown_fields(
    changes: Mapping[str, Any],
    allowed: Iterable[str],
    entity_type: str,
) -> None:
    """Raise ValidationError when ``changes`` names a field outside ``allowed``."""
    unknown = sorted(set(changes) - set(allowed))
    if unknown:
        raise ValidationError(
            f"Cannot update {entity_type} field(s): {', '.join(unknown)}",
            field=unknown[0],
        )


def apply_changes(row: Any, changes: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    """Set each changed attribute on ``row``.

    Returns the audit change set ``{field: {"old": ..., "new": ...}}``
    covering only values that actually differ.
    """
    diff: dict[str, dict[str, Any]] = {}
    for name, value in changes.items():
        old = getattr(row, name)
        if old == value:
            continue
        setattr(row, name, value)
        diff[name] = {"old": json_safe(old), "new": json_safe(value)}
    return diff


def append_note(existing: str | None, note: str, separator: str = "\n") -> str:
    if not existing:
        return note
    return f"{existing}{separator}{note}"


def contains_any(search: str, *columns: Any) -> Any:
    """Case-insensitive substring match on any of ``columns``."""
    escaped = search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    pattern = f"%{escaped}%"
    return or_(*(column.ilike(pattern, escape="\\") for column in columns))
