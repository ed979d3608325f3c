"""
Material category domain models.

Categories form a tree addressed by materialized path: a root has
``level == 0`` and ``path == "/"``; a child has ``level = parent.level + 1``
and ``path = parent.path + parent.code + "/"``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


ROOT_PATH = "/"


def child_path(parent_path: str, parent_code: str) -> str:
    return f"{parent_path}{parent_code}/"


def path_codes(path: str) -> tuple[str, ...]:
    """Ancestor codes encoded in a path, root first: ``/A/B/`` -> (A, B)."""
    return tuple(code for code in path.split("/") if code)


@dataclass(frozen=True)
class Category:
    """Client-facing view of one category."""
    id: UUID
    code: str
    name_zh: str
    name_en: str | None
    parent_id: UUID | None
    level: int
    path: str
    description: str | None = None
    display_order: int = 0
    is_active: bool = True
    created_at: datetime | None = None
    created_by_id: UUID | None = None
    updated_at: datetime | None = None
    updated_by_id: UUID | None = None

    @property
    def full_path(self) -> str:
        return f"{self.path}{self.code}"

    @property
    def descendant_prefix(self) -> str:
        return child_path(self.path, self.code)

    def is_ancestor_of(self, other_path: str) -> bool:
        """True when a category at ``other_path`` lies beneath this one."""
        return other_path.startswith(self.descendant_prefix)


@dataclass(frozen=True)
class CategoryNode:
    category: Category
    children: tuple[CategoryNode, ...] = ()


@dataclass(frozen=True)
class CategoryStatistics:
    total_categories: int
    active_categories: int
    categories_with_materials: int
    max_level: int
