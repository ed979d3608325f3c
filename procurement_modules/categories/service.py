"""
Material category service (``procurement_modules.categories.service``).

Responsibility
--------------
Creates, reparents, deactivates and removes material categories, and
answers hierarchy questions (children, ancestors, tree) from a single
query through ``CategoryArena``.

Invariants enforced
-------------------
* ``level = parent.level + 1`` and ``path = parent.path + parent.code + "/"``
  for every category, including all descendants after a reparent.
* No category is its own ancestor: reparenting under itself or under any
  of its descendants raises ``CircularReferenceError`` before anything is
  written.
* A category with live children or assigned materials is never removed.

Failure modes
-------------
* ``EntityNotFoundError`` -- unknown category or parent.
* ``ValidationError`` -- blank code or Chinese name, duplicate code.
* ``CircularReferenceError`` / ``CategoryInUseError``.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from procurement_kernel.domain.clock import Clock
from procurement_kernel.domain.validation import optional_text, require_text
from procurement_kernel.exceptions import (
    CategoryInUseError,
    CircularReferenceError,
    EntityNotFoundError,
    ValidationError,
)
from procurement_kernel.logging_config import get_logger
from procurement_kernel.services.audit_service import AuditLogService
from procurement_kernel.services.base import BaseService
from procurement_modules._helpers import apply_changes, contains_any, reject_unknown_fields
from procurement_modules.categories.models import (
    ROOT_PATH,
    Category,
    CategoryNode,
    CategoryStatistics,
    child_path,
    path_codes,
)
from procurement_modules.categories.orm import MaterialCategoryModel
from procurement_modules.categories.selectors import CategorySelector
from procurement_modules.categories.tree import CategoryArena
from procurement_modules.materials.orm import MaterialModel

logger = get_logger("modules.categories.service")

ENTITY_TYPE = "MaterialCategory"
_UPDATABLE = frozenset({"name_zh", "name_en", "description", "display_order", "parent_id"})


class CategoryService(BaseService):
    """
    Material category operations.

    Guarantees:
        - Flushes only; the caller commits.
        - Every mutation writes one audit entry.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._categories = CategorySelector(session)
        self._audit = AuditLogService(session, self.clock)

    # =========================================================================
    # Commands
    # =========================================================================

    def create(
        self,
        actor_id: UUID,
        code: str,
        name_zh: str,
        name_en: str | None = None,
        parent_id: UUID | None = None,
        description: str | None = None,
        display_order: int = 0,
    ) -> Category:
        code = self._normalize_code(code)
        name_zh = require_text(name_zh, "name_zh")
        if self._categories.by_code(code) is not None:
            raise ValidationError(f"Category code {code} already exists", field="code")

        level, path = 0, ROOT_PATH
        if parent_id is not None:
            parent = self._require_parent(parent_id)
            level, path = parent.level + 1, child_path(parent.path, parent.code)

        row = MaterialCategoryModel(
            code=code,
            name_zh=name_zh,
            name_en=optional_text(name_en),
            parent_id=parent_id,
            level=level,
            path=path,
            description=optional_text(description),
            display_order=int(display_order),
            is_active=True,
            created_by_id=actor_id,
        )
        self.session.add(row)
        self.session.flush()

        self._audit.record(actor_id, "create", ENTITY_TYPE, row.id, {"code": code, "name_zh": name_zh})
        logger.info(
            "category_created",
            extra={"category_id": str(row.id), "code": code, "level": level, "path": path},
        )
        return row.to_dto()

    def update(self, category_id: UUID, actor_id: UUID, **changes: Any) -> Category:
        """Apply field changes.  A new ``parent_id`` reparents the subtree."""
        reject_unknown_fields(changes, _UPDATABLE, "category")
        row = self._categories.require(category_id)

        if "name_zh" in changes:
            changes["name_zh"] = require_text(changes["name_zh"], "name_zh")
        if "name_en" in changes:
            changes["name_en"] = optional_text(changes["name_en"])
        if "description" in changes:
            changes["description"] = optional_text(changes["description"])
        if "display_order" in changes:
            changes["display_order"] = int(changes["display_order"])

        new_parent_id = changes.pop("parent_id", row.parent_id)
        reparent_diff = {}
        if new_parent_id != row.parent_id:
            reparent_diff = self._reparent(row, new_parent_id)

        diff = apply_changes(row, changes)
        diff.update(reparent_diff)
        row.updated_by_id = actor_id
        self.session.flush()

        self._audit.record(actor_id, "update", ENTITY_TYPE, row.id, {"changes": diff})
        logger.info(
            "category_updated",
            extra={"category_id": str(row.id), "code": row.code, "fields": sorted(diff)},
        )
        return row.to_dto()

    def delete(self, category_id: UUID, actor_id: UUID) -> None:
        row = self._categories.require(category_id)

        if self._categories.direct_children(row):
            raise CategoryInUseError(
                "Cannot delete category with children. Delete or reassign children first.",
                row.code,
            )
        material_count = self._material_count(row.id)
        if material_count > 0:
            raise CategoryInUseError(
                f"Cannot delete category. {material_count} material(s) are assigned to this category.",
                row.code,
            )

        row.is_active = False
        row.updated_by_id = actor_id
        row.mark_removed(actor_id, self.clock.now())
        self.session.flush()

        self._audit.record(actor_id, "delete", ENTITY_TYPE, row.id, {"code": row.code})
        logger.info("category_removed", extra={"category_id": str(row.id), "code": row.code})

    def activate(self, category_id: UUID, actor_id: UUID) -> Category:
        return self._set_active(category_id, actor_id, True)

    def deactivate(self, category_id: UUID, actor_id: UUID) -> Category:
        return self._set_active(category_id, actor_id, False)

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, category_id: UUID) -> Category:
        return self._categories.require(category_id).to_dto()

    def get_by_code(self, code: str) -> Category:
        row = self._categories.by_code(code)
        if row is None:
            raise EntityNotFoundError("Category", code)
        return row.to_dto()

    def list(
        self,
        parent_id: UUID | None = None,
        roots_only: bool = False,
        level: int | None = None,
        is_active: bool | None = None,
        search: str | None = None,
    ) -> list[Category]:
        stmt = self._categories.live_query()
        if roots_only:
            stmt = stmt.where(MaterialCategoryModel.parent_id.is_(None))
        elif parent_id is not None:
            stmt = stmt.where(MaterialCategoryModel.parent_id == parent_id)
        if level is not None:
            stmt = stmt.where(MaterialCategoryModel.level == level)
        if is_active is not None:
            stmt = stmt.where(MaterialCategoryModel.is_active.is_(is_active))
        if search:
            stmt = stmt.where(
                contains_any(
                    search,
                    MaterialCategoryModel.code,
                    MaterialCategoryModel.name_zh,
                    MaterialCategoryModel.name_en,
                )
            )
        stmt = stmt.order_by(MaterialCategoryModel.display_order, MaterialCategoryModel.code)
        return [row.to_dto() for row in self._categories.list(stmt)]

    def search(self, query: str) -> list[Category]:
        """Active categories whose code or name contains ``query``."""
        stmt = (
            self._categories.live_query()
            .where(
                MaterialCategoryModel.is_active.is_(True),
                contains_any(
                    query,
                    MaterialCategoryModel.code,
                    MaterialCategoryModel.name_zh,
                    MaterialCategoryModel.name_en,
                ),
            )
            .order_by(MaterialCategoryModel.level, MaterialCategoryModel.display_order)
        )
        return [row.to_dto() for row in self._categories.list(stmt)]

    def children(self, category_id: UUID, recursive: bool = False) -> list[Category]:
        row = self._categories.require(category_id)
        rows = (
            self._categories.descendants(row)
            if recursive
            else self._categories.direct_children(row)
        )
        return [r.to_dto() for r in rows]

    def ancestors(self, category_id: UUID) -> list[Category]:
        """Root first.  Resolved from the path codes in one query."""
        row = self._categories.require(category_id)
        arena = CategoryArena(
            [r.to_dto() for r in self._categories.by_codes(path_codes(row.path))]
            + [row.to_dto()]
        )
        return list(arena.ancestors(row.id))

    def full_path(self, category_id: UUID) -> str:
        return self.get(category_id).full_path

    def is_ancestor_of(self, ancestor_id: UUID, category_id: UUID) -> bool:
        ancestor = self.get(ancestor_id)
        return ancestor.is_ancestor_of(self.get(category_id).path)

    def tree(self, root_id: UUID | None = None, active_only: bool = True) -> tuple[CategoryNode, ...]:
        """Nested category tree built from one query."""
        arena = CategoryArena([r.to_dto() for r in self._categories.ordered(active_only)])
        if root_id is not None and root_id not in arena:
            raise EntityNotFoundError("Category", root_id)
        return arena.tree(root_id)

    def statistics(self) -> CategoryStatistics:
        with_materials = self.session.execute(
            select(func.count(func.distinct(MaterialModel.category_id))).where(
                MaterialModel.removed.is_(False),
                MaterialModel.category_id.is_not(None),
            )
        ).scalar_one()
        return CategoryStatistics(
            total_categories=self._categories.count(),
            active_categories=self._categories.count(MaterialCategoryModel.is_active.is_(True)),
            categories_with_materials=int(with_materials),
            max_level=self._categories.max_level(),
        )

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _normalize_code(code: str) -> str:
        code = require_text(code, "code").upper()
        if len(code) > 20:
            raise ValidationError("Category code too long", field="code")
        return code

    def _require_parent(self, parent_id: UUID) -> MaterialCategoryModel:
        parent = self._categories.get(parent_id)
        if parent is None:
            raise EntityNotFoundError("Category", parent_id, message="Parent category not found")
        return parent

    def _reparent(
        self,
        row: MaterialCategoryModel,
        new_parent_id: UUID | None,
    ) -> dict[str, dict[str, Any]]:
        old_prefix = row.descendant_prefix
        old_level, old_path = row.level, row.path

        if new_parent_id is None:
            level, path = 0, ROOT_PATH
        else:
            parent = self._require_parent(new_parent_id)
            if parent.id == row.id or parent.path.startswith(old_prefix):
                raise CircularReferenceError(row.code, parent.code)
            level, path = parent.level + 1, child_path(parent.path, parent.code)

        descendants = self._categories.descendants(row)
        old_parent_id = row.parent_id
        row.parent_id = new_parent_id
        row.level = level
        row.path = path

        new_prefix = row.descendant_prefix
        shift = level - old_level
        for child in descendants:
            child.path = new_prefix + child.path[len(old_prefix):]
            child.level += shift

        logger.info(
            "category_reparented",
            extra={
                "category_id": str(row.id),
                "old_path": old_path,
                "new_path": path,
                "descendants_moved": len(descendants),
            },
        )
        return {
            "parent_id": {"old": str(old_parent_id) if old_parent_id else None,
                          "new": str(new_parent_id) if new_parent_id else None},
            "path": {"old": old_path, "new": path},
        }

    def _material_count(self, category_id: UUID) -> int:
        return int(
            self.session.execute(
                select(func.count()).select_from(MaterialModel).where(
                    MaterialModel.category_id == category_id,
                    MaterialModel.removed.is_(False),
                )
            ).scalar_one()
        )

    def _set_active(self, category_id: UUID, actor_id: UUID, active: bool) -> Category:
        row = self._categories.require(category_id)
        if row.is_active != active:
            row.is_active = active
            row.updated_by_id = actor_id
            self.session.flush()
            action = "activate" if active else "deactivate"
            self._audit.record(actor_id, action, ENTITY_TYPE, row.id, {"code": row.code})
            logger.info(f"category_{action}d", extra={"category_id": str(row.id), "code": row.code})
        return row.to_dto()
