"""
Material service (``procurement_modules.materials.service``).

Responsibility
--------------
Material master data: creation with a generated ``MAT-`` number, edits,
soft removal and restore, the status lifecycle, preferred suppliers,
alternative units of measure and conversions, pricing and inventory
parameters, and the inventory counters goods receipts move.

Invariants enforced
-------------------
* The category, when given, exists; every preferred supplier exists.
* At most one preferred supplier is primary.  When suppliers exist and
  none is flagged, the first one is primary.
* UOM codes are stored lowercase; conversion factors are at least 0.0001.
* ``activate()`` on an active material and ``deactivate()`` on an
  obsolete one are no-ops.

Failure modes
-------------
* ``EntityNotFoundError`` -- unknown material, category, or supplier.
* ``UnitOfMeasureNotFoundError`` -- conversion with an unregistered UOM.
* ``DuplicatePrimarySupplierError`` / ``DuplicatePreferredSupplierError``.
* ``TransitionNotAllowedError`` -- status does not permit the action.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from procurement_engines.reconciliation import InventoryCounters, apply_receipt_to_inventory
from procurement_kernel.domain.clock import Clock
from procurement_kernel.domain.document_numbers import MATERIAL_NUMBER
from procurement_kernel.domain.validation import (
    coerce_enum,
    optional_text,
    require_currency,
    require_non_negative,
    require_positive,
    require_text,
    to_decimal,
    to_uuid,
)
from procurement_kernel.domain.workflow import require_transition
from procurement_kernel.exceptions import (
    DuplicatePreferredSupplierError,
    DuplicatePrimarySupplierError,
    EntityNotFoundError,
    ValidationError,
)
from procurement_kernel.logging_config import get_logger
from procurement_kernel.services.audit_service import AuditLogService
from procurement_kernel.services.base import BaseService
from procurement_kernel.services.sequence_service import SequenceService
from procurement_modules._helpers import apply_changes, contains_any, reject_unknown_fields
from procurement_modules.categories.selectors import CategorySelector
from procurement_modules.materials.models import (
    Material,
    MaterialStatistics,
    MaterialStatus,
    MaterialType,
    PreferredSupplier,
)
from procurement_modules.materials.orm import (
    MaterialModel,
    MaterialUOMModel,
    PreferredSupplierModel,
)
from procurement_modules.materials.selectors import MaterialSelector
from procurement_modules.materials.workflows import MATERIAL_WORKFLOW
from procurement_modules.suppliers.selectors import SupplierSelector

logger = get_logger("modules.materials.service")

ENTITY_TYPE = "Material"

MIN_CONVERSION_FACTOR = Decimal("0.0001")

_PRICING_FIELDS = frozenset({"standard_cost", "last_purchase_price", "last_purchase_date", "currency"})
_INVENTORY_PARAM_FIELDS = frozenset({"safety_stock", "reorder_point", "max_stock_level"})
_DECIMAL_FIELDS = (
    "minimum_order_qty",
    "standard_cost",
    "last_purchase_price",
    "safety_stock",
    "reorder_point",
    "max_stock_level",
)

_UPDATABLE = frozenset({
    "name_zh",
    "name_en",
    "abbreviation",
    "category_id",
    "type",
    "hs_code",
    "brand",
    "model",
    "manufacturer",
    "specifications",
    "default_lead_time",
    "minimum_order_qty",
    "notes",
    "tags",
}) | _PRICING_FIELDS | _INVENTORY_PARAM_FIELDS


class MaterialService(BaseService):
    """
    Material operations.

    Guarantees:
        - Flushes only; the caller commits.
        - Every mutation writes one audit entry.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._materials = MaterialSelector(session)
        self._categories = CategorySelector(session)
        self._suppliers = SupplierSelector(session)
        self._sequences = SequenceService(session, self.clock)
        self._audit = AuditLogService(session, self.clock)

    # =========================================================================
    # Master data
    # =========================================================================

    def create(
        self,
        actor_id: UUID,
        name_zh: str,
        base_uom: str = "pcs",
        type: str | MaterialType = MaterialType.RAW,
        category_id: UUID | None = None,
        name_en: str | None = None,
        alternative_uoms: Iterable[Mapping[str, Any]] = (),
        preferred_suppliers: Iterable[Mapping[str, Any]] = (),
        **attributes: Any,
    ) -> Material:
        """Create a draft material.

        ``attributes`` accepts any updatable field (brand, standard_cost,
        safety_stock ...).
        """
        reject_unknown_fields(attributes, _UPDATABLE, "material")
        values = self._validated(attributes)
        if category_id is not None:
            category_id = self._categories.require(to_uuid(category_id, "category_id")).id

        row = MaterialModel(
            material_number=self._sequences.next_document_number(MATERIAL_NUMBER),
            name_zh=require_text(name_zh, "name_zh"),
            name_en=optional_text(name_en),
            type=coerce_enum(MaterialType, type, "type").value,
            status=MaterialStatus.DRAFT.value,
            base_uom=_uom_code(base_uom),
            category_id=category_id,
            created_by_id=actor_id,
            **values,
        )
        for spec in alternative_uoms:
            row.alternative_uoms.append(self._uom_row(row, spec))
        self._set_preferred_suppliers(row, preferred_suppliers)
        self.session.add(row)
        self.session.flush()

        self._audit.record(
            actor_id, "create", ENTITY_TYPE, row.id,
            {"material_number": row.material_number, "name": row.name_zh},
        )
        logger.info(
            "material_created",
            extra={"material_id": str(row.id), "material_number": row.material_number},
        )
        return row.to_dto()

    def update(self, material_id: UUID, actor_id: UUID, **changes: Any) -> Material:
        reject_unknown_fields(changes, _UPDATABLE, "material")
        row = self._materials.require(material_id)
        values = self._validated(changes)
        if values.get("category_id") is not None:
            values["category_id"] = self._categories.require(to_uuid(values["category_id"], "category_id")).id
        return self._apply(row, actor_id, "update", values)

    def delete(self, material_id: UUID, actor_id: UUID) -> None:
        row = self._materials.require(material_id)
        row.mark_removed(actor_id, self.clock.now())
        row.updated_by_id = actor_id
        self.session.flush()
        self._audit.record(actor_id, "delete", ENTITY_TYPE, row.id, {"material_number": row.material_number})
        logger.info("material_removed", extra={"material_number": row.material_number})

    def restore(self, material_id: UUID, actor_id: UUID) -> Material:
        row = self._materials.get_including_removed(material_id)
        if row is None:
            raise EntityNotFoundError(ENTITY_TYPE, material_id)
        if row.removed:
            row.mark_restored()
            row.updated_by_id = actor_id
            self.session.flush()
            self._audit.record(actor_id, "restore", ENTITY_TYPE, row.id, {"material_number": row.material_number})
            logger.info("material_restored", extra={"material_number": row.material_number})
        return row.to_dto()

    def update_pricing(self, material_id: UUID, actor_id: UUID, **pricing: Any) -> Material:
        reject_unknown_fields(pricing, _PRICING_FIELDS, "material pricing")
        row = self._materials.require(material_id)
        return self._apply(row, actor_id, "update_pricing", self._validated(pricing))

    def update_inventory_params(self, material_id: UUID, actor_id: UUID, **params: Any) -> Material:
        reject_unknown_fields(params, _INVENTORY_PARAM_FIELDS, "material inventory")
        row = self._materials.require(material_id)
        return self._apply(row, actor_id, "update_inventory_params", self._validated(params))

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def activate(self, material_id: UUID, actor_id: UUID) -> Material:
        row = self._materials.require(material_id)
        if row.status == MaterialStatus.ACTIVE.value:
            return row.to_dto()
        return self._transition(row, "activate", actor_id)

    def deactivate(self, material_id: UUID, actor_id: UUID) -> Material:
        row = self._materials.require(material_id)
        if row.status == MaterialStatus.OBSOLETE.value:
            return row.to_dto()
        return self._transition(row, "deactivate", actor_id)

    def discontinue(self, material_id: UUID, actor_id: UUID) -> Material:
        return self._transition(self._materials.require(material_id), "discontinue", actor_id)

    # =========================================================================
    # Preferred suppliers
    # =========================================================================

    def add_preferred_supplier(
        self,
        material_id: UUID,
        actor_id: UUID,
        supplier_id: UUID,
        supplier_part_number: str | None = None,
        lead_time_days: int | None = None,
        moq: Decimal | str | int | None = None,
        is_primary: bool = False,
    ) -> Material:
        row = self._materials.require(material_id)
        supplier = self._suppliers.require(to_uuid(supplier_id, "supplier_id"))
        if any(p.supplier_id == supplier.id for p in row.preferred_suppliers):
            raise DuplicatePreferredSupplierError(str(supplier.id))

        make_primary = is_primary or not row.preferred_suppliers
        if make_primary:
            for existing in row.preferred_suppliers:
                existing.is_primary = False
        row.preferred_suppliers.append(
            PreferredSupplierModel(
                supplier_id=supplier.id,
                position=_next_position(row.preferred_suppliers),
                supplier_part_number=optional_text(supplier_part_number),
                lead_time_days=lead_time_days,
                moq=None if moq is None else require_positive(to_decimal(moq, "moq"), "moq"),
                is_primary=make_primary,
            )
        )
        row.updated_by_id = actor_id
        self.session.flush()

        self._audit.record(
            actor_id, "add_preferred_supplier", ENTITY_TYPE, row.id,
            {"supplier_id": str(supplier.id), "is_primary": make_primary},
        )
        logger.info(
            "material_preferred_supplier_added",
            extra={"material_number": row.material_number, "supplier_id": str(supplier.id), "is_primary": make_primary},
        )
        return row.to_dto()

    def remove_preferred_supplier(self, material_id: UUID, actor_id: UUID, supplier_id: UUID) -> Material:
        row = self._materials.require(material_id)
        supplier_id = to_uuid(supplier_id, "supplier_id")
        entry = next((p for p in row.preferred_suppliers if p.supplier_id == supplier_id), None)
        if entry is None:
            raise EntityNotFoundError(
                "PreferredSupplier", supplier_id, message="Supplier not found in preferred list",
            )
        row.preferred_suppliers.remove(entry)
        if entry.is_primary and row.preferred_suppliers:
            row.preferred_suppliers[0].is_primary = True
        row.updated_by_id = actor_id
        self.session.flush()

        self._audit.record(
            actor_id, "remove_preferred_supplier", ENTITY_TYPE, row.id, {"supplier_id": str(supplier_id)},
        )
        logger.info(
            "material_preferred_supplier_removed",
            extra={"material_number": row.material_number, "supplier_id": str(supplier_id)},
        )
        return row.to_dto()

    def primary_supplier(self, material_id: UUID) -> PreferredSupplier | None:
        return self.get(material_id).primary_supplier

    # =========================================================================
    # Units of measure
    # =========================================================================

    def add_alternative_uom(
        self,
        material_id: UUID,
        actor_id: UUID,
        uom: str,
        conversion_factor: Decimal | str | int,
        is_purchasing: bool = False,
        is_inventory: bool = False,
    ) -> Material:
        row = self._materials.require(material_id)
        uom_row = self._uom_row(row, {
            "uom": uom,
            "conversion_factor": conversion_factor,
            "is_purchasing": is_purchasing,
            "is_inventory": is_inventory,
        })
        row.alternative_uoms.append(uom_row)
        row.updated_by_id = actor_id
        self.session.flush()

        self._audit.record(
            actor_id, "add_alternative_uom", ENTITY_TYPE, row.id,
            {"uom": uom_row.uom, "conversion_factor": str(uom_row.conversion_factor)},
        )
        logger.info(
            "material_uom_added",
            extra={"material_number": row.material_number, "uom": uom_row.uom},
        )
        return row.to_dto()

    def convert_to_base(self, material_id: UUID, quantity: Decimal | str | int, from_uom: str) -> Decimal:
        return self.get(material_id).convert_to_base(to_decimal(quantity, "quantity"), from_uom)

    def convert_from_base(self, material_id: UUID, quantity: Decimal | str | int, to_uom: str) -> Decimal:
        return self.get(material_id).convert_from_base(to_decimal(quantity, "quantity"), to_uom)

    def convert_quantity(
        self,
        material_id: UUID,
        quantity: Decimal | str | int,
        from_uom: str,
        to_uom: str,
    ) -> Decimal:
        return self.get(material_id).convert(to_decimal(quantity, "quantity"), from_uom, to_uom)

    # =========================================================================
    # Inventory
    # =========================================================================

    def record_receipt(
        self,
        material_id: UUID,
        accepted_quantity: Decimal,
        received_at: datetime | None,
    ) -> Material:
        """Book accepted goods into the inventory counters.

        Called by receipt reconciliation; no audit entry of its own, the
        goods receipt carries it.
        """
        row = self._materials.require(material_id)
        before = _counters(row)
        after = apply_receipt_to_inventory(before, accepted_quantity, received_at)
        if after is before:
            return row.to_dto()
        row.on_hand = after.on_hand
        row.on_order = after.on_order
        row.available = after.available
        row.last_receipt_date = after.last_receipt_date
        self.session.flush()
        logger.info(
            "material_inventory_received",
            extra={
                "material_number": row.material_number,
                "accepted_quantity": str(accepted_quantity),
                "on_hand": str(after.on_hand),
                "available": str(after.available),
            },
        )
        return row.to_dto()

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, material_id: UUID) -> Material:
        return self._materials.require(material_id).to_dto()

    def get_by_number(self, material_number: str) -> Material:
        row = self._materials.by_number(material_number)
        if row is None:
            raise EntityNotFoundError(ENTITY_TYPE, material_number)
        return row.to_dto()

    def list(
        self,
        status: str | MaterialStatus | None = None,
        type: str | MaterialType | None = None,
        category_id: UUID | None = None,
        search: str | None = None,
    ) -> list[Material]:
        stmt = self._materials.live_query()
        if status is not None:
            stmt = stmt.where(MaterialModel.status == coerce_enum(MaterialStatus, status, "status").value)
        if type is not None:
            stmt = stmt.where(MaterialModel.type == coerce_enum(MaterialType, type, "type").value)
        if category_id is not None:
            stmt = stmt.where(MaterialModel.category_id == category_id)
        if search:
            stmt = stmt.where(self._search_clause(search))
        stmt = stmt.order_by(MaterialModel.created_at.desc(), MaterialModel.material_number.desc())
        return [row.to_dto() for row in self._materials.list(stmt)]

    def search(self, query: str) -> list[Material]:
        stmt = (
            self._materials.live_query()
            .where(self._search_clause(query))
            .order_by(MaterialModel.material_number)
        )
        return [row.to_dto() for row in self._materials.list(stmt)]

    def by_category(self, category_id: UUID, include_subcategories: bool = False) -> list[Material]:
        category = self._categories.require(category_id)
        ids = [category.id]
        if include_subcategories:
            ids.extend(c.id for c in self._categories.descendants(category))
        return [row.to_dto() for row in self._materials.in_categories(ids)]

    def by_supplier(self, supplier_id: UUID) -> list[Material]:
        return [row.to_dto() for row in self._materials.for_supplier(supplier_id)]

    def statistics(self) -> MaterialStatistics:
        average, total = self._materials.standard_cost_totals()
        by_status = {s.value: 0 for s in MaterialStatus}
        by_status.update(self._materials.count_by(MaterialModel.status))
        by_type = {t.value: 0 for t in MaterialType}
        by_type.update(self._materials.count_by(MaterialModel.type))
        return MaterialStatistics(
            total=sum(by_status.values()),
            by_status=by_status,
            by_type=by_type,
            avg_standard_cost=_money(average),
            total_standard_cost=_money(total),
        )

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _validated(values: Mapping[str, Any]) -> dict[str, Any]:
        out = dict(values)
        if "name_zh" in out:
            out["name_zh"] = require_text(out["name_zh"], "name_zh")
        if "type" in out:
            out["type"] = coerce_enum(MaterialType, out["type"], "type").value
        if "currency" in out:
            out["currency"] = require_currency(out["currency"])
        for name in _DECIMAL_FIELDS:
            if name in out and out[name] is not None:
                out[name] = require_non_negative(to_decimal(out[name], name), name)
        if "default_lead_time" in out:
            out["default_lead_time"] = int(require_non_negative(
                to_decimal(out["default_lead_time"], "default_lead_time"), "default_lead_time",
            ))
        if "specifications" in out:
            out["specifications"] = dict(out["specifications"] or {})
        if "tags" in out:
            out["tags"] = list(out["tags"] or ())
        for name in ("name_en", "abbreviation", "hs_code", "brand", "model", "manufacturer", "notes"):
            if name in out:
                out[name] = optional_text(out[name])
        return out

    def _uom_row(self, row: MaterialModel, spec: Mapping[str, Any]) -> MaterialUOMModel:
        uom = _uom_code(spec.get("uom"))
        if uom == row.base_uom or any(u.uom == uom for u in row.alternative_uoms):
            raise ValidationError(f"UOM {uom} already defined for material", field="uom")
        factor = to_decimal(spec.get("conversion_factor"), "conversion_factor")
        if factor < MIN_CONVERSION_FACTOR:
            raise ValidationError(
                f"conversion_factor must be at least {MIN_CONVERSION_FACTOR}", field="conversion_factor",
            )
        return MaterialUOMModel(
            uom=uom,
            conversion_factor=factor,
            is_purchasing=bool(spec.get("is_purchasing", False)),
            is_inventory=bool(spec.get("is_inventory", False)),
        )

    def _set_preferred_suppliers(self, row: MaterialModel, specs: Iterable[Mapping[str, Any]]) -> None:
        entries: list[PreferredSupplierModel] = []
        seen: set[UUID] = set()
        for position, spec in enumerate(specs):
            supplier = self._suppliers.require(to_uuid(spec.get("supplier_id"), "supplier_id"))
            if supplier.id in seen:
                raise DuplicatePreferredSupplierError(str(supplier.id))
            seen.add(supplier.id)
            moq = spec.get("moq")
            entries.append(
                PreferredSupplierModel(
                    supplier_id=supplier.id,
                    position=position,
                    supplier_part_number=optional_text(spec.get("supplier_part_number")),
                    lead_time_days=spec.get("lead_time_days"),
                    moq=None if moq is None else require_positive(to_decimal(moq, "moq"), "moq"),
                    is_primary=bool(spec.get("is_primary", False)),
                )
            )
        primaries = sum(1 for e in entries if e.is_primary)
        if primaries > 1:
            raise DuplicatePrimarySupplierError(row.material_number)
        if entries and primaries == 0:
            entries[0].is_primary = True
        row.preferred_suppliers.extend(entries)

    @staticmethod
    def _search_clause(search: str):
        return contains_any(
            search,
            MaterialModel.material_number,
            MaterialModel.name_zh,
            MaterialModel.name_en,
            MaterialModel.abbreviation,
            MaterialModel.brand,
            MaterialModel.model,
        )

    def _apply(self, row: MaterialModel, actor_id: UUID, action: str, values: dict[str, Any]) -> Material:
        diff = apply_changes(row, values)
        row.updated_by_id = actor_id
        self.session.flush()
        self._audit.record(actor_id, action, ENTITY_TYPE, row.id, {"changes": diff})
        logger.info(
            "material_updated",
            extra={"material_number": row.material_number, "action": action, "fields": sorted(diff)},
        )
        return row.to_dto()

    def _transition(self, row: MaterialModel, action: str, actor_id: UUID) -> Material:
        transition = require_transition(MATERIAL_WORKFLOW, ENTITY_TYPE, row.status, action)
        old_status = row.status
        row.status = transition.to_state
        row.updated_by_id = actor_id
        self.session.flush()
        self._audit.record(actor_id, action, ENTITY_TYPE, row.id, {"from": old_status, "to": row.status})
        logger.info(
            "material_status_changed",
            extra={
                "material_number": row.material_number,
                "action": action,
                "from_status": old_status,
                "to_status": row.status,
            },
        )
        return row.to_dto()


def _uom_code(value: Any) -> str:
    return require_text(value, "uom").lower()


def _next_position(entries: list[PreferredSupplierModel]) -> int:
    return max((e.position for e in entries), default=-1) + 1


def _counters(row: MaterialModel) -> InventoryCounters:
    return InventoryCounters(
        on_hand=row.on_hand,
        on_order=row.on_order,
        reserved=row.reserved,
        available=row.available,
        last_receipt_date=row.last_receipt_date,
    )


def _money(value: Any) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(Decimal("0.01"))
