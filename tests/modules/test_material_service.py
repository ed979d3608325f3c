"""
Tests for the Material module service.

Validates:
- Material numbers, draft creation and the status lifecycle
- Alternative units of measure and quantity conversion
- Preferred supplier rules (single primary, no duplicates)
- Inventory counters moved by accepted goods
"""

from decimal import Decimal

import pytest

from procurement_kernel.exceptions import (
    DuplicatePreferredSupplierError,
    DuplicatePrimarySupplierError,
    EntityNotFoundError,
    TransitionNotAllowedError,
    UnitOfMeasureNotFoundError,
    ValidationError,
)
from procurement_modules.materials import MaterialStatus, MaterialType


class TestMaterialCreate:

    def test_number_and_defaults(self, create_material, test_actor_id):
        material = create_material("不锈钢螺丝", base_uom="PCS")

        assert material.material_number == "MAT-20260106-001"
        assert material.status == MaterialStatus.DRAFT
        assert material.type == MaterialType.RAW
        assert material.base_uom == "pcs"
        assert material.created_by_id == test_actor_id

    def test_attributes(self, create_material):
        material = create_material(
            "铝合金外壳", type="semi-finished", brand="Acme", standard_cost="12.50",
        )

        assert material.type == MaterialType.SEMI_FINISHED
        assert material.brand == "Acme"
        assert material.standard_cost == Decimal("12.50")

    def test_unknown_attribute(self, create_material):
        with pytest.raises(ValidationError):
            create_material("x", colour="red")

    def test_negative_cost(self, create_material):
        with pytest.raises(ValidationError):
            create_material("x", standard_cost="-1")


class TestMaterialLifecycle:

    def test_activate_and_deactivate_are_idempotent(self, material_service, material, test_actor_id):
        assert material_service.activate(material.id, test_actor_id).status == MaterialStatus.ACTIVE
        assert material_service.activate(material.id, test_actor_id).status == MaterialStatus.ACTIVE
        assert material_service.deactivate(material.id, test_actor_id).status == MaterialStatus.OBSOLETE
        assert material_service.deactivate(material.id, test_actor_id).status == MaterialStatus.OBSOLETE

    def test_discontinued_is_terminal(self, material_service, material, test_actor_id):
        material_service.discontinue(material.id, test_actor_id)

        with pytest.raises(TransitionNotAllowedError):
            material_service.activate(material.id, test_actor_id)

    def test_delete_and_restore(self, material_service, material, test_actor_id):
        material_service.delete(material.id, test_actor_id)
        with pytest.raises(EntityNotFoundError):
            material_service.get(material.id)

        restored = material_service.restore(material.id, test_actor_id)

        assert restored.id == material.id
        assert material_service.get(material.id).name_zh == "不锈钢螺丝"


class TestUnitsOfMeasure:

    def test_box_of_twelve(self, material_service, material, test_actor_id):
        material_service.add_alternative_uom(material.id, test_actor_id, "BOX", 12, is_purchasing=True)

        assert material_service.convert_to_base(material.id, 2, "box") == Decimal("24")
        assert material_service.convert_from_base(material.id, 24, "box") == Decimal("2")
        assert material_service.convert_quantity(material.id, 36, "pcs", "box") == Decimal("3")

    def test_base_uom_converts_to_itself(self, material_service, material):
        assert material_service.convert_to_base(material.id, "5", "pcs") == Decimal("5")

    def test_unknown_uom(self, material_service, material):
        with pytest.raises(UnitOfMeasureNotFoundError):
            material_service.convert_to_base(material.id, 1, "pallet")

    def test_duplicate_uom(self, material_service, material, test_actor_id):
        material_service.add_alternative_uom(material.id, test_actor_id, "box", 12)

        with pytest.raises(ValidationError, match="already defined"):
            material_service.add_alternative_uom(material.id, test_actor_id, "Box", 10)
        with pytest.raises(ValidationError, match="already defined"):
            material_service.add_alternative_uom(material.id, test_actor_id, "pcs", 1)

    def test_conversion_factor_floor(self, material_service, material, test_actor_id):
        with pytest.raises(ValidationError, match="at least"):
            material_service.add_alternative_uom(material.id, test_actor_id, "mg", "0.00001")


class TestPreferredSuppliers:

    def test_first_supplier_becomes_primary(
        self, material_service, material, supplier, second_supplier, test_actor_id,
    ):
        material_service.add_preferred_supplier(material.id, test_actor_id, supplier.id)
        updated = material_service.add_preferred_supplier(material.id, test_actor_id, second_supplier.id)

        assert [p.is_primary for p in updated.preferred_suppliers] == [True, False]
        assert material_service.primary_supplier(material.id).supplier_id == supplier.id

    def test_new_primary_replaces_old(
        self, material_service, material, supplier, second_supplier, test_actor_id,
    ):
        material_service.add_preferred_supplier(material.id, test_actor_id, supplier.id)
        material_service.add_preferred_supplier(
            material.id, test_actor_id, second_supplier.id, is_primary=True,
        )

        assert material_service.primary_supplier(material.id).supplier_id == second_supplier.id

    def test_duplicate_supplier(self, material_service, material, supplier, test_actor_id):
        material_service.add_preferred_supplier(material.id, test_actor_id, supplier.id)

        with pytest.raises(DuplicatePreferredSupplierError, match="already in preferred list"):
            material_service.add_preferred_supplier(material.id, test_actor_id, supplier.id)

    def test_two_primaries_on_create(self, create_material, supplier, second_supplier):
        with pytest.raises(DuplicatePrimarySupplierError, match="Only one primary supplier"):
            create_material(
                "x",
                preferred_suppliers=[
                    {"supplier_id": supplier.id, "is_primary": True},
                    {"supplier_id": second_supplier.id, "is_primary": True},
                ],
            )

    def test_removing_primary_promotes_next(
        self, material_service, material, supplier, second_supplier, test_actor_id,
    ):
        material_service.add_preferred_supplier(material.id, test_actor_id, supplier.id)
        material_service.add_preferred_supplier(material.id, test_actor_id, second_supplier.id)

        updated = material_service.remove_preferred_supplier(material.id, test_actor_id, supplier.id)

        assert [(p.supplier_id, p.is_primary) for p in updated.preferred_suppliers] == [
            (second_supplier.id, True),
        ]

    def test_remove_unknown_supplier(self, material_service, material, supplier, test_actor_id):
        with pytest.raises(EntityNotFoundError, match="not found in preferred list"):
            material_service.remove_preferred_supplier(material.id, test_actor_id, supplier.id)

    def test_by_supplier(self, material_service, material, second_material, supplier, test_actor_id):
        material_service.add_preferred_supplier(material.id, test_actor_id, supplier.id)

        assert [m.id for m in material_service.by_supplier(supplier.id)] == [material.id]


class TestInventory:

    def test_record_receipt(self, material_service, material, deterministic_clock):
        received_at = deterministic_clock.now()

        updated = material_service.record_receipt(material.id, Decimal("40"), received_at)

        assert updated.inventory.on_hand == Decimal("40")
        assert updated.inventory.available == Decimal("40")
        assert updated.inventory.on_order == Decimal("0")
        assert updated.inventory.last_receipt_date is not None

    def test_zero_quantity_is_a_no_op(self, material_service, material, deterministic_clock):
        updated = material_service.record_receipt(material.id, Decimal("0"), deterministic_clock.now())

        assert updated.inventory.on_hand == Decimal("0")
        assert updated.inventory.last_receipt_date is None

    def test_inventory_params(self, material_service, material, test_actor_id):
        updated = material_service.update_inventory_params(
            material.id, test_actor_id, safety_stock=10, reorder_point=20,
        )

        assert updated.reorder_point == Decimal("20")
        assert updated.needs_reorder is True


class TestMaterialQueries:

    def test_search(self, material_service, material, second_material):
        assert [m.id for m in material_service.search("housing")] == [second_material.id]

    def test_list_by_status(self, material_service, material, second_material, test_actor_id):
        material_service.activate(material.id, test_actor_id)

        assert [m.id for m in material_service.list(status="active")] == [material.id]

    def test_statistics(self, material_service, create_material):
        create_material("a", standard_cost="10")
        create_material("b", standard_cost="20", type="packaging")

        stats = material_service.statistics()

        assert stats.total == 2
        assert stats.by_status["draft"] == 2
        assert stats.by_type["packaging"] == 1
        assert stats.avg_standard_cost == Decimal("15.00")
        assert stats.total_standard_cost == Decimal("30.00")
