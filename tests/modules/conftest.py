"""
Shared fixtures for module tests.

Services are built on the per-test ``session`` with the deterministic
clock, so document numbers read ``...-20260106-...``.

DESIGN RULE: Every fixture is opt-in.  No autouse.  Each test explicitly
declares which parent records it depends on in its function signature, so
the dependency order is visible and reviewable.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from procurement_config import get_active_config
from procurement_modules.approvals import ApprovalRoutingService
from procurement_modules.categories import CategoryService
from procurement_modules.materials import MaterialService
from procurement_modules.purchase_orders import PurchaseOrderService
from procurement_modules.quotations import QuotationService
from procurement_modules.receipts import ReceiptService, build_receipt_dispatcher
from procurement_modules.suppliers import SupplierService


# ---------------------------------------------------------------------------
# Configuration and services
# ---------------------------------------------------------------------------

@pytest.fixture
def procurement_config():
    """The packaged default configuration."""
    return get_active_config()


@pytest.fixture
def supplier_service(session, deterministic_clock):
    return SupplierService(session, deterministic_clock)


@pytest.fixture
def category_service(session, deterministic_clock):
    return CategoryService(session, deterministic_clock)


@pytest.fixture
def material_service(session, deterministic_clock):
    return MaterialService(session, deterministic_clock)


@pytest.fixture
def approval_service(session, deterministic_clock):
    return ApprovalRoutingService(session, deterministic_clock)


@pytest.fixture
def po_service(session, deterministic_clock, procurement_config):
    return PurchaseOrderService(session, deterministic_clock, procurement_config)


@pytest.fixture
def quotation_service(session, deterministic_clock, procurement_config):
    return QuotationService(session, deterministic_clock, procurement_config)


@pytest.fixture
def receipt_dispatcher(session, deterministic_clock, procurement_config):
    """Outbox dispatcher with the receipt reconciliation consumer registered."""
    return build_receipt_dispatcher(session, deterministic_clock, procurement_config)


@pytest.fixture
def receipt_service(session, deterministic_clock, procurement_config, receipt_dispatcher):
    """Receipt service that reconciles synchronously after ``complete()``."""
    return ReceiptService(
        session, deterministic_clock, procurement_config, dispatcher=receipt_dispatcher,
    )


@pytest.fixture
def installed_workflows(approval_service, test_actor_id, procurement_config):
    """Persist the configured approval workflows (PO routing included)."""
    return approval_service.install_from_config(test_actor_id, procurement_config)


# ---------------------------------------------------------------------------
# Master data factories
# ---------------------------------------------------------------------------

@pytest.fixture
def create_supplier(supplier_service, test_actor_id):
    """Factory: ``create_supplier(name="Acme", **kwargs)``."""
    def _create(name: str = "Test Supplier", **kwargs):
        return supplier_service.create(test_actor_id, company_name_en=name, **kwargs)
    return _create


@pytest.fixture
def supplier(create_supplier):
    return create_supplier("Shenzhen Precision Parts", credit_rating="A")


@pytest.fixture
def second_supplier(create_supplier):
    return create_supplier("Dongguan Metalworks", credit_rating="B")


@pytest.fixture
def create_material(material_service, test_actor_id):
    """Factory: ``create_material(name_zh="...", base_uom="pcs", **kwargs)``."""
    def _create(name_zh: str = "测试物料", base_uom: str = "pcs", **kwargs):
        return material_service.create(test_actor_id, name_zh=name_zh, base_uom=base_uom, **kwargs)
    return _create


@pytest.fixture
def material(create_material):
    return create_material("不锈钢螺丝", base_uom="pcs", name_en="Stainless screw")


@pytest.fixture
def second_material(create_material):
    return create_material("铝合金外壳", base_uom="pcs", name_en="Aluminium housing")


# ---------------------------------------------------------------------------
# Document factories
# ---------------------------------------------------------------------------

@pytest.fixture
def create_po(po_service, test_actor_id, deterministic_clock):
    """Factory: draft PO for ``supplier`` with ``lines`` of (material, qty, price)."""
    def _create(supplier, lines, **kwargs):
        kwargs.setdefault(
            "expected_delivery_date", deterministic_clock.now() + timedelta(days=14),
        )
        return po_service.create(
            test_actor_id,
            supplier_id=supplier.id,
            items=[
                {"material_id": m.id, "quantity": Decimal(str(q)), "unit_price": Decimal(str(p))}
                for m, q, p in lines
            ],
            **kwargs,
        )
    return _create


@pytest.fixture
def approved_po(create_po, po_service, supplier, material, test_actor_id):
    """An approved, unrouted PO for 100 units of ``material`` at 10.00."""
    po = create_po(supplier, [(material, 100, "10.00")])
    po_service.submit(po.id, test_actor_id)
    return po_service.approve(po.id, test_actor_id)


@pytest.fixture
def create_quotation(quotation_service, test_actor_id, deterministic_clock):
    """Factory: draft quotation for ``lines`` of (material, qty, target_price)."""
    def _create(lines, target_suppliers=(), **kwargs):
        kwargs.setdefault("response_deadline", deterministic_clock.now() + timedelta(days=7))
        return quotation_service.create(
            test_actor_id,
            items=[
                {
                    "material_id": m.id,
                    "quantity": Decimal(str(q)),
                    "target_price": Decimal(str(t)) if t is not None else None,
                }
                for m, q, t in lines
            ],
            target_suppliers=[s.id for s in target_suppliers],
            **kwargs,
        )
    return _create
