"""Materials: master data, units of measure, preferred suppliers, inventory counters."""

from procurement_modules.materials.models import (
    AlternativeUOM,
    Material,
    MaterialInventory,
    MaterialStatistics,
    MaterialStatus,
    MaterialType,
    PreferredSupplier,
)
from procurement_modules.materials.service import MaterialService
from procurement_modules.materials.workflows import MATERIAL_WORKFLOW

__all__ = [
    "AlternativeUOM",
    "MATERIAL_WORKFLOW",
    "Material",
    "MaterialInventory",
    "MaterialService",
    "MaterialStatistics",
    "MaterialStatus",
    "MaterialType",
    "PreferredSupplier",
]
