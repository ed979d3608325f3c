"""
Typed Exception Hierarchy for the procurement core.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every rejected operation must tell the caller which rule was violated and
on which document.  Callers catch by type, report by ``code``, and read the
structured attributes; message text is for humans only.

    try:
        service.cancel(po_id, actor_id, reason="duplicate")
    except TransitionNotAllowedError as e:
        api_response(code=e.code, status=e.current_state, message=str(e))

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ProcurementError (base)
    |
    +-- ValidationError
    |
    +-- TransitionNotAllowedError
    |
    +-- EntityNotFoundError
    |   +-- UnitOfMeasureNotFoundError
    |
    +-- ConsistencyError
        +-- CircularReferenceError
        +-- DuplicatePrimarySupplierError
        +-- DuplicatePreferredSupplierError
        +-- DuplicateQuoteError
        +-- DefaultWorkflowConflictError
        +-- CategoryInUseError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                         | When Raised
-------------|------------------------------|------------------------------------
Validation   | VALIDATION_ERROR             | Missing/malformed field, bad enum
-------------|------------------------------|------------------------------------
Transition   | TRANSITION_NOT_ALLOWED       | Action not permitted from status
-------------|------------------------------|------------------------------------
Reference    | ENTITY_NOT_FOUND             | Referenced document does not exist
             | UOM_NOT_FOUND                | UOM not registered on material
-------------|------------------------------|------------------------------------
Consistency  | CIRCULAR_REFERENCE           | Category reparent creates a cycle
             | DUPLICATE_PRIMARY_SUPPLIER   | More than one primary supplier
             | DUPLICATE_PREFERRED_SUPPLIER | Supplier already preferred
             | DUPLICATE_QUOTE              | Second quote from same supplier
             | DEFAULT_WORKFLOW_CONFLICT    | Second default workflow per type
             | CATEGORY_IN_USE              | Category has children/materials
"""

from __future__ import annotations

from typing import Any


class ProcurementError(Exception):
    """
    Base exception for all procurement errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "PROCUREMENT_ERROR"


# Validation


class ValidationError(ProcurementError):
    """Input failed validation before any transition ran."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


# Guard violations


class TransitionNotAllowedError(ProcurementError):
    """A lifecycle action was attempted from a status that forbids it."""

    code: str = "TRANSITION_NOT_ALLOWED"

    def __init__(
        self,
        message: str,
        entity_type: str,
        current_state: str | None = None,
        action: str | None = None,
    ):
        self.entity_type = entity_type
        self.current_state = current_state
        self.action = action
        super().__init__(message)


# Referential errors


class EntityNotFoundError(ProcurementError):
    """A referenced document does not exist (or was removed)."""

    code: str = "ENTITY_NOT_FOUND"

    def __init__(
        self,
        entity_type: str,
        entity_id: Any = None,
        message: str | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = str(entity_id) if entity_id is not None else None
        super().__init__(message or f"{entity_type} not found")


class UnitOfMeasureNotFoundError(EntityNotFoundError):
    """The unit of measure is neither the base UOM nor a registered alternative."""

    code: str = "UOM_NOT_FOUND"

    def __init__(self, uom: str, material_number: str):
        self.uom = uom
        self.material_number = material_number
        super().__init__(
            "UnitOfMeasure",
            uom,
            message=f"UOM {uom} not found for material {material_number}",
        )


# Consistency errors


class ConsistencyError(ProcurementError):
    """Base exception for cross-record consistency violations."""

    code: str = "CONSISTENCY_ERROR"


class CircularReferenceError(ConsistencyError):
    """Reparenting a category would make it its own ancestor."""

    code: str = "CIRCULAR_REFERENCE"

    def __init__(self, category_code: str, parent_code: str):
        self.category_code = category_code
        self.parent_code = parent_code
        super().__init__("Cannot set parent: would create circular reference")


class DuplicatePrimarySupplierError(ConsistencyError):
    """More than one preferred supplier flagged as primary."""

    code: str = "DUPLICATE_PRIMARY_SUPPLIER"

    def __init__(self, material_number: str | None = None):
        self.material_number = material_number
        super().__init__("Only one primary supplier allowed")


class DuplicatePreferredSupplierError(ConsistencyError):
    """Supplier is already in the material's preferred list."""

    code: str = "DUPLICATE_PREFERRED_SUPPLIER"

    def __init__(self, supplier_id: str):
        self.supplier_id = supplier_id
        super().__init__("Supplier already in preferred list")


class DuplicateQuoteError(ConsistencyError):
    """A supplier already quoted on this quotation item."""

    code: str = "DUPLICATE_QUOTE"

    def __init__(self, item_id: str, supplier_id: str):
        self.item_id = item_id
        self.supplier_id = supplier_id
        super().__init__("Supplier has already provided a quote for this item")


class DefaultWorkflowConflictError(ConsistencyError):
    """A default workflow already exists for the document type."""

    code: str = "DEFAULT_WORKFLOW_CONFLICT"

    def __init__(self, document_type: str, existing_name: str):
        self.document_type = document_type
        self.existing_name = existing_name
        super().__init__(
            f"Only one default workflow allowed per document type: "
            f"'{existing_name}' is already default for {document_type}"
        )


class CategoryInUseError(ConsistencyError):
    """Category cannot be deleted while it has children or materials."""

    code: str = "CATEGORY_IN_USE"

    def __init__(self, message: str, category_code: str):
        self.category_code = category_code
        super().__init__(message)
