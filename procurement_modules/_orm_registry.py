"""
Module ORM Registry (``procurement_modules._orm_registry``).

Responsibility
--------------
Ensure all module-level SQLAlchemy ORM models are imported so that
``Base.metadata`` contains their table definitions before tables are
created.  Module tables reference each other (purchase orders point at
quotations, receipts at purchase order lines), so every module must be
registered before ``create_all()`` runs.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from sibling
``procurement_modules`` packages and from ``procurement_kernel.db.engine``
(allowed: modules -> kernel).  MUST NOT be imported by
``procurement_kernel``.

Usage
-----
Scripts and ``tests/conftest.py`` call ``create_all_tables()``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``procurement_modules.*.orm`` module.

    Idempotent -- repeated calls are harmless.
    """
    # Kernel tables first (audit log, outbox, sequence counters)
    import procurement_kernel.models  # noqa: F401
    import procurement_kernel.services.sequence_service  # noqa: F401
    # fmt: off
    import procurement_modules.suppliers.orm  # noqa: F401
    import procurement_modules.categories.orm  # noqa: F401
    import procurement_modules.materials.orm  # noqa: F401
    import procurement_modules.approvals.orm  # noqa: F401
    import procurement_modules.quotations.orm  # noqa: F401
    import procurement_modules.purchase_orders.orm  # noqa: F401
    import procurement_modules.receipts.orm  # noqa: F401
    # fmt: on


def create_all_tables() -> None:
    """Create kernel + all module ORM tables.

    Preconditions:
        Engine must be initialized via ``init_engine_from_url()``.
    """
    from procurement_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables()
