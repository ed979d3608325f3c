"""
Module: procurement_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID primary key convention, the type annotation map for consistent
    column types, the TrackedBase mixin for audit stamps, and the
    SoftDeleteMixin that backs the Active/Removed document lifecycle.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  ALL model files import from here.  This module MUST NOT import from
    models/, services/, selectors/, or outer layers (domain/lifecycle is pure).

Invariants enforced:
    - UUID primary keys: every model inherits a uuid4-generated primary key.
    - Decimal precision: Python Decimal maps to Numeric(38, 9).  Quantities
      and money are NEVER floats.
    - Audit stamps: TrackedBase provides created_at, updated_at,
      created_by_id and updated_by_id, which every client-facing view exposes.
    - Documents are never hard-deleted: SoftDeleteMixin flips ``removed``
      and stamps who/when.

Failure modes:
    - IntegrityError on duplicate UUID (protected by PK constraint).
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, Boolean, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from procurement_kernel.domain.lifecycle import Active, Lifecycle, Removed


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Contract:
        Transparently converts between Python UUID objects and their 36-character
        string representation.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - Decimal maps to Numeric(38, 9).
        - datetime maps to DateTime(timezone=True).
        - int maps to BigInteger -- safe for counters.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamp and actor tracking.

    Guarantees:
        - created_at is set on INSERT and never changes.
        - updated_at auto-updates on every UPDATE.
        - created_by_id is required -- every document has a creator.
        - updated_by_id is nullable (unset until the first modification).
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    updated_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )


class SoftDeleteMixin:
    """
    Columns and accessors for the Active/Removed document lifecycle.

    Contract:
        ``removed`` is the only column selectors filter on.  Code outside
        selectors reads ``lifecycle`` and mutates through ``mark_removed`` /
        ``mark_restored``; it never writes the columns directly.
    """

    removed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    removed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    removed_by_id: Mapped[PyUUID | None] = mapped_column(UUIDString(), nullable=True)

    @property
    def lifecycle(self) -> Lifecycle:
        if self.removed:
            return Removed(at=self.removed_at, by=self.removed_by_id)
        return Active()

    def mark_removed(self, actor_id: PyUUID, at: datetime) -> None:
        self.removed = True
        self.removed_at = at
        self.removed_by_id = actor_id

    def mark_restored(self) -> None:
        self.removed = False
        self.removed_at = None
        self.removed_by_id = None


# Re-export UUID for convenience
UUID = PyUUID
