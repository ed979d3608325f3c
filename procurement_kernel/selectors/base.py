"""
Module: procurement_kernel.selectors.base
Responsibility: Base classes for read-side query access.  ``LiveRecordSelector``
    is the single place that hides soft-deleted documents: every normal read
    of a document type goes through it, so "removed documents are invisible"
    holds without per-query filters scattered through services.
Architecture position: Kernel > Selectors.  May import from db/ and
    exceptions.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only: selectors never add, delete, flush, or commit.
    - ``get()`` / ``require()`` / ``live_query()`` exclude rows whose
      ``removed`` flag is set.  Only ``get_including_removed()`` sees them.

Failure modes:
    - EntityNotFoundError from ``require()`` for missing or removed rows.
"""

from abc import ABC
from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from procurement_kernel.db.base import Base
from procurement_kernel.exceptions import EntityNotFoundError

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller and perform read-only
        queries.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        self.session = session


class LiveRecordSelector(BaseSelector, Generic[ModelType]):
    """
    Reads over one soft-deletable document model.

    Subclasses set ``model`` and ``entity_type`` (the name used in
    ``<Entity> not found`` messages).
    """

    model: type[ModelType]
    entity_type: str

    def live_query(self) -> Select:
        return select(self.model).where(self.model.removed.is_(False))

    def get(self, record_id: UUID) -> ModelType | None:
        row = self.session.get(self.model, record_id)
        if row is None or row.removed:
            return None
        return row

    def require(self, record_id: UUID) -> ModelType:
        row = self.get(record_id)
        if row is None:
            raise EntityNotFoundError(self.entity_type, record_id)
        return row

    def get_including_removed(self, record_id: UUID) -> ModelType | None:
        return self.session.get(self.model, record_id)

    def find_one(self, **criteria: Any) -> ModelType | None:
        stmt = self.live_query().filter_by(**criteria)
        return self.session.execute(stmt).scalars().first()

    def list(self, stmt: Select | None = None) -> list[ModelType]:
        return list(self.session.execute(stmt if stmt is not None else self.live_query()).scalars())

    def count(self, *criteria: Any) -> int:
        stmt = (
            select(func.count())
            .select_from(self.model)
            .where(self.model.removed.is_(False), *criteria)
        )
        return int(self.session.execute(stmt).scalar_one())

    def count_by(self, column: Any) -> dict[Any, int]:
        stmt = (
            select(column, func.count())
            .where(self.model.removed.is_(False))
            .group_by(column)
        )
        return {key: int(n) for key, n in self.session.execute(stmt).all()}
