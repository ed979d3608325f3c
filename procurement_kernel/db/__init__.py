"""Database layer: declarative base, type decorators, engine/session management."""

from procurement_kernel.db.base import Base, SoftDeleteMixin, TrackedBase, UUIDString
from procurement_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    reset_engine,
    session_scope,
)

__all__ = [
    "Base",
    "SoftDeleteMixin",
    "TrackedBase",
    "UUIDString",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session",
    "init_engine_from_url",
    "reset_engine",
    "session_scope",
]
