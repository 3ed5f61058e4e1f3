"""Database layer: engines, column types, unit of work, immutability guards."""

from inventory_kernel.db.base import UUID, Base, TrackedBase, UTCDateTime, UUIDString
from inventory_kernel.db.engine import (
    build_engine,
    build_session_factory,
    create_tables,
    drop_tables,
    session_scope,
)
from inventory_kernel.db.unit_of_work import UnitOfWork

__all__ = [
    "build_engine",
    "build_session_factory",
    "session_scope",
    "create_tables",
    "drop_tables",
    "Base",
    "TrackedBase",
    "UTCDateTime",
    "UUIDString",
    "UUID",
    "UnitOfWork",
]
