"""
Declarative bases and column types shared by every ledger table.

Column conventions come from ``Base.type_annotation_map``, so a model only
writes ``Mapped[Decimal]`` or ``Mapped[datetime]`` and gets the right type:

    Decimal   -> Numeric(38, 9)      unit and total costs, never float
    int       -> BigInteger          quantities are whole units
    datetime  -> UTCDateTime         always tz-aware UTC after a load
    UUID      -> UUIDString          String(36) on every backend

This module sits below everything else in the kernel and imports nothing
from it.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

# Columns on TrackedBase that may change even on append-only rows.
AUDIT_COLUMNS: frozenset[str] = frozenset({"updated_at", "updated_by_id"})


class UUIDString(TypeDecorator):
    """UUIDs stored as their 36-character text form."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else PyUUID(value)


class UTCDateTime(TypeDecorator):
    # SQLite hands back naive values; treat them as the UTC they were stored as.
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        # SQLite drops the offset when storing, so normalize before it does.
        return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9, asdecimal=True),
        int: BigInteger,
        datetime: UTCDateTime(),
        PyUUID: UUIDString(),
    }

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Adds who/when columns to a table.

    ``created_at`` and ``created_by_id`` are written once.  The ``updated_*``
    pair moves on every write and is listed in AUDIT_COLUMNS, which the
    immutability guards ignore when deciding whether a protected row was
    modified.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())
    created_by_id: Mapped[PyUUID] = mapped_column()
    updated_by_id: Mapped[PyUUID | None] = mapped_column()


UUID = PyUUID
