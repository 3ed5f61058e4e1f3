"""
Module: inventory_kernel.models.stock
Responsibility: ORM model for per-item, per-location stock quantities.
Architecture position: Kernel > Models.  Inherits TrackedBase.  Mutated
    ONLY by services.stock_ledger.StockLedger.

Invariants enforced:
    - One row per (item_id, location_id, location_type)
      (uq_stock_rows_item_location).
    - quantity >= 0, reserved_quantity >= 0, reserved_quantity <= quantity
      (CHECK constraints; StockLedger checks first and raises
      InvariantViolationError before the database would).
    - version is an optimistic lock counter.  A flush that finds the row
      changed underneath it raises StaleDataError, which UnitOfWork retries.

Failure modes:
    - IntegrityError on a second row for the same item/location (two
      writers racing to create it; StockLedger handles this via savepoint).
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase
from inventory_kernel.domain.values import LocationRef, LocationType


class StockRow(TrackedBase):
    """Quantity of one item held at one location."""

    __tablename__ = "stock_rows"

    __table_args__ = (
        UniqueConstraint(
            "item_id", "location_id", "location_type",
            name="uq_stock_rows_item_location",
        ),
        CheckConstraint("quantity >= 0", name="ck_stock_rows_quantity_non_negative"),
        CheckConstraint("reserved_quantity >= 0", name="ck_stock_rows_reserved_non_negative"),
        CheckConstraint("reserved_quantity <= quantity", name="ck_stock_rows_reserved_within_quantity"),
        Index("idx_stock_rows_location", "location_id", "location_type"),
        Index("idx_stock_rows_company", "company_id"),
    )

    item_id: Mapped[UUID] = mapped_column(ForeignKey("inventory_items.id"))
    location_id: Mapped[UUID] = mapped_column()
    location_type: Mapped[str] = mapped_column(String(20))
    company_id: Mapped[UUID] = mapped_column()

    quantity: Mapped[int] = mapped_column(default=0)
    reserved_quantity: Mapped[int] = mapped_column(default=0)
    version: Mapped[int] = mapped_column(nullable=False)

    last_counted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_counted_by_id: Mapped[UUID | None] = mapped_column(nullable=True)

    __mapper_args__ = {"version_id_col": version}

    @property
    def available_quantity(self) -> int:
        return self.quantity - self.reserved_quantity

    @property
    def location(self) -> LocationRef:
        return LocationRef(self.location_id, LocationType(self.location_type))

    def to_dto(self):
        """Convert ORM model to frozen StockLevel DTO."""
        from inventory_kernel.domain.dtos import StockLevel

        return StockLevel(
            item_id=self.item_id,
            location=self.location,
            company_id=self.company_id,
            quantity=self.quantity,
            reserved_quantity=self.reserved_quantity,
            last_counted_at=self.last_counted_at,
        )

    def __repr__(self) -> str:
        return (
            f"<StockRow item={self.item_id} at {self.location_type}:{self.location_id} "
            f"qty={self.quantity} reserved={self.reserved_quantity}>"
        )
