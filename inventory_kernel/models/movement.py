"""
Module: inventory_kernel.models.movement
Responsibility: ORM model for the append-only stock movement ledger.
Architecture position: Kernel > Models.  Inherits TrackedBase.  Written
    ONLY by services.movement_recorder.MovementRecorder.

Invariants enforced:
    - Append-only: no UPDATE (other than audit metadata) and no DELETE
      (db/immutability.py).
    - quantity >= 0.  Zero is only written for a COUNT_ADJUSTMENT that
      confirms a physical count without change.
    - Signed convention: a movement adds ``quantity`` to its ``to`` side and
      subtracts it from its ``from`` side.  For every (item, location) the
      signed sum of movements equals StockRow.quantity.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase
from inventory_kernel.domain.values import LocationRef, LocationType, MovementType


class StockMovement(TrackedBase):
    """One immutable stock movement."""

    __tablename__ = "inventory_movements"

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_inventory_movements_quantity_non_negative"),
        CheckConstraint(
            "from_location_id IS NOT NULL OR to_location_id IS NOT NULL",
            name="ck_inventory_movements_has_side",
        ),
        Index("idx_inventory_movements_item", "item_id"),
        Index("idx_inventory_movements_type", "movement_type"),
        Index("idx_inventory_movements_from", "from_location_id", "from_location_type"),
        Index("idx_inventory_movements_to", "to_location_id", "to_location_type"),
        Index("idx_inventory_movements_request", "request_id"),
        Index("idx_inventory_movements_work_order", "work_order_id"),
        Index("idx_inventory_movements_occurred", "occurred_at"),
    )

    movement_type: Mapped[str] = mapped_column(String(30))
    item_id: Mapped[UUID] = mapped_column(ForeignKey("inventory_items.id"))
    quantity: Mapped[int] = mapped_column()

    from_location_id: Mapped[UUID | None] = mapped_column(nullable=True)
    from_location_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    from_company_id: Mapped[UUID | None] = mapped_column(nullable=True)

    to_location_id: Mapped[UUID | None] = mapped_column(nullable=True)
    to_location_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    to_company_id: Mapped[UUID | None] = mapped_column(nullable=True)

    unit_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    total_cost: Mapped[Decimal | None] = mapped_column(nullable=True)

    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    document_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    request_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("inventory_requests.id"), nullable=True,
    )
    work_order_id: Mapped[UUID | None] = mapped_column(nullable=True)

    occurred_at: Mapped[datetime] = mapped_column()

    @property
    def from_location(self) -> LocationRef | None:
        if self.from_location_id is None:
            return None
        return LocationRef(self.from_location_id, LocationType(self.from_location_type))

    @property
    def to_location(self) -> LocationRef | None:
        if self.to_location_id is None:
            return None
        return LocationRef(self.to_location_id, LocationType(self.to_location_type))

    def signed_quantity_at(self, location: LocationRef) -> int:
        """Effect of this movement on ``location``'s quantity."""
        delta = 0
        if self.to_location == location:
            delta += self.quantity
        if self.from_location == location:
            delta -= self.quantity
        return delta

    def to_dto(self):
        """Convert ORM model to frozen MovementRecord DTO."""
        from inventory_kernel.domain.dtos import MovementRecord

        return MovementRecord(
            id=self.id,
            movement_type=MovementType(self.movement_type),
            item_id=self.item_id,
            quantity=self.quantity,
            from_location=self.from_location,
            from_company_id=self.from_company_id,
            to_location=self.to_location,
            to_company_id=self.to_company_id,
            unit_cost=self.unit_cost,
            total_cost=self.total_cost,
            reason=self.reason,
            notes=self.notes,
            document_number=self.document_number,
            request_id=self.request_id,
            work_order_id=self.work_order_id,
            occurred_at=self.occurred_at,
            created_by_id=self.created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<StockMovement {self.movement_type} item={self.item_id} qty={self.quantity} "
            f"{self.from_location_type}:{self.from_location_id} -> "
            f"{self.to_location_type}:{self.to_location_id}>"
        )
