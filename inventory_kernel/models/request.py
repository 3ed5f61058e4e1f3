"""
Module: inventory_kernel.models.request
Responsibility: ORM model for inventory requests -- a technician's ask for
    a quantity of an item, delivered to a location for a work order.
Architecture position: Kernel > Models.  Inherits TrackedBase.  Status is
    changed ONLY by services.request_workflow.RequestWorkflow, along the
    table in domain.workflow.

Invariants enforced:
    - 0 <= quantity_delivered <= quantity_approved <= quantity_requested.
    - quantity_received_in_transit <= quantity_dispatched <= quantity_approved.
    - Requests past PENDING are never deleted; terminal requests are never
      modified (db/immutability.py).

Quantity checkpoints:
    quantity_approved            fixed at approval; the source is reserved for it
    quantity_dispatched          handed over at the source warehouse (no stock moves)
    quantity_received_in_transit landed at the intermediate warehouse (hop 1 realized)
    quantity_delivered           confirmed at the destination (final hop realized)
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase
from inventory_kernel.domain.values import LocationRef, LocationType, Urgency
from inventory_kernel.domain.workflow import RESERVING_STATUSES, RequestStatus


class InventoryRequest(TrackedBase):
    """A request for stock against a work order."""

    __tablename__ = "inventory_requests"

    __table_args__ = (
        CheckConstraint("quantity_requested > 0", name="ck_inventory_requests_requested_positive"),
        CheckConstraint(
            "quantity_approved IS NULL OR "
            "(quantity_approved > 0 AND quantity_approved <= quantity_requested)",
            name="ck_inventory_requests_approved_bounds",
        ),
        CheckConstraint("quantity_delivered >= 0", name="ck_inventory_requests_delivered_non_negative"),
        CheckConstraint(
            "quantity_approved IS NULL OR quantity_delivered <= quantity_approved",
            name="ck_inventory_requests_delivered_within_approved",
        ),
        CheckConstraint(
            "quantity_received_in_transit <= quantity_dispatched",
            name="ck_inventory_requests_transit_within_dispatched",
        ),
        Index("idx_inventory_requests_status", "status"),
        Index("idx_inventory_requests_work_order", "work_order_id"),
        Index("idx_inventory_requests_requested_by", "requested_by_id"),
        Index("idx_inventory_requests_destination_company", "destination_company_id"),
        Index("idx_inventory_requests_source_company", "source_company_id"),
        Index("idx_inventory_requests_urgency", "urgency"),
    )

    work_order_id: Mapped[UUID] = mapped_column()
    item_id: Mapped[UUID] = mapped_column(ForeignKey("inventory_items.id"))
    requested_by_id: Mapped[UUID] = mapped_column()

    quantity_requested: Mapped[int] = mapped_column()
    quantity_approved: Mapped[int | None] = mapped_column(nullable=True)
    quantity_dispatched: Mapped[int] = mapped_column(default=0)
    quantity_received_in_transit: Mapped[int] = mapped_column(default=0)
    quantity_delivered: Mapped[int] = mapped_column(default=0)

    destination_location_id: Mapped[UUID] = mapped_column()
    destination_location_type: Mapped[str] = mapped_column(String(20))
    destination_company_id: Mapped[UUID] = mapped_column()

    source_location_id: Mapped[UUID | None] = mapped_column(nullable=True)
    source_location_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    source_company_id: Mapped[UUID | None] = mapped_column(nullable=True)

    transit_location_id: Mapped[UUID | None] = mapped_column(nullable=True)
    transit_location_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    transit_company_id: Mapped[UUID | None] = mapped_column(nullable=True)

    urgency: Mapped[str] = mapped_column(String(20), default=Urgency.NORMAL.value)
    status: Mapped[str] = mapped_column(String(20), default=RequestStatus.PENDING.value)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    receipt_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Checkpoints
    reviewed_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    dispatched_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    warehouse_delivered_at: Mapped[datetime | None] = mapped_column(nullable=True)
    transit_received_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    destination_warehouse_received_at: Mapped[datetime | None] = mapped_column(nullable=True)
    received_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    received_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    @property
    def request_status(self) -> RequestStatus:
        return RequestStatus(self.status)

    @property
    def destination(self) -> LocationRef:
        return LocationRef(
            self.destination_location_id,
            LocationType(self.destination_location_type),
        )

    @property
    def source(self) -> LocationRef | None:
        if self.source_location_id is None:
            return None
        return LocationRef(self.source_location_id, LocationType(self.source_location_type))

    @property
    def transit(self) -> LocationRef | None:
        if self.transit_location_id is None:
            return None
        return LocationRef(self.transit_location_id, LocationType(self.transit_location_type))

    @property
    def is_two_hop(self) -> bool:
        return self.transit_location_id is not None

    def reservation_holds(self) -> list[tuple[LocationRef, int]]:
        """Quantities this request holds reserved, per location.

        Non-reserving statuses hold nothing.  Zero holds are omitted.
        """
        if self.request_status not in RESERVING_STATUSES:
            return []
        approved = self.quantity_approved or 0
        holds: list[tuple[LocationRef, int]] = []
        if self.is_two_hop:
            at_source = approved - self.quantity_received_in_transit
            at_transit = self.quantity_received_in_transit - self.quantity_delivered
            if at_source:
                holds.append((self.source, at_source))
            if at_transit:
                holds.append((self.transit, at_transit))
        else:
            at_source = approved - self.quantity_delivered
            if at_source:
                holds.append((self.source, at_source))
        return holds

    def to_dto(self):
        """Convert ORM model to frozen RequestRecord DTO."""
        from inventory_kernel.domain.dtos import RequestRecord

        return RequestRecord(
            id=self.id,
            work_order_id=self.work_order_id,
            item_id=self.item_id,
            requested_by_id=self.requested_by_id,
            status=self.request_status,
            urgency=Urgency(self.urgency),
            quantity_requested=self.quantity_requested,
            quantity_approved=self.quantity_approved,
            quantity_dispatched=self.quantity_dispatched,
            quantity_received_in_transit=self.quantity_received_in_transit,
            quantity_delivered=self.quantity_delivered,
            destination=self.destination,
            destination_company_id=self.destination_company_id,
            source=self.source,
            source_company_id=self.source_company_id,
            transit=self.transit,
            transit_company_id=self.transit_company_id,
            notes=self.notes,
            review_notes=self.review_notes,
            receipt_notes=self.receipt_notes,
            reviewed_by_id=self.reviewed_by_id,
            reviewed_at=self.reviewed_at,
            warehouse_delivered_at=self.warehouse_delivered_at,
            destination_warehouse_received_at=self.destination_warehouse_received_at,
            received_by_id=self.received_by_id,
            received_at=self.received_at,
            cancelled_at=self.cancelled_at,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return (
            f"<InventoryRequest {self.id} item={self.item_id} "
            f"status={self.status} delivered={self.quantity_delivered}/{self.quantity_approved}>"
        )
