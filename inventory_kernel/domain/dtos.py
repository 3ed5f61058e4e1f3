"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable records returned across the kernel boundary.  Services and
    selectors hand these to callers; ORM rows never leave a transaction.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  ``to_dto()`` on each ORM model is the
    boundary converter and is only called from services and selectors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from inventory_kernel.domain.values import LocationRef, MovementType, Urgency
from inventory_kernel.domain.workflow import RequestStatus


@dataclass(frozen=True)
class ItemRecord:
    id: UUID
    company_id: UUID
    code: str
    name: str
    description: str | None = None
    category: str | None = None
    subcategory: str | None = None
    manufacturer: str | None = None
    model: str | None = None
    part_number: str | None = None
    unit: str = "unit"
    min_stock: int | None = None
    max_stock: int | None = None
    reorder_point: int | None = None
    unit_cost: Decimal | None = None
    average_cost: Decimal | None = None
    last_purchase_price: Decimal | None = None
    is_active: bool = True


@dataclass(frozen=True)
class StockLevel:
    """Snapshot of one StockRow."""

    item_id: UUID
    location: LocationRef
    company_id: UUID
    quantity: int
    reserved_quantity: int
    last_counted_at: datetime | None = None

    @property
    def available_quantity(self) -> int:
        return self.quantity - self.reserved_quantity


@dataclass(frozen=True)
class MovementRecord:
    id: UUID
    movement_type: MovementType
    item_id: UUID
    quantity: int
    from_location: LocationRef | None
    from_company_id: UUID | None
    to_location: LocationRef | None
    to_company_id: UUID | None
    occurred_at: datetime
    created_by_id: UUID
    unit_cost: Decimal | None = None
    total_cost: Decimal | None = None
    reason: str | None = None
    notes: str | None = None
    document_number: str | None = None
    request_id: UUID | None = None
    work_order_id: UUID | None = None

    @property
    def is_inter_company(self) -> bool:
        return (
            self.from_company_id is not None
            and self.to_company_id is not None
            and self.from_company_id != self.to_company_id
        )


@dataclass(frozen=True)
class RequestRecord:
    id: UUID
    work_order_id: UUID
    item_id: UUID
    requested_by_id: UUID
    status: RequestStatus
    urgency: Urgency
    quantity_requested: int
    quantity_approved: int | None
    quantity_dispatched: int
    quantity_received_in_transit: int
    quantity_delivered: int
    destination: LocationRef
    destination_company_id: UUID
    source: LocationRef | None = None
    source_company_id: UUID | None = None
    transit: LocationRef | None = None
    transit_company_id: UUID | None = None
    notes: str | None = None
    review_notes: str | None = None
    receipt_notes: str | None = None
    reviewed_by_id: UUID | None = None
    reviewed_at: datetime | None = None
    warehouse_delivered_at: datetime | None = None
    destination_warehouse_received_at: datetime | None = None
    received_by_id: UUID | None = None
    received_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def outstanding_quantity(self) -> int:
        """Approved quantity not yet delivered."""
        return (self.quantity_approved or 0) - self.quantity_delivered


@dataclass(frozen=True)
class Page:
    """One page of a paginated query."""

    items: tuple = ()
    total: int = 0
    offset: int = 0
    limit: int = 50

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total


@dataclass(frozen=True)
class MovementTypeCount:
    movement_type: MovementType
    count: int
    total_quantity: int


@dataclass(frozen=True)
class StockDiscrepancy:
    """A place where stock rows and the movement ledger disagree."""

    item_id: UUID
    location: LocationRef
    kind: str
    expected: int
    actual: int

    @property
    def difference(self) -> int:
        return self.actual - self.expected


@dataclass(frozen=True)
class ReconciliationReport:
    checked_rows: int
    discrepancies: tuple[StockDiscrepancy, ...] = field(default_factory=tuple)

    @property
    def is_balanced(self) -> bool:
        return not self.discrepancies
