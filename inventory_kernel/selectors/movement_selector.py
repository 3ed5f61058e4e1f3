"""
Module: inventory_kernel.selectors.movement_selector
Responsibility: Read-only queries over the movement ledger: filtered and
    paginated listings, per-item / per-work-order / per-request history,
    inter-company transfers, per-type statistics, IN/OUT value totals, and
    the net quantity per (item, location) used by reconciliation.

Invariants enforced:
    - Read-only; DTOs only.
    - Listings are ordered newest first (occurred_at DESC, id) so pagination
      is stable.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Select, and_, func, or_, select

from inventory_kernel.domain.dtos import MovementRecord, MovementTypeCount, Page
from inventory_kernel.domain.values import LocationRef, LocationType, MovementType
from inventory_kernel.models.movement import StockMovement
from inventory_kernel.selectors.base import DEFAULT_PAGE_SIZE, BaseSelector


@dataclass(frozen=True)
class MovementFilter:
    """All fields optional; set fields are ANDed together.

    ``location`` and ``company_id`` match either side of a movement.
    """

    movement_type: MovementType | None = None
    item_id: UUID | None = None
    location: LocationRef | None = None
    company_id: UUID | None = None
    work_order_id: UUID | None = None
    request_id: UUID | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


def _apply_filter(stmt: Select, f: MovementFilter) -> Select:
    if f.movement_type is not None:
        stmt = stmt.where(StockMovement.movement_type == MovementType(f.movement_type).value)
    if f.item_id is not None:
        stmt = stmt.where(StockMovement.item_id == f.item_id)
    if f.location is not None:
        loc_id, loc_type = f.location.location_id, f.location.location_type.value
        stmt = stmt.where(
            or_(
                and_(StockMovement.from_location_id == loc_id, StockMovement.from_location_type == loc_type),
                and_(StockMovement.to_location_id == loc_id, StockMovement.to_location_type == loc_type),
            )
        )
    if f.company_id is not None:
        stmt = stmt.where(
            or_(StockMovement.from_company_id == f.company_id, StockMovement.to_company_id == f.company_id)
        )
    if f.work_order_id is not None:
        stmt = stmt.where(StockMovement.work_order_id == f.work_order_id)
    if f.request_id is not None:
        stmt = stmt.where(StockMovement.request_id == f.request_id)
    if f.date_from is not None:
        stmt = stmt.where(StockMovement.occurred_at >= f.date_from)
    if f.date_to is not None:
        stmt = stmt.where(StockMovement.occurred_at <= f.date_to)
    return stmt


_NEWEST_FIRST = (StockMovement.occurred_at.desc(), StockMovement.id)


class MovementSelector(BaseSelector):
    def list(
        self,
        movement_filter: MovementFilter | None = None,
        *,
        offset: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Page:
        stmt = _apply_filter(select(StockMovement), movement_filter or MovementFilter())
        return self._paginate(stmt.order_by(*_NEWEST_FIRST), offset, limit)

    def _all(self, movement_filter: MovementFilter) -> tuple[MovementRecord, ...]:
        stmt = _apply_filter(select(StockMovement), movement_filter).order_by(*_NEWEST_FIRST)
        return tuple(m.to_dto() for m in self.session.execute(stmt).scalars())

    def by_item(self, item_id: UUID) -> tuple[MovementRecord, ...]:
        return self._all(MovementFilter(item_id=item_id))

    def by_work_order(self, work_order_id: UUID) -> tuple[MovementRecord, ...]:
        return self._all(MovementFilter(work_order_id=work_order_id))

    def by_request(self, request_id: UUID) -> tuple[MovementRecord, ...]:
        return self._all(MovementFilter(request_id=request_id))

    def inter_company_transfers(
        self,
        company_id: UUID | None = None,
        *,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> tuple[MovementRecord, ...]:
        """Movements whose two sides belong to different companies."""
        stmt = _apply_filter(
            select(StockMovement),
            MovementFilter(company_id=company_id, date_from=date_from, date_to=date_to),
        ).where(
            StockMovement.from_company_id.is_not(None),
            StockMovement.to_company_id.is_not(None),
            StockMovement.from_company_id != StockMovement.to_company_id,
        )
        return tuple(m.to_dto() for m in self.session.execute(stmt.order_by(*_NEWEST_FIRST)).scalars())

    def counts_by_type(
        self, movement_filter: MovementFilter | None = None,
    ) -> tuple[MovementTypeCount, ...]:
        stmt = _apply_filter(
            select(
                StockMovement.movement_type,
                func.count(StockMovement.id),
                func.coalesce(func.sum(StockMovement.quantity), 0),
            ),
            movement_filter or MovementFilter(),
        ).group_by(StockMovement.movement_type).order_by(StockMovement.movement_type)
        return tuple(
            MovementTypeCount(MovementType(mtype), int(count), int(qty))
            for mtype, count, qty in self.session.execute(stmt)
        )

    def total_value(
        self, movement_filter: MovementFilter | None = None,
    ) -> dict[MovementType, Decimal]:
        """Sum of total_cost for IN and OUT movements."""
        base = movement_filter or MovementFilter()
        totals: dict[MovementType, Decimal] = {}
        for mtype in (MovementType.IN, MovementType.OUT):
            f = MovementFilter(**{**base.__dict__, "movement_type": mtype})
            stmt = _apply_filter(
                select(func.coalesce(func.sum(StockMovement.total_cost), 0)), f,
            )
            totals[mtype] = Decimal(str(self.session.execute(stmt).scalar_one()))
        return totals

    def net_quantities(self, item_id: UUID | None = None) -> dict[tuple[UUID, LocationRef], int]:
        """Signed movement sum per (item, location): to-side adds, from-side subtracts."""
        net: dict[tuple[UUID, LocationRef], int] = {}

        inbound = select(
            StockMovement.item_id,
            StockMovement.to_location_id,
            StockMovement.to_location_type,
            func.sum(StockMovement.quantity),
        ).where(StockMovement.to_location_id.is_not(None))
        outbound = select(
            StockMovement.item_id,
            StockMovement.from_location_id,
            StockMovement.from_location_type,
            func.sum(StockMovement.quantity),
        ).where(StockMovement.from_location_id.is_not(None))
        if item_id is not None:
            inbound = inbound.where(StockMovement.item_id == item_id)
            outbound = outbound.where(StockMovement.item_id == item_id)

        inbound = inbound.group_by(
            StockMovement.item_id, StockMovement.to_location_id, StockMovement.to_location_type,
        )
        outbound = outbound.group_by(
            StockMovement.item_id, StockMovement.from_location_id, StockMovement.from_location_type,
        )

        for sign, stmt in ((1, inbound), (-1, outbound)):
            for row_item, loc_id, loc_type, total in self.session.execute(stmt):
                key = (row_item, LocationRef(loc_id, LocationType(loc_type)))
                net[key] = net.get(key, 0) + sign * int(total)
        return net
