"""
Module: inventory_kernel.selectors.stock_selector
Responsibility: Read-only stock levels by item, by location, and for one
    (item, location) pair.

Failure modes:
    - Returns None or an empty tuple on absence of data; never raises.
"""

from uuid import UUID

from sqlalchemy import select

from inventory_kernel.domain.dtos import StockLevel
from inventory_kernel.domain.values import LocationRef
from inventory_kernel.models.stock import StockRow
from inventory_kernel.selectors.base import BaseSelector


class StockSelector(BaseSelector):
    def level(self, item_id: UUID, location: LocationRef) -> StockLevel | None:
        row = self.session.execute(
            select(StockRow).where(
                StockRow.item_id == item_id,
                StockRow.location_id == location.location_id,
                StockRow.location_type == location.location_type.value,
            )
        ).scalar_one_or_none()
        return row.to_dto() if row is not None else None

    def by_item(self, item_id: UUID, *, include_empty: bool = False) -> tuple[StockLevel, ...]:
        """Stock of one item across every location, largest first."""
        stmt = select(StockRow).where(StockRow.item_id == item_id)
        if not include_empty:
            stmt = stmt.where(StockRow.quantity > 0)
        stmt = stmt.order_by(StockRow.quantity.desc(), StockRow.location_id)
        return tuple(row.to_dto() for row in self.session.execute(stmt).scalars())

    def by_location(self, location: LocationRef, *, include_empty: bool = False) -> tuple[StockLevel, ...]:
        stmt = select(StockRow).where(
            StockRow.location_id == location.location_id,
            StockRow.location_type == location.location_type.value,
        )
        if not include_empty:
            stmt = stmt.where(StockRow.quantity > 0)
        stmt = stmt.order_by(StockRow.item_id)
        return tuple(row.to_dto() for row in self.session.execute(stmt).scalars())

    def by_company(self, company_id: UUID) -> tuple[StockLevel, ...]:
        stmt = (
            select(StockRow)
            .where(StockRow.company_id == company_id, StockRow.quantity > 0)
            .order_by(StockRow.item_id, StockRow.location_type, StockRow.location_id)
        )
        return tuple(row.to_dto() for row in self.session.execute(stmt).scalars())
