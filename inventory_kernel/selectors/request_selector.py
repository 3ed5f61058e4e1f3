"""
Module: inventory_kernel.selectors.request_selector
Responsibility: Read-only queries over inventory requests: filtered and
    paginated listings, the pending queue, open requests by urgency, and
    per-work-order / per-requester history.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, case, select

from inventory_kernel.domain.dtos import Page, RequestRecord
from inventory_kernel.domain.values import Urgency
from inventory_kernel.domain.workflow import OPEN_REQUEST_STATUSES, RequestStatus
from inventory_kernel.models.request import InventoryRequest
from inventory_kernel.selectors.base import DEFAULT_PAGE_SIZE, BaseSelector

# CRITICAL first.
_URGENCY_RANK = case(
    {
        Urgency.CRITICAL.value: 0,
        Urgency.HIGH.value: 1,
        Urgency.NORMAL.value: 2,
        Urgency.LOW.value: 3,
    },
    value=InventoryRequest.urgency,
    else_=4,
)


@dataclass(frozen=True)
class RequestFilter:
    work_order_id: UUID | None = None
    item_id: UUID | None = None
    status: RequestStatus | None = None
    urgency: Urgency | None = None
    requested_by_id: UUID | None = None
    source_company_id: UUID | None = None
    destination_company_id: UUID | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


def _apply_filter(stmt: Select, f: RequestFilter) -> Select:
    if f.work_order_id is not None:
        stmt = stmt.where(InventoryRequest.work_order_id == f.work_order_id)
    if f.item_id is not None:
        stmt = stmt.where(InventoryRequest.item_id == f.item_id)
    if f.status is not None:
        stmt = stmt.where(InventoryRequest.status == RequestStatus(f.status).value)
    if f.urgency is not None:
        stmt = stmt.where(InventoryRequest.urgency == Urgency(f.urgency).value)
    if f.requested_by_id is not None:
        stmt = stmt.where(InventoryRequest.requested_by_id == f.requested_by_id)
    if f.source_company_id is not None:
        stmt = stmt.where(InventoryRequest.source_company_id == f.source_company_id)
    if f.destination_company_id is not None:
        stmt = stmt.where(InventoryRequest.destination_company_id == f.destination_company_id)
    if f.date_from is not None:
        stmt = stmt.where(InventoryRequest.created_at >= f.date_from)
    if f.date_to is not None:
        stmt = stmt.where(InventoryRequest.created_at <= f.date_to)
    return stmt


class RequestSelector(BaseSelector):
    def get(self, request_id: UUID) -> RequestRecord | None:
        request = self.session.get(InventoryRequest, request_id)
        return request.to_dto() if request is not None else None

    def list(
        self,
        request_filter: RequestFilter | None = None,
        *,
        offset: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Page:
        stmt = _apply_filter(select(InventoryRequest), request_filter or RequestFilter())
        stmt = stmt.order_by(InventoryRequest.created_at.desc(), InventoryRequest.id)
        return self._paginate(stmt, offset, limit)

    def pending(self, destination_company_id: UUID | None = None) -> tuple[RequestRecord, ...]:
        """The approval queue: PENDING requests, most urgent then oldest first."""
        stmt = _apply_filter(
            select(InventoryRequest),
            RequestFilter(status=RequestStatus.PENDING, destination_company_id=destination_company_id),
        ).order_by(_URGENCY_RANK, InventoryRequest.created_at, InventoryRequest.id)
        return tuple(r.to_dto() for r in self.session.execute(stmt).scalars())

    def open_by_urgency(self, urgency: Urgency) -> tuple[RequestRecord, ...]:
        """Requests of one urgency that are still PENDING, APPROVED or IN_TRANSIT."""
        stmt = (
            select(InventoryRequest)
            .where(
                InventoryRequest.urgency == Urgency(urgency).value,
                InventoryRequest.status.in_([s.value for s in OPEN_REQUEST_STATUSES]),
            )
            .order_by(InventoryRequest.created_at, InventoryRequest.id)
        )
        return tuple(r.to_dto() for r in self.session.execute(stmt).scalars())

    def by_work_order(self, work_order_id: UUID) -> tuple[RequestRecord, ...]:
        stmt = _apply_filter(
            select(InventoryRequest), RequestFilter(work_order_id=work_order_id),
        ).order_by(InventoryRequest.created_at.desc(), InventoryRequest.id)
        return tuple(r.to_dto() for r in self.session.execute(stmt).scalars())

    def by_requester(self, requested_by_id: UUID) -> tuple[RequestRecord, ...]:
        stmt = _apply_filter(
            select(InventoryRequest), RequestFilter(requested_by_id=requested_by_id),
        ).order_by(InventoryRequest.created_at.desc(), InventoryRequest.id)
        return tuple(r.to_dto() for r in self.session.execute(stmt).scalars())

    def reserving(self, item_id: UUID | None = None) -> tuple[RequestRecord, ...]:
        """Requests that currently hold stock (APPROVED, IN_TRANSIT)."""
        stmt = select(InventoryRequest).where(
            InventoryRequest.status.in_([RequestStatus.APPROVED.value, RequestStatus.IN_TRANSIT.value])
        )
        if item_id is not None:
            stmt = stmt.where(InventoryRequest.item_id == item_id)
        return tuple(r.to_dto() for r in self.session.execute(stmt.order_by(InventoryRequest.id)).scalars())
