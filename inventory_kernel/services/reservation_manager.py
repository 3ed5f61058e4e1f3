"""
ReservationManager -- turns approval decisions into quantity holds.

Responsibility:
    Keeps a request's holds and the StockRow ``reserved_quantity`` values in
    step.  Approval reserves at the source, realizing the first hop of a
    two-hop route moves the hold to the intermediate warehouse, and
    cancellation releases whatever the request still holds.

Architecture position:
    Kernel > Services -- stateless coordinator over StockLedger.  Joins the
    caller's transaction.

Invariants enforced:
    RESERVATION_ACCOUNTING -- after every call, the request's
    ``reservation_holds()`` equals what this manager has put on the ledger
    for it.
"""

from __future__ import annotations

from uuid import UUID

from inventory_kernel.db.unit_of_work import UnitOfWork
from inventory_kernel.domain.dtos import StockLevel
from inventory_kernel.domain.values import LocationRef
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.request import InventoryRequest
from inventory_kernel.services.stock_ledger import StockLedger

logger = get_logger("services.reservation_manager")


class ReservationManager:
    def __init__(self, uow: UnitOfWork, ledger: StockLedger):
        self._uow = uow
        self._ledger = ledger

    def reserve_for_approval(
        self, request: InventoryRequest, quantity: int, *, actor_id: UUID,
    ) -> StockLevel:
        """Hold the approved quantity at the request's source.

        The unapproved remainder of the request is never reserved.
        """
        with self._uow.begin():
            level = self._ledger.reserve(
                request.item_id, request.source, quantity, actor_id=actor_id,
            )
            logger.info(
                "reservation_created",
                extra={
                    "request_id": str(request.id),
                    "location": str(request.source),
                    "quantity": quantity,
                },
            )
            return level

    def hold_at_transit(
        self, request: InventoryRequest, quantity: int, *, actor_id: UUID,
    ) -> StockLevel:
        """Re-reserve goods that just landed at the intermediate warehouse.

        The source hold was consumed by the hop-1 transfer.
        """
        with self._uow.begin():
            level = self._ledger.reserve(
                request.item_id, request.transit, quantity, actor_id=actor_id,
            )
            logger.info(
                "reservation_moved_to_transit",
                extra={
                    "request_id": str(request.id),
                    "location": str(request.transit),
                    "quantity": quantity,
                },
            )
            return level

    def release_all(
        self, request: InventoryRequest, *, actor_id: UUID,
    ) -> list[tuple[LocationRef, int]]:
        """Release every hold the request has.  Returns what was released."""
        holds = request.reservation_holds()
        with self._uow.begin():
            for location, quantity in sorted(holds, key=lambda h: h[0].sort_key()):
                self._ledger.release(request.item_id, location, quantity, actor_id=actor_id)
            if holds:
                logger.info(
                    "reservation_released",
                    extra={
                        "request_id": str(request.id),
                        "holds": [(str(loc), qty) for loc, qty in holds],
                    },
                )
        return holds
