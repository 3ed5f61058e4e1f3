"""
TransferRouter -- resolves locations, plans routes, and realizes hops.

Responsibility:
    Bridges the pure routing rules (domain.routing) and the ledger.  Resolves
    LocationRefs through the LocationDirectory, plans and validates routes,
    and realizes a hop as exactly one StockLedger.transfer plus exactly one
    movement.  Also performs the manual movements that are not part of a
    request: unreserved transfers, returns to a warehouse, and damage
    write-offs.

Architecture position:
    Kernel > Services -- depends on StockLedger, MovementRecorder and the
    LocationDirectory collaborator.

Invariants enforced:
    CONSERVATION -- every quantity change made here is paired with one
    movement in the same transaction.
    Route legality is checked before any stock is touched.

Failure modes:
    - LocationNotFoundError / InactiveLocationError from resolve().
    - CrossCompanyRoutingError / InvalidRouteError from plan().
    - InsufficientStockError / InvariantViolationError from the ledger.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from inventory_kernel.db.unit_of_work import UnitOfWork
from inventory_kernel.domain.authority import LocationDirectory
from inventory_kernel.domain.dtos import MovementRecord
from inventory_kernel.domain.routing import Hop, Route, plan_route, validate_chain
from inventory_kernel.domain.values import LocationInfo, LocationRef, MovementType
from inventory_kernel.exceptions import (
    InactiveLocationError,
    InvalidRouteError,
    LocationNotFoundError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.services.movement_recorder import MovementRecorder
from inventory_kernel.services.stock_ledger import StockLedger

logger = get_logger("services.transfer_router")


class TransferRouter:
    def __init__(
        self,
        uow: UnitOfWork,
        ledger: StockLedger,
        recorder: MovementRecorder,
        locations: LocationDirectory,
    ):
        self._uow = uow
        self._ledger = ledger
        self._recorder = recorder
        self._locations = locations

    def resolve(self, ref: LocationRef, *, require_active: bool = True) -> LocationInfo:
        info = self._locations.resolve(ref)
        if info is None:
            raise LocationNotFoundError(ref.location_id, ref.location_type.value)
        if require_active and not info.is_active:
            raise InactiveLocationError(ref.location_id, ref.location_type.value)
        return info

    def plan(
        self,
        source: LocationRef,
        destination: LocationRef,
        transit: LocationRef | None = None,
    ) -> Route:
        """Resolve the endpoints and validate the hop chain.  Pure read."""
        source_info = self.resolve(source)
        destination_info = self.resolve(destination)
        transit_info = self.resolve(transit) if transit is not None else None
        route = plan_route(source_info, destination_info, transit_info)
        logger.debug(
            "route_planned",
            extra={
                "source": str(source),
                "destination": str(destination),
                "transit": str(transit) if transit else None,
                "hops": len(route.hops),
            },
        )
        return route

    def realize_hop(
        self,
        hop: Hop,
        *,
        item_id: UUID,
        quantity: int,
        actor_id: UUID,
        consume_reservation: bool = True,
        unit_cost: Decimal | None = None,
        request_id: UUID | None = None,
        work_order_id: UUID | None = None,
        reason: str | None = None,
        notes: str | None = None,
    ) -> MovementRecord:
        """One ledger transfer plus one movement, atomically."""
        with self._uow.begin():
            self._ledger.transfer(
                item_id,
                hop.from_location,
                hop.to_location,
                quantity,
                to_company_id=hop.to_company_id,
                actor_id=actor_id,
                consume_reservation=consume_reservation,
            )
            movement = self._recorder.record(
                movement_type=hop.movement_type,
                item_id=item_id,
                quantity=quantity,
                actor_id=actor_id,
                from_location=hop.from_location,
                from_company_id=hop.from_company_id,
                to_location=hop.to_location,
                to_company_id=hop.to_company_id,
                unit_cost=unit_cost,
                request_id=request_id,
                work_order_id=work_order_id,
                reason=reason,
                notes=notes,
            )
            logger.info(
                "hop_realized",
                extra={
                    "movement_type": hop.movement_type.value,
                    "item_id": str(item_id),
                    "from_location": str(hop.from_location),
                    "to_location": str(hop.to_location),
                    "quantity": quantity,
                    "cross_company": hop.crosses_company,
                    "request_id": str(request_id) if request_id else None,
                },
            )
            return movement

    def transfer_stock(
        self,
        item_id: UUID,
        from_location: LocationRef,
        to_location: LocationRef,
        quantity: int,
        *,
        actor_id: UUID,
        unit_cost: Decimal | None = None,
        reason: str | None = None,
        notes: str | None = None,
        document_number: str | None = None,
    ) -> MovementRecord:
        """Manual transfer drawn from available stock.  May cross companies."""
        source = self.resolve(from_location)
        destination = self.resolve(to_location)
        if source.ref == destination.ref:
            raise InvalidRouteError("source and destination are the same location")
        hop = Hop(
            from_location=source.ref,
            from_company_id=source.company_id,
            to_location=destination.ref,
            to_company_id=destination.company_id,
            movement_type=MovementType.TRANSFER,
        )
        with self._uow.begin():
            self._ledger.transfer(
                item_id,
                hop.from_location,
                hop.to_location,
                quantity,
                to_company_id=hop.to_company_id,
                actor_id=actor_id,
                consume_reservation=False,
            )
            return self._recorder.record(
                movement_type=MovementType.TRANSFER,
                item_id=item_id,
                quantity=quantity,
                actor_id=actor_id,
                from_location=hop.from_location,
                from_company_id=hop.from_company_id,
                to_location=hop.to_location,
                to_company_id=hop.to_company_id,
                unit_cost=unit_cost,
                reason=reason,
                notes=notes,
                document_number=document_number,
            )

    def return_stock(
        self,
        item_id: UUID,
        from_location: LocationRef,
        warehouse: LocationRef,
        quantity: int,
        *,
        actor_id: UUID,
        reason: str | None = None,
        work_order_id: UUID | None = None,
        unit_cost: Decimal | None = None,
    ) -> MovementRecord:
        """Bring unused stock back into a warehouse of the same company."""
        source = self.resolve(from_location)
        target = self.resolve(warehouse)
        if not target.ref.is_warehouse:
            raise InvalidRouteError(f"returns must go to a warehouse, not {target.ref}")
        hop = Hop(
            from_location=source.ref,
            from_company_id=source.company_id,
            to_location=target.ref,
            to_company_id=target.company_id,
            movement_type=MovementType.RETURN,
        )
        # A return is a final hop: it may not cross companies.
        validate_chain((hop,))
        with self._uow.begin():
            self._ledger.transfer(
                item_id,
                hop.from_location,
                hop.to_location,
                quantity,
                to_company_id=hop.to_company_id,
                actor_id=actor_id,
                consume_reservation=False,
            )
            return self._recorder.record(
                movement_type=MovementType.RETURN,
                item_id=item_id,
                quantity=quantity,
                actor_id=actor_id,
                from_location=hop.from_location,
                from_company_id=hop.from_company_id,
                to_location=hop.to_location,
                to_company_id=hop.to_company_id,
                unit_cost=unit_cost,
                reason=reason,
                work_order_id=work_order_id,
            )

    def record_damage(
        self,
        item_id: UUID,
        location: LocationRef,
        quantity: int,
        *,
        actor_id: UUID,
        reason: str,
        unit_cost: Decimal | None = None,
    ) -> MovementRecord:
        """Write off damaged stock.  Only unreserved stock can be written off."""
        info = self.resolve(location, require_active=False)
        with self._uow.begin():
            self._ledger.remove(item_id, info.ref, quantity, actor_id=actor_id)
            return self._recorder.record(
                movement_type=MovementType.DAMAGE,
                item_id=item_id,
                quantity=quantity,
                actor_id=actor_id,
                from_location=info.ref,
                from_company_id=info.company_id,
                unit_cost=unit_cost,
                reason=reason,
            )
