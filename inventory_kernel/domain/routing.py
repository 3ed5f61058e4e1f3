"""
Routing -- pure rules for how goods get from a source to a destination.

Responsibility:
    Turn (source, destination, optional transit warehouse) into an ordered
    chain of hops, each with the movement type it will be recorded as, and
    reject routes that would cross a company boundary without an
    intermediate warehouse.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  TransferRouter and
    RequestWorkflow call ``plan_route`` before any stock is touched.

Routing rules:
    - Same company, no transit:  one hop source -> destination.
    - With a transit warehouse:  two hops source -> transit -> destination.
      Source and transit must both be warehouses.  The first hop may cross
      companies; the final hop must stay inside one company.
    - A different-company destination without a transit warehouse is
      rejected with CrossCompanyRoutingError.
    - The final hop is a WORK_ORDER movement when it lands at a SITE or
      VEHICLE, a TRANSFER when it lands in a warehouse.  Intermediate hops
      are TRANSFERs.

Failure modes:
    - InvalidRouteError: identical endpoints, non-warehouse transit or
      source on a two-hop route, broken chain.
    - CrossCompanyRoutingError: a hop that may not cross companies does.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from inventory_kernel.domain.values import (
    LocationInfo,
    LocationRef,
    LocationType,
    MovementType,
)
from inventory_kernel.exceptions import CrossCompanyRoutingError, InvalidRouteError


@dataclass(frozen=True, slots=True)
class Hop:
    """One physical leg of a route."""

    from_location: LocationRef
    from_company_id: UUID
    to_location: LocationRef
    to_company_id: UUID
    movement_type: MovementType

    @property
    def crosses_company(self) -> bool:
        return self.from_company_id != self.to_company_id


@dataclass(frozen=True, slots=True)
class Route:
    """Ordered hops from source to destination."""

    hops: tuple[Hop, ...]

    @property
    def source(self) -> LocationRef:
        return self.hops[0].from_location

    @property
    def destination(self) -> LocationRef:
        return self.hops[-1].to_location

    @property
    def is_two_hop(self) -> bool:
        return len(self.hops) == 2

    @property
    def first_hop(self) -> Hop:
        return self.hops[0]

    @property
    def final_hop(self) -> Hop:
        return self.hops[-1]


def final_movement_type(destination: LocationRef) -> MovementType:
    if destination.location_type in (LocationType.SITE, LocationType.VEHICLE):
        return MovementType.WORK_ORDER
    return MovementType.TRANSFER


def validate_chain(hops: tuple[Hop, ...]) -> None:
    """Check that hops connect and that the final hop stays in one company.

    Raises:
        InvalidRouteError: Empty chain, a hop with identical endpoints, or
            consecutive hops that do not share a location.
        CrossCompanyRoutingError: Consecutive hops disagree on the company
            of the shared location, or the final hop crosses companies.
    """
    if not hops:
        raise InvalidRouteError("route has no hops")

    for hop in hops:
        if hop.from_location == hop.to_location:
            raise InvalidRouteError(
                f"hop starts and ends at the same location {hop.from_location}"
            )

    for prev, nxt in zip(hops, hops[1:]):
        if prev.to_location != nxt.from_location:
            raise InvalidRouteError(
                f"hop ending at {prev.to_location} does not connect to hop "
                f"starting at {nxt.from_location}"
            )
        if prev.to_company_id != nxt.from_company_id:
            raise CrossCompanyRoutingError(
                prev.to_company_id,
                nxt.from_company_id,
                "consecutive hops disagree on the owning company",
            )

    last = hops[-1]
    if last.crosses_company:
        raise CrossCompanyRoutingError(
            last.from_company_id,
            last.to_company_id,
            "final hop must stay within one company",
        )


def plan_route(
    source: LocationInfo,
    destination: LocationInfo,
    transit: LocationInfo | None = None,
) -> Route:
    """Build and validate the hop chain for a request.

    Pure: no stock is read or written.
    """
    if source.ref == destination.ref:
        raise InvalidRouteError("source and destination are the same location")

    if transit is None:
        if source.company_id != destination.company_id:
            raise CrossCompanyRoutingError(
                source.company_id,
                destination.company_id,
                "cross-company delivery requires an intermediate warehouse",
            )
        hops = (
            Hop(
                from_location=source.ref,
                from_company_id=source.company_id,
                to_location=destination.ref,
                to_company_id=destination.company_id,
                movement_type=final_movement_type(destination.ref),
            ),
        )
    else:
        if not transit.ref.is_warehouse:
            raise InvalidRouteError(
                f"intermediate location {transit.ref} is not a warehouse"
            )
        if not source.ref.is_warehouse:
            raise InvalidRouteError(
                f"two-hop routes must start at a warehouse, not {source.ref}"
            )
        if transit.ref in (source.ref, destination.ref):
            raise InvalidRouteError(
                "intermediate warehouse must differ from source and destination"
            )
        hops = (
            Hop(
                from_location=source.ref,
                from_company_id=source.company_id,
                to_location=transit.ref,
                to_company_id=transit.company_id,
                movement_type=MovementType.TRANSFER,
            ),
            Hop(
                from_location=transit.ref,
                from_company_id=transit.company_id,
                to_location=destination.ref,
                to_company_id=destination.company_id,
                movement_type=final_movement_type(destination.ref),
            ),
        )

    validate_chain(hops)
    return Route(hops=hops)
