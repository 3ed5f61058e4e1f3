"""
TransferRouter and ReservationManager.

Route planning against the location directory, hop realization (one ledger
transfer plus one movement), and reservation hand-off between source and
intermediate warehouse.
"""

from uuid import uuid4

import pytest
from sqlalchemy import select

from inventory_kernel.domain.values import LocationRef, LocationType, MovementType
from inventory_kernel.exceptions import (
    CrossCompanyRoutingError,
    InactiveLocationError,
    InsufficientStockError,
    LocationNotFoundError,
)
from inventory_kernel.models.request import InventoryRequest


class TestResolveAndPlan:
    def test_resolve_unknown(self, orchestrator):
        with pytest.raises(LocationNotFoundError):
            orchestrator.router.resolve(LocationRef(uuid4(), LocationType.WAREHOUSE))

    def test_resolve_inactive(self, orchestrator, locations, warehouse_a2):
        locations.deactivate(warehouse_a2)
        with pytest.raises(InactiveLocationError):
            orchestrator.router.resolve(warehouse_a2)
        assert not orchestrator.router.resolve(warehouse_a2, require_active=False).is_active

    def test_plan_two_hop(self, orchestrator, warehouse_a, warehouse_b, site_b):
        route = orchestrator.router.plan(warehouse_a, site_b, warehouse_b)
        assert route.is_two_hop
        assert route.first_hop.to_location == warehouse_b

    def test_plan_rejects_cross_company_direct(self, orchestrator, warehouse_a, site_b):
        with pytest.raises(CrossCompanyRoutingError):
            orchestrator.router.plan(warehouse_a, site_b)


class TestRealizeHop:
    def test_hop_moves_stock_and_records_one_movement(
        self, orchestrator, ledger, item, warehouse_a, site_a, stock_at, movements_of,
    ):
        actor = uuid4()
        route = orchestrator.router.plan(warehouse_a, site_a)
        ledger.reserve(item.id, warehouse_a, 12, actor_id=actor)
        before = len(movements_of(item.id))

        movement = orchestrator.router.realize_hop(
            route.final_hop, item_id=item.id, quantity=12, actor_id=actor, reason="job 7",
        )

        assert movement.movement_type == MovementType.WORK_ORDER
        assert movement.reason == "job 7"
        assert len(movements_of(item.id)) == before + 1
        assert stock_at(item.id, warehouse_a).reserved_quantity == 0
        assert stock_at(item.id, site_a).quantity == 12

    def test_failed_hop_records_nothing(self, orchestrator, item, warehouse_a, site_a, movements_of):
        route = orchestrator.router.plan(warehouse_a, site_a)
        before = len(movements_of(item.id))
        with pytest.raises(InsufficientStockError):
            orchestrator.router.realize_hop(
                route.final_hop, item_id=item.id, quantity=101, actor_id=uuid4(),
                consume_reservation=False,
            )
        assert len(movements_of(item.id)) == before


class TestReservationManager:
    def _load(self, uow, request_id):
        with uow.begin() as session:
            request = session.execute(
                select(InventoryRequest).where(InventoryRequest.id == request_id)
            ).scalar_one()
            session.expunge(request)
            return request

    def test_holds_follow_the_request(
        self, orchestrator, uow, workflow, chief_b, keeper_a, keeper_b, technician_b,
        item, site_b, work_order, warehouse_a, warehouse_b,
    ):
        created = workflow.create_request(
            technician_b, work_order_id=work_order, item_id=item.id, destination=site_b, quantity=9,
        )
        workflow.approve_request(chief_b, created.id, source=warehouse_a, transit=warehouse_b)
        assert self._load(uow, created.id).reservation_holds() == [(warehouse_a, 9)]

        workflow.dispatch_from_warehouse(keeper_a, created.id)
        workflow.receive_at_destination_warehouse(keeper_b, created.id, quantity=4)
        assert sorted(self._load(uow, created.id).reservation_holds(), key=lambda h: h[1]) == [
            (warehouse_b, 4),
            (warehouse_a, 5),
        ]

        workflow.confirm_receipt(technician_b, created.id, quantity=4)
        assert self._load(uow, created.id).reservation_holds() == [(warehouse_a, 5)]

    def test_release_all_returns_released_holds(
        self, orchestrator, uow, make_approved_request, stock_at,
    ):
        scenario = make_approved_request(10, approved=7)
        with uow.begin() as session:
            request = session.get(InventoryRequest, scenario.request_id)
            released = orchestrator.reservations.release_all(request, actor_id=uuid4())
        assert released == [(scenario.source, 7)]
        assert stock_at(scenario.item_id, scenario.source).reserved_quantity == 0
