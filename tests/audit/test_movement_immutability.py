"""
Append-only movements and request finality.

Verifies:
- StockMovement rows can never be updated or deleted
- audit metadata (updated_at, updated_by_id) is not treated as a change
- terminal requests cannot be edited
- only PENDING requests may be deleted
- blocked operations are logged and leave the database untouched
"""

from uuid import uuid4

import pytest
from sqlalchemy import select

from inventory_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.models.movement import StockMovement
from inventory_kernel.models.request import InventoryRequest
from inventory_services.orchestrator import InventoryOrchestrator


def _first_movement_id(session, item_id):
    return session.execute(
        select(StockMovement.id).where(StockMovement.item_id == item_id)
    ).scalars().first()


class TestMovementImmutability:
    def test_update_blocked(self, uow, item, captured_logs):
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            with uow.begin() as session:
                movement = session.get(StockMovement, _first_movement_id(session, item.id))
                movement.quantity = 999
                session.flush()

        assert exc_info.value.entity_type == "StockMovement"
        blocked = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert blocked[0]["changed_fields"] == ["quantity"]
        assert blocked[0]["invariant"] == "movement_immutability"

        with uow.begin() as session:
            movement = session.execute(
                select(StockMovement).where(StockMovement.item_id == item.id)
            ).scalar_one()
            assert movement.quantity == 100

    def test_delete_blocked(self, uow, item):
        with pytest.raises(ImmutabilityViolationError):
            with uow.begin() as session:
                session.delete(session.get(StockMovement, _first_movement_id(session, item.id)))
                session.flush()

        with uow.begin() as session:
            assert _first_movement_id(session, item.id) is not None

    def test_audit_metadata_may_change(self, uow, item):
        with uow.begin() as session:
            movement = session.get(StockMovement, _first_movement_id(session, item.id))
            movement.updated_by_id = uuid4()
            session.flush()

    def test_listeners_can_be_unregistered(self, uow, item):
        unregister_immutability_listeners()
        try:
            with uow.begin() as session:
                movement = session.get(StockMovement, _first_movement_id(session, item.id))
                movement.notes = "annotated"
                session.flush()
        finally:
            register_immutability_listeners()



class TestGuardsOnByDefault:
    def test_orchestrator_registers_listeners(
        self, session_factory, settings, locations, work_orders, clock, admin_a, company_a, warehouse_a,
    ):
        # start from a process that has never registered them
        unregister_immutability_listeners()
        try:
            orchestrator = InventoryOrchestrator.from_session_factory(
                session_factory, settings, locations, work_orders, clock=clock,
            )
            created = orchestrator.catalog.create_item(
                admin_a, company_id=company_a, code="SEAL-1", name="Seal",
                initial_stock={warehouse_a: 10},
            )
            with pytest.raises(ImmutabilityViolationError):
                with orchestrator.uow.begin() as session:
                    movement = session.get(StockMovement, _first_movement_id(session, created.id))
                    movement.quantity = 999
                    session.flush()

            assert orchestrator.reconciliation.reconcile(created.id).is_balanced
        finally:
            register_immutability_listeners()

class TestRequestFinality:
    def test_terminal_request_cannot_change(self, uow, workflow, chief_a, technician_a, item, site_a, work_order):
        created = workflow.create_request(
            technician_a, work_order_id=work_order, item_id=item.id, destination=site_a, quantity=5,
        )
        workflow.reject_request(chief_a, created.id)

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            with uow.begin() as session:
                request = session.get(InventoryRequest, created.id)
                request.quantity_requested = 50
                session.flush()
        assert "REJECTED" in exc_info.value.reason

    def test_open_request_can_change(self, uow, workflow, technician_a, item, site_a, work_order):
        created = workflow.create_request(
            technician_a, work_order_id=work_order, item_id=item.id, destination=site_a, quantity=5,
        )
        with uow.begin() as session:
            session.get(InventoryRequest, created.id).notes = "call before delivery"
            session.flush()

    def test_pending_request_can_be_deleted(self, uow, workflow, technician_a, item, site_a, work_order):
        created = workflow.create_request(
            technician_a, work_order_id=work_order, item_id=item.id, destination=site_a, quantity=5,
        )
        with uow.begin() as session:
            session.delete(session.get(InventoryRequest, created.id))

        with uow.begin() as session:
            assert session.get(InventoryRequest, created.id) is None

    def test_approved_request_cannot_be_deleted(self, uow, make_approved_request):
        scenario = make_approved_request(4)
        with pytest.raises(ImmutabilityViolationError):
            with uow.begin() as session:
                session.delete(session.get(InventoryRequest, scenario.request_id))
                session.flush()

        with uow.begin() as session:
            assert session.get(InventoryRequest, scenario.request_id) is not None
