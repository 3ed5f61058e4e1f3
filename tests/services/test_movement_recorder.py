"""
Movement shape validation and recording (MovementRecorder).

validate_shape is pure and tested without a database; record() is tested
through the orchestrator's recorder.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_kernel.domain.values import LocationRef, LocationType, MovementType
from inventory_kernel.exceptions import ValidationError
from inventory_kernel.services.movement_recorder import validate_shape

A = LocationRef(uuid4(), LocationType.WAREHOUSE)
B = LocationRef(uuid4(), LocationType.SITE)
CO = uuid4()


class TestValidateShape:
    @pytest.mark.parametrize(
        "movement_type,from_loc,to_loc",
        [
            (MovementType.IN, None, A),
            (MovementType.OUT, A, None),
            (MovementType.DAMAGE, A, None),
            (MovementType.TRANSFER, A, B),
            (MovementType.WORK_ORDER, A, B),
            (MovementType.RETURN, B, A),
            (MovementType.ADJUSTMENT, None, A),
            (MovementType.ADJUSTMENT, A, None),
            (MovementType.COUNT_ADJUSTMENT, None, A),
        ],
    )
    def test_valid_shapes(self, movement_type, from_loc, to_loc):
        validate_shape(
            movement_type, 1,
            from_loc, CO if from_loc else None,
            to_loc, CO if to_loc else None,
        )

    @pytest.mark.parametrize(
        "movement_type,from_loc,to_loc",
        [
            (MovementType.IN, A, None),
            (MovementType.IN, A, B),
            (MovementType.OUT, None, A),
            (MovementType.TRANSFER, A, None),
            (MovementType.TRANSFER, A, A),
            (MovementType.WORK_ORDER, None, B),
            (MovementType.ADJUSTMENT, A, B),
            (MovementType.ADJUSTMENT, None, None),
        ],
    )
    def test_invalid_shapes(self, movement_type, from_loc, to_loc):
        with pytest.raises(ValidationError):
            validate_shape(
                movement_type, 1,
                from_loc, CO if from_loc else None,
                to_loc, CO if to_loc else None,
            )

    def test_zero_only_for_counts(self):
        validate_shape(MovementType.COUNT_ADJUSTMENT, 0, None, None, A, CO)
        with pytest.raises(ValidationError):
            validate_shape(MovementType.ADJUSTMENT, 0, None, None, A, CO)

    def test_side_requires_company(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_shape(MovementType.IN, 1, None, None, A, None)
        assert exc_info.value.field == "to_company_id"


class TestRecord:
    def test_record_computes_total_cost(self, orchestrator, item, warehouse_a, company_a, clock):
        actor = uuid4()
        movement = orchestrator.recorder.record(
            movement_type=MovementType.IN,
            item_id=item.id,
            quantity=4,
            actor_id=actor,
            to_location=warehouse_a,
            to_company_id=company_a,
            unit_cost=Decimal("2.25"),
            document_number="GRN-1",
        )
        assert movement.total_cost == Decimal("9.00")
        assert movement.created_by_id == actor
        assert movement.occurred_at == clock.now_utc()
        assert movement.from_company_id is None

    def test_record_without_cost(self, orchestrator, item, warehouse_a, company_a):
        movement = orchestrator.recorder.record(
            movement_type=MovementType.OUT,
            item_id=item.id,
            quantity=1,
            actor_id=uuid4(),
            from_location=warehouse_a,
            from_company_id=company_a,
        )
        assert movement.total_cost is None

    def test_invalid_shape_writes_nothing(self, orchestrator, item, warehouse_a, company_a, movements_of):
        before = len(movements_of(item.id))
        with pytest.raises(ValidationError):
            orchestrator.recorder.record(
                movement_type=MovementType.TRANSFER,
                item_id=item.id,
                quantity=1,
                actor_id=uuid4(),
                to_location=warehouse_a,
                to_company_id=company_a,
            )
        assert len(movements_of(item.id)) == before
