"""
MovementRecorder -- append-only writer for the movement ledger.

Responsibility:
    Validates the shape of a movement for its type, computes total cost,
    and inserts one StockMovement row.  Never updates or deletes.

Architecture position:
    Kernel > Services -- leaf component.

Movement shapes:
    IN                              to-side only
    OUT, DAMAGE                     from-side only
    TRANSFER, WORK_ORDER, RETURN    both sides, different locations
    ADJUSTMENT, COUNT_ADJUSTMENT    exactly one side (to for increases,
                                    from for decreases)

Invariants enforced:
    MOVEMENT_IMMUTABILITY -- insert only; immutability listeners block the rest.
    CONSERVATION -- quantity is always the non-negative magnitude and the
    side carries the sign, so the signed sum per location matches StockRow.

Failure modes:
    - ValidationError: wrong sides for the type, missing company for a side,
      non-positive quantity (zero is allowed for COUNT_ADJUSTMENT only).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from inventory_kernel.db.unit_of_work import UnitOfWork
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import MovementRecord
from inventory_kernel.domain.values import LocationRef, MovementType
from inventory_kernel.exceptions import ValidationError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.movement import StockMovement

logger = get_logger("services.movement_recorder")

_FROM_ONLY = frozenset({MovementType.OUT, MovementType.DAMAGE})
_TO_ONLY = frozenset({MovementType.IN})
_BOTH_SIDES = frozenset({MovementType.TRANSFER, MovementType.WORK_ORDER, MovementType.RETURN})
_ONE_SIDE = frozenset({MovementType.ADJUSTMENT, MovementType.COUNT_ADJUSTMENT})


def validate_shape(
    movement_type: MovementType,
    quantity: int,
    from_location: LocationRef | None,
    from_company_id: UUID | None,
    to_location: LocationRef | None,
    to_company_id: UUID | None,
) -> None:
    """Raise ValidationError unless the movement is well-formed for its type."""
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError(f"quantity must be a whole number, got {quantity!r}", field="quantity")
    minimum = 0 if movement_type == MovementType.COUNT_ADJUSTMENT else 1
    if quantity < minimum:
        raise ValidationError(
            f"{movement_type.value} quantity must be at least {minimum}, got {quantity}",
            field="quantity",
        )

    has_from = from_location is not None
    has_to = to_location is not None

    if movement_type in _FROM_ONLY:
        ok = has_from and not has_to
    elif movement_type in _TO_ONLY:
        ok = has_to and not has_from
    elif movement_type in _BOTH_SIDES:
        ok = has_from and has_to and from_location != to_location
    else:
        ok = has_from != has_to
    if not ok:
        raise ValidationError(
            f"{movement_type.value} movement has invalid sides "
            f"(from={from_location}, to={to_location})",
            field="movement_type",
        )

    if has_from and from_company_id is None:
        raise ValidationError("from_company_id is required with a from location", field="from_company_id")
    if has_to and to_company_id is None:
        raise ValidationError("to_company_id is required with a to location", field="to_company_id")


class MovementRecorder:
    """Appends immutable movement records inside the caller's transaction."""

    def __init__(self, uow: UnitOfWork, clock: Clock | None = None):
        self._uow = uow
        self._clock = clock or SystemClock()

    def record(
        self,
        *,
        movement_type: MovementType,
        item_id: UUID,
        quantity: int,
        actor_id: UUID,
        from_location: LocationRef | None = None,
        from_company_id: UUID | None = None,
        to_location: LocationRef | None = None,
        to_company_id: UUID | None = None,
        unit_cost: Decimal | None = None,
        reason: str | None = None,
        notes: str | None = None,
        document_number: str | None = None,
        request_id: UUID | None = None,
        work_order_id: UUID | None = None,
        occurred_at: datetime | None = None,
    ) -> MovementRecord:
        movement_type = MovementType(movement_type)
        validate_shape(
            movement_type, quantity, from_location, from_company_id, to_location, to_company_id,
        )

        total_cost = unit_cost * quantity if unit_cost is not None else None

        with self._uow.begin() as session:
            movement = StockMovement(
                movement_type=movement_type.value,
                item_id=item_id,
                quantity=quantity,
                from_location_id=from_location.location_id if from_location else None,
                from_location_type=from_location.location_type.value if from_location else None,
                from_company_id=from_company_id if from_location else None,
                to_location_id=to_location.location_id if to_location else None,
                to_location_type=to_location.location_type.value if to_location else None,
                to_company_id=to_company_id if to_location else None,
                unit_cost=unit_cost,
                total_cost=total_cost,
                reason=reason,
                notes=notes,
                document_number=document_number,
                request_id=request_id,
                work_order_id=work_order_id,
                occurred_at=occurred_at or self._clock.now_utc(),
                created_by_id=actor_id,
            )
            session.add(movement)
            session.flush()

            logger.info(
                "movement_recorded",
                extra={
                    "movement_id": str(movement.id),
                    "movement_type": movement_type.value,
                    "item_id": str(item_id),
                    "quantity": quantity,
                    "from_location": str(from_location) if from_location else None,
                    "to_location": str(to_location) if to_location else None,
                    "request_id": str(request_id) if request_id else None,
                },
            )
            return movement.to_dto()
