"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The movement ledger is the audit trail for every unit of stock.  If a
movement can be edited after the fact, the conservation check between
movements and StockRow quantities proves nothing.  Requests are the
business record of who asked for what and who signed for it; once they
leave PENDING they cannot disappear, and once they are terminal they
cannot change.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events and check the rules:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |
    [before_delete event] --> _check_*_delete() --------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity            | When Immutable                    | Why
------------------|-----------------------------------|-------------------------------
StockMovement     | ALWAYS (from creation)            | Ledger must reconcile with stock
InventoryRequest  | DELETE once status != PENDING     | Approvals hold or moved stock
InventoryRequest  | UPDATE once status is terminal    | Delivered/rejected/cancelled is final

updated_at and updated_by_id are audit metadata and may change on any row.

===============================================================================
USAGE
===============================================================================

    from inventory_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup, idempotent

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()

===============================================================================
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from inventory_kernel.db.base import AUDIT_COLUMNS
from inventory_kernel.domain.workflow import RequestStatus, TERMINAL_REQUEST_STATUSES
from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.invariants import KernelInvariant
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _changed_fields(mapper, target) -> list[str]:
    changed = []
    for attr in mapper.column_attrs:
        if attr.key in AUDIT_COLUMNS:
            continue
        if get_history(target, attr.key).has_changes():
            changed.append(attr.key)
    return changed


def _block(entity_type: str, entity_id, operation: str, reason: str, **extra) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "invariant": KernelInvariant.MOVEMENT_IMMUTABILITY.value
            if entity_type == "StockMovement"
            else KernelInvariant.TRANSITION_LEGALITY.value,
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            **extra,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_movement_immutability(mapper, connection, target):
    """Prevent any change to a movement other than audit metadata."""
    changed = _changed_fields(mapper, target)
    if not changed:
        return
    _block(
        "StockMovement",
        target.id,
        "UPDATE",
        "Movement records are append-only",
        changed_fields=changed,
    )


def _check_movement_delete(mapper, connection, target):
    _block("StockMovement", target.id, "DELETE", "Movement records cannot be deleted")


def _previous_status(target) -> str:
    history = get_history(target, "status")
    if history.deleted:
        return history.deleted[0]
    if history.unchanged:
        return history.unchanged[0]
    return target.status


def _check_request_immutability(mapper, connection, target):
    """Prevent changes to a request that was already terminal."""
    previous = _previous_status(target)
    if RequestStatus(previous) not in TERMINAL_REQUEST_STATUSES:
        return
    changed = _changed_fields(mapper, target)
    if not changed:
        return
    _block(
        "InventoryRequest",
        target.id,
        "UPDATE",
        f"Request is {previous} and can no longer change",
        changed_fields=changed,
    )


def _check_request_delete(mapper, connection, target):
    previous = _previous_status(target)
    if previous == RequestStatus.PENDING.value:
        return
    _block(
        "InventoryRequest",
        target.id,
        "DELETE",
        f"Request is {previous}; only PENDING requests may be deleted",
    )


_LISTENERS = (
    ("StockMovement", "before_update", _check_movement_immutability),
    ("StockMovement", "before_delete", _check_movement_delete),
    ("InventoryRequest", "before_update", _check_request_immutability),
    ("InventoryRequest", "before_delete", _check_request_delete),
)


def _models():
    from inventory_kernel.models.movement import StockMovement
    from inventory_kernel.models.request import InventoryRequest

    return {"StockMovement": StockMovement, "InventoryRequest": InventoryRequest}


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement event listeners.

    Safe to call more than once.
    """
    models = _models()
    for model_name, event_name, listener in _LISTENERS:
        target = models[model_name]
        if not event.contains(target, event_name, listener):
            event.listen(target, event_name, listener)


def unregister_immutability_listeners() -> None:
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that intentionally violate the rules.
    """
    models = _models()
    for model_name, event_name, listener in _LISTENERS:
        target = models[model_name]
        if event.contains(target, event_name, listener):
            event.remove(target, event_name, listener)
