"""
inventory_services.stock_service -- manual stock operations.

Responsibility:
    The warehouse keeper's toolbox outside the request lifecycle: receive
    goods from suppliers (IN), issue stock out of the ledger (OUT), adjust
    or count a location (ADJUSTMENT / COUNT_ADJUSTMENT), transfer between
    locations (TRANSFER), return unused stock to a warehouse (RETURN) and
    write off damaged goods (DAMAGE).

Architecture position:
    Services.  Every operation is one UnitOfWork.run() call that pairs a
    StockLedger change with exactly one MovementRecorder entry, so the
    conservation invariant holds per transaction.

Invariants enforced:
    - Capability check (adjust_stock or transfer_stock) before any read.
    - The actor must be within the company that owns the affected location
      (the source location for transfers and returns).
    - Adjustments store the delta: an increase is a to-side movement, a
      decrease a from-side movement.  A physical count that confirms the
      stored quantity writes a COUNT_ADJUSTMENT of 0; a non-count
      adjustment with no change writes nothing.

Failure modes:
    - UnauthorizedActionError / OutOfScopeError.
    - LocationNotFoundError / InactiveLocationError.
    - InsufficientStockError when available stock cannot cover an issue,
      transfer, return or write-off.
    - InvariantViolationError when an adjustment would undercut reservations.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_kernel.db.unit_of_work import UnitOfWork
from inventory_kernel.domain.authority import Capability, CapabilityChecker
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import MovementRecord
from inventory_kernel.domain.values import Actor, LocationInfo, LocationRef, MovementType
from inventory_kernel.exceptions import (
    InactiveItemError,
    InvalidRouteError,
    ItemNotFoundError,
    OutOfScopeError,
    UnauthorizedActionError,
    ValidationError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.item import InventoryItem
from inventory_kernel.services.movement_recorder import MovementRecorder
from inventory_kernel.services.stock_ledger import StockLedger
from inventory_kernel.services.transfer_router import TransferRouter

logger = get_logger("services.stock_operations")


class StockOperationsService:
    """Manual movements, each paired with its ledger change."""

    def __init__(
        self,
        uow: UnitOfWork,
        ledger: StockLedger,
        recorder: MovementRecorder,
        router: TransferRouter,
        authority: CapabilityChecker,
        clock: Clock | None = None,
    ):
        self._uow = uow
        self._ledger = ledger
        self._recorder = recorder
        self._router = router
        self._authority = authority
        self._clock = clock or SystemClock()

    def _guard(
        self, actor: Actor, capability: Capability, location: LocationInfo, action: str,
    ) -> None:
        if not self._authority.can_perform(actor.role, capability):
            logger.warning(
                "action_unauthorized",
                extra={
                    "actor_id": str(actor.user_id),
                    "role": actor.role,
                    "capability": capability.value,
                },
            )
            raise UnauthorizedActionError(actor.user_id, actor.role, capability.value)
        if not actor.in_company(location.company_id):
            raise OutOfScopeError(actor.user_id, action, location.company_id)

    @staticmethod
    def _load_item(session: Session, item_id: UUID, *, require_active: bool) -> InventoryItem:
        item = session.get(InventoryItem, item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        if require_active and not item.is_active:
            raise InactiveItemError(item_id)
        return item

    def _execute(self, name: str, actor: Actor, item_id: UUID, operation):
        with LogContext.bind(actor_id=actor.user_id, item_id=item_id):
            return self._uow.run(operation, name=name)

    def receive_stock(
        self,
        actor: Actor,
        item_id: UUID,
        location: LocationRef,
        quantity: int,
        *,
        unit_cost: Decimal | None = None,
        document_number: str | None = None,
        notes: str | None = None,
    ) -> MovementRecord:
        """Goods arriving from outside (purchase, supplier delivery)."""
        info = self._router.resolve(location)
        self._guard(actor, Capability.ADJUST_STOCK, info, "receive_stock")
        if not info.ref.is_warehouse:
            raise InvalidRouteError(f"goods can only be received into a warehouse, not {info.ref}")

        def operation(session: Session) -> MovementRecord:
            item = self._load_item(session, item_id, require_active=True)
            self._ledger.receive(
                item_id, info.ref, quantity, company_id=info.company_id, actor_id=actor.user_id,
            )
            if unit_cost is not None:
                item.last_purchase_price = unit_cost
                item.updated_by_id = actor.user_id
            return self._recorder.record(
                movement_type=MovementType.IN,
                item_id=item_id,
                quantity=quantity,
                actor_id=actor.user_id,
                to_location=info.ref,
                to_company_id=info.company_id,
                unit_cost=unit_cost if unit_cost is not None else item.unit_cost,
                document_number=document_number,
                notes=notes,
            )

        return self._execute("receive_stock", actor, item_id, operation)

    def issue_stock(
        self,
        actor: Actor,
        item_id: UUID,
        location: LocationRef,
        quantity: int,
        *,
        reason: str | None = None,
        document_number: str | None = None,
        work_order_id: UUID | None = None,
    ) -> MovementRecord:
        """Take unreserved stock out of the ledger (consumption, sale)."""
        info = self._router.resolve(location, require_active=False)
        self._guard(actor, Capability.ADJUST_STOCK, info, "issue_stock")

        def operation(session: Session) -> MovementRecord:
            item = self._load_item(session, item_id, require_active=False)
            self._ledger.remove(item_id, info.ref, quantity, actor_id=actor.user_id)
            return self._recorder.record(
                movement_type=MovementType.OUT,
                item_id=item_id,
                quantity=quantity,
                actor_id=actor.user_id,
                from_location=info.ref,
                from_company_id=info.company_id,
                unit_cost=item.unit_cost,
                reason=reason,
                document_number=document_number,
                work_order_id=work_order_id,
            )

        return self._execute("issue_stock", actor, item_id, operation)

    def adjust_stock(
        self,
        actor: Actor,
        item_id: UUID,
        location: LocationRef,
        new_quantity: int,
        *,
        reason: str,
        is_count: bool = False,
        notes: str | None = None,
    ) -> MovementRecord:
        """Set the quantity at ``location`` and record the delta.

        A plain adjustment must change the quantity; confirming the current
        figure is a count (``is_count=True``), which records a zero movement.
        """
        info = self._router.resolve(location, require_active=False)
        self._guard(actor, Capability.ADJUST_STOCK, info, "adjust_stock")
        movement_type = MovementType.COUNT_ADJUSTMENT if is_count else MovementType.ADJUSTMENT

        def operation(session: Session) -> MovementRecord:
            item = self._load_item(session, item_id, require_active=False)
            now = self._clock.now_utc()
            delta = self._ledger.adjust(
                item_id,
                info.ref,
                new_quantity,
                company_id=info.company_id,
                actor_id=actor.user_id,
                reason=reason,
                counted_at=now if is_count else None,
            )
            if delta == 0 and not is_count:
                raise ValidationError(
                    f"adjustment leaves {info.ref} at {new_quantity}; record a count instead",
                    field="new_quantity",
                )

            if delta >= 0:
                # Increases and confirmed counts land on the to-side.
                sides = {"to_location": info.ref, "to_company_id": info.company_id}
            else:
                sides = {"from_location": info.ref, "from_company_id": info.company_id}
            return self._recorder.record(
                movement_type=movement_type,
                item_id=item_id,
                quantity=abs(delta),
                actor_id=actor.user_id,
                unit_cost=item.unit_cost,
                reason=reason,
                notes=notes,
                occurred_at=now,
                **sides,
            )

        return self._execute("adjust_stock", actor, item_id, operation)

    def transfer_stock(
        self,
        actor: Actor,
        item_id: UUID,
        from_location: LocationRef,
        to_location: LocationRef,
        quantity: int,
        *,
        reason: str | None = None,
        notes: str | None = None,
        document_number: str | None = None,
    ) -> MovementRecord:
        """Move available stock between two locations, across companies if needed."""
        source = self._router.resolve(from_location)
        self._guard(actor, Capability.TRANSFER_STOCK, source, "transfer_stock")

        def operation(session: Session) -> MovementRecord:
            item = self._load_item(session, item_id, require_active=False)
            return self._router.transfer_stock(
                item_id,
                source.ref,
                to_location,
                quantity,
                actor_id=actor.user_id,
                unit_cost=item.unit_cost,
                reason=reason,
                notes=notes,
                document_number=document_number,
            )

        return self._execute("transfer_stock", actor, item_id, operation)

    def return_stock(
        self,
        actor: Actor,
        item_id: UUID,
        from_location: LocationRef,
        warehouse: LocationRef,
        quantity: int,
        *,
        reason: str | None = None,
        work_order_id: UUID | None = None,
    ) -> MovementRecord:
        """Bring unused stock from a site or vehicle back into a warehouse."""
        source = self._router.resolve(from_location)
        self._guard(actor, Capability.TRANSFER_STOCK, source, "return_stock")

        def operation(session: Session) -> MovementRecord:
            item = self._load_item(session, item_id, require_active=False)
            return self._router.return_stock(
                item_id,
                source.ref,
                warehouse,
                quantity,
                actor_id=actor.user_id,
                reason=reason,
                work_order_id=work_order_id,
                unit_cost=item.unit_cost,
            )

        return self._execute("return_stock", actor, item_id, operation)

    def record_damage(
        self,
        actor: Actor,
        item_id: UUID,
        location: LocationRef,
        quantity: int,
        *,
        reason: str,
    ) -> MovementRecord:
        info = self._router.resolve(location, require_active=False)
        self._guard(actor, Capability.ADJUST_STOCK, info, "record_damage")

        def operation(session: Session) -> MovementRecord:
            item = self._load_item(session, item_id, require_active=False)
            return self._router.record_damage(
                item_id,
                info.ref,
                quantity,
                actor_id=actor.user_id,
                reason=reason,
                unit_cost=item.unit_cost,
            )

        return self._execute("record_damage", actor, item_id, operation)
