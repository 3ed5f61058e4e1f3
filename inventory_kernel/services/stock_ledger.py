"""
StockLedger -- per-item, per-location quantity rows.

Responsibility:
    The only writer of StockRow.  Provides atomic reserve / release /
    transfer / receive / remove / adjust primitives.  Does not write
    movements; every caller that changes ``quantity`` pairs the change with
    exactly one MovementRecorder.record() in the same transaction.

Architecture position:
    Kernel > Services -- leaf component.  Depends only on models and the
    UnitOfWork.

Invariants enforced:
    NON_NEGATIVE_STOCK  -- quantity and reserved_quantity never go below 0.
    RESERVATION_BOUND   -- reserved_quantity never exceeds quantity.
    Both are checked after every mutation and raise InvariantViolationError
    (logged at ERROR) rather than clamping.

Concurrency:
    Every mutation re-reads its row with SELECT ... FOR UPDATE and
    populate_existing, so the check-then-write happens on a locked, fresh
    row.  transfer() locks both rows in LocationRef.sort_key() order to keep
    lock acquisition deterministic.  Rows are created on demand inside a
    savepoint; a concurrent creator's IntegrityError is absorbed by
    re-reading the winner's row.

Failure modes:
    - ValidationError: quantity is not a positive integer.
    - InsufficientStockError: available quantity does not cover the request.
    - InvariantViolationError: a release or consume would take
      reserved_quantity below zero, or an adjustment would drop quantity
      below what is already reserved.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_kernel.db.unit_of_work import UnitOfWork
from inventory_kernel.domain.dtos import StockLevel
from inventory_kernel.domain.values import LocationRef
from inventory_kernel.exceptions import (
    InsufficientStockError,
    InvariantViolationError,
    ValidationError,
)
from inventory_kernel.invariants import KernelInvariant
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.stock import StockRow

logger = get_logger("services.stock_ledger")


def require_positive_quantity(quantity: int, field: str = "quantity") -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError(f"{field} must be a whole number, got {quantity!r}", field=field)
    if quantity <= 0:
        raise ValidationError(f"{field} must be positive, got {quantity}", field=field)


def _violation(invariant: KernelInvariant, detail: str, **extra) -> InvariantViolationError:
    logger.error(
        "stock_invariant_violation",
        extra={"invariant": invariant.value, "detail": detail, **extra},
    )
    return InvariantViolationError(invariant.value, detail)


class StockLedger:
    """Atomic quantity primitives over StockRow.

    Every public mutator joins the caller's transaction (or opens its own)
    and only flushes.
    """

    def __init__(self, uow: UnitOfWork):
        self._uow = uow

    # -----------------------------------------------------------------
    # Row access
    # -----------------------------------------------------------------

    @staticmethod
    def _row_query(item_id: UUID, location: LocationRef):
        return select(StockRow).where(
            StockRow.item_id == item_id,
            StockRow.location_id == location.location_id,
            StockRow.location_type == location.location_type.value,
        )

    def _lock_row(self, session: Session, item_id: UUID, location: LocationRef) -> StockRow | None:
        return session.execute(
            self._row_query(item_id, location)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _lock_or_create_row(
        self,
        session: Session,
        item_id: UUID,
        location: LocationRef,
        company_id: UUID,
        actor_id: UUID,
    ) -> StockRow:
        row = self._lock_row(session, item_id, location)
        if row is not None:
            return row

        savepoint = session.begin_nested()
        try:
            row = StockRow(
                item_id=item_id,
                location_id=location.location_id,
                location_type=location.location_type.value,
                company_id=company_id,
                quantity=0,
                reserved_quantity=0,
                created_by_id=actor_id,
            )
            session.add(row)
            session.flush()
            savepoint.commit()
            logger.debug(
                "stock_row_created",
                extra={"item_id": str(item_id), "location": str(location)},
            )
            return row
        except IntegrityError:
            logger.debug(
                "stock_row_create_race",
                extra={"item_id": str(item_id), "location": str(location)},
            )
            savepoint.rollback()
            row = self._lock_row(session, item_id, location)
            if row is None:
                raise
            return row

    def _check_row(self, row: StockRow, operation: str) -> None:
        context = {
            "operation": operation,
            "item_id": str(row.item_id),
            "location": str(row.location),
            "quantity": row.quantity,
            "reserved_quantity": row.reserved_quantity,
        }
        if row.quantity < 0 or row.reserved_quantity < 0:
            raise _violation(
                KernelInvariant.NON_NEGATIVE_STOCK,
                f"{operation} left {row.location} with quantity={row.quantity}, "
                f"reserved={row.reserved_quantity}",
                **context,
            )
        if row.reserved_quantity > row.quantity:
            raise _violation(
                KernelInvariant.RESERVATION_BOUND,
                f"{operation} left {row.location} with reserved "
                f"{row.reserved_quantity} > quantity {row.quantity}",
                **context,
            )

    # -----------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------

    def get_row(self, item_id: UUID, location: LocationRef) -> StockLevel | None:
        with self._uow.begin() as session:
            row = session.execute(self._row_query(item_id, location)).scalar_one_or_none()
            return row.to_dto() if row is not None else None

    def get_available(self, item_id: UUID, location: LocationRef) -> int:
        """Available (unreserved) quantity; 0 when no row exists."""
        level = self.get_row(item_id, location)
        return level.available_quantity if level is not None else 0

    # -----------------------------------------------------------------
    # Reservations
    # -----------------------------------------------------------------

    def reserve(
        self, item_id: UUID, location: LocationRef, quantity: int, *, actor_id: UUID,
    ) -> StockLevel:
        """Hold ``quantity`` at ``location``.  Atomic check-and-increment."""
        require_positive_quantity(quantity)
        with self._uow.begin() as session:
            row = self._lock_row(session, item_id, location)
            available = row.available_quantity if row is not None else 0
            # INVARIANT: RESERVATION_BOUND -- check on the locked row
            if row is None or available < quantity:
                raise InsufficientStockError(item_id, location.location_id, quantity, available)
            row.reserved_quantity += quantity
            row.updated_by_id = actor_id
            self._check_row(row, "reserve")
            session.flush()
            logger.info(
                "stock_reserved",
                extra={
                    "item_id": str(item_id),
                    "location": str(location),
                    "quantity": quantity,
                    "reserved_quantity": row.reserved_quantity,
                },
            )
            return row.to_dto()

    def release(
        self, item_id: UUID, location: LocationRef, quantity: int, *, actor_id: UUID,
    ) -> StockLevel:
        """Give back a hold.  Never clamps."""
        require_positive_quantity(quantity)
        with self._uow.begin() as session:
            row = self._lock_row(session, item_id, location)
            reserved = row.reserved_quantity if row is not None else 0
            if reserved < quantity:
                raise _violation(
                    KernelInvariant.NON_NEGATIVE_STOCK,
                    f"release of {quantity} at {location} exceeds reserved {reserved}",
                    item_id=str(item_id),
                    location=str(location),
                )
            row.reserved_quantity -= quantity
            row.updated_by_id = actor_id
            self._check_row(row, "release")
            session.flush()
            logger.info(
                "stock_released",
                extra={
                    "item_id": str(item_id),
                    "location": str(location),
                    "quantity": quantity,
                    "reserved_quantity": row.reserved_quantity,
                },
            )
            return row.to_dto()

    # -----------------------------------------------------------------
    # Quantity changes
    # -----------------------------------------------------------------

    def transfer(
        self,
        item_id: UUID,
        from_location: LocationRef,
        to_location: LocationRef,
        quantity: int,
        *,
        to_company_id: UUID,
        actor_id: UUID,
        consume_reservation: bool = True,
    ) -> tuple[StockLevel, StockLevel]:
        """Move ``quantity`` from one row to another in one transaction.

        With ``consume_reservation`` the goods must already be held at the
        source and the hold is used up.  Without it they are drawn from the
        available quantity.  The destination row is created if missing.
        """
        require_positive_quantity(quantity)
        if from_location == to_location:
            raise ValidationError("cannot transfer to the same location", field="to_location")

        with self._uow.begin() as session:
            # Lock in a deterministic order so two opposite transfers cannot deadlock.
            rows: dict[LocationRef, StockRow | None] = {}
            for ref in sorted((from_location, to_location), key=LocationRef.sort_key):
                if ref == to_location:
                    rows[ref] = self._lock_or_create_row(
                        session, item_id, ref, to_company_id, actor_id,
                    )
                else:
                    rows[ref] = self._lock_row(session, item_id, ref)

            source = rows[from_location]
            destination = rows[to_location]

            if consume_reservation:
                reserved = source.reserved_quantity if source is not None else 0
                if reserved < quantity:
                    raise _violation(
                        KernelInvariant.RESERVATION_ACCOUNTING,
                        f"transfer of {quantity} from {from_location} consumes more "
                        f"than the {reserved} reserved there",
                        item_id=str(item_id),
                        location=str(from_location),
                    )
                source.reserved_quantity -= quantity
            else:
                available = source.available_quantity if source is not None else 0
                if source is None or available < quantity:
                    raise InsufficientStockError(
                        item_id, from_location.location_id, quantity, available,
                    )

            source.quantity -= quantity
            source.updated_by_id = actor_id
            destination.quantity += quantity
            destination.updated_by_id = actor_id
            self._check_row(source, "transfer")
            self._check_row(destination, "transfer")
            session.flush()

            logger.info(
                "stock_transferred",
                extra={
                    "item_id": str(item_id),
                    "from_location": str(from_location),
                    "to_location": str(to_location),
                    "quantity": quantity,
                    "consume_reservation": consume_reservation,
                },
            )
            return source.to_dto(), destination.to_dto()

    def receive(
        self,
        item_id: UUID,
        location: LocationRef,
        quantity: int,
        *,
        company_id: UUID,
        actor_id: UUID,
    ) -> StockLevel:
        """Add stock arriving from outside the ledger."""
        require_positive_quantity(quantity)
        with self._uow.begin() as session:
            row = self._lock_or_create_row(session, item_id, location, company_id, actor_id)
            row.quantity += quantity
            row.updated_by_id = actor_id
            self._check_row(row, "receive")
            session.flush()
            logger.info(
                "stock_received",
                extra={
                    "item_id": str(item_id),
                    "location": str(location),
                    "quantity": quantity,
                    "new_quantity": row.quantity,
                },
            )
            return row.to_dto()

    def remove(
        self, item_id: UUID, location: LocationRef, quantity: int, *, actor_id: UUID,
    ) -> StockLevel:
        """Take unreserved stock out of the ledger (issue, damage)."""
        require_positive_quantity(quantity)
        with self._uow.begin() as session:
            row = self._lock_row(session, item_id, location)
            available = row.available_quantity if row is not None else 0
            if row is None or available < quantity:
                raise InsufficientStockError(item_id, location.location_id, quantity, available)
            row.quantity -= quantity
            row.updated_by_id = actor_id
            self._check_row(row, "remove")
            session.flush()
            logger.info(
                "stock_removed",
                extra={
                    "item_id": str(item_id),
                    "location": str(location),
                    "quantity": quantity,
                    "new_quantity": row.quantity,
                },
            )
            return row.to_dto()

    def adjust(
        self,
        item_id: UUID,
        location: LocationRef,
        new_quantity: int,
        *,
        company_id: UUID,
        actor_id: UUID,
        reason: str,
        counted_at: datetime | None = None,
    ) -> int:
        """Set quantity directly and return the delta for the paired movement.

        ``counted_at`` marks the adjustment as a physical count.
        """
        if isinstance(new_quantity, bool) or not isinstance(new_quantity, int) or new_quantity < 0:
            raise ValidationError(
                f"new_quantity must be a non-negative whole number, got {new_quantity!r}",
                field="new_quantity",
            )
        if not reason or not reason.strip():
            raise ValidationError("adjustments require a reason", field="reason")

        with self._uow.begin() as session:
            row = self._lock_or_create_row(session, item_id, location, company_id, actor_id)
            if new_quantity < row.reserved_quantity:
                raise _violation(
                    KernelInvariant.RESERVATION_BOUND,
                    f"cannot set {location} to {new_quantity}: "
                    f"{row.reserved_quantity} already reserved",
                    item_id=str(item_id),
                    location=str(location),
                )
            delta = new_quantity - row.quantity
            row.quantity = new_quantity
            row.updated_by_id = actor_id
            if counted_at is not None:
                row.last_counted_at = counted_at
                row.last_counted_by_id = actor_id
            self._check_row(row, "adjust")
            session.flush()
            logger.info(
                "stock_adjusted",
                extra={
                    "item_id": str(item_id),
                    "location": str(location),
                    "new_quantity": new_quantity,
                    "delta": delta,
                    "reason": reason,
                },
            )
            return delta
