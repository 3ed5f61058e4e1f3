"""
inventory_services.reconciliation_service -- stock vs. ledger verification.

Responsibility:
    Recomputes, from scratch, what every StockRow should say and compares
    it with what it does say:

    - quantity must equal the signed sum of movements at that location
      (conservation);
    - reserved_quantity must equal the holds of all APPROVED / IN_TRANSIT
      requests against that location (reservation accounting).

    Also flags rows with negative quantities or reservations above
    quantity, and movement sums for locations that have no StockRow.

Architecture position:
    Services -- read-only over kernel models and selectors.  Run by
    scripts/reconcile_stock.py and by the property tests after every
    generated operation sequence.

Failure modes:
    - assert_reconciled() raises InvariantViolationError (and logs at
      ERROR) when the report has any discrepancy.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from inventory_kernel.db.unit_of_work import UnitOfWork
from inventory_kernel.domain.dtos import ReconciliationReport, StockDiscrepancy
from inventory_kernel.domain.values import LocationRef
from inventory_kernel.domain.workflow import RESERVING_STATUSES
from inventory_kernel.exceptions import InvariantViolationError
from inventory_kernel.invariants import KernelInvariant
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.request import InventoryRequest
from inventory_kernel.models.stock import StockRow
from inventory_kernel.selectors.movement_selector import MovementSelector

logger = get_logger("services.reconciliation")

CONSERVATION = "conservation"
RESERVATION = "reservation"
NEGATIVE = "negative"
OVER_RESERVED = "over_reserved"
MISSING_ROW = "missing_row"


class StockReconciliationService:
    def __init__(self, uow: UnitOfWork):
        self._uow = uow

    def reconcile(self, item_id: UUID | None = None) -> ReconciliationReport:
        """Compare every StockRow (optionally for one item) with the ledger."""
        with self._uow.begin() as session:
            rows_stmt = select(StockRow)
            requests_stmt = select(InventoryRequest).where(
                InventoryRequest.status.in_([s.value for s in RESERVING_STATUSES])
            )
            if item_id is not None:
                rows_stmt = rows_stmt.where(StockRow.item_id == item_id)
                requests_stmt = requests_stmt.where(InventoryRequest.item_id == item_id)

            rows = session.execute(rows_stmt).scalars().all()
            net = MovementSelector(session).net_quantities(item_id)

            expected_reserved: dict[tuple[UUID, LocationRef], int] = {}
            for request in session.execute(requests_stmt).scalars():
                for location, quantity in request.reservation_holds():
                    key = (request.item_id, location)
                    expected_reserved[key] = expected_reserved.get(key, 0) + quantity

            discrepancies: list[StockDiscrepancy] = []
            seen: set[tuple[UUID, LocationRef]] = set()
            for row in rows:
                key = (row.item_id, row.location)
                seen.add(key)
                expected_qty = net.get(key, 0)
                if row.quantity != expected_qty:
                    discrepancies.append(
                        StockDiscrepancy(row.item_id, row.location, CONSERVATION, expected_qty, row.quantity)
                    )
                expected_res = expected_reserved.get(key, 0)
                if row.reserved_quantity != expected_res:
                    discrepancies.append(
                        StockDiscrepancy(row.item_id, row.location, RESERVATION, expected_res, row.reserved_quantity)
                    )
                if row.quantity < 0 or row.reserved_quantity < 0:
                    discrepancies.append(
                        StockDiscrepancy(row.item_id, row.location, NEGATIVE, 0, min(row.quantity, row.reserved_quantity))
                    )
                if row.reserved_quantity > row.quantity:
                    discrepancies.append(
                        StockDiscrepancy(row.item_id, row.location, OVER_RESERVED, row.quantity, row.reserved_quantity)
                    )

            for key, quantity in net.items():
                if key not in seen and quantity != 0:
                    discrepancies.append(StockDiscrepancy(key[0], key[1], MISSING_ROW, quantity, 0))
            for key, quantity in expected_reserved.items():
                if key not in seen:
                    discrepancies.append(StockDiscrepancy(key[0], key[1], MISSING_ROW, quantity, 0))

        report = ReconciliationReport(checked_rows=len(rows), discrepancies=tuple(discrepancies))
        log = logger.info if report.is_balanced else logger.warning
        log(
            "stock_reconciliation_completed",
            extra={
                "checked_rows": report.checked_rows,
                "discrepancy_count": len(report.discrepancies),
                "item_id": str(item_id) if item_id else None,
            },
        )
        return report

    def assert_reconciled(self, item_id: UUID | None = None) -> ReconciliationReport:
        report = self.reconcile(item_id)
        if not report.is_balanced:
            first = report.discrepancies[0]
            invariant = (
                KernelInvariant.RESERVATION_ACCOUNTING
                if first.kind == RESERVATION
                else KernelInvariant.CONSERVATION
            )
            logger.error(
                "stock_reconciliation_failed",
                extra={
                    "invariant": invariant.value,
                    "discrepancies": [
                        {
                            "item_id": str(d.item_id),
                            "location": str(d.location),
                            "kind": d.kind,
                            "expected": d.expected,
                            "actual": d.actual,
                        }
                        for d in report.discrepancies
                    ],
                },
            )
            raise InvariantViolationError(
                invariant.value,
                f"{len(report.discrepancies)} discrepancies; first: {first.kind} "
                f"for item {first.item_id} at {first.location} "
                f"(expected {first.expected}, actual {first.actual})",
            )
        return report
