"""
inventory_services.catalog_service -- item catalog maintenance.

Responsibility:
    Creates, updates and soft-deletes catalog items.  An item created with
    initial stock gets one IN movement per stocked location, written in
    the same transaction as the item itself.

Architecture position:
    Services.  Uses the kernel's StockLedger and MovementRecorder for
    initial stock; never writes StockRow directly.

Invariants enforced:
    - Item codes are unique per company (DuplicateItemCodeError).
    - Items are never hard-deleted; deactivate_item sets is_active=False.
    - Only actors with manage_items may change the catalog, and only for
      their own company.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_kernel.db.unit_of_work import UnitOfWork
from inventory_kernel.domain.authority import Capability, CapabilityChecker
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import ItemRecord
from inventory_kernel.domain.values import Actor, LocationRef, MovementType
from inventory_kernel.exceptions import (
    DuplicateItemCodeError,
    InvalidRouteError,
    ItemNotFoundError,
    OutOfScopeError,
    UnauthorizedActionError,
    ValidationError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.item import InventoryItem
from inventory_kernel.services.movement_recorder import MovementRecorder
from inventory_kernel.services.stock_ledger import StockLedger, require_positive_quantity
from inventory_kernel.services.transfer_router import TransferRouter

logger = get_logger("services.catalog")

# Attributes update_item() may change.  code and company_id are identity.
UPDATABLE_FIELDS = frozenset({
    "name",
    "description",
    "category",
    "subcategory",
    "manufacturer",
    "model",
    "part_number",
    "unit",
    "min_stock",
    "max_stock",
    "reorder_point",
    "unit_cost",
    "average_cost",
    "last_purchase_price",
})


class ItemCatalogService:
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

    def _authorize(self, actor: Actor, company_id: UUID, action: str) -> None:
        if not self._authority.can_perform(actor.role, Capability.MANAGE_ITEMS):
            raise UnauthorizedActionError(actor.user_id, actor.role, Capability.MANAGE_ITEMS.value)
        if not actor.in_company(company_id):
            raise OutOfScopeError(actor.user_id, action, company_id)

    @staticmethod
    def _code_taken(session: Session, company_id: UUID, code: str) -> bool:
        stmt = select(InventoryItem.id).where(
            InventoryItem.company_id == company_id, InventoryItem.code == code,
        )
        return session.execute(stmt).first() is not None

    def create_item(
        self,
        actor: Actor,
        *,
        company_id: UUID,
        code: str,
        name: str,
        unit_cost: Decimal | None = None,
        initial_stock: Mapping[LocationRef, int] | None = None,
        **attributes: Any,
    ) -> ItemRecord:
        """Add an item to the catalog, optionally with opening stock.

        ``initial_stock`` maps warehouse locations of ``company_id`` to an
        opening quantity; each becomes an IN movement.
        """
        self._authorize(actor, company_id, "create_item")
        code = (code or "").strip()
        if not code:
            raise ValidationError("item code is required", field="code")
        if not name or not name.strip():
            raise ValidationError("item name is required", field="name")
        unknown = set(attributes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"unknown item attributes: {', '.join(sorted(unknown))}")

        opening: list[tuple[LocationRef, int]] = []
        for location, quantity in (initial_stock or {}).items():
            require_positive_quantity(quantity, "initial_stock")
            info = self._router.resolve(location)
            if not info.ref.is_warehouse:
                raise InvalidRouteError(f"initial stock must be placed in a warehouse, not {info.ref}")
            if info.company_id != company_id:
                raise ValidationError(
                    f"initial stock location {info.ref} belongs to another company",
                    field="initial_stock",
                )
            opening.append((info.ref, quantity))

        def operation(session: Session) -> ItemRecord:
            if self._code_taken(session, company_id, code):
                raise DuplicateItemCodeError(company_id, code)
            item = InventoryItem(
                company_id=company_id,
                code=code,
                name=name.strip(),
                unit_cost=unit_cost,
                is_active=True,
                created_by_id=actor.user_id,
                **attributes,
            )
            session.add(item)
            try:
                session.flush()
            except IntegrityError as exc:
                # A concurrent create won the unique constraint.
                raise DuplicateItemCodeError(company_id, code) from exc

            for location, quantity in opening:
                self._ledger.receive(
                    item.id, location, quantity, company_id=company_id, actor_id=actor.user_id,
                )
                self._recorder.record(
                    movement_type=MovementType.IN,
                    item_id=item.id,
                    quantity=quantity,
                    actor_id=actor.user_id,
                    to_location=location,
                    to_company_id=company_id,
                    unit_cost=unit_cost,
                    reason="initial stock",
                )

            logger.info(
                "item_created",
                extra={
                    "item_id": str(item.id),
                    "company_id": str(company_id),
                    "code": code,
                    "initial_locations": len(opening),
                    "initial_quantity": sum(q for _, q in opening),
                },
            )
            return item.to_dto()

        with LogContext.bind(actor_id=actor.user_id):
            return self._uow.run(operation, name="create_item")

    def update_item(self, actor: Actor, item_id: UUID, **changes: Any) -> ItemRecord:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"cannot update item attributes: {', '.join(sorted(unknown))}")

        def operation(session: Session) -> ItemRecord:
            item = session.get(InventoryItem, item_id, with_for_update=True)
            if item is None:
                raise ItemNotFoundError(item_id)
            self._authorize(actor, item.company_id, "update_item")
            if "name" in changes and not (changes["name"] or "").strip():
                raise ValidationError("item name is required", field="name")
            for attr, value in changes.items():
                setattr(item, attr, value)
            item.updated_by_id = actor.user_id
            session.flush()
            logger.info(
                "item_updated",
                extra={"item_id": str(item_id), "fields": sorted(changes)},
            )
            return item.to_dto()

        with LogContext.bind(actor_id=actor.user_id, item_id=item_id):
            return self._uow.run(operation, name="update_item")

    def deactivate_item(self, actor: Actor, item_id: UUID) -> ItemRecord:
        """Soft-delete.  Existing stock, requests and movements are untouched."""

        def operation(session: Session) -> ItemRecord:
            item = session.get(InventoryItem, item_id, with_for_update=True)
            if item is None:
                raise ItemNotFoundError(item_id)
            self._authorize(actor, item.company_id, "deactivate_item")
            if item.is_active:
                item.is_active = False
                item.deactivated_at = self._clock.now_utc()
                item.updated_by_id = actor.user_id
                session.flush()
                logger.info("item_deactivated", extra={"item_id": str(item_id)})
            return item.to_dto()

        with LogContext.bind(actor_id=actor.user_id, item_id=item_id):
            return self._uow.run(operation, name="deactivate_item")

    def get_item(self, item_id: UUID) -> ItemRecord:
        with self._uow.begin() as session:
            item = session.get(InventoryItem, item_id)
            if item is None:
                raise ItemNotFoundError(item_id)
            return item.to_dto()

    def find_by_code(self, company_id: UUID, code: str) -> ItemRecord | None:
        with self._uow.begin() as session:
            item = session.execute(
                select(InventoryItem).where(
                    InventoryItem.company_id == company_id, InventoryItem.code == code,
                )
            ).scalar_one_or_none()
            return item.to_dto() if item is not None else None
