"""
inventory_services.orchestrator -- Central DI container for the inventory kernel.

Responsibility:
    Creates every kernel component exactly once and wires them together.
    No component constructs another internally; the orchestrator is the
    single place where the dependency graph is visible.

Architecture position:
    Services -- top of the service layer.  Consumes InventorySettings from
    inventory_config and the LocationDirectory / WorkOrderDirectory
    collaborators supplied by the host application.

Invariants enforced:
    - Single-instance lifecycle: one UnitOfWork, StockLedger and
      MovementRecorder per orchestrator, shared by every component.
    - All components share the same Clock.
    - Movement and request immutability listeners are registered before
      any component can write.

Usage:
    from inventory_services.orchestrator import InventoryOrchestrator

    orchestrator = InventoryOrchestrator.from_session_factory(
        session_factory,
        settings=get_active_config(),
        locations=location_directory,
        work_orders=work_order_directory,
    )

    record = orchestrator.workflow.create_request(actor, ...)
    with orchestrator.read() as views:
        views.stock.by_item(item_id)
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy.orm import Session, sessionmaker

from inventory_config.schema import InventorySettings
from inventory_kernel.db.immutability import register_immutability_listeners
from inventory_kernel.db.unit_of_work import UnitOfWork
from inventory_kernel.domain.authority import (
    CapabilityChecker,
    LocationDirectory,
    WorkOrderDirectory,
)
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.values import Urgency
from inventory_kernel.selectors import MovementSelector, RequestSelector, StockSelector
from inventory_kernel.services import (
    MovementRecorder,
    RequestWorkflow,
    ReservationManager,
    StockLedger,
    TransferRouter,
)
from inventory_services.catalog_service import ItemCatalogService
from inventory_services.rbac_authority import RoleCapabilityAuthority
from inventory_services.reconciliation_service import StockReconciliationService
from inventory_services.stock_service import StockOperationsService


@dataclass(frozen=True)
class ReadViews:
    """Selectors bound to one read transaction."""

    stock: StockSelector
    movements: MovementSelector
    requests: RequestSelector


class InventoryOrchestrator:
    """Owns the component graph.  Does not own the engine or its lifecycle."""

    def __init__(
        self,
        uow: UnitOfWork,
        settings: InventorySettings,
        locations: LocationDirectory,
        work_orders: WorkOrderDirectory,
        authority: CapabilityChecker | None = None,
        clock: Clock | None = None,
    ) -> None:
        register_immutability_listeners()
        self.uow = uow
        self.settings = settings
        self.clock = clock or SystemClock()
        self.authority = authority or RoleCapabilityAuthority(settings)

        # Order matters: each component only receives already-built ones.
        self.ledger = StockLedger(uow)
        self.recorder = MovementRecorder(uow, self.clock)
        self.reservations = ReservationManager(uow, self.ledger)
        self.router = TransferRouter(uow, self.ledger, self.recorder, locations)
        self.workflow = RequestWorkflow(
            uow,
            self.reservations,
            self.router,
            self.authority,
            work_orders,
            clock=self.clock,
            default_urgency=Urgency(settings.requests.default_urgency),
        )
        self.catalog = ItemCatalogService(
            uow, self.ledger, self.recorder, self.router, self.authority, self.clock,
        )
        self.stock = StockOperationsService(
            uow, self.ledger, self.recorder, self.router, self.authority, self.clock,
        )
        self.reconciliation = StockReconciliationService(uow)

    @classmethod
    def from_session_factory(
        cls,
        session_factory: sessionmaker[Session],
        settings: InventorySettings,
        locations: LocationDirectory,
        work_orders: WorkOrderDirectory,
        authority: CapabilityChecker | None = None,
        clock: Clock | None = None,
    ) -> InventoryOrchestrator:
        uow = UnitOfWork(
            session_factory,
            max_attempts=settings.transactions.max_attempts,
            backoff_seconds=settings.transactions.backoff_seconds,
        )
        return cls(uow, settings, locations, work_orders, authority=authority, clock=clock)

    @contextmanager
    def read(self) -> Generator[ReadViews, None, None]:
        with self.uow.begin() as session:
            yield ReadViews(
                stock=StockSelector(session),
                movements=MovementSelector(session),
                requests=RequestSelector(session),
            )
