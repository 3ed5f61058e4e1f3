"""
Pytest fixtures for the inventory kernel test suite.

Provides:
- A real database for every test (SQLite file by default, PostgreSQL when
  INVENTORY_TEST_DATABASE_URL points at one)
- In-memory location and work-order directories
- Actors for every configured role in two companies
- A fully wired InventoryOrchestrator
- Log capture as parsed JSON

Environment Variables:
- INVENTORY_TEST_DATABASE_URL: database URL for the suite.  If not set, a
  SQLite file in the pytest temp directory is used.

Isolation:
    Services commit real transactions (UnitOfWork owns its sessions), so
    every test starts from empty tables: rows are deleted after each test.
    Raw DELETE / TRUNCATE bypasses the ORM immutability listeners.
"""

import json
import logging
import os
from collections.abc import Generator
from dataclasses import dataclass
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from inventory_config import get_active_config
from inventory_kernel.db.base import Base
from inventory_kernel.db.engine import (
    build_engine,
    build_session_factory,
    create_tables,
    drop_tables,
)
from inventory_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from inventory_kernel.db.unit_of_work import UnitOfWork
from inventory_kernel.domain.clock import DeterministicClock
from inventory_kernel.domain.dtos import ItemRecord, StockLevel
from inventory_kernel.domain.values import Actor, LocationInfo, LocationRef, LocationType
from inventory_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from inventory_services.orchestrator import InventoryOrchestrator

ENV_TEST_DATABASE_URL = "INVENTORY_TEST_DATABASE_URL"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture inventory_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, orchestrator):
            orchestrator.workflow.create_request(...)
            logs = captured_logs()
            assert any(r["message"] == "request_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("inventory_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for DB locks"
    )


# =============================================================================
# Session-scoped DB infrastructure (create engine + tables ONCE per suite)
# =============================================================================


@pytest.fixture(scope="session")
def database_url(tmp_path_factory) -> str:
    url = os.environ.get(ENV_TEST_DATABASE_URL)
    if url:
        return url
    return f"sqlite:///{tmp_path_factory.mktemp('db') / 'inventory_test.db'}"


@pytest.fixture(scope="session")
def db_engine(database_url) -> Generator[Engine, None, None]:
    """Single engine for the entire test session.

    Pool is large enough for the concurrency tests.
    """
    eng = build_engine(database_url, pool_size=20, max_overflow=10, sqlite_busy_timeout=30.0)
    yield eng
    eng.dispose()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session, drop once at end.

    Immutability listeners are registered once and remain active.
    """
    drop_tables(db_engine)
    create_tables(db_engine)
    register_immutability_listeners()
    yield
    unregister_immutability_listeners()
    drop_tables(db_engine)


def _delete_all_rows(engine: Engine) -> None:
    """Empty every table (bypasses ORM-level immutability listeners)."""
    table_names = [t.name for t in reversed(Base.metadata.sorted_tables)]
    with engine.begin() as conn:
        if engine.dialect.name == "postgresql":
            conn.execute(text("TRUNCATE " + ", ".join(table_names) + " CASCADE"))
        else:
            for name in table_names:
                conn.execute(text(f"DELETE FROM {name}"))


@pytest.fixture
def is_postgres(db_engine) -> bool:
    return db_engine.dialect.name == "postgresql"


@pytest.fixture
def session_factory(db_engine, db_tables) -> Generator[sessionmaker[Session], None, None]:
    factory = build_session_factory(db_engine)
    yield factory
    _delete_all_rows(db_engine)


@pytest.fixture
def uow(session_factory) -> UnitOfWork:
    return UnitOfWork(session_factory, max_attempts=5, backoff_seconds=0.01)


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock()


# =============================================================================
# Collaborator fakes
# =============================================================================


class InMemoryLocationDirectory:
    """LocationDirectory backed by a dict."""

    def __init__(self):
        self._locations: dict[LocationRef, LocationInfo] = {}

    def add(
        self,
        location_type: LocationType,
        company_id: UUID,
        name: str = "",
        is_active: bool = True,
    ) -> LocationRef:
        ref = LocationRef(uuid4(), location_type)
        self._locations[ref] = LocationInfo(ref, company_id, is_active, name)
        return ref

    def deactivate(self, ref: LocationRef) -> None:
        info = self._locations[ref]
        self._locations[ref] = LocationInfo(info.ref, info.company_id, False, info.name)

    def resolve(self, ref: LocationRef) -> LocationInfo | None:
        return self._locations.get(ref)


class InMemoryWorkOrderDirectory:
    """WorkOrderDirectory backed by a set of open ids."""

    def __init__(self):
        self._open: set[UUID] = set()

    def open(self) -> UUID:
        work_order_id = uuid4()
        self._open.add(work_order_id)
        return work_order_id

    def close(self, work_order_id: UUID) -> None:
        self._open.discard(work_order_id)

    def is_open(self, work_order_id: UUID) -> bool:
        return work_order_id in self._open


# =============================================================================
# Companies, locations, work orders
# =============================================================================


@pytest.fixture
def company_a() -> UUID:
    return uuid4()


@pytest.fixture
def company_b() -> UUID:
    return uuid4()


@pytest.fixture
def locations() -> InMemoryLocationDirectory:
    return InMemoryLocationDirectory()


@pytest.fixture
def warehouse_a(locations, company_a) -> LocationRef:
    return locations.add(LocationType.WAREHOUSE, company_a, "Main warehouse A")


@pytest.fixture
def warehouse_a2(locations, company_a) -> LocationRef:
    return locations.add(LocationType.WAREHOUSE, company_a, "Secondary warehouse A")


@pytest.fixture
def warehouse_b(locations, company_b) -> LocationRef:
    return locations.add(LocationType.WAREHOUSE, company_b, "Main warehouse B")


@pytest.fixture
def site_a(locations, company_a) -> LocationRef:
    return locations.add(LocationType.SITE, company_a, "Site A")


@pytest.fixture
def site_b(locations, company_b) -> LocationRef:
    return locations.add(LocationType.SITE, company_b, "Site B")


@pytest.fixture
def vehicle_a(locations, company_a) -> LocationRef:
    return locations.add(LocationType.VEHICLE, company_a, "Van A-1")


@pytest.fixture
def work_orders() -> InMemoryWorkOrderDirectory:
    return InMemoryWorkOrderDirectory()


@pytest.fixture
def work_order(work_orders) -> UUID:
    return work_orders.open()


# =============================================================================
# Actors
# =============================================================================


@pytest.fixture
def make_actor():
    def _make(role: str, company_id: UUID | None) -> Actor:
        return Actor(user_id=uuid4(), role=role, company_id=company_id)

    return _make


@pytest.fixture
def admin_a(make_actor, company_a) -> Actor:
    return make_actor("company_admin", company_a)


@pytest.fixture
def group_admin(make_actor) -> Actor:
    return make_actor("group_admin", None)


@pytest.fixture
def chief_a(make_actor, company_a) -> Actor:
    return make_actor("maintenance_chief", company_a)


@pytest.fixture
def chief_b(make_actor, company_b) -> Actor:
    return make_actor("maintenance_chief", company_b)


@pytest.fixture
def keeper_a(make_actor, company_a) -> Actor:
    return make_actor("warehouse_keeper", company_a)


@pytest.fixture
def keeper_b(make_actor, company_b) -> Actor:
    return make_actor("warehouse_keeper", company_b)


@pytest.fixture
def technician_a(make_actor, company_a) -> Actor:
    return make_actor("technician", company_a)


@pytest.fixture
def technician_b(make_actor, company_b) -> Actor:
    return make_actor("technician", company_b)


# =============================================================================
# Wired services
# =============================================================================


@pytest.fixture(scope="session")
def settings():
    return get_active_config()


@pytest.fixture
def orchestrator(uow, settings, locations, work_orders, clock) -> InventoryOrchestrator:
    return InventoryOrchestrator(uow, settings, locations, work_orders, clock=clock)


@pytest.fixture
def workflow(orchestrator):
    return orchestrator.workflow


@pytest.fixture
def ledger(orchestrator):
    return orchestrator.ledger


@pytest.fixture
def make_item(orchestrator, admin_a, company_a):
    """Create a catalog item of company A, optionally with opening stock."""

    def _make(initial_stock: dict[LocationRef, int] | None = None, **attributes) -> ItemRecord:
        attributes.setdefault("unit_cost", None)
        return orchestrator.catalog.create_item(
            admin_a,
            company_id=company_a,
            code=attributes.pop("code", f"ITM-{uuid4().hex[:8]}"),
            name=attributes.pop("name", "Hydraulic filter"),
            initial_stock=initial_stock,
            **attributes,
        )

    return _make


@pytest.fixture
def item(make_item, warehouse_a) -> ItemRecord:
    """An item with 100 units at warehouse A."""
    return make_item({warehouse_a: 100})


@pytest.fixture
def stock_at(ledger):
    """(item_id, location) -> StockLevel, or a zero level when no row exists."""

    def _get(item_id: UUID, location: LocationRef) -> StockLevel:
        level = ledger.get_row(item_id, location)
        if level is None:
            return StockLevel(item_id, location, uuid4(), 0, 0)
        return level

    return _get


@pytest.fixture
def movements_of(orchestrator):
    def _get(item_id: UUID):
        with orchestrator.read() as views:
            return views.movements.by_item(item_id)

    return _get


@dataclass
class RequestScenario:
    """Everything a lifecycle test needs about one request."""

    request_id: UUID
    item_id: UUID
    source: LocationRef
    destination: LocationRef


@pytest.fixture
def make_approved_request(workflow, chief_a, technician_a, item, warehouse_a, site_a, work_order):
    """Single-hop request for 10 units, approved from warehouse A to site A."""

    def _make(quantity: int = 10, approved: int | None = None) -> RequestScenario:
        created = workflow.create_request(
            technician_a,
            work_order_id=work_order,
            item_id=item.id,
            destination=site_a,
            quantity=quantity,
        )
        workflow.approve_request(
            chief_a, created.id, source=warehouse_a, quantity_approved=approved,
        )
        return RequestScenario(created.id, item.id, warehouse_a, site_a)

    return _make
