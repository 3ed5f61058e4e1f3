"""
Read-side queries: StockSelector, MovementSelector, RequestSelector.

Data is created through the services, then read back inside
orchestrator.read().
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_kernel.domain.values import MovementType, Urgency
from inventory_kernel.domain.workflow import RequestStatus
from inventory_kernel.selectors.movement_selector import MovementFilter
from inventory_kernel.selectors.request_selector import RequestFilter


@pytest.fixture
def stocked(orchestrator, keeper_a, make_item, warehouse_a, warehouse_a2, site_a):
    """Two items spread over three locations, with one empty row."""
    bolts = make_item({warehouse_a: 50, warehouse_a2: 20}, unit_cost=Decimal("0.10"), code="BOLT")
    nuts = make_item({warehouse_a: 30}, unit_cost=Decimal("0.05"), code="NUT")
    orchestrator.stock.transfer_stock(keeper_a, bolts.id, warehouse_a2, site_a, 20)
    return bolts, nuts


class TestStockSelector:
    def test_by_item_largest_first_and_hides_empty(self, orchestrator, stocked, warehouse_a, warehouse_a2, site_a):
        bolts, _ = stocked
        with orchestrator.read() as views:
            levels = views.stock.by_item(bolts.id)
            with_empty = views.stock.by_item(bolts.id, include_empty=True)
        assert [(lv.location, lv.quantity) for lv in levels] == [(warehouse_a, 50), (site_a, 20)]
        assert {lv.location for lv in with_empty} == {warehouse_a, warehouse_a2, site_a}

    def test_by_location(self, orchestrator, stocked, warehouse_a):
        bolts, nuts = stocked
        with orchestrator.read() as views:
            levels = views.stock.by_location(warehouse_a)
        assert {lv.item_id for lv in levels} == {bolts.id, nuts.id}

    def test_by_company(self, orchestrator, stocked, company_a, company_b):
        with orchestrator.read() as views:
            assert len(views.stock.by_company(company_a)) == 3
            assert views.stock.by_company(company_b) == ()

    def test_level_missing_row(self, orchestrator, stocked, warehouse_b):
        bolts, _ = stocked
        with orchestrator.read() as views:
            assert views.stock.level(bolts.id, warehouse_b) is None


class TestMovementSelector:
    def test_filtered_pagination(self, orchestrator, stocked):
        with orchestrator.read() as views:
            first = views.movements.list(MovementFilter(movement_type=MovementType.IN), limit=2)
            second = views.movements.list(MovementFilter(movement_type=MovementType.IN), offset=2, limit=2)
        assert first.total == 3
        assert len(first.items) == 2
        assert first.has_more
        assert len(second.items) == 1
        assert not second.has_more
        assert {m.id for m in first.items}.isdisjoint({m.id for m in second.items})

    def test_location_filter_matches_either_side(self, orchestrator, stocked, warehouse_a2):
        with orchestrator.read() as views:
            page = views.movements.list(MovementFilter(location=warehouse_a2))
        assert {m.movement_type for m in page.items} == {MovementType.IN, MovementType.TRANSFER}

    def test_date_range(self, orchestrator, stocked, clock):
        with orchestrator.read() as views:
            assert views.movements.list(MovementFilter(date_from=clock.now_utc())).total == 4
            later = clock.now_utc().replace(year=2030)
            assert views.movements.list(MovementFilter(date_from=later)).total == 0

    def test_counts_and_values(self, orchestrator, stocked):
        with orchestrator.read() as views:
            counts = {c.movement_type: c for c in views.movements.counts_by_type()}
            totals = views.movements.total_value()
        assert counts[MovementType.IN].count == 3
        assert counts[MovementType.IN].total_quantity == 100
        assert counts[MovementType.TRANSFER].count == 1
        # 70 bolts at 0.10 + 30 nuts at 0.05
        assert totals[MovementType.IN] == Decimal("8.50")
        assert totals[MovementType.OUT] == Decimal("0")

    def test_by_work_order_and_request(
        self, orchestrator, workflow, keeper_a, technician_a, make_approved_request, work_order,
    ):
        scenario = make_approved_request(5)
        workflow.dispatch_from_warehouse(keeper_a, scenario.request_id)
        workflow.confirm_receipt(technician_a, scenario.request_id)
        with orchestrator.read() as views:
            (by_request,) = views.movements.by_request(scenario.request_id)
            (by_work_order,) = views.movements.by_work_order(work_order)
        assert by_request.id == by_work_order.id

    def test_net_quantities(self, orchestrator, stocked, warehouse_a, warehouse_a2, site_a):
        bolts, _ = stocked
        with orchestrator.read() as views:
            net = views.movements.net_quantities(bolts.id)
        assert net == {
            (bolts.id, warehouse_a): 50,
            (bolts.id, warehouse_a2): 0,
            (bolts.id, site_a): 20,
        }

    def test_inter_company_filter_by_company(
        self, orchestrator, keeper_a, stocked, warehouse_a, warehouse_b, company_a, company_b,
    ):
        bolts, _ = stocked
        orchestrator.stock.transfer_stock(keeper_a, bolts.id, warehouse_a, warehouse_b, 5)
        with orchestrator.read() as views:
            assert len(views.movements.inter_company_transfers(company_b)) == 1
            assert len(views.movements.inter_company_transfers(company_a)) == 1
            assert views.movements.inter_company_transfers(uuid4()) == ()


class TestRequestSelector:
    def _create(self, workflow, actor, item, destination, work_order, urgency):
        return workflow.create_request(
            actor, work_order_id=work_order, item_id=item.id, destination=destination,
            quantity=1, urgency=urgency,
        )

    def test_pending_queue_most_urgent_first(
        self, orchestrator, workflow, technician_a, technician_b, item, site_a, site_b, work_order, company_a,
    ):
        low = self._create(workflow, technician_a, item, site_a, work_order, Urgency.LOW)
        critical = self._create(workflow, technician_a, item, site_a, work_order, Urgency.CRITICAL)
        high = self._create(workflow, technician_a, item, site_a, work_order, Urgency.HIGH)
        self._create(workflow, technician_b, item, site_b, work_order, Urgency.CRITICAL)

        with orchestrator.read() as views:
            queue = views.requests.pending(company_a)
            everything = views.requests.pending()
        assert [r.id for r in queue] == [critical.id, high.id, low.id]
        assert len(everything) == 4

    def test_open_by_urgency_and_reserving(
        self, orchestrator, make_approved_request,
    ):
        scenario = make_approved_request(3)
        with orchestrator.read() as views:
            open_normal = views.requests.open_by_urgency(Urgency.NORMAL)
            reserving = views.requests.reserving(scenario.item_id)
        assert [r.id for r in open_normal] == [scenario.request_id]
        assert [r.id for r in reserving] == [scenario.request_id]

    def test_list_with_filters(
        self, orchestrator, workflow, chief_a, technician_a, item, site_a, work_order,
    ):
        kept = self._create(workflow, technician_a, item, site_a, work_order, Urgency.NORMAL)
        dropped = self._create(workflow, technician_a, item, site_a, work_order, Urgency.NORMAL)
        workflow.reject_request(chief_a, dropped.id)

        with orchestrator.read() as views:
            pending = views.requests.list(RequestFilter(status=RequestStatus.PENDING))
            mine = views.requests.by_requester(technician_a.user_id)
            for_job = views.requests.by_work_order(work_order)
            missing = views.requests.get(uuid4())
        assert [r.id for r in pending.items] == [kept.id]
        assert len(mine) == 2
        assert len(for_job) == 2
        assert missing is None
