"""
RequestWorkflow -- the inventory request lifecycle.

Responsibility:
    Owns every status change of an InventoryRequest.  Each public operation
    checks the actor's capability, consults the transition table in
    domain.workflow, validates route and company scope, and then drives the
    ReservationManager and TransferRouter.  Checkpoint timestamps are
    recorded as side effects of transitions.

Architecture position:
    Kernel > Services -- top of the kernel.  Depends on ReservationManager,
    TransferRouter, and the CapabilityChecker / WorkOrderDirectory
    collaborators.  Each operation is one UnitOfWork.run() call, so it
    commits atomically and is retried as a whole on write conflicts.

Lifecycle:
    create_request                       -> PENDING
    approve_request    PENDING           -> APPROVED     reserve at source
    reject_request     PENDING           -> REJECTED
    cancel_request     PENDING|APPROVED  -> CANCELLED    release holds
    dispatch_from_warehouse
                       APPROVED|IN_TRANSIT -> IN_TRANSIT  handover, no stock moves
    receive_at_destination_warehouse
                       IN_TRANSIT        -> IN_TRANSIT   hop 1 (two-hop only)
    confirm_receipt    IN_TRANSIT        -> IN_TRANSIT | DELIVERED   final hop

    A request sourced from a non-warehouse location (a technician's van)
    has no dispatch checkpoint; confirm_receipt on APPROVED performs the
    handover implicitly.

Invariants enforced:
    TRANSITION_LEGALITY -- nothing outside the table happens; the request row
    is locked for the duration of the operation.
    DELIVERY_BOUND -- every checkpoint quantity is bounded by the previous
    one, and quantity_delivered only grows.
    CONSERVATION -- stock only moves through TransferRouter.realize_hop.

Failure modes:
    - UnauthorizedActionError / OutOfScopeError before anything is read.
    - ValidationError and its subclasses for bad input.
    - InvalidStateTransitionError when (status, action) is not in the table.
    - StateAlreadyReachedError when the checkpoint has nothing left to record.
    - CrossCompanyRoutingError / InvalidRouteError before any stock mutation.
    - InsufficientStockError when the source cannot cover the approval.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.db.unit_of_work import UnitOfWork
from inventory_kernel.domain.authority import (
    Capability,
    CapabilityChecker,
    WorkOrderDirectory,
)
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import RequestRecord
from inventory_kernel.domain.routing import Route, plan_route
from inventory_kernel.domain.values import Actor, LocationInfo, LocationRef, Urgency
from inventory_kernel.domain.workflow import (
    RequestAction,
    RequestStatus,
    is_already_reached,
    is_permitted,
    target_status,
)
from inventory_kernel.exceptions import (
    InactiveItemError,
    InvalidRouteError,
    InvalidStateTransitionError,
    ItemNotFoundError,
    OutOfScopeError,
    RequestNotFoundError,
    StateAlreadyReachedError,
    UnauthorizedActionError,
    ValidationError,
    WorkOrderNotFoundError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.item import InventoryItem
from inventory_kernel.models.request import InventoryRequest
from inventory_kernel.services.reservation_manager import ReservationManager
from inventory_kernel.services.stock_ledger import require_positive_quantity
from inventory_kernel.services.transfer_router import TransferRouter

logger = get_logger("services.request_workflow")


class RequestWorkflow:
    """Request lifecycle state machine.

    Every operation takes the Actor performing it and returns a frozen
    RequestRecord of the request after the change.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        reservations: ReservationManager,
        router: TransferRouter,
        authority: CapabilityChecker,
        work_orders: WorkOrderDirectory,
        clock: Clock | None = None,
        default_urgency: Urgency = Urgency.NORMAL,
    ):
        self._uow = uow
        self._reservations = reservations
        self._router = router
        self._authority = authority
        self._work_orders = work_orders
        self._clock = clock or SystemClock()
        self._default_urgency = default_urgency

    # -----------------------------------------------------------------
    # Guards
    # -----------------------------------------------------------------

    def _authorize(self, actor: Actor, capability: Capability) -> None:
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

    @staticmethod
    def _require_scope(actor: Actor, company_id: UUID, action: str) -> None:
        if not actor.in_company(company_id):
            logger.warning(
                "action_out_of_scope",
                extra={
                    "actor_id": str(actor.user_id),
                    "actor_company_id": str(actor.company_id),
                    "company_id": str(company_id),
                    "action": action,
                },
            )
            raise OutOfScopeError(actor.user_id, action, company_id)

    @staticmethod
    def _check_transition(request: InventoryRequest, action: RequestAction) -> None:
        status = request.request_status
        if is_already_reached(status, action):
            raise StateAlreadyReachedError(request.id, status.value, action.value)
        if not is_permitted(status, action):
            raise InvalidStateTransitionError(request.id, status.value, action.value)

    @staticmethod
    def _bounded_quantity(
        request: InventoryRequest,
        action: RequestAction,
        requested: int | None,
        pending: int,
    ) -> int:
        """Quantity for a checkpoint: the caller's, or everything pending."""
        if pending <= 0:
            raise StateAlreadyReachedError(request.id, request.status, action.value)
        if requested is None:
            return pending
        require_positive_quantity(requested)
        if requested > pending:
            raise ValidationError(
                f"{action.value} quantity {requested} exceeds the {pending} pending",
                field="quantity",
            )
        return requested

    def _set_status(
        self,
        request: InventoryRequest,
        action: RequestAction,
        actor: Actor,
        *,
        complete: bool = False,
    ) -> None:
        previous = request.request_status
        new_status = target_status(previous, action, complete=complete)
        if new_status is None:
            raise InvalidStateTransitionError(request.id, previous.value, action.value)
        request.status = new_status.value
        request.updated_by_id = actor.user_id
        if new_status != previous:
            logger.info(
                "request_status_changed",
                extra={
                    "request_id": str(request.id),
                    "from_status": previous.value,
                    "to_status": new_status.value,
                    "action": action.value,
                    "actor_id": str(actor.user_id),
                },
            )

    # -----------------------------------------------------------------
    # Loading
    # -----------------------------------------------------------------

    @staticmethod
    def _lock_request(session: Session, request_id: UUID) -> InventoryRequest:
        request = session.execute(
            select(InventoryRequest)
            .where(InventoryRequest.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if request is None:
            raise RequestNotFoundError(request_id)
        return request

    @staticmethod
    def _load_item(session: Session, item_id: UUID) -> InventoryItem:
        item = session.get(InventoryItem, item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        return item

    @staticmethod
    def _stored_route(request: InventoryRequest) -> Route:
        """Re-derive the approved route from the request's own columns."""
        transit = None
        if request.is_two_hop:
            transit = LocationInfo(request.transit, request.transit_company_id)
        return plan_route(
            LocationInfo(request.source, request.source_company_id),
            LocationInfo(request.destination, request.destination_company_id),
            transit,
        )

    def _execute(self, name: str, actor: Actor, request_id: UUID | None, operation):
        with LogContext.bind(actor_id=actor.user_id, request_id=request_id):
            return self._uow.run(operation, name=name)

    # -----------------------------------------------------------------
    # Operations
    # -----------------------------------------------------------------

    def create_request(
        self,
        actor: Actor,
        *,
        work_order_id: UUID,
        item_id: UUID,
        destination: LocationRef,
        quantity: int,
        urgency: Urgency | str | None = None,
        notes: str | None = None,
    ) -> RequestRecord:
        """Open a PENDING request.  Nothing is reserved yet."""
        self._authorize(actor, Capability.CREATE_REQUEST)
        require_positive_quantity(quantity, "quantity_requested")
        urgency = Urgency(urgency) if urgency is not None else self._default_urgency
        if not self._work_orders.is_open(work_order_id):
            raise WorkOrderNotFoundError(work_order_id)
        destination_info = self._router.resolve(destination)
        self._require_scope(actor, destination_info.company_id, "create_request")

        def operation(session: Session) -> RequestRecord:
            item = self._load_item(session, item_id)
            if not item.is_active:
                raise InactiveItemError(item_id)
            request = InventoryRequest(
                work_order_id=work_order_id,
                item_id=item_id,
                requested_by_id=actor.user_id,
                quantity_requested=quantity,
                quantity_dispatched=0,
                quantity_received_in_transit=0,
                quantity_delivered=0,
                destination_location_id=destination_info.ref.location_id,
                destination_location_type=destination_info.ref.location_type.value,
                destination_company_id=destination_info.company_id,
                urgency=urgency.value,
                status=RequestStatus.PENDING.value,
                notes=notes,
                created_by_id=actor.user_id,
            )
            session.add(request)
            session.flush()
            logger.info(
                "request_created",
                extra={
                    "request_id": str(request.id),
                    "item_id": str(item_id),
                    "work_order_id": str(work_order_id),
                    "quantity_requested": quantity,
                    "destination": str(destination_info.ref),
                    "urgency": urgency.value,
                },
            )
            return request.to_dto()

        return self._execute("create_request", actor, None, operation)

    def approve_request(
        self,
        actor: Actor,
        request_id: UUID,
        *,
        source: LocationRef,
        quantity_approved: int | None = None,
        transit: LocationRef | None = None,
        review_notes: str | None = None,
    ) -> RequestRecord:
        """Approve (possibly partially) and reserve at the chosen source.

        The route is validated before any reservation is made.  Approving
        less than requested leaves the remainder unreserved.
        """
        self._authorize(actor, Capability.APPROVE_REQUEST)
        if quantity_approved is not None:
            require_positive_quantity(quantity_approved, "quantity_approved")

        def operation(session: Session) -> RequestRecord:
            request = self._lock_request(session, request_id)
            self._check_transition(request, RequestAction.APPROVE)
            self._require_scope(actor, request.destination_company_id, "approve_request")

            quantity = quantity_approved or request.quantity_requested
            if quantity > request.quantity_requested:
                raise ValidationError(
                    f"quantity_approved {quantity} exceeds quantity_requested "
                    f"{request.quantity_requested}",
                    field="quantity_approved",
                )

            route = self._router.plan(source, request.destination, transit)

            request.source_location_id = route.source.location_id
            request.source_location_type = route.source.location_type.value
            request.source_company_id = route.first_hop.from_company_id
            if route.is_two_hop:
                transit_ref = route.first_hop.to_location
                request.transit_location_id = transit_ref.location_id
                request.transit_location_type = transit_ref.location_type.value
                request.transit_company_id = route.first_hop.to_company_id

            self._reservations.reserve_for_approval(request, quantity, actor_id=actor.user_id)

            request.quantity_approved = quantity
            request.reviewed_by_id = actor.user_id
            request.reviewed_at = self._clock.now_utc()
            request.review_notes = review_notes
            self._set_status(request, RequestAction.APPROVE, actor)
            session.flush()
            logger.info(
                "request_approved",
                extra={
                    "request_id": str(request.id),
                    "quantity_approved": quantity,
                    "quantity_requested": request.quantity_requested,
                    "source": str(route.source),
                    "transit": str(request.transit) if route.is_two_hop else None,
                    "cross_company": route.first_hop.crosses_company,
                },
            )
            return request.to_dto()

        return self._execute("approve_request", actor, request_id, operation)

    def reject_request(
        self,
        actor: Actor,
        request_id: UUID,
        *,
        review_notes: str | None = None,
    ) -> RequestRecord:
        self._authorize(actor, Capability.REJECT_REQUEST)

        def operation(session: Session) -> RequestRecord:
            request = self._lock_request(session, request_id)
            self._check_transition(request, RequestAction.REJECT)
            self._require_scope(actor, request.destination_company_id, "reject_request")
            request.reviewed_by_id = actor.user_id
            request.reviewed_at = self._clock.now_utc()
            request.review_notes = review_notes
            self._set_status(request, RequestAction.REJECT, actor)
            session.flush()
            return request.to_dto()

        return self._execute("reject_request", actor, request_id, operation)

    def dispatch_from_warehouse(
        self,
        actor: Actor,
        request_id: UUID,
        *,
        quantity: int | None = None,
    ) -> RequestRecord:
        """Record the handover at the source warehouse.

        Goods stay on the source ledger, still reserved, until they are
        received at the next location.
        """
        self._authorize(actor, Capability.DELIVER_FROM_WAREHOUSE)

        def operation(session: Session) -> RequestRecord:
            request = self._lock_request(session, request_id)
            self._check_transition(request, RequestAction.DISPATCH)
            if not request.source.is_warehouse:
                raise InvalidRouteError(
                    f"request {request.id} is sourced from {request.source}, not a warehouse"
                )
            self._require_scope(actor, request.source_company_id, "dispatch_from_warehouse")

            dispatched = self._bounded_quantity(
                request,
                RequestAction.DISPATCH,
                quantity,
                request.quantity_approved - request.quantity_dispatched,
            )
            request.quantity_dispatched += dispatched
            request.dispatched_by_id = actor.user_id
            request.warehouse_delivered_at = self._clock.now_utc()
            self._set_status(request, RequestAction.DISPATCH, actor)
            session.flush()
            logger.info(
                "request_dispatched",
                extra={
                    "request_id": str(request.id),
                    "quantity": dispatched,
                    "quantity_dispatched": request.quantity_dispatched,
                },
            )
            return request.to_dto()

        return self._execute("dispatch_from_warehouse", actor, request_id, operation)

    def receive_at_destination_warehouse(
        self,
        actor: Actor,
        request_id: UUID,
        *,
        quantity: int | None = None,
    ) -> RequestRecord:
        """Realize the first hop of a two-hop route at the intermediate warehouse."""
        self._authorize(actor, Capability.RECEIVE_AT_DESTINATION)

        def operation(session: Session) -> RequestRecord:
            request = self._lock_request(session, request_id)
            self._check_transition(request, RequestAction.RECEIVE_AT_DESTINATION)
            if not request.is_two_hop:
                raise InvalidRouteError(
                    f"request {request.id} has no intermediate warehouse"
                )
            self._require_scope(
                actor, request.transit_company_id, "receive_at_destination_warehouse",
            )

            received = self._bounded_quantity(
                request,
                RequestAction.RECEIVE_AT_DESTINATION,
                quantity,
                request.quantity_dispatched - request.quantity_received_in_transit,
            )
            item = self._load_item(session, request.item_id)
            route = self._stored_route(request)

            self._router.realize_hop(
                route.first_hop,
                item_id=request.item_id,
                quantity=received,
                actor_id=actor.user_id,
                consume_reservation=True,
                unit_cost=item.unit_cost,
                request_id=request.id,
                work_order_id=request.work_order_id,
            )
            self._reservations.hold_at_transit(request, received, actor_id=actor.user_id)

            request.quantity_received_in_transit += received
            request.transit_received_by_id = actor.user_id
            request.destination_warehouse_received_at = self._clock.now_utc()
            self._set_status(request, RequestAction.RECEIVE_AT_DESTINATION, actor)
            session.flush()
            logger.info(
                "request_received_at_transit",
                extra={
                    "request_id": str(request.id),
                    "quantity": received,
                    "quantity_received_in_transit": request.quantity_received_in_transit,
                },
            )
            return request.to_dto()

        return self._execute("receive_at_destination_warehouse", actor, request_id, operation)

    def confirm_receipt(
        self,
        actor: Actor,
        request_id: UUID,
        *,
        quantity: int | None = None,
        receipt_notes: str | None = None,
    ) -> RequestRecord:
        """Realize the final hop for the delivered quantity.

        DELIVERED once the approved quantity has arrived; otherwise the
        request stays IN_TRANSIT for a follow-up delivery.
        """
        self._authorize(actor, Capability.CONFIRM_RECEIPT)

        def operation(session: Session) -> RequestRecord:
            request = self._lock_request(session, request_id)
            status = request.request_status
            if is_already_reached(status, RequestAction.CONFIRM_RECEIPT):
                raise StateAlreadyReachedError(request.id, status.value, RequestAction.CONFIRM_RECEIPT.value)
            self._require_scope(actor, request.destination_company_id, "confirm_receipt")

            if (
                status == RequestStatus.APPROVED
                and not request.is_two_hop
                and not request.source.is_warehouse
            ):
                # No warehouse checkpoint exists: the holder hands over everything.
                request.quantity_dispatched = request.quantity_approved
                self._set_status(request, RequestAction.DISPATCH, actor)
                logger.info(
                    "request_implicit_handover",
                    extra={"request_id": str(request.id), "source": str(request.source)},
                )

            self._check_transition(request, RequestAction.CONFIRM_RECEIPT)

            if request.is_two_hop:
                pending = request.quantity_received_in_transit - request.quantity_delivered
            else:
                pending = request.quantity_dispatched - request.quantity_delivered
            delivered = self._bounded_quantity(
                request, RequestAction.CONFIRM_RECEIPT, quantity, pending,
            )

            item = self._load_item(session, request.item_id)
            route = self._stored_route(request)
            self._router.realize_hop(
                route.final_hop,
                item_id=request.item_id,
                quantity=delivered,
                actor_id=actor.user_id,
                consume_reservation=True,
                unit_cost=item.unit_cost,
                request_id=request.id,
                work_order_id=request.work_order_id,
                notes=receipt_notes,
            )

            request.quantity_delivered += delivered
            request.received_by_id = actor.user_id
            request.received_at = self._clock.now_utc()
            if receipt_notes is not None:
                request.receipt_notes = receipt_notes
            complete = request.quantity_delivered == request.quantity_approved
            self._set_status(request, RequestAction.CONFIRM_RECEIPT, actor, complete=complete)
            session.flush()
            logger.info(
                "request_receipt_confirmed",
                extra={
                    "request_id": str(request.id),
                    "quantity": delivered,
                    "quantity_delivered": request.quantity_delivered,
                    "quantity_approved": request.quantity_approved,
                    "complete": complete,
                },
            )
            return request.to_dto()

        return self._execute("confirm_receipt", actor, request_id, operation)

    def cancel_request(
        self,
        actor: Actor,
        request_id: UUID,
        *,
        reason: str | None = None,
    ) -> RequestRecord:
        """Cancel a PENDING or APPROVED request, releasing any reservation.

        Allowed for the requester (with cancel_request) or anyone who may
        approve requests for the destination company.
        """

        def operation(session: Session) -> RequestRecord:
            request = self._lock_request(session, request_id)
            self._check_transition(request, RequestAction.CANCEL)

            is_requester = (
                actor.user_id == request.requested_by_id
                and self._authority.can_perform(actor.role, Capability.CANCEL_REQUEST)
            )
            if not is_requester:
                self._authorize(actor, Capability.APPROVE_REQUEST)
                self._require_scope(actor, request.destination_company_id, "cancel_request")

            released = self._reservations.release_all(request, actor_id=actor.user_id)

            request.cancelled_by_id = actor.user_id
            request.cancelled_at = self._clock.now_utc()
            if reason:
                request.review_notes = reason
            self._set_status(request, RequestAction.CANCEL, actor)
            session.flush()
            logger.info(
                "request_cancelled",
                extra={
                    "request_id": str(request.id),
                    "released": sum(qty for _, qty in released),
                    "by_requester": is_requester,
                },
            )
            return request.to_dto()

        return self._execute("cancel_request", actor, request_id, operation)

    def get_request(self, request_id: UUID) -> RequestRecord:
        with self._uow.begin() as session:
            request = session.get(InventoryRequest, request_id)
            if request is None:
                raise RequestNotFoundError(request_id)
            return request.to_dto()
