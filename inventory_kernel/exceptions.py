"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Stock operations fail for a handful of well-understood reasons: the goods
are not there, the request is in the wrong state, the caller may not act,
or the route crosses a company boundary it should not. Callers must be able
to distinguish these without parsing messages:

    try:
        workflow.approve_request(actor, request_id, source, quantity)
    except InsufficientStockError as e:
        api_response(code=e.code, shortfall=e.shortfall)
    except InvalidStateTransitionError as e:
        api_response(code=e.code, status=e.current_status)

Every exception has a CODE class attribute (machine-readable, API-safe) and
carries its context as structured attributes. StructuredFormatter copies
those attributes into the JSON log line.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- ValidationError
    |   +-- ItemNotFoundError
    |   +-- InactiveItemError
    |   +-- DuplicateItemCodeError
    |   +-- LocationNotFoundError
    |   +-- InactiveLocationError
    |   +-- WorkOrderNotFoundError
    |
    +-- StockError
    |   +-- InsufficientStockError
    |
    +-- InvariantViolationError
    |
    +-- WorkflowError
    |   +-- RequestNotFoundError
    |   +-- InvalidStateTransitionError
    |   +-- StateAlreadyReachedError
    |
    +-- RoutingError
    |   +-- CrossCompanyRoutingError
    |   +-- InvalidRouteError
    |
    +-- AuthorizationError
    |   +-- UnauthorizedActionError
    |   +-- OutOfScopeError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
HANDLING GUIDE
===============================================================================

    ValidationError          -> reject the input, nothing was written
    StockError               -> user-facing "not enough stock", report shortfall
    InvariantViolationError  -> page someone; the ledger disagrees with itself
    WorkflowError            -> stale UI, refresh the request
    RoutingError             -> pick a different source or transit warehouse
    AuthorizationError       -> 403
    ConcurrencyError         -> already retried by UnitOfWork; surface as 409
    ImmutabilityError        -> log security alert

===============================================================================
"""

from uuid import UUID


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Validation exceptions


class ValidationError(InventoryKernelError):
    """Input rejected before any state was written."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class ItemNotFoundError(ValidationError):
    """Inventory item with given ID does not exist."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id: UUID | str):
        self.item_id = str(item_id)
        super().__init__(f"Inventory item not found: {item_id}", field="item_id")


class InactiveItemError(ValidationError):
    """Inventory item exists but has been deactivated."""

    code: str = "ITEM_INACTIVE"

    def __init__(self, item_id: UUID | str):
        self.item_id = str(item_id)
        super().__init__(f"Inventory item is inactive: {item_id}", field="item_id")


class DuplicateItemCodeError(ValidationError):
    """Item code already used within the company."""

    code: str = "DUPLICATE_ITEM_CODE"

    def __init__(self, company_id: UUID | str, item_code: str):
        self.company_id = str(company_id)
        self.item_code = item_code
        super().__init__(
            f"Item code '{item_code}' already exists in company {company_id}",
            field="code",
        )


class LocationNotFoundError(ValidationError):
    """Location reference could not be resolved."""

    code: str = "LOCATION_NOT_FOUND"

    def __init__(self, location_id: UUID | str, location_type: str):
        self.location_id = str(location_id)
        self.location_type = location_type
        super().__init__(
            f"Location not found: {location_type}:{location_id}",
            field="location",
        )


class InactiveLocationError(ValidationError):
    """Location exists but is not active."""

    code: str = "LOCATION_INACTIVE"

    def __init__(self, location_id: UUID | str, location_type: str):
        self.location_id = str(location_id)
        self.location_type = location_type
        super().__init__(
            f"Location is inactive: {location_type}:{location_id}",
            field="location",
        )


class WorkOrderNotFoundError(ValidationError):
    """Work order does not exist or is no longer open."""

    code: str = "WORK_ORDER_NOT_FOUND"

    def __init__(self, work_order_id: UUID | str):
        self.work_order_id = str(work_order_id)
        super().__init__(
            f"Work order not found or not open: {work_order_id}",
            field="work_order_id",
        )


# Stock exceptions


class StockError(InventoryKernelError):
    """Base exception for stock quantity errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """Available quantity at a location cannot cover the request."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        item_id: UUID | str,
        location_id: UUID | str,
        requested: int,
        available: int,
    ):
        self.item_id = str(item_id)
        self.location_id = str(location_id)
        self.requested = requested
        self.available = available
        self.shortfall = requested - available
        super().__init__(
            f"Insufficient stock for item {item_id} at {location_id}: "
            f"requested {requested}, available {available} "
            f"(short {self.shortfall})"
        )


class InvariantViolationError(InventoryKernelError):
    """A ledger invariant would be (or has been) broken.

    Raised instead of clamping. Never swallowed by the kernel.
    """

    code: str = "INVARIANT_VIOLATION"

    def __init__(self, invariant: str, detail: str):
        self.invariant = invariant
        self.detail = detail
        super().__init__(f"Invariant {invariant} violated: {detail}")


# Workflow exceptions


class WorkflowError(InventoryKernelError):
    """Base exception for request lifecycle errors."""

    code: str = "WORKFLOW_ERROR"


class RequestNotFoundError(WorkflowError):
    """Inventory request with given ID does not exist."""

    code: str = "REQUEST_NOT_FOUND"

    def __init__(self, request_id: UUID | str):
        self.request_id = str(request_id)
        super().__init__(f"Inventory request not found: {request_id}")


class InvalidStateTransitionError(WorkflowError):
    """Action is not permitted from the request's current status."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, request_id: UUID | str, current_status: str, action: str):
        self.request_id = str(request_id)
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} request {request_id} in status {current_status}"
        )


class StateAlreadyReachedError(WorkflowError):
    """The checkpoint for this action has already been recorded."""

    code: str = "STATE_ALREADY_REACHED"

    def __init__(self, request_id: UUID | str, current_status: str, action: str):
        self.request_id = str(request_id)
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Request {request_id} already reached the {action} checkpoint "
            f"(status {current_status})"
        )


# Routing exceptions


class RoutingError(InventoryKernelError):
    """Base exception for route resolution errors."""

    code: str = "ROUTING_ERROR"


class CrossCompanyRoutingError(RoutingError):
    """A hop crosses companies without a valid intermediate warehouse."""

    code: str = "CROSS_COMPANY_ROUTING"

    def __init__(self, from_company_id: UUID | str, to_company_id: UUID | str, reason: str):
        self.from_company_id = str(from_company_id)
        self.to_company_id = str(to_company_id)
        self.reason = reason
        super().__init__(
            f"Cannot route from company {from_company_id} to "
            f"{to_company_id}: {reason}"
        )


class InvalidRouteError(RoutingError):
    """Route is malformed (same endpoints, wrong location type, broken chain)."""

    code: str = "INVALID_ROUTE"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid route: {reason}")


# Authorization exceptions


class AuthorizationError(InventoryKernelError):
    """Base exception for authorization errors."""

    code: str = "AUTHORIZATION_ERROR"


class UnauthorizedActionError(AuthorizationError):
    """Actor's role does not grant the capability."""

    code: str = "UNAUTHORIZED_ACTION"

    def __init__(self, actor_id: UUID | str, role: str, action: str):
        self.actor_id = str(actor_id)
        self.role = role
        self.action = action
        super().__init__(f"Role '{role}' (actor {actor_id}) may not {action}")


class OutOfScopeError(AuthorizationError):
    """Actor is scoped to a company other than the one the action touches."""

    code: str = "OUT_OF_SCOPE"

    def __init__(self, actor_id: UUID | str, action: str, company_id: UUID | str):
        self.actor_id = str(actor_id)
        self.action = action
        self.company_id = str(company_id)
        super().__init__(
            f"Actor {actor_id} may not {action} outside its company "
            f"(target company {company_id})"
        )


# Concurrency exceptions


class ConcurrencyError(InventoryKernelError):
    """Base exception for concurrency errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Transaction kept conflicting with concurrent writers after retries."""

    code: str = "OPTIMISTIC_LOCK_FAILED"

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            f"Operation '{operation}' failed after {attempts} attempts "
            f"due to concurrent modification"
        )


# Immutability exceptions


class ImmutabilityError(InventoryKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
