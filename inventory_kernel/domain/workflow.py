"""
Request lifecycle state machine (``inventory_kernel.domain.workflow``).

Responsibility
--------------
The closed set of request statuses, the actions that move between them,
and the explicit transition table.  RequestWorkflow consults this table
before touching anything; a (status, action) pair that is not in the
table is rejected without side effects.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``REQUEST_WORKFLOW.states``.
* Terminal states have no outgoing transitions.
* Timestamps are side effects of transitions; status is the source of
  truth for where a request is.

Transition table
----------------
::

    PENDING     --approve-->                 APPROVED
    PENDING     --reject-->                  REJECTED
    PENDING     --cancel-->                  CANCELLED
    APPROVED    --dispatch-->                IN_TRANSIT
    APPROVED    --cancel-->                  CANCELLED
    IN_TRANSIT  --dispatch-->                IN_TRANSIT   (follow-up partial dispatch)
    IN_TRANSIT  --receive_at_destination-->  IN_TRANSIT
    IN_TRANSIT  --confirm_receipt-->         IN_TRANSIT   (partial)
    IN_TRANSIT  --confirm_receipt-->         DELIVERED    (approved amount reached)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RequestStatus(str, Enum):
    """Inventory request lifecycle states."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class RequestAction(str, Enum):
    """Actions that drive the request lifecycle."""

    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"
    DISPATCH = "dispatch"
    RECEIVE_AT_DESTINATION = "receive_at_destination"
    CONFIRM_RECEIPT = "confirm_receipt"


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Descriptive only; RequestWorkflow evaluates the condition.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``moves_stock=True`` marks transitions that realize a hop on the ledger.
    """
    from_state: RequestStatus
    to_state: RequestStatus
    action: RequestAction
    guard: Guard | None = None
    moves_stock: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""
    name: str
    description: str
    initial_state: RequestStatus
    states: tuple[RequestStatus, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[RequestStatus, ...] = ()


PARTIAL_DELIVERY_GUARD = Guard(
    name="partial_delivery",
    description="Delivered total is still below the approved quantity",
)
COMPLETE_DELIVERY_GUARD = Guard(
    name="complete_delivery",
    description="Delivered total reaches the approved quantity",
)
TWO_HOP_GUARD = Guard(
    name="two_hop_route",
    description="Request routes through an intermediate warehouse",
)


REQUEST_TRANSITIONS: tuple[Transition, ...] = (
    Transition(RequestStatus.PENDING, RequestStatus.APPROVED, RequestAction.APPROVE),
    Transition(RequestStatus.PENDING, RequestStatus.REJECTED, RequestAction.REJECT),
    Transition(RequestStatus.PENDING, RequestStatus.CANCELLED, RequestAction.CANCEL),
    Transition(RequestStatus.APPROVED, RequestStatus.IN_TRANSIT, RequestAction.DISPATCH),
    Transition(RequestStatus.APPROVED, RequestStatus.CANCELLED, RequestAction.CANCEL),
    Transition(RequestStatus.IN_TRANSIT, RequestStatus.IN_TRANSIT, RequestAction.DISPATCH),
    Transition(
        RequestStatus.IN_TRANSIT,
        RequestStatus.IN_TRANSIT,
        RequestAction.RECEIVE_AT_DESTINATION,
        guard=TWO_HOP_GUARD,
        moves_stock=True,
    ),
    Transition(
        RequestStatus.IN_TRANSIT,
        RequestStatus.IN_TRANSIT,
        RequestAction.CONFIRM_RECEIPT,
        guard=PARTIAL_DELIVERY_GUARD,
        moves_stock=True,
    ),
    Transition(
        RequestStatus.IN_TRANSIT,
        RequestStatus.DELIVERED,
        RequestAction.CONFIRM_RECEIPT,
        guard=COMPLETE_DELIVERY_GUARD,
        moves_stock=True,
    ),
)

TERMINAL_REQUEST_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.REJECTED,
    RequestStatus.DELIVERED,
    RequestStatus.CANCELLED,
})

# Statuses in which the request still holds stock at some location.
RESERVING_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.APPROVED,
    RequestStatus.IN_TRANSIT,
})

OPEN_REQUEST_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.PENDING,
    RequestStatus.APPROVED,
    RequestStatus.IN_TRANSIT,
})

REQUEST_WORKFLOW = Workflow(
    name="inventory_request",
    description="Inventory request fulfillment lifecycle",
    initial_state=RequestStatus.PENDING,
    states=tuple(RequestStatus),
    transitions=REQUEST_TRANSITIONS,
    terminal_states=tuple(sorted(TERMINAL_REQUEST_STATUSES, key=lambda s: s.value)),
)

# Statuses in which repeating an action means its checkpoint is already
# recorded, as opposed to the action never having been legal.
_ALREADY_REACHED: dict[RequestAction, frozenset[RequestStatus]] = {
    RequestAction.APPROVE: frozenset({
        RequestStatus.APPROVED,
        RequestStatus.IN_TRANSIT,
        RequestStatus.DELIVERED,
    }),
    RequestAction.REJECT: frozenset({RequestStatus.REJECTED}),
    RequestAction.CANCEL: frozenset({RequestStatus.CANCELLED}),
    RequestAction.DISPATCH: frozenset({RequestStatus.DELIVERED}),
    RequestAction.RECEIVE_AT_DESTINATION: frozenset({RequestStatus.DELIVERED}),
    RequestAction.CONFIRM_RECEIPT: frozenset({RequestStatus.DELIVERED}),
}


def transitions_for(
    status: RequestStatus, action: RequestAction
) -> tuple[Transition, ...]:
    """All table entries for (status, action); empty when not permitted."""
    return tuple(
        t for t in REQUEST_TRANSITIONS
        if t.from_state == status and t.action == action
    )


def is_permitted(status: RequestStatus, action: RequestAction) -> bool:
    return bool(transitions_for(status, action))


def target_status(
    status: RequestStatus,
    action: RequestAction,
    *,
    complete: bool = False,
) -> RequestStatus | None:
    """Resolve the next status, or None if the table has no entry.

    ``complete`` selects between the guarded confirm_receipt transitions.
    """
    candidates = transitions_for(status, action)
    if not candidates:
        return None
    if len(candidates) == 1:
        return candidates[0].to_state
    wanted = COMPLETE_DELIVERY_GUARD if complete else PARTIAL_DELIVERY_GUARD
    for t in candidates:
        if t.guard == wanted:
            return t.to_state
    return None


def is_already_reached(status: RequestStatus, action: RequestAction) -> bool:
    return status in _ALREADY_REACHED.get(action, frozenset())


def is_terminal(status: RequestStatus) -> bool:
    return status in TERMINAL_REQUEST_STATUSES
