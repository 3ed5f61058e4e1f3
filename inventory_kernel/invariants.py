"""
Kernel Invariants Contract.

These invariants are structural law for the stock ledger. No role matrix,
configuration value, or caller flag may switch them off.

This module only declares them. Enforcement is distributed across
StockLedger (row checks, locking), MovementRecorder and the immutability
listeners (append-only ledger), RequestWorkflow (transition table), and
StockReconciliationService (after-the-fact verification).
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    CONSERVATION = "conservation"
    """For every (item, location), the signed sum of movements equals the
    StockRow quantity. Every quantity change is paired with exactly one
    movement in the same transaction."""

    NON_NEGATIVE_STOCK = "non_negative_stock"
    """quantity >= 0 and reserved_quantity >= 0 on every StockRow. Enforced
    by StockLedger checks and DB check constraints."""

    RESERVATION_BOUND = "reservation_bound"
    """reserved_quantity <= quantity on every StockRow. Nothing is promised
    twice."""

    RESERVATION_ACCOUNTING = "reservation_accounting"
    """reserved_quantity equals the sum of holds of non-terminal requests
    against the row."""

    DELIVERY_BOUND = "delivery_bound"
    """0 <= quantity_delivered <= quantity_approved <= quantity_requested,
    and quantity_delivered never decreases."""

    MOVEMENT_IMMUTABILITY = "movement_immutability"
    """Movement records are append-only. Enforced by ORM listeners
    (inventory_kernel.db.immutability)."""

    TRANSITION_LEGALITY = "transition_legality"
    """Request status only changes along the transition table in
    inventory_kernel.domain.workflow."""


# All invariants as a frozenset for programmatic checks.
ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "inventory_services",
    "inventory_config",
    "scripts",
)
