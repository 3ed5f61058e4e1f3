"""
Authority -- interfaces the kernel consumes from the host application.

Responsibility:
    The kernel does not authenticate anyone, own a location table, or know
    what a work order is.  It asks three narrow collaborators:

    - CapabilityChecker: may this role perform this action?
    - LocationDirectory: what type/company/active flag does a location have?
    - WorkOrderDirectory: does this work order exist and is it open?

Architecture position:
    Kernel > Domain -- interface declarations only, zero I/O.
    Implementations live in inventory_services (RoleCapabilityAuthority)
    or in the host application.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol, runtime_checkable
from uuid import UUID

from inventory_kernel.domain.values import LocationInfo, LocationRef


class Capability(str, Enum):
    """Actions a role may be granted."""

    CREATE_REQUEST = "create_request"
    APPROVE_REQUEST = "approve_request"
    REJECT_REQUEST = "reject_request"
    CANCEL_REQUEST = "cancel_request"
    DELIVER_FROM_WAREHOUSE = "deliver_from_warehouse"
    RECEIVE_AT_DESTINATION = "receive_at_destination"
    CONFIRM_RECEIPT = "confirm_receipt"
    ADJUST_STOCK = "adjust_stock"
    TRANSFER_STOCK = "transfer_stock"
    MANAGE_ITEMS = "manage_items"
    VIEW_MOVEMENTS = "view_movements"


@runtime_checkable
class CapabilityChecker(Protocol):
    def can_perform(self, role: str, action: Capability) -> bool: ...


@runtime_checkable
class LocationDirectory(Protocol):
    def resolve(self, ref: LocationRef) -> LocationInfo | None: ...


@runtime_checkable
class WorkOrderDirectory(Protocol):
    def is_open(self, work_order_id: UUID) -> bool: ...
