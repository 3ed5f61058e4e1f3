"""
Values -- Immutable domain value objects for the stock ledger.

Responsibility:
    Location references, movement and urgency enumerations, and the Actor
    identity that every operation is performed on behalf of.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Imported by every
    other domain module, by models, and by services.

Failure modes:
    - ValueError on construction with a malformed LocationRef.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class LocationType(str, Enum):
    """Kinds of place that can hold stock."""

    WAREHOUSE = "WAREHOUSE"
    SITE = "SITE"
    VEHICLE = "VEHICLE"


class MovementType(str, Enum):
    """Shape of a stock movement.

    IN and OUT cross the ledger boundary (receipt from a supplier, issue to
    consumption).  TRANSFER and WORK_ORDER move stock between two ledger
    locations; WORK_ORDER is the final hop that places goods at the job.
    RETURN brings stock back into a warehouse.  DAMAGE writes stock off.
    ADJUSTMENT and COUNT_ADJUSTMENT correct quantities in place.
    """

    IN = "IN"
    OUT = "OUT"
    TRANSFER = "TRANSFER"
    ADJUSTMENT = "ADJUSTMENT"
    WORK_ORDER = "WORK_ORDER"
    RETURN = "RETURN"
    DAMAGE = "DAMAGE"
    COUNT_ADJUSTMENT = "COUNT_ADJUSTMENT"


class Urgency(str, Enum):
    """How soon the requester needs the goods."""

    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True, slots=True)
class LocationRef:
    """
    Reference to a stock-holding location.

    Contract:
        A location is identified by ``(location_id, location_type)``.  The
        same UUID may legitimately identify a warehouse and a vehicle in
        different tables, so the type is part of the identity.

    Guarantees:
        - Immutable and hashable.
        - Orderable, so rows can be locked in a deterministic order.
    """

    location_id: UUID
    location_type: LocationType

    def __post_init__(self) -> None:
        if not isinstance(self.location_id, UUID):
            raise ValueError(f"location_id must be a UUID, got {self.location_id!r}")
        object.__setattr__(self, "location_type", LocationType(self.location_type))

    @property
    def is_warehouse(self) -> bool:
        return self.location_type == LocationType.WAREHOUSE

    def sort_key(self) -> tuple[str, str]:
        return (self.location_type.value, str(self.location_id))

    def __str__(self) -> str:
        return f"{self.location_type.value}:{self.location_id}"


@dataclass(frozen=True, slots=True)
class LocationInfo:
    """What the location directory knows about a location."""

    ref: LocationRef
    company_id: UUID
    is_active: bool = True
    name: str = ""


@dataclass(frozen=True, slots=True)
class Actor:
    """
    The user on whose behalf an operation runs.

    ``company_id`` is the actor's company scope.  None means group-wide
    scope (group administrators), which passes every company check.
    """

    user_id: UUID
    role: str
    company_id: UUID | None = None

    def in_company(self, company_id: UUID) -> bool:
        return self.company_id is None or self.company_id == company_id
