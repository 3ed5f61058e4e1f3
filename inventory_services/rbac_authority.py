"""
inventory_services.rbac_authority -- config-driven capability checks.

Responsibility:
    Implements the kernel's CapabilityChecker protocol from the role matrix
    in InventorySettings.  The kernel asks "may this role do X?"; this
    module answers from configuration.

Architecture position:
    Services layer.  Consumes InventorySettings from inventory_config and
    is handed to RequestWorkflow / StockOperationsService by the
    orchestrator.

Invariants:
    - The kernel stays actor-agnostic; this module never resolves identity.
    - Unknown roles are granted nothing (fail closed).
"""

from __future__ import annotations

from inventory_config.schema import InventorySettings
from inventory_kernel.domain.authority import Capability
from inventory_kernel.logging_config import get_logger

logger = get_logger("services.rbac_authority")


def check_capability(
    settings: InventorySettings, role: str, capability: Capability | str,
) -> tuple[bool, str]:
    """Return (allowed, reason).  reason is empty when allowed."""
    capability = Capability(capability)
    if role not in settings.role_names:
        return (False, f"RBAC: unknown role '{role}'")
    if capability.value not in settings.capabilities_for(role):
        return (False, f"RBAC: capability '{capability.value}' not granted to role '{role}'")
    return (True, "")


class RoleCapabilityAuthority:
    """CapabilityChecker backed by the configured role matrix."""

    def __init__(self, settings: InventorySettings):
        self._settings = settings

    def can_perform(self, role: str, action: Capability | str) -> bool:
        allowed, reason = check_capability(self._settings, role, action)
        if not allowed:
            logger.debug(
                "capability_denied",
                extra={"role": role, "capability": str(Capability(action).value), "reason": reason},
            )
        return allowed

    def capabilities(self, role: str) -> frozenset[Capability]:
        return frozenset(Capability(c) for c in self._settings.capabilities_for(role))
