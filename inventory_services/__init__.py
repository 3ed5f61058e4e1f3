"""
inventory_services -- Package init and public API.

Responsibility:
    Configuration-aware services over the inventory kernel: the role matrix
    capability authority, the item catalog, manual stock operations, stock
    reconciliation, and the InventoryOrchestrator that wires them.

Architecture position:
    Services.

    Dependency direction (enforced by tests/architecture/test_kernel_boundary.py):
        inventory_services/ -> inventory_kernel/  (allowed)
        inventory_services/ -> inventory_config/  (allowed)
        inventory_kernel/   -> inventory_services/ (FORBIDDEN)
"""

from inventory_services.catalog_service import ItemCatalogService
from inventory_services.orchestrator import InventoryOrchestrator, ReadViews
from inventory_services.rbac_authority import RoleCapabilityAuthority, check_capability
from inventory_services.reconciliation_service import StockReconciliationService
from inventory_services.stock_service import StockOperationsService

__all__ = [
    "InventoryOrchestrator",
    "ItemCatalogService",
    "ReadViews",
    "RoleCapabilityAuthority",
    "StockOperationsService",
    "StockReconciliationService",
    "check_capability",
]
