"""ORM models for the inventory kernel."""

from inventory_kernel.models.item import InventoryItem
from inventory_kernel.models.movement import StockMovement
from inventory_kernel.models.request import InventoryRequest
from inventory_kernel.models.stock import StockRow

__all__ = [
    "InventoryItem",
    "InventoryRequest",
    "StockMovement",
    "StockRow",
]
