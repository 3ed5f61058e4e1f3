"""Read-only query selectors."""

from inventory_kernel.selectors.movement_selector import MovementFilter, MovementSelector
from inventory_kernel.selectors.request_selector import RequestFilter, RequestSelector
from inventory_kernel.selectors.stock_selector import StockSelector

__all__ = [
    "MovementFilter",
    "MovementSelector",
    "RequestFilter",
    "RequestSelector",
    "StockSelector",
]
