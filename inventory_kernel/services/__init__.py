"""Kernel services: the stock ledger, movement ledger, and request lifecycle."""

from inventory_kernel.services.movement_recorder import MovementRecorder
from inventory_kernel.services.request_workflow import RequestWorkflow
from inventory_kernel.services.reservation_manager import ReservationManager
from inventory_kernel.services.stock_ledger import StockLedger
from inventory_kernel.services.transfer_router import TransferRouter

__all__ = [
    "MovementRecorder",
    "RequestWorkflow",
    "ReservationManager",
    "StockLedger",
    "TransferRouter",
]
