"""
Inventory Kernel

A multi-location stock ledger with request fulfillment:
- Per-location stock rows with atomic reserve/release/transfer
- Append-only movement ledger that reconciles with stock
- Approval-gated request lifecycle with checkpoint timestamps
- Same-company and cross-company (via transit warehouse) routing
"""

__version__ = "0.1.0"
