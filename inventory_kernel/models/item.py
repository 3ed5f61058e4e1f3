"""
Module: inventory_kernel.models.item
Responsibility: ORM model for the item catalog.  An item is a stockable
    part or consumable owned by one company.
Architecture position: Kernel > Models.  Inherits TrackedBase.

Invariants enforced:
    - code is unique within a company (uq_inventory_items_company_code).
    - Items are soft-deleted (is_active=False) because stock rows, requests
      and movements keep referencing them.

Stock thresholds (min_stock, max_stock, reorder_point) and cost fields are
stored as item attributes only; no reorder or valuation policy reads them.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase


class InventoryItem(TrackedBase):
    """A catalog item.  Quantities live on StockRow, not here."""

    __tablename__ = "inventory_items"

    __table_args__ = (
        UniqueConstraint("company_id", "code", name="uq_inventory_items_company_code"),
        Index("idx_inventory_items_company", "company_id"),
        Index("idx_inventory_items_category", "category"),
    )

    company_id: Mapped[UUID] = mapped_column()
    code: Mapped[str] = mapped_column(String(50))
    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    subcategory: Mapped[str | None] = mapped_column(String(100), nullable=True)
    manufacturer: Mapped[str | None] = mapped_column(String(100), nullable=True)
    model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    part_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    unit: Mapped[str] = mapped_column(String(20), default="unit")

    min_stock: Mapped[int | None] = mapped_column(nullable=True)
    max_stock: Mapped[int | None] = mapped_column(nullable=True)
    reorder_point: Mapped[int | None] = mapped_column(nullable=True)

    unit_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    average_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    last_purchase_price: Mapped[Decimal | None] = mapped_column(nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    deactivated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def to_dto(self):
        """Convert ORM model to frozen ItemRecord DTO."""
        from inventory_kernel.domain.dtos import ItemRecord

        return ItemRecord(
            id=self.id,
            company_id=self.company_id,
            code=self.code,
            name=self.name,
            description=self.description,
            category=self.category,
            subcategory=self.subcategory,
            manufacturer=self.manufacturer,
            model=self.model,
            part_number=self.part_number,
            unit=self.unit,
            min_stock=self.min_stock,
            max_stock=self.max_stock,
            reorder_point=self.reorder_point,
            unit_cost=self.unit_cost,
            average_cost=self.average_cost,
            last_purchase_price=self.last_purchase_price,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<InventoryItem {self.code} company={self.company_id} active={self.is_active}>"
