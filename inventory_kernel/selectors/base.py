"""
Module: inventory_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, domain/
    DTOs and models/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only: selectors never add, delete, flush or commit.
    - DTO return convention: frozen dataclasses, never ORM rows.
    - Session ownership: the caller owns the session and its transaction.
"""

from abc import ABC

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from inventory_kernel.domain.dtos import Page

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        self.session = session

    def _paginate(self, stmt: Select, offset: int, limit: int) -> Page:
        """Run ``stmt`` as one page of ORM rows converted with to_dto()."""
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        offset = max(0, offset)
        total = self.session.execute(
            select(func.count()).select_from(stmt.order_by(None).subquery())
        ).scalar_one()
        rows = self.session.execute(stmt.offset(offset).limit(limit)).scalars().all()
        return Page(
            items=tuple(row.to_dto() for row in rows),
            total=total,
            offset=offset,
            limit=limit,
        )
