"""OrderRepository Protocol — interface contract for persistence layer."""
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ps_order.domain.models import Order


class OrderRepositoryProtocol(Protocol):
    async def save(self, order: Order, db: AsyncSession) -> None: ...

    async def get_by_id(self, order_id: str, db: AsyncSession) -> Order | None: ...

    async def update(self, order: Order, db: AsyncSession) -> bool:
        """Write mutable fields if ``order.version`` still matches; bumps version on success."""
        ...

    async def list_by_project(self, project_id: str, db: AsyncSession) -> list[Order]: ...

    async def list_orders(
        self,
        user_id: str | None,
        status: str | None,
        project_id: str | None,
        limit: int,
        cursor_id: str | None,
        db: AsyncSession,
    ) -> list[Order]: ...
