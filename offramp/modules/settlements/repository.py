"""Repository protocol for settlements."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from .models import Settlement


class SettlementRepository(Protocol):
    async def create(
        self,
        *,
        order_id: str,
        amount: int,
        currency: str,
        method: str,
        provider_reference: Optional[str],
        settled_at: datetime,
    ) -> Settlement:
        ...

    async def get_by_order_id(self, order_id: str) -> Settlement | None:
        ...
