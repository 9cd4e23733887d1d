"""Exactly-once settlement recording."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from offramp.core.timeutils import utcnow
from offramp.infrastructure.database.repositories.settlement_repository import SqlSettlementRepository

from .exceptions import SettlementAlreadyRecordedError
from .models import Settlement
from .repository import SettlementRepository

logger = logging.getLogger(__name__)


class SettlementRecorder:
    """Create the single immutable settlement for a delivered order."""

    def __init__(self, repository: SettlementRepository) -> None:
        self._repository = repository

    @classmethod
    def with_session(cls, session: AsyncSession) -> "SettlementRecorder":
        return cls(SqlSettlementRepository(session))

    async def record_once(
        self,
        order_id: str,
        amount: int,
        currency: str,
        method: str,
        provider_reference: Optional[str] = None,
        settled_at: Optional[datetime] = None,
    ) -> Settlement:
        """Insert the settlement, or return the one already recorded for ``order_id``.

        The unique constraint on ``order_id`` is the only guard; callers never
        need to check for an existing row first.
        """
        try:
            settlement = await self._repository.create(
                order_id=order_id,
                amount=amount,
                currency=currency,
                method=method,
                provider_reference=provider_reference,
                settled_at=settled_at or utcnow(),
            )
        except SettlementAlreadyRecordedError:
            existing = await self._repository.get_by_order_id(order_id)
            if existing is None:
                raise
            logger.info("Settlement for order %s already recorded as %s", order_id, existing.id)
            return existing

        logger.info(
            "Recorded settlement %s for order %s: %s %s via %s",
            settlement.id,
            order_id,
            amount,
            currency,
            method,
        )
        return settlement

    async def get_for_order(self, order_id: str) -> Settlement | None:
        return await self._repository.get_by_order_id(order_id)
