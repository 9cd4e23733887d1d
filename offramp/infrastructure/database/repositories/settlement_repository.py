"""SQLAlchemy implementation of the settlement repository."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from offramp.db.models import Settlement as SettlementModel
from offramp.modules.settlements.exceptions import SettlementAlreadyRecordedError
from offramp.modules.settlements.models import Settlement
from offramp.modules.settlements.repository import SettlementRepository


class SqlSettlementRepository(SettlementRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

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
        model = SettlementModel(
            order_id=order_id,
            amount=amount,
            currency=currency,
            method=method,
            provider_reference=provider_reference,
            settled_at=settled_at,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(model)
                await self._session.flush()
        except IntegrityError as exc:
            raise SettlementAlreadyRecordedError(order_id) from exc
        return self._to_domain(model)

    async def get_by_order_id(self, order_id: str) -> Settlement | None:
        stmt = select(SettlementModel).where(SettlementModel.order_id == order_id)
        result = await self._session.execute(stmt)
        return self._to_domain(result.scalar_one_or_none())

    @staticmethod
    def _to_domain(model: SettlementModel | None) -> Settlement | None:
        if model is None:
            return None
        return Settlement(
            id=str(model.id),
            order_id=model.order_id,
            amount=int(model.amount),
            currency=model.currency,
            method=model.method,
            settled_at=model.settled_at,
            provider_reference=model.provider_reference,
        )
