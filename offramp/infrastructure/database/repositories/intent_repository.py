"""SQLAlchemy implementation of the disbursement intent (outbox) repository."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from offramp.core.timeutils import utcnow
from offramp.db.models import DisbursementIntent as IntentModel
from offramp.modules.common import ProviderName
from offramp.modules.orders.exceptions import DisbursementInProgressError
from offramp.modules.orders.models import (
    INTENT_ACCEPTED,
    INTENT_DISBURSED,
    INTENT_FAILED,
    INTENT_PENDING,
    DisbursementIntent,
)
from offramp.modules.orders.repository import DisbursementIntentRepository


class SqlDisbursementIntentRepository(DisbursementIntentRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_deposit_ref(self, deposit_transaction_ref: str) -> DisbursementIntent | None:
        stmt = (
            select(IntentModel)
            .where(IntentModel.deposit_transaction_ref == deposit_transaction_ref)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return self._to_domain(result.scalar_one_or_none())

    async def create(
        self,
        *,
        deposit_transaction_ref: str,
        provider: ProviderName,
        local_currency: str,
        request: dict[str, Any],
    ) -> DisbursementIntent:
        model = IntentModel(
            deposit_transaction_ref=deposit_transaction_ref,
            provider=provider.value,
            local_currency=local_currency,
            request=json.dumps(request),
            status=INTENT_PENDING,
            attempts=1,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(model)
                await self._session.flush()
        except IntegrityError as exc:
            # a concurrent submission for the same deposit claimed it first
            raise DisbursementInProgressError(deposit_transaction_ref) from exc
        await self._session.refresh(model)
        return self._to_domain(model)

    async def reopen(self, intent_id: str, *, request: dict[str, Any]) -> DisbursementIntent:
        """Claim a failed intent for another attempt."""
        stmt = (
            update(IntentModel)
            .where(IntentModel.id == intent_id, IntentModel.status == INTENT_FAILED)
            .values(
                status=INTENT_PENDING,
                request=json.dumps(request),
                attempts=IntentModel.attempts + 1,
                last_error=None,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
            .returning(IntentModel.id)
        )
        result = await self._session.execute(stmt)
        if result.scalar_one_or_none() is None:
            raise DisbursementInProgressError(intent_id)
        model = await self._session.get(IntentModel, intent_id, populate_existing=True)
        return self._to_domain(model)

    async def mark_disbursed(self, intent_id: str, *, provider_transaction_ref: str) -> None:
        """Remember the provider reference before the order row is written."""
        stmt = (
            update(IntentModel)
            .where(IntentModel.id == intent_id, IntentModel.status == INTENT_PENDING)
            .values(
                status=INTENT_DISBURSED,
                provider_transaction_ref=provider_transaction_ref,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)

    async def mark_accepted(self, intent_id: str, *, provider_transaction_ref: str, order_id: str) -> None:
        stmt = (
            update(IntentModel)
            .where(IntentModel.id == intent_id)
            .values(
                status=INTENT_ACCEPTED,
                provider_transaction_ref=provider_transaction_ref,
                order_id=order_id,
                last_error=None,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)

    async def mark_failed(self, intent_id: str, *, error: str) -> None:
        stmt = (
            update(IntentModel)
            .where(IntentModel.id == intent_id, IntentModel.status == INTENT_PENDING)
            .values(status=INTENT_FAILED, last_error=error[:1000], updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)

    async def list_stale_unresolved(self, older_than: datetime, limit: int) -> Sequence[DisbursementIntent]:
        """Intents still pending or disbursed without an order since ``older_than``."""
        stmt = (
            select(IntentModel)
            .where(
                IntentModel.status.in_((INTENT_PENDING, INTENT_DISBURSED)),
                IntentModel.updated_at < older_than,
            )
            .order_by(IntentModel.updated_at)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [self._to_domain(model) for model in result.scalars().all()]

    @staticmethod
    def _to_domain(model: IntentModel | None) -> DisbursementIntent | None:
        if model is None:
            return None
        return DisbursementIntent(
            id=str(model.id),
            deposit_transaction_ref=model.deposit_transaction_ref,
            provider=ProviderName(model.provider),
            local_currency=model.local_currency,
            status=model.status,
            request=json.loads(model.request) if model.request else {},
            provider_transaction_ref=model.provider_transaction_ref,
            order_id=model.order_id,
            last_error=model.last_error,
            attempts=int(model.attempts or 0),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
