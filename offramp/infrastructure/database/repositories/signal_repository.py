"""SQLAlchemy implementation of the status signal log."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional, Sequence

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from offramp.db.models import StatusSignalRecord
from offramp.modules.common import CanonicalStatus, ProviderName, StatusSource
from offramp.modules.reconciliation.models import SignalOutcome, SignalRecord
from offramp.modules.reconciliation.repository import SignalRepository


class SqlSignalRepository(SignalRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(
        self,
        *,
        provider: ProviderName,
        provider_transaction_ref: str,
        source: StatusSource,
        outcome: SignalOutcome,
        received_at: datetime,
        order_id: Optional[str] = None,
        raw_status: Optional[str] = None,
        canonical_status: Optional[CanonicalStatus] = None,
        receipt_reference: Optional[str] = None,
        failure_reason: Optional[str] = None,
        payload: Optional[dict[str, Any]] = None,
    ) -> None:
        self._session.add(
            StatusSignalRecord(
                provider=provider.value,
                provider_transaction_ref=provider_transaction_ref,
                order_id=order_id,
                source=source.value,
                raw_status=raw_status,
                canonical_status=canonical_status.value if canonical_status else None,
                outcome=outcome.value,
                receipt_reference=receipt_reference,
                failure_reason=failure_reason,
                payload=json.dumps(payload, default=str) if payload else None,
                received_at=received_at,
            )
        )
        await self._session.flush()

    async def list_recent(
        self,
        *,
        limit: int,
        outcome: Optional[SignalOutcome] = None,
        provider: Optional[ProviderName] = None,
    ) -> Sequence[SignalRecord]:
        stmt = select(StatusSignalRecord)
        if outcome is not None:
            stmt = stmt.where(StatusSignalRecord.outcome == outcome.value)
        if provider is not None:
            stmt = stmt.where(StatusSignalRecord.provider == provider.value)
        stmt = stmt.order_by(desc(StatusSignalRecord.id)).limit(limit)
        result = await self._session.execute(stmt)
        return [
            SignalRecord(
                id=model.id,
                provider=ProviderName(model.provider),
                provider_transaction_ref=model.provider_transaction_ref,
                source=StatusSource(model.source),
                outcome=SignalOutcome(model.outcome),
                order_id=model.order_id,
                raw_status=model.raw_status,
                canonical_status=CanonicalStatus(model.canonical_status) if model.canonical_status else None,
                receipt_reference=model.receipt_reference,
                failure_reason=model.failure_reason,
                received_at=model.received_at,
            )
            for model in result.scalars().all()
        ]
