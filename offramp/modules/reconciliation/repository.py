"""Repository protocol for the status signal log."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Protocol, Sequence

from offramp.modules.common import CanonicalStatus, ProviderName, StatusSource

from .models import SignalOutcome, SignalRecord


class SignalRepository(Protocol):
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
        ...

    async def list_recent(
        self,
        *,
        limit: int,
        outcome: Optional[SignalOutcome] = None,
        provider: Optional[ProviderName] = None,
    ) -> Sequence[SignalRecord]:
        ...
