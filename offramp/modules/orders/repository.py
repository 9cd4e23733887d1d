"""Repository protocols for orders and disbursement intents."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Protocol, Sequence

from offramp.modules.common import CanonicalStatus, ProviderName, StatusSource

from .models import DisbursementIntent, NewOrder, Order, StatusHistoryEntry


class OrderRepository(Protocol):
    async def create(self, new_order: NewOrder) -> Order:
        ...

    async def get_by_id(self, order_id: str) -> Order | None:
        ...

    async def get_by_ref(
        self,
        provider: ProviderName,
        provider_transaction_ref: str,
        *,
        refresh: bool = False,
    ) -> Order | None:
        ...

    async def conditional_update_status(
        self,
        provider: ProviderName,
        provider_transaction_ref: str,
        *,
        expected: CanonicalStatus,
        new: CanonicalStatus,
        raw_status: str,
        source: StatusSource,
        at: datetime,
        receipt_reference: Optional[str] = None,
        failure_reason: Optional[str] = None,
    ) -> bool:
        ...

    async def list_history(self, order_id: str) -> Sequence[StatusHistoryEntry]:
        ...

    async def list_unsettled_deliveries(self, limit: int) -> Sequence[Order]:
        ...


class DisbursementIntentRepository(Protocol):
    async def get_by_deposit_ref(self, deposit_transaction_ref: str) -> DisbursementIntent | None:
        ...

    async def create(
        self,
        *,
        deposit_transaction_ref: str,
        provider: ProviderName,
        local_currency: str,
        request: dict[str, Any],
    ) -> DisbursementIntent:
        ...

    async def reopen(self, intent_id: str, *, request: dict[str, Any]) -> DisbursementIntent:
        ...

    async def mark_disbursed(self, intent_id: str, *, provider_transaction_ref: str) -> None:
        ...

    async def mark_accepted(self, intent_id: str, *, provider_transaction_ref: str, order_id: str) -> None:
        ...

    async def mark_failed(self, intent_id: str, *, error: str) -> None:
        ...

    async def list_stale_unresolved(self, older_than: datetime, limit: int) -> Sequence[DisbursementIntent]:
        ...
