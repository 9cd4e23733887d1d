"""SQLAlchemy implementation of the order repository."""

from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import exists, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from offramp.db.models import OfframpOrder, OrderStatusEvent
from offramp.db.models import Settlement as SettlementModel
from offramp.modules.common import (
    SUCCESS_STATUSES,
    CanonicalStatus,
    ProviderName,
    StatusSource,
    payment_method_from_dict,
    payment_method_to_dict,
)
from offramp.modules.orders.exceptions import DuplicateTransactionRefError
from offramp.modules.orders.models import NewOrder, Order, StatusHistoryEntry
from offramp.modules.orders.repository import OrderRepository


class SqlOrderRepository(OrderRepository):
    """Order repository backed by SQLAlchemy models."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, new_order: NewOrder) -> Order:
        model = OfframpOrder(
            provider=new_order.provider.value,
            provider_transaction_ref=new_order.provider_transaction_ref,
            wallet_address=new_order.wallet_address,
            deposit_amount=new_order.deposit_amount,
            local_currency=new_order.local_currency,
            total_local_amount=new_order.total_local_amount,
            recipient_amount=new_order.recipient_amount,
            platform_fee=new_order.platform_fee,
            rate_used=new_order.rate_used,
            fee_fraction=new_order.fee_fraction,
            payment_method_kind=new_order.payment_method.kind,
            payment_method=json.dumps(payment_method_to_dict(new_order.payment_method)),
            account_name=new_order.account_name,
            canonical_status=CanonicalStatus.PENDING.value,
            provider_raw_status=new_order.provider_raw_status,
            deposit_transaction_ref=new_order.deposit_transaction_ref,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(model)
                await self._session.flush()
        except IntegrityError as exc:
            raise DuplicateTransactionRefError(
                f"{new_order.provider.value}:{new_order.provider_transaction_ref}"
            ) from exc
        await self._session.refresh(model)
        return self._to_domain(model)

    async def get_by_id(self, order_id: str) -> Order | None:
        stmt = select(OfframpOrder).where(OfframpOrder.id == order_id)
        result = await self._session.execute(stmt)
        return self._to_domain(result.scalar_one_or_none())

    async def get_by_ref(
        self,
        provider: ProviderName,
        provider_transaction_ref: str,
        *,
        refresh: bool = False,
    ) -> Order | None:
        stmt = select(OfframpOrder).where(
            OfframpOrder.provider == provider.value,
            OfframpOrder.provider_transaction_ref == provider_transaction_ref,
        )
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self._session.execute(stmt)
        return self._to_domain(result.scalar_one_or_none())

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
        """Move the order from ``expected`` to ``new``; False if another writer got there first."""
        values: dict[str, Any] = {
            "canonical_status": new.value,
            "provider_raw_status": raw_status,
            "last_status_at": at,
        }
        if new.is_terminal:
            values["completed_at"] = at
        if receipt_reference:
            values["receipt_reference"] = receipt_reference
        if failure_reason and new.is_failure:
            values["failure_reason"] = failure_reason

        stmt = (
            update(OfframpOrder)
            .where(
                OfframpOrder.provider == provider.value,
                OfframpOrder.provider_transaction_ref == provider_transaction_ref,
                OfframpOrder.canonical_status == expected.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
            .returning(OfframpOrder.id)
        )
        result = await self._session.execute(stmt)
        order_id = result.scalar_one_or_none()
        if order_id is None:
            return False

        self._session.add(
            OrderStatusEvent(
                order_id=order_id,
                source=source.value,
                raw_status=raw_status,
                from_status=expected.value,
                to_status=new.value,
                created_at=at,
            )
        )
        await self._session.flush()
        return True

    async def list_history(self, order_id: str) -> Sequence[StatusHistoryEntry]:
        stmt = (
            select(OrderStatusEvent)
            .where(OrderStatusEvent.order_id == order_id)
            .order_by(OrderStatusEvent.id)
        )
        result = await self._session.execute(stmt)
        return [
            StatusHistoryEntry(
                timestamp=event.created_at,
                source=StatusSource(event.source),
                raw_status=event.raw_status,
                from_status=CanonicalStatus(event.from_status),
                to_status=CanonicalStatus(event.to_status),
            )
            for event in result.scalars().all()
        ]

    async def list_unsettled_deliveries(self, limit: int) -> Sequence[Order]:
        has_settlement = exists().where(SettlementModel.order_id == OfframpOrder.id)
        stmt = (
            select(OfframpOrder)
            .where(
                OfframpOrder.canonical_status.in_([status.value for status in SUCCESS_STATUSES]),
                ~has_settlement,
            )
            .order_by(OfframpOrder.completed_at)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [self._to_domain(model) for model in result.scalars().all()]

    @staticmethod
    def _to_domain(model: OfframpOrder | None) -> Order | None:
        if model is None:
            return None
        return Order(
            id=str(model.id),
            provider=ProviderName(model.provider),
            provider_transaction_ref=model.provider_transaction_ref,
            wallet_address=model.wallet_address,
            deposit_amount=Decimal(model.deposit_amount),
            local_currency=model.local_currency,
            total_local_amount=int(model.total_local_amount),
            recipient_amount=int(model.recipient_amount),
            platform_fee=int(model.platform_fee),
            rate_used=Decimal(model.rate_used),
            fee_fraction=Decimal(model.fee_fraction),
            payment_method=payment_method_from_dict(json.loads(model.payment_method)),
            canonical_status=CanonicalStatus(model.canonical_status),
            deposit_transaction_ref=model.deposit_transaction_ref,
            account_name=model.account_name,
            provider_raw_status=model.provider_raw_status,
            receipt_reference=model.receipt_reference,
            failure_reason=model.failure_reason,
            created_at=model.created_at,
            last_status_at=model.last_status_at,
            completed_at=model.completed_at,
        )
