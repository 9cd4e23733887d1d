"""Order creation and status queries.

Creation spans short transactions so that no database transaction is open
while the provider is being called:

1. claim a disbursement intent for the deposit (outbox row, committed);
2. call the provider with the intent id as client reference;
3. record the provider reference on the intent (``disbursed``);
4. write the order and mark the intent accepted.

A crash between 2 and 3 leaves a pending intent that the intent sweep
resolves through the provider's listing; after 3 the sweep rebuilds the
order from the intent alone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from offramp.core.config import Settings
from offramp.infrastructure.database.repositories.intent_repository import SqlDisbursementIntentRepository
from offramp.infrastructure.database.repositories.order_repository import SqlOrderRepository
from offramp.infrastructure.database.session import session_scope
from offramp.modules.common import ProviderName, payment_method_from_dict, payment_method_to_dict
from offramp.modules.fees import AmountBreakdown, calculate_amounts
from offramp.modules.providers.exceptions import ProviderError
from offramp.modules.providers.models import DisbursementRequest, DisbursementResult
from offramp.modules.providers.registry import ProviderRegistry
from offramp.modules.reconciliation.polling import PollOutcome, RetryPolicy, poll_once, poll_until_terminal

from .exceptions import DisbursementInProgressError, OrderNotFoundError
from .models import (
    INTENT_ACCEPTED,
    INTENT_FAILED,
    DisbursementIntent,
    NewOrder,
    Order,
    OrderCreateInput,
    StatusHistoryEntry,
)

logger = logging.getLogger(__name__)


def _intent_snapshot(payload: OrderCreateInput, amounts: AmountBreakdown, currency: str) -> dict[str, Any]:
    return {
        "deposit_amount": str(amounts.deposit_amount),
        "rate": str(amounts.rate),
        "fee_fraction": str(amounts.fee_fraction),
        "total": amounts.total,
        "recipient": amounts.recipient,
        "fee": amounts.fee,
        "local_currency": currency,
        "payment_method": payment_method_to_dict(payload.payment_method),
        "account_name": payload.account_name,
        "wallet_address": payload.wallet_address,
        "deposit_transaction_ref": payload.deposit_transaction_ref,
    }


def build_new_order(intent: DisbursementIntent, result: DisbursementResult) -> NewOrder:
    """Rebuild the order an intent describes once the provider accepted it."""
    snapshot = intent.request
    return NewOrder(
        provider=intent.provider,
        provider_transaction_ref=result.provider_transaction_ref,
        wallet_address=snapshot["wallet_address"],
        deposit_amount=Decimal(snapshot["deposit_amount"]),
        local_currency=snapshot["local_currency"],
        total_local_amount=int(snapshot["total"]),
        recipient_amount=int(snapshot["recipient"]),
        platform_fee=int(snapshot["fee"]),
        rate_used=Decimal(snapshot["rate"]),
        fee_fraction=Decimal(snapshot["fee_fraction"]),
        payment_method=payment_method_from_dict(snapshot["payment_method"]),
        deposit_transaction_ref=intent.deposit_transaction_ref,
        account_name=snapshot.get("account_name"),
        provider_raw_status=result.raw_status,
    )


@dataclass(slots=True)
class OrderService:
    session_factory: async_sessionmaker[AsyncSession]
    providers: ProviderRegistry
    settings: Settings

    async def create_order(self, payload: OrderCreateInput) -> Order:
        adapter = self.providers.get(payload.provider)
        currency = payload.local_currency.upper()
        fee_fraction = (
            payload.fee_fraction
            if payload.fee_fraction is not None
            else self.settings.fees.default_fee_fraction
        )
        amounts = calculate_amounts(
            payload.deposit_amount,
            payload.rate_quote,
            fee_fraction,
            max_total=self.settings.fees.max_total_local_amount,
        )

        request = DisbursementRequest(
            reference="",
            deposit_transaction_ref=payload.deposit_transaction_ref,
            local_currency=currency,
            amounts=amounts,
            payment_method=payload.payment_method,
            account_name=payload.account_name,
            wallet_address=payload.wallet_address,
            callback_url=self._callback_url(adapter.name),
        )
        adapter.validate(request)

        snapshot = _intent_snapshot(payload, amounts, currency)
        async with session_scope(self.session_factory) as session:
            intent, existing = await self._claim_intent(session, payload.provider, currency, snapshot)
        if existing is not None:
            logger.info("Deposit %s already has order %s", payload.deposit_transaction_ref, existing.id)
            return existing

        try:
            result = await adapter.disburse(replace(request, reference=intent.id))
        except ProviderError as exc:
            async with session_scope(self.session_factory) as session:
                await SqlDisbursementIntentRepository(session).mark_failed(intent.id, error=str(exc))
            logger.warning("Disbursement for deposit %s rejected: %s", payload.deposit_transaction_ref, exc)
            raise

        async with session_scope(self.session_factory) as session:
            await SqlDisbursementIntentRepository(session).mark_disbursed(
                intent.id, provider_transaction_ref=result.provider_transaction_ref
            )

        try:
            async with session_scope(self.session_factory) as session:
                order = await SqlOrderRepository(session).create(build_new_order(intent, result))
                await SqlDisbursementIntentRepository(session).mark_accepted(
                    intent.id,
                    provider_transaction_ref=result.provider_transaction_ref,
                    order_id=order.id,
                )
        except Exception:
            logger.exception(
                "Order write for intent %s (%s %s) failed; left for the intent sweep",
                intent.id,
                payload.provider.value,
                result.provider_transaction_ref,
            )
            raise

        logger.info(
            "Created order %s (%s %s) for deposit %s: total=%s recipient=%s fee=%s %s",
            order.id,
            order.provider.value,
            order.provider_transaction_ref,
            order.deposit_transaction_ref,
            order.total_local_amount,
            order.recipient_amount,
            order.platform_fee,
            order.local_currency,
        )
        return order

    async def _claim_intent(
        self,
        session: AsyncSession,
        provider: ProviderName,
        currency: str,
        snapshot: dict[str, Any],
    ) -> tuple[DisbursementIntent, Optional[Order]]:
        intents = SqlDisbursementIntentRepository(session)
        deposit_ref = snapshot["deposit_transaction_ref"]
        existing = await intents.get_by_deposit_ref(deposit_ref)
        if existing is None:
            intent = await intents.create(
                deposit_transaction_ref=deposit_ref,
                provider=provider,
                local_currency=currency,
                request=snapshot,
            )
            return intent, None

        if existing.status == INTENT_ACCEPTED and existing.order_id:
            order = await SqlOrderRepository(session).get_by_id(existing.order_id)
            if order is not None:
                return existing, order
        if existing.status == INTENT_FAILED:
            intent = await intents.reopen(existing.id, request=snapshot)
            return intent, None
        raise DisbursementInProgressError(deposit_ref)

    def _callback_url(self, provider: ProviderName) -> str:
        return self.settings.callback_url(f"{self.settings.api_prefix}/webhooks/{provider.value}")

    async def get_order(self, order_id: str) -> Order:
        async with session_scope(self.session_factory) as session:
            order = await SqlOrderRepository(session).get_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def get_by_reference(
        self,
        provider: ProviderName,
        provider_transaction_ref: str,
        *,
        refresh: bool = False,
    ) -> Order:
        if refresh:
            await self.refresh(provider, provider_transaction_ref)
        async with session_scope(self.session_factory) as session:
            order = await SqlOrderRepository(session).get_by_ref(provider, provider_transaction_ref)
        if order is None:
            raise OrderNotFoundError(f"{provider.value}:{provider_transaction_ref}")
        return order

    async def refresh(self, provider: ProviderName, provider_transaction_ref: str) -> None:
        """Run a single poll; provider errors are logged and the stored status is kept."""
        async with session_scope(self.session_factory) as session:
            order = await SqlOrderRepository(session).get_by_ref(provider, provider_transaction_ref)
        if order is None or order.is_terminal:
            return
        try:
            await poll_once(
                self.session_factory,
                self.providers,
                provider,
                provider_transaction_ref,
                order.local_currency,
                transition_attempts=self.settings.reconciliation.transition_attempts,
            )
        except ProviderError as exc:
            logger.warning("Refresh of %s %s failed: %s", provider.value, provider_transaction_ref, exc)

    async def history(self, order_id: str) -> Sequence[StatusHistoryEntry]:
        async with session_scope(self.session_factory) as session:
            orders = SqlOrderRepository(session)
            if await orders.get_by_id(order_id) is None:
                raise OrderNotFoundError(order_id)
            return await orders.list_history(order_id)

    async def track(self, order: Order) -> PollOutcome:
        """Poll a freshly created order until terminal; safe to abandon."""
        return await poll_until_terminal(
            self.session_factory,
            self.providers,
            order.provider,
            order.provider_transaction_ref,
            order.local_currency,
            policy=RetryPolicy.from_settings(self.settings.polling),
            transition_attempts=self.settings.reconciliation.transition_attempts,
        )
