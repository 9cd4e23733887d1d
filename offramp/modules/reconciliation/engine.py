"""Merge webhook and poll signals into the canonical order lifecycle.

Each call to :meth:`ReconciliationEngine.apply_signal` is one unit of work on
the caller's session: the status transition, its history row, the signal log
row and (on first delivery) the settlement commit together. Concurrent writers
are resolved by the conditional update in the order repository, never by
in-process locks.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from offramp.core.timeutils import utcnow
from offramp.infrastructure.database.repositories.order_repository import SqlOrderRepository
from offramp.infrastructure.database.repositories.signal_repository import SqlSignalRepository
from offramp.modules.common import CanonicalStatus, ProviderName, StatusSource
from offramp.modules.orders.models import Order
from offramp.modules.orders.repository import OrderRepository
from offramp.modules.providers.models import StatusSignal
from offramp.modules.providers.registry import ProviderRegistry
from offramp.modules.settlements.recorder import SettlementRecorder

from .models import SignalOutcome, SignalResult
from .repository import SignalRepository
from .state_machine import TransitionDecision, decide_transition

logger = logging.getLogger(__name__)


class ReconciliationEngine:
    def __init__(
        self,
        session: AsyncSession,
        *,
        providers: ProviderRegistry,
        orders: OrderRepository,
        signals: SignalRepository,
        recorder: SettlementRecorder,
        transition_attempts: int = 3,
    ) -> None:
        self._session = session
        self._providers = providers
        self._orders = orders
        self._signals = signals
        self._recorder = recorder
        self._transition_attempts = max(1, transition_attempts)

    @classmethod
    def with_session(
        cls,
        session: AsyncSession,
        providers: ProviderRegistry,
        *,
        transition_attempts: int = 3,
    ) -> "ReconciliationEngine":
        return cls(
            session,
            providers=providers,
            orders=SqlOrderRepository(session),
            signals=SqlSignalRepository(session),
            recorder=SettlementRecorder.with_session(session),
            transition_attempts=transition_attempts,
        )

    async def apply_signal(
        self,
        provider: ProviderName,
        signal: StatusSignal,
        source: StatusSource,
    ) -> SignalResult:
        received_at = utcnow()
        ref = signal.provider_transaction_ref

        order = await self._orders.get_by_ref(provider, ref)
        if order is None:
            logger.warning(
                "Orphan %s signal from %s for unknown ref %s (%s)",
                source.value,
                provider.value,
                ref,
                signal.raw_status,
            )
            await self._log(provider, signal, source, SignalOutcome.ORPHAN, received_at)
            return SignalResult(outcome=SignalOutcome.ORPHAN)

        target = self._providers.get(provider).map_status(signal.raw_status)
        if target is None:
            logger.warning("Unmapped %s status %r for order %s", provider.value, signal.raw_status, order.id)
            await self._log(provider, signal, source, SignalOutcome.UNMAPPED, received_at, order_id=order.id)
            return SignalResult(
                outcome=SignalOutcome.UNMAPPED,
                order_id=order.id,
                previous_status=order.canonical_status,
                current_status=order.canonical_status,
            )

        initial = order.canonical_status
        current = initial
        raced = False
        for _ in range(self._transition_attempts):
            decision = decide_transition(current, target)
            if decision is not TransitionDecision.APPLY:
                break
            applied = await self._orders.conditional_update_status(
                provider,
                ref,
                expected=current,
                new=target,
                raw_status=signal.raw_status or "",
                source=source,
                at=received_at,
                receipt_reference=signal.receipt_reference,
                failure_reason=signal.failure_reason,
            )
            if applied:
                return await self._on_applied(order, signal, source, current, target, received_at)
            # another writer moved the order; retry against what it holds now
            raced = True
            refreshed = await self._orders.get_by_ref(provider, ref, refresh=True)
            current = refreshed.canonical_status if refreshed is not None else current
        else:
            decision = decide_transition(current, target)
            if decision is TransitionDecision.APPLY:
                logger.warning(
                    "Gave up applying %s -> %s for order %s after %s attempts",
                    current.value,
                    target.value,
                    order.id,
                    self._transition_attempts,
                )
                decision = TransitionDecision.CONFLICT

        if decision is TransitionDecision.REDUNDANT or (
            raced and decision is TransitionDecision.REGRESSION and current.rank > target.rank
        ):
            outcome = SignalOutcome.REDUNDANT
            logger.debug("Redundant %s signal %s for order %s", source.value, target.value, order.id)
        else:
            outcome = SignalOutcome.INCONSISTENT
            logger.warning(
                "Inconsistent %s signal for order %s: %s -> %s ignored (raw %r)",
                source.value,
                order.id,
                current.value,
                target.value,
                signal.raw_status,
            )

        await self._log(provider, signal, source, outcome, received_at, order_id=order.id, canonical=target)
        return SignalResult(
            outcome=outcome,
            order_id=order.id,
            previous_status=initial,
            current_status=current,
        )

    async def _on_applied(
        self,
        order: Order,
        signal: StatusSignal,
        source: StatusSource,
        previous: CanonicalStatus,
        target: CanonicalStatus,
        received_at: datetime,
    ) -> SignalResult:
        logger.info(
            "Order %s %s -> %s via %s (raw %r)",
            order.id,
            previous.value,
            target.value,
            source.value,
            signal.raw_status,
        )
        settlement_id: Optional[str] = None
        if target.is_success:
            settlement_id = await self._record_settlement(order, signal)

        await self._log(
            order.provider,
            signal,
            source,
            SignalOutcome.APPLIED,
            received_at,
            order_id=order.id,
            canonical=target,
        )
        return SignalResult(
            outcome=SignalOutcome.APPLIED,
            order_id=order.id,
            previous_status=previous,
            current_status=target,
            settlement_id=settlement_id,
        )

    async def _record_settlement(self, order: Order, signal: StatusSignal) -> Optional[str]:
        try:
            async with self._session.begin_nested():
                settlement = await self._recorder.record_once(
                    order.id,
                    order.recipient_amount,
                    order.local_currency,
                    order.payment_method.kind,
                    provider_reference=signal.receipt_reference or order.receipt_reference,
                )
        except Exception:
            # the status transition stands; the settlement sweep will retry
            logger.exception("Settlement recording failed for order %s", order.id)
            return None
        return settlement.id

    async def _log(
        self,
        provider: ProviderName,
        signal: StatusSignal,
        source: StatusSource,
        outcome: SignalOutcome,
        received_at: datetime,
        *,
        order_id: Optional[str] = None,
        canonical: Optional[CanonicalStatus] = None,
    ) -> None:
        await self._signals.add(
            provider=provider,
            provider_transaction_ref=signal.provider_transaction_ref,
            source=source,
            outcome=outcome,
            received_at=received_at,
            order_id=order_id,
            raw_status=signal.raw_status,
            canonical_status=canonical,
            receipt_reference=signal.receipt_reference,
            failure_reason=signal.failure_reason,
            payload=signal.payload,
        )
