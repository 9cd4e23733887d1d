"""Periodic repair of work a crash or lost response left unfinished."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from offramp.core.config import ReconciliationSettings
from offramp.core.timeutils import utcnow
from offramp.infrastructure.database.repositories.intent_repository import SqlDisbursementIntentRepository
from offramp.infrastructure.database.repositories.order_repository import SqlOrderRepository
from offramp.infrastructure.database.session import session_scope
from offramp.modules.orders.exceptions import DuplicateTransactionRefError
from offramp.modules.orders.models import DisbursementIntent
from offramp.modules.orders.service import build_new_order
from offramp.modules.providers.exceptions import ProviderError
from offramp.modules.providers.models import DisbursementResult
from offramp.modules.providers.registry import ProviderRegistry
from offramp.modules.settlements.recorder import SettlementRecorder

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(slots=True)
class SweepReport:
    scanned: int = 0
    repaired: int = 0
    errors: list[str] = field(default_factory=list)


class SettlementSweep:
    """Record settlements for delivered orders whose recording failed."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], *, batch_size: int = 100) -> None:
        self._session_factory = session_factory
        self._batch_size = batch_size

    async def run(self) -> SweepReport:
        report = SweepReport()
        async with session_scope(self._session_factory) as session:
            orders = await SqlOrderRepository(session).list_unsettled_deliveries(self._batch_size)

        for order in orders:
            report.scanned += 1
            try:
                async with session_scope(self._session_factory) as session:
                    await SettlementRecorder.with_session(session).record_once(
                        order.id,
                        order.recipient_amount,
                        order.local_currency,
                        order.payment_method.kind,
                        provider_reference=order.receipt_reference,
                        settled_at=order.completed_at,
                    )
            except Exception as exc:
                logger.exception("Settlement sweep failed for order %s", order.id)
                report.errors.append(f"{order.id}: {exc}")
                continue
            report.repaired += 1

        if report.scanned:
            logger.info("Settlement sweep: %s scanned, %s recorded", report.scanned, report.repaired)
        return report


class IntentSweep:
    """Re-derive orders for disbursement intents that never got one.

    A ``disbursed`` intent already carries the provider reference and the
    order is rebuilt from it directly. A ``pending`` intent means the process
    stopped while the provider was being called: providers that can list
    orders by client reference let us recover the order, otherwise the intent
    is left for an operator.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        providers: ProviderRegistry,
        *,
        stale_after: timedelta = timedelta(minutes=10),
        batch_size: int = 100,
    ) -> None:
        self._session_factory = session_factory
        self._providers = providers
        self._stale_after = stale_after
        self._batch_size = batch_size

    async def run(self) -> SweepReport:
        report = SweepReport()
        cutoff = utcnow() - self._stale_after
        async with session_scope(self._session_factory) as session:
            intents = await SqlDisbursementIntentRepository(session).list_stale_unresolved(
                cutoff, self._batch_size
            )

        for intent in intents:
            report.scanned += 1
            if intent.provider_transaction_ref:
                # the provider answered before the order write failed
                found = DisbursementResult(provider_transaction_ref=intent.provider_transaction_ref)
            else:
                try:
                    adapter = self._providers.get(intent.provider)
                    found = await adapter.find_by_reference(intent.id, intent.local_currency)
                except ProviderError as exc:
                    logger.warning(
                        "Intent sweep could not query %s for intent %s: %s", intent.provider.value, intent.id, exc
                    )
                    report.errors.append(f"{intent.id}: {exc}")
                    continue

            if found is None:
                logger.warning(
                    "Intent %s for deposit %s has no provider order; needs manual review",
                    intent.id,
                    intent.deposit_transaction_ref,
                )
                continue

            try:
                order_id = await self._write_order(intent, found)
            except Exception as exc:
                logger.exception("Intent sweep could not write the order for intent %s", intent.id)
                report.errors.append(f"{intent.id}: {exc}")
                continue
            logger.info("Recovered order %s for intent %s", order_id, intent.id)
            report.repaired += 1

        return report

    async def _write_order(self, intent: DisbursementIntent, found: DisbursementResult) -> str:
        async with session_scope(self._session_factory) as session:
            orders = SqlOrderRepository(session)
            try:
                order = await orders.create(build_new_order(intent, found))
            except DuplicateTransactionRefError:
                order = await orders.get_by_ref(intent.provider, found.provider_transaction_ref)
            await SqlDisbursementIntentRepository(session).mark_accepted(
                intent.id,
                provider_transaction_ref=found.provider_transaction_ref,
                order_id=order.id,
            )
        return order.id


class SweepRunner:
    """Run both sweeps on a fixed interval until cancelled."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        providers: ProviderRegistry,
        settings: ReconciliationSettings,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._settlements = SettlementSweep(session_factory, batch_size=settings.sweep_batch_size)
        self._intents = IntentSweep(
            session_factory,
            providers,
            stale_after=timedelta(minutes=settings.intent_stale_after_minutes),
            batch_size=settings.sweep_batch_size,
        )
        self._interval = settings.sweep_interval_seconds
        self._sleep = sleep

    async def run_once(self) -> list[SweepReport]:
        reports = []
        for sweep in (self._settlements, self._intents):
            try:
                reports.append(await sweep.run())
            except Exception as exc:
                logger.exception("%s run failed", type(sweep).__name__)
                reports.append(SweepReport(errors=[str(exc)]))
        return reports

    async def run_forever(self) -> None:
        logger.info("Background sweeps every %s seconds", self._interval)
        while True:
            await self.run_once()
            await self._sleep(self._interval)
