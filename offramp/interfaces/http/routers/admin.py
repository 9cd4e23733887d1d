"""Operator endpoints: repair sweeps and the signal audit log."""

from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from offramp.core.config import Settings
from offramp.infrastructure.database.repositories.signal_repository import SqlSignalRepository
from offramp.interfaces.http.deps import (
    get_app_settings,
    get_db_session,
    get_provider_registry,
    get_session_factory,
    require_admin,
)
from offramp.modules.common import ProviderName
from offramp.modules.providers import ProviderRegistry
from offramp.modules.reconciliation import SignalOutcome
from offramp.modules.reconciliation.sweeps import IntentSweep, SettlementSweep
from offramp.schemas import SignalListResponse, SignalResponse, SweepReportResponse

router = APIRouter(dependencies=[Depends(require_admin)])


@router.post("/sweeps/settlements", response_model=SweepReportResponse, summary="Record missing settlements")
async def run_settlement_sweep(
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    settings: Settings = Depends(get_app_settings),
):
    sweep = SettlementSweep(factory, batch_size=settings.reconciliation.sweep_batch_size)
    return SweepReportResponse.model_validate(await sweep.run())


@router.post("/sweeps/intents", response_model=SweepReportResponse, summary="Recover stuck disbursements")
async def run_intent_sweep(
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    providers: ProviderRegistry = Depends(get_provider_registry),
    settings: Settings = Depends(get_app_settings),
):
    sweep = IntentSweep(
        factory,
        providers,
        stale_after=timedelta(minutes=settings.reconciliation.intent_stale_after_minutes),
        batch_size=settings.reconciliation.sweep_batch_size,
    )
    return SweepReportResponse.model_validate(await sweep.run())


@router.get("/signals", response_model=SignalListResponse, summary="Recent status signals")
async def list_signals(
    limit: int = 100,
    outcome: Optional[SignalOutcome] = None,
    provider: Optional[ProviderName] = None,
    db: AsyncSession = Depends(get_db_session),
):
    records = await SqlSignalRepository(db).list_recent(limit=min(limit, 500), outcome=outcome, provider=provider)
    return SignalListResponse(
        total=len(records),
        signals=[SignalResponse.model_validate(record) for record in records],
    )
