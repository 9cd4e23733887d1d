import pytest
from sqlalchemy import func, select

from offramp.db.models import Settlement as SettlementModel
from offramp.infrastructure.database.repositories.settlement_repository import SqlSettlementRepository
from offramp.infrastructure.database.session import session_scope
from offramp.modules.common import CanonicalStatus, StatusSource
from offramp.modules.providers import StatusSignal
from offramp.modules.reconciliation import SignalOutcome
from offramp.modules.reconciliation.engine import ReconciliationEngine
from offramp.modules.reconciliation.sweeps import SettlementSweep
from offramp.modules.settlements import SettlementAlreadyRecordedError, SettlementRecorder


async def settlement_count(session_factory):
    async with session_scope(session_factory) as session:
        return (await session.execute(select(func.count()).select_from(SettlementModel))).scalar_one()


class TestSettlementRecorder:
    async def test_record_once_returns_existing_row(self, session_factory, make_order):
        order = await make_order()

        async with session_scope(session_factory) as session:
            first = await SettlementRecorder.with_session(session).record_once(
                order.id, 1287, "KES", "phone", provider_reference="QK1"
            )
        async with session_scope(session_factory) as session:
            second = await SettlementRecorder.with_session(session).record_once(
                order.id, 9999, "KES", "phone", provider_reference="OTHER"
            )

        assert second.id == first.id
        assert second.amount == 1287
        assert second.provider_reference == "QK1"
        assert await settlement_count(session_factory) == 1

    async def test_duplicate_in_same_unit_of_work_keeps_transaction_usable(self, session_factory, make_order):
        order = await make_order()

        async with session_scope(session_factory) as session:
            recorder = SettlementRecorder.with_session(session)
            first = await recorder.record_once(order.id, 1287, "KES", "phone")
            again = await recorder.record_once(order.id, 1287, "KES", "phone")
            assert again.id == first.id
            assert (await recorder.get_for_order(order.id)).id == first.id

        assert await settlement_count(session_factory) == 1

    async def test_repository_raises_on_duplicate(self, session_factory, make_order):
        order = await make_order()
        async with session_scope(session_factory) as session:
            repo = SqlSettlementRepository(session)
            kwargs = dict(
                order_id=order.id,
                amount=1287,
                currency="KES",
                method="phone",
                provider_reference=None,
                settled_at=order.created_at,
            )
            await repo.create(**kwargs)
            with pytest.raises(SettlementAlreadyRecordedError):
                await repo.create(**kwargs)


class TestSettlementFailureIsolation:
    async def test_failed_recording_keeps_transition_and_sweep_repairs(
        self, session_factory, providers, make_order, monkeypatch
    ):
        order = await make_order()

        async def broken(self, *args, **kwargs):
            raise RuntimeError("ledger unavailable")

        with monkeypatch.context() as patch:
            patch.setattr(SettlementRecorder, "record_once", broken)
            async with session_scope(session_factory) as session:
                result = await ReconciliationEngine.with_session(session, providers).apply_signal(
                    order.provider,
                    StatusSignal(order.provider_transaction_ref, "COMPLETE", receipt_reference="QK9"),
                    StatusSource.WEBHOOK,
                )

        assert result.outcome is SignalOutcome.APPLIED
        assert result.current_status is CanonicalStatus.DELIVERED
        assert result.settlement_id is None
        assert await settlement_count(session_factory) == 0

        report = await SettlementSweep(session_factory).run()

        assert (report.scanned, report.repaired) == (1, 1)
        assert await settlement_count(session_factory) == 1
        async with session_scope(session_factory) as session:
            settlement = await SqlSettlementRepository(session).get_by_order_id(order.id)
        assert settlement.amount == order.recipient_amount
        assert settlement.provider_reference == "QK9"

        again = await SettlementSweep(session_factory).run()
        assert again.scanned == 0
