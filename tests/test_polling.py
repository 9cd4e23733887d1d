import httpx
import pytest

from offramp.core.config import PollingSettings
from offramp.infrastructure.database.repositories.order_repository import SqlOrderRepository
from offramp.infrastructure.database.session import session_scope
from offramp.modules.common import CanonicalStatus, ProviderName
from offramp.modules.reconciliation.polling import RetryPolicy, poll_until_terminal

from .conftest import pretium_envelope


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class TestRetryPolicy:
    def test_default_schedule_grows_and_caps(self):
        delays = list(RetryPolicy().delays())
        assert len(delays) == 20
        assert delays[0] == pytest.approx(3.0)
        assert delays[1] == pytest.approx(4.2)
        assert all(later >= earlier for earlier, later in zip(delays, delays[1:]))
        assert max(delays) == pytest.approx(30.0)

    def test_from_settings(self):
        policy = RetryPolicy.from_settings(
            PollingSettings(max_attempts=3, base_delay_seconds=1, factor=2, max_delay_seconds=3)
        )
        assert list(policy.delays()) == [1, 2, 3]


class TestPollUntilTerminal:
    async def test_stops_at_terminal(self, session_factory, providers, pretium_api, make_order):
        await make_order()
        pretium_api.on(
            "POST",
            "/v1/status/KES",
            [
                pretium_envelope("PENDING"),
                pretium_envelope("PROCESSING"),
                pretium_envelope("COMPLETE", receipt_number="QK77"),
            ],
        )
        sleep = RecordingSleep()

        outcome = await poll_until_terminal(
            session_factory,
            providers,
            ProviderName.PRETIUM,
            "TXN-1",
            "KES",
            policy=RetryPolicy(max_attempts=10, base_delay=1, factor=2, max_delay=3),
            sleep=sleep,
        )

        assert outcome.attempts == 3
        assert outcome.reached_terminal
        assert outcome.final_status is CanonicalStatus.DELIVERED
        assert sleep.delays == [1, 2, 3]
        async with session_scope(session_factory) as session:
            order = await SqlOrderRepository(session).get_by_ref(ProviderName.PRETIUM, "TXN-1")
        assert order.receipt_reference == "QK77"

    async def test_exhaustion_leaves_order_non_terminal(self, session_factory, providers, pretium_api, make_order):
        await make_order()
        pretium_api.on("POST", "/v1/status/KES", pretium_envelope("PROCESSING"))

        outcome = await poll_until_terminal(
            session_factory,
            providers,
            ProviderName.PRETIUM,
            "TXN-1",
            "KES",
            policy=RetryPolicy(max_attempts=4, base_delay=0.1),
            sleep=RecordingSleep(),
        )

        assert outcome.attempts == 4
        assert not outcome.reached_terminal
        assert outcome.final_status is CanonicalStatus.PROCESSING

    async def test_provider_errors_count_as_attempts(self, session_factory, providers, pretium_api, make_order):
        await make_order()
        pretium_api.on(
            "POST",
            "/v1/status/KES",
            [httpx.Response(502, text="bad gateway"), pretium_envelope("FAILED", message="Rejected")],
        )

        outcome = await poll_until_terminal(
            session_factory,
            providers,
            ProviderName.PRETIUM,
            "TXN-1",
            "KES",
            policy=RetryPolicy(max_attempts=5, base_delay=0.1),
            sleep=RecordingSleep(),
        )

        assert outcome.attempts == 2
        assert outcome.final_status is CanonicalStatus.FAILED

    async def test_unknown_reference_stops_polling(self, session_factory, providers, pretium_api):
        pretium_api.on("POST", "/v1/status/KES", pretium_envelope("COMPLETE", "GHOST"))

        outcome = await poll_until_terminal(
            session_factory,
            providers,
            ProviderName.PRETIUM,
            "GHOST",
            "KES",
            policy=RetryPolicy(max_attempts=5, base_delay=0.1),
            sleep=RecordingSleep(),
        )

        assert outcome.attempts == 1
        assert outcome.final_status is None
