"""Outbound status polling shared by every provider."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterator, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from offramp.core.config import PollingSettings
from offramp.infrastructure.database.session import session_scope
from offramp.modules.common import CanonicalStatus, ProviderName, StatusSource
from offramp.modules.providers.exceptions import ProviderError
from offramp.modules.providers.registry import ProviderRegistry

from .engine import ReconciliationEngine
from .models import SignalResult

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = 20
    base_delay: float = 3.0
    factor: float = 1.4
    max_delay: float = 30.0

    @classmethod
    def from_settings(cls, settings: PollingSettings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_attempts,
            base_delay=settings.base_delay_seconds,
            factor=settings.factor,
            max_delay=settings.max_delay_seconds,
        )

    def delays(self) -> Iterator[float]:
        """Wait before each attempt: base, base*factor, ... capped at max_delay."""
        delay = self.base_delay
        for _ in range(self.max_attempts):
            yield min(delay, self.max_delay)
            delay *= self.factor


@dataclass(frozen=True, slots=True)
class PollOutcome:
    attempts: int
    final_status: Optional[CanonicalStatus]
    last_result: Optional[SignalResult] = None

    @property
    def reached_terminal(self) -> bool:
        return self.final_status is not None and self.final_status.is_terminal


async def poll_once(
    session_factory: async_sessionmaker[AsyncSession],
    providers: ProviderRegistry,
    provider: ProviderName,
    provider_transaction_ref: str,
    currency: str,
    *,
    transition_attempts: int = 3,
) -> SignalResult:
    """Fetch the provider status, then apply it in a fresh unit of work."""
    signal = await providers.get(provider).fetch_status(provider_transaction_ref, currency)
    async with session_scope(session_factory) as session:
        engine = ReconciliationEngine.with_session(
            session, providers, transition_attempts=transition_attempts
        )
        return await engine.apply_signal(provider, signal, StatusSource.POLL)


async def poll_until_terminal(
    session_factory: async_sessionmaker[AsyncSession],
    providers: ProviderRegistry,
    provider: ProviderName,
    provider_transaction_ref: str,
    currency: str,
    *,
    policy: RetryPolicy = RetryPolicy(),
    transition_attempts: int = 3,
    sleep: Sleep = asyncio.sleep,
) -> PollOutcome:
    """Poll until the order is terminal or the policy runs out.

    Running out leaves the order as it is; webhooks and sweeps can still
    complete it later.
    """
    attempts = 0
    last_result: Optional[SignalResult] = None
    final_status: Optional[CanonicalStatus] = None

    for delay in policy.delays():
        await sleep(delay)
        attempts += 1
        try:
            last_result = await poll_once(
                session_factory,
                providers,
                provider,
                provider_transaction_ref,
                currency,
                transition_attempts=transition_attempts,
            )
        except ProviderError as exc:
            logger.warning(
                "Poll %s/%s for %s %s failed: %s",
                attempts,
                policy.max_attempts,
                provider.value,
                provider_transaction_ref,
                exc,
            )
            continue

        final_status = last_result.current_status
        if final_status is not None and final_status.is_terminal:
            logger.info(
                "Polling for %s %s finished after %s attempts: %s",
                provider.value,
                provider_transaction_ref,
                attempts,
                final_status.value,
            )
            break
        if last_result.order_id is None:
            logger.warning("Stopped polling %s %s: no matching order", provider.value, provider_transaction_ref)
            break
    else:
        logger.warning(
            "Polling for %s %s exhausted after %s attempts; order left %s",
            provider.value,
            provider_transaction_ref,
            attempts,
            final_status.value if final_status else "unknown",
        )

    return PollOutcome(attempts=attempts, final_status=final_status, last_result=last_result)
