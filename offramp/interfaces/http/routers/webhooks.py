"""Inbound provider webhooks.

Once a payload is authenticated the sender always gets ``200 {"success": true}``
so providers do not retry forever on our internal problems; every outcome is
recorded in the signal log instead.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from offramp.core.config import Settings
from offramp.infrastructure.database.session import session_scope
from offramp.interfaces.http.deps import get_app_settings, get_provider_registry, get_session_factory
from offramp.modules.common import StatusSource
from offramp.modules.providers import (
    MalformedPayloadError,
    ProviderNotConfiguredError,
    ProviderRegistry,
    WebhookVerificationError,
)
from offramp.modules.reconciliation.engine import ReconciliationEngine
from offramp.schemas import WebhookAck

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/{provider}", response_model=WebhookAck, summary="Receive a provider status webhook")
async def receive_webhook(
    provider: str,
    request: Request,
    providers: ProviderRegistry = Depends(get_provider_registry),
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    settings: Settings = Depends(get_app_settings),
):
    try:
        adapter = providers.get(provider)
    except ProviderNotConfiguredError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown provider") from exc

    body = await request.body()
    try:
        signal = adapter.parse_webhook(body, request.headers)
    except WebhookVerificationError as exc:
        logger.warning("Rejected %s webhook: %s", provider, exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature") from exc
    except MalformedPayloadError as exc:
        logger.warning("Ignoring malformed %s webhook: %s", provider, exc)
        return WebhookAck()

    try:
        async with session_scope(factory) as session:
            engine = ReconciliationEngine.with_session(
                session,
                providers,
                transition_attempts=settings.reconciliation.transition_attempts,
            )
            result = await engine.apply_signal(adapter.name, signal, StatusSource.WEBHOOK)
    except Exception:  # pylint: disable=broad-except
        logger.exception(
            "Failed to reconcile %s webhook for %s", provider, signal.provider_transaction_ref
        )
    else:
        logger.info(
            "%s webhook for %s: %s", provider, signal.provider_transaction_ref, result.outcome.value
        )
    return WebhookAck()
