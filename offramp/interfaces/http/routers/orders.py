"""Off-ramp order endpoints."""

import logging
from datetime import timedelta

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status

from offramp.core.config import Settings
from offramp.core.timeutils import utcnow
from offramp.interfaces.http.deps import get_app_settings, get_order_service
from offramp.modules.common import ProviderName
from offramp.modules.fees import InvalidAmountError
from offramp.modules.orders import (
    DisbursementInProgressError,
    DuplicateTransactionRefError,
    Order,
    OrderCreateInput,
    OrderNotFoundError,
)
from offramp.modules.orders.service import OrderService
from offramp.modules.providers import (
    ProviderNotConfiguredError,
    ProviderUnavailableError,
    UnsupportedPaymentMethodError,
)
from offramp.schemas import (
    OrderCreateRequest,
    OrderCreateResponse,
    OrderHistoryResponse,
    OrderStatusResponse,
    StatusHistoryEntryResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_status(order: Order, settings: Settings) -> OrderStatusResponse:
    threshold = timedelta(minutes=settings.reconciliation.stale_after_minutes)
    return OrderStatusResponse(
        order_id=order.id,
        provider=order.provider,
        provider_transaction_ref=order.provider_transaction_ref,
        canonical_status=order.canonical_status,
        display_status=order.display_status,
        stale=order.is_stale(utcnow(), threshold),
        recipient_amount=order.recipient_amount,
        platform_fee=order.platform_fee,
        total_amount=order.total_local_amount,
        local_currency=order.local_currency,
        receipt_reference=order.receipt_reference,
        failure_reason=order.failure_reason,
        created_at=order.created_at,
        last_status_at=order.last_status_at,
        completed_at=order.completed_at,
    )


async def _track_order(service: OrderService, order: Order) -> None:
    try:
        await service.track(order)
    except Exception:  # pylint: disable=broad-except
        logger.exception("Background polling for order %s crashed", order.id)


@router.post(
    "",
    response_model=OrderCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an off-ramp order",
)
async def create_order(
    payload: OrderCreateRequest,
    background_tasks: BackgroundTasks,
    service: OrderService = Depends(get_order_service),
    settings: Settings = Depends(get_app_settings),
):
    try:
        order = await service.create_order(
            OrderCreateInput(
                deposit_amount=payload.deposit_amount,
                local_currency=payload.local_currency,
                rate_quote=payload.rate_quote,
                fee_fraction=payload.fee_fraction,
                payment_method=payload.payment_method.to_domain(),
                deposit_transaction_ref=payload.deposit_transaction_ref,
                wallet_address=payload.wallet_address,
                account_name=payload.account_name,
                provider=payload.provider,
            )
        )
    except InvalidAmountError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except (UnsupportedPaymentMethodError, ProviderNotConfiguredError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ProviderUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": str(exc), "provider": exc.provider, "provider_status_code": exc.status_code},
        ) from exc
    except (DuplicateTransactionRefError, DisbursementInProgressError) as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    if settings.polling.enabled and not order.is_terminal:
        background_tasks.add_task(_track_order, service, order)

    return OrderCreateResponse(
        order_id=order.id,
        provider=order.provider,
        provider_transaction_ref=order.provider_transaction_ref,
        recipient_amount=order.recipient_amount,
        platform_fee=order.platform_fee,
        total_amount=order.total_local_amount,
        local_currency=order.local_currency,
        canonical_status=order.canonical_status,
    )


@router.get(
    "/by-reference/{provider}/{provider_transaction_ref}",
    response_model=OrderStatusResponse,
    summary="Order status by provider reference",
)
async def get_order_by_reference(
    provider: ProviderName,
    provider_transaction_ref: str,
    refresh: bool = False,
    service: OrderService = Depends(get_order_service),
    settings: Settings = Depends(get_app_settings),
):
    try:
        order = await service.get_by_reference(provider, provider_transaction_ref, refresh=refresh)
    except OrderNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found") from exc
    except ProviderNotConfiguredError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _to_status(order, settings)


@router.get("/{order_id}", response_model=OrderStatusResponse, summary="Order status")
async def get_order(
    order_id: str,
    refresh: bool = False,
    service: OrderService = Depends(get_order_service),
    settings: Settings = Depends(get_app_settings),
):
    try:
        order = await service.get_order(order_id)
        if refresh and not order.is_terminal:
            order = await service.get_by_reference(order.provider, order.provider_transaction_ref, refresh=True)
    except OrderNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found") from exc
    return _to_status(order, settings)


@router.get("/{order_id}/history", response_model=OrderHistoryResponse, summary="Order status history")
async def get_order_history(order_id: str, service: OrderService = Depends(get_order_service)):
    try:
        entries = await service.history(order_id)
    except OrderNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found") from exc
    return OrderHistoryResponse(
        order_id=order_id,
        entries=[StatusHistoryEntryResponse.model_validate(entry) for entry in entries],
    )
