"""Pretium mobile-money and bank disbursement adapter."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from offramp.core.config import PretiumSettings
from offramp.modules.common import (
    BankAccount,
    CanonicalStatus,
    Paybill,
    PhoneNumber,
    ProviderName,
    TillNumber,
)

from .base import ProviderAdapter
from .exceptions import MalformedPayloadError, ProviderUnavailableError, UnsupportedPaymentMethodError
from .models import DisbursementRequest, DisbursementResult, StatusSignal
from .phone import detect_network, digits_only, normalize_phone

logger = logging.getLogger(__name__)

# Paybills Pretium refuses to pay into.
BLOCKED_PAYBILLS = frozenset(
    {
        "955100", "7650880", "888880", "5212121", "888888", "79079", "260680",
        "247979", "800088", "718085", "8228252", "955700", "290290", "4087777",
        "290059", "290077", "779900", "290020", "565619", "290680", "880185",
        "212927", "999880", "290090", "940828", "7325515", "852048", "299690",
        "260077", "663661", "783227", "290011", "141114", "811822", "290028",
        "920620", "427427", "4998983", "7011780", "569699", "808087", "290063",
        "999833", "547717", "4076659", "499995", "290898", "498098", "444268",
        "562424", "4999902", "4135837", "290067", "565612", "333345", "4029669",
    }
)

STATUS_MAP = {
    "PENDING": CanonicalStatus.PENDING,
    "PROCESSING": CanonicalStatus.PROCESSING,
    "COMPLETE": CanonicalStatus.DELIVERED,
    "COMPLETED": CanonicalStatus.DELIVERED,
    "FAILED": CanonicalStatus.FAILED,
    "REVERSED": CanonicalStatus.REFUNDED,
    "REFUNDED": CanonicalStatus.REFUNDED,
    "EXPIRED": CanonicalStatus.EXPIRED,
}


class PretiumTransaction(BaseModel):
    model_config = ConfigDict(extra="allow")

    status: Optional[str] = None
    transaction_code: Optional[str] = None
    message: Optional[str] = None
    receipt_number: Optional[str] = None
    public_name: Optional[str] = None


class PretiumEnvelope(BaseModel):
    model_config = ConfigDict(extra="allow")

    code: Optional[int] = None
    message: Optional[str] = None
    data: Optional[PretiumTransaction] = None


class PretiumWebhook(BaseModel):
    model_config = ConfigDict(extra="allow")

    transaction_code: str
    status: str
    receipt_number: Optional[str] = None
    public_name: Optional[str] = None
    message: Optional[str] = None
    is_released: Optional[bool] = None


class PretiumAdapter(ProviderAdapter):
    name = ProviderName.PRETIUM
    supported_methods = {
        "phone": frozenset({"KES", "GHS"}),
        "till": frozenset({"KES"}),
        "paybill": frozenset({"KES"}),
        "bank": frozenset({"NGN"}),
    }

    def __init__(self, client: httpx.AsyncClient, settings: PretiumSettings) -> None:
        super().__init__(client)
        self._settings = settings

    @classmethod
    def from_settings(
        cls,
        settings: PretiumSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "PretiumAdapter":
        client = httpx.AsyncClient(
            transport=transport,
            base_url=settings.base_url,
            headers={"x-api-key": settings.api_key, "Content-Type": "application/json"},
            timeout=settings.timeout_seconds,
        )
        return cls(client, settings)

    def validate(self, request: DisbursementRequest) -> None:
        super().validate(request)
        method = request.payment_method
        if isinstance(method, Paybill) and digits_only(method.paybill_number) in BLOCKED_PAYBILLS:
            raise UnsupportedPaymentMethodError(f"paybill {method.paybill_number} is not supported by pretium")

    def build_payload(self, request: DisbursementRequest) -> dict[str, Any]:
        """Render the ``/v1/pay/{currency}`` body for a validated request."""
        currency = request.local_currency.upper()
        method = request.payment_method
        amounts = request.amounts
        payload: dict[str, Any] = {
            "account_name": request.account_name,
            # provider pays ``amount - fee`` to the recipient and keeps the fee for us
            "amount": str(amounts.total),
            "fee": str(amounts.fee),
            "chain": self._settings.chain,
            "transaction_hash": request.deposit_transaction_ref,
            "callback_url": request.callback_url,
        }

        if isinstance(method, PhoneNumber):
            payload["type"] = "MOBILE"
            payload["shortcode"] = normalize_phone(method.number, currency)
            payload["mobile_network"] = method.network or detect_network(method.number, currency)
        elif isinstance(method, TillNumber):
            payload["type"] = "BUY_GOODS"
            payload["shortcode"] = digits_only(method.till_number)
            payload["mobile_network"] = "Safaricom"
        elif isinstance(method, Paybill):
            payload["type"] = "PAYBILL"
            payload["shortcode"] = digits_only(method.paybill_number)
            payload["account_number"] = method.account.strip()
            payload["mobile_network"] = "Safaricom"
        elif isinstance(method, BankAccount):
            payload["type"] = "BANK_TRANSFER"
            payload["account_number"] = method.account_number
            payload["bank_code"] = method.bank_code
            payload["bank_name"] = method.bank_name
        return {key: value for key, value in payload.items() if value is not None}

    async def disburse(self, request: DisbursementRequest) -> DisbursementResult:
        self.validate(request)
        currency = request.local_currency.upper()
        body = await self._request("POST", f"/v1/pay/{currency}", json=self.build_payload(request))
        envelope = self._decode_envelope(body)
        data = envelope.data
        if envelope.code != 200 or data is None or not data.transaction_code:
            raise ProviderUnavailableError(
                envelope.message or "pretium did not accept the disbursement",
                status_code=envelope.code,
                provider=self.name.value,
            )
        logger.info("pretium accepted disbursement %s as %s", request.reference, data.transaction_code)
        return DisbursementResult(
            provider_transaction_ref=data.transaction_code,
            raw_status=data.status,
            details=body,
        )

    async def fetch_status(self, provider_transaction_ref: str, currency: str) -> StatusSignal:
        body = await self._request(
            "POST",
            f"/v1/status/{currency.upper()}",
            json={"transaction_code": provider_transaction_ref},
        )
        envelope = self._decode_envelope(body)
        data = envelope.data
        if envelope.code != 200 or data is None:
            raise ProviderUnavailableError(
                envelope.message or "pretium status lookup failed",
                status_code=envelope.code,
                provider=self.name.value,
            )
        return StatusSignal(
            provider_transaction_ref=data.transaction_code or provider_transaction_ref,
            raw_status=data.status,
            receipt_reference=data.receipt_number,
            failure_reason=data.message if self._is_failure(data.status) else None,
            payload=body,
        )

    def parse_webhook(self, body: bytes, headers: Mapping[str, str]) -> StatusSignal:
        try:
            event = PretiumWebhook.model_validate_json(body)
        except ValidationError as exc:
            raise MalformedPayloadError(f"invalid pretium webhook: {exc.error_count()} errors") from exc
        return StatusSignal(
            provider_transaction_ref=event.transaction_code,
            raw_status=event.status,
            receipt_reference=event.receipt_number,
            failure_reason=event.message if self._is_failure(event.status) else None,
            payload=event.model_dump(),
        )

    def map_status(self, raw_status: Optional[str]) -> Optional[CanonicalStatus]:
        if not raw_status:
            return None
        return STATUS_MAP.get(raw_status.strip().upper())

    def _is_failure(self, raw_status: Optional[str]) -> bool:
        status = self.map_status(raw_status)
        return status is not None and status.is_failure

    def _decode_envelope(self, body: dict[str, Any]) -> PretiumEnvelope:
        try:
            return PretiumEnvelope.model_validate(body)
        except ValidationError as exc:
            raise ProviderUnavailableError(
                "pretium returned an unexpected envelope", provider=self.name.value
            ) from exc
