"""Paycrest sender API adapter.

Paycrest orders are funded in stablecoin: the order is created for the
deposited amount at the quoted rate and Paycrest pays the recipient in local
currency. Webhooks are signed with a hex HMAC-SHA256 of the raw body.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Any, Mapping, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from offramp.core.config import PaycrestSettings
from offramp.modules.common import BankAccount, CanonicalStatus, PhoneNumber, ProviderName

from .base import ProviderAdapter
from .exceptions import (
    MalformedPayloadError,
    ProviderUnavailableError,
    UnsupportedPaymentMethodError,
    WebhookVerificationError,
)
from .models import DisbursementRequest, DisbursementResult, StatusSignal
from .phone import detect_network, normalize_phone

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Paycrest-Signature"
EVENT_PREFIX = "payment_order."

STATUS_MAP = {
    "initiated": CanonicalStatus.PENDING,
    "pending": CanonicalStatus.PENDING,
    "processing": CanonicalStatus.PROCESSING,
    "fulfilled": CanonicalStatus.PROCESSING,
    "validated": CanonicalStatus.DELIVERED,
    "settled": CanonicalStatus.SETTLED,
    "refunded": CanonicalStatus.REFUNDED,
    "expired": CanonicalStatus.EXPIRED,
    "cancelled": CanonicalStatus.FAILED,
    "failed": CanonicalStatus.FAILED,
}

# mobile network name -> Paycrest institution code
MOBILE_INSTITUTIONS = {
    "Safaricom": "SAFARICOM",
    "Airtel": "AIRTEL",
    "MTN": "MTN",
    "Vodafone": "VODAFONE",
    "AirtelTigo": "AIRTELTIGO",
}
DEFAULT_MOBILE_INSTITUTION = {"KES": "SAFARICOM", "GHS": "MTN"}


class PaycrestOrder(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    status: Optional[str] = None
    reference: Optional[str] = None
    receive_address: Optional[str] = Field(default=None, alias="receiveAddress")
    tx_hash: Optional[str] = Field(default=None, alias="txHash")
    amount: Optional[str] = None


class PaycrestEnvelope(BaseModel):
    model_config = ConfigDict(extra="allow")

    status: Optional[str] = None
    message: Optional[str] = None
    data: Optional[Any] = None


class PaycrestWebhook(BaseModel):
    model_config = ConfigDict(extra="allow")

    event: Optional[str] = None
    data: PaycrestOrder


def sign_payload(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


class PaycrestAdapter(ProviderAdapter):
    name = ProviderName.PAYCREST
    supported_methods = {
        "phone": frozenset({"KES", "GHS"}),
        "bank": frozenset({"NGN", "KES"}),
    }

    def __init__(self, client: httpx.AsyncClient, settings: PaycrestSettings) -> None:
        super().__init__(client)
        self._settings = settings

    @classmethod
    def from_settings(
        cls,
        settings: PaycrestSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "PaycrestAdapter":
        client = httpx.AsyncClient(
            transport=transport,
            base_url=settings.base_url,
            headers={"API-Key": settings.api_key, "Content-Type": "application/json"},
            timeout=settings.timeout_seconds,
        )
        return cls(client, settings)

    def build_payload(self, request: DisbursementRequest) -> dict[str, Any]:
        currency = request.local_currency.upper()
        method = request.payment_method
        if isinstance(method, PhoneNumber):
            network = method.network or detect_network(method.number, currency)
            institution = MOBILE_INSTITUTIONS.get(network or "", DEFAULT_MOBILE_INSTITUTION.get(currency))
            identifier = normalize_phone(method.number, currency)
        elif isinstance(method, BankAccount):
            institution = method.bank_code
            identifier = method.account_number
        else:
            raise UnsupportedPaymentMethodError(f"paycrest cannot pay {method.kind}")

        return {
            "amount": str(request.amounts.deposit_amount),
            "token": self._settings.token,
            "network": self._settings.network,
            "rate": str(request.amounts.rate),
            "recipient": {
                "institution": institution,
                "accountIdentifier": identifier,
                "accountName": request.account_name or "",
                "currency": currency,
                "memo": self._settings.memo,
            },
            "reference": request.reference,
            "returnAddress": request.wallet_address,
        }

    async def disburse(self, request: DisbursementRequest) -> DisbursementResult:
        self.validate(request)
        body = await self._request("POST", "/sender/orders", json=self.build_payload(request))
        envelope = self._decode_envelope(body)
        if envelope.status != "success" or not isinstance(envelope.data, dict) or not envelope.data.get("id"):
            raise ProviderUnavailableError(
                envelope.message or "paycrest did not accept the order",
                provider=self.name.value,
            )
        order = self._decode_order(envelope.data)
        logger.info("paycrest accepted disbursement %s as %s", request.reference, order.id)
        return DisbursementResult(
            provider_transaction_ref=order.id,
            raw_status=order.status or "initiated",
            details=body,
        )

    async def fetch_status(self, provider_transaction_ref: str, currency: str) -> StatusSignal:
        body = await self._request("GET", f"/sender/orders/{provider_transaction_ref}")
        envelope = self._decode_envelope(body)
        if envelope.status != "success" or not isinstance(envelope.data, dict):
            raise ProviderUnavailableError(
                envelope.message or "paycrest status lookup failed",
                provider=self.name.value,
            )
        order = self._decode_order(envelope.data)
        return self._to_signal(order, body, envelope.message)

    async def find_by_reference(self, reference: str, currency: str) -> Optional[DisbursementResult]:
        page = 1
        while True:
            body = await self._request("GET", "/sender/orders", params={"page": page, "pageSize": 50})
            envelope = self._decode_envelope(body)
            data = envelope.data
            if isinstance(data, dict):
                items = data.get("orders") or []
                total = data.get("total")
            else:
                items = data or []
                total = None
            for item in items:
                if isinstance(item, dict) and item.get("reference") == reference:
                    order = self._decode_order(item)
                    return DisbursementResult(
                        provider_transaction_ref=order.id,
                        raw_status=order.status,
                        details=item,
                    )
            if not items or total is None or page * 50 >= int(total):
                return None
            page += 1

    def verify_signature(self, body: bytes, headers: Mapping[str, str]) -> None:
        secret = self._settings.webhook_secret
        if not secret:
            raise WebhookVerificationError("paycrest webhook secret is not configured")
        signature = _header(headers, SIGNATURE_HEADER)
        if not signature:
            raise WebhookVerificationError("missing paycrest signature")
        if not hmac.compare_digest(signature.strip().lower(), sign_payload(body, secret)):
            raise WebhookVerificationError("invalid paycrest signature")

    def parse_webhook(self, body: bytes, headers: Mapping[str, str]) -> StatusSignal:
        self.verify_signature(body, headers)
        try:
            event = PaycrestWebhook.model_validate_json(body)
        except ValidationError as exc:
            raise MalformedPayloadError(f"invalid paycrest webhook: {exc.error_count()} errors") from exc
        order = event.data
        if not order.status and event.event:
            # some deliveries only carry the event name
            order = order.model_copy(update={"status": event.event})
        return self._to_signal(order, event.model_dump(by_alias=True), None)

    def map_status(self, raw_status: Optional[str]) -> Optional[CanonicalStatus]:
        if not raw_status:
            return None
        status = raw_status.strip().lower()
        if status.startswith(EVENT_PREFIX):
            status = status[len(EVENT_PREFIX):]
        return STATUS_MAP.get(status)

    def _to_signal(self, order: PaycrestOrder, payload: dict[str, Any], message: Optional[str]) -> StatusSignal:
        canonical = self.map_status(order.status)
        return StatusSignal(
            provider_transaction_ref=order.id,
            raw_status=order.status,
            receipt_reference=order.tx_hash,
            failure_reason=(message or order.status) if canonical is not None and canonical.is_failure else None,
            payload=payload,
        )

    def _decode_envelope(self, body: dict[str, Any]) -> PaycrestEnvelope:
        try:
            return PaycrestEnvelope.model_validate(body)
        except ValidationError as exc:
            raise ProviderUnavailableError(
                "paycrest returned an unexpected envelope", provider=self.name.value
            ) from exc

    def _decode_order(self, data: dict[str, Any]) -> PaycrestOrder:
        try:
            return PaycrestOrder.model_validate(data)
        except ValidationError as exc:
            raise ProviderUnavailableError(
                "paycrest returned an unexpected order", provider=self.name.value
            ) from exc
