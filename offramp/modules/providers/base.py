"""Provider adapter contract shared by every settlement provider."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Mapping, Optional

import httpx

from offramp.modules.common import CanonicalStatus, PaymentMethod, ProviderName

from .exceptions import ProviderUnavailableError, UnsupportedPaymentMethodError
from .models import DisbursementRequest, DisbursementResult, StatusSignal

logger = logging.getLogger(__name__)


class ProviderAdapter(ABC):
    """Translate canonical disbursement requests into one provider's API.

    Adapters own the provider wire format and status vocabulary. Nothing
    outside an adapter looks at raw provider payloads except to store them.
    """

    name: ClassVar[ProviderName]
    # payment method kind -> local currencies the provider can pay out in
    supported_methods: ClassVar[Mapping[str, frozenset[str]]] = {}

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    def supports(self, method: PaymentMethod, currency: str) -> bool:
        return currency.upper() in self.supported_methods.get(method.kind, frozenset())

    def validate(self, request: DisbursementRequest) -> None:
        if not self.supports(request.payment_method, request.local_currency):
            raise UnsupportedPaymentMethodError(
                f"{self.name.value} cannot pay {request.payment_method.kind} in {request.local_currency}"
            )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.HTTPError as exc:
            logger.error("%s %s %s failed: %s", self.name.value, method, path, exc)
            raise ProviderUnavailableError(str(exc), provider=self.name.value) from exc

        if response.is_error:
            logger.error(
                "%s %s %s returned %s: %s",
                self.name.value,
                method,
                path,
                response.status_code,
                response.text[:500],
            )
            raise ProviderUnavailableError(
                f"{self.name.value} returned HTTP {response.status_code}",
                status_code=response.status_code,
                provider=self.name.value,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise ProviderUnavailableError(
                f"{self.name.value} returned a non-JSON body",
                status_code=response.status_code,
                provider=self.name.value,
            ) from exc
        if not isinstance(body, dict):
            raise ProviderUnavailableError(
                f"{self.name.value} returned an unexpected body",
                status_code=response.status_code,
                provider=self.name.value,
            )
        return body

    @abstractmethod
    async def disburse(self, request: DisbursementRequest) -> DisbursementResult:
        """Ask the provider to pay out; raise ProviderUnavailableError unless it accepted."""

    @abstractmethod
    async def fetch_status(self, provider_transaction_ref: str, currency: str) -> StatusSignal:
        ...

    @abstractmethod
    def parse_webhook(self, body: bytes, headers: Mapping[str, str]) -> StatusSignal:
        ...

    @abstractmethod
    def map_status(self, raw_status: Optional[str]) -> Optional[CanonicalStatus]:
        ...

    async def find_by_reference(self, reference: str, currency: str) -> Optional[DisbursementResult]:
        """Look up an order created for ``reference``; ``None`` when unsupported or absent."""
        return None

    async def aclose(self) -> None:
        await self._client.aclose()
