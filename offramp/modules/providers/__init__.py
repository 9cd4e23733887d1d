"""Settlement provider adapters."""

from .base import ProviderAdapter
from .exceptions import (
    MalformedPayloadError,
    ProviderError,
    ProviderNotConfiguredError,
    ProviderUnavailableError,
    UnsupportedPaymentMethodError,
    WebhookVerificationError,
)
from .models import DisbursementRequest, DisbursementResult, StatusSignal
from .paycrest import PaycrestAdapter
from .pretium import PretiumAdapter
from .registry import ProviderRegistry

__all__ = [
    "DisbursementRequest",
    "DisbursementResult",
    "MalformedPayloadError",
    "PaycrestAdapter",
    "PretiumAdapter",
    "ProviderAdapter",
    "ProviderError",
    "ProviderNotConfiguredError",
    "ProviderRegistry",
    "ProviderUnavailableError",
    "StatusSignal",
    "UnsupportedPaymentMethodError",
    "WebhookVerificationError",
]
