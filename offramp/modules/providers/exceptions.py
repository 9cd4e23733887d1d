"""Settlement provider errors."""

from __future__ import annotations

from typing import Optional

from offramp.core.exceptions import OfframpError


class ProviderError(OfframpError):
    """Base class for provider integration errors."""


class ProviderNotConfiguredError(ProviderError):
    """Raised when a request names a provider that is not enabled."""


class UnsupportedPaymentMethodError(ProviderError):
    """Raised before any network call when the provider cannot pay the recipient."""


class ProviderUnavailableError(ProviderError):
    """The provider did not explicitly accept the request.

    Callers may retry order creation; nothing may be assumed disbursed.
    """

    def __init__(self, message: str, *, status_code: Optional[int] = None, provider: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.provider = provider


class WebhookVerificationError(ProviderError):
    """Raised when a webhook signature does not match the configured secret."""


class MalformedPayloadError(ProviderError):
    """Raised when a provider payload cannot be decoded into its wire model."""
