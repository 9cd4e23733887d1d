"""Canonical order lifecycle shared by every provider integration."""

from __future__ import annotations

from enum import Enum


class ProviderName(str, Enum):
    PRETIUM = "pretium"
    PAYCREST = "paycrest"


class StatusSource(str, Enum):
    WEBHOOK = "webhook"
    POLL = "poll"


class CanonicalStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    DELIVERED = "delivered"
    SETTLED = "settled"
    REFUNDED = "refunded"
    EXPIRED = "expired"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_success(self) -> bool:
        return self in SUCCESS_STATUSES

    @property
    def is_failure(self) -> bool:
        return self in FAILURE_STATUSES

    @property
    def rank(self) -> int:
        """Position in the partial order pending < processing < terminal."""
        if self is CanonicalStatus.PENDING:
            return 0
        if self is CanonicalStatus.PROCESSING:
            return 1
        return 2


SUCCESS_STATUSES = frozenset({CanonicalStatus.DELIVERED, CanonicalStatus.SETTLED})
FAILURE_STATUSES = frozenset({CanonicalStatus.REFUNDED, CanonicalStatus.EXPIRED, CanonicalStatus.FAILED})
TERMINAL_STATUSES = SUCCESS_STATUSES | FAILURE_STATUSES
