"""Domain models for off-ramp orders."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

from offramp.core.timeutils import as_utc
from offramp.modules.common import CanonicalStatus, PaymentMethod, ProviderName, StatusSource


@dataclass(slots=True)
class Order:
    id: str
    provider: ProviderName
    provider_transaction_ref: str
    wallet_address: str
    deposit_amount: Decimal
    local_currency: str
    total_local_amount: int
    recipient_amount: int
    platform_fee: int
    rate_used: Decimal
    fee_fraction: Decimal
    payment_method: PaymentMethod
    canonical_status: CanonicalStatus
    deposit_transaction_ref: str
    account_name: Optional[str] = None
    provider_raw_status: Optional[str] = None
    receipt_reference: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    last_status_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.canonical_status.is_terminal

    @property
    def display_status(self) -> str:
        if self.canonical_status.is_success:
            return "completed"
        if self.canonical_status.is_failure:
            return "failed"
        return "processing"

    def is_stale(self, now: datetime, threshold: timedelta) -> bool:
        """Non-terminal for longer than ``threshold``; never changes the status."""
        if self.is_terminal or self.created_at is None:
            return False
        return as_utc(now) - as_utc(self.created_at) > threshold


@dataclass(slots=True)
class NewOrder:
    """Fields written once when an accepted disbursement becomes an order."""

    provider: ProviderName
    provider_transaction_ref: str
    wallet_address: str
    deposit_amount: Decimal
    local_currency: str
    total_local_amount: int
    recipient_amount: int
    platform_fee: int
    rate_used: Decimal
    fee_fraction: Decimal
    payment_method: PaymentMethod
    deposit_transaction_ref: str
    account_name: Optional[str] = None
    provider_raw_status: Optional[str] = None


@dataclass(slots=True)
class StatusHistoryEntry:
    timestamp: datetime
    source: StatusSource
    raw_status: str
    from_status: CanonicalStatus
    to_status: CanonicalStatus


@dataclass(slots=True)
class OrderCreateInput:
    deposit_amount: Decimal
    local_currency: str
    rate_quote: Decimal
    payment_method: PaymentMethod
    deposit_transaction_ref: str
    wallet_address: str
    provider: ProviderName
    account_name: Optional[str] = None
    fee_fraction: Optional[Decimal] = None


@dataclass(slots=True)
class DisbursementIntent:
    """Outbox row written before a provider is asked to pay."""

    id: str
    deposit_transaction_ref: str
    provider: ProviderName
    local_currency: str
    status: str
    request: dict[str, Any] = field(default_factory=dict)
    provider_transaction_ref: Optional[str] = None
    order_id: Optional[str] = None
    last_error: Optional[str] = None
    attempts: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


INTENT_PENDING = "pending"
# provider accepted the payout; the order row is not written yet
INTENT_DISBURSED = "disbursed"
INTENT_ACCEPTED = "accepted"
INTENT_FAILED = "failed"
