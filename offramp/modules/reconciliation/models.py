"""Reconciliation outcomes and the signal audit record."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from offramp.modules.common import CanonicalStatus, ProviderName, StatusSource


class SignalOutcome(str, Enum):
    APPLIED = "applied"
    REDUNDANT = "redundant"
    INCONSISTENT = "inconsistent"
    ORPHAN = "orphan"
    UNMAPPED = "unmapped"


@dataclass(frozen=True, slots=True)
class SignalResult:
    outcome: SignalOutcome
    order_id: Optional[str] = None
    previous_status: Optional[CanonicalStatus] = None
    current_status: Optional[CanonicalStatus] = None
    settlement_id: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.outcome is SignalOutcome.APPLIED


@dataclass(slots=True)
class SignalRecord:
    id: int
    provider: ProviderName
    provider_transaction_ref: str
    source: StatusSource
    outcome: SignalOutcome
    order_id: Optional[str] = None
    raw_status: Optional[str] = None
    canonical_status: Optional[CanonicalStatus] = None
    receipt_reference: Optional[str] = None
    failure_reason: Optional[str] = None
    received_at: Optional[datetime] = None
