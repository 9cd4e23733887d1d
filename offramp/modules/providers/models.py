"""Canonical request and signal types exchanged with provider adapters."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from offramp.modules.common import PaymentMethod
from offramp.modules.fees import AmountBreakdown


@dataclass(frozen=True, slots=True)
class DisbursementRequest:
    """Everything a provider needs to pay one recipient.

    ``reference`` is the outbox intent id and is echoed back by providers that
    accept a client reference, so a lost response can be recovered later.
    """

    reference: str
    deposit_transaction_ref: str
    local_currency: str
    amounts: AmountBreakdown
    payment_method: PaymentMethod
    account_name: Optional[str] = None
    wallet_address: Optional[str] = None
    callback_url: Optional[str] = None


@dataclass(frozen=True, slots=True)
class DisbursementResult:
    provider_transaction_ref: str
    raw_status: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class StatusSignal:
    """One provider observation of a transaction, from a webhook or a poll."""

    provider_transaction_ref: str
    raw_status: Optional[str]
    receipt_reference: Optional[str] = None
    failure_reason: Optional[str] = None
    payload: dict[str, Any] = field(default_factory=dict)
