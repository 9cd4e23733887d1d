"""Pydantic schemas used across the project."""
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from offramp.modules.common import (
    BankAccount,
    CanonicalStatus,
    Paybill,
    PhoneNumber,
    ProviderName,
    StatusSource,
    TillNumber,
)
from offramp.modules.reconciliation.models import SignalOutcome


class PhoneNumberIn(BaseModel):
    kind: Literal["phone"] = "phone"
    number: str = Field(..., min_length=6, max_length=20)
    network: Optional[str] = None

    def to_domain(self) -> PhoneNumber:
        return PhoneNumber(number=self.number, network=self.network)


class TillNumberIn(BaseModel):
    kind: Literal["till"] = "till"
    till_number: str = Field(..., pattern=r"^\d{5,7}$")

    def to_domain(self) -> TillNumber:
        return TillNumber(till_number=self.till_number)


class PaybillIn(BaseModel):
    kind: Literal["paybill"] = "paybill"
    paybill_number: str = Field(..., pattern=r"^\d{5,7}$")
    account: str = Field(..., min_length=1, max_length=64)

    def to_domain(self) -> Paybill:
        return Paybill(paybill_number=self.paybill_number, account=self.account)


class BankAccountIn(BaseModel):
    kind: Literal["bank"] = "bank"
    account_number: str = Field(..., min_length=4, max_length=34)
    bank_code: str = Field(..., min_length=2, max_length=32)
    bank_name: Optional[str] = None

    def to_domain(self) -> BankAccount:
        return BankAccount(account_number=self.account_number, bank_code=self.bank_code, bank_name=self.bank_name)


PaymentMethodIn = Annotated[
    Union[PhoneNumberIn, TillNumberIn, PaybillIn, BankAccountIn],
    Field(discriminator="kind"),
]


class OrderCreateRequest(BaseModel):
    deposit_amount: Decimal
    local_currency: str = Field(..., min_length=3, max_length=3)
    rate_quote: Decimal
    fee_fraction: Optional[Decimal] = None
    payment_method: PaymentMethodIn
    deposit_transaction_ref: str = Field(..., min_length=1, max_length=128)
    wallet_address: str = Field(..., min_length=1, max_length=64)
    account_name: Optional[str] = Field(default=None, max_length=150)
    provider: ProviderName


class OrderCreateResponse(BaseModel):
    order_id: str
    provider: ProviderName
    provider_transaction_ref: str
    recipient_amount: int
    platform_fee: int
    total_amount: int
    local_currency: str
    canonical_status: CanonicalStatus


class OrderStatusResponse(BaseModel):
    order_id: str
    provider: ProviderName
    provider_transaction_ref: str
    canonical_status: CanonicalStatus
    display_status: Literal["completed", "failed", "processing"]
    stale: bool = False
    recipient_amount: int
    platform_fee: int
    total_amount: int
    local_currency: str
    receipt_reference: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    last_status_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class StatusHistoryEntryResponse(BaseModel):
    timestamp: datetime
    source: StatusSource
    raw_status: str
    from_status: CanonicalStatus
    to_status: CanonicalStatus

    model_config = ConfigDict(from_attributes=True)


class OrderHistoryResponse(BaseModel):
    order_id: str
    entries: list[StatusHistoryEntryResponse]


class WebhookAck(BaseModel):
    success: bool = True


class SweepReportResponse(BaseModel):
    scanned: int
    repaired: int
    errors: list[str] = []

    model_config = ConfigDict(from_attributes=True)


class SignalResponse(BaseModel):
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

    model_config = ConfigDict(from_attributes=True)


class SignalListResponse(BaseModel):
    total: int
    signals: list[SignalResponse]


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    providers: list[ProviderName]
