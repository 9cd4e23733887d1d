"""Recipient payment methods as a tagged variant."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, ClassVar, Optional, Union


@dataclass(frozen=True, slots=True)
class PhoneNumber:
    kind: ClassVar[str] = "phone"

    number: str
    network: Optional[str] = None


@dataclass(frozen=True, slots=True)
class TillNumber:
    kind: ClassVar[str] = "till"

    till_number: str


@dataclass(frozen=True, slots=True)
class Paybill:
    kind: ClassVar[str] = "paybill"

    paybill_number: str
    account: str


@dataclass(frozen=True, slots=True)
class BankAccount:
    kind: ClassVar[str] = "bank"

    account_number: str
    bank_code: str
    bank_name: Optional[str] = None


PaymentMethod = Union[PhoneNumber, TillNumber, Paybill, BankAccount]

_BY_KIND: dict[str, type] = {cls.kind: cls for cls in (PhoneNumber, TillNumber, Paybill, BankAccount)}


def payment_method_to_dict(method: PaymentMethod) -> dict[str, Any]:
    return {"kind": method.kind, **asdict(method)}


def payment_method_from_dict(data: dict[str, Any]) -> PaymentMethod:
    fields = dict(data)
    kind = fields.pop("kind", None)
    try:
        cls = _BY_KIND[kind]
    except KeyError as exc:
        raise ValueError(f"unknown payment method kind: {kind!r}") from exc
    return cls(**fields)
