"""Split a stablecoin deposit into recipient amount and platform fee.

The provider is sent ``amount = recipient + fee`` and deducts nothing further,
so the fee is carved out of the converted total rather than added on top::

    total     = round_half_up(deposit * rate)
    recipient = floor(total / (1 + fee_fraction))
    fee       = total - recipient

Local-currency amounts are whole units. Every other component reads amounts
from the order produced here and never recomputes them.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

from .exceptions import InvalidAmountError

Number = Union[Decimal, int, float, str]

_ONE = Decimal("1")

# Orders store amounts as signed 64-bit integers and inputs with six decimals.
MAX_LOCAL_AMOUNT = 2**63 - 1
MAX_DECIMAL_PLACES = 6


@dataclass(frozen=True, slots=True)
class AmountBreakdown:
    deposit_amount: Decimal
    rate: Decimal
    fee_fraction: Decimal
    total: int
    recipient: int
    fee: int


def to_decimal(value: Number, field: str) -> Decimal:
    try:
        # str() first so floats keep their printed value
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmountError(f"{field} is not a number: {value!r}") from exc
    if not result.is_finite():
        raise InvalidAmountError(f"{field} must be finite")
    if -result.normalize().as_tuple().exponent > MAX_DECIMAL_PLACES:
        raise InvalidAmountError(f"{field} has more than {MAX_DECIMAL_PLACES} decimal places")
    return result


def calculate_amounts(
    deposit_amount: Number,
    rate: Number,
    fee_fraction: Number,
    *,
    max_total: Optional[int] = None,
) -> AmountBreakdown:
    deposit = to_decimal(deposit_amount, "deposit_amount")
    quoted_rate = to_decimal(rate, "rate")
    fraction = to_decimal(fee_fraction, "fee_fraction")

    if deposit <= 0:
        raise InvalidAmountError("deposit_amount must be positive")
    if quoted_rate <= 0:
        raise InvalidAmountError("rate must be positive")
    if fraction < 0 or fraction >= 1:
        raise InvalidAmountError("fee_fraction must be in [0, 1)")

    limit = MAX_LOCAL_AMOUNT if max_total is None else min(max_total, MAX_LOCAL_AMOUNT)
    try:
        total = int((deposit * quoted_rate).quantize(_ONE, rounding=ROUND_HALF_UP))
    except InvalidOperation as exc:
        raise InvalidAmountError("converted amount is too large") from exc
    if total == 0:
        raise InvalidAmountError("converted amount rounds to zero")
    if total > limit:
        raise InvalidAmountError(f"converted amount {total} exceeds the maximum of {limit}")

    recipient = int((Decimal(total) / (_ONE + fraction)).to_integral_value(rounding=ROUND_FLOOR))
    fee = total - recipient

    return AmountBreakdown(
        deposit_amount=deposit,
        rate=quoted_rate,
        fee_fraction=fraction,
        total=total,
        recipient=recipient,
        fee=fee,
    )
