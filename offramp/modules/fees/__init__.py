"""Fee and amount calculation."""

from .calculator import MAX_LOCAL_AMOUNT, AmountBreakdown, calculate_amounts, to_decimal
from .exceptions import InvalidAmountError

__all__ = ["AmountBreakdown", "InvalidAmountError", "MAX_LOCAL_AMOUNT", "calculate_amounts", "to_decimal"]
