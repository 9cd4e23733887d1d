"""Off-ramp orders."""

from .exceptions import (
    DisbursementInProgressError,
    DuplicateTransactionRefError,
    OrderError,
    OrderNotFoundError,
)
from .models import DisbursementIntent, NewOrder, Order, OrderCreateInput, StatusHistoryEntry

__all__ = [
    "DisbursementIntent",
    "DisbursementInProgressError",
    "DuplicateTransactionRefError",
    "NewOrder",
    "Order",
    "OrderCreateInput",
    "OrderError",
    "OrderNotFoundError",
    "StatusHistoryEntry",
]
