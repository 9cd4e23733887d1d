"""Types shared across modules."""

from .payment_methods import (
    BankAccount,
    Paybill,
    PaymentMethod,
    PhoneNumber,
    TillNumber,
    payment_method_from_dict,
    payment_method_to_dict,
)
from .status import (
    FAILURE_STATUSES,
    SUCCESS_STATUSES,
    TERMINAL_STATUSES,
    CanonicalStatus,
    ProviderName,
    StatusSource,
)

__all__ = [
    "BankAccount",
    "CanonicalStatus",
    "FAILURE_STATUSES",
    "Paybill",
    "PaymentMethod",
    "PhoneNumber",
    "ProviderName",
    "SUCCESS_STATUSES",
    "StatusSource",
    "TERMINAL_STATUSES",
    "TillNumber",
    "payment_method_from_dict",
    "payment_method_to_dict",
]
