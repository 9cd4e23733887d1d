"""Order domain specific exceptions."""

from offramp.core.exceptions import OfframpError


class OrderError(OfframpError):
    """Base class for order domain errors."""


class DuplicateTransactionRefError(OrderError):
    """Raised when an order already exists for the provider transaction reference."""


class DisbursementInProgressError(OrderError):
    """Raised when a disbursement for the same deposit is still being submitted."""


class OrderNotFoundError(OrderError):
    """Raised when the requested order cannot be found."""
