"""Settlement domain specific exceptions."""

from offramp.core.exceptions import OfframpError


class SettlementError(OfframpError):
    """Base class for settlement errors."""


class SettlementAlreadyRecordedError(SettlementError):
    """Raised by the store when a settlement already exists for the order."""
