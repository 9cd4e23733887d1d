"""Fee calculation errors."""

from offramp.core.exceptions import OfframpError


class InvalidAmountError(OfframpError):
    """Raised when an amount, rate or fee fraction cannot produce a payout."""
