"""Root of the service's exception hierarchy."""


class OfframpError(Exception):
    """Base class for all domain errors raised by the service."""
