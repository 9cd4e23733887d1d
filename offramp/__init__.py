"""Stablecoin off-ramp settlement reconciliation service."""

__version__ = "0.3.0"
