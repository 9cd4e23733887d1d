"""Settlement recording."""

from .exceptions import SettlementAlreadyRecordedError, SettlementError
from .models import Settlement
from .recorder import SettlementRecorder

__all__ = ["Settlement", "SettlementAlreadyRecordedError", "SettlementError", "SettlementRecorder"]
