"""Status reconciliation: signals in, monotonic order lifecycle out."""

from .models import SignalOutcome, SignalRecord, SignalResult
from .state_machine import TransitionDecision, can_transition, decide_transition

__all__ = [
    "SignalOutcome",
    "SignalRecord",
    "SignalResult",
    "TransitionDecision",
    "can_transition",
    "decide_transition",
]
