"""Forward-only transition rules for the canonical order status."""

from __future__ import annotations

from enum import Enum

from offramp.modules.common import CanonicalStatus


class TransitionDecision(str, Enum):
    APPLY = "apply"
    REDUNDANT = "redundant"
    REGRESSION = "regression"
    CONFLICT = "conflict"


def decide_transition(current: CanonicalStatus, target: CanonicalStatus) -> TransitionDecision:
    """Order: pending < processing < any terminal. Terminal states are final."""
    if current is target:
        return TransitionDecision.REDUNDANT
    if current.is_terminal:
        return TransitionDecision.CONFLICT if target.is_terminal else TransitionDecision.REGRESSION
    if target.rank > current.rank:
        return TransitionDecision.APPLY
    return TransitionDecision.REGRESSION


def can_transition(current: CanonicalStatus, target: CanonicalStatus) -> bool:
    return decide_transition(current, target) is TransitionDecision.APPLY
