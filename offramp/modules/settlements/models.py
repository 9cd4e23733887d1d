"""Domain models for settlements."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True, slots=True)
class Settlement:
    id: str
    order_id: str
    amount: int
    currency: str
    method: str
    settled_at: datetime
    provider_reference: Optional[str] = None
