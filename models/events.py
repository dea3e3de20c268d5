"""
Data models for events within the workflow core.
"""

import uuid
from datetime import datetime
from typing import Any

from pydantic import Field

from .base import WireModel
from .enums import ActorRole, MovementKind


class WorkflowEvent(WireModel):
    """Lifecycle event emitted for the notification dispatcher to consume."""

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: str  # e.g. "assignment.created", "refill.forwarded"
    payload: dict[str, Any]
    source: ActorRole
    timestamp: datetime = Field(default_factory=datetime.now)


class StockMovement(WireModel):
    """Audit entry for one ledger mutation"""

    movement_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    item_id: str
    kind: MovementKind
    quantity: int  # quantity actually applied
    stock_after: int
    reference_id: str | None = None  # assignment / request that caused it
    timestamp: datetime = Field(default_factory=datetime.now)
    consistent: bool = True  # False when a release had no matching reservation
