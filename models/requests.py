"""
Data models for refill requests (rider -> coordinator) and prep requests
(supervisor -> cook).
"""

import uuid
from datetime import datetime
from typing import Any

from pydantic import Field

from .base import WireModel
from .enums import ActorRole, PrepStatus, Priority, RefillStatus
from .inventory import FoodSnapshot


class TransitionRecord(WireModel):
    """One accepted status change in a request's history."""

    timestamp: datetime = Field(default_factory=datetime.now)
    actor_role: ActorRole
    from_status: str | None = None
    to_status: str
    details: dict[str, Any] = Field(default_factory=dict)


class _TrackedRequest(WireModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    priority: Priority = Priority.MEDIUM
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    history: list[TransitionRecord] = Field(default_factory=list)

    def record(self, actor_role: ActorRole, from_status, to_status, details: dict[str, Any] | None = None) -> None:
        """Append a history entry and bump ``updated_at``"""
        entry = TransitionRecord(
            actor_role=actor_role,
            from_status=from_status.value if from_status is not None else None,
            to_status=to_status.value,
            details=details or {},
        )
        self.history.append(entry)
        self.updated_at = entry.timestamp


class RefillRequest(_TrackedRequest):
    """A rider asking for more of an item on their cart."""

    rider_id: str
    item_id: str
    quantity: int = Field(gt=0)
    reason: str = ""
    status: RefillStatus = RefillStatus.PENDING
    assigned_coordinator_id: str | None = None
    cook_instructions: str | None = None
    rejection_reason: str | None = None
    started_at: datetime | None = None
    delivered_at: datetime | None = None


class PrepRequest(_TrackedRequest):
    """A batch of food a cook has been asked to prepare."""

    cook_id: str
    food_snapshot: FoodSnapshot
    quantity_to_prepare: int = Field(gt=0)
    notes: str | None = None
    status: PrepStatus = PrepStatus.QUEUED
