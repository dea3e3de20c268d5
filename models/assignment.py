"""
Data models for rider shift assignments.
"""

import uuid
from datetime import datetime

from pydantic import Field

from .base import WireModel
from .enums import AssignmentStatus, ResourceKind
from .inventory import ItemLine


class Assignment(WireModel):
    """Rider + vehicle + battery + route + food allocation for one shift."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    rider_id: str
    vehicle_id: str
    battery_id: str
    route_id: str
    items: list[ItemLine] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    status: AssignmentStatus = AssignmentStatus.ACTIVE
    closed_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == AssignmentStatus.ACTIVE

    def resource_ids(self) -> dict[ResourceKind, str]:
        """Resource ids in the fixed acquisition order."""
        return {
            ResourceKind.RIDER: self.rider_id,
            ResourceKind.VEHICLE: self.vehicle_id,
            ResourceKind.BATTERY: self.battery_id,
            ResourceKind.ROUTE: self.route_id,
        }
