"""
Request and response bodies of the workflow HTTP service.
"""

from pydantic import Field

from .base import WireModel
from .enums import Availability, PrepStatus, Priority, RefillStatus
from .inventory import ComboLine, ItemLine


class ErrorBody(WireModel):
    error: str
    message: str


class AssignmentCreate(WireModel):
    rider_id: str
    vehicle_id: str
    battery_id: str
    route_id: str
    items: list[ItemLine] = Field(default_factory=list)
    combos: list[ComboLine] = Field(default_factory=list)


class AssignmentComplete(WireModel):
    # resource id -> Available | Unavailable (defective)
    resource_outcomes: dict[str, Availability] = Field(default_factory=dict)


class ResourcePatch(WireModel):
    availability: Availability


class ComboUpdate(WireModel):
    name: str | None = None
    price: float | None = Field(default=None, ge=0)
    items: list[ItemLine] | None = None


class RefillCreate(WireModel):
    rider_id: str | None = None  # defaults to the calling rider
    item_id: str
    quantity: int
    reason: str = ""
    priority: Priority = Priority.MEDIUM


class RefillPatch(WireModel):
    status: RefillStatus
    expected_status: RefillStatus | None = None
    assigned_coordinator_id: str | None = None
    cook_instructions: str | None = None
    rejection_reason: str | None = None


class PrepCreate(WireModel):
    cook_id: str
    food_item_id: str
    quantity_to_prepare: int
    priority: Priority = Priority.MEDIUM
    notes: str | None = None


class PrepPatch(WireModel):
    """Exactly one of ``status`` or ``quantity_to_prepare``."""

    status: PrepStatus | None = None
    quantity_to_prepare: int | None = None
    expected_status: PrepStatus | None = None
