"""
Allocatable fleet resources: riders, vehicles, batteries and routes.
"""

from .base import WireModel
from .enums import Availability, ResourceKind


class Resource(WireModel):
    """
    An exclusively-allocatable physical asset. ``held_by`` names the assignment
    currently holding the resource while it is ``InUse``.
    """

    id: str
    kind: ResourceKind
    name: str = ""
    availability: Availability = Availability.AVAILABLE
    held_by: str | None = None
