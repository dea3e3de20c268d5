"""
Centralized Enum definitions for the project.
"""

from enum import Enum


class ActorRole(str, Enum):
    """Roles that can act on the workflow (resolved upstream by the session layer)"""

    RIDER = "rider"
    COOK = "cook"
    SUPERVISOR = "supervisor"
    REFILL_COORDINATOR = "refill"
    SUPER_ADMIN = "superadmin"
    SYSTEM = "system"


class ResourceKind(str, Enum):
    """Exclusively-allocatable physical assets"""

    RIDER = "rider"
    VEHICLE = "vehicle"
    BATTERY = "battery"
    ROUTE = "route"


class Availability(str, Enum):
    """Availability state of a resource"""

    AVAILABLE = "Available"
    IN_USE = "InUse"
    UNAVAILABLE = "Unavailable"


class AssignmentStatus(str, Enum):
    """Possible states of a rider shift assignment"""

    ACTIVE = "Active"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class RefillStatus(str, Enum):
    """Rider -> coordinator refill request states"""

    PENDING = "pending"
    FORWARDED = "forwarded"
    REJECTED = "rejected"  # terminal
    IN_PROGRESS = "in-progress"
    DELIVERED = "delivered"  # terminal


class PrepStatus(str, Enum):
    """Supervisor -> cook prep request states"""

    QUEUED = "queued"
    PROCESSING = "processing"
    READY = "ready"
    PICKED = "picked"  # terminal, request is consumed


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class StockState(str, Enum):
    """Stock level bands shown on the inventory status board"""

    CRITICAL = "critical"
    LOW = "low"
    MEDIUM = "medium"
    GOOD = "good"


class MovementKind(str, Enum):
    """Types of ledger stock movements"""

    RESERVED = "reserved"  # stock allocated out of the ledger
    RELEASED = "released"  # reserved stock handed back
    RESTOCKED = "restocked"  # new goods entering the ledger
    CONSUMED = "consumed"  # reserved stock used up; stock unchanged
    WRITTEN_OFF = "written-off"  # on-hand stock removed without a reservation
