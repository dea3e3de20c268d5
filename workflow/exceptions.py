"""
Typed failures raised by the workflow core.

Every failure is an expected outcome the caller decides how to surface; none of
them is retried inside the core. ``code`` is the stable identifier used on the
wire.
"""

from typing import Any


class WorkflowError(Exception):
    code = "workflow_error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, **self.details}


class ValidationError(WorkflowError):
    """Malformed input, rejected before any shared state is read."""

    code = "validation_error"


class UnknownEntityError(WorkflowError):
    code = "not_found"


# --- Allocation ---


class AllocationError(WorkflowError):
    code = "allocation_error"


class ResourceContentionError(AllocationError):
    """A requested resource was not Available, or was taken mid-allocation."""

    code = "resource_contention"


class InsufficientStockError(AllocationError):
    code = "insufficient_stock"


# --- Registry ---


class ResourceError(WorkflowError):
    code = "resource_error"


class ResourceInUseError(ResourceError):
    code = "already_in_use"


class ResourceUnavailableError(ResourceError):
    code = "unavailable"


class ResourceStateError(ResourceError):
    """Release or maintenance change that does not match the resource's state."""

    code = "resource_state"


# --- Request lifecycle ---


class TransitionError(WorkflowError):
    code = "transition_error"


class IllegalTransitionError(TransitionError):
    code = "illegal_transition"


class AlreadyTerminalError(IllegalTransitionError):
    code = "already_terminal"


class RoleNotPermittedError(IllegalTransitionError):
    code = "role_not_permitted"


class StaleStateError(TransitionError):
    """The caller's view of the request's status is out of date."""

    code = "stale_state"
