"""
Resource registry: availability state of riders, vehicles, batteries and routes.
"""

import asyncio
import logging

from models.enums import Availability, ResourceKind
from models.resources import Resource

from .exceptions import (
    ResourceInUseError,
    ResourceStateError,
    ResourceUnavailableError,
    UnknownEntityError,
    ValidationError,
)
from .validation import require_id

logger = logging.getLogger(__name__)


class ResourceRegistry:
    """
    The only writer of ``Resource.availability``.

    Acquisition flips ``Available -> InUse`` for exactly one holder; release
    flips ``InUse`` back to ``Available`` or to ``Unavailable`` when the asset
    came back defective. Operations on one resource are serialised by that
    resource's lock.
    """

    def __init__(self):
        self._resources: dict[str, Resource] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def register(self, resource: Resource) -> Resource:
        if resource.availability == Availability.IN_USE:
            raise ValidationError(
                f"Resource {resource.id} cannot be registered as InUse; it must be acquired",
                resource_id=resource.id,
            )
        if resource.id in self._resources:
            current = self._resources[resource.id]
            if current.availability == Availability.IN_USE:
                raise ResourceStateError(
                    f"Resource {resource.id} is held by {current.held_by} and cannot be replaced",
                    resource_id=resource.id,
                )
            logger.warning(f"Re-registering resource {resource.id}")
        self._resources[resource.id] = resource.model_copy(update={"held_by": None})
        logger.info(f"Registered {resource.kind.value} {resource.id} as {resource.availability.value}")
        return self.get(resource.id)

    def get(self, resource_id: str) -> Resource:
        return self._get(resource_id).model_copy()

    def availability(self, resource_id: str) -> Availability:
        return self._get(resource_id).availability

    def list_resources(
        self,
        kind: ResourceKind | None = None,
        availability: Availability | None = None,
    ) -> list[Resource]:
        return [
            r.model_copy()
            for r in self._resources.values()
            if (kind is None or r.kind == kind) and (availability is None or r.availability == availability)
        ]

    async def try_acquire(self, resource_id: str, holder_id: str) -> Resource:
        """Transition ``Available -> InUse`` on behalf of ``holder_id``."""
        require_id(resource_id, "resource_id")
        require_id(holder_id, "holder_id")
        async with self._lock(resource_id):
            resource = self._get(resource_id)
            if resource.availability == Availability.IN_USE:
                raise ResourceInUseError(
                    f"{resource.kind.value} {resource_id} is already in use by {resource.held_by}",
                    resource_id=resource_id,
                )
            if resource.availability == Availability.UNAVAILABLE:
                raise ResourceUnavailableError(
                    f"{resource.kind.value} {resource_id} is unavailable",
                    resource_id=resource_id,
                )
            resource.availability = Availability.IN_USE
            resource.held_by = holder_id
            logger.info(f"Acquired {resource.kind.value} {resource_id} for {holder_id}")
            return resource.model_copy()

    async def release(
        self,
        resource_id: str,
        next_state: Availability = Availability.AVAILABLE,
        holder_id: str | None = None,
    ) -> Resource:
        """Transition ``InUse -> next_state``. ``holder_id``, when given, must match the holder."""
        if next_state == Availability.IN_USE:
            raise ValidationError("A resource cannot be released into InUse", resource_id=resource_id)
        async with self._lock(resource_id):
            resource = self._get(resource_id)
            if resource.availability != Availability.IN_USE:
                raise ResourceStateError(
                    f"{resource.kind.value} {resource_id} is not in use ({resource.availability.value})",
                    resource_id=resource_id,
                )
            if holder_id is not None and resource.held_by != holder_id:
                raise ResourceStateError(
                    f"{resource.kind.value} {resource_id} is held by {resource.held_by}, not {holder_id}",
                    resource_id=resource_id,
                )
            resource.availability = next_state
            resource.held_by = None
            logger.info(f"Released {resource.kind.value} {resource_id} to {next_state.value}")
            return resource.model_copy()

    async def set_availability(self, resource_id: str, availability: Availability) -> Resource:
        """Maintenance toggle between Available and Unavailable for a resource nobody holds."""
        if availability == Availability.IN_USE:
            raise ValidationError("Use try_acquire to put a resource in use", resource_id=resource_id)
        async with self._lock(resource_id):
            resource = self._get(resource_id)
            if resource.availability == Availability.IN_USE:
                raise ResourceStateError(
                    f"{resource.kind.value} {resource_id} is held by {resource.held_by}",
                    resource_id=resource_id,
                )
            resource.availability = availability
            logger.info(f"Set {resource.kind.value} {resource_id} to {availability.value}")
            return resource.model_copy()

    def _get(self, resource_id: str) -> Resource:
        try:
            return self._resources[resource_id]
        except KeyError:
            raise UnknownEntityError(f"Unknown resource {resource_id}", resource_id=resource_id) from None

    def _lock(self, resource_id: str) -> asyncio.Lock:
        lock = self._locks.get(resource_id)
        if lock is None:
            lock = self._locks[resource_id] = asyncio.Lock()
        return lock
