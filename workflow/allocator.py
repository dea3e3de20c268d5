"""
Assignment allocator: binds a rider, vehicle, battery, route and food stock to
one shift, all-or-nothing.
"""

import asyncio
import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from models.assignment import Assignment
from models.enums import ActorRole, AssignmentStatus, Availability, ResourceKind
from models.inventory import ComboLine, ItemLine
from utils.event_bus import EventBus

from .catalog import ComboCatalog
from .exceptions import (
    AlreadyTerminalError,
    InsufficientStockError,
    ResourceContentionError,
    ResourceError,
    UnknownEntityError,
    ValidationError,
)
from .ledger import InventoryLedger
from .registry import ResourceRegistry
from .validation import require_id

logger = logging.getLogger(__name__)

# Fixed acquisition order; items are always reserved after all resources.
RESOURCE_ORDER = (ResourceKind.RIDER, ResourceKind.VEHICLE, ResourceKind.BATTERY, ResourceKind.ROUTE)


def normalize_lines(items: Iterable[Any]) -> list[ItemLine]:
    """
    Coerce ``ItemLine`` objects, ``(food_item_id, quantity)`` pairs or dicts
    into validated lines. Duplicate item ids are rejected.
    """
    lines: list[ItemLine] = []
    for raw in items:
        try:
            if isinstance(raw, ItemLine):
                line = raw
            elif isinstance(raw, tuple):
                line = ItemLine(food_item_id=raw[0], quantity=raw[1])
            else:
                line = ItemLine.model_validate(raw)
        except (PydanticValidationError, IndexError) as exc:
            raise ValidationError(f"Invalid item line {raw!r}", line=repr(raw)) from exc
        lines.append(line)
    seen: set[str] = set()
    for line in lines:
        if line.food_item_id in seen:
            raise ValidationError(f"Food item {line.food_item_id} listed more than once", item_id=line.food_item_id)
        seen.add(line.food_item_id)
    return lines


class AssignmentAllocator:
    """
    Creates, completes and cancels shift assignments.

    ``create`` runs a two-phase acquire-then-reserve protocol: all four
    resources are acquired first, then item stock is reserved. A failure in
    either phase undoes everything done so far, so a failed call leaves
    resource availability and stock exactly as it found them.
    """

    def __init__(
        self,
        ledger: InventoryLedger,
        registry: ResourceRegistry,
        catalog: ComboCatalog | None = None,
        event_bus: EventBus | None = None,
    ):
        self.ledger = ledger
        self.registry = registry
        self.catalog = catalog
        self.event_bus = event_bus
        self.assignments: dict[str, Assignment] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    # --- Creation ---

    async def create(
        self,
        rider_id: str,
        vehicle_id: str,
        battery_id: str,
        route_id: str,
        items: Iterable[Any] = (),
        actor_role: ActorRole = ActorRole.SUPERVISOR,
    ) -> Assignment:
        slots = {
            ResourceKind.RIDER: rider_id,
            ResourceKind.VEHICLE: vehicle_id,
            ResourceKind.BATTERY: battery_id,
            ResourceKind.ROUTE: route_id,
        }
        for kind, resource_id in slots.items():
            require_id(resource_id, f"{kind.value}_id")
        lines = normalize_lines(items)

        # Phase 0: read-only checks, nothing mutated yet
        for kind in RESOURCE_ORDER:
            resource = self.registry.get(slots[kind])
            if resource.kind != kind:
                raise ValidationError(
                    f"{slots[kind]} is a {resource.kind.value}, expected a {kind.value}",
                    resource_id=slots[kind],
                )
            if resource.availability != Availability.AVAILABLE:
                raise ResourceContentionError(
                    f"{kind.value} {slots[kind]} is {resource.availability.value}",
                    resource_id=slots[kind],
                )
        for line in lines:
            available = self.ledger.stock(line.food_item_id)
            if line.quantity > available:
                raise InsufficientStockError(
                    f"Insufficient stock for {line.food_item_id}: requested {line.quantity}, available {available}",
                    item_id=line.food_item_id,
                    requested=line.quantity,
                    available=available,
                )

        assignment = Assignment(
            rider_id=rider_id,
            vehicle_id=vehicle_id,
            battery_id=battery_id,
            route_id=route_id,
            items=lines,
        )

        # Phase 1: resources
        acquired: list[str] = []
        try:
            for kind in RESOURCE_ORDER:
                await self.registry.try_acquire(slots[kind], assignment.id)
                acquired.append(slots[kind])
        except ResourceError as exc:
            logger.warning(f"Allocation {assignment.id} lost a resource race: {exc}. Rolling back {acquired}")
            await self._release_resources(acquired, assignment.id)
            raise ResourceContentionError(str(exc), resource_id=exc.details.get("resource_id")) from exc

        # Phase 2: stock
        reserved: list[ItemLine] = []
        try:
            for line in sorted(lines, key=lambda line: line.food_item_id):
                await self.ledger.reserve(line.food_item_id, line.quantity, reference_id=assignment.id)
                reserved.append(line)
        except InsufficientStockError as exc:
            logger.warning(f"Allocation {assignment.id} ran out of stock: {exc}. Rolling back")
            for line in reserved:
                await self.ledger.release(line.food_item_id, line.quantity, reference_id=assignment.id)
            await self._release_resources(acquired, assignment.id)
            raise InsufficientStockError(exc.message, **exc.details) from exc

        self.assignments[assignment.id] = assignment
        logger.info(
            f"Assignment {assignment.id} created: rider {rider_id}, vehicle {vehicle_id}, "
            f"battery {battery_id}, route {route_id}, {len(lines)} item line(s)"
        )
        await self._emit("assignment.created", assignment, actor_role)
        return assignment.model_copy(deep=True)

    async def create_from_combos(
        self,
        rider_id: str,
        vehicle_id: str,
        battery_id: str,
        route_id: str,
        items: Iterable[Any] = (),
        combos: Iterable[Any] = (),
        actor_role: ActorRole = ActorRole.SUPERVISOR,
    ) -> Assignment:
        """Like ``create``, with combo lines expanded into their food items and merged with ``items``."""
        if self.catalog is None:
            raise ValidationError("No combo catalogue configured")
        try:
            combo_lines = [c if isinstance(c, ComboLine) else ComboLine.model_validate(c) for c in combos]
        except PydanticValidationError as exc:
            raise ValidationError("Invalid combo line") from exc
        merged: dict[str, int] = {}
        for line in normalize_lines(items) + self.catalog.expand(combo_lines):
            merged[line.food_item_id] = merged.get(line.food_item_id, 0) + line.quantity
        lines = [ItemLine(food_item_id=item_id, quantity=qty) for item_id, qty in merged.items()]
        return await self.create(rider_id, vehicle_id, battery_id, route_id, lines, actor_role)

    # --- Closing ---

    async def complete(
        self,
        assignment_id: str,
        resource_outcomes: dict[str, Availability] | None = None,
        actor_role: ActorRole = ActorRole.SUPERVISOR,
    ) -> Assignment:
        """
        Close a shift. Each resource goes back to ``Available`` unless
        ``resource_outcomes`` flags it ``Unavailable`` (defective). Reserved
        stock is consumed by the shift and can no longer be released.
        """
        try:
            outcomes = {rid: Availability(state) for rid, state in (resource_outcomes or {}).items()}
        except ValueError as exc:
            raise ValidationError(f"Invalid resource outcome: {exc}") from exc
        async with self._lock(assignment_id):
            assignment = self._get(assignment_id)
            self._require_active(assignment)
            held = set(assignment.resource_ids().values())
            for resource_id, outcome in outcomes.items():
                if resource_id not in held:
                    raise ValidationError(
                        f"Resource {resource_id} is not part of assignment {assignment_id}",
                        resource_id=resource_id,
                    )
                if outcome == Availability.IN_USE:
                    raise ValidationError(f"Outcome for {resource_id} must be Available or Unavailable")

            for kind in RESOURCE_ORDER:
                resource_id = assignment.resource_ids()[kind]
                next_state = outcomes.get(resource_id, Availability.AVAILABLE)
                await self.registry.release(resource_id, next_state, holder_id=assignment.id)
            for line in assignment.items:
                await self.ledger.consume(line.food_item_id, line.quantity, reference_id=assignment.id)
            assignment.status = AssignmentStatus.COMPLETED
            assignment.closed_at = datetime.now()
            self._locks.pop(assignment_id, None)
            logger.info(f"Assignment {assignment_id} completed")
        await self._emit("assignment.completed", assignment, actor_role)
        return assignment.model_copy(deep=True)

    async def cancel(self, assignment_id: str, actor_role: ActorRole = ActorRole.SUPERVISOR) -> Assignment:
        """Undo a shift: resources back to Available, reserved stock back to the ledger."""
        async with self._lock(assignment_id):
            assignment = self._get(assignment_id)
            self._require_active(assignment)
            await self._release_resources(list(assignment.resource_ids().values()), assignment.id)
            for line in assignment.items:
                await self.ledger.release(line.food_item_id, line.quantity, reference_id=assignment.id)
            assignment.status = AssignmentStatus.CANCELLED
            assignment.closed_at = datetime.now()
            self._locks.pop(assignment_id, None)
            logger.info(f"Assignment {assignment_id} cancelled; {len(assignment.items)} item line(s) returned")
        await self._emit("assignment.cancelled", assignment, actor_role)
        return assignment.model_copy(deep=True)

    # --- Read views ---

    def get(self, assignment_id: str) -> Assignment:
        return self._get(assignment_id).model_copy(deep=True)

    def list_assignments(
        self,
        status: AssignmentStatus | None = None,
        rider_id: str | None = None,
    ) -> list[Assignment]:
        return [
            a.model_copy(deep=True)
            for a in self.assignments.values()
            if (status is None or a.status == status) and (rider_id is None or a.rider_id == rider_id)
        ]

    def active_for_rider(self, rider_id: str) -> Assignment | None:
        active = self.list_assignments(status=AssignmentStatus.ACTIVE, rider_id=rider_id)
        return active[0] if active else None

    # --- Internals ---

    async def _release_resources(self, resource_ids: list[str], holder_id: str) -> None:
        for resource_id in reversed(resource_ids):
            await self.registry.release(resource_id, Availability.AVAILABLE, holder_id=holder_id)

    def _require_active(self, assignment: Assignment) -> None:
        if not assignment.is_active:
            raise AlreadyTerminalError(
                f"Assignment {assignment.id} is already {assignment.status.value}",
                assignment_id=assignment.id,
                status=assignment.status.value,
            )

    def _get(self, assignment_id: str) -> Assignment:
        try:
            return self.assignments[assignment_id]
        except KeyError:
            raise UnknownEntityError(f"Unknown assignment {assignment_id}", assignment_id=assignment_id) from None

    def _lock(self, assignment_id: str) -> asyncio.Lock:
        lock = self._locks.get(assignment_id)
        if lock is None:
            lock = self._locks[assignment_id] = asyncio.Lock()
        return lock

    async def _emit(self, event_type: str, assignment: Assignment, actor_role: ActorRole) -> None:
        if self.event_bus is None:
            return
        await self.event_bus.emit(event_type, assignment.to_wire(), actor_role)
