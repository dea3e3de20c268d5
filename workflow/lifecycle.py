"""
Request lifecycles: role-gated state machines for refill requests
(rider -> coordinator) and prep requests (supervisor -> cook).
"""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

from pydantic.alias_generators import to_camel

from models.enums import ActorRole, PrepStatus, Priority, RefillStatus
from models.inventory import FoodSnapshot, cart_item_id
from models.requests import PrepRequest, RefillRequest
from utils.event_bus import EventBus

from .exceptions import (
    AlreadyTerminalError,
    IllegalTransitionError,
    RoleNotPermittedError,
    StaleStateError,
    UnknownEntityError,
    ValidationError,
)
from .ledger import InventoryLedger
from .validation import require_id, require_positive_int

logger = logging.getLogger(__name__)


def coerce_role(value: Any) -> ActorRole:
    try:
        return ActorRole(value)
    except ValueError:
        raise ValidationError(f"Unknown actor role {value!r}", field="actor_role") from None


def payload_value(payload: dict[str, Any], key: str) -> Any:
    """Look a payload field up by its snake_case or camelCase name."""
    if key in payload:
        return payload[key]
    return payload.get(to_camel(key))


class RequestLifecycle:
    """
    Shared transition contract for request state machines.

    ``transition`` checks, in order: payload shape, existence, terminal status,
    staleness against ``expected_status``, edge legality and finally the actor
    role. The check-then-set runs under the request's own lock, so two
    conflicting transitions on one request cannot both succeed.
    """

    status_type: ClassVar[type[Enum]]
    terminal: ClassVar[frozenset]
    # (from, to) -> roles allowed to take the edge
    edges: ClassVar[dict[tuple[Enum, Enum], frozenset[ActorRole]]]
    event_prefix: ClassVar[str]
    # Terminal requests leave the active store when True
    archive_terminal: ClassVar[bool] = False

    def __init__(self, ledger: InventoryLedger, event_bus: EventBus | None = None):
        self.ledger = ledger
        self.event_bus = event_bus
        self.requests: dict[str, Any] = {}
        self.archive: dict[str, Any] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    async def transition(
        self,
        request_id: str,
        actor_role: ActorRole | str,
        target_status: Enum | str,
        payload: dict[str, Any] | None = None,
        expected_status: Enum | str | None = None,
    ):
        role = coerce_role(actor_role)
        target = self._coerce_status(target_status)
        expected = self._coerce_status(expected_status) if expected_status is not None else None
        payload = dict(payload or {})
        self.validate_payload(target, payload)

        async with self._lock(request_id):
            request = self._get(request_id)
            current = request.status
            self._check_open(request, expected)
            allowed = self.edges.get((current, target))
            if allowed is None:
                raise IllegalTransitionError(
                    f"Cannot move {self.event_prefix} request {request_id} from {current.value} to {target.value}",
                    request_id=request_id,
                    current=current.value,
                    target=target.value,
                )
            if role not in allowed and role != ActorRole.SUPER_ADMIN:
                raise RoleNotPermittedError(
                    f"Role {role.value} may not move {self.event_prefix} request from {current.value} to {target.value}",
                    request_id=request_id,
                    role=role.value,
                )
            self.authorize(request, role, target, payload)

            details = await self.apply(request, role, target, payload)
            request.status = target
            request.record(role, current, target, details)
            if target in self.terminal:
                self._locks.pop(request_id, None)
                if self.archive_terminal:
                    self.archive[request_id] = self.requests.pop(request_id)
            logger.info(
                f"{self.event_prefix.capitalize()} request {request_id}: {current.value} -> {target.value} by {role.value}"
            )
        await self._emit(f"{self.event_prefix}.{target.value}", request, role)
        return request.model_copy(deep=True)

    # --- Hooks for concrete machines ---

    def validate_payload(self, target: Enum, payload: dict[str, Any]) -> None:
        """Reject malformed payloads before any request is read."""

    def authorize(self, request, role: ActorRole, target: Enum, payload: dict[str, Any]) -> None:
        """Extra per-request authorization beyond the role table."""

    async def apply(self, request, role: ActorRole, target: Enum, payload: dict[str, Any]) -> dict[str, Any]:
        """Apply side effects of the edge; return details for the history entry."""
        return {}

    # --- Read views ---

    def get(self, request_id: str):
        return self._get(request_id).model_copy(deep=True)

    def list_by_actor(self, actor_role: ActorRole | str, actor_id: str | None = None) -> list:
        role = coerce_role(actor_role)
        return [r.model_copy(deep=True) for r in self.requests.values() if self.visible_to(r, role, actor_id)]

    def visible_to(self, request, role: ActorRole, actor_id: str | None) -> bool:
        return True

    # --- Internals ---

    def _add(self, request) -> None:
        self.requests[request.id] = request

    def _check_open(self, request, expected: Enum | None) -> None:
        if request.status in self.terminal:
            raise AlreadyTerminalError(
                f"{self.event_prefix.capitalize()} request {request.id} is already {request.status.value}",
                request_id=request.id,
                current=request.status.value,
            )
        if expected is not None and request.status != expected:
            raise StaleStateError(
                f"{self.event_prefix.capitalize()} request {request.id} is {request.status.value}, "
                f"not {expected.value}",
                request_id=request.id,
                current=request.status.value,
                expected=expected.value,
            )

    def _coerce_status(self, value: Any) -> Enum:
        try:
            return self.status_type(value)
        except ValueError:
            raise ValidationError(f"Unknown {self.event_prefix} status {value!r}", field="status") from None

    def _get(self, request_id: str):
        request = self.requests.get(request_id)
        if request is None:
            request = self.archive.get(request_id)
        if request is None:
            raise UnknownEntityError(
                f"Unknown {self.event_prefix} request {request_id}", request_id=request_id
            )
        return request

    def _lock(self, request_id: str) -> asyncio.Lock:
        lock = self._locks.get(request_id)
        if lock is None:
            lock = self._locks[request_id] = asyncio.Lock()
        return lock

    async def _emit(self, event_type: str, request, role: ActorRole) -> None:
        if self.event_bus is None:
            return
        await self.event_bus.emit(event_type, request.to_wire(), role)


_DISPATCHERS = frozenset({ActorRole.SUPERVISOR, ActorRole.COOK})


class RefillLifecycle(RequestLifecycle):
    """
    pending -> forwarded -> in-progress -> delivered, or pending -> rejected.

    Delivery restocks the rider's cart inventory for the requested item.
    """

    status_type = RefillStatus
    terminal = frozenset({RefillStatus.REJECTED, RefillStatus.DELIVERED})
    edges = {
        (RefillStatus.PENDING, RefillStatus.FORWARDED): _DISPATCHERS,
        (RefillStatus.PENDING, RefillStatus.REJECTED): _DISPATCHERS,
        (RefillStatus.FORWARDED, RefillStatus.IN_PROGRESS): frozenset({ActorRole.REFILL_COORDINATOR}),
        (RefillStatus.IN_PROGRESS, RefillStatus.DELIVERED): frozenset({ActorRole.REFILL_COORDINATOR}),
    }
    event_prefix = "refill"

    async def create(
        self,
        rider_id: str,
        item_id: str,
        quantity: int,
        reason: str = "",
        priority: Priority | str = Priority.MEDIUM,
        actor_role: ActorRole | str = ActorRole.RIDER,
    ) -> RefillRequest:
        role = coerce_role(actor_role)
        require_id(rider_id, "rider_id")
        require_id(item_id, "item_id")
        require_positive_int(quantity)
        try:
            priority = Priority(priority)
        except ValueError:
            raise ValidationError(f"Unknown priority {priority!r}", field="priority") from None
        if role not in (ActorRole.RIDER, ActorRole.SUPER_ADMIN):
            raise RoleNotPermittedError(f"Role {role.value} may not open refill requests", role=role.value)
        if not self.ledger.has_item(item_id):
            raise UnknownEntityError(f"Unknown food item {item_id}", item_id=item_id)

        request = RefillRequest(rider_id=rider_id, item_id=item_id, quantity=quantity, reason=reason, priority=priority)
        request.record(role, None, RefillStatus.PENDING)
        self._add(request)
        logger.info(f"Refill request {request.id} opened by rider {rider_id}: {quantity} x {item_id} ({priority.value})")
        await self._emit("refill.pending", request, role)
        return request.model_copy(deep=True)

    def validate_payload(self, target: Enum, payload: dict[str, Any]) -> None:
        if target == RefillStatus.FORWARDED:
            require_id(payload_value(payload, "assigned_coordinator_id"), "assigned_coordinator_id")

    def authorize(self, request: RefillRequest, role: ActorRole, target: Enum, payload: dict[str, Any]) -> None:
        actor_id = payload_value(payload, "actor_id")
        if (
            role == ActorRole.REFILL_COORDINATOR
            and actor_id is not None
            and actor_id != request.assigned_coordinator_id
        ):
            raise RoleNotPermittedError(
                f"Refill request {request.id} is assigned to {request.assigned_coordinator_id}, not {actor_id}",
                request_id=request.id,
            )

    async def apply(self, request: RefillRequest, role: ActorRole, target: Enum, payload: dict[str, Any]) -> dict[str, Any]:
        now = datetime.now()
        if target == RefillStatus.FORWARDED:
            request.assigned_coordinator_id = payload_value(payload, "assigned_coordinator_id")
            request.cook_instructions = payload_value(payload, "cook_instructions")
            return {"assigned_coordinator_id": request.assigned_coordinator_id}
        if target == RefillStatus.REJECTED:
            request.rejection_reason = payload_value(payload, "rejection_reason")
            return {"rejection_reason": request.rejection_reason} if request.rejection_reason else {}
        if target == RefillStatus.IN_PROGRESS:
            request.started_at = now
            return {}
        # delivered: the rider's cart is replenished
        movement = await self.ledger.restock(
            cart_item_id(request.rider_id, request.item_id),
            request.quantity,
            reference_id=request.id,
            name=f"{request.item_id} on {request.rider_id}'s cart",
        )
        request.delivered_at = now
        return {"cart_stock": movement.stock_after}

    def visible_to(self, request: RefillRequest, role: ActorRole, actor_id: str | None) -> bool:
        if role == ActorRole.RIDER:
            return actor_id is not None and request.rider_id == actor_id
        if role == ActorRole.REFILL_COORDINATOR:
            if request.status in (RefillStatus.PENDING, RefillStatus.REJECTED):
                return False
            return actor_id is None or request.assigned_coordinator_id == actor_id
        return role in (ActorRole.SUPERVISOR, ActorRole.COOK, ActorRole.SUPER_ADMIN)


class PrepLifecycle(RequestLifecycle):
    """
    queued -> processing -> ready -> picked (queued may go straight to ready).

    A batch marked ready is added to the prepared food stock; a picked request
    is consumed and leaves the active list.
    """

    status_type = PrepStatus
    terminal = frozenset({PrepStatus.PICKED})
    edges = {
        (PrepStatus.QUEUED, PrepStatus.PROCESSING): frozenset({ActorRole.COOK}),
        (PrepStatus.QUEUED, PrepStatus.READY): frozenset({ActorRole.COOK}),
        (PrepStatus.PROCESSING, PrepStatus.READY): frozenset({ActorRole.COOK}),
        (PrepStatus.READY, PrepStatus.PICKED): frozenset({ActorRole.COOK, ActorRole.SUPERVISOR}),
    }
    event_prefix = "prep"
    archive_terminal = True

    creators = frozenset({ActorRole.SUPERVISOR, ActorRole.REFILL_COORDINATOR, ActorRole.SUPER_ADMIN})
    editors = frozenset({ActorRole.COOK, ActorRole.SUPERVISOR, ActorRole.SUPER_ADMIN})

    async def create(
        self,
        cook_id: str,
        food_item_id: str,
        quantity_to_prepare: int,
        priority: Priority | str = Priority.MEDIUM,
        notes: str | None = None,
        actor_role: ActorRole | str = ActorRole.SUPERVISOR,
    ) -> PrepRequest:
        role = coerce_role(actor_role)
        require_id(cook_id, "cook_id")
        require_id(food_item_id, "food_item_id")
        require_positive_int(quantity_to_prepare, "quantity_to_prepare")
        try:
            priority = Priority(priority)
        except ValueError:
            raise ValidationError(f"Unknown priority {priority!r}", field="priority") from None
        if role not in self.creators:
            raise RoleNotPermittedError(f"Role {role.value} may not queue prep requests", role=role.value)
        food = self.ledger.get_item(food_item_id)

        request = PrepRequest(
            cook_id=cook_id,
            food_snapshot=FoodSnapshot(id=food.id, name=food.name, unit_label=food.unit_label),
            quantity_to_prepare=quantity_to_prepare,
            priority=priority,
            notes=notes,
        )
        request.record(role, None, PrepStatus.QUEUED)
        self._add(request)
        logger.info(f"Prep request {request.id} queued for cook {cook_id}: {quantity_to_prepare} x {food.name}")
        await self._emit("prep.queued", request, role)
        return request.model_copy(deep=True)

    async def edit_quantity(
        self,
        request_id: str,
        actor_role: ActorRole | str,
        quantity: int,
        expected_status: PrepStatus | str | None = None,
    ) -> PrepRequest:
        """
        Change ``quantity_to_prepare`` on an open request; status is unchanged.

        A ``ready`` batch has already been added to the food stock, so the
        difference is restocked or written off as well. A reduction larger
        than the stock on hand fails with InsufficientStockError and leaves
        the request untouched.
        """
        role = coerce_role(actor_role)
        require_positive_int(quantity, "quantity_to_prepare")
        expected = self._coerce_status(expected_status) if expected_status is not None else None
        async with self._lock(request_id):
            request = self._get(request_id)
            self._check_open(request, expected)
            if role not in self.editors:
                raise RoleNotPermittedError(
                    f"Role {role.value} may not edit prep request quantities", request_id=request_id, role=role.value
                )
            previous = request.quantity_to_prepare
            details: dict[str, Any] = {"quantity_to_prepare": [previous, quantity]}
            if request.status == PrepStatus.READY and quantity != previous:
                food_id = request.food_snapshot.id
                if quantity > previous:
                    movement = await self.ledger.restock(food_id, quantity - previous, reference_id=request.id)
                else:
                    movement = await self.ledger.write_off(food_id, previous - quantity, reference_id=request.id)
                details["stock_after"] = movement.stock_after
            request.quantity_to_prepare = quantity
            request.record(role, request.status, request.status, details)
            logger.info(f"Prep request {request_id} quantity {previous} -> {quantity} by {role.value}")
        await self._emit("prep.quantity_changed", request, role)
        return request.model_copy(deep=True)

    async def consume(self, request_id: str, actor_role: ActorRole | str) -> PrepRequest:
        """Pick up a ready batch; same as transitioning to ``picked``."""
        return await self.transition(request_id, actor_role, PrepStatus.PICKED)

    async def apply(self, request: PrepRequest, role: ActorRole, target: Enum, payload: dict[str, Any]) -> dict[str, Any]:
        if target == PrepStatus.READY:
            movement = await self.ledger.restock(
                request.food_snapshot.id, request.quantity_to_prepare, reference_id=request.id
            )
            return {"stock_after": movement.stock_after}
        return {}

    def list_by_cook(self, cook_id: str) -> list[PrepRequest]:
        return [r.model_copy(deep=True) for r in self.requests.values() if r.cook_id == cook_id]

    def visible_to(self, request: PrepRequest, role: ActorRole, actor_id: str | None) -> bool:
        if role == ActorRole.COOK:
            return actor_id is None or request.cook_id == actor_id
        return role in (ActorRole.SUPERVISOR, ActorRole.REFILL_COORDINATOR, ActorRole.SUPER_ADMIN)
