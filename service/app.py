"""
FastAPI service exposing the assignment-and-fulfillment workflow.

The caller's role arrives in the ``X-Actor-Role`` header (``X-Actor-Id`` is
optional); both are resolved upstream by the session layer.
Run with: uvicorn service.app:app --reload
"""

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from config.config import ServiceConfig
from connectors.event_stream import RedisEventStream
from models.api import (
    AssignmentComplete,
    AssignmentCreate,
    ComboUpdate,
    PrepCreate,
    PrepPatch,
    RefillCreate,
    RefillPatch,
    ResourcePatch,
)
from models.assignment import Assignment
from models.enums import ActorRole, AssignmentStatus, Availability, ResourceKind
from models.inventory import Combo, FoodItem, StockReportRow
from models.requests import PrepRequest, RefillRequest
from models.resources import Resource
from utils.logger import get_logger
from workflow.exceptions import (
    AllocationError,
    ResourceError,
    RoleNotPermittedError,
    TransitionError,
    UnknownEntityError,
    ValidationError,
    WorkflowError,
)
from workflow.lifecycle import coerce_role

from .state import WorkflowState, build_state

logger = get_logger("food-cart-service")

ADMINS = (ActorRole.SUPER_ADMIN,)
MANAGERS = (ActorRole.SUPERVISOR, ActorRole.SUPER_ADMIN)


def status_for(exc: WorkflowError) -> int:
    if isinstance(exc, ValidationError):
        return 422
    if isinstance(exc, UnknownEntityError):
        return 404
    if isinstance(exc, RoleNotPermittedError):
        return 403
    if isinstance(exc, (AllocationError, TransitionError, ResourceError)):
        return 409
    return 400


class Actor:
    def __init__(self, role: ActorRole, actor_id: str | None):
        self.role = role
        self.id = actor_id

    def require(self, *roles: ActorRole) -> None:
        if self.role not in roles:
            raise RoleNotPermittedError(f"Role {self.role.value} may not perform this action", role=self.role.value)


def get_actor(
    x_actor_role: str = Header(...),
    x_actor_id: str | None = Header(default=None),
) -> Actor:
    return Actor(coerce_role(x_actor_role), x_actor_id)


def create_app(state: WorkflowState | None = None, config: ServiceConfig | None = None) -> FastAPI:
    config = config or ServiceConfig.from_env()
    state = state or build_state(config)
    app = FastAPI(
        title="Food Cart Workflow Service",
        description="Assignment allocation, refill and prep request lifecycles, shared stock",
        version="1.0.0",
    )
    app.state.workflow = state
    event_stream = RedisEventStream(config.event_stream)

    @app.on_event("startup")
    async def startup_event():
        if config.event_stream.enabled and await event_stream.connect():
            event_stream.attach(state.event_bus)

    @app.on_event("shutdown")
    async def shutdown_event():
        await event_stream.close()

    @app.exception_handler(WorkflowError)
    async def workflow_error_handler(request: Request, exc: WorkflowError):
        status_code = status_for(exc)
        logger.info(f"{request.method} {request.url.path} -> {status_code} {exc.code}: {exc.message}")
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = jsonable_encoder(exc.errors())
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"{location}: {first.get('msg', 'invalid request')}" if first else "Invalid request"
        body = ValidationError(message, errors=errors).to_dict()
        return JSONResponse(status_code=422, content=body)

    # --- Foods, stock & combos ---

    @app.get("/api/foods")
    async def list_foods() -> list[FoodItem]:
        return state.ledger.items()

    @app.post("/api/foods", status_code=201)
    async def register_food(item: FoodItem, actor: Actor = Depends(get_actor)) -> FoodItem:
        actor.require(*MANAGERS)
        return state.ledger.register_item(item)

    @app.get("/api/inventory/status")
    async def inventory_status() -> list[StockReportRow]:
        return state.ledger.stock_report()

    @app.get("/api/riders/{rider_id}/cart")
    async def rider_cart(rider_id: str) -> dict[str, int]:
        return state.ledger.cart_stock(rider_id)

    @app.get("/api/combos")
    async def list_combos() -> list[Combo]:
        return state.catalog.list_combos()

    @app.post("/api/combos", status_code=201)
    async def create_combo(combo: Combo, actor: Actor = Depends(get_actor)) -> Combo:
        actor.require(*ADMINS)
        return state.catalog.add(combo)

    @app.patch("/api/combos/{combo_id}")
    async def update_combo(combo_id: str, body: ComboUpdate, actor: Actor = Depends(get_actor)) -> Combo:
        actor.require(*ADMINS)
        return state.catalog.update(combo_id, **body.model_dump(exclude_unset=True))

    @app.delete("/api/combos/{combo_id}")
    async def delete_combo(combo_id: str, actor: Actor = Depends(get_actor)) -> Combo:
        actor.require(*ADMINS)
        return state.catalog.remove(combo_id)

    # --- Resources ---

    @app.get("/api/resources")
    async def list_resources(
        kind: ResourceKind | None = None,
        availability: Availability | None = None,
    ) -> list[Resource]:
        return state.registry.list_resources(kind, availability)

    @app.post("/api/resources", status_code=201)
    async def register_resource(resource: Resource, actor: Actor = Depends(get_actor)) -> Resource:
        actor.require(*ADMINS)
        return state.registry.register(resource)

    @app.patch("/api/resources/{resource_id}")
    async def update_resource(resource_id: str, body: ResourcePatch, actor: Actor = Depends(get_actor)) -> Resource:
        actor.require(*MANAGERS)
        return await state.registry.set_availability(resource_id, body.availability)

    # --- Assignments ---

    @app.get("/api/assignments")
    async def list_assignments(
        status: AssignmentStatus | None = None,
        rider_id: str | None = Query(default=None, alias="riderId"),
    ) -> list[Assignment]:
        return state.allocator.list_assignments(status, rider_id)

    @app.post("/api/assignments", status_code=201)
    async def create_assignment(body: AssignmentCreate, actor: Actor = Depends(get_actor)) -> Assignment:
        actor.require(*MANAGERS)
        if body.combos:
            return await state.allocator.create_from_combos(
                body.rider_id, body.vehicle_id, body.battery_id, body.route_id, body.items, body.combos, actor.role
            )
        return await state.allocator.create(
            body.rider_id, body.vehicle_id, body.battery_id, body.route_id, body.items, actor.role
        )

    @app.post("/api/assignments/{assignment_id}/complete")
    async def complete_assignment(
        assignment_id: str,
        body: AssignmentComplete | None = None,
        actor: Actor = Depends(get_actor),
    ) -> Assignment:
        actor.require(*MANAGERS)
        outcomes = body.resource_outcomes if body else {}
        return await state.allocator.complete(assignment_id, outcomes, actor.role)

    @app.post("/api/assignments/{assignment_id}/cancel")
    async def cancel_assignment(assignment_id: str, actor: Actor = Depends(get_actor)) -> Assignment:
        actor.require(*MANAGERS)
        return await state.allocator.cancel(assignment_id, actor.role)

    # --- Refill requests ---

    @app.get("/api/refill-requests")
    async def list_refill_requests(actor: Actor = Depends(get_actor)) -> list[RefillRequest]:
        return state.refills.list_by_actor(actor.role, actor.id)

    @app.post("/api/refill-requests", status_code=201)
    async def create_refill_request(body: RefillCreate, actor: Actor = Depends(get_actor)) -> RefillRequest:
        rider_id = body.rider_id or actor.id
        if actor.role == ActorRole.RIDER:
            if not actor.id:
                raise RoleNotPermittedError("Riders must identify themselves with X-Actor-Id", role=actor.role.value)
            if rider_id != actor.id:
                raise RoleNotPermittedError(
                    "Riders may only open refill requests for themselves", role=actor.role.value
                )
        return await state.refills.create(rider_id, body.item_id, body.quantity, body.reason, body.priority, actor.role)

    @app.patch("/api/refill-requests/{request_id}")
    async def update_refill_request(
        request_id: str,
        body: RefillPatch,
        actor: Actor = Depends(get_actor),
    ) -> RefillRequest:
        payload = body.model_dump(exclude={"status", "expected_status"}, exclude_none=True)
        if actor.id:
            payload["actor_id"] = actor.id
        return await state.refills.transition(request_id, actor.role, body.status, payload, body.expected_status)

    # --- Prep requests ---

    @app.get("/api/prep-requests")
    async def list_prep_requests(
        cook_id: str | None = Query(default=None, alias="cookId"),
        actor: Actor = Depends(get_actor),
    ) -> list[PrepRequest]:
        visible = state.preps.list_by_actor(actor.role, actor.id)
        if cook_id:
            return [request for request in visible if request.cook_id == cook_id]
        return visible

    @app.post("/api/prep-requests", status_code=201)
    async def create_prep_request(body: PrepCreate, actor: Actor = Depends(get_actor)) -> PrepRequest:
        return await state.preps.create(
            body.cook_id, body.food_item_id, body.quantity_to_prepare, body.priority, body.notes, actor.role
        )

    @app.patch("/api/prep-requests/{request_id}")
    async def update_prep_request(
        request_id: str,
        body: PrepPatch,
        actor: Actor = Depends(get_actor),
    ) -> PrepRequest:
        if (body.status is None) == (body.quantity_to_prepare is None):
            raise ValidationError("Send exactly one of status or quantityToPrepare")
        if body.status is not None:
            return await state.preps.transition(
                request_id, actor.role, body.status, expected_status=body.expected_status
            )
        return await state.preps.edit_quantity(
            request_id, actor.role, body.quantity_to_prepare, expected_status=body.expected_status
        )

    @app.delete("/api/prep-requests/{request_id}")
    async def consume_prep_request(request_id: str, actor: Actor = Depends(get_actor)) -> PrepRequest:
        return await state.preps.consume(request_id, actor.role)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    service_config = ServiceConfig.from_env()
    uvicorn.run(app, host=service_config.host, port=service_config.port)
