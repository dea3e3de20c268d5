import pytest
from fastapi.testclient import TestClient

from config.config import ServiceConfig
from service.app import create_app
from service.state import build_state

SUPERVISOR = {"X-Actor-Role": "supervisor"}
ADMIN = {"X-Actor-Role": "superadmin"}
COOK = {"X-Actor-Role": "cook", "X-Actor-Id": "K1"}
RIDER = {"X-Actor-Role": "rider", "X-Actor-Id": "R001"}
COORDINATOR = {"X-Actor-Role": "refill", "X-Actor-Id": "C1"}

SHIFT = {"riderId": "R001", "vehicleId": "V001", "batteryId": "B356938035643809", "routeId": "RT-A"}


@pytest.fixture
def state():
    return build_state(ServiceConfig(), seed=True)


@pytest.fixture
def client(state):
    return TestClient(create_app(state=state, config=ServiceConfig()))


def test_list_foods_uses_camel_case(client):
    response = client.get("/api/foods")

    assert response.status_code == 200
    poha = next(row for row in response.json() if row["id"] == "poha")
    assert poha["unitLabel"] == "plates"
    assert poha["targetStock"] == 100


def test_inventory_status(client):
    rows = {row["itemId"]: row["state"] for row in client.get("/api/inventory/status").json()}
    assert rows["water-bottle"] == "good"
    assert rows["vada-pav"] == "low"


def test_assignment_lifecycle(client, state):
    response = client.post(
        "/api/assignments",
        json={**SHIFT, "items": [{"foodItemId": "chai", "quantity": 10}], "combos": [{"comboId": "breakfast", "quantity": 2}]},
        headers=SUPERVISOR,
    )
    assert response.status_code == 201
    assignment = response.json()
    assert assignment["status"] == "Active"
    assert state.ledger.stock("chai") == 108

    vehicle = client.get("/api/resources", params={"kind": "vehicle", "availability": "InUse"}).json()
    assert [r["id"] for r in vehicle] == ["V001"]

    again = client.post("/api/assignments", json=SHIFT, headers=SUPERVISOR)
    assert again.status_code == 409
    assert again.json()["error"] == "resource_contention"

    completed = client.post(
        f"/api/assignments/{assignment['id']}/complete",
        json={"resourceOutcomes": {"V001": "Unavailable"}},
        headers=SUPERVISOR,
    )
    assert completed.json()["status"] == "Completed"
    assert state.registry.availability("V001") == "Unavailable"

    cancelled = client.post(f"/api/assignments/{assignment['id']}/cancel", headers=SUPERVISOR)
    assert cancelled.status_code == 409
    assert cancelled.json()["error"] == "already_terminal"


def test_assignment_insufficient_stock(client, state):
    response = client.post(
        "/api/assignments", json={**SHIFT, "items": [{"foodItemId": "poha", "quantity": 500}]}, headers=SUPERVISOR
    )

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "insufficient_stock"
    assert body["available"] == 45
    assert state.registry.availability("R001") == "Available"


def test_role_and_header_errors(client):
    assert client.post("/api/assignments", json=SHIFT, headers=RIDER).status_code == 403

    missing = client.post("/api/assignments", json=SHIFT)
    assert missing.status_code == 422
    assert missing.json()["error"] == "validation_error"

    unknown_role = client.post("/api/assignments", json=SHIFT, headers={"X-Actor-Role": "chef"})
    assert unknown_role.status_code == 422

    assert client.post("/api/assignments/nope/cancel", headers=SUPERVISOR).status_code == 404


def test_refill_flow_over_http(client, state):
    created = client.post(
        "/api/refill-requests", json={"itemId": "chai", "quantity": 12, "priority": "high"}, headers=RIDER
    )
    assert created.status_code == 201
    request_id = created.json()["id"]
    assert created.json()["riderId"] == "R001"

    forwarded = client.patch(
        f"/api/refill-requests/{request_id}",
        json={"status": "forwarded", "assignedCoordinatorId": "C1", "cookInstructions": "Hot"},
        headers=SUPERVISOR,
    )
    assert forwarded.json()["status"] == "forwarded"

    twice = client.patch(
        f"/api/refill-requests/{request_id}",
        json={"status": "forwarded", "assignedCoordinatorId": "C1"},
        headers=SUPERVISOR,
    )
    assert twice.status_code == 409
    assert twice.json()["error"] == "illegal_transition"

    stale = client.patch(
        f"/api/refill-requests/{request_id}",
        json={"status": "rejected", "expectedStatus": "pending"},
        headers=SUPERVISOR,
    )
    assert stale.json()["error"] == "stale_state"

    client.patch(f"/api/refill-requests/{request_id}", json={"status": "in-progress"}, headers=COORDINATOR)
    delivered = client.patch(f"/api/refill-requests/{request_id}", json={"status": "delivered"}, headers=COORDINATOR)
    assert delivered.json()["status"] == "delivered"

    assert client.get("/api/riders/R001/cart").json() == {"chai": 12}
    assert [r["id"] for r in client.get("/api/refill-requests", headers=RIDER).json()] == [request_id]
    assert client.get("/api/refill-requests", headers={"X-Actor-Role": "rider", "X-Actor-Id": "R002"}).json() == []


def test_rider_cannot_request_for_someone_else(client):
    response = client.post(
        "/api/refill-requests", json={"riderId": "R002", "itemId": "chai", "quantity": 2}, headers=RIDER
    )
    assert response.status_code == 403


def test_anonymous_rider_cannot_open_refill(client, state):
    response = client.post(
        "/api/refill-requests",
        json={"riderId": "R002", "itemId": "chai", "quantity": 2},
        headers={"X-Actor-Role": "rider"},
    )

    assert response.status_code == 403
    assert response.json()["error"] == "role_not_permitted"
    assert state.refills.list_by_actor("supervisor") == []


def test_cook_filter_respects_visibility(client):
    for cook_id in ("K1", "K2"):
        client.post(
            "/api/prep-requests",
            json={"cookId": cook_id, "foodItemId": "chai", "quantityToPrepare": 5},
            headers=SUPERVISOR,
        )

    assert client.get("/api/prep-requests", params={"cookId": "K2"}, headers=RIDER).json() == []
    assert client.get("/api/prep-requests", params={"cookId": "K2"}, headers=COOK).json() == []
    by_supervisor = client.get("/api/prep-requests", params={"cookId": "K2"}, headers=SUPERVISOR).json()
    assert [r["cookId"] for r in by_supervisor] == ["K2"]


def test_prep_flow_over_http(client, state):
    created = client.post(
        "/api/prep-requests",
        json={"cookId": "K1", "foodItemId": "vada-pav", "quantityToPrepare": 20, "priority": "high"},
        headers=SUPERVISOR,
    )
    assert created.status_code == 201
    request_id = created.json()["id"]
    assert created.json()["foodSnapshot"]["unitLabel"] == "pieces"

    listed = client.get("/api/prep-requests", params={"cookId": "K1"}, headers=COOK).json()
    assert [r["id"] for r in listed] == [request_id]

    both = client.patch(f"/api/prep-requests/{request_id}", json={"status": "ready", "quantityToPrepare": 5}, headers=COOK)
    assert both.status_code == 422

    edited = client.patch(f"/api/prep-requests/{request_id}", json={"quantityToPrepare": 30}, headers=COOK)
    assert edited.json()["quantityToPrepare"] == 30

    ready = client.patch(f"/api/prep-requests/{request_id}", json={"status": "ready"}, headers=COOK)
    assert ready.json()["status"] == "ready"
    assert state.ledger.stock("vada-pav") == 55

    consumed = client.delete(f"/api/prep-requests/{request_id}", headers=SUPERVISOR)
    assert consumed.json()["status"] == "picked"
    assert client.get("/api/prep-requests", params={"cookId": "K1"}, headers=COOK).json() == []

    late_edit = client.patch(f"/api/prep-requests/{request_id}", json={"quantityToPrepare": 10}, headers=COOK)
    assert late_edit.status_code == 409
    assert late_edit.json()["error"] == "already_terminal"


def test_combo_admin_routes(client):
    combo = {"id": "tea-time", "name": "Tea Time", "price": 30, "items": [{"foodItemId": "chai", "quantity": 2}]}

    assert client.post("/api/combos", json=combo, headers=SUPERVISOR).status_code == 403
    assert client.post("/api/combos", json=combo, headers=ADMIN).status_code == 201

    updated = client.patch("/api/combos/tea-time", json={"price": 35}, headers=ADMIN)
    assert updated.json()["price"] == 35

    assert client.delete("/api/combos/tea-time", headers=ADMIN).status_code == 200
    assert client.patch("/api/combos/tea-time", json={"price": 40}, headers=ADMIN).status_code == 404


def test_resource_maintenance_toggle(client):
    response = client.patch("/api/resources/V003", json={"availability": "Available"}, headers=SUPERVISOR)
    assert response.json()["availability"] == "Available"

    client.post("/api/assignments", json={**SHIFT, "vehicleId": "V003"}, headers=SUPERVISOR)
    in_use = client.patch("/api/resources/V003", json={"availability": "Unavailable"}, headers=SUPERVISOR)
    assert in_use.status_code == 409
    assert in_use.json()["error"] == "resource_state"
