import json

import httpx
import pytest

from config.config import GatewayConfig
from connectors.gateway_client import GatewayClient, GatewayError
from models.enums import PrepStatus
from models.inventory import Combo, ItemLine

PREP_ROW = {
    "id": "P1",
    "cookId": "K1",
    "foodSnapshot": {"id": "poha", "name": "Poha", "unitLabel": "plates"},
    "quantityToPrepare": 20,
    "priority": "high",
    "status": "queued",
}


def make_client(handler, token="secret-token"):
    return GatewayClient(
        GatewayConfig(base_url="http://gateway.test"),
        token_provider=lambda: token,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_list_prep_requests_sends_auth_and_cook_filter():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["request"] = request
        return httpx.Response(200, json=[PREP_ROW])

    async with make_client(handler) as client:
        rows = await client.list_prep_requests("K1")

    request = seen["request"]
    assert request.url.path == "/api/prep-requests"
    assert request.url.params["cookId"] == "K1"
    assert request.headers["Authorization"] == "Bearer secret-token"
    assert request.headers["Accept"] == "application/json"
    assert rows[0].food_snapshot.name == "Poha"
    assert rows[0].status == PrepStatus.QUEUED


@pytest.mark.asyncio
async def test_update_prep_request_sends_single_field():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={**PREP_ROW, "status": "processing"})

    async with make_client(handler) as client:
        updated = await client.update_prep_request("P1", status="processing")
        await client.update_prep_request("P1", quantity_to_prepare=25)
        with pytest.raises(ValueError):
            await client.update_prep_request("P1")
        with pytest.raises(ValueError):
            await client.update_prep_request("P1", status=PrepStatus.READY, quantity_to_prepare=3)

    assert updated.status == PrepStatus.PROCESSING
    assert bodies == [{"status": "processing"}, {"quantityToPrepare": 25}]


@pytest.mark.asyncio
async def test_no_token_means_no_authorization_header():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["headers"] = request.headers
        return httpx.Response(200, json=[])

    async with make_client(handler, token=None) as client:
        assert await client.list_foods() == []

    assert "Authorization" not in seen["headers"]


@pytest.mark.asyncio
async def test_create_combo_posts_wire_form():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json=seen["body"])

    combo = Combo(id="breakfast", name="Breakfast", price=60.0, items=[ItemLine(food_item_id="poha", quantity=1)])
    async with make_client(handler) as client:
        created = await client.create_combo(combo)

    assert seen["body"]["items"] == [{"foodItemId": "poha", "quantity": 1}]
    assert created == combo


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status,body,expected",
    [
        (409, {"error": "already_terminal", "message": "Prep request P1 is already picked"}, "already_terminal"),
        (404, {"message": "Not found"}, "Not found"),
        (500, None, "HTTP 500"),
    ],
)
async def test_error_responses_raise_gateway_error(status, body, expected):
    def handler(request: httpx.Request) -> httpx.Response:
        if body is None:
            return httpx.Response(status, text="boom")
        return httpx.Response(status, json=body)

    async with make_client(handler) as client:
        with pytest.raises(GatewayError) as exc_info:
            await client.delete_prep_request("P1")

    assert exc_info.value.message == expected
    assert exc_info.value.status_code == status


@pytest.mark.asyncio
async def test_transport_failure_raises_gateway_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with make_client(handler) as client:
        with pytest.raises(GatewayError) as exc_info:
            await client.pending_requests_count()

    assert exc_info.value.status_code is None


@pytest.mark.asyncio
async def test_pending_requests_count():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/admin/requests/count"
        return httpx.Response(200, json={"count": 7})

    async with make_client(handler) as client:
        assert await client.pending_requests_count() == 7
