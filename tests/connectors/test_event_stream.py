import json
import logging
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from config.config import EventStreamConfig
from connectors.event_stream import RedisEventStream
from models.enums import ActorRole
from utils.event_bus import EventBus


@pytest.fixture
def redis_client():
    client = AsyncMock()
    client.xadd = AsyncMock(return_value="1-0")
    return client


@pytest.mark.asyncio
async def test_attached_stream_receives_bus_events(redis_client):
    bus = EventBus()
    stream = RedisEventStream(EventStreamConfig(stream_prefix="events"), client=redis_client)
    stream.attach(bus)

    event = await bus.emit("refill.forwarded", {"id": "F1"}, ActorRole.SUPERVISOR)

    keys = [call.args[0] for call in redis_client.xadd.await_args_list]
    assert keys == ["events:all", "events:refill.forwarded"]
    data = json.loads(redis_client.xadd.await_args_list[0].args[1]["data"])
    assert data["eventId"] == event.event_id
    assert data["source"] == "supervisor"


@pytest.mark.asyncio
async def test_detach_stops_streaming(redis_client):
    bus = EventBus()
    stream = RedisEventStream(client=redis_client)
    stream.attach(bus)
    stream.detach(bus)

    await bus.emit("prep.ready", {}, ActorRole.COOK)

    redis_client.xadd.assert_not_called()


@pytest.mark.asyncio
async def test_redis_failure_is_logged_not_raised(redis_client, caplog):
    redis_client.xadd.side_effect = RedisConnectionError("down")
    bus = EventBus()
    stream = RedisEventStream(client=redis_client)
    stream.attach(bus)

    with caplog.at_level(logging.ERROR):
        await bus.emit("assignment.created", {}, ActorRole.SUPERVISOR)

    assert "Failed to stream event" in caplog.text


@pytest.mark.asyncio
async def test_close_releases_client(redis_client):
    stream = RedisEventStream(client=redis_client)
    assert await stream.connect() is True

    await stream.close()

    redis_client.aclose.assert_awaited_once()
    assert stream.client is None
