import logging
from unittest.mock import AsyncMock

import pytest

from models.enums import ActorRole
from models.events import WorkflowEvent
from utils.event_bus import ALL_EVENTS, EventBus


def create_test_event(event_type: str, payload: dict | None = None) -> WorkflowEvent:
    return WorkflowEvent(
        event_type=event_type,
        payload=payload if payload is not None else {},
        source=ActorRole.SYSTEM,
    )


def test_event_bus_initialization():
    bus = EventBus()
    assert bus.subscribers == {}


def test_subscribe_multiple_callbacks_same_event():
    bus = EventBus()
    cb1 = AsyncMock(name="cb1")
    cb2 = AsyncMock(name="cb2")

    bus.subscribe("assignment.created", cb1)
    bus.subscribe("assignment.created", cb2)

    assert bus.subscribers["assignment.created"] == [cb1, cb2]


def test_subscribe_duplicate_callback(caplog):
    """Subscribing the same callback twice is ignored with a warning."""
    bus = EventBus()
    callback = AsyncMock(name="cb_duplicate")

    with caplog.at_level(logging.WARNING):
        bus.subscribe("refill.pending", callback)
        bus.subscribe("refill.pending", callback)

    assert len(bus.subscribers["refill.pending"]) == 1
    assert "already subscribed" in caplog.text


def test_subscribe_non_callable():
    bus = EventBus()

    with pytest.raises(TypeError, match="Callback must be a callable async function."):
        bus.subscribe("refill.pending", "not a function")  # type: ignore [arg-type]

    assert "refill.pending" not in bus.subscribers


def test_unsubscribe_last_callback_removes_event_type():
    bus = EventBus()
    callback = AsyncMock()

    bus.subscribe("prep.ready", callback)
    bus.unsubscribe("prep.ready", callback)

    assert "prep.ready" not in bus.subscribers


def test_unsubscribe_nonexistent_callback(caplog):
    bus = EventBus()
    bus.subscribe("prep.ready", AsyncMock(name="cb1"))

    with caplog.at_level(logging.WARNING):
        bus.unsubscribe("prep.ready", AsyncMock(name="cb2"))

    assert len(bus.subscribers["prep.ready"]) == 1
    assert "not found for event type prep.ready" in caplog.text


@pytest.mark.asyncio
async def test_publish_calls_matching_and_wildcard_subscribers():
    bus = EventBus()
    on_created = AsyncMock(name="on_created")
    on_cancelled = AsyncMock(name="on_cancelled")
    on_any = AsyncMock(name="on_any")
    bus.subscribe("assignment.created", on_created)
    bus.subscribe("assignment.cancelled", on_cancelled)
    bus.subscribe(ALL_EVENTS, on_any)

    event = create_test_event("assignment.created", {"riderId": "R001"})
    await bus.publish(event)

    on_created.assert_called_once_with(event)
    on_any.assert_called_once_with(event)
    on_cancelled.assert_not_called()


@pytest.mark.asyncio
async def test_publish_no_subscribers():
    bus = EventBus()
    await bus.publish(create_test_event("nobody.listens"))


@pytest.mark.asyncio
async def test_publish_with_callback_exception(caplog):
    """A failing subscriber is logged and does not stop the others."""
    bus = EventBus()
    ok = AsyncMock(name="cb_ok")
    failing = AsyncMock(name="cb_fail", side_effect=ValueError("Callback failed!"))
    bus.subscribe("refill.delivered", ok)
    bus.subscribe("refill.delivered", failing)

    event = create_test_event("refill.delivered")
    with caplog.at_level(logging.ERROR):
        await bus.publish(event)

    ok.assert_called_once_with(event)
    failing.assert_called_once_with(event)
    assert "Error in subscriber callback" in caplog.text
    assert "Callback failed!" in caplog.text


@pytest.mark.asyncio
async def test_publish_invalid_event_object(caplog):
    bus = EventBus()
    callback = AsyncMock(name="cb1")
    bus.subscribe("refill.pending", callback)

    invalid_event = {"event_type": "refill.pending", "payload": {}}
    with caplog.at_level(logging.ERROR):
        await bus.publish(invalid_event)  # type: ignore [arg-type]

    assert f"Attempted to publish invalid event type: {type(invalid_event)}" in caplog.text
    callback.assert_not_called()


@pytest.mark.asyncio
async def test_emit_builds_event():
    bus = EventBus()
    callback = AsyncMock()
    bus.subscribe("prep.queued", callback)

    event = await bus.emit("prep.queued", {"cookId": "K1"}, ActorRole.SUPERVISOR)

    assert event.source == ActorRole.SUPERVISOR
    assert event.to_wire()["eventType"] == "prep.queued"
    callback.assert_awaited_once_with(event)
