"""
Simple asynchronous event bus carrying workflow lifecycle events.
"""

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from models.enums import ActorRole
from models.events import WorkflowEvent

logger_event_bus = logging.getLogger(__name__)

Subscriber = Callable[[WorkflowEvent], Coroutine[Any, Any, None]]

# Subscribing to this key receives every event regardless of type.
ALL_EVENTS = "*"


def _callback_name(callback) -> str:
    return getattr(callback, "__name__", repr(callback))


class EventBus:
    """In-process pub/sub between the workflow core and its consumers"""

    def __init__(self):
        self.subscribers: dict[str, list[Subscriber]] = {}

    def subscribe(self, event_type: str, callback: Subscriber) -> None:
        """Subscribe to an event type (or ``ALL_EVENTS``)."""
        if not callable(callback):
            raise TypeError("Callback must be a callable async function.")
        if event_type not in self.subscribers:
            self.subscribers[event_type] = []
        if callback not in self.subscribers[event_type]:
            self.subscribers[event_type].append(callback)
            logger_event_bus.debug(f"Callback {_callback_name(callback)} subscribed to {event_type}")
        else:
            logger_event_bus.warning(f"Callback {_callback_name(callback)} already subscribed to {event_type}")

    def unsubscribe(self, event_type: str, callback: Subscriber) -> None:
        """Unsubscribe a specific callback from an event type."""
        if event_type in self.subscribers:
            try:
                self.subscribers[event_type].remove(callback)
                logger_event_bus.debug(f"Callback {_callback_name(callback)} unsubscribed from {event_type}")
                if not self.subscribers[event_type]:
                    del self.subscribers[event_type]
            except ValueError:
                logger_event_bus.warning(f"Callback {_callback_name(callback)} not found for event type {event_type}")

    async def publish(self, event: WorkflowEvent) -> None:
        """Publish an event to subscribers. Subscriber failures are logged, not raised."""
        if not isinstance(event, WorkflowEvent):
            logger_event_bus.error(f"Attempted to publish invalid event type: {type(event)}")
            return

        logger_event_bus.info(f"Event published: {event.event_type} from {event.source.value}")
        callbacks = self.subscribers.get(event.event_type, []) + self.subscribers.get(ALL_EVENTS, [])
        if not callbacks:
            return
        tasks = [asyncio.create_task(callback(event)) for callback in callbacks]
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for callback, result in zip(callbacks, results):
            if isinstance(result, Exception):
                logger_event_bus.error(
                    f"Error in subscriber callback '{_callback_name(callback)}' for event {event.event_type}: {result}",
                    exc_info=False,
                )

    async def emit(self, event_type: str, payload: dict[str, Any], source: ActorRole) -> WorkflowEvent:
        """Build and publish a ``WorkflowEvent``"""
        event = WorkflowEvent(event_type=event_type, payload=payload, source=source)
        await self.publish(event)
        return event
