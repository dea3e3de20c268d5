"""
Module: connectors.event_stream

Forwards workflow events from the in-process bus to Redis streams, where the
external notification dispatcher consumes them.
"""

import json
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from config.config import EventStreamConfig
from models.events import WorkflowEvent
from utils.event_bus import ALL_EVENTS, EventBus

logger = logging.getLogger(__name__)


class RedisEventStream:
    """
    Appends each event to ``<prefix>:all`` and ``<prefix>:<event_type>``.
    Publishing failures are logged and never reach the workflow.
    """

    def __init__(self, config: EventStreamConfig | None = None, client: redis.Redis | None = None):
        self.config = config or EventStreamConfig()
        self.client = client

    async def connect(self) -> bool:
        """Open the Redis connection; returns False (stream disabled) when Redis is unreachable."""
        if self.client is not None:
            return True
        client = redis.Redis(
            host=self.config.host, port=self.config.port, db=self.config.db, decode_responses=True
        )
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.error(f"Failed to connect to Redis: {e}. Event streaming disabled.")
            await client.aclose()
            return False
        self.client = client
        logger.info(f"Connected to Redis at {self.config.host}:{self.config.port} for event streaming.")
        return True

    def attach(self, event_bus: EventBus) -> None:
        event_bus.subscribe(ALL_EVENTS, self.handle_event)

    def detach(self, event_bus: EventBus) -> None:
        event_bus.unsubscribe(ALL_EVENTS, self.handle_event)

    async def handle_event(self, event: WorkflowEvent) -> None:
        if self.client is None:
            logger.warning(f"Redis client not available, dropping event {event.event_id}.")
            return
        data = {"data": json.dumps(event.to_wire())}
        try:
            await self.client.xadd(f"{self.config.stream_prefix}:all", data)
            await self.client.xadd(f"{self.config.stream_prefix}:{event.event_type}", data)
            logger.info(f"Streamed {event.event_type} event {event.event_id}")
        except (RedisError, OSError) as e:
            logger.error(f"Failed to stream event {event.event_id}: {e}")

    async def close(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None
            logger.info("Redis connection closed.")
