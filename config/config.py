"""
Configuration classes for the food-cart workflow core.
Defaults are overridable from the environment (a project-level ``.env`` is
loaded by ``utils.env``).
"""

import os
from dataclasses import dataclass, field

from utils.env import env_flag, env_float, env_int


@dataclass
class StockThresholdConfig:
    # Ratios of target stock separating the low / medium / good bands
    low_ratio: float = 0.5
    good_ratio: float = 0.8

    def __post_init__(self):
        if not 0 <= self.low_ratio <= self.good_ratio:
            raise ValueError("low_ratio must be between 0 and good_ratio")

    @classmethod
    def from_env(cls) -> "StockThresholdConfig":
        return cls(
            low_ratio=env_float("STOCK_LOW_RATIO", cls.low_ratio),
            good_ratio=env_float("STOCK_GOOD_RATIO", cls.good_ratio),
        )


@dataclass
class GatewayConfig:
    base_url: str = "http://localhost:1900"
    timeout_seconds: float = 10.0

    @classmethod
    def from_env(cls) -> "GatewayConfig":
        return cls(
            base_url=os.getenv("API_BASE_URL", cls.base_url),
            timeout_seconds=env_float("API_TIMEOUT_SECONDS", cls.timeout_seconds),
        )


@dataclass
class EventStreamConfig:
    enabled: bool = False
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    stream_prefix: str = "workflow-events"

    @classmethod
    def from_env(cls) -> "EventStreamConfig":
        return cls(
            enabled=env_flag("EVENT_STREAM_ENABLED", cls.enabled),
            host=os.getenv("REDIS_HOST", cls.host),
            port=env_int("REDIS_PORT", cls.port),
            db=env_int("REDIS_DB", cls.db),
            stream_prefix=os.getenv("EVENT_STREAM_PREFIX", cls.stream_prefix),
        )


@dataclass
class ServiceConfig:
    host: str = "0.0.0.0"
    port: int = 1900
    seed_fixtures: bool = True
    thresholds: StockThresholdConfig = field(default_factory=StockThresholdConfig)
    event_stream: EventStreamConfig = field(default_factory=EventStreamConfig)

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        return cls(
            host=os.getenv("SERVICE_HOST", cls.host),
            port=env_int("SERVICE_PORT", cls.port),
            seed_fixtures=env_flag("SEED_FIXTURES", cls.seed_fixtures),
            thresholds=StockThresholdConfig.from_env(),
            event_stream=EventStreamConfig.from_env(),
        )


# Example usage:
# config = ServiceConfig.from_env()
# ledger = InventoryLedger(thresholds=config.thresholds)
