"""
Wiring of the authoritative in-memory workflow stores.
"""

from dataclasses import dataclass, field

from config.config import ServiceConfig
from connectors import fleet_fixtures
from utils.event_bus import EventBus
from workflow.allocator import AssignmentAllocator
from workflow.catalog import ComboCatalog
from workflow.ledger import InventoryLedger
from workflow.lifecycle import PrepLifecycle, RefillLifecycle
from workflow.registry import ResourceRegistry


@dataclass
class WorkflowState:
    ledger: InventoryLedger
    registry: ResourceRegistry
    catalog: ComboCatalog
    allocator: AssignmentAllocator
    refills: RefillLifecycle
    preps: PrepLifecycle
    event_bus: EventBus = field(default_factory=EventBus)


def build_state(config: ServiceConfig | None = None, seed: bool | None = None) -> WorkflowState:
    """Create empty stores sharing one ledger and event bus, optionally seeded with fixtures."""
    config = config or ServiceConfig()
    event_bus = EventBus()
    ledger = InventoryLedger(thresholds=config.thresholds)
    registry = ResourceRegistry()
    catalog = ComboCatalog(ledger)
    state = WorkflowState(
        ledger=ledger,
        registry=registry,
        catalog=catalog,
        allocator=AssignmentAllocator(ledger, registry, catalog, event_bus),
        refills=RefillLifecycle(ledger, event_bus),
        preps=PrepLifecycle(ledger, event_bus),
        event_bus=event_bus,
    )
    if config.seed_fixtures if seed is None else seed:
        fleet_fixtures.seed(ledger, registry, catalog)
    return state
