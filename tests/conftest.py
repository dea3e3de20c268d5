import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path to allow `import workflow`, `import utils`, etc.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from connectors import fleet_fixtures  # noqa: E402
from utils.event_bus import EventBus  # noqa: E402
from workflow.allocator import AssignmentAllocator  # noqa: E402
from workflow.catalog import ComboCatalog  # noqa: E402
from workflow.ledger import InventoryLedger  # noqa: E402
from workflow.lifecycle import PrepLifecycle, RefillLifecycle  # noqa: E402
from workflow.registry import ResourceRegistry  # noqa: E402


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def ledger():
    return InventoryLedger()


@pytest.fixture
def registry():
    return ResourceRegistry()


@pytest.fixture
def catalog(ledger):
    return ComboCatalog(ledger)


@pytest.fixture
def seeded(ledger, registry, catalog):
    """Ledger, registry and catalogue loaded with the sample fleet."""
    fleet_fixtures.seed(ledger, registry, catalog)
    return ledger, registry, catalog


@pytest.fixture
def allocator(seeded, event_bus):
    ledger, registry, catalog = seeded
    return AssignmentAllocator(ledger, registry, catalog, event_bus)


@pytest.fixture
def refills(seeded, event_bus):
    return RefillLifecycle(seeded[0], event_bus)


@pytest.fixture
def preps(seeded, event_bus):
    return PrepLifecycle(seeded[0], event_bus)
