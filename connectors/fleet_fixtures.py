"""
Module: connectors.fleet_fixtures

Sample fleet, kitchen stock and combos used to seed a fresh in-memory
workflow for demos and local runs.
"""

from models.enums import Availability, ResourceKind
from models.inventory import Combo, FoodItem, ItemLine
from models.resources import Resource
from workflow.catalog import ComboCatalog
from workflow.ledger import InventoryLedger
from workflow.registry import ResourceRegistry

FOOD_ITEMS = [
    FoodItem(id="poha", name="Poha", unit_label="plates", stock=45, target_stock=100, min_threshold=20),
    FoodItem(id="vada-pav", name="Vada Pav", unit_label="pieces", stock=25, target_stock=80, min_threshold=15),
    FoodItem(id="chai", name="Chai", unit_label="cups", stock=120, target_stock=150, min_threshold=30),
    FoodItem(id="water-bottle", name="Water Bottle", unit_label="bottles", stock=200, target_stock=200, min_threshold=50),
]

RESOURCES = [
    Resource(id="R001", kind=ResourceKind.RIDER, name="Mike Thompson"),
    Resource(id="R002", kind=ResourceKind.RIDER, name="Sarah Wilson"),
    Resource(id="R003", kind=ResourceKind.RIDER, name="David Chen"),
    Resource(id="R004", kind=ResourceKind.RIDER, name="Tom Wilson", availability=Availability.UNAVAILABLE),
    Resource(id="V001", kind=ResourceKind.VEHICLE, name="E-Cart 01"),
    Resource(id="V002", kind=ResourceKind.VEHICLE, name="E-Cart 02"),
    Resource(id="V003", kind=ResourceKind.VEHICLE, name="E-Cart 03", availability=Availability.UNAVAILABLE),
    Resource(id="B356938035643809", kind=ResourceKind.BATTERY, name="Lithium-ion 48V"),
    Resource(id="B356938035643810", kind=ResourceKind.BATTERY, name="Lithium-ion 48V"),
    Resource(id="RT-A", kind=ResourceKind.ROUTE, name="Downtown A"),
    Resource(id="RT-B", kind=ResourceKind.ROUTE, name="Suburban B"),
    Resource(id="RT-C", kind=ResourceKind.ROUTE, name="Beach C"),
    Resource(id="RT-D", kind=ResourceKind.ROUTE, name="University D"),
]

COMBOS = [
    Combo(
        id="breakfast",
        name="Breakfast Combo",
        price=60.0,
        items=[ItemLine(food_item_id="poha", quantity=1), ItemLine(food_item_id="chai", quantity=1)],
    ),
    Combo(
        id="snack",
        name="Snack Combo",
        price=45.0,
        items=[ItemLine(food_item_id="vada-pav", quantity=2), ItemLine(food_item_id="water-bottle", quantity=1)],
    ),
]


def seed(ledger: InventoryLedger, registry: ResourceRegistry, catalog: ComboCatalog | None = None) -> None:
    """Load the sample data into empty stores."""
    for item in FOOD_ITEMS:
        ledger.register_item(item)
    for resource in RESOURCES:
        registry.register(resource)
    if catalog is not None:
        for combo in COMBOS:
            catalog.add(combo)
