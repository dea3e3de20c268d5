"""
Inventory-related data models for the food-cart workflow.
Includes FoodItem, Combo and the stock report row.
"""

from pydantic import Field

from .base import WireModel
from .enums import StockState

CART_PREFIX = "cart"


def cart_item_id(rider_id: str, item_id: str) -> str:
    """Ledger key of a rider's on-cart stock for one food item."""
    return f"{CART_PREFIX}:{rider_id}:{item_id}"


class FoodItem(WireModel):
    """
    A stocked food item or raw material. ``stock`` is the quantity available to
    allocate and is only ever mutated through the inventory ledger.
    """

    id: str
    name: str
    unit_label: str = "units"
    stock: int = Field(default=0, ge=0)
    target_stock: int = Field(default=0, ge=0)
    min_threshold: int = Field(default=0, ge=0)

    def get_state(self, low_ratio: float = 0.5, good_ratio: float = 0.8) -> StockState:
        """Return the stock band based on current stock, target stock and the minimum threshold."""
        if self.stock <= self.min_threshold:
            return StockState.CRITICAL
        if self.stock <= self.target_stock * low_ratio:
            return StockState.LOW
        if self.stock >= self.target_stock * good_ratio:
            return StockState.GOOD
        return StockState.MEDIUM


class FoodSnapshot(WireModel):
    """Copy of the food item a prep request was raised for."""

    id: str
    name: str
    unit_label: str = "units"


class ItemLine(WireModel):
    """A (food item, quantity) pair."""

    food_item_id: str
    quantity: int = Field(gt=0)


class Combo(WireModel):
    """A sellable bundle of food items."""

    id: str
    name: str
    price: float = Field(default=0.0, ge=0)
    items: list[ItemLine] = Field(default_factory=list)


class ComboLine(WireModel):
    combo_id: str
    quantity: int = Field(gt=0)


class StockReportRow(WireModel):
    item_id: str
    name: str
    stock: int
    target_stock: int
    min_threshold: int
    state: StockState
