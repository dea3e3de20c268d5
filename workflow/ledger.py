"""
Inventory ledger: the single owner of stock counters for raw materials,
prepared food and per-rider cart inventory.
"""

import asyncio
import logging

from config.config import StockThresholdConfig
from models.enums import MovementKind
from models.events import StockMovement
from models.inventory import CART_PREFIX, FoodItem, StockReportRow

from .exceptions import InsufficientStockError, UnknownEntityError
from .validation import require_id, require_positive_int

logger = logging.getLogger(__name__)


class InventoryLedger:
    """
    Holds per-item stock and applies reserve / release / restock atomically.

    Mutations on one item are serialised by that item's lock; different items
    proceed independently. Stock never goes below zero. Callers get copies of
    the items, never the live records.
    """

    def __init__(self, thresholds: StockThresholdConfig | None = None):
        self.thresholds = thresholds or StockThresholdConfig()
        self._items: dict[str, FoodItem] = {}
        # item id -> reference id -> reserved quantity not yet released or consumed
        self._outstanding: dict[str, dict[str | None, int]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self.movements: list[StockMovement] = []

    # --- Registration & reads ---

    def register_item(self, item: FoodItem) -> FoodItem:
        """Add a food item, or replace its catalogue fields if it already exists."""
        if item.id in self._items:
            logger.warning(f"Re-registering food item {item.id}; stock reset to {item.stock}")
        self._items[item.id] = item.model_copy()
        self._outstanding.setdefault(item.id, {})
        logger.info(f"Registered food item {item.id} ({item.name}) with stock {item.stock}")
        return item.model_copy()

    def has_item(self, item_id: str) -> bool:
        return item_id in self._items

    def get_item(self, item_id: str) -> FoodItem:
        return self._get(item_id).model_copy()

    def stock(self, item_id: str) -> int:
        return self._get(item_id).stock

    def items(self, include_carts: bool = False) -> list[FoodItem]:
        return [
            item.model_copy()
            for item_id, item in self._items.items()
            if include_carts or not item_id.startswith(f"{CART_PREFIX}:")
        ]

    def snapshot(self) -> dict[str, int]:
        """Stock per item id, carts included."""
        return {item_id: item.stock for item_id, item in self._items.items()}

    def outstanding(self, item_id: str, reference_id: str | None = None) -> int:
        """Reserved quantity still open on an item, for one reference or in total."""
        by_reference = self._outstanding.get(item_id, {})
        if reference_id is not None:
            return by_reference.get(reference_id, 0)
        return sum(by_reference.values())

    def cart_stock(self, rider_id: str) -> dict[str, int]:
        """Stock on one rider's cart, keyed by food item id."""
        prefix = f"{CART_PREFIX}:{rider_id}:"
        return {
            item_id[len(prefix):]: item.stock
            for item_id, item in self._items.items()
            if item_id.startswith(prefix)
        }

    def stock_report(self) -> list[StockReportRow]:
        """Stock band of every kitchen item (carts excluded)."""
        rows = []
        for item in self.items():
            rows.append(
                StockReportRow(
                    item_id=item.id,
                    name=item.name,
                    stock=item.stock,
                    target_stock=item.target_stock,
                    min_threshold=item.min_threshold,
                    state=item.get_state(self.thresholds.low_ratio, self.thresholds.good_ratio),
                )
            )
        return rows

    # --- Mutations ---

    async def reserve(self, item_id: str, quantity: int, reference_id: str | None = None) -> StockMovement:
        """
        Take ``quantity`` out of stock. Raises InsufficientStockError, leaving
        stock untouched, when the item does not hold that much.
        """
        require_id(item_id, "item_id")
        require_positive_int(quantity)
        async with self._lock(item_id):
            item = self._get(item_id)
            if quantity > item.stock:
                logger.info(f"Reserve refused for {item_id}: requested {quantity}, stock {item.stock}")
                raise InsufficientStockError(
                    f"Insufficient stock for {item_id}: requested {quantity}, available {item.stock}",
                    item_id=item_id,
                    requested=quantity,
                    available=item.stock,
                )
            item.stock -= quantity
            by_reference = self._outstanding.setdefault(item_id, {})
            by_reference[reference_id] = by_reference.get(reference_id, 0) + quantity
            return self._record(item_id, MovementKind.RESERVED, quantity, item.stock, reference_id)

    async def release(self, item_id: str, quantity: int, reference_id: str | None = None) -> StockMovement:
        """
        Hand reserved stock back. The release is matched against what
        ``reference_id`` reserved; anything beyond that is clamped off and the
        movement flagged inconsistent. It never fails the caller.
        """
        require_id(item_id, "item_id")
        require_positive_int(quantity)
        async with self._lock(item_id):
            item = self._get(item_id)
            applied, consistent = self._settle(item_id, quantity, reference_id, "release")
            item.stock += applied
            return self._record(item_id, MovementKind.RELEASED, applied, item.stock, reference_id, consistent)

    async def consume(self, item_id: str, quantity: int, reference_id: str | None = None) -> StockMovement:
        """
        Mark reserved stock as used up. Stock is unchanged; the reservation
        simply stops being releasable.
        """
        require_id(item_id, "item_id")
        require_positive_int(quantity)
        async with self._lock(item_id):
            item = self._get(item_id)
            applied, consistent = self._settle(item_id, quantity, reference_id, "consume")
            return self._record(item_id, MovementKind.CONSUMED, applied, item.stock, reference_id, consistent)

    async def write_off(self, item_id: str, quantity: int, reference_id: str | None = None) -> StockMovement:
        """Remove on-hand stock that was never reserved, e.g. a prepared batch revised down."""
        require_id(item_id, "item_id")
        require_positive_int(quantity)
        async with self._lock(item_id):
            item = self._get(item_id)
            if quantity > item.stock:
                raise InsufficientStockError(
                    f"Cannot write off {quantity} x {item_id}: only {item.stock} on hand",
                    item_id=item_id,
                    requested=quantity,
                    available=item.stock,
                )
            item.stock -= quantity
            return self._record(item_id, MovementKind.WRITTEN_OFF, quantity, item.stock, reference_id)

    async def restock(
        self,
        item_id: str,
        quantity: int,
        reference_id: str | None = None,
        name: str | None = None,
    ) -> StockMovement:
        """Add newly arrived goods. Cart items are created on their first restock."""
        require_id(item_id, "item_id")
        require_positive_int(quantity)
        async with self._lock(item_id):
            if item_id not in self._items and item_id.startswith(f"{CART_PREFIX}:"):
                self._items[item_id] = FoodItem(id=item_id, name=name or item_id)
                self._outstanding[item_id] = {}
            item = self._get(item_id)
            item.stock += quantity
            return self._record(item_id, MovementKind.RESTOCKED, quantity, item.stock, reference_id)

    # --- Internals ---

    def _get(self, item_id: str) -> FoodItem:
        try:
            return self._items[item_id]
        except KeyError:
            raise UnknownEntityError(f"Unknown food item {item_id}", item_id=item_id) from None

    def _settle(self, item_id: str, quantity: int, reference_id: str | None, action: str) -> tuple[int, bool]:
        """Draw ``quantity`` off the reference's reservation; returns (applied, consistent)."""
        by_reference = self._outstanding.setdefault(item_id, {})
        outstanding = by_reference.get(reference_id, 0)
        applied = min(quantity, outstanding)
        consistent = applied == quantity
        if not consistent:
            logger.warning(
                f"Inconsistent {action} on {item_id}: {quantity} requested but only {outstanding} "
                f"outstanding for reference {reference_id}; clamped to {applied}"
            )
        if outstanding - applied:
            by_reference[reference_id] = outstanding - applied
        else:
            by_reference.pop(reference_id, None)
        return applied, consistent

    def _lock(self, item_id: str) -> asyncio.Lock:
        lock = self._locks.get(item_id)
        if lock is None:
            lock = self._locks[item_id] = asyncio.Lock()
        return lock

    def _record(
        self,
        item_id: str,
        kind: MovementKind,
        quantity: int,
        stock_after: int,
        reference_id: str | None,
        consistent: bool = True,
    ) -> StockMovement:
        movement = StockMovement(
            item_id=item_id,
            kind=kind,
            quantity=quantity,
            stock_after=stock_after,
            reference_id=reference_id,
            consistent=consistent,
        )
        self.movements.append(movement)
        logger.info(f"Ledger {kind.value} {quantity} x {item_id} (ref {reference_id}); stock now {stock_after}")
        return movement
