"""
Combo catalogue: bundles of food items, expanded into item quantities when
an allocation names combos.
"""

import logging
from collections import defaultdict
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from models.inventory import Combo, ComboLine, ItemLine

from .exceptions import UnknownEntityError, ValidationError
from .ledger import InventoryLedger

logger = logging.getLogger(__name__)


class ComboCatalog:
    def __init__(self, ledger: InventoryLedger):
        self.ledger = ledger
        self._combos: dict[str, Combo] = {}

    def add(self, combo: Combo) -> Combo:
        if combo.id in self._combos:
            raise ValidationError(f"Combo {combo.id} already exists", combo_id=combo.id)
        self._check_components(combo)
        self._combos[combo.id] = combo.model_copy(deep=True)
        logger.info(f"Added combo {combo.id} ({combo.name}) with {len(combo.items)} components")
        return self.get(combo.id)

    def update(self, combo_id: str, **changes: Any) -> Combo:
        current = self._get(combo_id)
        changes.pop("id", None)
        data = current.model_dump()
        data.update(changes)
        try:
            updated = Combo.model_validate(data)
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid combo update for {combo_id}: {exc.error_count()} error(s)", combo_id=combo_id) from exc
        self._check_components(updated)
        self._combos[combo_id] = updated
        logger.info(f"Updated combo {combo_id}: {sorted(changes)}")
        return self.get(combo_id)

    def remove(self, combo_id: str) -> Combo:
        combo = self._get(combo_id)
        del self._combos[combo_id]
        logger.info(f"Removed combo {combo_id}")
        return combo

    def get(self, combo_id: str) -> Combo:
        return self._get(combo_id).model_copy(deep=True)

    def list_combos(self) -> list[Combo]:
        return [c.model_copy(deep=True) for c in self._combos.values()]

    def expand(self, lines: list[ComboLine]) -> list[ItemLine]:
        """Flatten combo lines into food-item lines, summing repeated items."""
        totals: dict[str, int] = defaultdict(int)
        for line in lines:
            combo = self._get(line.combo_id)
            for component in combo.items:
                totals[component.food_item_id] += component.quantity * line.quantity
        return [ItemLine(food_item_id=item_id, quantity=qty) for item_id, qty in totals.items()]

    def _check_components(self, combo: Combo) -> None:
        if not combo.items:
            raise ValidationError(f"Combo {combo.id} must contain at least one item", combo_id=combo.id)
        for component in combo.items:
            if not self.ledger.has_item(component.food_item_id):
                raise UnknownEntityError(
                    f"Combo {combo.id} references unknown food item {component.food_item_id}",
                    combo_id=combo.id,
                    item_id=component.food_item_id,
                )

    def _get(self, combo_id: str) -> Combo:
        try:
            return self._combos[combo_id]
        except KeyError:
            raise UnknownEntityError(f"Unknown combo {combo_id}", combo_id=combo_id) from None
