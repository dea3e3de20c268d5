"""
Walks one rider shift through the workflow core using the sample fleet:
allocate resources and food, raise a refill, prepare a batch, close the shift.

Run with: python -m demos.shift_workflow_demo
"""

import asyncio
import logging

from config.config import ServiceConfig
from models.enums import ActorRole, Availability, PrepStatus, RefillStatus
from models.events import WorkflowEvent
from models.inventory import ComboLine
from service.state import build_state
from utils.event_bus import ALL_EVENTS
from utils.logger import get_logger
from workflow.exceptions import ResourceContentionError, WorkflowError

logger = get_logger("shift-demo")


async def print_event(event: WorkflowEvent) -> None:
    logger.info(f"[event] {event.event_type} by {event.source.value}")


async def main():
    state = build_state(ServiceConfig(), seed=True)
    state.event_bus.subscribe(ALL_EVENTS, print_event)

    print("\n--- Allocating morning shift for R001 ---")
    assignment = await state.allocator.create_from_combos(
        "R001",
        "V001",
        "B356938035643809",
        "RT-A",
        items=[("water-bottle", 10)],
        combos=[ComboLine(combo_id="breakfast", quantity=20)],
    )
    for line in assignment.items:
        print(f"  {line.food_item_id}: {line.quantity}")

    print("\n--- A second supervisor tries to give V001 to R002 ---")
    try:
        await state.allocator.create("R002", "V001", "B356938035643810", "RT-B")
    except ResourceContentionError as e:
        print(f"  Refused: {e.message}")

    print("\n--- R001 runs low on chai ---")
    refill = await state.refills.create("R001", "chai", 15, reason="Morning rush", priority="high")
    await state.refills.transition(
        refill.id, ActorRole.SUPERVISOR, RefillStatus.FORWARDED, {"assignedCoordinatorId": "C1"}
    )
    await state.refills.transition(refill.id, ActorRole.REFILL_COORDINATOR, RefillStatus.IN_PROGRESS)
    refill = await state.refills.transition(refill.id, ActorRole.REFILL_COORDINATOR, RefillStatus.DELIVERED)
    print(f"  Refill {refill.status.value}; cart now {state.ledger.cart_stock('R001')}")

    print("\n--- Kitchen tops up poha ---")
    prep = await state.preps.create("K1", "poha", 40, priority="medium")
    await state.preps.transition(prep.id, ActorRole.COOK, PrepStatus.PROCESSING)
    await state.preps.transition(prep.id, ActorRole.COOK, PrepStatus.READY)
    await state.preps.consume(prep.id, ActorRole.SUPERVISOR)
    try:
        await state.preps.edit_quantity(prep.id, ActorRole.COOK, 50)
    except WorkflowError as e:
        print(f"  Late edit refused ({e.code})")

    print("\n--- Closing the shift; battery came back faulty ---")
    await state.allocator.complete(assignment.id, {"B356938035643809": Availability.UNAVAILABLE})

    print("\n--- Stock board ---")
    for row in state.ledger.stock_report():
        print(f"  {row.name:<14} {row.stock:>4} / {row.target_stock:<4} {row.state.value}")


if __name__ == "__main__":
    logging.getLogger("workflow").setLevel(logging.WARNING)
    asyncio.run(main())
