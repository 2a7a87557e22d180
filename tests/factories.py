"""Builders for yard slots and events used across the tests."""
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from app.models.yard import MoveType, YardSlot
from app.services.yard.move_plan import PlanningEvent
from app.services.yard.snapshot import Slot, SlotKey


EVENT_TIME = datetime(2026, 3, 1, 8, 30, tzinfo=timezone.utc)

Position = Tuple[str, int, int, int]


def fixed_clock() -> datetime:
    return EVENT_TIME


def make_slot(block: str, bay: int, row: int, tier: int, container_id: Optional[str] = None,
              yard: str = "Y1", **attributes) -> Slot:
    return Slot(key=SlotKey(yard, block, bay, row, tier), container_id=container_id, **attributes)


def make_grid(
    blocks: Iterable[str] = ("A",),
    bays: int = 1,
    rows: int = 1,
    tiers: int = 2,
    occupied: Optional[Dict[Position, str]] = None,
) -> List[Slot]:
    """Every (block, bay, row, tier) position; ``occupied`` maps positions to container ids."""
    occupied = occupied or {}
    return [
        make_slot(block, bay, row, tier, occupied.get((block, bay, row, tier)))
        for block in blocks
        for bay in range(1, bays + 1)
        for row in range(1, rows + 1)
        for tier in range(1, tiers + 1)
    ]


def make_event(container_id: str, move_type: MoveType = MoveType.DROP_OFF, truck_id: str = "TRK-001",
               event_id: Optional[int] = None, **flags) -> PlanningEvent:
    return PlanningEvent(
        event_id=event_id,
        truck_id=truck_id,
        container_id=container_id,
        move_type=move_type,
        flags=flags,
        weight_kg=24000.0,
        time=EVENT_TIME,
    )


def slot_rows(slots: Iterable[Slot]) -> List[YardSlot]:
    """ORM rows for the given slots."""
    rows = []
    for slot in slots:
        data = {k: v for k, v in slot.as_dict().items() if v is not None}
        data.setdefault("time", EVENT_TIME)
        rows.append(YardSlot(**data))
    return rows
