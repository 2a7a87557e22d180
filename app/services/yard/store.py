"""
Yard Store - persistence port used by the event processor.

``commit_plan`` is the only write path for slot occupancy. Implementations
must apply the slot mutation, append the move plan and complete the event as
one atomic unit, re-validating the mutation against current state first
(compare-and-commit) and raising ``AllocationConflict`` when it is stale.
"""
import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Protocol

from app.models.yard import EventStatus
from app.services.yard.errors import COMMIT_FAILED, AllocationConflict, YardPlanningError
from app.services.yard.move_plan import MovePlan, PlanningEvent, SlotMutation
from app.services.yard.snapshot import Slot, SlotKey


class YardStore(Protocol):

    async def list_slots(self) -> List[Slot]:
        """All slots ordered by (yard, block, bay, row, tier)."""
        ...

    async def create_event(self, event: PlanningEvent, preplanning: Optional[dict] = None) -> int:
        """Record a submitted event in PROCESSING and return its id."""
        ...

    async def commit_plan(self, event_id: int, mutation: SlotMutation, plan: MovePlan, attempts: int) -> None:
        ...

    async def mark_failed(self, event_id: int, kind: str, reason: str, attempts: int) -> None:
        ...


def validate_mutation(
    mutation: SlotMutation,
    current: Optional[Slot],
    below: Optional[Slot],
    above: Optional[Slot],
) -> None:
    """
    Re-check a mutation against the slot and its neighbours as they are now.

    Raises:
        AllocationConflict: the slot or container was claimed in the meantime
    """
    if current is None:
        raise AllocationConflict(f"Slot {mutation.key} no longer exists")

    if current.container_id != mutation.expected_container_id:
        raise AllocationConflict(
            f"Slot {mutation.key} holds {current.container_id!r}, expected {mutation.expected_container_id!r}",
            details={"slot": str(mutation.key), "found": current.container_id},
        )

    if mutation.is_placement:
        if mutation.key.tier > 1 and (below is None or below.is_empty):
            raise AllocationConflict(f"Slot {mutation.key} lost its support")
    elif above is not None and not above.is_empty:
        raise AllocationConflict(
            f"Container {mutation.expected_container_id} is now under {above.container_id}",
            details={"slot": str(mutation.key), "blocked_by": above.container_id},
        )


@dataclass
class StoredEvent:
    event: PlanningEvent
    status: str = EventStatus.PROCESSING.value
    failure_kind: Optional[str] = None
    failure_reason: Optional[str] = None
    attempts: int = 0
    plans: List[MovePlan] = field(default_factory=list)
    preplanning: Optional[dict] = None


class InMemoryYardStore:
    """
    Dict-backed store for simulations and tests.

    Commits are serialized by an ``asyncio.Lock``; snapshot reads yield to
    the event loop so concurrent events genuinely interleave.
    """

    def __init__(self, slots: Iterable[Slot] = ()):
        self.slots: Dict[SlotKey, Slot] = {s.key: s for s in slots}
        self.events: Dict[int, StoredEvent] = {}
        self.plans: List[MovePlan] = []
        self._next_id = 1
        self._lock = asyncio.Lock()

    async def list_slots(self) -> List[Slot]:
        await asyncio.sleep(0)
        return [self.slots[k] for k in sorted(self.slots)]

    async def create_event(self, event: PlanningEvent, preplanning: Optional[dict] = None) -> int:
        event_id = self._next_id
        self._next_id += 1
        self.events[event_id] = StoredEvent(event=replace(event, event_id=event_id), preplanning=preplanning)
        return event_id

    async def commit_plan(self, event_id: int, mutation: SlotMutation, plan: MovePlan, attempts: int) -> None:
        async with self._lock:
            stored = self.events[event_id]
            if stored.status != EventStatus.PROCESSING.value:
                raise YardPlanningError(f"Event {event_id} is no longer PROCESSING", error_code=COMMIT_FAILED)
            validate_mutation(
                mutation,
                self.slots.get(mutation.key),
                self.slots.get(mutation.key.below()),
                self.slots.get(mutation.key.above()),
            )
            self.apply_slot_mutation(mutation)
            self.append_move_plan(stored, plan)
            stored.status = EventStatus.COMPLETED.value
            stored.attempts = attempts

    def apply_slot_mutation(self, mutation: SlotMutation) -> None:
        current = self.slots[mutation.key]
        self.slots[mutation.key] = replace(
            current,
            container_id=mutation.new_container_id,
            time=datetime.now(timezone.utc),
            **mutation.attributes,
        )

    def append_move_plan(self, stored: StoredEvent, plan: MovePlan) -> None:
        stored.plans.append(plan)
        self.plans.append(plan)

    async def mark_failed(self, event_id: int, kind: str, reason: str, attempts: int) -> None:
        stored = self.events[event_id]
        if stored.status != EventStatus.PROCESSING.value:
            return
        stored.status = EventStatus.FAILED.value
        stored.failure_kind = kind
        stored.failure_reason = reason
        stored.attempts = attempts
