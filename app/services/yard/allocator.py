"""
Slot Allocator - choose where an arriving container is stacked.

Ground-first placement: lower tiers are cheaper to retrieve later, so every
empty ground slot is used before anything is stacked. Within a tier, bays and
rows are filled in ascending order.
"""
import logging
from typing import List

from app.services.yard.errors import YardFull
from app.services.yard.snapshot import Slot, YardSnapshot


logger = logging.getLogger(__name__)


def placement_order(slot: Slot):
    return (slot.tier, slot.bay, slot.row, slot.key.yard, slot.key.block)


def valid_placements(snapshot: YardSnapshot) -> List[Slot]:
    """Empty slots that satisfy the gravity constraint, best first."""
    candidates = [s for s in snapshot.empty_slots() if snapshot.is_supported(s)]
    candidates.sort(key=placement_order)
    return candidates


def allocate(snapshot: YardSnapshot, is_reefer: bool = False) -> Slot:
    """
    Pick the slot for a drop-off.

    ``is_reefer`` is accepted for zone-aware placement; reefer rows are not
    yet distinguished so it does not change the choice.

    Raises:
        YardFull: no empty slot satisfies the gravity constraint
    """
    candidates = valid_placements(snapshot)
    if not candidates:
        raise YardFull(
            "YARD FULL! No valid slots available.",
            details={"total_slots": len(snapshot), "empty_slots": len(snapshot.empty_slots())},
        )

    chosen = candidates[0]
    logger.debug(f"Allocated {chosen.key} (reefer={is_reefer}) out of {len(candidates)} candidates")
    return chosen
