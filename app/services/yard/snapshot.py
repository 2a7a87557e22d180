"""
Yard Snapshot - immutable point-in-time view of every slot.

Slots are keyed by (yard, block, bay, row, tier). The snapshot indexes
them by key and by container id so the allocator and locator never need
to scan for neighbours.
"""
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Optional, Tuple


GATE_IN = "GATE_IN"
GATE_OUT = "GATE_OUT"

# Classification flags carried by a container and copied onto its slot
CONTAINER_FLAGS = (
    "is_import",
    "is_export",
    "is_reefer",
    "is_hazard",
    "is_dry",
    "is_inter_transhipment",
    "is_intra_transhipment",
)


def format_sid(yard: str, block: str, bay: int, row: int) -> str:
    """Symbolic id of a stack column, e.g. ``Y1-A-01-03``."""
    return f"{yard}-{block}-{bay:02d}-{row:02d}"


@dataclass(frozen=True, order=True)
class SlotKey:
    yard: str
    block: str
    bay: int
    row: int
    tier: int

    @property
    def sid(self) -> str:
        return format_sid(self.yard, self.block, self.bay, self.row)

    def below(self) -> Optional["SlotKey"]:
        if self.tier <= 1:
            return None
        return SlotKey(self.yard, self.block, self.bay, self.row, self.tier - 1)

    def above(self) -> "SlotKey":
        return SlotKey(self.yard, self.block, self.bay, self.row, self.tier + 1)

    def __str__(self) -> str:
        return f"{self.sid}/T{self.tier}"


@dataclass(frozen=True)
class Slot:
    """A physical position and its occupant at snapshot time."""
    key: SlotKey
    container_id: Optional[str] = None
    size_ft: int = 40
    is_import: int = 0
    is_export: int = 0
    is_reefer: int = 0
    is_hazard: int = 0
    is_dry: int = 1
    is_inter_transhipment: int = 0
    is_intra_transhipment: int = 0
    weight_kg: float = 0.0
    time: Optional[datetime] = None

    @property
    def is_empty(self) -> bool:
        return self.container_id is None

    @property
    def tier(self) -> int:
        return self.key.tier

    @property
    def bay(self) -> int:
        return self.key.bay

    @property
    def row(self) -> int:
        return self.key.row

    @property
    def block(self) -> str:
        return self.key.block

    @property
    def sid(self) -> str:
        return self.key.sid

    @classmethod
    def from_record(cls, record) -> "Slot":
        """Build from any object exposing the slot columns (ORM row, dict-like namespace)."""
        key = SlotKey(record.yard, record.block, int(record.bay), int(record.row), int(record.tier))
        values = {
            f.name: getattr(record, f.name)
            for f in fields(cls)
            if f.name != "key" and hasattr(record, f.name)
        }
        return cls(key=key, **values)

    def as_dict(self) -> dict:
        data = {
            "yard": self.key.yard,
            "block": self.key.block,
            "bay": self.key.bay,
            "row": self.key.row,
            "tier": self.key.tier,
        }
        data.update({f.name: getattr(self, f.name) for f in fields(self) if f.name != "key"})
        return data


@dataclass(frozen=True)
class YardSnapshot:
    """Read-only copy of all slots, ordered by (yard, block, bay, row, tier)."""
    slots: Tuple[Slot, ...]
    taken_at: Optional[datetime] = None
    _by_key: Dict[SlotKey, Slot] = field(init=False, repr=False, compare=False)
    _by_container: Dict[str, Slot] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        ordered = tuple(sorted(self.slots, key=lambda s: s.key))
        by_key: Dict[SlotKey, Slot] = {}
        by_container: Dict[str, Slot] = {}
        for slot in ordered:
            if slot.key in by_key:
                raise ValueError(f"Duplicate slot position {slot.key}")
            by_key[slot.key] = slot
            # First match wins when ids are (wrongly) duplicated
            if slot.container_id is not None and slot.container_id not in by_container:
                by_container[slot.container_id] = slot
        object.__setattr__(self, "slots", ordered)
        object.__setattr__(self, "_by_key", by_key)
        object.__setattr__(self, "_by_container", by_container)

    @classmethod
    def of(cls, slots: Iterable[Slot], taken_at: Optional[datetime] = None) -> "YardSnapshot":
        return cls(slots=tuple(slots), taken_at=taken_at)

    def __iter__(self) -> Iterator[Slot]:
        return iter(self.slots)

    def __len__(self) -> int:
        return len(self.slots)

    def get(self, key: Optional[SlotKey]) -> Optional[Slot]:
        if key is None:
            return None
        return self._by_key.get(key)

    def slot_below(self, slot: Slot) -> Optional[Slot]:
        return self.get(slot.key.below())

    def slot_above(self, slot: Slot) -> Optional[Slot]:
        return self.get(slot.key.above())

    def find_container(self, container_id: str) -> Optional[Slot]:
        return self._by_container.get(container_id)

    def empty_slots(self) -> List[Slot]:
        return [s for s in self.slots if s.is_empty]

    def occupied_slots(self) -> List[Slot]:
        return [s for s in self.slots if not s.is_empty]

    def is_supported(self, slot: Slot) -> bool:
        """Tier 1 rests on the ground; higher tiers need an occupied slot below."""
        if slot.tier == 1:
            return True
        below = self.slot_below(slot)
        return below is not None and not below.is_empty

    def gravity_violations(self) -> List[Slot]:
        """Occupied slots resting on an empty (or missing) slot."""
        return [s for s in self.slots if not s.is_empty and not self.is_supported(s)]
