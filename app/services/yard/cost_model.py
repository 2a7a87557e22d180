"""
Cost Models - turn move endpoints into durations, distances and equipment.

The move plan builder only depends on the ``CostModel`` contract, so tests
can use the deterministic ``FixedCostModel`` while simulations use
``CoordinateCostModel`` or the demo ``RandomCostModel``.
"""
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

from app.services.yard.snapshot import Slot


GATE_ZONE = "GATE"


@dataclass(frozen=True)
class Endpoint:
    """One end of a move: a yard slot or a symbolic gate."""
    sid: str
    tier: int
    slot: Optional[Slot] = None

    @property
    def is_gate(self) -> bool:
        return self.slot is None

    @property
    def zone_id(self) -> str:
        if self.slot is None:
            return GATE_ZONE
        return f"BLOCK_{self.slot.block}"


@dataclass(frozen=True)
class MoveCost:
    duration_s: float
    distance_crane: float
    crane_id: str
    distance_internal_truck: float
    distance_external_truck: float


class CostModel(ABC):
    """Contract: estimate(origin, destination, equipment_hint) -> MoveCost."""

    @abstractmethod
    def estimate(self, origin: Endpoint, destination: Endpoint, equipment_hint: Optional[str] = None) -> MoveCost:
        ...

    def __call__(self, origin: Endpoint, destination: Endpoint, equipment_hint: Optional[str] = None) -> MoveCost:
        return self.estimate(origin, destination, equipment_hint)


class FixedCostModel(CostModel):
    """Same figures for every move."""

    def __init__(
        self,
        crane_id: str = "RTG-AUTO-01",
        duration_s: float = 15.0,
        distance_crane: float = 50.0,
        distance_internal_truck: float = 120.5,
        distance_external_truck: float = 50.0,
    ):
        self.cost = MoveCost(
            duration_s=duration_s,
            distance_crane=distance_crane,
            crane_id=crane_id,
            distance_internal_truck=distance_internal_truck,
            distance_external_truck=distance_external_truck,
        )

    def estimate(self, origin, destination, equipment_hint=None) -> MoveCost:
        return self.cost


class RandomCostModel(CostModel):
    """Demo figures: 15-25 s moves and a crane distance below 100 m."""

    def __init__(self, crane_id: str = "RTG-AUTO-01", seed: Optional[int] = None):
        self.crane_id = crane_id
        self.rng = random.Random(seed)

    def estimate(self, origin, destination, equipment_hint=None) -> MoveCost:
        return MoveCost(
            duration_s=15.0 + self.rng.random() * 10,
            distance_crane=float(self.rng.randrange(100)),
            crane_id=self.crane_id,
            distance_internal_truck=120.5,
            distance_external_truck=50.0,
        )


class CoordinateCostModel(CostModel):
    """
    Distances derived from slot coordinates.

    Layout: blocks sit side by side along the quay axis, each ``block_length_m``
    long; bay 1 of every block faces the truck lane; the gate is
    ``gate_offset_m`` in front of block A. One RTG crane per block parks over
    bay 1 and travels gantry (bays), trolley (rows) and hoist (tiers).
    """

    def __init__(
        self,
        default_crane_id: str = "RTG-AUTO-01",
        crane_ids: Optional[Dict[str, str]] = None,
        bay_pitch_m: float = 12.5,
        row_pitch_m: float = 2.8,
        tier_height_m: float = 2.9,
        block_length_m: float = 80.0,
        gate_offset_m: float = 50.0,
        crane_speed_mps: float = 1.5,
        truck_speed_mps: float = 5.0,
        handling_s: float = 10.0,
    ):
        self.default_crane_id = default_crane_id
        self.crane_ids = crane_ids or {}
        self.bay_pitch_m = bay_pitch_m
        self.row_pitch_m = row_pitch_m
        self.tier_height_m = tier_height_m
        self.block_length_m = block_length_m
        self.gate_offset_m = gate_offset_m
        self.crane_speed_mps = crane_speed_mps
        self.truck_speed_mps = truck_speed_mps
        self.handling_s = handling_s

    def _block_offset(self, block: str) -> float:
        index = ord(block[0].upper()) - ord("A") if block else 0
        return max(index, 0) * self.block_length_m

    def estimate(self, origin, destination, equipment_hint=None) -> MoveCost:
        slot = origin.slot or destination.slot
        if slot is None:
            # Gate to gate: nothing is lifted
            return MoveCost(self.handling_s, 0.0, self.default_crane_id, 0.0, 0.0)

        gantry = (slot.bay - 1) * self.bay_pitch_m
        trolley = slot.row * self.row_pitch_m
        hoist = 2 * slot.tier * self.tier_height_m
        distance_crane = round(gantry + trolley + hoist, 2)

        distance_external = round(self.gate_offset_m + self._block_offset(slot.block), 2)
        distance_internal = round(gantry, 2)

        duration = (
            self.handling_s
            + distance_crane / self.crane_speed_mps
            + distance_internal / self.truck_speed_mps
        )
        crane_id = self.crane_ids.get(equipment_hint, self.default_crane_id)
        return MoveCost(
            duration_s=round(duration, 2),
            distance_crane=distance_crane,
            crane_id=crane_id,
            distance_internal_truck=distance_internal,
            distance_external_truck=distance_external,
        )


def build_cost_model(name: str, crane_id: str = "RTG-AUTO-01", seed: Optional[int] = None) -> CostModel:
    """Instantiate a cost model by its configuration name."""
    name = name.lower()
    if name == "fixed":
        return FixedCostModel(crane_id=crane_id)
    if name == "random":
        return RandomCostModel(crane_id=crane_id, seed=seed)
    if name == "coordinate":
        return CoordinateCostModel(default_crane_id=crane_id)
    raise ValueError(f"Unknown cost model '{name}'")
