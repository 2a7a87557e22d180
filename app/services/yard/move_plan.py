"""
Move Plan Builder - compose allocation/location and cost into a MovePlan.

Drop-off:  GATE_IN (tier 1)  -> allocated slot
Pick-up:   container's slot  -> GATE_OUT (tier 1)

The builder is pure: it returns the plan together with the slot mutation the
commit has to apply, and never touches shared state.
"""
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from app.models.yard import MoveType
from app.services.yard.allocator import allocate
from app.services.yard.cost_model import CostModel, Endpoint
from app.services.yard.locator import locate_for_retrieval
from app.services.yard.snapshot import CONTAINER_FLAGS, GATE_IN, GATE_OUT, SlotKey, YardSnapshot


Clock = Callable[[], datetime]


def utc_clock() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PlanningEvent:
    """The parts of a submitted event the planner needs."""
    event_id: Optional[int]
    truck_id: str
    container_id: str
    move_type: MoveType
    flags: Dict[str, int] = field(default_factory=dict)
    weight_kg: float = 0.0
    size_ft: int = 40
    time: Optional[datetime] = None

    @property
    def is_reefer(self) -> bool:
        return bool(self.flags.get("is_reefer"))

    @property
    def is_drop_off(self) -> bool:
        return self.move_type == MoveType.DROP_OFF


@dataclass(frozen=True)
class SlotMutation:
    """
    Occupancy change to apply at commit.

    ``expected_container_id`` is what the slot must still hold for the commit
    to go through: None for a drop-off target, the container for a pick-up.
    """
    key: SlotKey
    expected_container_id: Optional[str]
    new_container_id: Optional[str]
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_placement(self) -> bool:
        return self.new_container_id is not None


@dataclass(frozen=True)
class MovePlan:
    event_time: datetime
    start_time: float
    end_time: float
    container_id: str
    move_type: str
    from_sid: str
    from_tier: int
    to_sid: str
    to_tier: int
    distance_crane: float
    crane_id: str
    from_truck_zone_id: str
    to_truck_zone_id: str
    truck_id: str
    distance_internal_truck: float
    distance_external_truck: float

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PlannedMove:
    plan: MovePlan
    mutation: SlotMutation


def placement_attributes(event: PlanningEvent) -> Dict[str, Any]:
    """Slot columns written when the container is set down."""
    attributes: Dict[str, Any] = {name: int(event.flags.get(name, 0)) for name in CONTAINER_FLAGS}
    attributes["weight_kg"] = event.weight_kg
    return attributes


def cleared_attributes() -> Dict[str, Any]:
    attributes: Dict[str, Any] = {name: 0 for name in CONTAINER_FLAGS}
    attributes["is_dry"] = 1
    attributes["weight_kg"] = 0.0
    return attributes


class MovePlanBuilder:
    """Builds the move plan for one event against one snapshot."""

    def __init__(self, cost_model: CostModel):
        self.cost_model = cost_model

    def build(self, event: PlanningEvent, snapshot: YardSnapshot, clock: Clock = utc_clock) -> PlannedMove:
        """
        Raises:
            YardFull: drop-off with no valid slot
            ContainerNotFound: pick-up of a container not in the yard
            ContainerBlocked: pick-up of a container with another on top
        """
        if event.is_drop_off:
            target = allocate(snapshot, event.is_reefer)
            origin = Endpoint(sid=GATE_IN, tier=1)
            destination = Endpoint(sid=target.sid, tier=target.tier, slot=target)
            mutation = SlotMutation(
                key=target.key,
                expected_container_id=None,
                new_container_id=event.container_id,
                attributes=placement_attributes(event),
            )
            equipment_hint = target.block
        else:
            source = locate_for_retrieval(snapshot, event.container_id)
            origin = Endpoint(sid=source.sid, tier=source.tier, slot=source)
            destination = Endpoint(sid=GATE_OUT, tier=1)
            mutation = SlotMutation(
                key=source.key,
                expected_container_id=event.container_id,
                new_container_id=None,
                attributes=cleared_attributes(),
            )
            equipment_hint = source.block

        cost = self.cost_model(origin, destination, equipment_hint)
        plan = MovePlan(
            event_time=clock(),
            start_time=0.0,
            end_time=cost.duration_s,
            container_id=event.container_id,
            move_type=event.move_type.value,
            from_sid=origin.sid,
            from_tier=origin.tier,
            to_sid=destination.sid,
            to_tier=destination.tier,
            distance_crane=cost.distance_crane,
            crane_id=cost.crane_id,
            from_truck_zone_id=origin.zone_id,
            to_truck_zone_id=destination.zone_id,
            truck_id=event.truck_id,
            distance_internal_truck=cost.distance_internal_truck,
            distance_external_truck=cost.distance_external_truck,
        )
        return PlannedMove(plan=plan, mutation=mutation)
