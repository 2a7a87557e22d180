"""
Yard Planning Engine

Allocates storage slots for arriving containers and plans truck moves:
- YardSnapshot: Immutable point-in-time view of every slot
- allocate / locate: Pure slot selection and container lookup
- CostModel: Pluggable distance/duration/equipment estimation
- MovePlanBuilder: Composes the move plan and the slot mutation to commit
- EventProcessor: Event lifecycle with compare-and-commit against a YardStore
"""

from app.services.yard.allocator import allocate
from app.services.yard.cost_model import (
    CostModel, CoordinateCostModel, FixedCostModel, RandomCostModel, build_cost_model
)
from app.services.yard.errors import (
    YardPlanningError, YardFull, ContainerNotFound, ContainerBlocked, AllocationConflict, GravityViolation
)
from app.services.yard.event_processor import EventProcessor, ProcessingResult
from app.services.yard.locator import locate
from app.services.yard.move_plan import MovePlan, MovePlanBuilder, PlanningEvent, SlotMutation
from app.services.yard.snapshot import Slot, SlotKey, YardSnapshot
from app.services.yard.store import InMemoryYardStore, YardStore

__all__ = [
    "allocate",
    "locate",
    "CostModel",
    "CoordinateCostModel",
    "FixedCostModel",
    "RandomCostModel",
    "build_cost_model",
    "YardPlanningError",
    "YardFull",
    "ContainerNotFound",
    "ContainerBlocked",
    "AllocationConflict",
    "GravityViolation",
    "EventProcessor",
    "ProcessingResult",
    "MovePlan",
    "MovePlanBuilder",
    "PlanningEvent",
    "SlotMutation",
    "Slot",
    "SlotKey",
    "YardSnapshot",
    "InMemoryYardStore",
    "YardStore",
]
