"""
Container Yard Schemas.

Pydantic schemas for the yard API including:
- Event intake and optional preplanning
- Action plan (move plan) responses
- Yard environment (slots) and manual slot updates
- Yard status statistics
"""
from datetime import datetime
from typing import TYPE_CHECKING, Optional, List, Dict, Any

from pydantic import BaseModel, Field, model_validator

from app.models.yard import MoveType

if TYPE_CHECKING:
    from app.services.yard.move_plan import PlanningEvent


# ============================================================================
# EVENT INTAKE SCHEMAS
# ============================================================================

class EventIntake(BaseModel):
    """Truck event as submitted by the gate system."""
    truck_id: str = Field(..., min_length=1, max_length=50)
    container_id: str = Field(..., min_length=1, max_length=30)
    is_import: int = Field(0, ge=0, le=1)
    is_export: int = Field(0, ge=0, le=1)
    is_inter_transhipment: int = Field(0, ge=0, le=1)
    is_intra_transhipment: int = Field(0, ge=0, le=1)
    is_reefer: int = Field(0, ge=0, le=1)
    is_hazard: int = Field(0, ge=0, le=1)
    is_dry: int = Field(0, ge=0, le=1)
    is_pick_up: int = Field(0, ge=0, le=1)
    is_drop_off: int = Field(0, ge=0, le=1)
    weight_kg: float = Field(0, ge=0)
    size_ft: int = Field(40, gt=0)
    time: datetime

    @model_validator(mode="after")
    def check_direction(self):
        if self.is_drop_off + self.is_pick_up != 1:
            raise ValueError("Exactly one of is_drop_off / is_pick_up must be 1")
        return self

    @property
    def move_type(self) -> MoveType:
        return MoveType.DROP_OFF if self.is_drop_off == 1 else MoveType.PICK_UP

    def to_planning_event(self) -> "PlanningEvent":
        from app.services.yard.move_plan import PlanningEvent
        from app.services.yard.snapshot import CONTAINER_FLAGS

        return PlanningEvent(
            event_id=None,
            truck_id=self.truck_id,
            container_id=self.container_id,
            move_type=self.move_type,
            flags={name: getattr(self, name) for name in CONTAINER_FLAGS},
            weight_kg=self.weight_kg,
            size_ft=self.size_ft,
            time=self.time,
        )


class PreplanningCreate(BaseModel):
    """Advisory placement submitted with an event."""
    container_id: str = Field(..., min_length=1, max_length=30)
    yard: str = Field("Y1", max_length=20)
    block: str = Field(..., max_length=20)
    bay: int = Field(..., ge=1)
    row: int = Field(..., ge=1)
    tier: int = Field(..., ge=1)
    time: datetime


class GetActionRequest(BaseModel):
    event: EventIntake
    preplanning: Optional[PreplanningCreate] = None


# ============================================================================
# RESPONSE SCHEMAS
# ============================================================================

class MovePlanResponse(BaseModel):
    """Response schema for a move plan."""
    id: int
    event_id: int
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

    class Config:
        from_attributes = True


class EventResponse(BaseModel):
    """Response schema for a yard event."""
    id: int
    truck_id: str
    container_id: str
    move_type: str
    status: str
    failure_kind: Optional[str] = None
    failure_reason: Optional[str] = None
    attempts: int
    weight_kg: float
    size_ft: int
    is_import: int
    is_export: int
    is_reefer: int
    is_hazard: int
    is_dry: int
    time: datetime
    created_at: datetime

    class Config:
        from_attributes = True


class EventListResponse(BaseModel):
    success: bool = True
    count: int
    data: List[EventResponse]


class ActionPlanResponse(BaseModel):
    """Latest event matching a query together with its action plan."""
    success: bool = True
    event_id: int
    status: str
    truck_id: str
    container_id: str
    move_type: str
    request_time: datetime
    failure_kind: Optional[str] = None
    failure_reason: Optional[str] = None
    action_plan: Optional[MovePlanResponse] = None
    timestamp: datetime


# ============================================================================
# YARD ENVIRONMENT SCHEMAS
# ============================================================================

class SlotUpsert(BaseModel):
    """Manual create/update of a slot."""
    yard: str = Field("Y1", max_length=20)
    block: str = Field(..., max_length=20)
    bay: int = Field(..., ge=1)
    row: int = Field(..., ge=1)
    tier: int = Field(..., ge=1)
    size_ft: Optional[int] = Field(None, gt=0)
    container_id: Optional[str] = Field(None, max_length=30)
    is_import: Optional[int] = Field(None, ge=0, le=1)
    is_export: Optional[int] = Field(None, ge=0, le=1)
    is_reefer: Optional[int] = Field(None, ge=0, le=1)
    is_hazard: Optional[int] = Field(None, ge=0, le=1)
    is_dry: Optional[int] = Field(None, ge=0, le=1)
    weight_kg: Optional[float] = Field(None, ge=0)


class SlotResponse(BaseModel):
    """Response schema for a yard slot."""
    id: int
    yard: str
    block: str
    bay: int
    row: int
    tier: int
    size_ft: int
    container_id: Optional[str] = None
    is_import: int
    is_export: int
    is_reefer: int
    is_hazard: int
    is_dry: int
    is_inter_transhipment: int
    is_intra_transhipment: int
    weight_kg: float
    time: datetime

    class Config:
        from_attributes = True


class SlotListResponse(BaseModel):
    success: bool = True
    count: int
    data: List[SlotResponse]


class YardStatistics(BaseModel):
    total_slots: int
    occupied_slots: int
    empty_slots: int
    containers_by_type: Dict[str, int]
    containers_by_size: Dict[str, int]
    containers_by_operation: Dict[str, int]


class RecentEvent(BaseModel):
    id: int
    container_id: str
    truck_id: str
    move_type: str
    status: str
    time: datetime
    created_at: datetime

    class Config:
        from_attributes = True


class YardStatusResponse(BaseModel):
    success: bool = True
    status: str = "operational"
    timestamp: datetime
    statistics: YardStatistics
    recent_events: List[RecentEvent]
    event_statistics: Dict[str, int]


class ProcessingResponse(BaseModel):
    """Outcome of POST /get-action."""
    success: bool
    event_id: int
    status: str
    attempts: int
    results: List[Dict[str, Any]] = []
    error: Optional[Dict[str, Any]] = None
