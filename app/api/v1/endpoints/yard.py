"""
Container Yard API Endpoints.

API endpoints for the yard planning engine including:
- Event submission and action-plan lookup
- Event history
- Yard status statistics
- Yard environment listing and manual slot updates
"""
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from app.api.deps import DB, Processor, get_client_ip
from app.schemas.yard import (
    GetActionRequest, ProcessingResponse, ActionPlanResponse, MovePlanResponse,
    EventListResponse, EventResponse, RecentEvent, YardStatusResponse,
    SlotUpsert, SlotResponse, SlotListResponse
)
from app.services.yard.errors import YardPlanningError
from app.services.yard_service import YardService


router = APIRouter()


# ============================================================================
# EVENTS / ACTION PLANS
# ============================================================================

@router.post(
    "/get-action",
    response_model=ProcessingResponse,
    summary="Submit Truck Event"
)
async def submit_event(
    data: GetActionRequest,
    processor: Processor
):
    """
    Record a truck event and compute its move plan.

    Returns 200 with the plan when the event COMPLETED, 422 with the failure
    kind and reason when it FAILED.
    """
    preplanning = data.preplanning.model_dump() if data.preplanning else None
    result = await processor.submit(data.event.to_planning_event(), preplanning)

    body = ProcessingResponse(success=result.succeeded, **result.as_dict())
    if not result.succeeded:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=body.model_dump(mode="json")
        )
    return body


@router.get(
    "/get-action",
    response_model=ActionPlanResponse,
    summary="Get Action Plan"
)
async def get_action(
    db: DB,
    event_id: Optional[int] = Query(None, ge=1),
    truck_id: Optional[str] = None,
    container_id: Optional[str] = None
):
    """Latest event matching event_id, truck_id and/or container_id with its plan."""
    if event_id is None and not truck_id and not container_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please provide event_id, truck_id, or container_id"
        )

    event = await YardService(db).get_latest_event(event_id, truck_id, container_id)
    if not event:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Event not found"
        )

    plan = event.move_plans[0] if event.move_plans else None
    return ActionPlanResponse(
        event_id=event.id,
        status=event.status,
        truck_id=event.truck_id,
        container_id=event.container_id,
        move_type=event.move_type,
        request_time=event.time,
        failure_kind=event.failure_kind,
        failure_reason=event.failure_reason,
        action_plan=MovePlanResponse.model_validate(plan) if plan else None,
        timestamp=datetime.now(timezone.utc),
    )


@router.get(
    "/events",
    response_model=EventListResponse,
    summary="List Events"
)
async def list_events(
    db: DB,
    limit: int = Query(20, ge=1, le=500)
):
    """Most recent events first."""
    events = await YardService(db).list_events(limit=limit)
    return EventListResponse(
        count=len(events),
        data=[EventResponse.model_validate(e) for e in events]
    )


# ============================================================================
# YARD STATUS & ENVIRONMENT
# ============================================================================

@router.get(
    "/status",
    response_model=YardStatusResponse,
    summary="Yard Status"
)
async def get_status(db: DB):
    """Occupancy statistics and event counts."""
    yard_status = await YardService(db).get_yard_status()
    return YardStatusResponse(
        timestamp=yard_status["timestamp"],
        statistics=yard_status["statistics"],
        recent_events=[RecentEvent.model_validate(e) for e in yard_status["recent_events"]],
        event_statistics=yard_status["event_statistics"],
    )


@router.get(
    "/update-environment",
    response_model=SlotListResponse,
    summary="List Yard Slots"
)
async def list_environment(db: DB):
    """All slots ordered by yard, block, bay, row, tier."""
    slots = await YardService(db).list_slots()
    return SlotListResponse(
        count=len(slots),
        data=[SlotResponse.model_validate(s) for s in slots]
    )


@router.post(
    "/update-environment",
    response_model=SlotResponse,
    summary="Update Yard Slot"
)
async def update_environment(
    data: SlotUpsert,
    request: Request,
    db: DB
):
    """Create or update a slot by position (manual correction)."""
    try:
        slot = await YardService(db).upsert_slot(
            data,
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
    except YardPlanningError as e:
        # Gravity violations and duplicate container ids
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.to_dict())
    await db.commit()
    return SlotResponse.model_validate(slot)
