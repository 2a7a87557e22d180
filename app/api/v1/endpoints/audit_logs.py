"""Audit Logs API endpoints."""
from typing import Optional

from fastapi import APIRouter, Query

from app.api.deps import DB
from app.schemas.audit_log import AuditLogListResponse, AuditLogResponse
from app.services.audit_service import AuditService

router = APIRouter()


@router.get("", response_model=AuditLogListResponse)
async def list_audit_logs(
    db: DB,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
):
    """
    List audit logs, newest first.

    Filters:
    - action: CREATE_EVENT, PROCESS_EVENT, EVENT_FAILED, UPDATE_SLOT
    - entity_type: event, yard_slot
    - entity_id: id of the event or slot
    """
    logs, total = await AuditService(db).get_logs(
        entity_type=entity_type.lower() if entity_type else None,
        entity_id=entity_id,
        action=action.upper() if action else None,
        skip=(page - 1) * size,
        limit=size,
    )
    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(log) for log in logs],
        total=total,
        page=page,
        size=size,
        pages=(total + size - 1) // size,
    )


@router.get("/events/{event_id}", response_model=list[AuditLogResponse])
async def get_event_trail(event_id: int, db: DB):
    """Every recorded transition of one event, oldest first."""
    logs, _ = await AuditService(db).get_logs(entity_type="event", entity_id=event_id, limit=100)
    return [AuditLogResponse.model_validate(log) for log in reversed(logs)]
