from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db, async_session_factory
from app.services.yard.event_processor import EventProcessor
from app.services.yard_service import build_event_processor


@lru_cache()
def get_event_processor() -> EventProcessor:
    """Process-wide event processor (keeps the cost model's state across requests)."""
    return build_event_processor(async_session_factory)


def get_client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else None


DB = Annotated[AsyncSession, Depends(get_db)]
Processor = Annotated[EventProcessor, Depends(get_event_processor)]
