"""FastAPI application for the container yard allocation engine."""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import func, select

from app.config import settings
from app.api.v1.router import api_router
from app.database import init_db, async_session_factory
from app.models.yard import EventStatus, YardEvent, YardSlot
from app.services.yard.errors import YardPlanningError


logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Root logging configuration from LOG_LEVEL."""
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and make sure the yard tables exist."""
    configure_logging()
    logger.info(
        f"Starting {settings.APP_NAME} v{settings.APP_VERSION} "
        f"(cost model: {settings.COST_MODEL}, max attempts: {settings.ALLOCATION_MAX_ATTEMPTS})"
    )
    await init_db()
    yield
    logger.info("Shutting down...")


OPENAPI_TAGS = [
    {"name": "Container Yard", "description": "Truck events, move plans, yard status and slot maintenance"},
    {"name": "Audit Logs", "description": "State transition history"},
    {"name": "Health", "description": "Liveness and database connectivity"},
]

API_DESCRIPTION = """
Assigns storage slots to containers arriving at or leaving the yard and
returns an executable move plan for every truck event.

### Event Lifecycle

`PROCESSING` -> `COMPLETED` (plan stored, slot updated) or `FAILED`
(reason stored, yard unchanged).

### Status Codes

| Code | Meaning |
|------|---------|
| 400 | get-action lookup without event_id, truck_id or container_id |
| 404 | No matching event |
| 409 | Slot change would break stacking or duplicate a container |
| 422 | Invalid request, or the event ended FAILED |
"""

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=API_DESCRIPTION,
    lifespan=lifespan,
    openapi_tags=OPENAPI_TAGS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.exception_handler(YardPlanningError)
async def yard_planning_error_handler(request: Request, exc: YardPlanningError):
    """Planning errors that escape an endpoint are conflicts with yard state."""
    logger.warning(f"{request.method} {request.url.path}: {exc.error_code} {exc.message}")
    return JSONResponse(status_code=409, content={"success": False, "error": exc.to_dict()})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """JSON error document for unhandled exceptions."""
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    content = {
        "success": False,
        "error": {"kind": "INTERNAL_ERROR", "reason": str(exc), "type": type(exc).__name__},
        "path": request.url.path,
    }
    if settings.DEBUG:
        content["traceback"] = traceback.format_exc()
    return JSONResponse(status_code=500, content=content)


@app.get("/health", tags=["Health"])
async def health_check():
    """Database ping plus slot count and events still in flight."""
    checks = {"database": "unknown"}
    try:
        async with async_session_factory() as session:
            checks["slots"] = (await session.execute(select(func.count(YardSlot.id)))).scalar() or 0
            checks["events_processing"] = (await session.execute(
                select(func.count(YardEvent.id)).where(YardEvent.status == EventStatus.PROCESSING.value)
            )).scalar() or 0
        checks["database"] = "connected"
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        checks["database"] = f"error: {e}"
        return JSONResponse(
            status_code=503,
            content={"status": "DOWN", "app": settings.APP_NAME, "checks": checks},
        )

    return {
        "status": "UP",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "cost_model": settings.COST_MODEL,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }
