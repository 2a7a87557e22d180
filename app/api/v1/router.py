from fastapi import APIRouter

from app.api.v1.endpoints import (
    # Container Yard Planning
    yard,
    # Audit
    audit_logs,
)

api_router = APIRouter(prefix="/api/v1")

# ==================== Container Yard (Allocation & Move Planning) ====================
api_router.include_router(
    yard.router,
    prefix="/yard",
    tags=["Container Yard"]
)

# ==================== Audit Logs ====================
api_router.include_router(
    audit_logs.router,
    prefix="/audit-logs",
    tags=["Audit Logs"]
)
