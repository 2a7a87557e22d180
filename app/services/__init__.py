# Services module
from app.services.audit_service import AuditService, AuditRecorder
from app.services.yard_service import YardService, build_event_processor

__all__ = [
    "AuditService",
    "AuditRecorder",
    "YardService",
    "build_event_processor",
]
