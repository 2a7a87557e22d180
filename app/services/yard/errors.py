"""Typed failures raised by the yard planning engine."""
from typing import Any, Dict, Optional


class YardPlanningError(Exception):
    """Base exception for yard planning errors."""
    error_code = "YARD_PLANNING_ERROR"

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.error_code, "reason": self.message, "details": self.details}


class YardFull(YardPlanningError):
    """No slot satisfies emptiness and gravity constraints."""
    error_code = "YARD_FULL"


class ContainerNotFound(YardPlanningError):
    """Pick-up requested for a container id absent from the yard."""
    error_code = "CONTAINER_NOT_FOUND"


class ContainerBlocked(YardPlanningError):
    """Container has another container stacked directly on top of it."""
    error_code = "CONTAINER_BLOCKED"


class AllocationConflict(YardPlanningError):
    """Commit found the target slot or container claimed by a concurrent event."""
    error_code = "ALLOCATION_CONFLICT"


class GravityViolation(YardPlanningError):
    """Requested slot change would leave a container floating or buried."""
    error_code = "GRAVITY_VIOLATION"


# Failure kinds recorded on events that did not end in a typed planning error
INTERNAL_ERROR = "INTERNAL_ERROR"
COMMIT_FAILED = "COMMIT_FAILED"
CANCELLED = "CANCELLED"
