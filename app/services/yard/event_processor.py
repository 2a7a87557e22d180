"""
Event Processor - drive one truck event from submission to a terminal state.

    PENDING -> PROCESSING -> COMPLETED | FAILED

Submission records the event directly in PROCESSING. The plan is computed
against a fresh snapshot and committed with compare-and-commit: if the store
reports the target slot (or container) was claimed by a concurrent event, the
plan is recomputed against a new snapshot, up to ``max_attempts`` times.
Any failure ends the event FAILED with its reason, cancellation included; the
slot mutation only ever happens inside the store's atomic commit.
"""
import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Protocol

from app.models.yard import EventStatus
from app.services.yard.errors import (
    CANCELLED,
    COMMIT_FAILED,
    INTERNAL_ERROR,
    AllocationConflict,
    ContainerNotFound,
    YardFull,
    YardPlanningError,
)
from app.services.yard.move_plan import Clock, MovePlan, MovePlanBuilder, PlanningEvent, utc_clock
from app.services.yard.snapshot import YardSnapshot
from app.services.yard.store import YardStore


logger = logging.getLogger(__name__)


class AuditSink(Protocol):
    async def record(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[int],
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        ...


@dataclass(frozen=True)
class ProcessingResult:
    event_id: int
    status: EventStatus
    attempts: int
    plan: Optional[MovePlan] = None
    error_kind: Optional[str] = None
    error_reason: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == EventStatus.COMPLETED

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "event_id": self.event_id,
            "status": self.status.value,
            "attempts": self.attempts,
            "results": [self.plan.as_dict()] if self.plan else [],
        }
        if self.error_kind:
            data["error"] = {"kind": self.error_kind, "reason": self.error_reason}
        return data


class EventProcessor:
    """Plans and commits truck events against a yard store."""

    def __init__(
        self,
        store: YardStore,
        builder: MovePlanBuilder,
        audit: Optional[AuditSink] = None,
        clock: Clock = utc_clock,
        max_attempts: int = 3,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.builder = builder
        self.audit = audit
        self.clock = clock
        self.max_attempts = max_attempts

    async def submit(self, event: PlanningEvent, preplanning: Optional[dict] = None) -> ProcessingResult:
        """Record the event (PROCESSING) and run it to COMPLETED or FAILED."""
        event_id = await self.store.create_event(event, preplanning)
        event = replace(event, event_id=event_id)
        logger.info(f"Event {event_id}: {event.move_type.value} {event.container_id} by truck {event.truck_id}")
        await self._audit(
            "CREATE_EVENT",
            event_id,
            {"truck_id": event.truck_id, "container_id": event.container_id, "move_type": event.move_type.value},
        )
        return await self.process(event)

    async def process(self, event: PlanningEvent) -> ProcessingResult:
        """Plan and commit an already recorded event."""
        if event.event_id is None:
            raise ValueError("Event must be recorded before processing")

        attempts = 0
        plan: Optional[MovePlan] = None
        commit: Optional[asyncio.Future] = None
        try:
            while True:
                attempts += 1
                snapshot = YardSnapshot.of(await self.store.list_slots(), taken_at=self.clock())
                planned = self.builder.build(event, snapshot, self.clock)
                commit = asyncio.ensure_future(
                    self.store.commit_plan(event.event_id, planned.mutation, planned.plan, attempts)
                )
                try:
                    # Once started, the commit runs to completion or rolls back
                    await asyncio.shield(commit)
                except AllocationConflict as exc:
                    if attempts >= self.max_attempts:
                        raise self._exhausted(event, attempts) from exc
                    logger.info(f"Event {event.event_id}: {exc.message}; retrying (attempt {attempts})")
                    continue
                except YardPlanningError:
                    raise
                except Exception as exc:
                    logger.exception(f"Event {event.event_id}: commit failed")
                    raise YardPlanningError(
                        f"Commit could not be confirmed: {exc}", error_code=COMMIT_FAILED
                    ) from exc
                plan = planned.plan
                break
        except YardPlanningError as exc:
            kind, reason = exc.error_code, exc.message
        except asyncio.CancelledError:
            logger.warning(f"Event {event.event_id}: cancelled at attempt {attempts}")
            await asyncio.shield(self._settle_cancelled(event, commit, attempts))
            raise
        except Exception as exc:
            logger.exception(f"Event {event.event_id}: planning failed")
            kind, reason = INTERNAL_ERROR, f"{type(exc).__name__}: {exc}"
        else:
            slot = plan.to_sid if event.is_drop_off else plan.from_sid
            tier = plan.to_tier if event.is_drop_off else plan.from_tier
            logger.info(f"Event {event.event_id} COMPLETED: {event.container_id} at {slot} tier {tier}")
            await self._audit("PROCESS_EVENT", event.event_id, {"results": 1, "plan": plan.as_dict()})
            return ProcessingResult(
                event_id=event.event_id,
                status=EventStatus.COMPLETED,
                attempts=attempts,
                plan=plan,
            )

        await self._fail(event, kind, reason, attempts)
        return ProcessingResult(
            event_id=event.event_id,
            status=EventStatus.FAILED,
            attempts=attempts,
            error_kind=kind,
            error_reason=reason,
        )

    async def _fail(self, event: PlanningEvent, kind: str, reason: str, attempts: int) -> None:
        logger.warning(f"Event {event.event_id} FAILED ({kind}): {reason}")
        try:
            await self.store.mark_failed(event.event_id, kind, reason, attempts)
        except Exception:
            logger.exception(f"Event {event.event_id}: could not be marked FAILED, it is still PROCESSING")
            raise
        await self._audit("EVENT_FAILED", event.event_id, {"kind": kind, "reason": reason})

    async def _settle_cancelled(
        self, event: PlanningEvent, commit: Optional[asyncio.Future], attempts: int
    ) -> None:
        """
        Leave a cancelled event in a terminal state.

        A commit already in flight is awaited first; if it lands the event is
        COMPLETED and nothing more is recorded.
        """
        kind, reason = CANCELLED, "Processing was cancelled before the plan was committed"
        if commit is not None:
            try:
                await commit
            except YardPlanningError:
                # A rejected commit changed nothing
                pass
            except Exception as exc:
                kind, reason = COMMIT_FAILED, f"Commit could not be confirmed: {exc}"
            else:
                logger.info(f"Event {event.event_id}: commit landed before cancellation")
                return
        await self._fail(event, kind, reason, attempts)

    def _exhausted(self, event: PlanningEvent, attempts: int) -> YardPlanningError:
        details = {"attempts": attempts}
        if event.is_drop_off:
            return YardFull(f"No slot could be claimed after {attempts} attempts", details=details)
        return ContainerNotFound(
            f"Container {event.container_id} was claimed by another event",
            details=details,
        )

    async def _audit(self, action: str, event_id: int, payload: Dict[str, Any]) -> None:
        if self.audit is None:
            return
        try:
            await self.audit.record(action, "event", event_id, payload)
        except Exception as exc:
            logger.warning(f"Failed to create audit log for event {event_id}: {exc}")
