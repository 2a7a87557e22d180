"""
SQL Yard Store - SQLAlchemy implementation of the yard persistence port.

Each public call runs in its own session. ``commit_plan`` is one transaction:
the target stack column is read ``FOR UPDATE`` and re-validated, then the
slot is changed with a conditional UPDATE that also requires the slot below
to be occupied (placement) or the slot above to be empty (removal). Its
rowcount confirms nobody changed the stack in between. SQLite ignores
``FOR UPDATE``, so there the guarded UPDATE alone holds the column. The move
plan insert and the event status change ride in the same transaction, so
either all three land or none do.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import exists, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased

from app.models.yard import EventStatus, MovePlanRecord, Preplanning, YardEvent, YardSlot
from app.services.yard.errors import COMMIT_FAILED, AllocationConflict, YardPlanningError
from app.services.yard.move_plan import MovePlan, PlanningEvent, SlotMutation
from app.services.yard.snapshot import CONTAINER_FLAGS, Slot, SlotKey
from app.services.yard.store import validate_mutation


logger = logging.getLogger(__name__)


def _position(key: SlotKey):
    return (
        YardSlot.yard == key.yard,
        YardSlot.block == key.block,
        YardSlot.bay == key.bay,
        YardSlot.row == key.row,
    )


def stack_occupied(key: SlotKey, tier: int):
    """EXISTS clause: tier ``tier`` of the key's stack column holds a container."""
    neighbour = aliased(YardSlot)
    return exists().where(
        neighbour.yard == key.yard,
        neighbour.block == key.block,
        neighbour.bay == key.bay,
        neighbour.row == key.row,
        neighbour.tier == tier,
        neighbour.container_id.is_not(None),
    )


class SqlYardStore:
    """Yard store backed by the ``yard_slots``/``yard_events``/``move_plans`` tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def list_slots(self) -> List[Slot]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(YardSlot).order_by(
                    YardSlot.yard, YardSlot.block, YardSlot.bay, YardSlot.row, YardSlot.tier
                )
            )
            return [Slot.from_record(row) for row in result.scalars().all()]

    async def create_event(self, event: PlanningEvent, preplanning: Optional[dict] = None) -> int:
        async with self.session_factory() as session:
            try:
                record = YardEvent(
                    truck_id=event.truck_id,
                    container_id=event.container_id,
                    move_type=event.move_type.value,
                    is_drop_off=1 if event.is_drop_off else 0,
                    is_pick_up=0 if event.is_drop_off else 1,
                    weight_kg=event.weight_kg,
                    size_ft=event.size_ft,
                    time=event.time or datetime.now(timezone.utc),
                    status=EventStatus.PROCESSING.value,
                    attempts=0,
                    **{name: int(event.flags.get(name, 0)) for name in CONTAINER_FLAGS},
                )
                session.add(record)
                await session.flush()

                if preplanning:
                    session.add(Preplanning(event_id=record.id, **preplanning))

                await session.commit()
                return record.id
            except Exception:
                await session.rollback()
                raise

    async def commit_plan(self, event_id: int, mutation: SlotMutation, plan: MovePlan, attempts: int) -> None:
        async with self.session_factory() as session:
            try:
                column = await self._lock_column(session, mutation.key)
                validate_mutation(
                    mutation,
                    column.get(mutation.key.tier),
                    column.get(mutation.key.tier - 1),
                    column.get(mutation.key.tier + 1),
                )
                await self.apply_slot_mutation(session, mutation)
                await self.append_move_plan(session, event_id, plan)
                await self._finish_event(session, event_id, attempts)
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def mark_failed(self, event_id: int, kind: str, reason: str, attempts: int) -> None:
        async with self.session_factory() as session:
            try:
                await session.execute(
                    update(YardEvent)
                    .where(
                        YardEvent.id == event_id,
                        YardEvent.status == EventStatus.PROCESSING.value,
                    )
                    .values(
                        status=EventStatus.FAILED.value,
                        failure_kind=kind,
                        failure_reason=reason,
                        attempts=attempts,
                        updated_at=datetime.now(timezone.utc),
                    )
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    # ------------------------------------------------------------------
    # Commit steps (all run inside the caller's transaction)
    # ------------------------------------------------------------------

    async def _lock_column(self, session: AsyncSession, key: SlotKey) -> dict:
        """Lock the slot's stack column and return {tier: Slot}."""
        result = await session.execute(
            select(YardSlot)
            .where(*_position(key), YardSlot.tier.between(key.tier - 1, key.tier + 1))
            .with_for_update()
        )
        return {row.tier: Slot.from_record(row) for row in result.scalars().all()}

    async def apply_slot_mutation(self, session: AsyncSession, mutation: SlotMutation) -> None:
        """
        Set the slot's occupant, only if it still holds the expected one and
        the stack around it still allows the change.
        """
        key = mutation.key
        if mutation.expected_container_id is None:
            guards = [YardSlot.container_id.is_(None)]
        else:
            guards = [YardSlot.container_id == mutation.expected_container_id]

        if mutation.is_placement:
            if key.tier > 1:
                guards.append(stack_occupied(key, key.tier - 1))
        else:
            guards.append(~stack_occupied(key, key.tier + 1))

        result = await session.execute(
            update(YardSlot)
            .where(*_position(key), YardSlot.tier == key.tier, *guards)
            .values(
                container_id=mutation.new_container_id,
                time=datetime.now(timezone.utc),
                **mutation.attributes,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise AllocationConflict(
                f"Slot {key} or its stack changed before commit",
                details={"slot": str(key)},
            )

    async def append_move_plan(self, session: AsyncSession, event_id: int, plan: MovePlan) -> MovePlanRecord:
        record = MovePlanRecord(event_id=event_id, **plan.as_dict())
        session.add(record)
        await session.flush()
        return record

    async def _finish_event(self, session: AsyncSession, event_id: int, attempts: int) -> None:
        result = await session.execute(
            update(YardEvent)
            .where(
                YardEvent.id == event_id,
                YardEvent.status == EventStatus.PROCESSING.value,
            )
            .values(
                status=EventStatus.COMPLETED.value,
                attempts=attempts,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise YardPlanningError(
                f"Event {event_id} is no longer PROCESSING",
                error_code=COMMIT_FAILED,
            )
