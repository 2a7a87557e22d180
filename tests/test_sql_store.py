"""SqlYardStore against a SQLite database."""
import asyncio

import pytest
from sqlalchemy import func, select

from app.models.audit_log import AuditLog
from app.models.yard import MovePlanRecord, MoveType, Preplanning, YardEvent, YardSlot
from app.services.audit_service import AuditRecorder
from app.services.yard.cost_model import FixedCostModel
from app.services.yard.errors import AllocationConflict, YardPlanningError
from app.services.yard.event_processor import EventProcessor
from app.services.yard.move_plan import MovePlanBuilder
from app.services.yard.snapshot import YardSnapshot
from app.services.yard.sql_store import SqlYardStore
from tests.factories import EVENT_TIME, fixed_clock, make_event, make_grid


builder = MovePlanBuilder(FixedCostModel())


async def plan_for(store, event):
    snapshot = YardSnapshot.of(await store.list_slots())
    return builder.build(event, snapshot, fixed_clock)


async def load_slot(session_factory, block, bay, row, tier):
    async with session_factory() as session:
        result = await session.execute(
            select(YardSlot).where(
                YardSlot.block == block, YardSlot.bay == bay, YardSlot.row == row, YardSlot.tier == tier
            )
        )
        return result.scalar_one()


async def load_event(session_factory, event_id):
    async with session_factory() as session:
        return await session.get(YardEvent, event_id)


async def count(session_factory, model):
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar()


async def assert_grounded(session_factory):
    slots = await SqlYardStore(session_factory).list_slots()
    assert YardSnapshot.of(slots).gravity_violations() == []


async def test_list_slots_ordered(session_factory, seed_slots):
    await seed_slots(reversed(make_grid(blocks=("A", "B"), bays=2, rows=1, tiers=2)))
    store = SqlYardStore(session_factory)

    slots = await store.list_slots()

    keys = [s.key for s in slots]
    assert keys == sorted(keys)
    assert len(slots) == 8


async def test_commit_plan_updates_slot_plan_and_event(session_factory, seed_slots):
    await seed_slots(make_grid(bays=2, tiers=2))
    store = SqlYardStore(session_factory)
    event = make_event("MSCU1234567", is_export=1)
    event_id = await store.create_event(event)

    planned = await plan_for(store, event)
    await store.commit_plan(event_id, planned.mutation, planned.plan, attempts=1)

    slot = await load_slot(session_factory, "A", 1, 1, 1)
    assert slot.container_id == "MSCU1234567"
    assert slot.is_export == 1
    assert slot.weight_kg == 24000.0
    stored = await load_event(session_factory, event_id)
    assert stored.status == "COMPLETED"
    assert stored.attempts == 1
    assert stored.move_type == "drop_off"
    assert stored.is_drop_off == 1
    assert await count(session_factory, MovePlanRecord) == 1


async def test_stale_drop_off_conflicts_without_partial_write(session_factory, seed_slots):
    await seed_slots(make_grid(bays=1, tiers=2))
    store = SqlYardStore(session_factory)
    first, second = make_event("MSCU0000001"), make_event("MSCU0000002", truck_id="TRK-002")
    first_id = await store.create_event(first)
    second_id = await store.create_event(second)

    first_plan = await plan_for(store, first)
    second_plan = await plan_for(store, second)
    await store.commit_plan(second_id, second_plan.mutation, second_plan.plan, attempts=1)

    with pytest.raises(AllocationConflict):
        await store.commit_plan(first_id, first_plan.mutation, first_plan.plan, attempts=1)

    slot = await load_slot(session_factory, "A", 1, 1, 1)
    assert slot.container_id == "MSCU0000002"
    assert (await load_event(session_factory, first_id)).status == "PROCESSING"
    assert await count(session_factory, MovePlanRecord) == 1


async def test_pick_up_conflicts_when_container_gets_covered(session_factory, seed_slots):
    await seed_slots(make_grid(tiers=2, occupied={("A", 1, 1, 1): "C1"}))
    store = SqlYardStore(session_factory)
    pick_up = make_event("C1", MoveType.PICK_UP)
    pick_up_id = await store.create_event(pick_up)
    planned = await plan_for(store, pick_up)

    drop = make_event("C2", truck_id="TRK-002")
    drop_id = await store.create_event(drop)
    drop_plan = await plan_for(store, drop)
    await store.commit_plan(drop_id, drop_plan.mutation, drop_plan.plan, attempts=1)

    with pytest.raises(AllocationConflict):
        await store.commit_plan(pick_up_id, planned.mutation, planned.plan, attempts=1)

    assert (await load_slot(session_factory, "A", 1, 1, 1)).container_id == "C1"


async def test_commit_requires_processing_event(session_factory, seed_slots):
    await seed_slots(make_grid())
    store = SqlYardStore(session_factory)
    event = make_event("MSCU1234567")
    event_id = await store.create_event(event)
    planned = await plan_for(store, event)
    await store.mark_failed(event_id, "INTERNAL_ERROR", "gave up", attempts=1)

    with pytest.raises(YardPlanningError) as exc_info:
        await store.commit_plan(event_id, planned.mutation, planned.plan, attempts=2)

    assert exc_info.value.error_code == "COMMIT_FAILED"
    assert (await load_slot(session_factory, "A", 1, 1, 1)).container_id is None
    assert await count(session_factory, MovePlanRecord) == 0


async def test_mark_failed_records_reason(session_factory):
    store = SqlYardStore(session_factory)
    event_id = await store.create_event(make_event("MSCU1234567"))

    await store.mark_failed(event_id, "YARD_FULL", "YARD FULL! No valid slots available.", attempts=2)

    stored = await load_event(session_factory, event_id)
    assert stored.status == "FAILED"
    assert stored.failure_kind == "YARD_FULL"
    assert stored.failure_reason == "YARD FULL! No valid slots available."
    assert stored.attempts == 2


async def test_create_event_stores_preplanning(session_factory):
    store = SqlYardStore(session_factory)
    preplanning = {
        "container_id": "MSCU1234567", "yard": "Y1", "block": "B",
        "bay": 3, "row": 2, "tier": 1, "time": EVENT_TIME,
    }

    event_id = await store.create_event(make_event("MSCU1234567"), preplanning)

    async with session_factory() as session:
        stored = (await session.execute(select(Preplanning))).scalar_one()
    assert stored.event_id == event_id
    assert (stored.block, stored.bay, stored.row, stored.tier) == ("B", 3, 2, 1)
    assert stored.status == "ACTIVE"


class InterloperSqlStore(SqlYardStore):
    """Another writer fills the first ground slot right after the first snapshot is read."""

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.reads = 0

    async def list_slots(self):
        slots = await super().list_slots()
        self.reads += 1
        if self.reads == 1:
            async with self.session_factory() as session:
                slot = (await session.execute(
                    select(YardSlot).where(YardSlot.tier == 1).order_by(YardSlot.bay).limit(1)
                )).scalar_one()
                slot.container_id = "INTERLOPER"
                await session.commit()
        return slots


async def test_processor_retries_stale_plan_on_sql(session_factory, seed_slots):
    await seed_slots(make_grid(bays=2, tiers=2))
    processor = EventProcessor(
        store=InterloperSqlStore(session_factory),
        builder=builder,
        audit=AuditRecorder(session_factory),
        clock=fixed_clock,
    )

    result = await processor.submit(make_event("MSCU1234567"))

    assert result.succeeded
    assert result.attempts == 2
    assert result.plan.to_sid == "Y1-A-02-01"
    stored = await load_event(session_factory, result.event_id)
    assert (stored.status, stored.attempts) == ("COMPLETED", 2)


async def test_processor_records_audit_trail(session_factory, seed_slots):
    await seed_slots(make_grid(tiers=1, occupied={("A", 1, 1, 1): "C1"}))
    processor = EventProcessor(
        store=SqlYardStore(session_factory),
        builder=builder,
        audit=AuditRecorder(session_factory),
        clock=fixed_clock,
    )

    result = await processor.submit(make_event("MSCU1234567"))

    assert result.error_kind == "YARD_FULL"
    async with session_factory() as session:
        actions = (await session.execute(
            select(AuditLog.action).where(AuditLog.entity_id == result.event_id).order_by(AuditLog.id)
        )).scalars().all()
    assert actions == ["CREATE_EVENT", "EVENT_FAILED"]
    stored = await load_event(session_factory, result.event_id)
    assert stored.failure_kind == "YARD_FULL"


class RacingSqlStore(SqlYardStore):
    """A rival plan commits in its own session between this store's column read and its update."""

    def __init__(self, session_factory, rival):
        super().__init__(session_factory)
        self.rival = rival

    async def _lock_column(self, session, key):
        column = await super()._lock_column(session, key)
        if self.rival is not None:
            event_id, planned = self.rival
            self.rival = None
            await SqlYardStore(self.session_factory).commit_plan(
                event_id, planned.mutation, planned.plan, attempts=1
            )
        return column


@pytest.mark.parametrize("racing_move", [MoveType.DROP_OFF, MoveType.PICK_UP], ids=["drop-off", "pick-up"])
async def test_stack_change_between_read_and_update_conflicts(session_factory, seed_slots, racing_move):
    await seed_slots(make_grid(tiers=2, occupied={("A", 1, 1, 1): "C1"}))
    store = SqlYardStore(session_factory)
    drop, pick_up = make_event("C2", truck_id="TRK-002"), make_event("C1", MoveType.PICK_UP)
    drop_id = await store.create_event(drop)
    pick_up_id = await store.create_event(pick_up)
    drop_plan = await plan_for(store, drop)
    pick_up_plan = await plan_for(store, pick_up)
    assert (drop_plan.plan.to_sid, drop_plan.plan.to_tier) == ("Y1-A-01-01", 2)

    if racing_move == MoveType.DROP_OFF:
        racing = RacingSqlStore(session_factory, rival=(pick_up_id, pick_up_plan))
        event_id, planned = drop_id, drop_plan
    else:
        racing = RacingSqlStore(session_factory, rival=(drop_id, drop_plan))
        event_id, planned = pick_up_id, pick_up_plan

    with pytest.raises(AllocationConflict):
        await racing.commit_plan(event_id, planned.mutation, planned.plan, attempts=1)

    await assert_grounded(session_factory)
    assert (await load_event(session_factory, event_id)).status == "PROCESSING"
    assert await count(session_factory, MovePlanRecord) == 1


def sql_processor(session_factory, max_attempts=3):
    return EventProcessor(
        store=SqlYardStore(session_factory),
        builder=builder,
        clock=fixed_clock,
        max_attempts=max_attempts,
    )


async def test_concurrent_drop_offs_for_last_slot_on_sql(session_factory, seed_slots):
    await seed_slots(make_grid(tiers=2, occupied={("A", 1, 1, 1): "C1"}))
    processor = sql_processor(session_factory)

    results = await asyncio.gather(
        processor.submit(make_event("MSCU0000001", truck_id="TRK-A")),
        processor.submit(make_event("MSCU0000002", truck_id="TRK-B")),
    )

    assert sorted(r.status.value for r in results) == ["COMPLETED", "FAILED"]
    winner = next(r for r in results if r.succeeded)
    loser = next(r for r in results if not r.succeeded)
    assert loser.error_kind == "YARD_FULL"
    assert (await load_slot(session_factory, "A", 1, 1, 2)).container_id == winner.plan.container_id
    assert (await load_event(session_factory, loser.event_id)).status == "FAILED"
    assert await count(session_factory, MovePlanRecord) == 1
    await assert_grounded(session_factory)


async def test_concurrent_drop_off_and_pick_up_on_one_stack_on_sql(session_factory, seed_slots):
    await seed_slots(make_grid(tiers=2, occupied={("A", 1, 1, 1): "C1"}))
    processor = sql_processor(session_factory)

    drop, pick_up = await asyncio.gather(
        processor.submit(make_event("C2", truck_id="TRK-A")),
        processor.submit(make_event("C1", MoveType.PICK_UP, truck_id="TRK-B")),
    )

    assert drop.succeeded
    ground = await load_slot(session_factory, "A", 1, 1, 1)
    top = await load_slot(session_factory, "A", 1, 1, 2)
    if pick_up.succeeded:
        assert (ground.container_id, top.container_id) == ("C2", None)
    else:
        assert pick_up.error_kind == "CONTAINER_BLOCKED"
        assert (ground.container_id, top.container_id) == ("C1", "C2")
    await assert_grounded(session_factory)


async def test_concurrent_drop_offs_fill_yard_on_sql(session_factory, seed_slots):
    await seed_slots(make_grid(bays=2, tiers=3))
    processor = sql_processor(session_factory, max_attempts=7)

    results = await asyncio.gather(*[
        processor.submit(make_event(f"MSCU{i:07d}", truck_id=f"TRK-{i}")) for i in range(10)
    ])

    assert sum(1 for r in results if r.succeeded) == 6
    assert all(r.error_kind == "YARD_FULL" for r in results if not r.succeeded)
    slots = await SqlYardStore(session_factory).list_slots()
    containers = [s.container_id for s in slots]
    assert all(containers)
    assert len(set(containers)) == 6
    await assert_grounded(session_factory)
