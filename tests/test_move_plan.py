"""Move plan construction for drop-offs and pick-ups."""
import pytest

from app.models.yard import MoveType
from app.services.yard.cost_model import FixedCostModel
from app.services.yard.errors import ContainerNotFound, YardFull
from app.services.yard.move_plan import MovePlanBuilder
from app.services.yard.snapshot import SlotKey, YardSnapshot
from tests.factories import EVENT_TIME, fixed_clock, make_event, make_grid


@pytest.fixture
def builder():
    return MovePlanBuilder(FixedCostModel())


def test_drop_off_plan(builder):
    snapshot = YardSnapshot.of(make_grid(blocks=("B",), bays=2, rows=2, tiers=2))
    event = make_event("MSCU1234567", truck_id="TRK-042", is_import=1, is_dry=1)

    planned = builder.build(event, snapshot, fixed_clock)
    plan = planned.plan

    assert plan.move_type == "drop_off"
    assert (plan.from_sid, plan.from_tier) == ("GATE_IN", 1)
    assert (plan.to_sid, plan.to_tier) == ("Y1-B-01-01", 1)
    assert plan.from_truck_zone_id == "GATE"
    assert plan.to_truck_zone_id == "BLOCK_B"
    assert plan.truck_id == "TRK-042"
    assert plan.container_id == "MSCU1234567"
    assert plan.crane_id == "RTG-AUTO-01"
    assert plan.event_time == EVENT_TIME
    assert plan.start_time == 0.0
    assert plan.end_time == 15.0
    assert plan.distance_crane == 50.0
    assert plan.distance_internal_truck == 120.5
    assert plan.distance_external_truck == 50.0


def test_drop_off_mutation_claims_empty_slot(builder):
    snapshot = YardSnapshot.of(make_grid(bays=1, rows=1, tiers=2))
    event = make_event("MSCU1234567", is_reefer=1)

    mutation = builder.build(event, snapshot, fixed_clock).mutation

    assert mutation.key == SlotKey("Y1", "A", 1, 1, 1)
    assert mutation.expected_container_id is None
    assert mutation.new_container_id == "MSCU1234567"
    assert mutation.is_placement
    assert mutation.attributes["is_reefer"] == 1
    assert mutation.attributes["is_dry"] == 0
    assert mutation.attributes["weight_kg"] == 24000.0


def test_pick_up_plan(builder):
    occupied = {("A", 1, 1, 1): "C1", ("A", 1, 1, 2): "MSCU7654321"}
    snapshot = YardSnapshot.of(make_grid(bays=1, rows=1, tiers=3, occupied=occupied))
    event = make_event("MSCU7654321", MoveType.PICK_UP)

    planned = builder.build(event, snapshot, fixed_clock)

    assert planned.plan.move_type == "pick_up"
    assert (planned.plan.from_sid, planned.plan.from_tier) == ("Y1-A-01-01", 2)
    assert (planned.plan.to_sid, planned.plan.to_tier) == ("GATE_OUT", 1)
    assert planned.plan.from_truck_zone_id == "BLOCK_A"
    assert planned.plan.to_truck_zone_id == "GATE"
    assert planned.mutation.expected_container_id == "MSCU7654321"
    assert planned.mutation.new_container_id is None
    assert not planned.mutation.is_placement
    assert planned.mutation.attributes["is_dry"] == 1
    assert planned.mutation.attributes["weight_kg"] == 0.0


def test_pick_up_of_unknown_container(builder):
    snapshot = YardSnapshot.of(make_grid(occupied={("A", 1, 1, 1): "C1"}))

    with pytest.raises(ContainerNotFound):
        builder.build(make_event("GHOST000001", MoveType.PICK_UP), snapshot, fixed_clock)


def test_drop_off_into_full_yard(builder):
    occupied = {("A", 1, 1, 1): "C1", ("A", 1, 1, 2): "C2"}
    snapshot = YardSnapshot.of(make_grid(tiers=2, occupied=occupied))

    with pytest.raises(YardFull):
        builder.build(make_event("MSCU1234567"), snapshot, fixed_clock)


def test_build_does_not_touch_snapshot(builder):
    snapshot = YardSnapshot.of(make_grid(bays=2, tiers=2))
    before = [s.container_id for s in snapshot]

    builder.build(make_event("MSCU1234567"), snapshot, fixed_clock)

    assert [s.container_id for s in snapshot] == before


def test_same_inputs_same_plan(builder):
    snapshot = YardSnapshot.of(make_grid(blocks=("A", "B"), bays=3, rows=2, tiers=3,
                                         occupied={("A", 1, 1, 1): "C1"}))
    event = make_event("MSCU1234567")

    assert builder.build(event, snapshot, fixed_clock) == builder.build(event, snapshot, fixed_clock)


def test_plan_as_dict_has_all_fields(builder):
    plan = builder.build(make_event("MSCU1234567"), YardSnapshot.of(make_grid()), fixed_clock).plan

    assert set(plan.as_dict()) == {
        "event_time", "start_time", "end_time", "container_id", "move_type",
        "from_sid", "from_tier", "to_sid", "to_tier", "distance_crane", "crane_id",
        "from_truck_zone_id", "to_truck_zone_id", "truck_id",
        "distance_internal_truck", "distance_external_truck",
    }
