"""Cost models."""
import pytest

from app.services.yard.cost_model import (
    CoordinateCostModel,
    Endpoint,
    FixedCostModel,
    RandomCostModel,
    build_cost_model,
)
from app.services.yard.snapshot import GATE_IN, GATE_OUT
from tests.factories import make_slot


def slot_endpoint(block="A", bay=1, row=1, tier=1):
    slot = make_slot(block, bay, row, tier)
    return Endpoint(sid=slot.sid, tier=slot.tier, slot=slot)


def test_fixed_model_returns_constant_figures():
    model = FixedCostModel()

    cost = model(Endpoint(GATE_IN, 1), slot_endpoint(bay=4, tier=3))

    assert cost.crane_id == "RTG-AUTO-01"
    assert cost.duration_s == 15.0
    assert cost.distance_crane == 50.0
    assert cost.distance_internal_truck == 120.5
    assert cost.distance_external_truck == 50.0


def test_endpoint_zones():
    assert Endpoint(GATE_OUT, 1).zone_id == "GATE"
    assert Endpoint(GATE_OUT, 1).is_gate
    assert slot_endpoint(block="B").zone_id == "BLOCK_B"


def test_random_model_is_reproducible_with_seed():
    origin, destination = Endpoint(GATE_IN, 1), slot_endpoint()

    model_a, model_b = RandomCostModel(seed=7), RandomCostModel(seed=7)
    a = [model_a(origin, destination) for _ in range(5)]
    b = [model_b(origin, destination) for _ in range(5)]

    assert a == b
    for cost in a:
        assert 15.0 <= cost.duration_s <= 25.0
        assert 0 <= cost.distance_crane < 100


def test_coordinate_model_grows_with_distance():
    model = CoordinateCostModel()

    near = model(Endpoint(GATE_IN, 1), slot_endpoint(bay=1, row=1, tier=1))
    far = model(Endpoint(GATE_IN, 1), slot_endpoint(bay=5, row=4, tier=3))

    assert far.distance_crane > near.distance_crane
    assert far.duration_s > near.duration_s
    assert far.distance_internal_truck > near.distance_internal_truck


def test_coordinate_model_figures():
    model = CoordinateCostModel()

    cost = model(Endpoint(GATE_IN, 1), slot_endpoint(block="B", bay=3, row=2, tier=2))

    # gantry 2 * 12.5, trolley 2 * 2.8, hoist 2 * 2 * 2.9
    assert cost.distance_crane == pytest.approx(25.0 + 5.6 + 11.6)
    assert cost.distance_internal_truck == pytest.approx(25.0)
    assert cost.distance_external_truck == pytest.approx(50.0 + 80.0)
    assert cost.duration_s == pytest.approx(round(10.0 + 42.2 / 1.5 + 25.0 / 5.0, 2))


def test_coordinate_model_uses_block_crane():
    model = CoordinateCostModel(crane_ids={"B": "RTG-B-01"})

    assert model(Endpoint(GATE_IN, 1), slot_endpoint(block="B"), "B").crane_id == "RTG-B-01"
    assert model(Endpoint(GATE_IN, 1), slot_endpoint(block="A"), "A").crane_id == "RTG-AUTO-01"


def test_same_endpoints_same_cost():
    model = CoordinateCostModel()
    origin, destination = slot_endpoint(bay=2, tier=2), Endpoint(GATE_OUT, 1)

    assert model(origin, destination, "A") == model(origin, destination, "A")


@pytest.mark.parametrize("name, expected", [
    ("fixed", FixedCostModel),
    ("Random", RandomCostModel),
    ("coordinate", CoordinateCostModel),
])
def test_build_cost_model(name, expected):
    assert isinstance(build_cost_model(name), expected)


def test_build_cost_model_rejects_unknown_name():
    with pytest.raises(ValueError):
        build_cost_model("teleport")
