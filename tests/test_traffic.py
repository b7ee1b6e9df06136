"""Tests for the traffic snapshot."""

import pytest

from highway_planner.core.data_structures import VehicleObservation
from highway_planner.core.traffic import TrafficSnapshot, closest_vehicle, in_lane, lane_center

from conftest import make_vehicle


def test_lane_band():
    assert lane_center(0) == 2.0
    assert lane_center(1) == 6.0
    assert lane_center(2, lane_width=3.5) == pytest.approx(8.75)

    assert in_lane(2.0, 0)
    assert in_lane(5.0, 1)
    assert in_lane(7.9, 1)
    # boundaries belong to neither lane
    assert not in_lane(4.0, 0)
    assert not in_lane(4.0, 1)
    assert not in_lane(13.0, 2)


def test_projected_arc_length():
    vehicle = VehicleObservation(id=1, x=0.0, y=0.0, vx=3.0, vy=4.0, s=100.0, d=6.0)
    assert vehicle.speed == pytest.approx(5.0)

    snapshot = TrafficSnapshot([vehicle], horizon_steps=10)
    assert snapshot.projected_arc_length(vehicle) == pytest.approx(101.0)
    assert TrafficSnapshot([vehicle]).projected_arc_length(vehicle) == pytest.approx(100.0)


def test_closest_ahead():
    near = make_vehicle(100.0, 1, vehicle_id=1)
    far = make_vehicle(110.0, 1, vehicle_id=2)
    other_lane = make_vehicle(95.0, 0, vehicle_id=3)
    snapshot = TrafficSnapshot([far, other_lane, near])

    assert snapshot.closest_vehicle(90.0, 1, 30.0) is near
    assert snapshot.closest_vehicle(90.0, 0, 30.0) is other_lane
    assert snapshot.closest_vehicle(90.0, 2, 30.0) is None


def test_closest_ahead_out_of_range():
    snapshot = TrafficSnapshot([make_vehicle(125.0, 1)])
    assert snapshot.closest_vehicle(90.0, 1, 30.0) is None
    assert snapshot.closest_vehicle(100.0, 1, 30.0) is not None


def test_closest_behind():
    near = make_vehicle(95.0, 1, vehicle_id=1)
    far = make_vehicle(92.0, 1, vehicle_id=2)
    too_far = make_vehicle(85.0, 1, vehicle_id=3)
    ahead = make_vehicle(105.0, 1, vehicle_id=4)
    snapshot = TrafficSnapshot([too_far, far, ahead, near])

    assert snapshot.closest_vehicle(100.0, 1, -10.0) is near
    assert TrafficSnapshot([too_far, ahead]).closest_vehicle(100.0, 1, -10.0) is None


def test_same_position_is_neither_ahead_nor_behind():
    snapshot = TrafficSnapshot([make_vehicle(100.0, 1)])
    assert snapshot.closest_vehicle(100.0, 1, 30.0) is None
    assert snapshot.closest_vehicle(100.0, 1, -10.0) is None


def test_projection_moves_vehicle_ahead():
    # 2 m behind now, 8 m ahead once the 50 queued points are driven
    vehicle = make_vehicle(98.0, 1, speed=10.0)
    snapshot = TrafficSnapshot([vehicle], horizon_steps=50)

    assert snapshot.distance(vehicle, 100.0) == pytest.approx(8.0)
    assert snapshot.closest_vehicle(100.0, 1, 30.0) is vehicle
    assert snapshot.closest_vehicle(100.0, 1, -10.0) is None


def test_distance_wraps_around_loop():
    vehicle = make_vehicle(5.0, 1)
    wrapped = TrafficSnapshot([vehicle], max_arc_length=1000.0)
    assert wrapped.distance(vehicle, 995.0) == pytest.approx(10.0)
    assert wrapped.closest_vehicle(995.0, 1, 30.0) is vehicle

    behind = make_vehicle(995.0, 1)
    wrapped = TrafficSnapshot([behind], max_arc_length=1000.0)
    assert wrapped.distance(behind, 3.0) == pytest.approx(-8.0)
    assert wrapped.closest_vehicle(3.0, 1, -10.0) is behind

    assert TrafficSnapshot([vehicle]).closest_vehicle(995.0, 1, 30.0) is None


def test_distance_at_half_loop_is_ahead():
    """Wrapped distances lie in (-L/2, L/2]."""
    vehicle = make_vehicle(600.0, 1)
    snapshot = TrafficSnapshot([vehicle], max_arc_length=1000.0)

    assert snapshot.distance(vehicle, 100.0) == pytest.approx(500.0)
    assert snapshot.distance(vehicle, 99.0) == pytest.approx(-499.0)
    assert snapshot.distance(vehicle, 101.0) == pytest.approx(499.0)


def test_module_level_closest_vehicle():
    vehicle = make_vehicle(98.0, 2, speed=10.0)
    found = closest_vehicle(100.0, 2, [vehicle], horizon_steps=50, bound=30.0)
    assert found is vehicle
    assert closest_vehicle(100.0, 1, [vehicle], horizon_steps=50, bound=30.0) is None
