import math

import numpy as np
import pytest

from highway_planner.core.data_structures import (
    BehaviorDecision,
    EgoPose,
    SimulationResult,
    Telemetry,
    Trajectory,
    VehicleObservation,
)


def test_vehicle_from_list():
    vehicle = VehicleObservation.from_list([3, 10.0, 20.0, 3.0, 4.0, 150.0, 6.0])
    assert vehicle.id == 3
    assert vehicle.speed == pytest.approx(5.0)
    assert (vehicle.s, vehicle.d) == (150.0, 6.0)

    with pytest.raises(ValueError):
        VehicleObservation.from_list([1, 2.0, 3.0])


def test_trajectory():
    trajectory = Trajectory()
    assert len(trajectory) == 0
    assert trajectory.to_array().shape == (0, 2)

    trajectory.append(1, 2)
    trajectory.append(3.0, 4.0)
    assert len(trajectory) == 2
    assert np.array_equal(trajectory.to_array(), np.array([[1.0, 2.0], [3.0, 4.0]]))


def test_telemetry_from_dict():
    payload = {
        "x": 909.48, "y": 1128.67, "yaw": 90.0, "speed": 12.5, "s": 124.83, "d": 6.16,
        "previous_path_x": [910.0, 911.0],
        "previous_path_y": [1129.0, 1130.0],
        "end_path_s": 126.0, "end_path_d": 6.0,
        "sensor_fusion": [[0, 1000.0, 1130.0, 10.0, 0.0, 200.0, 2.0]],
    }
    telemetry = Telemetry.from_dict(payload)

    assert telemetry.ego.yaw == pytest.approx(math.pi / 2)
    assert telemetry.ego.speed == 12.5
    assert telemetry.prev_size == 2
    assert telemetry.sensor_fusion[0].s == 200.0
    assert telemetry.previous_path_x == [910.0, 911.0]
    assert telemetry.end_path_s == 126.0
    assert telemetry.sensor_fusion[0].speed == pytest.approx(10.0)


def test_telemetry_defaults_and_errors():
    telemetry = Telemetry.from_dict({"x": 1.0, "y": 2.0, "yaw": 0.0, "speed": 0.0, "s": 0.0, "d": 6.0})
    assert telemetry.prev_size == 0
    assert telemetry.sensor_fusion == []

    with pytest.raises(ValueError):
        Telemetry.from_dict({"x": 1.0})
    with pytest.raises(ValueError):
        Telemetry.from_dict({"x": "a", "y": 2.0, "yaw": 0.0, "speed": 0.0, "s": 0.0, "d": 6.0})


def make_result(ego, vehicles):
    decision = BehaviorDecision(
        costs=[0.0, 0.0, 0.0],
        front_vehicles=[None] * 3,
        rear_vehicles=[None] * 3,
        previous_lane=1,
        lane=1,
        previous_speed=0.0,
        reference_speed=0.224,
    )
    return SimulationResult(time=0.0, ego=ego, vehicles=vehicles, trajectory=Trajectory(), decision=decision)


def test_safety_metrics():
    ego = EgoPose(x=0.0, y=0.0, yaw=0.0, s=100.0, d=6.0)
    vehicles = [
        VehicleObservation(id=0, x=20.0, y=0.0, vx=0.0, vy=0.0, s=120.0, d=6.0),
        VehicleObservation(id=1, x=3.0, y=4.0, vx=0.0, vy=0.0, s=103.0, d=10.0),
    ]
    metrics = make_result(ego, vehicles).compute_safety_metrics(lane_width=4.0, collision_radius=2.5)

    assert metrics['min_distance'] == pytest.approx(5.0)
    assert metrics['front_gap'] == pytest.approx(20.0)
    assert not metrics['collision']

    vehicles.append(VehicleObservation(id=2, x=1.0, y=1.0, vx=0.0, vy=0.0, s=101.0, d=6.0))
    metrics = make_result(ego, vehicles).compute_safety_metrics(lane_width=4.0, collision_radius=2.5)
    assert metrics['collision']
    assert metrics['front_gap'] == pytest.approx(1.0)


def test_safety_metrics_wrap_and_empty():
    ego = EgoPose(x=0.0, y=0.0, yaw=0.0, s=995.0, d=6.0)
    vehicle = VehicleObservation(id=0, x=10.0, y=0.0, vx=0.0, vy=0.0, s=5.0, d=6.0)
    metrics = make_result(ego, [vehicle]).compute_safety_metrics(4.0, 2.5, max_arc_length=1000.0)
    assert metrics['front_gap'] == pytest.approx(10.0)

    metrics = make_result(ego, []).compute_safety_metrics(4.0, 2.5)
    assert metrics == {'min_distance': float('inf'), 'front_gap': float('inf'), 'collision': False}
