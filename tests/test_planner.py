"""Tests for the per-cycle planner loop."""

import json

import pytest

from highway_planner import HighwayPlanner, PlannerConfig, build_road_frame
from highway_planner.core.data_structures import EgoPose, Telemetry, VehicleObservation
from highway_planner.core.road_frame import RoadFrameConverter


@pytest.fixture
def planner(road_frame):
    return HighwayPlanner(PlannerConfig(), road_frame)


def telemetry_payload(road_frame, s=0.0, d=6.0, **overrides):
    x, y = road_frame.to_world(s, d)
    payload = {
        "x": x,
        "y": y,
        "s": s,
        "d": d,
        "yaw": 90.0,
        "speed": 0.0,
        "previous_path_x": [],
        "previous_path_y": [],
        "end_path_s": 0.0,
        "end_path_d": 0.0,
        "sensor_fusion": [],
    }
    payload.update(overrides)
    return payload


def test_build_road_frame_loop():
    road_frame = build_road_frame(PlannerConfig(loop_radius=200.0, loop_points=60))
    assert isinstance(road_frame, RoadFrameConverter)
    assert road_frame.n_points == 60
    assert road_frame.max_arc_length == pytest.approx(400.0 * 3.141592653589793)


def test_initial_state(planner):
    assert planner.state.lane == 1
    assert planner.state.reference_speed == 0.0
    assert planner.cycle_count == 0


def test_step_from_standstill(planner, road_frame):
    telemetry = Telemetry.from_dict(telemetry_payload(road_frame))
    result = planner.step(telemetry)

    assert len(result.trajectory) == 50
    assert result.ego_arc_length == 0.0
    assert result.decision.lane == 1
    assert planner.state.reference_speed == pytest.approx(0.224)
    assert planner.cycle_count == 1


def test_step_uses_end_of_previous_path(planner, road_frame):
    """With a queued path, traffic is compared against its end point."""
    tail = [road_frame.to_world(s, 6.0) for s in (199.0, 200.0)]
    blocker = VehicleObservation(id=7, x=0.0, y=0.0, vx=0.0, vy=0.0, s=210.0, d=6.0)
    telemetry = Telemetry(
        ego=EgoPose(x=506.0, y=0.0, yaw=1.57, speed=20.0, s=0.0, d=6.0),
        previous_path_x=[p[0] for p in tail],
        previous_path_y=[p[1] for p in tail],
        end_path_s=200.0,
        end_path_d=6.0,
        sensor_fusion=[blocker],
    )
    planner.state.reference_speed = 20.0

    result = planner.step(telemetry)

    assert result.ego_arc_length == 200.0
    assert result.decision.front_vehicles[1] is blocker
    assert result.decision.lane == 2
    assert result.trajectory.x[:2] == telemetry.previous_path_x
    assert len(result.trajectory) == 50


def test_handle_telemetry_message(planner, road_frame):
    raw = "42" + json.dumps(["telemetry", telemetry_payload(road_frame)])
    reply = planner.handle_message(raw)

    assert reply.startswith('42["control"')
    event, payload = json.loads(reply[2:])
    assert event == "control"
    assert len(payload["next_x"]) == 50
    assert len(payload["next_y"]) == 50
    assert planner.state.reference_speed == pytest.approx(0.224)


def test_handle_message_keeps_state_across_cycles(planner, road_frame):
    raw = "42" + json.dumps(["telemetry", telemetry_payload(road_frame)])
    for _ in range(5):
        planner.handle_message(raw)
    assert planner.state.reference_speed == pytest.approx(5 * 0.224)
    assert planner.cycle_count == 5


def test_handle_null_payload(planner):
    assert planner.handle_message('42["telemetry",null]') == '42["manual",{}]'
    assert planner.cycle_count == 0


def test_handle_other_frames(planner):
    assert planner.handle_message('0{"sid":"abc"}') is None
    assert planner.handle_message('42["ping",{}]') is None
    assert planner.cycle_count == 0


def test_handle_incomplete_telemetry(planner):
    with pytest.raises(ValueError):
        planner.handle_message('42["telemetry",{"x":1.0}]')
