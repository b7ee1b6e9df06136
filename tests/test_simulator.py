"""Closed-loop tests of the planner in the highway simulator."""

import numpy as np
import pytest

from highway_planner.config import PlannerConfig
from highway_planner.core.metrics import calculate_aggregate_metrics, calculate_motion_profile
from highway_planner.simulation import HighwaySimulator


@pytest.fixture
def empty_road_config(tmp_path):
    return PlannerConfig(total_cycles=100, traffic=[], output_path=str(tmp_path / "output"))


def test_initial_telemetry(empty_road_config):
    sim = HighwaySimulator(empty_road_config)
    telemetry = sim.get_telemetry()

    assert telemetry.prev_size == 0
    assert telemetry.ego.x == pytest.approx(506.0)
    assert telemetry.ego.y == pytest.approx(0.0, abs=1e-9)
    assert telemetry.ego.yaw == pytest.approx(np.pi / 2)
    assert telemetry.ego.d == pytest.approx(6.0)


def test_empty_road(empty_road_config):
    sim = HighwaySimulator(empty_road_config)
    history = sim.run()

    assert len(history) == 100
    for result in history:
        assert len(result.trajectory) == 50
        assert np.all(np.isfinite(result.trajectory.to_array()))
        assert result.decision.lane == 1

    # queued points come back as the previous path
    assert sim.get_telemetry().prev_size == 50 - empty_road_config.points_per_cycle

    ref_speeds = [r.decision.reference_speed for r in history]
    assert ref_speeds[-1] == pytest.approx(100 * 0.224)
    assert np.all(np.diff(ref_speeds) > 0)

    assert sim.ego.s > 0.0
    assert sim.ego.d == pytest.approx(6.0, abs=0.2)
    assert sim.time == pytest.approx(100 * 3 * 0.02)


def test_reference_speed_stays_below_limit(tmp_path):
    config = PlannerConfig(initial_reference_speed=48.0, traffic=[], output_path=str(tmp_path))
    sim = HighwaySimulator(config)
    history = sim.run(n_cycles=30)

    for result in history:
        assert result.decision.reference_speed <= config.speed_limit + config.speed_step_up
    assert history[-1].decision.reference_speed < config.speed_limit + config.speed_step_up


def test_overtakes_slow_vehicle(tmp_path):
    config = PlannerConfig(traffic=[[40.0, 1, 5.0]], output_path=str(tmp_path))
    sim = HighwaySimulator(config)
    history = sim.run(n_cycles=300)

    assert len(history) == 300
    lanes = [r.decision.lane for r in history]
    assert all(0 <= lane < config.num_lanes for lane in lanes)
    assert lanes[-1] != 1

    metrics = calculate_aggregate_metrics(history)
    assert metrics['collision_count'] == 0
    assert metrics['lane_changes'] >= 1
    assert metrics['min_dist'] > config.collision_radius


def test_motion_profile(empty_road_config):
    sim = HighwaySimulator(empty_road_config)
    history = sim.run(n_cycles=20)

    profile = calculate_motion_profile(history)
    assert len(profile['speed']) == 20
    assert len(profile['accel']) == 19
    assert len(profile['jerk']) == 18
    assert np.all(profile['speed'] >= 0.0)


def test_save_results(empty_road_config, tmp_path):
    sim = HighwaySimulator(empty_road_config)
    sim.run(n_cycles=10)
    metrics = sim.save_results()

    output_dir = tmp_path / "output"
    assert (output_dir / "trajectory.npz").exists()
    assert (output_dir / "metrics_summary.csv").exists()
    assert (output_dir / "metrics_report.txt").exists()

    data = np.load(output_dir / "trajectory.npz", allow_pickle=True)
    assert len(data['times']) == 10
    assert data['lane_costs'].shape == (10, 3)
    assert len(data['planned_paths']) == 10
    assert data['planned_paths'][-1].shape == (50, 2)
    assert data['planned_paths'][-1][0, 0] == pytest.approx(sim.history[-1].trajectory.x[0])

    assert metrics['collision_count'] == 0
    assert metrics['lane_changes'] == 0
    assert metrics['min_dist'] == float('inf')
