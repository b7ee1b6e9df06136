import numpy as np
from typing import List, Dict
from .data_structures import SimulationResult


def calculate_motion_profile(history: List[SimulationResult], speed_conversion_factor: float = 2.24) -> Dict[str, np.ndarray]:
    """Speed, acceleration and jerk of the ego vehicle over a run.

    Args:
        history: List of simulation results
        speed_conversion_factor: Ratio of reported speed units (mph) to m/s

    Returns:
        Dictionary with 'time', 'speed' [m/s], 'accel' [m/s²] and 'jerk' [m/s³]
    """
    times = np.array([r.time for r in history], dtype=float)
    speeds = np.array([r.ego.speed for r in history], dtype=float) / speed_conversion_factor

    if len(history) < 2:
        return {'time': times, 'speed': speeds, 'accel': np.zeros(0), 'jerk': np.zeros(0)}

    dt = np.diff(times)
    dt[dt <= 0] = np.nan
    accel = np.diff(speeds) / dt
    if len(accel) >= 2:
        jerk = np.diff(accel) / dt[1:]
    else:
        jerk = np.zeros(0)

    return {
        'time': times,
        'speed': speeds,
        'accel': accel[np.isfinite(accel)],
        'jerk': jerk[np.isfinite(jerk)],
    }


def calculate_aggregate_metrics(history: List[SimulationResult], speed_conversion_factor: float = 2.24) -> Dict[str, float]:
    """Calculate aggregate metrics for the entire simulation."""

    # Safety
    min_distances = [r.metrics.get('min_distance', float('inf')) for r in history]
    front_gaps = [r.metrics.get('front_gap', float('inf')) for r in history]

    # Comfort
    profile = calculate_motion_profile(history, speed_conversion_factor)
    speeds = profile['speed']
    accels = np.abs(profile['accel'])
    jerks = np.abs(profile['jerk'])

    # Behavior
    lane_changes = sum(1 for r in history if r.decision.lane_changed)
    ref_speeds = [r.decision.reference_speed for r in history]

    metrics = {
        "min_dist": min(min_distances) if min_distances else float('inf'),
        "min_front_gap": min(front_gaps) if front_gaps else float('inf'),
        "collision_count": sum(1 for r in history if r.metrics.get('collision', False)),
        "max_speed": float(np.max(speeds)) if len(speeds) else 0.0,
        "mean_speed": float(np.mean(speeds)) if len(speeds) else 0.0,
        "max_accel": float(np.max(accels)) if len(accels) else 0.0,
        "max_jerk": float(np.max(jerks)) if len(jerks) else 0.0,
        "mean_jerk": float(np.mean(jerks)) if len(jerks) else 0.0,
        "lane_changes": lane_changes,
        "max_reference_speed": max(ref_speeds) if ref_speeds else 0.0,
    }

    return metrics
