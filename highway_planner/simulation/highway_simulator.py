"""Closed-loop highway simulator for the planner.

The ego vehicle drives the points of the trajectory returned by the planner,
a few points per telemetry update, while other vehicles keep their lane at a
constant speed. Telemetry is built the same way the driving simulator reports
it, so the planner runs unmodified.
"""

import csv
import math
from dataclasses import dataclass, replace
from pathlib import Path
from typing import List, Optional

import numpy as np
from loguru import logger

from ..config import PlannerConfig
from ..core.data_structures import (
    EgoPose,
    SimulationResult,
    Telemetry,
    VehicleObservation,
)
from ..core.metrics import calculate_aggregate_metrics
from ..core.road_frame import RoadFrameConverter, normalize_angle
from ..core.traffic import lane_center
from ..planner import HighwayPlanner, build_road_frame


@dataclass
class TrafficVehicle:
    """Vehicle keeping its lane at constant speed.

    Attributes:
        id: Vehicle identifier
        s: Arc length [m]
        lane: Lane index
        speed: Speed [m/s]
    """
    id: int
    s: float
    lane: int
    speed: float


class HighwaySimulator:
    """Offline closed-loop simulation of the planner.

    Args:
        config: Planner and simulation configuration
        road_frame: Road frame converter; built from the configuration when omitted
    """

    def __init__(self, config: PlannerConfig, road_frame: Optional[RoadFrameConverter] = None):
        self.config = config
        self.time = 0.0
        self.step_count = 0
        self.history: List[SimulationResult] = []

        logger.info("Initializing highway simulator...")

        self.road_frame = road_frame or build_road_frame(config)
        self.planner = HighwayPlanner(config, self.road_frame)

        self.traffic = [
            TrafficVehicle(id=i, s=float(s) % self.road_frame.max_arc_length, lane=int(lane), speed=float(speed))
            for i, (s, lane, speed) in enumerate(config.traffic)
        ]
        if not self.traffic:
            logger.warning("No traffic in scenario")

        s0 = config.ego_initial_s % self.road_frame.max_arc_length
        d0 = lane_center(config.initial_lane, config.lane_width)
        x0, y0 = self.road_frame.to_world(s0, d0)
        self.ego = EgoPose(x=x0, y=y0, yaw=self._road_heading(s0), speed=0.0, s=s0, d=d0)

        self.pending_x: List[float] = []
        self.pending_y: List[float] = []

        logger.info(f"Highway simulator initialized with {len(self.traffic)} vehicles, "
                    f"ego at s={s0:.1f}m in lane {config.initial_lane}")

    def _road_heading(self, s: float) -> float:
        """Driving direction of the road at s [rad]."""
        nx, ny = self.road_frame.lateral_vector(s)
        # the lateral vector points to the right of the driving direction
        return math.atan2(nx, -ny)

    def _observe_traffic(self) -> List[VehicleObservation]:
        observations = []
        for vehicle in self.traffic:
            d = lane_center(vehicle.lane, self.config.lane_width)
            x, y = self.road_frame.to_world(vehicle.s, d)
            heading = self._road_heading(vehicle.s)
            observations.append(VehicleObservation(
                id=vehicle.id,
                x=x,
                y=y,
                vx=vehicle.speed * math.cos(heading),
                vy=vehicle.speed * math.sin(heading),
                s=vehicle.s,
                d=d,
            ))
        return observations

    def get_telemetry(self) -> Telemetry:
        """Telemetry as the driving simulator would report it now."""
        end_path_s, end_path_d = 0.0, 0.0
        if self.pending_x:
            end_path_s, end_path_d = self.road_frame.to_road_frame(self.pending_x[-1], self.pending_y[-1])
        return Telemetry(
            ego=replace(self.ego),
            previous_path_x=list(self.pending_x),
            previous_path_y=list(self.pending_y),
            end_path_s=end_path_s,
            end_path_d=end_path_d,
            sensor_fusion=self._observe_traffic(),
        )

    def _drive(self, xs: List[float], ys: List[float]):
        """Move the ego vehicle along the given points."""
        if not xs:
            return
        prev_x, prev_y = self.ego.x, self.ego.y
        if len(xs) >= 2:
            prev_x, prev_y = xs[-2], ys[-2]
        x, y = xs[-1], ys[-1]

        step = math.hypot(x - prev_x, y - prev_y)
        if step > 1e-6:
            self.ego.yaw = normalize_angle(math.atan2(y - prev_y, x - prev_x))
        self.ego.speed = step / self.config.cycle_duration * self.config.speed_conversion_factor
        self.ego.x, self.ego.y = x, y
        self.ego.s, self.ego.d = self.road_frame.to_road_frame(x, y)

    def step(self) -> SimulationResult:
        """Execute one telemetry cycle.

        Returns:
            Simulation result for this cycle
        """
        telemetry = self.get_telemetry()
        planning = self.planner.step(telemetry)

        result = SimulationResult(
            time=self.time,
            ego=telemetry.ego,
            vehicles=telemetry.sensor_fusion,
            trajectory=planning.trajectory,
            decision=planning.decision,
        )
        result.metrics = result.compute_safety_metrics(
            self.config.lane_width,
            self.config.collision_radius,
            max_arc_length=self.road_frame.max_arc_length,
        )
        self.history.append(result)

        # the vehicle drives the first points; the rest comes back as previous path
        n = self.config.points_per_cycle
        trajectory = planning.trajectory
        self._drive(trajectory.x[:n], trajectory.y[:n])
        self.pending_x = trajectory.x[n:]
        self.pending_y = trajectory.y[n:]

        elapsed = n * self.config.cycle_duration
        for vehicle in self.traffic:
            vehicle.s = (vehicle.s + vehicle.speed * elapsed) % self.road_frame.max_arc_length

        self.time += elapsed
        self.step_count += 1
        return result

    def run(self, n_cycles: Optional[int] = None) -> List[SimulationResult]:
        """Run simulation for multiple cycles.

        Args:
            n_cycles: Number of cycles to run (if None, use config.total_cycles)

        Returns:
            List of simulation results
        """
        if n_cycles is None:
            n_cycles = self.config.total_cycles

        logger.info(f"Running simulation for {n_cycles} cycles "
                    f"(T={n_cycles * self.config.points_per_cycle * self.config.cycle_duration:.1f}s)")

        for i in range(n_cycles):
            result = self.step()

            if i % 50 == 0:
                logger.info(f"Cycle {i}/{n_cycles}, t={self.time:.2f}s, "
                            f"ego=({self.ego.x:.1f}, {self.ego.y:.1f}), s={self.ego.s:.1f}m, "
                            f"lane={self.planner.state.lane}, "
                            f"ref_vel={self.planner.state.reference_speed:.2f}mph")

            if result.metrics.get('collision', False):
                logger.error(f"Collision detected at t={self.time:.2f}s!")
                break

        logger.info(f"Simulation complete: {len(self.history)} cycles")
        return self.history

    def save_results(self, output_path: Optional[str] = None):
        """Save simulation results to files.

        Args:
            output_path: Output directory path
        """
        if output_path is None:
            output_path = self.config.output_path

        output_dir = Path(output_path)
        output_dir.mkdir(parents=True, exist_ok=True)

        planned_paths = np.empty(len(self.history), dtype=object)
        for i, r in enumerate(self.history):
            planned_paths[i] = r.trajectory.to_array()

        trajectory_file = output_dir / "trajectory.npz"
        np.savez(
            trajectory_file,
            times=np.array([r.time for r in self.history]),
            ego_x=np.array([r.ego.x for r in self.history]),
            ego_y=np.array([r.ego.y for r in self.history]),
            ego_s=np.array([r.ego.s for r in self.history]),
            ego_d=np.array([r.ego.d for r in self.history]),
            ego_speed=np.array([r.ego.speed for r in self.history]),
            lane=np.array([r.decision.lane for r in self.history]),
            reference_speed=np.array([r.decision.reference_speed for r in self.history]),
            lane_costs=np.array([r.decision.costs for r in self.history]),
            min_distances=np.array([r.metrics.get('min_distance', float('inf')) for r in self.history]),
            planned_paths=planned_paths,
        )
        logger.info(f"Saved trajectory data to {trajectory_file}")

        metrics = calculate_aggregate_metrics(self.history, self.config.speed_conversion_factor)

        context = {
            "scenario_file": str(self.config.config_path or 'none'),
            "map_file": str(self.config.map_file or 'loop'),
            "total_time": self.time,
            "cycles": len(self.history),
        }

        csv_path = output_dir / "metrics_summary.csv"
        csv_data = context.copy()
        csv_data.update(metrics)
        with open(csv_path, 'w', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=csv_data.keys())
            writer.writeheader()
            writer.writerow(csv_data)
        logger.info(f"Saved metrics summary to {csv_path}")

        txt_path = output_dir / "metrics_report.txt"
        with open(txt_path, 'w') as f:
            f.write("=" * 40 + "\n")
            f.write("       SIMULATION REPORT\n")
            f.write("=" * 40 + "\n\n")

            f.write("--- Configuration ---\n")
            for k, v in context.items():
                f.write(f"{k}: {v}\n")
            f.write("\n")

            f.write("--- Metrics ---\n")
            for k, v in metrics.items():
                f.write(f"{k}: {v}\n")
            f.write("\n")
            f.write("=" * 40 + "\n")
        logger.info(f"Saved metrics report to {txt_path}")

        return metrics
