"""Core data structures for the highway planning system.

This module defines the fundamental data structures shared by the road frame,
the traffic model, the behavior layer and the trajectory layer, ensuring clear
interfaces between them.
"""

import math
from dataclasses import dataclass, field
from typing import Optional, List, Sequence, Dict, Any

import numpy as np


@dataclass(frozen=True)
class RoadPoint:
    """Sample of the road centerline.

    Attributes:
        s: Arc length along the road [m]
        x: X coordinate in global frame [m]
        y: Y coordinate in global frame [m]
        dx: X component of the lateral unit vector
        dy: Y component of the lateral unit vector
    """
    s: float
    x: float
    y: float
    dx: float
    dy: float


@dataclass
class VehicleObservation:
    """Another vehicle as reported by sensor fusion.

    Attributes:
        id: Vehicle identifier
        x, y: Position in global frame [m]
        vx, vy: Velocity in global frame [m/s]
        s: Arc length along the road [m]
        d: Lateral offset from the road centerline [m]
    """
    id: int
    x: float
    y: float
    vx: float
    vy: float
    s: float
    d: float

    @property
    def speed(self) -> float:
        """Velocity magnitude [m/s]."""
        return math.sqrt(self.vx * self.vx + self.vy * self.vy)

    @classmethod
    def from_list(cls, row: Sequence[float]) -> 'VehicleObservation':
        """Create from a sensor fusion row [id, x, y, vx, vy, s, d]."""
        if len(row) < 7:
            raise ValueError(f"Sensor fusion row needs 7 values [id, x, y, vx, vy, s, d], got {len(row)}")
        return cls(id=int(row[0]), x=float(row[1]), y=float(row[2]),
                   vx=float(row[3]), vy=float(row[4]),
                   s=float(row[5]), d=float(row[6]))


@dataclass
class PlannerState:
    """Cross-cycle state of the planner.

    Attributes:
        lane: Target lane index (0 is the leftmost lane)
        reference_speed: Reference speed [mph]
    """
    lane: int = 1
    reference_speed: float = 0.0


@dataclass
class EgoPose:
    """Localization of the ego vehicle.

    Attributes:
        x: X coordinate in global frame [m]
        y: Y coordinate in global frame [m]
        yaw: Heading angle [rad]
        speed: Speed [mph]
        s: Arc length along the road [m]
        d: Lateral offset from the road centerline [m]
    """
    x: float
    y: float
    yaw: float
    speed: float = 0.0
    s: float = 0.0
    d: float = 0.0


@dataclass
class Trajectory:
    """Sequence of world positions visited at the control cadence."""
    x: List[float] = field(default_factory=list)
    y: List[float] = field(default_factory=list)

    def __len__(self) -> int:
        return min(len(self.x), len(self.y))

    def append(self, x: float, y: float) -> None:
        self.x.append(float(x))
        self.y.append(float(y))

    def to_array(self) -> np.ndarray:
        """Convert to numpy array [n_points, 2]."""
        if len(self) == 0:
            return np.empty((0, 2))
        return np.column_stack([self.x[:len(self)], self.y[:len(self)]])


@dataclass
class Telemetry:
    """One telemetry update from the simulator.

    Attributes:
        ego: Ego vehicle pose
        previous_path_x, previous_path_y: Unconsumed points of the last output
        end_path_s, end_path_d: Road coordinates of the last unconsumed point
        sensor_fusion: Other vehicles on the same side of the road
    """
    ego: EgoPose
    previous_path_x: List[float] = field(default_factory=list)
    previous_path_y: List[float] = field(default_factory=list)
    end_path_s: float = 0.0
    end_path_d: float = 0.0
    sensor_fusion: List[VehicleObservation] = field(default_factory=list)

    @property
    def prev_size(self) -> int:
        """Number of unconsumed points from the previous cycle."""
        return min(len(self.previous_path_x), len(self.previous_path_y))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Telemetry':
        """Create from the simulator telemetry payload.

        The simulator reports yaw in degrees; it is stored in radians.
        """
        try:
            ego = EgoPose(
                x=float(data['x']),
                y=float(data['y']),
                yaw=math.radians(float(data['yaw'])),
                speed=float(data['speed']),
                s=float(data['s']),
                d=float(data['d']),
            )
            return cls(
                ego=ego,
                previous_path_x=[float(v) for v in data.get('previous_path_x', [])],
                previous_path_y=[float(v) for v in data.get('previous_path_y', [])],
                end_path_s=float(data.get('end_path_s', 0.0)),
                end_path_d=float(data.get('end_path_d', 0.0)),
                sensor_fusion=[VehicleObservation.from_list(row)
                               for row in data.get('sensor_fusion', [])],
            )
        except KeyError as e:
            raise ValueError(f"Telemetry payload is missing field {e}") from e
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid telemetry payload: {e}") from e


@dataclass
class BehaviorDecision:
    """Outcome of one behavior arbitration cycle.

    Attributes:
        costs: Cost per lane, after all terms
        front_vehicles: Nearest vehicle ahead per lane (None when clear)
        rear_vehicles: Nearest vehicle behind per lane (None when clear)
        previous_lane: Lane before the decision
        lane: Lane after the decision
        previous_speed: Reference speed before the decision [mph]
        reference_speed: Reference speed after the decision [mph]
        target_vehicle: Front vehicle in the resulting lane, if any
    """
    costs: List[float]
    front_vehicles: List[Optional[VehicleObservation]]
    rear_vehicles: List[Optional[VehicleObservation]]
    previous_lane: int
    lane: int
    previous_speed: float
    reference_speed: float
    target_vehicle: Optional[VehicleObservation] = None

    @property
    def lane_changed(self) -> bool:
        return self.lane != self.previous_lane


@dataclass
class PlanningResult:
    """Output of one planning cycle."""
    trajectory: Trajectory
    decision: BehaviorDecision
    ego_arc_length: float


@dataclass
class SimulationResult:
    """Results from one simulation cycle.

    Attributes:
        time: Simulation time at the start of the cycle [s]
        ego: Ego pose reported in this cycle's telemetry
        vehicles: Other vehicles reported in this cycle
        trajectory: Trajectory returned by the planner
        decision: Behavior decision of the planner
        metrics: Dictionary of per-cycle metrics
    """
    time: float
    ego: EgoPose
    vehicles: List[VehicleObservation]
    trajectory: Trajectory
    decision: BehaviorDecision
    metrics: dict = field(default_factory=dict)

    def compute_safety_metrics(
        self,
        lane_width: float,
        collision_radius: float,
        max_arc_length: Optional[float] = None
    ) -> dict:
        """Compute safety-related metrics.

        Returns:
            Dictionary containing:
                - min_distance: Euclidean distance to the closest vehicle [m]
                - front_gap: Arc length gap to the closest vehicle ahead in the ego lane [m]
                - collision: Whether any vehicle is inside the collision radius
        """
        if not self.vehicles:
            return {'min_distance': float('inf'), 'front_gap': float('inf'), 'collision': False}

        ego_pos = np.array([self.ego.x, self.ego.y])
        positions = np.array([[v.x, v.y] for v in self.vehicles])
        distances = np.linalg.norm(positions - ego_pos, axis=1)
        min_distance = float(np.min(distances))

        ego_lane = int(self.ego.d // lane_width)
        front_gap = float('inf')
        for vehicle in self.vehicles:
            if int(vehicle.d // lane_width) != ego_lane:
                continue
            gap = vehicle.s - self.ego.s
            if max_arc_length is not None:
                gap %= max_arc_length
            if 0.0 <= gap < front_gap:
                front_gap = gap

        return {
            'min_distance': min_distance,
            'front_gap': front_gap,
            'collision': min_distance < collision_radius,
        }
