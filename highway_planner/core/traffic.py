"""Per-cycle view of the vehicles around the ego vehicle."""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .data_structures import VehicleObservation


CYCLE_DURATION = 0.02  # Time between two trajectory points [s]
LANE_WIDTH = 4.0  # [m]


def lane_center(lane: int, lane_width: float = LANE_WIDTH) -> float:
    """Lateral offset of a lane centerline [m]."""
    return lane_width * (lane + 0.5)


def in_lane(d: float, lane: int, lane_width: float = LANE_WIDTH) -> bool:
    """Whether a lateral offset lies strictly inside a lane."""
    return abs(d - lane_center(lane, lane_width)) < lane_width / 2.0


@dataclass
class TrafficSnapshot:
    """Vehicles observed in one cycle, projected to the end of the queued path.

    Other vehicles are extrapolated at constant speed by the time the ego
    vehicle needs to consume the ``horizon_steps`` points still queued, so
    that they are compared with the ego position at the end of that path.

    Attributes:
        observations: Vehicles reported by sensor fusion
        horizon_steps: Number of queued trajectory points
        cycle_duration: Time between two trajectory points [s]
        lane_width: Lane width [m]
        max_arc_length: Loop length [m]; when set, distances wrap around the loop
    """
    observations: Sequence[VehicleObservation] = field(default_factory=list)
    horizon_steps: int = 0
    cycle_duration: float = CYCLE_DURATION
    lane_width: float = LANE_WIDTH
    max_arc_length: Optional[float] = None

    def projected_arc_length(self, vehicle: VehicleObservation) -> float:
        """Arc length of a vehicle after the queued path has been driven [m]."""
        return vehicle.s + self.horizon_steps * self.cycle_duration * vehicle.speed

    def distance(self, vehicle: VehicleObservation, arc_length: float) -> float:
        """Signed arc length from the ego position to the projected vehicle [m]."""
        dist = self.projected_arc_length(vehicle) - arc_length
        if self.max_arc_length is not None:
            half = self.max_arc_length / 2.0
            dist = half - (half - dist) % self.max_arc_length
        return dist

    def vehicles_in_lane(self, lane: int) -> List[VehicleObservation]:
        return [v for v in self.observations if in_lane(v.d, lane, self.lane_width)]

    def closest_vehicle(
        self,
        arc_length: float,
        lane: int,
        bound: float
    ) -> Optional[VehicleObservation]:
        """Find the nearest vehicle in a lane within a signed range.

        Args:
            arc_length: Ego arc length [m]
            lane: Lane index
            bound: Range [m]; positive searches ahead, negative searches behind

        Returns:
            The nearest qualifying vehicle, or None when the range is clear
        """
        candidates = []
        for vehicle in self.vehicles_in_lane(lane):
            dist = self.distance(vehicle, arc_length)
            if bound >= 0 and 0 < dist < bound:
                candidates.append((dist, vehicle))
            elif bound < 0 and bound < dist < 0:
                candidates.append((-dist, vehicle))

        if not candidates:
            return None
        return min(candidates, key=lambda item: item[0])[1]


def closest_vehicle(
    arc_length: float,
    lane: int,
    observations: Sequence[VehicleObservation],
    horizon_steps: int,
    bound: float,
    cycle_duration: float = CYCLE_DURATION,
    lane_width: float = LANE_WIDTH,
    max_arc_length: Optional[float] = None
) -> Optional[VehicleObservation]:
    """Nearest vehicle ahead (bound >= 0) or behind (bound < 0) in a lane."""
    snapshot = TrafficSnapshot(
        observations=observations,
        horizon_steps=horizon_steps,
        cycle_duration=cycle_duration,
        lane_width=lane_width,
        max_arc_length=max_arc_length,
    )
    return snapshot.closest_vehicle(arc_length, lane, bound)
