"""Cost-based lane and speed arbitration.

Every cycle each lane is scored from the nearest vehicles ahead of and behind
the ego vehicle; the ego vehicle then moves at most one lane towards a cheaper
lane and ramps its reference speed by a bounded step.
"""

from dataclasses import dataclass
from typing import List, Optional

from loguru import logger

from ..core.data_structures import BehaviorDecision, PlannerState, VehicleObservation
from ..core.traffic import TrafficSnapshot


# Range parameters
RANGE_AHEAD = 30.0  # Search range for vehicles ahead [m]

# Speed parameters
SPEED_LIMIT = 49.5  # [mph]
SPEED_STEP_UP = 0.224  # Reference speed increase per cycle [mph]
SPEED_STEP_DOWN = 0.224  # Reference speed decrease per cycle [mph]
MPS_TO_MPH = 2.24
FOLLOW_GAP_MARGIN = 0.5  # [m/s]

# Cost weights
W_SPEED = 1.0  # Slow vehicle ahead
W_DISTANCE = 40.0  # Close vehicle ahead
W_STAY = 5.0  # Bonus for the current lane
W_COLLISION = 1000.0  # Vehicle behind in another lane

MIN_FRONT_DISTANCE = 1e-3  # Clamp for the distance penalty [m]


@dataclass
class BehaviorParams:
    """Tunable parameters of the behavior arbiter.

    Attributes:
        range_ahead: Search range for vehicles ahead [m]
        range_behind: Search range for vehicles behind [m], defaults to range_ahead / 3
        speed_limit: Maximum reference speed [mph]
        w_speed: Weight of the speed of the vehicle ahead
        w_distance: Weight of the distance to the vehicle ahead
        w_stay: Cost reduction for the current lane
        w_collision: Cost of a vehicle behind in another lane
        speed_step_up: Reference speed increase per cycle [mph]
        speed_step_down: Reference speed decrease per cycle [mph]
        speed_conversion_factor: Ratio of reference speed units to vehicle speed units
        follow_gap_margin: Speed band below the vehicle ahead that is held [m/s]
        min_front_distance: Smallest distance used in the distance penalty [m]
    """
    range_ahead: float = RANGE_AHEAD
    range_behind: Optional[float] = None
    speed_limit: float = SPEED_LIMIT
    w_speed: float = W_SPEED
    w_distance: float = W_DISTANCE
    w_stay: float = W_STAY
    w_collision: float = W_COLLISION
    speed_step_up: float = SPEED_STEP_UP
    speed_step_down: float = SPEED_STEP_DOWN
    speed_conversion_factor: float = MPS_TO_MPH
    follow_gap_margin: float = FOLLOW_GAP_MARGIN
    min_front_distance: float = MIN_FRONT_DISTANCE

    def __post_init__(self):
        if self.range_behind is None:
            self.range_behind = self.range_ahead / 3.0


class BehaviorArbiter:
    """Chooses the target lane and adjusts the reference speed.

    Args:
        params: Arbiter parameters
        num_lanes: Number of same-direction lanes
    """

    def __init__(self, params: Optional[BehaviorParams] = None, num_lanes: int = 3):
        if num_lanes < 1:
            raise ValueError(f"num_lanes must be at least 1, got {num_lanes}")
        self.params = params or BehaviorParams()
        self.num_lanes = num_lanes
        logger.info(f"Behavior arbiter initialized with {num_lanes} lanes, "
                    f"range=[-{self.params.range_behind:.1f}, {self.params.range_ahead:.1f}]m, "
                    f"speed_limit={self.params.speed_limit}mph")

    def find_neighbors(self, ego_arc_length: float, snapshot: TrafficSnapshot):
        """Nearest vehicle ahead and behind in every lane."""
        fronts = [snapshot.closest_vehicle(ego_arc_length, lane, self.params.range_ahead)
                  for lane in range(self.num_lanes)]
        rears = [snapshot.closest_vehicle(ego_arc_length, lane, -self.params.range_behind)
                 for lane in range(self.num_lanes)]
        return fronts, rears

    def lane_costs(
        self,
        ego_arc_length: float,
        current_lane: int,
        snapshot: TrafficSnapshot,
        fronts: Optional[List[Optional[VehicleObservation]]] = None,
        rears: Optional[List[Optional[VehicleObservation]]] = None
    ) -> List[float]:
        """Cost of driving in each lane.

        Args:
            ego_arc_length: Ego arc length [m]
            current_lane: Lane the ego vehicle currently targets
            snapshot: Traffic around the ego vehicle
            fronts, rears: Precomputed neighbors (see find_neighbors)

        Returns:
            Cost per lane, lower is better
        """
        p = self.params
        if fronts is None or rears is None:
            fronts, rears = self.find_neighbors(ego_arc_length, snapshot)

        costs = [0.0] * self.num_lanes
        for lane in range(self.num_lanes):
            front = fronts[lane]
            if front is not None:
                costs[lane] += p.w_speed * (p.speed_limit - p.speed_conversion_factor * front.speed)
                dist = max(snapshot.distance(front, ego_arc_length), p.min_front_distance)
                costs[lane] += p.w_distance / dist

        if 0 <= current_lane < self.num_lanes:
            costs[current_lane] -= p.w_stay

        for lane in range(self.num_lanes):
            if rears[lane] is not None and lane != current_lane:
                costs[lane] += p.w_collision

        return costs

    def select_lane(self, lane: int, costs: List[float]) -> int:
        """Move at most one lane towards a cheaper neighbor.

        Moves to the right (higher index) are checked before moves to the left,
        so ties between both neighbors resolve to the right.
        """
        last = self.num_lanes - 1
        if last == 0:
            return lane

        # right
        if lane == 0:
            if costs[1] < costs[0]:
                return 1
        elif lane < last:
            if costs[lane + 1] < costs[lane] and costs[lane + 1] <= costs[lane - 1]:
                return lane + 1

        # left
        if lane == last:
            if costs[lane - 1] < costs[lane]:
                return lane - 1
        elif lane > 0:
            if costs[lane - 1] < costs[lane] and costs[lane - 1] < costs[lane + 1]:
                return lane - 1

        return lane

    def adjust_speed(self, reference_speed: float, target: Optional[VehicleObservation]) -> float:
        """Ramp the reference speed by one step towards the traffic ahead."""
        p = self.params
        if target is not None:
            if reference_speed / p.speed_conversion_factor > target.speed:
                reference_speed -= p.speed_step_down
            elif reference_speed / p.speed_conversion_factor < target.speed - p.follow_gap_margin:
                reference_speed += p.speed_step_up
        elif reference_speed < p.speed_limit:
            reference_speed += p.speed_step_up
        return max(reference_speed, 0.0)

    def decide(
        self,
        ego_arc_length: float,
        state: PlannerState,
        snapshot: TrafficSnapshot
    ) -> BehaviorDecision:
        """Update the planner state for this cycle.

        Args:
            ego_arc_length: Ego arc length at the end of the queued path [m]
            state: Planner state, updated in place
            snapshot: Traffic around the ego vehicle

        Returns:
            Details of the decision
        """
        previous_lane = state.lane
        previous_speed = state.reference_speed

        fronts, rears = self.find_neighbors(ego_arc_length, snapshot)
        costs = self.lane_costs(ego_arc_length, state.lane, snapshot, fronts, rears)

        state.lane = self.select_lane(state.lane, costs)
        target = fronts[state.lane]
        state.reference_speed = self.adjust_speed(state.reference_speed, target)

        if state.lane != previous_lane:
            logger.info(f"Lane change {previous_lane} -> {state.lane} at s={ego_arc_length:.1f}m, "
                        f"costs={[round(c, 2) for c in costs]}")
        logger.debug(f"Behavior: s={ego_arc_length:.1f}m, lane={state.lane}, "
                     f"ref_vel={state.reference_speed:.3f}mph, "
                     f"costs={[round(c, 2) for c in costs]}")

        return BehaviorDecision(
            costs=costs,
            front_vehicles=fronts,
            rear_vehicles=rears,
            previous_lane=previous_lane,
            lane=state.lane,
            previous_speed=previous_speed,
            reference_speed=state.reference_speed,
            target_vehicle=target,
        )
