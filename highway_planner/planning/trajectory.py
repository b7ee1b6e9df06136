"""Trajectory synthesis along the target lane.

A smooth curve is fitted through the tail of the previous output and three
lane-centered anchors ahead of the vehicle, in a local frame aligned with the
reference heading. The curve is then resampled at the control cadence so that
consecutive points are spaced according to the reference speed.
"""

import math
from typing import List, Optional, Sequence, Tuple, TYPE_CHECKING

from loguru import logger

from ..core.data_structures import EgoPose, Trajectory
from ..core.traffic import CYCLE_DURATION, LANE_WIDTH, lane_center
from .behavior import MPS_TO_MPH
from .cubic_spline import CubicSpline1D, CurveFitter

if TYPE_CHECKING:
    from ..core.road_frame import RoadFrameConverter


HORIZON_LENGTH = 50  # Number of output points
ANCHOR_OFFSETS = (30.0, 60.0, 90.0)  # Arc length offsets of the forward anchors [m]
LOOKAHEAD_DISTANCE = 30.0  # Forward distance used to space the output points [m]
MIN_ANCHOR_SPACING = 1e-6  # [m]


def to_local(x: float, y: float, ref_x: float, ref_y: float, ref_yaw: float) -> Tuple[float, float]:
    """Express a world point in the frame of the reference pose."""
    shift_x = x - ref_x
    shift_y = y - ref_y
    cos_yaw = math.cos(-ref_yaw)
    sin_yaw = math.sin(-ref_yaw)
    return shift_x * cos_yaw - shift_y * sin_yaw, shift_x * sin_yaw + shift_y * cos_yaw


def to_global(x: float, y: float, ref_x: float, ref_y: float, ref_yaw: float) -> Tuple[float, float]:
    """Inverse of to_local."""
    cos_yaw = math.cos(ref_yaw)
    sin_yaw = math.sin(ref_yaw)
    return x * cos_yaw - y * sin_yaw + ref_x, x * sin_yaw + y * cos_yaw + ref_y


class TrajectorySynthesizer:
    """Builds the next output path of the ego vehicle.

    Args:
        road_frame: Road frame converter used to place the forward anchors
        lane_width: Lane width [m]
        horizon_length: Number of points in every output path
        cycle_duration: Time between two points [s]
        speed_conversion_factor: Ratio of reference speed units to m/s
        anchor_offsets: Arc length offsets of the forward anchors [m]
        lookahead_distance: Forward distance used to space the points [m]
        curve_fitter: fit(xs, ys) returning a curve with evaluate(x)
    """

    def __init__(
        self,
        road_frame: 'RoadFrameConverter',
        lane_width: float = LANE_WIDTH,
        horizon_length: int = HORIZON_LENGTH,
        cycle_duration: float = CYCLE_DURATION,
        speed_conversion_factor: float = MPS_TO_MPH,
        anchor_offsets: Sequence[float] = ANCHOR_OFFSETS,
        lookahead_distance: float = LOOKAHEAD_DISTANCE,
        curve_fitter: CurveFitter = CubicSpline1D.fit
    ):
        self.road_frame = road_frame
        self.lane_width = lane_width
        self.horizon_length = horizon_length
        self.cycle_duration = cycle_duration
        self.speed_conversion_factor = speed_conversion_factor
        self.anchor_offsets = tuple(anchor_offsets)
        self.lookahead_distance = lookahead_distance
        self.curve_fitter = curve_fitter

        logger.info(f"Trajectory synthesizer initialized with horizon={horizon_length} points, "
                    f"dt={cycle_duration}s, anchors={self.anchor_offsets}m, "
                    f"lookahead={lookahead_distance}m")

    def reference_anchors(
        self,
        pose: EgoPose,
        previous_path_x: Sequence[float],
        previous_path_y: Sequence[float]
    ) -> Tuple[List[Tuple[float, float]], float, float, float]:
        """Two anchors fixing the start point and heading of the new curve.

        Returns:
            anchors: [(x, y), (x, y)] ending at the reference point
            ref_x, ref_y: Reference point
            ref_yaw: Reference heading [rad]
        """
        n = min(len(previous_path_x), len(previous_path_y))
        if n >= 2:
            ref_x = previous_path_x[n - 1]
            ref_y = previous_path_y[n - 1]
            for i in range(n - 2, -1, -1):
                prev_x = previous_path_x[i]
                prev_y = previous_path_y[i]
                if math.hypot(ref_x - prev_x, ref_y - prev_y) > MIN_ANCHOR_SPACING:
                    ref_yaw = math.atan2(ref_y - prev_y, ref_x - prev_x)
                    return [(prev_x, prev_y), (ref_x, ref_y)], ref_x, ref_y, ref_yaw
            logger.debug("Previous path does not move, using the ego pose as reference")

        # tangent to the current heading
        prev_x = pose.x - math.cos(pose.yaw)
        prev_y = pose.y - math.sin(pose.yaw)
        return [(prev_x, prev_y), (pose.x, pose.y)], pose.x, pose.y, pose.yaw

    def plan(
        self,
        pose: EgoPose,
        lane: int,
        reference_speed: float,
        previous_path_x: Sequence[float] = (),
        previous_path_y: Sequence[float] = (),
        arc_length: Optional[float] = None
    ) -> Trajectory:
        """Generate the output path for this cycle.

        Args:
            pose: Ego pose
            lane: Target lane
            reference_speed: Reference speed [mph]
            previous_path_x, previous_path_y: Unconsumed points of the last output
            arc_length: Arc length the forward anchors are measured from,
                defaults to pose.s

        Returns:
            Trajectory of horizon_length points, starting with the previous path
        """
        prev_size = min(len(previous_path_x), len(previous_path_y))
        trajectory = Trajectory(x=[float(v) for v in previous_path_x[:prev_size]],
                                y=[float(v) for v in previous_path_y[:prev_size]])
        if prev_size >= self.horizon_length:
            return trajectory

        if arc_length is None:
            arc_length = pose.s

        anchors, ref_x, ref_y, ref_yaw = self.reference_anchors(pose, previous_path_x, previous_path_y)
        d = lane_center(lane, self.lane_width)
        for offset in self.anchor_offsets:
            anchors.append(self.road_frame.to_world(arc_length + offset, d))

        local_x: List[float] = []
        local_y: List[float] = []
        for x, y in anchors:
            lx, ly = to_local(x, y, ref_x, ref_y, ref_yaw)
            if local_x and lx <= local_x[-1] + MIN_ANCHOR_SPACING:
                logger.warning(f"Dropping anchor ({x:.2f}, {y:.2f}) behind the previous anchor")
                continue
            local_x.append(lx)
            local_y.append(ly)

        curve = self.curve_fitter(local_x, local_y)

        target_x = self.lookahead_distance
        target_y = curve.evaluate(target_x)
        target_dist = math.hypot(target_x, target_y)

        # distance covered per point at the reference speed
        step_dist = self.cycle_duration * reference_speed / self.speed_conversion_factor
        if step_dist > 0:
            n_steps = target_dist / step_dist
            x_step = target_x / n_steps
        else:
            x_step = 0.0

        x_add_on = 0.0
        for _ in range(self.horizon_length - prev_size):
            x_add_on += x_step
            y_local = curve.evaluate(x_add_on)
            trajectory.append(*to_global(x_add_on, y_local, ref_x, ref_y, ref_yaw))

        logger.debug(f"Trajectory: kept {prev_size} points, added {self.horizon_length - prev_size}, "
                     f"lane={lane}, ref_vel={reference_speed:.3f}mph")
        return trajectory
