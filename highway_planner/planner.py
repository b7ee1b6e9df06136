"""Per-cycle control loop of the highway planner.

The planner owns the only cross-cycle state (target lane and reference speed)
and runs behavior arbitration followed by trajectory synthesis on every
telemetry update.
"""

from typing import Optional

from loguru import logger

from .bridge.protocol import decode_message, encode_control, encode_manual
from .config import PlannerConfig
from .core.data_structures import PlannerState, PlanningResult, Telemetry
from .core.road_frame import RoadFrameConverter, make_loop_road
from .core.traffic import TrafficSnapshot
from .planning.behavior import BehaviorArbiter
from .planning.trajectory import TrajectorySynthesizer


def build_road_frame(config: PlannerConfig) -> RoadFrameConverter:
    """Road frame converter for the configured road.

    Loads ``config.map_file`` when set, otherwise builds the synthetic loop.
    """
    if config.map_file is not None:
        return RoadFrameConverter.from_file(
            config.map_file,
            max_arc_length=config.max_arc_length,
            window=config.road_window,
        )
    points, max_arc_length = make_loop_road(config.loop_radius, config.loop_points)
    return RoadFrameConverter(points, max_arc_length=max_arc_length, window=config.road_window)


class HighwayPlanner:
    """Behavior and trajectory planning for one ego vehicle.

    Args:
        config: Planner configuration
        road_frame: Road frame converter; built from the configuration when omitted
    """

    def __init__(self, config: Optional[PlannerConfig] = None,
                 road_frame: Optional[RoadFrameConverter] = None):
        self.config = config or PlannerConfig()
        self.road_frame = road_frame or build_road_frame(self.config)
        self.state = PlannerState(
            lane=self.config.initial_lane,
            reference_speed=self.config.initial_reference_speed,
        )
        self.arbiter = BehaviorArbiter(self.config.behavior_params(), num_lanes=self.config.num_lanes)
        self.synthesizer = TrajectorySynthesizer(
            self.road_frame,
            lane_width=self.config.lane_width,
            horizon_length=self.config.horizon_length,
            cycle_duration=self.config.cycle_duration,
            speed_conversion_factor=self.config.speed_conversion_factor,
            anchor_offsets=self.config.anchor_offsets,
            lookahead_distance=self.config.lookahead_distance,
        )
        self.cycle_count = 0

        logger.info(f"Highway planner initialized in lane {self.state.lane} "
                    f"with ref_vel={self.state.reference_speed}mph")

    def step(self, telemetry: Telemetry) -> PlanningResult:
        """Run one planning cycle.

        Args:
            telemetry: Latest telemetry update

        Returns:
            Behavior decision and output trajectory
        """
        prev_size = telemetry.prev_size

        # compare against where the ego vehicle will be once the queued path is driven
        ego_s = telemetry.end_path_s if prev_size > 0 else telemetry.ego.s

        snapshot = TrafficSnapshot(
            observations=telemetry.sensor_fusion,
            horizon_steps=prev_size,
            cycle_duration=self.config.cycle_duration,
            lane_width=self.config.lane_width,
            max_arc_length=self.road_frame.max_arc_length if self.road_frame.periodic else None,
        )
        decision = self.arbiter.decide(ego_s, self.state, snapshot)

        trajectory = self.synthesizer.plan(
            telemetry.ego,
            self.state.lane,
            self.state.reference_speed,
            telemetry.previous_path_x,
            telemetry.previous_path_y,
            arc_length=ego_s,
        )

        self.cycle_count += 1
        return PlanningResult(trajectory=trajectory, decision=decision, ego_arc_length=ego_s)

    def handle_message(self, raw: str) -> Optional[str]:
        """Answer one frame received from the simulator.

        Returns:
            Control frame for telemetry events, manual frame when the simulator
            sent no data, None for frames that need no answer
        """
        message = decode_message(raw)
        if message is None:
            return None

        event, payload = message
        if payload is None:
            return encode_manual()
        if event != "telemetry":
            logger.debug(f"Ignoring event '{event}'")
            return None

        result = self.step(Telemetry.from_dict(payload))
        return encode_control(result.trajectory)
