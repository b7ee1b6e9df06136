"""Configuration management module."""

import yaml
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import List, Optional
from loguru import logger

from ..planning.behavior import BehaviorParams


@dataclass
class PlannerConfig:
    """Configuration of the highway planner and its offline simulation.

    Attributes:
        # Timing
        cycle_duration: Time between two trajectory points [s]
        horizon_length: Number of points in every output path

        # Road
        map_file: Road centerline table (x y s dx dy); a circular loop is used when unset
        max_arc_length: Arc length at which the road wraps [m]
        road_window: Table samples used on each side of a road frame lookup
        loop_radius: Radius of the synthetic loop road [m]
        loop_points: Number of samples of the synthetic loop road
        num_lanes: Number of same-direction lanes
        lane_width: Lane width [m]

        # Planner state
        initial_lane: Lane targeted at startup
        initial_reference_speed: Reference speed at startup [mph]

        # Behavior (see BehaviorParams)

        # Trajectory
        anchor_offsets: Arc length offsets of the forward anchors [m]
        lookahead_distance: Forward distance used to space the output points [m]

        # Simulation
        total_cycles: Number of telemetry cycles to simulate
        points_per_cycle: Trajectory points driven between two telemetry updates
        ego_initial_s: Initial arc length of the ego vehicle [m]
        traffic: Other vehicles as [s, lane, speed (m/s)]
        collision_radius: Distance below which two vehicles collide [m]
        output_path: Output directory for results
    """
    # Timing
    cycle_duration: float = 0.02
    horizon_length: int = 50

    # Road
    map_file: Optional[str] = None
    max_arc_length: float = 6945.554
    road_window: int = 3
    loop_radius: float = 500.0
    loop_points: int = 120
    num_lanes: int = 3
    lane_width: float = 4.0

    # Planner state
    initial_lane: int = 1
    initial_reference_speed: float = 0.0

    # Behavior
    range_ahead: float = 30.0
    range_behind: Optional[float] = None
    speed_limit: float = 49.5
    w_speed: float = 1.0
    w_distance: float = 40.0
    w_stay: float = 5.0
    w_collision: float = 1000.0
    speed_step_up: float = 0.224
    speed_step_down: float = 0.224
    speed_conversion_factor: float = 2.24
    follow_gap_margin: float = 0.5
    min_front_distance: float = 1e-3

    # Trajectory
    anchor_offsets: list = field(default_factory=lambda: [30.0, 60.0, 90.0])
    lookahead_distance: float = 30.0

    # Simulation
    total_cycles: int = 1000
    points_per_cycle: int = 3
    ego_initial_s: float = 0.0
    traffic: list = field(default_factory=list)
    collision_radius: float = 2.5
    output_path: str = 'output'

    # Internal: loaded from
    config_path: Optional[str] = None

    def behavior_params(self) -> BehaviorParams:
        """Parameters of the behavior arbiter."""
        return BehaviorParams(
            range_ahead=self.range_ahead,
            range_behind=self.range_behind,
            speed_limit=self.speed_limit,
            w_speed=self.w_speed,
            w_distance=self.w_distance,
            w_stay=self.w_stay,
            w_collision=self.w_collision,
            speed_step_up=self.speed_step_up,
            speed_step_down=self.speed_step_down,
            speed_conversion_factor=self.speed_conversion_factor,
            follow_gap_margin=self.follow_gap_margin,
            min_front_distance=self.min_front_distance,
        )


class ConfigValidationError(ValueError):
    """Raised when configuration validation fails."""
    pass


def validate_config(config: PlannerConfig) -> None:
    """Validate configuration values for consistency and correctness.

    Args:
        config: Configuration to validate

    Raises:
        ConfigValidationError: If validation fails
    """
    errors: List[str] = []

    # Timing
    if config.cycle_duration <= 0:
        errors.append(f"cycle_duration must be positive, got {config.cycle_duration}")
    if config.horizon_length <= 0:
        errors.append(f"horizon_length must be positive, got {config.horizon_length}")

    # Road
    if config.map_file is not None:
        if not Path(config.map_file).exists():
            errors.append(f"map_file does not exist: {config.map_file}")
        if config.max_arc_length <= 0:
            errors.append(f"max_arc_length must be positive, got {config.max_arc_length}")
    else:
        if config.loop_radius <= 0:
            errors.append(f"loop_radius must be positive, got {config.loop_radius}")
        if config.loop_points < 2:
            errors.append(f"loop_points must be at least 2, got {config.loop_points}")
    if config.road_window < 1:
        errors.append(f"road_window must be at least 1, got {config.road_window}")
    if config.num_lanes < 1:
        errors.append(f"num_lanes must be at least 1, got {config.num_lanes}")
    if config.lane_width <= 0:
        errors.append(f"lane_width must be positive, got {config.lane_width}")

    # Planner state
    if not 0 <= config.initial_lane < config.num_lanes:
        errors.append(f"initial_lane must be in [0, {config.num_lanes - 1}], got {config.initial_lane}")
    if config.initial_reference_speed < 0:
        errors.append(f"initial_reference_speed must be non-negative, got {config.initial_reference_speed}")

    # Behavior
    if config.range_ahead <= 0:
        errors.append(f"range_ahead must be positive, got {config.range_ahead}")
    if config.range_behind is not None and config.range_behind <= 0:
        errors.append(f"range_behind must be positive, got {config.range_behind}")
    if config.speed_limit <= 0:
        errors.append(f"speed_limit must be positive, got {config.speed_limit}")
    if config.speed_step_up <= 0:
        errors.append(f"speed_step_up must be positive, got {config.speed_step_up}")
    if config.speed_step_down <= 0:
        errors.append(f"speed_step_down must be positive, got {config.speed_step_down}")
    if config.speed_conversion_factor <= 0:
        errors.append(f"speed_conversion_factor must be positive, got {config.speed_conversion_factor}")
    if config.follow_gap_margin < 0:
        errors.append(f"follow_gap_margin must be non-negative, got {config.follow_gap_margin}")
    if config.min_front_distance <= 0:
        errors.append(f"min_front_distance must be positive, got {config.min_front_distance}")

    # Cost weights (should be non-negative, but allow 0 for disabling)
    cost_weights = {
        'w_speed': config.w_speed,
        'w_distance': config.w_distance,
        'w_stay': config.w_stay,
        'w_collision': config.w_collision,
    }
    for name, value in cost_weights.items():
        if value < 0:
            errors.append(f"{name} must be non-negative, got {value}")

    # Trajectory
    if len(config.anchor_offsets) < 1:
        errors.append("anchor_offsets must have at least 1 element")
    elif any(b <= a for a, b in zip([0.0] + list(config.anchor_offsets), config.anchor_offsets)):
        errors.append(f"anchor_offsets must be positive and increasing, got {config.anchor_offsets}")
    if config.lookahead_distance <= 0:
        errors.append(f"lookahead_distance must be positive, got {config.lookahead_distance}")

    # Simulation
    if config.total_cycles <= 0:
        errors.append(f"total_cycles must be positive, got {config.total_cycles}")
    if not 1 <= config.points_per_cycle <= config.horizon_length:
        errors.append(
            f"points_per_cycle must be in [1, horizon_length={config.horizon_length}], "
            f"got {config.points_per_cycle}"
        )
    if config.collision_radius <= 0:
        errors.append(f"collision_radius must be positive, got {config.collision_radius}")
    for i, vehicle in enumerate(config.traffic):
        if len(vehicle) != 3:
            errors.append(f"traffic[{i}] must have 3 elements [s, lane, speed], got {len(vehicle)}")
            continue
        _, lane, speed = vehicle
        if not 0 <= lane < config.num_lanes:
            errors.append(f"traffic[{i}]: lane must be in [0, {config.num_lanes - 1}], got {lane}")
        if speed < 0:
            errors.append(f"traffic[{i}]: speed must be non-negative, got {speed}")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigValidationError(error_msg)


def load_config(config_path: str) -> PlannerConfig:
    """Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Loaded configuration
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with open(config_path, 'r') as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse YAML file {config_path}: {e}") from e

    if config_dict is None:
        raise ValueError(f"YAML file {config_path} is empty or contains no valid content")

    try:
        config = PlannerConfig(**config_dict)
    except TypeError as e:
        raise ValueError(f"Invalid configuration structure in {config_path}: {e}") from e

    config.config_path = str(config_path)

    # Relative map paths are resolved against the config file
    if config.map_file is not None and not Path(config.map_file).is_absolute():
        config.map_file = str(config_path.parent / config.map_file)

    try:
        validate_config(config)
    except ConfigValidationError:
        logger.error(f"Configuration validation failed for {config_path}")
        raise

    logger.info(f"Configuration loaded and validated from {config_path}")

    return config


def save_config(config: PlannerConfig, config_path: str):
    """Save configuration to YAML file.

    Args:
        config: Configuration to save
        config_path: Path to save YAML file
    """
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = asdict(config)
    config_dict.pop('config_path', None)

    with open(config_path, 'w') as f:
        yaml.safe_dump(config_dict, f, default_flow_style=False, indent=2)

    logger.info(f"Configuration saved to {config_path}")
