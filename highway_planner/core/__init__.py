"""Core module for fundamental data structures and utilities."""

from .data_structures import (
    RoadPoint,
    VehicleObservation,
    PlannerState,
    EgoPose,
    Trajectory,
    Telemetry,
    BehaviorDecision,
    PlanningResult,
    SimulationResult,
)
from .road_frame import (
    RoadFrameConverter,
    RoadMapError,
    load_road_map,
    make_loop_road,
    normalize_angle,
    wrap_index,
)
from .traffic import TrafficSnapshot, closest_vehicle, in_lane, lane_center

__all__ = [
    'RoadPoint',
    'VehicleObservation',
    'PlannerState',
    'EgoPose',
    'Trajectory',
    'Telemetry',
    'BehaviorDecision',
    'PlanningResult',
    'SimulationResult',
    'RoadFrameConverter',
    'RoadMapError',
    'load_road_map',
    'make_loop_road',
    'normalize_angle',
    'wrap_index',
    'TrafficSnapshot',
    'closest_vehicle',
    'in_lane',
    'lane_center',
]
