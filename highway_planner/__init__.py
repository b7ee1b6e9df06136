"""Behavior and trajectory planning for highway driving."""

from .config import PlannerConfig, load_config
from .planner import HighwayPlanner, build_road_frame

__version__ = "0.1.0"

__all__ = ['PlannerConfig', 'load_config', 'HighwayPlanner', 'build_road_frame']
