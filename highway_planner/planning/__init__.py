"""Behavior and trajectory planning module."""

from .cubic_spline import CubicSpline1D, CurveFitter, LocalCurve
from .behavior import BehaviorArbiter, BehaviorParams
from .trajectory import TrajectorySynthesizer

__all__ = [
    'CubicSpline1D',
    'CurveFitter',
    'LocalCurve',
    'BehaviorArbiter',
    'BehaviorParams',
    'TrajectorySynthesizer',
]
