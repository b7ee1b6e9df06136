"""Coordinate conversion between the road frame and the world frame.

The road frame is defined by a sparse table of centerline samples, where:
- s: longitudinal distance along the road (arc length)
- d: lateral offset from the centerline, positive towards the lateral vector

The table describes a closed loop: arc length wraps at ``max_arc_length`` and
lookups near the seam blend samples from both ends of the table.
"""

import bisect
import math
from pathlib import Path
from typing import Dict, List, Sequence, Tuple, Union

import numpy as np
from loguru import logger
from scipy.optimize import minimize_scalar

from .data_structures import RoadPoint
from ..planning.cubic_spline import CubicSpline1D


# Highway map of the simulator track: arc length at which s wraps to 0 [m]
MAX_ARC_LENGTH = 6945.554

# Number of table samples used on each side of a lookup
SPLINE_WINDOW = 3


class RoadMapError(ValueError):
    """Raised when the road centerline table is missing or malformed."""
    pass


def wrap_index(k: int, n: int) -> Tuple[int, int]:
    """Map an unbounded table index onto a periodic table of size n.

    Args:
        k: Index, may be negative or >= n
        n: Table size

    Returns:
        index: Position in the table, in [0, n)
        lap: Number of whole loops between k and index (negative before the start)
    """
    return k % n, k // n


def normalize_angle(angle: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """Normalize angle to [-pi, pi] range.

    Args:
        angle: Input angle in radians

    Returns:
        Normalized angle in [-pi, pi]
    """
    two_pi = 2.0 * np.pi
    n = np.round(angle / two_pi)
    return angle - n * two_pi


def load_road_map(path: Union[str, Path]) -> List[RoadPoint]:
    """Load the road centerline table.

    Each row holds ``x y s dx dy`` separated by whitespace.

    Args:
        path: Path to the map file

    Returns:
        Road points ordered as in the file
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Road map file not found: {path}")

    try:
        data = np.loadtxt(path, ndmin=2)
    except ValueError as e:
        raise RoadMapError(f"Failed to parse road map {path}: {e}") from e

    if data.size == 0:
        raise RoadMapError(f"Road map {path} is empty")
    if data.shape[1] != 5:
        raise RoadMapError(f"Road map {path} must have 5 columns [x, y, s, dx, dy], got {data.shape[1]}")

    points = [RoadPoint(s=row[2], x=row[0], y=row[1], dx=row[3], dy=row[4]) for row in data]
    logger.info(f"Loaded {len(points)} road points from {path}")
    return points


def make_loop_road(radius: float, n_points: int) -> Tuple[List[RoadPoint], float]:
    """Build the centerline table of a counter-clockwise circular loop.

    The lateral vector points outwards, i.e. to the right of the driving
    direction, so lanes are numbered from the inner edge.

    Args:
        radius: Centerline radius [m]
        n_points: Number of table samples

    Returns:
        points: Road points
        max_arc_length: Loop length [m]
    """
    if radius <= 0:
        raise ValueError(f"radius must be positive, got {radius}")
    if n_points < 2:
        raise ValueError(f"n_points must be at least 2, got {n_points}")

    max_arc_length = 2.0 * math.pi * radius
    points = []
    for i in range(n_points):
        theta = 2.0 * math.pi * i / n_points
        points.append(RoadPoint(
            s=radius * theta,
            x=radius * math.cos(theta),
            y=radius * math.sin(theta),
            dx=math.cos(theta),
            dy=math.sin(theta),
        ))
    return points, max_arc_length


class RoadFrameConverter:
    """Converter between road (s, d) and world (x, y) coordinates.

    Positions are interpolated with natural cubic splines fitted through the
    table samples around the requested arc length.

    The lateral vector is interpolated from the table's own (dx, dy) columns,
    not derived from the centerline spline, so it is only approximately normal
    to the centerline between samples. On the centerline the two conversions
    are exact inverses; off it, to_road_frame(to_world(s, d)) drifts by an
    amount that grows with |d| and with the sample spacing (centimeters at the
    highway map density, tenths of a meter with a few dozen samples per loop).

    Args:
        road_points: Centerline samples ordered by arc length
        max_arc_length: Arc length at which the road wraps [m]
        periodic: Whether the table describes a closed loop
        window: Number of samples used on each side of a lookup
    """

    def __init__(
        self,
        road_points: Sequence[RoadPoint],
        max_arc_length: float = MAX_ARC_LENGTH,
        periodic: bool = True,
        window: int = SPLINE_WINDOW
    ):
        if road_points is None or len(road_points) < 2:
            raise RoadMapError(
                f"At least 2 road points are required, got {0 if road_points is None else len(road_points)}"
            )
        if window < 1:
            raise ValueError(f"window must be at least 1, got {window}")

        table = np.array([[p.s, p.x, p.y, p.dx, p.dy] for p in road_points], dtype=float)
        if not np.all(np.isfinite(table)):
            raise RoadMapError("Road points contain non-finite values")

        s = table[:, 0]
        if np.any(np.diff(s) <= 0):
            raise RoadMapError("Road point arc lengths must be strictly increasing")
        if periodic:
            if max_arc_length <= 0:
                raise RoadMapError(f"max_arc_length must be positive, got {max_arc_length}")
            if s[0] < 0 or s[-1] >= max_arc_length:
                raise RoadMapError(
                    f"Road point arc lengths must lie in [0, {max_arc_length}), "
                    f"got [{s[0]}, {s[-1]}]"
                )

        norms = np.hypot(table[:, 3], table[:, 4])
        if np.any(norms < 1e-9):
            raise RoadMapError("Road points contain a zero-length lateral vector")
        if np.any(np.abs(norms - 1.0) > 1e-2):
            logger.warning("Road lateral vectors are not unit length, normalizing")
        table[:, 3] /= norms
        table[:, 4] /= norms

        self.max_arc_length = float(max_arc_length)
        self.periodic = periodic
        self.window = window
        self.n_points = len(table)
        self._s = s.tolist()
        self._x = table[:, 1]
        self._y = table[:, 2]
        self._dx = table[:, 3]
        self._dy = table[:, 4]
        self._spline_cache: Dict[int, Tuple[CubicSpline1D, ...]] = {}

        logger.info(f"Road frame converter initialized with {self.n_points} points, "
                    f"max_s={self.max_arc_length:.3f}m, periodic={periodic}")

    @classmethod
    def from_file(cls, path: Union[str, Path], max_arc_length: float = MAX_ARC_LENGTH,
                  **kwargs) -> 'RoadFrameConverter':
        """Create a converter from a road map file."""
        return cls(load_road_map(path), max_arc_length=max_arc_length, **kwargs)

    def wrap_s(self, s: float) -> float:
        """Bring an arc length into the table range."""
        if self.periodic:
            return s % self.max_arc_length
        return min(max(s, self._s[0]), self._s[-1])

    def to_world(self, s: float, d: float) -> Tuple[float, float]:
        """Convert road coordinates to world coordinates.

        Args:
            s: Arc length [m], any value on a periodic road
            d: Lateral offset [m]

        Returns:
            (x, y) world position
        """
        base_x, base_y, nx, ny = self._interpolate(s)
        return base_x + d * nx, base_y + d * ny

    def to_road_frame(self, x: float, y: float) -> Tuple[float, float]:
        """Convert world coordinates to road coordinates.

        s is the closest point of the centerline; d is the offset projected on
        the interpolated lateral vector there (see the class docstring for the
        accuracy off the centerline).

        Args:
            x, y: Position in world frame

        Returns:
            (s, d) road coordinates
        """
        dists = np.hypot(self._x - x, self._y - y)
        i = int(np.argmin(dists))

        s_i = self._s[i]
        lo, hi = s_i, s_i
        if self.periodic or i > 0:
            lo = self._arc_at(i - 1)
        if self.periodic or i < self.n_points - 1:
            hi = self._arc_at(i + 1)

        if hi > lo:
            def sq_dist(s: float) -> float:
                px, py, _, _ = self._interpolate(s)
                return (px - x) ** 2 + (py - y) ** 2

            result = minimize_scalar(sq_dist, bounds=(lo, hi), method='bounded',
                                     options={'xatol': 1e-6})
            s = float(result.x)
        else:
            s = s_i

        base_x, base_y, nx, ny = self._interpolate(s)
        d = (x - base_x) * nx + (y - base_y) * ny
        return self.wrap_s(s), d

    def lateral_vector(self, s: float) -> Tuple[float, float]:
        """Unit vector pointing towards increasing lateral offset at s."""
        _, _, nx, ny = self._interpolate(s)
        return nx, ny

    def _arc_at(self, k: int) -> float:
        """Arc length of an unbounded table index."""
        idx, lap = wrap_index(k, self.n_points)
        return self._s[idx] + lap * self.max_arc_length

    def _interpolate(self, s: float) -> Tuple[float, float, float, float]:
        """Interpolate centerline position and lateral vector at s."""
        s = self.wrap_s(s)
        i = bisect.bisect_right(self._s, s) - 1
        if not self.periodic:
            i = min(max(i, 0), self.n_points - 2)

        sx, sy, sdx, sdy = self._segment_splines(i)
        nx = sdx.evaluate(s)
        ny = sdy.evaluate(s)
        norm = math.hypot(nx, ny)
        return sx.evaluate(s), sy.evaluate(s), nx / norm, ny / norm

    def _segment_splines(self, i: int) -> Tuple[CubicSpline1D, ...]:
        """Splines of x, y, dx, dy around the segment starting at index i."""
        cached = self._spline_cache.get(i)
        if cached is not None:
            return cached

        if self.periodic:
            ks = range(i - self.window + 1, i + self.window + 1)
        else:
            ks = range(max(0, i - self.window + 1), min(self.n_points, i + self.window + 1))

        arcs, idxs = [], []
        for k in ks:
            idx, lap = wrap_index(k, self.n_points)
            arcs.append(self._s[idx] + lap * self.max_arc_length)
            idxs.append(idx)

        splines = (
            CubicSpline1D(arcs, self._x[idxs]),
            CubicSpline1D(arcs, self._y[idxs]),
            CubicSpline1D(arcs, self._dx[idxs]),
            CubicSpline1D(arcs, self._dy[idxs]),
        )
        self._spline_cache[i] = splines
        return splines
