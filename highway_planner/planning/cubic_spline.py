"""Cubic spline interpolation and the local curve interface.

Based on the implementation from PythonRobotics:
https://github.com/AtsushiSakai/PythonRobotics
"""

import bisect
from typing import Callable, List, Protocol, Sequence

import numpy as np


class LocalCurve(Protocol):
    """Smooth function y(x) fitted through a handful of anchor points."""

    def evaluate(self, x: float) -> float:
        ...


# fit(xs, ys) -> curve
CurveFitter = Callable[[Sequence[float], Sequence[float]], LocalCurve]


class CubicSpline1D:
    """1D Cubic Spline interpolation.

    Interpolates a 1D function using cubic splines with natural boundary conditions.

    Args:
        x: x coordinates for data points (must be strictly increasing)
        y: y coordinates for data points
    """

    def __init__(self, x: Sequence[float], y: Sequence[float]):
        if len(x) != len(y):
            raise ValueError(f"x ({len(x)}) and y ({len(y)}) must have the same length")
        if len(x) < 2:
            raise ValueError(f"At least 2 points are required, got {len(x)}")
        h = np.diff(x)
        if np.any(h <= 0):
            raise ValueError("x coordinates must be strictly increasing")

        self.a = [float(v) for v in y]
        self.b: List[float] = []
        self.c: List[float] = []
        self.d: List[float] = []
        self.x = [float(v) for v in x]
        self.y = self.a
        self.nx = len(x)

        # Calculate coefficient c
        A = self._calc_A(h)
        B = self._calc_B(h, self.a)
        self.c = np.linalg.solve(A, B).tolist()

        # Calculate coefficients b and d
        for i in range(self.nx - 1):
            d = (self.c[i + 1] - self.c[i]) / (3.0 * h[i])
            b = 1.0 / h[i] * (self.a[i + 1] - self.a[i]) \
                - h[i] / 3.0 * (2.0 * self.c[i] + self.c[i + 1])
            self.d.append(float(d))
            self.b.append(float(b))

    @classmethod
    def fit(cls, x: Sequence[float], y: Sequence[float]) -> 'CubicSpline1D':
        """Fit a spline through (x, y) anchor points."""
        return cls(x, y)

    def evaluate(self, x: float) -> float:
        """Evaluate the spline at x.

        Outside the knot range the nearest end segment is extended.
        """
        i = self._search_index(x)
        dx = x - self.x[i]
        return self.a[i] + self.b[i] * dx + self.c[i] * dx ** 2.0 + self.d[i] * dx ** 3.0

    def _search_index(self, x: float) -> int:
        """Segment index for x, clamped to the end segments."""
        idx = bisect.bisect(self.x, x) - 1
        return min(max(idx, 0), self.nx - 2)

    def _calc_A(self, h: np.ndarray) -> np.ndarray:
        """Calculate matrix A for spline coefficient c."""
        A = np.zeros((self.nx, self.nx))
        A[0, 0] = 1.0
        for i in range(self.nx - 1):
            if i != (self.nx - 2):
                A[i + 1, i + 1] = 2.0 * (h[i] + h[i + 1])
            A[i + 1, i] = h[i]
            A[i, i + 1] = h[i]

        A[0, 1] = 0.0
        A[self.nx - 1, self.nx - 2] = 0.0
        A[self.nx - 1, self.nx - 1] = 1.0
        return A

    def _calc_B(self, h: np.ndarray, a: List[float]) -> np.ndarray:
        """Calculate matrix B for spline coefficient c."""
        B = np.zeros(self.nx)
        for i in range(self.nx - 2):
            B[i + 1] = 3.0 * (a[i + 2] - a[i + 1]) / h[i + 1] \
                - 3.0 * (a[i + 1] - a[i]) / h[i]
        return B
