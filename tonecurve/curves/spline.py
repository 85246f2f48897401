"""
Natural cubic spline fitting.

SplineFitter solves the tridiagonal system for a natural cubic spline
(second derivative continuous, zero at both ends) and stores per-segment
coefficients so that on segment i

    y = a + b*dx + c*dx**2 + d*dx**3,   dx = x - x_i

When the control y values are monotonic, evaluation follows the monotone
envelope of each segment: the running maximum (or minimum) of the cubic,
bounded by the two knot values. Knots are still hit exactly, and monotonic
control points can no longer produce overshoot between them.
"""

import bisect
from typing import Iterable, NamedTuple

import numpy as np
from scipy.linalg import solve_banded

from tonecurve.core.types import ControlPoint
from tonecurve.curves.points import monotonic_direction


class SplineSegment(NamedTuple):
    """Coefficients of one spline piece on [x_start, x_end]."""
    x_start: float
    x_end: float
    a: float
    b: float
    c: float
    d: float

    def __call__(self, x: float) -> float:
        dx = x - self.x_start
        return self.a + self.b * dx + self.c * dx * dx + self.d * dx * dx * dx


def fit_natural_spline(
    xs: np.ndarray,
    ys: np.ndarray,
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Compute natural cubic spline coefficients.

    Args:
        xs: Strictly increasing knot positions, length n >= 2
        ys: Knot values, length n

    Returns:
        (a, b, c, d) arrays of length n - 1
    """
    xs = np.asarray(xs, dtype=np.float64)
    ys = np.asarray(ys, dtype=np.float64)
    n = len(xs)
    if n < 2 or len(ys) != n:
        raise ValueError(f"Need at least two matching knots, got {len(xs)} x and {len(ys)} y")

    h = np.diff(xs)
    if np.any(h <= 0):
        raise ValueError("Knot positions must be strictly increasing")
    slopes = np.diff(ys) / h

    c = np.zeros(n, dtype=np.float64)
    m = n - 2
    if m > 0:
        # Rows i = 1..n-2 of the tridiagonal system in banded storage
        ab = np.zeros((3, m), dtype=np.float64)
        ab[0, 1:] = h[1:m]
        ab[1, :] = 2.0 * (h[:-1] + h[1:])
        ab[2, :-1] = h[1:m]
        rhs = 3.0 * (slopes[1:] - slopes[:-1])
        c[1:-1] = solve_banded((1, 1), ab, rhs)

    b = slopes - h * (c[1:] + 2.0 * c[:-1]) / 3.0
    d = (c[1:] - c[:-1]) / (3.0 * h)
    return ys[:-1].copy(), b, c[:-1].copy(), d


def _segment_peaks(
    a: np.ndarray,
    b: np.ndarray,
    c: np.ndarray,
    d: np.ndarray,
    h: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Position and value of the interior local maximum of each cubic piece.

    Segments without a local maximum inside (0, h) get position +inf.
    """
    count = len(a)
    peak_dx = np.full(count, np.inf)
    peak_val = np.full(count, -np.inf)

    for i in range(count):
        if abs(d[i]) < 1e-15:
            if c[i] >= 0:
                continue
            t = -b[i] / (2.0 * c[i])
        else:
            disc = c[i] * c[i] - 3.0 * b[i] * d[i]
            if disc <= 0:
                continue
            t = (-c[i] - np.sqrt(disc)) / (3.0 * d[i])
        if 0.0 < t < h[i]:
            peak_dx[i] = t
            peak_val[i] = a[i] + b[i] * t + c[i] * t * t + d[i] * t * t * t

    return peak_dx, peak_val


class SplineFitter:
    """
    Natural cubic spline through a sorted set of control points.

    Example:
        >>> fitter = SplineFitter([(0, 0), (0.25, 0.2), (0.75, 0.8), (1, 1)])
        >>> round(fitter.evaluate(0.5), 6)
        0.5
    """

    def __init__(
        self,
        points: Iterable[ControlPoint | tuple[float, float]],
        preserve_monotonic: bool = True,
    ):
        points = [ControlPoint(float(p[0]), float(p[1])) for p in points]
        if len(points) < 2:
            raise ValueError("SplineFitter needs at least two points")

        self.xs = np.array([p.x for p in points], dtype=np.float64)
        self.ys = np.array([p.y for p in points], dtype=np.float64)
        self._xs_list = self.xs.tolist()
        self.a, self.b, self.c, self.d = fit_natural_spline(self.xs, self.ys)

        self.direction = monotonic_direction(points) if preserve_monotonic else 0
        if self.direction:
            s = float(self.direction)
            self._peak_dx, self._peak_val = _segment_peaks(
                s * self.a, s * self.b, s * self.c, s * self.d, np.diff(self.xs)
            )

    @property
    def segment_count(self) -> int:
        return len(self.a)

    @property
    def segments(self) -> list[SplineSegment]:
        return [
            SplineSegment(
                float(self.xs[i]), float(self.xs[i + 1]),
                float(self.a[i]), float(self.b[i]), float(self.c[i]), float(self.d[i]),
            )
            for i in range(self.segment_count)
        ]

    def segment_index(self, x: float) -> int:
        """Index of the segment containing x (binary search)."""
        i = bisect.bisect_right(self._xs_list, x) - 1
        return min(max(i, 0), self.segment_count - 1)

    def segment_indices(self, xs: np.ndarray) -> np.ndarray:
        """Vectorized segment_index()."""
        idx = np.searchsorted(self.xs, xs, side="right") - 1
        return np.clip(idx, 0, self.segment_count - 1)

    def evaluate_array(self, xs: np.ndarray) -> np.ndarray:
        """
        Evaluate the spline at many positions.

        Positions outside the knot range return the nearest end value.
        The result is not clamped to [0, 1]; that is the evaluator's job.
        """
        xs = np.asarray(xs, dtype=np.float64)
        idx = self.segment_indices(xs)
        dx = xs - self.xs[idx]
        a, b, c, d = self.a[idx], self.b[idx], self.c[idx], self.d[idx]
        values = a + dx * (b + dx * (c + dx * d))

        if self.direction:
            s = float(self.direction)
            g = s * values
            reached = dx >= self._peak_dx[idx]
            g = np.where(reached, np.maximum(g, self._peak_val[idx]), g)
            lo = s * self.ys[idx]
            hi = s * self.ys[idx + 1]
            values = s * np.clip(g, lo, hi)

        values = np.where(xs <= self.xs[0], self.ys[0], values)
        values = np.where(xs >= self.xs[-1], self.ys[-1], values)
        return values

    def evaluate(self, x: float) -> float:
        """Evaluate the spline at a single position."""
        return float(self.evaluate_array(np.array([x], dtype=np.float64))[0])

    def __repr__(self) -> str:
        mode = {1: "increasing", -1: "decreasing", 0: "free"}[self.direction]
        return f"SplineFitter(knots={len(self.xs)}, monotone={mode})"
