"""
Curve evaluators.

Every evaluator maps an input level to an output level. All variants share
one contract: the input is clamped into [0, 1] before evaluation (NaN reads
as 0) and the result is clamped into [0, 1] afterwards.

Variants:
- LinearEvaluator: piecewise-linear between the control points
- CubicSplineEvaluator: natural cubic spline, optional tension toward linear
- BezierEvaluator: one Bezier curve over all control points (De Casteljau)
- ParametricEvaluator: lift/gamma/gain, y = lift + (gain - lift) * x**gamma

To add a variant, subclass CurveEvaluator and register it with
register_evaluator().
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict

import numpy as np

from tonecurve.core.types import CurveSpec, CurveVariant
from tonecurve.curves.spline import SplineFitter


def _sanitize_inputs(xs) -> np.ndarray:
    xs = np.array(xs, dtype=np.float64, copy=True, ndmin=1)
    xs[np.isnan(xs)] = 0.0
    return np.clip(xs, 0.0, 1.0)


class CurveEvaluator(ABC):
    """
    Base class for all curve evaluators.

    Subclasses implement _evaluate(), which receives inputs already clamped
    to [0, 1] and may return values outside that range.
    """

    variant: CurveVariant

    def __init__(self, spec: CurveSpec):
        self.spec = spec
        self.xs = np.array(spec.xs, dtype=np.float64)
        self.ys = np.array(spec.ys, dtype=np.float64)

    @abstractmethod
    def _evaluate(self, xs: np.ndarray) -> np.ndarray:
        pass

    def evaluate_array(self, xs) -> np.ndarray:
        """Evaluate at many input levels."""
        values = self._evaluate(_sanitize_inputs(xs))
        values = np.nan_to_num(values, nan=0.0)
        return np.clip(values, 0.0, 1.0)

    def evaluate(self, x: float) -> float:
        """Evaluate at a single input level."""
        return float(self.evaluate_array([x])[0])

    def __call__(self, x):
        if np.ndim(x) == 0:
            return self.evaluate(x)
        return self.evaluate_array(x)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(points={len(self.xs)})"


class LinearEvaluator(CurveEvaluator):
    """Piecewise-linear interpolation; flat outside the point range."""

    variant = CurveVariant.LINEAR

    def _evaluate(self, xs: np.ndarray) -> np.ndarray:
        return np.interp(xs, self.xs, self.ys)


class CubicSplineEvaluator(CurveEvaluator):
    """
    Natural cubic spline through the control points.

    spec.tension blends toward the piecewise-linear curve
    (0 = pure spline, 1 = linear).
    """

    variant = CurveVariant.CUBIC_SPLINE

    def __init__(self, spec: CurveSpec):
        super().__init__(spec)
        self.fitter = SplineFitter(spec.points)
        self.tension = spec.tension

    def _evaluate(self, xs: np.ndarray) -> np.ndarray:
        values = self.fitter.evaluate_array(xs)
        if self.tension > 0:
            linear = np.interp(xs, self.xs, self.ys)
            values = (1.0 - self.tension) * values + self.tension * linear
        return values


def de_casteljau(coords: np.ndarray, t: np.ndarray) -> np.ndarray:
    """
    Evaluate a 1D Bezier polynomial with De Casteljau's algorithm.

    Args:
        coords: Control coordinates, shape (n,)
        t: Parameter values in [0, 1], shape (m,)

    Returns:
        Curve coordinates, shape (m,)
    """
    t = np.asarray(t, dtype=np.float64)[:, np.newaxis]
    work = np.broadcast_to(np.asarray(coords, dtype=np.float64), (t.shape[0], len(coords))).copy()
    for level in range(1, len(coords)):
        work[:, : len(coords) - level] = (
            (1.0 - t) * work[:, : len(coords) - level] + t * work[:, 1 : len(coords) - level + 1]
        )
    return work[:, 0]


class BezierEvaluator(CurveEvaluator):
    """
    Single Bezier curve with all control points as its polygon.

    The curve is parameterized by t, not x. Input levels are mapped to t by
    bisection on x(t), which is monotone because the control points are
    sorted by x. The curve only passes through the first and last points.
    """

    variant = CurveVariant.BEZIER

    # 2**-48 resolution on t, well below float32 pixel precision
    BISECTION_STEPS = 48

    def parameter_for(self, xs: np.ndarray) -> np.ndarray:
        """Bezier parameter t with x(t) == xs."""
        lo = np.zeros_like(xs)
        hi = np.ones_like(xs)
        for _ in range(self.BISECTION_STEPS):
            mid = 0.5 * (lo + hi)
            below = de_casteljau(self.xs, mid) < xs
            lo = np.where(below, mid, lo)
            hi = np.where(below, hi, mid)
        return 0.5 * (lo + hi)

    def _evaluate(self, xs: np.ndarray) -> np.ndarray:
        t = self.parameter_for(xs)
        values = de_casteljau(self.ys, t)
        values = np.where(xs <= self.xs[0], self.ys[0], values)
        return np.where(xs >= self.xs[-1], self.ys[-1], values)


class ParametricEvaluator(CurveEvaluator):
    """
    Lift/gamma/gain curve: y = lift + (gain - lift) * x**gamma.

    lift is the first point's y, gain the last point's y. gamma comes from
    spec.gamma when set, otherwise from the first interior point's y/x ratio
    (1.0 without interior points).
    """

    variant = CurveVariant.PARAMETRIC

    MIN_GAMMA = 0.05
    MAX_GAMMA = 20.0

    def __init__(self, spec: CurveSpec):
        super().__init__(spec)
        self.lift = float(self.ys[0])
        self.gain = float(self.ys[-1])
        self.gamma = self._resolve_gamma(spec)

    def _resolve_gamma(self, spec: CurveSpec) -> float:
        if spec.gamma is not None and spec.gamma == spec.gamma:
            gamma = spec.gamma
        elif len(spec.points) > 2:
            interior = spec.points[1]
            gamma = interior.y / interior.x
        else:
            gamma = 1.0
        return float(min(max(gamma, self.MIN_GAMMA), self.MAX_GAMMA))

    def _evaluate(self, xs: np.ndarray) -> np.ndarray:
        return self.lift + (self.gain - self.lift) * np.power(xs, self.gamma)

    def __repr__(self) -> str:
        return (
            f"ParametricEvaluator(lift={self.lift:.4f}, gamma={self.gamma:.4f}, "
            f"gain={self.gain:.4f})"
        )


# Registry of evaluator classes by variant
_EVALUATORS: Dict[CurveVariant, Callable[[CurveSpec], CurveEvaluator]] = {
    CurveVariant.LINEAR: LinearEvaluator,
    CurveVariant.CUBIC_SPLINE: CubicSplineEvaluator,
    CurveVariant.BEZIER: BezierEvaluator,
    CurveVariant.PARAMETRIC: ParametricEvaluator,
}


def register_evaluator(variant: CurveVariant):
    """Decorator to register (or replace) the evaluator for a variant."""
    def decorator(cls):
        _EVALUATORS[variant] = cls
        return cls
    return decorator


def create_evaluator(spec: CurveSpec) -> CurveEvaluator:
    """Build the evaluator for a CurveSpec's variant."""
    try:
        factory = _EVALUATORS[spec.variant]
    except KeyError:
        raise ValueError(
            f"No evaluator for variant {spec.variant}. Available: {list(_EVALUATORS)}"
        ) from None
    return factory(spec)
