"""
Curves module - Control points, spline fitting, evaluators and LUTs.

This module provides:
- normalize_points: Control point validation (clamp, sort, identity fallback)
- SplineFitter: Natural cubic spline coefficients
- Curve evaluators: Linear, CubicSpline, Bezier, Parametric
- build_lut / CurveLUT / LUTCache: Lookup table construction and caching
- Presets: Built-in curves and curve generators
"""

from tonecurve.curves.points import (
    normalize_points,
    sanitize_points,
    is_monotonic,
    monotonic_direction,
    IDENTITY_POINTS,
)
from tonecurve.curves.spline import SplineFitter, SplineSegment, fit_natural_spline
from tonecurve.curves.evaluators import (
    CurveEvaluator,
    LinearEvaluator,
    CubicSplineEvaluator,
    BezierEvaluator,
    ParametricEvaluator,
    create_evaluator,
    register_evaluator,
    de_casteljau,
)
from tonecurve.curves.lut import (
    LUT,
    LUTCache,
    LUTState,
    CurveLUT,
    build_lut,
    clamp_lut_size,
)
from tonecurve.curves.presets import (
    CurvePreset,
    BUILTIN_PRESETS,
    get_preset,
    get_presets,
    presets_by_category,
    spec_from_preset,
    specs_from_preset_map,
    s_curve_points,
    from_host_range,
    to_host_range,
)

__all__ = [
    # Points
    "normalize_points",
    "sanitize_points",
    "is_monotonic",
    "monotonic_direction",
    "IDENTITY_POINTS",
    # Spline
    "SplineFitter",
    "SplineSegment",
    "fit_natural_spline",
    # Evaluators
    "CurveEvaluator",
    "LinearEvaluator",
    "CubicSplineEvaluator",
    "BezierEvaluator",
    "ParametricEvaluator",
    "create_evaluator",
    "register_evaluator",
    "de_casteljau",
    # LUT
    "LUT",
    "LUTCache",
    "LUTState",
    "CurveLUT",
    "build_lut",
    "clamp_lut_size",
    # Presets
    "CurvePreset",
    "BUILTIN_PRESETS",
    "get_preset",
    "get_presets",
    "presets_by_category",
    "spec_from_preset",
    "specs_from_preset_map",
    "s_curve_points",
    "from_host_range",
    "to_host_range",
]
