"""
Control point validation and normalization.

normalize_points() turns whatever the caller hands in into the canonical
point sequence every evaluator relies on:

1. Points with a NaN coordinate are dropped, everything else is clamped
   into [0, 1] (infinities included).
2. Points are sorted by x. When two points share an x value the one that
   came later in the input wins.
3. Fewer than two surviving points fall back to the identity pair
   {(0, 0), (1, 1)}. The fallback is logged, never raised.
4. Missing endpoints at x=0 / x=1 are added with the y value of the
   nearest existing point.
"""

import logging
import math
from collections.abc import Mapping
from typing import Any, Iterable

from tonecurve.core.types import ControlPoint

logger = logging.getLogger(__name__)

IDENTITY_POINTS = (ControlPoint(0.0, 0.0), ControlPoint(1.0, 1.0))

# Points closer than this in x are treated as the same input level
X_TOLERANCE = 1e-9


def _clamp01(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def _coerce_point(raw: Any) -> tuple[float, float] | None:
    """Read one point as an (x, y) float pair, None if unusable."""
    try:
        if isinstance(raw, Mapping):
            x, y = raw["x"], raw["y"]
        elif hasattr(raw, "x") and hasattr(raw, "y"):
            x, y = raw.x, raw.y
        else:
            x, y = raw
        return float(x), float(y)
    except (TypeError, ValueError, KeyError):
        return None


def sanitize_points(points: Iterable[Any] | None) -> list[ControlPoint]:
    """
    Clamp, sort and de-duplicate points without synthesizing anything.

    Returns:
        Sorted points with unique x values, possibly empty
    """
    if points is None:
        return []
    try:
        points = list(points)
    except TypeError:
        logger.info("Control points are not a sequence: %r", points)
        return []

    cleaned: list[ControlPoint] = []
    dropped = 0
    for raw in points:
        pair = _coerce_point(raw)
        if pair is None or math.isnan(pair[0]) or math.isnan(pair[1]):
            dropped += 1
            continue
        cleaned.append(ControlPoint(_clamp01(pair[0]), _clamp01(pair[1])))

    if dropped:
        logger.debug("Dropped %d malformed control point(s)", dropped)

    # Stable sort keeps input order among equal x, so the last one wins below
    cleaned.sort(key=lambda p: p.x)

    unique: list[ControlPoint] = []
    for point in cleaned:
        if unique and point.x - unique[-1].x <= X_TOLERANCE:
            unique[-1] = ControlPoint(unique[-1].x, point.y)
        else:
            unique.append(point)
    return unique


def normalize_points(points: Iterable[Any] | None) -> tuple[ControlPoint, ...]:
    """
    Normalize a raw point list into a valid curve definition.

    Args:
        points: Iterable of (x, y) pairs, ControlPoints or {"x", "y"} mappings

    Returns:
        Tuple of at least two ControlPoints, sorted, spanning x=0..1
    """
    unique = sanitize_points(points)

    if len(unique) < 2:
        logger.info(
            "Control point list has %d usable point(s); using identity curve",
            len(unique),
        )
        return IDENTITY_POINTS

    if unique[0].x > 0.0:
        unique.insert(0, ControlPoint(0.0, unique[0].y))
    if unique[-1].x < 1.0:
        unique.append(ControlPoint(1.0, unique[-1].y))

    return tuple(unique)


def monotonic_direction(points: Iterable[ControlPoint]) -> int:
    """
    Direction of the y values along x.

    Returns:
        1 if y never decreases, -1 if y never increases and at least one
        step goes down, 0 otherwise
    """
    ys = [p.y for p in points]
    steps = [b - a for a, b in zip(ys, ys[1:])]
    if all(s >= 0 for s in steps):
        return 1
    if all(s <= 0 for s in steps):
        return -1
    return 0


def is_monotonic(points: Iterable[ControlPoint]) -> bool:
    """True if the y values are non-decreasing or non-increasing."""
    return monotonic_direction(points) != 0
