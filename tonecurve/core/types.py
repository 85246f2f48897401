"""
Data model shared by every stage of the curve pipeline.

CurveSpec normalizes its points on construction, so any CurveSpec that
exists is already sorted, clamped and has endpoints at x=0 and x=1.
"""

import os
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterable, NamedTuple

from tonecurve.core.errors import InvalidInputError


DEFAULT_LUT_SIZE = 256
HIGH_PRECISION_LUT_SIZE = 4096
MIN_LUT_SIZE = 16
MAX_LUT_SIZE = 4096


class ControlPoint(NamedTuple):
    """An (x, y) anchor in normalized [0, 1] space."""
    x: float
    y: float


class Channel(Enum):
    """Channel a curve targets."""
    RGB = "rgb"
    RED = "red"
    GREEN = "green"
    BLUE = "blue"
    LUMINANCE = "luminance"
    LAB_L = "lab_l"
    LAB_A = "lab_a"
    LAB_B = "lab_b"

    @classmethod
    def parse(cls, value: "Channel | str") -> "Channel":
        """Accept a Channel or its (case-insensitive) name/value."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("-", "_")
        for member in cls:
            if key in (member.value, member.name.lower()):
                return member
        raise InvalidInputError(
            f"Unknown channel: {value}. Available: {[m.value for m in cls]}"
        )

    @property
    def is_lab(self) -> bool:
        return self in (Channel.LAB_L, Channel.LAB_A, Channel.LAB_B)


class CurveVariant(Enum):
    """Interpolation family used to evaluate a curve."""
    LINEAR = "linear"
    CUBIC_SPLINE = "cubic_spline"
    BEZIER = "bezier"
    PARAMETRIC = "parametric"

    @classmethod
    def parse(cls, value: "CurveVariant | str") -> "CurveVariant":
        """Accept a CurveVariant or its (case-insensitive) name/value."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("-", "_")
        aliases = {"spline": "cubic_spline", "cubic": "cubic_spline"}
        key = aliases.get(key, key)
        for member in cls:
            if key in (member.value, member.name.lower()):
                return member
        raise InvalidInputError(
            f"Unknown curve variant: {value}. Available: {[m.value for m in cls]}"
        )


class Acceleration(Enum):
    """Execution path for ChannelApplier."""
    SERIAL = "serial"
    PARALLEL = "parallel"
    GPU = "gpu"


class ColorSpace(Enum):
    """Color space an ImageBuffer is declared in. No conversion is performed."""
    RGB = "rgb"
    LAB = "lab"


@dataclass(frozen=True)
class CurveSpec:
    """
    An immutable curve description.

    Points are normalized on construction (see
    tonecurve.curves.points.normalize_points). Edits go through
    with_points()/with_channel()/replace() and return a new CurveSpec.

    Attributes:
        points: Sorted control points, endpoints at x=0 and x=1
        variant: Interpolation family
        channel: Target channel
        gamma: Gamma override for the parametric variant
        tension: Blend of the cubic spline toward linear, 0..1
    """
    points: tuple[ControlPoint, ...] = ((0.0, 0.0), (1.0, 1.0))
    variant: CurveVariant = CurveVariant.CUBIC_SPLINE
    channel: Channel = Channel.RGB
    gamma: float | None = None
    tension: float = 0.0

    def __post_init__(self):
        from tonecurve.curves.points import normalize_points

        object.__setattr__(self, "points", normalize_points(self.points))
        object.__setattr__(self, "variant", CurveVariant.parse(self.variant))
        object.__setattr__(self, "channel", Channel.parse(self.channel))
        tension = float(self.tension)
        if tension != tension:
            tension = 0.0
        object.__setattr__(self, "tension", min(max(tension, 0.0), 1.0))
        if self.gamma is not None:
            object.__setattr__(self, "gamma", float(self.gamma))

    @classmethod
    def identity(
        cls,
        variant: CurveVariant = CurveVariant.LINEAR,
        channel: Channel = Channel.RGB,
    ) -> "CurveSpec":
        """The identity curve {(0,0), (1,1)}."""
        return cls(((0.0, 0.0), (1.0, 1.0)), variant=variant, channel=channel)

    @property
    def xs(self) -> list[float]:
        return [p.x for p in self.points]

    @property
    def ys(self) -> list[float]:
        return [p.y for p in self.points]

    @property
    def is_identity(self) -> bool:
        """True when every point lies on y == x."""
        return all(abs(p.x - p.y) < 1e-12 for p in self.points) and (
            self.variant != CurveVariant.PARAMETRIC
            or self.gamma in (None, 1.0)
        )

    def with_points(self, points: Iterable[Any]) -> "CurveSpec":
        return replace(self, points=tuple(points))

    def with_channel(self, channel: "Channel | str") -> "CurveSpec":
        return replace(self, channel=Channel.parse(channel))

    def replace(self, **changes: Any) -> "CurveSpec":
        return replace(self, **changes)

    def to_dict(self) -> dict:
        """Plain representation for logging and the CLI."""
        return {
            "points": [[p.x, p.y] for p in self.points],
            "variant": self.variant.value,
            "channel": self.channel.value,
            "gamma": self.gamma,
            "tension": self.tension,
        }


@dataclass
class ProcessingOptions:
    """
    Options for one apply() call.

    Attributes:
        acceleration: SERIAL, PARALLEL or GPU (GPU falls back to the CPU path)
        thread_count: Worker threads, 0 = available hardware concurrency
        quality: 0..1, selects LUT resolution for high bit depth buffers
        lut_size: Explicit LUT resolution, overrides quality
        rows_per_batch: Rows processed between cancellation checks
    """
    acceleration: Acceleration = Acceleration.PARALLEL
    thread_count: int = 0
    quality: float = 1.0
    lut_size: int | None = None
    rows_per_batch: int = 64
    extra: dict = field(default_factory=dict)

    def resolved_thread_count(self) -> int:
        """Number of workers to use for the CPU path."""
        if self.acceleration == Acceleration.SERIAL:
            return 1
        if self.thread_count and self.thread_count > 0:
            return int(self.thread_count)
        return os.cpu_count() or 1

    def resolved_lut_size(self, bit_depth: int) -> int:
        """LUT resolution for a buffer of the given bit depth."""
        if self.lut_size is not None:
            return int(self.lut_size)
        if bit_depth <= 8:
            return DEFAULT_LUT_SIZE
        if self.quality >= 0.5:
            return HIGH_PRECISION_LUT_SIZE
        return 1024
