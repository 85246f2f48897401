"""
tonecurve - Tone Curve Processing Engine
========================================

Turns a sparse set of control points per color channel into a smooth,
high-precision brightness/color remapping and applies it to image buffers.

Main modules:
- tonecurve.curves: Control points, spline fitting, evaluators, LUTs, presets
- tonecurve.processing: Per-pixel LUT application (CPU threads, OpenCL)
- tonecurve.optimizer: Optional curve refinement from image statistics
- tonecurve.engine: CurveEngine, the apply() entry point

Hardware Acceleration:
    The GPU path uses OpenCV's OpenCL transparent API for 8-bit buffers
    and falls back to the CPU otherwise.

    >>> import tonecurve
    >>> tonecurve.print_acceleration_status()

Quick start:
    >>> from tonecurve import CurveEngine, CurveSpec, ImageBuffer
    >>> buffer = ImageBuffer.from_array(pixels)
    >>> with CurveEngine() as engine:
    ...     engine.apply(CurveSpec([(0.25, 0.2), (0.75, 0.8)]), buffer)
"""

__version__ = "0.1.0"

# Convenience imports
from tonecurve.core import (
    Acceleration,
    AccelerationConfig,
    ApplyCancelled,
    BufferMismatchError,
    CancelToken,
    Channel,
    ColorSpace,
    ControlPoint,
    CurveSpec,
    CurveVariant,
    EngineConfig,
    ImageBuffer,
    InvalidInputError,
    OptimizerUnavailable,
    OutOfMemoryError,
    ProcessingOptions,
    ToneCurveError,
    ToneCurveProcessor,
    print_acceleration_status,
)
from tonecurve.curves import LUT, build_lut, create_evaluator, get_preset, spec_from_preset
from tonecurve.engine import ApplyResult, CurveEngine, EngineStats
from tonecurve.optimizer import HistogramOptimizer, OptimizerIntent

__all__ = [
    "__version__",
    "Acceleration",
    "AccelerationConfig",
    "ApplyCancelled",
    "BufferMismatchError",
    "CancelToken",
    "Channel",
    "ColorSpace",
    "ControlPoint",
    "CurveSpec",
    "CurveVariant",
    "EngineConfig",
    "ImageBuffer",
    "InvalidInputError",
    "OptimizerUnavailable",
    "OutOfMemoryError",
    "ProcessingOptions",
    "ToneCurveError",
    "ToneCurveProcessor",
    "print_acceleration_status",
    "LUT",
    "build_lut",
    "create_evaluator",
    "get_preset",
    "spec_from_preset",
    "ApplyResult",
    "CurveEngine",
    "EngineStats",
    "HistogramOptimizer",
    "OptimizerIntent",
]
