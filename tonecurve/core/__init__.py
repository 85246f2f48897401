"""
Core module - Data model, errors, configuration and shared abstractions.
"""

from tonecurve.core.base import CancelToken, ToneCurveProcessor
from tonecurve.core.buffer import ImageBuffer
from tonecurve.core.config import EngineConfig, load_config, save_config
from tonecurve.core.errors import (
    ToneCurveError,
    InvalidInputError,
    BufferMismatchError,
    OutOfMemoryError,
    OptimizerUnavailable,
    ApplyCancelled,
)
from tonecurve.core.hardware import (
    AccelerationConfig,
    GPUBackend,
    print_acceleration_status,
)
from tonecurve.core.types import (
    Acceleration,
    Channel,
    ColorSpace,
    ControlPoint,
    CurveSpec,
    CurveVariant,
    ProcessingOptions,
    DEFAULT_LUT_SIZE,
    HIGH_PRECISION_LUT_SIZE,
    MIN_LUT_SIZE,
    MAX_LUT_SIZE,
)

__all__ = [
    "CancelToken",
    "ToneCurveProcessor",
    "ImageBuffer",
    "EngineConfig",
    "load_config",
    "save_config",
    "ToneCurveError",
    "InvalidInputError",
    "BufferMismatchError",
    "OutOfMemoryError",
    "OptimizerUnavailable",
    "ApplyCancelled",
    "AccelerationConfig",
    "GPUBackend",
    "print_acceleration_status",
    "Acceleration",
    "Channel",
    "ColorSpace",
    "ControlPoint",
    "CurveSpec",
    "CurveVariant",
    "ProcessingOptions",
    "DEFAULT_LUT_SIZE",
    "HIGH_PRECISION_LUT_SIZE",
    "MIN_LUT_SIZE",
    "MAX_LUT_SIZE",
]
