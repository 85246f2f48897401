"""
Processing module - Applying LUTs to image buffers.

This module provides:
- ChannelApplier: Row-parallel per-pixel LUT application on the CPU
- OpenCLApplier: GPU path through OpenCV's transparent API
- analyze_image: Image statistics for curve optimizers
"""

from tonecurve.processing.applier import (
    ChannelApplier,
    ChannelCurve,
    ChannelPlan,
    ApplyReport,
    code_table,
    denormalize,
    normalize,
    plan_channels,
    process_rows,
    split_rows,
    LUMA_WEIGHTS,
)
from tonecurve.processing.gpu import OpenCLApplier, compose_tables
from tonecurve.processing.analysis import ImageFeatures, analyze_image

__all__ = [
    "ChannelApplier",
    "ChannelCurve",
    "ChannelPlan",
    "ApplyReport",
    "code_table",
    "denormalize",
    "normalize",
    "plan_channels",
    "process_rows",
    "split_rows",
    "LUMA_WEIGHTS",
    "OpenCLApplier",
    "compose_tables",
    "ImageFeatures",
    "analyze_image",
]
