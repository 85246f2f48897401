"""
Optimizer module - Optional curve refinement before LUT construction.

This module provides:
- CurveOptimizer: Protocol every backend satisfies
- OptimizerContext: Base class for backends with explicit lifetime
- run_optimizer: Time-bounded, never-failing optimizer invocation
- HistogramOptimizer: Built-in algorithmic backend ("histogram")
"""

from tonecurve.optimizer.base import (
    CurveOptimizer,
    OptimizerContext,
    OptimizerIntent,
    register_optimizer,
    get_optimizers,
    create_optimizer,
    run_optimizer,
)
from tonecurve.optimizer.histogram import HistogramOptimizer, smoothstep

__all__ = [
    "CurveOptimizer",
    "OptimizerContext",
    "OptimizerIntent",
    "register_optimizer",
    "get_optimizers",
    "create_optimizer",
    "run_optimizer",
    "HistogramOptimizer",
    "smoothstep",
]
