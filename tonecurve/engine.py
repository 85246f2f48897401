"""
Curve engine - the command/result entry point hosts call.

A CurveEngine owns everything one host session needs: configuration,
acceleration probe, LUT cache, CPU/GPU appliers and an optional curve
optimizer. Nothing is shared between engines.

Example:
    >>> from tonecurve import CurveEngine, CurveSpec, ImageBuffer
    >>> with CurveEngine() as engine:
    ...     spec = CurveSpec([(0.25, 0.15), (0.75, 0.85)])
    ...     result = engine.apply(spec, ImageBuffer.from_array(pixels))
    ...     print(result.backend, result.elapsed_ms)
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Sequence

from tonecurve.core.base import CancelToken, ToneCurveProcessor
from tonecurve.core.buffer import ImageBuffer
from tonecurve.core.config import EngineConfig
from tonecurve.core.errors import ToneCurveError
from tonecurve.core.hardware import AccelerationConfig
from tonecurve.core.types import CurveSpec, DEFAULT_LUT_SIZE, ProcessingOptions
from tonecurve.curves.lut import LUT, LUTCache
from tonecurve.optimizer.base import (
    CurveOptimizer,
    OptimizerIntent,
    create_optimizer,
    run_optimizer,
)
from tonecurve.processing.analysis import ImageFeatures, analyze_image
from tonecurve.processing.applier import ChannelApplier, ChannelCurve
from tonecurve.processing.gpu import OpenCLApplier

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    """
    Outcome of one apply() / apply_many() call.

    Attributes:
        output: Buffer that received the result
        specs: Curves actually applied (after optional optimization)
        optimized: Whether any curve came from the optimizer
        luts: Tables used, one per entry of specs
        lut_size: LUT resolution
        backend: "cpu-serial", "cpu-parallel" or "gpu-opencl"
        threads: Worker count on the CPU path
        elapsed_ms: Wall time including LUT construction
    """
    output: ImageBuffer
    specs: list[CurveSpec] = field(default_factory=list)
    optimized: bool = False
    luts: list[LUT] = field(default_factory=list)
    lut_size: int = DEFAULT_LUT_SIZE
    backend: str = "cpu"
    threads: int = 1
    elapsed_ms: float = 0.0

    @property
    def spec(self) -> CurveSpec | None:
        """The first applied curve, for single-curve calls."""
        return self.specs[0] if self.specs else None


@dataclass
class EngineStats:
    """Counters accumulated over an engine's lifetime."""
    calls: int = 0
    pixels: int = 0
    processing_ms: float = 0.0
    cache_hits: int = 0
    cache_misses: int = 0
    optimized_calls: int = 0
    last_backend: str = ""

    def to_dict(self) -> dict:
        return {
            'calls': self.calls,
            'pixels': self.pixels,
            'processing_ms': round(self.processing_ms, 3),
            'cache_hits': self.cache_hits,
            'cache_misses': self.cache_misses,
            'optimized_calls': self.optimized_calls,
            'last_backend': self.last_backend,
        }


class CurveEngine(ToneCurveProcessor):
    """
    In-process implementation of ToneCurveProcessor.

    Concurrent apply() calls are safe on the CPU path. A shared optimizer
    context is not serialized by the engine.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        optimizer: CurveOptimizer | None = None,
        acceleration: AccelerationConfig | None = None,
    ):
        """
        Args:
            config: Engine defaults (EngineConfig() if None)
            optimizer: Optional curve optimizer; when None and
                config.use_optimizer is set, the built-in "histogram"
                backend is created and owned by the engine
            acceleration: Capability probe (detected if None)
        """
        self.config = config or EngineConfig()
        self.acceleration = acceleration or AccelerationConfig()
        self.cache = LUTCache(self.config.cache_size)
        self.applier = ChannelApplier(gpu=OpenCLApplier(self.acceleration))

        self.optimizer = optimizer
        self._owns_optimizer = False
        if self.optimizer is None and self.config.use_optimizer:
            self.optimizer = create_optimizer("histogram")
            self.optimizer.initialize()
            self._owns_optimizer = True

        self._stats = EngineStats()
        self._lock = threading.Lock()
        self._closed = False
        logger.debug("CurveEngine created: %s, %r", self.config, self.acceleration)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def stats(self) -> EngineStats:
        """Snapshot of the engine counters."""
        with self._lock:
            return EngineStats(
                calls=self._stats.calls,
                pixels=self._stats.pixels,
                processing_ms=self._stats.processing_ms,
                cache_hits=self.cache.hits,
                cache_misses=self.cache.misses,
                optimized_calls=self._stats.optimized_calls,
                last_backend=self._stats.last_backend,
            )

    def _check_open(self) -> None:
        if self._closed:
            raise ToneCurveError("CurveEngine is closed")

    def default_options(self) -> ProcessingOptions:
        return self.config.to_options()

    def generate_lut(self, spec: CurveSpec, size: int | None = None) -> LUT:
        """
        Build or fetch the LUT for a curve.

        Args:
            spec: Curve to sample
            size: Resolution (config.lut_size, then 256, if None)
        """
        self._check_open()
        if size is None:
            size = self.config.lut_size or DEFAULT_LUT_SIZE
        return self.cache.get(spec, size)

    def apply(
        self,
        spec: CurveSpec,
        buffer: ImageBuffer,
        options: ProcessingOptions | None = None,
        output: ImageBuffer | None = None,
        cancel: CancelToken | None = None,
        features: ImageFeatures | None = None,
        intent: OptimizerIntent | None = None,
    ) -> ApplyResult:
        """
        Apply one curve to a buffer.

        Args:
            spec: Curve to apply
            buffer: Source image; modified in place unless output is given
            options: Processing options (engine defaults if None)
            output: Destination buffer with the same layout as buffer
            cancel: Cancellation token checked between row batches
            features: Image statistics for the optimizer (computed if needed)
            intent: Optimizer style

        Returns:
            ApplyResult

        Raises:
            BufferMismatchError: Inconsistent buffers; nothing was written
            OutOfMemoryError: LUT or scratch allocation failed
            ApplyCancelled: cancel fired; the output is untouched
        """
        return self.apply_many(
            [spec], buffer, options=options, output=output,
            cancel=cancel, features=features, intent=intent,
        )

    def apply_many(
        self,
        specs: Sequence[CurveSpec],
        buffer: ImageBuffer,
        options: ProcessingOptions | None = None,
        output: ImageBuffer | None = None,
        cancel: CancelToken | None = None,
        features: ImageFeatures | None = None,
        intent: OptimizerIntent | None = None,
    ) -> ApplyResult:
        """
        Apply several curves in one pass.

        Master curves (RGB, luminance) run before per-channel curves,
        otherwise in the given order. Arguments as for apply().
        """
        self._check_open()
        start = time.perf_counter()
        options = options or self.default_options()
        output = output if output is not None else buffer

        # Structural problems surface before the optimizer or LUT work
        buffer.validate()
        output.validate()

        specs, optimized = self._optimize(list(specs), buffer, features, intent)

        lut_size = options.resolved_lut_size(buffer.bit_depth)
        curves = []
        for spec in specs:
            if cancel is not None:
                cancel.raise_if_cancelled()
            curves.append(ChannelCurve(spec.channel, self.cache.get(spec, lut_size)))

        report = self.applier.apply(curves, buffer, output=output, options=options, cancel=cancel)
        elapsed_ms = (time.perf_counter() - start) * 1000.0

        with self._lock:
            self._stats.calls += 1
            self._stats.pixels += buffer.width * buffer.height
            self._stats.processing_ms += elapsed_ms
            self._stats.last_backend = report.backend
            if optimized:
                self._stats.optimized_calls += 1

        logger.debug(
            "apply: %d curve(s) on %r via %s in %.2f ms",
            len(curves), buffer, report.backend, elapsed_ms,
        )
        return ApplyResult(
            output=output,
            specs=specs,
            optimized=optimized,
            luts=[curve.lut for curve in curves],
            lut_size=curves[0].lut.size if curves else lut_size,
            backend=report.backend,
            threads=report.threads,
            elapsed_ms=elapsed_ms,
        )

    def _optimize(
        self,
        specs: list[CurveSpec],
        buffer: ImageBuffer,
        features: ImageFeatures | None,
        intent: OptimizerIntent | None,
    ) -> tuple[list[CurveSpec], bool]:
        if self.optimizer is None or not specs:
            return specs, False
        if features is None:
            features = analyze_image(buffer)

        refined = []
        any_optimized = False
        for spec in specs:
            result, optimized = run_optimizer(
                self.optimizer, spec, features, intent,
                timeout=self.config.optimizer_timeout,
            )
            refined.append(result)
            any_optimized = any_optimized or optimized
        return refined, any_optimized

    def close(self) -> None:
        """Drop cached tables and release an engine-owned optimizer."""
        if self._closed:
            return
        self.cache.clear()
        if self._owns_optimizer and self.optimizer is not None:
            self.optimizer.close()
        self._closed = True
        logger.debug("CurveEngine closed")

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"CurveEngine({state}, cache={len(self.cache)}, optimizer={type(self.optimizer).__name__})"
