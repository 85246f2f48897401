"""
Curve optimizer collaborator interface.

An optimizer may refine a CurveSpec from image statistics before the LUT is
built. It is strictly optional: run_optimizer() returns the original spec
whenever the optimizer is missing, raises, returns something unusable or
runs past its time budget.

Backends that own device-resident state (compiled kernels, device memory)
subclass OptimizerContext: they are initialized and torn down explicitly,
and are not serialized internally. Callers sharing one context between
concurrent apply() calls must serialize access themselves.

To add a backend:
1. Implement optimize(spec, features, intent) -> CurveSpec
2. Register it with the @register_optimizer decorator
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Protocol, runtime_checkable

from tonecurve.core.errors import OptimizerUnavailable
from tonecurve.core.types import CurveSpec
from tonecurve.processing.analysis import ImageFeatures

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OptimizerIntent:
    """
    Style descriptor handed to an optimizer.

    Attributes:
        contrast_boost: Desired contrast enhancement, 0..1
        shadow_recovery: Shadow detail recovery, 0..1
        highlight_recovery: Highlight detail recovery, 0..1
        auto_color: Use per-channel black/white points for color curves
        film_emulation: Add a film-like toe and shoulder
    """
    contrast_boost: float = 0.0
    shadow_recovery: float = 0.0
    highlight_recovery: float = 0.0
    auto_color: bool = False
    film_emulation: bool = False


@runtime_checkable
class CurveOptimizer(Protocol):
    """Protocol for objects that refine a CurveSpec."""

    def optimize(
        self,
        spec: CurveSpec,
        features: ImageFeatures,
        intent: OptimizerIntent,
    ) -> CurveSpec:
        """Return a refined spec or raise OptimizerUnavailable."""
        ...


class OptimizerContext(ABC):
    """
    Base class for optimizer backends with explicit lifetime.

    Example:
        with HistogramOptimizer() as optimizer:
            spec = run_optimizer(optimizer, spec, features, intent)
    """

    def __init__(self):
        self._initialized = False
        self._active_calls = 0
        self._close_pending = False
        self._state_lock = threading.Lock()

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """Acquire backend resources."""
        with self._state_lock:
            self._close_pending = False
        self._initialized = True

    def release(self) -> None:
        """Free backend resources. Override in backends that hold any."""
        self._initialized = False

    def close(self) -> None:
        """
        Release backend resources.

        If an abandoned optimize() call is still running, the release is
        deferred until that call returns.
        """
        with self._state_lock:
            if self._active_calls:
                self._close_pending = True
                return
        self.release()

    def begin_call(self) -> None:
        with self._state_lock:
            self._active_calls += 1

    def end_call(self) -> None:
        with self._state_lock:
            self._active_calls -= 1
            release = self._active_calls == 0 and self._close_pending
            if release:
                self._close_pending = False
        if release:
            self.release()

    def ensure_ready(self) -> None:
        if not self._initialized:
            raise OptimizerUnavailable(f"{type(self).__name__} is not initialized")

    @abstractmethod
    def optimize(
        self,
        spec: CurveSpec,
        features: ImageFeatures,
        intent: OptimizerIntent,
    ) -> CurveSpec:
        pass

    def __enter__(self):
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


# Registry of optimizer backends
_OPTIMIZERS: Dict[str, Dict[str, Any]] = {}


def register_optimizer(name: str, description: str = ""):
    """Decorator to register an optimizer backend factory."""
    def decorator(factory: Callable):
        _OPTIMIZERS[name] = {
            'factory': factory,
            'description': description,
        }
        return factory
    return decorator


def get_optimizers() -> list:
    """Return list of registered optimizer names."""
    return list(_OPTIMIZERS.keys())


def create_optimizer(name: str, **kwargs) -> CurveOptimizer:
    """
    Instantiate a registered optimizer.

    Raises:
        OptimizerUnavailable: If no backend has that name
    """
    if name not in _OPTIMIZERS:
        raise OptimizerUnavailable(f"Unknown optimizer: {name}. Available: {get_optimizers()}")
    return _OPTIMIZERS[name]['factory'](**kwargs)


class OptimizerCall(threading.Thread):
    """
    One optimize() invocation on a daemon thread.

    OptimizerContext backends are told about the call through
    begin_call() / end_call(), so close() cannot release them under it.
    """

    def __init__(self, optimizer, spec: CurveSpec, features: ImageFeatures, intent: OptimizerIntent):
        super().__init__(name="tonecurve-optimizer", daemon=True)
        self.optimizer = optimizer
        self.spec = spec
        self.features = features
        self.intent = intent
        self.result: Any = None
        self.error: Exception | None = None
        self._context = optimizer if isinstance(optimizer, OptimizerContext) else None

    def start(self) -> None:
        if self._context is not None:
            self._context.begin_call()
        try:
            super().start()
        except RuntimeError:
            if self._context is not None:
                self._context.end_call()
            raise

    def run(self) -> None:
        try:
            self.result = self.optimizer.optimize(self.spec, self.features, self.intent)
        except Exception as exc:
            self.error = exc
        finally:
            if self._context is not None:
                self._context.end_call()


def run_optimizer(
    optimizer: CurveOptimizer | None,
    spec: CurveSpec,
    features: ImageFeatures | None,
    intent: OptimizerIntent | None = None,
    timeout: float | None = 2.0,
) -> tuple[CurveSpec, bool]:
    """
    Run an optimizer within a time budget, never failing.

    Args:
        optimizer: Backend, or None
        spec: Original curve
        features: Image statistics; without them the optimizer is skipped
        intent: Style descriptor
        timeout: Seconds to wait; None waits indefinitely

    Returns:
        (spec to use, whether it came from the optimizer)
    """
    if optimizer is None:
        return spec, False
    if features is None:
        logger.info("No image features supplied, skipping optimizer")
        return spec, False
    intent = intent or OptimizerIntent()

    # Daemon thread: an abandoned call never holds up interpreter exit
    call = OptimizerCall(optimizer, spec, features, intent)
    try:
        call.start()
    except RuntimeError as exc:
        logger.warning("Could not start optimizer thread, using original curve: %s", exc)
        return spec, False
    call.join(timeout)
    if call.is_alive():
        logger.info("Optimizer %s exceeded %.2fs, using original curve",
                    type(optimizer).__name__, timeout)
        return spec, False

    if isinstance(call.error, OptimizerUnavailable):
        logger.info("Optimizer unavailable, using original curve: %s", call.error)
        return spec, False
    if call.error is not None:
        logger.warning("Optimizer %s failed, using original curve: %s",
                       type(optimizer).__name__, call.error)
        return spec, False

    result = call.result
    if not isinstance(result, CurveSpec):
        logger.warning("Optimizer returned %s instead of a CurveSpec, using original curve",
                       type(result).__name__)
        return spec, False
    if result.channel != spec.channel:
        result = result.with_channel(spec.channel)
    return result, True
