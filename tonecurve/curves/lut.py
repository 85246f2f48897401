"""
Lookup table construction.

build_lut() samples an evaluator at N evenly spaced input levels:

    LUT[i] = clamp(evaluate(i / (N - 1)))

The result is immutable and can be shared by any number of workers.
CurveLUT wraps a LUT in a two-state slot (STALE / BUILT) that rebuilds
synchronously when its source CurveSpec changes, and LUTCache memoizes
tables by (CurveSpec, N).
"""

import logging
import threading
from collections import OrderedDict
from enum import Enum

import numpy as np

from tonecurve.core.errors import OutOfMemoryError
from tonecurve.core.types import (
    CurveSpec,
    DEFAULT_LUT_SIZE,
    MAX_LUT_SIZE,
    MIN_LUT_SIZE,
)
from tonecurve.curves.evaluators import CurveEvaluator, create_evaluator

logger = logging.getLogger(__name__)


def clamp_lut_size(size: int) -> int:
    """Clamp a requested LUT resolution into the supported range, logging if changed."""
    requested = int(size)
    clamped = min(max(requested, MIN_LUT_SIZE), MAX_LUT_SIZE)
    if clamped != requested:
        logger.warning(
            "Unsupported LUT size %d, using %d (supported range %d..%d)",
            requested, clamped, MIN_LUT_SIZE, MAX_LUT_SIZE,
        )
    return clamped


class LUT:
    """
    Immutable lookup table of N samples in [0, 1].

    Attributes:
        values: Read-only float64 array of length N
        spec: CurveSpec the table was built from, if known
    """

    __slots__ = ("values", "spec")

    def __init__(self, values: np.ndarray, spec: CurveSpec | None = None):
        values = np.array(values, dtype=np.float64, copy=True)
        if values.ndim != 1 or len(values) < 2:
            raise ValueError(f"A LUT needs a 1D array of at least 2 samples, got {values.shape}")
        values.setflags(write=False)
        self.values = values
        self.spec = spec

    @property
    def size(self) -> int:
        return len(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def __getitem__(self, index):
        return self.values[index]

    def __eq__(self, other) -> bool:
        if not isinstance(other, LUT):
            return NotImplemented
        return np.array_equal(self.values, other.values)

    def __hash__(self) -> int:
        return hash(self.values.tobytes())

    def lookup(self, values) -> np.ndarray:
        """
        Interpolated lookup of normalized input levels.

        Computes the fractional index value * (N - 1) and interpolates
        linearly between the floor and ceiling entries.
        """
        values = np.clip(np.asarray(values, dtype=np.float64), 0.0, 1.0)
        scale = len(self.values) - 1
        pos = values * scale
        lower = np.minimum(np.floor(pos).astype(np.intp), scale - 1)
        frac = pos - lower
        left = self.values[lower]
        right = self.values[lower + 1]
        return left + frac * (right - left)

    def is_monotonic(self) -> bool:
        """True if the table never decreases."""
        return bool(np.all(np.diff(self.values) >= 0))

    def __repr__(self) -> str:
        return f"LUT(size={self.size}, first={self.values[0]:.4f}, last={self.values[-1]:.4f})"


def build_lut(
    evaluator: CurveEvaluator | CurveSpec,
    size: int = DEFAULT_LUT_SIZE,
) -> LUT:
    """
    Sample a curve into a lookup table.

    Args:
        evaluator: CurveEvaluator, or a CurveSpec to build one from
        size: Number of samples, clamped into the supported range

    Returns:
        Immutable LUT

    Raises:
        OutOfMemoryError: If the table cannot be allocated
    """
    if isinstance(evaluator, CurveSpec):
        evaluator = create_evaluator(evaluator)
    size = clamp_lut_size(size)
    try:
        positions = np.arange(size, dtype=np.float64) / (size - 1)
        values = evaluator.evaluate_array(positions)
    except MemoryError as exc:
        raise OutOfMemoryError(f"Could not allocate a LUT of {size} entries") from exc
    return LUT(values, spec=evaluator.spec)


class LUTState(Enum):
    """Lifecycle state of a CurveLUT."""
    STALE = "stale"
    BUILT = "built"


class CurveLUT:
    """
    A LUT slot tied to a source CurveSpec.

    Replacing the curve (or the size) moves the slot to STALE; ensure_built()
    rebuilds synchronously. There is no asynchronous rebuild state.

    Example:
        >>> slot = CurveLUT(CurveSpec.identity())
        >>> slot.state
        <LUTState.STALE: 'stale'>
        >>> lut = slot.ensure_built()
        >>> slot.state
        <LUTState.BUILT: 'built'>
    """

    def __init__(self, spec: CurveSpec, size: int = DEFAULT_LUT_SIZE):
        self._spec = spec
        self._size = clamp_lut_size(size)
        self._lut: LUT | None = None
        self.build_count = 0

    @property
    def spec(self) -> CurveSpec:
        return self._spec

    @property
    def size(self) -> int:
        return self._size

    @property
    def state(self) -> LUTState:
        return LUTState.BUILT if self._lut is not None else LUTState.STALE

    def update(self, spec: CurveSpec, size: int | None = None) -> None:
        """Point the slot at a new spec/size; invalidates the table if anything changed."""
        size = self._size if size is None else clamp_lut_size(size)
        if spec != self._spec or size != self._size:
            self._spec = spec
            self._size = size
            self.invalidate()

    def invalidate(self) -> None:
        self._lut = None

    def ensure_built(self) -> LUT:
        """Return the table, rebuilding it first if STALE."""
        if self._lut is None:
            self._lut = build_lut(create_evaluator(self._spec), self._size)
            self.build_count += 1
            logger.debug("Built %r for %s", self._lut, self._spec.variant.value)
        return self._lut

    @property
    def lut(self) -> LUT:
        return self.ensure_built()


class LUTCache:
    """
    Thread-safe LRU cache of LUTs keyed by (CurveSpec, size).

    Attributes:
        hits: Number of lookups served from the cache
        misses: Number of tables built
    """

    def __init__(self, max_entries: int = 32):
        self.max_entries = max(1, int(max_entries))
        self._slots: "OrderedDict[tuple[CurveSpec, int], CurveLUT]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, spec: CurveSpec, size: int = DEFAULT_LUT_SIZE) -> LUT:
        """Fetch or build the table for (spec, size)."""
        key = (spec, clamp_lut_size(size))
        with self._lock:
            slot = self._slots.get(key)
            if slot is not None and slot.state == LUTState.BUILT:
                self._slots.move_to_end(key)
                self.hits += 1
                return slot.lut
            if slot is None:
                slot = CurveLUT(spec, key[1])
                self._slots[key] = slot
            self.misses += 1
            lut = slot.ensure_built()
            while len(self._slots) > self.max_entries:
                self._slots.popitem(last=False)
            return lut

    def clear(self) -> None:
        with self._lock:
            self._slots.clear()

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, key) -> bool:
        spec, size = key
        return (spec, clamp_lut_size(size)) in self._slots
