"""
Exception types for the tonecurve engine.

Only structural problems and resource exhaustion propagate to the caller.
Malformed point lists, unsupported LUT sizes and optimizer failures are
recovered where they happen and only logged.
"""


class ToneCurveError(Exception):
    """Base class for all tonecurve errors."""


class InvalidInputError(ToneCurveError, ValueError):
    """A value could not be interpreted at all (e.g. an unknown channel name)."""


class BufferMismatchError(ToneCurveError, ValueError):
    """
    An ImageBuffer is inconsistent with its declared layout.

    Raised before any pixel is written.
    """


class OutOfMemoryError(ToneCurveError, MemoryError):
    """A LUT or scratch buffer could not be allocated."""


class OptimizerUnavailable(ToneCurveError):
    """The curve optimizer backend is missing, failed or ran out of time."""


class ApplyCancelled(ToneCurveError):
    """The apply call was cancelled between row batches."""
