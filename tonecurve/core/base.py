"""
Base classes and protocols for the tonecurve engine.

This module defines the in-process engine capability the host programs
against, and the cancellation token shared by the processing stages.
"""

import threading
from abc import ABC, abstractmethod
from typing import Any

from tonecurve.core.buffer import ImageBuffer
from tonecurve.core.errors import ApplyCancelled
from tonecurve.core.types import CurveSpec, ProcessingOptions


class CancelToken:
    """
    Cooperative cancellation flag.

    Checked by ChannelApplier between row batches. A cancelled apply()
    raises ApplyCancelled and leaves the output buffer untouched.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ApplyCancelled("apply() was cancelled")


class ToneCurveProcessor(ABC):
    """
    Abstract curve engine capability.

    Hosts link against this interface; CurveEngine is the in-process
    implementation. Instances own their resources and are released with
    close() or by using them as a context manager.
    """

    @abstractmethod
    def apply(
        self,
        spec: CurveSpec,
        buffer: ImageBuffer,
        options: ProcessingOptions | None = None,
        **kwargs,
    ) -> Any:
        """
        Apply a curve to an image buffer.

        Args:
            spec: Curve to apply
            buffer: Source image; also the destination unless output= is given
            options: Processing options

        Returns:
            A result object describing the call
        """
        pass

    @abstractmethod
    def generate_lut(self, spec: CurveSpec, size: int | None = None) -> Any:
        """Build (or fetch) the lookup table for a curve."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release resources held by the processor."""
        pass

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - ensures close is called."""
        self.close()
        return False
