"""
GPU execution path through OpenCV's transparent API.

8-bit buffers are uploaded once as a cv2.UMat and mapped with a single
cv2.LUT call using one 256-entry table per channel. The tables are the same
per-code tables the CPU path uses, composed in the same order, so the result
is identical to the CPU path.

Other bit depths and luminance curves are not supported here and run on
the CPU.
"""

import logging
import threading
from typing import Sequence

import cv2
import numpy as np

from tonecurve.core.buffer import ImageBuffer
from tonecurve.core.hardware import AccelerationConfig

logger = logging.getLogger(__name__)


def compose_tables(plans: Sequence, channels: int) -> np.ndarray:
    """
    Fold a sequence of per-channel code tables into one table per channel.

    Returns:
        uint8 array of shape (channels, 256); untouched channels are identity
    """
    tables = np.tile(np.arange(256, dtype=np.uint8), (channels, 1))
    for plan in plans:
        for index in plan.targets:
            tables[index] = plan.table[tables[index]]
    return tables


class OpenCLApplier:
    """
    cv2.UMat based LUT application.

    OpenCV's OpenCL switch is process-wide, so calls are serialized with a
    lock while the switch is flipped on.
    """

    name = "gpu-opencl"

    def __init__(self, acceleration: AccelerationConfig | None = None):
        self.acceleration = acceleration or AccelerationConfig()
        self._lock = threading.Lock()

    @property
    def available(self) -> bool:
        return self.acceleration.gpu_available

    def supports(self, source: ImageBuffer, plans: Sequence) -> bool:
        return source.bit_depth == 8 and all(
            plan.table is not None and not plan.luminance for plan in plans
        )

    def apply(self, plans: Sequence, source: ImageBuffer) -> np.ndarray | None:
        """
        Map source through the composed tables on the OpenCL device.

        Returns:
            New (H, W, C) uint8 array, or None if OpenCV reported an error
            (the caller then uses the CPU path)
        """
        tables = compose_tables(plans, source.channels)
        if source.channels == 1:
            lut = tables[0].reshape(1, 256)
        else:
            lut = np.ascontiguousarray(tables.T).reshape(1, 256, source.channels)

        with self._lock:
            previous = cv2.ocl.useOpenCL()
            cv2.ocl.setUseOpenCL(True)
            try:
                src = cv2.UMat(np.ascontiguousarray(source.pixels))
                result = cv2.LUT(src, lut).get()
            except cv2.error as exc:
                logger.info("OpenCL LUT failed, falling back to CPU: %s", exc)
                return None
            finally:
                cv2.ocl.setUseOpenCL(previous)

        return result.reshape(source.pixels.shape)
