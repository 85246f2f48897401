"""
Acceleration capability detection for tonecurve.

The CPU path is always available. A GPU path is offered through OpenCV's
transparent API (cv2.UMat), which dispatches to OpenCL when a device is
present.

Usage:
    from tonecurve.core.hardware import AccelerationConfig

    accel = AccelerationConfig()
    print(accel.gpu_available)

    # Force the CPU path
    accel.disable_gpu()
"""

import logging
import os
import platform
from dataclasses import dataclass, field
from enum import Enum

import cv2

logger = logging.getLogger(__name__)


class GPUBackend(Enum):
    """Available GPU backends."""
    NONE = "none"
    OPENCL = "opencl"  # OpenCV transparent API


@dataclass
class AccelerationConfig:
    """
    Acceleration capabilities of the current machine.

    Each CurveEngine owns one of these; nothing here is process-global
    except OpenCV's own OpenCL switch, which is toggled on use.

    Attributes:
        gpu_enabled: Master switch for the GPU path
        backend: Which GPU backend to use (auto-detected if None)
        cpu_count: Hardware concurrency used for the default thread count
        device_name: OpenCL device name, if any
    """
    gpu_enabled: bool = True
    backend: GPUBackend | None = None
    cpu_count: int = 0
    device_name: str = ""

    # Runtime state
    _initialized: bool = field(default=False, repr=False)
    _opencl_available: bool = field(default=False, repr=False)

    def __post_init__(self):
        if not self._initialized:
            self._detect_capabilities()

    def _detect_capabilities(self) -> None:
        """Probe CPU count and OpenCL availability."""
        self._initialized = True
        if not self.cpu_count:
            self.cpu_count = os.cpu_count() or 1

        self._opencl_available = self._check_opencl()

        if self.backend is None:
            self.backend = GPUBackend.OPENCL if self._opencl_available else GPUBackend.NONE

        if self.backend == GPUBackend.NONE:
            self.gpu_enabled = False

        logger.debug("Acceleration detected: %r", self)

    def _check_opencl(self) -> bool:
        """Check whether OpenCV can reach an OpenCL device."""
        try:
            if not cv2.ocl.haveOpenCL():
                return False
            device = cv2.ocl.Device.getDefault()
            self.device_name = device.name() if device is not None else ""
            return True
        except cv2.error as exc:
            logger.debug("OpenCL probe failed: %s", exc)
            return False

    @property
    def gpu_available(self) -> bool:
        """True if the GPU path can actually run."""
        return (
            self.gpu_enabled
            and self.backend == GPUBackend.OPENCL
            and self._opencl_available
        )

    def enable_gpu(self) -> None:
        """Enable the GPU path (only effective if a device was found)."""
        self.gpu_enabled = self._opencl_available

    def disable_gpu(self) -> None:
        """Force the CPU path."""
        self.gpu_enabled = False

    def status(self) -> dict:
        """Current acceleration status."""
        return {
            "gpu_enabled": self.gpu_enabled,
            "backend": self.backend.value if self.backend else "none",
            "platform": platform.system(),
            "opencl_available": self._opencl_available,
            "device": self.device_name,
            "cpu_count": self.cpu_count,
        }

    def __repr__(self) -> str:
        status = "enabled" if self.gpu_enabled else "disabled"
        backend = self.backend.value if self.backend else "none"
        return f"AccelerationConfig(gpu={status}, backend={backend}, cpus={self.cpu_count})"


def print_acceleration_status(config: AccelerationConfig | None = None) -> None:
    """Print acceleration status."""
    status = (config or AccelerationConfig()).status()
    print("tonecurve Acceleration Status")
    print("=" * 40)
    print(f"  Platform:        {status['platform']}")
    print(f"  CPU threads:     {status['cpu_count']}")
    print(f"  OpenCL:          {'available' if status['opencl_available'] else 'not found'}")
    print(f"  Backend:         {status['backend']}")
    print(f"  GPU path:        {'enabled' if status['gpu_enabled'] else 'disabled'}")
    if status['device']:
        print(f"  Device:          {status['device']}")
