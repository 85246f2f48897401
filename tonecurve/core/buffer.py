"""
ImageBuffer - a borrowed view over caller-owned pixel memory.

The buffer never copies the caller's pixels. It validates the declared
layout (width, height, channels, bit depth, row stride) against the memory
it is given and exposes a (height, width, channels) numpy view.
"""

from dataclasses import dataclass
from typing import Any

import numpy as np

from tonecurve.core.errors import BufferMismatchError
from tonecurve.core.types import ColorSpace


_DTYPES = {
    8: np.dtype(np.uint8),
    16: np.dtype(np.uint16),
    32: np.dtype(np.float32),
}

SUPPORTED_CHANNELS = (1, 3, 4)


def dtype_for_bit_depth(bit_depth: int) -> np.dtype:
    """numpy dtype used for a bit depth (32 means float32 in [0, 1])."""
    try:
        return _DTYPES[bit_depth]
    except KeyError:
        raise BufferMismatchError(
            f"Unsupported bit depth: {bit_depth}. Supported: {sorted(_DTYPES)}"
        ) from None


def bit_depth_for_dtype(dtype: Any) -> int:
    """Inverse of dtype_for_bit_depth()."""
    dtype = np.dtype(dtype)
    for depth, candidate in _DTYPES.items():
        if candidate == dtype:
            return depth
    raise BufferMismatchError(f"Unsupported pixel dtype: {dtype}")


def max_code_value(bit_depth: int) -> float:
    """Largest representable sample value (1.0 for float buffers)."""
    if bit_depth == 32:
        return 1.0
    return float((1 << bit_depth) - 1)


@dataclass
class ImageBuffer:
    """
    Image memory borrowed from the host.

    Attributes:
        pixels: (height, width, channels) view onto the caller's memory
        width: Pixels per row
        height: Number of rows
        channels: 1 (gray), 3 (RGB/Lab) or 4 (with alpha)
        bit_depth: 8, 16 or 32 (float)
        stride: Bytes between the starts of consecutive rows
        color_space: Declared color space; never converted
    """
    pixels: np.ndarray
    width: int
    height: int
    channels: int
    bit_depth: int
    stride: int
    color_space: ColorSpace = ColorSpace.RGB

    def __post_init__(self):
        self.validate()

    @classmethod
    def from_array(
        cls,
        array: np.ndarray,
        color_space: ColorSpace = ColorSpace.RGB,
    ) -> "ImageBuffer":
        """
        Wrap a numpy array of shape (H, W) or (H, W, C).

        The array is used as-is (no copy), so writes go straight to the
        caller's memory.
        """
        if not isinstance(array, np.ndarray):
            raise BufferMismatchError(f"Expected a numpy array, got {type(array).__name__}")
        if array.ndim == 2:
            array = array[:, :, np.newaxis]
        if array.ndim != 3:
            raise BufferMismatchError(f"Expected a 2D or 3D array, got shape {array.shape}")
        height, width, channels = array.shape
        return cls(
            pixels=array,
            width=width,
            height=height,
            channels=channels,
            bit_depth=bit_depth_for_dtype(array.dtype),
            stride=array.strides[0],
            color_space=color_space,
        )

    @classmethod
    def from_bytes(
        cls,
        data: Any,
        width: int,
        height: int,
        channels: int,
        bit_depth: int,
        stride: int | None = None,
        color_space: ColorSpace = ColorSpace.RGB,
    ) -> "ImageBuffer":
        """
        Wrap raw interleaved pixel memory with an explicit row stride.

        Args:
            data: Any object supporting the buffer protocol (bytearray,
                memoryview, mmap, ...). Must be writable to be used as output.
            width, height, channels, bit_depth: Declared layout
            stride: Row stride in bytes, defaults to the packed row size

        Raises:
            BufferMismatchError: If the memory cannot hold the declared layout
        """
        dtype = dtype_for_bit_depth(bit_depth)
        if channels not in SUPPORTED_CHANNELS:
            raise BufferMismatchError(
                f"Unsupported channel count: {channels}. Supported: {SUPPORTED_CHANNELS}"
            )
        if width <= 0 or height <= 0:
            raise BufferMismatchError(f"Invalid dimensions: {width}x{height}")

        row_bytes = width * channels * dtype.itemsize
        if stride is None:
            stride = row_bytes
        if stride < row_bytes:
            raise BufferMismatchError(
                f"Stride {stride} is smaller than one row ({row_bytes} bytes)"
            )
        if stride % dtype.itemsize:
            raise BufferMismatchError(
                f"Stride {stride} is not a multiple of the sample size {dtype.itemsize}"
            )

        view = memoryview(data).cast("B")
        required = stride * (height - 1) + row_bytes
        if view.nbytes < required:
            raise BufferMismatchError(
                f"Buffer holds {view.nbytes} bytes, layout needs {required}"
            )

        flat = np.frombuffer(view, dtype=np.uint8, count=required)
        pixels = np.lib.stride_tricks.as_strided(
            flat.view(dtype),
            shape=(height, width, channels),
            strides=(stride, channels * dtype.itemsize, dtype.itemsize),
            writeable=not view.readonly,
        )
        return cls(
            pixels=pixels,
            width=width,
            height=height,
            channels=channels,
            bit_depth=bit_depth,
            stride=stride,
            color_space=color_space,
        )

    def validate(self) -> None:
        """
        Check the declared layout against the pixel view.

        Raises:
            BufferMismatchError: On any inconsistency
        """
        if self.channels not in SUPPORTED_CHANNELS:
            raise BufferMismatchError(
                f"Unsupported channel count: {self.channels}. Supported: {SUPPORTED_CHANNELS}"
            )
        if self.width <= 0 or self.height <= 0:
            raise BufferMismatchError(f"Invalid dimensions: {self.width}x{self.height}")
        dtype = dtype_for_bit_depth(self.bit_depth)
        if self.pixels.dtype != dtype:
            raise BufferMismatchError(
                f"Pixel dtype {self.pixels.dtype} does not match bit depth {self.bit_depth}"
            )
        if self.pixels.shape != (self.height, self.width, self.channels):
            raise BufferMismatchError(
                f"Pixel shape {self.pixels.shape} does not match declared "
                f"{(self.height, self.width, self.channels)}"
            )
        row_bytes = self.width * self.channels * dtype.itemsize
        if self.stride < row_bytes:
            raise BufferMismatchError(
                f"Stride {self.stride} is smaller than one row ({row_bytes} bytes)"
            )
        if self.height > 1 and self.pixels.strides[0] != self.stride:
            raise BufferMismatchError(
                f"Declared stride {self.stride} does not match memory stride "
                f"{self.pixels.strides[0]}"
            )

    @property
    def has_alpha(self) -> bool:
        return self.channels == 4

    @property
    def color_channels(self) -> int:
        """Channels carrying color (alpha excluded)."""
        return 3 if self.channels >= 3 else 1

    @property
    def max_value(self) -> float:
        return max_code_value(self.bit_depth)

    @property
    def dtype(self) -> np.dtype:
        return self.pixels.dtype

    @property
    def writable(self) -> bool:
        return bool(self.pixels.flags.writeable)

    def same_layout(self, other: "ImageBuffer") -> bool:
        """True if other can receive this buffer's processed pixels."""
        return (
            self.width == other.width
            and self.height == other.height
            and self.channels == other.channels
            and self.bit_depth == other.bit_depth
        )

    def shares_memory(self, other: "ImageBuffer") -> bool:
        return np.shares_memory(self.pixels, other.pixels)

    def to_array(self) -> np.ndarray:
        """Contiguous copy of the pixels."""
        return np.ascontiguousarray(self.pixels).copy()

    def __repr__(self) -> str:
        return (
            f"ImageBuffer({self.width}x{self.height}, channels={self.channels}, "
            f"bit_depth={self.bit_depth}, stride={self.stride}, "
            f"color_space={self.color_space.value})"
        )
