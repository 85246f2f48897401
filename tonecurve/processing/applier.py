"""
Per-pixel LUT application.

ChannelApplier maps every selected sample through a LUT:

1. normalize the sample to [0, 1]
2. fractional index = value * (N - 1)
3. interpolate linearly between the floor and ceiling entries
4. denormalize to the buffer's bit depth with round-half-up
5. clamp to the representable range

For 8 and 16-bit buffers steps 1-5 are evaluated once per code value into
a table, and pixels are mapped by indexing that table. Float buffers are
interpolated directly.

Rows are split into contiguous bands, one per worker. Workers read the
shared LUT tables and write only their own rows of a scratch image, so no
locking is needed. The scratch image is copied to the output only after
every band finished, which keeps the output untouched on failure or
cancellation.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import NamedTuple, Sequence

import numpy as np

from tonecurve.core.base import CancelToken
from tonecurve.core.buffer import ImageBuffer, max_code_value
from tonecurve.core.errors import BufferMismatchError, OutOfMemoryError
from tonecurve.core.types import Acceleration, Channel, ColorSpace, ProcessingOptions
from tonecurve.curves.lut import LUT

logger = logging.getLogger(__name__)

# Rec.709 luma weights
LUMA_WEIGHTS = np.array([0.2126, 0.7152, 0.0722], dtype=np.float64)

_SINGLE_CHANNEL_INDEX = {
    Channel.RED: 0,
    Channel.GREEN: 1,
    Channel.BLUE: 2,
    Channel.LAB_L: 0,
    Channel.LAB_A: 1,
    Channel.LAB_B: 2,
}

# Master curves run before single-channel curves
_ORDER = {Channel.RGB: 0, Channel.LUMINANCE: 0}


class ChannelCurve(NamedTuple):
    """A built LUT and the channel it targets."""
    channel: Channel
    lut: LUT


@dataclass
class ChannelPlan:
    """A ChannelCurve resolved against a concrete buffer layout."""
    channel: Channel
    lut: LUT
    targets: tuple[int, ...]
    luminance: bool = False
    table: np.ndarray | None = None


@dataclass
class ApplyReport:
    """What a ChannelApplier call did."""
    backend: str = "cpu"
    threads: int = 1
    bands: int = 1
    rows: int = 0
    elapsed_ms: float = 0.0
    channels: list[str] = field(default_factory=list)


def denormalize(values: np.ndarray, bit_depth: int) -> np.ndarray:
    """
    Convert normalized values to samples of the given bit depth.

    Integer depths use round-half-up and clamp to [0, max]; float buffers
    are clamped to [0, 1].
    """
    if bit_depth == 32:
        return np.clip(values, 0.0, 1.0).astype(np.float32)
    max_value = max_code_value(bit_depth)
    codes = np.floor(values * max_value + 0.5)
    dtype = np.uint8 if bit_depth == 8 else np.uint16
    return np.clip(codes, 0, max_value).astype(dtype)


def normalize(samples: np.ndarray, bit_depth: int) -> np.ndarray:
    """Convert samples to float64 in [0, 1]; NaN becomes 0."""
    if bit_depth == 32:
        values = samples.astype(np.float64)
        values[np.isnan(values)] = 0.0
        return np.clip(values, 0.0, 1.0)
    return samples.astype(np.float64) / max_code_value(bit_depth)


def code_table(lut: LUT, bit_depth: int) -> np.ndarray:
    """
    Output sample for every input code of an integer bit depth.

    Applying this table is exactly the interpolated lookup of the LUT,
    evaluated once per code instead of once per pixel.
    """
    max_value = int(max_code_value(bit_depth))
    codes = np.arange(max_value + 1, dtype=np.float64) / max_value
    return denormalize(lut.lookup(codes), bit_depth)


def plan_channels(curves: Sequence[ChannelCurve], buffer: ImageBuffer) -> list[ChannelPlan]:
    """
    Resolve curves to channel indices of a buffer.

    Master curves (RGB, Luminance) are ordered before single-channel curves.

    Raises:
        BufferMismatchError: If a curve targets a channel the buffer lacks or
            its color space does not match the buffer's
    """
    plans = []
    for curve in sorted(curves, key=lambda c: _ORDER.get(c.channel, 1)):
        channel = curve.channel
        if channel.is_lab != (buffer.color_space == ColorSpace.LAB):
            raise BufferMismatchError(
                f"Curve channel {channel.value} does not apply to a "
                f"{buffer.color_space.value} buffer"
            )

        if channel in (Channel.RGB, Channel.LUMINANCE):
            targets = tuple(range(buffer.color_channels))
            luminance = channel == Channel.LUMINANCE and buffer.color_channels == 3
        else:
            index = _SINGLE_CHANNEL_INDEX[channel]
            if buffer.color_channels < 3:
                raise BufferMismatchError(
                    f"Curve targets {channel.value} but the buffer has "
                    f"{buffer.channels} channel(s)"
                )
            targets = (index,)
            luminance = False

        table = None
        if buffer.bit_depth != 32 and not luminance:
            table = code_table(curve.lut, buffer.bit_depth)
        plans.append(ChannelPlan(channel, curve.lut, targets, luminance, table))
    return plans


def _apply_luminance(band: np.ndarray, plan: ChannelPlan, bit_depth: int) -> None:
    """Map pixel luma through the LUT and scale RGB by the luma ratio."""
    rgb = normalize(band[..., :3], bit_depth)
    luma = rgb @ LUMA_WEIGHTS
    mapped = plan.lut.lookup(luma)
    with np.errstate(divide="ignore", invalid="ignore"):
        gain = np.where(luma > 0, mapped / luma, 0.0)
    result = rgb * gain[..., np.newaxis]
    black = luma <= 0
    if np.any(black):
        result[black] = mapped[black][:, np.newaxis]
    band[..., :3] = denormalize(result, bit_depth)


def process_rows(
    source: np.ndarray,
    target: np.ndarray,
    plans: Sequence[ChannelPlan],
    bit_depth: int,
) -> None:
    """
    Process one block of rows from source into target.

    Channels without a curve (alpha included) are copied unchanged.
    """
    np.copyto(target, source)
    for plan in plans:
        if plan.luminance:
            _apply_luminance(target, plan, bit_depth)
        elif plan.table is not None:
            for index in plan.targets:
                target[..., index] = plan.table[target[..., index]]
        else:
            for index in plan.targets:
                values = normalize(target[..., index], bit_depth)
                target[..., index] = denormalize(plan.lut.lookup(values), bit_depth)


def split_rows(height: int, parts: int) -> list[tuple[int, int]]:
    """Split [0, height) into at most `parts` contiguous, non-empty bands."""
    parts = max(1, min(parts, height))
    edges = np.linspace(0, height, parts + 1).round().astype(int)
    return [(int(a), int(b)) for a, b in zip(edges[:-1], edges[1:]) if b > a]


class ChannelApplier:
    """
    Applies built LUTs to an ImageBuffer on the CPU, optionally via the GPU.

    Example:
        >>> applier = ChannelApplier()
        >>> report = applier.apply([ChannelCurve(Channel.RGB, lut)], buffer)
    """

    def __init__(self, gpu=None):
        """
        Args:
            gpu: Optional OpenCLApplier used when options request the GPU path
        """
        self.gpu = gpu

    def apply(
        self,
        curves: Sequence[ChannelCurve],
        source: ImageBuffer,
        output: ImageBuffer | None = None,
        options: ProcessingOptions | None = None,
        cancel: CancelToken | None = None,
    ) -> ApplyReport:
        """
        Apply curves to source, writing into output (source when None).

        Raises:
            BufferMismatchError: If the buffers are inconsistent; nothing is written
            OutOfMemoryError: If the scratch image cannot be allocated
            ApplyCancelled: If cancel was triggered; output is left untouched
        """
        options = options or ProcessingOptions()
        output = output if output is not None else source
        start = time.perf_counter()

        source.validate()
        output.validate()
        if not source.same_layout(output):
            raise BufferMismatchError(f"Output layout {output!r} does not match input {source!r}")
        if not output.writable:
            raise BufferMismatchError("Output buffer is read-only")

        plans = plan_channels(curves, source)
        report = ApplyReport(
            rows=source.height,
            channels=[p.channel.value for p in plans],
        )

        if not plans:
            if not output.shares_memory(source):
                np.copyto(output.pixels, source.pixels)
            report.elapsed_ms = (time.perf_counter() - start) * 1000.0
            return report

        scratch = None
        if options.acceleration == Acceleration.GPU:
            scratch = self._try_gpu(plans, source, report)

        if scratch is None:
            scratch = self._run_cpu(plans, source, options, cancel, report)

        if cancel is not None:
            cancel.raise_if_cancelled()

        np.copyto(output.pixels, scratch)
        report.elapsed_ms = (time.perf_counter() - start) * 1000.0
        logger.debug(
            "Applied %s on %s via %s (%d band(s), %.2f ms)",
            report.channels, source, report.backend, report.bands, report.elapsed_ms,
        )
        return report

    def _try_gpu(
        self,
        plans: Sequence[ChannelPlan],
        source: ImageBuffer,
        report: ApplyReport,
    ) -> np.ndarray | None:
        """Run the GPU path; None means fall back to the CPU."""
        if self.gpu is None or not self.gpu.available:
            logger.info("GPU path unavailable, using CPU")
            return None
        if not self.gpu.supports(source, plans):
            logger.info(
                "GPU path does not support %d-bit %s curves, using CPU",
                source.bit_depth, [p.channel.value for p in plans],
            )
            return None
        result = self.gpu.apply(plans, source)
        if result is not None:
            report.backend = self.gpu.name
        return result

    def _allocate(self, source: ImageBuffer) -> np.ndarray:
        try:
            return np.empty(source.pixels.shape, dtype=source.pixels.dtype)
        except MemoryError as exc:
            raise OutOfMemoryError(
                f"Could not allocate a scratch image for {source!r}"
            ) from exc

    def _run_cpu(
        self,
        plans: Sequence[ChannelPlan],
        source: ImageBuffer,
        options: ProcessingOptions,
        cancel: CancelToken | None,
        report: ApplyReport,
    ) -> np.ndarray:
        scratch = self._allocate(source)
        threads = options.resolved_thread_count()
        bands = split_rows(source.height, threads)
        batch = max(1, int(options.rows_per_batch))

        def run_band(band: tuple[int, int]) -> None:
            first, last = band
            for row in range(first, last, batch):
                if cancel is not None:
                    cancel.raise_if_cancelled()
                stop = min(row + batch, last)
                process_rows(
                    source.pixels[row:stop],
                    scratch[row:stop],
                    plans,
                    source.bit_depth,
                )

        if len(bands) == 1:
            run_band(bands[0])
            report.backend = "cpu-serial"
        else:
            with ThreadPoolExecutor(max_workers=len(bands)) as executor:
                futures = [executor.submit(run_band, band) for band in bands]
                for future in futures:
                    future.result()
            report.backend = "cpu-parallel"

        report.threads = len(bands)
        report.bands = len(bands)
        return scratch
