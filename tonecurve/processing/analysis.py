"""
Image statistics used by curve optimizers.

analyze_image() reduces a buffer to a small ImageFeatures summary:
brightness, contrast, shadow/highlight clipping, color cast and
per-channel percentiles. Large buffers are subsampled on a regular grid.
"""

from dataclasses import dataclass, field, asdict

import numpy as np

from tonecurve.core.buffer import ImageBuffer
from tonecurve.processing.applier import normalize

# Luma weights for brightness/contrast statistics (Rec.601)
ANALYSIS_LUMA = np.array([0.299, 0.587, 0.114], dtype=np.float64)

MAX_SAMPLES = 512 * 512


@dataclass
class ImageFeatures:
    """
    Summary statistics of an image, all in normalized units.

    Attributes:
        brightness: Mean luma
        contrast: Standard deviation of luma
        shadow_clipping: Fraction of pixels with luma <= shadow threshold
        highlight_clipping: Fraction of pixels with luma >= highlight threshold
        color_cast: Largest deviation of a channel mean from the gray mean
        black_point: Per-channel low percentile
        white_point: Per-channel high percentile
        channel_means: Per-channel mean
    """
    brightness: float = 0.5
    contrast: float = 0.0
    shadow_clipping: float = 0.0
    highlight_clipping: float = 0.0
    color_cast: float = 0.0
    black_point: list[float] = field(default_factory=list)
    white_point: list[float] = field(default_factory=list)
    channel_means: list[float] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _subsample(pixels: np.ndarray) -> np.ndarray:
    height, width = pixels.shape[:2]
    step = max(1, int(np.ceil(np.sqrt(height * width / MAX_SAMPLES))))
    return pixels[::step, ::step]


def analyze_image(
    buffer: ImageBuffer,
    shadow_threshold: float = 0.01,
    highlight_threshold: float = 0.99,
    black_percentile: float = 0.5,
    white_percentile: float = 99.5,
) -> ImageFeatures:
    """
    Compute ImageFeatures for a buffer.

    Args:
        buffer: Image to analyze (alpha is ignored)
        shadow_threshold: Luma at or below which a pixel counts as clipped black
        highlight_threshold: Luma at or above which a pixel counts as clipped white
        black_percentile: Percentile used for the per-channel black point
        white_percentile: Percentile used for the per-channel white point

    Returns:
        ImageFeatures summary
    """
    pixels = _subsample(buffer.pixels[..., : buffer.color_channels])
    values = normalize(pixels, buffer.bit_depth).reshape(-1, buffer.color_channels)

    if buffer.color_channels == 3:
        luma = values @ ANALYSIS_LUMA
    else:
        luma = values[:, 0]

    means = values.mean(axis=0)
    gray = float(means.mean())

    return ImageFeatures(
        brightness=float(luma.mean()),
        contrast=float(luma.std()),
        shadow_clipping=float(np.mean(luma <= shadow_threshold)),
        highlight_clipping=float(np.mean(luma >= highlight_threshold)),
        color_cast=float(np.max(np.abs(means - gray))),
        black_point=np.percentile(values, black_percentile, axis=0).tolist(),
        white_point=np.percentile(values, white_percentile, axis=0).tolist(),
        channel_means=means.tolist(),
    )
