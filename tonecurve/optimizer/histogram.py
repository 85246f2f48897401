"""
Histogram-driven curve optimizer.

A CPU-only backend that refines a curve from ImageFeatures:

1. Levels: stretch the measured black/white points to 0/1
2. The original curve
3. Contrast: blend toward a smoothstep S-curve
4. Shadow / highlight recovery: lift the toe, compress the shoulder
5. Film emulation: lifted blacks and rolled-off whites

The composed function is resampled into control points for a cubic spline.
Every step is monotone, so a monotone input curve stays monotone.
"""

import numpy as np

from tonecurve.core.types import Channel, CurveSpec, CurveVariant
from tonecurve.curves.evaluators import create_evaluator
from tonecurve.optimizer.base import OptimizerContext, OptimizerIntent, register_optimizer
from tonecurve.processing.analysis import ImageFeatures

_CHANNEL_INDEX = {Channel.RED: 0, Channel.GREEN: 1, Channel.BLUE: 2}


def smoothstep(x: np.ndarray) -> np.ndarray:
    """Cubic Hermite S-curve on [0, 1]."""
    return x * x * (3 - 2 * x)


@register_optimizer("histogram", "Levels, contrast and recovery from image statistics")
class HistogramOptimizer(OptimizerContext):
    """
    Algorithmic optimizer backend.

    Attributes:
        samples: Number of control points in the refined curve
        min_range: Smallest black-to-white span that is still stretched
    """

    def __init__(self, samples: int = 17, min_range: float = 0.05):
        super().__init__()
        self.samples = max(3, int(samples))
        self.min_range = min_range

    def _levels(self, spec: CurveSpec, features: ImageFeatures, intent: OptimizerIntent):
        if not features.black_point or not features.white_point:
            return 0.0, 1.0
        index = _CHANNEL_INDEX.get(spec.channel)
        if intent.auto_color and index is not None and index < len(features.black_point):
            black, white = features.black_point[index], features.white_point[index]
        else:
            black, white = min(features.black_point), max(features.white_point)
        if white - black < self.min_range:
            return 0.0, 1.0
        return float(black), float(white)

    def optimize(
        self,
        spec: CurveSpec,
        features: ImageFeatures,
        intent: OptimizerIntent,
    ) -> CurveSpec:
        self.ensure_ready()

        black, white = self._levels(spec, features, intent)
        xs = np.linspace(0.0, 1.0, self.samples)
        ys = np.clip((xs - black) / (white - black), 0.0, 1.0)
        ys = create_evaluator(spec).evaluate_array(ys)

        contrast = min(max(intent.contrast_boost, 0.0), 1.0)
        if contrast:
            ys = ys + contrast * (smoothstep(ys) - ys)

        shadows = min(max(intent.shadow_recovery, 0.0), 1.0)
        if shadows:
            ys = ys + 0.15 * shadows * (1.0 - ys) ** 3

        highlights = min(max(intent.highlight_recovery, 0.0), 1.0)
        if highlights:
            ys = ys - 0.15 * highlights * ys ** 3

        if intent.film_emulation:
            ys = 0.05 + 0.9 * ys

        ys = np.clip(ys, 0.0, 1.0)
        return CurveSpec(
            tuple(zip(xs.tolist(), ys.tolist())),
            variant=CurveVariant.CUBIC_SPLINE,
            channel=spec.channel,
        )
