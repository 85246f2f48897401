"""
Built-in curve presets and curve generators.

Presets are plain in-code definitions. Master (RGB) presets are offered for
every channel; the red, green and blue channels add their own color presets.

Also provides conversion between the core's normalized [0, 1] coordinates
and the [-100, 100] range some hosts use for tone curve points.
"""

from dataclasses import dataclass
from typing import Iterable

from tonecurve.core.types import Channel, ControlPoint, CurveSpec, CurveVariant


@dataclass(frozen=True)
class CurvePreset:
    """A named curve definition."""
    name: str
    description: str
    points: tuple[tuple[float, float], ...]
    variant: CurveVariant = CurveVariant.CUBIC_SPLINE
    category: str = "Other"

    def to_spec(self, channel: Channel | str = Channel.RGB) -> CurveSpec:
        return CurveSpec(self.points, variant=self.variant, channel=Channel.parse(channel))


BUILTIN_PRESETS: tuple[CurvePreset, ...] = (
    CurvePreset("Linear", "No adjustment - straight line",
                ((0, 0), (1, 1)), CurveVariant.LINEAR, "Basic"),
    CurvePreset("S-Curve", "Classic S-curve for increased contrast",
                ((0, 0), (0.25, 0.2), (0.75, 0.8), (1, 1)), category="Contrast"),
    CurvePreset("Inverse S-Curve", "Inverse S-curve for decreased contrast",
                ((0, 0), (0.25, 0.3), (0.75, 0.7), (1, 1)), category="Contrast"),
    CurvePreset("Film Emulation", "Classic film response curve",
                ((0, 0.05), (0.18, 0.15), (0.5, 0.5), (0.82, 0.85), (1, 0.95)),
                category="Film"),
    CurvePreset("High Contrast", "Dramatic contrast enhancement",
                ((0, 0), (0.2, 0.05), (0.4, 0.3), (0.6, 0.7), (0.8, 0.95), (1, 1)),
                category="Contrast"),
    CurvePreset("Low Contrast", "Soft, flat look",
                ((0, 0.1), (0.5, 0.5), (1, 0.9)), category="Contrast"),
    CurvePreset("Highlight Recovery", "Recover blown highlights",
                ((0, 0), (0.7, 0.7), (0.9, 0.8), (1, 0.85)), category="Recovery"),
    CurvePreset("Shadow Lift", "Lift shadows for detail",
                ((0, 0.15), (0.1, 0.2), (0.3, 0.3), (1, 1)), category="Recovery"),
    CurvePreset("Vintage", "Vintage film look with lifted blacks",
                ((0, 0.1), (0.3, 0.25), (0.7, 0.75), (1, 0.95)), category="Film"),
    CurvePreset("Cinematic", "Hollywood-style color grading",
                ((0, 0), (0.15, 0.1), (0.5, 0.45), (0.85, 0.9), (1, 1)),
                category="Cinematic"),
)

CHANNEL_PRESETS: dict[Channel, tuple[CurvePreset, ...]] = {
    Channel.RED: (
        CurvePreset("Warm Highlights", "Add warmth to highlights",
                    ((0, 0), (0.7, 0.75), (1, 1)), category="Color"),
        CurvePreset("Cool Shadows", "Cool down shadow areas",
                    ((0, 0), (0.3, 0.25), (1, 1)), category="Color"),
    ),
    Channel.GREEN: (
        CurvePreset("Skin Tone Enhancement", "Enhance skin tones",
                    ((0, 0), (0.4, 0.45), (0.7, 0.75), (1, 1)), category="Portrait"),
    ),
    Channel.BLUE: (
        CurvePreset("Sky Enhancement", "Enhance sky blues",
                    ((0, 0), (0.6, 0.65), (1, 1)), category="Landscape"),
        CurvePreset("Orange Teal", "Popular orange/teal look",
                    ((0, 0.05), (0.5, 0.45), (1, 0.95)), category="Cinematic"),
    ),
}


def _key(name: str) -> str:
    return name.strip().lower().replace(" ", "-").replace("_", "-")


def get_presets(channel: Channel | str = Channel.RGB) -> list[CurvePreset]:
    """All presets available for a channel."""
    channel = Channel.parse(channel)
    return list(BUILTIN_PRESETS) + list(CHANNEL_PRESETS.get(channel, ()))


def get_preset(name: str, channel: Channel | str = Channel.RGB) -> CurvePreset:
    """
    Look up a preset by name (case-insensitive, spaces or dashes).

    Raises:
        ValueError: If no preset has that name for the channel
    """
    presets = get_presets(channel)
    for preset in presets:
        if _key(preset.name) == _key(name):
            return preset
    raise ValueError(f"Unknown preset: {name}. Available: {[p.name for p in presets]}")


def presets_by_category(channel: Channel | str = Channel.RGB) -> dict[str, list[CurvePreset]]:
    """Presets for a channel grouped by category, categories sorted."""
    grouped: dict[str, list[CurvePreset]] = {}
    for preset in get_presets(channel):
        grouped.setdefault(preset.category, []).append(preset)
    return dict(sorted(grouped.items()))


def spec_from_preset(name: str, channel: Channel | str = Channel.RGB) -> CurveSpec:
    """CurveSpec for a named preset on a channel."""
    return get_preset(name, channel).to_spec(channel)


def specs_from_preset_map(preset_map: dict[Channel | str, str]) -> list[CurveSpec]:
    """
    Build one CurveSpec per channel from a {channel: preset name} map.

    Entries whose name is "none" are skipped.
    """
    specs = []
    for channel, name in preset_map.items():
        if name and name.lower() != "none":
            specs.append(spec_from_preset(name, channel))
    return specs


def s_curve_points(strength: float = 0.5) -> tuple[ControlPoint, ...]:
    """
    Control points for a symmetric contrast S-curve.

    Args:
        strength: 0 gives the identity, 1 the strongest curve; negative
            values produce an inverse S-curve
    """
    strength = min(max(float(strength), -1.0), 1.0)
    offset = 0.1 * strength
    return (
        ControlPoint(0.0, 0.0),
        ControlPoint(0.25, 0.25 - offset),
        ControlPoint(0.75, 0.75 + offset),
        ControlPoint(1.0, 1.0),
    )


def from_host_range(points: Iterable[tuple[float, float]]) -> list[ControlPoint]:
    """Convert points from [-100, 100] host coordinates to [0, 1]."""
    return [ControlPoint((x + 100.0) / 200.0, (y + 100.0) / 200.0) for x, y in points]


def to_host_range(points: Iterable[tuple[float, float]]) -> list[tuple[float, float]]:
    """Convert points from [0, 1] to [-100, 100] host coordinates."""
    return [(x * 200.0 - 100.0, y * 200.0 - 100.0) for x, y in points]
