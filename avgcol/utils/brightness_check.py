"""Brightness analysis utilities."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from avgcol.color import AverageColor

# ITU-R BT.709 luma weights.
RED_WEIGHT = 0.2126
GREEN_WEIGHT = 0.7152
BLUE_WEIGHT = 0.0722
MAX_CHANNEL_VALUE = 255.0
LIGHT_THRESHOLD = 0.5


def luma(color: AverageColor) -> float:
    """Return BT.709 relative luminance of an 8-bit color, normalized to [0, 1]."""
    red = float(color.red)
    green = float(color.green)
    blue = float(color.blue)
    return (red * RED_WEIGHT + green * GREEN_WEIGHT + blue * BLUE_WEIGHT) / MAX_CHANNEL_VALUE


def is_light(color: AverageColor) -> bool:
    """Classify a color as light when its luma is strictly above 0.5."""
    return luma(color) > LIGHT_THRESHOLD
