# retouch/processors/color_sampler.py
"""
Raster color sampling for text regions.

Text color and background are not reliably available from extracted
metadata, so they are inferred from the rendered page:
- background: most frequent light color in the region
- foreground: most frequent color clearly darker than the background

Colors are quantized to multiples of 4 per channel before counting so that
anti-aliasing noise does not split the histogram.
Sampling must happen before the region is erased.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

import numpy as np

from retouch.models.types import Box

if TYPE_CHECKING:
    from .raster import RasterSurface

# Module logger
logger = logging.getLogger(__name__)

DEFAULT_BACKGROUND = "#ffffff"
DEFAULT_FOREGROUND = "#000000"

# Background pixels must be at least this light
BACKGROUND_MIN_LUMINANCE = 150.0
# Foreground pixels must be this much darker than the background
FOREGROUND_LUMINANCE_MARGIN = 40.0
# Background luminance assumed when none is given
ASSUMED_BACKGROUND_LUMINANCE = 230.0
# Pixels with lower alpha are ignored for the foreground
MIN_ALPHA = 128
# Low bits dropped per channel
QUANTIZE_SHIFT = 2

# ITU-R BT.601 luma weights
_LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])


# =============================================================================
# Color helpers
# =============================================================================

def luminance(r: float, g: float, b: float) -> float:
    return 0.299 * r + 0.587 * g + 0.114 * b


def rgb_to_hex(r: int, g: int, b: int) -> str:
    return f"#{int(r):02x}{int(g):02x}{int(b):02x}"


def hex_to_rgb(color: str) -> tuple[int, int, int]:
    """
    Parse "#rrggbb" (or "#rgb") into 0-255 channels.

    Raises:
        ValueError: If the string is not a hex color
    """
    value = color.strip().lstrip('#')
    if len(value) == 3:
        value = ''.join(ch * 2 for ch in value)
    if len(value) != 6:
        raise ValueError(f"Invalid hex color: {color!r}")
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


def hex_to_unit_rgb(color: str) -> tuple[float, float, float]:
    """Parse a hex color into 0.0-1.0 channels (PDF color operands)."""
    r, g, b = hex_to_rgb(color)
    return r / 255.0, g / 255.0, b / 255.0


def hex_luminance(color: str) -> float:
    return luminance(*hex_to_rgb(color))


# =============================================================================
# Sampling
# =============================================================================

def _most_frequent_color(rgb: np.ndarray) -> Optional[str]:
    """Return the most frequent quantized color of an (N, 3) array."""
    if rgb.size == 0:
        return None
    quantized = (rgb.astype(np.uint8) >> QUANTIZE_SHIFT) << QUANTIZE_SHIFT
    colors, counts = np.unique(quantized.reshape(-1, 3), axis=0, return_counts=True)
    r, g, b = colors[int(np.argmax(counts))]
    return rgb_to_hex(r, g, b)


def _region_pixels(raster: Optional[RasterSurface], region: Box) -> Optional[np.ndarray]:
    if raster is None or region.is_empty:
        return None
    pixels = raster.read_region(region)
    if pixels is None or pixels.size == 0:
        return None
    return pixels.reshape(-1, pixels.shape[-1])


def sample_background(
    raster: Optional[RasterSurface],
    region: Box,
    min_luminance: float = BACKGROUND_MIN_LUMINANCE,
) -> str:
    """
    Infer the background color of a screen region.

    Args:
        raster: Rendered page surface, or None
        region: Screen-space region
        min_luminance: Darker pixels are ignored

    Returns:
        Hex color; white when nothing qualifies
    """
    pixels = _region_pixels(raster, region)
    if pixels is None:
        return DEFAULT_BACKGROUND

    rgb = pixels[:, :3].astype(np.float64)
    light = rgb[(rgb @ _LUMA_WEIGHTS) >= min_luminance]
    return _most_frequent_color(light) or DEFAULT_BACKGROUND


def sample_foreground(
    raster: Optional[RasterSurface],
    region: Box,
    background: Optional[str] = None,
    margin: float = FOREGROUND_LUMINANCE_MARGIN,
    min_alpha: int = MIN_ALPHA,
) -> str:
    """
    Infer the text color of a screen region.

    Pixels lighter than luminance(background) - margin are treated as
    background; mostly transparent pixels are ignored.

    Returns:
        Hex color; black when nothing qualifies
    """
    pixels = _region_pixels(raster, region)
    if pixels is None:
        return DEFAULT_FOREGROUND

    if background is not None:
        threshold = hex_luminance(background) - margin
    else:
        threshold = ASSUMED_BACKGROUND_LUMINANCE - margin

    if pixels.shape[-1] >= 4:
        pixels = pixels[pixels[:, 3] >= min_alpha]

    rgb = pixels[:, :3].astype(np.float64)
    dark = rgb[(rgb @ _LUMA_WEIGHTS) <= threshold]
    return _most_frequent_color(dark) or DEFAULT_FOREGROUND


def sample_pixel_color(raster: Optional[RasterSurface], point: tuple[float, float]) -> Optional[str]:
    """
    Read the color under a screen point.

    Returns:
        Hex color, or None outside the surface
    """
    if raster is None:
        return None
    pixel = raster.read_pixel(point)
    if pixel is None:
        return None
    return rgb_to_hex(pixel[0], pixel[1], pixel[2])
