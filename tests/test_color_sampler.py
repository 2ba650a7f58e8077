"""Tests for retouch.processors.color_sampler"""

import numpy as np
import pytest

from retouch.models.types import Box
from retouch.processors.color_sampler import (
    DEFAULT_BACKGROUND,
    DEFAULT_FOREGROUND,
    hex_luminance,
    hex_to_rgb,
    hex_to_unit_rgb,
    luminance,
    rgb_to_hex,
    sample_background,
    sample_foreground,
    sample_pixel_color,
)
from retouch.processors.raster import ArrayRasterSurface


pytestmark = pytest.mark.unit


def surface_of(rgb, width=40, height=20, channels=3):
    pixels = np.zeros((height, width, channels), dtype=np.uint8)
    pixels[:, :, :3] = rgb
    if channels == 4:
        pixels[:, :, 3] = 255
    return ArrayRasterSurface(pixels)


class TestHexHelpers:
    def test_round_trip(self):
        assert rgb_to_hex(*hex_to_rgb("#1a2b3c")) == "#1a2b3c"

    def test_short_form(self):
        assert hex_to_rgb("#f0a") == (255, 0, 170)

    def test_invalid(self):
        with pytest.raises(ValueError):
            hex_to_rgb("#12345")
        with pytest.raises(ValueError):
            hex_to_rgb("not-a-color")

    def test_unit_rgb(self):
        assert hex_to_unit_rgb("#ff0000") == (1.0, 0.0, 0.0)

    def test_luminance(self):
        assert luminance(0, 0, 0) == 0
        assert hex_luminance("#ffffff") == pytest.approx(255.0)


class TestSampleBackground:
    """Most frequent light color"""

    def test_light_gray_page(self):
        surface = surface_of((240, 240, 240))
        surface.pixels[5:10, 5:30] = (10, 10, 10)
        assert sample_background(surface, Box(0, 0, 40, 20)) == "#f0f0f0"

    def test_quantization_merges_noise(self):
        surface = surface_of((241, 242, 243))
        surface.pixels[0:5, :] = (200, 200, 200)
        # 241..243 quantize to 240
        assert sample_background(surface, Box(0, 0, 40, 20)) == "#f0f0f0"

    def test_all_dark_region_falls_back(self):
        surface = surface_of((30, 30, 30))
        assert sample_background(surface, Box(0, 0, 40, 20)) == DEFAULT_BACKGROUND

    def test_no_raster(self):
        assert sample_background(None, Box(0, 0, 10, 10)) == DEFAULT_BACKGROUND

    def test_empty_region(self):
        assert sample_background(surface_of((0, 0, 0)), Box(5, 5, 5, 10)) == DEFAULT_BACKGROUND


class TestSampleForeground:
    """Most frequent color clearly darker than the background"""

    def test_dark_text_on_white(self):
        surface = surface_of((255, 255, 255))
        surface.pixels[5:10, 5:30] = (200, 0, 0)
        assert sample_foreground(surface, Box(0, 0, 40, 20), "#ffffff") == "#c80000"

    def test_antialiased_edge_excluded_on_mid_gray(self):
        """Background luminance 150 puts the cutoff at 110; luminance 130 is not text"""
        surface = surface_of((150, 150, 150))
        surface.pixels[0:10, 0:20] = (130, 130, 130)
        surface.pixels[15:17, 0:5] = (20, 20, 20)
        assert sample_foreground(surface, Box(0, 0, 40, 20), "#969696") == "#141414"

    def test_transparent_pixels_ignored(self):
        surface = surface_of((255, 255, 255), channels=4)
        surface.pixels[0:10, 0:20] = (0, 0, 255, 10)
        surface.pixels[15:17, 0:5] = (0, 128, 0, 255)
        assert sample_foreground(surface, Box(0, 0, 40, 20), "#ffffff") == "#008000"

    def test_nothing_dark_falls_back(self):
        surface = surface_of((255, 255, 255))
        assert sample_foreground(surface, Box(0, 0, 40, 20), "#ffffff") == DEFAULT_FOREGROUND

    def test_assumed_background(self):
        surface = surface_of((255, 255, 255))
        surface.pixels[0:2, 0:2] = (100, 100, 100)
        assert sample_foreground(surface, Box(0, 0, 40, 20)) == "#646464"


class TestSamplePixelColor:
    def test_reads_pixel(self):
        surface = surface_of((1, 2, 3))
        assert sample_pixel_color(surface, (5, 5)) == "#010203"

    def test_outside(self):
        assert sample_pixel_color(surface_of((0, 0, 0)), (500, 5)) is None
        assert sample_pixel_color(None, (0, 0)) is None
