"""Tests for retouch.processors.raster"""

import numpy as np
import pytest

from retouch.models.types import Box
from retouch.processors.raster import ArrayRasterSurface
from retouch.services.exceptions import RasterBusyError


pytestmark = pytest.mark.unit


class TestArrayRasterSurface:
    """Pixel access in screen coordinates"""

    @pytest.fixture
    def surface(self):
        return ArrayRasterSurface(np.full((100, 200, 3), 255, dtype=np.uint8), device_scale=2.0)

    def test_rejects_bad_shape(self):
        with pytest.raises(ValueError):
            ArrayRasterSurface(np.zeros((10, 10), dtype=np.uint8))
        with pytest.raises(ValueError):
            ArrayRasterSurface(np.zeros((10, 10, 2), dtype=np.uint8))

    def test_dimensions(self, surface):
        assert (surface.width, surface.height) == (200, 100)

    def test_fill_uses_device_scale(self, surface):
        surface.fill_region(Box(10, 10, 20, 15), "#ff0000")
        assert tuple(surface.pixels[20, 20]) == (255, 0, 0)
        assert tuple(surface.pixels[29, 39]) == (255, 0, 0)
        assert tuple(surface.pixels[30, 40]) == (255, 255, 255)

    def test_read_region_is_copy(self, surface):
        region = surface.read_region(Box(0, 0, 5, 5))
        assert region.shape == (10, 10, 3)
        region[:] = 0
        assert surface.pixels[0, 0, 0] == 255

    def test_read_pixel(self, surface):
        surface.pixels[10, 20] = (1, 2, 3)
        assert surface.read_pixel((10.2, 5.1)) == (1, 2, 3)
        assert surface.read_pixel((-1, 0)) is None
        assert surface.read_pixel((100, 0)) is None

    def test_snapshot_restore(self, surface):
        box = Box(10, 10, 30, 20)
        snap = surface.snapshot(box)
        surface.fill_region(box, "#000000")
        assert surface.pixels[25, 25, 0] == 0
        surface.restore(snap)
        assert np.all(surface.pixels == 255)

    def test_write_region(self, surface):
        patch = np.zeros((10, 20, 3), dtype=np.uint8)
        patch[:, :, 1] = 128
        surface.write_region(Box(5, 5, 15, 10), patch)
        assert tuple(surface.pixels[10, 10]) == (0, 128, 0)
        assert tuple(surface.pixels[19, 29]) == (0, 128, 0)
        assert tuple(surface.pixels[20, 30]) == (255, 255, 255)

    def test_write_region_cropped_at_edge(self, surface):
        surface.write_region(Box(95, 45, 105, 55), np.zeros((20, 20, 3), dtype=np.uint8))
        assert np.all(surface.pixels[90:, 190:] == 0)
        assert np.all(surface.pixels[:90] == 255)

    def test_write_region_larger_than_region(self, surface):
        surface.write_region(Box(0, 0, 5, 5), np.zeros((40, 40, 3), dtype=np.uint8))
        assert np.all(surface.pixels[:10, :10] == 0)
        assert surface.pixels[10, 10, 0] == 255

    def test_write_region_channel_mismatch(self, surface):
        with pytest.raises(ValueError):
            surface.write_region(Box(0, 0, 5, 5), np.zeros((10, 10, 4), dtype=np.uint8))

    def test_fill_sets_alpha(self):
        surface = ArrayRasterSurface(np.zeros((10, 10, 4), dtype=np.uint8))
        surface.fill_region(Box(0, 0, 5, 5), "#102030")
        assert tuple(surface.pixels[2, 2]) == (16, 32, 48, 255)

    def test_fill_outside_is_noop(self, surface):
        surface.fill_region(Box(500, 500, 510, 510), "#000000")
        assert np.all(surface.pixels == 255)

    def test_no_native_picker(self, surface):
        assert surface.pick_color_from_surface((1, 1)) is None


class TestExclusiveCheckout:
    def test_acquire_release(self, white_raster):
        white_raster.acquire("block-0")
        assert white_raster.owner == "block-0"
        white_raster.acquire("block-0")
        white_raster.release("block-0")
        assert white_raster.owner is None

    def test_busy(self, white_raster):
        white_raster.acquire("block-0")
        with pytest.raises(RasterBusyError):
            white_raster.acquire("block-1")

    def test_release_by_other_ignored(self, white_raster):
        white_raster.acquire("block-0")
        white_raster.release("block-1")
        assert white_raster.owner == "block-0"
