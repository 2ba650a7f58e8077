# retouch/processors/raster.py
"""
Raster surface capability for the rendered page.

The surface is shared between the host's page view and the editing engine;
while a block is active it is checked out exclusively by that block so
that its snapshot/erase/restore sequence cannot interleave with another.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np

from retouch.models.types import Box
from retouch.services.exceptions import RasterBusyError
from .color_sampler import hex_to_rgb
from .geometry import screen_box_to_pixels

# Module logger
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RasterSnapshot:
    """Pixels captured from a surface rectangle (pixel coordinates)."""
    x: int
    y: int
    pixels: np.ndarray

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


class RasterSurface(ABC):
    """
    Abstract rendered-page surface addressed in screen coordinates.

    Implementations convert screen boxes to pixels with their device scale.
    """

    def __init__(self, device_scale: float = 1.0):
        self.device_scale = device_scale
        self._owner: Optional[Any] = None

    @property
    @abstractmethod
    def width(self) -> int:
        """Surface width in pixels"""
        pass

    @property
    @abstractmethod
    def height(self) -> int:
        """Surface height in pixels"""
        pass

    @abstractmethod
    def read_region(self, region: Box) -> np.ndarray:
        """Return a copy of the pixels under a screen region (H, W, C)."""
        pass

    @abstractmethod
    def read_pixel(self, point: tuple[float, float]) -> Optional[tuple[int, ...]]:
        """Return the channels under a screen point, or None outside the surface."""
        pass

    @abstractmethod
    def fill_region(self, region: Box, color: str) -> None:
        """Paint a screen region with a solid hex color."""
        pass

    @abstractmethod
    def write_region(self, region: Box, pixels: np.ndarray) -> None:
        """Write pixels (H, W, C) into a screen region, cropped to the region and surface."""
        pass

    @abstractmethod
    def snapshot(self, region: Box) -> RasterSnapshot:
        """Capture a screen region for a later restore()."""
        pass

    @abstractmethod
    def restore(self, snapshot: RasterSnapshot) -> None:
        """Write a snapshot back to where it was taken."""
        pass

    def pick_color_from_surface(self, point: tuple[float, float]) -> Optional[str]:
        """
        Native color picker hook.

        Surfaces backed by a host with a color picker override this; None
        means the capability is absent and callers fall back to sampling.
        """
        return None

    # -------------------------------------------------------------------------
    # Exclusive checkout
    # -------------------------------------------------------------------------

    @property
    def owner(self) -> Optional[Any]:
        return self._owner

    def acquire(self, owner: Any) -> None:
        """
        Check the surface out for exclusive use.

        Raises:
            RasterBusyError: If another owner holds the surface
        """
        if self._owner is not None and self._owner != owner:
            raise RasterBusyError(f"Raster surface is held by {self._owner!r}")
        self._owner = owner

    def release(self, owner: Any) -> None:
        if self._owner == owner:
            self._owner = None
        else:
            logger.debug("Release by non-owner %r ignored (owner=%r)", owner, self._owner)


class ArrayRasterSurface(RasterSurface):
    """
    Raster surface over a numpy pixel buffer (H, W, 3) or (H, W, 4) of uint8.
    """

    def __init__(self, pixels: np.ndarray, device_scale: float = 1.0):
        super().__init__(device_scale)
        if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
            raise ValueError(f"Expected (H, W, 3|4) pixel array, got shape {pixels.shape}")
        self.pixels = pixels

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def _pixel_rect(self, region: Box) -> tuple[int, int, int, int]:
        return screen_box_to_pixels(region, self.device_scale, self.width, self.height)

    def read_region(self, region: Box) -> np.ndarray:
        x, y, w, h = self._pixel_rect(region)
        return self.pixels[y:y + h, x:x + w].copy()

    def read_pixel(self, point: tuple[float, float]) -> Optional[tuple[int, ...]]:
        px = int(point[0] * self.device_scale)
        py = int(point[1] * self.device_scale)
        if px < 0 or py < 0 or px >= self.width or py >= self.height:
            return None
        return tuple(int(v) for v in self.pixels[py, px])

    def fill_region(self, region: Box, color: str) -> None:
        x, y, w, h = self._pixel_rect(region)
        if w == 0 or h == 0:
            return
        r, g, b = hex_to_rgb(color)
        self.pixels[y:y + h, x:x + w, 0] = r
        self.pixels[y:y + h, x:x + w, 1] = g
        self.pixels[y:y + h, x:x + w, 2] = b
        if self.pixels.shape[2] == 4:
            self.pixels[y:y + h, x:x + w, 3] = 255

    def write_region(self, region: Box, pixels: np.ndarray) -> None:
        x, y, w, h = self._pixel_rect(region)
        self._write_pixels(x, y, pixels[:h, :w])

    def _write_pixels(self, x: int, y: int, pixels: np.ndarray) -> None:
        if pixels.ndim != 3 or pixels.shape[2] != self.pixels.shape[2]:
            raise ValueError(
                f"Expected (H, W, {self.pixels.shape[2]}) pixel array, got shape {pixels.shape}"
            )
        h = min(pixels.shape[0], self.height - y)
        w = min(pixels.shape[1], self.width - x)
        if h <= 0 or w <= 0:
            return
        self.pixels[y:y + h, x:x + w] = pixels[:h, :w]

    def snapshot(self, region: Box) -> RasterSnapshot:
        x, y, w, h = self._pixel_rect(region)
        return RasterSnapshot(x, y, self.pixels[y:y + h, x:x + w].copy())

    def restore(self, snapshot: RasterSnapshot) -> None:
        self._write_pixels(snapshot.x, snapshot.y, snapshot.pixels)
