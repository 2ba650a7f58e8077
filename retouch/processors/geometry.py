# retouch/processors/geometry.py
"""
Coordinate mapping between document, screen and raster pixel space.

All functions are pure. Degenerate transforms are accepted as-is and always
produce numeric results; callers decide what to do with them.
"""

import logging
import math
from typing import Optional

from retouch.models.types import Box, Matrix, Viewport

# Module logger
logger = logging.getLogger(__name__)

IDENTITY: Matrix = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)


# =============================================================================
# Affine matrices
# =============================================================================

def compose_transform(parent: Matrix, child: Matrix) -> Matrix:
    """
    Compose two affine matrices; child is applied first, then parent.

    Matches the way a content stream `cm` operand concatenates onto the
    current transformation matrix.
    """
    a1, b1, c1, d1, e1, f1 = parent
    a2, b2, c2, d2, e2, f2 = child
    return (
        a1 * a2 + c1 * b2,
        b1 * a2 + d1 * b2,
        a1 * c2 + c1 * d2,
        b1 * c2 + d1 * d2,
        a1 * e2 + c1 * f2 + e1,
        b1 * e2 + d1 * f2 + f1,
    )


def apply_transform(matrix: Matrix, point: tuple[float, float]) -> tuple[float, float]:
    a, b, c, d, e, f = matrix
    x, y = point
    return (a * x + c * y + e, b * x + d * y + f)


def invert_transform(matrix: Matrix) -> Matrix:
    """Invert an affine matrix. A singular matrix inverts against a unit determinant."""
    a, b, c, d, e, f = matrix
    det = a * d - b * c
    if det == 0:
        logger.debug("Singular transform %s inverted with unit determinant", matrix)
        det = 1.0
    return (
        d / det,
        -b / det,
        -c / det,
        a / det,
        (c * f - d * e) / det,
        (b * e - a * f) / det,
    )


class TransformStack:
    """
    Current transformation matrix with save/restore semantics.

    restore() on an empty stack keeps the current matrix.
    """

    def __init__(self, initial: Optional[Matrix] = None):
        self._current: Matrix = initial or IDENTITY
        self._saved: list[Matrix] = []

    @property
    def current(self) -> Matrix:
        return self._current

    @property
    def depth(self) -> int:
        return len(self._saved)

    def save(self) -> None:
        self._saved.append(self._current)

    def restore(self) -> None:
        if self._saved:
            self._current = self._saved.pop()
        else:
            logger.debug("Unbalanced restore in content stream ignored")

    def transform(self, matrix: Matrix) -> None:
        self._current = compose_transform(self._current, matrix)


# =============================================================================
# Space conversions
# =============================================================================

def to_screen(doc_point: tuple[float, float], viewport: Viewport) -> tuple[float, float]:
    """Map a document point to screen space."""
    return apply_transform(viewport.transform, doc_point)


def to_doc(screen_point: tuple[float, float], viewport: Viewport) -> tuple[float, float]:
    """Map a screen point back to document space."""
    return apply_transform(invert_transform(viewport.transform), screen_point)


def doc_box_to_screen(box: Box, viewport: Viewport) -> Box:
    """Map a document box (y0 = bottom) to a screen box (y0 = top)."""
    x0, y0 = to_screen((box.x0, box.y0), viewport)
    x1, y1 = to_screen((box.x1, box.y1), viewport)
    return Box(min(x0, x1), min(y0, y1), max(x0, x1), max(y0, y1))


def screen_box_to_doc(box: Box, viewport: Viewport) -> Box:
    """Map a screen box (y0 = top) to a document box (y0 = bottom)."""
    x0, y0 = to_doc((box.x0, box.y0), viewport)
    x1, y1 = to_doc((box.x1, box.y1), viewport)
    return Box(min(x0, x1), min(y0, y1), max(x0, x1), max(y0, y1))


def screen_box_to_pixels(
    box: Box,
    device_scale: float,
    surface_width: int,
    surface_height: int,
) -> tuple[int, int, int, int]:
    """
    Convert a screen box to a clamped pixel rectangle.

    Returns:
        (x, y, width, height) in pixels; width/height may be 0 when the box
        lies outside the surface
    """
    sx = min(max(0, round_half_up(box.x0 * device_scale)), surface_width)
    sy = min(max(0, round_half_up(box.y0 * device_scale)), surface_height)
    sw = max(0, min(round_half_up(box.width * device_scale), surface_width - sx))
    sh = max(0, min(round_half_up(box.height * device_scale), surface_height - sy))
    return sx, sy, sw, sh


def convert_to_pdf_coordinates(
    box: Box,
    page_height: float,
    page_width: Optional[float] = None,
) -> Box:
    """
    Convert a top-left origin box into PDF coordinates (bottom-left origin).

    Args:
        box: Box with y0 as the top edge, in document units
        page_height: Page height in document units
        page_width: Optional page width used to clamp x coordinates

    Returns:
        Box with y0 as the bottom edge

    Raises:
        ValueError: If page_height is not positive
    """
    if page_height <= 0:
        raise ValueError(f"Invalid page_height: {page_height}")

    x0, x1 = box.x0, box.x1
    if page_width is not None and page_width > 0:
        x0 = max(0.0, min(x0, page_width))
        x1 = max(0.0, min(x1, page_width))

    y0_img = max(0.0, min(box.y0, page_height))
    y1_img = max(0.0, min(box.y1, page_height))

    # Top edge in image space becomes the upper y in PDF space
    return Box(x0, page_height - y1_img, x1, page_height - y0_img)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (matches screen pixel snapping)."""
    return int(math.floor(value + 0.5))
