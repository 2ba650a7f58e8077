# retouch/services/image_editor.py
"""
Image region editor: delete or replace embedded images.

Regions come from transform-tracked image placements; every region is
selectable at once. Pending actions live only as long as the editor.
"""

import logging
from typing import Optional

from retouch.models.types import Box, ImageAction, ImagePlacement, ImageRegion, Viewport
from retouch.processors.geometry import doc_box_to_screen

# Module logger
logger = logging.getLogger(__name__)

SUPPORTED_MIME_TYPES = ('image/png', 'image/jpeg', 'image/jpg')


class ImageRegionEditor:
    """
    Pending delete/replace actions for the images of one page.
    """

    def __init__(self, placements: list[ImagePlacement], viewport: Viewport):
        self.viewport = viewport
        self.regions = [self._region_from_placement(p, viewport) for p in placements]

    @staticmethod
    def _region_from_placement(placement: ImagePlacement, viewport: Viewport) -> ImageRegion:
        doc_box = Box.from_size(placement.doc_x, placement.doc_y, placement.doc_w, placement.doc_h)
        return ImageRegion(
            doc_x=placement.doc_x,
            doc_y=placement.doc_y,
            doc_w=placement.doc_w,
            doc_h=placement.doc_h,
            screen_box=doc_box_to_screen(doc_box, viewport),
            name=placement.name,
        )

    def __len__(self) -> int:
        return len(self.regions)

    def _region(self, index: int) -> ImageRegion:
        if not 0 <= index < len(self.regions):
            raise IndexError(f"No image region {index} (page has {len(self.regions)})")
        return self.regions[index]

    def hit_test(self, point: tuple[float, float]) -> Optional[int]:
        """Topmost region under a screen point (later paints are on top)."""
        x, y = point
        for index in range(len(self.regions) - 1, -1, -1):
            if self.regions[index].screen_box.contains(x, y):
                return index
        return None

    def toggle_delete(self, index: int) -> ImageAction:
        """Mark a region for deletion, or unmark it if already marked."""
        region = self._region(index)
        if region.action == ImageAction.DELETE:
            region.action = ImageAction.NONE
        else:
            region.action = ImageAction.DELETE
            region.replacement_bytes = None
            region.replacement_mime = None
        logger.debug("Image region %d action -> %s", index, region.action.value)
        return region.action

    def replace(self, index: int, data: bytes, mime_type: str) -> None:
        """
        Stage replacement bytes for a region.

        Raises:
            ValueError: If data is empty or the mime type is not an image type
        """
        if not data:
            raise ValueError("Replacement image is empty")
        if not (mime_type or '').lower().startswith('image/'):
            raise ValueError(f"Not an image type: {mime_type}")
        if mime_type.lower() not in SUPPORTED_MIME_TYPES:
            logger.warning("Unusual replacement type %s; embedding will try PNG/JPEG decoders", mime_type)

        region = self._region(index)
        region.action = ImageAction.REPLACE
        region.replacement_bytes = data
        region.replacement_mime = mime_type
        logger.debug("Image region %d staged for replacement (%d bytes, %s)", index, len(data), mime_type)

    def reset(self, index: int) -> None:
        region = self._region(index)
        region.action = ImageAction.NONE
        region.replacement_bytes = None
        region.replacement_mime = None

    def has_changes(self) -> bool:
        return any(region.action != ImageAction.NONE for region in self.regions)

    def pending_regions(self) -> list[ImageRegion]:
        return [region for region in self.regions if region.action != ImageAction.NONE]
