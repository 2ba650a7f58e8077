# retouch/services/commit_engine.py
"""
Commit engine: turns dirty line records and image regions into
document-mutation calls.

Text lines are committed by covering the original glyphs with a rectangle
filled with the sampled background and redrawing each styled run left to
right with a standard (or user-supplied) font. Image regions are covered
in white and optionally redrawn with replacement bytes at the original
geometry.

Failures are handled per record: a line whose fonts cannot be embedded is
skipped, an image that cannot be embedded leaves only its cover.
"""

import logging
from typing import Any, Optional

from retouch.models.types import (
    Box,
    CommitResult,
    ImageAction,
    ImageRegion,
    LineEdit,
)
from retouch.processors.base import DocumentMutationProvider
from retouch.processors.font_manager import CUSTOM, DEFAULT_FONT_NAME, SANS, resolve_output_font
from .exceptions import FontEmbedError, ImageEmbedError

# Module logger
logger = logging.getLogger(__name__)

# Cover rectangle geometry (document units / ratios of the font size)
COVER_LEFT_PADDING = 1.0
COVER_EXTRA_WIDTH = 4.0
COVER_DESCENT_RATIO = 0.18
COVER_FONT_HEIGHT_RATIO = 1.08
COVER_LINE_HEIGHT_RATIO = 1.12

IMAGE_COVER_COLOR = "#ffffff"

_CUSTOM_FONT_KEY = "__custom"


def cover_rect(line: LineEdit) -> Box:
    """
    Rectangle hiding a line's original glyphs, in document space.

    Sized from the original line box (not the edited text) with padding
    for descenders and ascenders.
    """
    original = line.line
    font_size = original.dominant_font_size
    line_height = max(original.doc_line_height, font_size)

    width = original.doc_line_width
    if width <= 0 and original.dominant_font_size > 0:
        scale = original.screen_font_size / original.dominant_font_size
        width = original.screen_bbox.width / scale if scale > 0 else 0.0

    return Box.from_size(
        original.doc_x - COVER_LEFT_PADDING,
        original.doc_y - max(font_size * COVER_DESCENT_RATIO, line_height * COVER_DESCENT_RATIO),
        width + COVER_EXTRA_WIDTH,
        max(font_size * COVER_FONT_HEIGHT_RATIO, line_height * COVER_LINE_HEIGHT_RATIO),
    )


def replacement_codecs(mime_type: Optional[str]) -> tuple[str, str]:
    """Primary and alternate codec for replacement image bytes."""
    if 'png' in (mime_type or '').lower():
        return ('png', 'jpeg')
    return ('jpeg', 'png')


class CommitEngine:
    """
    Applies edits through a document-mutation provider.

    Args:
        provider: Mutation provider, or None when none is available
        custom_font: User-supplied font program for the "custom" family
    """

    def __init__(
        self,
        provider: Optional[DocumentMutationProvider],
        custom_font: Optional[bytes] = None,
    ):
        self.provider = provider
        self.custom_font = custom_font
        self.last_result: Optional[CommitResult] = None

    # =========================================================================
    # Text
    # =========================================================================

    async def commit_text(
        self,
        pdf_data: bytes,
        page_index: int,
        lines: list[LineEdit],
    ) -> Optional[bytes]:
        """
        Redraw dirty lines on one page.

        Returns:
            New document bytes, or None when there is nothing to commit or
            no mutation provider
        """
        if self.provider is None:
            logger.warning("No document mutation provider; text edits not committed")
            return None
        if not lines:
            return None

        doc = self.provider.load_mutable(pdf_data)
        try:
            page = self.provider.get_page(doc, page_index)
            result = await self.apply_text_edits(doc, page, lines)
            data = await self.provider.save(doc)
        finally:
            self.provider.close(doc)

        self.last_result = result
        logger.info("Committed text edits on page %d: %s", page_index, result.summary)
        return data

    async def apply_text_edits(self, doc: Any, page: Any, lines: list[LineEdit]) -> CommitResult:
        result = CommitResult()
        fonts: dict[str, Any] = {}
        for line in lines:
            try:
                await self._draw_line(doc, page, line, fonts)
                result.applied_lines += 1
            except FontEmbedError as e:
                result.skipped_lines += 1
                result.errors.append(str(e))
                logger.warning("Skipping line %r: no usable font (%s)", line.text, e)
            except (RuntimeError, ValueError) as e:
                # Backend drawing errors affect this line only
                result.skipped_lines += 1
                result.errors.append(str(e))
                logger.warning("Skipping line %r: %s", line.text, e)
        return result

    async def _draw_line(self, doc: Any, page: Any, line: LineEdit, fonts: dict[str, Any]) -> None:
        runs = [run for run in line.runs if run.text]
        font_name = line.effective_font_name

        # Resolve every font before touching the page
        run_fonts = [await self._get_font(doc, font_name, run.bold, run.italic, fonts) for run in runs]

        provider = self.provider
        provider.draw_rectangle(page, cover_rect(line), line.matched_background_color)

        size = line.effective_font_size
        color = line.effective_color
        x = line.line.doc_x
        y = line.line.doc_y
        for run, font in zip(runs, run_fonts):
            provider.draw_text(page, run.text, (x, y), font, color, size)
            x += provider.measure_text_width(font, run.text, size)

        logger.debug("Redrew line %r as %d runs at (%.1f, %.1f)", line.text, len(runs), line.line.doc_x, y)

    async def _get_font(
        self,
        doc: Any,
        font_name: str,
        bold: bool,
        italic: bool,
        fonts: dict[str, Any],
    ) -> Any:
        """
        Embedded font for a run, cached per document.

        Raises:
            FontEmbedError: If neither the variant nor plain sans can be embedded
        """
        if font_name == CUSTOM:
            if self.custom_font is not None and _CUSTOM_FONT_KEY not in fonts:
                try:
                    fonts[_CUSTOM_FONT_KEY] = await self.provider.embed_font_bytes(doc, self.custom_font)
                except FontEmbedError as e:
                    logger.warning("Custom font could not be embedded, using sans: %s", e)
                    self.custom_font = None
            if _CUSTOM_FONT_KEY in fonts:
                return fonts[_CUSTOM_FONT_KEY]
            font_name = DEFAULT_FONT_NAME

        variant = resolve_output_font(font_name, bold, italic)
        if variant in fonts:
            return fonts[variant]

        try:
            fonts[variant] = await self.provider.embed_standard_font(doc, variant)
        except FontEmbedError as e:
            if variant == SANS:
                raise
            logger.warning("Font %s unavailable, falling back to sans: %s", variant, e)
            if SANS not in fonts:
                fonts[SANS] = await self.provider.embed_standard_font(doc, SANS)
            fonts[variant] = fonts[SANS]
        return fonts[variant]

    # =========================================================================
    # Images
    # =========================================================================

    async def commit_images(
        self,
        pdf_data: bytes,
        page_index: int,
        regions: list[ImageRegion],
    ) -> Optional[bytes]:
        """
        Apply delete/replace actions on one page.

        Returns:
            New document bytes, or None when no region has an action or
            there is no mutation provider
        """
        if self.provider is None:
            logger.warning("No document mutation provider; image edits not committed")
            return None
        pending = [region for region in regions if region.action != ImageAction.NONE]
        if not pending:
            return None

        doc = self.provider.load_mutable(pdf_data)
        try:
            page = self.provider.get_page(doc, page_index)
            result = await self.apply_image_edits(doc, page, pending)
            data = await self.provider.save(doc)
        finally:
            self.provider.close(doc)

        self.last_result = result
        logger.info("Committed image edits on page %d: %s", page_index, result.summary)
        return data

    async def apply_image_edits(self, doc: Any, page: Any, regions: list[ImageRegion]) -> CommitResult:
        result = CommitResult()
        for region in regions:
            if region.action == ImageAction.NONE:
                continue

            box = region.doc_box
            self.provider.draw_rectangle(page, box, IMAGE_COVER_COLOR)
            result.covered_regions += 1

            if region.action != ImageAction.REPLACE:
                continue

            image = await self._embed_replacement(doc, region)
            if image is None:
                result.skipped_images += 1
                result.errors.append(f"Replacement for image at ({region.doc_x:.1f}, {region.doc_y:.1f}) not embedded")
                continue
            try:
                self.provider.draw_image(page, image, box)
                result.drawn_images += 1
            except (RuntimeError, ValueError) as e:
                result.skipped_images += 1
                result.errors.append(str(e))
                logger.warning("Drawing replacement image failed: %s", e)
        return result

    async def _embed_replacement(self, doc: Any, region: ImageRegion) -> Optional[Any]:
        """Embed with the primary codec, then the alternate; None if both fail."""
        if not region.replacement_bytes:
            logger.warning("Replace action without image bytes; keeping cover only")
            return None
        for codec in replacement_codecs(region.replacement_mime):
            try:
                return await self.provider.embed_raster_image(doc, region.replacement_bytes, codec)
            except ImageEmbedError as e:
                logger.debug("Embedding replacement as %s failed: %s", codec, e)
        logger.warning("Replacement image could not be embedded; keeping cover only")
        return None
