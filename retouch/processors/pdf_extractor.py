# retouch/processors/pdf_extractor.py
"""
Content extraction from a rendering provider.

Converts provider text records into screen-space runs and content-stream
operations into image placements. Provider failures degrade to empty
results: a page whose text cannot be read is treated as having no
editable text.
"""

import logging
from typing import Optional

from retouch.models.types import (
    ImagePlacement,
    Line,
    OcrLine,
    Run,
    TextItem,
    Viewport,
)
from retouch.services.exceptions import ExtractionError
from .base import RenderingProvider
from .font_manager import DEFAULT_FONT_NAME, resolve_font_name
from .geometry import compose_transform, convert_to_pdf_coordinates
from .pdf_layout import build_line
from .pdf_operators import filter_small_placements, track_image_placements

# Module logger
logger = logging.getLogger(__name__)

# Images smaller than this (document units) are decorations, not content
MIN_IMAGE_SIZE = 10.0

# OCR line height to font size ratio
OCR_FONT_RATIO = 0.85
# Minimum overlay font size for OCR lines (screen px)
OCR_MIN_SCREEN_FONT = 8.0
# Baseline offset above an OCR box's bottom edge, as a fraction of its height
OCR_DESCENT_RATIO = 0.15


class ContentExtractor:
    """
    Pulls runs and image placements from a rendering provider.
    """

    def __init__(self, min_image_size: float = MIN_IMAGE_SIZE, ocr_font_name: str = DEFAULT_FONT_NAME):
        self.min_image_size = min_image_size
        # OCR results carry no font; their lines use this nominal font
        self.ocr_font_name = ocr_font_name

    # =========================================================================
    # Text
    # =========================================================================

    async def extract_runs(self, page: RenderingProvider, viewport: Viewport) -> list[Run]:
        """
        Get the page's runs in screen space.

        Returns:
            Runs in provider order; empty if extraction fails
        """
        try:
            items = await page.get_positioned_text()
            runs = self.runs_from_items(items, viewport)
        except (ExtractionError, RuntimeError, ValueError, OSError) as e:
            # Encrypted or damaged documents surface as library errors
            logger.warning("Text extraction failed for page %d: %s", page.page_index, e)
            return []
        except Exception as e:
            # Malformed provider records (e.g. font dicts missing keys)
            logger.warning("Text extraction failed for page %d: %s: %s", page.page_index, type(e).__name__, e)
            return []

        logger.debug("Extracted %d runs from page %d", len(runs), page.page_index)
        return runs

    def runs_from_items(self, items: list[TextItem], viewport: Viewport) -> list[Run]:
        runs = []
        for item in items:
            run = self.run_from_item(item, viewport)
            if run is not None:
                runs.append(run)
        return runs

    @staticmethod
    def run_from_item(item: TextItem, viewport: Viewport) -> Optional[Run]:
        """
        Map one text record into screen space.

        Returns:
            Run, or None for whitespace-only text
        """
        if not item.text or not item.text.strip():
            return None

        tx = compose_transform(viewport.transform, item.transform)
        font_size = abs(tx[3])
        family = item.style_hint.family if item.style_hint else None

        return Run(
            text=item.text,
            font_id=resolve_font_name(item.font_name, family),
            style_hint=item.style_hint,
            doc_x=item.transform[4],
            doc_y=item.transform[5],
            doc_font_size=abs(item.transform[3]),
            screen_left=tx[4],
            screen_top=tx[5] - font_size,
            screen_width=item.width * viewport.scale,
            screen_height=font_size,
            doc_width=item.width,
        )

    def lines_from_ocr(self, results: list[OcrLine], viewport: Viewport) -> list[Line]:
        """
        Build single-run lines from OCR boxes.

        OCR boxes are in document units with a top-left origin.
        """
        lines = []
        for result in results:
            if not result.text or not result.text.strip():
                continue
            box = result.bbox
            height = box.height
            if height <= 0 or box.width <= 0:
                continue

            screen_font = max(OCR_MIN_SCREEN_FONT, height * viewport.scale * OCR_FONT_RATIO)
            doc_font = height * OCR_FONT_RATIO
            doc_box = convert_to_pdf_coordinates(box, viewport.page_height, viewport.page_width)
            baseline = doc_box.y0 + height * OCR_DESCENT_RATIO
            run = Run(
                text=result.text,
                font_id=self.ocr_font_name,
                style_hint=None,
                doc_x=doc_box.x0,
                doc_y=baseline,
                doc_font_size=doc_font,
                screen_left=box.x0 * viewport.scale,
                screen_top=box.y0 * viewport.scale,
                screen_width=box.width * viewport.scale,
                screen_height=screen_font,
                doc_width=box.width,
            )
            lines.append(build_line([run]))

        lines.sort(key=lambda line: (line.screen_bbox.y0, line.screen_bbox.x0))
        return lines

    # =========================================================================
    # Images
    # =========================================================================

    async def extract_image_placements(self, page: RenderingProvider) -> list[ImagePlacement]:
        """
        Locate painted images by tracking the content stream transform.

        Returns:
            Placements at least min_image_size wide and high; empty on failure
        """
        try:
            ops = await page.get_content_stream_ops()
            placements = track_image_placements(ops)
        except (ExtractionError, RuntimeError, ValueError, OSError) as e:
            logger.warning("Content stream unavailable for page %d: %s", page.page_index, e)
            return []
        except Exception as e:
            # Malformed provider operations (e.g. operands of the wrong type)
            logger.warning("Content stream unavailable for page %d: %s: %s", page.page_index, type(e).__name__, e)
            return []

        return filter_small_placements(placements, self.min_image_size)
