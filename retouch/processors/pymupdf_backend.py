# retouch/processors/pymupdf_backend.py
"""
PyMuPDF / pypdfium2 implementations of the provider interfaces.

- PyMuPDFPageProvider: positioned text and content stream via PyMuPDF,
  font descriptors via pdfminer.six, page raster via pypdfium2
- PyMuPDFDocumentProvider: cover rectangles, text, fonts and images drawn
  into a PyMuPDF document

Document space is PDF user space with a bottom-left origin; PyMuPDF page
coordinates have a top-left origin, so y is flipped against the page height.
Page rotation and non-zero MediaBox origins are not compensated.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from retouch.models.types import Box, ContentOp, TextItem, Viewport
from retouch.services.exceptions import ExtractionError, FontEmbedError, ImageEmbedError
from .base import DocumentMutationProvider, RenderingProvider
from .color_sampler import hex_to_unit_rgb
from .font_manager import strip_subset_prefix
from .pdf_font_manager import load_style_hints, style_hint_from_span_flags
from .pdf_operators import ContentStreamParser
from .raster import ArrayRasterSurface, RasterSurface

# Module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Lazy Imports
# =============================================================================
_pymupdf = None
_pypdfium2 = None


def _get_pymupdf():
    """Lazy import PyMuPDF"""
    global _pymupdf
    if _pymupdf is None:
        import pymupdf
        _pymupdf = pymupdf
    return _pymupdf


def _get_pypdfium2():
    """Lazy import pypdfium2 (for page rasterization)."""
    global _pypdfium2
    if _pypdfium2 is None:
        import pypdfium2 as pdfium
        _pypdfium2 = pdfium
    return _pypdfium2


# Standard output variants -> PyMuPDF Base-14 font codes
STANDARD_FONT_CODES = {
    'sans': 'helv',
    'sans-bold': 'hebo',
    'sans-italic': 'heit',
    'sans-bold-italic': 'hebi',
    'serif': 'tiro',
    'serif-bold': 'tibo',
    'serif-italic': 'tiit',
    'serif-bold-italic': 'tibi',
    'mono': 'cour',
    'mono-bold': 'cobo',
    'mono-italic': 'coit',
    'mono-bold-italic': 'cobi',
}

# Magic bytes per image codec
IMAGE_SIGNATURES = {
    'png': (b'\x89PNG\r\n\x1a\n',),
    'jpeg': (b'\xff\xd8\xff',),
}


# =============================================================================
# Rendering provider
# =============================================================================

class PyMuPDFPageProvider(RenderingProvider):
    """
    Rendering provider for one page of a PDF held in memory.

    Args:
        pdf_data: Document bytes
        page_index: 0-based page index
        zoom: Screen pixels per document unit
        device_scale: Raster pixels per screen pixel

    Raises:
        IndexError: If page_index is out of range
    """

    def __init__(
        self,
        pdf_data: bytes,
        page_index: int,
        zoom: float = 1.5,
        device_scale: float = 1.0,
    ):
        pymupdf = _get_pymupdf()
        self._pdf_data = pdf_data
        self._page_index = page_index
        self.zoom = zoom
        self.device_scale = device_scale
        self._doc = pymupdf.open(stream=pdf_data, filetype="pdf")
        if not 0 <= page_index < self._doc.page_count:
            page_count = self._doc.page_count
            self._doc.close()
            raise IndexError(f"Page {page_index} out of range (document has {page_count} pages)")
        self._page = self._doc[page_index]
        self._raster: Optional[RasterSurface] = None

    @property
    def page_index(self) -> int:
        return self._page_index

    @property
    def page_width(self) -> float:
        return float(self._page.rect.width)

    @property
    def page_height(self) -> float:
        return float(self._page.rect.height)

    def get_viewport_transform(self) -> Viewport:
        return Viewport.for_page(self.page_width, self.page_height, self.zoom, self.device_scale)

    async def get_positioned_text(self) -> list[TextItem]:
        try:
            data = self._page.get_text("dict")
        except Exception as e:
            # Includes PyMuPDF-specific exceptions (mupdf.FzError*) that do not
            # inherit from RuntimeError
            raise ExtractionError(f"Cannot read text of page {self._page_index}: {e}") from e

        hints = load_style_hints(self._pdf_data, self._page_index)
        page_height = self.page_height
        items: list[TextItem] = []

        for block in data.get("blocks", []):
            if block.get("type") != 0:
                continue
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    text = span.get("text", "")
                    if not text:
                        continue
                    size = float(span.get("size", 0.0))
                    origin_x, origin_y = span["origin"]
                    x0, _, x1, _ = span["bbox"]
                    font_name = span.get("font", "")
                    hint = hints.get(strip_subset_prefix(font_name)) or style_hint_from_span_flags(
                        span.get("flags", 0)
                    )
                    items.append(TextItem(
                        text=text,
                        font_name=font_name,
                        transform=(size, 0.0, 0.0, size, float(origin_x), page_height - float(origin_y)),
                        width=float(x1 - x0),
                        style_hint=hint,
                    ))

        return items

    async def get_content_stream_ops(self) -> list[ContentOp]:
        try:
            contents = self._page.read_contents()
            image_names = {entry[7] for entry in self._page.get_images(full=True)}
        except Exception as e:
            # Includes PyMuPDF-specific exceptions (mupdf.FzError*) that do not
            # inherit from RuntimeError
            raise ExtractionError(f"Cannot read content stream of page {self._page_index}: {e}") from e

        return ContentStreamParser().parse_operations(contents, image_names)

    def get_raster_surface(self) -> Optional[RasterSurface]:
        """Render the page with pypdfium2 (cached per provider)."""
        if self._raster is not None:
            return self._raster

        pdfium = _get_pypdfium2()
        try:
            pdf = pdfium.PdfDocument(self._pdf_data)
            try:
                bitmap = pdf[self._page_index].render(
                    scale=self.zoom * self.device_scale,
                    rev_byteorder=True,
                )
                pixels = bitmap.to_numpy().copy()
            finally:
                pdf.close()
        except (pdfium.PdfiumError, OSError, ValueError) as e:
            logger.warning("Failed to render page %d: %s", self._page_index, e)
            return None

        self._raster = ArrayRasterSurface(pixels, device_scale=self.device_scale)
        return self._raster

    def close(self) -> None:
        self._doc.close()


# =============================================================================
# Document mutation provider
# =============================================================================

@dataclass
class FontHandle:
    """Font usable for drawing and measuring."""
    name: str                        # Resource name in the page
    font: Any                        # pymupdf.Font
    buffer: Optional[bytes] = None   # Font program for non-standard fonts


@dataclass(frozen=True)
class ImageHandle:
    data: bytes
    codec: str
    width: int
    height: int


class PyMuPDFDocumentProvider(DocumentMutationProvider):
    """
    Document mutation through PyMuPDF.
    """

    def __init__(self):
        self._custom_font_count = 0
        # (page id, resource name) pairs whose font program is already inserted
        self._inserted_fonts: set[tuple[int, str]] = set()

    def load_mutable(self, data: bytes) -> Any:
        pymupdf = _get_pymupdf()
        return pymupdf.open(stream=data, filetype="pdf")

    def get_page(self, doc: Any, page_index: int) -> Any:
        return doc[page_index]

    def _to_page_rect(self, page: Any, rect: Box) -> Any:
        pymupdf = _get_pymupdf()
        height = page.rect.height
        return pymupdf.Rect(rect.x0, height - rect.y1, rect.x1, height - rect.y0)

    def draw_rectangle(self, page: Any, rect: Box, color: str) -> None:
        page.draw_rect(
            self._to_page_rect(page, rect),
            color=None,
            fill=hex_to_unit_rgb(color),
            width=0,
            overlay=True,
        )

    def draw_text(
        self,
        page: Any,
        text: str,
        position: tuple[float, float],
        font: FontHandle,
        color: str,
        size: float,
    ) -> None:
        pymupdf = _get_pymupdf()
        if font.buffer is not None:
            key = (id(page), font.name)
            if key not in self._inserted_fonts:
                page.insert_font(fontname=font.name, fontbuffer=font.buffer)
                self._inserted_fonts.add(key)

        x, y = position
        page.insert_text(
            pymupdf.Point(x, page.rect.height - y),
            text,
            fontname=font.name,
            fontsize=size,
            color=hex_to_unit_rgb(color),
        )

    def draw_image(self, page: Any, image: ImageHandle, rect: Box) -> None:
        page.insert_image(
            self._to_page_rect(page, rect),
            stream=image.data,
            keep_proportion=False,
        )

    async def embed_standard_font(self, doc: Any, variant: str) -> FontHandle:
        code = STANDARD_FONT_CODES.get(variant)
        if code is None:
            raise FontEmbedError(f"No standard font for variant {variant!r}")
        pymupdf = _get_pymupdf()
        try:
            font = pymupdf.Font(code)
        except Exception as e:
            # Includes PyMuPDF-specific exceptions (mupdf.FzError*) that do not
            # inherit from RuntimeError
            raise FontEmbedError(f"Cannot load standard font {code}: {e}") from e
        return FontHandle(name=code, font=font)

    async def embed_font_bytes(self, doc: Any, data: bytes) -> FontHandle:
        pymupdf = _get_pymupdf()
        try:
            font = pymupdf.Font(fontbuffer=data)
        except Exception as e:
            # Includes PyMuPDF-specific exceptions (mupdf.FzError*) that do not
            # inherit from RuntimeError
            raise FontEmbedError(f"Invalid font program: {e}") from e
        self._custom_font_count += 1
        return FontHandle(name=f"RetouchF{self._custom_font_count}", font=font, buffer=data)

    async def embed_raster_image(self, doc: Any, data: bytes, codec: str) -> ImageHandle:
        signatures = IMAGE_SIGNATURES.get(codec)
        if signatures is None:
            raise ImageEmbedError(f"Unsupported codec: {codec}")
        if not data.startswith(signatures):
            raise ImageEmbedError(f"Image bytes are not {codec}")

        pymupdf = _get_pymupdf()
        try:
            pixmap = pymupdf.Pixmap(data)
        except Exception as e:
            # Includes PyMuPDF-specific exceptions (mupdf.FzError*) that do not
            # inherit from RuntimeError
            raise ImageEmbedError(f"Cannot decode {codec} image: {e}") from e
        return ImageHandle(data=data, codec=codec, width=pixmap.width, height=pixmap.height)

    def measure_text_width(self, font: FontHandle, text: str, size: float) -> float:
        return float(font.font.text_length(text, fontsize=size))

    async def save(self, doc: Any) -> bytes:
        return doc.tobytes(deflate=True)

    def close(self, doc: Any) -> None:
        doc.close()
        self._inserted_fonts.clear()
