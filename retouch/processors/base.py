# retouch/processors/base.py
"""
Abstract provider interfaces for the editing engine.

The engine never talks to a PDF library directly. A rendering provider
supplies positioned text, content-stream operations and the page raster;
a document-mutation provider draws into a mutable copy of the document.
Calls that may block on I/O or parsing are coroutines.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from retouch.models.types import Box, ContentOp, OcrLine, TextItem, Viewport
from .raster import RasterSurface


class RenderingProvider(ABC):
    """
    Read access to one rendered page.
    """

    @property
    @abstractmethod
    def page_index(self) -> int:
        """0-based index of the page"""
        pass

    @property
    @abstractmethod
    def page_width(self) -> float:
        """Page width in document units"""
        pass

    @property
    @abstractmethod
    def page_height(self) -> float:
        """Page height in document units"""
        pass

    @abstractmethod
    async def get_positioned_text(self) -> list[TextItem]:
        """
        Get positioned text records in content-stream order.

        Raises:
            ExtractionError: If the page text cannot be read
        """
        pass

    @abstractmethod
    async def get_content_stream_ops(self) -> list[ContentOp]:
        """
        Get save/restore/transform/paint operations of the page.

        Raises:
            ExtractionError: If the content stream cannot be read
        """
        pass

    @abstractmethod
    def get_raster_surface(self) -> Optional[RasterSurface]:
        """Rendered page surface, or None when no raster is available"""
        pass

    @abstractmethod
    def get_viewport_transform(self) -> Viewport:
        """Mapping from document space to the rendered page"""
        pass


class OcrProvider(ABC):
    """
    Previously computed OCR results.
    """

    @abstractmethod
    def has_results(self, page_index: int) -> bool:
        pass

    @abstractmethod
    def get_results(self, page_index: int) -> list[OcrLine]:
        pass


class DocumentMutationProvider(ABC):
    """
    Write access to a mutable copy of a document.

    Rectangles, text origins and image boxes are in document space
    (bottom-left origin); colors are "#rrggbb" strings.
    """

    @abstractmethod
    def load_mutable(self, data: bytes) -> Any:
        """Open document bytes for mutation and return a document handle."""
        pass

    @abstractmethod
    def get_page(self, doc: Any, page_index: int) -> Any:
        pass

    @abstractmethod
    def draw_rectangle(self, page: Any, rect: Box, color: str) -> None:
        """Fill a rectangle with a solid color."""
        pass

    @abstractmethod
    def draw_text(
        self,
        page: Any,
        text: str,
        position: tuple[float, float],
        font: Any,
        color: str,
        size: float,
    ) -> None:
        """Draw text with its baseline origin at position."""
        pass

    @abstractmethod
    def draw_image(self, page: Any, image: Any, rect: Box) -> None:
        """Draw an embedded image scaled into rect."""
        pass

    @abstractmethod
    async def embed_standard_font(self, doc: Any, variant: str) -> Any:
        """
        Embed one of the standard output variants.

        Raises:
            FontEmbedError: If the variant cannot be embedded
        """
        pass

    @abstractmethod
    async def embed_font_bytes(self, doc: Any, data: bytes) -> Any:
        """
        Embed a font program.

        Raises:
            FontEmbedError: If the bytes are not a usable font
        """
        pass

    @abstractmethod
    async def embed_raster_image(self, doc: Any, data: bytes, codec: str) -> Any:
        """
        Embed image bytes with a codec ("png" or "jpeg").

        Raises:
            ImageEmbedError: If the bytes cannot be decoded with the codec
        """
        pass

    @abstractmethod
    def measure_text_width(self, font: Any, text: str, size: float) -> float:
        pass

    @abstractmethod
    async def save(self, doc: Any) -> bytes:
        pass

    def close(self, doc: Any) -> None:
        """Release a document handle (no-op unless the backend holds resources)."""
        pass
