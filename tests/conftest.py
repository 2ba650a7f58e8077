from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Optional

import numpy as np
import pytest


# Ensure the project root is importable when running `pytest` via its entrypoint
# (e.g., `pip install -e .[test] && pytest`), where `sys.path[0]` may not be the repo root.
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from retouch.models.types import Box, ContentOp, OcrLine, Run, StyleHint, TextItem, Viewport  # noqa: E402
from retouch.processors.base import DocumentMutationProvider, OcrProvider, RenderingProvider  # noqa: E402
from retouch.processors.raster import ArrayRasterSurface, RasterSurface  # noqa: E402
from retouch.services.exceptions import FontEmbedError, ImageEmbedError  # noqa: E402


# =============================================================================
# Record factories
# =============================================================================

def build_run(
    text: str,
    left: float,
    top: float,
    width: Optional[float] = None,
    height: float = 10.0,
    font_id: str = "Helvetica",
    style_hint: Optional[StyleHint] = None,
    scale: float = 1.0,
    page_height: float = 800.0,
) -> Run:
    """Run at a screen position with consistent document geometry."""
    if width is None:
        width = len(text) * height * 0.5
    doc_font_size = height / scale
    return Run(
        text=text,
        font_id=font_id,
        style_hint=style_hint,
        doc_x=left / scale,
        doc_y=page_height - (top + height) / scale,
        doc_font_size=doc_font_size,
        screen_left=left,
        screen_top=top,
        screen_width=width,
        screen_height=height,
        doc_width=width / scale,
    )


@pytest.fixture
def make_run():
    return build_run


# =============================================================================
# Fake providers
# =============================================================================

class FakePageProvider(RenderingProvider):
    """Rendering provider serving canned records."""

    def __init__(
        self,
        items: Optional[list[TextItem]] = None,
        ops: Optional[list[ContentOp]] = None,
        raster: Optional[RasterSurface] = None,
        viewport: Optional[Viewport] = None,
        page_index: int = 0,
        text_error: Optional[Exception] = None,
    ):
        self.items = items or []
        self.ops = ops or []
        self.raster = raster
        self.viewport = viewport or Viewport.for_page(600.0, 800.0, 1.0)
        self._page_index = page_index
        self.text_error = text_error

    @property
    def page_index(self) -> int:
        return self._page_index

    @property
    def page_width(self) -> float:
        return self.viewport.page_width

    @property
    def page_height(self) -> float:
        return self.viewport.page_height

    async def get_positioned_text(self) -> list[TextItem]:
        if self.text_error is not None:
            raise self.text_error
        return list(self.items)

    async def get_content_stream_ops(self) -> list[ContentOp]:
        return list(self.ops)

    def get_raster_surface(self) -> Optional[RasterSurface]:
        return self.raster

    def get_viewport_transform(self) -> Viewport:
        return self.viewport


class FakeOcrProvider(OcrProvider):
    def __init__(self, results: dict[int, list[OcrLine]]):
        self.results = results

    def has_results(self, page_index: int) -> bool:
        return bool(self.results.get(page_index))

    def get_results(self, page_index: int) -> list[OcrLine]:
        return self.results.get(page_index, [])


class RecordingMutationProvider(DocumentMutationProvider):
    """
    Mutation provider recording every call.

    Text widths are len(text) * size * 0.5; fonts are their variant names.
    """

    def __init__(
        self,
        failing_fonts: Optional[set[str]] = None,
        failing_codecs: Optional[set[str]] = None,
    ):
        self.calls: list[tuple] = []
        self.failing_fonts = failing_fonts or set()
        self.failing_codecs = failing_codecs or set()
        self.closed = 0

    def load_mutable(self, data: bytes) -> Any:
        self.calls.append(("load", data))
        return {"data": data}

    def get_page(self, doc: Any, page_index: int) -> Any:
        return ("page", page_index)

    def draw_rectangle(self, page: Any, rect: Box, color: str) -> None:
        self.calls.append(("rect", rect, color))

    def draw_text(self, page, text, position, font, color, size) -> None:
        self.calls.append(("text", text, position, font, color, size))

    def draw_image(self, page: Any, image: Any, rect: Box) -> None:
        self.calls.append(("image", image, rect))

    async def embed_standard_font(self, doc: Any, variant: str) -> Any:
        if variant in self.failing_fonts:
            raise FontEmbedError(f"cannot embed {variant}")
        self.calls.append(("font", variant))
        return variant

    async def embed_font_bytes(self, doc: Any, data: bytes) -> Any:
        if "custom" in self.failing_fonts:
            raise FontEmbedError("bad font program")
        self.calls.append(("custom_font", data))
        return "custom-font"

    async def embed_raster_image(self, doc: Any, data: bytes, codec: str) -> Any:
        if codec in self.failing_codecs:
            raise ImageEmbedError(f"not {codec}")
        self.calls.append(("embed_image", codec))
        return f"{codec}-image"

    def measure_text_width(self, font: Any, text: str, size: float) -> float:
        return len(text) * size * 0.5

    async def save(self, doc: Any) -> bytes:
        self.calls.append(("save",))
        return b"%PDF-edited"

    def close(self, doc: Any) -> None:
        self.closed += 1

    def of_kind(self, kind: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == kind]


@pytest.fixture
def mutation_provider():
    return RecordingMutationProvider()


# =============================================================================
# Rasters
# =============================================================================

@pytest.fixture
def white_raster():
    """600x800 white page raster at device scale 1."""
    return ArrayRasterSurface(np.full((800, 600, 3), 255, dtype=np.uint8))


def paint(surface: ArrayRasterSurface, box: Box, rgb: tuple[int, int, int]) -> None:
    """Paint a screen box on an array surface (device scale 1)."""
    x0, y0, x1, y1 = int(box.x0), int(box.y0), int(box.x1), int(box.y1)
    surface.pixels[y0:y1, x0:x1, :3] = rgb
