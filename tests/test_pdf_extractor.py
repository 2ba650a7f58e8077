"""Tests for retouch.processors.pdf_extractor"""

import pytest

from retouch.models.types import Box, ContentOp, ContentOpCode, OcrLine, StyleHint, TextItem, Viewport
from retouch.processors.pdf_extractor import ContentExtractor
from retouch.services.exceptions import ExtractionError
from conftest import FakePageProvider


@pytest.fixture
def viewport():
    return Viewport.for_page(600.0, 800.0, 1.5)


@pytest.mark.unit
class TestRunFromItem:
    """Text records mapped into screen space"""

    def test_screen_geometry(self, viewport):
        item = TextItem("Hello", "Arial-BoldMT", (12.0, 0.0, 0.0, 12.0, 72.0, 700.0), 30.0)
        run = ContentExtractor.run_from_item(item, viewport)
        assert run.screen_left == pytest.approx(108.0)
        assert run.screen_top == pytest.approx(150.0 - 18.0)
        assert run.screen_height == pytest.approx(18.0)
        assert run.screen_width == pytest.approx(45.0)
        assert (run.doc_x, run.doc_y, run.doc_font_size, run.doc_width) == (72.0, 700.0, 12.0, 30.0)
        assert run.font_id == "Arial-BoldMT"

    def test_family_used_for_synthetic_name(self, viewport):
        item = TextItem("x", "g_d0_f1", (10.0, 0.0, 0.0, 10.0, 0.0, 0.0), 5.0, StyleHint(family="Georgia"))
        assert ContentExtractor.run_from_item(item, viewport).font_id == "Georgia"

    def test_whitespace_dropped(self, viewport):
        item = TextItem("  ", "Helvetica", (10.0, 0.0, 0.0, 10.0, 0.0, 0.0), 5.0)
        assert ContentExtractor.run_from_item(item, viewport) is None


@pytest.mark.unit
class TestExtractRuns:
    @pytest.mark.asyncio
    async def test_extracts(self, viewport):
        items = [
            TextItem("A", "Helvetica", (10.0, 0.0, 0.0, 10.0, 10.0, 700.0), 5.0),
            TextItem(" ", "Helvetica", (10.0, 0.0, 0.0, 10.0, 15.0, 700.0), 3.0),
        ]
        runs = await ContentExtractor().extract_runs(FakePageProvider(items=items), viewport)
        assert [run.text for run in runs] == ["A"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
            ExtractionError("encrypted"),
            RuntimeError("damaged"),
            OSError("io"),
            KeyError("Font"),
            TypeError("bad font dict"),
        ])
    async def test_failure_is_empty(self, viewport, error):
        page = FakePageProvider(text_error=error)
        assert await ContentExtractor().extract_runs(page, viewport) == []

    @pytest.mark.asyncio
    async def test_malformed_record_is_empty(self, viewport):
        items = [TextItem("A", "Helvetica", None, 5.0)]
        assert await ContentExtractor().extract_runs(FakePageProvider(items=items), viewport) == []


@pytest.mark.unit
class TestOcrLines:
    def test_line_from_box(self):
        viewport = Viewport.for_page(600.0, 800.0, 1.0)
        lines = ContentExtractor().lines_from_ocr([OcrLine("Scanned", Box(72, 100, 272, 120))], viewport)
        line = lines[0]
        assert line.text == "Scanned"
        assert line.screen_bbox.x0 == 72
        assert line.screen_bbox.y0 == 100
        assert line.screen_font_size == pytest.approx(17.0)
        assert line.doc_y == pytest.approx(683.0)
        assert line.doc_x == 72
        assert line.dominant_font_id == "Helvetica"

    def test_box_clamped_to_page(self):
        viewport = Viewport.for_page(600.0, 800.0, 1.0)
        line = ContentExtractor().lines_from_ocr([OcrLine("Edge", Box(-10, 100, 272, 120))], viewport)[0]
        assert line.doc_x == 0.0
        assert line.doc_y == pytest.approx(683.0)

    def test_configured_font(self):
        viewport = Viewport.for_page(600.0, 800.0, 1.0)
        extractor = ContentExtractor(ocr_font_name="TimesRoman")
        line = extractor.lines_from_ocr([OcrLine("Scanned", Box(72, 100, 272, 120))], viewport)[0]
        assert line.dominant_font_id == "TimesRoman"

    def test_minimum_screen_font(self):
        viewport = Viewport.for_page(600.0, 800.0, 1.0)
        line = ContentExtractor().lines_from_ocr([OcrLine("tiny", Box(0, 0, 20, 4))], viewport)[0]
        assert line.screen_font_size == 8.0

    def test_sorted_and_filtered(self):
        viewport = Viewport.for_page(600.0, 800.0, 1.0)
        results = [
            OcrLine("second", Box(0, 200, 50, 212)),
            OcrLine("", Box(0, 0, 50, 12)),
            OcrLine("first", Box(0, 100, 50, 112)),
            OcrLine("degenerate", Box(0, 50, 50, 50)),
        ]
        lines = ContentExtractor().lines_from_ocr(results, viewport)
        assert [line.text for line in lines] == ["first", "second"]


@pytest.mark.unit
class TestImagePlacements:
    @pytest.mark.asyncio
    async def test_small_images_filtered(self):
        ops = [
            ContentOp(ContentOpCode.SAVE),
            ContentOp(ContentOpCode.TRANSFORM, (200, 0, 0, 100, 50, 500)),
            ContentOp(ContentOpCode.PAINT_IMAGE, ("Im0",)),
            ContentOp(ContentOpCode.RESTORE),
            ContentOp(ContentOpCode.TRANSFORM, (5, 0, 0, 5, 0, 0)),
            ContentOp(ContentOpCode.PAINT_IMAGE, ("Dot",)),
        ]
        placements = await ContentExtractor().extract_image_placements(FakePageProvider(ops=ops))
        assert [p.name for p in placements] == ["Im0"]

    @pytest.mark.asyncio
    async def test_configurable_minimum(self):
        ops = [
            ContentOp(ContentOpCode.TRANSFORM, (5, 0, 0, 5, 0, 0)),
            ContentOp(ContentOpCode.PAINT_IMAGE, ("Dot",)),
        ]
        placements = await ContentExtractor(min_image_size=1.0).extract_image_placements(FakePageProvider(ops=ops))
        assert len(placements) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [RuntimeError("damaged"), TypeError("bad operand")])
    async def test_failure_is_empty(self, error):
        class BrokenOpsPage(FakePageProvider):
            async def get_content_stream_ops(self):
                raise error

        assert await ContentExtractor().extract_image_placements(BrokenOpsPage()) == []
