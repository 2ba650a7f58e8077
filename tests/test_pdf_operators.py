"""Tests for retouch.processors.pdf_operators"""

import pytest

from retouch.models.types import ContentOp, ContentOpCode, ImagePlacement
from retouch.processors.pdf_operators import (
    ContentStreamParser,
    filter_small_placements,
    track_image_placements,
)


pytestmark = pytest.mark.unit


class TestContentStreamParser:
    """Tokenizing content streams into image operations"""

    @pytest.fixture
    def parser(self):
        return ContentStreamParser()

    def test_empty_stream(self, parser):
        assert parser.parse_operations(b"") == []

    def test_image_operations(self, parser):
        stream = b"q 200 0 0 100 50 600 cm /Im1 Do Q"
        ops = parser.parse_operations(stream)
        assert [op.opcode for op in ops] == [
            ContentOpCode.SAVE,
            ContentOpCode.TRANSFORM,
            ContentOpCode.PAINT_IMAGE,
            ContentOpCode.RESTORE,
        ]
        assert ops[1].args == (200.0, 0.0, 0.0, 100.0, 50.0, 600.0)
        assert ops[2].args == ("Im1",)

    def test_text_operators_are_skipped(self, parser):
        stream = b"BT /F1 12 Tf 72 700 Td (Hello [world]) Tj [(A) -120 (B)] TJ ET"
        assert parser.parse_operations(stream) == []

    def test_form_xobject_filtered_by_image_names(self, parser):
        stream = b"q /Fm0 Do Q q /Im0 Do Q"
        ops = parser.parse_operations(stream, image_names={"Im0"})
        paints = [op for op in ops if op.opcode == ContentOpCode.PAINT_IMAGE]
        assert paints == [ContentOp(ContentOpCode.PAINT_IMAGE, ("Im0",))]

    def test_inline_image_data_is_skipped(self, parser):
        stream = b"q 10 0 0 10 0 0 cm BI /W 2 /H 2 /BPC 8 /CS /G ID \x00\xffQ cm\x10 EI Q"
        ops = parser.parse_operations(stream)
        assert [op.opcode for op in ops] == [
            ContentOpCode.SAVE,
            ContentOpCode.TRANSFORM,
            ContentOpCode.PAINT_INLINE_IMAGE,
            ContentOpCode.RESTORE,
        ]

    def test_comments_and_dictionaries(self, parser):
        stream = b"% leading comment\n/P <</MCID 0>> BDC q 1 0 0 1 5 5 cm Q EMC"
        ops = parser.parse_operations(stream)
        assert [op.opcode for op in ops] == [
            ContentOpCode.SAVE,
            ContentOpCode.TRANSFORM,
            ContentOpCode.RESTORE,
        ]

    def test_short_cm_ignored(self, parser):
        assert parser.parse_operations(b"1 0 0 cm") == []

    def test_negative_and_decimal_numbers(self, parser):
        ops = parser.parse_operations(b"-1.5 0 0 .5 -10 +20 cm")
        assert ops[0].args == (-1.5, 0.0, 0.0, 0.5, -10.0, 20.0)


class TestTrackImagePlacements:
    """Transform tracking for painted images"""

    def test_composed_scale_and_translate(self):
        ops = [
            ContentOp(ContentOpCode.SAVE),
            ContentOp(ContentOpCode.TRANSFORM, (100, 0, 0, 1, 0, 0)),
            ContentOp(ContentOpCode.TRANSFORM, (1, 0, 0, 1, 0, 700)),
            ContentOp(ContentOpCode.PAINT_IMAGE, ("Im1",)),
            ContentOp(ContentOpCode.RESTORE),
        ]
        placements = track_image_placements(ops)
        assert len(placements) == 1
        assert placements[0].doc_w == pytest.approx(100.0)
        assert placements[0].doc_y == pytest.approx(700.0)
        assert placements[0].doc_x == pytest.approx(0.0)
        assert placements[0].name == "Im1"

    def test_restore_resets_matrix(self):
        ops = [
            ContentOp(ContentOpCode.SAVE),
            ContentOp(ContentOpCode.TRANSFORM, (50, 0, 0, 50, 10, 10)),
            ContentOp(ContentOpCode.RESTORE),
            ContentOp(ContentOpCode.PAINT_INLINE_IMAGE),
        ]
        placements = track_image_placements(ops)
        assert placements == [ImagePlacement(0.0, 0.0, 1.0, 1.0, None)]

    def test_rotated_image_uses_off_diagonal(self):
        ops = [
            ContentOp(ContentOpCode.TRANSFORM, (0, 80, -120, 0, 300, 200)),
            ContentOp(ContentOpCode.PAINT_IMAGE, ("Im2",)),
        ]
        placement = track_image_placements(ops)[0]
        assert placement.doc_w == pytest.approx(120.0)
        assert placement.doc_h == pytest.approx(80.0)

    def test_parsed_stream_end_to_end(self):
        stream = b"q 1 0 0 1 72 500 cm 200 0 0 150 0 0 cm /Im0 Do Q"
        placements = track_image_placements(ContentStreamParser().parse_operations(stream))
        assert placements[0] == ImagePlacement(72.0, 500.0, 200.0, 150.0, "Im0")


def test_filter_small_placements():
    placements = [
        ImagePlacement(0, 0, 100, 1),
        ImagePlacement(0, 0, 100, 50),
        ImagePlacement(0, 0, 9.9, 50),
    ]
    assert filter_small_placements(placements, 10.0) == [ImagePlacement(0, 0, 100, 50)]
