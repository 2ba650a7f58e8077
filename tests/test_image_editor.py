"""Tests for retouch.services.image_editor"""

import pytest

from retouch.models.types import Box, ImageAction, ImagePlacement, Viewport
from retouch.services.image_editor import ImageRegionEditor


pytestmark = pytest.mark.unit


@pytest.fixture
def editor():
    placements = [
        ImagePlacement(100.0, 500.0, 200.0, 100.0, "Im0"),
        ImagePlacement(150.0, 520.0, 50.0, 50.0, "Im1"),
    ]
    return ImageRegionEditor(placements, Viewport.for_page(600.0, 800.0, 2.0))


class TestRegions:
    def test_screen_boxes(self, editor):
        assert len(editor) == 2
        assert editor.regions[0].screen_box == Box(200.0, 400.0, 600.0, 600.0)
        assert editor.regions[0].doc_box == Box(100.0, 500.0, 300.0, 600.0)

    def test_hit_test_prefers_topmost(self, editor):
        # (175, 545) in document space lies inside both images
        assert editor.hit_test((350.0, 510.0)) == 1
        assert editor.hit_test((210.0, 590.0)) == 0
        assert editor.hit_test((10.0, 10.0)) is None


class TestActions:
    """none / delete / replace transitions"""

    def test_toggle_delete(self, editor):
        assert editor.toggle_delete(0) == ImageAction.DELETE
        assert editor.has_changes()
        assert editor.toggle_delete(0) == ImageAction.NONE
        assert not editor.has_changes()

    def test_replace(self, editor):
        editor.replace(1, b"\x89PNG", "image/png")
        region = editor.regions[1]
        assert region.action == ImageAction.REPLACE
        assert region.replacement_bytes == b"\x89PNG"
        assert editor.pending_regions() == [region]

    def test_delete_clears_replacement(self, editor):
        editor.replace(0, b"img", "image/jpeg")
        editor.toggle_delete(0)
        assert editor.regions[0].action == ImageAction.DELETE
        assert editor.regions[0].replacement_bytes is None

    def test_replace_validation(self, editor):
        with pytest.raises(ValueError):
            editor.replace(0, b"", "image/png")
        with pytest.raises(ValueError):
            editor.replace(0, b"data", "application/pdf")

    def test_reset(self, editor):
        editor.replace(0, b"img", "image/png")
        editor.reset(0)
        assert not editor.has_changes()

    def test_bad_index(self, editor):
        with pytest.raises(IndexError):
            editor.toggle_delete(7)
