"""Tests for retouch.processors.pdf_layout"""

import pytest

from retouch.processors.pdf_layout import (
    DEFAULT_THRESHOLDS,
    LayoutThresholds,
    build_line,
    continues_paragraph,
    dedupe_runs,
    detect_column_split,
    group_into_lines,
    group_into_paragraphs,
    reconstruct_layout,
    reconstruct_lines,
    split_columns,
)


pytestmark = pytest.mark.unit


def two_column_runs(make_run, rows=6):
    """Left column filling x 0-280, right column 360-600, nothing between."""
    runs = []
    for i in range(rows):
        top = 100 + i * 12
        runs.append(make_run(f"left line {i}", 0, top, width=280))
        runs.append(make_run(f"right line {i}", 360, top, width=240))
    return runs


class TestDedupeRuns:
    def test_later_run_replaces_earlier(self, make_run):
        old = make_run("old", 10.2, 20.4)
        other = make_run("other", 100, 20)
        new = make_run("new", 9.8, 19.6)
        assert dedupe_runs([old, other, new]) == [new, other]

    def test_whitespace_runs_dropped(self, make_run):
        assert dedupe_runs([make_run("   ", 0, 0), make_run("x", 5, 0)])[0].text == "x"


class TestColumnSplit:
    """Gutter detection from the Y-band histogram"""

    def test_two_columns(self, make_run):
        split = detect_column_split(two_column_runs(make_run), 600)
        assert split is not None
        assert 300 <= split <= 340

    def test_uniform_page_has_no_split(self, make_run):
        runs = [make_run(f"row {i}", 0, 100 + i * 12, width=600) for i in range(6)]
        assert detect_column_split(runs, 600) is None

    def test_spanning_title_does_not_bridge_columns(self, make_run):
        runs = two_column_runs(make_run, rows=10)
        runs.append(make_run("A title across the page", 0, 40, width=600))
        split = detect_column_split(runs, 600)
        assert split is not None
        assert 300 <= split <= 340

    def test_sparse_side_rejected(self, make_run):
        runs = [make_run(f"left {i}", 0, 100 + i * 12, width=280) for i in range(6)]
        runs.append(make_run("lonely", 400, 100, width=40))
        assert detect_column_split(runs, 600) is None

    def test_empty_input(self):
        assert detect_column_split([], 600) is None

    def test_split_columns_by_center(self, make_run):
        left = make_run("a", 0, 0, width=100)
        right = make_run("b", 400, 0, width=100)
        assert split_columns([left, right], 300) == [[left], [right]]
        assert split_columns([left, right], None) == [[left, right]]


class TestGroupIntoLines:
    def test_same_band_joins(self, make_run):
        runs = [make_run("world", 60, 101), make_run("Hello ", 10, 100, width=48)]
        lines = group_into_lines(runs)
        assert len(lines) == 1
        assert lines[0].text == "Hello world"

    def test_vertical_offset_starts_new_line(self, make_run):
        lines = group_into_lines([make_run("a", 10, 100), make_run("b", 10, 104)])
        assert [line.text for line in lines] == ["a", "b"]

    def test_table_cell_gap_splits_line(self, make_run):
        runs = [make_run("Cell1", 10, 100, width=25), make_run("Cell2", 200, 100, width=25)]
        lines = group_into_lines(runs)
        assert [line.text for line in lines] == ["Cell1", "Cell2"]

    def test_line_geometry(self, make_run):
        line = build_line([make_run("ab", 10, 100, width=10), make_run("cd", 22, 100, width=10, height=12)])
        assert line.screen_bbox.x0 == 10
        assert line.screen_bbox.x1 == 32
        assert line.screen_bbox.height == pytest.approx(14.0)
        assert line.doc_x == pytest.approx(10.0)
        assert line.doc_y == pytest.approx(800.0 - 112.0)

    def test_dominant_font_by_characters(self, make_run):
        line = build_line([
            make_run("A", 0, 0, font_id="Times-Bold", height=14),
            make_run("long body text", 10, 0, font_id="Times-Roman"),
        ])
        assert line.dominant_font_id == "Times-Roman"
        assert line.dominant_font_size == pytest.approx(10.0)


class TestParagraphs:
    def test_consecutive_lines_merge(self, make_run):
        lines = group_into_lines([make_run(f"line {i}", 10, 100 + i * 12, width=200) for i in range(3)])
        paragraphs = group_into_paragraphs(lines)
        assert len(paragraphs) == 1
        assert paragraphs[0].text == "line 0\nline 1\nline 2"

    def test_large_gap_splits(self, make_run):
        lines = group_into_lines([
            make_run("first", 10, 100, width=200),
            make_run("second", 10, 160, width=200),
        ])
        assert len(group_into_paragraphs(lines)) == 2

    def test_font_change_splits(self, make_run):
        lines = group_into_lines([
            make_run("Heading", 10, 100, width=200, font_id="Helvetica-Bold"),
            make_run("Body", 10, 112, width=200),
        ])
        assert not continues_paragraph(lines[0], lines[1])

    def test_width_difference_splits(self, make_run):
        lines = group_into_lines([
            make_run("a wide line of text", 10, 100, width=300),
            make_run("short", 10, 112, width=100),
        ])
        assert len(group_into_paragraphs(lines)) == 2

    def test_grouping_is_deterministic(self, make_run):
        runs = two_column_runs(make_run)
        first = [p.text for p in reconstruct_layout(runs, 600)]
        second = [p.text for p in reconstruct_layout(list(runs), 600)]
        assert first == second


class TestReconstructLayout:
    """End-to-end reconstruction"""

    def test_empty_runs(self):
        assert reconstruct_layout([], 600) == []

    def test_two_column_reading_order(self, make_run):
        paragraphs = reconstruct_layout(two_column_runs(make_run), 600)
        assert len(paragraphs) == 2
        assert all(line.text.startswith("left") for line in paragraphs[0].lines)
        assert all(line.text.startswith("right") for line in paragraphs[1].lines)
        assert len(paragraphs[0].lines) == 6

    def test_reconstruct_lines_sorted(self, make_run):
        lines = reconstruct_lines(two_column_runs(make_run, rows=2), 600)
        assert [line.screen_bbox.y0 for line in lines] == sorted(line.screen_bbox.y0 for line in lines)

    def test_custom_thresholds(self, make_run):
        runs = [make_run("a", 10, 100), make_run("b", 10, 104)]
        loose = LayoutThresholds(line_y_tolerance=5.0)
        assert len(group_into_lines(runs, loose)) == 1
        assert len(group_into_lines(runs, DEFAULT_THRESHOLDS)) == 2
