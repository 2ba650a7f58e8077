# retouch/processors/pdf_layout.py
"""
Layout reconstruction: runs -> lines -> paragraphs.

Rendering providers return glyph runs in content-stream order, which is not
reading order. This module rebuilds reading structure with geometric
heuristics:

1. Deduplicate runs at the same rounded position (a previous cover-and-redraw
   edit leaves the old text hidden underneath the new one)
2. Detect a two-column split from a Y-band occupancy histogram
3. Group runs into lines per column (baseline band and horizontal gap)
4. Group lines into paragraphs per column (proximity and style similarity)

All thresholds are screen pixels unless noted.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

from retouch.models.types import Box, Line, Paragraph, Run
from .geometry import round_half_up

# Module logger
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LayoutThresholds:
    """Heuristic thresholds for layout reconstruction."""
    column_buckets: int = 100
    column_search_start: float = 0.30        # Fraction of page width
    column_search_end: float = 0.70
    column_gap_density: float = 0.15         # Fraction of the densest bucket
    column_min_gap_ratio: float = 0.03       # Fraction of page width
    column_min_side_content: int = 5         # Band hits on each side
    column_band_height: float = 5.0
    line_y_tolerance: float = 3.0
    cell_gap_font_ratio: float = 0.5
    cell_gap_min: float = 5.0
    paragraph_gap_ratio: float = 1.5
    paragraph_indent_ratio: float = 1.5
    paragraph_width_ratio: float = 0.5
    paragraph_font_size_tolerance: float = 2.0


DEFAULT_THRESHOLDS = LayoutThresholds()

# Extra screen height added to a line's tallest run
LINE_HEIGHT_PADDING = 2.0


# =============================================================================
# Deduplication and column detection
# =============================================================================

def dedupe_runs(runs: list[Run]) -> list[Run]:
    """
    Drop whitespace-only runs and keep one run per rounded position.

    A later run at the same (round(left), round(top)) replaces the earlier
    one in its original slot.
    """
    deduped: list[Run] = []
    seen: dict[tuple[int, int], int] = {}
    for run in runs:
        if not run.text.strip():
            continue
        key = (round_half_up(run.screen_left), round_half_up(run.screen_top))
        if key in seen:
            deduped[seen[key]] = run
        else:
            seen[key] = len(deduped)
            deduped.append(run)
    return deduped


def _band_histogram(runs: list[Run], page_width: float, thresholds: LayoutThresholds) -> list[int]:
    """Count distinct Y-bands touching each horizontal bucket."""
    num_buckets = thresholds.column_buckets
    bucket_width = page_width / num_buckets
    band_height = thresholds.column_band_height
    bucket_bands: list[set[float]] = [set() for _ in range(num_buckets)]

    for run in runs:
        if not run.text.strip():
            continue
        band = round_half_up(run.screen_top / band_height) * band_height
        start = max(0, math.floor(run.screen_left / bucket_width))
        end = min(num_buckets - 1, math.floor(run.screen_right / bucket_width))
        for bucket in range(start, end + 1):
            bucket_bands[bucket].add(band)

    return [len(bands) for bands in bucket_bands]


def detect_column_split(
    runs: list[Run],
    page_width: float,
    thresholds: LayoutThresholds = DEFAULT_THRESHOLDS,
) -> Optional[float]:
    """
    Find a vertical gutter splitting the page into two columns.

    The widest run of low-occupancy buckets inside the central search range
    wins, provided it is wide enough and both sides carry content.

    Returns:
        Split X in screen pixels, or None for a single-column page
    """
    if page_width <= 0 or not runs:
        return None

    num_buckets = thresholds.column_buckets
    histogram = _band_histogram(runs, page_width, thresholds)

    max_count = max(histogram)
    if max_count == 0:
        return None

    min_b = math.floor(thresholds.column_search_start * num_buckets)
    max_b = min(num_buckets - 1, math.floor(thresholds.column_search_end * num_buckets))
    # Gutters may be crossed by a few spanning titles, never by a full column
    empty_threshold = max(2, math.floor(max_count * thresholds.column_gap_density))

    best_start = best_end = -1
    best_width = 0
    gap_start = -1
    for bucket in range(min_b, max_b + 1):
        if histogram[bucket] <= empty_threshold:
            if gap_start == -1:
                gap_start = bucket
        elif gap_start != -1:
            width = bucket - gap_start
            if width > best_width:
                best_width, best_start, best_end = width, gap_start, bucket
            gap_start = -1
    if gap_start != -1:
        width = max_b - gap_start
        if width > best_width:
            best_width, best_start, best_end = width, gap_start, max_b

    min_gap = max(1, math.ceil(thresholds.column_min_gap_ratio * num_buckets))
    if best_width < min_gap:
        return None

    left_content = sum(histogram[:best_start])
    right_content = sum(histogram[best_end:])
    if left_content < thresholds.column_min_side_content or right_content < thresholds.column_min_side_content:
        return None

    split_x = ((best_start + best_end) / 2) * (page_width / num_buckets)
    logger.debug("Column split at x=%.1f (gap buckets %d-%d)", split_x, best_start, best_end)
    return split_x


def split_columns(runs: list[Run], split_x: Optional[float]) -> list[list[Run]]:
    """Partition runs by center X; empty columns are dropped."""
    if split_x is None:
        return [list(runs)] if runs else []
    left: list[Run] = []
    right: list[Run] = []
    for run in runs:
        center = run.screen_left + run.screen_width / 2
        (left if center < split_x else right).append(run)
    return [column for column in (left, right) if column]


# =============================================================================
# Lines
# =============================================================================

def _dominant_run(runs: list[Run]) -> Run:
    """Run whose font covers the most characters (first wins ties)."""
    coverage: dict[str, int] = {}
    for run in runs:
        coverage[run.font_id] = coverage.get(run.font_id, 0) + len(run.text)
    best_font = max(coverage, key=lambda font: coverage[font])
    for run in runs:
        if run.font_id == best_font:
            return run
    return runs[0]


def build_line(runs: list[Run], top: Optional[float] = None) -> Line:
    """
    Build a Line from runs already in left-to-right order.

    Args:
        runs: Runs of the line
        top: Line top in screen space (defaults to the first run's top)
    """
    first = runs[0]
    line_top = first.screen_top if top is None else top
    min_left = min(run.screen_left for run in runs)
    max_right = max(run.screen_right for run in runs)
    height = max(run.screen_height for run in runs) + LINE_HEIGHT_PADDING
    screen_bbox = Box.from_size(min_left, line_top, max_right - min_left, height)

    doc_min_x = min(run.doc_x for run in runs)
    doc_max_x = max(run.doc_x + run.doc_width for run in runs)
    doc_min_y = min(run.doc_y for run in runs)
    # Screen/document ratio from any run with a measurable size
    scale = next(
        (run.screen_height / run.doc_font_size for run in runs if run.doc_font_size > 0),
        1.0,
    )
    doc_bbox = Box(doc_min_x, doc_min_y, doc_max_x, doc_min_y + height / scale)

    dominant = _dominant_run(runs)
    return Line(
        text="".join(run.text for run in runs),
        runs=list(runs),
        screen_bbox=screen_bbox,
        doc_bbox=doc_bbox,
        dominant_font_id=dominant.font_id,
        dominant_font_size=dominant.doc_font_size,
        screen_font_size=dominant.screen_font_size,
        style_hint=dominant.style_hint,
    )


def group_into_lines(runs: list[Run], thresholds: LayoutThresholds = DEFAULT_THRESHOLDS) -> list[Line]:
    """
    Group one column's runs into visual lines.

    Runs are sorted top-then-left. A run starts a new line when its top
    differs from the line's by more than the tolerance, or when the gap to
    the previous run exceeds max(fontSize * ratio, minimum) (table cells).
    """
    ordered = sorted(
        (run for run in runs if run.text.strip()),
        key=lambda run: (run.screen_top, run.screen_left),
    )

    groups: list[tuple[float, list[Run]]] = []
    for run in ordered:
        if groups and abs(run.screen_top - groups[-1][0]) <= thresholds.line_y_tolerance:
            last = groups[-1][1][-1]
            gap = run.screen_left - last.screen_right
            gap_threshold = max(last.screen_font_size * thresholds.cell_gap_font_ratio, thresholds.cell_gap_min)
            if gap <= gap_threshold:
                groups[-1][1].append(run)
                continue
        groups.append((run.screen_top, [run]))

    lines = [build_line(group, top) for top, group in groups]
    lines.sort(key=lambda line: (line.screen_bbox.y0, line.screen_bbox.x0))
    return lines


# =============================================================================
# Paragraphs
# =============================================================================

def continues_paragraph(
    prev: Line,
    curr: Line,
    thresholds: LayoutThresholds = DEFAULT_THRESHOLDS,
) -> bool:
    """Return True when curr belongs to the same paragraph as prev."""
    prev_box = prev.screen_bbox
    curr_box = curr.screen_bbox

    vertical_gap = curr_box.y0 - prev_box.y1
    if vertical_gap >= prev_box.height * thresholds.paragraph_gap_ratio:
        return False
    if abs(curr_box.x0 - prev_box.x0) >= prev_box.height * thresholds.paragraph_indent_ratio:
        return False
    wider = max(curr_box.width, prev_box.width)
    if abs(curr_box.width - prev_box.width) >= wider * thresholds.paragraph_width_ratio:
        return False
    if curr.dominant_font_id != prev.dominant_font_id:
        return False
    if abs(curr.screen_font_size - prev.screen_font_size) >= thresholds.paragraph_font_size_tolerance:
        return False
    return True


def group_into_paragraphs(
    lines: list[Line],
    thresholds: LayoutThresholds = DEFAULT_THRESHOLDS,
) -> list[Paragraph]:
    """Merge consecutive lines (reading order) into paragraphs."""
    paragraphs: list[Paragraph] = []
    for line in lines:
        if paragraphs and continues_paragraph(paragraphs[-1].lines[-1], line, thresholds):
            paragraphs[-1].lines.append(line)
        else:
            paragraphs.append(Paragraph(lines=[line]))
    return paragraphs


def _reading_order_key(paragraph: Paragraph) -> tuple[float, float]:
    first = paragraph.lines[0].screen_bbox
    return (first.y0, first.x0)


def reconstruct_layout(
    runs: list[Run],
    page_width: float,
    thresholds: LayoutThresholds = DEFAULT_THRESHOLDS,
) -> list[Paragraph]:
    """
    Rebuild paragraphs from unordered runs.

    Columns are grouped independently and merged top-then-left by each
    paragraph's first line.

    Args:
        runs: Runs in screen space
        page_width: Rendered page width in screen pixels

    Returns:
        Paragraphs in reading order (empty when there are no runs)
    """
    deduped = dedupe_runs(runs)
    if not deduped:
        return []

    split_x = detect_column_split(deduped, page_width, thresholds)
    paragraphs: list[Paragraph] = []
    for column in split_columns(deduped, split_x):
        lines = group_into_lines(column, thresholds)
        paragraphs.extend(group_into_paragraphs(lines, thresholds))

    paragraphs.sort(key=_reading_order_key)
    logger.debug(
        "Reconstructed %d paragraphs from %d runs (split=%s)",
        len(paragraphs), len(deduped), split_x,
    )
    return paragraphs


def reconstruct_lines(
    runs: list[Run],
    page_width: float,
    thresholds: LayoutThresholds = DEFAULT_THRESHOLDS,
) -> list[Line]:
    """Lines of every column, sorted top-then-left."""
    lines: list[Line] = []
    for paragraph in reconstruct_layout(runs, page_width, thresholds):
        lines.extend(paragraph.lines)
    lines.sort(key=lambda line: (line.screen_bbox.y0, line.screen_bbox.x0))
    return lines
