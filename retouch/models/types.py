# retouch/models/types.py
"""
Core data types for the Retouch editing engine.

Coordinate spaces:
- document space: PDF user space, origin bottom-left, y grows upward
- screen space: rendered page, origin top-left, y grows downward
- pixel space: screen space multiplied by the raster's device scale
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


# 2D affine matrix in PDF order (a, b, c, d, e, f)
Matrix = tuple[float, float, float, float, float, float]


@dataclass(frozen=True)
class Box:
    """
    Axis-aligned rectangle.

    In screen space y0 is the top edge; in document space y0 is the bottom edge.
    """
    x0: float
    y0: float
    x1: float
    y1: float

    @classmethod
    def from_size(cls, x: float, y: float, width: float, height: float) -> "Box":
        return cls(x, y, x + width, y + height)

    @property
    def width(self) -> float:
        return self.x1 - self.x0

    @property
    def height(self) -> float:
        return self.y1 - self.y0

    @property
    def center_x(self) -> float:
        return (self.x0 + self.x1) / 2

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def pad(self, amount: float) -> "Box":
        """Grow the box by amount on every side."""
        return Box(self.x0 - amount, self.y0 - amount, self.x1 + amount, self.y1 + amount)

    def union(self, other: "Box") -> "Box":
        return Box(
            min(self.x0, other.x0),
            min(self.y0, other.y0),
            max(self.x1, other.x1),
            max(self.y1, other.y1),
        )

    def contains(self, x: float, y: float) -> bool:
        return self.x0 <= x <= self.x1 and self.y0 <= y <= self.y1


@dataclass(frozen=True)
class Viewport:
    """
    Mapping between document space and screen space for one rendered page.

    transform maps document points to screen points
    (pdf.js convention: [scale, 0, 0, -scale, 0, page_height * scale]).
    device_scale is the number of raster pixels per screen pixel.
    """
    scale: float
    page_width: float
    page_height: float
    transform: Matrix
    device_scale: float = 1.0

    @classmethod
    def for_page(
        cls,
        page_width: float,
        page_height: float,
        scale: float = 1.0,
        device_scale: float = 1.0,
    ) -> "Viewport":
        transform = (scale, 0.0, 0.0, -scale, 0.0, page_height * scale)
        return cls(scale, page_width, page_height, transform, device_scale)

    @property
    def width(self) -> float:
        """Rendered page width in screen pixels"""
        return self.page_width * self.scale

    @property
    def height(self) -> float:
        """Rendered page height in screen pixels"""
        return self.page_height * self.scale


# =============================================================================
# Text records
# =============================================================================

@dataclass(frozen=True)
class StyleHint:
    """Font metadata signals from the document (descriptor or span flags)."""
    weight: Optional[str] = None     # "bold", "normal" or a numeric weight string
    slant: Optional[str] = None      # "italic", "oblique" or "normal"
    family: Optional[str] = None


@dataclass(frozen=True)
class TextItem:
    """
    Positioned text record as returned by a rendering provider.

    transform is the glyph matrix in document space; its (e, f) is the
    baseline origin and |d| the font size. width is the advance in
    document units.
    """
    text: str
    font_name: str
    transform: Matrix
    width: float
    style_hint: Optional[StyleHint] = None


@dataclass(frozen=True)
class Run:
    """A contiguous glyph sequence sharing one font at one position."""
    text: str
    font_id: str
    style_hint: Optional[StyleHint]
    doc_x: float                     # Baseline origin x (document space)
    doc_y: float                     # Baseline origin y (document space)
    doc_font_size: float
    screen_left: float
    screen_top: float
    screen_width: float
    screen_height: float
    doc_width: float = 0.0           # Advance in document units

    @property
    def screen_right(self) -> float:
        return self.screen_left + self.screen_width

    @property
    def screen_font_size(self) -> float:
        return self.screen_height

    @property
    def screen_box(self) -> Box:
        return Box.from_size(self.screen_left, self.screen_top, self.screen_width, self.screen_height)


@dataclass
class Line:
    """A visual line: runs sharing a baseline band, left-to-right."""
    text: str
    runs: list[Run]
    screen_bbox: Box
    doc_bbox: Box                    # y0 is the lowest baseline
    dominant_font_id: str
    dominant_font_size: float        # Document units
    screen_font_size: float
    style_hint: Optional[StyleHint] = None

    @property
    def doc_x(self) -> float:
        return self.doc_bbox.x0

    @property
    def doc_y(self) -> float:
        return self.doc_bbox.y0

    @property
    def doc_line_width(self) -> float:
        return self.doc_bbox.width

    @property
    def doc_line_height(self) -> float:
        return self.doc_bbox.height


@dataclass
class Paragraph:
    """Consecutive lines merged by proximity and style similarity."""
    lines: list[Line]

    @property
    def bbox(self) -> Box:
        box = self.lines[0].screen_bbox
        for line in self.lines[1:]:
            box = box.union(line.screen_bbox)
        return box

    @property
    def text(self) -> str:
        return "\n".join(line.text for line in self.lines)


@dataclass(frozen=True)
class OcrLine:
    """OCR result line; bbox is in document units with a top-left origin."""
    text: str
    bbox: Box


# =============================================================================
# Editing state
# =============================================================================

@dataclass(frozen=True)
class RichRun:
    """A styled fragment of an edited line."""
    text: str
    bold: bool = False
    italic: bool = False


@dataclass
class LineEdit:
    """
    Editable state of one line of the active (or a deactivated) block.
    """
    line: Line
    runs: tuple[RichRun, ...]
    original_runs: tuple[RichRun, ...]
    base_bold: bool                  # From font metadata
    base_italic: bool
    initial_bold: bool               # State at activation
    initial_italic: bool
    bold: bool                       # Whole-line toggle state
    italic: bool
    matched_text_color: str = "#000000"
    matched_background_color: str = "#ffffff"
    font_size_override: Optional[float] = None
    color_override: Optional[str] = None
    font_family_override: Optional[str] = None
    display_stack: str = ""
    dirty: bool = False

    @property
    def text(self) -> str:
        return "".join(run.text for run in self.runs)

    @property
    def original_text(self) -> str:
        return self.line.text

    @property
    def effective_color(self) -> str:
        return self.color_override or self.matched_text_color

    @property
    def effective_font_size(self) -> float:
        if self.font_size_override:
            return self.font_size_override
        return self.line.dominant_font_size

    @property
    def effective_font_name(self) -> str:
        return self.font_family_override or self.line.dominant_font_id


@dataclass
class BlockState:
    """Persisted edits of a deactivated block."""
    block_index: int
    lines: list[LineEdit]
    dirty: bool = False

    @property
    def dirty_lines(self) -> list[LineEdit]:
        return [line for line in self.lines if line.dirty]


# =============================================================================
# Images
# =============================================================================

class ContentOpCode:
    """Content stream operations relevant to image geometry"""
    SAVE = "save"
    RESTORE = "restore"
    TRANSFORM = "transform"
    PAINT_IMAGE = "paint_image"
    PAINT_INLINE_IMAGE = "paint_inline_image"


@dataclass(frozen=True)
class ContentOp:
    opcode: str
    args: tuple = ()


@dataclass(frozen=True)
class ImagePlacement:
    """Image painted through a CTM mapping the unit square onto the page."""
    doc_x: float
    doc_y: float
    doc_w: float
    doc_h: float
    name: Optional[str] = None


class ImageAction(Enum):
    """Pending action for an image region"""
    NONE = "none"
    DELETE = "delete"
    REPLACE = "replace"


@dataclass
class ImageRegion:
    doc_x: float
    doc_y: float
    doc_w: float
    doc_h: float
    screen_box: Box
    action: ImageAction = ImageAction.NONE
    replacement_bytes: Optional[bytes] = None
    replacement_mime: Optional[str] = None
    name: Optional[str] = None

    @property
    def doc_box(self) -> Box:
        return Box.from_size(self.doc_x, self.doc_y, self.doc_w, self.doc_h)


# =============================================================================
# Commit results
# =============================================================================

@dataclass
class CommitResult:
    """Outcome of applying edits to a document page."""
    applied_lines: int = 0
    skipped_lines: int = 0
    covered_regions: int = 0
    drawn_images: int = 0
    skipped_images: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def summary(self) -> str:
        parts = []
        if self.applied_lines or self.skipped_lines:
            parts.append(f"{self.applied_lines} lines redrawn")
            if self.skipped_lines:
                parts.append(f"{self.skipped_lines} lines skipped")
        if self.covered_regions:
            parts.append(f"{self.covered_regions} image regions covered")
            parts.append(f"{self.drawn_images} images drawn")
            if self.skipped_images:
                parts.append(f"{self.skipped_images} images skipped")
        return ", ".join(parts) if parts else "no changes"
