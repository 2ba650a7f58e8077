# retouch/services/block_session.py
"""
Block editing session: the per-paragraph zone / active / deactivated
state machine.

Lifecycle of a block (one per paragraph):
- Zone: idle, hit-testable outline over the rendered page
- Active: colors sampled, raster snapshot taken, original text erased from
  the raster, editable line records built (at most one block at a time)
- Deactivated: edits persisted into the dirty store (only if something
  changed), raster restored, zone shown again

Undo/redo is per active block and bounded; it is cleared on deactivation.
"""

import logging
from collections import deque
from dataclasses import dataclass, replace
from typing import Callable, Optional

from retouch.config.settings import EditorSettings
from retouch.models.types import BlockState, Box, LineEdit, Paragraph, RichRun
from retouch.processors import rich_text
from retouch.processors.color_sampler import (
    hex_to_rgb,
    sample_background,
    sample_foreground,
    sample_pixel_color,
)
from retouch.processors.font_manager import (
    CUSTOM,
    get_font_family_option,
    resolve_display_stack,
    resolve_style,
)
from retouch.processors.raster import RasterSnapshot, RasterSurface

# Module logger
logger = logging.getLogger(__name__)

STATUS_IDLE = "Click a text block to edit"

# Listener events
EVENT_ACTIVATED = "activated"
EVENT_DEACTIVATED = "deactivated"

# Shortcut results returned to the host
ACTION_COMMIT = "commit"
ACTION_CANCEL = "cancel"


@dataclass
class Zone:
    """Hit-test outline of one block."""
    index: int
    box: Box
    visible: bool = True
    hit_testable: bool = True
    dirty: bool = False


@dataclass(frozen=True)
class LineSnapshot:
    """Undo/redo record of one line's editable state."""
    line_index: int
    runs: tuple[RichRun, ...]
    bold: bool
    italic: bool
    font_size_override: Optional[float]
    color_override: Optional[str]
    font_family_override: Optional[str]
    display_stack: str


def is_line_dirty(line: LineEdit) -> bool:
    """A line is dirty when its content, overrides or line style changed."""
    return (
        line.text != line.original_text
        or line.runs != line.original_runs
        or line.font_size_override is not None
        or line.color_override is not None
        or line.font_family_override is not None
        or line.bold != line.initial_bold
        or line.italic != line.initial_italic
    )


class BlockEditingSession:
    """
    Editing state for the blocks of one page.

    Args:
        paragraphs: Reconstructed paragraphs (one block each)
        raster: Rendered page surface, or None
        settings: Editor settings (padding, sampling thresholds, undo capacity)
    """

    def __init__(
        self,
        paragraphs: list[Paragraph],
        raster: Optional[RasterSurface] = None,
        settings: Optional[EditorSettings] = None,
    ):
        self.paragraphs = paragraphs
        self.raster = raster
        self.settings = settings or EditorSettings()
        self.zones = [
            Zone(index, paragraph.bbox.pad(self.settings.zone_padding))
            for index, paragraph in enumerate(paragraphs)
        ]
        self.dirty_store: dict[int, BlockState] = {}
        self.custom_font_name: Optional[str] = None
        # Set while a commit is in flight; activation is refused
        self.locked = False

        self.active_index: Optional[int] = None
        self.active_lines: list[LineEdit] = []
        self.shield: Optional[Box] = None
        self.focused_line: Optional[int] = None
        self.selection: Optional[tuple[int, int]] = None

        self._snapshot: Optional[RasterSnapshot] = None
        self._undo: deque[LineSnapshot] = deque(maxlen=self.settings.max_undo)
        self._redo: deque[LineSnapshot] = deque(maxlen=self.settings.max_undo)
        self._typing_recorded = False
        self._listeners: list[Callable[[str, int], None]] = []

    # =========================================================================
    # Listeners
    # =========================================================================

    def add_listener(self, callback: Callable[[str, int], None]) -> None:
        """Register callback(event, block_index) for activation events."""
        self._listeners.append(callback)

    def _emit(self, event: str, index: int) -> None:
        for callback in self._listeners:
            callback(event, index)

    @property
    def is_active(self) -> bool:
        return self.active_index is not None

    # =========================================================================
    # Hit testing
    # =========================================================================

    def hit_test(self, point: tuple[float, float]) -> Optional[int]:
        """Index of the zone under a screen point, if any."""
        x, y = point
        for zone in self.zones:
            if zone.visible and zone.hit_testable and zone.box.contains(x, y):
                return zone.index
        return None

    def click(self, point: tuple[float, float]) -> Optional[int]:
        """
        Activate the block under a screen point.

        While a block is active other zones are inert: a click inside its
        shield is absorbed and a click outside only deactivates it.
        """
        if self.shield is not None:
            if self.shield.contains(*point):
                return self.active_index
            self.deactivate()
            return None
        index = self.hit_test(point)
        if index is not None:
            self.activate(index)
        return index

    # =========================================================================
    # Activation
    # =========================================================================

    def activate(self, index: int) -> None:
        """
        Make a block editable.

        The currently active block (if any) is deactivated first.

        Raises:
            IndexError: If index does not name a block
            RasterBusyError: If the raster is checked out elsewhere
        """
        if index == self.active_index:
            return
        if self.locked:
            logger.debug("Activation of block %d refused during commit", index)
            return
        if not 0 <= index < len(self.paragraphs):
            raise IndexError(f"No block {index} (page has {len(self.paragraphs)})")

        if self.active_index is not None:
            self.deactivate()

        paragraph = self.paragraphs[index]
        saved = self.dirty_store.get(index)
        settings = self.settings

        # Colors must be sampled before the raster is erased
        colors: list[tuple[str, str]] = []
        for line_index, line in enumerate(paragraph.lines):
            saved_line = saved.lines[line_index] if saved and line_index < len(saved.lines) else None
            if saved_line is not None:
                colors.append((saved_line.matched_background_color, saved_line.matched_text_color))
                continue
            background = sample_background(self.raster, line.screen_bbox, settings.background_min_luminance)
            foreground = sample_foreground(
                self.raster,
                line.screen_bbox,
                background,
                settings.foreground_luminance_margin,
                settings.min_alpha,
            )
            colors.append((background, foreground))

        if self.raster is not None:
            self.raster.acquire(self)
            self._snapshot = self.raster.snapshot(paragraph.bbox.pad(settings.snapshot_padding))
            for line, (background, _) in zip(paragraph.lines, colors):
                self.raster.fill_region(line.screen_bbox.pad(settings.erase_padding), background)

        self.zones[index].visible = False
        for zone in self.zones:
            zone.hit_testable = False
        self.shield = paragraph.bbox.pad(settings.shield_padding)

        lines = []
        for line_index, line in enumerate(paragraph.lines):
            saved_line = saved.lines[line_index] if saved and line_index < len(saved.lines) else None
            if saved_line is not None:
                lines.append(replace(saved_line))
            else:
                background, foreground = colors[line_index]
                lines.append(self._new_line_edit(line, background, foreground))

        self.active_index = index
        self.active_lines = lines
        self.focused_line = None
        self.selection = None
        logger.debug("Activated block %d (%d lines, restored=%s)", index, len(lines), saved is not None)
        self._emit(EVENT_ACTIVATED, index)

    @staticmethod
    def _new_line_edit(line, background: str, foreground: str) -> LineEdit:
        style = resolve_style(line.dominant_font_id, line.style_hint)
        runs = rich_text.runs_from_line_runs(line.runs)
        return LineEdit(
            line=line,
            runs=runs,
            original_runs=runs,
            base_bold=style.bold,
            base_italic=style.italic,
            initial_bold=style.bold,
            initial_italic=style.italic,
            bold=style.bold,
            italic=style.italic,
            matched_text_color=foreground,
            matched_background_color=background,
            display_stack=resolve_display_stack(line.dominant_font_id),
        )

    def deactivate(self) -> None:
        """
        Persist the active block (if it changed) and restore its raster.
        """
        if self.active_index is None:
            return
        index = self.active_index

        for line in self.active_lines:
            line.dirty = is_line_dirty(line)
        dirty = any(line.dirty for line in self.active_lines)
        if dirty:
            self.dirty_store[index] = BlockState(index, self.active_lines, dirty=True)
        else:
            # Edits reverted back to the original drop any stale record
            self.dirty_store.pop(index, None)

        self._release_raster()

        zone = self.zones[index]
        zone.visible = True
        zone.dirty = dirty
        for other in self.zones:
            other.hit_testable = True

        self._reset_active()
        logger.debug("Deactivated block %d (dirty=%s)", index, dirty)
        self._emit(EVENT_DEACTIVATED, index)

    def discard(self) -> None:
        """
        Drop the live block's edits and every persisted record.

        The raster is restored to its pre-activation state.
        """
        index = self.active_index
        self._release_raster()
        self._reset_active()
        self.dirty_store.clear()
        for zone in self.zones:
            zone.visible = True
            zone.hit_testable = True
            zone.dirty = False
        if index is not None:
            self._emit(EVENT_DEACTIVATED, index)

    def _release_raster(self) -> None:
        if self.raster is not None and self._snapshot is not None:
            self.raster.restore(self._snapshot)
            self.raster.release(self)
        self._snapshot = None

    def _reset_active(self) -> None:
        self.active_index = None
        self.active_lines = []
        self.shield = None
        self.focused_line = None
        self.selection = None
        self._undo.clear()
        self._redo.clear()
        self._typing_recorded = False

    # =========================================================================
    # Dirty tracking
    # =========================================================================

    def dirty_line_count(self) -> int:
        """Dirty lines in the live block plus every persisted block."""
        count = sum(1 for line in self.active_lines if is_line_dirty(line))
        for index, block in self.dirty_store.items():
            if index != self.active_index:
                count += len(block.dirty_lines)
        return count

    def has_changes(self) -> bool:
        return self.dirty_line_count() > 0

    def status_text(self) -> str:
        count = self.dirty_line_count()
        if count:
            return f"{count} line{'s' if count != 1 else ''} modified"
        return STATUS_IDLE

    def pending_blocks(self) -> list[BlockState]:
        """Persisted dirty blocks in block order."""
        return [self.dirty_store[index] for index in sorted(self.dirty_store)]

    def clear_dirty_store(self) -> None:
        self.dirty_store.clear()
        for zone in self.zones:
            zone.dirty = False

    # =========================================================================
    # Editing commands
    # =========================================================================

    def _resolve_line(self, line_index: Optional[int]) -> Optional[int]:
        if self.active_index is None:
            logger.debug("Edit command ignored: no active block")
            return None
        index = self.focused_line if line_index is None else line_index
        if index is None or not 0 <= index < len(self.active_lines):
            return None
        return index

    def focus_line(self, line_index: int) -> None:
        if self._resolve_line(line_index) is None:
            return
        self.focused_line = line_index
        self.selection = None
        self._typing_recorded = False

    def select(self, start: int, end: int) -> None:
        """Set the character selection within the focused line."""
        self.selection = (min(start, end), max(start, end)) if start != end else None

    def _before_typing(self, line_index: int) -> None:
        # One undo entry per focus session for text input
        if line_index != self.focused_line:
            self.focused_line = line_index
            self._typing_recorded = False
        if not self._typing_recorded:
            self._push_undo(line_index)
            self._typing_recorded = True
        else:
            self._redo.clear()

    def insert_text(self, position: int, text: str, line_index: Optional[int] = None) -> bool:
        index = self._resolve_line(line_index)
        if index is None:
            return False
        self._before_typing(index)
        line = self.active_lines[index]
        line.runs = self._insert_styled(line, position, text)
        return True

    def delete_text(self, start: int, end: int, line_index: Optional[int] = None) -> bool:
        index = self._resolve_line(line_index)
        if index is None:
            return False
        self._before_typing(index)
        line = self.active_lines[index]
        line.runs = rich_text.delete_text(line.runs, start, end)
        return True

    def replace_text(self, text: str, line_index: Optional[int] = None) -> bool:
        """Replace a line's whole text, keeping the style of its first character."""
        index = self._resolve_line(line_index)
        if index is None:
            return False
        self._before_typing(index)
        line = self.active_lines[index]
        if line.text:
            line.runs = rich_text.replace_text(line.runs, 0, len(line.text), text)
        else:
            line.runs = self._insert_styled(line, 0, text)
        return True

    @staticmethod
    def _insert_styled(line: LineEdit, position: int, text: str) -> tuple[RichRun, ...]:
        # An emptied line has no character to inherit from; use the line style
        if not line.text:
            return rich_text.insert_text(line.runs, position, text, line.bold, line.italic)
        return rich_text.insert_text(line.runs, position, text)

    def _toggle(self, attr: str, line_index: Optional[int]) -> bool:
        index = self._resolve_line(line_index)
        if index is None:
            return False
        self._push_undo(index)
        line = self.active_lines[index]
        if self.selection is not None and index == self.focused_line:
            start, end = self.selection
            line.runs = rich_text.toggle_style(line.runs, attr, start, end)
        else:
            value = not getattr(line, attr)
            setattr(line, attr, value)
            line.runs = rich_text.set_style(line.runs, attr, value)
        return True

    def toggle_bold(self, line_index: Optional[int] = None) -> bool:
        """Toggle bold on the selection, or on the whole line without one."""
        return self._toggle('bold', line_index)

    def toggle_italic(self, line_index: Optional[int] = None) -> bool:
        return self._toggle('italic', line_index)

    def set_font_size(self, size: Optional[float], line_index: Optional[int] = None) -> bool:
        index = self._resolve_line(line_index)
        if index is None:
            return False
        if size is not None and size <= 0:
            raise ValueError(f"Invalid font size: {size}")
        self._push_undo(index)
        self.active_lines[index].font_size_override = size
        return True

    def set_color(self, color: Optional[str], line_index: Optional[int] = None) -> bool:
        index = self._resolve_line(line_index)
        if index is None:
            return False
        if color is not None:
            hex_to_rgb(color)
        self._push_undo(index)
        self.active_lines[index].color_override = color
        return True

    def set_font_family(self, family: Optional[str], line_index: Optional[int] = None) -> bool:
        """
        Override a line's font family.

        Args:
            family: "sans", "serif", "mono", "custom" (needs a loaded custom
                    font) or None to clear the override

        Raises:
            ValueError: If the family is unknown or no custom font is loaded
        """
        index = self._resolve_line(line_index)
        if index is None:
            return False

        line = self.active_lines[index]
        if family is None:
            font_name = None
            stack = resolve_display_stack(line.line.dominant_font_id)
        elif family == CUSTOM:
            if not self.custom_font_name:
                raise ValueError("No custom font loaded")
            font_name = CUSTOM
            stack = f'"{self.custom_font_name}", sans-serif'
        else:
            option = get_font_family_option(family)
            if option is None:
                raise ValueError(f"Unknown font family: {family}")
            font_name = option.font_name
            stack = option.display_stack

        self._push_undo(index)
        line.font_family_override = font_name
        line.display_stack = stack
        return True

    def pick_color(self, point: tuple[float, float], line_index: Optional[int] = None) -> Optional[str]:
        """
        Eyedropper: apply the page color under a screen point to a line.

        Uses the surface's own picker when it has one.
        """
        if self._resolve_line(line_index) is None:
            return None
        color = None
        if self.raster is not None:
            color = self.raster.pick_color_from_surface(point)
        if color is None:
            color = sample_pixel_color(self.raster, point)
        if color is None:
            return None
        self.set_color(color, line_index)
        return color

    # =========================================================================
    # Undo / redo
    # =========================================================================

    def _capture(self, line_index: int) -> LineSnapshot:
        line = self.active_lines[line_index]
        return LineSnapshot(
            line_index=line_index,
            runs=line.runs,
            bold=line.bold,
            italic=line.italic,
            font_size_override=line.font_size_override,
            color_override=line.color_override,
            font_family_override=line.font_family_override,
            display_stack=line.display_stack,
        )

    def _apply(self, snapshot: LineSnapshot) -> None:
        line = self.active_lines[snapshot.line_index]
        line.runs = snapshot.runs
        line.bold = snapshot.bold
        line.italic = snapshot.italic
        line.font_size_override = snapshot.font_size_override
        line.color_override = snapshot.color_override
        line.font_family_override = snapshot.font_family_override
        line.display_stack = snapshot.display_stack

    def _push_undo(self, line_index: int) -> None:
        self._undo.append(self._capture(line_index))
        self._redo.clear()

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def undo(self) -> bool:
        if not self._undo or self.active_index is None:
            return False
        snapshot = self._undo.pop()
        self._redo.append(self._capture(snapshot.line_index))
        self._apply(snapshot)
        self._typing_recorded = False
        return True

    def redo(self) -> bool:
        if not self._redo or self.active_index is None:
            return False
        snapshot = self._redo.pop()
        self._undo.append(self._capture(snapshot.line_index))
        self._apply(snapshot)
        self._typing_recorded = False
        return True

    # =========================================================================
    # Shortcuts
    # =========================================================================

    def handle_shortcut(self, key: str, ctrl: bool = False, shift: bool = False) -> Optional[str]:
        """
        Dispatch a keyboard shortcut.

        Returns:
            ACTION_COMMIT / ACTION_CANCEL for the host to act on, the name of
            the command performed, or None when the key is not a shortcut
        """
        lower = key.lower()
        if lower in ('escape', 'esc'):
            if self.active_index is not None:
                self.deactivate()
                return "deactivate"
            return ACTION_CANCEL
        if not ctrl:
            return None
        if lower == 'b':
            self.toggle_bold()
            return "bold"
        if lower == 'i':
            self.toggle_italic()
            return "italic"
        if lower == 'z':
            if shift:
                self.redo()
                return "redo"
            self.undo()
            return "undo"
        if lower == 'y':
            self.redo()
            return "redo"
        if lower == 'enter':
            return ACTION_COMMIT
        return None

    # =========================================================================
    # Overlay
    # =========================================================================

    def overlays(self) -> list[dict]:
        """Display attributes of the active block's editable lines."""
        result = []
        for index, line in enumerate(self.active_lines):
            box = line.line.screen_bbox
            font_size = line.line.screen_font_size
            if line.font_size_override and line.line.dominant_font_size > 0:
                # Overrides are in document units
                font_size = line.font_size_override * font_size / line.line.dominant_font_size
            result.append({
                'line_index': index,
                'box': Box(box.x0 - 2, box.y0, box.x1 + 6, box.y1 + 2),
                'runs': line.runs,
                'font_stack': line.display_stack,
                'font_size': font_size,
                'bold': line.bold,
                'italic': line.italic,
                'color': line.effective_color,
            })
        return result
