# retouch/processors/rich_text.py
"""
Rich-text line model: an ordered sequence of {text, bold, italic} runs.

Edits are discrete commands (insert, delete, toggle style over a range).
Every command returns a new normalized tuple of runs: adjacent runs with
identical style are merged and empty runs are dropped.
"""

from typing import Optional

from retouch.models.types import Run, RichRun
from .font_manager import resolve_style

_STYLE_ATTRS = ('bold', 'italic')

# One styled character: (char, bold, italic)
_Char = tuple[str, bool, bool]


def _explode(runs: tuple[RichRun, ...]) -> list[_Char]:
    return [(ch, run.bold, run.italic) for run in runs for ch in run.text]


def _implode(chars: list[_Char]) -> tuple[RichRun, ...]:
    merged: list[RichRun] = []
    for ch, bold, italic in chars:
        if merged and merged[-1].bold == bold and merged[-1].italic == italic:
            last = merged[-1]
            merged[-1] = RichRun(last.text + ch, bold, italic)
        else:
            merged.append(RichRun(ch, bold, italic))
    return tuple(merged)


def normalize_runs(runs) -> tuple[RichRun, ...]:
    """Merge adjacent same-style runs and drop empty ones."""
    return _implode(_explode(tuple(runs)))


def plain_text(runs) -> str:
    return ''.join(run.text for run in runs)


def runs_from_text(text: str, bold: bool = False, italic: bool = False) -> tuple[RichRun, ...]:
    return (RichRun(text, bold, italic),) if text else ()


def runs_from_line_runs(line_runs: list[Run]) -> tuple[RichRun, ...]:
    """Initial rich runs of a line, styled from each run's font."""
    rich = []
    for run in line_runs:
        style = resolve_style(run.font_id, run.style_hint)
        rich.append(RichRun(run.text, style.bold, style.italic))
    return normalize_runs(rich)


def _clamp_range(length: int, start: int, end: int) -> tuple[int, int]:
    start = max(0, min(start, length))
    end = max(start, min(end, length))
    return start, end


def style_at(runs: tuple[RichRun, ...], position: int) -> Optional[tuple[bool, bool]]:
    """Style a character typed at position inherits (from its left neighbour)."""
    chars = _explode(runs)
    if not chars:
        return None
    index = position - 1 if position > 0 else 0
    index = min(index, len(chars) - 1)
    _, bold, italic = chars[index]
    return bold, italic


def insert_text(
    runs: tuple[RichRun, ...],
    position: int,
    text: str,
    bold: Optional[bool] = None,
    italic: Optional[bool] = None,
) -> tuple[RichRun, ...]:
    """
    Insert text at a character position.

    Unless given, the style is inherited from the character before the
    caret (or after it at position 0).
    """
    chars = _explode(runs)
    position, _ = _clamp_range(len(chars), position, position)
    inherited = style_at(runs, position) or (False, False)
    new_bold = inherited[0] if bold is None else bold
    new_italic = inherited[1] if italic is None else italic
    inserted = [(ch, new_bold, new_italic) for ch in text]
    return _implode(chars[:position] + inserted + chars[position:])


def delete_text(runs: tuple[RichRun, ...], start: int, end: int) -> tuple[RichRun, ...]:
    chars = _explode(runs)
    start, end = _clamp_range(len(chars), start, end)
    return _implode(chars[:start] + chars[end:])


def replace_text(
    runs: tuple[RichRun, ...],
    start: int,
    end: int,
    text: str,
) -> tuple[RichRun, ...]:
    """Replace a range with text styled like the replaced range's first character."""
    chars = _explode(runs)
    start, end = _clamp_range(len(chars), start, end)
    if start < end:
        _, bold, italic = chars[start]
        remaining = _implode(chars[:start] + chars[end:])
        return insert_text(remaining, start, text, bold, italic)
    return insert_text(runs, start, text)


def set_style(
    runs: tuple[RichRun, ...],
    attr: str,
    value: bool,
    start: int = 0,
    end: Optional[int] = None,
) -> tuple[RichRun, ...]:
    if attr not in _STYLE_ATTRS:
        raise ValueError(f"Unknown style attribute: {attr}")
    chars = _explode(runs)
    start, end = _clamp_range(len(chars), start, len(chars) if end is None else end)
    slot = 1 if attr == 'bold' else 2
    for i in range(start, end):
        ch = list(chars[i])
        ch[slot] = value
        chars[i] = (ch[0], ch[1], ch[2])
    return _implode(chars)


def range_has_style(runs: tuple[RichRun, ...], attr: str, start: int, end: int) -> bool:
    """True when every character in [start, end) carries the style."""
    chars = _explode(runs)
    start, end = _clamp_range(len(chars), start, end)
    if start == end:
        return False
    slot = 1 if attr == 'bold' else 2
    return all(chars[i][slot] for i in range(start, end))


def toggle_style(
    runs: tuple[RichRun, ...],
    attr: str,
    start: int = 0,
    end: Optional[int] = None,
) -> tuple[RichRun, ...]:
    """
    Toggle a style over a range.

    The style is removed when the whole range already has it, otherwise it
    is applied to the whole range.
    """
    length = len(plain_text(runs))
    end = length if end is None else end
    new_value = not range_has_style(runs, attr, start, end)
    return set_style(runs, attr, new_value, start, end)
