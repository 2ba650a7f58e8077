# retouch/processors/font_manager.py
"""
Style inference for extracted fonts.

Maps nominal PDF font names (often subset-prefixed or synthetic) to:
- a display font stack for the editing overlay
- bold/italic flags, preferring document metadata over name keywords
- one of the twelve standard output variants used when redrawing text
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from retouch.models.types import StyleHint

# Module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Display stacks
# =============================================================================

SANS_STACK = 'Arial, Helvetica, sans-serif'
SERIF_STACK = '"Times New Roman", Times, serif'
MONO_STACK = '"Courier New", Courier, monospace'

# Named families checked after the generic families, in order
NAMED_FAMILY_STACKS = (
    ('georgia', 'Georgia, serif'),
    ('verdana', 'Verdana, sans-serif'),
    ('trebuchet', '"Trebuchet MS", sans-serif'),
    ('tahoma', 'Tahoma, sans-serif'),
    ('palatino', '"Palatino Linotype", "Book Antiqua", Palatino, serif'),
    ('garamond', 'Garamond, serif'),
)

# Keywords marking a font name as carrying style information
_STYLE_NAME_RE = re.compile(r'bold|italic|oblique|heavy|black|light|medium', re.IGNORECASE)
# Keywords marking a real (non-synthetic) font family
_KNOWN_FAMILY_RE = re.compile(
    r'times|arial|helvetica|courier|roman|georgia|verdana|tahoma|trebuchet|palatino|garamond|mono|sans|serif',
    re.IGNORECASE,
)
# Subset prefix such as "ABCDEF+"
_SUBSET_PREFIX_RE = re.compile(r'^[A-Z]{6}\+')

DEFAULT_FONT_NAME = 'Helvetica'


def _is_mono(lower: str) -> bool:
    return 'courier' in lower or 'mono' in lower


def _is_serif(lower: str) -> bool:
    return 'times' in lower or 'roman' in lower or ('serif' in lower and 'sans' not in lower)


def strip_subset_prefix(font_name: str) -> str:
    """Remove an "ABCDEF+" subset tag from a font name."""
    return _SUBSET_PREFIX_RE.sub('', font_name or '')


def resolve_font_name(raw_name: Optional[str], family: Optional[str] = None) -> str:
    """
    Choose the most informative nominal font name for a run.

    Priority: a raw name with style keywords, a family with style keywords,
    a raw name with a recognizable family, the family, the raw name,
    then Helvetica.
    """
    raw = raw_name or ''
    family = family or ''
    if _STYLE_NAME_RE.search(raw):
        return raw
    if _STYLE_NAME_RE.search(family):
        return family
    if _KNOWN_FAMILY_RE.search(raw):
        return raw
    return family or raw or DEFAULT_FONT_NAME


def resolve_display_stack(font_id: Optional[str]) -> str:
    """Return an overlay font-family stack approximating the PDF font."""
    lower = (font_id or '').lower()

    if _is_mono(lower):
        return MONO_STACK
    if _is_serif(lower):
        return SERIF_STACK
    if 'arial' in lower or 'helvetica' in lower or 'sans' in lower:
        return SANS_STACK
    for keyword, stack in NAMED_FAMILY_STACKS:
        if keyword in lower:
            return stack
    return SANS_STACK


# =============================================================================
# Bold / italic
# =============================================================================

@dataclass(frozen=True)
class FontStyle:
    bold: bool = False
    italic: bool = False


_BOLD_KEYWORDS = {'bold', 'bolder'}
# Numeric weights at or above this are bold
BOLD_WEIGHT = 700.0
_ITALIC_SLANTS = {'italic', 'oblique'}


def style_from_name(font_id: Optional[str]) -> FontStyle:
    lower = (font_id or '').lower()
    return FontStyle(
        bold='bold' in lower or 'heavy' in lower or 'black' in lower,
        italic='italic' in lower or 'oblique' in lower,
    )


def is_bold_weight(weight) -> bool:
    text = str(weight or '').strip().lower()
    if text in _BOLD_KEYWORDS:
        return True
    try:
        return float(text) >= BOLD_WEIGHT
    except ValueError:
        return False


def style_from_hint(style_hint: Optional[StyleHint]) -> FontStyle:
    if style_hint is None:
        return FontStyle()
    slant = str(style_hint.slant or '').lower()
    family = str(style_hint.family or '').lower()
    return FontStyle(
        bold=is_bold_weight(style_hint.weight) or 'bold' in family,
        italic=slant in _ITALIC_SLANTS or 'italic' in family or 'oblique' in family,
    )


def resolve_style(font_id: Optional[str], style_hint: Optional[StyleHint] = None) -> FontStyle:
    """
    Resolve bold/italic for a font.

    Metadata wins whenever it signals bold or italic; otherwise the font
    name's keywords decide. Nothing signalling means regular.
    """
    from_hint = style_from_hint(style_hint)
    if from_hint.bold or from_hint.italic:
        return from_hint
    return style_from_name(font_id)


# =============================================================================
# Output fonts
# =============================================================================

SANS = 'sans'
SERIF = 'serif'
MONO = 'mono'
CUSTOM = 'custom'

# Output variants per nominal family, keyed by (bold, italic)
OUTPUT_FONT_TABLE: dict[str, dict[tuple[bool, bool], str]] = {
    family: {
        (False, False): family,
        (True, False): f'{family}-bold',
        (False, True): f'{family}-italic',
        (True, True): f'{family}-bold-italic',
    }
    for family in (SANS, SERIF, MONO)
}

OUTPUT_VARIANTS = frozenset(
    variant for variants in OUTPUT_FONT_TABLE.values() for variant in variants.values()
)


def output_family(font_id: Optional[str]) -> str:
    """Nominal output family of a font name (may have no output table)."""
    lower = (font_id or '').lower()
    if _is_mono(lower):
        return MONO
    if _is_serif(lower):
        return SERIF
    if 'symbol' in lower or 'dingbat' in lower:
        return 'symbol'
    return SANS


def resolve_output_font(font_id: Optional[str], bold: bool = False, italic: bool = False) -> str:
    """
    Pick the standard output variant for redrawing text.

    Returns:
        One of OUTPUT_VARIANTS; families without an output table fall back
        to plain sans
    """
    family = output_family(font_id)
    variants = OUTPUT_FONT_TABLE.get(family)
    if variants is None:
        logger.debug("No output font for family %r of %r, using sans", family, font_id)
        return SANS
    return variants[(bool(bold), bool(italic))]


# =============================================================================
# Override options
# =============================================================================

@dataclass(frozen=True)
class FontFamilyOption:
    key: str
    label: str
    display_stack: str
    font_name: str                   # Nominal name used for output resolution


FONT_FAMILIES = (
    FontFamilyOption(SANS, 'Sans-serif (Helvetica)', SANS_STACK, 'Helvetica'),
    FontFamilyOption(SERIF, 'Serif (Times)', SERIF_STACK, 'TimesRoman'),
    FontFamilyOption(MONO, 'Monospace (Courier)', MONO_STACK, 'Courier'),
)


def get_font_family_option(key: str) -> Optional[FontFamilyOption]:
    for option in FONT_FAMILIES:
        if option.key == key:
            return option
    return None
