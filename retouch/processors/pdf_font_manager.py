# retouch/processors/pdf_font_manager.py
"""
Font descriptor reading for style hints.

Features:
- Reads /FontDescriptor entries (FontWeight, ItalicAngle, Flags, FontFamily)
  of a page's fonts with pdfminer.six
- Converts PyMuPDF span flags into the same StyleHint shape
"""

import io
import logging
from typing import Any, Optional

from retouch.models.types import StyleHint
from .font_manager import strip_subset_prefix

# Module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Lazy Imports
# =============================================================================
_pdfminer = None


def _get_pdfminer():
    """Lazy import pdfminer.six for font descriptor access."""
    global _pdfminer
    if _pdfminer is None:
        from pdfminer.pdfdocument import PDFDocument
        from pdfminer.pdfinterp import PDFResourceManager
        from pdfminer.pdfpage import PDFPage
        from pdfminer.pdfparser import PDFParser, PDFSyntaxError
        from pdfminer.pdftypes import resolve1
        from pdfminer.psparser import PSLiteral
        _pdfminer = {
            'PDFDocument': PDFDocument,
            'PDFResourceManager': PDFResourceManager,
            'PDFPage': PDFPage,
            'PDFParser': PDFParser,
            'PDFSyntaxError': PDFSyntaxError,
            'resolve1': resolve1,
            'PSLiteral': PSLiteral,
        }
    return _pdfminer


# =============================================================================
# Descriptor flags (PDF 32000-1, 9.8.2)
# =============================================================================
FLAG_FIXED_PITCH = 1 << 0
FLAG_SERIF = 1 << 1
FLAG_ITALIC = 1 << 6
FLAG_FORCE_BOLD = 1 << 18

# PyMuPDF span flags
SPAN_FLAG_ITALIC = 1 << 1
SPAN_FLAG_BOLD = 1 << 4

# StemV at or above this usually means a bold face
BOLD_STEM_V = 120


def _as_text(value: Any) -> Optional[str]:
    """Decode a pdfminer name/string object into str."""
    if value is None:
        return None
    pdfminer = _get_pdfminer()
    value = pdfminer['resolve1'](value)
    if isinstance(value, pdfminer['PSLiteral']):
        value = value.name
    if isinstance(value, bytes):
        return value.decode('latin-1', errors='replace')
    return str(value)


def style_hint_from_descriptor(descriptor: dict, font_name: Optional[str] = None) -> Optional[StyleHint]:
    """
    Build a StyleHint from a font descriptor dictionary.

    Returns:
        StyleHint, or None when the descriptor carries no style signal
    """
    if not descriptor:
        return None

    weight = None
    slant = None
    family = _as_text(descriptor.get('FontFamily'))

    flags = descriptor.get('Flags') or 0
    try:
        flags = int(flags)
    except (TypeError, ValueError):
        flags = 0

    font_weight = descriptor.get('FontWeight')
    if font_weight is not None:
        try:
            weight = str(int(float(font_weight)))
        except (TypeError, ValueError):
            weight = None
    if weight is None and flags & FLAG_FORCE_BOLD:
        weight = 'bold'
    if weight is None:
        stem_v = descriptor.get('StemV')
        if isinstance(stem_v, (int, float)) and stem_v >= BOLD_STEM_V:
            weight = 'bold'

    italic_angle = descriptor.get('ItalicAngle')
    if flags & FLAG_ITALIC:
        slant = 'italic'
    elif isinstance(italic_angle, (int, float)) and italic_angle != 0:
        slant = 'oblique'

    if weight is None and slant is None and family is None:
        return None
    return StyleHint(weight=weight, slant=slant, family=family or strip_subset_prefix(font_name or '') or None)


def style_hint_from_span_flags(flags: int) -> Optional[StyleHint]:
    """Convert PyMuPDF span flags into a StyleHint (None when plain)."""
    bold = bool(flags & SPAN_FLAG_BOLD)
    italic = bool(flags & SPAN_FLAG_ITALIC)
    if not bold and not italic:
        return None
    return StyleHint(weight='bold' if bold else None, slant='italic' if italic else None)


def load_style_hints(pdf_data: bytes, page_index: int) -> dict[str, StyleHint]:
    """
    Read style hints for every font of one page.

    Args:
        pdf_data: Document bytes
        page_index: 0-based page index

    Returns:
        Mapping of base font name (subset prefix removed) to StyleHint
    """
    hints: dict[str, StyleHint] = {}
    try:
        pdfminer = _get_pdfminer()
        PDFParser = pdfminer['PDFParser']
        PDFDocument = pdfminer['PDFDocument']
        PDFPage = pdfminer['PDFPage']
        PDFResourceManager = pdfminer['PDFResourceManager']
        resolve1 = pdfminer['resolve1']

        parser = PDFParser(io.BytesIO(pdf_data))
        document = PDFDocument(parser)
        rsrcmgr = PDFResourceManager()

        for index, page in enumerate(PDFPage.create_pages(document)):
            if index != page_index:
                continue
            fonts = resolve1(page.resources.get('Font')) if page.resources else None
            if not fonts:
                break
            for resource_name, font_ref in fonts.items():
                try:
                    spec = resolve1(font_ref)
                    objid = getattr(font_ref, 'objid', None)
                    font = rsrcmgr.get_font(objid, spec)
                    base_name = _as_text(getattr(font, 'basefont', None)) or _as_text(font.fontname)
                    hint = style_hint_from_descriptor(font.descriptor, base_name)
                    if base_name and hint is not None:
                        hints[strip_subset_prefix(base_name)] = hint
                except (RuntimeError, ValueError, KeyError, TypeError, AttributeError) as e:
                    # RuntimeError: pdfminer internal errors
                    # KeyError/TypeError: malformed font dictionary
                    logger.debug("Could not read font %s: %s", resource_name, e)
            break

        logger.debug("Loaded %d font style hints for page %d", len(hints), page_index)

    except (RuntimeError, ValueError, OSError) as e:
        # RuntimeError: pdfminer internal errors
        # ValueError: Invalid PDF data
        logger.warning("Failed to read font descriptors: %s", e)
    except Exception as e:
        # PDFSyntaxError and other pdfminer exceptions (lazy-loaded types)
        pdfminer = _get_pdfminer()
        if isinstance(e, pdfminer.get('PDFSyntaxError', type(None))):
            logger.warning("Invalid PDF file (syntax error): %s", e)
        else:
            logger.warning("Unexpected error reading font descriptors: %s", e)

    return hints
