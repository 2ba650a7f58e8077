# retouch/processors/pdf_operators.py
"""
Content stream parsing for image geometry.

Features:
- Tokenizes raw content streams (names, numbers, strings, arrays,
  dictionaries, comments and inline image data)
- Emits the graphics-state operations that position images
- Tracks the current transformation matrix to locate painted images
"""

import logging
from typing import Iterable, Optional

from retouch.models.types import ContentOp, ContentOpCode, ImagePlacement
from .geometry import TransformStack

# Module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Content Stream Parser
# =============================================================================

class ContentStreamParser:
    """
    Parse a PDF content stream into image-relevant operations.

    Only q, Q, cm, Do (for image XObjects) and inline images are emitted;
    every other operator is consumed together with its operands.
    """

    # Delimiters terminating names and operators
    DELIMITERS = ' \t\r\n\f\x00/<>[]()%{}'

    def parse_operations(
        self,
        stream: bytes,
        image_names: Optional[set[str]] = None,
    ) -> list[ContentOp]:
        """
        Parse content stream bytes.

        Args:
            stream: Raw (decoded) content stream
            image_names: XObject names that are images. None treats every
                         Do operand as an image.

        Returns:
            List of ContentOp in stream order
        """
        if not stream:
            return []

        # latin-1 maps every byte 1:1 so binary inline image data survives
        content = stream.decode('latin-1')
        ops: list[ContentOp] = []
        operands: list = []

        for token_type, value in self._tokenize(content):
            if token_type != 'operator':
                operands.append(self._operand_value(token_type, value))
                continue

            op = self._to_content_op(value, operands, image_names)
            if op is not None:
                ops.append(op)
            operands = []

        return ops

    def _to_content_op(
        self,
        operator: str,
        operands: list,
        image_names: Optional[set[str]],
    ) -> Optional[ContentOp]:
        if operator == 'q':
            return ContentOp(ContentOpCode.SAVE)
        if operator == 'Q':
            return ContentOp(ContentOpCode.RESTORE)
        if operator == 'cm':
            numbers = [v for v in operands if isinstance(v, float)]
            if len(numbers) < 6:
                logger.debug("cm with %d numeric operands ignored", len(numbers))
                return None
            return ContentOp(ContentOpCode.TRANSFORM, tuple(numbers[-6:]))
        if operator == 'Do':
            names = [v for v in operands if isinstance(v, str)]
            if not names:
                return None
            name = names[-1]
            if image_names is None or name in image_names:
                return ContentOp(ContentOpCode.PAINT_IMAGE, (name,))
            return None
        if operator == 'EI':
            return ContentOp(ContentOpCode.PAINT_INLINE_IMAGE)
        return None

    @staticmethod
    def _operand_value(token_type: str, value: str):
        if token_type == 'number':
            try:
                return float(value)
            except ValueError:
                return value
        if token_type == 'name':
            return value[1:]
        # Strings, arrays and dictionaries are kept raw but never read
        return (token_type, value)

    def _tokenize(self, content: str) -> list[tuple[str, str]]:
        """
        Tokenize PDF content stream.

        Returns list of (type, value) tuples where type is one of:
        - 'operator': PDF operator keyword
        - 'number': numeric value
        - 'name': /Name
        - 'string': (string) or <hexstring>
        - 'array': [...] array
        - 'dict': <<...>> dictionary

        Inline image data between ID and EI is skipped.
        """
        tokens = []
        i = 0
        n = len(content)

        while i < n:
            c = content[i]

            if c in ' \t\r\n\f\x00':
                i += 1
                continue

            # Comment
            if c == '%':
                while i < n and content[i] not in '\r\n':
                    i += 1
                continue

            # Name
            if c == '/':
                j = i + 1
                while j < n and content[j] not in self.DELIMITERS:
                    j += 1
                tokens.append(('name', content[i:j]))
                i = j
                continue

            # Literal string
            if c == '(':
                j = self._skip_literal_string(content, i)
                tokens.append(('string', content[i:j]))
                i = j
                continue

            # Hex string
            if c == '<' and (i + 1 >= n or content[i + 1] != '<'):
                j = content.find('>', i + 1)
                j = n if j < 0 else j + 1
                tokens.append(('string', content[i:j]))
                i = j
                continue

            # Dictionary
            if c == '<' and i + 1 < n and content[i + 1] == '<':
                j = i + 2
                depth = 1
                while j < n and depth > 0:
                    if content[j:j+2] == '<<':
                        depth += 1
                        j += 2
                    elif content[j:j+2] == '>>':
                        depth -= 1
                        j += 2
                    elif content[j] == '(':
                        j = self._skip_literal_string(content, j)
                    else:
                        j += 1
                tokens.append(('dict', content[i:j]))
                i = j
                continue

            # Array
            if c == '[':
                j = i + 1
                depth = 1
                while j < n and depth > 0:
                    if content[j] == '[':
                        depth += 1
                    elif content[j] == ']':
                        depth -= 1
                    elif content[j] == '(':
                        j = self._skip_literal_string(content, j)
                        continue
                    j += 1
                tokens.append(('array', content[i:j]))
                i = j
                continue

            # Number (including negative and decimal)
            if c.isdigit() or c in '-+.':
                j = i + 1
                while j < n and (content[j].isdigit() or content[j] == '.'):
                    j += 1
                if j == i + 1 and c in '-+.':
                    # Lone sign or dot
                    i = j
                    continue
                tokens.append(('number', content[i:j]))
                i = j
                continue

            # Operator (keyword)
            if c.isalpha() or c in "'\"*":
                j = i
                while j < n and content[j] not in self.DELIMITERS:
                    j += 1
                operator = content[i:j]
                tokens.append(('operator', operator))
                i = j
                if operator == 'ID':
                    i = self._skip_inline_image_data(content, i)
                    tokens.append(('operator', 'EI'))
                continue

            # Stray delimiter (], >, { or })
            i += 1

        return tokens

    @staticmethod
    def _skip_literal_string(content: str, start: int) -> int:
        """Return the index just past the literal string opened at start."""
        n = len(content)
        j = start + 1
        depth = 1
        while j < n and depth > 0:
            if content[j] == '\\' and j + 1 < n:
                j += 2
                continue
            if content[j] == '(':
                depth += 1
            elif content[j] == ')':
                depth -= 1
            j += 1
        return j

    @staticmethod
    def _skip_inline_image_data(content: str, start: int) -> int:
        """Return the index just past the EI keyword ending inline image data."""
        n = len(content)
        j = start + 1  # single whitespace after ID
        while j < n:
            k = content.find('EI', j)
            if k < 0:
                return n
            before_ok = k > 0 and content[k - 1] in ' \t\r\n\f\x00'
            after_ok = k + 2 >= n or content[k + 2] in ' \t\r\n\f\x00'
            if before_ok and after_ok:
                return k + 2
            j = k + 2
        return n


# =============================================================================
# Image placement tracking
# =============================================================================

def track_image_placements(ops: Iterable[ContentOp]) -> list[ImagePlacement]:
    """
    Walk operations with a transform stack and record every painted image.

    Each paint treats the current matrix as mapping the unit square onto
    the page: the translation is the origin, |a| (or |c| when a is 0) the
    width and |d| (or |b| when d is 0) the height.
    """
    stack = TransformStack()
    placements: list[ImagePlacement] = []

    for op in ops:
        if op.opcode == ContentOpCode.SAVE:
            stack.save()
        elif op.opcode == ContentOpCode.RESTORE:
            stack.restore()
        elif op.opcode == ContentOpCode.TRANSFORM:
            if len(op.args) != 6:
                logger.debug("Transform with %d args ignored", len(op.args))
                continue
            stack.transform(tuple(float(v) for v in op.args))
        elif op.opcode in (ContentOpCode.PAINT_IMAGE, ContentOpCode.PAINT_INLINE_IMAGE):
            a, b, c, d, e, f = stack.current
            name = op.args[0] if op.args else None
            placements.append(ImagePlacement(
                doc_x=e,
                doc_y=f,
                doc_w=abs(a) or abs(c),
                doc_h=abs(d) or abs(b),
                name=name,
            ))

    return placements


def filter_small_placements(
    placements: list[ImagePlacement],
    min_size: float,
) -> list[ImagePlacement]:
    """Drop placements narrower or shorter than min_size document units."""
    kept = [p for p in placements if p.doc_w >= min_size and p.doc_h >= min_size]
    if len(kept) < len(placements):
        logger.debug("Discarded %d image placements below %.1fpt", len(placements) - len(kept), min_size)
    return kept
