# retouch/models/__init__.py
"""
Data models for Retouch.
"""

from .types import (
    Matrix,
    Box,
    Viewport,
    StyleHint,
    TextItem,
    Run,
    Line,
    Paragraph,
    OcrLine,
    RichRun,
    LineEdit,
    BlockState,
    ContentOpCode,
    ContentOp,
    ImagePlacement,
    ImageAction,
    ImageRegion,
    CommitResult,
)

__all__ = [
    'Matrix',
    'Box',
    'Viewport',
    'StyleHint',
    'TextItem',
    'Run',
    'Line',
    'Paragraph',
    'OcrLine',
    'RichRun',
    'LineEdit',
    'BlockState',
    'ContentOpCode',
    'ContentOp',
    'ImagePlacement',
    'ImageAction',
    'ImageRegion',
    'CommitResult',
]
