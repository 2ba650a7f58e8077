# retouch/services/exceptions.py
"""
Shared exception types for the editing engine and its providers.

Providers raise these at their boundary; the extractor and commit engine
catch them per record so one bad record never aborts a whole operation.
"""


class RetouchError(Exception):
    """Base class for editing engine errors."""

    pass


class ExtractionError(RetouchError):
    """Raised when a rendering provider cannot return text or content operations."""

    pass


class RasterBusyError(RetouchError):
    """Raised when the raster surface is already checked out by another owner."""

    pass


class FontEmbedError(RetouchError):
    """Raised when a font cannot be embedded into the document."""

    pass


class ImageEmbedError(RetouchError):
    """Raised when replacement image bytes cannot be embedded with a codec."""

    pass
