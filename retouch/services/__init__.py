# retouch/services/__init__.py
"""
Editing services for Retouch.

Session classes are lazy-loaded so that providers can import the exception
types without pulling in the whole engine.
"""

from .exceptions import (
    RetouchError,
    ExtractionError,
    RasterBusyError,
    FontEmbedError,
    ImageEmbedError,
)

_LAZY_IMPORTS = {
    'EditorSession': 'edit_service',
    'EditContext': 'edit_service',
    'BlockEditingSession': 'block_session',
    'CommitEngine': 'commit_engine',
    'ImageRegionEditor': 'image_editor',
}

_SUBMODULES = {'edit_service', 'block_session', 'commit_engine', 'image_editor', 'exceptions'}


def __getattr__(name: str):
    """Lazy-load service modules on first access."""
    import importlib
    if name in _SUBMODULES:
        return importlib.import_module(f'.{name}', __package__)
    if name in _LAZY_IMPORTS:
        module = importlib.import_module(f'.{_LAZY_IMPORTS[name]}', __package__)
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'RetouchError',
    'ExtractionError',
    'RasterBusyError',
    'FontEmbedError',
    'ImageEmbedError',
    'EditorSession',
    'EditContext',
    'BlockEditingSession',
    'CommitEngine',
    'ImageRegionEditor',
]
