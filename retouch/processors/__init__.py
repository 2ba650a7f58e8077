# retouch/processors/__init__.py
"""
Processors for Retouch: geometry, extraction, layout, style and sampling.

Backend imports (PyMuPDF, pypdfium2, pdfminer.six) are lazy-loaded.
Use explicit imports like:
    from retouch.processors.pymupdf_backend import PyMuPDFPageProvider
"""

# Lazy-loaded names via __getattr__
_LAZY_IMPORTS = {
    'RenderingProvider': 'base',
    'OcrProvider': 'base',
    'DocumentMutationProvider': 'base',
    'RasterSurface': 'raster',
    'ArrayRasterSurface': 'raster',
    'ContentExtractor': 'pdf_extractor',
    'ContentStreamParser': 'pdf_operators',
    'LayoutThresholds': 'pdf_layout',
    'reconstruct_layout': 'pdf_layout',
    'PyMuPDFPageProvider': 'pymupdf_backend',
    'PyMuPDFDocumentProvider': 'pymupdf_backend',
}

# Submodules that can be accessed via __getattr__ (for patching support)
_SUBMODULES = {
    'base', 'geometry', 'raster', 'color_sampler', 'pdf_operators', 'pdf_layout',
    'pdf_extractor', 'font_manager', 'pdf_font_manager', 'rich_text', 'pymupdf_backend',
}


def __getattr__(name: str):
    """Lazy-load processor modules on first access."""
    import importlib
    # Support accessing submodules directly (for unittest.mock.patch)
    if name in _SUBMODULES:
        return importlib.import_module(f'.{name}', __package__)
    if name in _LAZY_IMPORTS:
        module_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(f'.{module_name}', __package__)
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = list(_LAZY_IMPORTS)
