# retouch/__init__.py
"""
Retouch - in-place text and image replacement for PDF pages.

Reconstructs editable lines and paragraphs from positioned glyph records,
infers colors from the rendered page and commits edits by covering the
original content and redrawing replacements.
"""

from pathlib import Path


def _get_version() -> str:
    """
    Read the version from pyproject.toml.

    Returns:
        str: Version string (e.g. "0.1.0")
    """
    try:
        import tomllib  # Python 3.11+ standard library

        pyproject_path = Path(__file__).parent.parent / "pyproject.toml"
        if pyproject_path.exists():
            with open(pyproject_path, "rb") as f:
                data = tomllib.load(f)
            return data.get("project", {}).get("version", "0.0.0")
    except (OSError, ValueError):
        pass

    # Fallback when running from an installed wheel without pyproject.toml
    return "0.1.0"


__version__ = _get_version()
__app_name__ = "Retouch"
