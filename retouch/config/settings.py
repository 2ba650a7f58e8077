# retouch/config/settings.py
"""
Editor settings management for Retouch.

Settings files:
- settings.template.json: developer defaults, overwritten on update
- user_settings.json: only the keys the user changed (USER_SETTINGS_KEYS)
- On load the template is read first, then overridden by user settings

Cache:
- _settings_cache keys EditorSettings instances by path
- load() prefers the cache while file modification times are unchanged
- save() refreshes the cache
- invalidate_settings_cache() clears it explicitly
"""

import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from retouch.processors.font_manager import DEFAULT_FONT_NAME, get_font_family_option
from retouch.processors.pdf_layout import LayoutThresholds

# Module logger
logger = logging.getLogger(__name__)

# Settings cache: path -> (mtime_template, mtime_user, EditorSettings)
_settings_cache: dict[str, tuple[float, float, "EditorSettings"]] = {}
_settings_cache_lock = threading.Lock()

# Settings the user may change (saved to user_settings.json)
USER_SETTINGS_KEYS = {
    # Rendering
    "render_zoom",
    "device_scale",
    # Editing
    "max_undo",
    "default_font_family",
}


@dataclass
class EditorSettings:
    """Editor settings"""

    # Rendering
    render_zoom: float = 1.5                 # Screen pixels per document unit
    device_scale: float = 1.0                # Raster pixels per screen pixel

    # Layout reconstruction
    column_buckets: int = 100
    column_search_start: float = 0.30        # Fraction of page width
    column_search_end: float = 0.70
    column_gap_density: float = 0.15         # Fraction of the densest bucket
    column_min_gap_ratio: float = 0.03       # Fraction of page width
    column_min_side_content: int = 5         # Band hits required on each side
    column_band_height: float = 5.0          # Y-band quantum (px)
    line_y_tolerance: float = 3.0            # px
    cell_gap_font_ratio: float = 0.5
    cell_gap_min: float = 5.0                # px
    paragraph_gap_ratio: float = 1.5         # x previous line height
    paragraph_indent_ratio: float = 1.5      # x previous line height
    paragraph_width_ratio: float = 0.5       # Fraction of the wider line
    paragraph_font_size_tolerance: float = 2.0

    # Color sampling
    background_min_luminance: float = 150.0
    foreground_luminance_margin: float = 40.0
    min_alpha: int = 128

    # Block editing
    max_undo: int = 50
    zone_padding: float = 2.0                # px around each block's hit zone
    shield_padding: float = 10.0             # px around the active block
    snapshot_padding: float = 6.0            # px around the active block
    erase_padding: float = 1.0               # px around each erased line
    default_font_family: str = "sans"

    # Images
    min_image_size: float = 10.0             # Document units

    @classmethod
    def load(cls, path: Path, use_cache: bool = True) -> "EditorSettings":
        """Load settings from template and user settings files.

        Args:
            path: Base settings path; settings.template.json and
                  user_settings.json are looked up in its directory
            use_cache: Reuse a cached instance while files are unchanged
        """
        config_dir = path.parent
        template_path = config_dir / "settings.template.json"
        user_settings_path = config_dir / "user_settings.json"

        cache_key = str(path.resolve())

        template_mtime = template_path.stat().st_mtime if template_path.exists() else 0.0
        user_mtime = user_settings_path.stat().st_mtime if user_settings_path.exists() else 0.0

        if use_cache:
            with _settings_cache_lock:
                if cache_key in _settings_cache:
                    cached_template_mtime, cached_user_mtime, cached_settings = _settings_cache[cache_key]
                    if cached_template_mtime == template_mtime and cached_user_mtime == user_mtime:
                        logger.debug("Using cached settings for: %s", path)
                        return cached_settings

        data = {}

        # 1. Developer defaults
        if template_path.exists():
            try:
                with open(template_path, 'r', encoding='utf-8-sig') as f:
                    data = json.load(f)
                    logger.debug("Loaded template settings from: %s", template_path)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.warning("Failed to load template settings: %s", e)

        # 2. User overrides
        if user_settings_path.exists():
            try:
                with open(user_settings_path, 'r', encoding='utf-8-sig') as f:
                    user_data = json.load(f)
                    for key in USER_SETTINGS_KEYS:
                        if key in user_data:
                            data[key] = user_data[key]
                    logger.debug("Loaded user settings from: %s", user_settings_path)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.warning("Failed to load user settings: %s", e)

        known_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered_data = {k: v for k, v in data.items() if k in known_fields}

        settings = cls(**filtered_data)
        settings._validate()

        with _settings_cache_lock:
            _settings_cache[cache_key] = (template_mtime, user_mtime, settings)

        return settings

    def _validate(self) -> None:
        """Reset out-of-range values to defaults with warnings."""
        if self.render_zoom <= 0 or self.render_zoom > 8.0:
            logger.warning("render_zoom out of range (%.2f), resetting to 1.5", self.render_zoom)
            self.render_zoom = 1.5
        if self.device_scale <= 0 or self.device_scale > 4.0:
            logger.warning("device_scale out of range (%.2f), resetting to 1.0", self.device_scale)
            self.device_scale = 1.0

        if self.column_buckets < 10:
            logger.warning("column_buckets too small (%d), resetting to 100", self.column_buckets)
            self.column_buckets = 100
        if not 0.0 <= self.column_search_start < self.column_search_end <= 1.0:
            logger.warning(
                "column search range invalid (%.2f-%.2f), resetting to 0.30-0.70",
                self.column_search_start, self.column_search_end,
            )
            self.column_search_start = 0.30
            self.column_search_end = 0.70

        if self.max_undo < 1:
            logger.warning("max_undo too small (%d), resetting to 50", self.max_undo)
            self.max_undo = 50
        elif self.max_undo > 1000:
            logger.warning("max_undo too large (%d), resetting to 50", self.max_undo)
            self.max_undo = 50

        if get_font_family_option(self.default_font_family) is None:
            logger.warning("Unknown default_font_family %r, resetting to sans", self.default_font_family)
            self.default_font_family = "sans"

        if self.min_image_size < 0:
            self.min_image_size = 10.0

    def save(self, path: Path) -> None:
        """Save user-changeable settings to user_settings.json.

        The template is never modified. The cache is refreshed afterwards.

        Args:
            path: Base settings path; user_settings.json is written beside it
        """
        config_dir = path.parent
        user_settings_path = config_dir / "user_settings.json"
        template_path = config_dir / "settings.template.json"

        config_dir.mkdir(parents=True, exist_ok=True)

        data = {}
        for key in USER_SETTINGS_KEYS:
            if hasattr(self, key):
                data[key] = getattr(self, key)

        with open(user_settings_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        logger.debug("Saved user settings to: %s", user_settings_path)

        cache_key = str(path.resolve())
        template_mtime = template_path.stat().st_mtime if template_path.exists() else 0.0
        user_mtime = user_settings_path.stat().st_mtime if user_settings_path.exists() else 0.0
        with _settings_cache_lock:
            _settings_cache[cache_key] = (template_mtime, user_mtime, self)

    def layout_thresholds(self) -> LayoutThresholds:
        """Heuristic thresholds for layout reconstruction."""
        return LayoutThresholds(
            column_buckets=self.column_buckets,
            column_search_start=self.column_search_start,
            column_search_end=self.column_search_end,
            column_gap_density=self.column_gap_density,
            column_min_gap_ratio=self.column_min_gap_ratio,
            column_min_side_content=self.column_min_side_content,
            column_band_height=self.column_band_height,
            line_y_tolerance=self.line_y_tolerance,
            cell_gap_font_ratio=self.cell_gap_font_ratio,
            cell_gap_min=self.cell_gap_min,
            paragraph_gap_ratio=self.paragraph_gap_ratio,
            paragraph_indent_ratio=self.paragraph_indent_ratio,
            paragraph_width_ratio=self.paragraph_width_ratio,
            paragraph_font_size_tolerance=self.paragraph_font_size_tolerance,
        )

    def default_font_name(self) -> str:
        """Nominal font for text that carries no font metadata (OCR lines)."""
        option = get_font_family_option(self.default_font_family)
        return option.font_name if option else DEFAULT_FONT_NAME


def get_default_settings_path() -> Path:
    """Get default settings file path"""
    return Path(__file__).parent.parent.parent / "config" / "settings.json"


def invalidate_settings_cache(path: Optional[Path] = None) -> None:
    """Invalidate settings cache.

    Args:
        path: Clear only this path's entry; None clears everything.
    """
    with _settings_cache_lock:
        if path is None:
            _settings_cache.clear()
            logger.debug("Cleared all settings cache")
        else:
            cache_key = str(path.resolve())
            if cache_key in _settings_cache:
                del _settings_cache[cache_key]
                logger.debug("Cleared settings cache for: %s", path)
