# retouch/services/edit_service.py
"""
Editor session: the host-facing API of the editing engine.

One session owns at most one editing mode at a time (text XOR image) for
one page. Entering a mode exits whichever mode was active; exiting discards
uncommitted edits and restores the page raster.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from retouch.config.settings import EditorSettings
from retouch.models.types import CommitResult, Paragraph, Viewport
from retouch.processors.base import DocumentMutationProvider, OcrProvider, RenderingProvider
from retouch.processors.pdf_extractor import ContentExtractor
from retouch.processors.pdf_layout import LayoutThresholds, group_into_paragraphs, reconstruct_layout
from retouch.processors.raster import RasterSurface
from .block_session import ACTION_CANCEL, BlockEditingSession, STATUS_IDLE
from .commit_engine import CommitEngine
from .image_editor import ImageRegionEditor

# Module logger
logger = logging.getLogger(__name__)

NOTICE_NO_TEXT = "No editable text found - try OCR first for scanned pages"
NOTICE_NO_IMAGES = "No editable images found on this page"


@dataclass
class EditContext:
    """
    Host-rendered page state, used instead of asking the provider.
    """
    viewport: Optional[Viewport] = None
    raster: Optional[RasterSurface] = None


class EditorSession:
    """
    Text and image editing for one document page.

    Args:
        settings: Editor settings (defaults when None)
        mutation_provider: Backend used by commits; commits return None without one
        ocr_provider: Source of OCR lines for pages without a text layer
    """

    def __init__(
        self,
        settings: Optional[EditorSettings] = None,
        mutation_provider: Optional[DocumentMutationProvider] = None,
        ocr_provider: Optional[OcrProvider] = None,
    ):
        self.settings = settings or EditorSettings()
        self.mutation_provider = mutation_provider
        self.ocr_provider = ocr_provider
        self.extractor = ContentExtractor(self.settings.min_image_size, self.settings.default_font_name())

        self.text_session: Optional[BlockEditingSession] = None
        self.image_editor: Optional[ImageRegionEditor] = None
        self.page_index: Optional[int] = None
        self.viewport: Optional[Viewport] = None
        self.notice: Optional[str] = None
        self.custom_font: Optional[tuple[str, bytes]] = None
        self.last_commit_result: Optional[CommitResult] = None

    @property
    def is_text_edit_active(self) -> bool:
        return self.text_session is not None

    @property
    def is_image_edit_active(self) -> bool:
        return self.image_editor is not None

    def _resolve_page_state(
        self,
        page: RenderingProvider,
        context: Optional[EditContext],
    ) -> Viewport:
        if context is not None and context.viewport is not None:
            return context.viewport
        return page.get_viewport_transform()

    def _resolve_raster(
        self,
        page: RenderingProvider,
        context: Optional[EditContext],
    ) -> Optional[RasterSurface]:
        if context is not None and context.raster is not None:
            return context.raster
        try:
            raster = page.get_raster_surface()
        except (RuntimeError, ValueError, OSError) as e:
            logger.warning("Page raster unavailable: %s", e)
            return None
        if raster is None:
            logger.warning("No page raster; colors fall back to black on white")
        return raster

    # =========================================================================
    # Text editing
    # =========================================================================

    async def enter_text_edit_mode(
        self,
        page: RenderingProvider,
        context: Optional[EditContext] = None,
    ) -> bool:
        """
        Build editable blocks for a page.

        Falls back to OCR lines when the page has no text layer.

        Returns:
            False (with a notice) when nothing on the page is editable
        """
        self.close()
        self.notice = None

        viewport = self._resolve_page_state(page, context)
        thresholds = self.settings.layout_thresholds()

        runs = await self.extractor.extract_runs(page, viewport)
        paragraphs = reconstruct_layout(runs, viewport.width, thresholds)
        if not paragraphs:
            paragraphs = self._ocr_paragraphs(page, viewport, thresholds)
        if not paragraphs:
            self.notice = NOTICE_NO_TEXT
            logger.info("No editable text on page %d", page.page_index)
            return False

        session = BlockEditingSession(paragraphs, self._resolve_raster(page, context), self.settings)
        if self.custom_font is not None:
            session.custom_font_name = self.custom_font[0]

        self.text_session = session
        self.page_index = page.page_index
        self.viewport = viewport
        logger.info("Text edit mode on page %d: %d blocks", page.page_index, len(paragraphs))
        return True

    def _ocr_paragraphs(
        self,
        page: RenderingProvider,
        viewport: Viewport,
        thresholds: LayoutThresholds,
    ) -> list[Paragraph]:
        if self.ocr_provider is None or not self.ocr_provider.has_results(page.page_index):
            return []
        lines = self.extractor.lines_from_ocr(self.ocr_provider.get_results(page.page_index), viewport)
        logger.debug("Using %d OCR lines for page %d", len(lines), page.page_index)
        return group_into_paragraphs(lines, thresholds)

    def exit_text_edit_mode(self) -> None:
        """Leave text mode, discarding uncommitted edits."""
        if self.text_session is None:
            return
        self.text_session.discard()
        self.text_session = None
        self.viewport = None
        logger.info("Exited text edit mode")

    def has_text_edit_changes(self) -> bool:
        return self.text_session is not None and self.text_session.has_changes()

    async def commit_text_edits(self, pdf_data: bytes, page_index: Optional[int] = None) -> Optional[bytes]:
        """
        Commit every dirty line of the page.

        The active block is deactivated first so its edits are included.
        Text mode is exited after a successful commit; the host re-renders
        the returned document and may enter again.

        Returns:
            New document bytes, or None when nothing changed or no mutation
            provider is available
        """
        session = self.text_session
        if session is None:
            return None

        session.deactivate()
        lines = [line for block in session.pending_blocks() for line in block.dirty_lines]
        if not lines:
            return None

        engine = CommitEngine(self.mutation_provider, self.custom_font[1] if self.custom_font else None)
        target_page = self.page_index if page_index is None else page_index
        session.locked = True
        try:
            data = await engine.commit_text(pdf_data, target_page, lines)
        finally:
            session.locked = False

        self.last_commit_result = engine.last_result
        if data is not None:
            session.clear_dirty_store()
            self.exit_text_edit_mode()
        return data

    def load_custom_font(self, name: str, data: bytes) -> None:
        """
        Make a user-supplied font available as the "custom" family.

        Raises:
            ValueError: If the font bytes are empty
        """
        if not data:
            raise ValueError("Font file is empty")
        self.custom_font = (name, data)
        if self.text_session is not None:
            self.text_session.custom_font_name = name
        logger.info("Loaded custom font %s (%d bytes)", name, len(data))

    def handle_shortcut(self, key: str, ctrl: bool = False, shift: bool = False) -> Optional[str]:
        """
        Route a keyboard shortcut to the text session.

        Escape with no active block leaves text mode.
        """
        if self.text_session is None:
            return None
        action = self.text_session.handle_shortcut(key, ctrl, shift)
        if action == ACTION_CANCEL:
            self.exit_text_edit_mode()
        return action

    @property
    def status_text(self) -> str:
        if self.text_session is None:
            return STATUS_IDLE
        return self.text_session.status_text()

    # =========================================================================
    # Image editing
    # =========================================================================

    async def enter_image_edit_mode(
        self,
        page: RenderingProvider,
        context: Optional[EditContext] = None,
    ) -> bool:
        """
        Collect the page's image regions.

        Returns:
            False (with a notice) when the page has no editable images
        """
        self.close()
        self.notice = None

        viewport = self._resolve_page_state(page, context)
        placements = await self.extractor.extract_image_placements(page)
        if not placements:
            self.notice = NOTICE_NO_IMAGES
            logger.info("No editable images on page %d", page.page_index)
            return False

        self.image_editor = ImageRegionEditor(placements, viewport)
        self.page_index = page.page_index
        self.viewport = viewport
        logger.info("Image edit mode on page %d: %d regions", page.page_index, len(placements))
        return True

    def exit_image_edit_mode(self) -> None:
        if self.image_editor is None:
            return
        self.image_editor = None
        self.viewport = None
        logger.info("Exited image edit mode")

    def has_image_edit_changes(self) -> bool:
        return self.image_editor is not None and self.image_editor.has_changes()

    async def commit_image_edits(self, pdf_data: bytes, page_index: Optional[int] = None) -> Optional[bytes]:
        """
        Apply pending delete/replace actions.

        Returns:
            New document bytes, or None when nothing is pending or no
            mutation provider is available
        """
        editor = self.image_editor
        if editor is None or not editor.has_changes():
            return None

        engine = CommitEngine(self.mutation_provider)
        target_page = self.page_index if page_index is None else page_index
        data = await engine.commit_images(pdf_data, target_page, editor.pending_regions())
        self.last_commit_result = engine.last_result
        if data is not None:
            self.exit_image_edit_mode()
        return data

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self) -> None:
        """Exit whichever mode is active."""
        self.exit_text_edit_mode()
        self.exit_image_edit_mode()
        self.page_index = None
