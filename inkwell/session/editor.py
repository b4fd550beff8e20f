"""The chapter currently open for editing."""
import asyncio
from pathlib import Path
from typing import Optional

from ..config.constants import DEFAULT_AUTOSAVE_INTERVAL_MS
from ..errors import InkwellError, ValidationError
from ..models.chapter import Chapter
from ..storage.chapters import ChapterService
from ..utils.logging import get_logger
from .autosave import AutosaveTimer

logger = get_logger("session")


class EditorSession:
    """
    Text buffer for one open chapter, with dirty tracking and autosave.

    The buffer is dirty when it differs from the last text written to disk.
    Every ``edit`` restarts the autosave countdown; ``close`` cancels it.
    """

    def __init__(
        self,
        chapters: ChapterService,
        autosave_interval_ms: int = DEFAULT_AUTOSAVE_INTERVAL_MS,
        autosave_enabled: bool = True
    ):
        self.chapters = chapters
        self.autosave_enabled = autosave_enabled
        self.timer = AutosaveTimer(autosave_interval_ms / 1000, self.autosave)

        self.project_path: Optional[Path] = None
        self.chapter_id: Optional[str] = None
        self.title: str = ""
        self.buffer: str = ""
        self.snapshot: str = ""

    @property
    def is_open(self) -> bool:
        return self.chapter_id is not None

    @property
    def is_dirty(self) -> bool:
        return self.is_open and self.buffer != self.snapshot

    def open_chapter(self, project_path: Path, chapter_id: str) -> Chapter:
        """Load a chapter into the buffer, replacing whatever was open."""
        chapter = self.chapters.load_chapter(project_path, chapter_id)
        self.timer.cancel()
        self.project_path = Path(project_path)
        self.chapter_id = chapter.id
        self.title = chapter.title
        self.buffer = self.snapshot = chapter.content
        logger.debug(f"Opened chapter {chapter.id} in {self.project_path.name}")
        return chapter

    def edit(self, text: str):
        """Replace the buffer and restart the autosave countdown."""
        self._require_open()
        self.buffer = text
        if self.autosave_enabled and self.is_dirty:
            self.timer.reset()

    def save(self) -> Path:
        """Write the buffer to disk now."""
        self._require_open()
        text = self.buffer
        chapter_dir = self.chapters.save_chapter(self.project_path, self.chapter_id, self.title, text)
        self.snapshot = text
        return chapter_dir

    async def autosave(self):
        """Save off the event loop if the buffer changed; failures are logged."""
        if not self.is_dirty:
            return
        try:
            await asyncio.to_thread(self.save)
            logger.debug(f"Autosaved chapter {self.chapter_id}")
        except InkwellError as e:
            logger.error(f"Autosave of chapter {self.chapter_id} failed: {e}")

    def rename(self, title: str):
        self._require_open()
        self.chapters.rename_chapter(self.project_path, self.chapter_id, title)
        self.title = title

    def close(self):
        """Cancel pending autosave and forget the open chapter (unsaved edits are dropped)."""
        self.timer.cancel()
        if self.is_dirty:
            logger.warning(f"Closing chapter {self.chapter_id} with unsaved changes")
        self.project_path = None
        self.chapter_id = None
        self.title = ""
        self.buffer = self.snapshot = ""

    def _require_open(self):
        if not self.is_open:
            raise ValidationError("No chapter is open")
