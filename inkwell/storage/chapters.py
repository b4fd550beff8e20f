"""Chapter persistence: the authoritative lifecycle operations for one chapter.

Per-chapter state goes nonexistent -> draft -> saved (re-entrant) -> deleted.
Each write updates both the chapter's own ``metadata.json`` and its
denormalized entry in ``project.json`` while holding the project's lock.
"""
from pathlib import Path
from typing import Optional, Union

from ..config.constants import CHAPTER_CONTENT_FILE, CHAPTER_METADATA_FILE, CHAPTERS_DIR
from ..errors import NotFoundError, ParseError, ValidationError
from ..models.chapter import Chapter, ChapterEntry, ChapterMetadata, new_chapter_id, utc_now_iso, validate_path_segment
from ..utils.logging import get_logger
from ..utils.wordcount import count_words
from . import filesystem as fs
from .locks import ProjectLocks
from .manifest import read_manifest, write_manifest

logger = get_logger("chapters")

APPLY_MODES = ('replace', 'append')


class ChapterService:
    """Create, load, save, rename and delete chapters of a project."""

    def __init__(self, locks: Optional[ProjectLocks] = None):
        """
        Initialize chapter service.

        Args:
            locks: Lock registry shared with the project manager
        """
        self.locks = locks or ProjectLocks()

    @staticmethod
    def chapter_dir(project_path: Union[str, Path], chapter_id: str) -> Path:
        """Get the directory for a chapter (validates the id)."""
        return Path(project_path) / CHAPTERS_DIR / validate_path_segment(chapter_id, "chapter id")

    def save_chapter(
        self,
        project_path: Union[str, Path],
        chapter_id: str,
        title: str,
        content: str
    ) -> Path:
        """
        Write a chapter's content and metadata and register it in the manifest.

        Saving the same title and content twice leaves ``content.md``
        byte-identical and keeps ``createdAt``; only ``lastModified`` moves.
        There is no rollback: if a later step fails, earlier writes stay.

        Args:
            project_path: Project directory
            chapter_id: Chapter id (also the directory name)
            title: Chapter title
            content: Raw Markdown text, written verbatim

        Returns:
            The chapter directory

        Raises:
            NotFoundError: If the project has no project.json; nothing is written
        """
        if not isinstance(title, str):
            raise ValidationError("Chapter title must be a string")
        if not isinstance(content, str):
            raise ValidationError("Chapter content must be a string")

        project_path = Path(project_path)
        chapter_dir = self.chapter_dir(project_path, chapter_id)

        with self.locks.hold(project_path):
            manifest = read_manifest(project_path)
            fs.ensure_dir(chapter_dir)
            fs.write_text(chapter_dir / CHAPTER_CONTENT_FILE, content)

            now = utc_now_iso()
            metadata = ChapterMetadata(
                id=chapter_id,
                title=title,
                word_count=count_words(content),
                last_modified=now,
                created_at=self._existing_created_at(chapter_dir) or now,
            )
            fs.write_json(chapter_dir / CHAPTER_METADATA_FILE, metadata.to_json())

            registered = manifest.upsert_chapter(ChapterEntry.from_metadata(metadata))
            manifest.touch(now)
            write_manifest(project_path, manifest)

        if registered:
            logger.info(f"Registered chapter {chapter_id} ('{title}') in {project_path.name}")
        logger.debug(f"Saved chapter {chapter_id}: {metadata.word_count} words")
        return chapter_dir

    def _existing_created_at(self, chapter_dir: Path) -> Optional[str]:
        try:
            data = fs.read_json(chapter_dir / CHAPTER_METADATA_FILE)
        except NotFoundError:
            return None
        except ParseError as e:
            logger.warning(f"Replacing unreadable chapter metadata: {e}")
            return None
        return data.get('createdAt') if isinstance(data, dict) else None

    def create_chapter(self, project_path: Union[str, Path], title: str) -> Chapter:
        """Create an empty draft chapter with a fresh id."""
        chapter_id = new_chapter_id()
        self.save_chapter(project_path, chapter_id, title, "")
        return self.load_chapter(project_path, chapter_id)

    def load_chapter(self, project_path: Union[str, Path], chapter_id: str) -> Chapter:
        """
        Read a chapter's content and metadata.

        Raises:
            NotFoundError: If content.md or metadata.json is missing
            ParseError: If metadata.json is malformed
        """
        chapter_dir = self.chapter_dir(project_path, chapter_id)
        content = fs.read_text(chapter_dir / CHAPTER_CONTENT_FILE)
        data = fs.read_json(chapter_dir / CHAPTER_METADATA_FILE)
        if not isinstance(data, dict):
            raise ParseError(f"Chapter metadata for {chapter_id} is not a JSON object")

        data.setdefault('id', chapter_id)
        return Chapter.model_validate({**data, 'content': content})

    def delete_chapter(self, project_path: Union[str, Path], chapter_id: str) -> None:
        """Remove a chapter and prune its manifest entry; deleting twice is fine."""
        project_path = Path(project_path)
        chapter_dir = self.chapter_dir(project_path, chapter_id)

        with self.locks.hold(project_path):
            fs.remove_tree(chapter_dir)
            manifest = read_manifest(project_path)
            manifest.remove_chapter(chapter_id)
            manifest.touch()
            write_manifest(project_path, manifest)

        logger.info(f"Deleted chapter {chapter_id} from {project_path.name}")

    def rename_chapter(self, project_path: Union[str, Path], chapter_id: str, new_title: str) -> ChapterMetadata:
        """
        Change a chapter's title in its metadata and in the manifest entry.

        Content and ``createdAt`` are untouched.

        Raises:
            NotFoundError: If the chapter has no metadata
        """
        if not isinstance(new_title, str):
            raise ValidationError("Chapter title must be a string")

        project_path = Path(project_path)
        metadata_file = self.chapter_dir(project_path, chapter_id) / CHAPTER_METADATA_FILE

        with self.locks.hold(project_path):
            data = fs.read_json(metadata_file)
            if not isinstance(data, dict):
                raise ParseError(f"Chapter metadata for {chapter_id} is not a JSON object")

            now = utc_now_iso()
            data['title'] = new_title
            data['lastModified'] = now
            data.setdefault('id', chapter_id)
            fs.write_json(metadata_file, data)

            manifest = read_manifest(project_path)
            entry = manifest.find_chapter(chapter_id)
            if entry is not None:
                entry.title = new_title
                entry.last_modified = now
            manifest.touch(now)
            write_manifest(project_path, manifest)

        logger.info(f"Renamed chapter {chapter_id} to '{new_title}'")
        return ChapterMetadata.model_validate(data)

    def apply_generated_text(
        self,
        project_path: Union[str, Path],
        chapter_id: str,
        text: str,
        mode: str = 'append'
    ) -> Chapter:
        """
        Apply AI-generated text to a chapter and save it.

        Args:
            mode: 'replace' the content or 'append' after a blank line
        """
        if mode not in APPLY_MODES:
            raise ValidationError(f"Apply mode must be one of: {', '.join(APPLY_MODES)}")

        with self.locks.hold(project_path):
            chapter = self.load_chapter(project_path, chapter_id)
            if mode == 'replace' or not chapter.content:
                content = text
            else:
                separator = "\n" if chapter.content.endswith("\n") else "\n\n"
                content = chapter.content + separator + text
            self.save_chapter(project_path, chapter_id, chapter.title, content)
            return self.load_chapter(project_path, chapter_id)
