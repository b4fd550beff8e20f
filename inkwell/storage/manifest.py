"""Project manifest management: create, load, list, import, export, delete.

A project is a directory under the projects root::

    <root>/<name>/
        project.json
        chapters/<chapterId>/{content.md,metadata.json}
        assets/

The manifest's ``chapters`` array is a denormalized index. It decides listing
order and presence hints; the per-chapter files are authoritative for content
and metadata, so loading always re-derives the chapter list from disk.
"""
import io
import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import Any, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ..config.constants import (
    ASSETS_DIR,
    CHAPTER_CONTENT_FILE,
    CHAPTER_METADATA_FILE,
    CHAPTERS_DIR,
    PROJECT_FILE,
)
from ..errors import ConflictError, InkwellError, NotFoundError, ParseError, StoreIOError, ValidationError
from ..models.chapter import Chapter, ChapterEntry, parse_timestamp, utc_now_iso, validate_path_segment
from ..models.project import Project, ProjectCreation, ProjectManifest, ProjectSettings, ProjectSummary
from ..utils.logging import get_logger
from ..utils.wordcount import count_words
from . import filesystem as fs
from .git_manager import GitManager
from .locks import ProjectLocks

logger = get_logger("manifest")

# Manifest fields a caller may edit directly; chapters go through ChapterService
EDITABLE_FIELDS = ('name', 'description', 'author', 'genre', 'characters', 'settings')

# Archive entries that are never part of a project
_ARCHIVE_NOISE = ('__MACOSX',)


def manifest_path(project_path: Union[str, Path]) -> Path:
    return Path(project_path) / PROJECT_FILE


def read_manifest(project_path: Union[str, Path]) -> ProjectManifest:
    """
    Read and validate ``project.json``.

    Raises:
        NotFoundError: If the manifest is absent
        ParseError: If it is not valid JSON or not a valid manifest
    """
    path = manifest_path(project_path)
    data = fs.read_json(path)
    if not isinstance(data, dict):
        raise ParseError(f"Manifest {path} is not a JSON object")
    if not data.get('name'):
        # Manifests written by hand sometimes omit the name; the directory is the identity
        data['name'] = Path(project_path).name
    try:
        return ProjectManifest.model_validate(data)
    except PydanticValidationError as e:
        raise ParseError(f"Invalid manifest {path}: {e}") from e


def write_manifest(project_path: Union[str, Path], manifest: ProjectManifest) -> None:
    fs.write_json(manifest_path(project_path), manifest.to_json())


class ProjectManager:
    """CRUD over project directories and their manifests."""

    def __init__(
        self,
        projects_root: Path,
        locks: Optional[ProjectLocks] = None,
        git_identity: Optional[Any] = None
    ):
        """
        Initialize project manager.

        Args:
            projects_root: Directory holding one subdirectory per project
            locks: Lock registry shared with the chapter service
            git_identity: Git preferences used when initializing repositories
        """
        self.projects_root = Path(projects_root).expanduser()
        self.locks = locks or ProjectLocks()
        self.git_identity = git_identity

    def project_path(self, name: str) -> Path:
        """Resolve a project name (directory name) under the root."""
        return self.projects_root / validate_path_segment(name, "project name")

    # --- Create ---

    def create_project(self, attributes: Mapping[str, Any]) -> ProjectCreation:
        """
        Create a new project directory with an empty manifest.

        Args:
            attributes: ``name`` (required), optional ``description``,
                ``author``, ``genre``, ``word_goal``/``wordGoal``, ``style``,
                ``use_git``/``useGit``

        Returns:
            ProjectCreation with the project path and git init outcome

        Raises:
            ValidationError: If the name is empty or not a valid directory name
            ConflictError: If a directory with that name already exists
        """
        name = attributes.get('name')
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Project name must be a non-empty string")
        name = name.strip()
        project_dir = self.project_path(name)

        if project_dir.exists():
            raise ConflictError(f"Project '{name}' already exists")

        fs.ensure_dir(self.projects_root)
        try:
            project_dir.mkdir()
        except FileExistsError as e:
            raise ConflictError(f"Project '{name}' already exists") from e
        except OSError as e:
            raise StoreIOError(f"Cannot create {project_dir}: {e}") from e

        use_git = bool(attributes.get('use_git', attributes.get('useGit', False)))
        now = utc_now_iso()
        manifest = ProjectManifest(
            name=name,
            description=attributes.get('description') or "",
            author=attributes.get('author') or "",
            genre=attributes.get('genre') or "",
            created_at=now,
            updated_at=now,
            settings=ProjectSettings(
                word_goal=_as_int(attributes.get('word_goal', attributes.get('wordGoal', 0)), "word goal"),
                style=attributes.get('style') or "default",
            ),
        )

        with self.locks.hold(project_dir):
            write_manifest(project_dir, manifest)
            fs.ensure_dir(project_dir / CHAPTERS_DIR)
            fs.ensure_dir(project_dir / ASSETS_DIR)

            result = ProjectCreation(path=project_dir)
            if use_git:
                result.git_initialized = self.enable_git(project_dir, "Initial project creation")
                if not result.git_initialized:
                    result.git_error = "git init failed; the project was created without version control"
                    logger.warning(f"Project '{name}' created but git init failed")

        logger.info(f"Created project '{name}' at {project_dir}")
        return result

    def enable_git(self, project_path: Union[str, Path], message: str = "Initial commit") -> bool:
        """
        Initialize a repository in the project, mark the manifest and commit.

        Returns:
            False if git init failed (the manifest is left unchanged)
        """
        project_path = Path(project_path)
        git = GitManager(project_path, self.git_identity)
        with self.locks.hold(project_path):
            if not git.init():
                return False
            manifest = read_manifest(project_path)
            manifest.git_enabled = True
            manifest.touch()
            write_manifest(project_path, manifest)
            git.commit(message)
        return True

    # --- Load ---

    def load_project(self, project_path: Union[str, Path]) -> Project:
        """
        Load a project with its chapters re-derived from the ``chapters/`` scan.

        Chapter directories whose metadata is missing or malformed are skipped;
        manifest entries without a backing directory are treated as stale and
        left out of the result (the manifest on disk is not rewritten).

        Raises:
            NotFoundError: If the project or its manifest does not exist
            ParseError: If the manifest is malformed
        """
        project_path = Path(project_path)
        manifest = read_manifest(project_path)
        chapters = self._scan_chapters(project_path, manifest)

        listed = {entry.id for entry in manifest.chapters}
        found = {chapter.id for chapter in chapters}
        stale = listed - found
        if stale:
            logger.warning(f"{project_path.name}: manifest lists missing chapters {sorted(stale)}")

        manifest.chapters = [ChapterEntry.from_metadata(chapter) for chapter in chapters]
        return Project(path=project_path, manifest=manifest, chapters=chapters)

    def _scan_chapters(self, project_path: Path, manifest: ProjectManifest) -> List[Chapter]:
        chapters_dir = project_path / CHAPTERS_DIR
        chapters: List[Chapter] = []

        for directory in fs.list_subdirectories(chapters_dir):
            chapter_dir = chapters_dir / directory
            try:
                data = fs.read_json(chapter_dir / CHAPTER_METADATA_FILE)
                if not isinstance(data, dict):
                    raise ParseError(f"{chapter_dir / CHAPTER_METADATA_FILE} is not a JSON object")
                if data.get('id') != directory:
                    # The directory name is what every operation keys on
                    data['id'] = directory
                metadata = Chapter.model_validate(data)
            except (NotFoundError, ParseError, PydanticValidationError) as e:
                logger.warning(f"Skipping chapter '{directory}' in {project_path.name}: {e}")
                continue

            try:
                metadata.content = fs.read_text(chapter_dir / CHAPTER_CONTENT_FILE)
            except NotFoundError:
                metadata.content = ""
            except ParseError as e:
                logger.warning(f"Skipping chapter '{directory}' in {project_path.name}: {e}")
                continue
            chapters.append(metadata)

        order = {entry.id: index for index, entry in enumerate(manifest.chapters)}
        unlisted = len(order)
        chapters.sort(key=lambda ch: (order.get(ch.id, unlisted), parse_timestamp(ch.created_at), ch.id))
        return chapters

    # --- Update ---

    def save_project_metadata(self, project_path: Union[str, Path], updates: Mapping[str, Any]) -> ProjectManifest:
        """
        Edit manifest-level fields and bump ``updatedAt``.

        Raises:
            ValidationError: If ``updates`` touches a field that is not editable
        """
        unknown = [key for key in updates if key not in EDITABLE_FIELDS]
        if unknown:
            raise ValidationError(f"Cannot edit project fields: {', '.join(sorted(unknown))}")

        project_path = Path(project_path)
        with self.locks.hold(project_path):
            manifest = read_manifest(project_path)
            data = manifest.to_json()
            for key, value in updates.items():
                if key == 'settings':
                    if not isinstance(value, Mapping):
                        raise ValidationError("Project settings must be an object")
                    data['settings'] = {**data.get('settings', {}), **value}
                elif key == 'name':
                    if not isinstance(value, str) or not value.strip():
                        raise ValidationError("Project name must be a non-empty string")
                    data['name'] = value.strip()
                else:
                    data[key] = value
            try:
                updated = ProjectManifest.model_validate(data)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid project fields: {e}") from e
            updated.touch()
            write_manifest(project_path, updated)

        logger.info(f"Updated project metadata for {project_path.name}: {sorted(updates)}")
        return updated

    # --- Delete ---

    def delete_project(self, project_path: Union[str, Path]) -> None:
        """Recursively remove a project; deleting a missing project is a no-op."""
        project_path = Path(project_path)
        with self.locks.hold(project_path):
            fs.remove_tree(project_path)
        logger.info(f"Deleted project {project_path}")

    # --- List ---

    def list_projects(self) -> List[ProjectSummary]:
        """
        Summarize every valid project under the root, newest first.

        A directory without a readable manifest is skipped with a warning; one
        broken project never hides the others.
        """
        summaries: List[ProjectSummary] = []
        for name in fs.list_project_directories(self.projects_root):
            if name.startswith('.'):
                continue
            project_path = self.projects_root / name
            try:
                summaries.append(self._summarize(project_path))
            except InkwellError as e:
                logger.warning(f"Skipping project '{name}': {e}")

        summaries.sort(key=lambda s: parse_timestamp(s.last_modified), reverse=True)
        return summaries

    def _summarize(self, project_path: Path) -> ProjectSummary:
        manifest = read_manifest(project_path)
        return ProjectSummary(
            path=project_path,
            title=manifest.name,
            description=manifest.description,
            author=manifest.author,
            genre=manifest.genre,
            created=manifest.created_at,
            last_modified=manifest.updated_at,
            word_count=self._count_chapter_words(project_path),
        )

    def _count_chapter_words(self, project_path: Path) -> int:
        chapters_dir = project_path / CHAPTERS_DIR
        if not chapters_dir.is_dir():
            return 0
        total = 0
        for md in sorted(chapters_dir.rglob('*.md')):
            try:
                total += count_words(fs.read_text(md))
            except ParseError as e:
                logger.warning(f"Not counting words of {md}: {e}")
        return total

    # --- Import / export ---

    def import_project(self, source: Union[str, Path, bytes]) -> Path:
        """
        Import a zipped project, renaming on collision.

        The archive must contain ``project.json`` at its root or exactly one
        directory level deep. If the declared name is taken, ``name_1``,
        ``name_2``, ... are tried in turn. The temporary extraction directory
        is removed on success and on failure.

        Args:
            source: Path to a .zip file or the archive bytes

        Returns:
            Path of the imported project directory

        Raises:
            ParseError: If the archive or its manifest is unreadable
            NotFoundError: If the archive holds no project.json
        """
        temp_dir = Path(tempfile.mkdtemp(prefix="inkwell-import-"))
        try:
            self._extract_archive(source, temp_dir)
            extracted_root = self._locate_project_root(temp_dir)
            manifest = read_manifest(extracted_root)

            base_name = validate_path_segment(manifest.name.strip(), "project name")
            fs.ensure_dir(self.projects_root)
            target = self._unique_project_path(base_name)
            fs.copy_tree(extracted_root, target)

            with self.locks.hold(target):
                imported = read_manifest(target)
                now = utc_now_iso()
                imported.created_at = now
                imported.updated_at = now
                write_manifest(target, imported)

            logger.info(f"Imported project '{base_name}' as {target.name}")
            return target
        finally:
            try:
                fs.remove_tree(temp_dir)
            except InkwellError as e:
                logger.warning(f"Could not remove temporary import directory {temp_dir}: {e}")

    def _extract_archive(self, source: Union[str, Path, bytes], destination: Path) -> None:
        try:
            archive_file = io.BytesIO(source) if isinstance(source, (bytes, bytearray)) else Path(source)
            with zipfile.ZipFile(archive_file) as archive:
                root = destination.resolve()
                for member in archive.namelist():
                    target = (destination / member).resolve()
                    if target != root and root not in target.parents:
                        raise ValidationError(f"Archive member escapes extraction directory: {member}")
                archive.extractall(destination)
        except FileNotFoundError as e:
            raise NotFoundError(f"Archive not found: {source}") from e
        except zipfile.BadZipFile as e:
            raise ParseError(f"Not a valid zip archive: {e}") from e

    def _locate_project_root(self, extracted: Path) -> Path:
        if (extracted / PROJECT_FILE).is_file():
            return extracted

        candidates = [
            extracted / name for name in fs.list_subdirectories(extracted)
            if name not in _ARCHIVE_NOISE and (extracted / name / PROJECT_FILE).is_file()
        ]
        if not candidates:
            raise NotFoundError(f"No {PROJECT_FILE} found in archive")
        if len(candidates) > 1:
            raise ValidationError(f"Archive contains {len(candidates)} projects; expected one")
        return candidates[0]

    def _unique_project_path(self, name: str) -> Path:
        candidate = self.projects_root / name
        suffix = 1
        while candidate.exists():
            candidate = self.projects_root / f"{name}_{suffix}"
            suffix += 1
        return candidate

    def export_archive(self, project_path: Union[str, Path], dest_dir: Union[str, Path]) -> Path:
        """
        Zip a project directory (importable with ``import_project``).

        Returns:
            Path of the created archive
        """
        project_path = Path(project_path)
        manifest = read_manifest(project_path)
        stamp = utc_now_iso().replace(':', '-').replace('.', '-')
        dest_dir = fs.ensure_dir(dest_dir)
        base_name = dest_dir / f"{project_path.name}-{stamp}"

        with self.locks.hold(project_path):
            try:
                archive = shutil.make_archive(str(base_name), 'zip', root_dir=project_path)
            except OSError as e:
                raise StoreIOError(f"Cannot archive {project_path}: {e}") from e

        logger.info(f"Archived project '{manifest.name}' to {archive}")
        return Path(archive)


def _as_int(value: Any, what: str) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid {what}: {value!r}") from e
