"""UI boundary: one method per user action, each returning an OperationResult.

Nothing raised by the services crosses this boundary; failures are logged
here and handed back as ``OperationResult(success=False, error=...)``.
"""
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Union

from .config.constants import EXPORT_FORMATS
from .context import AppContext
from .errors import AIError, InkwellError, NotFoundError, ParseError, ValidationError
from .export import MarkdownExporter
from .models.results import OperationResult
from .storage.git_manager import GitManager
from .utils.logging import get_logger

logger = get_logger("workspace")

ProjectRef = Union[str, Path]


class Workspace:
    """Actions available to the CLI and the remote mirror."""

    def __init__(self, context: Optional[AppContext] = None):
        self.context = context or AppContext()

    def _call(self, action: str, func: Callable[..., Any], *args, **kwargs) -> OperationResult:
        try:
            return OperationResult.ok(func(*args, **kwargs))
        except InkwellError as e:
            logger.warning(f"{action} failed: {e}")
            return OperationResult.fail(str(e), e.kind)
        except Exception as e:
            logger.exception(f"{action} failed unexpectedly")
            return OperationResult.fail(f"Unexpected error: {e}")

    def _path(self, project: ProjectRef) -> Path:
        return self.context.resolve_project(project)

    # --- Projects ---

    def list_projects(self) -> OperationResult:
        return self._call("list projects", self.context.projects.list_projects)

    def create_project(self, attributes: Mapping[str, Any]) -> OperationResult:
        return self._call("create project", self.context.projects.create_project, attributes)

    def load_project(self, project: ProjectRef) -> OperationResult:
        """Load a project and move it to the front of the recent list."""
        def load():
            path = self._path(project)
            loaded = self.context.projects.load_project(path)
            try:
                recent = self.context.settings_store.add_recent_project(path)
            except ParseError as e:
                logger.warning(f"Recent projects not updated: {e}")
            else:
                self.context.app_settings.recent_projects = recent
            return loaded

        return self._call("load project", load)

    def save_project_metadata(self, project: ProjectRef, updates: Mapping[str, Any]) -> OperationResult:
        return self._call(
            "save project metadata",
            lambda: self.context.projects.save_project_metadata(self._path(project), updates)
        )

    def delete_project(self, project: ProjectRef) -> OperationResult:
        return self._call("delete project", lambda: self.context.projects.delete_project(self._path(project)))

    def import_project(self, source: Union[str, Path, bytes]) -> OperationResult:
        return self._call("import project", self.context.projects.import_project, source)

    def export_project(
        self,
        project: ProjectRef,
        fmt: str = 'zip',
        destination: Optional[Path] = None
    ) -> OperationResult:
        """
        Export a project as a zip archive or a single manuscript file.

        Args:
            fmt: 'zip', 'md' or 'txt'
            destination: Directory for archives, file path for manuscripts;
                archives default to the backups directory, manuscripts to
                the exports directory
        """
        def export():
            path = self._path(project)
            if fmt == 'zip':
                return self.context.projects.export_archive(path, destination or self.context.settings.backups_dir)
            if fmt not in EXPORT_FORMATS:
                raise ValidationError(f"Export format must be one of: zip, {', '.join(EXPORT_FORMATS)}")
            loaded = self.context.projects.load_project(path)
            return MarkdownExporter(loaded, self.context.settings.exports_dir).export(destination, fmt=fmt)

        return self._call("export project", export)

    # --- Chapters ---

    def list_chapters(self, project: ProjectRef) -> OperationResult:
        """Chapter metadata (without content) in manifest order."""
        def list_chapters():
            loaded = self.context.projects.load_project(self._path(project))
            return [chapter.metadata() for chapter in loaded.chapters]

        return self._call("list chapters", list_chapters)

    def create_chapter(self, project: ProjectRef, title: str) -> OperationResult:
        return self._call("create chapter", lambda: self.context.chapters.create_chapter(self._path(project), title))

    def save_chapter(self, project: ProjectRef, chapter_id: str, title: str, content: str) -> OperationResult:
        return self._call(
            "save chapter",
            lambda: self.context.chapters.save_chapter(self._path(project), chapter_id, title, content)
        )

    def load_chapter(self, project: ProjectRef, chapter_id: str) -> OperationResult:
        return self._call("load chapter", lambda: self.context.chapters.load_chapter(self._path(project), chapter_id))

    def rename_chapter(self, project: ProjectRef, chapter_id: str, new_title: str) -> OperationResult:
        return self._call(
            "rename chapter",
            lambda: self.context.chapters.rename_chapter(self._path(project), chapter_id, new_title)
        )

    def delete_chapter(self, project: ProjectRef, chapter_id: str) -> OperationResult:
        return self._call(
            "delete chapter",
            lambda: self.context.chapters.delete_chapter(self._path(project), chapter_id)
        )

    def apply_generated_text(self, project: ProjectRef, chapter_id: str, text: str, mode: str = 'append') -> OperationResult:
        return self._call(
            "apply generated text",
            lambda: self.context.chapters.apply_generated_text(self._path(project), chapter_id, text, mode)
        )

    def edit_chapter(
        self,
        project: ProjectRef,
        chapter_id: str,
        editor: Callable[[str], Optional[str]]
    ) -> OperationResult:
        """
        Open a chapter in the editor session and save what ``editor`` returns.

        ``editor`` gets the current text and returns the new text, or None to
        leave the chapter untouched. The session is closed afterwards.
        """
        def edit():
            session = self.context.open_session(project, chapter_id)
            try:
                text = editor(session.buffer)
                if text is not None:
                    session.edit(text)
                if session.is_dirty:
                    session.save()
                return self.context.chapters.load_chapter(session.project_path, session.chapter_id)
            finally:
                session.close()

        return self._call("edit chapter", edit)

    # --- Characters and world settings ---

    def list_charset(self, project: ProjectRef, kind: str = 'character') -> OperationResult:
        return self._call(
            f"list {kind}s",
            lambda: self.context.characters.list_entries(self._path(project), kind)
        )

    def save_charset_entry(self, project: ProjectRef, kind: str, fields: Mapping[str, Any]) -> OperationResult:
        return self._call(
            f"save {kind}",
            lambda: self.context.characters.save_entry(self._path(project), kind, fields)
        )

    def delete_charset_entry(self, project: ProjectRef, kind: str, entry_id: str) -> OperationResult:
        def delete():
            if not self.context.characters.delete_entry(self._path(project), kind, entry_id):
                raise NotFoundError(f"No {kind} with id {entry_id}")
            return True

        return self._call(f"delete {kind}", delete)

    # --- Settings ---

    def get_settings(self, masked: bool = True) -> OperationResult:
        def get():
            settings = self.context.reload_settings()
            return settings.masked() if masked else settings

        return self._call("get settings", get)

    def update_settings(self, partial: Mapping[str, Any]) -> OperationResult:
        return self._call(
            "update settings",
            lambda: self.context.reload_settings(self.context.settings_store.update(partial)).masked()
        )

    def reset_settings(self) -> OperationResult:
        return self._call(
            "reset settings",
            lambda: self.context.reload_settings(self.context.settings_store.reset()).masked()
        )

    def export_settings(self, path: Path) -> OperationResult:
        return self._call("export settings", self.context.settings_store.export_to, path)

    def import_settings(self, path: Path) -> OperationResult:
        return self._call(
            "import settings",
            lambda: self.context.reload_settings(self.context.settings_store.import_from(path)).masked()
        )

    def recent_projects(self) -> OperationResult:
        return self._call("recent projects", self.context.settings_store.recent_projects)

    # --- Git ---

    def _git(self, project: ProjectRef) -> GitManager:
        return GitManager(self._path(project), identity=self.context.app_settings.git)

    def _require_repository(self, git: GitManager):
        if not git.is_repository():
            raise ValidationError(f"{git.project_path.name} is not a git repository")

    def git_init(self, project: ProjectRef) -> OperationResult:
        def init():
            path = self._path(project)
            if not self.context.projects.enable_git(path):
                raise InkwellError(f"git init failed in {path}")
            return True

        return self._call("git init", init)

    def git_status(self, project: ProjectRef) -> OperationResult:
        def status():
            git = self._git(project)
            self._require_repository(git)
            return {'branch': git.current_branch(), 'changes': git.status()}

        return self._call("git status", status)

    def git_commit(self, project: ProjectRef, message: str) -> OperationResult:
        def commit():
            if not message or not message.strip():
                raise ValidationError("Commit message must not be empty")
            git = self._git(project)
            self._require_repository(git)
            if not git.commit(message):
                raise InkwellError("git commit failed")
            return git.log(limit=1)

        return self._call("git commit", commit)

    def git_log(self, project: ProjectRef, limit: int = 10) -> OperationResult:
        def log():
            git = self._git(project)
            self._require_repository(git)
            return git.log(limit=limit)

        return self._call("git log", log)

    def git_diff(self, project: ProjectRef, first: Optional[str] = None, second: Optional[str] = None) -> OperationResult:
        def diff():
            git = self._git(project)
            self._require_repository(git)
            return git.diff(first, second)

        return self._call("git diff", diff)

    def git_branches(self, project: ProjectRef) -> OperationResult:
        def branches():
            git = self._git(project)
            self._require_repository(git)
            return {'current': git.current_branch(), 'branches': git.list_branches()}

        return self._call("git branches", branches)

    def git_push(self, project: ProjectRef, remote: Optional[str] = None, branch: Optional[str] = None) -> OperationResult:
        def push():
            git = self._git(project)
            self._require_repository(git)
            return self._git_result(git.push(remote, branch))

        return self._call("git push", push)

    def git_pull(self, project: ProjectRef, remote: Optional[str] = None, branch: Optional[str] = None) -> OperationResult:
        def pull():
            git = self._git(project)
            self._require_repository(git)
            return self._git_result(git.pull(remote, branch))

        return self._call("git pull", pull)

    @staticmethod
    def _git_result(result):
        if not result.success:
            raise InkwellError(result.error or "git command failed")
        return result.output

    # --- AI ---

    async def generate(
        self,
        prompt: str,
        context: Optional[str] = None,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> OperationResult:
        """Generate text with the configured engine."""
        try:
            text = await self.context.ai_client.generate(
                prompt,
                provider=provider,
                model=model,
                system_prompt=system_prompt,
                context=context,
                temperature=temperature,
                max_tokens=max_tokens
            )
        except AIError as e:
            logger.warning(f"generate failed: {e}")
            return OperationResult.fail(str(e), e.kind)
        return OperationResult.ok(text)

    async def test_ai_connection(self, provider: Optional[str] = None) -> OperationResult:
        return await self.context.ai_client.test_connection(provider)
