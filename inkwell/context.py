"""Application context: the services one Inkwell process shares."""
from pathlib import Path
from typing import Optional, Union

from .api import AIClient
from .config.settings import AppSettings, Settings, SettingsStore, get_settings
from .session import EditorSession
from .storage.characters import CharacterService
from .storage.chapters import ChapterService
from .storage.locks import ProjectLocks
from .storage.manifest import ProjectManager
from .utils.logging import get_logger

logger = get_logger("context")


class AppContext:
    """
    Owns settings, services, the lock registry and the open editor session.

    The CLI, the remote mirror and autosave all go through one context so
    they serialize manifest writes on the same locks.
    """

    def __init__(self, settings: Optional[Settings] = None, settings_store: Optional[SettingsStore] = None):
        """
        Initialize application context.

        Args:
            settings: Environment settings (cached ``get_settings()`` if None)
            settings_store: Settings document store (``<home>/settings.json`` if None)
        """
        self.settings = settings or get_settings()
        self.settings_store = settings_store or SettingsStore(self.settings.settings_file)
        self.locks = ProjectLocks()
        self.chapters = ChapterService(self.locks)
        self.characters = CharacterService(self.locks)
        self.session: Optional[EditorSession] = None
        self._app_settings: Optional[AppSettings] = None
        self._ai_client: Optional[AIClient] = None

    @property
    def app_settings(self) -> AppSettings:
        """The settings document, loaded on first use."""
        if self._app_settings is None:
            self._app_settings = self.settings_store.load()
        return self._app_settings

    def reload_settings(self, app_settings: Optional[AppSettings] = None) -> AppSettings:
        """Replace the cached document after an update."""
        self._app_settings = app_settings or self.settings_store.load()
        if self._ai_client is not None:
            self._ai_client.settings = self._app_settings.ai
        return self._app_settings

    @property
    def projects_root(self) -> Path:
        return self.app_settings.general.projects_path

    @property
    def projects(self) -> ProjectManager:
        """Project manager bound to the current projects root and git identity."""
        return ProjectManager(self.projects_root, locks=self.locks, git_identity=self.app_settings.git)

    @property
    def ai_client(self) -> AIClient:
        if self._ai_client is None:
            self._ai_client = AIClient(self.app_settings.ai)
        return self._ai_client

    def resolve_project(self, project: Union[str, Path]) -> Path:
        """
        Map a project id (directory name under the root) or a path to a directory.

        Paths (absolute, or containing a separator) are used as given.
        """
        if isinstance(project, Path) or Path(project).is_absolute() or '/' in project or '\\' in project:
            return Path(project).expanduser()
        return self.projects.project_path(project)

    def open_session(self, project: Union[str, Path], chapter_id: str) -> EditorSession:
        """Open a chapter in the editor session, closing any previous one."""
        editor = self.app_settings.editor
        if self.session is None:
            self.session = EditorSession(
                self.chapters,
                autosave_interval_ms=editor.auto_save_interval,
                autosave_enabled=editor.auto_save
            )
        else:
            self.session.close()
        self.session.open_chapter(self.resolve_project(project), chapter_id)
        return self.session

    async def aclose(self):
        """Tear down the editor session and the AI client."""
        if self.session is not None:
            if self.session.is_dirty:
                await self.session.autosave()
            self.session.close()
            self.session = None
        if self._ai_client is not None:
            await self._ai_client.close()
            self._ai_client = None
        logger.debug("Application context closed")
