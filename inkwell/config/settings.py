"""Configuration management using Pydantic.

Two layers:

* ``Settings`` - process environment (``INKWELL_*`` variables, ``.env``):
  where Inkwell keeps its own files and how it logs.
* ``AppSettings`` - the user-editable settings document (``settings.json``):
  AI engines, editor and git preferences, the projects root. It is merged
  with its defaults field by field on every read; unknown keys are dropped.
"""
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar
from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DEFAULT_AGENT_PROMPT,
    DEFAULT_AUTOSAVE_INTERVAL_MS,
    DEFAULT_BACKUP_INTERVAL_MS,
    DEFAULT_BRANCH,
    DEFAULT_ENGINE,
    DEFAULT_ENGINES,
    DEFAULT_FONT_FAMILY,
    DEFAULT_FONT_SIZE,
    DEFAULT_HOME_DIR,
    DEFAULT_MAX_TOKENS,
    DEFAULT_PROJECTS_DIR,
    DEFAULT_REMOTE,
    DEFAULT_REMOTE_HOST,
    DEFAULT_REMOTE_PORT,
    DEFAULT_SYSTEM_PROMPT,
    DEFAULT_TEMPERATURE,
    DEFAULT_THEME,
    MASKED_API_KEY,
    MAX_RECENT_PROJECTS,
    SETTINGS_FILE,
    VALID_THEMES,
)
from ..errors import NotFoundError, ParseError, ValidationError
from ..models.chapter import utc_now_iso
from ..storage import filesystem as fs
from ..utils.logging import get_logger

logger = get_logger("settings")


class Settings(BaseSettings):
    """Process settings loaded from environment variables and ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="INKWELL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    home_dir: Path = Field(
        default=DEFAULT_HOME_DIR,
        description="Directory holding settings.json, logs and backups"
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    remote_secret_key: Optional[str] = Field(
        default=None,
        description="Signing key for remote-access tokens (random per process if unset)"
    )
    remote_password: str = Field(
        default="",
        description="Password for the remote-access mirror (empty = development mode)"
    )
    remote_host: str = Field(default=DEFAULT_REMOTE_HOST)
    remote_port: int = Field(default=DEFAULT_REMOTE_PORT)

    @field_validator('home_dir')
    @classmethod
    def create_home_dir(cls, v: Path) -> Path:
        """Ensure the home directory exists."""
        v = Path(v).expanduser().resolve()
        v.mkdir(parents=True, exist_ok=True)
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR'}
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(sorted(valid_levels))}")
        return v.upper()

    @property
    def settings_file(self) -> Path:
        return self.home_dir / SETTINGS_FILE

    @property
    def backups_dir(self) -> Path:
        return self.home_dir / "backups"

    @property
    def exports_dir(self) -> Path:
        return self.home_dir / "exports"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# --- Settings document ---


class _SettingsSection(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class EngineConfig(_SettingsSection):
    """Endpoint and credentials for one AI provider."""

    api_key: str = Field("", alias='apiKey')
    base_url: str = Field(alias='baseURL')
    model: str
    name: Optional[str] = None


def _default_engines() -> Dict[str, EngineConfig]:
    return {name: EngineConfig.model_validate(config) for name, config in DEFAULT_ENGINES.items()}


class AISettings(_SettingsSection):
    engines: Dict[str, EngineConfig] = Field(default_factory=_default_engines)
    selected_engine: str = Field(DEFAULT_ENGINE, alias='selectedEngine')
    system_prompt: str = Field(DEFAULT_SYSTEM_PROMPT, alias='systemPrompt')
    agent_mode: bool = Field(False, alias='agentMode')
    agent_prompt: str = Field(DEFAULT_AGENT_PROMPT, alias='agentPrompt')
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = Field(DEFAULT_MAX_TOKENS, alias='maxTokens')

    @field_validator('temperature')
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError("Temperature must be between 0 and 2")
        return v


class EditorSettings(_SettingsSection):
    font_size: int = Field(DEFAULT_FONT_SIZE, alias='fontSize')
    font_family: str = Field(DEFAULT_FONT_FAMILY, alias='fontFamily')
    theme: str = DEFAULT_THEME
    auto_save: bool = Field(True, alias='autoSave')
    auto_save_interval: int = Field(DEFAULT_AUTOSAVE_INTERVAL_MS, alias='autoSaveInterval')
    custom_fonts: List[Dict[str, Any]] = Field(default_factory=list, alias='customFonts')

    @field_validator('auto_save_interval')
    @classmethod
    def validate_interval(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Autosave interval must be positive")
        return v


class GitSettings(_SettingsSection):
    user_name: str = Field("", alias='userName')
    user_email: str = Field("", alias='userEmail')
    default_remote: str = Field(DEFAULT_REMOTE, alias='defaultRemote')
    default_branch: str = Field(DEFAULT_BRANCH, alias='defaultBranch')


class GeneralSettings(_SettingsSection):
    language: str = "en"
    projects_dir: str = Field(str(DEFAULT_PROJECTS_DIR), alias='projectsDir')
    backup_enabled: bool = Field(True, alias='backupEnabled')
    backup_interval: int = Field(DEFAULT_BACKUP_INTERVAL_MS, alias='backupInterval')
    theme: str = DEFAULT_THEME
    auto_save: bool = Field(True, alias='autoSave')
    auto_save_interval: int = Field(DEFAULT_AUTOSAVE_INTERVAL_MS, alias='autoSaveInterval')

    @field_validator('theme')
    @classmethod
    def validate_theme(cls, v: str) -> str:
        if v not in VALID_THEMES:
            raise ValueError(f"Theme must be one of: {', '.join(VALID_THEMES)}")
        return v

    @property
    def projects_path(self) -> Path:
        return Path(self.projects_dir).expanduser()


class RecentProject(_SettingsSection):
    name: str
    path: str
    last_opened: str = Field(default_factory=utc_now_iso, alias='lastOpened')


class AppSettings(_SettingsSection):
    """The whole settings document; ``AppSettings()`` is the documented default."""

    ai: AISettings = Field(default_factory=AISettings)
    editor: EditorSettings = Field(default_factory=EditorSettings)
    git: GitSettings = Field(default_factory=GitSettings)
    general: GeneralSettings = Field(default_factory=GeneralSettings)
    recent_projects: List[RecentProject] = Field(default_factory=list, alias='recentProjects')

    def masked(self) -> "AppSettings":
        """Copy with every API key replaced by a placeholder."""
        copy = self.model_copy(deep=True)
        for engine in copy.ai.engines.values():
            if engine.api_key:
                engine.api_key = MASKED_API_KEY
        return copy


S = TypeVar('S', bound=_SettingsSection)


def _lookup(update: Mapping[str, Any], field_name: str, alias: Optional[str]):
    """Find a field in an update by its on-disk alias or its Python name."""
    if alias and alias in update:
        return True, update[alias]
    if field_name in update:
        return True, update[field_name]
    return False, None


def _invalid(message: str, lenient: bool, cause: Optional[Exception] = None):
    """Raise in strict mode; log and carry on in lenient mode."""
    if not lenient:
        raise ValidationError(message) from cause
    logger.warning(f"{message}; keeping the previous value")


def _merge_fields(current: S, update: Any, section: str, lenient: bool = False) -> S:
    """
    Overlay the declared fields of ``update`` on ``current``.

    Keys the section does not declare are ignored. In lenient mode each
    invalid field keeps its current value instead of failing the section.
    """
    if update is None:
        return current
    if not isinstance(update, Mapping):
        _invalid(f"Settings section '{section}' must be an object", lenient)
        return current

    model_cls: Type[S] = type(current)
    values = current.model_dump(by_alias=True)
    found_any = False
    for field_name, field in model_cls.model_fields.items():
        found, value = _lookup(update, field_name, field.alias)
        if not found:
            continue
        key = field.alias or field_name
        if lenient:
            candidate = {**values, key: value}
            try:
                model_cls.model_validate(candidate)
            except PydanticValidationError as e:
                _invalid(f"Invalid setting '{section}.{key}': {e.errors()[0]['msg']}", lenient)
                continue
        values[key] = value
        found_any = True

    if not found_any:
        return current
    try:
        return model_cls.model_validate(values)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid '{section}' settings: {e}") from e


def _merge_engines(current: Dict[str, EngineConfig], update: Any, lenient: bool = False) -> Dict[str, EngineConfig]:
    if update is None:
        return current
    if not isinstance(update, Mapping):
        _invalid("Settings section 'ai.engines' must be an object", lenient)
        return current

    engines = dict(current)
    for name, engine_update in update.items():
        if name in engines:
            merged = _merge_fields(engines[name], engine_update, f"ai.engines.{name}", lenient)
            # A masked key coming back from an export or the remote mirror means "unchanged"
            if merged.api_key == MASKED_API_KEY:
                merged = merged.model_copy(update={'api_key': engines[name].api_key})
            engines[name] = merged
        else:
            try:
                engine = EngineConfig.model_validate(engine_update)
            except PydanticValidationError as e:
                _invalid(f"Invalid engine '{name}': {e}", lenient, e)
                continue
            if engine.api_key == MASKED_API_KEY:
                engine.api_key = ""
            engines[name] = engine
    return engines


def merge_settings(current: AppSettings, update: Mapping[str, Any], lenient: bool = False) -> AppSettings:
    """
    Merge a (possibly partial) settings document onto ``current``.

    Missing keys keep their current value, present keys win, unknown keys are
    dropped. Engines are merged per provider so user-defined providers survive.

    Args:
        lenient: Keep the current value of each invalid field (with a
            warning) instead of rejecting the whole update

    Raises:
        ValidationError: If a present value has the wrong type or range
            (strict mode only)
    """
    if not isinstance(update, Mapping):
        raise ValidationError("Settings must be an object")

    current = current.model_copy(deep=True)
    ai_update = update.get('ai')
    ai = _merge_fields(current.ai, _without(ai_update, 'engines'), 'ai', lenient)
    if isinstance(ai_update, Mapping):
        ai = ai.model_copy(update={'engines': _merge_engines(current.ai.engines, ai_update.get('engines'), lenient)})
    if ai.selected_engine not in ai.engines:
        _invalid(f"Unknown AI engine: {ai.selected_engine}", lenient)
        fallback = current.ai.selected_engine if current.ai.selected_engine in ai.engines else DEFAULT_ENGINE
        ai = ai.model_copy(update={'selected_engine': fallback})

    found, recent = _lookup(update, 'recent_projects', 'recentProjects')
    recent_projects = current.recent_projects
    if found:
        recent_projects = _merge_recent(recent, lenient)

    return AppSettings(
        ai=ai,
        editor=_merge_fields(current.editor, update.get('editor'), 'editor', lenient),
        git=_merge_fields(current.git, update.get('git'), 'git', lenient),
        general=_merge_fields(current.general, update.get('general'), 'general', lenient),
        recent_projects=recent_projects[:MAX_RECENT_PROJECTS],
    )


def _merge_recent(recent: Any, lenient: bool) -> List[RecentProject]:
    if not isinstance(recent, list):
        if recent is not None:
            _invalid("Recent projects must be a list", lenient)
        return []
    projects = []
    for item in recent:
        try:
            projects.append(RecentProject.model_validate(item))
        except PydanticValidationError as e:
            _invalid(f"Invalid recent project entry: {e}", lenient, e)
    return projects


def _without(update: Any, key: str) -> Any:
    if isinstance(update, Mapping):
        return {k: v for k, v in update.items() if k != key}
    return update


class SettingsStore:
    """
    Read-merge-write persistence for the settings document.

    Last write wins; there is a single writer per process.
    """

    def __init__(self, path: Path, defaults: Optional[AppSettings] = None):
        """
        Initialize settings store.

        Args:
            path: Location of settings.json
            defaults: Default document (``AppSettings()`` if not provided)
        """
        self.path = Path(path)
        self.defaults = defaults or AppSettings()
        self.logger = logger

    def load(self) -> AppSettings:
        """
        Load settings merged with defaults.

        A missing file yields defaults. An unreadable file yields defaults with
        a warning. Invalid values keep their default and are logged, the rest
        of the document is used as stored.
        """
        try:
            return self._read()
        except ParseError as e:
            self.logger.warning(f"Ignoring unreadable settings file: {e}")
            return self.defaults.model_copy(deep=True)

    def _read(self) -> AppSettings:
        """
        Load for a read-modify-write.

        Raises:
            ParseError: If the file exists but cannot be parsed, so it is
                never overwritten with defaults
        """
        try:
            data = fs.read_json(self.path)
        except NotFoundError:
            return self.defaults.model_copy(deep=True)
        if not isinstance(data, Mapping):
            raise ParseError(f"{self.path} does not hold a JSON object")
        return merge_settings(self.defaults, data, lenient=True)

    def save(self, settings: AppSettings) -> AppSettings:
        fs.write_json(self.path, settings.to_json())
        return settings

    def update(self, partial: Mapping[str, Any]) -> AppSettings:
        """
        Merge ``partial`` into the stored settings and write them back.

        Raises:
            ParseError: If the stored file is unreadable (use ``reset`` first)
            ValidationError: If ``partial`` holds an invalid value
        """
        merged = merge_settings(self._read(), partial)
        self.logger.info(f"Settings updated: sections={sorted(k for k in partial)}")
        return self.save(merged)

    def reset(self) -> AppSettings:
        self.logger.info("Settings reset to defaults")
        return self.save(self.defaults.model_copy(deep=True))

    def export_to(self, path: Path) -> Path:
        """Write the settings to ``path`` with API keys masked."""
        fs.write_json(path, self.load().masked().to_json())
        return Path(path)

    def import_from(self, path: Path) -> AppSettings:
        """Merge settings from an exported file; masked keys keep their current value."""
        data = fs.read_json(path)
        return self.update(data)

    def recent_projects(self) -> List[RecentProject]:
        return self.load().recent_projects

    def add_recent_project(self, project_path: Path) -> List[RecentProject]:
        """Move (or add) a project to the front of the recent list."""
        project_path = Path(project_path)
        settings = self._read()
        recent = [item for item in settings.recent_projects if item.path != str(project_path)]
        recent.insert(0, RecentProject(name=project_path.name, path=str(project_path)))
        settings.recent_projects = recent[:MAX_RECENT_PROJECTS]
        self.save(settings)
        return settings.recent_projects
