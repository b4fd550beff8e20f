"""Project data models."""
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config.constants import SCHEMA_VERSION
from .chapter import Chapter, ChapterEntry, utc_now_iso


class ProjectSettings(BaseModel):
    """Per-project writing preferences stored in the manifest."""

    model_config = ConfigDict(populate_by_name=True, extra='allow')

    word_goal: int = Field(0, alias='wordGoal')
    style: str = "default"


class ProjectManifest(BaseModel):
    """
    Contents of ``project.json``.

    Unknown keys are kept (``extra='allow'``) so that fields written by other
    tools survive a rewrite.
    """

    model_config = ConfigDict(populate_by_name=True, extra='allow')

    name: str
    description: str = ""
    author: str = ""
    genre: str = ""
    created_at: str = Field(default_factory=utc_now_iso, alias='createdAt')
    updated_at: str = Field(default_factory=utc_now_iso, alias='updatedAt')
    git_enabled: bool = Field(False, alias='gitEnabled')
    schema_version: int = Field(SCHEMA_VERSION, alias='schemaVersion')
    chapters: List[ChapterEntry] = Field(default_factory=list)
    characters: List[Any] = Field(default_factory=list)
    settings: ProjectSettings = Field(default_factory=ProjectSettings)

    @field_validator('chapters', mode='before')
    @classmethod
    def drop_malformed_entries(cls, v: Any) -> List[Any]:
        """Older manifests may hold nulls or id-less entries; ignore them."""
        if not isinstance(v, list):
            return []
        return [entry for entry in v if isinstance(entry, dict) and entry.get('id')]

    @field_validator('characters', mode='before')
    @classmethod
    def coerce_characters(cls, v: Any) -> List[Any]:
        return v if isinstance(v, list) else []

    @field_validator('settings', mode='before')
    @classmethod
    def coerce_settings(cls, v: Any) -> Any:
        return v if isinstance(v, dict) else {}

    def touch(self, timestamp: Optional[str] = None):
        """Update the last modified timestamp."""
        self.updated_at = timestamp or utc_now_iso()

    def find_chapter(self, chapter_id: str) -> Optional[ChapterEntry]:
        """Get the manifest entry for a chapter id, if listed."""
        for entry in self.chapters:
            if entry.id == chapter_id:
                return entry
        return None

    def upsert_chapter(self, entry: ChapterEntry) -> bool:
        """
        Replace the entry with the same id, or append it.

        Returns:
            True if the entry was appended (chapter newly registered)
        """
        for index, existing in enumerate(self.chapters):
            if existing.id == entry.id:
                self.chapters[index] = entry
                return False
        self.chapters.append(entry)
        return True

    def remove_chapter(self, chapter_id: str) -> bool:
        """Prune a chapter entry. Returns True if one was removed."""
        before = len(self.chapters)
        self.chapters = [entry for entry in self.chapters if entry.id != chapter_id]
        return len(self.chapters) != before

    def to_json(self) -> Dict[str, Any]:
        """Serialize with on-disk (camelCase) keys."""
        return self.model_dump(by_alias=True)


class Project(BaseModel):
    """A loaded project: manifest plus the chapters found on disk."""

    path: Path
    manifest: ProjectManifest
    chapters: List[Chapter] = Field(default_factory=list)

    @property
    def name(self) -> str:
        return self.manifest.name

    @property
    def word_count(self) -> int:
        """Total words across loaded chapters."""
        return sum(chapter.word_count for chapter in self.chapters)

    def get_chapter(self, chapter_id: str) -> Optional[Chapter]:
        for chapter in self.chapters:
            if chapter.id == chapter_id:
                return chapter
        return None

    def to_json(self) -> Dict[str, Any]:
        data = self.manifest.to_json()
        data['chapters'] = [chapter.to_json() for chapter in self.chapters]
        data['path'] = str(self.path)
        data['wordCount'] = self.word_count
        return data


class ProjectSummary(BaseModel):
    """Listing row for a project, derived without loading every chapter."""

    model_config = ConfigDict(populate_by_name=True)

    path: Path
    title: str
    description: str = ""
    author: str = ""
    genre: str = ""
    created: str = ""
    last_modified: str = Field("", alias='lastModified')
    word_count: int = Field(0, alias='wordCount')

    @property
    def directory_name(self) -> str:
        return self.path.name

    def to_json(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True)
        data['path'] = str(self.path)
        data['id'] = self.directory_name
        return data


class ProjectCreation(BaseModel):
    """Outcome of creating a project; git init failure is not fatal."""

    path: Path
    git_initialized: bool = False
    git_error: Optional[str] = None
