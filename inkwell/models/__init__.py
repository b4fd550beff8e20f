from .chapter import Chapter, ChapterEntry, ChapterMetadata
from .character import Character, CharSetEntry, WorldSetting
from .project import Project, ProjectCreation, ProjectManifest, ProjectSettings, ProjectSummary
from .results import OperationResult

__all__ = [
    'Chapter', 'ChapterEntry', 'ChapterMetadata',
    'Character', 'CharSetEntry', 'WorldSetting',
    'Project', 'ProjectCreation', 'ProjectManifest', 'ProjectSettings', 'ProjectSummary',
    'OperationResult'
]
