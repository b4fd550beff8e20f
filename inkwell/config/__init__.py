from .settings import (
    AISettings,
    AppSettings,
    EditorSettings,
    EngineConfig,
    GeneralSettings,
    GitSettings,
    RecentProject,
    Settings,
    SettingsStore,
    get_settings,
    merge_settings,
)
from . import constants

__all__ = [
    'Settings', 'get_settings', 'constants',
    'AppSettings', 'AISettings', 'EngineConfig', 'EditorSettings', 'GitSettings',
    'GeneralSettings', 'RecentProject', 'SettingsStore', 'merge_settings'
]
