from .autosave import AutosaveTimer
from .editor import EditorSession

__all__ = ['AutosaveTimer', 'EditorSession']
