"""On-disk persistence: filesystem store, project manifests, chapters and git."""

from . import filesystem
from .git_manager import GitManager, GitResult
from .locks import ProjectLocks

__all__ = ['filesystem', 'GitManager', 'GitResult', 'ProjectLocks']
