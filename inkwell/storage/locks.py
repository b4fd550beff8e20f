"""Per-project write serialization.

Every manifest read-modify-write runs while holding the owning project's lock,
so an autosave, a manual save and a remote-mirror save in the same process
cannot interleave and lose an update.
"""
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Union


class ProjectLocks:
    """Registry of re-entrant locks keyed by resolved project path."""

    def __init__(self):
        self._locks: Dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def lock_for(self, project_path: Union[str, Path]) -> threading.RLock:
        """Get (or create) the lock for a project directory."""
        key = str(Path(project_path).resolve())
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, project_path: Union[str, Path]) -> Iterator[None]:
        """Hold the project's lock for the duration of the block."""
        with self.lock_for(project_path):
            yield

    def __len__(self) -> int:
        return len(self._locks)
