"""Pytest configuration and fixtures."""
import os
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest
from dotenv import load_dotenv

# Load .env file if it exists
env_path = Path(__file__).parent.parent / '.env'
if env_path.exists():
    load_dotenv(env_path)

# Keep logs and settings of the test run out of the real home directory
_test_home = Path(tempfile.mkdtemp(prefix="inkwell-test-home-"))
os.environ['INKWELL_HOME_DIR'] = str(_test_home)

from inkwell.config.settings import AppSettings, Settings, SettingsStore  # noqa: E402
from inkwell.context import AppContext  # noqa: E402
from inkwell.storage.chapters import ChapterService  # noqa: E402
from inkwell.storage.locks import ProjectLocks  # noqa: E402
from inkwell.storage.manifest import ProjectManager  # noqa: E402
from inkwell.workspace import Workspace  # noqa: E402


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for testing."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def projects_root(temp_dir: Path) -> Path:
    """Projects root inside the temp directory (not created yet)."""
    return temp_dir / "projects"


@pytest.fixture
def locks() -> ProjectLocks:
    return ProjectLocks()


@pytest.fixture
def manager(projects_root: Path, locks: ProjectLocks) -> ProjectManager:
    return ProjectManager(projects_root, locks=locks)


@pytest.fixture
def chapters(locks: ProjectLocks) -> ChapterService:
    return ChapterService(locks)


@pytest.fixture
def demo_project(manager: ProjectManager) -> Path:
    """A project named 'Demo' without git."""
    return manager.create_project({'name': 'Demo', 'author': 'Ada'}).path


@pytest.fixture
def context(temp_dir: Path, projects_root: Path) -> AppContext:
    """Application context with its home and projects root under temp_dir."""
    home = temp_dir / "home"
    settings = Settings(home_dir=home)
    defaults = AppSettings.model_validate({'general': {'projectsDir': str(projects_root)}})
    store = SettingsStore(settings.settings_file, defaults=defaults)
    return AppContext(settings=settings, settings_store=store)


@pytest.fixture
def workspace(context: AppContext) -> Workspace:
    return Workspace(context)
