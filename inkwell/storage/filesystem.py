"""Raw filesystem operations for the on-disk project layout.

No semantic validation and no caching: every read goes back to disk. OS
failures are translated into the Inkwell error taxonomy so callers only ever
see ``NotFoundError``, ``ParseError`` or ``StoreIOError``.
"""
import json
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Union

from ..errors import NotFoundError, ParseError, StoreIOError

PathLike = Union[str, Path]


@contextmanager
def _translate_os_errors(action: str, path: Path):
    """Map OSError subclasses raised inside the block to store errors."""
    try:
        yield
    except FileNotFoundError as e:
        raise NotFoundError(f"Cannot {action}: {path} does not exist") from e
    except NotADirectoryError as e:
        raise NotFoundError(f"Cannot {action}: {path} is not a directory") from e
    except OSError as e:
        raise StoreIOError(f"Cannot {action} {path}: {e.strerror or e}") from e


def ensure_dir(path: PathLike) -> Path:
    """Create a directory (and parents) if missing."""
    path = Path(path)
    with _translate_os_errors("create directory", path):
        path.mkdir(parents=True, exist_ok=True)
    return path


def list_project_directories(root: PathLike) -> Iterator[str]:
    """
    Lazily yield directory names directly under the projects root.

    The root is created if it does not exist. Each call rescans the disk.

    Args:
        root: Projects root directory

    Yields:
        Directory names (not paths)

    Raises:
        StoreIOError: If the root cannot be created or read
    """
    root = Path(root)
    try:
        root.mkdir(parents=True, exist_ok=True)
        with os.scandir(root) as entries:
            for entry in entries:
                if entry.is_dir():
                    yield entry.name
    except OSError as e:
        raise StoreIOError(f"Cannot read projects root {root}: {e.strerror or e}") from e


def list_subdirectories(path: PathLike) -> List[str]:
    """Sorted names of immediate subdirectories; empty if ``path`` is absent."""
    path = Path(path)
    if not path.is_dir():
        return []
    with _translate_os_errors("list", path):
        return sorted(entry.name for entry in os.scandir(path) if entry.is_dir())


def read_json(path: PathLike) -> Any:
    """
    Read and parse a UTF-8 JSON file.

    Raises:
        NotFoundError: If the file is absent
        ParseError: If the content is not valid JSON
    """
    path = Path(path)
    with _translate_os_errors("read", path):
        raw = path.read_bytes()
    try:
        return json.loads(raw.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ParseError(f"Invalid JSON in {path}: {e}") from e


def write_json(path: PathLike, value: Any) -> None:
    """
    Serialize ``value`` as indented UTF-8 JSON.

    The file is written to a sibling temp file and moved into place, so a
    reader never observes a half-written document.
    """
    path = Path(path)
    ensure_dir(path.parent)
    payload = json.dumps(value, indent=2, ensure_ascii=False)

    with _translate_os_errors("write", path):
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8', newline='') as f:
                f.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


def read_text(path: PathLike) -> str:
    """
    Read raw UTF-8 text (no newline translation).

    Raises:
        NotFoundError: If the file is absent
        ParseError: If the bytes are not valid UTF-8
    """
    path = Path(path)
    with _translate_os_errors("read", path):
        try:
            with open(path, 'r', encoding='utf-8', newline='') as f:
                return f.read()
        except UnicodeDecodeError as e:
            raise ParseError(f"{path} is not valid UTF-8: {e}") from e


def write_text(path: PathLike, content: str) -> None:
    """Write raw text verbatim, creating missing parent directories."""
    path = Path(path)
    ensure_dir(path.parent)
    with _translate_os_errors("write", path):
        with open(path, 'w', encoding='utf-8', newline='') as f:
            f.write(content)


def remove_tree(path: PathLike) -> None:
    """Recursively delete ``path``; a missing path is a no-op."""
    path = Path(path)
    if not os.path.lexists(path):
        return
    with _translate_os_errors("remove", path):
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink()
        except FileNotFoundError:
            # Removed concurrently; the end state is the same
            pass


def copy_tree(source: PathLike, destination: PathLike) -> Path:
    """Copy a directory tree to a destination that must not exist yet."""
    source, destination = Path(source), Path(destination)
    with _translate_os_errors("copy", source):
        shutil.copytree(source, destination)
    return destination
