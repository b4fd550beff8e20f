"""Characters and world settings of a project.

Two JSON arrays under ``<project>/CharSet/``: ``characters.json`` and
``settings.json``. A missing or unreadable file lists as empty; writes
refuse to replace an unreadable file.
"""
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ..config.constants import CHARACTERS_FILE, CHARSET_DIR, WORLD_SETTINGS_FILE
from ..errors import NotFoundError, ParseError, ValidationError
from ..models.character import Character, CharSetEntry, WorldSetting, new_entry_id
from ..utils.logging import get_logger
from . import filesystem as fs
from .locks import ProjectLocks
from .manifest import read_manifest

logger = get_logger("characters")

# kind -> (file under CharSet/, record model)
KINDS: Dict[str, tuple] = {
    'character': (CHARACTERS_FILE, Character),
    'setting': (WORLD_SETTINGS_FILE, WorldSetting),
}


class CharacterService:
    """List, upsert and delete characters and world settings."""

    def __init__(self, locks: Optional[ProjectLocks] = None):
        self.locks = locks or ProjectLocks()

    @staticmethod
    def _kind(kind: str):
        try:
            return KINDS[kind]
        except KeyError:
            raise ValidationError(f"Kind must be one of: {', '.join(KINDS)}") from None

    def file_path(self, project_path: Union[str, Path], kind: str) -> Path:
        filename, _ = self._kind(kind)
        return Path(project_path) / CHARSET_DIR / filename

    def _read_raw(self, path: Path) -> List[Any]:
        """
        Read the stored array.

        Raises:
            ParseError: If the file is not valid JSON or not an array
        """
        try:
            data = fs.read_json(path)
        except NotFoundError:
            return []
        if not isinstance(data, list):
            raise ParseError(f"{path} does not hold a JSON array")
        return data

    def list_entries(self, project_path: Union[str, Path], kind: str) -> List[CharSetEntry]:
        """
        List the records of one kind in stored order.

        Records that do not validate are skipped with a warning.

        Raises:
            NotFoundError: If the project has no project.json
        """
        _, model = self._kind(kind)
        project_path = Path(project_path)
        read_manifest(project_path)
        path = self.file_path(project_path, kind)
        try:
            raw = self._read_raw(path)
        except ParseError as e:
            logger.warning(f"Listing no {kind}s: {e}")
            return []

        entries = []
        for item in raw:
            try:
                entries.append(model.model_validate(item))
            except PydanticValidationError as e:
                logger.warning(f"Skipping invalid {kind} in {path}: {e.errors()[0]['msg']}")
        return entries

    def save_entry(self, project_path: Union[str, Path], kind: str, fields: Mapping[str, Any]) -> CharSetEntry:
        """
        Insert a record, or update the stored record with the same id.

        A record without an id gets a fresh one and is appended. Fields left
        out (or None) keep their stored value.

        Raises:
            NotFoundError: If the project has no project.json
            ParseError: If the stored file is unreadable
            ValidationError: If the name is missing or empty
        """
        _, model = self._kind(kind)
        project_path = Path(project_path)
        path = self.file_path(project_path, kind)

        with self.locks.hold(project_path):
            read_manifest(project_path)
            raw = self._read_raw(path)
            taken = {str(item.get('id')) for item in raw if isinstance(item, dict)}

            data = {key: value for key, value in fields.items() if value is not None}
            if not data.get('id'):
                data['id'] = new_entry_id(taken)
            index = next(
                (i for i, item in enumerate(raw) if isinstance(item, dict) and item.get('id') == data['id']),
                None
            )
            if index is not None:
                data = {**raw[index], **data}
            try:
                entry = model.model_validate(data)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid {kind}: {e.errors()[0]['msg']}") from e

            if index is None:
                raw.append(entry.to_json())
            else:
                raw[index] = entry.to_json()
            fs.write_json(path, raw)

        logger.info(f"Saved {kind} '{entry.name}' ({entry.id}) in {project_path.name}")
        return entry

    def delete_entry(self, project_path: Union[str, Path], kind: str, entry_id: str) -> bool:
        """
        Remove the record with ``entry_id``.

        Returns:
            True if a record was removed, False if none had that id
        """
        self._kind(kind)
        project_path = Path(project_path)
        path = self.file_path(project_path, kind)

        with self.locks.hold(project_path):
            read_manifest(project_path)
            raw = self._read_raw(path)
            kept = [item for item in raw if not (isinstance(item, dict) and item.get('id') == entry_id)]
            if len(kept) == len(raw):
                return False
            fs.write_json(path, kept)

        logger.info(f"Deleted {kind} {entry_id} from {project_path.name}")
        return True
