"""Chapter data models."""
import re
import secrets
import time
from datetime import datetime, timezone
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field

from ..errors import ValidationError

_UNSAFE_SEGMENT = re.compile(r'[\\/\x00]')


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an ISO-8601 timestamp; anything unparseable sorts first.

    Accepts the trailing ``Z`` form written by older manifests.
    """
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            pass
        else:
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return datetime.min.replace(tzinfo=timezone.utc)


def new_chapter_id() -> str:
    """Mint an opaque, timestamp-derived chapter id."""
    return f"chapter_{int(time.time() * 1000)}_{secrets.token_hex(3)}"


def validate_path_segment(value: Any, what: str) -> str:
    """
    Ensure ``value`` can be used as a single directory name.

    Raises:
        ValidationError: If empty, not a string, or escaping its parent
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{what} must be a non-empty string")
    if value in ('.', '..') or _UNSAFE_SEGMENT.search(value):
        raise ValidationError(f"Invalid {what}: {value!r}")
    return value


class ChapterMetadata(BaseModel):
    """Contents of ``chapters/<id>/metadata.json``."""

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    id: str
    title: str = ""
    word_count: int = Field(0, alias='wordCount')
    last_modified: str = Field(default_factory=utc_now_iso, alias='lastModified')
    created_at: str = Field(default_factory=utc_now_iso, alias='createdAt')

    def to_json(self) -> Dict[str, Any]:
        """Serialize with on-disk (camelCase) keys."""
        return self.model_dump(by_alias=True, include={'id', 'title', 'word_count', 'last_modified', 'created_at'})


class Chapter(ChapterMetadata):
    """A chapter's metadata merged with its Markdown content."""

    content: str = ""

    def metadata(self) -> ChapterMetadata:
        return ChapterMetadata.model_validate(self.model_dump(exclude={"content"}))

    def to_json(self) -> Dict[str, Any]:
        data = super().to_json()
        data['content'] = self.content
        return data


class ChapterEntry(BaseModel):
    """Denormalized chapter record kept in the project manifest for fast listing."""

    model_config = ConfigDict(populate_by_name=True, extra='allow')

    id: str
    title: str = ""
    word_count: int = Field(0, alias='wordCount')
    last_modified: str = Field(default_factory=utc_now_iso, alias='lastModified')
    created_at: str = Field(default_factory=utc_now_iso, alias='createdAt')
    directory: str = ""

    @classmethod
    def from_metadata(cls, metadata: ChapterMetadata) -> "ChapterEntry":
        """Build the manifest entry for a chapter."""
        return cls(
            id=metadata.id,
            title=metadata.title,
            word_count=metadata.word_count,
            last_modified=metadata.last_modified,
            created_at=metadata.created_at,
            directory=metadata.id,
        )
