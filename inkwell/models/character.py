"""Character and world-setting records kept under a project's ``CharSet/``."""
import time
from typing import Any, Collection, Dict

from pydantic import BaseModel, ConfigDict, field_validator


def new_entry_id(taken: Collection[str] = ()) -> str:
    """Mint a millisecond-timestamp id not already in ``taken``."""
    stamp = int(time.time() * 1000)
    while str(stamp) in taken:
        stamp += 1
    return str(stamp)


class CharSetEntry(BaseModel):
    """Common shape of a character or a world setting; unknown keys are kept."""

    model_config = ConfigDict(populate_by_name=True, extra='allow')

    id: str
    name: str

    @field_validator('id')
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Entry id must not be empty")
        return v

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be empty")
        return v

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump()


class Character(CharSetEntry):
    bio: str = ""


class WorldSetting(CharSetEntry):
    content: str = ""
