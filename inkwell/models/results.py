"""Discriminated results returned across the UI boundary."""
from typing import Any, Dict, Optional

from pydantic import BaseModel


class OperationResult(BaseModel):
    """Success flag plus either a payload or an error message."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, kind: str = "error") -> "OperationResult":
        return cls(success=False, error=error, error_kind=kind)

    def __bool__(self) -> bool:
        return self.success

    def to_json(self) -> Dict[str, Any]:
        if self.success:
            return {'success': True, 'data': _jsonable(self.data)}
        return {'success': False, 'error': self.error, 'kind': self.error_kind}


def _jsonable(value: Any) -> Any:
    """Best-effort conversion of payloads (models, paths, lists) to JSON types."""
    if hasattr(value, 'to_json'):
        return value.to_json()
    if isinstance(value, BaseModel):
        return value.model_dump(mode='json', by_alias=True)
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)
