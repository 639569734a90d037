from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from attest.core.errors import AttestError, ErrorKind


@dataclass
class OperationResult:
    """Structured outcome returned to the calling layer for every operation."""
    success: bool
    message: str
    error_kind: ErrorKind | None = None
    next_steps: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def ok(message: str, data: dict[str, Any] | None = None, next_steps: list[str] | None = None) -> "OperationResult":
        return OperationResult(True, message, None, list(next_steps or []), dict(data or {}))

    @staticmethod
    def failure(error: AttestError, data: dict[str, Any] | None = None) -> "OperationResult":
        payload = dict(error.details)
        payload.update(data or {})
        return OperationResult(False, error.message, error.kind, list(error.next_steps), payload)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": self.success,
            "message": self.message,
            "next_steps": list(self.next_steps),
            "data": to_jsonable(self.data),
        }
        if self.error_kind is not None:
            payload["error"] = self.error_kind.value
        return payload


def to_jsonable(value: Any) -> Any:
    """Convert dataclasses, enums and datetimes into JSON-friendly values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {item.name: to_jsonable(getattr(value, item.name)) for item in dataclasses.fields(value)}
    if isinstance(value, dict):
        return {str(to_jsonable(key)): to_jsonable(val) for key, val in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(item) for item in value]
    return value
