from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    DISABLED = "disabled"
    PARTIAL_FAILURE = "partial_failure"
    EXECUTION_FAILURE = "execution_failure"
    PROVIDER_ERROR = "provider_error"
    INVALID_REQUEST = "invalid_request"


class AttestError(Exception):
    """Base error carrying a classification and next-step guidance."""
    kind = ErrorKind.PROVIDER_ERROR

    def __init__(
        self,
        message: str,
        next_steps: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.next_steps = list(next_steps or [])
        self.details = dict(details or {})


class NotFoundError(AttestError):
    kind = ErrorKind.NOT_FOUND


class FeatureDisabledError(AttestError):
    """A feature gate is off; carries the exact setting name and value."""
    kind = ErrorKind.DISABLED

    def __init__(self, setting: str, value: Any, message: str | None = None, next_steps: list[str] | None = None) -> None:
        super().__init__(
            message or f"Feature disabled by configuration: {setting}={value}",
            next_steps=next_steps or [f"Set {setting} to true in the settings file to enable this operation"],
            details={"setting": setting, "current_value": value},
        )
        self.setting = setting
        self.value = value


class ExecutionFailure(AttestError):
    kind = ErrorKind.EXECUTION_FAILURE

    def __init__(
        self,
        message: str,
        finding_id: str | None = None,
        rollback_succeeded: bool | None = None,
        next_steps: list[str] | None = None,
    ) -> None:
        details: dict[str, Any] = {"finding_id": finding_id}
        if rollback_succeeded is not None:
            details["rollback_succeeded"] = rollback_succeeded
        super().__init__(message, next_steps=next_steps, details=details)
        self.finding_id = finding_id
        self.rollback_succeeded = rollback_succeeded


class ProviderError(AttestError):
    """An external provider is unreachable or returned an error.

    ``fatal`` distinguishes an aborted operation from a degraded one where
    partial results are still usable.
    """
    kind = ErrorKind.PROVIDER_ERROR

    def __init__(self, provider: str, message: str, fatal: bool = True, next_steps: list[str] | None = None) -> None:
        super().__init__(message, next_steps=next_steps, details={"provider": provider, "fatal": fatal})
        self.provider = provider
        self.fatal = fatal


class InvalidRequestError(AttestError):
    kind = ErrorKind.INVALID_REQUEST

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, next_steps=["Correct the request parameters and retry"], details={"field": field})
        self.field = field
