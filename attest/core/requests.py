from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from jsonschema import Draft202012Validator

from attest.core.errors import InvalidRequestError
from attest.core.models import Scope, Severity


SCHEMA_DIR = Path(__file__).resolve().parents[1] / "contracts" / "schemas"

EVIDENCE_TYPES = ("configuration", "logs", "metrics", "policy", "access")
DEFAULT_HISTORY_DAYS = 30
DEFAULT_AUDIT_DAYS = 7


@lru_cache(maxsize=None)
def _validator(name: str) -> Draft202012Validator:
    schema = json.loads((SCHEMA_DIR / f"{name}.schema.json").read_text(encoding="utf-8"))
    return Draft202012Validator(schema)


def validate_payload(name: str, payload: dict | None) -> dict:
    """Validate a raw request payload against its contract schema.

    Args:
        name (str): Schema name without the ``.schema.json`` suffix.
        payload (dict | None): Raw request parameters.

    Returns:
        dict: The payload (an empty dict when None was given).

    Raises:
        InvalidRequestError: With the first violation, ordered by field path.
    """
    data = {} if payload is None else payload
    errors = sorted(_validator(name).iter_errors(data), key=lambda err: [str(part) for part in err.absolute_path])
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.absolute_path) or None
        prefix = f"{field}: " if field else ""
        raise InvalidRequestError(f"Invalid {name.replace('_', ' ')}: {prefix}{first.message}", field=field)
    return data


def _scope(data: dict) -> Scope | None:
    subscription = data.get("subscription_id")
    if not subscription:
        return None
    return Scope(subscription_id=subscription, resource_group=data.get("resource_group") or None)


@dataclass(frozen=True)
class AssessmentRequest:
    scope: Scope | None = None
    skip_cache: bool = False

    @staticmethod
    def from_dict(payload: dict | None) -> "AssessmentRequest":
        data = validate_payload("assessment_request", payload)
        return AssessmentRequest(scope=_scope(data), skip_cache=bool(data.get("skip_cache", False)))


@dataclass(frozen=True)
class RemediationRequest:
    scope: Scope | None = None
    severity_filter: str = "high"
    control_family: str | None = None
    max_findings: int | None = None
    dry_run: bool | None = None
    fail_fast: bool = False
    continue_on_error: bool = True
    max_concurrent: int | None = None
    require_approval: bool = False
    auto_rollback_on_failure: bool | None = None

    @staticmethod
    def from_dict(payload: dict | None) -> "RemediationRequest":
        data = validate_payload("remediation_request", payload)
        return RemediationRequest(
            scope=_scope(data),
            severity_filter=data.get("severity_filter", "high"),
            control_family=data.get("control_family"),
            max_findings=data.get("max_findings"),
            dry_run=data.get("dry_run"),
            fail_fast=bool(data.get("fail_fast", False)),
            continue_on_error=bool(data.get("continue_on_error", True)),
            max_concurrent=data.get("max_concurrent"),
            require_approval=bool(data.get("require_approval", False)),
            auto_rollback_on_failure=data.get("auto_rollback_on_failure"),
        )


@dataclass(frozen=True)
class PlanRequest:
    scope: Scope | None = None
    severity_filter: str | None = None
    control_family: str | None = None

    @staticmethod
    def from_dict(payload: dict | None) -> "PlanRequest":
        data = validate_payload("plan_request", payload)
        return PlanRequest(
            scope=_scope(data),
            severity_filter=data.get("severity_filter"),
            control_family=data.get("control_family"),
        )


@dataclass(frozen=True)
class HistoryRequest:
    scope: Scope | None = None
    days: int = DEFAULT_HISTORY_DAYS

    @property
    def clamped_days(self) -> int:
        return max(1, min(365, self.days))

    @staticmethod
    def from_dict(payload: dict | None) -> "HistoryRequest":
        data = validate_payload("history_request", payload)
        return HistoryRequest(scope=_scope(data), days=int(data.get("days", DEFAULT_HISTORY_DAYS)))


@dataclass(frozen=True)
class EvidenceRequest:
    control_family: str
    scope: Scope | None = None
    evidence_types: tuple[str, ...] = EVIDENCE_TYPES
    refresh: bool = False

    @staticmethod
    def from_dict(payload: dict | None) -> "EvidenceRequest":
        data = validate_payload("evidence_request", payload)
        return EvidenceRequest(
            control_family=data["control_family"].upper(),
            scope=_scope(data),
            evidence_types=tuple(data.get("evidence_types") or EVIDENCE_TYPES),
            refresh=bool(data.get("refresh", False)),
        )


@dataclass(frozen=True)
class ValidationRequest:
    """Check a remediation by finding id, execution id, or both.

    With only an execution id the finding is taken from the conversation's
    remediation record.
    """
    finding_id: str | None = None
    scope: Scope | None = None
    execution_id: str | None = None

    @staticmethod
    def from_dict(payload: dict | None) -> "ValidationRequest":
        data = validate_payload("validation_request", payload)
        return ValidationRequest(
            finding_id=data.get("finding_id"),
            scope=_scope(data),
            execution_id=data.get("execution_id"),
        )


@dataclass(frozen=True)
class AuditLogRequest:
    scope: Scope | None = None
    days: int = DEFAULT_AUDIT_DAYS

    @property
    def clamped_days(self) -> int:
        return max(1, min(90, self.days))

    @staticmethod
    def from_dict(payload: dict | None) -> "AuditLogRequest":
        data = validate_payload("audit_log_request", payload)
        return AuditLogRequest(scope=_scope(data), days=int(data.get("days", DEFAULT_AUDIT_DAYS)))


@dataclass(frozen=True)
class ControlFamilyRequest:
    control_family: str
    scope: Scope | None = None
    control_id: str | None = None
    severity: Severity | None = None

    @staticmethod
    def from_dict(payload: dict | None) -> "ControlFamilyRequest":
        data = validate_payload("control_family_request", payload)
        severity = None
        if data.get("severity"):
            try:
                severity = Severity.parse(data["severity"])
            except ValueError as exc:
                raise InvalidRequestError(f"Invalid control family request: severity: {exc}", field="severity") from exc
        return ControlFamilyRequest(
            control_family=data["control_family"].upper(),
            scope=_scope(data),
            control_id=data.get("control_id") or None,
            severity=severity,
        )
