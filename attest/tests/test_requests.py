import pytest

from attest.core.errors import ErrorKind, InvalidRequestError
from attest.core.models import Severity
from attest.core.requests import (
    EVIDENCE_TYPES,
    AssessmentRequest,
    AuditLogRequest,
    ControlFamilyRequest,
    EvidenceRequest,
    HistoryRequest,
    PlanRequest,
    RemediationRequest,
    ValidationRequest,
)


def test_remediation_request_defaults() -> None:
    request = RemediationRequest.from_dict({"subscription_id": "sub-1"})

    assert request.scope.subscription_id == "sub-1"
    assert request.scope.resource_group is None
    assert request.severity_filter == "high"
    assert request.dry_run is None
    assert request.max_findings is None
    assert request.continue_on_error is True


def test_empty_payload_leaves_scope_unset() -> None:
    assert AssessmentRequest.from_dict(None).scope is None
    assert PlanRequest.from_dict({}).severity_filter is None


@pytest.mark.parametrize(
    "payload,field",
    [
        ({"max_findings": 0}, "max_findings"),
        ({"max_findings": 101}, "max_findings"),
        ({"max_concurrent": 51}, "max_concurrent"),
        ({"severity_filter": "urgent"}, "severity_filter"),
        ({"dry_run": "yes"}, "dry_run"),
    ],
)
def test_remediation_request_rejects_out_of_range_values(payload, field) -> None:
    with pytest.raises(InvalidRequestError) as exc:
        RemediationRequest.from_dict(payload)

    assert exc.value.field == field
    assert exc.value.kind is ErrorKind.INVALID_REQUEST
    assert exc.value.message.startswith(f"Invalid remediation request: {field}: ")


def test_unknown_fields_are_rejected() -> None:
    with pytest.raises(InvalidRequestError) as exc:
        AssessmentRequest.from_dict({"subscription_id": "sub-1", "force": True})

    assert exc.value.field is None
    assert "force" in exc.value.message


def test_evidence_request_requires_family_and_known_types() -> None:
    with pytest.raises(InvalidRequestError):
        EvidenceRequest.from_dict({"subscription_id": "sub-1"})
    with pytest.raises(InvalidRequestError):
        EvidenceRequest.from_dict({"control_family": "AC", "evidence_types": ["screenshots"]})

    request = EvidenceRequest.from_dict({"control_family": "au"})

    assert request.control_family == "AU"
    assert request.evidence_types == EVIDENCE_TYPES
    assert request.refresh is False


def test_history_days_are_clamped() -> None:
    assert HistoryRequest.from_dict({}).clamped_days == 30
    assert HistoryRequest.from_dict({"days": 0}).clamped_days == 1
    assert HistoryRequest.from_dict({"days": 900}).clamped_days == 365


def test_validation_request_requires_finding_or_execution_id() -> None:
    with pytest.raises(InvalidRequestError) as exc:
        ValidationRequest.from_dict({"subscription_id": "sub-1"})
    assert "not valid under any of the given schemas" in exc.value.message

    by_execution = ValidationRequest.from_dict({"execution_id": "exec-1"})
    assert by_execution.finding_id is None
    assert by_execution.execution_id == "exec-1"

    request = ValidationRequest.from_dict({"finding_id": "f-1", "resource_group": "rg-app", "subscription_id": "s"})
    assert request.scope.resource_group == "rg-app"


@pytest.mark.parametrize("days, expected", [(0, 1), (7, 7), (365, 90)])
def test_audit_log_request_clamps_days(days: int, expected: int) -> None:
    assert AuditLogRequest.from_dict({"days": days}).clamped_days == expected


def test_audit_log_request_defaults_to_a_week() -> None:
    assert AuditLogRequest.from_dict(None).days == 7


def test_control_family_request_parses_severity_and_family() -> None:
    request = ControlFamilyRequest.from_dict(
        {"subscription_id": "sub-1", "control_family": "ac", "control_id": "AC-2", "severity": "critical"}
    )

    assert request.control_family == "AC"
    assert request.control_id == "AC-2"
    assert request.severity is Severity.CRITICAL


def test_control_family_request_rejects_unknown_severity() -> None:
    with pytest.raises(InvalidRequestError) as exc:
        ControlFamilyRequest.from_dict({"control_family": "AC", "severity": "urgent"})

    assert exc.value.field == "severity"
