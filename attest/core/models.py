from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def parse_timestamp(value: Any) -> datetime:
    """Parse ISO-8601 timestamps while normalizing to UTC.

    Args:
        value (Any): Timestamp string or datetime.

    Returns:
        datetime: Parsed timestamp with timezone information.

    Raises:
        ValueError: If the timestamp is not valid ISO-8601.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        cleaned = str(value).strip()
        if cleaned.endswith("Z"):
            cleaned = f"{cleaned[:-1]}+00:00"
        try:
            parsed = datetime.fromisoformat(cleaned)
        except ValueError as exc:
            raise ValueError(f"Invalid timestamp: {value}") from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


class Severity(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    INFORMATIONAL = "Informational"

    @property
    def rank(self) -> int:
        """Higher is more severe; Informational ranks 0."""
        return _SEVERITY_RANKS[self]

    @staticmethod
    def parse(value: Any) -> "Severity":
        """Parse a severity name case-insensitively ("info" is accepted).

        Raises:
            ValueError: If the value names no known severity.
        """
        if isinstance(value, Severity):
            return value
        cleaned = str(value or "").strip().lower()
        if cleaned in {"info", "informational"}:
            return Severity.INFORMATIONAL
        for severity in Severity:
            if severity.value.lower() == cleaned:
                return severity
        raise ValueError(f"Unknown severity: {value}")


_SEVERITY_RANKS = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
    Severity.INFORMATIONAL: 0,
}


class Priority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @property
    def rank(self) -> int:
        return {Priority.HIGH: 3, Priority.MEDIUM: 2, Priority.LOW: 1}[self]


class ExecutionStatus(str, Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    SKIPPED = "Skipped"
    ROLLED_BACK = "RolledBack"


_ALLOWED_TRANSITIONS = {
    ExecutionStatus.PENDING: {ExecutionStatus.RUNNING, ExecutionStatus.SKIPPED, ExecutionStatus.FAILED},
    ExecutionStatus.RUNNING: {ExecutionStatus.SUCCEEDED, ExecutionStatus.FAILED},
    ExecutionStatus.SUCCEEDED: {ExecutionStatus.ROLLED_BACK},
    ExecutionStatus.FAILED: set(),
    ExecutionStatus.SKIPPED: set(),
    ExecutionStatus.ROLLED_BACK: set(),
}


@dataclass(frozen=True)
class Scope:
    """Assessment target: a subscription, optionally narrowed to a resource group."""
    subscription_id: str
    resource_group: str | None = None

    def key(self) -> str:
        subscription = self.subscription_id.strip().lower()
        if self.resource_group:
            return f"{subscription}/{self.resource_group.strip().lower()}"
        return subscription

    def describe(self) -> str:
        if self.resource_group:
            return f"resource group '{self.resource_group}' in subscription {self.subscription_id}"
        return f"subscription {self.subscription_id}"

    @staticmethod
    def from_dict(data: dict) -> "Scope":
        return Scope(
            subscription_id=str(data["subscription_id"]),
            resource_group=data.get("resource_group") or None,
        )


@dataclass(frozen=True)
class RemediationStep:
    order: int
    description: str
    command: str | None = None
    automation_script: str | None = None


@dataclass(frozen=True)
class RemediationGuidance:
    """Ordered corrective steps plus the checks that confirm the fix."""
    steps: tuple[RemediationStep, ...] = ()
    validation_steps: tuple[str, ...] = ()

    @staticmethod
    def from_dict(data: dict | None) -> "RemediationGuidance":
        if not data:
            return RemediationGuidance()
        steps = []
        for index, raw in enumerate(data.get("steps", []), start=1):
            if isinstance(raw, str):
                steps.append(RemediationStep(order=index, description=raw))
            else:
                steps.append(
                    RemediationStep(
                        order=int(raw.get("order", index)),
                        description=str(raw["description"]),
                        command=raw.get("command"),
                        automation_script=raw.get("automation_script"),
                    )
                )
        return RemediationGuidance(
            steps=tuple(steps),
            validation_steps=tuple(str(item) for item in data.get("validation_steps", [])),
        )


@dataclass(frozen=True)
class Finding:
    """A detected deviation from one or more compliance controls."""
    id: str
    title: str
    severity: Severity
    control_ids: tuple[str, ...]
    resource_id: str
    resource_type: str = ""
    resource_name: str = ""
    compliance_status: str = "NonCompliant"
    auto_remediable: bool = False
    description: str = ""
    guidance: RemediationGuidance = field(default_factory=RemediationGuidance)

    @property
    def first_control(self) -> str | None:
        return self.control_ids[0] if self.control_ids else None

    @staticmethod
    def from_dict(data: dict) -> "Finding":
        return Finding(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            severity=Severity.parse(data.get("severity")),
            control_ids=tuple(str(item) for item in data.get("control_ids", [])),
            resource_id=str(data.get("resource_id", "")),
            resource_type=str(data.get("resource_type", "")),
            resource_name=str(data.get("resource_name", "")),
            compliance_status=str(data.get("compliance_status", "NonCompliant")),
            auto_remediable=bool(data.get("auto_remediable", False)),
            description=str(data.get("description", "")),
            guidance=RemediationGuidance.from_dict(data.get("guidance")),
        )


@dataclass
class ControlFamilyResult:
    family: str
    score: float
    findings: list[Finding] = field(default_factory=list)


@dataclass
class Assessment:
    id: str
    scope: Scope
    started_at: datetime
    completed_at: datetime
    score: float
    family_results: dict[str, ControlFamilyResult] = field(default_factory=dict)
    status: str = "Completed"
    initiated_by: str | None = None

    def findings(self) -> list[Finding]:
        items: list[Finding] = []
        for family in sorted(self.family_results):
            items.extend(self.family_results[family].findings)
        return items

    def severity_counts(self) -> dict[Severity, int]:
        counts = {severity: 0 for severity in Severity}
        for finding in self.findings():
            counts[finding.severity] += 1
        return counts

    def age_hours(self, now: datetime) -> float:
        return (now - self.completed_at).total_seconds() / 3600.0

    @staticmethod
    def from_dict(data: dict) -> "Assessment":
        families: dict[str, ControlFamilyResult] = {}
        for family, raw in (data.get("family_results") or {}).items():
            families[family.upper()] = ControlFamilyResult(
                family=family.upper(),
                score=float(raw.get("score", 0.0)),
                findings=[Finding.from_dict(item) for item in raw.get("findings", [])],
            )
        completed_at = parse_timestamp(data["completed_at"])
        return Assessment(
            id=str(data["id"]),
            scope=Scope.from_dict(data["scope"]),
            started_at=parse_timestamp(data.get("started_at", data["completed_at"])),
            completed_at=completed_at,
            score=float(data.get("score", 0.0)),
            family_results=families,
            status=str(data.get("status") or "Completed"),
            initiated_by=data.get("initiated_by") or None,
        )


@dataclass(frozen=True)
class AssessmentSummary:
    assessment_id: str
    scope_key: str
    completed_at: datetime
    score: float
    severity_counts: dict[str, int]
    top_families: tuple[str, ...] = ()

    @staticmethod
    def from_assessment(assessment: Assessment) -> "AssessmentSummary":
        by_family = sorted(
            (
                (len(result.findings), family)
                for family, result in assessment.family_results.items()
                if result.findings
            ),
            key=lambda pair: (-pair[0], pair[1]),
        )
        return AssessmentSummary(
            assessment_id=assessment.id,
            scope_key=assessment.scope.key(),
            completed_at=assessment.completed_at,
            score=assessment.score,
            severity_counts={sev.value: count for sev, count in assessment.severity_counts().items()},
            top_families=tuple(family for _, family in by_family[:5]),
        )


@dataclass
class RemediationExecution:
    """One remediation attempt for one finding.

    Status moves forward only; Succeeded can later become RolledBack through an
    explicit rollback.
    """
    id: str
    finding_id: str
    resource_id: str
    status: ExecutionStatus = ExecutionStatus.PENDING
    dry_run: bool = False
    changes_applied: list[str] = field(default_factory=list)
    backup_id: str | None = None
    rollback_attempted: bool = False
    rollback_succeeded: bool | None = None
    manual_intervention_required: bool = False
    message: str = ""
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def success(self) -> bool:
        return self.status is ExecutionStatus.SUCCEEDED

    def transition(self, status: ExecutionStatus) -> None:
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise ValueError(f"Invalid remediation status change: {self.status.value} -> {status.value}")
        self.status = status


@dataclass
class BatchRemediationOptions:
    max_concurrent: int = 3
    fail_fast: bool = False
    continue_on_error: bool = True
    dry_run: bool = True
    require_approval: bool = False
    auto_rollback_on_failure: bool = True
    item_timeout_seconds: float | None = None

    @property
    def stops_on_failure(self) -> bool:
        return self.fail_fast or not self.continue_on_error


@dataclass(frozen=True)
class BatchSummary:
    success_rate: float
    risk_reduction: float
    critical_remediated: int
    high_remediated: int
    control_families: tuple[str, ...]


@dataclass(frozen=True)
class BatchRemediationResult:
    batch_id: str
    scope: Scope
    executions: tuple[RemediationExecution, ...]
    successful: int
    failed: int
    skipped: int
    summary: BatchSummary
    dry_run: bool
    started_at: datetime
    completed_at: datetime

    @property
    def attempted(self) -> int:
        return self.successful + self.failed + self.skipped

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()

    @property
    def partial_failure(self) -> bool:
        return self.failed > 0 or self.skipped > 0


@dataclass(frozen=True)
class RemediationItem:
    finding_id: str
    control_id: str
    title: str
    resource_id: str
    severity: Severity
    priority: Priority
    effort: str
    effort_minutes: int
    automated: bool
    steps: tuple[RemediationStep, ...]
    validation_steps: tuple[str, ...]
    rollback_steps: tuple[str, ...]
    dependencies: tuple[str, ...] = ()


@dataclass(frozen=True)
class TimelinePhase:
    name: str
    priority: Priority
    start_offset_minutes: int
    duration_minutes: int
    finding_ids: tuple[str, ...]


@dataclass(frozen=True)
class RemediationPlan:
    plan_id: str
    scope: Scope
    created_at: datetime
    items: tuple[RemediationItem, ...]
    total_findings: int
    effort: str
    effort_minutes: int
    priority: Priority | None
    projected_risk_reduction: float
    timeline: tuple[TimelinePhase, ...]
    executive_summary: str

    @property
    def automated_items(self) -> list[RemediationItem]:
        return [item for item in self.items if item.automated]

    @property
    def manual_items(self) -> list[RemediationItem]:
        return [item for item in self.items if not item.automated]


@dataclass(frozen=True)
class TrendResult:
    direction: str
    slope: float


@dataclass(frozen=True)
class HistoryPoint:
    timestamp: datetime
    score: float
    assessment_id: str | None = None


@dataclass(frozen=True)
class ComplianceHistory:
    points: tuple[HistoryPoint, ...]
    trend: TrendResult
    latest_score: float
    oldest_score: float
    score_change: float
    best_score: float
    worst_score: float
    average_score: float
    grade: str
    insights: tuple[str, ...]


@dataclass(frozen=True)
class EvidenceItem:
    id: str
    control_family: str
    evidence_type: str
    title: str
    collected_at: datetime
    collector: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class EvidencePackage:
    package_id: str
    scope: Scope
    control_family: str
    evidence_types: tuple[str, ...]
    items: list[EvidenceItem]
    collected_at: datetime
    errors: list[str] = field(default_factory=list)
    storage_uri: str | None = None

    @property
    def completeness(self) -> float:
        if not self.items:
            return 0.0
        covered = {item.evidence_type for item in self.items}
        return round(len(covered & set(self.evidence_types)) / max(len(self.evidence_types), 1), 2)


@dataclass(frozen=True)
class EvidenceReference:
    package_id: str
    control_family: str
    collected_at: datetime
    item_count: int
    storage_uri: str | None = None


@dataclass(frozen=True)
class RemediationRecord:
    execution_id: str
    finding_id: str
    resource_id: str
    status: ExecutionStatus
    dry_run: bool
    executed_at: datetime
    error: str | None = None


@dataclass(frozen=True)
class OperationRecord:
    operation_type: str
    success: bool
    item_count: int
    duration_seconds: float
    recorded_at: datetime
    scope_key: str | None = None


@dataclass(frozen=True)
class AssessmentAuditEntry:
    """One assessment run as recorded in the audit trail."""
    assessment_id: str
    scope_key: str
    initiated_by: str | None
    status: str
    started_at: datetime
    completed_at: datetime | None = None
    score: float | None = None
    finding_count: int = 0

    @property
    def completed(self) -> bool:
        return self.status.lower() == "completed"

    @property
    def duration_seconds(self) -> float | None:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()


@dataclass(frozen=True)
class AuditUserActivity:
    initiated_by: str
    count: int
    last_run: datetime


@dataclass(frozen=True)
class AssessmentAuditSummary:
    entries: tuple[AssessmentAuditEntry, ...]
    total: int
    completed: int
    failed: int
    average_duration_seconds: float
    by_user: tuple[AuditUserActivity, ...]
    insights: tuple[str, ...]


@dataclass(frozen=True)
class ControlFamilyFinding:
    finding: Finding
    guidance: RemediationGuidance | None


@dataclass(frozen=True)
class ControlFamilyDetails:
    family: str
    family_name: str
    scope: Scope
    findings: tuple[ControlFamilyFinding, ...]
    by_severity: dict[str, int]
    auto_remediable_count: int
    manual_count: int
    affected_resources: int
    unique_controls: tuple[str, ...]
