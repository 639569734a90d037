from __future__ import annotations

import logging
from typing import Sequence

from attest.core.models import (
    Clock,
    Finding,
    Priority,
    RemediationGuidance,
    RemediationItem,
    RemediationPlan,
    RemediationStep,
    Scope,
    Severity,
    TimelinePhase,
    new_id,
    utc_now,
)
from attest.core.taxonomy import remediation_priority, risk_reduction
from attest.ports.remediation_provider import RemediationProvider


logger = logging.getLogger(__name__)

EFFORT_LOW = "Low"
EFFORT_MEDIUM = "Medium"
EFFORT_HIGH = "High"
EFFORT_NONE = "None"

_AUTOMATED_MINUTES = {Severity.CRITICAL: 30, Severity.HIGH: 20}
_AUTOMATED_DEFAULT_MINUTES = 10
_MANUAL_MINUTES = {Severity.CRITICAL: 240, Severity.HIGH: 120, Severity.MEDIUM: 60}
_MANUAL_DEFAULT_MINUTES = 30

_ROLLBACK_STEPS = (
    "Restore the resource configuration from the pre-change backup or snapshot",
    "Verify the resource is operating normally after restoration",
    "Document the rollback and the reason it was needed",
)

_PHASE_NAMES = {
    Priority.HIGH: "Immediate: high priority",
    Priority.MEDIUM: "Short term: medium priority",
    Priority.LOW: "Planned: low priority",
}


class RemediationPlanGenerator:
    """Build an ordered, effort-estimated remediation plan from findings.

    The plan is a pure function of the input findings (and guidance source);
    only the plan id and creation time vary between calls.
    """
    def __init__(self, guidance_source: RemediationProvider | None = None, clock: Clock = utc_now) -> None:
        self._guidance_source = guidance_source
        self._clock = clock

    def generate(self, scope: Scope, findings: Sequence[Finding]) -> RemediationPlan:
        """Generate a plan.

        Args:
            scope (Scope): Scope the findings belong to.
            findings (Sequence[Finding]): Findings to plan for.

        Returns:
            RemediationPlan: Items ordered by severity, automated first, then input order.
        """
        indexed = sorted(
            enumerate(findings),
            key=lambda pair: (-pair[1].severity.rank, 0 if pair[1].auto_remediable else 1, pair[0]),
        )
        ordered = [finding for _, finding in indexed]

        items: list[RemediationItem] = []
        seen_by_resource: dict[str, list[str]] = {}
        for finding in ordered:
            resource_key = finding.resource_id.lower()
            earlier = seen_by_resource.setdefault(resource_key, []) if resource_key else []
            items.append(self._build_item(finding, tuple(earlier)))
            if resource_key:
                earlier.append(finding.id)

        automated = [finding for finding in ordered if finding.auto_remediable]
        plan = RemediationPlan(
            plan_id=new_id("plan"),
            scope=scope,
            created_at=self._clock(),
            items=tuple(items),
            total_findings=len(findings),
            effort=_plan_effort(items),
            effort_minutes=sum(item.effort_minutes for item in items),
            priority=max((item.priority for item in items), key=lambda value: value.rank, default=None),
            projected_risk_reduction=risk_reduction(automated, findings),
            timeline=_build_timeline(items),
            executive_summary=_executive_summary(scope, items),
        )
        logger.debug("Generated plan %s with %d item(s)", plan.plan_id, len(items))
        return plan

    def _build_item(self, finding: Finding, dependencies: tuple[str, ...]) -> RemediationItem:
        guidance = self._guidance_for(finding)
        steps = guidance.steps or (
            RemediationStep(order=1, description=f"Review {finding.resource_name or finding.resource_id} and correct: {finding.title}"),
        )
        validation = guidance.validation_steps or (
            f"Re-run the compliance assessment for {finding.resource_id}",
            f"Confirm {finding.first_control or finding.title} reports as compliant",
            "Review activity logs for unexpected changes",
        )
        automated = finding.auto_remediable
        return RemediationItem(
            finding_id=finding.id,
            control_id=finding.first_control or "",
            title=finding.title,
            resource_id=finding.resource_id,
            severity=finding.severity,
            priority=remediation_priority(finding.severity),
            effort=_item_effort(len(steps), automated),
            effort_minutes=_effort_minutes(finding.severity, automated),
            automated=automated,
            steps=tuple(steps),
            validation_steps=tuple(validation),
            rollback_steps=_ROLLBACK_STEPS,
            dependencies=dependencies,
        )

    def _guidance_for(self, finding: Finding) -> RemediationGuidance:
        if finding.guidance.steps or self._guidance_source is None:
            return finding.guidance
        try:
            guidance = self._guidance_source.remediation_guidance(finding)
        except Exception:
            logger.warning("Guidance lookup failed for %s", finding.id, exc_info=True)
            return finding.guidance
        return guidance or finding.guidance


def _item_effort(step_count: int, automated: bool) -> str:
    if automated and step_count <= 3:
        return EFFORT_LOW
    if step_count <= 5 or automated:
        return EFFORT_MEDIUM
    return EFFORT_HIGH


def _effort_minutes(severity: Severity, automated: bool) -> int:
    if automated:
        return _AUTOMATED_MINUTES.get(severity, _AUTOMATED_DEFAULT_MINUTES)
    return _MANUAL_MINUTES.get(severity, _MANUAL_DEFAULT_MINUTES)


def _plan_effort(items: Sequence[RemediationItem]) -> str:
    if not items:
        return EFFORT_NONE
    efforts = {item.effort for item in items}
    if EFFORT_HIGH in efforts:
        return EFFORT_HIGH
    if EFFORT_MEDIUM in efforts:
        return EFFORT_MEDIUM
    return EFFORT_LOW


def _build_timeline(items: Sequence[RemediationItem]) -> tuple[TimelinePhase, ...]:
    phases: list[TimelinePhase] = []
    offset = 0
    for priority in (Priority.HIGH, Priority.MEDIUM, Priority.LOW):
        group = [item for item in items if item.priority is priority]
        if not group:
            continue
        duration = sum(item.effort_minutes for item in group)
        phases.append(
            TimelinePhase(
                name=_PHASE_NAMES[priority],
                priority=priority,
                start_offset_minutes=offset,
                duration_minutes=duration,
                finding_ids=tuple(item.finding_id for item in group),
            )
        )
        offset += duration
    return tuple(phases)


def _executive_summary(scope: Scope, items: Sequence[RemediationItem]) -> str:
    if not items:
        return f"No findings require remediation for {scope.describe()}."
    automated = sum(1 for item in items if item.automated)
    high = sum(1 for item in items if item.priority is Priority.HIGH)
    hours = sum(item.effort_minutes for item in items) / 60.0
    return (
        f"{len(items)} finding(s) in {scope.describe()} need remediation: "
        f"{high} high priority, {automated} automatable and {len(items) - automated} manual. "
        f"Estimated effort is {hours:.1f} hour(s)."
    )
