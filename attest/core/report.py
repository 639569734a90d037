from __future__ import annotations

from attest.core.models import (
    AssessmentAuditSummary,
    BatchRemediationResult,
    ComplianceHistory,
    ControlFamilyDetails,
    ExecutionStatus,
    RemediationItem,
    RemediationPlan,
)
from attest.core.version import get_attest_version


MAX_LISTED_ITEMS = 10
MAX_AUDIT_ENTRIES = 10

_TREND_MARKERS = {"improving": "up", "declining": "down", "stable": "flat"}


def render_plan_markdown(plan: RemediationPlan) -> str:
    """Render a remediation plan for display in chat or a ticket.

    Args:
        plan (RemediationPlan): Plan to render.

    Returns:
        str: Markdown content.

    Notes:
        Automated and manual sections list at most ten items each; the
        remaining count is stated so nothing is silently dropped.
    """
    lines = [
        "# Remediation Plan",
        "",
        f"Plan: {plan.plan_id}",
        f"Scope: {plan.scope.describe()}",
        f"Generated: {plan.created_at.isoformat()}",
        f"Attest version: {get_attest_version()}",
        "",
        "## Executive Summary",
        plan.executive_summary,
        "",
        "| Metric | Value |",
        "| --- | --- |",
        f"| Findings | {plan.total_findings} |",
        f"| Priority | {plan.priority.value if plan.priority else 'None'} |",
        f"| Effort | {plan.effort} ({_hours(plan.effort_minutes)}) |",
        f"| Automated | {len(plan.automated_items)} |",
        f"| Manual | {len(plan.manual_items)} |",
        f"| Projected risk reduction | {plan.projected_risk_reduction:.0%} |",
    ]

    if plan.timeline:
        lines.extend(["", "## Timeline"])
        for phase in plan.timeline:
            lines.append(
                f"- {phase.name}: {len(phase.finding_ids)} item(s), starts at "
                f"+{_hours(phase.start_offset_minutes)}, takes {_hours(phase.duration_minutes)}"
            )

    lines.extend(_item_section("Automated Remediation", plan.automated_items))
    lines.extend(_item_section("Manual Remediation", plan.manual_items))
    return "\n".join(lines) + "\n"


def _item_section(title: str, items: list[RemediationItem]) -> list[str]:
    if not items:
        return []
    lines = ["", f"## {title}"]
    for item in items[:MAX_LISTED_ITEMS]:
        control = item.control_id or "n/a"
        lines.append(f"- [{item.severity.value}] {control}: {item.title} ({item.effort}, {item.effort_minutes} min)")
        lines.append(f"  - Resource: {item.resource_id}")
        if item.dependencies:
            lines.append(f"  - After: {', '.join(item.dependencies)}")
    if len(items) > MAX_LISTED_ITEMS:
        lines.append(f"- ... and {len(items) - MAX_LISTED_ITEMS} more")
    return lines


def render_batch_markdown(result: BatchRemediationResult) -> str:
    mode = "Dry Run" if result.dry_run else "Remediation"
    lines = [
        f"# {mode} Results",
        "",
        f"Batch: {result.batch_id}",
        f"Scope: {result.scope.describe()}",
        f"Duration: {result.duration_seconds:.1f}s",
        "",
        "| Attempted | Succeeded | Failed | Skipped | Success rate | Risk reduction |",
        "| --- | --- | --- | --- | --- | --- |",
        (
            f"| {result.attempted} | {result.successful} | {result.failed} | {result.skipped} "
            f"| {result.summary.success_rate:.0%} | {result.summary.risk_reduction:.0%} |"
        ),
    ]
    if result.summary.control_families:
        lines.append("")
        lines.append(f"Control families: {', '.join(result.summary.control_families)}")

    lines.extend(["", "## Executions"])
    for execution in result.executions[:MAX_LISTED_ITEMS]:
        lines.append(f"- {execution.finding_id}: {execution.status.value}. {execution.message}")
        for change in execution.changes_applied[:3]:
            lines.append(f"  - {change}")
        if execution.error:
            lines.append(f"  - Error: {execution.error}")
        if execution.manual_intervention_required:
            lines.append("  - Manual intervention required")
    if len(result.executions) > MAX_LISTED_ITEMS:
        lines.append(f"- ... and {len(result.executions) - MAX_LISTED_ITEMS} more")

    failed = [item for item in result.executions if item.status is ExecutionStatus.FAILED]
    if failed:
        lines.extend(["", f"{len(failed)} remediation(s) failed; review the errors above."])
    return "\n".join(lines) + "\n"


def render_history_markdown(history: ComplianceHistory, days: int | None = None) -> str:
    window = f" (last {days} days)" if days else ""
    lines = [
        f"# Compliance History{window}",
        "",
        f"Trend: {history.trend.direction} ({_TREND_MARKERS[history.trend.direction]}, slope {history.trend.slope:+.2f}/assessment)",
        f"Grade: {history.grade}",
        "",
        "| Latest | Oldest | Change | Best | Worst | Average |",
        "| --- | --- | --- | --- | --- | --- |",
        (
            f"| {history.latest_score:.1f} | {history.oldest_score:.1f} | {history.score_change:+.1f} "
            f"| {history.best_score:.1f} | {history.worst_score:.1f} | {history.average_score:.1f} |"
        ),
        "",
        "## Assessments",
    ]
    for point in history.points:
        label = f" ({point.assessment_id})" if point.assessment_id else ""
        lines.append(f"- {point.timestamp.date().isoformat()}: {point.score:.1f}{label}")
    if history.insights:
        lines.extend(["", "## Insights"])
        lines.extend(f"- {insight}" for insight in history.insights)
    return "\n".join(lines) + "\n"


def render_audit_markdown(summary: AssessmentAuditSummary, days: int | None = None) -> str:
    window = f" (last {days} days)" if days else ""
    lines = [
        f"# Assessment Audit Log{window}",
        "",
        "| Total | Completed | Failed | Average duration |",
        "| --- | --- | --- | --- |",
        f"| {summary.total} | {summary.completed} | {summary.failed} | {summary.average_duration_seconds:.1f}s |",
        "",
        "## By User",
    ]
    for user in summary.by_user:
        lines.append(f"- {user.initiated_by}: {user.count} run(s), last {user.last_run.isoformat()}")

    lines.extend(["", "## Recent Assessments"])
    for entry in summary.entries[:MAX_AUDIT_ENTRIES]:
        score = f", score {entry.score:.1f}" if entry.score is not None else ""
        lines.append(
            f"- {entry.started_at.isoformat()} {entry.assessment_id}: {entry.status} "
            f"by {entry.initiated_by or 'Unknown'}{score}"
        )
    if len(summary.entries) > MAX_AUDIT_ENTRIES:
        lines.append(f"- ... and {len(summary.entries) - MAX_AUDIT_ENTRIES} more")
    if summary.insights:
        lines.extend(["", "## Insights"])
        lines.extend(f"- {insight}" for insight in summary.insights)
    return "\n".join(lines) + "\n"


def render_family_markdown(details: ControlFamilyDetails) -> str:
    lines = [
        f"# {details.family}: {details.family_name}",
        "",
        f"Scope: {details.scope.describe()}",
        "",
        "| Findings | Auto-remediable | Manual | Resources | Controls |",
        "| --- | --- | --- | --- | --- |",
        (
            f"| {len(details.findings)} | {details.auto_remediable_count} | {details.manual_count} "
            f"| {details.affected_resources} | {len(details.unique_controls)} |"
        ),
    ]
    if details.by_severity:
        counts = ", ".join(f"{severity} {count}" for severity, count in details.by_severity.items())
        lines.extend(["", f"By severity: {counts}"])

    lines.extend(["", "## Findings"])
    for item in details.findings[:MAX_LISTED_ITEMS]:
        finding = item.finding
        mode = "auto" if finding.auto_remediable else "manual"
        lines.append(f"- [{finding.severity.value}] {', '.join(finding.control_ids) or 'n/a'}: {finding.title} ({mode})")
        lines.append(f"  - Resource: {finding.resource_id}")
        if item.guidance is not None:
            for step in item.guidance.steps[:3]:
                lines.append(f"  - Step {step.order}: {step.description}")
    if len(details.findings) > MAX_LISTED_ITEMS:
        lines.append(f"- ... and {len(details.findings) - MAX_LISTED_ITEMS} more")
    return "\n".join(lines) + "\n"


def _hours(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes} min"
    return f"{minutes / 60:.1f} h"
