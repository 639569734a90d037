from __future__ import annotations

from typing import Sequence

from attest.core.models import AssessmentAuditEntry, AssessmentAuditSummary, AuditUserActivity


UNKNOWN_USER = "Unknown"
LOW_FREQUENCY_THRESHOLD = 5
SLOW_ASSESSMENT_SECONDS = 30.0


def summarize_audit_log(entries: Sequence[AssessmentAuditEntry]) -> AssessmentAuditSummary | None:
    """Summarize who ran assessments, how often and how they went.

    Args:
        entries (Sequence[AssessmentAuditEntry]): Runs in any order.

    Returns:
        AssessmentAuditSummary | None: None when there are no entries.

    Notes:
        Users are ordered by run count, most active first; runs with no
        initiator are grouped under "Unknown". Every status other than
        Completed counts as failed.
    """
    if not entries:
        return None
    ordered = tuple(sorted(entries, key=lambda entry: entry.started_at, reverse=True))

    activity: dict[str, list[AssessmentAuditEntry]] = {}
    for entry in ordered:
        activity.setdefault(entry.initiated_by or UNKNOWN_USER, []).append(entry)
    by_user = tuple(
        sorted(
            (
                AuditUserActivity(initiated_by=user, count=len(runs), last_run=runs[0].started_at)
                for user, runs in activity.items()
            ),
            key=lambda item: (-item.count, item.initiated_by),
        )
    )

    completed = sum(1 for entry in ordered if entry.completed)
    durations = [entry.duration_seconds for entry in ordered if entry.duration_seconds is not None]
    average = round(sum(durations) / len(durations), 1) if durations else 0.0
    failed = len(ordered) - completed

    insights: list[str] = []
    if len(ordered) < LOW_FREQUENCY_THRESHOLD:
        insights.append("Low assessment frequency: consider scheduling regular assessments.")
    if failed:
        insights.append(f"{failed} assessment(s) did not complete; review their errors and re-run them.")
    if average > SLOW_ASSESSMENT_SECONDS:
        insights.append(f"Assessments take {average:.1f}s on average; narrow the scope to speed them up.")
    if len(by_user) == 1:
        insights.append("All assessments were run by one user; share the responsibility across the team.")

    return AssessmentAuditSummary(
        entries=ordered,
        total=len(ordered),
        completed=completed,
        failed=failed,
        average_duration_seconds=average,
        by_user=by_user,
        insights=tuple(insights),
    )
