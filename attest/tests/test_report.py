from datetime import datetime, timedelta, timezone

from attest.adapters.simulated_remediation import SimulatedRemediationProvider
from attest.core.executor import BatchRemediationExecutor
from attest.core.models import BatchRemediationOptions, Finding, HistoryPoint, Scope, Severity
from attest.core.planner import RemediationPlanGenerator
from attest.core.report import render_batch_markdown, render_history_markdown, render_plan_markdown
from attest.core.trend import summarize_history


SCOPE = Scope("sub-1", "rg-app")


def _findings(count: int, auto: bool = True) -> list[Finding]:
    return [
        Finding(
            id=f"f-{index:02d}",
            title=f"Finding {index}",
            severity=Severity.HIGH if index % 2 else Severity.MEDIUM,
            control_ids=(f"SC-{index + 1}",),
            resource_id=f"/subscriptions/sub-1/resourceGroups/rg-app/providers/x/r{index}",
            auto_remediable=auto,
        )
        for index in range(count)
    ]


def test_plan_markdown_truncates_long_sections() -> None:
    plan = RemediationPlanGenerator().generate(SCOPE, _findings(12))

    text = render_plan_markdown(plan)

    assert text.startswith("# Remediation Plan\n")
    assert "Scope: resource group 'rg-app' in subscription sub-1" in text
    assert "## Automated Remediation" in text
    assert "## Manual Remediation" not in text
    assert "- ... and 2 more" in text
    assert text.count("  - Resource: ") == 10
    assert "| Findings | 12 |" in text


def test_batch_markdown_reports_dry_run_counts() -> None:
    executor = BatchRemediationExecutor(SimulatedRemediationProvider())
    result = executor.execute(SCOPE, _findings(3), BatchRemediationOptions(dry_run=True))

    text = render_batch_markdown(result)

    assert text.startswith("# Dry Run Results\n")
    assert "| 3 | 3 | 0 | 0 | 100% |" in text
    assert "Control families: SC" in text
    assert "failed; review" not in text


def test_history_markdown_lists_points_and_insights() -> None:
    start = datetime(2026, 9, 1, tzinfo=timezone.utc)
    history = summarize_history(
        [
            HistoryPoint(timestamp=start + timedelta(days=7), score=85.0, assessment_id="a-2"),
            HistoryPoint(timestamp=start, score=80.0, assessment_id="a-1"),
        ]
    )

    text = render_history_markdown(history, days=30)

    assert text.startswith("# Compliance History (last 30 days)\n")
    assert "Trend: improving (up, slope +5.00/assessment)" in text
    assert "Grade: B+" in text
    assert "- 2026-09-01: 80.0 (a-1)" in text
    assert "## Insights" in text
    assert "3+ recommended" in text
