import json
import shutil
from datetime import datetime, timezone
from pathlib import Path

import pytest

from attest.adapters.json_assessment_provider import JsonAssessmentProvider
from attest.core.errors import ProviderError
from attest.core.models import Scope


FIXTURES = Path(__file__).parent / "fixtures"


def _export(
    path: Path,
    assessment_id: str,
    completed_at: str,
    score: float,
    subscription: str = "sub-001",
    **extra,
) -> None:
    payload = {
        "id": assessment_id,
        "scope": {"subscription_id": subscription},
        "completed_at": completed_at,
        "score": score,
        "family_results": {
            "CM": {
                "score": score,
                "findings": [
                    {
                        "id": f"{assessment_id}-open",
                        "title": "Baseline drift",
                        "severity": "medium",
                        "control_ids": ["CM-6"],
                        "resource_id": "/subscriptions/x/resourceGroups/rg/providers/y/z",
                    },
                    {
                        "id": f"{assessment_id}-ok",
                        "title": "Baseline applied",
                        "severity": "low",
                        "control_ids": ["CM-2"],
                        "resource_id": "/subscriptions/x/resourceGroups/rg/providers/y/z",
                        "compliance_status": "Compliant",
                    },
                ],
            }
        },
    }
    payload.update(extra)
    path.write_text(json.dumps(payload), encoding="utf-8")


@pytest.fixture
def exports(tmp_path: Path) -> Path:
    shutil.copy(FIXTURES / "assessment_sub-001.json", tmp_path / "assessment_sub-001.json")
    _export(
        tmp_path / "older.json",
        "assess-000",
        "2026-09-01T00:00:00Z",
        70.0,
        status="Failed",
        initiated_by="ops@example.com",
    )
    _export(tmp_path / "other.yaml", "assess-900", "2026-09-20T00:00:00Z", 91.0, subscription="sub-002")
    (tmp_path / "broken.json").write_text("[1, 2, 3]", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("not an export", encoding="utf-8")
    return tmp_path


def test_latest_assessment_picks_most_recent(exports: Path) -> None:
    provider = JsonAssessmentProvider(base_dir=str(exports))

    latest = provider.latest_assessment(Scope("SUB-001"))

    assert latest.id == "assess-001"
    assert latest.score == 78.5
    assert len(latest.findings()) == 6
    assert latest.family_results["AC"].findings[0].guidance.steps[0].command.startswith("az keyvault")


def test_resource_group_scope_falls_back_to_subscription(exports: Path) -> None:
    provider = JsonAssessmentProvider(base_dir=str(exports))

    assert provider.latest_assessment(Scope("sub-001", "rg-data")).id == "assess-001"


def test_history_is_bounded_by_window(exports: Path) -> None:
    provider = JsonAssessmentProvider(base_dir=str(exports))
    start = datetime(2026, 8, 1, tzinfo=timezone.utc)

    everything = provider.assessment_history(Scope("sub-001"), start, datetime(2026, 12, 1, tzinfo=timezone.utc))
    september = provider.assessment_history(Scope("sub-001"), start, datetime(2026, 9, 30, tzinfo=timezone.utc))

    assert sorted(point.assessment_id for point in everything) == ["assess-000", "assess-001"]
    assert [point.score for point in september] == [70.0]


def test_unresolved_findings_skip_compliant(exports: Path) -> None:
    provider = JsonAssessmentProvider(base_dir=str(exports))

    findings = provider.unresolved_findings(Scope("sub-002"))

    assert [item.id for item in findings] == ["assess-900-open"]


def test_missing_exports_raise_provider_error(tmp_path: Path) -> None:
    with pytest.raises(ProviderError):
        JsonAssessmentProvider(base_dir=str(tmp_path / "missing")).latest_assessment(Scope("sub-001"))

    with pytest.raises(ProviderError) as exc:
        JsonAssessmentProvider(base_dir=str(tmp_path)).run_assessment(Scope("sub-404"))
    assert exc.value.next_steps


def test_audit_log_lists_runs_newest_first(exports: Path) -> None:
    provider = JsonAssessmentProvider(base_dir=str(exports))
    start = datetime(2026, 8, 1, tzinfo=timezone.utc)

    entries = provider.assessment_audit_log(Scope("sub-001"), start, datetime(2026, 12, 1, tzinfo=timezone.utc))

    assert [entry.assessment_id for entry in entries] == ["assess-001", "assess-000"]
    assert entries[0].status == "Completed"
    assert entries[0].initiated_by is None
    assert entries[0].duration_seconds == 1200.0
    assert entries[1].status == "Failed"
    assert entries[1].initiated_by == "ops@example.com"
    assert entries[1].finding_count == 2
