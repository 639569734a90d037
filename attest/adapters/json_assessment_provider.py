from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import yaml

from attest.core.errors import ProviderError
from attest.core.models import Assessment, AssessmentAuditEntry, Finding, HistoryPoint, Scope


logger = logging.getLogger(__name__)

_EXTENSIONS = {".json", ".yaml", ".yml"}


@dataclass
class JsonAssessmentProvider:
    """Serve assessments exported as JSON or YAML files, one per assessment.

    A resource-group scope with no export of its own falls back to the
    subscription-level exports; findings are narrowed by the filter later.
    """
    base_dir: str = "assessments"

    def run_assessment(self, scope: Scope) -> Assessment:
        assessment = self.latest_assessment(scope)
        if assessment is None:
            raise ProviderError(
                "assessment",
                f"No assessment export found for {scope.describe()} in {self.base_dir}",
                next_steps=[f"Export an assessment for {scope.key()} into {self.base_dir}"],
            )
        return assessment

    def latest_assessment(self, scope: Scope) -> Assessment | None:
        matches = self._matching(scope)
        if not matches:
            return None
        return max(matches, key=lambda item: item.completed_at)

    def unresolved_findings(self, scope: Scope) -> list[Finding]:
        assessment = self.latest_assessment(scope)
        if assessment is None:
            return []
        return [item for item in assessment.findings() if item.compliance_status.lower() != "compliant"]

    def assessment_history(self, scope: Scope, start: datetime, end: datetime) -> list[HistoryPoint]:
        return [
            HistoryPoint(timestamp=item.completed_at, score=item.score, assessment_id=item.id)
            for item in self._matching(scope)
            if start <= item.completed_at <= end
        ]

    def assessment_audit_log(self, scope: Scope, start: datetime, end: datetime) -> list[AssessmentAuditEntry]:
        entries = [
            AssessmentAuditEntry(
                assessment_id=item.id,
                scope_key=item.scope.key(),
                initiated_by=item.initiated_by,
                status=item.status,
                started_at=item.started_at,
                completed_at=item.completed_at,
                score=item.score,
                finding_count=len(item.findings()),
            )
            for item in self._matching(scope)
            if start <= item.started_at <= end
        ]
        return sorted(entries, key=lambda entry: entry.started_at, reverse=True)

    def _matching(self, scope: Scope) -> list[Assessment]:
        assessments = self._load_all()
        exact = [item for item in assessments if item.scope.key() == scope.key()]
        if exact or not scope.resource_group:
            return exact
        parent = Scope(subscription_id=scope.subscription_id).key()
        return [item for item in assessments if item.scope.key() == parent]

    def _load_all(self) -> list[Assessment]:
        base = Path(self.base_dir)
        if not base.is_dir():
            raise ProviderError("assessment", f"Assessment directory not found: {base}")
        assessments: list[Assessment] = []
        for path in sorted(base.iterdir()):
            if path.suffix.lower() not in _EXTENSIONS or not path.is_file():
                continue
            try:
                assessments.append(Assessment.from_dict(_read(path)))
            except (KeyError, TypeError, ValueError, yaml.YAMLError) as exc:
                logger.warning("Skipping unreadable assessment export %s: %s", path, exc)
        return assessments


def _read(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as handle:
        if path.suffix.lower() == ".json":
            data = json.load(handle)
        else:
            data = yaml.safe_load(handle)
    if not isinstance(data, dict):
        raise ValueError("expected a mapping at the top level")
    return data
