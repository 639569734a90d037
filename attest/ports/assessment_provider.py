from __future__ import annotations

from datetime import datetime
from typing import Protocol

from attest.core.models import Assessment, AssessmentAuditEntry, Finding, HistoryPoint, Scope


class AssessmentProvider(Protocol):
    """Source of truth for assessments; performs the actual scanning."""
    def run_assessment(self, scope: Scope) -> Assessment:
        """Run a new assessment for ``scope``.

        Raises:
            ProviderError: If the scanner is unreachable.
        """
        ...

    def latest_assessment(self, scope: Scope) -> Assessment | None:
        """Return the most recent stored assessment without scanning."""
        ...

    def unresolved_findings(self, scope: Scope) -> list[Finding]:
        ...

    def assessment_history(self, scope: Scope, start: datetime, end: datetime) -> list[HistoryPoint]:
        """Return score points between ``start`` and ``end`` in any order."""
        ...

    def assessment_audit_log(self, scope: Scope, start: datetime, end: datetime) -> list[AssessmentAuditEntry]:
        """Return the assessment runs started between ``start`` and ``end``, newest first."""
        ...
