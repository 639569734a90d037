from __future__ import annotations

from dataclasses import dataclass

from attest.core.models import Assessment, EvidenceItem, Scope, new_id, utc_now
from attest.core.taxonomy import control_family
from attest.ports.assessment_provider import AssessmentProvider


@dataclass
class AssessmentEvidenceCollector:
    """Derive evidence from the latest stored assessment.

    Supports the configuration, policy and metrics evidence types; other types
    yield nothing since an assessment export cannot prove them.
    """
    provider: AssessmentProvider
    name: str = "assessment"

    def collect(self, scope: Scope, control_family_code: str, evidence_type: str) -> list[EvidenceItem]:
        assessment = self.provider.latest_assessment(scope)
        if assessment is None:
            return []
        family = control_family_code.upper()
        if evidence_type == "configuration":
            return self._configuration(assessment, family)
        if evidence_type == "policy":
            return self._policy(assessment, family)
        if evidence_type == "metrics":
            return self._metrics(assessment, family)
        return []

    def _configuration(self, assessment: Assessment, family: str) -> list[EvidenceItem]:
        items = []
        for finding in _family_findings(assessment, family):
            items.append(
                self._item(
                    family,
                    "configuration",
                    f"Resource state for {finding.resource_name or finding.resource_id}",
                    {
                        "resource_id": finding.resource_id,
                        "resource_type": finding.resource_type,
                        "compliance_status": finding.compliance_status,
                        "control_ids": list(finding.control_ids),
                        "finding_id": finding.id,
                    },
                )
            )
        return items

    def _policy(self, assessment: Assessment, family: str) -> list[EvidenceItem]:
        controls = sorted({control for finding in _family_findings(assessment, family) for control in finding.control_ids})
        return [
            self._item(
                family,
                "policy",
                f"Evaluated controls for {family}",
                {"assessment_id": assessment.id, "controls_with_findings": controls},
            )
        ]

    def _metrics(self, assessment: Assessment, family: str) -> list[EvidenceItem]:
        result = assessment.family_results.get(family)
        findings = _family_findings(assessment, family)
        return [
            self._item(
                family,
                "metrics",
                f"Compliance score for {family}",
                {
                    "assessment_id": assessment.id,
                    "family_score": result.score if result else None,
                    "overall_score": assessment.score,
                    "open_findings": len(findings),
                },
            )
        ]

    def _item(self, family: str, evidence_type: str, title: str, data: dict) -> EvidenceItem:
        return EvidenceItem(
            id=new_id("ev"),
            control_family=family,
            evidence_type=evidence_type,
            title=title,
            collected_at=utc_now(),
            collector=self.name,
            data=data,
        )


def _family_findings(assessment: Assessment, family: str) -> list:
    return [
        finding
        for finding in assessment.findings()
        if any(control_family(control) == family for control in finding.control_ids)
    ]
