from __future__ import annotations

from dataclasses import dataclass

from attest.core.models import Finding
from attest.core.taxonomy import DEFAULT_SEVERITY_LEVEL, severities_for_level


@dataclass
class FindingCriteria:
    severity_filter: str = DEFAULT_SEVERITY_LEVEL
    control_family: str | None = None
    resource_group: str | None = None
    auto_remediable_only: bool = False
    cap: int | None = None


def filter_findings(findings: list[Finding], criteria: FindingCriteria) -> list[Finding]:
    """Select and order findings for remediation or planning.

    Args:
        findings (list[Finding]): Candidate findings in provider order.
        criteria (FindingCriteria): Filters and optional cap.

    Returns:
        list[Finding]: Most severe first, ties broken by first control id
        (or title when there is none) so a capped selection is reproducible.

    Notes:
        Filters run as severity, family, resource scope, auto-remediable, then
        the cap is applied to the sorted result.
    """
    allowed = set(severities_for_level(criteria.severity_filter))
    selected = [item for item in findings if item.severity in allowed]

    if criteria.control_family:
        prefix = criteria.control_family.strip().upper()
        selected = [
            item for item in selected
            if any(control.upper().startswith(prefix) for control in item.control_ids)
        ]

    if criteria.resource_group:
        needle = f"resourcegroups/{criteria.resource_group.strip().lower()}"
        selected = [item for item in selected if needle in item.resource_id.lower()]

    if criteria.auto_remediable_only:
        selected = [item for item in selected if item.auto_remediable]

    ordered = sorted(selected, key=priority_key)
    if criteria.cap is not None:
        ordered = ordered[: max(criteria.cap, 0)]
    return ordered


def priority_key(finding: Finding) -> tuple[int, str]:
    return (-finding.severity.rank, finding.first_control or finding.title)
