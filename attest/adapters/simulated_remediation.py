from __future__ import annotations

import threading
from dataclasses import dataclass, field

from attest.core.models import Finding, RemediationGuidance, RemediationStep, Scope
from attest.core.taxonomy import control_family


_FAMILY_GUIDANCE = {
    "AC": (
        "Review role assignments on the resource",
        "Remove standing privileged access not justified by policy",
        "Restrict network access to approved ranges",
    ),
    "AU": (
        "Enable diagnostic settings on the resource",
        "Route audit logs to the central workspace",
        "Set log retention to the required period",
    ),
    "IA": (
        "Require multi-factor authentication for administrative access",
        "Replace shared credentials with managed identities",
    ),
    "SC": (
        "Enforce TLS 1.2 or later",
        "Enable encryption at rest with a managed key",
        "Disable public network access",
    ),
    "CM": (
        "Apply the approved configuration baseline",
        "Assign the baseline policy to the resource scope",
    ),
}


@dataclass
class SimulatedRemediationProvider:
    """In-memory remediation provider that records every call.

    Resources listed in the ``failing_*`` sets raise on the matching action,
    which lets callers exercise failure, rollback and manual-intervention paths
    without a cloud account.
    """
    failing_resources: set[str] = field(default_factory=set)
    failing_backups: set[str] = field(default_factory=set)
    failing_restores: set[str] = field(default_factory=set)
    missing_resources: set[str] = field(default_factory=set)
    calls: list[tuple[str, str]] = field(default_factory=list)
    remediated: dict[str, str] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _backups: int = 0

    def preview(self, scope: Scope, finding: Finding) -> list[str]:
        self._record("preview", finding)
        if finding.resource_id in self.missing_resources:
            raise LookupError(f"Resource not found: {finding.resource_id}")
        return [f"Would {change}" for change in _changes_for(finding)]

    def backup(self, scope: Scope, finding: Finding) -> str:
        self._record("backup", finding)
        if finding.resource_id in self.failing_backups:
            raise RuntimeError(f"Snapshot failed for {finding.resource_id}")
        with self._lock:
            self._backups += 1
            return f"backup-{self._backups:04d}"

    def apply(self, scope: Scope, finding: Finding, timeout_seconds: float | None = None) -> list[str]:
        self._record("apply", finding)
        if finding.resource_id in self.failing_resources or finding.resource_id in self.missing_resources:
            raise RuntimeError(f"Remediation rejected for {finding.resource_id}")
        with self._lock:
            self.remediated[finding.resource_id] = finding.id
        return list(_changes_for(finding))

    def restore(self, scope: Scope, finding: Finding, backup_id: str) -> None:
        self._record("restore", finding)
        if finding.resource_id in self.failing_restores:
            raise RuntimeError(f"Restore from {backup_id} failed for {finding.resource_id}")
        with self._lock:
            self.remediated.pop(finding.resource_id, None)

    def remediation_guidance(self, finding: Finding) -> RemediationGuidance | None:
        if not finding.first_control:
            return None
        steps = _FAMILY_GUIDANCE.get(control_family(finding.first_control))
        if not steps:
            return None
        return RemediationGuidance(
            steps=tuple(RemediationStep(order=index, description=text) for index, text in enumerate(steps, start=1))
        )

    def actions(self, action: str) -> list[str]:
        with self._lock:
            return [finding_id for name, finding_id in self.calls if name == action]

    def _record(self, action: str, finding: Finding) -> None:
        with self._lock:
            self.calls.append((action, finding.id))


def _changes_for(finding: Finding) -> list[str]:
    if finding.guidance.steps:
        return [step.description for step in finding.guidance.steps]
    return [f"remediate '{finding.title}' on {finding.resource_id}"]
