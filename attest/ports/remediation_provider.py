from __future__ import annotations

from typing import Protocol

from attest.core.models import Finding, RemediationGuidance, Scope


class RemediationProvider(Protocol):
    """Boundary for mutating cloud resources.

    Implementations raise on failure; the executor turns every exception into
    a Failed execution.
    """
    def preview(self, scope: Scope, finding: Finding) -> list[str]:
        """Describe the changes ``apply`` would make without making them."""
        ...

    def backup(self, scope: Scope, finding: Finding) -> str:
        """Snapshot the resource state and return a backup id."""
        ...

    def apply(self, scope: Scope, finding: Finding, timeout_seconds: float | None = None) -> list[str]:
        """Apply the fix and return the changes made."""
        ...

    def restore(self, scope: Scope, finding: Finding, backup_id: str) -> None:
        ...

    def remediation_guidance(self, finding: Finding) -> RemediationGuidance | None:
        ...
