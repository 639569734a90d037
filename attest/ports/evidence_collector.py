from __future__ import annotations

from typing import Protocol

from attest.core.models import EvidenceItem, Scope


class EvidenceCollector(Protocol):
    """Gathers one kind of evidence for a control family."""
    name: str

    def collect(self, scope: Scope, control_family: str, evidence_type: str) -> list[EvidenceItem]:
        """Collect evidence items.

        Args:
            scope (Scope): Target scope.
            control_family (str): Uppercased family code, for example "AC".
            evidence_type (str): Requested evidence type, for example "configuration".

        Returns:
            list[EvidenceItem]: Items found; empty when nothing applies.
        """
        ...
