from __future__ import annotations

from typing import Protocol

from attest.core.models import EvidencePackage


class EvidenceStore(Protocol):
    """Persistence boundary for collected evidence packages."""
    def store(self, package: EvidencePackage) -> str:
        """Persist the package and return a storage reference.

        Args:
            package (EvidencePackage): Package to persist.

        Returns:
            str: Location of the stored package.
        """
        ...
