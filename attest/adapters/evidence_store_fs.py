from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path

from attest.core.models import EvidencePackage
from attest.core.redaction import redact_data
from attest.core.results import to_jsonable


_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass
class FileSystemEvidenceStore:
    base_dir: str = "evidence"

    def store(self, package: EvidencePackage) -> str:
        """Persist an evidence package to the filesystem.

        Notes:
            Item payloads are redacted before writing so stored evidence never
            carries credentials picked up by a collector.
        """
        package_dir = (
            Path(self.base_dir)
            / _safe(package.scope.key())
            / package.control_family.upper()
            / package.package_id
        )
        package_dir.mkdir(parents=True, exist_ok=True)
        evidence_path = package_dir / "evidence.jsonl"
        manifest_path = package_dir / "package.json"

        with evidence_path.open("w", encoding="utf-8") as handle:
            for item in package.items:
                payload = to_jsonable(item)
                payload["package_id"] = package.package_id
                payload["data"] = redact_data(payload.get("data", {}))
                handle.write(json.dumps(payload, sort_keys=True) + "\n")

        manifest = {
            "package_id": package.package_id,
            "scope": to_jsonable(package.scope),
            "control_family": package.control_family,
            "evidence_types": list(package.evidence_types),
            "collected_at": package.collected_at.isoformat(),
            "item_count": len(package.items),
            "completeness": package.completeness,
            "errors": redact_data(list(package.errors)),
            "evidence": evidence_path.name,
        }
        manifest_path.write_text(json.dumps(manifest, indent=2, sort_keys=True), encoding="utf-8")
        return str(package_dir)


def _safe(value: str) -> str:
    return _UNSAFE.sub("_", value).strip("_") or "default"
