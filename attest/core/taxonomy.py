from __future__ import annotations

import re
from typing import Iterable

from attest.core.models import Finding, Priority, Severity


SEVERITY_ORDER = (
    Severity.CRITICAL,
    Severity.HIGH,
    Severity.MEDIUM,
    Severity.LOW,
    Severity.INFORMATIONAL,
)

DEFAULT_SEVERITY_LEVEL = "high"

_LEVEL_PREFIX = {
    "critical": 1,
    "high": 2,
    "medium": 3,
    "low": 4,
    "all": len(SEVERITY_ORDER),
}

_SEVERITY_WEIGHTS = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
    Severity.INFORMATIONAL: 0,
}

CONTROL_FAMILIES = {
    "AC": "Access Control",
    "AU": "Audit and Accountability",
    "CA": "Assessment, Authorization, and Monitoring",
    "CM": "Configuration Management",
    "CP": "Contingency Planning",
    "IA": "Identification and Authentication",
    "IR": "Incident Response",
    "MP": "Media Protection",
    "RA": "Risk Assessment",
    "SC": "System and Communications Protection",
    "SI": "System and Information Integrity",
}

_FAMILY_SEPARATOR = re.compile(r"[-.(\s]")


def severities_for_level(level: str | None) -> tuple[Severity, ...]:
    """Return the severities at or above a named filter level.

    Args:
        level (str | None): One of critical, high, medium, low or all.

    Returns:
        tuple[Severity, ...]: Cumulative prefix of the severity order.

    Notes:
        Unknown or empty names fall back to Critical and High so an unclear
        request never widens the blast radius.
    """
    key = (level or "").strip().lower()
    count = _LEVEL_PREFIX.get(key, _LEVEL_PREFIX[DEFAULT_SEVERITY_LEVEL])
    return SEVERITY_ORDER[:count]


def control_family(control_id: str) -> str:
    """Derive the family code of a control id ("ac-2" -> "AC")."""
    value = control_id.strip()
    parts = _FAMILY_SEPARATOR.split(value, maxsplit=1)
    return parts[0].upper()


def family_name(code: str) -> str:
    return CONTROL_FAMILIES.get(code.upper(), code.upper())


def severity_weight(severity: Severity) -> int:
    return _SEVERITY_WEIGHTS[severity]


def remediation_priority(severity: Severity) -> Priority:
    if severity in (Severity.CRITICAL, Severity.HIGH):
        return Priority.HIGH
    if severity is Severity.MEDIUM:
        return Priority.MEDIUM
    return Priority.LOW


def risk_reduction(remediated: Iterable[Finding], candidates: Iterable[Finding]) -> float:
    """Weighted share of candidate risk removed by the remediated findings.

    Returns:
        float: Fraction in [0, 1]; 0.0 when the candidates carry no weight.
    """
    total = sum(severity_weight(item.severity) for item in candidates)
    if total <= 0:
        return 0.0
    removed = sum(severity_weight(item.severity) for item in remediated)
    return min(removed / total, 1.0)


def families_for(findings: Iterable[Finding]) -> list[str]:
    families = {control_family(control) for item in findings for control in item.control_ids}
    return sorted(families)


def parse_severity(value: object) -> Severity:
    """Lenient severity parser; accepts any case and the "info" alias."""
    return Severity.parse(value)
