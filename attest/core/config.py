from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import yaml


ENV_ENABLE_AUTOMATED_REMEDIATION = "ATTEST_ENABLE_AUTOMATED_REMEDIATION"
ENV_DRY_RUN = "ATTEST_DRY_RUN"
ENV_LOG_LEVEL = "ATTEST_LOG_LEVEL"


def env_bool(name: str, default: bool, environ: Mapping[str, str] | None = None) -> bool:
    """Read a boolean from the environment with a safe default."""
    value = (os.environ if environ is None else environ).get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes"}


def _as_bool(value: object, default: bool) -> bool:
    """Coerce a settings value; strings are read the way env_bool reads them."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes"}
    return bool(value)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass
class Settings:
    enable_automated_remediation: bool = True
    dry_run_by_default: bool = True
    max_remediations_per_batch: int = 10
    max_concurrent: int = 3
    enable_rollback: bool = True
    remediation_timeout_seconds: int = 300
    assessment_cache_hours: float = 24.0
    enable_evidence_collection: bool = True
    evidence_dir: str = "evidence"
    state_assessment_ttl_hours: float = 4.0
    state_evidence_ttl_hours: float = 8.0
    state_idle_ttl_hours: float = 24.0
    state_max_conversations: int = 1000
    log_level: str = "INFO"

    @staticmethod
    def from_file(path: str, environ: Mapping[str, str] | None = None) -> "Settings":
        """Load settings from a YAML or JSON file, then apply env overrides.

        Raises:
            ValueError: If the file extension is not supported or the
                content is not a mapping.
        """
        ext = Path(path).suffix.lower()
        with open(path, "r", encoding="utf-8") as handle:
            if ext in {".yaml", ".yml"}:
                data = yaml.safe_load(handle)
            elif ext == ".json":
                data = json.load(handle)
            else:
                raise ValueError(f"Unsupported settings file extension: {ext}")
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"Settings file {path} must contain a mapping at the top level")
        return Settings.from_dict(data, environ=environ)

    @staticmethod
    def from_dict(data: dict, environ: Mapping[str, str] | None = None) -> "Settings":
        remediation = data.get("remediation") or {}
        assessment = data.get("assessment") or {}
        evidence = data.get("evidence") or {}
        state = data.get("state") or {}
        logging_section = data.get("logging") or {}

        settings = Settings(
            enable_automated_remediation=_as_bool(remediation.get("enable_automated_remediation"), True),
            dry_run_by_default=_as_bool(remediation.get("dry_run_by_default"), True),
            max_remediations_per_batch=int(_clamp(int(remediation.get("max_remediations_per_batch", 10)), 1, 100)),
            max_concurrent=int(_clamp(int(remediation.get("max_concurrent", 3)), 1, 50)),
            enable_rollback=_as_bool(remediation.get("enable_rollback"), True),
            remediation_timeout_seconds=max(1, int(remediation.get("timeout_seconds", 300))),
            assessment_cache_hours=float(_clamp(float(assessment.get("cache_duration_hours", 24)), 0, 168)),
            enable_evidence_collection=_as_bool(evidence.get("enable_evidence_collection"), True),
            evidence_dir=str(evidence.get("base_dir", "evidence")),
            state_assessment_ttl_hours=float(state.get("assessment_ttl_hours", 4)),
            state_evidence_ttl_hours=float(state.get("evidence_ttl_hours", 8)),
            state_idle_ttl_hours=float(state.get("idle_ttl_hours", 24)),
            state_max_conversations=max(1, int(state.get("max_conversations", 1000))),
            log_level=str(logging_section.get("level", "INFO")).upper(),
        )
        return settings.with_env(environ)

    def with_env(self, environ: Mapping[str, str] | None = None) -> "Settings":
        """Apply ATTEST_* environment overrides in place and return self."""
        env = os.environ if environ is None else environ
        self.enable_automated_remediation = env_bool(
            ENV_ENABLE_AUTOMATED_REMEDIATION, self.enable_automated_remediation, env
        )
        self.dry_run_by_default = env_bool(ENV_DRY_RUN, self.dry_run_by_default, env)
        level = env.get(ENV_LOG_LEVEL)
        if level:
            self.log_level = level.strip().upper()
        return self

    def snapshot(self) -> dict:
        return {
            "remediation": {
                "enable_automated_remediation": self.enable_automated_remediation,
                "dry_run_by_default": self.dry_run_by_default,
                "max_remediations_per_batch": self.max_remediations_per_batch,
                "max_concurrent": self.max_concurrent,
                "enable_rollback": self.enable_rollback,
                "timeout_seconds": self.remediation_timeout_seconds,
            },
            "assessment": {"cache_duration_hours": self.assessment_cache_hours},
            "evidence": {
                "enable_evidence_collection": self.enable_evidence_collection,
                "base_dir": self.evidence_dir,
            },
            "state": {
                "assessment_ttl_hours": self.state_assessment_ttl_hours,
                "evidence_ttl_hours": self.state_evidence_ttl_hours,
                "idle_ttl_hours": self.state_idle_ttl_hours,
                "max_conversations": self.state_max_conversations,
            },
            "logging": {"level": self.log_level},
        }
