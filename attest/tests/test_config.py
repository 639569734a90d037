from pathlib import Path

import pytest

from attest.core.config import Settings, env_bool


def test_defaults_are_safe() -> None:
    settings = Settings()

    assert settings.dry_run_by_default is True
    assert settings.max_remediations_per_batch == 10
    assert settings.assessment_cache_hours == 24.0


def test_from_file_reads_yaml_and_clamps(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text(
        "\n".join(
            [
                "remediation:",
                "  enable_automated_remediation: false",
                "  max_remediations_per_batch: 500",
                "  max_concurrent: 0",
                "  timeout_seconds: 120",
                "assessment:",
                "  cache_duration_hours: 1000",
                "evidence:",
                "  base_dir: out/evidence",
                "logging:",
                "  level: debug",
            ]
        ),
        encoding="utf-8",
    )

    settings = Settings.from_file(str(path), environ={})

    assert settings.enable_automated_remediation is False
    assert settings.max_remediations_per_batch == 100
    assert settings.max_concurrent == 1
    assert settings.remediation_timeout_seconds == 120
    assert settings.assessment_cache_hours == 168.0
    assert settings.evidence_dir == "out/evidence"
    assert settings.log_level == "DEBUG"


def test_from_file_reads_json(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text('{"remediation": {"dry_run_by_default": false}}', encoding="utf-8")

    assert Settings.from_file(str(path), environ={}).dry_run_by_default is False


def test_from_file_rejects_unknown_extension(tmp_path: Path) -> None:
    path = tmp_path / "settings.toml"
    path.write_text("", encoding="utf-8")

    with pytest.raises(ValueError):
        Settings.from_file(str(path))


def test_environment_overrides_file_values() -> None:
    environ = {
        "ATTEST_ENABLE_AUTOMATED_REMEDIATION": "false",
        "ATTEST_DRY_RUN": "0",
        "ATTEST_LOG_LEVEL": "warning",
    }

    settings = Settings.from_dict({"remediation": {"enable_automated_remediation": True}}, environ=environ)

    assert settings.enable_automated_remediation is False
    assert settings.dry_run_by_default is False
    assert settings.log_level == "WARNING"


def test_env_bool_default_when_unset() -> None:
    assert env_bool("ATTEST_MISSING", True, environ={}) is True
    assert env_bool("FLAG", False, environ={"FLAG": "Yes"}) is True


def test_snapshot_round_trips_through_from_dict() -> None:
    settings = Settings(max_concurrent=7, enable_rollback=False, state_idle_ttl_hours=2.0, state_max_conversations=50)

    assert Settings.from_dict(settings.snapshot(), environ={}) == settings


def test_string_booleans_in_files_are_parsed(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(
        '{"remediation": {"enable_automated_remediation": "false", "dry_run_by_default": "no",'
        ' "enable_rollback": "True"}, "evidence": {"enable_evidence_collection": 0}}',
        encoding="utf-8",
    )

    settings = Settings.from_file(str(path), environ={})

    assert settings.enable_automated_remediation is False
    assert settings.dry_run_by_default is False
    assert settings.enable_rollback is True
    assert settings.enable_evidence_collection is False


def test_state_limits_are_read_from_file(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text("state:\n  idle_ttl_hours: 6\n  max_conversations: 0\n", encoding="utf-8")

    settings = Settings.from_file(str(path), environ={})

    assert settings.state_idle_ttl_hours == 6.0
    assert settings.state_max_conversations == 1


def test_from_file_rejects_non_mapping(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError):
        Settings.from_file(str(path))
