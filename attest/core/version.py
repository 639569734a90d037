from __future__ import annotations

import subprocess
from importlib.metadata import PackageNotFoundError, version


def get_attest_version() -> str:
    try:
        return version("attest-compliance")
    except PackageNotFoundError:
        return _version_from_git() or "dev"


def _version_from_git() -> str | None:
    try:
        value = subprocess.check_output(
            ["git", "describe", "--tags", "--always"],
            text=True,
            stderr=subprocess.DEVNULL,
        ).strip()
    except (OSError, subprocess.SubprocessError):
        return None
    return value.lstrip("v") or None
