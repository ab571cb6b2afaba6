from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

import pytest

from account_lifecycle.config import _env_int
from account_lifecycle.domain.contracts import (
    DEFAULT_RETENTION_DAYS,
    MAX_RETENTION_DAYS,
    MIN_RETENTION_DAYS,
)

ROOT_DIR = Path(__file__).resolve().parents[1]


@pytest.mark.parametrize(
    "raw, expected",
    [("180", 180), ("ninety", 90), ("", 90), ("nan", 90), ("5", 30), ("99999", 3650), ("120.7", 120)],
)
def test_env_thresholds_are_clamped_not_raised(monkeypatch, raw, expected):
    monkeypatch.setenv("CLEANUP_RETENTION_DAYS", raw)

    value = _env_int("CLEANUP_RETENTION_DAYS", DEFAULT_RETENTION_DAYS, MIN_RETENTION_DAYS, MAX_RETENTION_DAYS)

    assert value == expected


def test_settings_import_survives_malformed_thresholds():
    env = {
        **os.environ,
        "PYTHONPATH": str(ROOT_DIR),
        "CLEANUP_RETENTION_DAYS": "ninety",
        "CLEANUP_WARN_DAYS": "a week",
        "CLEANUP_MAX_WARNINGS": "-3",
    }
    script = (
        "from account_lifecycle.config import get_settings; s = get_settings(); "
        "print(s.retention_days, s.warn_lead_days, s.max_warnings_per_run)"
    )

    completed = subprocess.run(
        [sys.executable, "-c", script], env=env, cwd=ROOT_DIR, capture_output=True, text=True, check=False
    )

    assert completed.returncode == 0, completed.stderr
    assert completed.stdout.split() == ["90", "7", "1"]
