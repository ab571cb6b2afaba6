"""Prometheus instruments for lifecycle side effects."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

WARNINGS_SENT = Counter(
    "lifecycle_inactivity_warnings_total",
    "Inactivity warnings persisted, by trigger.",
    ["trigger"],
)
ACCOUNTS_DELETED = Counter(
    "lifecycle_accounts_deleted_total",
    "Accounts removed by the lifecycle engine, by trigger.",
    ["trigger"],
)
ACTION_FAILURES = Counter(
    "lifecycle_action_failures_total",
    "Per-account actions that failed and were skipped.",
    ["action"],
)
RUN_DURATION = Histogram(
    "lifecycle_cleanup_run_seconds",
    "Wall-clock duration of automatic cleanup runs.",
)
