"""Automatic inactivity cleanup run."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from .actions import LifecycleActions
from .classifier import Bucket
from .contracts import (
    DEFAULT_MAX_WARNINGS_PER_RUN,
    DEFAULT_RETENTION_DAYS,
    DEFAULT_WARN_LEAD_DAYS,
    CleanupFlags,
    CleanupRunResult,
    LifecycleConfig,
    clamp_max_warnings,
)
from .scan import LifecycleScanner, ScanEntry
from ..locking.run_lock import RunLock
from ..metrics import ACTION_FAILURES, RUN_DURATION

logger = logging.getLogger(__name__)

TRIGGER = "scheduler"


class CleanupOrchestrator:
    """Scan every account and warn or delete it according to its bucket."""

    def __init__(
        self,
        scanner: LifecycleScanner,
        actions: LifecycleActions,
        run_lock: RunLock,
        *,
        flags: CleanupFlags,
    ) -> None:
        self._scanner = scanner
        self._actions = actions
        self._run_lock = run_lock
        self._flags = flags

    def run(
        self,
        retention_days: Any = DEFAULT_RETENTION_DAYS,
        warn_lead_days: Any = DEFAULT_WARN_LEAD_DAYS,
        max_warnings_per_run: Any = DEFAULT_MAX_WARNINGS_PER_RUN,
    ) -> CleanupRunResult:
        """Execute one pass and return counts of successful actions.

        Thresholds are clamped rather than rejected. Warnings stop once
        ``max_warnings_per_run`` is reached; the remaining accounts stay
        eligible for the next run. Raises ``RunInProgressError`` when another
        run holds the lock.
        """
        config = LifecycleConfig.clamped(retention_days, warn_lead_days)
        cap = clamp_max_warnings(max_warnings_per_run)

        with self._run_lock.hold(), RUN_DURATION.time():
            scan = self._scanner.scan(config, include_content_owners=self._flags.include_content_owners)
            warned = 0
            deleted = 0
            for entry in scan.entries:
                bucket = entry.classification.bucket
                if bucket is Bucket.warn_window:
                    if warned >= cap:
                        continue
                    if self._warn(entry, scan.now):
                        warned += 1
                elif bucket is Bucket.deletion_due:
                    if not self._flags.auto_delete_enabled:
                        logger.info(
                            "auto delete disabled; account %s is due but left in place",
                            entry.account.account_id,
                        )
                        continue
                    if self._delete(entry.account.account_id):
                        deleted += 1

        logger.info(
            "inactive cleanup finished: checked=%s warned=%s deleted=%s cap=%s retention=%s lead=%s",
            scan.checked,
            warned,
            deleted,
            cap,
            config.retention_days,
            config.warn_lead_days,
        )
        return CleanupRunResult(
            warned=warned,
            deleted=deleted,
            checked=scan.checked,
            max_warnings_per_run=cap,
            include_content_owners=self._flags.include_content_owners,
            auto_delete_enabled=self._flags.auto_delete_enabled,
            config=config,
            now=scan.now,
        )

    def _warn(self, entry: ScanEntry, now: datetime) -> bool:
        try:
            return self._actions.warn(entry, now, trigger=TRIGGER)
        except Exception:
            ACTION_FAILURES.labels(action="warn").inc()
            logger.exception("warning account %s failed; retrying next run", entry.account.account_id)
            return False

    def _delete(self, account_id: str) -> bool:
        try:
            return self._actions.delete(account_id, trigger=TRIGGER)
        except Exception:
            ACTION_FAILURES.labels(action="delete").inc()
            logger.exception("deleting account %s failed; retrying next run", account_id)
            return False
