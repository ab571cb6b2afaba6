"""Read-only preview of what the next cleanup run would do."""

from __future__ import annotations

from typing import Any

from .classifier import Bucket
from .contracts import (
    DEFAULT_RETENTION_DAYS,
    DEFAULT_WARN_LEAD_DAYS,
    CleanupCandidate,
    LifecycleConfig,
    PreviewResult,
)
from .scan import LifecycleScanner, ScanEntry


def to_candidate(entry: ScanEntry, reason: str) -> CleanupCandidate:
    account = entry.account
    classification = entry.classification
    return CleanupCandidate(
        account_id=account.account_id,
        email=account.email,
        name=account.name,
        role=account.role,
        last_activity=classification.last_activity,
        warn_at=classification.warn_at,
        delete_at=classification.delete_at,
        inactivity_warned_at=account.inactivity_warned_at,
        scheduled_deletion_at=account.scheduled_deletion_at,
        email_opt_out=account.email_opt_out,
        overdue=classification.overdue,
        reason=reason,
    )


class PreviewEngine:
    """Run the cleanup classification without notifying or mutating anything."""

    def __init__(self, scanner: LifecycleScanner, *, include_content_owners: bool = True) -> None:
        self._scanner = scanner
        self._include_content_owners = include_content_owners

    def preview(
        self,
        retention_days: Any = DEFAULT_RETENTION_DAYS,
        warn_lead_days: Any = DEFAULT_WARN_LEAD_DAYS,
    ) -> PreviewResult:
        config = LifecycleConfig.clamped(retention_days, warn_lead_days)
        scan = self._scanner.scan(config, include_content_owners=self._include_content_owners)
        return PreviewResult(
            config=config,
            include_content_owners=self._include_content_owners,
            now=scan.now,
            checked=scan.checked,
            warn_candidates=[to_candidate(e, "warn_window") for e in scan.in_bucket(Bucket.warn_window)],
            delete_candidates=[to_candidate(e, "delete_due") for e in scan.in_bucket(Bucket.deletion_due)],
        )
