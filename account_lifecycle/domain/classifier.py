"""Pure lifecycle classification of a single account."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from .account import PARTICIPATING_ROLES, Account
from .contracts import LifecycleConfig, as_utc


class Bucket(str, Enum):
    active = "active"
    warn_window = "warn_window"
    scheduled_deletion = "scheduled_deletion"
    deletion_due = "deletion_due"
    opted_out = "opted_out"
    inert = "inert"


@dataclass(frozen=True, slots=True)
class Classification:
    """Bucket plus the deadlines computed for it.

    ``delete_at`` is the date a warning would schedule (``warn_window``), the
    stored schedule (``scheduled_deletion``/``deletion_due``) or the natural
    retention deadline otherwise. ``overdue`` marks warn-window accounts that
    slipped past their natural deadline without ever being warned.
    """

    bucket: Bucket
    last_activity: datetime
    warn_at: datetime
    delete_at: datetime
    overdue: bool = False


def classify(
    account: Account,
    last_activity: datetime,
    now: datetime,
    config: LifecycleConfig,
) -> Classification:
    """Classify ``account`` at ``now``; first matching rule wins."""
    warn_at = last_activity + timedelta(days=config.warn_threshold_days)
    default_delete_at = last_activity + timedelta(days=config.retention_days)
    scheduled = as_utc(account.scheduled_deletion_at)

    def result(bucket: Bucket, delete_at: datetime, overdue: bool = False) -> Classification:
        return Classification(
            bucket=bucket,
            last_activity=last_activity,
            warn_at=warn_at,
            delete_at=delete_at,
            overdue=overdue,
        )

    if account.email_opt_out:
        return result(Bucket.opted_out, scheduled or default_delete_at)
    if account.normalized_role not in PARTICIPATING_ROLES:
        return result(Bucket.inert, scheduled or default_delete_at)

    if scheduled is not None:
        if now >= scheduled:
            return result(Bucket.deletion_due, scheduled)
        return result(Bucket.scheduled_deletion, scheduled)

    if account.inactivity_warned_at is None:
        if warn_at <= now < default_delete_at:
            return result(Bucket.warn_window, default_delete_at)
        if now >= default_delete_at:
            # Never delete without a warning: grant a fresh lead window from now.
            return result(
                Bucket.warn_window,
                now + timedelta(days=config.warn_lead_days),
                overdue=True,
            )

    return result(Bucket.active, default_delete_at)
