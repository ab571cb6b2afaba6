"""Domain-level configuration values and result contracts shared by multiple layers."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

DEFAULT_RETENTION_DAYS = 90
DEFAULT_WARN_LEAD_DAYS = 7
DEFAULT_MAX_WARNINGS_PER_RUN = 200

MIN_RETENTION_DAYS = 30
MAX_RETENTION_DAYS = 3650
MAX_WARNINGS_CEILING = 5000


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Any) -> datetime | None:
    """Return ``value`` as an aware UTC datetime, or ``None`` when it is not a datetime."""
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def safe_int(value: Any, fallback: int, minimum: int, maximum: int) -> int:
    """Coerce ``value`` to an int within ``[minimum, maximum]``.

    Anything that does not parse as a finite number is replaced by ``fallback``
    before clamping, so a misconfigured caller never aborts a run.
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = float(fallback)
    if not math.isfinite(number):
        number = float(fallback)
    return max(minimum, min(maximum, math.floor(number)))


@dataclass(frozen=True, slots=True)
class LifecycleConfig:
    """Thresholds driving classification; ``retention_days > warn_lead_days > 0``."""

    retention_days: int = DEFAULT_RETENTION_DAYS
    warn_lead_days: int = DEFAULT_WARN_LEAD_DAYS

    def __post_init__(self) -> None:
        if not self.retention_days > self.warn_lead_days > 0:
            raise ValueError("retention_days must be greater than warn_lead_days, which must be positive")

    @property
    def warn_threshold_days(self) -> int:
        return self.retention_days - self.warn_lead_days

    @classmethod
    def clamped(cls, retention_days: Any = None, warn_lead_days: Any = None) -> "LifecycleConfig":
        """Build a config from untrusted input, correcting out-of-range values."""
        retention = safe_int(
            retention_days, DEFAULT_RETENTION_DAYS, MIN_RETENTION_DAYS, MAX_RETENTION_DAYS
        )
        lead = safe_int(warn_lead_days, DEFAULT_WARN_LEAD_DAYS, 1, retention - 1)
        return cls(retention_days=retention, warn_lead_days=lead)


def clamp_max_warnings(value: Any) -> int:
    return safe_int(value, DEFAULT_MAX_WARNINGS_PER_RUN, 1, MAX_WARNINGS_CEILING)


@dataclass(frozen=True, slots=True)
class CleanupFlags:
    """Feature switches for the automatic run.

    ``auto_delete_enabled=False`` is the warn-only safety mode: due accounts are
    detected and reported but never removed.
    """

    include_content_owners: bool = True
    auto_delete_enabled: bool = True


@dataclass(slots=True)
class CleanupCandidate:
    """An account the next run would act on, with the deadlines it was classified with."""

    account_id: str
    email: str
    name: str
    role: str
    last_activity: datetime
    warn_at: datetime
    delete_at: datetime
    inactivity_warned_at: datetime | None
    scheduled_deletion_at: datetime | None
    email_opt_out: bool
    overdue: bool
    reason: str


@dataclass(slots=True)
class PreviewResult:
    config: LifecycleConfig
    include_content_owners: bool
    now: datetime
    checked: int
    warn_candidates: list[CleanupCandidate] = field(default_factory=list)
    delete_candidates: list[CleanupCandidate] = field(default_factory=list)


@dataclass(slots=True)
class CleanupRunResult:
    """Summary of one automatic pass; counts cover successful actions only."""

    warned: int
    deleted: int
    checked: int
    max_warnings_per_run: int
    include_content_owners: bool
    auto_delete_enabled: bool
    config: LifecycleConfig
    now: datetime


@dataclass(slots=True)
class ManualWarnResult:
    sent: int


@dataclass(slots=True)
class ManualDeleteResult:
    deleted: int
