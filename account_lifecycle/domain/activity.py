"""Last-activity resolution across role-specific signal sources."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Mapping

from .account import Role, SignalKind, normalize_role
from .contracts import as_utc, utcnow
from ..repository import AccountRepository

logger = logging.getLogger(__name__)

# Students are active when they hand in a finished essay; professors when they
# create tasks in one of their rooms.
ROLE_SIGNALS: Mapping[Role, SignalKind] = {
    Role.student: SignalKind.essay_submission,
    Role.professor: SignalKind.task_creation,
}


class ActivityResolver:
    """Resolve the most recent meaningful activity timestamp for an account."""

    def __init__(
        self,
        repository: AccountRepository,
        *,
        clock: Callable[[], datetime] = utcnow,
        signals: Mapping[Role, SignalKind] = ROLE_SIGNALS,
    ) -> None:
        self._repository = repository
        self._clock = clock
        self._signals = signals

    def resolve(self, account_id: str, role: object, fallback_created_at: datetime | None) -> datetime:
        """Return the latest signal timestamp for the role, or the creation time.

        Roles without a signal strategy never query activity sources. When no
        usable creation time exists either, ``now`` is used as a last-resort
        floor and the record is logged as anomalous.
        """
        kind = self._signals.get(normalize_role(role))
        if kind is not None:
            latest = as_utc(self._repository.get_last_signal_timestamp(account_id, kind))
            if latest is not None:
                return latest
        return self._floor(account_id, fallback_created_at)

    def _floor(self, account_id: str, fallback_created_at: datetime | None) -> datetime:
        floor = as_utc(fallback_created_at)
        if floor is None:
            floor = as_utc(self._repository.get_created_at(account_id))
        if floor is None:
            now = self._clock()
            logger.warning(
                "account %s has no usable creation time; using %s as activity floor",
                account_id,
                now.isoformat(),
            )
            return now
        return floor
