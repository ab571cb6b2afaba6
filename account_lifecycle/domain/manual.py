"""Operator-initiated lifecycle actions over explicit account lists."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from .actions import LifecycleActions
from .classifier import Bucket
from .contracts import (
    DEFAULT_RETENTION_DAYS,
    DEFAULT_WARN_LEAD_DAYS,
    LifecycleConfig,
    ManualDeleteResult,
    ManualWarnResult,
)
from .scan import LifecycleScanner
from ..locking.run_lock import RunLock
from ..metrics import ACTION_FAILURES

logger = logging.getLogger(__name__)

TRIGGER = "admin"


def _unique_ids(account_ids: Iterable[Any]) -> list[str]:
    return list(dict.fromkeys(str(account_id) for account_id in account_ids))


class ManualActionService:
    """Warn or delete operator-selected accounts, one id at a time."""

    def __init__(
        self,
        scanner: LifecycleScanner,
        actions: LifecycleActions,
        run_lock: RunLock,
        *,
        include_content_owners: bool = True,
    ) -> None:
        self._scanner = scanner
        self._actions = actions
        self._run_lock = run_lock
        self._include_content_owners = include_content_owners

    def send_warnings(
        self,
        account_ids: Iterable[Any],
        retention_days: Any = DEFAULT_RETENTION_DAYS,
        warn_lead_days: Any = DEFAULT_WARN_LEAD_DAYS,
    ) -> ManualWarnResult:
        """Warn the listed accounts that are currently in the warn window.

        The candidate set is recomputed on every call; ids outside it are
        ignored rather than force-warned.
        """
        ids = _unique_ids(account_ids)
        if not ids:
            return ManualWarnResult(sent=0)

        config = LifecycleConfig.clamped(retention_days, warn_lead_days)
        sent = 0
        with self._run_lock.hold():
            scan = self._scanner.scan(config, include_content_owners=self._include_content_owners)
            candidates = {entry.account.account_id: entry for entry in scan.in_bucket(Bucket.warn_window)}
            for account_id in ids:
                entry = candidates.get(account_id)
                if entry is None:
                    logger.info("account %s is not in the warn window; ignoring", account_id)
                    continue
                try:
                    if self._actions.warn(entry, scan.now, trigger=TRIGGER):
                        sent += 1
                except Exception:
                    ACTION_FAILURES.labels(action="warn").inc()
                    logger.exception("manual warning for account %s failed", account_id)
        return ManualWarnResult(sent=sent)

    def delete_accounts(self, account_ids: Iterable[Any]) -> ManualDeleteResult:
        """Delete every listed account without re-checking its bucket.

        This is the administrative override; authorisation happens in the
        API layer.
        """
        deleted = 0
        for account_id in _unique_ids(account_ids):
            try:
                if self._actions.delete(account_id, trigger=TRIGGER):
                    deleted += 1
            except Exception:
                ACTION_FAILURES.labels(action="delete").inc()
                logger.exception("manual deletion of account %s failed", account_id)
        return ManualDeleteResult(deleted=deleted)
