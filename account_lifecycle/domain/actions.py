"""Side effects shared by the automatic run and the operator actions."""

from __future__ import annotations

import logging
from datetime import datetime

from .classifier import Bucket
from .scan import ScanEntry
from ..metrics import ACCOUNTS_DELETED, WARNINGS_SENT
from ..notifications.links import LinkBuilder
from ..notifications.mailer import InactivityWarning, ResendNotifier
from ..repository import AccountRepository

logger = logging.getLogger(__name__)


class LifecycleActions:
    """Warn-and-schedule and delete primitives with their guards.

    Failures from the notifier or the store propagate; callers decide whether
    one account failing should stop them.
    """

    def __init__(
        self,
        repository: AccountRepository,
        notifier: ResendNotifier,
        links: LinkBuilder,
    ) -> None:
        self._repository = repository
        self._notifier = notifier
        self._links = links

    def warn(self, entry: ScanEntry, now: datetime, *, trigger: str) -> bool:
        """Send the warning, then persist the warned/scheduled pair.

        The account is re-read first; one that vanished, opted out or was
        warned since the scan is left alone. Returns ``True`` only when the
        pair-write applied.
        """
        classification = entry.classification
        if classification.bucket is not Bucket.warn_window:
            raise ValueError(f"account {entry.account.account_id} is not in the warn window")

        account_id = entry.account.account_id
        fresh = self._repository.get_account(account_id)
        if fresh is None or fresh.email_opt_out or fresh.inactivity_warned_at is not None:
            logger.info("account %s changed since the scan; not warning", account_id)
            return False
        if fresh.scheduled_deletion_at is not None:
            logger.error(
                "account %s has a deletion schedule but was never warned; leaving it untouched",
                account_id,
            )
            return False

        delete_at = classification.delete_at
        self._notifier.send_inactivity_warning(
            InactivityWarning(
                to=fresh.email,
                name=fresh.name,
                deletion_date=delete_at,
                resource_link=self._links.resource_link(account_id),
                unsubscribe_link=self._links.unsubscribe_link(account_id, fresh.email),
            )
        )
        if not self._repository.write_warn_and_schedule(account_id, now, delete_at, actor=trigger):
            logger.warning("account %s was warned by a concurrent writer; keeping its schedule", account_id)
            return False

        WARNINGS_SENT.labels(trigger=trigger).inc()
        logger.info(
            "account %s warned (overdue=%s); deletion scheduled for %s",
            account_id,
            classification.overdue,
            delete_at.isoformat(),
        )
        return True

    def delete(self, account_id: str, *, trigger: str) -> bool:
        """Delete the account; ``False`` when it no longer exists."""
        if not self._repository.delete_account(account_id, actor=trigger):
            logger.info("account %s not found; nothing deleted", account_id)
            return False
        ACCOUNTS_DELETED.labels(trigger=trigger).inc()
        logger.info("account %s deleted", account_id)
        return True
