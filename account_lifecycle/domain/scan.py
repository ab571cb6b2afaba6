"""Full-account classification pass shared by the cleanup run, preview and manual actions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from .account import Account, Role
from .activity import ActivityResolver
from .classifier import Bucket, Classification, classify
from .contracts import LifecycleConfig, utcnow
from ..repository import AccountRepository

logger = logging.getLogger(__name__)


def scanned_roles(include_content_owners: bool) -> tuple[Role, ...]:
    if include_content_owners:
        return (Role.student, Role.professor)
    return (Role.student,)


@dataclass(slots=True)
class ScanEntry:
    account: Account
    classification: Classification


@dataclass(slots=True)
class ScanResult:
    now: datetime
    config: LifecycleConfig
    include_content_owners: bool
    checked: int
    entries: list[ScanEntry] = field(default_factory=list)

    def in_bucket(self, bucket: Bucket) -> list[ScanEntry]:
        return [entry for entry in self.entries if entry.classification.bucket is bucket]


class LifecycleScanner:
    """Load eligible accounts, resolve their activity and classify them."""

    def __init__(
        self,
        repository: AccountRepository,
        resolver: ActivityResolver,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._resolver = resolver
        self._clock = clock

    def scan(self, config: LifecycleConfig, *, include_content_owners: bool = True) -> ScanResult:
        """Classify every eligible account at a single ``now``.

        Failing to list accounts propagates: the store is unreachable and the
        caller must treat the whole operation as failed. A failure resolving
        one account only drops that account from this pass.
        """
        accounts = self._repository.find_accounts_by_roles(scanned_roles(include_content_owners))
        now = self._clock()
        result = ScanResult(
            now=now,
            config=config,
            include_content_owners=include_content_owners,
            checked=len(accounts),
        )
        for account in accounts:
            try:
                last_activity = self._resolver.resolve(
                    account.account_id, account.role, account.created_at
                )
            except Exception:
                logger.exception(
                    "activity resolution failed for account %s; skipping it this pass",
                    account.account_id,
                )
                continue
            result.entries.append(
                ScanEntry(account=account, classification=classify(account, last_activity, now, config))
            )
        return result
