"""Lifecycle service wiring the resolver, classifier scan and the three entry points."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Iterable

from .actions import LifecycleActions
from .activity import ActivityResolver
from .cleanup import CleanupOrchestrator
from .contracts import (
    DEFAULT_MAX_WARNINGS_PER_RUN,
    DEFAULT_RETENTION_DAYS,
    DEFAULT_WARN_LEAD_DAYS,
    CleanupFlags,
    CleanupRunResult,
    ManualDeleteResult,
    ManualWarnResult,
    PreviewResult,
    utcnow,
)
from .manual import ManualActionService
from .preview import PreviewEngine
from .scan import LifecycleScanner
from ..config import Settings
from ..locking.run_lock import RunLock, build_run_lock
from ..notifications.links import LinkBuilder
from ..notifications.mailer import ResendNotifier
from ..repository import AccountRepository
from ..security.tokens import decode_unsubscribe_token

logger = logging.getLogger(__name__)


def _or_default(value: Any, default: int) -> Any:
    """Use the configured default when a caller left a threshold out."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    return value


class LifecycleService:
    """Account lifecycle workflows backed by Postgres storage."""

    def __init__(
        self,
        repository: AccountRepository,
        notifier: ResendNotifier,
        run_lock: RunLock,
        *,
        flags: CleanupFlags,
        app_web_url: str,
        api_public_url: str,
        clock: Callable[[], datetime] = utcnow,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        warn_lead_days: int = DEFAULT_WARN_LEAD_DAYS,
        max_warnings_per_run: int = DEFAULT_MAX_WARNINGS_PER_RUN,
    ) -> None:
        """Assemble the lifecycle components around shared dependencies."""
        self._repository = repository
        self._flags = flags
        self._retention_days = retention_days
        self._warn_lead_days = warn_lead_days
        self._max_warnings_per_run = max_warnings_per_run
        scanner = LifecycleScanner(repository, ActivityResolver(repository, clock=clock), clock=clock)
        actions = LifecycleActions(
            repository,
            notifier,
            LinkBuilder(repository, app_web_url=app_web_url, api_public_url=api_public_url),
        )
        self._orchestrator = CleanupOrchestrator(scanner, actions, run_lock, flags=flags)
        self._preview = PreviewEngine(scanner, include_content_owners=flags.include_content_owners)
        self._manual = ManualActionService(
            scanner,
            actions,
            run_lock,
            include_content_owners=flags.include_content_owners,
        )

    @classmethod
    def from_settings(
        cls,
        repository: AccountRepository,
        settings: Settings,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> "LifecycleService":
        """Build the service with the notifier, run lock, flags and thresholds named in ``settings``."""
        return cls(
            repository,
            ResendNotifier(api_key=settings.resend_api_key, sender=settings.mail_from),
            build_run_lock(settings),
            flags=CleanupFlags(
                include_content_owners=settings.include_content_owners,
                auto_delete_enabled=settings.auto_delete_enabled,
            ),
            app_web_url=settings.app_web_url,
            api_public_url=settings.api_public_url,
            clock=clock,
            retention_days=settings.retention_days,
            warn_lead_days=settings.warn_lead_days,
            max_warnings_per_run=settings.max_warnings_per_run,
        )

    def run_cleanup(
        self,
        retention_days: Any = None,
        warn_lead_days: Any = None,
        max_warnings_per_run: Any = None,
    ) -> CleanupRunResult:
        """Run the automatic pass; omitted thresholds fall back to the configured ones."""
        return self._orchestrator.run(
            _or_default(retention_days, self._retention_days),
            _or_default(warn_lead_days, self._warn_lead_days),
            _or_default(max_warnings_per_run, self._max_warnings_per_run),
        )

    def preview(self, retention_days: Any = None, warn_lead_days: Any = None) -> PreviewResult:
        return self._preview.preview(
            _or_default(retention_days, self._retention_days),
            _or_default(warn_lead_days, self._warn_lead_days),
        )

    def send_warnings(
        self, account_ids: Iterable[Any], retention_days: Any = None, warn_lead_days: Any = None
    ) -> ManualWarnResult:
        return self._manual.send_warnings(
            account_ids,
            _or_default(retention_days, self._retention_days),
            _or_default(warn_lead_days, self._warn_lead_days),
        )

    def delete_accounts(self, account_ids: Iterable[Any]) -> ManualDeleteResult:
        return self._manual.delete_accounts(account_ids)

    def diagnostics(self) -> dict[str, Any]:
        """Return lifecycle counters plus the active feature flags."""
        counts = self._repository.count_lifecycle_states()
        return {
            "counts": counts,
            "include_content_owners": self._flags.include_content_owners,
            "auto_delete_enabled": self._flags.auto_delete_enabled,
        }

    def unsubscribe(self, token: str) -> bool:
        """Apply an unsubscribe token; returns whether an account was updated.

        Raises ``ValueError`` for missing, expired or forged tokens.
        """
        if not token:
            raise ValueError("unsubscribe token missing")
        account_id, email = decode_unsubscribe_token(token)
        updated = self._repository.set_email_opt_out(account_id, email)
        logger.info("unsubscribe applied for account %s (updated=%s)", account_id, updated)
        return updated
