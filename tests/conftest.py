from __future__ import annotations

import os

os.environ.setdefault("CLEANUP_SECRET", "cron-secret-for-tests")
os.environ.setdefault("ADMIN_EMAIL", "admin@example.com")
os.environ.setdefault("ADMIN_JWT_SECRET", "test-admin-secret-with-at-least-32-bytes")
os.environ.setdefault("MAIL_UNSUBSCRIBE_SECRET", "test-unsubscribe-secret-with-32-bytes-min")

import dataclasses  # noqa: E402
from datetime import datetime, timedelta, timezone  # noqa: E402
from typing import Iterable  # noqa: E402

import pytest  # noqa: E402

from account_lifecycle.domain.account import Account, Role, SignalKind, normalize_role  # noqa: E402
from account_lifecycle.domain.contracts import CleanupFlags  # noqa: E402
from account_lifecycle.domain.service import LifecycleService  # noqa: E402
from account_lifecycle.locking.run_lock import InMemoryRunLock  # noqa: E402
from account_lifecycle.notifications.mailer import InactivityWarning, NotificationError  # noqa: E402

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def days_ago(days: int) -> datetime:
    return NOW - timedelta(days=days)


def days_ahead(days: int) -> datetime:
    return NOW + timedelta(days=days)


class FakeRepository:
    """In-memory account store mimicking the Postgres-backed behaviours."""

    def __init__(self) -> None:
        self.accounts: dict[str, Account] = {}
        self.signals: dict[tuple[str, SignalKind], datetime] = {}
        self.rooms: dict[str, str] = {}
        self.signal_queries: list[tuple[str, SignalKind]] = []
        self.audit_log: list[dict] = []
        self.failing_writes: set[str] = set()
        self.failing_deletes: set[str] = set()
        self.unavailable = False

    def add(
        self,
        account_id: str,
        *,
        role: str = "student",
        created_at: datetime | None = None,
        last_signal: datetime | None = None,
        email_opt_out: bool = False,
        warned_at: datetime | None = None,
        scheduled_at: datetime | None = None,
    ) -> Account:
        account = Account(
            account_id=account_id,
            email=f"{account_id}@example.com",
            name=account_id.title(),
            role=role,
            created_at=created_at if created_at is not None else days_ago(400),
            email_opt_out=email_opt_out,
            inactivity_warned_at=warned_at,
            scheduled_deletion_at=scheduled_at,
        )
        self.accounts[account_id] = account
        if last_signal is not None:
            kind = SignalKind.task_creation if role == "professor" else SignalKind.essay_submission
            self.signals[(account_id, kind)] = last_signal
        return account

    def find_accounts_by_roles(self, roles: Iterable[Role]) -> list[Account]:
        if self.unavailable:
            raise ConnectionError("account store unreachable")
        wanted = set(roles)
        return [
            dataclasses.replace(account)
            for account in self.accounts.values()
            if normalize_role(account.role) in wanted
        ]

    def get_account(self, account_id: str) -> Account | None:
        account = self.accounts.get(account_id)
        return dataclasses.replace(account) if account else None

    def get_created_at(self, account_id: str) -> datetime | None:
        account = self.accounts.get(account_id)
        return account.created_at if account else None

    def get_last_signal_timestamp(self, account_id: str, signal_kind: SignalKind) -> datetime | None:
        self.signal_queries.append((account_id, signal_kind))
        return self.signals.get((account_id, signal_kind))

    def write_warn_and_schedule(
        self, account_id: str, warned_at: datetime, scheduled_at: datetime, *, actor: str | None = None
    ) -> bool:
        if account_id in self.failing_writes:
            raise RuntimeError("write failed")
        account = self.accounts.get(account_id)
        if account is None or account.inactivity_warned_at is not None:
            return False
        account.inactivity_warned_at = warned_at
        account.scheduled_deletion_at = scheduled_at
        self.audit_log.append({"account_id": account_id, "event_type": "account.inactivity_warned", "actor": actor})
        return True

    def delete_account(self, account_id: str, *, actor: str | None = None) -> bool:
        if account_id in self.failing_deletes:
            raise RuntimeError("delete failed")
        if self.accounts.pop(account_id, None) is None:
            return False
        self.audit_log.append({"account_id": account_id, "event_type": "account.deleted", "actor": actor})
        return True

    def set_email_opt_out(self, account_id: str, email: str) -> bool:
        account = self.accounts.get(account_id)
        if account is None or account.email.lower() != email.lower():
            return False
        account.email_opt_out = True
        return True

    def find_latest_room_id(self, account_id: str) -> str | None:
        return self.rooms.get(account_id)

    def count_lifecycle_states(self) -> dict[str, int]:
        accounts = list(self.accounts.values())
        return {
            "accounts": len(accounts),
            "warned": sum(1 for a in accounts if a.inactivity_warned_at is not None),
            "scheduled_for_deletion": sum(1 for a in accounts if a.scheduled_deletion_at is not None),
            "opted_out": sum(1 for a in accounts if a.email_opt_out),
        }


class FakeNotifier:
    def __init__(self) -> None:
        self.sent: list[InactivityWarning] = []
        self.failing_recipients: set[str] = set()

    def send_inactivity_warning(self, warning: InactivityWarning) -> dict:
        if warning.to in self.failing_recipients:
            raise NotificationError("provider rejected the message")
        self.sent.append(warning)
        return {"status": "sent", "message_id": f"msg-{len(self.sent)}"}


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def run_lock() -> InMemoryRunLock:
    return InMemoryRunLock()


@pytest.fixture
def make_service(repository, notifier, run_lock):
    """Build a LifecycleService over the fakes with a frozen clock."""

    def factory(**flag_overrides) -> LifecycleService:
        return LifecycleService(
            repository,
            notifier,
            run_lock,
            flags=CleanupFlags(**flag_overrides),
            app_web_url="https://app.example.com",
            api_public_url="https://api.example.com",
            clock=lambda: NOW,
        )

    return factory
