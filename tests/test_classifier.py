from __future__ import annotations

from datetime import timedelta

import pytest

from account_lifecycle.domain.account import Account
from account_lifecycle.domain.classifier import Bucket, classify
from account_lifecycle.domain.contracts import LifecycleConfig

from conftest import NOW, days_ago, days_ahead

CONFIG = LifecycleConfig(retention_days=90, warn_lead_days=7)


def make_account(**overrides) -> Account:
    fields = {
        "account_id": "acc-1",
        "email": "acc@example.com",
        "name": "Acc",
        "role": "student",
        "created_at": days_ago(400),
    }
    fields.update(overrides)
    return Account(**fields)


def test_on_time_warning_uses_natural_deadline():
    last = days_ago(84)
    result = classify(make_account(), last, NOW, CONFIG)

    assert result.bucket is Bucket.warn_window
    assert result.overdue is False
    assert result.delete_at == last + timedelta(days=90)
    assert result.delete_at == days_ahead(6)
    assert result.warn_at == last + timedelta(days=83)


def test_overdue_account_gets_fresh_lead_window():
    result = classify(make_account(), days_ago(120), NOW, CONFIG)

    assert result.bucket is Bucket.warn_window
    assert result.overdue is True
    assert result.delete_at == days_ahead(7)


def test_scheduled_deletion_in_the_past_is_due():
    account = make_account(inactivity_warned_at=days_ago(8), scheduled_deletion_at=days_ago(1))
    result = classify(account, days_ago(91), NOW, CONFIG)

    assert result.bucket is Bucket.deletion_due
    assert result.delete_at == days_ago(1)


def test_scheduled_deletion_exactly_now_is_due():
    account = make_account(inactivity_warned_at=days_ago(7), scheduled_deletion_at=NOW)
    assert classify(account, days_ago(90), NOW, CONFIG).bucket is Bucket.deletion_due


def test_future_schedule_waits():
    account = make_account(inactivity_warned_at=days_ago(4), scheduled_deletion_at=days_ahead(3))
    result = classify(account, days_ago(87), NOW, CONFIG)

    assert result.bucket is Bucket.scheduled_deletion
    assert result.delete_at == days_ahead(3)


def test_schedule_wins_over_recent_activity():
    account = make_account(inactivity_warned_at=days_ago(4), scheduled_deletion_at=days_ahead(3))
    assert classify(account, days_ago(1), NOW, CONFIG).bucket is Bucket.scheduled_deletion


@pytest.mark.parametrize(
    "overrides",
    [
        {},
        {"scheduled_deletion_at": days_ago(10), "inactivity_warned_at": days_ago(17)},
        {"scheduled_deletion_at": days_ahead(3), "inactivity_warned_at": days_ago(4)},
    ],
)
def test_opt_out_always_wins(overrides):
    account = make_account(email_opt_out=True, **overrides)
    for last in (days_ago(1), days_ago(84), days_ago(500)):
        assert classify(account, last, NOW, CONFIG).bucket is Bucket.opted_out


@pytest.mark.parametrize("role", ["admin", "school", "tutor", "", None])
def test_non_participating_roles_are_inert(role):
    account = make_account(role=role, scheduled_deletion_at=days_ago(1), inactivity_warned_at=days_ago(8))
    assert classify(account, days_ago(500), NOW, CONFIG).bucket is Bucket.inert


def test_roles_are_normalised():
    account = make_account(role="  Professor ")
    assert classify(account, days_ago(84), NOW, CONFIG).bucket is Bucket.warn_window


def test_recent_activity_is_active():
    result = classify(make_account(), days_ago(10), NOW, CONFIG)
    assert result.bucket is Bucket.active
    assert result.delete_at == days_ahead(80)


def test_warn_window_opens_exactly_at_threshold():
    assert classify(make_account(), days_ago(83), NOW, CONFIG).bucket is Bucket.warn_window
    just_before = NOW - timedelta(days=83) + timedelta(seconds=1)
    assert classify(make_account(), just_before, NOW, CONFIG).bucket is Bucket.active


def test_warned_account_without_schedule_is_not_rewarned():
    account = make_account(inactivity_warned_at=days_ago(2))
    assert classify(account, days_ago(120), NOW, CONFIG).bucket is Bucket.active


def test_classification_is_deterministic():
    account = make_account()
    first = classify(account, days_ago(120), NOW, CONFIG)
    second = classify(account, days_ago(120), NOW, CONFIG)
    assert first == second


def test_naive_schedule_is_treated_as_utc():
    naive = days_ago(1).replace(tzinfo=None)
    account = make_account(inactivity_warned_at=days_ago(8), scheduled_deletion_at=naive)
    assert classify(account, days_ago(91), NOW, CONFIG).bucket is Bucket.deletion_due


@pytest.mark.parametrize("retention, lead", [(90, 90), (90, 0), (7, 30)])
def test_config_rejects_inconsistent_thresholds(retention, lead):
    with pytest.raises(ValueError):
        LifecycleConfig(retention_days=retention, warn_lead_days=lead)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ((90, 7), (90, 7)),
        ((1, 7), (30, 7)),
        ((99999, 7), (3650, 7)),
        ((90, 500), (90, 89)),
        ((90, 0), (90, 1)),
        (("abc", None), (90, 7)),
        (("45.9", "3.2"), (45, 3)),
        ((float("nan"), float("inf")), (90, 7)),
    ],
)
def test_clamped_config_corrects_input(raw, expected):
    config = LifecycleConfig.clamped(*raw)
    assert (config.retention_days, config.warn_lead_days) == expected
