"""Tests for subscription status derivation."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from happyinline.subscriptions import derive_subscription_status

NOW = datetime(2030, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_profile(**fields):
    values = {
        "subscription_plan": "basic",
        "subscription_status": "active",
        "refund_eligible_until": None,
        "trial_ends_at": None,
        "subscription_end_date": None,
        "next_billing_date": None,
    }
    values.update(fields)
    return SimpleNamespace(**values)


def test_no_plan_is_inactive() -> None:
    for plan in (None, "none"):
        status = derive_subscription_status(make_profile(subscription_plan=plan), NOW)

        assert status["is_active"] is False
        assert status["is_trial"] is False
        assert status["trial_days_remaining"] == 0
        assert status["refund_days_remaining"] == 0
        assert status["plan_details"] == {}
        assert status["can_upgrade"] is True


def test_active_plan_within_refund_window() -> None:
    profile = make_profile(refund_eligible_until=NOW + timedelta(days=6, hours=1))

    status = derive_subscription_status(profile, NOW)

    assert status["is_active"] is True
    assert status["is_refund_eligible"] is True
    assert status["refund_days_remaining"] == 7
    assert status["plan_details"]["max_licenses"] == 2
    assert status["can_upgrade"] is True


def test_refund_window_expired() -> None:
    profile = make_profile(refund_eligible_until=NOW - timedelta(minutes=1))

    status = derive_subscription_status(profile, NOW)

    assert status["is_refund_eligible"] is False
    assert status["refund_days_remaining"] == 0


def test_trial_counts_days_and_is_active() -> None:
    profile = make_profile(subscription_status="trial", trial_ends_at=NOW + timedelta(days=2, hours=3))

    status = derive_subscription_status(profile, NOW)

    assert status["is_trial"] is True
    assert status["trial_days_remaining"] == 3
    assert status["is_active"] is True
    assert status["access_until"] == (NOW + timedelta(days=2, hours=3)).isoformat()


def test_expired_trial_is_neither_trial_nor_active() -> None:
    profile = make_profile(subscription_status="trial", trial_ends_at=NOW - timedelta(days=1))

    status = derive_subscription_status(profile, NOW)

    assert status["is_trial"] is False
    assert status["is_active"] is False
    assert status["can_upgrade"] is False


def test_cancelled_keeps_access_until_period_end() -> None:
    profile = make_profile(
        subscription_status="cancelled",
        subscription_end_date=NOW + timedelta(days=10),
    )

    status = derive_subscription_status(profile, NOW)

    assert status["is_active"] is True
    assert status["can_upgrade"] is False
    assert status["access_until"] == (NOW + timedelta(days=10)).isoformat()


def test_cancelled_falls_back_to_next_billing_date() -> None:
    profile = make_profile(subscription_status="cancelled", next_billing_date=NOW + timedelta(days=3))

    assert derive_subscription_status(profile, NOW)["is_active"] is True


def test_cancelled_after_period_end_is_inactive() -> None:
    profile = make_profile(subscription_status="cancelled", subscription_end_date=NOW - timedelta(days=1))

    assert derive_subscription_status(profile, NOW)["is_active"] is False


def test_unlimited_plan_cannot_upgrade() -> None:
    status = derive_subscription_status(make_profile(subscription_plan="unlimited"), NOW)

    assert status["is_active"] is True
    assert status["can_upgrade"] is False


def test_naive_datetimes_are_treated_as_utc() -> None:
    naive_end = (NOW + timedelta(days=1)).replace(tzinfo=None)
    profile = make_profile(refund_eligible_until=naive_end)

    status = derive_subscription_status(profile, NOW)

    assert status["refund_days_remaining"] == 1


def test_past_due_is_inactive() -> None:
    status = derive_subscription_status(make_profile(subscription_status="past_due"), NOW)

    assert status["is_active"] is False
