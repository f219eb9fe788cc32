"""Derive an owner's effective subscription state from the stored profile fields."""
from __future__ import annotations

import math
from datetime import datetime, timezone

from .plans import get_plan

SECONDS_PER_DAY = 24 * 60 * 60


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _days_until(moment: datetime | None, now: datetime) -> int:
    """Whole days (rounded up) until ``moment``; 0 once it has passed."""
    if moment is None:
        return 0
    remaining = (moment - now).total_seconds()
    if remaining <= 0:
        return 0
    return math.ceil(remaining / SECONDS_PER_DAY)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def derive_subscription_status(profile, now: datetime | None = None) -> dict[str, object]:
    """Flag trial, refund-window and active state for a profile.

    Pure date arithmetic: nothing is written back to the profile.
    """
    now = _aware(now) or datetime.now(timezone.utc)
    plan_key = profile.subscription_plan
    status = profile.subscription_status

    if not plan_key or plan_key == "none":
        return {
            "subscription_plan": plan_key,
            "subscription_status": status,
            "is_active": False,
            "is_trial": False,
            "trial_days_remaining": 0,
            "trial_ends_at": None,
            "is_refund_eligible": False,
            "refund_days_remaining": 0,
            "plan_details": {},
            "can_upgrade": True,
            "access_until": None,
        }

    refund_days_remaining = _days_until(_aware(profile.refund_eligible_until), now)
    is_refund_eligible = refund_days_remaining > 0

    trial_ends_at = _aware(profile.trial_ends_at)
    is_trial = status == "trial"
    trial_days_remaining = 0
    if is_trial and trial_ends_at:
        trial_days_remaining = _days_until(trial_ends_at, now)
        if trial_days_remaining == 0:
            # Trial expired
            is_trial = False

    is_active = status == "active"
    if is_trial and trial_days_remaining > 0:
        is_active = True

    end_date = _aware(profile.subscription_end_date) or _aware(profile.next_billing_date)
    if status == "cancelled" and end_date and end_date > now:
        # Cancelled, but still inside the paid period
        is_active = True

    return {
        "subscription_plan": plan_key,
        "subscription_status": status,
        "is_active": is_active,
        "is_trial": is_trial,
        "trial_days_remaining": trial_days_remaining,
        "trial_ends_at": _iso(trial_ends_at),
        "is_refund_eligible": is_refund_eligible,
        "refund_days_remaining": refund_days_remaining,
        "plan_details": get_plan(plan_key) or {},
        "can_upgrade": (status == "active" or is_trial) and plan_key != "unlimited",
        "access_until": _iso(trial_ends_at if is_trial else end_date),
    }
