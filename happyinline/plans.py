"""Subscription plans sold to shop owners."""
from __future__ import annotations

STRIPE_PLANS: dict[str, dict[str, object]] = {
    "basic": {
        "name": "Back of the Line",
        "price_id": "price_1SR36oHqPXhoiSmsprlpcDjq",
        "amount_cents": 2499,
        "providers": "1-2",
        "max_licenses": 2,
        "description": "Perfect for solo providers",
    },
    "starter": {
        "name": "Middle of the Line",
        "price_id": "price_1SR3FaHqPXhoiSmsmsgGNNf6",
        "amount_cents": 7499,
        "providers": "3-4",
        "max_licenses": 4,
        "description": "Perfect for small teams",
    },
    "professional": {
        "name": "Front of the Line",
        "price_id": "price_1SR3K6HqPXhoiSmsuRKPdTUT",
        "amount_cents": 9999,
        "providers": "5-9",
        "max_licenses": 9,
        "description": "Growing teams with multiple providers",
    },
    "enterprise": {
        "name": "Skip The Line Pass",
        "price_id": "price_1SR3LqHqPXhoiSmsnHthwoHq",
        "amount_cents": 14999,
        "providers": "10-14",
        "max_licenses": 14,
        "description": "Established businesses",
    },
    "unlimited": {
        "name": "Never A Line - Unlimited",
        "price_id": "price_1SYT3nHqPXhoiSmsIebDJXfd",
        "amount_cents": 19900,
        "providers": "Unlimited",
        "max_licenses": 9999,
        "description": "Unlimited licenses with priority support",
    },
}

PLAN_ORDER = ["basic", "starter", "professional", "enterprise", "unlimited"]

# Owners can cancel for a full refund within this many days of subscribing
REFUND_DAYS = 7
BILLING_PERIOD_DAYS = 30


def get_plan(plan_key: str | None) -> dict[str, object] | None:
    if not plan_key:
        return None
    return STRIPE_PLANS.get(plan_key)


def plan_entry(plan_key: str) -> dict[str, object]:
    return {"key": plan_key, **STRIPE_PLANS[plan_key]}


def upgrade_options(current_plan: str | None) -> list[dict[str, object]]:
    """Plans above the current one; every plan when current is unknown or already the top."""
    current_index = PLAN_ORDER.index(current_plan) if current_plan in PLAN_ORDER else -1

    if current_index == -1 or current_index == len(PLAN_ORDER) - 1:
        return [plan_entry(key) for key in PLAN_ORDER]

    return [plan_entry(key) for key in PLAN_ORDER[current_index + 1:]]
