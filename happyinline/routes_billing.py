"""Subscription billing routes backed by Stripe."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import stripe
from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from . import billing
from .auth import current_profile, forbidden, unauthorized
from .extensions import db
from .models import Profile
from .plans import BILLING_PERIOD_DAYS, PLAN_ORDER, REFUND_DAYS, get_plan, plan_entry, upgrade_options
from .subscriptions import derive_subscription_status

bp_billing = Blueprint("billing", __name__)

PAYMENT_ERROR_MESSAGE = "An error occurred while processing the payment."


def _owner_or_error():
    profile = current_profile()
    if profile is None:
        return None, unauthorized()
    if profile.role != "owner":
        return None, forbidden("Only business owners have subscriptions")
    return profile, None


def _payment_error(action: str, exc: Exception):
    current_app.logger.exception("Stripe API error while %s", action, exc_info=exc)
    return jsonify({"error": "payment_error", "message": PAYMENT_ERROR_MESSAGE}), 500


def _billing_unavailable():
    current_app.logger.warning("Stripe secret key not configured")
    return jsonify({
        "error": "server_error",
        "message": "Payments are not currently available. Please contact support.",
    }), 500


@bp_billing.get("/plans")
def list_plans() -> tuple[dict[str, object], int]:
    """
    List the subscription plans in ascending order.
    ---
    tags:
      - Billing
    responses:
      200:
        description: Plans with price, provider range and license limit
    """
    return jsonify({"plans": [plan_entry(key) for key in PLAN_ORDER]}), 200


@bp_billing.get("/plans/upgrades")
def list_upgrade_options() -> tuple[dict[str, object], int]:
    """Plans above ``?current=``, or above the caller's plan when omitted."""
    current = request.args.get("current")
    if current is None:
        profile = current_profile()
        current = profile.subscription_plan if profile else None
    return jsonify({"current_plan": current, "plans": upgrade_options(current)}), 200


@bp_billing.get("/subscriptions/status")
def get_subscription_status() -> tuple[dict[str, object], int]:
    profile, error = _owner_or_error()
    if error:
        return error

    status = derive_subscription_status(profile)
    status["max_licenses"] = profile.max_licenses or 0
    status["license_count"] = profile.license_count or 0
    return jsonify({"subscription": status}), 200


@bp_billing.post("/subscriptions")
def create_subscription() -> tuple[dict[str, object], int]:
    """Start a paid subscription for the calling owner.
    ---
    tags:
      - Billing
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            plan:
              type: string
              enum: [basic, starter, professional, enterprise, unlimited]
            payment_method_id:
              type: string
          required:
            - plan
            - payment_method_id
    responses:
      200:
        description: Card needs confirmation; returns requires_action and client_secret
      201:
        description: Subscription active
      400:
        description: Unknown plan or missing payment method
      500:
        description: Payment or database error
    """
    profile, error = _owner_or_error()
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    plan_key = payload.get("plan")
    payment_method_id = payload.get("payment_method_id")

    plan = get_plan(plan_key)
    if not plan:
        return jsonify({"error": "invalid_plan", "message": "Unknown subscription plan"}), 400
    if not payment_method_id:
        return jsonify({"error": "invalid_payload", "message": "payment_method_id is required"}), 400

    try:
        result = billing.create_subscription(
            email=profile.email,
            profile_id=profile.profile_id,
            plan_key=plan_key,
            price_id=plan["price_id"],
            payment_method_id=payment_method_id,
        )
    except billing.BillingNotConfigured:
        return _billing_unavailable()
    except stripe.StripeError as exc:
        return _payment_error("creating subscription", exc)

    if result["requires_action"]:
        return jsonify({
            "requires_action": True,
            "client_secret": result["client_secret"],
            "subscription_id": result["subscription_id"],
        }), 200

    now = datetime.now(timezone.utc)
    try:
        profile.subscription_plan = plan_key
        profile.subscription_status = "active"
        profile.subscription_start_date = now
        profile.subscription_end_date = None
        profile.next_billing_date = now + timedelta(days=BILLING_PERIOD_DAYS)
        profile.refund_eligible_until = now + timedelta(days=REFUND_DAYS)
        profile.stripe_customer_id = result["customer_id"]
        profile.stripe_subscription_id = result["subscription_id"]
        profile.monthly_amount_cents = plan["amount_cents"]
        profile.max_licenses = plan["max_licenses"]
        profile.license_count = 0
        profile.payment_method_last4 = result["payment_method_last4"]
        profile.payment_method_brand = result["payment_method_brand"]
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to store subscription", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({
        "requires_action": False,
        "subscription_id": result["subscription_id"],
        "subscription": derive_subscription_status(profile),
    }), 201


@bp_billing.post("/subscriptions/upgrade")
def upgrade_subscription() -> tuple[dict[str, object], int]:
    """Move the owner's Stripe subscription to another plan with proration."""
    profile, error = _owner_or_error()
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    plan_key = payload.get("plan")
    plan = get_plan(plan_key)
    if not plan:
        return jsonify({"error": "invalid_plan", "message": "Unknown subscription plan"}), 400
    if plan_key == profile.subscription_plan:
        return jsonify({"error": "invalid_plan", "message": "You are already on this plan"}), 400

    if not profile.stripe_subscription_id:
        return jsonify({
            "error": "requires_new_subscription",
            "message": "No active Stripe subscription. Please subscribe to a plan first.",
        }), 400

    try:
        billing.change_subscription_price(profile.stripe_subscription_id, plan["price_id"])
    except billing.BillingNotConfigured:
        return _billing_unavailable()
    except stripe.StripeError as exc:
        return _payment_error("upgrading subscription", exc)

    try:
        profile.subscription_plan = plan_key
        profile.monthly_amount_cents = plan["amount_cents"]
        profile.max_licenses = plan["max_licenses"]
        profile.refund_eligible_until = None
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to store upgraded plan", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"success": True, "subscription": derive_subscription_status(profile)}), 200


@bp_billing.post("/subscriptions/cancel")
def cancel_subscription() -> tuple[dict[str, object], int]:
    """Cancel the owner's subscription.

    Inside the refund window the latest payment is refunded and access ends
    now; afterwards the subscription runs until the end of the paid period.
    """
    profile, error = _owner_or_error()
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    reason = (payload.get("reason") or "").strip() or "requested_by_customer"
    now = datetime.now(timezone.utc)

    if not profile.stripe_subscription_id:
        try:
            profile.subscription_plan = "none"
            profile.subscription_status = "cancelled"
            profile.subscription_end_date = now
            profile.max_licenses = 0
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Failed to downgrade profile", exc_info=exc)
            return jsonify({"error": "database_error"}), 500
        return jsonify({"success": True, "refunded": False, "status": "cancelled"}), 200

    refund_window = derive_subscription_status(profile, now)["is_refund_eligible"]

    try:
        if refund_window:
            result = billing.refund_and_cancel(
                profile.stripe_subscription_id, profile.monthly_amount_cents, reason
            )
        else:
            result = billing.cancel_at_period_end(profile.stripe_subscription_id)
    except billing.BillingNotConfigured:
        return _billing_unavailable()
    except stripe.StripeError as exc:
        return _payment_error("cancelling subscription", exc)

    try:
        if refund_window:
            profile.subscription_status = "refunded"
            profile.subscription_end_date = now
            profile.refund_eligible_until = None
            profile.max_licenses = 0
        else:
            profile.subscription_status = "cancelled"
            profile.subscription_end_date = profile.next_billing_date or now
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to store cancellation", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({
        "success": True,
        "refunded": refund_window,
        "refund_id": result.get("refund_id"),
        "status": profile.subscription_status,
        "subscription": derive_subscription_status(profile),
    }), 200


def _from_timestamp(value) -> datetime | None:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _invoice_period_end(invoice: dict) -> datetime | None:
    lines = (invoice.get("lines") or {}).get("data") or []
    if lines:
        period_end = (lines[0].get("period") or {}).get("end")
        if period_end:
            return _from_timestamp(period_end)
    return _from_timestamp(invoice.get("period_end"))


def _profile_for(stripe_object: dict) -> Profile | None:
    subscription_id = stripe_object.get("subscription")
    if stripe_object.get("object") == "subscription":
        subscription_id = stripe_object.get("id")
    if subscription_id:
        profile = Profile.query.filter_by(stripe_subscription_id=subscription_id).first()
        if profile:
            return profile

    customer_id = stripe_object.get("customer")
    if customer_id:
        return Profile.query.filter_by(stripe_customer_id=customer_id).first()
    return None


@bp_billing.post("/stripe-webhook")
def stripe_webhook():
    """Stripe webhook endpoint for subscription lifecycle events.
    ---
    tags:
      - Billing
    parameters:
      - name: Stripe-Signature
        in: header
        required: true
        type: string
        description: Stripe signature for webhook verification
    responses:
      200:
        description: Event received
      400:
        description: Invalid payload or signature
    """
    payload = request.get_data()
    sig_header = request.headers.get("Stripe-Signature")
    webhook_secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")

    if not webhook_secret:
        current_app.logger.error("Stripe webhook secret not configured - webhooks will not be processed")
        return jsonify({"received": True}), 200

    try:
        event = billing.verify_webhook(payload, sig_header, webhook_secret)
    except ValueError:
        current_app.logger.warning("Invalid webhook payload")
        return jsonify({"error": "invalid_payload"}), 400
    except stripe.SignatureVerificationError:
        current_app.logger.warning("Invalid signature for webhook")
        return jsonify({"error": "invalid_signature"}), 400

    evt_type = event.get("type")
    data = (event.get("data") or {}).get("object") or {}

    if evt_type not in ("customer.subscription.deleted", "invoice.payment_succeeded", "invoice.payment_failed"):
        current_app.logger.info("Ignoring Stripe event %s", evt_type)
        return jsonify({"received": True}), 200

    profile = _profile_for(data)
    if profile is None:
        current_app.logger.warning("No profile found for Stripe event %s", evt_type)
        return jsonify({"received": True}), 200

    try:
        if evt_type == "customer.subscription.deleted":
            if profile.subscription_status != "refunded":
                profile.subscription_status = "cancelled"
            profile.subscription_end_date = (
                _from_timestamp(data.get("ended_at")) or datetime.now(timezone.utc)
            )
        elif evt_type == "invoice.payment_succeeded":
            profile.subscription_status = "active"
            next_billing = _invoice_period_end(data)
            if next_billing:
                profile.next_billing_date = next_billing
        else:
            profile.subscription_status = "past_due"
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to apply Stripe event %s", evt_type, exc_info=exc)

    return jsonify({"received": True}), 200
