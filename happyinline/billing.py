"""Thin wrapper over the Stripe subscription APIs.

Stripe errors propagate to the caller; routes log them and answer with a
``payment_error`` response.
"""
from __future__ import annotations

import json
import logging

import stripe
from flask import current_app

logger = logging.getLogger(__name__)


class BillingNotConfigured(RuntimeError):
    """Raised when no Stripe secret key is configured."""


def _configure() -> None:
    stripe_key = current_app.config.get("STRIPE_SECRET_KEY")
    if not stripe_key:
        raise BillingNotConfigured("Stripe secret key not configured")
    stripe.api_key = stripe_key


def create_subscription(
    *, email: str, profile_id: int, plan_key: str, price_id: str, payment_method_id: str
) -> dict[str, object]:
    """Create the Stripe customer and subscription for an owner.

    Returns ``requires_action`` with a client secret when the first invoice
    needs 3D Secure confirmation.
    """
    _configure()

    customer = stripe.Customer.create(
        email=email,
        metadata={"profile_id": str(profile_id)},
    )
    payment_method = stripe.PaymentMethod.attach(payment_method_id, customer=customer.id)
    stripe.Customer.modify(
        customer.id,
        invoice_settings={"default_payment_method": payment_method_id},
    )

    subscription = stripe.Subscription.create(
        customer=customer.id,
        items=[{"price": price_id}],
        metadata={"profile_id": str(profile_id), "plan": plan_key},
        expand=["latest_invoice.payment_intent"],
    )
    logger.info("Created Stripe subscription %s for profile %s", subscription.id, profile_id)

    payment_intent = None
    if subscription.latest_invoice is not None:
        payment_intent = getattr(subscription.latest_invoice, "payment_intent", None)

    card = getattr(payment_method, "card", None)
    result = {
        "customer_id": customer.id,
        "subscription_id": subscription.id,
        "status": subscription.status,
        "requires_action": False,
        "client_secret": None,
        "payment_method_last4": getattr(card, "last4", None),
        "payment_method_brand": getattr(card, "brand", None),
    }

    if payment_intent is not None and payment_intent.status == "requires_action":
        result["requires_action"] = True
        result["client_secret"] = payment_intent.client_secret

    return result


def change_subscription_price(subscription_id: str, new_price_id: str) -> dict[str, object]:
    """Swap the subscription's only item to a new price, prorating the difference."""
    _configure()

    subscription = stripe.Subscription.retrieve(subscription_id)
    item_id = subscription["items"]["data"][0]["id"]

    updated = stripe.Subscription.modify(
        subscription_id,
        items=[{"id": item_id, "price": new_price_id}],
        proration_behavior="create_prorations",
    )
    logger.info("Moved Stripe subscription %s to price %s", subscription_id, new_price_id)
    return {"subscription_id": updated.id, "status": updated.status}


def refund_and_cancel(subscription_id: str, amount_cents: int | None, reason: str) -> dict[str, object]:
    """Refund the latest invoice payment and end the subscription immediately."""
    _configure()

    subscription = stripe.Subscription.retrieve(
        subscription_id, expand=["latest_invoice.payment_intent"]
    )
    payment_intent = getattr(subscription.latest_invoice, "payment_intent", None)

    refund_id = None
    if payment_intent is not None:
        refund_params = {
            "payment_intent": payment_intent.id,
            "metadata": {"reason": reason, "subscription_id": subscription_id},
        }
        if amount_cents:
            refund_params["amount"] = int(amount_cents)
        refund = stripe.Refund.create(**refund_params)
        refund_id = refund.id
    else:
        logger.warning("Subscription %s has no payment to refund", subscription_id)

    stripe.Subscription.cancel(subscription_id)
    return {"refund_id": refund_id}


def cancel_at_period_end(subscription_id: str) -> dict[str, object]:
    _configure()

    subscription = stripe.Subscription.modify(subscription_id, cancel_at_period_end=True)
    return {"cancel_at": getattr(subscription, "cancel_at", None)}


def verify_webhook(payload: bytes, sig_header: str | None, webhook_secret: str) -> dict:
    """Check the Stripe signature and return the event as a plain dict.

    Raises ValueError for malformed payloads and
    ``stripe.SignatureVerificationError`` for bad signatures.
    """
    stripe.Webhook.construct_event(payload, sig_header, webhook_secret)
    return json.loads(payload)
