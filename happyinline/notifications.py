"""Booking notification emails sent through the Resend API."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

import resend
from flask import current_app

from .scheduling import format_date_display, format_time_display

logger = logging.getLogger(__name__)


@dataclass
class BookingEmailData:
    customer_name: str
    customer_email: str
    shop_name: str
    appointment_date: str
    appointment_time: str
    total_amount_cents: int
    booking_reference: str
    services: list[dict] = field(default_factory=list)
    owner_name: str | None = None
    owner_email: str | None = None
    provider_name: str | None = None
    provider_email: str | None = None
    shop_address: str | None = None
    shop_phone: str | None = None
    customer_notes: str | None = None


def build_email_data(booking) -> BookingEmailData:
    shop = booking.shop
    owner = shop.owner if shop else None
    provider = booking.provider

    full_address = ", ".join(
        part for part in (shop.address, shop.city, shop.state, shop.zip_code) if part
    )

    return BookingEmailData(
        customer_name=booking.customer.name or "Customer",
        customer_email=booking.customer.email,
        shop_name=shop.name,
        appointment_date=booking.appointment_date,
        appointment_time=booking.appointment_time,
        total_amount_cents=booking.total_amount_cents or 0,
        booking_reference=booking.reference,
        services=booking.services or [],
        owner_name=owner.name if owner else None,
        owner_email=owner.email if owner else None,
        provider_name=provider.name if provider else None,
        provider_email=provider.email if provider else None,
        shop_address=full_address or None,
        shop_phone=shop.phone,
        customer_notes=booking.customer_notes,
    )


def render_booking_text(data: BookingEmailData, recipient: str) -> str:
    if recipient == "customer":
        greeting = f"Hi {data.customer_name},"
        intro = "Your appointment has been booked. Here are your booking details:"
        footer = "Need to make changes? Contact the business directly."
    else:
        name = data.owner_name if recipient == "owner" else data.provider_name
        greeting = f"Hi {name or ('Business Owner' if recipient == 'owner' else 'Provider')},"
        intro = "You have a new booking. Here are the details:"
        footer = "Log in to your dashboard to manage this booking."

    lines = [
        greeting,
        "",
        intro,
        "",
        f"Booking: {data.booking_reference}",
        f"Date: {format_date_display(data.appointment_date)}",
        f"Time: {format_time_display(data.appointment_time)}",
        f"Business: {data.shop_name}",
    ]
    if data.provider_name:
        lines.append(f"Provider: {data.provider_name}")
    if recipient != "customer":
        lines.append(f"Customer: {data.customer_name}")

    lines += ["", "Services:"]
    for service in data.services:
        price = (service.get("price_cents") or 0) / 100
        lines.append(f"  - {service.get('name')} - ${price:.2f} ({service.get('duration')} min)")
    lines.append(f"Total: ${data.total_amount_cents / 100:.2f}")

    if data.customer_notes:
        lines += ["", f"Customer notes: {data.customer_notes}"]
    if data.shop_address:
        lines += ["", f"Location: {data.shop_address}"]
        if data.shop_phone:
            lines.append(f"Phone: {data.shop_phone}")

    lines += ["", footer]
    return "\n".join(lines)


def _send(to: str, subject: str, text: str) -> bool:
    api_key = current_app.config.get("RESEND_API_KEY")
    if not api_key:
        logger.warning("RESEND_API_KEY not configured; skipping email to %s", to)
        return False

    resend.api_key = api_key
    try:
        resend.Emails.send({
            "from": current_app.config["EMAIL_FROM_ADDRESS"],
            "to": [to],
            "subject": subject,
            "text": text,
        })
    except Exception as exc:
        logger.error("Failed to send email to %s: %s", to, exc)
        return False

    logger.info("Email sent to %s", to)
    return True


def send_booking_notifications(data: BookingEmailData) -> dict[str, bool]:
    """Email the customer, the owner and (when assigned) the provider."""
    when = format_date_display(data.appointment_date)

    customer_sent = _send(
        data.customer_email,
        f"Booking Confirmed - {data.shop_name}",
        render_booking_text(data, "customer"),
    )

    owner_sent = False
    if data.owner_email:
        owner_sent = _send(
            data.owner_email,
            f"New Booking - {data.customer_name} on {when}",
            render_booking_text(data, "owner"),
        )

    provider_sent = False
    if data.provider_email:
        provider_sent = _send(
            data.provider_email,
            f"New Booking Assigned - {data.customer_name} on {when}",
            render_booking_text(data, "provider"),
        )

    return {
        "customer_email_sent": customer_sent,
        "owner_email_sent": owner_sent,
        "provider_email_sent": provider_sent,
    }
