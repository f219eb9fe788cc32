"""Booking routes: creation by customers, management by owners and providers."""
from __future__ import annotations

import time

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from .auth import current_profile, forbidden, load_owned_shop, unauthorized
from .extensions import db
from .models import BOOKING_STATUSES, Booking, Shop, ShopService, ShopStaff
from .notifications import build_email_data, send_booking_notifications
from .scheduling import is_open_on, normalize_time, parse_date, slots_for_date

bp_bookings = Blueprint("bookings", __name__)

RESCHEDULABLE_STATUSES = ("pending", "approved")
BASE36_DIGITS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def generate_reference(now_ms: int | None = None) -> str:
    """'BK' followed by the current epoch milliseconds in base 36."""
    value = now_ms if now_ms is not None else int(time.time() * 1000)
    digits = ""
    while value:
        value, remainder = divmod(value, 36)
        digits = BASE36_DIGITS[remainder] + digits
    return "BK" + (digits or "0")


def _validate_slot(shop: Shop, date_value: str, time_value: str):
    """Return normalized (date, time) or an error message."""
    try:
        day = parse_date(date_value or "")
    except ValueError:
        return None, "appointment_date must be YYYY-MM-DD"

    try:
        slot = normalize_time(time_value or "")
    except ValueError:
        return None, "appointment_time must be HH:MM"

    if not is_open_on(shop, day):
        return None, "The shop is closed on the selected date"

    if slot not in slots_for_date(shop, day):
        return None, "The selected time is outside the shop's hours"

    return (day.isoformat(), slot), None


def _shop_unbookable(shop: Shop):
    if shop.status != "approved" or not shop.is_active:
        return jsonify({"error": "shop_unavailable", "message": "This shop is not accepting bookings"}), 400
    if shop.is_manually_closed:
        return jsonify({"error": "shop_closed", "message": "This shop is currently closed"}), 400
    return None


def _can_manage(profile, booking: Booking) -> bool:
    if profile.role == "super_admin":
        return True
    if booking.shop and booking.shop.created_by == profile.profile_id:
        return True
    return booking.provider_id is not None and booking.provider_id == profile.profile_id


@bp_bookings.post("/bookings")
def create_booking() -> tuple[dict[str, object], int]:
    """Create a booking for the authenticated customer.
    ---
    tags:
      - Bookings
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            shop_id:
              type: integer
            service_ids:
              type: array
              items:
                type: integer
            provider_id:
              type: integer
            appointment_date:
              type: string
              example: "2026-11-02"
            appointment_time:
              type: string
              example: "10:30"
            customer_notes:
              type: string
          required:
            - shop_id
            - service_ids
            - appointment_date
            - appointment_time
    responses:
      201:
        description: Booking created with status pending
      400:
        description: Invalid payload, closed shop or unavailable time
      401:
        description: Authentication required
      403:
        description: Only customers can book
      404:
        description: Shop not found
      500:
        description: Server error
    """
    profile = current_profile()
    if profile is None:
        return unauthorized()
    if profile.role != "customer":
        return forbidden("Only customers can create bookings")

    payload = request.get_json(silent=True) or {}
    shop_id = payload.get("shop_id")
    service_ids = payload.get("service_ids")
    provider_id = payload.get("provider_id")

    if not shop_id:
        return jsonify({"error": "invalid_payload", "message": "shop_id is required"}), 400
    if not isinstance(service_ids, list) or not service_ids:
        return jsonify({"error": "invalid_payload", "message": "Select at least one service"}), 400
    try:
        service_ids = list(dict.fromkeys(int(service_id) for service_id in service_ids))
    except (TypeError, ValueError):
        return jsonify({"error": "invalid_payload", "message": "service_ids must be integers"}), 400

    shop = Shop.query.get(shop_id)
    if not shop:
        return jsonify({"error": "not_found", "message": "Shop not found"}), 404

    error = _shop_unbookable(shop)
    if error:
        return error

    services = ShopService.query.filter(
        ShopService.shop_id == shop.shop_id,
        ShopService.shop_service_id.in_(service_ids),
        ShopService.is_active.is_(True),
    ).all()
    if len(services) != len(service_ids):
        return jsonify({"error": "invalid_service", "message": "One or more services are not offered"}), 400

    if provider_id:
        staff = ShopStaff.query.filter_by(
            shop_id=shop.shop_id, profile_id=provider_id, is_active=True
        ).first()
        if not staff:
            return jsonify({"error": "invalid_provider", "message": "Provider does not work at this shop"}), 400

    slot, message = _validate_slot(shop, payload.get("appointment_date"), payload.get("appointment_time"))
    if message:
        return jsonify({"error": "invalid_slot", "message": message}), 400
    appointment_date, appointment_time = slot

    by_id = {service.shop_service_id: service for service in services}
    lines = [by_id[service_id].to_booking_line() for service_id in service_ids]

    try:
        booking = Booking(
            reference=generate_reference(),
            shop_id=shop.shop_id,
            customer_id=profile.profile_id,
            provider_id=provider_id or None,
            services=lines,
            appointment_date=appointment_date,
            appointment_time=appointment_time,
            total_amount_cents=sum(line["price_cents"] for line in lines),
            status="pending",
            customer_notes=(payload.get("customer_notes") or "").strip() or None,
        )
        db.session.add(booking)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create booking", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    # Email delivery problems are reported in the response but never undo the booking
    notifications = send_booking_notifications(build_email_data(booking))

    return jsonify({"booking": booking.to_dict(), "notifications": notifications}), 201


@bp_bookings.get("/shops/<int:shop_id>/bookings")
def list_shop_bookings(shop_id: int) -> tuple[dict[str, object], int]:
    """Bookings of a shop with optional status, date and provider filters."""
    shop, error = load_owned_shop(shop_id)
    if error:
        return error

    query = Booking.query.filter(Booking.shop_id == shop.shop_id)

    status = request.args.get("status")
    if status and status != "all":
        if status not in BOOKING_STATUSES:
            return jsonify({"error": "invalid_status", "message": f"Unknown status {status}"}), 400
        query = query.filter(Booking.status == status)

    date_filter = request.args.get("date")
    if date_filter:
        query = query.filter(Booking.appointment_date == date_filter)

    provider_filter = request.args.get("provider_id", type=int)
    if provider_filter:
        query = query.filter(Booking.provider_id == provider_filter)

    bookings = query.order_by(Booking.appointment_date.asc(), Booking.appointment_time.asc()).all()
    return jsonify({"bookings": [booking.to_dict() for booking in bookings]}), 200


@bp_bookings.get("/providers/me/bookings")
def list_provider_bookings() -> tuple[dict[str, object], int]:
    """Bookings assigned to the calling provider."""
    profile = current_profile()
    if profile is None:
        return unauthorized()

    query = Booking.query.filter(Booking.provider_id == profile.profile_id)

    status = request.args.get("status")
    if status and status != "all":
        query = query.filter(Booking.status == status)
    date_filter = request.args.get("date")
    if date_filter:
        query = query.filter(Booking.appointment_date == date_filter)

    bookings = query.order_by(Booking.appointment_date.asc(), Booking.appointment_time.asc()).all()
    return jsonify({"bookings": [booking.to_dict() for booking in bookings]}), 200


@bp_bookings.get("/bookings/<int:booking_id>")
def get_booking(booking_id: int) -> tuple[dict[str, object], int]:
    profile = current_profile()
    if profile is None:
        return unauthorized()

    booking = Booking.query.get(booking_id)
    if not booking:
        return jsonify({"error": "not_found", "message": "Booking not found"}), 404

    if booking.customer_id != profile.profile_id and not _can_manage(profile, booking):
        return forbidden()

    return jsonify({"booking": booking.to_dict()}), 200


@bp_bookings.put("/bookings/<int:booking_id>/status")
def update_booking_status(booking_id: int) -> tuple[dict[str, object], int]:
    """Set a booking's status.
    ---
    tags:
      - Bookings
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            status:
              type: string
              enum: [pending, approved, rejected, completed, cancelled]
            reason:
              type: string
              description: Required when rejecting
            notes:
              type: string
    responses:
      200:
        description: Status updated
      400:
        description: Unknown status or rejection without a reason
      403:
        description: Not the shop owner or assigned provider
      404:
        description: Booking not found
    """
    profile = current_profile()
    if profile is None:
        return unauthorized()

    booking = Booking.query.get(booking_id)
    if not booking:
        return jsonify({"error": "not_found", "message": "Booking not found"}), 404
    if not _can_manage(profile, booking):
        return forbidden("You cannot manage this booking")

    payload = request.get_json(silent=True) or {}
    new_status = payload.get("status")
    reason = (payload.get("reason") or "").strip()
    notes = (payload.get("notes") or "").strip()

    if new_status not in BOOKING_STATUSES:
        return jsonify({
            "error": "invalid_status",
            "message": f"status must be one of: {', '.join(BOOKING_STATUSES)}",
        }), 400

    if new_status == "rejected" and not reason:
        return jsonify({"error": "reason_required", "message": "Please provide a rejection reason"}), 400

    try:
        booking.status = new_status
        if new_status == "rejected":
            booking.shop_notes = reason
        elif notes:
            booking.shop_notes = notes
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update booking status", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"booking": booking.to_dict()}), 200


@bp_bookings.put("/bookings/<int:booking_id>/reschedule")
def reschedule_booking(booking_id: int) -> tuple[dict[str, object], int]:
    """Move a pending or approved booking to another open slot."""
    profile = current_profile()
    if profile is None:
        return unauthorized()

    booking = Booking.query.get(booking_id)
    if not booking:
        return jsonify({"error": "not_found", "message": "Booking not found"}), 404
    if booking.customer_id != profile.profile_id and not _can_manage(profile, booking):
        return forbidden("You cannot reschedule this booking")

    if booking.status not in RESCHEDULABLE_STATUSES:
        return jsonify({
            "error": "invalid_status",
            "message": f"Cannot reschedule a {booking.status} booking",
        }), 400

    error = _shop_unbookable(booking.shop)
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    slot, message = _validate_slot(booking.shop, payload.get("appointment_date"), payload.get("appointment_time"))
    if message:
        return jsonify({"error": "invalid_slot", "message": message}), 400

    try:
        booking.appointment_date, booking.appointment_time = slot
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to reschedule booking", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"booking": booking.to_dict()}), 200


@bp_bookings.post("/bookings/<int:booking_id>/cancel")
def cancel_booking(booking_id: int) -> tuple[dict[str, object], int]:
    """Customer cancels one of their own upcoming bookings."""
    profile = current_profile()
    if profile is None:
        return unauthorized()

    booking = Booking.query.get(booking_id)
    if not booking:
        return jsonify({"error": "not_found", "message": "Booking not found"}), 404
    if booking.customer_id != profile.profile_id:
        return forbidden("You can only cancel your own bookings")

    if booking.status not in RESCHEDULABLE_STATUSES:
        return jsonify({
            "error": "invalid_status",
            "message": f"Cannot cancel a {booking.status} booking",
        }), 400

    try:
        booking.status = "cancelled"
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to cancel booking", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"booking": booking.to_dict()}), 200


@bp_bookings.post("/bookings/<int:booking_id>/notify")
def notify_booking(booking_id: int) -> tuple[dict[str, object], int]:
    """Resend the booking emails to the customer, owner and provider."""
    profile = current_profile()
    if profile is None:
        return unauthorized()

    booking = Booking.query.get(booking_id)
    if not booking:
        return jsonify({"error": "not_found", "message": "Booking not found"}), 404
    if booking.customer_id != profile.profile_id and not _can_manage(profile, booking):
        return forbidden()

    results = send_booking_notifications(build_email_data(booking))
    return jsonify({"success": True, **results}), 200
