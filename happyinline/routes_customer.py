"""Customer-facing routes: browsing shops, slots, linking and own bookings."""
from __future__ import annotations

from datetime import date

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from .auth import current_profile, forbidden, unauthorized
from .extensions import db
from .models import Booking, ServiceProvider, Shop, ShopService, ShopStaff
from .scheduling import available_dates, hours_for_day, parse_date, slots_for_date

bp_customer = Blueprint("customer", __name__, url_prefix="/customer")

DEFAULT_BROWSE_LIMIT = 50
BOOKING_FILTERS = {
    "upcoming": ("pending", "approved"),
    "completed": ("completed",),
    "cancelled": ("cancelled", "rejected"),
}


def _public_shop(shop_id: int):
    """Approved, active shop or None."""
    shop = Shop.query.get(shop_id)
    if not shop or shop.status != "approved" or not shop.is_active:
        return None
    return shop


def _shop_not_found():
    return jsonify({"error": "not_found", "message": "Shop not found"}), 404


def _available_staff(shop_id: int):
    return (
        ShopStaff.query.options(joinedload(ShopStaff.profile))
        .filter(
            ShopStaff.shop_id == shop_id,
            ShopStaff.is_active.is_(True),
            ShopStaff.is_available.is_(True),
        )
        .all()
    )


@bp_customer.get("/shops")
def browse_shops() -> tuple[dict[str, object], int]:
    """
    Browse approved shops.
    ---
    tags:
      - Customer
    parameters:
      - name: search
        in: query
        type: string
        description: Matches name, city or description
      - name: category_id
        in: query
        type: integer
      - name: city
        in: query
        type: string
      - name: limit
        in: query
        type: integer
        default: 50
    responses:
      200:
        description: Shops ordered by rating
    """
    query = Shop.query.filter(Shop.status == "approved", Shop.is_active.is_(True))

    search = (request.args.get("search") or "").strip()
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Shop.name.ilike(pattern),
            Shop.city.ilike(pattern),
            Shop.description.ilike(pattern),
        ))

    category_id = request.args.get("category_id", type=int)
    if category_id:
        query = query.filter(Shop.category_id == category_id)

    city = (request.args.get("city") or "").strip()
    if city:
        query = query.filter(Shop.city.ilike(f"%{city}%"))

    limit = request.args.get("limit", default=DEFAULT_BROWSE_LIMIT, type=int)
    if limit <= 0:
        limit = DEFAULT_BROWSE_LIMIT

    shops = query.order_by(Shop.rating.desc(), Shop.name.asc()).limit(limit).all()
    return jsonify({"shops": [shop.to_dict() for shop in shops]}), 200


@bp_customer.get("/shops/<int:shop_id>")
def get_shop_details(shop_id: int) -> tuple[dict[str, object], int]:
    shop = _public_shop(shop_id)
    if not shop:
        return _shop_not_found()

    return jsonify({"shop": shop.to_dict()}), 200


@bp_customer.get("/shops/<int:shop_id>/services")
def get_shop_services(shop_id: int) -> tuple[dict[str, object], int]:
    shop = _public_shop(shop_id)
    if not shop:
        return _shop_not_found()

    services = (
        ShopService.query
        .filter(ShopService.shop_id == shop.shop_id, ShopService.is_active.is_(True))
        .order_by(ShopService.name.asc())
        .all()
    )
    return jsonify({"services": [service.to_dict() for service in services]}), 200


@bp_customer.get("/shops/<int:shop_id>/providers")
def get_shop_providers(shop_id: int) -> tuple[dict[str, object], int]:
    shop = _public_shop(shop_id)
    if not shop:
        return _shop_not_found()

    return jsonify({"providers": [member.to_dict() for member in _available_staff(shop.shop_id)]}), 200


@bp_customer.get("/shops/<int:shop_id>/qualified-providers")
def get_qualified_providers(shop_id: int) -> tuple[dict[str, object], int]:
    """Providers assigned to every requested service.

    ``service_ids`` is a comma separated list. Without it every available
    provider qualifies.
    """
    shop = _public_shop(shop_id)
    if not shop:
        return _shop_not_found()

    raw_ids = (request.args.get("service_ids") or "").strip()
    try:
        service_ids = {int(part) for part in raw_ids.split(",") if part.strip()}
    except ValueError:
        return jsonify({"error": "invalid_query", "message": "service_ids must be integers"}), 400

    staff = _available_staff(shop.shop_id)
    if service_ids:
        rows = ServiceProvider.query.filter(
            ServiceProvider.shop_id == shop.shop_id,
            ServiceProvider.service_id.in_(service_ids),
        ).all()
        services_by_provider: dict[int, set[int]] = {}
        for row in rows:
            services_by_provider.setdefault(row.provider_id, set()).add(row.service_id)
        staff = [
            member for member in staff
            if services_by_provider.get(member.profile_id, set()) >= service_ids
        ]

    return jsonify({"providers": [member.to_dict() for member in staff]}), 200


@bp_customer.get("/shops/<int:shop_id>/slots")
def get_time_slots(shop_id: int) -> tuple[dict[str, object], int]:
    """Half-hour slots for a date (``?date=YYYY-MM-DD``, default today)."""
    shop = _public_shop(shop_id)
    if not shop:
        return _shop_not_found()

    raw_date = request.args.get("date")
    try:
        day = parse_date(raw_date) if raw_date else date.today()
    except ValueError:
        return jsonify({"error": "invalid_query", "message": "date must be YYYY-MM-DD"}), 400

    slots = slots_for_date(shop, day)
    hours = hours_for_day(shop, day) if slots else None

    return jsonify({
        "date": day.isoformat(),
        "is_open": bool(slots),
        "opening_time": hours[0] if hours else None,
        "closing_time": hours[1] if hours else None,
        "slots": slots,
    }), 200


@bp_customer.get("/shops/<int:shop_id>/dates")
def get_available_dates(shop_id: int) -> tuple[dict[str, object], int]:
    shop = _public_shop(shop_id)
    if not shop:
        return _shop_not_found()

    days = request.args.get("days", default=14, type=int)
    days = max(1, min(days, 60))
    dates = available_dates(shop, date.today(), days)
    return jsonify({"dates": [day.isoformat() for day in dates]}), 200


@bp_customer.post("/link-shop")
def link_shop() -> tuple[dict[str, object], int]:
    """Tie the customer account to a single shop.
    ---
    tags:
      - Customer
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            shop_id:
              type: integer
            name:
              type: string
            phone:
              type: string
          required:
            - shop_id
    responses:
      200:
        description: Linked
      400:
        description: Shop is not approved
      401:
        description: Authentication required
      403:
        description: Caller is not a customer
      404:
        description: Shop not found
      409:
        description: Already linked to another shop
    """
    profile = current_profile()
    if profile is None:
        return unauthorized()
    if profile.role != "customer":
        return forbidden("Only customers can link to a shop")

    payload = request.get_json(silent=True) or {}
    shop_id = payload.get("shop_id")
    if not shop_id:
        return jsonify({"error": "invalid_payload", "message": "shop_id is required"}), 400

    shop = Shop.query.get(shop_id)
    if not shop:
        return _shop_not_found()
    if shop.status != "approved":
        return jsonify({"error": "shop_unavailable", "message": "Shop is not available"}), 400
    if profile.exclusive_shop_id and profile.exclusive_shop_id != shop.shop_id:
        return jsonify({
            "error": "already_linked",
            "message": "Your account is already linked to another shop",
        }), 409

    try:
        profile.exclusive_shop_id = shop.shop_id
        name = (payload.get("name") or "").strip()
        if name:
            profile.name = name
        phone = (payload.get("phone") or "").strip()
        if phone:
            profile.phone = phone
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to link customer to shop", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"success": True, "shop_name": shop.name, "profile": profile.to_dict()}), 200


@bp_customer.get("/shop")
def get_linked_shop() -> tuple[dict[str, object], int]:
    profile = current_profile()
    if profile is None:
        return unauthorized()

    if not profile.exclusive_shop_id:
        return jsonify({"shop": None}), 200

    shop = Shop.query.get(profile.exclusive_shop_id)
    return jsonify({"shop": shop.to_dict() if shop else None}), 200


@bp_customer.get("/bookings")
def list_my_bookings() -> tuple[dict[str, object], int]:
    """The customer's bookings, optionally ``?filter=upcoming|completed|cancelled``."""
    profile = current_profile()
    if profile is None:
        return unauthorized()

    query = Booking.query.filter(Booking.customer_id == profile.profile_id)

    booking_filter = request.args.get("filter")
    if booking_filter and booking_filter != "all":
        statuses = BOOKING_FILTERS.get(booking_filter)
        if statuses is None:
            return jsonify({
                "error": "invalid_query",
                "message": "filter must be upcoming, completed, cancelled or all",
            }), 400
        query = query.filter(Booking.status.in_(statuses))

    if booking_filter == "upcoming":
        query = query.order_by(Booking.appointment_date.asc(), Booking.appointment_time.asc())
    else:
        query = query.order_by(Booking.appointment_date.desc(), Booking.appointment_time.desc())

    bookings = query.all()
    return jsonify({"bookings": [booking.to_dict() for booking in bookings]}), 200
