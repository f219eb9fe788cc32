"""HTTP routes for the Happy InLine backend: accounts, shops, services and providers."""
from __future__ import annotations

import secrets
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload
from werkzeug.security import check_password_hash, generate_password_hash

from .auth import build_token, current_profile, forbidden, load_owned_shop, unauthorized
from .extensions import db
from .models import (AuthAccount, Booking, CatalogService, Category, Profile, ServiceProvider,
                     Shop, ShopService, ShopStaff)
from .scheduling import DAY_NAMES, normalize_time
from .subscriptions import derive_subscription_status

bp = Blueprint("api", __name__)

SHOP_TEXT_FIELDS = (
    "name", "description", "address", "city", "state", "zip_code", "country",
    "phone", "email", "website", "logo_url", "cover_image_url",
)
DEFAULT_OPERATING_DAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]


def register_routes(app) -> None:
    from .routes_admin import bp_admin
    from .routes_billing import bp_billing
    from .routes_bookings import bp_bookings
    from .routes_customer import bp_customer

    app.register_blueprint(bp)
    app.register_blueprint(bp_bookings)
    app.register_blueprint(bp_customer)
    app.register_blueprint(bp_admin)
    app.register_blueprint(bp_billing)


@bp.get("/health")
def health_check() -> tuple[dict[str, str], int]:
    """
    Expose a simple uptime check endpoint.
    ---
    tags:
      - Health
    responses:
      200:
        description: Service is healthy and running.
    """
    return jsonify({"status": "ok"}), 200


@bp.get("/db-health")
def database_health() -> tuple[dict[str, str], int]:
    """Check connectivity to the configured database."""
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        current_app.logger.exception("Database connectivity check failed", exc_info=exc)
        return jsonify({"database": "unavailable"}), 500

    return jsonify({"database": "ok"}), 200


# --- Accounts ---


@bp.post("/auth/register")
def register_profile() -> tuple[dict[str, object], int]:
    """Register a new business owner or customer.
    ---
    tags:
      - Authentication
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
            email:
              type: string
            password:
              type: string
            role:
              type: string
              enum: [owner, customer]
            phone:
              type: string
            business_name:
              type: string
          required:
            - name
            - email
            - password
    responses:
      201:
        description: Profile registered, returns access token
      400:
        description: Invalid payload
      409:
        description: Email already in use
      500:
        description: Server error
    """
    payload = request.get_json(silent=True) or {}

    name = (payload.get("name") or "").strip()
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""
    role = (payload.get("role") or "customer").strip().lower()
    phone = (payload.get("phone") or "").strip() or None
    business_name = (payload.get("business_name") or "").strip() or None

    if not name or not email or not password:
        return (
            jsonify({"error": "invalid_payload", "message": "name, email, and password are required"}),
            400,
        )

    # Providers are created by owners and admins are seeded, never self-registered
    if role not in ["owner", "customer"]:
        return (
            jsonify({"error": "invalid_role", "message": "role must be 'owner' or 'customer'"}),
            400,
        )

    if role == "owner" and not business_name:
        return (
            jsonify({"error": "invalid_payload", "message": "business_name is required for owners"}),
            400,
        )

    if Profile.query.filter_by(email=email).first():
        return (
            jsonify({"error": "conflict", "message": "email address is already in use"}),
            409,
        )

    try:
        new_profile = Profile(
            name=name,
            email=email,
            role=role,
            phone=phone,
            business_name=business_name if role == "owner" else None,
        )
        db.session.add(new_profile)
        db.session.flush()

        db.session.add(AuthAccount(
            profile_id=new_profile.profile_id,
            password_hash=generate_password_hash(password),
        ))
        db.session.commit()

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to register new profile", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    token = build_token({"profile_id": new_profile.profile_id, "role": new_profile.role})
    return jsonify({"token": token, "user": new_profile.to_dict_basic()}), 201


@bp.post("/auth/login")
def login() -> tuple[dict[str, object], int]:
    """Authenticate by email/password and return an access token.
    ---
    tags:
      - Authentication
    responses:
      200:
        description: Login successful, returns access token
      400:
        description: Missing email or password
      401:
        description: Invalid email or password
    """
    payload = request.get_json(silent=True) or {}

    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    if not email or not password:
        return (
            jsonify({"error": "invalid_payload", "message": "email and password are required"}),
            400,
        )

    record = (
        db.session.query(Profile, AuthAccount)
        .join(AuthAccount, AuthAccount.profile_id == Profile.profile_id)
        .filter(Profile.email == email)
        .first()
    )

    if not record:
        return jsonify({"error": "unauthorized", "message": "invalid email or password"}), 401

    profile, auth_account = record

    if not check_password_hash(auth_account.password_hash, password):
        return jsonify({"error": "unauthorized", "message": "invalid email or password"}), 401

    auth_account.last_login_at = datetime.now(timezone.utc)

    try:
        db.session.add(auth_account)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update last login timestamp", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    token = build_token({"profile_id": profile.profile_id, "role": profile.role})

    user_data = profile.to_dict_basic()

    # Providers land on their shop's bookings, so include the shop they work at
    if profile.role == "provider":
        staff = ShopStaff.query.filter_by(profile_id=profile.profile_id, is_active=True).first()
        if staff and staff.shop:
            user_data["shop_id"] = staff.shop_id
            user_data["shop_name"] = staff.shop.name

    return jsonify({"token": token, "user": user_data}), 200


@bp.get("/profiles/me")
def get_my_profile() -> tuple[dict[str, object], int]:
    """Return the authenticated profile, with derived subscription state for owners."""
    profile = current_profile()
    if profile is None:
        return unauthorized()

    data = profile.to_dict()
    if profile.role == "owner":
        data["subscription"] = derive_subscription_status(profile)
    return jsonify({"profile": data}), 200


@bp.put("/profiles/<int:profile_id>")
def update_profile(profile_id: int) -> tuple[dict[str, object], int]:
    """Update name, phone or address of the caller's own profile."""
    profile = current_profile()
    if profile is None:
        return unauthorized()
    if profile.profile_id != profile_id:
        return forbidden("You can only update your own profile")

    payload = request.get_json(silent=True) or {}

    if "name" in payload:
        name = (payload.get("name") or "").strip()
        if not name:
            return jsonify({"error": "invalid_payload", "message": "name cannot be blank"}), 400
        profile.name = name
    if "phone" in payload:
        profile.phone = (payload.get("phone") or "").strip() or None
    if "address" in payload:
        profile.address = (payload.get("address") or "").strip() or None

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update profile", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Profile updated successfully", "profile": profile.to_dict()}), 200


@bp.get("/profiles/search")
def search_profile_by_email() -> tuple[dict[str, object], int]:
    """Look up a profile by email so an owner can add it as a provider."""
    profile = current_profile()
    if profile is None:
        return unauthorized()
    if profile.role not in ("owner", "super_admin"):
        return forbidden()

    email = (request.args.get("email") or "").strip().lower()
    if not email:
        return jsonify({"error": "invalid_query", "message": "email query parameter is required"}), 400

    found = Profile.query.filter_by(email=email).first()
    return jsonify({"user": found.to_dict_basic() if found else None}), 200


# --- Shops (owner side) ---


def _apply_hours(shop: Shop, payload: dict) -> None:
    """Copy hour settings from the payload onto the shop.

    Raises ValueError with a user-facing message when a value is malformed.
    """
    for field in ("opening_time", "closing_time"):
        if payload.get(field):
            try:
                setattr(shop, field, normalize_time(payload[field]))
            except ValueError:
                raise ValueError(f"{field} must be HH:MM")

    if "operating_days" in payload:
        days = payload.get("operating_days")
        if days is not None:
            if not isinstance(days, list) or any(day not in DAY_NAMES for day in days):
                raise ValueError("operating_days must be a list of day names")
        shop.operating_days = days

    if "operating_hours" in payload:
        per_day = payload.get("operating_hours")
        if per_day is not None:
            if not isinstance(per_day, dict):
                raise ValueError("operating_hours must be an object keyed by day name")
            cleaned = {}
            for day, hours in per_day.items():
                if day not in DAY_NAMES or not isinstance(hours, dict):
                    raise ValueError(f"invalid operating_hours entry for {day}")
                entry = {"closed": bool(hours.get("closed", False))}
                try:
                    if hours.get("open"):
                        entry["open"] = normalize_time(hours["open"])
                    if hours.get("close"):
                        entry["close"] = normalize_time(hours["close"])
                except ValueError:
                    raise ValueError(f"operating_hours times for {day} must be HH:MM")
                cleaned[day] = entry
            per_day = cleaned
        shop.operating_hours = per_day


@bp.get("/shops/mine")
def get_my_shop() -> tuple[dict[str, object], int]:
    """Return the shop owned by the caller, or null when none exists yet."""
    profile = current_profile()
    if profile is None:
        return unauthorized()

    shop = Shop.query.filter_by(created_by=profile.profile_id).first()
    return jsonify({"shop": shop.to_dict() if shop else None}), 200


@bp.post("/shops")
def create_shop() -> tuple[dict[str, object], int]:
    """Create the caller's shop in draft status.
    ---
    tags:
      - Shops
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
              example: Fresh Cuts
            city:
              type: string
            opening_time:
              type: string
              example: "09:00"
            closing_time:
              type: string
              example: "18:00"
            operating_days:
              type: array
              items:
                type: string
          required:
            - name
    responses:
      201:
        description: Shop created
      400:
        description: Invalid payload or owner already has a shop
      401:
        description: Authentication required
      403:
        description: Only owners can create shops
      500:
        description: Server error
    """
    profile = current_profile()
    if profile is None:
        return unauthorized()
    if profile.role != "owner":
        return forbidden("Only business owners can create a shop")

    payload = request.get_json(silent=True) or {}
    name = (payload.get("name") or "").strip()
    if not name:
        return jsonify({"error": "invalid_payload", "message": "name is required"}), 400

    if Shop.query.filter_by(created_by=profile.profile_id).first():
        return jsonify({
            "error": "shop_exists",
            "message": "You already have a business. Each account can only have one business.",
        }), 400

    new_shop = Shop(
        created_by=profile.profile_id,
        operating_days=list(DEFAULT_OPERATING_DAYS),
        opening_time="09:00",
        closing_time="18:00",
        status="draft",
        is_active=False,
        category_id=payload.get("category_id") or None,
    )
    for field in SHOP_TEXT_FIELDS:
        setattr(new_shop, field, (payload.get(field) or "").strip() or None)
    new_shop.name = name

    try:
        _apply_hours(new_shop, payload)
    except ValueError as exc:
        return jsonify({"error": "invalid_payload", "message": str(exc)}), 400

    try:
        db.session.add(new_shop)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create shop", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"shop": new_shop.to_dict()}), 201


@bp.put("/shops/<int:shop_id>")
def update_shop(shop_id: int) -> tuple[dict[str, object], int]:
    """Update shop details and operating hours."""
    shop, error = load_owned_shop(shop_id)
    if error:
        return error

    payload = request.get_json(silent=True) or {}

    if "name" in payload and not (payload.get("name") or "").strip():
        return jsonify({"error": "invalid_payload", "message": "name cannot be blank"}), 400

    for field in SHOP_TEXT_FIELDS:
        if field in payload:
            setattr(shop, field, (payload.get(field) or "").strip() or None)
    if "category_id" in payload:
        shop.category_id = payload.get("category_id") or None

    try:
        _apply_hours(shop, payload)
    except ValueError as exc:
        db.session.rollback()
        return jsonify({"error": "invalid_payload", "message": str(exc)}), 400

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update shop", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Shop updated successfully", "shop": shop.to_dict()}), 200


@bp.put("/shops/<int:shop_id>/closed")
def toggle_shop_closed(shop_id: int) -> tuple[dict[str, object], int]:
    """Open or close the shop manually, independent of its hours."""
    shop, error = load_owned_shop(shop_id)
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    if "is_closed" not in payload:
        return jsonify({"error": "invalid_payload", "message": "is_closed is required"}), 400
    if not isinstance(payload["is_closed"], bool):
        return jsonify({"error": "invalid_payload", "message": "is_closed must be true or false"}), 400

    try:
        shop.is_manually_closed = payload["is_closed"]
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to toggle shop status", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"shop": shop.to_dict()}), 200


@bp.post("/shops/<int:shop_id>/submit")
def submit_shop_for_review(shop_id: int) -> tuple[dict[str, object], int]:
    """Owner submits the shop to the admins for approval."""
    shop, error = load_owned_shop(shop_id)
    if error:
        return error

    if shop.status == "suspended":
        return jsonify({
            "error": "invalid_transition",
            "message": "Suspended shops must be reactivated by an administrator",
        }), 400

    try:
        shop.status = "pending_review"
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to submit shop for review", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({
        "message": "Shop submitted for review.",
        "shop_id": shop.shop_id,
        "status": shop.status,
    }), 200


@bp.delete("/shops/<int:shop_id>")
def delete_shop(shop_id: int) -> tuple[dict[str, str], int]:
    """Delete a shop and its bookings, services, assignments and staff."""
    shop, error = load_owned_shop(shop_id)
    if error:
        return error

    try:
        Booking.query.filter_by(shop_id=shop_id).delete()
        ServiceProvider.query.filter_by(shop_id=shop_id).delete()
        ShopService.query.filter_by(shop_id=shop_id).delete()
        ShopStaff.query.filter_by(shop_id=shop_id).delete()
        Profile.query.filter_by(exclusive_shop_id=shop_id).update({"exclusive_shop_id": None})
        db.session.delete(shop)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete shop", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Shop deleted successfully"}), 200


# --- Shop services ---


def _parse_price_and_duration(payload: dict, defaults: dict | None = None) -> tuple[int, int]:
    defaults = defaults or {}
    price_cents = payload.get("price_cents", defaults.get("price_cents"))
    duration = payload.get("duration", defaults.get("duration"))

    if price_cents is None or duration is None:
        raise ValueError("price_cents and duration are required")
    price_cents = int(price_cents)
    duration = int(duration)
    if price_cents < 0:
        raise ValueError("price_cents must be zero or more")
    if duration <= 0:
        raise ValueError("duration must be a positive number of minutes")
    return price_cents, duration


@bp.get("/shops/<int:shop_id>/services")
def list_shop_services(shop_id: int) -> tuple[dict[str, object], int]:
    """All services of the caller's shop, including inactive ones."""
    shop, error = load_owned_shop(shop_id)
    if error:
        return error

    services = ShopService.query.filter_by(shop_id=shop.shop_id).order_by(ShopService.name.asc()).all()
    return jsonify({"services": [service.to_dict() for service in services]}), 200


@bp.post("/shops/<int:shop_id>/services")
def create_shop_service(shop_id: int) -> tuple[dict[str, object], int]:
    """Add a service to the shop, either from the catalog or custom.
    ---
    tags:
      - Services
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            service_id:
              type: integer
              description: Catalog service to copy defaults from
            name:
              type: string
            duration:
              type: integer
            price_cents:
              type: integer
            category:
              type: string
    responses:
      201:
        description: Service created
      400:
        description: Invalid payload
      404:
        description: Shop or catalog service not found
    """
    shop, error = load_owned_shop(shop_id)
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    catalog_service = None
    defaults = {}

    if payload.get("service_id"):
        catalog_service = CatalogService.query.get(payload["service_id"])
        if not catalog_service:
            return jsonify({"error": "not_found", "message": "Catalog service not found"}), 404
        defaults = {
            "name": catalog_service.name,
            "description": catalog_service.description,
            "category": catalog_service.category,
            "duration": catalog_service.default_duration,
            "price_cents": catalog_service.default_price_cents,
        }

    name = (payload.get("name") or defaults.get("name") or "").strip()
    if not name:
        return jsonify({"error": "invalid_payload", "message": "name is required"}), 400

    try:
        price_cents, duration = _parse_price_and_duration(payload, defaults)
    except (TypeError, ValueError) as exc:
        return jsonify({"error": "invalid_payload", "message": str(exc)}), 400

    try:
        service = ShopService(
            shop_id=shop.shop_id,
            catalog_service_id=catalog_service.catalog_service_id if catalog_service else None,
            name=name,
            description=(payload.get("description") or defaults.get("description") or "").strip() or None,
            duration=duration,
            category=(payload.get("category") or defaults.get("category") or "General").strip(),
            price_cents=price_cents,
            is_active=True,
        )
        db.session.add(service)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create shop service", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"service": service.to_dict()}), 201


@bp.put("/shops/<int:shop_id>/services/<int:service_id>")
def update_shop_service(shop_id: int, service_id: int) -> tuple[dict[str, object], int]:
    shop, error = load_owned_shop(shop_id)
    if error:
        return error

    service = ShopService.query.filter_by(shop_service_id=service_id, shop_id=shop.shop_id).first()
    if not service:
        return jsonify({"error": "not_found", "message": "Service not found"}), 404

    payload = request.get_json(silent=True) or {}

    if "name" in payload:
        name = (payload.get("name") or "").strip()
        if not name:
            return jsonify({"error": "invalid_payload", "message": "name cannot be blank"}), 400
        service.name = name

    try:
        if "price_cents" in payload or "duration" in payload:
            service.price_cents, service.duration = _parse_price_and_duration(
                payload, {"price_cents": service.price_cents, "duration": service.duration}
            )
    except (TypeError, ValueError) as exc:
        db.session.rollback()
        return jsonify({"error": "invalid_payload", "message": str(exc)}), 400

    if "description" in payload:
        service.description = (payload.get("description") or "").strip() or None
    if "category" in payload:
        service.category = (payload.get("category") or "").strip() or None
    if "is_active" in payload:
        service.is_active = bool(payload["is_active"])

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update shop service", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"service": service.to_dict()}), 200


@bp.delete("/shops/<int:shop_id>/services/<int:service_id>")
def delete_shop_service(shop_id: int, service_id: int) -> tuple[dict[str, str], int]:
    shop, error = load_owned_shop(shop_id)
    if error:
        return error

    service = ShopService.query.filter_by(shop_service_id=service_id, shop_id=shop.shop_id).first()
    if not service:
        return jsonify({"error": "not_found", "message": "Service not found"}), 404

    try:
        ServiceProvider.query.filter_by(service_id=service_id).delete()
        db.session.delete(service)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete shop service", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Service removed successfully"}), 200


@bp.get("/shops/<int:shop_id>/services/<int:service_id>/providers")
def get_service_providers(shop_id: int, service_id: int) -> tuple[dict[str, object], int]:
    shop, error = load_owned_shop(shop_id)
    if error:
        return error

    rows = ServiceProvider.query.filter_by(shop_id=shop.shop_id, service_id=service_id).all()
    return jsonify({"provider_ids": [row.provider_id for row in rows]}), 200


@bp.put("/shops/<int:shop_id>/services/<int:service_id>/providers")
def set_service_providers(shop_id: int, service_id: int) -> tuple[dict[str, object], int]:
    """Replace the set of providers who can perform a service.
    ---
    tags:
      - Services
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            provider_ids:
              type: array
              items:
                type: integer
    responses:
      200:
        description: Assignments saved
      400:
        description: A provider does not work at this shop
      404:
        description: Service not found
    """
    shop, error = load_owned_shop(shop_id)
    if error:
        return error

    service = ShopService.query.filter_by(shop_service_id=service_id, shop_id=shop.shop_id).first()
    if not service:
        return jsonify({"error": "not_found", "message": "Service not found"}), 404

    payload = request.get_json(silent=True) or {}
    provider_ids = payload.get("provider_ids")
    if not isinstance(provider_ids, list):
        return jsonify({"error": "invalid_payload", "message": "provider_ids must be a list"}), 400

    try:
        provider_ids = sorted({int(pid) for pid in provider_ids})
    except (TypeError, ValueError):
        return jsonify({"error": "invalid_payload", "message": "provider_ids must be integers"}), 400

    staff_ids = {
        row.profile_id
        for row in ShopStaff.query.filter_by(shop_id=shop.shop_id, is_active=True).all()
    }
    unknown = [pid for pid in provider_ids if pid not in staff_ids]
    if unknown:
        return jsonify({
            "error": "invalid_provider",
            "message": f"Not providers at this shop: {', '.join(str(pid) for pid in unknown)}",
        }), 400

    try:
        ServiceProvider.query.filter_by(service_id=service_id).delete()
        for pid in provider_ids:
            db.session.add(ServiceProvider(shop_id=shop.shop_id, service_id=service_id, provider_id=pid))
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to save service assignments", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"service_id": service_id, "provider_ids": provider_ids}), 200


# --- Providers ---


def _active_provider_count(shop_id: int) -> int:
    return ShopStaff.query.filter_by(shop_id=shop_id, is_active=True).count()


@bp.get("/shops/<int:shop_id>/providers")
def list_shop_providers(shop_id: int) -> tuple[dict[str, object], int]:
    shop, error = load_owned_shop(shop_id)
    if error:
        return error

    providers = (
        ShopStaff.query.options(joinedload(ShopStaff.profile))
        .filter(ShopStaff.shop_id == shop.shop_id, ShopStaff.is_active.is_(True))
        .order_by(ShopStaff.role.asc(), ShopStaff.hired_date.asc())
        .all()
    )
    return jsonify({"providers": [member.to_dict() for member in providers]}), 200


@bp.post("/shops/<int:shop_id>/providers")
def add_existing_provider(shop_id: int) -> tuple[dict[str, object], int]:
    """Add an existing profile to the shop as a provider."""
    shop, error = load_owned_shop(shop_id)
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    user_id = payload.get("user_id")
    role = (payload.get("role") or "provider").strip().lower()

    if not user_id:
        return jsonify({"error": "invalid_payload", "message": "user_id is required"}), 400
    if role not in ("admin", "provider"):
        return jsonify({"error": "invalid_payload", "message": "role must be 'admin' or 'provider'"}), 400

    member = Profile.query.get(user_id)
    if not member:
        return jsonify({"error": "not_found", "message": "User not found"}), 404

    if ShopStaff.query.filter_by(shop_id=shop.shop_id, profile_id=member.profile_id).first():
        return jsonify({
            "error": "already_provider",
            "message": "This user is already a provider at your business.",
        }), 400

    specialties = payload.get("specialties") or []
    if not isinstance(specialties, list):
        return jsonify({"error": "invalid_payload", "message": "specialties must be a list"}), 400

    try:
        staff = ShopStaff(
            shop_id=shop.shop_id,
            profile_id=member.profile_id,
            role=role,
            bio=(payload.get("bio") or "").strip() or None,
            specialties=specialties,
            is_active=True,
            is_available=True,
        )
        db.session.add(staff)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to add provider", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"provider": staff.to_dict()}), 201


@bp.post("/shops/<int:shop_id>/providers/create")
def create_provider_account(shop_id: int) -> tuple[dict[str, object], int]:
    """Create (or reuse) a provider account, consuming one subscription license.
    ---
    tags:
      - Providers
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
            email:
              type: string
            phone:
              type: string
          required:
            - name
            - email
    responses:
      201:
        description: Provider added; generated_password is set for new accounts only
      400:
        description: Invalid payload or already a provider here
      403:
        description: Subscription inactive or license limit reached
      500:
        description: Server error
    """
    shop, error = load_owned_shop(shop_id)
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    name = (payload.get("name") or "").strip()
    email = (payload.get("email") or "").strip().lower()
    phone = (payload.get("phone") or "").strip() or None

    if not name or not email:
        return jsonify({"error": "invalid_payload", "message": "name and email are required"}), 400

    owner = shop.owner
    if not derive_subscription_status(owner)["is_active"]:
        return jsonify({"error": "subscription_inactive", "message": "Subscription is not active"}), 403

    current_providers = _active_provider_count(shop.shop_id)
    max_licenses = owner.max_licenses or 0
    if current_providers >= max_licenses:
        return jsonify({
            "error": "license_limit",
            "message": f"License limit reached ({max_licenses}). Upgrade your plan to add more providers.",
        }), 403

    generated_password = None
    try:
        member = Profile.query.filter_by(email=email).first()
        if member:
            if ShopStaff.query.filter_by(shop_id=shop.shop_id, profile_id=member.profile_id).first():
                return jsonify({
                    "error": "already_provider",
                    "message": "This user is already a provider at your business",
                }), 400
        else:
            generated_password = secrets.token_urlsafe(9)
            member = Profile(name=name, email=email, phone=phone, role="provider")
            db.session.add(member)
            db.session.flush()
            db.session.add(AuthAccount(
                profile_id=member.profile_id,
                password_hash=generate_password_hash(generated_password),
            ))

        db.session.add(ShopStaff(
            shop_id=shop.shop_id,
            profile_id=member.profile_id,
            role="provider",
            is_active=True,
            is_available=True,
        ))
        owner.license_count = current_providers + 1
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create provider", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({
        "user_id": member.profile_id,
        "generated_password": generated_password,
        "is_new_user": generated_password is not None,
        "message": (
            f"Provider account created. Temporary password: {generated_password}"
            if generated_password else "Existing user added as provider"
        ),
    }), 201


@bp.put("/shops/<int:shop_id>/providers/<int:staff_id>")
def update_provider(shop_id: int, staff_id: int) -> tuple[dict[str, object], int]:
    shop, error = load_owned_shop(shop_id)
    if error:
        return error

    staff = ShopStaff.query.filter_by(staff_id=staff_id, shop_id=shop.shop_id).first()
    if not staff:
        return jsonify({"error": "not_found", "message": "Provider not found"}), 404

    payload = request.get_json(silent=True) or {}

    if "role" in payload:
        if payload["role"] not in ("admin", "provider"):
            return jsonify({"error": "invalid_payload", "message": "role must be 'admin' or 'provider'"}), 400
        staff.role = payload["role"]
    if "bio" in payload:
        staff.bio = (payload.get("bio") or "").strip() or None
    if "specialties" in payload:
        if not isinstance(payload["specialties"], list):
            return jsonify({"error": "invalid_payload", "message": "specialties must be a list"}), 400
        staff.specialties = payload["specialties"]
    if "is_available" in payload:
        staff.is_available = bool(payload["is_available"])

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update provider", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"provider": staff.to_dict()}), 200


@bp.delete("/shops/<int:shop_id>/providers/<int:staff_id>")
def remove_provider(shop_id: int, staff_id: int) -> tuple[dict[str, str], int]:
    """Remove a provider from the shop and free their license."""
    shop, error = load_owned_shop(shop_id)
    if error:
        return error

    staff = ShopStaff.query.filter_by(staff_id=staff_id, shop_id=shop.shop_id).first()
    if not staff:
        return jsonify({"error": "not_found", "message": "Provider not found"}), 404

    try:
        ServiceProvider.query.filter_by(shop_id=shop.shop_id, provider_id=staff.profile_id).delete()
        db.session.delete(staff)
        db.session.flush()
        if shop.owner:
            shop.owner.license_count = _active_provider_count(shop.shop_id)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to remove provider", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Provider removed successfully"}), 200


@bp.get("/providers/me/shop")
def get_provider_shop() -> tuple[dict[str, object], int]:
    """The shop the calling provider works at."""
    profile = current_profile()
    if profile is None:
        return unauthorized()

    staff = ShopStaff.query.filter_by(profile_id=profile.profile_id, is_active=True).first()
    if not staff:
        return jsonify({"error": "not_found", "message": "Not assigned to any shop"}), 404

    return jsonify({"shop": staff.shop.to_dict()}), 200


# --- Reference data ---


@bp.get("/categories")
def list_categories() -> tuple[dict[str, object], int]:
    categories = Category.query.order_by(Category.name.asc()).all()
    return jsonify({"categories": [category.to_dict() for category in categories]}), 200


@bp.get("/catalog/services")
def list_catalog_services() -> tuple[dict[str, object], int]:
    services = (
        CatalogService.query
        .order_by(CatalogService.category.asc(), CatalogService.name.asc())
        .all()
    )
    return jsonify({"services": [service.to_dict() for service in services]}), 200
