"""Super-admin routes: shop review and platform statistics."""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from .auth import current_profile, forbidden, unauthorized
from .extensions import db
from .models import SHOP_STATUSES, Booking, Profile, Shop

bp_admin = Blueprint("admin", __name__, url_prefix="/admin")


@bp_admin.before_request
def require_super_admin():
    # CORS preflight requests carry no Authorization header
    if request.method == "OPTIONS":
        return None

    profile = current_profile()
    if profile is None:
        return unauthorized()
    if profile.role != "super_admin":
        return forbidden("Administrator access required")
    return None


@bp_admin.get("/shops/pending")
def get_pending_shops() -> tuple[dict[str, object], int]:
    """Shops awaiting review, oldest first."""
    shops = (
        Shop.query.options(joinedload(Shop.owner))
        .filter(Shop.status == "pending_review")
        .order_by(Shop.created_at.asc(), Shop.shop_id.asc())
        .all()
    )
    return jsonify({"shops": [shop.to_dict_with_owner() for shop in shops]}), 200


@bp_admin.get("/shops")
def get_all_shops() -> tuple[dict[str, object], int]:
    """
    List every shop, newest first.
    ---
    tags:
      - Admin
    parameters:
      - name: status
        in: query
        type: string
        enum: [all, draft, pending_review, approved, rejected, suspended]
    responses:
      200:
        description: Shops with owner summary
      400:
        description: Unknown status filter
    """
    query = Shop.query.options(joinedload(Shop.owner))

    status = request.args.get("status")
    if status and status != "all":
        if status not in SHOP_STATUSES:
            return jsonify({"error": "invalid_status", "message": f"Unknown status {status}"}), 400
        query = query.filter(Shop.status == status)

    shops = query.order_by(Shop.created_at.desc(), Shop.shop_id.desc()).all()
    return jsonify({"shops": [shop.to_dict_with_owner() for shop in shops]}), 200


def _set_shop_status(shop_id: int, status: str, is_active: bool, *, reason: str | None = None,
                     clear_reason: bool = False):
    shop = Shop.query.get(shop_id)
    if not shop:
        return jsonify({"error": "not_found", "message": "Shop not found"}), 404

    try:
        shop.status = status
        shop.is_active = is_active
        if reason is not None:
            shop.rejection_reason = reason
        elif clear_reason:
            shop.rejection_reason = None
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to set shop %s to %s", shop_id, status, exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    current_app.logger.info("Shop %s is now %s", shop_id, status)
    return jsonify({"shop": shop.to_dict_with_owner()}), 200


@bp_admin.post("/shops/<int:shop_id>/approve")
def approve_shop(shop_id: int) -> tuple[dict[str, object], int]:
    return _set_shop_status(shop_id, "approved", True, clear_reason=True)


@bp_admin.post("/shops/<int:shop_id>/reject")
def reject_shop(shop_id: int) -> tuple[dict[str, object], int]:
    """Reject a shop; the reason is optional and shown to the owner."""
    payload = request.get_json(silent=True) or {}
    reason = (payload.get("reason") or "").strip() or None
    return _set_shop_status(shop_id, "rejected", False, reason=reason, clear_reason=True)


@bp_admin.post("/shops/<int:shop_id>/suspend")
def suspend_shop(shop_id: int) -> tuple[dict[str, object], int]:
    return _set_shop_status(shop_id, "suspended", False)


@bp_admin.post("/shops/<int:shop_id>/reactivate")
def reactivate_shop(shop_id: int) -> tuple[dict[str, object], int]:
    return _set_shop_status(shop_id, "approved", True)


@bp_admin.get("/stats")
def get_platform_stats() -> tuple[dict[str, object], int]:
    """Counts of shops, profiles and bookings across the platform."""
    try:
        stats = {
            "shops": {
                "total": Shop.query.count(),
                "pending": Shop.query.filter_by(status="pending_review").count(),
                "approved": Shop.query.filter_by(status="approved").count(),
            },
            "users": {
                "total": Profile.query.count(),
                "owners": Profile.query.filter_by(role="owner").count(),
                "providers": Profile.query.filter_by(role="provider").count(),
                "customers": Profile.query.filter_by(role="customer").count(),
            },
            "bookings": {
                "total": Booking.query.count(),
                "pending": Booking.query.filter_by(status="pending").count(),
                "completed": Booking.query.filter_by(status="completed").count(),
            },
        }
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch platform stats", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"stats": stats}), 200
