"""Bearer-token helpers shared by the route modules."""
from __future__ import annotations

from flask import current_app, jsonify, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .models import Profile, Shop


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt="auth-token")


def build_token(payload: dict[str, object]) -> str:
    return _serializer().dumps(payload)


def get_jwt_identity() -> int | None:
    """Extract and validate the profile id from the Authorization header.

    Returns None when the header is missing or the token is invalid or expired.
    """
    auth_header = request.headers.get("Authorization", "")

    if not auth_header.startswith("Bearer "):
        return None

    token = auth_header[7:]

    try:
        payload = _serializer().loads(token, max_age=current_app.config.get("TOKEN_MAX_AGE", 86400))
    except (BadSignature, SignatureExpired):
        return None
    return payload.get("profile_id")


def current_profile() -> Profile | None:
    profile_id = get_jwt_identity()
    if not profile_id:
        return None
    return Profile.query.get(profile_id)


def unauthorized():
    return jsonify({"error": "unauthorized", "message": "Authentication required. Please log in to continue."}), 401


def forbidden(message: str = "You are not allowed to perform this action"):
    return jsonify({"error": "forbidden", "message": message}), 403


def load_owned_shop(shop_id: int):
    """Fetch a shop the caller owns.

    Returns ``(shop, None)`` on success or ``(None, error_response)``.
    Super admins may act on any shop.
    """
    profile = current_profile()
    if profile is None:
        return None, unauthorized()

    shop = Shop.query.get(shop_id)
    if not shop:
        return None, (jsonify({"error": "not_found", "message": "Shop not found"}), 404)

    if shop.created_by != profile.profile_id and profile.role != "super_admin":
        return None, forbidden("You do not manage this shop")

    return shop, None
