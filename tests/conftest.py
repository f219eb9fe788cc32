"""pytest configuration and shared fixtures."""
from __future__ import annotations

import itertools
import sys
from pathlib import Path

import pytest
from werkzeug.security import generate_password_hash

# Ensure the project root is available on sys.path so tests can import the app package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from happyinline import create_app  # noqa: E402
from happyinline.auth import build_token  # noqa: E402
from happyinline.config import TestingConfig  # noqa: E402
from happyinline.extensions import db  # noqa: E402
from happyinline.models import (AuthAccount, Profile, ServiceProvider, Shop, ShopService,  # noqa: E402
                                ShopStaff)

ALL_DAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
DEFAULT_PASSWORD = "secret123"


@pytest.fixture()
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def make_profile(app):
    """Create a profile with a password and return its id."""
    counter = itertools.count(1)

    def _make(role: str = "customer", password: str = DEFAULT_PASSWORD, **fields) -> int:
        number = next(counter)
        with app.app_context():
            profile = Profile(
                name=fields.pop("name", f"{role.title()} {number}"),
                email=fields.pop("email", f"{role}{number}@example.com"),
                role=role,
                **fields,
            )
            db.session.add(profile)
            db.session.flush()
            db.session.add(AuthAccount(
                profile_id=profile.profile_id,
                password_hash=generate_password_hash(password),
            ))
            db.session.commit()
            return profile.profile_id

    return _make


@pytest.fixture()
def subscribed_owner(make_profile):
    """An owner on the basic plan (two licenses)."""
    def _make(**fields) -> int:
        defaults = {
            "subscription_plan": "basic",
            "subscription_status": "active",
            "max_licenses": 2,
            "license_count": 0,
            "business_name": "Fresh Cuts LLC",
        }
        defaults.update(fields)
        return make_profile("owner", **defaults)

    return _make


@pytest.fixture()
def auth_headers(app):
    def _headers(profile_id: int, role: str = "customer") -> dict[str, str]:
        with app.app_context():
            token = build_token({"profile_id": profile_id, "role": role})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture()
def make_shop(app):
    """Create an approved, active shop open every day 09:00-17:00."""
    def _make(owner_id: int, **fields) -> int:
        values = {
            "name": "Fresh Cuts",
            "city": "Newark",
            "status": "approved",
            "is_active": True,
            "opening_time": "09:00",
            "closing_time": "17:00",
            "operating_days": list(ALL_DAYS),
        }
        values.update(fields)
        with app.app_context():
            shop = Shop(created_by=owner_id, **values)
            db.session.add(shop)
            db.session.commit()
            return shop.shop_id

    return _make


@pytest.fixture()
def make_service(app):
    def _make(shop_id: int, name: str = "Haircut", price_cents: int = 2500,
              duration: int = 30, **fields) -> int:
        with app.app_context():
            service = ShopService(
                shop_id=shop_id,
                name=name,
                price_cents=price_cents,
                duration=duration,
                **fields,
            )
            db.session.add(service)
            db.session.commit()
            return service.shop_service_id

    return _make


@pytest.fixture()
def add_staff(app):
    """Attach a profile to a shop as provider; optionally assign services."""
    def _add(shop_id: int, profile_id: int, service_ids=(), **fields) -> int:
        with app.app_context():
            staff = ShopStaff(shop_id=shop_id, profile_id=profile_id, **fields)
            db.session.add(staff)
            for service_id in service_ids:
                db.session.add(ServiceProvider(
                    shop_id=shop_id, service_id=service_id, provider_id=profile_id
                ))
            db.session.commit()
            return staff.staff_id

    return _add
