"""Database models for the Happy InLine backend."""
from __future__ import annotations

from datetime import date, datetime, timezone

from .extensions import db


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _iso(value: datetime | date | None) -> str | None:
    return value.isoformat() if value else None


PROFILE_ROLES = ("owner", "provider", "customer", "super_admin")
SHOP_STATUSES = ("draft", "pending_review", "approved", "rejected", "suspended")
BOOKING_STATUSES = ("pending", "approved", "rejected", "completed", "cancelled")


class Profile(db.Model):
    __tablename__ = "profiles"

    profile_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    phone = db.Column(db.String(30))
    address = db.Column(db.String(255))
    profile_image = db.Column(db.String(500))
    role = db.Column(
        db.Enum(
            *PROFILE_ROLES,
            name="profile_role",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="customer",
    )
    business_name = db.Column(db.String(150))
    # Customers are tied to one shop, set when they join through the shop's QR link
    exclusive_shop_id = db.Column(db.Integer, nullable=True, index=True)

    subscription_plan = db.Column(db.String(30))
    subscription_status = db.Column(db.String(30))
    subscription_start_date = db.Column(db.DateTime)
    subscription_end_date = db.Column(db.DateTime)
    next_billing_date = db.Column(db.DateTime)
    refund_eligible_until = db.Column(db.DateTime)
    trial_ends_at = db.Column(db.DateTime)
    stripe_customer_id = db.Column(db.String(100))
    stripe_subscription_id = db.Column(db.String(100))
    monthly_amount_cents = db.Column(db.Integer)
    max_licenses = db.Column(db.Integer)
    license_count = db.Column(db.Integer)
    payment_method_last4 = db.Column(db.String(4))
    payment_method_brand = db.Column(db.String(30))

    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    auth_account = db.relationship("AuthAccount", back_populates="profile", uselist=False)

    def to_dict_basic(self) -> dict[str, object]:
        return {
            "id": self.profile_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "role": self.role,
            "profile_image": self.profile_image,
        }

    def to_dict(self) -> dict[str, object]:
        data = self.to_dict_basic()
        data.update({
            "address": self.address,
            "business_name": self.business_name,
            "exclusive_shop_id": self.exclusive_shop_id,
            "subscription_plan": self.subscription_plan,
            "subscription_status": self.subscription_status,
            "subscription_start_date": _iso(self.subscription_start_date),
            "subscription_end_date": _iso(self.subscription_end_date),
            "next_billing_date": _iso(self.next_billing_date),
            "refund_eligible_until": _iso(self.refund_eligible_until),
            "trial_ends_at": _iso(self.trial_ends_at),
            "stripe_customer_id": self.stripe_customer_id,
            "stripe_subscription_id": self.stripe_subscription_id,
            "monthly_amount_cents": self.monthly_amount_cents,
            "max_licenses": self.max_licenses,
            "license_count": self.license_count,
            "payment_method_last4": self.payment_method_last4,
            "payment_method_brand": self.payment_method_brand,
        })
        return data


class AuthAccount(db.Model):
    __tablename__ = "auth_accounts"

    profile_id = db.Column(db.Integer, db.ForeignKey("profiles.profile_id"), primary_key=True)
    password_hash = db.Column(db.String(255), nullable=False)
    last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    profile = db.relationship("Profile", back_populates="auth_account")


class Category(db.Model):
    """Business categories used to group shops."""

    __tablename__ = "categories"

    category_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    icon = db.Column(db.String(100))

    def to_dict(self) -> dict[str, object]:
        return {"id": self.category_id, "name": self.name, "icon": self.icon}


class CatalogService(db.Model):
    """Platform-wide service catalog owners can copy into their shop."""

    __tablename__ = "catalog_services"

    catalog_service_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(100))
    default_duration = db.Column(db.Integer, nullable=False, default=30)
    default_price_cents = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.catalog_service_id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "default_duration": self.default_duration,
            "default_price_cents": self.default_price_cents,
        }


class Shop(db.Model):
    __tablename__ = "shops"

    shop_id = db.Column(db.Integer, primary_key=True)
    created_by = db.Column(db.Integer, db.ForeignKey("profiles.profile_id"), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.category_id"), nullable=True)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text)
    address = db.Column(db.String(255))
    city = db.Column(db.String(100))
    state = db.Column(db.String(100))
    zip_code = db.Column(db.String(20))
    country = db.Column(db.String(100))
    phone = db.Column(db.String(30))
    email = db.Column(db.String(255))
    website = db.Column(db.String(255))
    logo_url = db.Column(db.String(500))
    cover_image_url = db.Column(db.String(500))
    rating = db.Column(db.Float, nullable=False, default=0.0)
    total_reviews = db.Column(db.Integer, nullable=False, default=0)
    is_verified = db.Column(db.Boolean, nullable=False, default=False)

    # Flat hours: one open/close pair applied to every listed day
    operating_days = db.Column(db.JSON, nullable=True)
    opening_time = db.Column(db.String(8))
    closing_time = db.Column(db.String(8))
    # Per-day override map, e.g. {"Monday": {"open": "09:00", "close": "17:00", "closed": false}}
    operating_hours = db.Column(db.JSON, nullable=True)
    is_manually_closed = db.Column(db.Boolean, nullable=False, default=False)

    status = db.Column(
        db.Enum(
            *SHOP_STATUSES,
            name="shop_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="draft",
    )
    is_active = db.Column(db.Boolean, nullable=False, default=False)
    rejection_reason = db.Column(db.Text)

    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    owner = db.relationship("Profile", foreign_keys=[created_by])
    category = db.relationship("Category")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.shop_id,
            "name": self.name,
            "description": self.description,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
            "country": self.country,
            "phone": self.phone,
            "email": self.email,
            "website": self.website,
            "logo_url": self.logo_url,
            "cover_image_url": self.cover_image_url,
            "rating": self.rating,
            "total_reviews": self.total_reviews,
            "is_verified": bool(self.is_verified),
            "operating_days": self.operating_days,
            "opening_time": self.opening_time,
            "closing_time": self.closing_time,
            "operating_hours": self.operating_hours,
            "is_manually_closed": bool(self.is_manually_closed),
            "status": self.status,
            "is_active": bool(self.is_active),
            "rejection_reason": self.rejection_reason,
            "category": self.category.to_dict() if self.category else None,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
        }

    def to_dict_with_owner(self) -> dict[str, object]:
        data = self.to_dict()
        data["owner"] = {
            "id": self.owner.profile_id,
            "name": self.owner.name,
            "email": self.owner.email,
            "phone": self.owner.phone,
        } if self.owner else None
        return data


class ShopService(db.Model):
    """Services a shop offers, either copied from the catalog or custom."""

    __tablename__ = "shop_services"

    shop_service_id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.shop_id"), nullable=False)
    catalog_service_id = db.Column(
        db.Integer, db.ForeignKey("catalog_services.catalog_service_id"), nullable=True
    )
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text)
    duration = db.Column(db.Integer, nullable=False)  # minutes
    category = db.Column(db.String(100))
    price_cents = db.Column(db.Integer, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    shop = db.relationship("Shop")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.shop_service_id,
            "shop_id": self.shop_id,
            "service_id": self.catalog_service_id,
            "name": self.name,
            "description": self.description,
            "duration": self.duration,
            "category": self.category,
            "price_cents": self.price_cents,
            "price_dollars": self.price_cents / 100.0,
            "is_active": bool(self.is_active),
        }

    def to_booking_line(self) -> dict[str, object]:
        """Snapshot stored on the booking row."""
        return {
            "id": self.shop_service_id,
            "name": self.name,
            "price_cents": self.price_cents,
            "duration": self.duration,
        }


class ShopStaff(db.Model):
    __tablename__ = "shop_staff"

    staff_id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.shop_id"), nullable=False)
    profile_id = db.Column(db.Integer, db.ForeignKey("profiles.profile_id"), nullable=False)
    role = db.Column(
        db.Enum(
            "admin",
            "provider",
            name="staff_role",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="provider",
    )
    bio = db.Column(db.Text)
    specialties = db.Column(db.JSON, nullable=True, default=list)
    rating = db.Column(db.Float)
    total_reviews = db.Column(db.Integer)
    is_available = db.Column(db.Boolean, nullable=False, default=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    hired_date = db.Column(db.Date, nullable=False, default=lambda: utc_now().date())
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    shop = db.relationship("Shop")
    profile = db.relationship("Profile")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.staff_id,
            "shop_id": self.shop_id,
            "user_id": self.profile_id,
            "role": self.role,
            "bio": self.bio,
            "specialties": self.specialties or [],
            "rating": self.rating,
            "total_reviews": self.total_reviews,
            "is_available": bool(self.is_available),
            "is_active": bool(self.is_active),
            "hired_date": _iso(self.hired_date),
            "user": self.profile.to_dict_basic() if self.profile else None,
        }


class ServiceProvider(db.Model):
    """Which providers can perform which shop service."""

    __tablename__ = "service_providers"
    __table_args__ = (
        db.UniqueConstraint("service_id", "provider_id", name="uq_service_provider"),
    )

    service_provider_id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.shop_id"), nullable=False)
    service_id = db.Column(db.Integer, db.ForeignKey("shop_services.shop_service_id"), nullable=False)
    provider_id = db.Column(db.Integer, db.ForeignKey("profiles.profile_id"), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.service_provider_id,
            "shop_id": self.shop_id,
            "service_id": self.service_id,
            "provider_id": self.provider_id,
        }


class Booking(db.Model):
    """Customer bookings at a shop."""

    __tablename__ = "bookings"

    booking_id = db.Column(db.Integer, primary_key=True)
    reference = db.Column(db.String(32), nullable=False, index=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.shop_id"), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("profiles.profile_id"), nullable=False)
    # provider_id references the provider's profile, not the shop_staff row
    provider_id = db.Column(db.Integer, db.ForeignKey("profiles.profile_id"), nullable=True)
    services = db.Column(db.JSON, nullable=False, default=list)
    appointment_date = db.Column(db.String(10), nullable=False)  # YYYY-MM-DD
    appointment_time = db.Column(db.String(5), nullable=False)  # HH:MM
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(
        db.Enum(
            *BOOKING_STATUSES,
            name="booking_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="pending",
    )
    customer_notes = db.Column(db.Text)
    shop_notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    shop = db.relationship("Shop")
    customer = db.relationship("Profile", foreign_keys=[customer_id])
    provider = db.relationship("Profile", foreign_keys=[provider_id])

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.booking_id,
            "booking_id": self.reference,
            "shop_id": self.shop_id,
            "shop": {
                "id": self.shop.shop_id,
                "name": self.shop.name,
                "address": self.shop.address,
                "city": self.shop.city,
                "logo_url": self.shop.logo_url,
                "phone": self.shop.phone,
            } if self.shop else None,
            "customer_id": self.customer_id,
            "customer": self.customer.to_dict_basic() if self.customer else None,
            "barber_id": self.provider_id,
            "barber": {
                "id": self.provider.profile_id,
                "name": self.provider.name,
                "profile_image": self.provider.profile_image,
            } if self.provider else None,
            "services": self.services or [],
            "appointment_date": self.appointment_date,
            "appointment_time": self.appointment_time,
            "total_amount_cents": self.total_amount_cents,
            "total_amount": self.total_amount_cents / 100.0,
            "status": self.status,
            "customer_notes": self.customer_notes,
            "shop_notes": self.shop_notes,
            "created_at": _iso(self.created_at),
        }
