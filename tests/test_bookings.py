"""Tests for booking creation and the booking lifecycle."""
from __future__ import annotations

from unittest.mock import patch

import pytest

from happyinline.extensions import db
from happyinline.models import Booking, Shop
from happyinline.routes_bookings import generate_reference

BOOKING_DATE = "2030-01-07"


@pytest.fixture
def booking_setup(make_profile, make_shop, make_service, add_staff):
    owner_id = make_profile("owner", name="Olivia Owner")
    shop_id = make_shop(owner_id)
    haircut_id = make_service(shop_id, name="Haircut", price_cents=2500, duration=30)
    beard_id = make_service(shop_id, name="Beard Trim", price_cents=1200, duration=15)
    provider_id = make_profile("provider", name="Pat Provider")
    add_staff(shop_id, provider_id, service_ids=[haircut_id, beard_id])
    customer_id = make_profile("customer", name="Casey Customer")
    return {
        "owner_id": owner_id,
        "shop_id": shop_id,
        "service_ids": [haircut_id, beard_id],
        "provider_id": provider_id,
        "customer_id": customer_id,
    }


@pytest.fixture
def existing_booking(app, booking_setup):
    """A pending booking assigned to the provider."""
    def _make(status: str = "pending") -> int:
        with app.app_context():
            booking = Booking(
                reference="BKEXIST",
                shop_id=booking_setup["shop_id"],
                customer_id=booking_setup["customer_id"],
                provider_id=booking_setup["provider_id"],
                services=[{"id": 1, "name": "Haircut", "price_cents": 2500, "duration": 30}],
                appointment_date=BOOKING_DATE,
                appointment_time="10:00",
                total_amount_cents=2500,
                status=status,
            )
            db.session.add(booking)
            db.session.commit()
            return booking.booking_id

    return _make


def _booking_payload(setup, **overrides):
    payload = {
        "shop_id": setup["shop_id"],
        "service_ids": setup["service_ids"],
        "provider_id": setup["provider_id"],
        "appointment_date": BOOKING_DATE,
        "appointment_time": "10:30",
        "customer_notes": "First visit",
    }
    payload.update(overrides)
    return payload


def test_generate_reference_is_base36_of_millis() -> None:
    assert generate_reference(0) == "BK0"
    assert generate_reference(35) == "BKZ"
    assert generate_reference(36) == "BK10"
    assert generate_reference().startswith("BK")


def test_create_booking_success(app, client, booking_setup, auth_headers) -> None:
    response = client.post("/bookings", json=_booking_payload(booking_setup),
                           headers=auth_headers(booking_setup["customer_id"]))

    assert response.status_code == 201
    data = response.get_json()
    booking = data["booking"]
    assert booking["status"] == "pending"
    assert booking["booking_id"].startswith("BK")
    assert booking["total_amount_cents"] == 3700
    assert booking["total_amount"] == 37.0
    assert booking["barber_id"] == booking_setup["provider_id"]
    assert [line["name"] for line in booking["services"]] == ["Haircut", "Beard Trim"]
    assert booking["appointment_time"] == "10:30"
    # No Resend key in tests, so nothing is delivered but the booking stands
    assert data["notifications"] == {
        "customer_email_sent": False,
        "owner_email_sent": False,
        "provider_email_sent": False,
    }

    with app.app_context():
        assert Booking.query.count() == 1


def test_create_booking_same_slot_twice_allowed(client, booking_setup, auth_headers) -> None:
    headers = auth_headers(booking_setup["customer_id"])

    first = client.post("/bookings", json=_booking_payload(booking_setup), headers=headers)
    second = client.post("/bookings", json=_booking_payload(booking_setup), headers=headers)

    assert first.status_code == 201
    assert second.status_code == 201


def test_create_booking_sends_notifications(app, client, booking_setup, auth_headers) -> None:
    app.config["RESEND_API_KEY"] = "re_test"

    with patch("happyinline.notifications.resend") as mock_resend:
        response = client.post("/bookings", json=_booking_payload(booking_setup),
                               headers=auth_headers(booking_setup["customer_id"]))

    assert response.status_code == 201
    assert mock_resend.Emails.send.call_count == 3
    assert response.get_json()["notifications"]["provider_email_sent"] is True


def test_create_booking_survives_email_failure(app, client, booking_setup, auth_headers) -> None:
    app.config["RESEND_API_KEY"] = "re_test"

    with patch("happyinline.notifications.resend") as mock_resend:
        mock_resend.Emails.send.side_effect = RuntimeError("resend down")
        response = client.post("/bookings", json=_booking_payload(booking_setup),
                               headers=auth_headers(booking_setup["customer_id"]))

    assert response.status_code == 201
    assert response.get_json()["notifications"]["customer_email_sent"] is False


def test_only_customers_can_book(client, booking_setup, auth_headers) -> None:
    response = client.post("/bookings", json=_booking_payload(booking_setup),
                           headers=auth_headers(booking_setup["owner_id"], "owner"))

    assert response.status_code == 403


def test_booking_requires_services(client, booking_setup, auth_headers) -> None:
    response = client.post("/bookings", json=_booking_payload(booking_setup, service_ids=[]),
                           headers=auth_headers(booking_setup["customer_id"]))

    assert response.status_code == 400


def test_booking_rejects_foreign_service(client, booking_setup, make_profile, make_shop, make_service,
                                         auth_headers) -> None:
    other_shop = make_shop(make_profile("owner"))
    foreign_service = make_service(other_shop)

    response = client.post("/bookings", json=_booking_payload(booking_setup, service_ids=[foreign_service]),
                           headers=auth_headers(booking_setup["customer_id"]))

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_service"


def test_booking_rejects_provider_from_elsewhere(client, booking_setup, make_profile, auth_headers) -> None:
    stranger = make_profile("provider")

    response = client.post("/bookings", json=_booking_payload(booking_setup, provider_id=stranger),
                           headers=auth_headers(booking_setup["customer_id"]))

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_provider"


def test_booking_outside_hours_rejected(client, booking_setup, auth_headers) -> None:
    headers = auth_headers(booking_setup["customer_id"])

    late = client.post("/bookings", json=_booking_payload(booking_setup, appointment_time="17:00"), headers=headers)
    odd = client.post("/bookings", json=_booking_payload(booking_setup, appointment_time="10:15"), headers=headers)
    bad_date = client.post("/bookings", json=_booking_payload(booking_setup, appointment_date="07/01/2030"),
                           headers=headers)

    assert late.status_code == 400
    assert odd.status_code == 400
    assert bad_date.status_code == 400
    assert late.get_json()["error"] == "invalid_slot"


def test_booking_on_closed_day_rejected(app, client, booking_setup, auth_headers) -> None:
    with app.app_context():
        shop = Shop.query.get(booking_setup["shop_id"])
        shop.operating_hours = {"Monday": {"closed": True}}
        db.session.commit()

    response = client.post("/bookings", json=_booking_payload(booking_setup),
                           headers=auth_headers(booking_setup["customer_id"]))

    assert response.status_code == 400
    assert "closed" in response.get_json()["message"]


def test_booking_manually_closed_shop(app, client, booking_setup, auth_headers) -> None:
    with app.app_context():
        Shop.query.get(booking_setup["shop_id"]).is_manually_closed = True
        db.session.commit()

    response = client.post("/bookings", json=_booking_payload(booking_setup),
                           headers=auth_headers(booking_setup["customer_id"]))

    assert response.status_code == 400
    assert response.get_json()["error"] == "shop_closed"


def test_booking_unapproved_shop(client, make_profile, make_shop, make_service, auth_headers) -> None:
    shop_id = make_shop(make_profile("owner"), status="pending_review", is_active=False)
    service_id = make_service(shop_id)
    customer_id = make_profile("customer")

    response = client.post("/bookings", json={
        "shop_id": shop_id,
        "service_ids": [service_id],
        "appointment_date": BOOKING_DATE,
        "appointment_time": "10:00",
    }, headers=auth_headers(customer_id))

    assert response.status_code == 400
    assert response.get_json()["error"] == "shop_unavailable"


def test_reject_requires_reason(client, booking_setup, existing_booking, auth_headers) -> None:
    booking_id = existing_booking()

    response = client.put(f"/bookings/{booking_id}/status", json={"status": "rejected"},
                          headers=auth_headers(booking_setup["owner_id"], "owner"))

    assert response.status_code == 400
    assert response.get_json()["error"] == "reason_required"


def test_reject_with_reason_stores_notes(client, booking_setup, existing_booking, auth_headers) -> None:
    booking_id = existing_booking()

    response = client.put(f"/bookings/{booking_id}/status",
                          json={"status": "rejected", "reason": "Fully booked"},
                          headers=auth_headers(booking_setup["owner_id"], "owner"))

    assert response.status_code == 200
    booking = response.get_json()["booking"]
    assert booking["status"] == "rejected"
    assert booking["shop_notes"] == "Fully booked"


def test_status_accepts_any_enum_value(client, booking_setup, existing_booking, auth_headers) -> None:
    booking_id = existing_booking(status="completed")

    response = client.put(f"/bookings/{booking_id}/status", json={"status": "pending"},
                          headers=auth_headers(booking_setup["owner_id"], "owner"))

    assert response.status_code == 200
    assert response.get_json()["booking"]["status"] == "pending"


def test_status_unknown_value(client, booking_setup, existing_booking, auth_headers) -> None:
    booking_id = existing_booking()

    response = client.put(f"/bookings/{booking_id}/status", json={"status": "no_show"},
                          headers=auth_headers(booking_setup["owner_id"], "owner"))

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_status"


def test_assigned_provider_can_update_status(client, booking_setup, existing_booking, auth_headers) -> None:
    booking_id = existing_booking()

    response = client.put(f"/bookings/{booking_id}/status", json={"status": "approved", "notes": "See you"},
                          headers=auth_headers(booking_setup["provider_id"], "provider"))

    assert response.status_code == 200
    assert response.get_json()["booking"]["shop_notes"] == "See you"


def test_customer_cannot_update_status(client, booking_setup, existing_booking, auth_headers) -> None:
    booking_id = existing_booking()

    response = client.put(f"/bookings/{booking_id}/status", json={"status": "approved"},
                          headers=auth_headers(booking_setup["customer_id"]))

    assert response.status_code == 403


def test_reschedule_pending_booking(client, booking_setup, existing_booking, auth_headers) -> None:
    booking_id = existing_booking()

    response = client.put(f"/bookings/{booking_id}/reschedule", json={
        "appointment_date": "2030-01-08",
        "appointment_time": "14:00",
    }, headers=auth_headers(booking_setup["owner_id"], "owner"))

    assert response.status_code == 200
    booking = response.get_json()["booking"]
    assert booking["appointment_date"] == "2030-01-08"
    assert booking["appointment_time"] == "14:00"


def test_reschedule_completed_booking_rejected(client, booking_setup, existing_booking, auth_headers) -> None:
    booking_id = existing_booking(status="completed")

    response = client.put(f"/bookings/{booking_id}/reschedule", json={
        "appointment_date": "2030-01-08",
        "appointment_time": "14:00",
    }, headers=auth_headers(booking_setup["owner_id"], "owner"))

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_status"


def test_reschedule_to_invalid_slot(client, booking_setup, existing_booking, auth_headers) -> None:
    booking_id = existing_booking()

    response = client.put(f"/bookings/{booking_id}/reschedule", json={
        "appointment_date": "2030-01-08",
        "appointment_time": "08:00",
    }, headers=auth_headers(booking_setup["customer_id"]))

    assert response.status_code == 400


def test_reschedule_into_unavailable_shop(app, client, booking_setup, existing_booking, auth_headers) -> None:
    booking_id = existing_booking()
    new_slot = {"appointment_date": "2030-01-08", "appointment_time": "14:00"}

    with app.app_context():
        Shop.query.get(booking_setup["shop_id"]).is_manually_closed = True
        db.session.commit()
    closed = client.put(f"/bookings/{booking_id}/reschedule", json=new_slot,
                        headers=auth_headers(booking_setup["customer_id"]))

    with app.app_context():
        shop = Shop.query.get(booking_setup["shop_id"])
        shop.is_manually_closed = False
        shop.status = "suspended"
        shop.is_active = False
        db.session.commit()
    suspended = client.put(f"/bookings/{booking_id}/reschedule", json=new_slot,
                           headers=auth_headers(booking_setup["customer_id"]))

    assert closed.status_code == 400
    assert closed.get_json()["error"] == "shop_closed"
    assert suspended.status_code == 400
    assert suspended.get_json()["error"] == "shop_unavailable"
    with app.app_context():
        assert Booking.query.get(booking_id).appointment_date == BOOKING_DATE


def test_customer_cancels_own_booking(client, booking_setup, existing_booking, auth_headers) -> None:
    booking_id = existing_booking(status="approved")

    response = client.post(f"/bookings/{booking_id}/cancel", headers=auth_headers(booking_setup["customer_id"]))

    assert response.status_code == 200
    assert response.get_json()["booking"]["status"] == "cancelled"


def test_customer_cannot_cancel_others_booking(client, booking_setup, existing_booking, make_profile,
                                               auth_headers) -> None:
    booking_id = existing_booking()
    other_customer = make_profile("customer")

    response = client.post(f"/bookings/{booking_id}/cancel", headers=auth_headers(other_customer))

    assert response.status_code == 403


def test_cannot_cancel_completed_booking(client, booking_setup, existing_booking, auth_headers) -> None:
    booking_id = existing_booking(status="completed")

    response = client.post(f"/bookings/{booking_id}/cancel", headers=auth_headers(booking_setup["customer_id"]))

    assert response.status_code == 400


def test_shop_bookings_filters(app, client, booking_setup, auth_headers) -> None:
    headers = auth_headers(booking_setup["customer_id"])
    client.post("/bookings", json=_booking_payload(booking_setup), headers=headers)
    client.post("/bookings", json=_booking_payload(booking_setup, appointment_date="2030-01-08",
                                                   provider_id=None), headers=headers)
    owner_headers = auth_headers(booking_setup["owner_id"], "owner")
    shop_id = booking_setup["shop_id"]

    everything = client.get(f"/shops/{shop_id}/bookings", headers=owner_headers).get_json()["bookings"]
    by_date = client.get(f"/shops/{shop_id}/bookings?date=2030-01-08", headers=owner_headers).get_json()
    by_provider = client.get(
        f"/shops/{shop_id}/bookings?provider_id={booking_setup['provider_id']}", headers=owner_headers
    ).get_json()
    by_status = client.get(f"/shops/{shop_id}/bookings?status=completed", headers=owner_headers).get_json()
    bad_status = client.get(f"/shops/{shop_id}/bookings?status=bogus", headers=owner_headers)

    assert len(everything) == 2
    assert [b["appointment_date"] for b in everything] == ["2030-01-07", "2030-01-08"]
    assert len(by_date["bookings"]) == 1
    assert len(by_provider["bookings"]) == 1
    assert by_status["bookings"] == []
    assert bad_status.status_code == 400


def test_provider_sees_assigned_bookings(client, booking_setup, existing_booking, auth_headers) -> None:
    existing_booking()

    response = client.get("/providers/me/bookings?status=pending",
                          headers=auth_headers(booking_setup["provider_id"], "provider"))

    assert response.status_code == 200
    assert len(response.get_json()["bookings"]) == 1


def test_notify_endpoint_reports_flags(app, client, booking_setup, existing_booking, auth_headers) -> None:
    booking_id = existing_booking()
    app.config["RESEND_API_KEY"] = "re_test"

    with patch("happyinline.notifications.resend") as mock_resend:
        response = client.post(f"/bookings/{booking_id}/notify",
                               headers=auth_headers(booking_setup["customer_id"]))

    assert response.status_code == 200
    data = response.get_json()
    assert data["success"] is True
    assert data["customer_email_sent"] is True
    assert data["owner_email_sent"] is True
    assert data["provider_email_sent"] is True
    recipients = [call.args[0]["to"][0] for call in mock_resend.Emails.send.call_args_list]
    assert len(recipients) == 3


def test_notify_missing_booking(client, make_profile, auth_headers) -> None:
    response = client.post("/bookings/999/notify", headers=auth_headers(make_profile("customer")))

    assert response.status_code == 404
