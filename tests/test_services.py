"""Tests for shop service management and provider assignments."""
from __future__ import annotations

from happyinline.extensions import db
from happyinline.models import CatalogService, ServiceProvider, ShopService


def test_create_custom_service(client, make_profile, make_shop, auth_headers) -> None:
    owner_id = make_profile("owner")
    shop_id = make_shop(owner_id)

    response = client.post(f"/shops/{shop_id}/services", json={
        "name": "Fade",
        "duration": 45,
        "price_cents": 3500,
        "category": "Hair",
    }, headers=auth_headers(owner_id, "owner"))

    assert response.status_code == 201
    service = response.get_json()["service"]
    assert service["name"] == "Fade"
    assert service["price_cents"] == 3500
    assert service["price_dollars"] == 35.0
    assert service["is_active"] is True
    assert service["service_id"] is None


def test_create_service_from_catalog_uses_defaults(app, client, make_profile, make_shop, auth_headers) -> None:
    owner_id = make_profile("owner")
    shop_id = make_shop(owner_id)
    with app.app_context():
        catalog = CatalogService(name="Beard Trim", category="Grooming",
                                 default_duration=15, default_price_cents=1200)
        db.session.add(catalog)
        db.session.commit()
        catalog_id = catalog.catalog_service_id

    response = client.post(f"/shops/{shop_id}/services", json={
        "service_id": catalog_id,
        "price_cents": 1500,
    }, headers=auth_headers(owner_id, "owner"))

    assert response.status_code == 201
    service = response.get_json()["service"]
    assert service["name"] == "Beard Trim"
    assert service["duration"] == 15
    assert service["price_cents"] == 1500
    assert service["service_id"] == catalog_id


def test_create_service_unknown_catalog(client, make_profile, make_shop, auth_headers) -> None:
    owner_id = make_profile("owner")
    shop_id = make_shop(owner_id)

    response = client.post(f"/shops/{shop_id}/services", json={"service_id": 404},
                           headers=auth_headers(owner_id, "owner"))

    assert response.status_code == 404


def test_create_service_validates_price_and_duration(client, make_profile, make_shop, auth_headers) -> None:
    owner_id = make_profile("owner")
    shop_id = make_shop(owner_id)
    headers = auth_headers(owner_id, "owner")

    missing = client.post(f"/shops/{shop_id}/services", json={"name": "X"}, headers=headers)
    negative = client.post(f"/shops/{shop_id}/services",
                           json={"name": "X", "price_cents": -1, "duration": 30}, headers=headers)
    zero_duration = client.post(f"/shops/{shop_id}/services",
                                json={"name": "X", "price_cents": 100, "duration": 0}, headers=headers)

    assert missing.status_code == 400
    assert negative.status_code == 400
    assert zero_duration.status_code == 400


def test_list_services_includes_inactive(client, make_profile, make_shop, make_service, auth_headers) -> None:
    owner_id = make_profile("owner")
    shop_id = make_shop(owner_id)
    make_service(shop_id, name="Active")
    make_service(shop_id, name="Retired", is_active=False)

    response = client.get(f"/shops/{shop_id}/services", headers=auth_headers(owner_id, "owner"))

    assert response.status_code == 200
    assert [service["name"] for service in response.get_json()["services"]] == ["Active", "Retired"]


def test_update_service(app, client, make_profile, make_shop, make_service, auth_headers) -> None:
    owner_id = make_profile("owner")
    shop_id = make_shop(owner_id)
    service_id = make_service(shop_id)

    response = client.put(f"/shops/{shop_id}/services/{service_id}", json={
        "price_cents": 3000,
        "is_active": False,
    }, headers=auth_headers(owner_id, "owner"))

    assert response.status_code == 200
    with app.app_context():
        service = ShopService.query.get(service_id)
        assert service.price_cents == 3000
        assert service.duration == 30
        assert service.is_active is False


def test_update_service_of_other_shop_not_found(client, make_profile, make_shop, make_service,
                                                auth_headers) -> None:
    owner_id = make_profile("owner")
    other_owner = make_profile("owner")
    shop_id = make_shop(owner_id)
    other_shop = make_shop(other_owner)
    foreign_service = make_service(other_shop)

    response = client.put(f"/shops/{shop_id}/services/{foreign_service}", json={"name": "Steal"},
                          headers=auth_headers(owner_id, "owner"))

    assert response.status_code == 404


def test_delete_service_removes_assignments(app, client, make_profile, make_shop, make_service,
                                            add_staff, auth_headers) -> None:
    owner_id = make_profile("owner")
    shop_id = make_shop(owner_id)
    service_id = make_service(shop_id)
    provider_id = make_profile("provider")
    add_staff(shop_id, provider_id, service_ids=[service_id])

    response = client.delete(f"/shops/{shop_id}/services/{service_id}",
                             headers=auth_headers(owner_id, "owner"))

    assert response.status_code == 200
    with app.app_context():
        assert ShopService.query.get(service_id) is None
        assert ServiceProvider.query.count() == 0


def test_set_and_get_service_providers(client, make_profile, make_shop, make_service, add_staff,
                                       auth_headers) -> None:
    owner_id = make_profile("owner")
    shop_id = make_shop(owner_id)
    service_id = make_service(shop_id)
    first = make_profile("provider")
    second = make_profile("provider")
    add_staff(shop_id, first, service_ids=[service_id])
    add_staff(shop_id, second)
    headers = auth_headers(owner_id, "owner")

    response = client.put(f"/shops/{shop_id}/services/{service_id}/providers",
                          json={"provider_ids": [second]}, headers=headers)

    assert response.status_code == 200
    assert response.get_json()["provider_ids"] == [second]

    listed = client.get(f"/shops/{shop_id}/services/{service_id}/providers", headers=headers)
    assert listed.get_json()["provider_ids"] == [second]


def test_assign_provider_from_other_shop_rejected(client, make_profile, make_shop, make_service,
                                                  add_staff, auth_headers) -> None:
    owner_id = make_profile("owner")
    shop_id = make_shop(owner_id)
    other_shop = make_shop(make_profile("owner"))
    service_id = make_service(shop_id)
    outsider = make_profile("provider")
    add_staff(other_shop, outsider)

    response = client.put(f"/shops/{shop_id}/services/{service_id}/providers",
                          json={"provider_ids": [outsider]}, headers=auth_headers(owner_id, "owner"))

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_provider"


def test_assign_providers_requires_list(client, make_profile, make_shop, make_service, auth_headers) -> None:
    owner_id = make_profile("owner")
    shop_id = make_shop(owner_id)
    service_id = make_service(shop_id)

    response = client.put(f"/shops/{shop_id}/services/{service_id}/providers",
                          json={"provider_ids": "all"}, headers=auth_headers(owner_id, "owner"))

    assert response.status_code == 400
