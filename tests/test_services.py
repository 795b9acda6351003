"""Tests for the service catalogue endpoints."""
from __future__ import annotations

from backoffice.extensions import db
from backoffice.models import Service


def test_create_service_success_201(client, admin_headers) -> None:
    response = client.post(
        "/api/services",
        json={
            "name": "Protein Treatment",
            "category": "HAIR_TREATMENTS",
            "single_price": 10000,
            "combined_price": 15000,
            "child_price": "12000",
            "duration": 60,
        },
        headers=admin_headers,
    )

    assert response.status_code == 201
    assert response.get_json()["message"] == "Service created successfully"
    service = Service.query.filter_by(name="Protein Treatment").one()
    assert service.child_price == 12000
    assert service.child_combined_price is None


def test_create_service_missing_required_field_400(client, admin_headers) -> None:
    response = client.post(
        "/api/services", json={"name": "No Price", "category": "STYLING"}, headers=admin_headers
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_payload"


def test_create_service_invalid_price_400(client, admin_headers) -> None:
    response = client.post(
        "/api/services",
        json={"name": "Free", "category": "STYLING", "single_price": -5},
        headers=admin_headers,
    )

    assert response.status_code == 400


def test_create_service_duplicate_name_400(client, admin_headers, make_service) -> None:
    make_service("Shampoo", 7000)

    response = client.post(
        "/api/services",
        json={"name": "Shampoo", "category": "HAIR_TREATMENTS", "single_price": 7000},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "duplicate_entry"


def test_staff_cannot_create_service(client, staff_headers) -> None:
    response = client.post(
        "/api/services",
        json={"name": "Twist", "category": "TWIST_HAIRSTYLE", "single_price": 7000},
        headers=staff_headers,
    )

    assert response.status_code == 403


def test_list_services_ordered_by_category_then_name(client, staff_headers, make_service) -> None:
    make_service("Twist Out", 10000, category="TWIST_HAIRSTYLE")
    make_service("Henna", 15000, category="HAIR_TREATMENTS")
    make_service("Chebe", 15000, category="HAIR_TREATMENTS")
    make_service("Retired", 1000, category="HAIR_TREATMENTS", is_active=False)

    response = client.get("/api/services", headers=staff_headers)
    filtered = client.get("/api/services?category=TWIST_HAIRSTYLE", headers=staff_headers)

    assert [s["name"] for s in response.get_json()["data"]] == ["Chebe", "Henna", "Twist Out"]
    assert [s["name"] for s in filtered.get_json()["data"]] == ["Twist Out"]


def test_update_service(client, admin_headers, make_service) -> None:
    service = make_service("Twist", 7000)

    response = client.put(
        f"/api/services/{service.service_id}",
        json={"single_price": 8000, "combined_price": None},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.get_json()["data"]["single_price"] == 8000
    assert response.get_json()["data"]["name"] == "Twist"


def test_delete_service_is_soft_and_admin_only(client, admin_headers, make_user, auth_headers, make_service) -> None:
    service = make_service("Twist", 7000)
    manager_headers = auth_headers(make_user("MANAGER"))

    forbidden = client.delete(f"/api/services/{service.service_id}", headers=manager_headers)
    response = client.delete(f"/api/services/{service.service_id}", headers=admin_headers)

    assert forbidden.status_code == 403
    assert response.status_code == 200
    assert db.session.get(Service, service.service_id).is_active is False
