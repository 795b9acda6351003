"""Tests for the customer registry endpoints."""
from __future__ import annotations

from backoffice.extensions import db
from backoffice.models import Customer, utc_now


def _payload(**overrides):
    payload = {
        "full_name": "Aline Mukamana",
        "phone": "0788555000",
        "email": "Aline@Example.com",
        "birth_day": 12,
        "birth_month": 4,
        "district": "Gasabo",
    }
    payload.update(overrides)
    return payload


def test_create_customer(client, staff_headers) -> None:
    response = client.post("/api/customers", json=_payload(), headers=staff_headers)

    assert response.status_code == 201
    data = response.get_json()["data"]
    assert data["full_name"] == "Aline Mukamana"
    assert data["email"] == "aline@example.com"
    assert data["visit_count"] == 0
    assert data["loyalty_points"] == 0


def test_create_customer_requires_phone(client, staff_headers) -> None:
    response = client.post("/api/customers", json=_payload(phone=""), headers=staff_headers)

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_payload"


def test_create_customer_rejects_bad_birth_month(client, staff_headers) -> None:
    response = client.post("/api/customers", json=_payload(birth_month=13), headers=staff_headers)

    assert response.status_code == 400


def test_duplicate_phone_among_active_customers(client, staff_headers, make_customer) -> None:
    make_customer(phone="0788555000")

    response = client.post("/api/customers", json=_payload(), headers=staff_headers)

    assert response.status_code == 409


def test_phone_reusable_after_deactivation(client, staff_headers, make_customer) -> None:
    make_customer(phone="0788555000", is_active=False)

    response = client.post("/api/customers", json=_payload(), headers=staff_headers)

    assert response.status_code == 201


def test_dependent_inherits_parent_contact(client, staff_headers, make_customer) -> None:
    parent = make_customer(phone="0788555000", email="mum@example.com")

    response = client.post(
        "/api/customers",
        json={
            "full_name": "Kid",
            "birth_day": 3,
            "birth_month": 9,
            "is_dependent": True,
            "parent_id": parent.customer_id,
        },
        headers=staff_headers,
    )

    assert response.status_code == 201
    data = response.get_json()["data"]
    assert data["is_dependent"] is True
    assert data["parent_id"] == parent.customer_id
    assert data["phone"] == "0788555000"
    assert data["email"] == "mum@example.com"


def test_dependent_needs_existing_parent(client, staff_headers) -> None:
    missing = client.post(
        "/api/customers",
        json={"full_name": "Kid", "birth_day": 3, "birth_month": 9, "is_dependent": True},
        headers=staff_headers,
    )
    unknown = client.post(
        "/api/customers",
        json={"full_name": "Kid", "birth_day": 3, "birth_month": 9, "is_dependent": True, "parent_id": 99},
        headers=staff_headers,
    )

    assert missing.status_code == 400
    assert unknown.status_code == 404


def test_list_customers_search_and_pagination(client, staff_headers, make_customer) -> None:
    make_customer(full_name="Aline", phone="0788000001")
    make_customer(full_name="Bella", phone="0788000002")
    make_customer(full_name="Aliya", phone="0788000003")

    response = client.get("/api/customers?search=ali&limit=1", headers=staff_headers)

    assert response.status_code == 200
    data = response.get_json()["data"]
    assert len(data["customers"]) == 1
    assert data["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}


def test_update_customer_requires_manager(client, staff_headers, admin_headers, make_customer) -> None:
    customer = make_customer()

    forbidden = client.put(
        f"/api/customers/{customer.customer_id}", json={"full_name": "X"}, headers=staff_headers
    )
    response = client.put(
        f"/api/customers/{customer.customer_id}", json={"full_name": "Grace U."}, headers=admin_headers
    )

    assert forbidden.status_code == 403
    assert response.status_code == 200
    assert response.get_json()["data"]["full_name"] == "Grace U."


def test_delete_customer_deactivates(client, admin_headers, make_customer) -> None:
    customer = make_customer()

    response = client.delete(f"/api/customers/{customer.customer_id}", headers=admin_headers)

    assert response.status_code == 200
    assert db.session.get(Customer, customer.customer_id).is_active is False


def test_toggle_active_refuses_phone_clash(client, admin_headers, make_customer) -> None:
    old = make_customer(phone="0788555000", is_active=False)
    make_customer(full_name="New owner", phone="0788555000")

    response = client.patch(f"/api/customers/{old.customer_id}/toggle-active", headers=admin_headers)

    assert response.status_code == 409


def test_get_customer_not_found(client, staff_headers) -> None:
    response = client.get("/api/customers/404", headers=staff_headers)

    assert response.status_code == 404
    assert response.get_json()["error"] == "not_found"


def test_top_customers_ordered_by_visits(client, staff_headers, make_customer) -> None:
    make_customer(full_name="Few", phone="0788000001", visit_count=1)
    make_customer(full_name="Many", phone="0788000002", visit_count=9)

    response = client.get("/api/customers/top", headers=staff_headers)

    assert [row["full_name"] for row in response.get_json()["data"]] == ["Many", "Few"]


def test_customer_stats(client, staff_headers, make_customer) -> None:
    customer = make_customer(visit_count=5, total_spent=50000, loyalty_points=50)

    response = client.get(f"/api/customers/{customer.customer_id}/stats", headers=staff_headers)

    stats = response.get_json()["data"]["stats"]
    assert stats["average_spending"] == 10000
    assert stats["is_eligible_for_sixth_visit_discount"] is True
    assert stats["is_birthday_month"] is False


def test_eligibility_report_gates_birthday_on_prior_visit(client, staff_headers, make_customer) -> None:
    month = utc_now().month
    newcomer = make_customer(phone="0788000001", birth_month=month, visit_count=0)
    regular = make_customer(phone="0788000002", birth_month=month, visit_count=3)

    new_report = client.get(
        f"/api/customers/{newcomer.customer_id}/discount-eligibility", headers=staff_headers
    ).get_json()["data"]
    regular_report = client.get(
        f"/api/customers/{regular.customer_id}/discount-eligibility", headers=staff_headers
    ).get_json()["data"]

    assert new_report["is_birthday_month"] is True
    assert new_report["has_prior_visit"] is False
    assert new_report["birthday_discount_available"] is False
    assert regular_report["birthday_discount_available"] is True
    assert regular_report["next_visit_count"] == 4
    assert regular_report["sixth_visit_eligible"] is False
