"""Tests for dashboard statistics and analytics."""
from __future__ import annotations


def test_dashboard_requires_manager(client, staff_headers) -> None:
    assert client.get("/api/dashboard/stats", headers=staff_headers).status_code == 403


def test_dashboard_stats(client, admin_headers, make_customer, make_service) -> None:
    twist = make_service("Twist", 5000, category="TWIST_HAIRSTYLE")
    shampoo = make_service("Shampoo", 4000)
    regular = make_customer(phone="0788000001", visit_count=4)
    make_customer(phone="0788000002")
    client.post(
        "/api/visits",
        json={"customer_id": regular.customer_id, "service_ids": [twist.service_id, twist.service_id]},
        headers=admin_headers,
    )
    client.post(
        "/api/visits",
        json={"customer_id": regular.customer_id, "service_ids": [shampoo.service_id]},
        headers=admin_headers,
    )

    response = client.get("/api/dashboard/stats?period=week", headers=admin_headers)

    assert response.status_code == 200
    data = response.get_json()["data"]
    overview = data["overview"]
    assert overview["total_customers"] == 2
    assert overview["period_visits"] == 2
    # Second visit is the sixth: 20% off the shampoo
    assert overview["total_revenue"] == 10000 + 3200
    assert overview["customer_retention_rate"] == 50.0
    assert data["top_services"][0] == {"name": "Twist", "category": "TWIST_HAIRSTYLE", "count": 2, "revenue": 10000}
    assert len(data["revenue_trend"]) == 7
    assert data["revenue_trend"][-1]["revenue"] == 13200
    assert data["recent_customers"][0]["id"] == regular.customer_id


def test_sixth_visit_eligible_list(client, admin_headers, make_customer) -> None:
    due = make_customer(phone="0788000001", visit_count=11)
    make_customer(phone="0788000002", visit_count=6)

    data = client.get("/api/dashboard/stats", headers=admin_headers).get_json()["data"]

    assert [row["id"] for row in data["sixth_visit_eligible"]] == [due.customer_id]


def test_year_trend_has_twelve_months(client, admin_headers) -> None:
    data = client.get("/api/dashboard/stats?period=year", headers=admin_headers).get_json()["data"]

    assert data["period"] == "year"
    assert len(data["revenue_trend"]) == 12


def test_analytics(client, admin_headers, make_customer, make_service) -> None:
    twist = make_service("Twist", 5000, category="TWIST_HAIRSTYLE")
    customer = make_customer()
    client.post(
        "/api/visits",
        json={"customer_id": customer.customer_id, "service_ids": [twist.service_id]},
        headers=admin_headers,
    )

    data = client.get("/api/dashboard/analytics?period=quarter", headers=admin_headers).get_json()["data"]

    assert data["period"] == "quarter"
    assert data["category_revenue"] == [
        {"category": "TWIST_HAIRSTYLE", "revenue": 5000, "quantity": 1, "services": 1}
    ]
    assert len(data["peak_hours"]) == 1
    assert data["peak_hours"][0]["visits"] == 1
