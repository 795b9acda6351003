"""Tests for the retail product inventory endpoints."""
from __future__ import annotations

from backoffice.extensions import db
from backoffice.models import Product


def _create(client, headers, **overrides):
    payload = {"name": "Hair Butter", "price": 8000, "quantity": 5}
    payload.update(overrides)
    return client.post("/api/products", json=payload, headers=headers)


def test_create_and_list_products(client, admin_headers, staff_headers) -> None:
    assert _create(client, admin_headers).status_code == 201

    response = client.get("/api/products", headers=staff_headers)

    assert [p["name"] for p in response.get_json()["data"]] == ["Hair Butter"]


def test_create_product_validation(client, admin_headers) -> None:
    assert _create(client, admin_headers, name="").status_code == 400
    assert _create(client, admin_headers, price="abc").status_code == 400
    _create(client, admin_headers)
    duplicate = _create(client, admin_headers)
    assert duplicate.status_code == 400
    assert duplicate.get_json()["error"] == "duplicate_entry"


def test_staff_cannot_create_product(client, staff_headers) -> None:
    assert _create(client, staff_headers).status_code == 403


def test_increase_stock(client, admin_headers) -> None:
    product_id = _create(client, admin_headers).get_json()["data"]["id"]

    response = client.post(f"/api/products/{product_id}/increase-stock", json={"quantity": 7}, headers=admin_headers)
    invalid = client.post(f"/api/products/{product_id}/increase-stock", json={"quantity": 0}, headers=admin_headers)

    assert response.status_code == 200
    assert response.get_json()["data"]["quantity"] == 12
    assert invalid.status_code == 400


def test_update_and_delete_product(client, admin_headers) -> None:
    product_id = _create(client, admin_headers).get_json()["data"]["id"]

    updated = client.put(f"/api/products/{product_id}", json={"price": 9000, "is_active": False}, headers=admin_headers)
    deleted = client.delete(f"/api/products/{product_id}", headers=admin_headers)

    assert updated.get_json()["data"]["price"] == 9000
    assert updated.get_json()["data"]["is_active"] is False
    assert deleted.status_code == 200
    assert db.session.get(Product, product_id) is None
