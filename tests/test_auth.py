"""Tests for login, registration and operator account management."""
from __future__ import annotations

from unittest.mock import patch

from werkzeug.security import check_password_hash

from backoffice.extensions import db
from backoffice.models import AuthAccount, User

from conftest import PASSWORD


def test_login_success(client, make_user) -> None:
    user = make_user("MANAGER", phone="0788111222")

    response = client.post("/api/auth/login", json={"phone": "0788111222", "password": PASSWORD})

    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["data"]["token"]
    assert body["data"]["user"]["id"] == user.user_id
    assert db.session.get(AuthAccount, user.user_id).last_login_at is not None


def test_login_invalid_password(client, make_user) -> None:
    make_user(phone="0788111222")

    response = client.post("/api/auth/login", json={"phone": "0788111222", "password": "wrong"})

    assert response.status_code == 401
    assert response.get_json()["error"] == "unauthorized"


def test_login_inactive_user_rejected(client, make_user) -> None:
    make_user(phone="0788111222", is_active=False)

    response = client.post("/api/auth/login", json={"phone": "0788111222", "password": PASSWORD})

    assert response.status_code == 401


def test_login_missing_fields(client) -> None:
    response = client.post("/api/auth/login", json={"phone": "0788111222"})

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_payload"


def test_token_for_deactivated_user_is_rejected(client, staff, staff_headers) -> None:
    staff.is_active = False
    db.session.commit()

    response = client.get("/api/auth/profile", headers=staff_headers)

    assert response.status_code == 401


def test_register_requires_admin(client, staff_headers) -> None:
    response = client.post(
        "/api/auth/register",
        json={"name": "New", "phone": "0788000999"},
        headers=staff_headers,
    )

    assert response.status_code == 403
    assert response.get_json()["error"] == "forbidden"


def test_register_generates_password(client, admin_headers) -> None:
    with patch("backoffice.routes_auth.generate_password", return_value="Abc12345"):
        response = client.post(
            "/api/auth/register",
            json={"name": "Nina", "phone": "0788000999", "role": "staff"},
            headers=admin_headers,
        )

    assert response.status_code == 201
    data = response.get_json()["data"]
    assert data["temporary_password"] == "Abc12345"
    assert data["user"]["role"] == "STAFF"

    user = User.query.filter_by(phone="0788000999").one()
    assert check_password_hash(user.auth_account.password_hash, "Abc12345")


def test_register_with_password_does_not_echo_it(client, admin_headers) -> None:
    response = client.post(
        "/api/auth/register",
        json={"name": "Nina", "phone": "0788000999", "password": "Longenough1"},
        headers=admin_headers,
    )

    assert response.status_code == 201
    assert "temporary_password" not in response.get_json()["data"]


def test_register_duplicate_phone(client, admin, admin_headers) -> None:
    response = client.post(
        "/api/auth/register",
        json={"name": "Copy", "phone": admin.phone},
        headers=admin_headers,
    )

    assert response.status_code == 409


def test_register_invalid_role(client, admin_headers) -> None:
    response = client.post(
        "/api/auth/register",
        json={"name": "Nina", "phone": "0788000999", "role": "OWNER"},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_role"


def test_profile_roundtrip(client, staff, staff_headers) -> None:
    response = client.put("/api/auth/profile", json={"name": "Samuel"}, headers=staff_headers)

    assert response.status_code == 200
    assert client.get("/api/auth/profile", headers=staff_headers).get_json()["data"]["name"] == "Samuel"


def test_change_password(client, staff, staff_headers) -> None:
    wrong = client.put(
        "/api/auth/change-password",
        json={"current_password": "nope", "new_password": "NewSecret1"},
        headers=staff_headers,
    )
    assert wrong.status_code == 400
    assert wrong.get_json()["error"] == "invalid_password"

    response = client.put(
        "/api/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "NewSecret1"},
        headers=staff_headers,
    )

    assert response.status_code == 200
    login = client.post("/api/auth/login", json={"phone": staff.phone, "password": "NewSecret1"})
    assert login.status_code == 200


def test_list_users_filters_by_role(client, admin_headers, make_user) -> None:
    make_user("STAFF")
    make_user("MANAGER")

    response = client.get("/api/auth/users?role=manager", headers=admin_headers)

    assert response.status_code == 200
    body = response.get_json()
    assert [user["role"] for user in body["data"]] == ["MANAGER"]
    assert body["meta"]["total"] == 1


def test_admin_cannot_deactivate_self(client, admin, admin_headers) -> None:
    response = client.delete(f"/api/auth/users/{admin.user_id}", headers=admin_headers)

    assert response.status_code == 400


def test_admin_deactivates_user(client, staff, admin_headers) -> None:
    response = client.delete(f"/api/auth/users/{staff.user_id}", headers=admin_headers)

    assert response.status_code == 200
    assert db.session.get(User, staff.user_id).is_active is False
