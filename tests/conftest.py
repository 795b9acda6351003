"""Shared pytest fixtures: an in-memory app, a client and logged-in operators."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest
from werkzeug.security import generate_password_hash

# Ensure the project root is available on sys.path so tests can import the package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backoffice import create_app  # noqa: E402
from backoffice.auth import build_token  # noqa: E402
from backoffice.extensions import db  # noqa: E402
from backoffice.models import AuthAccount, Customer, Service, User, utc_now  # noqa: E402

PASSWORD = "Secret123"


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "SECRET_KEY": "test-secret",
    })
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make(role: str = "STAFF", *, name: str | None = None, phone: str | None = None,
              password: str = PASSWORD, is_active: bool = True) -> User:
        counter["n"] += 1
        user = User(
            name=name or f"{role.title()} {counter['n']}",
            phone=phone or f"07880000{counter['n']:02d}",
            role=role,
            is_active=is_active,
        )
        db.session.add(user)
        db.session.flush()
        db.session.add(AuthAccount(user_id=user.user_id, password_hash=generate_password_hash(password)))
        db.session.commit()
        return user

    return _make


def headers_for(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token(user)}"}


@pytest.fixture
def auth_headers(app):
    return headers_for


@pytest.fixture
def admin(make_user) -> User:
    return make_user("ADMIN", name="Alice Admin")


@pytest.fixture
def admin_headers(admin) -> dict[str, str]:
    return headers_for(admin)


@pytest.fixture
def staff(make_user) -> User:
    return make_user("STAFF", name="Sam Stylist")


@pytest.fixture
def staff_headers(staff) -> dict[str, str]:
    return headers_for(staff)


@pytest.fixture
def make_customer(app):
    def _make(**fields) -> Customer:
        fields.setdefault("full_name", "Grace Uwase")
        fields.setdefault("phone", "0788123456")
        fields.setdefault("birth_day", 15)
        # Default to next month so birthday discounts only apply when asked for
        fields.setdefault("birth_month", utc_now().month % 12 + 1)
        customer = Customer(**fields)
        db.session.add(customer)
        db.session.commit()
        return customer

    return _make


@pytest.fixture
def make_service(app):
    def _make(name: str, single_price: int, **fields) -> Service:
        fields.setdefault("category", "HAIR_TREATMENTS")
        service = Service(name=name, single_price=single_price, **fields)
        db.session.add(service)
        db.session.commit()
        return service

    return _make
