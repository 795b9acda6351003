"""Create an operator account or reset its password."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure the project root is on sys.path so ``backoffice`` can be imported when the script is executed directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import USER_ROLES, AuthAccount, User

DEFAULT_NAMES = {
    "ADMIN": "Salon Admin",
    "MANAGER": "Salon Manager",
    "STAFF": "Stylist",
}


def set_password(phone: str, password: str, role: str = "STAFF", name: str | None = None) -> None:
    app = create_app()

    with app.app_context():
        user = User.query.filter_by(phone=phone).first()
        if user is None:
            user = User(name=name or DEFAULT_NAMES[role], phone=phone, role=role)
            db.session.add(user)
            db.session.flush()
            print(f"Created new {role} user: {phone}")
        else:
            if user.role != role:
                print(f"Updating user role from '{user.role}' to '{role}'")
                user.role = role
            if name:
                user.name = name
            user.is_active = True

        account = db.session.get(AuthAccount, user.user_id)
        if account is None:
            account = AuthAccount(user_id=user.user_id)
            db.session.add(account)

        account.password_hash = generate_password_hash(password)
        db.session.commit()

        print(f"Password for {role} user '{phone}' has been set.")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create or reset a back office login.")
    parser.add_argument("phone", help="Login phone number")
    parser.add_argument("password", help="Plain-text password to hash and store")
    parser.add_argument("--role", choices=USER_ROLES, default="STAFF", help="User role (default: STAFF)")
    parser.add_argument("--name", help="Display name for a new account")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    set_password(args.phone, args.password, args.role, args.name)


if __name__ == "__main__":
    main()
