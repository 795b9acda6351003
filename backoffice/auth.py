"""Bearer token helpers and role-gated view decorators."""
from __future__ import annotations

import random
import string
from functools import wraps

from flask import current_app, g, jsonify, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .extensions import db
from .models import User

TOKEN_SALT = "auth-token"


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=TOKEN_SALT)


def build_token(user: User) -> str:
    return _serializer().dumps({"user_id": user.user_id, "role": user.role})


def get_bearer_token() -> str | None:
    """Obtain the token from an ``Authorization: Bearer <token>`` header."""
    parts = request.headers.get("Authorization", "").split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


def decode_token(token: str) -> dict:
    """Return the token payload; raises ``BadSignature`` when invalid or expired."""
    max_age = current_app.config.get("TOKEN_MAX_AGE", 86400)
    return _serializer().loads(token, max_age=max_age)


def login_required(view):
    """Reject the request unless it carries a valid token for an active user."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        token = get_bearer_token()
        if not token:
            return jsonify({"error": "unauthorized", "message": "Access token required"}), 401

        try:
            payload = decode_token(token)
        except SignatureExpired:
            return jsonify({"error": "invalid_token", "message": "Token has expired"}), 403
        except BadSignature:
            return jsonify({"error": "invalid_token", "message": "Invalid token"}), 403

        user = db.session.get(User, payload.get("user_id"))
        if user is None or not user.is_active:
            current_app.logger.warning("Token presented for missing or inactive user %s", payload.get("user_id"))
            return jsonify({"error": "unauthorized", "message": "Invalid or inactive user"}), 401

        g.current_user = user
        return view(*args, **kwargs)

    return wrapper


def roles_required(*roles: str):
    """Authenticate the request and require one of ``roles``."""

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            user = g.current_user
            if user.role not in roles:
                current_app.logger.warning(
                    "User %s with role %s denied %s %s", user.user_id, user.role, request.method, request.path
                )
                return jsonify({"error": "forbidden", "message": "Insufficient permissions"}), 403
            return view(*args, **kwargs)

        return login_required(wrapper)

    return decorator


def current_user() -> User:
    return g.current_user


def generate_password(length: int = 8) -> str:
    """Random password with at least one lowercase letter, uppercase letter and digit."""
    rng = random.SystemRandom()
    chars = [
        rng.choice(string.ascii_lowercase),
        rng.choice(string.ascii_uppercase),
        rng.choice(string.digits),
    ]
    pool = string.ascii_letters + string.digits
    chars.extend(rng.choice(pool) for _ in range(max(length, 3) - 3))
    rng.shuffle(chars)
    return "".join(chars)
