"""Login, operator accounts and profile routes."""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from .auth import build_token, current_user, generate_password, login_required, roles_required
from .extensions import db
from .models import USER_ROLES, AuthAccount, User, utc_now
from .utils import get_pagination, pagination_meta

bp_auth = Blueprint("auth", __name__)

MIN_PASSWORD_LENGTH = 6


@bp_auth.post("/login")
def login() -> tuple[dict[str, object], int]:
    """Authenticate an operator by phone/password and return an access token.
    ---
    tags:
      - Authentication
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            phone:
              type: string
            password:
              type: string
          required:
            - phone
            - password
    responses:
      200:
        description: Login successful, returns access token
      400:
        description: Missing phone or password
      401:
        description: Invalid credentials
      500:
        description: Server error
    """
    payload = request.get_json(silent=True) or {}

    phone = (payload.get("phone") or "").strip()
    password = payload.get("password") or ""

    if not phone or not password:
        return (
            jsonify({"error": "invalid_payload", "message": "phone and password are required"}),
            400,
        )

    record = (
        db.session.query(User, AuthAccount)
        .join(AuthAccount, AuthAccount.user_id == User.user_id)
        .filter(User.phone == phone)
        .first()
    )

    if not record:
        return jsonify({"error": "unauthorized", "message": "invalid credentials"}), 401

    user, auth_account = record

    if not user.is_active or not check_password_hash(auth_account.password_hash, password):
        return jsonify({"error": "unauthorized", "message": "invalid credentials"}), 401

    auth_account.last_login_at = utc_now()

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update last login timestamp", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({
        "success": True,
        "data": {"token": build_token(user), "user": user.to_dict()},
    }), 200


@bp_auth.post("/register")
@roles_required("ADMIN")
def register_user() -> tuple[dict[str, object], int]:
    """Create an operator account (admin only).

    When no password is supplied a temporary one is generated and returned
    once in the response.
    ---
    tags:
      - Authentication
    responses:
      201:
        description: User registered
      400:
        description: Invalid payload
      409:
        description: Phone already in use
    """
    payload = request.get_json(silent=True) or {}

    name = (payload.get("name") or "").strip()
    phone = (payload.get("phone") or "").strip()
    email = (payload.get("email") or "").strip().lower() or None
    role = (payload.get("role") or "STAFF").strip().upper()
    password = payload.get("password") or ""

    if not name or not phone:
        return jsonify({"error": "invalid_payload", "message": "name and phone are required"}), 400

    if role not in USER_ROLES:
        return (
            jsonify({"error": "invalid_role", "message": f"role must be one of: {', '.join(USER_ROLES)}"}),
            400,
        )

    if password and len(password) < MIN_PASSWORD_LENGTH:
        return (
            jsonify({
                "error": "invalid_payload",
                "message": f"password must be at least {MIN_PASSWORD_LENGTH} characters",
            }),
            400,
        )

    if User.query.filter_by(phone=phone).first():
        return jsonify({"error": "conflict", "message": "phone number is already in use"}), 409

    generated = not password
    if generated:
        password = generate_password()

    try:
        user = User(name=name, phone=phone, email=email, role=role)
        db.session.add(user)
        db.session.flush()

        db.session.add(AuthAccount(user_id=user.user_id, password_hash=generate_password_hash(password)))
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to register user", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    data = {"user": user.to_dict()}
    if generated:
        data["temporary_password"] = password

    return jsonify({"success": True, "data": data, "message": "User registered successfully"}), 201


@bp_auth.get("/profile")
@login_required
def get_profile() -> tuple[dict[str, object], int]:
    return jsonify({"success": True, "data": current_user().to_dict()}), 200


@bp_auth.put("/profile")
@login_required
def update_profile() -> tuple[dict[str, object], int]:
    """Update the caller's own name, phone or email."""
    payload = request.get_json(silent=True) or {}
    user = current_user()

    name = payload.get("name")
    phone = payload.get("phone")
    email = payload.get("email")

    if name is not None and not str(name).strip():
        return jsonify({"error": "invalid_payload", "message": "name cannot be empty"}), 400

    if phone is not None:
        phone = str(phone).strip()
        if not phone:
            return jsonify({"error": "invalid_payload", "message": "phone cannot be empty"}), 400
        if phone != user.phone and User.query.filter(User.phone == phone, User.user_id != user.user_id).first():
            return jsonify({"error": "conflict", "message": "phone number is already in use"}), 409
        user.phone = phone

    if name is not None:
        user.name = str(name).strip()
    if email is not None:
        user.email = str(email).strip().lower() or None

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update profile", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"success": True, "data": user.to_dict(), "message": "Profile updated successfully"}), 200


@bp_auth.put("/change-password")
@login_required
def change_password() -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    current_password = payload.get("current_password") or ""
    new_password = payload.get("new_password") or ""

    if not current_password or not new_password:
        return (
            jsonify({"error": "invalid_payload", "message": "current_password and new_password are required"}),
            400,
        )

    if len(new_password) < MIN_PASSWORD_LENGTH:
        return (
            jsonify({
                "error": "invalid_payload",
                "message": f"new_password must be at least {MIN_PASSWORD_LENGTH} characters",
            }),
            400,
        )

    account = db.session.get(AuthAccount, current_user().user_id)
    if account is None or not check_password_hash(account.password_hash, current_password):
        return jsonify({"error": "invalid_password", "message": "current password is incorrect"}), 400

    account.password_hash = generate_password_hash(new_password)

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to change password", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"success": True, "message": "Password changed successfully"}), 200


@bp_auth.get("/users")
@roles_required("ADMIN")
def list_users() -> tuple[dict[str, object], int]:
    """List active operator accounts with search and role filters.
    ---
    tags:
      - Users
    parameters:
      - name: search
        in: query
        type: string
      - name: role
        in: query
        type: string
        enum: [ADMIN, MANAGER, STAFF]
      - name: page
        in: query
        type: integer
      - name: limit
        in: query
        type: integer
    """
    try:
        page, limit = get_pagination()
    except (TypeError, ValueError):
        return jsonify({"error": "invalid_parameters"}), 400

    search = (request.args.get("search") or "").strip()
    role = (request.args.get("role") or "").strip().upper()

    query = User.query.filter(User.is_active.is_(True))
    if search:
        like = f"%{search}%"
        query = query.filter(or_(User.name.ilike(like), User.email.ilike(like), User.phone.ilike(like)))
    if role:
        query = query.filter(User.role == role)

    total = query.count()
    users = query.order_by(User.name.asc()).limit(limit).offset((page - 1) * limit).all()

    return jsonify({
        "success": True,
        "data": [user.to_dict() for user in users],
        "meta": pagination_meta(page, limit, total),
    }), 200


@bp_auth.get("/users/<int:user_id>")
@roles_required("ADMIN")
def get_user(user_id: int) -> tuple[dict[str, object], int]:
    user = db.session.get(User, user_id)
    if user is None:
        return jsonify({"error": "not_found", "message": "User not found"}), 404
    return jsonify({"success": True, "data": user.to_dict()}), 200


@bp_auth.put("/users/<int:user_id>")
@roles_required("ADMIN")
def update_user(user_id: int) -> tuple[dict[str, object], int]:
    user = db.session.get(User, user_id)
    if user is None:
        return jsonify({"error": "not_found", "message": "User not found"}), 404

    payload = request.get_json(silent=True) or {}

    if payload.get("role"):
        role = str(payload["role"]).strip().upper()
        if role not in USER_ROLES:
            return (
                jsonify({"error": "invalid_role", "message": f"role must be one of: {', '.join(USER_ROLES)}"}),
                400,
            )
        user.role = role

    if payload.get("phone"):
        phone = str(payload["phone"]).strip()
        if phone != user.phone and User.query.filter(User.phone == phone, User.user_id != user_id).first():
            return jsonify({"error": "conflict", "message": "phone number is already in use"}), 409
        user.phone = phone

    if payload.get("name"):
        user.name = str(payload["name"]).strip()
    if "email" in payload:
        user.email = (payload.get("email") or "").strip().lower() or None

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update user", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"success": True, "data": user.to_dict(), "message": "User updated successfully"}), 200


@bp_auth.delete("/users/<int:user_id>")
@roles_required("ADMIN")
def delete_user(user_id: int) -> tuple[dict[str, object], int]:
    """Deactivate an operator account; history stays attached to it."""
    user = db.session.get(User, user_id)
    if user is None:
        return jsonify({"error": "not_found", "message": "User not found"}), 404

    if user.user_id == current_user().user_id:
        return jsonify({"error": "invalid_request", "message": "You cannot deactivate your own account"}), 400

    user.is_active = False

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to deactivate user", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"success": True, "message": "User deactivated successfully"}), 200
