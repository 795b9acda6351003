"""Service catalogue routes."""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from .auth import login_required, roles_required
from .extensions import db
from .models import Service
from .utils import parse_bool, parse_int

bp_services = Blueprint("services", __name__)

OPTIONAL_PRICES = ("combined_price", "child_price", "child_combined_price")


def _service_fields(payload: dict, partial: bool = False) -> dict[str, object]:
    """Validate service attributes; raises ``ValueError`` on bad input."""
    fields: dict[str, object] = {}

    for field in ("name", "category"):
        if not partial or field in payload:
            value = (payload.get(field) or "").strip()
            if not value:
                raise ValueError(f"{field} is required")
            fields[field] = value

    if "description" in payload:
        fields["description"] = (payload.get("description") or "").strip() or None

    if not partial or "single_price" in payload:
        fields["single_price"] = parse_int(payload.get("single_price"), "single_price", minimum=1)

    for field in OPTIONAL_PRICES:
        if field in payload:
            fields[field] = parse_int(payload.get(field), field, minimum=1, allow_none=True)

    if "duration" in payload or not partial:
        duration = parse_int(payload.get("duration"), "duration", minimum=1, allow_none=True)
        if duration is not None or not partial:
            fields["duration"] = duration or 30

    if partial and "is_active" in payload:
        fields["is_active"] = bool(parse_bool(payload.get("is_active"), default=True))

    return fields


@bp_services.get("")
@login_required
def list_services() -> tuple[dict[str, object], int]:
    """List services grouped by category.
    ---
    tags:
      - Services
    parameters:
      - name: category
        in: query
        type: string
      - name: is_active
        in: query
        type: boolean
        default: true
    responses:
      200:
        description: Services ordered by category then name
    """
    category = (request.args.get("category") or "").strip()
    is_active = parse_bool(request.args.get("is_active"), default=True)

    query = Service.query.filter(Service.is_active.is_(is_active))
    if category:
        query = query.filter(Service.category == category)

    services = query.order_by(Service.category.asc(), Service.name.asc()).all()
    return jsonify({"success": True, "data": [service.to_dict() for service in services]}), 200


@bp_services.get("/<int:service_id>")
@login_required
def get_service(service_id: int) -> tuple[dict[str, object], int]:
    service = db.session.get(Service, service_id)
    if service is None:
        return jsonify({"error": "not_found", "message": "Service not found"}), 404
    return jsonify({"success": True, "data": service.to_dict()}), 200


@bp_services.post("")
@roles_required("ADMIN", "MANAGER")
def create_service() -> tuple[dict[str, object], int]:
    """Add a service to the price list.
    ---
    tags:
      - Services
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
            category:
              type: string
            description:
              type: string
            single_price:
              type: integer
            combined_price:
              type: integer
            child_price:
              type: integer
            child_combined_price:
              type: integer
            duration:
              type: integer
              description: Minutes
          required:
            - name
            - category
            - single_price
    responses:
      201:
        description: Service created
      400:
        description: Invalid payload or duplicate name
    """
    payload = request.get_json(silent=True) or {}

    try:
        fields = _service_fields(payload)
    except ValueError as exc:
        return jsonify({"error": "invalid_payload", "message": str(exc)}), 400

    if Service.query.filter_by(name=fields["name"]).first():
        return jsonify({"error": "duplicate_entry", "message": "Service with this name already exists"}), 400

    service = Service(**fields)

    try:
        db.session.add(service)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create service", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"success": True, "data": service.to_dict(), "message": "Service created successfully"}), 201


@bp_services.put("/<int:service_id>")
@roles_required("ADMIN", "MANAGER")
def update_service(service_id: int) -> tuple[dict[str, object], int]:
    service = db.session.get(Service, service_id)
    if service is None:
        return jsonify({"error": "not_found", "message": "Service not found"}), 404

    payload = request.get_json(silent=True) or {}

    try:
        fields = _service_fields(payload, partial=True)
    except ValueError as exc:
        return jsonify({"error": "invalid_payload", "message": str(exc)}), 400

    name = fields.get("name")
    if name and name != service.name and Service.query.filter_by(name=name).first():
        return jsonify({"error": "duplicate_entry", "message": "Service with this name already exists"}), 400

    for field, value in fields.items():
        setattr(service, field, value)

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update service", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"success": True, "data": service.to_dict(), "message": "Service updated successfully"}), 200


@bp_services.delete("/<int:service_id>")
@roles_required("ADMIN")
def delete_service(service_id: int) -> tuple[dict[str, object], int]:
    """Retire a service; past visit lines keep pointing at it."""
    service = db.session.get(Service, service_id)
    if service is None:
        return jsonify({"error": "not_found", "message": "Service not found"}), 404

    service.is_active = False

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to deactivate service", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"success": True, "message": "Service deleted successfully"}), 200
