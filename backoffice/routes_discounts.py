"""Discount rule administration."""
from __future__ import annotations

import time

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from .auth import roles_required
from .extensions import db
from .models import DISCOUNT_TYPES, DiscountRule, Service
from .utils import parse_bool, parse_datetime, parse_int

bp_discounts = Blueprint("discounts", __name__)

DELETED_MARKER = "_deleted_"


def _rule_fields(payload: dict, partial: bool = False) -> dict[str, object]:
    """Validate discount rule attributes; raises ``ValueError`` on bad input."""
    fields: dict[str, object] = {}

    if not partial or "name" in payload:
        name = (payload.get("name") or "").strip()
        if not name:
            raise ValueError("name is required")
        if DELETED_MARKER in name:
            raise ValueError(f"name cannot contain '{DELETED_MARKER}'")
        fields["name"] = name

    if not partial or "type" in payload:
        discount_type = (payload.get("type") or "").strip().upper()
        if discount_type not in DISCOUNT_TYPES:
            raise ValueError(f"type must be one of: {', '.join(DISCOUNT_TYPES)}")
        fields["type"] = discount_type

    if not partial or "value" in payload:
        fields["value"] = parse_int(payload.get("value"), "value", minimum=1)

    if not partial or "is_percentage" in payload:
        fields["is_percentage"] = bool(parse_bool(payload.get("is_percentage"), default=True))

    if "description" in payload:
        fields["description"] = (payload.get("description") or "").strip() or None

    for field in ("start_date", "end_date"):
        if field in payload:
            try:
                fields[field] = parse_datetime(payload.get(field))
            except (TypeError, ValueError):
                raise ValueError(f"{field} must be an ISO date") from None

    if not partial or "apply_to_all_services" in payload:
        fields["apply_to_all_services"] = bool(
            parse_bool(payload.get("apply_to_all_services"), default=False)
        )

    if partial and "is_active" in payload:
        fields["is_active"] = bool(parse_bool(payload.get("is_active"), default=True))

    return fields


def _check_rule(rule: DiscountRule) -> None:
    if rule.is_percentage and rule.value > 100:
        raise ValueError("percentage value cannot exceed 100")
    if rule.start_date and rule.end_date:
        # Stored values come back naive (UTC) on some backends
        start = rule.start_date.replace(tzinfo=None)
        end = rule.end_date.replace(tzinfo=None)
        if start > end:
            raise ValueError("start_date must be before end_date")


def _scoped_services(payload: dict) -> list[Service]:
    raw = payload.get("service_ids") or []
    if not isinstance(raw, list):
        raise ValueError("service_ids must be a list")
    service_ids = {parse_int(value, "service_ids", minimum=1) for value in raw}
    if not service_ids:
        return []
    services = Service.query.filter(Service.service_id.in_(service_ids)).all()
    missing = service_ids - {service.service_id for service in services}
    if missing:
        raise ValueError(f"Services not found: {sorted(missing)}")
    return services


def _name_taken(name: str, exclude_id: int | None = None) -> bool:
    query = DiscountRule.query.filter(DiscountRule.name == name)
    if exclude_id is not None:
        query = query.filter(DiscountRule.discount_rule_id != exclude_id)
    return query.first() is not None


@bp_discounts.get("")
@roles_required("ADMIN", "MANAGER")
def list_discount_rules() -> tuple[dict[str, object], int]:
    """List discount rules, newest first; deleted rules are hidden."""
    rules = (
        DiscountRule.query.filter(~DiscountRule.name.contains(DELETED_MARKER, autoescape=True))
        .order_by(DiscountRule.created_at.desc())
        .all()
    )
    return jsonify({"success": True, "data": [rule.to_dict() for rule in rules]}), 200


@bp_discounts.post("")
@roles_required("ADMIN", "MANAGER")
def create_discount_rule() -> tuple[dict[str, object], int]:
    """Create a discount rule.
    ---
    tags:
      - Discounts
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
            type:
              type: string
              enum: [SIXTH_VISIT, BIRTHDAY_MONTH, SERVICE_COMBO, PROMOTIONAL, SEASONAL, LOYALTY_POINTS]
            value:
              type: integer
            is_percentage:
              type: boolean
            description:
              type: string
            start_date:
              type: string
              format: date-time
            end_date:
              type: string
              format: date-time
            apply_to_all_services:
              type: boolean
            service_ids:
              type: array
              items:
                type: integer
          required:
            - name
            - type
            - value
    responses:
      201:
        description: Rule created
      400:
        description: Invalid payload or duplicate name
    """
    payload = request.get_json(silent=True) or {}

    try:
        fields = _rule_fields(payload)
        rule = DiscountRule(**fields)
        _check_rule(rule)
        services = [] if rule.apply_to_all_services else _scoped_services(payload)
    except ValueError as exc:
        return jsonify({"error": "invalid_payload", "message": str(exc)}), 400

    if _name_taken(rule.name):
        return jsonify({"error": "duplicate_entry", "message": "A discount rule with this name already exists"}), 400

    rule.services = services

    try:
        db.session.add(rule)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create discount rule", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"success": True, "data": rule.to_dict(), "message": "Discount rule created"}), 201


@bp_discounts.put("/<int:rule_id>")
@roles_required("ADMIN", "MANAGER")
def update_discount_rule(rule_id: int) -> tuple[dict[str, object], int]:
    """Update a rule; its service scope is replaced with ``service_ids``."""
    rule = db.session.get(DiscountRule, rule_id)
    if rule is None:
        return jsonify({"error": "not_found", "message": "Discount rule not found"}), 404

    payload = request.get_json(silent=True) or {}

    try:
        fields = _rule_fields(payload, partial=True)
        if "name" in fields and _name_taken(fields["name"], rule_id):
            return (
                jsonify({"error": "duplicate_entry", "message": "A discount rule with this name already exists"}),
                400,
            )
        for field, value in fields.items():
            setattr(rule, field, value)
        _check_rule(rule)
        rule.services = [] if rule.apply_to_all_services else _scoped_services(payload)
    except ValueError as exc:
        db.session.rollback()
        return jsonify({"error": "invalid_payload", "message": str(exc)}), 400

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update discount rule", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"success": True, "data": rule.to_dict(), "message": "Discount rule updated"}), 200


@bp_discounts.delete("/<int:rule_id>")
@roles_required("ADMIN", "MANAGER")
def delete_discount_rule(rule_id: int):
    """Soft delete: deactivate and rename so the name can be reused.

    Visits and usage rows keep referencing the renamed rule.
    """
    rule = db.session.get(DiscountRule, rule_id)
    if rule is None or DELETED_MARKER in rule.name:
        return jsonify({"error": "not_found", "message": "Discount rule not found"}), 404

    rule.is_active = False
    rule.name = f"{rule.name}{DELETED_MARKER}{int(time.time() * 1000)}"

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete discount rule", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    current_app.logger.info("Discount rule %s soft deleted as %s", rule_id, rule.name)
    return "", 204
