"""Customer registry routes, including loyalty stats and discount eligibility."""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from .auth import login_required, roles_required
from .discounts import birthday_discount_used, is_birthday_month, is_sixth_visit
from .extensions import db
from .models import Customer, CustomerDiscount, Visit, utc_now
from .utils import get_pagination, pagination_meta, parse_bool, parse_int

bp_customers = Blueprint("customers", __name__)

PROFILE_FIELDS = ("gender", "location", "district", "province")


def _phone_taken(phone: str, exclude_id: int | None = None) -> bool:
    """Phones are unique among active, non-dependent customers only."""
    query = Customer.query.filter(
        Customer.phone == phone,
        Customer.is_active.is_(True),
        Customer.is_dependent.is_(False),
    )
    if exclude_id is not None:
        query = query.filter(Customer.customer_id != exclude_id)
    return query.first() is not None


def _parse_birth_fields(payload: dict, partial: bool = False) -> dict[str, int | None]:
    """Validate birth day/month/year; raises ``ValueError`` with a readable message."""
    fields = {}
    if not partial or "birth_day" in payload:
        fields["birth_day"] = parse_int(payload.get("birth_day"), "birth_day", minimum=1)
        if fields["birth_day"] > 31:
            raise ValueError("birth_day must be between 1 and 31")
    if not partial or "birth_month" in payload:
        fields["birth_month"] = parse_int(payload.get("birth_month"), "birth_month", minimum=1)
        if fields["birth_month"] > 12:
            raise ValueError("birth_month must be between 1 and 12")
    if "birth_year" in payload:
        fields["birth_year"] = parse_int(payload.get("birth_year"), "birth_year", minimum=1900, allow_none=True)
    return fields


@bp_customers.get("")
@login_required
def list_customers() -> tuple[dict[str, object], int]:
    """List customers with search and active filter.
    ---
    tags:
      - Customers
    parameters:
      - name: search
        in: query
        type: string
        description: Matches name, phone or email
      - name: is_active
        in: query
        type: boolean
      - name: page
        in: query
        type: integer
        default: 1
      - name: limit
        in: query
        type: integer
        default: 10
    responses:
      200:
        description: Customers with pagination metadata
      400:
        description: Invalid parameters
    """
    try:
        page, limit = get_pagination()
    except (TypeError, ValueError) as exc:
        current_app.logger.warning(f"Invalid pagination parameters: {exc}")
        return jsonify({"error": "invalid_parameters"}), 400

    search = (request.args.get("search") or "").strip()
    is_active = parse_bool(request.args.get("is_active"))

    query = Customer.query
    if is_active is not None:
        query = query.filter(Customer.is_active.is_(is_active))
    if search:
        like = f"%{search}%"
        query = query.filter(
            or_(Customer.full_name.ilike(like), Customer.phone.ilike(like), Customer.email.ilike(like))
        )

    total = query.count()
    customers = query.order_by(Customer.created_at.desc()).limit(limit).offset((page - 1) * limit).all()

    items = []
    for customer in customers:
        item = customer.to_dict()
        recent = customer.visits.order_by(Visit.visit_date.desc()).limit(3).all()
        item["recent_visits"] = [
            {"id": v.visit_id, "visit_date": v.visit_date.isoformat(), "final_amount": v.final_amount}
            for v in recent
        ]
        items.append(item)

    return jsonify({
        "success": True,
        "data": {"customers": items, "pagination": pagination_meta(page, limit, total)},
    }), 200


@bp_customers.post("")
@login_required
def create_customer() -> tuple[dict[str, object], int]:
    """Register a customer, optionally as a dependent of another customer.
    ---
    tags:
      - Customers
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            full_name:
              type: string
            phone:
              type: string
            email:
              type: string
            birth_day:
              type: integer
            birth_month:
              type: integer
            birth_year:
              type: integer
            is_dependent:
              type: boolean
            parent_id:
              type: integer
          required:
            - full_name
            - birth_day
            - birth_month
    responses:
      201:
        description: Customer registered
      400:
        description: Invalid payload
      404:
        description: Parent customer not found
      409:
        description: Phone already registered
    """
    payload = request.get_json(silent=True) or {}

    full_name = (payload.get("full_name") or "").strip()
    phone = (payload.get("phone") or "").strip() or None
    email = (payload.get("email") or "").strip().lower() or None
    is_dependent = bool(parse_bool(payload.get("is_dependent"), default=False))

    if not full_name:
        return jsonify({"error": "invalid_payload", "message": "full_name is required"}), 400

    try:
        birth = _parse_birth_fields(payload)
    except ValueError as exc:
        return jsonify({"error": "invalid_payload", "message": str(exc)}), 400

    parent = None
    if is_dependent:
        try:
            parent_id = parse_int(payload.get("parent_id"), "parent_id", minimum=1)
        except ValueError as exc:
            return jsonify({"error": "invalid_payload", "message": f"dependents need a parent: {exc}"}), 400
        parent = db.session.get(Customer, parent_id)
        if parent is None or not parent.is_active:
            return jsonify({"error": "not_found", "message": "Parent customer not found"}), 404
        if parent.is_dependent:
            return jsonify({"error": "invalid_payload", "message": "A dependent cannot be a parent"}), 400
        phone = phone or parent.phone
        email = email or parent.email
    else:
        if not phone:
            return jsonify({"error": "invalid_payload", "message": "phone is required"}), 400
        if _phone_taken(phone):
            return (
                jsonify({"error": "conflict", "message": "Customer with this phone number already exists"}),
                409,
            )

    customer = Customer(
        full_name=full_name,
        phone=phone,
        email=email,
        is_dependent=is_dependent,
        parent_id=parent.customer_id if parent else None,
        **{field: (payload.get(field) or "").strip() or None for field in PROFILE_FIELDS},
        **birth,
    )

    try:
        db.session.add(customer)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create customer", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({
        "success": True,
        "data": customer.to_dict(),
        "message": "Customer registered successfully",
    }), 201


@bp_customers.get("/top")
@login_required
def top_customers() -> tuple[dict[str, object], int]:
    """Most frequent active customers."""
    try:
        limit = min(50, max(1, int(request.args.get("limit", 5))))
    except (TypeError, ValueError):
        return jsonify({"error": "invalid_parameters"}), 400

    customers = (
        Customer.query.filter(Customer.is_active.is_(True))
        .order_by(Customer.visit_count.desc(), Customer.total_spent.desc())
        .limit(limit)
        .all()
    )

    return jsonify({
        "success": True,
        "data": [
            {
                **customer.to_dict_basic(),
                "visit_count": customer.visit_count,
                "total_spent": customer.total_spent,
                "last_visit": customer.last_visit.isoformat() if customer.last_visit else None,
                "birth_day": customer.birth_day,
                "birth_month": customer.birth_month,
            }
            for customer in customers
        ],
    }), 200


@bp_customers.get("/<int:customer_id>")
@login_required
def get_customer(customer_id: int) -> tuple[dict[str, object], int]:
    """Customer details with visit history and discount usage."""
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        return jsonify({"error": "not_found", "message": "Customer not found"}), 404

    data = customer.to_dict()
    data["visits"] = [
        visit.to_dict(include_customer=False)
        for visit in customer.visits.order_by(Visit.visit_date.desc()).all()
    ]
    data["discounts"] = [
        usage.to_dict() for usage in customer.discounts.order_by(CustomerDiscount.used_at.desc()).all()
    ]
    data["dependents"] = [dependent.to_dict_basic() for dependent in customer.dependents]

    return jsonify({"success": True, "data": data}), 200


@bp_customers.put("/<int:customer_id>")
@roles_required("ADMIN", "MANAGER")
def update_customer(customer_id: int) -> tuple[dict[str, object], int]:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        return jsonify({"error": "not_found", "message": "Customer not found"}), 404

    payload = request.get_json(silent=True) or {}

    try:
        birth = _parse_birth_fields(payload, partial=True)
    except ValueError as exc:
        return jsonify({"error": "invalid_payload", "message": str(exc)}), 400

    if "full_name" in payload:
        full_name = (payload.get("full_name") or "").strip()
        if not full_name:
            return jsonify({"error": "invalid_payload", "message": "full_name cannot be empty"}), 400
        customer.full_name = full_name

    if "phone" in payload:
        phone = (payload.get("phone") or "").strip() or None
        if not phone and not customer.is_dependent:
            return jsonify({"error": "invalid_payload", "message": "phone cannot be empty"}), 400
        if phone and phone != customer.phone and not customer.is_dependent and _phone_taken(phone, customer_id):
            return (
                jsonify({"error": "conflict", "message": "Customer with this phone number already exists"}),
                409,
            )
        customer.phone = phone

    if "email" in payload:
        customer.email = (payload.get("email") or "").strip().lower() or None

    for field in PROFILE_FIELDS:
        if field in payload:
            setattr(customer, field, (payload.get(field) or "").strip() or None)

    for field, value in birth.items():
        setattr(customer, field, value)

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update customer", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"success": True, "data": customer.to_dict(), "message": "Customer updated successfully"}), 200


@bp_customers.delete("/<int:customer_id>")
@roles_required("ADMIN", "MANAGER")
def delete_customer(customer_id: int) -> tuple[dict[str, object], int]:
    """Deactivate a customer; visits stay on record."""
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        return jsonify({"error": "not_found", "message": "Customer not found"}), 404

    customer.is_active = False

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to deactivate customer", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"success": True, "message": "Customer deactivated successfully"}), 200


@bp_customers.patch("/<int:customer_id>/toggle-active")
@roles_required("ADMIN", "MANAGER")
def toggle_customer_active(customer_id: int) -> tuple[dict[str, object], int]:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        return jsonify({"error": "not_found", "message": "Customer not found"}), 404

    reactivating = not customer.is_active
    if reactivating and not customer.is_dependent and customer.phone and _phone_taken(customer.phone, customer_id):
        return (
            jsonify({
                "error": "conflict",
                "message": "Another active customer already uses this phone number",
            }),
            409,
        )

    customer.is_active = reactivating

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to toggle customer status", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"success": True, "data": customer.to_dict(), "message": "Customer status updated"}), 200


@bp_customers.get("/<int:customer_id>/stats")
@login_required
def customer_stats(customer_id: int) -> tuple[dict[str, object], int]:
    """Spending and loyalty statistics for a customer."""
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        return jsonify({"error": "not_found", "message": "Customer not found"}), 404

    today = utc_now()
    monthly_visits: dict[int, int] = {}
    for visit in customer.visits.all():
        monthly_visits[visit.visit_date.month] = monthly_visits.get(visit.visit_date.month, 0) + 1

    stats = {
        "total_visits": customer.visit_count,
        "total_spent": customer.total_spent,
        "loyalty_points": customer.loyalty_points,
        "last_visit": customer.last_visit.isoformat() if customer.last_visit else None,
        "average_spending": customer.total_spent / customer.visit_count if customer.visit_count else 0,
        "is_birthday_month": is_birthday_month(customer.birth_month, today),
        "is_eligible_for_sixth_visit_discount": is_sixth_visit(customer.visit_count),
        "monthly_visits": monthly_visits,
    }

    return jsonify({"success": True, "data": {"customer": customer.to_dict(), "stats": stats}}), 200


@bp_customers.get("/<int:customer_id>/discount-eligibility")
@login_required
def discount_eligibility(customer_id: int) -> tuple[dict[str, object], int]:
    """Report which automatic discounts the customer's next visit would get.

    The birthday discount is only reported as available to returning
    customers (at least one recorded visit). Visit creation itself applies
    the birthday rule without that condition.
    ---
    tags:
      - Customers
    responses:
      200:
        description: Eligibility flags
      404:
        description: Customer not found
    """
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        return jsonify({"error": "not_found", "message": "Customer not found"}), 404

    today = utc_now()
    birthday_month = is_birthday_month(customer.birth_month, today)
    used = birthday_discount_used(customer.customer_id, today)
    has_prior_visit = customer.visit_count >= 1

    return jsonify({
        "success": True,
        "data": {
            "sixth_visit_eligible": is_sixth_visit(customer.visit_count),
            "next_visit_count": customer.visit_count + 1,
            "is_birthday_month": birthday_month,
            "birthday_discount_used": used,
            "has_prior_visit": has_prior_visit,
            "birthday_discount_available": birthday_month and not used and has_prior_visit,
        },
    }), 200
