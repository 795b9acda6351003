"""Visit (sale) routes: pricing, automatic discounts and payments."""
from __future__ import annotations

from types import SimpleNamespace

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from .auth import current_user, login_required, roles_required
from .discounts import (
    birthday_discount_used,
    calculate_discounts,
    price_lines,
    record_discounts,
    summarize,
)
from .extensions import db
from .models import (
    PAYMENT_METHODS,
    Customer,
    Service,
    User,
    Visit,
    VisitPayment,
    VisitService,
    VisitStaff,
    utc_now,
)
from .utils import (
    day_bounds,
    get_pagination,
    pagination_meta,
    parse_bool,
    parse_date_range,
    parse_int,
)

bp_visits = Blueprint("visits", __name__)


def _requested_lines(payload: dict) -> list[dict]:
    """Normalise ``services`` or the shorthand ``service_ids`` into line dicts."""
    if payload.get("services") is not None:
        raw = payload.get("services")
        if not isinstance(raw, list) or not raw:
            raise ValueError("services must be a non-empty list")
    elif payload.get("service_ids") is not None:
        ids = payload.get("service_ids")
        if not isinstance(ids, list) or not ids:
            raise ValueError("service_ids must be a non-empty list")
        raw = [{"service_id": service_id} for service_id in ids]
    else:
        raise ValueError("services is required")

    lines = []
    for entry in raw:
        if not isinstance(entry, dict):
            raise ValueError("each service must be an object")
        quantity = parse_int(entry.get("quantity"), "quantity", minimum=1, allow_none=True)
        lines.append({
            "service_id": parse_int(entry.get("service_id"), "service_id", minimum=1),
            "quantity": quantity or 1,
            "is_child": bool(parse_bool(entry.get("is_child"), default=False)),
            "is_combined": bool(parse_bool(entry.get("is_combined"), default=False)),
        })
    return lines


def _load_services(lines: list[dict]) -> dict[int, Service]:
    """Fetch the active services for ``lines``; raises ``LookupError`` if any is missing."""
    requested = {line["service_id"] for line in lines}
    services = Service.query.filter(
        Service.service_id.in_(requested), Service.is_active.is_(True)
    ).all()
    services_by_id = {service.service_id: service for service in services}
    missing = requested - services_by_id.keys()
    if missing:
        raise LookupError(f"Services not found or inactive: {sorted(missing)}")
    return services_by_id


def _staff_ids(payload: dict) -> list[int] | None:
    """Validated ``staff_ids`` from the payload, or ``None`` when absent."""
    raw = payload.get("staff_ids")
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise ValueError("staff_ids must be a list")
    staff_ids = list(dict.fromkeys(parse_int(value, "staff_ids", minimum=1) for value in raw))
    if staff_ids:
        found = {
            user.user_id
            for user in User.query.filter(User.user_id.in_(staff_ids), User.is_active.is_(True)).all()
        }
        missing = set(staff_ids) - found
        if missing:
            raise ValueError(f"Staff members not found or inactive: {sorted(missing)}")
    return staff_ids


def _normalise_method(method) -> str:
    method = str(method or "CASH").strip().upper()
    return method if method in PAYMENT_METHODS else "CASH"


def _payments(payload: dict, final_amount: int) -> list[VisitPayment]:
    """Build payment rows; split payments must add up to ``final_amount``."""
    raw = payload.get("payments")
    if not raw:
        method = _normalise_method(payload.get("payment_method"))
        return [VisitPayment(payment_method=method, amount=final_amount)]

    if not isinstance(raw, list):
        raise ValueError("payments must be a list")

    payments = []
    paid = 0
    for entry in raw:
        if not isinstance(entry, dict):
            raise ValueError("each payment must be an object")
        try:
            amount = float(entry.get("amount"))
        except (TypeError, ValueError):
            raise ValueError("payment amount must be a number") from None
        if amount < 0:
            raise ValueError("payment amount cannot be negative")
        if not amount.is_integer():
            raise ValueError("payment amount must be a whole number")
        paid += int(amount)
        payments.append(
            VisitPayment(payment_method=_normalise_method(entry.get("payment_method")), amount=int(amount))
        )

    if paid != final_amount:
        raise ValueError(f"payments total {paid} does not match final amount {final_amount}")
    return payments


def _primary_method(payments: list[VisitPayment]) -> str:
    if len(payments) == 1:
        return payments[0].payment_method
    return "MIXED"


@bp_visits.get("")
@login_required
def list_visits() -> tuple[dict[str, object], int]:
    """List visits, newest first.
    ---
    tags:
      - Visits
    parameters:
      - name: customer_id
        in: query
        type: integer
      - name: staff_id
        in: query
        type: integer
      - name: start_date
        in: query
        type: string
        format: date
      - name: end_date
        in: query
        type: string
        format: date
      - name: page
        in: query
        type: integer
      - name: limit
        in: query
        type: integer
    responses:
      200:
        description: Visits with pagination metadata
      400:
        description: Invalid filter
    """
    try:
        page, limit = get_pagination()
        customer_id = parse_int(request.args.get("customer_id"), "customer_id", allow_none=True)
        staff_id = parse_int(request.args.get("staff_id"), "staff_id", allow_none=True)
        start, end = parse_date_range()
    except (TypeError, ValueError) as exc:
        current_app.logger.warning(f"Invalid visit filters: {exc}")
        return jsonify({"error": "invalid_parameters", "message": str(exc)}), 400

    query = Visit.query
    if customer_id is not None:
        query = query.filter(Visit.customer_id == customer_id)
    if staff_id is not None:
        query = query.filter(Visit.staff.any(VisitStaff.staff_id == staff_id))
    if start is not None:
        query = query.filter(Visit.visit_date >= start)
    if end is not None:
        query = query.filter(Visit.visit_date < end)

    total = query.count()
    visits = query.order_by(Visit.visit_date.desc()).limit(limit).offset((page - 1) * limit).all()

    return jsonify({
        "success": True,
        "data": [visit.to_dict() for visit in visits],
        "meta": pagination_meta(page, limit, total),
    }), 200


@bp_visits.post("")
@login_required
def create_visit() -> tuple[dict[str, object], int]:
    """Record a visit, applying automatic discounts and loyalty points.

    Pricing, discounts, payments, the usage ledger and the customer's running
    totals are written in a single transaction.
    ---
    tags:
      - Visits
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            customer_id:
              type: integer
            services:
              type: array
              items:
                type: object
                properties:
                  service_id:
                    type: integer
                  quantity:
                    type: integer
                  is_child:
                    type: boolean
                  is_combined:
                    type: boolean
            service_ids:
              type: array
              items:
                type: integer
            staff_ids:
              type: array
              items:
                type: integer
            payment_method:
              type: string
            payments:
              type: array
              items:
                type: object
            notes:
              type: string
          required:
            - customer_id
    responses:
      201:
        description: Visit recorded
      400:
        description: Invalid payload, unknown service or unbalanced payments
      404:
        description: Customer not found
      500:
        description: Database error
    """
    payload = request.get_json(silent=True) or {}

    try:
        customer_id = parse_int(payload.get("customer_id"), "customer_id", minimum=1)
        lines = _requested_lines(payload)
        staff_ids = _staff_ids(payload) or []
    except ValueError as exc:
        return jsonify({"error": "invalid_payload", "message": str(exc)}), 400

    customer = db.session.get(Customer, customer_id)
    if customer is None:
        return jsonify({"error": "not_found", "message": "Customer not found"}), 404

    try:
        services_by_id = _load_services(lines)
    except LookupError as exc:
        return jsonify({"error": "invalid_payload", "message": str(exc)}), 400

    priced_lines, total_amount = price_lines(lines, services_by_id)
    now = utc_now()
    discounts = calculate_discounts(
        customer,
        [services_by_id[line["service_id"]] for line in lines],
        total_amount,
        birthday_discount_used(customer.customer_id, now),
        today=now,
    )
    totals = summarize(total_amount, discounts)

    try:
        payments = _payments(payload, totals["final_amount"])
    except ValueError as exc:
        return jsonify({"error": "invalid_payment", "message": str(exc)}), 400

    notes = (payload.get("notes") or "").strip() or None

    try:
        visit = Visit(
            customer_id=customer.customer_id,
            payment_method=_primary_method(payments),
            notes=notes,
            is_completed=bool(parse_bool(payload.get("is_completed"), default=False)),
            visit_date=now,
            visit_number=(customer.visit_count or 0) + 1,
            created_by_id=current_user().user_id,
            **totals,
        )
        visit.services = [VisitService(**line) for line in priced_lines]
        visit.staff = [VisitStaff(staff_id=staff_id) for staff_id in staff_ids]
        visit.payments = payments
        db.session.add(visit)
        db.session.flush()

        record_discounts(visit, discounts)

        Customer.query.filter_by(customer_id=customer.customer_id).update(
            {
                Customer.visit_count: Customer.visit_count + 1,
                Customer.loyalty_points: Customer.loyalty_points + totals["loyalty_points_earned"],
                Customer.total_spent: Customer.total_spent + totals["final_amount"],
                Customer.last_visit: now,
            },
            synchronize_session=False,
        )
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create visit", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    current_app.logger.info(
        "Visit %s recorded for customer %s: total=%s discount=%s final=%s",
        visit.visit_id,
        customer_id,
        totals["total_amount"],
        totals["discount_amount"],
        totals["final_amount"],
    )

    data = visit.to_dict()
    data["applied_discounts"] = discounts
    return jsonify({"success": True, "data": data, "message": "Visit recorded successfully"}), 201


@bp_visits.get("/summary")
@login_required
def visit_summary() -> tuple[dict[str, object], int]:
    """Visit count, revenue and discounts over an optional date range."""
    try:
        start, end = parse_date_range()
    except ValueError as exc:
        return jsonify({"error": "invalid_parameters", "message": str(exc)}), 400

    query = db.session.query(
        func.count(Visit.visit_id),
        func.coalesce(func.sum(Visit.total_amount), 0),
        func.coalesce(func.sum(Visit.discount_amount), 0),
        func.coalesce(func.sum(Visit.final_amount), 0),
        func.coalesce(func.sum(Visit.loyalty_points_earned), 0),
    )
    if start is not None:
        query = query.filter(Visit.visit_date >= start)
    if end is not None:
        query = query.filter(Visit.visit_date < end)

    count, gross, discounts, revenue, points = query.one()

    return jsonify({
        "success": True,
        "data": {
            "total_visits": count,
            "gross_amount": int(gross),
            "total_discounts": int(discounts),
            "total_revenue": int(revenue),
            "loyalty_points_issued": int(points),
            "average_visit_value": round(int(revenue) / count, 2) if count else 0,
        },
    }), 200


@bp_visits.get("/payment-summary")
@login_required
def payment_summary() -> tuple[dict[str, object], int]:
    """Totals collected per payment method for one day (defaults to today)."""
    try:
        start, end = day_bounds(request.args.get("date"), utc_now())
    except ValueError:
        return jsonify({"error": "invalid_parameters", "message": "date must be YYYY-MM-DD"}), 400

    rows = (
        db.session.query(
            VisitPayment.payment_method,
            func.coalesce(func.sum(VisitPayment.amount), 0),
            func.count(VisitPayment.payment_id),
        )
        .join(Visit, Visit.visit_id == VisitPayment.visit_id)
        .filter(Visit.visit_date >= start, Visit.visit_date < end)
        .group_by(VisitPayment.payment_method)
        .all()
    )

    by_method = {method: {"amount": 0, "count": 0} for method in PAYMENT_METHODS}
    for method, amount, count in rows:
        by_method[method] = {"amount": int(amount), "count": count}

    return jsonify({
        "success": True,
        "data": {
            "date": start.date().isoformat(),
            "by_method": by_method,
            "total": sum(entry["amount"] for entry in by_method.values()),
        },
    }), 200


@bp_visits.get("/customer/<int:customer_id>")
@login_required
def customer_visits(customer_id: int) -> tuple[dict[str, object], int]:
    if db.session.get(Customer, customer_id) is None:
        return jsonify({"error": "not_found", "message": "Customer not found"}), 404

    try:
        page, limit = get_pagination()
    except (TypeError, ValueError):
        return jsonify({"error": "invalid_parameters"}), 400

    query = Visit.query.filter(Visit.customer_id == customer_id)
    total = query.count()
    visits = query.order_by(Visit.visit_date.desc()).limit(limit).offset((page - 1) * limit).all()

    return jsonify({
        "success": True,
        "data": [visit.to_dict(include_customer=False) for visit in visits],
        "meta": pagination_meta(page, limit, total),
    }), 200


@bp_visits.get("/<int:visit_id>")
@login_required
def get_visit(visit_id: int) -> tuple[dict[str, object], int]:
    visit = db.session.get(Visit, visit_id)
    if visit is None:
        return jsonify({"error": "not_found", "message": "Visit not found"}), 404
    return jsonify({"success": True, "data": visit.to_dict()}), 200


@bp_visits.put("/<int:visit_id>")
@login_required
def update_visit(visit_id: int) -> tuple[dict[str, object], int]:
    """Edit a visit's services, staff, payments, notes or completion flag.

    A new service list re-prices the visit and re-evaluates its discounts
    from scratch, as of the visit's own date and its recorded
    ``visit_number``. Customer running totals recorded at creation are left
    alone.
    """
    visit = db.session.get(Visit, visit_id)
    if visit is None:
        return jsonify({"error": "not_found", "message": "Visit not found"}), 404

    payload = request.get_json(silent=True) or {}
    reprice = payload.get("services") is not None or payload.get("service_ids") is not None

    try:
        lines = _requested_lines(payload) if reprice else None
        staff_ids = _staff_ids(payload)
    except ValueError as exc:
        return jsonify({"error": "invalid_payload", "message": str(exc)}), 400

    discounts = None
    if reprice:
        try:
            services_by_id = _load_services(lines)
        except LookupError as exc:
            return jsonify({"error": "invalid_payload", "message": str(exc)}), 400

        priced_lines, total_amount = price_lines(lines, services_by_id)
        had_birthday = any(
            link.discount_rule is not None and link.discount_rule.type == "BIRTHDAY_MONTH"
            for link in visit.discounts
        )
        snapshot = SimpleNamespace(
            visit_count=(visit.visit_number or 1) - 1, birth_month=visit.customer.birth_month
        )
        discounts = calculate_discounts(
            snapshot,
            [services_by_id[line["service_id"]] for line in lines],
            total_amount,
            not had_birthday and birthday_discount_used(visit.customer_id, visit.visit_date),
            today=visit.visit_date,
        )
        totals = summarize(total_amount, discounts)

    final_amount = totals["final_amount"] if reprice else visit.final_amount
    payments = None
    if reprice or payload.get("payments"):
        if not payload.get("payments") and not payload.get("payment_method"):
            payload = {**payload, "payment_method": visit.payment_method}
        try:
            payments = _payments(payload, final_amount)
        except ValueError as exc:
            return jsonify({"error": "invalid_payment", "message": str(exc)}), 400

    try:
        if reprice:
            visit.services = [VisitService(**line) for line in priced_lines]
            visit.discounts = []
            db.session.flush()
            for field, value in totals.items():
                setattr(visit, field, value)
            record_discounts(visit, discounts, record_usage=False)

        if payments is not None:
            visit.payments = payments
            visit.payment_method = _primary_method(payments)

        if staff_ids is not None:
            visit.staff = [VisitStaff(staff_id=staff_id) for staff_id in staff_ids]

        if "notes" in payload:
            visit.notes = (payload.get("notes") or "").strip() or None
        if "is_completed" in payload:
            visit.is_completed = bool(parse_bool(payload.get("is_completed"), default=False))

        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update visit", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    data = visit.to_dict()
    if discounts is not None:
        data["applied_discounts"] = discounts
    return jsonify({"success": True, "data": data, "message": "Visit updated successfully"}), 200


@bp_visits.patch("/<int:visit_id>/complete")
@login_required
def complete_visit(visit_id: int) -> tuple[dict[str, object], int]:
    visit = db.session.get(Visit, visit_id)
    if visit is None:
        return jsonify({"error": "not_found", "message": "Visit not found"}), 404

    visit.is_completed = True

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to complete visit", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"success": True, "data": visit.to_dict(), "message": "Visit marked as completed"}), 200


@bp_visits.delete("/<int:visit_id>")
@roles_required("ADMIN", "MANAGER")
def delete_visit(visit_id: int) -> tuple[dict[str, object], int]:
    """Delete a visit with its lines, staff, discount links and payments."""
    visit = db.session.get(Visit, visit_id)
    if visit is None:
        return jsonify({"error": "not_found", "message": "Visit not found"}), 404

    try:
        db.session.delete(visit)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete visit", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"success": True, "message": "Visit deleted successfully"}), 200
