"""Staff directory and performance reporting."""
from __future__ import annotations

from collections import Counter, defaultdict

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from .auth import current_user, login_required, roles_required
from .extensions import db
from .models import USER_ROLES, User, Visit, VisitStaff, utc_now
from .utils import parse_bool, parse_date_range, period_start

bp_staff = Blueprint("staff", __name__)

STAFF_PERIODS = ("today", "week", "month")


def _performance_window() -> tuple[str, object, object]:
    """Explicit ``start_date``/``end_date`` win over ``period``; either may be given alone."""
    period = (request.args.get("period") or "month").strip().lower()
    if period not in STAFF_PERIODS:
        period = "month"
    start, end = parse_date_range()
    if start is None and end is None:
        start, end = period_start(period, utc_now()), None
    return period, start, end


def _staff_visits(staff_id: int, start, end) -> list[Visit]:
    query = Visit.query.filter(Visit.staff.any(VisitStaff.staff_id == staff_id))
    if start is not None:
        query = query.filter(Visit.visit_date >= start)
    if end is not None:
        query = query.filter(Visit.visit_date < end)
    return query.order_by(Visit.visit_date.desc()).all()


def _metrics(visits: list[Visit]) -> dict[str, object]:
    total_visits = len(visits)
    total_revenue = sum(visit.final_amount for visit in visits)
    return {
        "total_visits": total_visits,
        "total_revenue": total_revenue,
        "average_revenue_per_visit": round(total_revenue / total_visits, 2) if total_visits else 0,
        "unique_customers": len({visit.customer_id for visit in visits}),
    }


@bp_staff.get("")
@login_required
def list_staff() -> tuple[dict[str, object], int]:
    is_active = parse_bool(request.args.get("is_active"), default=True)
    role = (request.args.get("role") or "").strip().upper()
    search = (request.args.get("search") or "").strip()

    query = User.query.filter(User.is_active.is_(is_active))
    if role in USER_ROLES:
        query = query.filter(User.role == role)
    if search:
        like = f"%{search}%"
        query = query.filter(or_(User.name.ilike(like), User.phone.ilike(like), User.email.ilike(like)))

    staff = query.order_by(User.name.asc()).all()
    return jsonify({"success": True, "data": [member.to_dict() for member in staff]}), 200


@bp_staff.get("/performance")
@roles_required("ADMIN", "MANAGER")
def all_staff_performance() -> tuple[dict[str, object], int]:
    """Revenue league table of all active staff.
    ---
    tags:
      - Staff
    parameters:
      - name: period
        in: query
        type: string
        enum: [today, week, month]
        default: month
      - name: start_date
        in: query
        type: string
        format: date
      - name: end_date
        in: query
        type: string
        format: date
    responses:
      200:
        description: Staff sorted by revenue, highest first
      400:
        description: Invalid date
    """
    try:
        period, start, end = _performance_window()
    except ValueError as exc:
        return jsonify({"error": "invalid_parameters", "message": str(exc)}), 400

    rows = []
    for member in User.query.filter(User.is_active.is_(True)).all():
        rows.append({
            "staff": member.to_dict_basic(),
            "metrics": _metrics(_staff_visits(member.user_id, start, end)),
        })
    rows.sort(key=lambda row: row["metrics"]["total_revenue"], reverse=True)

    return jsonify({"success": True, "data": {"period": period, "staff_performance": rows}}), 200


@bp_staff.get("/<int:staff_id>")
@login_required
def get_staff(staff_id: int) -> tuple[dict[str, object], int]:
    member = db.session.get(User, staff_id)
    if member is None:
        return jsonify({"error": "not_found", "message": "Staff member not found"}), 404

    data = member.to_dict()
    data["recent_visits"] = [
        visit.to_dict() for visit in _staff_visits(staff_id, None, None)[:10]
    ]
    return jsonify({"success": True, "data": data}), 200


@bp_staff.get("/<int:staff_id>/performance")
@roles_required("ADMIN", "MANAGER")
def staff_performance(staff_id: int) -> tuple[dict[str, object], int]:
    """Metrics, service mix and a daily revenue chart for one staff member."""
    member = db.session.get(User, staff_id)
    if member is None:
        return jsonify({"error": "not_found", "message": "Staff member not found"}), 404

    try:
        period, start, end = _performance_window()
    except ValueError as exc:
        return jsonify({"error": "invalid_parameters", "message": str(exc)}), 400

    visits = _staff_visits(staff_id, start, end)

    categories = Counter(
        line.service.category for visit in visits for line in visit.services if line.service
    )
    daily = defaultdict(lambda: {"visits": 0, "revenue": 0})
    for visit in visits:
        day = daily[visit.visit_date.date().isoformat()]
        day["visits"] += 1
        day["revenue"] += visit.final_amount

    metrics = _metrics(visits)
    metrics["service_categories"] = [
        {"category": category, "count": count} for category, count in categories.most_common()
    ]

    return jsonify({
        "success": True,
        "data": {
            "staff": member.to_dict_basic(),
            "period": period,
            "metrics": metrics,
            "performance_chart": [{"date": date, **daily[date]} for date in sorted(daily)],
            "visits": [visit.to_dict() for visit in visits],
        },
    }), 200


@bp_staff.put("/<int:staff_id>")
@roles_required("ADMIN")
def update_staff(staff_id: int) -> tuple[dict[str, object], int]:
    member = db.session.get(User, staff_id)
    if member is None:
        return jsonify({"error": "not_found", "message": "Staff member not found"}), 404

    payload = request.get_json(silent=True) or {}

    if "phone" in payload:
        phone = (payload.get("phone") or "").strip()
        if not phone:
            return jsonify({"error": "invalid_payload", "message": "phone cannot be empty"}), 400
        if User.query.filter(User.phone == phone, User.user_id != staff_id).first():
            return jsonify({"error": "conflict", "message": "phone number is already in use"}), 409
        member.phone = phone

    if "role" in payload:
        role = (payload.get("role") or "").strip().upper()
        if role not in USER_ROLES:
            return (
                jsonify({"error": "invalid_role", "message": f"role must be one of: {', '.join(USER_ROLES)}"}),
                400,
            )
        member.role = role

    if "is_active" in payload:
        is_active = bool(parse_bool(payload.get("is_active"), default=True))
        if not is_active and member.user_id == current_user().user_id:
            return jsonify({"error": "invalid_request", "message": "You cannot deactivate your own account"}), 400
        member.is_active = is_active

    if payload.get("name"):
        member.name = str(payload["name"]).strip()
    if "email" in payload:
        member.email = (payload.get("email") or "").strip().lower() or None

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update staff member", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"success": True, "data": member.to_dict(), "message": "Staff updated successfully"}), 200
