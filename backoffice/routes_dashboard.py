"""Back office dashboard: headline figures and revenue analytics."""
from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, jsonify, request
from sqlalchemy import func

from .auth import roles_required
from .discounts import SIXTH_VISIT_INTERVAL
from .extensions import db
from .models import Customer, Service, User, Visit, VisitService, utc_now
from .utils import period_start

bp_dashboard = Blueprint("dashboard", __name__)

STATS_PERIODS = ("week", "month", "year")
ANALYTICS_PERIODS = ("week", "month", "quarter", "year")


def _period(allowed: tuple[str, ...]) -> str:
    period = (request.args.get("period") or "month").strip().lower()
    return period if period in allowed else "month"


def _trend_buckets(period: str, now: datetime) -> list[tuple[str, str]]:
    """``(key, label)`` pairs, oldest first: days for week/month, months for year."""
    if period == "year":
        buckets = []
        for offset in range(11, -1, -1):
            year, month = divmod(now.year * 12 + now.month - 1 - offset, 12)
            first = datetime(year, month + 1, 1)
            buckets.append((first.strftime("%Y-%m"), first.strftime("%b")))
        return buckets

    days = 30 if period == "month" else 7
    label = "%b %d" if period == "month" else "%a"
    return [
        ((now - timedelta(days=offset)).strftime("%Y-%m-%d"), (now - timedelta(days=offset)).strftime(label))
        for offset in range(days - 1, -1, -1)
    ]


def _revenue_trend(period: str, now: datetime) -> list[dict[str, object]]:
    buckets = _trend_buckets(period, now)
    key_format = "%Y-%m" if period == "year" else "%Y-%m-%d"
    if period == "year":
        since = datetime(int(buckets[0][0][:4]), int(buckets[0][0][5:7]), 1, tzinfo=now.tzinfo)
    else:
        since = (now - timedelta(days=len(buckets) - 1)).replace(hour=0, minute=0, second=0, microsecond=0)

    revenue = defaultdict(int)
    rows = db.session.query(Visit.visit_date, Visit.final_amount).filter(Visit.visit_date >= since).all()
    for visit_date, final_amount in rows:
        revenue[visit_date.strftime(key_format)] += final_amount

    return [{"date": key, "label": label, "revenue": revenue[key]} for key, label in buckets]


@bp_dashboard.get("/stats")
@roles_required("ADMIN", "MANAGER")
def dashboard_stats() -> tuple[dict[str, object], int]:
    """Headline dashboard figures.
    ---
    tags:
      - Dashboard
    parameters:
      - name: period
        in: query
        type: string
        enum: [week, month, year]
        default: month
    responses:
      200:
        description: Overview, top services, revenue trend and customer lists
    """
    period = _period(STATS_PERIODS)
    now = utc_now()
    since = period_start(period, now)
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)

    total_customers = Customer.query.filter(Customer.is_active.is_(True)).count()
    new_customers = Customer.query.filter(
        Customer.is_active.is_(True), Customer.created_at >= today
    ).count()
    returning_customers = Customer.query.filter(
        Customer.is_active.is_(True), Customer.visit_count > 1
    ).count()
    all_time_visits, total_revenue, average_visit = db.session.query(
        func.count(Visit.visit_id),
        func.coalesce(func.sum(Visit.final_amount), 0),
        func.coalesce(func.avg(Visit.final_amount), 0),
    ).one()
    period_visits, period_revenue = (
        db.session.query(func.count(Visit.visit_id), func.coalesce(func.sum(Visit.final_amount), 0))
        .filter(Visit.visit_date >= since)
        .one()
    )

    revenue_sum = func.sum(VisitService.total_price)
    top_services = (
        db.session.query(
            Service.name,
            Service.category,
            func.coalesce(func.sum(VisitService.quantity), 0),
            func.coalesce(revenue_sum, 0),
        )
        .join(VisitService, VisitService.service_id == Service.service_id)
        .join(Visit, Visit.visit_id == VisitService.visit_id)
        .filter(Visit.visit_date >= since)
        .group_by(Service.service_id, Service.name, Service.category)
        .order_by(revenue_sum.desc())
        .limit(5)
        .all()
    )

    recent_customers = (
        Customer.query.filter(Customer.is_active.is_(True))
        .order_by(Customer.last_visit.desc().nullslast(), Customer.created_at.desc())
        .limit(5)
        .all()
    )
    sixth_visit_eligible = (
        Customer.query.filter(
            Customer.is_active.is_(True),
            (Customer.visit_count + 1) % SIXTH_VISIT_INTERVAL == 0,
        )
        .order_by(Customer.last_visit.desc().nullslast())
        .limit(5)
        .all()
    )

    def customer_row(customer: Customer) -> dict[str, object]:
        return {
            **customer.to_dict_basic(),
            "visit_count": customer.visit_count,
            "total_spent": customer.total_spent,
            "last_visit": customer.last_visit.isoformat() if customer.last_visit else None,
        }

    return jsonify({
        "success": True,
        "data": {
            "period": period,
            "overview": {
                "total_customers": total_customers,
                "new_customers": new_customers,
                "total_services": Service.query.filter(Service.is_active.is_(True)).count(),
                "active_staff": User.query.filter(User.is_active.is_(True)).count(),
                "period_visits": period_visits,
                "period_revenue": int(period_revenue),
                "all_time_visits": all_time_visits,
                "total_revenue": int(total_revenue),
                "average_visit_value": round(float(average_visit), 2),
                "customer_retention_rate": (
                    round(returning_customers / total_customers * 100, 2) if total_customers else 0
                ),
            },
            "top_services": [
                {"name": name, "category": category, "count": int(count), "revenue": int(revenue)}
                for name, category, count, revenue in top_services
            ],
            "revenue_trend": _revenue_trend(period, now),
            "recent_customers": [customer_row(customer) for customer in recent_customers],
            "sixth_visit_eligible": [customer_row(customer) for customer in sixth_visit_eligible],
        },
    }), 200


@bp_dashboard.get("/analytics")
@roles_required("ADMIN", "MANAGER")
def revenue_analytics() -> tuple[dict[str, object], int]:
    """Revenue per service category and visits per hour of day."""
    period = _period(ANALYTICS_PERIODS)
    since = period_start(period, utc_now())

    category_rows = (
        db.session.query(
            Service.category,
            func.coalesce(func.sum(VisitService.total_price), 0),
            func.coalesce(func.sum(VisitService.quantity), 0),
            func.count(func.distinct(Service.service_id)),
        )
        .join(VisitService, VisitService.service_id == Service.service_id)
        .join(Visit, Visit.visit_id == VisitService.visit_id)
        .filter(Visit.visit_date >= since)
        .group_by(Service.category)
        .all()
    )

    hourly = defaultdict(lambda: {"visits": 0, "revenue": 0})
    for visit_date, final_amount in (
        db.session.query(Visit.visit_date, Visit.final_amount).filter(Visit.visit_date >= since).all()
    ):
        hourly[visit_date.hour]["visits"] += 1
        hourly[visit_date.hour]["revenue"] += final_amount

    peak_hours = sorted(
        ({"hour": hour, **stats} for hour, stats in hourly.items()),
        key=lambda row: (-row["visits"], row["hour"]),
    )

    return jsonify({
        "success": True,
        "data": {
            "period": period,
            "category_revenue": [
                {"category": category, "revenue": int(revenue), "quantity": int(quantity), "services": services}
                for category, revenue, quantity, services in category_rows
            ],
            "peak_hours": peak_hours,
        },
    }), 200
