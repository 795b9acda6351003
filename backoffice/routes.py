"""Top level HTTP routes and blueprint registration."""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db
from .models import utc_now

bp = Blueprint("api", __name__)


@bp.get("/")
def index() -> tuple[dict[str, str], int]:
    return jsonify({
        "message": "Welcome to the Salon Back Office API",
        "version": "1.0.0",
    }), 200


@bp.get("/health")
def health_check() -> tuple[dict[str, str], int]:
    """
    Expose a simple uptime check endpoint.
    ---
    tags:
      - Health
    responses:
      200:
        description: Service is healthy and running.
        schema:
          type: object
          properties:
            status:
              type: string
              example: ok
    """
    return jsonify({"status": "ok", "timestamp": utc_now().isoformat()}), 200


@bp.get("/db-health")
def database_health() -> tuple[dict[str, str], int]:
    """Check connectivity to the configured database.
    ---
    tags:
      - Health
    responses:
      200:
        description: Database connection is ok.
      500:
        description: Database connection failed.
    """
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        current_app.logger.exception("Database connectivity check failed", exc_info=exc)
        return jsonify({"database": "unavailable"}), 500

    return jsonify({"database": "ok"}), 200


def register_routes(app) -> None:
    from .routes_auth import bp_auth
    from .routes_customers import bp_customers
    from .routes_dashboard import bp_dashboard
    from .routes_discounts import bp_discounts
    from .routes_products import bp_products
    from .routes_services import bp_services
    from .routes_staff import bp_staff
    from .routes_visits import bp_visits

    app.register_blueprint(bp)
    app.register_blueprint(bp_auth, url_prefix="/api/auth")
    app.register_blueprint(bp_customers, url_prefix="/api/customers")
    app.register_blueprint(bp_services, url_prefix="/api/services")
    app.register_blueprint(bp_staff, url_prefix="/api/staff")
    app.register_blueprint(bp_visits, url_prefix="/api/visits")
    # Visits are also called sales by the front desk
    app.register_blueprint(bp_visits, url_prefix="/api/sales", name="sales")
    app.register_blueprint(bp_discounts, url_prefix="/api/discounts")
    app.register_blueprint(bp_dashboard, url_prefix="/api/dashboard")
    app.register_blueprint(bp_products, url_prefix="/api/products")
