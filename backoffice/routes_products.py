"""Retail product inventory routes."""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from .auth import login_required, roles_required
from .extensions import db
from .models import Product
from .utils import parse_bool, parse_int

bp_products = Blueprint("products", __name__)


@bp_products.get("")
@login_required
def list_products() -> tuple[dict[str, object], int]:
    """
    List retail products.
    ---
    tags:
      - Products
    parameters:
      - name: is_active
        in: query
        type: boolean
      - name: search
        in: query
        type: string
    responses:
      200:
        description: Products ordered by name
    """
    is_active = parse_bool(request.args.get("is_active"))
    search = (request.args.get("search") or "").strip()

    query = Product.query
    if is_active is not None:
        query = query.filter(Product.is_active.is_(is_active))
    if search:
        like = f"%{search}%"
        query = query.filter(or_(Product.name.ilike(like), Product.description.ilike(like)))

    products = query.order_by(Product.name.asc()).all()
    return jsonify({"success": True, "data": [product.to_dict() for product in products]}), 200


@bp_products.get("/<int:product_id>")
@login_required
def get_product(product_id: int) -> tuple[dict[str, object], int]:
    product = db.session.get(Product, product_id)
    if product is None:
        return jsonify({"error": "not_found", "message": "Product not found"}), 404
    return jsonify({"success": True, "data": product.to_dict()}), 200


@bp_products.post("")
@roles_required("ADMIN", "MANAGER")
def create_product() -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}

    name = (payload.get("name") or "").strip()
    if not name:
        return jsonify({"error": "invalid_payload", "message": "name and price are required"}), 400

    try:
        price = parse_int(payload.get("price"), "price", minimum=0)
        quantity = parse_int(payload.get("quantity"), "quantity", minimum=0, allow_none=True) or 0
    except ValueError as exc:
        return jsonify({"error": "invalid_payload", "message": str(exc)}), 400

    if Product.query.filter_by(name=name).first():
        return jsonify({"error": "duplicate_entry", "message": "Product with this name already exists"}), 400

    product = Product(
        name=name,
        description=(payload.get("description") or "").strip() or None,
        price=price,
        quantity=quantity,
    )

    try:
        db.session.add(product)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create product", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"success": True, "data": product.to_dict(), "message": "Product created successfully"}), 201


@bp_products.put("/<int:product_id>")
@roles_required("ADMIN", "MANAGER")
def update_product(product_id: int) -> tuple[dict[str, object], int]:
    product = db.session.get(Product, product_id)
    if product is None:
        return jsonify({"error": "not_found", "message": "Product not found"}), 404

    payload = request.get_json(silent=True) or {}

    if "name" in payload:
        name = (payload.get("name") or "").strip()
        if not name:
            return jsonify({"error": "invalid_payload", "message": "name cannot be empty"}), 400
        if name != product.name and Product.query.filter_by(name=name).first():
            return jsonify({"error": "duplicate_entry", "message": "Product with this name already exists"}), 400
        product.name = name

    try:
        if "price" in payload:
            product.price = parse_int(payload.get("price"), "price", minimum=0)
        if "quantity" in payload:
            product.quantity = parse_int(payload.get("quantity"), "quantity", minimum=0)
    except ValueError as exc:
        db.session.rollback()
        return jsonify({"error": "invalid_payload", "message": str(exc)}), 400

    if "description" in payload:
        product.description = (payload.get("description") or "").strip() or None
    if "is_active" in payload:
        product.is_active = bool(parse_bool(payload.get("is_active"), default=True))

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update product", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"success": True, "data": product.to_dict(), "message": "Product updated successfully"}), 200


@bp_products.post("/<int:product_id>/increase-stock")
@roles_required("ADMIN", "MANAGER")
def increase_stock(product_id: int) -> tuple[dict[str, object], int]:
    """Add delivered units to a product's stock level."""
    payload = request.get_json(silent=True) or {}

    try:
        quantity = parse_int(payload.get("quantity"), "quantity", minimum=1)
    except ValueError as exc:
        return jsonify({"error": "invalid_payload", "message": str(exc)}), 400

    if db.session.get(Product, product_id) is None:
        return jsonify({"error": "not_found", "message": "Product not found"}), 404

    try:
        Product.query.filter_by(product_id=product_id).update(
            {Product.quantity: Product.quantity + quantity}, synchronize_session=False
        )
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to increase stock", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    product = db.session.get(Product, product_id)
    return jsonify({
        "success": True,
        "data": product.to_dict(),
        "message": f"Stock increased by {quantity}. New quantity: {product.quantity}",
    }), 200


@bp_products.delete("/<int:product_id>")
@roles_required("ADMIN", "MANAGER")
def delete_product(product_id: int) -> tuple[dict[str, object], int]:
    product = db.session.get(Product, product_id)
    if product is None:
        return jsonify({"error": "not_found", "message": "Product not found"}), 404

    try:
        db.session.delete(product)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete product", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"success": True, "message": "Product deleted successfully"}), 200
