# Overview: Flask API routes for catalog products; parses input and returns JSON responses.

# backend/storeapi/routes/products.py
"""
Product catalog routes.

Stock levels set here are the starting point; sales and cancellations adjust
them afterwards through the sale engine.
"""
from flask import Blueprint, request

from ..services import products_service
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "category", "brand", "quantity", "price", "points_price"},
    required_on_create={"name", "description", "category", "brand", "quantity", "price", "points_price"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    List products with pagination.

    Query params:
    - page: int (optional) - page number (1-indexed)
    - per_page: int (optional) - items per page (default DEFAULT_PAGE_SIZE, max 100)
    """
    page = request.args.get("page", type=int)
    per_page = request.args.get("per_page", type=int)
    return products_service.list_products(page=page, per_page=per_page)


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    product = products_service.get_product(product_id)
    if product is None:
        return {"error": "Product not found"}, 404
    return product.to_dict(), 200


@products_bp.post("")
@require_auth
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    created = products_service.create_product(patch=patch)
    return created, 201


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    updated = products_service.update_product(product_id=product_id, patch=patch)
    if not updated:
        return {"error": "Product not found"}, 404

    return updated, 200


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    try:
        deleted = products_service.delete_product(product_id=product_id)
    except ConflictError as e:
        return {"error": str(e)}, 409
    if not deleted:
        return {"error": "Product not found"}, 404

    return "", 204
