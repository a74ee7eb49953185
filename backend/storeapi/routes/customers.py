# Overview: Flask API routes for customers and their memberships.

# backend/storeapi/routes/customers.py
"""
Customer routes.

Request bodies nest the address ({"address": {"first_line", "last_line",
"city"}}) and may carry a `membership` boolean that opens, activates or
deactivates the customer's membership.
"""
from flask import Blueprint, current_app, request

from ..services import customers_service
from ..services.memberships_service import MembershipError
from ..models import Customer
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_customer,
    flatten_customer_payload,
    parse_bool,
    validate_payload,
)
from ..decorators import require_auth

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={
        "first_name",
        "last_name",
        "email",
        "address_first_line",
        "address_last_line",
        "address_city",
    },
    required_on_create={"first_name", "last_name", "email", "address_first_line", "address_city"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


def _parse_customer(payload, *, partial: bool):
    patch = validate_payload(
        model=Customer,
        payload=flatten_customer_payload(payload),
        policy=CUSTOMER_POLICY,
        partial=partial,
    )
    enforce_rules_customer(patch)

    membership = None
    if "membership" in payload:
        membership = parse_bool("membership", payload["membership"])
    return patch, membership


@customers_bp.get("")
@require_auth
def list_customers():
    page = request.args.get("page", type=int)
    per_page = request.args.get("per_page", type=int)
    return customers_service.list_customers(page=page, per_page=per_page)


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    customer = customers_service.get_customer(customer_id)
    if customer is None:
        return {"error": "Customer not found"}, 404
    return customer.to_dict(), 200


@customers_bp.get("/membership/<code>")
@require_auth
def get_customer_by_membership_route(code: str):
    customer = customers_service.get_customer_by_membership(code)
    if customer is None:
        return {"error": "Customer not found"}, 404
    return customer.to_dict(), 200


@customers_bp.post("")
@require_auth
def create_customer_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch, membership = _parse_customer(payload, partial=False)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = customers_service.create_customer(patch=patch, membership=bool(membership))
    except MembershipError as e:
        current_app.logger.exception("Failed to open membership for new customer")
        return {"error": str(e)}, 500

    return created, 201


@customers_bp.put("/<int:customer_id>")
@require_auth
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch, membership = _parse_customer(payload, partial=True)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = customers_service.update_customer(customer_id=customer_id, patch=patch, membership=membership)
    except MembershipError as e:
        current_app.logger.exception("Failed to open membership for customer %s", customer_id)
        return {"error": str(e)}, 500

    if not updated:
        return {"error": "Customer not found"}, 404

    return updated, 200


@customers_bp.delete("/<int:customer_id>")
@require_auth
def delete_customer_route(customer_id: int):
    deleted = customers_service.delete_customer(customer_id=customer_id)
    if not deleted:
        return {"error": "Customer not found"}, 404

    return "", 204
