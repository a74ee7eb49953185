# Overview: Flask API routes for loyalty memberships.

# backend/storeapi/routes/memberships.py
"""
Membership routes.

Points and purchase history are read-only here; they change only through
sales and cancellations.
"""
from flask import Blueprint, current_app, request

from ..services import memberships_service
from ..services.memberships_service import MembershipError
from ..validation import ValidationError, validate_membership_payload
from ..decorators import require_auth

memberships_bp = Blueprint("memberships", __name__, url_prefix="/api/memberships")


@memberships_bp.get("")
@require_auth
def list_memberships():
    page = request.args.get("page", type=int)
    per_page = request.args.get("per_page", type=int)
    return memberships_service.list_memberships(page=page, per_page=per_page)


@memberships_bp.get("/<code>")
@require_auth
def get_membership_route(code: str):
    membership = memberships_service.get_membership(code)
    if membership is None:
        return {"error": "Membership not found"}, 404
    return membership.to_dict(), 200


@memberships_bp.post("")
@require_auth
def activate_deactivate_route():
    """
    Body: {"customer_id": int, "membership": bool}

    Activates or deactivates the customer's membership, or opens a new one
    when the customer has none and membership is true.
    """
    payload = request.get_json(silent=True) or {}

    try:
        customer_id, active = validate_membership_payload(payload)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        changed = memberships_service.activate_deactivate_membership(customer_id, active)
    except MembershipError as e:
        current_app.logger.exception("Failed to open membership for customer %s", customer_id)
        return {"error": str(e)}, 500

    if not changed:
        return {"error": "Membership could not be updated."}, 400

    return {"message": "Membership updated successfully."}, 200
