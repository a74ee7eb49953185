# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/storeapi/routes/sales.py
"""
Sales API routes.

POST /api/sales          cash sale (optionally earning membership points)
POST /api/sales/points   sale paid with membership points
PUT  /api/sales/<id>     cancel a sale ({"is_cancelled": true})
"""

from flask import Blueprint, current_app, jsonify, request

from ..services import sales_service
from ..services.sales_engine import SaleConsistencyError, SaleError, SaleNotFound
from ..validation import ValidationError, validate_cancellation_payload, validate_sale_payload
from ..decorators import require_auth


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
def list_sales_route():
    page = request.args.get("page", type=int)
    per_page = request.args.get("per_page", type=int)
    return sales_service.list_sales(page=page, per_page=per_page)


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    sale = sales_service.get_sale(sale_id)
    if not sale:
        return jsonify({"error": "Sale not found"}), 404

    return jsonify(sale.to_dict()), 200


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Body: {"products": [{"product_id", "quantity"}], "membership_code"?}
    """
    try:
        cart, membership_code = validate_sale_payload(request.get_json(silent=True) or {})
        sale = sales_service.create_cash_sale(cart, membership_code)
        return jsonify(sale.to_dict()), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except SaleConsistencyError as e:
        current_app.logger.exception("Sale rolled back")
        return jsonify({"error": str(e)}), 500
    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/points")
@require_auth
def create_points_sale_route():
    """
    Body: {"products": [{"product_id", "quantity"}], "membership_code"}

    400 with {"error": ...} when the membership does not have enough points.
    """
    try:
        cart, membership_code = validate_sale_payload(request.get_json(silent=True) or {}, points_sale=True)
        sale, outcome = sales_service.create_points_sale(cart, membership_code)
        if not outcome.ok:
            return jsonify({"error": outcome.error_message}), 400
        return jsonify(sale.to_dict()), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except SaleConsistencyError as e:
        current_app.logger.exception("Points sale rolled back")
        return jsonify({"error": str(e)}), 500
    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to create points sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.put("/<int:sale_id>")
@require_auth
def cancel_sale_route(sale_id: int):
    """
    Body: {"is_cancelled": true}

    Cancelled sales are final; any other transition is answered with 400.
    """
    try:
        is_cancelled = validate_cancellation_payload(request.get_json(silent=True) or {})
        sale, outcome = sales_service.cancel_sale(sale_id, is_cancelled)
        if not outcome.ok:
            return jsonify({"error": outcome.error_message}), 400
        return jsonify({"message": "Sale canceled successfully.", "sale": sale.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except SaleNotFound:
        return jsonify({"error": "Sale not found"}), 404
    except SaleConsistencyError as e:
        current_app.logger.exception("Cancellation of sale %s rolled back", sale_id)
        return jsonify({"error": str(e)}), 500
    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to cancel sale")
        return jsonify({"error": "Internal server error"}), 500
