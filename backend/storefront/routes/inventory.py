# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..services import inventory_service
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth, require_staff


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/admin/inventory")


@inventory_bp.get("")
@require_auth
@require_staff
def list_inventory_route():
    """All variants with product name, stock and in-stock flag."""
    try:
        items = inventory_service.list_inventory()
        return jsonify({"items": items, "count": len(items)}), 200
    except Exception:
        current_app.logger.exception("Failed to list inventory")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.patch("/<int:variant_id>")
@require_auth
@require_staff
def adjust_stock_route(variant_id: int):
    """
    Set a variant's stock.

    Request body:
    {
        "stock": 5,
        "inStock": false   (optional; ignored when stock is 0)
    }

    Fractional stock is floored; stock 0 always means out of stock.

    Returns:
        200: Updated variant
        400: Stock missing, negative or not a number
        404: Variant not found
    """
    try:
        stock, override = inventory_service.parse_stock_payload(request.get_json(silent=True))
        variant = inventory_service.adjust_variant_stock(variant_id, stock, override)
        return jsonify({"variant": variant.to_dict()}), 200

    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500
