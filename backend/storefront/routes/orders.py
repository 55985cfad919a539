# Overview: Flask API routes for orders operations; parses input and returns JSON responses.

# backend/storefront/routes/orders.py
"""
Order API Routes

DESIGN:
- Customers list and view their own orders and request returns
- Staff list every order and move orders through the lifecycle
- Cash-on-delivery orders marked delivered are paid in the same write

SECURITY:
- Foreign orders look exactly like missing ones (404)
- Status changes are staff only
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import order_service
from ..validation import ValidationError, ConflictError, NotFoundError
from ..decorators import require_auth, require_staff


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _json_error(exc: Exception, operation: str):
    if isinstance(exc, ValidationError):
        return jsonify(exc.to_dict()), 400
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc)}), 409
    current_app.logger.exception("Failed to %s", operation)
    return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# ORDER QUERIES
# =============================================================================

@orders_bp.get("")
@require_auth
@require_staff
def list_orders_route():
    """
    All orders, newest first.

    Query params:
        status: filter by order status
    """
    try:
        orders = order_service.list_orders(status=request.args.get("status"))
    except Exception as exc:
        return _json_error(exc, "list orders")
    return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)}), 200


@orders_bp.get("/mine")
@require_auth
def list_my_orders_route():
    orders = order_service.list_orders_for_user(g.current_user.id)
    return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)}), 200


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order_for_user_or_staff(order_id, g.current_user)
        return jsonify({"order": order_service.order_summary(order)}), 200
    except Exception as exc:
        return _json_error(exc, "get order")


# =============================================================================
# LIFECYCLE
# =============================================================================

@orders_bp.patch("/<int:order_id>/status")
@require_auth
@require_staff
def update_status_route(order_id: int):
    """
    Move an order to a new status.

    Request body:
    {
        "status": "dispatched"
    }

    Returns:
        200: Updated order summary
        400: Unknown status (or illegal edge when strict transitions are on)
        403: Not staff
        404: Order not found
        409: Order changed concurrently
    """
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    if not isinstance(status, str) or not status:
        return jsonify({"error": "status required"}), 400

    try:
        order = order_service.transition_status(order_id, status.strip().lower(), actor=g.current_user)
        return jsonify({"order": order_service.order_summary(order)}), 200
    except Exception as exc:
        return _json_error(exc, "update order status")


@orders_bp.post("/<int:order_id>/return")
@require_auth
def request_return_route(order_id: int):
    """
    Customer return request. Allowed from dispatched or delivered.

    Repeating the request on a returned order succeeds without changes.
    """
    try:
        order, changed = order_service.request_return(order_id, g.current_user)
    except Exception as exc:
        return _json_error(exc, "request return")

    message = "Return requested" if changed else "Return already requested"
    return jsonify({"success": True, "message": message, "order": order.to_dict()}), 200
