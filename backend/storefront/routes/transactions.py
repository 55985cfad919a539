# Overview: Flask API routes for the transaction ledger; staff only.

from flask import Blueprint, request, jsonify, current_app

from ..services import order_service, payment_service
from ..validation import ValidationError, ConflictError, NotFoundError, parse_id
from ..decorators import require_auth, require_staff


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api")


@transactions_bp.get("/transactions")
@require_auth
@require_staff
def list_transactions_route():
    """
    Transactions newest first.

    Query params:
        order_id: only this order's transactions
        status: pending | paid | failed | refunded
        limit: 1..500
    """
    try:
        order_id = request.args.get("order_id")
        limit = request.args.get("limit")
        transactions = payment_service.list_transactions(
            order_id=parse_id(order_id, "order_id") if order_id else None,
            status=request.args.get("status"),
            limit=parse_id(limit, "limit") if limit else None,
        )
        return jsonify({
            "transactions": [t.to_dict() for t in transactions],
            "count": len(transactions),
        }), 200

    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except Exception:
        current_app.logger.exception("Failed to list transactions")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/transactions")
@require_auth
@require_staff
def record_transaction_route():
    """
    Record a payment attempt made outside the gateway.

    Request body:
    {
        "order_id": 42,
        "status": "pending" | "failed",
        "amount_cents": 118000,                 (optional, defaults to order total)
        "gateway_transaction_id": "UPI-1234",   (optional)
        "notes": "Customer paid by bank transfer, awaiting confirmation"
    }

    Does not change the order's payment status. Paid orders are refused (409).
    """
    try:
        data = request.get_json(silent=True) or {}
        transaction = payment_service.record_manual_transaction(
            parse_id(data.get("order_id"), "order_id"),
            status=data.get("status", payment_service.PAYMENT_STATUS_PENDING),
            notes=data.get("notes"),
            gateway_transaction_id=data.get("gateway_transaction_id"),
            amount_cents=data.get("amount_cents"),
        )
        return jsonify({"transaction": transaction.to_dict()}), 201

    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to record transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("/orders/<int:order_id>/transactions")
@require_auth
@require_staff
def order_transactions_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
        transactions = payment_service.list_transactions(order_id=order.id)
        latest = transactions[0] if transactions else None
        return jsonify({
            "order_id": order.id,
            "payment_status": order.payment_status,
            "transactions": [t.to_dict() for t in transactions],
            "latest_transaction_id": latest.id if latest else None,
        }), 200

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to list order transactions")
        return jsonify({"error": "Internal server error"}), 500
