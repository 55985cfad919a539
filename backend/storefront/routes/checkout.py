# Overview: Flask API routes for checkout and online payment verification.

# backend/storefront/routes/checkout.py
"""
Checkout API Routes

WHY: Turns a cart into an order and, for online payment, hands the client
what it needs to finish paying at the gateway. The gateway callback comes
back through /verify, where the signature is checked before anything is
marked paid.

SECURITY:
- Authenticated customers only
- Prices come from the catalogue, never from the request body
- Razorpay key secret never leaves the server; only the public key id is returned
- Rejected signatures are logged to security_events
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import order_service, payment_service
from ..services.order_service import OrderError
from ..services.payment_service import PaymentGatewayError, PaymentVerificationError
from ..services.security_service import log_security_event
from ..validation import (
    ValidationError,
    ConflictError,
    NotFoundError,
    validate_checkout_payload,
    validate_payment_verification_payload,
)
from ..decorators import require_auth


checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/checkout")


@checkout_bp.post("")
@require_auth
def checkout_route():
    """
    Place an order.

    Request body:
    {
        "customerName": "Asha Rao",
        "customerEmail": "asha@example.com",
        "customerPhone": "9876543210",
        "addressLine1": "12 MG Road",
        "addressLine2": "",          (optional)
        "city": "Bengaluru",
        "state": "Karnataka",
        "postalCode": "560001",
        "country": "India",          (optional)
        "paymentMethod": "cod" | "razorpay",
        "items": [{"productId": 1, "variantId": 3, "quantity": 2}]
    }

    Returns:
        201: orderId, transactionId, totals (+ razorpayOrderId/razorpayKey for online)
        400: Invalid payload
        404: An item is unavailable
        409: Insufficient stock
        503: Payment service unavailable
    """
    try:
        checkout = validate_checkout_payload(request.get_json(silent=True))
        result = order_service.create_order(g.current_user, checkout)
        return jsonify(result.to_dict()), 201

    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except OrderError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except PaymentGatewayError:
        return jsonify({"error": "Payment service unavailable"}), 503
    except Exception:
        current_app.logger.exception("Failed to place order")
        return jsonify({"error": "Internal server error"}), 500


@checkout_bp.post("/verify")
@require_auth
def verify_payment_route():
    """
    Confirm an online payment from the gateway callback.

    Request body:
    {
        "orderId": 42,
        "razorpayOrderId": "order_...",
        "razorpayPaymentId": "pay_...",
        "razorpaySignature": "<hex hmac>"
    }

    Returns:
        200: Order marked paid (or already paid by this payment)
        400: Invalid payload or signature verification failed
        404: Order not found
        409: Order already paid by another payment
        503: Payment service unavailable
    """
    try:
        payload = validate_payment_verification_payload(request.get_json(silent=True))
        order, transaction, changed = payment_service.verify_payment(
            payload["order_id"],
            payload["razorpay_order_id"],
            payload["razorpay_payment_id"],
            payload["razorpay_signature"],
            user=g.current_user,
        )
        return jsonify({
            "success": True,
            "message": "Payment verified" if changed else "Payment already verified",
            "order": order.to_dict(),
            "transaction": transaction.to_dict() if transaction else None,
        }), 200

    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except PaymentVerificationError as e:
        log_security_event(
            user_id=g.current_user.id,
            event_type="PAYMENT_SIGNATURE_REJECTED",
            success=False,
            resource=request.path,
            action=request.method,
            reason=f"Signature mismatch for order {payload['order_id']}",
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except PaymentGatewayError:
        return jsonify({"error": "Payment service unavailable"}), 503
    except Exception:
        current_app.logger.exception("Failed to verify payment")
        return jsonify({"error": "Internal server error"}), 500
