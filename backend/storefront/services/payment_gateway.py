# Overview: Razorpay adapter; creates remote orders over HTTP and verifies callback signatures.

"""
Payment Gateway Adapter (Razorpay)

WHY: Online payments are completed client-side against a gateway order
created here. The callback carries an HMAC signature that proves the
payment really happened; verify_signature is the only thing standing
between a forged callback and a "paid" order.

SECURITY:
- Key secret is read from config, never serialized or stored on orders
- Signatures compared with hmac.compare_digest (constant time)
- Length mismatch returns False before any comparison
"""

from __future__ import annotations

import hashlib
import hmac
import logging

import httpx
from flask import current_app


logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.razorpay.com/v1"
DEFAULT_TIMEOUT_SECONDS = 10.0


class PaymentError(Exception):
    """Raised for payment operation errors."""
    pass


class PaymentGatewayError(PaymentError):
    """Gateway unreachable, misconfigured or refusing the request (503)."""
    pass


def compute_signature(key_secret: str, remote_order_id: str, remote_payment_id: str) -> str:
    """Hex HMAC-SHA256 of "{order_id}|{payment_id}" keyed by the gateway secret."""
    message = f"{remote_order_id}|{remote_payment_id}".encode("utf-8")
    return hmac.new(key_secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class RazorpayGateway:
    """Thin client for the two gateway calls the order path needs."""

    def __init__(
        self,
        key_id: str | None,
        key_secret: str | None,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ):
        self._key_id = key_id or ""
        self._key_secret = key_secret or ""
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @property
    def key_id(self) -> str:
        """Public key handed to the client checkout widget."""
        return self._key_id

    def _require_credentials(self) -> None:
        if not self._key_id or not self._key_secret:
            raise PaymentGatewayError("Payment service unavailable")

    def create_remote_order(
        self,
        amount_cents: int,
        currency: str,
        receipt: str,
        notes: dict | None = None,
    ) -> dict:
        """
        Create a gateway order for the given amount (minor units).

        Returns the gateway's order object; "id" is the remote order id.

        Raises:
            PaymentGatewayError: credentials missing, network failure or non-2xx reply
        """
        self._require_credentials()

        body = {
            "amount": int(amount_cents),
            "currency": currency,
            "receipt": str(receipt),
            "notes": notes or {},
        }

        try:
            with httpx.Client(
                base_url=self._api_base,
                auth=(self._key_id, self._key_secret),
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = client.post("/orders", json=body)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.exception("Gateway order creation failed for receipt %s", receipt)
            raise PaymentGatewayError("Payment service unavailable") from exc

        if not isinstance(payload, dict) or not payload.get("id"):
            logger.error("Gateway returned an order without an id for receipt %s", receipt)
            raise PaymentGatewayError("Payment service unavailable")

        return payload

    def verify_signature(self, remote_order_id: str, remote_payment_id: str, signature: str) -> bool:
        """
        True iff signature == HMAC-SHA256(secret, "{order_id}|{payment_id}").

        Never raises on malformed input; a differing-length signature is False.
        """
        self._require_credentials()

        if not all(isinstance(v, str) for v in (remote_order_id, remote_payment_id, signature)):
            return False

        expected = compute_signature(self._key_secret, remote_order_id, remote_payment_id).encode("utf-8")
        supplied = signature.encode("utf-8")

        if len(expected) != len(supplied):
            return False

        return hmac.compare_digest(expected, supplied)


def get_gateway() -> RazorpayGateway:
    """Gateway built from the current app's config."""
    config = current_app.config
    return RazorpayGateway(
        key_id=config.get("RAZORPAY_KEY_ID"),
        key_secret=config.get("RAZORPAY_KEY_SECRET"),
        api_base=config.get("RAZORPAY_API_BASE") or DEFAULT_API_BASE,
        timeout=float(config.get("PAYMENT_GATEWAY_TIMEOUT") or DEFAULT_TIMEOUT_SECONDS),
    )
