"""
Payment gateway adapter tests.

Verifies:
- verify_signature is true only for the exact HMAC-SHA256 of "order|payment"
- Any single-character mutation flips it to false
- Differing-length signatures return False without raising
- create_remote_order speaks the gateway's HTTP API and maps failures to PaymentGatewayError
"""

import base64
import json

import httpx
import pytest

from storefront.services.payment_gateway import (
    RazorpayGateway,
    PaymentGatewayError,
    compute_signature,
)


SECRET = "s3cr3t-key"
ORDER_ID = "order_Nf7c2xk9ZqP1"
PAYMENT_ID = "pay_Nf7cA0bC1dE2"


def _gateway(transport=None, key_id="rzp_test_key", key_secret=SECRET):
    return RazorpayGateway(key_id, key_secret, api_base="https://gateway.test/v1", transport=transport)


def _flip(text: str, index: int) -> str:
    replacement = "0" if text[index] != "0" else "1"
    return text[:index] + replacement + text[index + 1:]


# =============================================================================
# SIGNATURE VERIFICATION
# =============================================================================


class TestVerifySignature:

    def test_known_vector(self):
        signature = compute_signature(SECRET, ORDER_ID, PAYMENT_ID)
        assert len(signature) == 64
        assert _gateway().verify_signature(ORDER_ID, PAYMENT_ID, signature) is True

    @pytest.mark.parametrize("index", [0, 1, 17, 31, 32, 62, 63])
    def test_signature_mutation_rejected(self, index):
        signature = compute_signature(SECRET, ORDER_ID, PAYMENT_ID)
        assert _gateway().verify_signature(ORDER_ID, PAYMENT_ID, _flip(signature, index)) is False

    @pytest.mark.parametrize("index", [0, 6, len(ORDER_ID) - 1])
    def test_order_id_mutation_rejected(self, index):
        signature = compute_signature(SECRET, ORDER_ID, PAYMENT_ID)
        assert _gateway().verify_signature(_flip(ORDER_ID, index), PAYMENT_ID, signature) is False

    @pytest.mark.parametrize("index", [0, 4, len(PAYMENT_ID) - 1])
    def test_payment_id_mutation_rejected(self, index):
        signature = compute_signature(SECRET, ORDER_ID, PAYMENT_ID)
        assert _gateway().verify_signature(ORDER_ID, _flip(PAYMENT_ID, index), signature) is False

    @pytest.mark.parametrize("length_delta", [-64, -1, 1, 10])
    def test_length_mismatch_returns_false(self, length_delta):
        signature = compute_signature(SECRET, ORDER_ID, PAYMENT_ID)
        if length_delta < 0:
            candidate = signature[:len(signature) + length_delta]
        else:
            candidate = signature + "a" * length_delta
        assert _gateway().verify_signature(ORDER_ID, PAYMENT_ID, candidate) is False

    def test_wrong_secret_rejected(self):
        signature = compute_signature("another-secret", ORDER_ID, PAYMENT_ID)
        assert _gateway().verify_signature(ORDER_ID, PAYMENT_ID, signature) is False

    def test_non_string_signature_returns_false(self):
        assert _gateway().verify_signature(ORDER_ID, PAYMENT_ID, None) is False

    def test_non_ascii_signature_returns_false(self):
        assert _gateway().verify_signature(ORDER_ID, PAYMENT_ID, "é" * 32) is False

    def test_missing_credentials(self):
        with pytest.raises(PaymentGatewayError):
            _gateway(key_secret=None).verify_signature(ORDER_ID, PAYMENT_ID, "x")


# =============================================================================
# REMOTE ORDER CREATION
# =============================================================================


class TestCreateRemoteOrder:

    def test_posts_order_with_basic_auth(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "order_ABC", "amount": 1180000, "currency": "INR"})

        gateway = _gateway(transport=httpx.MockTransport(handler))
        remote = gateway.create_remote_order(1180000, "INR", receipt="42", notes={"orderId": "42"})

        assert remote["id"] == "order_ABC"
        assert seen["url"] == "https://gateway.test/v1/orders"
        expected = base64.b64encode(f"rzp_test_key:{SECRET}".encode()).decode()
        assert seen["auth"] == f"Basic {expected}"
        assert seen["body"] == {
            "amount": 1180000,
            "currency": "INR",
            "receipt": "42",
            "notes": {"orderId": "42"},
        }

    def test_server_error_maps_to_gateway_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, json={"error": "boom"}))
        with pytest.raises(PaymentGatewayError) as exc:
            _gateway(transport=transport).create_remote_order(100, "INR", receipt="1")
        assert str(exc.value) == "Payment service unavailable"

    def test_network_error_maps_to_gateway_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(PaymentGatewayError):
            _gateway(transport=httpx.MockTransport(handler)).create_remote_order(100, "INR", receipt="1")

    def test_reply_without_id_is_an_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"status": "created"}))
        with pytest.raises(PaymentGatewayError):
            _gateway(transport=transport).create_remote_order(100, "INR", receipt="1")

    def test_missing_credentials_never_calls_out(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"id": "order_X"})

        gateway = _gateway(transport=httpx.MockTransport(handler), key_id=None)
        with pytest.raises(PaymentGatewayError):
            gateway.create_remote_order(100, "INR", receipt="1")
        assert calls == []
