"""
Payment verification tests (POST /api/checkout/verify).

Verifies:
- A valid signature marks the order and its latest transaction paid
- A forged signature is rejected and mutates nothing
- Repeat verification with the same payment is a no-op success
- Foreign and cash-on-delivery orders cannot be verified
"""

import pytest

from storefront.extensions import db
from storefront.models import Order, Transaction, SecurityEvent

from conftest import checkout_payload, sign


PAYMENT_ID = "pay_TEST0001"


@pytest.fixture
def online_order(client, customer_headers, laptop, fake_gateway):
    resp = client.post(
        "/api/checkout",
        json=checkout_payload(laptop.id, quantity=1, payment_method="razorpay"),
        headers=customer_headers,
    )
    assert resp.status_code == 201
    return db.session.get(Order, resp.get_json()["orderId"])


def _verify_body(order, payment_id=PAYMENT_ID, signature=None):
    return {
        "orderId": order.id,
        "razorpayOrderId": order.razorpay_order_id,
        "razorpayPaymentId": payment_id,
        "razorpaySignature": signature or sign(order.razorpay_order_id, payment_id),
    }


class TestVerifyPayment:

    def test_valid_signature_marks_paid(self, client, customer_headers, online_order):
        resp = client.post("/api/checkout/verify", json=_verify_body(online_order), headers=customer_headers)

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["success"] is True
        assert body["order"]["payment_status"] == "paid"

        order = db.session.get(Order, online_order.id)
        assert order.payment_status == "paid"
        assert order.razorpay_payment_id == PAYMENT_ID
        assert order.status == "placed"

        transactions = db.session.query(Transaction).filter_by(order_id=order.id).all()
        assert len(transactions) == 1
        assert transactions[0].status == "paid"
        assert transactions[0].gateway_transaction_id == PAYMENT_ID
        assert transactions[0].raw_payload["razorpay_payment_id"] == PAYMENT_ID

    def test_forged_signature_rejected_without_mutation(self, client, customer_headers, online_order):
        forged = sign(online_order.razorpay_order_id, "pay_SOMEONE_ELSE")
        version_before = online_order.version_id

        resp = client.post(
            "/api/checkout/verify",
            json=_verify_body(online_order, signature=forged),
            headers=customer_headers,
        )

        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Signature verification failed"

        db.session.expire_all()
        order = db.session.get(Order, online_order.id)
        assert order.payment_status == "pending"
        assert order.razorpay_payment_id is None
        assert order.version_id == version_before
        transaction = db.session.query(Transaction).filter_by(order_id=order.id).one()
        assert transaction.status == "pending"
        assert transaction.gateway_transaction_id is None

        event = db.session.query(SecurityEvent).filter_by(event_type="PAYMENT_SIGNATURE_REJECTED").one()
        assert event.success is False

    def test_truncated_signature_rejected(self, client, customer_headers, online_order):
        signature = sign(online_order.razorpay_order_id, PAYMENT_ID)[:-2]

        resp = client.post(
            "/api/checkout/verify",
            json=_verify_body(online_order, signature=signature),
            headers=customer_headers,
        )

        assert resp.status_code == 400
        assert db.session.get(Order, online_order.id).payment_status == "pending"

    def test_repeat_verification_is_noop(self, client, customer_headers, online_order):
        first = client.post("/api/checkout/verify", json=_verify_body(online_order), headers=customer_headers)
        second = client.post("/api/checkout/verify", json=_verify_body(online_order), headers=customer_headers)

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.get_json()["message"] == "Payment already verified"
        assert db.session.query(Transaction).filter_by(order_id=online_order.id).count() == 1

    def test_second_payment_on_paid_order_conflicts(self, client, customer_headers, online_order):
        client.post("/api/checkout/verify", json=_verify_body(online_order), headers=customer_headers)

        resp = client.post(
            "/api/checkout/verify",
            json=_verify_body(online_order, payment_id="pay_TEST0002"),
            headers=customer_headers,
        )
        assert resp.status_code == 409

    def test_mismatched_remote_order(self, client, customer_headers, online_order):
        body = _verify_body(online_order)
        body["razorpayOrderId"] = "order_OTHER"
        body["razorpaySignature"] = sign("order_OTHER", PAYMENT_ID)

        resp = client.post("/api/checkout/verify", json=body, headers=customer_headers)

        assert resp.status_code == 400
        assert db.session.get(Order, online_order.id).payment_status == "pending"

    def test_foreign_order_not_found(self, client, other_headers, online_order):
        resp = client.post("/api/checkout/verify", json=_verify_body(online_order), headers=other_headers)
        assert resp.status_code == 404

    def test_cod_order_cannot_be_verified(self, client, customer_headers, laptop):
        resp = client.post("/api/checkout", json=checkout_payload(laptop.id), headers=customer_headers)
        order_id = resp.get_json()["orderId"]

        resp = client.post(
            "/api/checkout/verify",
            json={
                "orderId": order_id,
                "razorpayOrderId": "order_X",
                "razorpayPaymentId": PAYMENT_ID,
                "razorpaySignature": sign("order_X", PAYMENT_ID),
            },
            headers=customer_headers,
        )
        assert resp.status_code == 400
        assert db.session.get(Order, order_id).payment_status == "pending"

    def test_missing_fields(self, client, customer_headers, online_order):
        resp = client.post("/api/checkout/verify", json={"orderId": online_order.id}, headers=customer_headers)

        assert resp.status_code == 400
        assert {"razorpayOrderId", "razorpayPaymentId", "razorpaySignature"} <= set(resp.get_json()["fields"])
