"""
Customer return tests (POST /api/orders/<id>/return).
"""

import pytest

from storefront.extensions import db
from storefront.models import Order

from conftest import checkout_payload


@pytest.fixture
def placed_order_id(client, customer_headers, laptop):
    resp = client.post("/api/checkout", json=checkout_payload(laptop.id), headers=customer_headers)
    return resp.get_json()["orderId"]


def _set_status(order_id, status):
    db.session.get(Order, order_id).status = status
    db.session.commit()


class TestReturnRequest:

    def test_delivered_order_returned_twice(self, client, customer_headers, placed_order_id):
        _set_status(placed_order_id, "delivered")

        first = client.post(f"/api/orders/{placed_order_id}/return", headers=customer_headers)
        snapshot = db.session.get(Order, placed_order_id).to_dict()
        second = client.post(f"/api/orders/{placed_order_id}/return", headers=customer_headers)

        assert first.status_code == 200
        assert first.get_json()["message"] == "Return requested"
        assert second.status_code == 200
        assert second.get_json()["success"] is True
        assert second.get_json()["message"] == "Return already requested"
        assert second.get_json()["order"]["status"] == "returned"

        after = db.session.get(Order, placed_order_id).to_dict()
        assert after == snapshot

    def test_dispatched_order_returnable(self, client, customer_headers, placed_order_id):
        _set_status(placed_order_id, "dispatched")

        resp = client.post(f"/api/orders/{placed_order_id}/return", headers=customer_headers)

        assert resp.status_code == 200
        assert db.session.get(Order, placed_order_id).status == "returned"

    @pytest.mark.parametrize("status", ["placed", "processing", "cancelled"])
    def test_rejected_before_dispatch(self, client, customer_headers, placed_order_id, status):
        _set_status(placed_order_id, status)

        resp = client.post(f"/api/orders/{placed_order_id}/return", headers=customer_headers)

        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Order cannot be returned at this stage"
        assert db.session.get(Order, placed_order_id).status == status

    def test_payment_status_untouched(self, client, customer_headers, placed_order_id):
        _set_status(placed_order_id, "delivered")

        client.post(f"/api/orders/{placed_order_id}/return", headers=customer_headers)

        assert db.session.get(Order, placed_order_id).payment_status == "pending"

    def test_other_customer_sees_not_found(self, client, other_headers, placed_order_id):
        _set_status(placed_order_id, "delivered")

        resp = client.post(f"/api/orders/{placed_order_id}/return", headers=other_headers)

        assert resp.status_code == 404
        assert db.session.get(Order, placed_order_id).status == "delivered"

    def test_requires_authentication(self, client, placed_order_id):
        resp = client.post(f"/api/orders/{placed_order_id}/return")
        assert resp.status_code == 401
