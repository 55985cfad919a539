"""
Order query and transaction ledger tests.
"""

import pytest

from storefront.extensions import db
from storefront.models import Order, Transaction
from storefront.services import payment_service
from storefront.validation import ValidationError

from conftest import checkout_payload


@pytest.fixture
def order_id(client, customer_headers, laptop):
    resp = client.post("/api/checkout", json=checkout_payload(laptop.id), headers=customer_headers)
    return resp.get_json()["orderId"]


class TestOrderQueries:

    def test_mine_lists_only_own_orders(self, client, customer_headers, other_headers, order_id):
        mine = client.get("/api/orders/mine", headers=customer_headers).get_json()
        theirs = client.get("/api/orders/mine", headers=other_headers).get_json()

        assert [o["id"] for o in mine["orders"]] == [order_id]
        assert theirs["count"] == 0

    def test_owner_and_staff_can_view(self, client, customer_headers, admin_headers, order_id):
        for headers in (customer_headers, admin_headers):
            resp = client.get(f"/api/orders/{order_id}", headers=headers)
            assert resp.status_code == 200
            assert resp.get_json()["order"]["latest_transaction"]["status"] == "pending"

    def test_foreign_order_is_not_found(self, client, other_headers, order_id):
        assert client.get(f"/api/orders/{order_id}", headers=other_headers).status_code == 404

    def test_staff_filter_by_status(self, client, admin_headers, order_id):
        placed = client.get("/api/orders?status=placed", headers=admin_headers).get_json()
        delivered = client.get("/api/orders?status=delivered", headers=admin_headers).get_json()

        assert [o["id"] for o in placed["orders"]] == [order_id]
        assert delivered["count"] == 0


class TestTransactionLedger:

    def test_record_manual_failed_attempt(self, client, admin_headers, order_id):
        resp = client.post("/api/transactions", json={
            "order_id": order_id,
            "status": "failed",
            "gateway_transaction_id": "UPI-1234",
            "notes": "Bounced",
        }, headers=admin_headers)

        assert resp.status_code == 201
        body = resp.get_json()["transaction"]
        assert body["status"] == "failed"
        assert body["gateway"] == "manual"
        assert db.session.get(Order, order_id).payment_status == "pending"

        ledger = client.get(f"/api/orders/{order_id}/transactions", headers=admin_headers).get_json()
        assert len(ledger["transactions"]) == 2
        assert ledger["latest_transaction_id"] == body["id"]

    def test_manual_paid_rejected(self, client, admin_headers, order_id):
        resp = client.post("/api/transactions", json={"order_id": order_id, "status": "paid"}, headers=admin_headers)

        assert resp.status_code == 400
        assert db.session.query(Transaction).filter_by(order_id=order_id).count() == 1

    def test_manual_on_paid_order_refused(self, client, admin_headers, order_id):
        client.patch(f"/api/orders/{order_id}/status", json={"status": "delivered"}, headers=admin_headers)
        assert db.session.get(Order, order_id).payment_status == "paid"

        resp = client.post("/api/transactions", json={"order_id": order_id, "status": "failed"}, headers=admin_headers)

        assert resp.status_code == 409
        assert resp.get_json()["error"] == "Order is already paid"
        transactions = db.session.query(Transaction).filter_by(order_id=order_id).all()
        assert [t.status for t in transactions] == ["paid"]
        assert payment_service.reconcile_payment_state() == []

    def test_manual_for_unknown_order(self, client, admin_headers, db_session):
        resp = client.post("/api/transactions", json={"order_id": 999999}, headers=admin_headers)
        assert resp.status_code == 404

    def test_list_filters(self, client, admin_headers, order_id):
        payment_service.record_manual_transaction(order_id, status="failed")

        resp = client.get("/api/transactions?status=failed", headers=admin_headers)
        assert [t["status"] for t in resp.get_json()["transactions"]] == ["failed"]

        resp = client.get(f"/api/transactions?order_id={order_id}&limit=1", headers=admin_headers)
        assert resp.get_json()["count"] == 1

    @pytest.mark.parametrize("query", ["status=lost", "limit=0", "limit=501"])
    def test_list_rejects_bad_query(self, client, admin_headers, db_session, query):
        assert client.get(f"/api/transactions?{query}", headers=admin_headers).status_code == 400

    def test_negative_amount_rejected(self, order_id):
        with pytest.raises(ValidationError):
            payment_service.record_manual_transaction(order_id, amount_cents=-1)
