"""
Order lifecycle tests (PATCH /api/orders/<id>/status).

Verifies:
- Cash-on-delivery orders delivered are paid, order and latest transaction together
- Online orders are never paid by a status change
- Permissive mode accepts any target status; strict mode enforces the lifecycle graph
- Staff only; unknown orders and statuses are rejected
"""

from datetime import timedelta

import pytest

from storefront.extensions import db
from storefront.models import Order, Transaction
from storefront.services import order_service, payment_service
from storefront.services.order_service import check_transition, STRICT_TRANSITIONS, ORDER_STATUSES
from storefront.time_utils import utcnow
from storefront.validation import ValidationError

from conftest import checkout_payload


LIFECYCLE = ["processing", "dispatched", "delivered"]


def _place(client, headers, product_id, payment_method="cod"):
    resp = client.post(
        "/api/checkout",
        json=checkout_payload(product_id, payment_method=payment_method),
        headers=headers,
    )
    assert resp.status_code == 201
    return resp.get_json()["orderId"]


def _move(client, headers, order_id, status):
    return client.patch(f"/api/orders/{order_id}/status", json={"status": status}, headers=headers)


class TestCashOnDeliveryCoupling:

    def test_full_lifecycle_ends_paid(self, client, customer_headers, admin_headers, laptop):
        order_id = _place(client, customer_headers, laptop.id)

        for status in LIFECYCLE:
            resp = _move(client, admin_headers, order_id, status)
            assert resp.status_code == 200
            assert resp.get_json()["order"]["status"] == status

        order = db.session.get(Order, order_id)
        assert order.status == "delivered"
        assert order.payment_status == "paid"
        latest = resp.get_json()["order"]["latest_transaction"]
        assert latest["status"] == "paid"
        assert latest["gateway"] == "manual"

    def test_payment_stays_pending_before_delivery(self, client, customer_headers, admin_headers, laptop):
        order_id = _place(client, customer_headers, laptop.id)

        _move(client, admin_headers, order_id, "dispatched")

        order = db.session.get(Order, order_id)
        assert order.payment_status == "pending"
        assert db.session.query(Transaction).filter_by(order_id=order_id).one().status == "pending"

    def test_only_latest_transaction_updated(self, client, customer_headers, admin_headers, laptop):
        order_id = _place(client, customer_headers, laptop.id)
        first = db.session.query(Transaction).filter_by(order_id=order_id).one()
        first.status = "failed"
        first.created_at = utcnow() - timedelta(hours=1)
        newer = Transaction(
            order_id=order_id,
            amount_cents=first.amount_cents,
            currency="INR",
            payment_method="cod",
            status="pending",
            gateway="manual",
        )
        db.session.add(newer)
        db.session.commit()
        first_id, newer_id = first.id, newer.id

        _move(client, admin_headers, order_id, "delivered")

        assert db.session.get(Transaction, newer_id).status == "paid"
        assert db.session.get(Transaction, first_id).status == "failed"

    def test_missing_transaction_is_appended(self, client, customer_headers, admin_headers, laptop):
        order_id = _place(client, customer_headers, laptop.id)
        db.session.query(Transaction).filter_by(order_id=order_id).delete()
        db.session.commit()

        resp = _move(client, admin_headers, order_id, "delivered")

        assert resp.status_code == 200
        transactions = db.session.query(Transaction).filter_by(order_id=order_id).all()
        assert [t.status for t in transactions] == ["paid"]
        assert db.session.get(Order, order_id).payment_status == "paid"


    def test_failed_attempt_kept_on_delivery(self, client, customer_headers, admin_headers, laptop):
        order_id = _place(client, customer_headers, laptop.id)
        failed = payment_service.record_manual_transaction(order_id, status="failed", notes="Customer refused")

        _move(client, admin_headers, order_id, "delivered")

        assert db.session.get(Transaction, failed.id).status == "failed"
        transactions = db.session.query(Transaction).filter_by(order_id=order_id).order_by(Transaction.id).all()
        assert [t.status for t in transactions] == ["pending", "failed", "paid"]
        assert db.session.get(Order, order_id).payment_status == "paid"


class TestOnlineOrders:

    def test_lifecycle_never_sets_paid(self, client, customer_headers, admin_headers, laptop, fake_gateway):
        order_id = _place(client, customer_headers, laptop.id, payment_method="razorpay")

        for status in LIFECYCLE:
            assert _move(client, admin_headers, order_id, status).status_code == 200

        order = db.session.get(Order, order_id)
        assert order.status == "delivered"
        assert order.payment_status == "pending"
        assert db.session.query(Transaction).filter_by(order_id=order_id).one().status == "pending"


class TestPermissiveTransitions:

    def test_any_status_accepted(self, client, customer_headers, admin_headers, laptop):
        order_id = _place(client, customer_headers, laptop.id)

        assert _move(client, admin_headers, order_id, "delivered").status_code == 200
        resp = _move(client, admin_headers, order_id, "placed")

        assert resp.status_code == 200
        assert db.session.get(Order, order_id).status == "placed"

    def test_unknown_status(self, client, customer_headers, admin_headers, laptop):
        order_id = _place(client, customer_headers, laptop.id)

        resp = _move(client, admin_headers, order_id, "teleported")

        assert resp.status_code == 400
        assert db.session.get(Order, order_id).status == "placed"

    def test_missing_status(self, client, customer_headers, admin_headers, laptop):
        order_id = _place(client, customer_headers, laptop.id)
        resp = client.patch(f"/api/orders/{order_id}/status", json={}, headers=admin_headers)
        assert resp.status_code == 400

    def test_unknown_order(self, client, admin_headers, db_session):
        resp = _move(client, admin_headers, 999999, "processing")
        assert resp.status_code == 404

    def test_customer_forbidden(self, client, customer_headers, laptop):
        order_id = _place(client, customer_headers, laptop.id)

        resp = _move(client, customer_headers, order_id, "delivered")

        assert resp.status_code == 403
        assert db.session.get(Order, order_id).status == "placed"


class TestStrictTransitions:

    @pytest.fixture(autouse=True)
    def strict(self, app, db_session):
        app.config["ORDER_STRICT_STATUS_TRANSITIONS"] = True
        yield
        app.config["ORDER_STRICT_STATUS_TRANSITIONS"] = False

    def test_forward_path_allowed(self, client, customer_headers, admin_headers, laptop):
        order_id = _place(client, customer_headers, laptop.id)

        for status in LIFECYCLE:
            assert _move(client, admin_headers, order_id, status).status_code == 200
        assert db.session.get(Order, order_id).payment_status == "paid"

    def test_skipping_ahead_rejected(self, client, customer_headers, admin_headers, laptop):
        order_id = _place(client, customer_headers, laptop.id)

        resp = _move(client, admin_headers, order_id, "delivered")

        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Cannot move order from placed to delivered"
        order = db.session.get(Order, order_id)
        assert order.status == "placed"
        assert order.payment_status == "pending"

    def test_backwards_rejected(self, client, customer_headers, admin_headers, laptop):
        order_id = _place(client, customer_headers, laptop.id)
        _move(client, admin_headers, order_id, "processing")

        resp = _move(client, admin_headers, order_id, "placed")

        assert resp.status_code == 400
        assert db.session.get(Order, order_id).status == "processing"

    def test_same_status_is_noop(self, client, customer_headers, admin_headers, laptop):
        order_id = _place(client, customer_headers, laptop.id)
        assert _move(client, admin_headers, order_id, "placed").status_code == 200


class TestTransitionGraph:

    def test_permissive_mode_allows_every_pair(self):
        for current in ORDER_STATUSES:
            for target in ORDER_STATUSES:
                check_transition(current, target, strict=False)

    def test_strict_mode_matches_graph(self):
        for current in ORDER_STATUSES:
            for target in ORDER_STATUSES:
                allowed = current == target or target in STRICT_TRANSITIONS[current]
                if allowed:
                    check_transition(current, target, strict=True)
                else:
                    with pytest.raises(ValidationError):
                        check_transition(current, target, strict=True)

    def test_returned_only_from_dispatched_or_delivered(self):
        sources = {s for s, targets in STRICT_TRANSITIONS.items() if "returned" in targets}
        assert sources == {"dispatched", "delivered"}

    def test_service_rejects_unknown_status(self, db_session):
        with pytest.raises(ValidationError):
            order_service.transition_status(1, "lost")
