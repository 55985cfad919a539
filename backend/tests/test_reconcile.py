"""
Payment reconciliation tests (service and `flask payments reconcile`).
"""

import pytest

from storefront.extensions import db
from storefront.models import Order, Transaction
from storefront.services.payment_service import reconcile_payment_state

from conftest import checkout_payload


@pytest.fixture
def order_id(client, customer_headers, laptop):
    resp = client.post("/api/checkout", json=checkout_payload(laptop.id), headers=customer_headers)
    return resp.get_json()["orderId"]


def _transaction(order_id):
    return db.session.query(Transaction).filter_by(order_id=order_id).one()


def test_nothing_to_do(order_id):
    assert reconcile_payment_state() == []


def test_order_paid_transaction_pending(order_id):
    db.session.get(Order, order_id).payment_status = "paid"
    db.session.commit()

    actions = reconcile_payment_state()

    assert [a.to_dict() for a in actions] == [{"order_id": order_id, "action": "transaction_marked_paid"}]
    assert _transaction(order_id).status == "paid"
    assert reconcile_payment_state() == []


def test_transaction_paid_order_pending(order_id):
    _transaction(order_id).status = "paid"
    db.session.commit()

    actions = reconcile_payment_state()

    assert [a.action for a in actions] == ["order_marked_paid"]
    assert db.session.get(Order, order_id).payment_status == "paid"
    assert reconcile_payment_state() == []


def test_paid_order_without_transaction(order_id):
    db.session.query(Transaction).filter_by(order_id=order_id).delete()
    db.session.get(Order, order_id).payment_status = "paid"
    db.session.commit()

    reconcile_payment_state()

    assert _transaction(order_id).status == "paid"


def test_dry_run_writes_nothing(order_id):
    db.session.get(Order, order_id).payment_status = "paid"
    db.session.commit()

    actions = reconcile_payment_state(dry_run=True)

    assert [a.action for a in actions] == ["transaction_marked_paid"]
    assert _transaction(order_id).status == "pending"


def test_cli(app, order_id):
    db.session.get(Order, order_id).payment_status = "paid"
    db.session.commit()
    runner = app.test_cli_runner()

    result = runner.invoke(args=["payments", "reconcile", "--dry-run"])
    assert result.exit_code == 0
    assert f"Would repair order {order_id}: transaction_marked_paid" in result.output

    result = runner.invoke(args=["payments", "reconcile"])
    assert result.exit_code == 0
    assert "PASS 1 order(s)" in result.output

    result = runner.invoke(args=["payments", "reconcile"])
    assert "PASS Order payment status and transactions agree" in result.output


def test_failed_attempt_kept_and_paid_transaction_appended(order_id):
    first = _transaction(order_id)
    first.status = "failed"
    first.notes = "Card declined at the door"
    db.session.get(Order, order_id).payment_status = "paid"
    db.session.commit()
    first_id = first.id

    actions = reconcile_payment_state()

    assert [a.action for a in actions] == ["paid_transaction_appended"]
    kept = db.session.get(Transaction, first_id)
    assert kept.status == "failed"
    assert kept.notes == "Card declined at the door"
    transactions = db.session.query(Transaction).filter_by(order_id=order_id).order_by(Transaction.id).all()
    assert [t.status for t in transactions] == ["failed", "paid"]
    assert transactions[-1].gateway == "manual"
    assert reconcile_payment_state() == []
