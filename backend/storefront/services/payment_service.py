# Overview: Service-layer operations for payments; gateway verification and the transaction ledger.

"""
Payment Service

WHY: An order's payment state lives in two places: the order's own
payment_status and its transaction ledger (one order, many attempts).
Every write that touches one touches the other in the same DB transaction,
and reconcile_payment_state repairs any pair that drifted apart anyway.

DESIGN PRINCIPLES:
- Transactions are append-style and never deleted
- The "current" transaction is the most recently created one per order
- payment_status becomes "paid" only through a verified gateway callback
  or a cash-on-delivery order being delivered (see order_service)
- A rejected signature mutates nothing
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..extensions import db
from ..models import Order, Transaction, User
from ..validation import ValidationError, ConflictError, NotFoundError, PAYMENT_METHOD_RAZORPAY
from .concurrency import unit_of_work
from .payment_gateway import PaymentError, PaymentGatewayError, RazorpayGateway, get_gateway


logger = logging.getLogger(__name__)


class PaymentVerificationError(PaymentError):
    """Gateway signature did not match (authentication failure)."""
    pass


# =============================================================================
# STATUS / GATEWAY (CONSTANTS)
# =============================================================================

PAYMENT_STATUS_PENDING = "pending"
PAYMENT_STATUS_PAID = "paid"
PAYMENT_STATUS_FAILED = "failed"
PAYMENT_STATUS_REFUNDED = "refunded"

PAYMENT_STATUSES = (
    PAYMENT_STATUS_PENDING,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_FAILED,
    PAYMENT_STATUS_REFUNDED,
)

# Statuses staff may record by hand; "paid" only comes from verification or delivery
MANUAL_TRANSACTION_STATUSES = (PAYMENT_STATUS_PENDING, PAYMENT_STATUS_FAILED)

GATEWAY_MANUAL = "manual"
GATEWAY_RAZORPAY = "razorpay"

MAX_LIST_LIMIT = 500


# =============================================================================
# LEDGER QUERIES
# =============================================================================

def latest_transaction(order_id: int) -> Transaction | None:
    """Most recently created transaction for an order (ties broken by id)."""
    return (
        db.session.query(Transaction)
        .filter_by(order_id=order_id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .first()
    )


def list_transactions(
    order_id: int | None = None,
    status: str | None = None,
    limit: int | None = None,
) -> list[Transaction]:
    """
    Transactions newest first, optionally filtered.

    Raises:
        ValidationError: unknown status or out-of-range limit
    """
    query = db.session.query(Transaction)
    if order_id is not None:
        query = query.filter_by(order_id=order_id)
    if status:
        if status not in PAYMENT_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(PAYMENT_STATUSES)}")
        query = query.filter_by(status=status)

    query = query.order_by(Transaction.created_at.desc(), Transaction.id.desc())

    if limit is not None:
        if limit < 1 or limit > MAX_LIST_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_LIST_LIMIT}")
        query = query.limit(limit)

    return query.all()


# =============================================================================
# LEDGER WRITES
# =============================================================================

def open_transaction(order: Order, gateway: str, razorpay_order_id: str | None = None) -> Transaction:
    """
    Append the pending transaction created alongside a new order.

    Does not commit; runs inside the checkout unit of work.
    """
    transaction = Transaction(
        order=order,
        amount_cents=order.total_cents,
        currency=order.currency,
        payment_method=order.payment_method,
        status=PAYMENT_STATUS_PENDING,
        gateway=gateway,
        razorpay_order_id=razorpay_order_id,
    )
    db.session.add(transaction)
    return transaction


def _append_manual_transaction(order: Order, status: str, notes: str | None = None) -> Transaction:
    transaction = Transaction(
        order_id=order.id,
        amount_cents=order.total_cents,
        currency=order.currency,
        payment_method=order.payment_method,
        status=status,
        gateway=GATEWAY_MANUAL,
        notes=notes or "",
    )
    db.session.add(transaction)
    return transaction


def mark_latest_transaction_paid(order: Order, notes: str | None = None) -> Transaction:
    """
    Settle the order's current transaction. Does not commit.

    A pending current transaction is set to paid in place. When the order
    has no transaction, or its current one is failed or refunded, a paid
    manual transaction is appended so recorded attempts keep their status.
    """
    db.session.flush()
    transaction = latest_transaction(order.id)
    if transaction is None or transaction.status != PAYMENT_STATUS_PENDING:
        return _append_manual_transaction(order, PAYMENT_STATUS_PAID, notes)

    transaction.status = PAYMENT_STATUS_PAID
    if notes and not transaction.notes:
        transaction.notes = notes
    return transaction


def record_manual_transaction(
    order_id: int,
    status: str = PAYMENT_STATUS_PENDING,
    notes: str | None = None,
    gateway_transaction_id: str | None = None,
    amount_cents: int | None = None,
) -> Transaction:
    """
    Staff audit note for a payment attempt made outside the gateway.

    Never changes the order's payment_status.

    Raises:
        NotFoundError: unknown order
        ConflictError: order already paid
        ValidationError: status other than pending/failed, bad amount
    """
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")

    if order.payment_status == PAYMENT_STATUS_PAID:
        raise ConflictError("Order is already paid")

    if status not in MANUAL_TRANSACTION_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(MANUAL_TRANSACTION_STATUSES)}")

    if amount_cents is None:
        amount_cents = order.total_cents
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents < 0:
        raise ValidationError("amount_cents must be a non-negative integer")

    transaction = Transaction(
        order_id=order.id,
        amount_cents=amount_cents,
        currency=order.currency,
        payment_method=order.payment_method,
        status=status,
        gateway=GATEWAY_MANUAL,
        gateway_transaction_id=(gateway_transaction_id or None),
        notes=(notes or "").strip(),
    )
    db.session.add(transaction)
    db.session.commit()

    logger.info("Manual %s transaction %s recorded for order %s", status, transaction.id, order.id)
    return transaction


# =============================================================================
# GATEWAY VERIFICATION
# =============================================================================

def verify_payment(
    order_id: int,
    razorpay_order_id: str,
    razorpay_payment_id: str,
    razorpay_signature: str,
    user: User | None = None,
    gateway: RazorpayGateway | None = None,
) -> tuple[Order, Transaction | None, bool]:
    """
    Confirm a client-completed online payment.

    Returns (order, transaction, changed). Re-verifying an already paid
    order with the same payment id returns changed=False.

    Raises:
        NotFoundError: unknown order, or an order the caller does not own
        ValidationError: order has no gateway order, or ids do not match
        PaymentVerificationError: signature mismatch (nothing is written)
        ConflictError: order already paid by a different payment
    """
    order = db.session.get(Order, order_id)
    if order is None or (user is not None and not user.is_staff and order.user_id != user.id):
        raise NotFoundError("Order not found")

    if order.payment_method != PAYMENT_METHOD_RAZORPAY or not order.razorpay_order_id:
        raise ValidationError("Order has no online payment to verify")
    if order.razorpay_order_id != razorpay_order_id:
        raise ValidationError("Payment does not belong to this order")

    gateway = gateway or get_gateway()
    if not gateway.verify_signature(razorpay_order_id, razorpay_payment_id, razorpay_signature):
        logger.warning("Signature rejected for order %s (gateway order %s)", order.id, razorpay_order_id)
        raise PaymentVerificationError("Signature verification failed")

    if order.payment_status == PAYMENT_STATUS_PAID:
        if order.razorpay_payment_id == razorpay_payment_id:
            return order, latest_transaction(order.id), False
        raise ConflictError("Order is already paid")

    with unit_of_work():
        order.payment_status = PAYMENT_STATUS_PAID
        order.razorpay_payment_id = razorpay_payment_id
        order.razorpay_signature = razorpay_signature

        transaction = mark_latest_transaction_paid(order)
        transaction.gateway = GATEWAY_RAZORPAY
        transaction.gateway_transaction_id = razorpay_payment_id
        transaction.razorpay_order_id = razorpay_order_id
        transaction.razorpay_signature = razorpay_signature
        transaction.raw_payload = {
            "razorpay_order_id": razorpay_order_id,
            "razorpay_payment_id": razorpay_payment_id,
            "razorpay_signature": razorpay_signature,
        }

    logger.info("Order %s paid via gateway payment %s", order.id, razorpay_payment_id)
    return order, transaction, True


# =============================================================================
# RECONCILIATION
# =============================================================================

@dataclass
class ReconcileAction:
    order_id: int
    action: str

    def to_dict(self) -> dict:
        return {"order_id": self.order_id, "action": self.action}


def reconcile_payment_state(dry_run: bool = False) -> list[ReconcileAction]:
    """
    Repair orders whose payment_status disagrees with their latest transaction.

    - order paid, latest transaction pending -> transaction marked paid
    - order paid, latest transaction missing, failed or refunded
      -> paid manual transaction appended (recorded attempts are kept as-is)
    - latest transaction paid, order still pending -> order marked paid

    Idempotent: a second run finds nothing to do. With dry_run the
    repairs are reported but not written.
    """
    actions: list[ReconcileAction] = []

    orders = db.session.query(Order).order_by(Order.id.asc()).all()
    for order in orders:
        latest = latest_transaction(order.id)

        if order.payment_status == PAYMENT_STATUS_PAID and (latest is None or latest.status != PAYMENT_STATUS_PAID):
            if latest is not None and latest.status == PAYMENT_STATUS_PENDING:
                actions.append(ReconcileAction(order.id, "transaction_marked_paid"))
            else:
                actions.append(ReconcileAction(order.id, "paid_transaction_appended"))
            if not dry_run:
                mark_latest_transaction_paid(order, notes="Reconciled with order payment status")

        elif (
            latest is not None
            and latest.status == PAYMENT_STATUS_PAID
            and order.payment_status == PAYMENT_STATUS_PENDING
        ):
            actions.append(ReconcileAction(order.id, "order_marked_paid"))
            if not dry_run:
                order.payment_status = PAYMENT_STATUS_PAID

    if dry_run:
        db.session.rollback()
    elif actions:
        db.session.commit()
        for action in actions:
            logger.info("Reconciled order %s: %s", action.order_id, action.action)

    return actions
