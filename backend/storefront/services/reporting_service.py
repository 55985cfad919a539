# Overview: Service-layer operations for reporting; the staff dashboard aggregates.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import case, func

from ..extensions import db
from ..models import Order, Transaction
from ..time_utils import to_utc_z, utcnow
from ..validation import PAYMENT_METHOD_COD, PAYMENT_METHOD_RAZORPAY
from .order_service import (
    ORDER_STATUSES,
    STATUS_PLACED,
    STATUS_PROCESSING,
    STATUS_DISPATCHED,
    STATUS_DELIVERED,
)


DASHBOARD_MONTHS = 4
DASHBOARD_RECENT_ORDERS = 6

OPEN_STATUSES = (STATUS_PLACED, STATUS_PROCESSING, STATUS_DISPATCHED)
FULFILLED_STATUSES = (STATUS_DELIVERED,)

PAYMENT_METHOD_LABELS = {
    PAYMENT_METHOD_COD: "Cash on delivery",
    PAYMENT_METHOD_RAZORPAY: "Razorpay",
}


def _month_starts(now: datetime, months: int) -> list[datetime]:
    """First instant of each of the last `months` calendar months, oldest first."""
    starts = []
    year, month = now.year, now.month
    for _ in range(months):
        starts.append(datetime(year, month, 1))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(starts))


def _totals() -> dict:
    row = db.session.query(
        func.count(Order.id).label("total_orders"),
        func.coalesce(func.sum(Order.total_cents), 0).label("total_revenue_cents"),
        func.coalesce(
            func.sum(case((Order.status.in_(OPEN_STATUSES), 1), else_=0)), 0
        ).label("processing_orders"),
        func.coalesce(
            func.sum(case((Order.status.in_(FULFILLED_STATUSES), 1), else_=0)), 0
        ).label("fulfilled_orders"),
    ).one()

    total_orders = int(row.total_orders or 0)
    total_revenue = int(row.total_revenue_cents or 0)
    return {
        "total_revenue_cents": total_revenue,
        "total_orders": total_orders,
        "average_order_value_cents": round(total_revenue / total_orders) if total_orders else 0,
        "processing_orders": int(row.processing_orders or 0),
        "fulfilled_orders": int(row.fulfilled_orders or 0),
    }


def _orders_by_status() -> list[dict]:
    rows = db.session.query(
        Order.status,
        func.count(Order.id),
        func.coalesce(func.sum(Order.total_cents), 0),
    ).group_by(Order.status).all()
    found = {status: (int(count), int(revenue)) for status, count, revenue in rows}

    # Every known status is listed, zero-filled
    return [
        {
            "status": status,
            "label": status.capitalize(),
            "count": found.get(status, (0, 0))[0],
            "revenue_cents": found.get(status, (0, 0))[1],
        }
        for status in ORDER_STATUSES
    ]


def _monthly_orders(month_starts: list[datetime]) -> list[dict]:
    buckets = {(start.year, start.month): [0, 0] for start in month_starts}
    rows = db.session.query(Order.created_at, Order.total_cents).filter(
        Order.created_at >= month_starts[0],
    ).all()
    for created_at, total_cents in rows:
        bucket = buckets.get((created_at.year, created_at.month))
        if bucket is not None:
            bucket[0] += 1
            bucket[1] += int(total_cents or 0)

    return [
        {
            "month": start.strftime("%b %Y"),
            "order_count": buckets[(start.year, start.month)][0],
            "revenue_cents": buckets[(start.year, start.month)][1],
        }
        for start in month_starts
    ]


def _payment_methods() -> list[dict]:
    rows = db.session.query(
        Order.payment_method,
        func.count(Order.id),
        func.coalesce(func.sum(Order.total_cents), 0),
    ).group_by(Order.payment_method).all()

    entries = [
        {
            "method": method,
            "label": PAYMENT_METHOD_LABELS.get(method, method),
            "count": int(count),
            "revenue_cents": int(revenue),
        }
        for method, count, revenue in rows
    ]
    entries.sort(key=lambda e: (-e["revenue_cents"], e["method"]))
    return entries


def _transactions_by_status(since: datetime) -> list[dict]:
    rows = db.session.query(
        Transaction.status,
        func.count(Transaction.id),
        func.coalesce(func.sum(Transaction.amount_cents), 0),
    ).filter(
        Transaction.created_at >= since,
    ).group_by(Transaction.status).all()

    entries = [
        {"status": status, "count": int(count), "amount_cents": int(amount)}
        for status, count, amount in rows
    ]
    entries.sort(key=lambda e: (-e["count"], e["status"]))
    return entries


def _recent_orders(limit: int) -> list[dict]:
    orders = db.session.query(Order).order_by(
        Order.created_at.desc(), Order.id.desc()
    ).limit(limit).all()
    return [
        {
            "id": order.id,
            "order_number": order.order_number,
            "customer_name": order.customer_name,
            "status": order.status,
            "total_cents": order.total_cents,
            "created_at": to_utc_z(order.created_at),
        }
        for order in orders
    ]


def admin_dashboard_metrics(
    *,
    now: datetime | None = None,
    months: int = DASHBOARD_MONTHS,
    recent_limit: int = DASHBOARD_RECENT_ORDERS,
) -> dict:
    """
    Aggregates for the staff dashboard.

    WHY: One read-only snapshot of the store: lifetime totals, the status
    and payment-method breakdowns, the last few calendar months and the
    newest orders. Nothing here writes.

    Totals, status and payment-method breakdowns cover every order.
    Monthly figures and transactions-by-status cover the window starting
    on the first day of the oldest included month (UTC). Months with no
    orders are reported with zero counts.

    Args:
        now: Reference time (naive UTC); defaults to utcnow()
        months: Calendar months in the monthly series, current month included
        recent_limit: Number of newest orders to list

    Returns:
        Dict with totals, orders_by_status, monthly_orders, payment_methods,
        transactions_by_status, recent_orders (amounts in paise)
    """
    month_starts = _month_starts(now or utcnow(), months)

    return {
        "totals": _totals(),
        "orders_by_status": _orders_by_status(),
        "monthly_orders": _monthly_orders(month_starts),
        "payment_methods": _payment_methods(),
        "transactions_by_status": _transactions_by_status(month_starts[0]),
        "recent_orders": _recent_orders(recent_limit),
    }
