# Overview: Service-layer operations for orders; checkout, staff status changes and customer returns.

"""
Order Service

WHY: The order aggregate is where cart, catalogue, inventory, settings and
payments meet. Everything here writes the order and its transaction ledger
in one unit of work so the two can't disagree after a crash.

LIFECYCLE:
    placed -> processing -> dispatched -> delivered
    side-exits: cancelled, returned (returned only from dispatched/delivered)

Staff may move an order to any status unless ORDER_STRICT_STATUS_TRANSITIONS
is enabled, in which case only the edges in STRICT_TRANSITIONS are allowed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Order, OrderItem, Transaction, User
from ..validation import (
    CheckoutPayload,
    ValidationError,
    NotFoundError,
    PAYMENT_METHOD_COD,
    PAYMENT_METHOD_RAZORPAY,
)
from . import catalogue_service, inventory_service, payment_service, settings_service
from .concurrency import lock_for_update, unit_of_work
from .payment_gateway import RazorpayGateway, get_gateway


logger = logging.getLogger(__name__)


class OrderError(Exception):
    """Raised for order operation errors."""
    pass


# =============================================================================
# ORDER STATUS (CONSTANTS)
# =============================================================================

STATUS_PLACED = "placed"
STATUS_PROCESSING = "processing"
STATUS_DISPATCHED = "dispatched"
STATUS_DELIVERED = "delivered"
STATUS_CANCELLED = "cancelled"
STATUS_RETURNED = "returned"

ORDER_STATUSES = (
    STATUS_PLACED,
    STATUS_PROCESSING,
    STATUS_DISPATCHED,
    STATUS_DELIVERED,
    STATUS_CANCELLED,
    STATUS_RETURNED,
)

RETURNABLE_STATUSES = frozenset({STATUS_DELIVERED, STATUS_DISPATCHED})

STRICT_TRANSITIONS = {
    STATUS_PLACED: frozenset({STATUS_PROCESSING, STATUS_CANCELLED}),
    STATUS_PROCESSING: frozenset({STATUS_DISPATCHED, STATUS_CANCELLED}),
    STATUS_DISPATCHED: frozenset({STATUS_DELIVERED, STATUS_RETURNED, STATUS_CANCELLED}),
    STATUS_DELIVERED: frozenset({STATUS_RETURNED}),
    STATUS_CANCELLED: frozenset(),
    STATUS_RETURNED: frozenset(),
}


@dataclass
class CheckoutResult:
    order: Order
    transaction: Transaction
    razorpay_order_id: str | None = None
    razorpay_key: str | None = None

    def to_dict(self) -> dict:
        data = {
            "orderId": self.order.id,
            "orderNumber": self.order.order_number,
            "transactionId": self.transaction.id,
            "paymentMethod": self.order.payment_method,
            "amount": self.order.total_cents,
            "currency": self.order.currency,
            "order": self.order.to_dict(),
        }
        if self.razorpay_order_id:
            data["razorpayOrderId"] = self.razorpay_order_id
            data["razorpayKey"] = self.razorpay_key
            data["customer"] = {
                "name": self.order.customer_name,
                "email": self.order.customer_email,
                "contact": self.order.customer_phone,
            }
        return data


# =============================================================================
# CHECKOUT
# =============================================================================

def _resolve_variant(product, product_variants: list, variant_id: int | None):
    """
    Pick the variant a cart line buys.

    A named variant must belong to the product. Without one, a product that
    has variants resolves to its default variant (or its only variant);
    otherwise the caller must choose.
    """
    if variant_id is not None:
        for variant in product_variants:
            if variant.id == variant_id:
                return variant
        raise NotFoundError("One or more items are unavailable")

    if not product_variants:
        return None
    for variant in product_variants:
        if variant.is_default:
            return variant
    if len(product_variants) == 1:
        return product_variants[0]
    raise ValidationError(
        "variantId is required",
        fields={"items": [f"variantId is required for {product.name}"]},
    )


def _build_items(checkout: CheckoutPayload) -> list[OrderItem]:
    """
    Price every cart line against the live catalogue and reserve stock.

    Any missing or inactive product (or a variant that isn't the product's)
    rejects the whole cart before anything is written. Variant rows are
    locked for the rest of the unit of work.
    """
    product_ids = [item.product_id for item in checkout.items]
    products = catalogue_service.get_products(product_ids)
    variants_by_product = catalogue_service.get_variants_by_product(product_ids, for_update=True)

    resolved = []
    for item in checkout.items:
        product = products.get(item.product_id)
        if product is None or not product.is_active:
            raise NotFoundError("One or more items are unavailable")
        variant = _resolve_variant(product, variants_by_product.get(product.id, []), item.variant_id)
        resolved.append((item, product, variant))

    lines = []
    for item, product, variant in resolved:
        unit_price = product.price_cents
        variant_label = ""
        color = item.color or ""
        if variant is not None:
            inventory_service.reserve_stock(variant, item.quantity)
            unit_price = variant.price_cents
            variant_label = variant.label
            color = item.color or variant.color or ""

        lines.append(OrderItem(
            product_id=product.id,
            variant_id=variant.id if variant is not None else None,
            name=product.name,
            variant_label=variant_label,
            color=color,
            category=product.category or "",
            condition=product.condition or "",
            image_url=product.image_url or "",
            unit_price_cents=unit_price,
            quantity=item.quantity,
            line_total_cents=unit_price * item.quantity,
        ))
    return lines


def create_order(
    user: User,
    checkout: CheckoutPayload,
    gateway: RazorpayGateway | None = None,
) -> CheckoutResult:
    """
    Turn a validated cart into an order.

    Order, line items, stock reservations and the first (pending) transaction
    are committed together. For online payment the gateway order is created
    before commit; if the gateway fails nothing is persisted.

    Raises:
        NotFoundError: a cart line references a missing/inactive product
        ConflictError: insufficient stock
        OrderError: cart totals to zero
        PaymentGatewayError: gateway unavailable (online payment only)
    """
    currency = current_app.config.get("STORE_CURRENCY", "INR")

    with unit_of_work():
        lines = _build_items(checkout)
        subtotal_cents = sum(line.line_total_cents for line in lines)
        if subtotal_cents <= 0:
            raise OrderError("Order total must be greater than zero")

        totals = settings_service.compute_totals(subtotal_cents, settings_service.get_store_settings())

        order = Order(
            user_id=user.id,
            customer_name=checkout.customer_name,
            customer_email=checkout.customer_email,
            customer_phone=checkout.customer_phone,
            address_line1=checkout.address_line1,
            address_line2=checkout.address_line2,
            city=checkout.city,
            state=checkout.state,
            postal_code=checkout.postal_code,
            country=checkout.country,
            subtotal_cents=totals.subtotal_cents,
            tax_cents=totals.tax_cents,
            shipping_cents=totals.shipping_cents,
            total_cents=totals.total_cents,
            currency=currency,
            payment_method=checkout.payment_method,
            payment_status=payment_service.PAYMENT_STATUS_PENDING,
            status=STATUS_PLACED,
            notes=checkout.notes,
        )
        order.items.extend(lines)
        db.session.add(order)
        db.session.flush()

        razorpay_order_id = None
        razorpay_key = None
        if checkout.payment_method == PAYMENT_METHOD_RAZORPAY:
            gateway = gateway or get_gateway()
            remote = gateway.create_remote_order(
                amount_cents=order.total_cents,
                currency=currency,
                receipt=str(order.id),
                notes={"orderId": str(order.id), "customerEmail": order.customer_email},
            )
            razorpay_order_id = remote["id"]
            razorpay_key = gateway.key_id
            order.razorpay_order_id = razorpay_order_id
            transaction = payment_service.open_transaction(
                order, payment_service.GATEWAY_RAZORPAY, razorpay_order_id=razorpay_order_id
            )
        else:
            transaction = payment_service.open_transaction(order, payment_service.GATEWAY_MANUAL)

    logger.info(
        "Order %s placed by user %s (%s, total %s %s)",
        order.id, user.id, order.payment_method, order.total_cents, order.currency,
    )
    return CheckoutResult(
        order=order,
        transaction=transaction,
        razorpay_order_id=razorpay_order_id,
        razorpay_key=razorpay_key,
    )


# =============================================================================
# STATUS TRANSITIONS
# =============================================================================

def _strict_transitions_enabled() -> bool:
    return bool(current_app.config.get("ORDER_STRICT_STATUS_TRANSITIONS", False))


def check_transition(current: str, new_status: str, strict: bool) -> None:
    """Raise ValidationError when `strict` and current -> new_status is not an allowed edge."""
    if not strict or current == new_status:
        return
    if new_status not in STRICT_TRANSITIONS.get(current, frozenset()):
        raise ValidationError(f"Cannot move order from {current} to {new_status}")


def transition_status(order_id: int, new_status: str, actor: User | None = None) -> Order:
    """
    Staff status update.

    A cash-on-delivery order moved to "delivered" is paid in the same
    commit: payment_status and the latest transaction both become "paid".

    Raises:
        ValidationError: unknown status, or illegal edge in strict mode
        NotFoundError: unknown order
        ConflictError: concurrent modification of the same order
    """
    if new_status not in ORDER_STATUSES:
        raise ValidationError(f"Status must be one of {', '.join(ORDER_STATUSES)}")

    with unit_of_work():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if order is None:
            raise NotFoundError("Order not found")

        previous = order.status
        check_transition(previous, new_status, _strict_transitions_enabled())

        order.status = new_status

        if order.payment_method == PAYMENT_METHOD_COD and new_status == STATUS_DELIVERED:
            order.payment_status = payment_service.PAYMENT_STATUS_PAID
            payment_service.mark_latest_transaction_paid(order, notes="Cash collected on delivery")

    logger.info(
        "Order %s status %s -> %s by user %s",
        order.id, previous, new_status, actor.id if actor else None,
    )
    return order


# =============================================================================
# RETURNS
# =============================================================================

def request_return(order_id: int, user: User) -> tuple[Order, bool]:
    """
    Customer return request.

    Returns (order, changed). A repeat request on a returned order is a
    successful no-op (changed=False).

    Raises:
        NotFoundError: unknown order or not the caller's
        ValidationError: order not dispatched/delivered
    """
    with unit_of_work():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if order is None or order.user_id != user.id:
            raise NotFoundError("Order not found")

        if order.status == STATUS_RETURNED:
            return order, False

        if order.status not in RETURNABLE_STATUSES:
            raise ValidationError("Order cannot be returned at this stage")

        order.status = STATUS_RETURNED

    logger.info("Order %s returned by customer %s", order.id, user.id)
    return order, True


# =============================================================================
# QUERIES
# =============================================================================

def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    return order


def get_order_for_user_or_staff(order_id: int, user: User) -> Order:
    """Owners and staff see the order; everyone else gets NotFound."""
    order = get_order(order_id)
    if order.user_id != user.id and not user.is_staff:
        raise NotFoundError("Order not found")
    return order


def list_orders(status: str | None = None) -> list[Order]:
    query = db.session.query(Order)
    if status:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Status must be one of {', '.join(ORDER_STATUSES)}")
        query = query.filter_by(status=status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def list_orders_for_user(user_id: int) -> list[Order]:
    return (
        db.session.query(Order)
        .filter_by(user_id=user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def order_summary(order: Order) -> dict:
    """Order payload plus its current transaction."""
    data = order.to_dict()
    latest = payment_service.latest_transaction(order.id)
    data["latest_transaction"] = latest.to_dict() if latest else None
    return data
