from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Order(db.Model):
    """
    Customer purchase (the order aggregate).

    WHY: Holds the priced snapshot of a cart, the shipping address as it was
    at checkout, and both lifecycle axes: fulfilment status and payment status.

    INVARIANTS:
    - payment_status becomes "paid" only through a verified gateway callback
      or a cash-on-delivery order being marked "delivered".
    - Never hard-deleted (audit trail).

    version_id gives optimistic locking: two staff members updating the same
    order concurrently get a StaleDataError instead of a silent overwrite.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_user_created", "user_id", "created_at"),
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    customer_name = db.Column(db.String(120), nullable=False)
    customer_email = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=False)

    # Shipping address snapshot
    address_line1 = db.Column(db.String(255), nullable=False)
    address_line2 = db.Column(db.String(255), nullable=False, default="")
    city = db.Column(db.String(120), nullable=False)
    state = db.Column(db.String(120), nullable=False)
    postal_code = db.Column(db.String(16), nullable=False)
    country = db.Column(db.String(64), nullable=False, default="India")

    # Totals (all amounts in minor units)
    subtotal_cents = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    shipping_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(8), nullable=False, default="INR")

    payment_method = db.Column(db.String(16), nullable=False)  # cod, razorpay
    payment_status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    status = db.Column(db.String(16), nullable=False, default="placed", index=True)

    # Gateway correlation (public identifiers only, never the key secret)
    razorpay_order_id = db.Column(db.String(64), nullable=True, index=True)
    razorpay_payment_id = db.Column(db.String(64), nullable=True)
    razorpay_signature = db.Column(db.String(128), nullable=True)

    notes = db.Column(db.Text, nullable=False, default="")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("orders", lazy=True))
    items = db.relationship("OrderItem", backref="order", lazy=True, order_by="OrderItem.id")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def order_number(self) -> str:
        return f"{self.id:06d}"[-6:]

    @property
    def shipping_address(self) -> dict:
        return {
            "line1": self.address_line1,
            "line2": self.address_line2,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
        }

    def to_dict(self) -> dict:
        items = [item.to_dict() for item in self.items]
        return {
            "id": self.id,
            "order_number": self.order_number,
            "user_id": self.user_id,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "shipping_address": self.shipping_address,
            "items": items,
            "item_count": sum(item["quantity"] for item in items),
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "shipping_cents": self.shipping_cents,
            "total_cents": self.total_cents,
            "currency": self.currency,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "status": self.status,
            "razorpay_order_id": self.razorpay_order_id,
            "razorpay_payment_id": self.razorpay_payment_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class OrderItem(db.Model):
    """Line item on an order. Name and price are snapshots taken at checkout."""
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    variant_id = db.Column(db.Integer, db.ForeignKey("variants.id"), nullable=True)

    name = db.Column(db.String(255), nullable=False)
    variant_label = db.Column(db.String(255), nullable=False, default="")
    color = db.Column(db.String(64), nullable=False, default="")
    category = db.Column(db.String(120), nullable=False, default="")
    condition = db.Column(db.String(64), nullable=False, default="")
    image_url = db.Column(db.String(512), nullable=False, default="")

    unit_price_cents = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "name": self.name,
            "variant_label": self.variant_label or None,
            "color": self.color or None,
            "category": self.category or None,
            "condition": self.condition or None,
            "image_url": self.image_url or None,
            "unit_price_cents": self.unit_price_cents,
            "quantity": self.quantity,
            "line_total_cents": self.line_total_cents,
        }


class Transaction(db.Model):
    """
    Payment attempt or capture for an order.

    WHY: Denormalized from the order's own payment fields for audit.
    An order may accumulate several transactions; the most recently
    created one is the "current" transaction.

    Never deleted.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_order_created", "order_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(8), nullable=False, default="INR")
    payment_method = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    gateway = db.Column(db.String(16), nullable=False, default="manual")  # manual, razorpay

    gateway_transaction_id = db.Column(db.String(64), nullable=True)
    razorpay_order_id = db.Column(db.String(64), nullable=True)
    razorpay_signature = db.Column(db.String(128), nullable=True)

    notes = db.Column(db.Text, nullable=False, default="")
    raw_payload = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    order = db.relationship("Order", backref=db.backref("transactions", lazy=True, order_by="Transaction.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "amount_cents": self.amount_cents,
            "currency": self.currency,
            "payment_method": self.payment_method,
            "status": self.status,
            "gateway": self.gateway,
            "gateway_transaction_id": self.gateway_transaction_id,
            "razorpay_order_id": self.razorpay_order_id,
            "razorpay_signature": self.razorpay_signature,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
