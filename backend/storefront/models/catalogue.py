from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


MASTER_TYPES = ("company", "processor", "ram", "storage", "graphics", "os")

MASTER_TYPE_LABELS = {
    "company": "Company",
    "processor": "Processor",
    "ram": "RAM",
    "storage": "Storage",
    "graphics": "Graphics",
    "os": "Operating system",
}


class Category(db.Model):
    """Product category. Names are unique store-wide."""
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_categories_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.String(500), nullable=False, default="")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class MasterOption(db.Model):
    """
    Reusable attribute value shared across products (a RAM size, a processor, a brand).

    Unique per (type, name).
    """
    __tablename__ = "master_options"
    __table_args__ = (
        db.UniqueConstraint("type", "name", name="uq_master_options_type_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(32), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.String(500), nullable=False, default="")
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "description": self.description,
            "sort_order": self.sort_order,
        }


class SubMasterOption(db.Model):
    """
    Child option nested under a master option (e.g. a sub-brand under a company).

    Sub-masters may nest further through parent_id.
    Unique per (master_id, parent_id, name).
    """
    __tablename__ = "sub_master_options"
    __table_args__ = (
        db.UniqueConstraint("master_id", "parent_id", "name", name="uq_sub_master_options_master_parent_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    master_id = db.Column(db.Integer, db.ForeignKey("master_options.id"), nullable=False, index=True)
    master_type = db.Column(db.String(32), nullable=False, index=True)
    parent_id = db.Column(db.Integer, db.ForeignKey("sub_master_options.id"), nullable=True, index=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.String(500), nullable=False, default="")
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    master = db.relationship("MasterOption", backref=db.backref("sub_masters", lazy=True))
    parent = db.relationship("SubMasterOption", remote_side=[id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "master_id": self.master_id,
            "master_type": self.master_type,
            "parent_id": self.parent_id,
            "name": self.name,
            "description": self.description,
            "sort_order": self.sort_order,
        }


class Product(db.Model):
    """
    Sellable product.

    price_cents is the live price snapshotted into order lines at checkout.
    Variants (configurations) may carry their own price and stock.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_active", "category", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=False, default="")
    condition = db.Column(db.String(64), nullable=False, default="")
    image_url = db.Column(db.String(512), nullable=False, default="")

    # Authoritative storage in minor units (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False)

    company_id = db.Column(db.Integer, db.ForeignKey("master_options.id"), nullable=True, index=True)
    company_submaster_id = db.Column(db.Integer, db.ForeignKey("sub_master_options.id"), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self, include_variants: bool = False) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "condition": self.condition,
            "image_url": self.image_url,
            "price_cents": self.price_cents,
            "company_id": self.company_id,
            "company_submaster_id": self.company_submaster_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_variants:
            data["variants"] = [v.to_dict() for v in self.variants]
        return data


class Variant(db.Model):
    """
    Purchasable configuration of a product, and the unit of inventory.

    INVARIANT: in_stock is False whenever stock == 0 (see inventory_service.derive_stock_state).
    """
    __tablename__ = "variants"
    __table_args__ = (
        db.UniqueConstraint("product_id", "label", name="uq_variants_product_label"),
        db.CheckConstraint("stock >= 0", name="ck_variants_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    label = db.Column(db.String(255), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    color = db.Column(db.String(64), nullable=False, default="")
    is_default = db.Column(db.Boolean, nullable=False, default=False)

    stock = db.Column(db.Integer, nullable=False, default=0)
    in_stock = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    product = db.relationship("Product", backref=db.backref("variants", lazy=True, order_by="Variant.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "label": self.label,
            "price_cents": self.price_cents,
            "color": self.color,
            "is_default": self.is_default,
            "stock": self.stock,
            "in_stock": self.in_stock,
        }
