# Overview: Service-layer operations for inventory; per-variant stock and the in-stock flag.

"""
Inventory Service

WHY: The variant is the unit of inventory. Staff set stock counts by hand and
checkout decrements them; both paths go through derive_stock_state so the
in_stock flag can never say "purchasable" for a zero-stock variant.

RULES:
- stock is clamped to max(0, floor(stock))
- in_stock is False whenever clamped stock == 0, regardless of caller input
- otherwise in_stock is the caller's explicit override, or True
"""

from __future__ import annotations

import math
from typing import Any

from ..extensions import db
from ..models import Product, Variant
from ..validation import ValidationError, ConflictError, NotFoundError


STOCK_ERROR = "Stock must be a non-negative number"


def derive_stock_state(stock: float, in_stock_override: bool | None = None) -> tuple[int, bool]:
    """
    Pure stock/in-stock derivation.

    Returns (clamped_stock, in_stock).
    """
    clamped = max(0, math.floor(stock))
    if clamped == 0:
        return 0, False
    if in_stock_override is None:
        return clamped, True
    return clamped, bool(in_stock_override)


def parse_stock_value(value: Any) -> float:
    """Accept a JSON number or numeric string; reject booleans, NaN, infinities and negatives."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(STOCK_ERROR, fields={"stock": [STOCK_ERROR]})
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            raise ValidationError(STOCK_ERROR, fields={"stock": [STOCK_ERROR]})
    if not isinstance(value, (int, float)) or not math.isfinite(value) or value < 0:
        raise ValidationError(STOCK_ERROR, fields={"stock": [STOCK_ERROR]})
    return value


def parse_stock_payload(payload: Any) -> tuple[float, bool | None]:
    """
    Parse an inventory PATCH body.

    Returns (stock, in_stock_override). The override is honoured only when
    it is a JSON boolean; anything else is treated as "not supplied".
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    stock = parse_stock_value(payload.get("stock"))

    override = payload.get("inStock", payload.get("in_stock"))
    if not isinstance(override, bool):
        override = None

    return stock, override


def adjust_variant_stock(variant_id: int, stock: float, in_stock_override: bool | None = None) -> Variant:
    """
    Set a variant's stock count by hand.

    Raises:
        NotFoundError: unknown variant
    """
    variant = db.session.get(Variant, variant_id)
    if variant is None:
        raise NotFoundError("Variant not found")

    variant.stock, variant.in_stock = derive_stock_state(stock, in_stock_override)
    db.session.commit()
    return variant


def reserve_stock(variant: Variant, quantity: int) -> None:
    """
    Decrement stock for a checkout line. Does not commit; the caller's
    unit of work owns the transaction.

    Raises:
        ConflictError: variant not purchasable or not enough units
    """
    if not variant.in_stock or variant.stock < quantity:
        raise ConflictError(f"Insufficient stock for {variant.label}")

    # Keep the operator's in_stock choice unless the decrement empties the variant
    variant.stock, variant.in_stock = derive_stock_state(variant.stock - quantity, variant.in_stock)


def list_inventory() -> list[dict]:
    """All variants with their product name, for the admin stock table."""
    rows = (
        db.session.query(Variant, Product)
        .join(Product, Variant.product_id == Product.id)
        .order_by(Product.name.asc(), Variant.label.asc())
        .all()
    )
    result = []
    for variant, product in rows:
        data = variant.to_dict()
        data["product_name"] = product.name
        data["product_is_active"] = product.is_active
        result.append(data)
    return result
