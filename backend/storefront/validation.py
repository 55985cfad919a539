from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any


# Maximum price: 9,999,999.99 in major units
MAX_PRICE_CENTS = 999_999_999

MAX_LINE_QUANTITY = 10

PAYMENT_METHOD_COD = "cod"
PAYMENT_METHOD_RAZORPAY = "razorpay"
PAYMENT_METHODS = (PAYMENT_METHOD_COD, PAYMENT_METHOD_RAZORPAY)

# Names clients use interchangeably for the two payment methods
PAYMENT_METHOD_ALIASES = {
    "cash-on-delivery": PAYMENT_METHOD_COD,
    "online-gateway": PAYMENT_METHOD_RAZORPAY,
}

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ValidationError(ValueError):
    """400-level input problem. `fields` maps field name -> list of messages."""

    def __init__(self, message: str = "Invalid request", fields: dict[str, list[str]] | None = None):
        super().__init__(message)
        self.fields = fields or {}

    def to_dict(self) -> dict:
        body: dict[str, Any] = {"error": str(self)}
        if self.fields:
            body["fields"] = self.fields
        return body


class ConflictError(ValueError):
    """409-level business rule conflict (duplicate key, insufficient stock)."""


class NotFoundError(LookupError):
    """404-level missing entity."""


@dataclass
class CheckoutItem:
    product_id: int
    quantity: int
    variant_id: int | None = None
    color: str | None = None


@dataclass
class CheckoutPayload:
    customer_name: str
    customer_email: str
    customer_phone: str
    address_line1: str
    city: str
    state: str
    postal_code: str
    payment_method: str
    items: list[CheckoutItem]
    address_line2: str = ""
    country: str = "India"
    notes: str = ""


@dataclass
class _FieldErrors:
    errors: dict[str, list[str]] = field(default_factory=dict)

    def add(self, name: str, message: str) -> None:
        self.errors.setdefault(name, []).append(message)

    def raise_if_any(self, message: str = "Invalid request") -> None:
        if self.errors:
            raise ValidationError(message, fields=self.errors)


def _text(data: dict, key: str, errors: _FieldErrors, *, min_len: int = 0, max_len: int | None = None,
          message: str | None = None, default: str | None = None) -> str:
    raw = data.get(key)
    if raw is None and default is not None:
        return default
    if raw is None or not isinstance(raw, str):
        errors.add(key, message or f"{key} is required")
        return ""
    value = raw.strip()
    if len(value) < min_len or (max_len is not None and len(value) > max_len):
        errors.add(key, message or f"{key} is invalid")
    return value


def parse_id(value: Any, name: str = "id") -> int:
    """Coerce a JSON or path identifier to a positive int."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {name}")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
    else:
        raise ValidationError(f"Invalid {name}")
    if parsed <= 0:
        raise ValidationError(f"Invalid {name}")
    return parsed


def normalize_payment_method(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    method = value.strip().lower()
    method = PAYMENT_METHOD_ALIASES.get(method, method)
    return method if method in PAYMENT_METHODS else None


def _parse_items(raw_items: Any, errors: _FieldErrors) -> list[CheckoutItem]:
    if not isinstance(raw_items, list) or not raw_items:
        errors.add("items", "Your cart is empty")
        return []

    items: list[CheckoutItem] = []
    for index, raw in enumerate(raw_items):
        prefix = f"items.{index}"
        if not isinstance(raw, dict):
            errors.add(prefix, "Invalid cart item")
            continue

        product_raw = raw.get("productId", raw.get("product_id"))
        try:
            product_id = parse_id(product_raw, "productId")
        except ValidationError:
            errors.add(f"{prefix}.productId", "Product is required")
            continue

        variant_raw = raw.get("variantId", raw.get("variant_id"))
        variant_id = None
        if variant_raw not in (None, ""):
            try:
                variant_id = parse_id(variant_raw, "variantId")
            except ValidationError:
                errors.add(f"{prefix}.variantId", "Invalid variant")
                continue

        quantity = raw.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            errors.add(f"{prefix}.quantity", "Quantity must be a whole number")
            continue
        if quantity < 1 or quantity > MAX_LINE_QUANTITY:
            errors.add(f"{prefix}.quantity", f"Quantity must be between 1 and {MAX_LINE_QUANTITY}")
            continue

        color = raw.get("color")
        color = color.strip() if isinstance(color, str) and color.strip() else None

        items.append(CheckoutItem(product_id=product_id, quantity=quantity, variant_id=variant_id, color=color))
    return items


def validate_checkout_payload(data: Any) -> CheckoutPayload:
    """
    Validate a checkout submission and collect every field error at once.

    Accepts camelCase keys as sent by the storefront client.
    """
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    errors = _FieldErrors()

    customer_name = _text(data, "customerName", errors, min_len=2, max_len=120, message="Enter your full name")
    customer_email = _text(data, "customerEmail", errors, max_len=255, message="Enter a valid email").lower()
    if customer_email and not EMAIL_RE.match(customer_email):
        errors.add("customerEmail", "Enter a valid email")
    customer_phone = _text(data, "customerPhone", errors, min_len=10, max_len=20, message="Enter a valid phone number")
    address_line1 = _text(data, "addressLine1", errors, min_len=3, max_len=255, message="Address line 1 is required")
    address_line2 = _text(data, "addressLine2", errors, max_len=255, default="")
    city = _text(data, "city", errors, min_len=2, max_len=120, message="City is required")
    state = _text(data, "state", errors, min_len=2, max_len=120, message="State is required")
    postal_code = _text(data, "postalCode", errors, min_len=4, max_len=10, message="Enter a valid postal code")
    country = _text(data, "country", errors, min_len=2, max_len=64, message="Country is required", default="India")
    notes = _text(data, "notes", errors, max_len=1000, default="")

    payment_method = normalize_payment_method(data.get("paymentMethod"))
    if payment_method is None:
        errors.add("paymentMethod", f"Payment method must be one of {', '.join(PAYMENT_METHODS)}")

    items = _parse_items(data.get("items"), errors)

    errors.raise_if_any()

    return CheckoutPayload(
        customer_name=customer_name,
        customer_email=customer_email,
        customer_phone=customer_phone,
        address_line1=address_line1,
        address_line2=address_line2,
        city=city,
        state=state,
        postal_code=postal_code,
        country=country,
        notes=notes,
        payment_method=payment_method,
        items=items,
    )


def validate_payment_verification_payload(data: Any) -> dict:
    """Validate the gateway callback triple plus the local order id."""
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    errors = _FieldErrors()
    try:
        order_id = parse_id(data.get("orderId"), "orderId")
    except ValidationError:
        order_id = None
        errors.add("orderId", "Order id is required")
    razorpay_order_id = _text(data, "razorpayOrderId", errors, min_len=1, message="Razorpay order id is required")
    razorpay_payment_id = _text(data, "razorpayPaymentId", errors, min_len=1, message="Payment id is required")
    razorpay_signature = _text(data, "razorpaySignature", errors, min_len=1, message="Signature is required")
    errors.raise_if_any()

    return {
        "order_id": order_id,
        "razorpay_order_id": razorpay_order_id,
        "razorpay_payment_id": razorpay_payment_id,
        "razorpay_signature": razorpay_signature,
    }


def parse_number(value: Any, name: str, *, minimum: float | None = None, maximum: float | None = None) -> float:
    """
    Accept a JSON number or numeric string; reject booleans, NaN and infinities.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{name} must be a number")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be a number")
        try:
            value = float(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be a number")
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValidationError(f"{name} must be a number")
    if minimum is not None and value < minimum:
        raise ValidationError(f"{name} must be >= {minimum:g}")
    if maximum is not None and value > maximum:
        raise ValidationError(f"{name} must be <= {maximum:g}")
    return value


def enforce_price_cents(price: Any, name: str = "price_cents") -> int:
    if isinstance(price, bool) or not isinstance(price, int):
        raise ValidationError(f"{name} must be an integer")
    if price < 0:
        raise ValidationError(f"{name} must be >= 0")
    if price > MAX_PRICE_CENTS:
        raise ValidationError(f"{name} cannot exceed {MAX_PRICE_CENTS}")
    return price
