from __future__ import annotations

from dataclasses import dataclass, asdict
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from ..extensions import db
from ..models import StoreSetting
from ..validation import ValidationError, parse_number


SETTINGS_KEY = "store"

MAX_GST_RATE = 100


@dataclass(frozen=True)
class StoreSettings:
    gst_enabled: bool = True
    gst_rate: Decimal = Decimal("18")
    shipping_enabled: bool = False
    shipping_amount_cents: int = 0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["gst_rate"] = float(self.gst_rate)
        return data


DEFAULT_SETTINGS = StoreSettings()


@dataclass(frozen=True)
class OrderTotals:
    subtotal_cents: int
    tax_cents: int
    shipping_cents: int
    total_cents: int


def _from_row(row: StoreSetting) -> StoreSettings:
    return StoreSettings(
        gst_enabled=bool(row.gst_enabled),
        gst_rate=_clamp_rate(Decimal(str(row.gst_rate))),
        shipping_enabled=bool(row.shipping_enabled),
        shipping_amount_cents=max(0, int(row.shipping_amount_cents or 0)),
    )


def _clamp_rate(rate: Decimal) -> Decimal:
    return min(Decimal(MAX_GST_RATE), max(Decimal(0), rate))


def get_store_settings() -> StoreSettings:
    """Current pricing settings, or defaults when none were ever saved."""
    row = db.session.query(StoreSetting).filter_by(key=SETTINGS_KEY).first()
    if row is None:
        return DEFAULT_SETTINGS
    return _from_row(row)


def _parse_bool(value: Any, name: str) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(f"{name} must be a boolean", fields={name: [f"{name} must be a boolean"]})
    return value


def update_store_settings(patch: dict, user_id: int | None = None) -> StoreSettings:
    """
    Validate and upsert store settings.

    Unknown keys are rejected. Omitted keys keep their current value.
    gst_rate must lie in [0, 100]; shipping_amount_cents must be >= 0.
    """
    if not isinstance(patch, dict):
        raise ValidationError("Invalid JSON payload")

    allowed = {"gst_enabled", "gst_rate", "shipping_enabled", "shipping_amount_cents"}
    unknown = sorted(set(patch) - allowed)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    current = get_store_settings()
    values = asdict(current)

    if "gst_enabled" in patch:
        values["gst_enabled"] = _parse_bool(patch["gst_enabled"], "gst_enabled")
    if "shipping_enabled" in patch:
        values["shipping_enabled"] = _parse_bool(patch["shipping_enabled"], "shipping_enabled")
    if "gst_rate" in patch:
        rate = parse_number(patch["gst_rate"], "gst_rate", minimum=0, maximum=MAX_GST_RATE)
        values["gst_rate"] = Decimal(str(rate)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    if "shipping_amount_cents" in patch:
        amount = parse_number(patch["shipping_amount_cents"], "shipping_amount_cents", minimum=0)
        if int(amount) != amount:
            raise ValidationError("shipping_amount_cents must be an integer")
        values["shipping_amount_cents"] = int(amount)

    row = db.session.query(StoreSetting).filter_by(key=SETTINGS_KEY).first()
    if row is None:
        row = StoreSetting(key=SETTINGS_KEY)
        db.session.add(row)
    row.gst_enabled = values["gst_enabled"]
    row.gst_rate = values["gst_rate"]
    row.shipping_enabled = values["shipping_enabled"]
    row.shipping_amount_cents = values["shipping_amount_cents"]
    row.updated_by_user_id = user_id
    db.session.commit()

    return _from_row(row)


def compute_totals(subtotal_cents: int, settings: StoreSettings) -> OrderTotals:
    """
    Order totals from a subtotal and the store settings.

    Tax is subtotal * gst_rate / 100, rounded half-up to the minor unit.
    """
    tax_cents = 0
    if settings.gst_enabled:
        tax = Decimal(subtotal_cents) * settings.gst_rate / Decimal(100)
        tax_cents = int(tax.quantize(Decimal(1), rounding=ROUND_HALF_UP))

    shipping_cents = settings.shipping_amount_cents if settings.shipping_enabled else 0

    return OrderTotals(
        subtotal_cents=subtotal_cents,
        tax_cents=tax_cents,
        shipping_cents=shipping_cents,
        total_cents=subtotal_cents + tax_cents + shipping_cents,
    )
