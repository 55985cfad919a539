from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class StoreSetting(db.Model):
    """
    Store-wide pricing settings (single row, key="store").

    Read by checkout to compute tax and shipping.
    """
    __tablename__ = "store_settings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(32), nullable=False, unique=True, default="store")

    gst_enabled = db.Column(db.Boolean, nullable=False, default=True)
    gst_rate = db.Column(db.Numeric(5, 2), nullable=False, default=18)  # percentage, 0-100
    shipping_enabled = db.Column(db.Boolean, nullable=False, default=False)
    shipping_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    def to_dict(self) -> dict:
        return {
            "gst_enabled": self.gst_enabled,
            "gst_rate": float(self.gst_rate),
            "shipping_enabled": self.shipping_enabled,
            "shipping_amount_cents": self.shipping_amount_cents,
            "updated_at": to_utc_z(self.updated_at),
        }
