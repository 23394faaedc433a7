from __future__ import annotations

from ..extensions import db
from duka.time_utils import utcnow


class StoreSettings(db.Model):
    """
    Per-location store settings.

    tax_rate is a percentage (16 means 16%); the settings service converts
    it to a decimal fraction before any pricing math.
    """
    __tablename__ = "store_settings"
    __table_args__ = (
        db.UniqueConstraint("location_id", name="uq_store_settings_location"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, nullable=True)

    store_name = db.Column(db.String(255), nullable=False)
    store_address = db.Column(db.String(255), nullable=True)
    store_phone = db.Column(db.String(32), nullable=True)
    currency = db.Column(db.String(8), nullable=False, default="KES")

    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    discount_cap_percent = db.Column(db.Integer, nullable=True)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=5)
    receipt_footer = db.Column(db.String(255), nullable=True)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location_id": self.location_id,
            "store_name": self.store_name,
            "store_address": self.store_address,
            "store_phone": self.store_phone,
            "currency": self.currency,
            "tax_rate": self.tax_rate,
            "discount_cap_percent": self.discount_cap_percent,
            "low_stock_threshold": self.low_stock_threshold,
            "receipt_footer": self.receipt_footer,
            "updated_at": self.updated_at,
        }
