# Overview: Store settings lookup (tax rate, discount cap, receipt identity).

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping

from flask import current_app

from ..errors import StoreError
from .record_store import RecordStore, first

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreProfile:
    location_id: int | None
    store_name: str
    store_address: str
    store_phone: str
    currency: str
    tax_rate: Decimal  # fraction, 0.16 for 16%
    discount_cap_percent: int
    low_stock_threshold: int
    receipt_footer: str

    @property
    def tax_percent(self) -> int:
        return int((self.tax_rate * 100).to_integral_value())

    def to_dict(self) -> dict:
        return {
            "location_id": self.location_id,
            "store_name": self.store_name,
            "store_address": self.store_address,
            "store_phone": self.store_phone,
            "currency": self.currency,
            "tax_rate": str(self.tax_rate),
            "tax_percent": self.tax_percent,
            "discount_cap_percent": self.discount_cap_percent,
            "low_stock_threshold": self.low_stock_threshold,
            "receipt_footer": self.receipt_footer,
        }


def percent_to_rate(percent) -> Decimal:
    """Stored tax is a percentage (16); pricing uses the fraction (0.16)."""
    if percent is None:
        return Decimal("0")
    value = Decimal(str(percent))
    if value < 0:
        return Decimal("0")
    return value / Decimal(100)


def default_profile(location_id: int | None = None, config: Mapping | None = None) -> StoreProfile:
    config = config if config is not None else current_app.config
    return StoreProfile(
        location_id=location_id,
        store_name=config.get("DEFAULT_STORE_NAME", "My Shop"),
        store_address="",
        store_phone="",
        currency="KES",
        tax_rate=percent_to_rate(config.get("DEFAULT_TAX_RATE_PERCENT", 0)),
        discount_cap_percent=int(config.get("DISCOUNT_CAP_PERCENT", 30)),
        low_stock_threshold=int(config.get("LOW_STOCK_THRESHOLD", 5)),
        receipt_footer=config.get("RECEIPT_FOOTER", "Thank you for your business!"),
    )


def load_store_settings(store: RecordStore, location_id: int | None, config: Mapping | None = None) -> StoreProfile:
    """
    Resolve settings for a location.

    Falls back to any settings row when the location has none, and to the
    configured defaults when the table is empty or unreadable. A failing
    read never blocks a sale; it only means zero tax until settings load.
    """
    defaults = default_profile(location_id, config)

    try:
        row = None
        if location_id is not None:
            row = first(store.query("store_settings", {"location_id": location_id}, limit=1))
        if row is None:
            row = first(store.query("store_settings", limit=1))
    except StoreError as exc:
        logger.warning("Could not load store settings for location %s: %s", location_id, exc)
        return defaults

    if row is None:
        return defaults

    cap = row.get("discount_cap_percent")
    return StoreProfile(
        location_id=location_id,
        store_name=row.get("store_name") or defaults.store_name,
        store_address=row.get("store_address") or "",
        store_phone=row.get("store_phone") or "",
        currency=row.get("currency") or defaults.currency,
        tax_rate=percent_to_rate(row.get("tax_rate")),
        discount_cap_percent=cap if cap is not None else defaults.discount_cap_percent,
        low_stock_threshold=row.get("low_stock_threshold") or defaults.low_stock_threshold,
        receipt_footer=row.get("receipt_footer") or defaults.receipt_footer,
    )
