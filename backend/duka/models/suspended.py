from __future__ import annotations

from ..extensions import db
from duka.time_utils import utcnow


class SuspendedOrder(db.Model):
    """Held cart for one cashier. Deleted when resumed."""
    __tablename__ = "suspended_orders"
    __table_args__ = (
        db.Index("ix_suspended_orders_cashier_created", "cashier_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, nullable=True)
    cashier_id = db.Column(db.Integer, nullable=False)
    label = db.Column(db.String(128), nullable=True)

    # JSON list of cart line snapshots
    cart_data = db.Column(db.JSON, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location_id": self.location_id,
            "cashier_id": self.cashier_id,
            "label": self.label,
            "cart_data": self.cart_data,
            "created_at": self.created_at,
        }
