from __future__ import annotations

from ..extensions import db
from duka.time_utils import utcnow


class Product(db.Model):
    """
    Product as seen by the till.

    Owned by the catalogue collaborator; the engine only reads it for the
    selling price floor and the stock captured when a line is added.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_location_active", "location_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, nullable=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    barcode = db.Column(db.String(64), nullable=True, index=True)

    # Authoritative storage in cents
    selling_price_cents = db.Column(db.Integer, nullable=False)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} location_id={self.location_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location_id": self.location_id,
            "name": self.name,
            "barcode": self.barcode,
            "selling_price_cents": self.selling_price_cents,
            "stock_quantity": self.stock_quantity,
            "is_active": self.is_active,
            "created_at": self.created_at,
        }
