from __future__ import annotations

from ..extensions import db
from duka.time_utils import utcnow


class Sale(db.Model):
    """
    Committed sale header.

    WHY: The header is written first by the commit protocol; items and
    payments reference it. Immutable once the commit completes.

    payment_method holds the single tender name, or "split" when more than
    one tender carried a non-zero amount.
    """
    __tablename__ = "sales"
    __table_args__ = (
        # Shift close aggregates by cashier over a time window
        db.Index("ix_sales_cashier_created", "cashier_id", "created_at"),
        db.Index("ix_sales_location_created", "location_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, nullable=True, index=True)
    cashier_id = db.Column(db.Integer, nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    # All amounts in cents
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    payment_method = db.Column(db.String(16), nullable=False, index=True)  # cash, card, mobile_money, credit, split
    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    change_given_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location_id": self.location_id,
            "cashier_id": self.cashier_id,
            "customer_id": self.customer_id,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "amount_paid_cents": self.amount_paid_cents,
            "change_given_cents": self.change_given_cents,
            "created_at": self.created_at,
        }


class SaleItem(db.Model):
    """Line snapshot of a sale (name and price as sold, not as currently listed)."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, nullable=False)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
        }


class SalePayment(db.Model):
    """
    One tender applied to a sale.

    Split payments produce one row per method. Amounts are as tendered,
    so the cash row may include change handed back (see Sale.change_given_cents).
    """
    __tablename__ = "sale_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    method = db.Column(db.String(16), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "method": self.method,
            "amount_cents": self.amount_cents,
        }
