from __future__ import annotations

from ..extensions import db
from duka.time_utils import utcnow


class CashRegister(db.Model):
    """
    Cashier shift / cash drawer session.

    WHY: Cashier accountability. Each shift has an opening float and a
    closing count; close computes the expected cash and the variance.

    LIFECYCLE:
    - open: shift is active, sales are attributed to it by time window
    - closed: terminal, per-method totals and variance are frozen

    IMMUTABLE: Once closed, a session is never reopened or modified.
    """
    __tablename__ = "cash_registers"
    __table_args__ = (
        db.Index("ix_cash_registers_cashier_status", "cashier_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, nullable=True, index=True)
    cashier_id = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="open", index=True)  # open, closed

    # Cash tracking (all amounts in cents)
    opening_cents = db.Column(db.Integer, nullable=False, default=0)
    closing_cents = db.Column(db.Integer, nullable=True)
    expected_cents = db.Column(db.Integer, nullable=True)  # opening + net cash sales
    variance_cents = db.Column(db.Integer, nullable=True)  # closing - expected

    # Per-method totals frozen at close
    cash_sales_cents = db.Column(db.Integer, nullable=True)
    card_sales_cents = db.Column(db.Integer, nullable=True)
    mobile_money_sales_cents = db.Column(db.Integer, nullable=True)
    credit_sales_cents = db.Column(db.Integer, nullable=True)
    total_sales_cents = db.Column(db.Integer, nullable=True)
    transaction_count = db.Column(db.Integer, nullable=True)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location_id": self.location_id,
            "cashier_id": self.cashier_id,
            "status": self.status,
            "opening_cents": self.opening_cents,
            "closing_cents": self.closing_cents,
            "expected_cents": self.expected_cents,
            "variance_cents": self.variance_cents,
            "cash_sales_cents": self.cash_sales_cents,
            "card_sales_cents": self.card_sales_cents,
            "mobile_money_sales_cents": self.mobile_money_sales_cents,
            "credit_sales_cents": self.credit_sales_cents,
            "total_sales_cents": self.total_sales_cents,
            "transaction_count": self.transaction_count,
            "opened_at": self.opened_at,
            "closed_at": self.closed_at,
            "notes": self.notes,
        }
