from __future__ import annotations

from ..extensions import db
from duka.time_utils import utcnow


class Customer(db.Model):
    """
    Customer with a running credit balance.

    WHY: Credit sales push the unpaid portion onto outstanding_balance_cents;
    debt collection pulls it back down. The balance never goes below zero.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_location_name", "location_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, nullable=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)

    credit_limit_cents = db.Column(db.Integer, nullable=False, default=0)
    outstanding_balance_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location_id": self.location_id,
            "name": self.name,
            "phone": self.phone,
            "credit_limit_cents": self.credit_limit_cents,
            "outstanding_balance_cents": self.outstanding_balance_cents,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class CustomerPayment(db.Model):
    """
    Debt collection record.

    IMMUTABLE: One row per collection; the customer's balance is decremented
    by amount_cents when the row is written.
    """
    __tablename__ = "customer_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, nullable=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "location_id": self.location_id,
            "amount_cents": self.amount_cents,
            "notes": self.notes,
            "created_at": self.created_at,
        }
