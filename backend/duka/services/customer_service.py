# Overview: Customer credit balance: selection, credit sales and debt collection.

"""
Customer Credit

WHY: A credit sale leaves part of the total owed by the customer. The
commit protocol pushes that amount onto outstanding_balance_cents; the
collection action here pulls it back down when the customer pays.

INVARIANT: outstanding_balance_cents >= 0. A collection larger than the
balance is clamped to the balance.
"""

from __future__ import annotations

import logging

from ..errors import NotFoundError, StoreError, ValidationError
from ..time_utils import utcnow
from .record_store import RecordStore
from .session_context import CashierSession

logger = logging.getLogger(__name__)


def get_customer(store: RecordStore, customer_id: int) -> dict:
    customer = store.get("customers", customer_id)
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def select_customer(session: CashierSession, store: RecordStore, customer_id: int | None) -> dict | None:
    """Attach a customer to the cashier's cart (None clears the selection)."""
    if customer_id is None:
        session.set_customer(None)
        return None
    customer = get_customer(store, customer_id)
    session.set_customer(customer)
    return customer


def exceeds_credit_limit(customer: dict, additional_cents: int = 0) -> bool:
    """True when the balance (plus a pending credit) passes a non-zero limit."""
    limit = customer.get("credit_limit_cents") or 0
    if limit <= 0:
        return False
    return (customer.get("outstanding_balance_cents") or 0) + additional_cents > limit


def add_credit(store: RecordStore, customer_id: int, amount_cents: int) -> tuple[int, int]:
    """
    Increase a customer's balance by a credit sale amount.

    Re-reads the balance from the store rather than trusting the copy held
    in the cart, which may be stale.

    Returns:
        (previous_balance_cents, new_balance_cents)
    """
    customer = get_customer(store, customer_id)
    previous = customer.get("outstanding_balance_cents") or 0
    new_balance = previous + amount_cents
    store.update("customers", customer_id, {"outstanding_balance_cents": new_balance})
    return previous, new_balance


def collect_debt(
    store: RecordStore,
    customer_id: int,
    amount_cents: int,
    notes: str | None = None,
    location_id: int | None = None,
) -> tuple[dict, int]:
    """
    Record a payment against a customer's outstanding balance.

    Returns:
        (updated customer, amount actually applied)

    Raises:
        ValidationError: amount not positive, or nothing is owed
        NotFoundError: customer does not exist
    """
    if amount_cents is None or amount_cents <= 0:
        raise ValidationError("Enter a valid amount")

    customer = get_customer(store, customer_id)
    balance = customer.get("outstanding_balance_cents") or 0
    if balance <= 0:
        raise ValidationError("Customer has no outstanding balance")

    applied = min(amount_cents, balance)

    payment_id = store.insert("customer_payments", {
        "customer_id": customer_id,
        "location_id": location_id if location_id is not None else customer.get("location_id"),
        "amount_cents": applied,
        "notes": notes,
        "created_at": utcnow(),
    })

    try:
        updated = store.update("customers", customer_id, {"outstanding_balance_cents": balance - applied})
    except StoreError as exc:
        logger.warning("Balance update failed for customer %s; removing payment %s", customer_id, payment_id)
        try:
            store.delete("customer_payments", payment_id)
        except StoreError as undo_exc:
            logger.error(
                "Removing payment %s for customer %s failed: %s. Manual reconciliation required",
                payment_id, customer_id, undo_exc,
            )
        raise exc

    logger.info("Collected %d cents from customer %s (balance %d -> %d)",
                applied, customer_id, balance, balance - applied)
    return updated, applied


def list_customer_payments(store: RecordStore, customer_id: int, limit: int = 50) -> list[dict]:
    return store.query(
        "customer_payments",
        {"customer_id": customer_id},
        order_by="created_at",
        descending=True,
        limit=limit,
    )
