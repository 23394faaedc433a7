# Overview: Held-order queue; park a cart and bring it back later.

from __future__ import annotations

import logging

from ..errors import NotFoundError, StoreError
from ..time_utils import shift_label, utcnow
from .cart_service import CartLine
from .record_store import RecordStore
from .session_context import CashierSession

logger = logging.getLogger(__name__)


def suspend_order(session: CashierSession, store: RecordStore, label: str | None = None) -> dict | None:
    """
    Park the current cart and start a fresh one.

    An empty cart is a no-op (returns None). The cart is cleared only after
    the snapshot has been stored.
    """
    if session.cart.is_empty():
        return None

    now = utcnow()
    order_id = store.insert("suspended_orders", {
        "location_id": session.location_id,
        "cashier_id": session.cashier_id,
        "label": label or f"Order {shift_label(now)}",
        "cart_data": session.cart.snapshot(),
        "created_at": now,
    })
    session.reset_transaction()

    logger.info("Cashier %s suspended order %s", session.cashier_id, order_id)
    return store.get("suspended_orders", order_id)


def list_suspended(session: CashierSession, store: RecordStore) -> list[dict]:
    """This cashier's held orders, newest first."""
    return store.query(
        "suspended_orders",
        {"cashier_id": session.cashier_id},
        order_by="created_at",
        descending=True,
    )


def resume_order(session: CashierSession, store: RecordStore, order_id: int) -> dict:
    """
    Load a held order back into the cart, then delete it.

    Lines go through the cart's normal add(), so they merge with anything
    already in the cart. If the delete fails the resume still stands; the
    leftover record is a harmless duplicate and is only logged.

    Raises:
        NotFoundError: no such order for this cashier
    """
    order = store.get("suspended_orders", order_id)
    if order is None or order["cashier_id"] != session.cashier_id:
        raise NotFoundError(f"Suspended order {order_id} not found")

    lines = [CartLine.from_dict(data) for data in order["cart_data"] or []]
    for line in lines:
        session.cart.add(line)

    try:
        store.delete("suspended_orders", order_id)
    except StoreError as exc:
        logger.warning("Resumed order %s but could not delete it: %s", order_id, exc)

    logger.info("Cashier %s resumed order %s (%d lines)", session.cashier_id, order_id, len(lines))
    return order
