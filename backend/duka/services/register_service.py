"""
Register and Shift Management Service

WHY: Track cashier shifts and cash accountability. A shift opens with a
float, collects sales, and closes with a physical count compared against
what the drawer should hold.

DESIGN PRINCIPLES:
- One open session per cashier at a time
- Sessions are immutable once closed, never reopened
- Sales are attributed to a shift by cashier and time window
- Variance tracking (expected vs counted cash)
- Close hands back the summary and the terminal state together, so the
  caller never sees "no open register" before it has the summary
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from ..errors import AlreadyOpenError, NotOpenError, StoreError, ValidationError
from ..time_utils import to_utc_z, utcnow
from .payment_service import METHOD_CASH, PAYMENT_METHODS
from .record_store import RecordStore, first
from .session_context import CashierSession, OpenRegister

logger = logging.getLogger(__name__)


STATUS_OPEN = "open"
STATUS_CLOSED = "closed"

VARIANCE_BALANCED = "balanced"
VARIANCE_OVERAGE = "overage"
VARIANCE_SHORTAGE = "shortage"


@dataclass
class ShiftSummary:
    register_id: int
    cashier_id: int
    opening_cents: int
    opened_at: datetime
    method_totals: dict[str, int]
    total_sales_cents: int
    transaction_count: int
    expected_cents: int

    @property
    def cash_sales_cents(self) -> int:
        return self.method_totals.get(METHOD_CASH, 0)

    def to_dict(self) -> dict:
        return {
            "register_id": self.register_id,
            "cashier_id": self.cashier_id,
            "opening_cents": self.opening_cents,
            "opened_at": to_utc_z(self.opened_at),
            "method_totals": dict(self.method_totals),
            "total_sales_cents": self.total_sales_cents,
            "transaction_count": self.transaction_count,
            "expected_cents": self.expected_cents,
        }


@dataclass
class ShiftCloseResult:
    register: dict
    summary: ShiftSummary
    closing_cents: int
    variance_cents: int

    @property
    def variance_status(self) -> str:
        return variance_status(self.variance_cents)

    def to_dict(self) -> dict:
        register = dict(self.register)
        for key in ("opened_at", "closed_at"):
            register[key] = to_utc_z(register.get(key))
        return {
            "register": register,
            "summary": self.summary.to_dict(),
            "closing_cents": self.closing_cents,
            "variance_cents": self.variance_cents,
            "variance_status": self.variance_status,
        }


def variance_status(variance_cents: int) -> str:
    if variance_cents == 0:
        return VARIANCE_BALANCED
    return VARIANCE_OVERAGE if variance_cents > 0 else VARIANCE_SHORTAGE


# =============================================================================
# SHIFT MANAGEMENT
# =============================================================================

def _find_open_row(store: RecordStore, cashier_id: int) -> dict | None:
    return first(store.query(
        "cash_registers",
        {"cashier_id": cashier_id, "status": STATUS_OPEN},
        order_by="opened_at",
        descending=True,
        limit=1,
    ))


def open_register(
    session: CashierSession,
    store: RecordStore,
    opening_cents: int,
    notes: str | None = None,
) -> dict:
    """
    Open a shift for the session's cashier.

    Raises:
        AlreadyOpenError: the cashier already has an open shift (local or persisted)
        ValidationError: negative float
    """
    if opening_cents is None or opening_cents < 0:
        raise ValidationError("Opening amount cannot be negative")

    if session.register is not None:
        raise AlreadyOpenError(session.register.register_id)

    existing = _find_open_row(store, session.cashier_id)
    if existing:
        raise AlreadyOpenError(existing["id"])

    opened_at = utcnow()
    register_id = store.insert("cash_registers", {
        "location_id": session.location_id,
        "cashier_id": session.cashier_id,
        "status": STATUS_OPEN,
        "opening_cents": opening_cents,
        "opened_at": opened_at,
        "notes": notes or None,
    })

    session.register = OpenRegister(register_id, opening_cents, opened_at)
    logger.info("Register %s opened by cashier %s with float %d", register_id, session.cashier_id, opening_cents)

    return store.get("cash_registers", register_id)


def restore_open_register(session: CashierSession, store: RecordStore) -> dict | None:
    """Reload a persisted open shift into the session (e.g. after a restart)."""
    row = _find_open_row(store, session.cashier_id)
    if row is None:
        session.register = None
        return None
    session.register = OpenRegister(row["id"], row["opening_cents"], row["opened_at"])
    return row


def require_open_register(session: CashierSession, store: RecordStore) -> OpenRegister:
    """
    The session's open shift, reloading a persisted one first if the
    session has none.

    Raises:
        NotOpenError: no open shift locally or in the store
    """
    if session.register is None:
        restore_open_register(session, store)
    if session.register is None:
        raise NotOpenError()
    return session.register


def compute_shift_summary(
    store: RecordStore,
    *,
    register_id: int,
    cashier_id: int,
    opening_cents: int,
    opened_at: datetime,
) -> ShiftSummary:
    """
    Aggregate a cashier's sales since opened_at by payment method.

    A sale with payment rows contributes each row to its method; a sale
    without rows falls back to its whole total under its payment_method.
    Change handed back comes out of the drawer, so it is netted from cash.
    """
    sales = store.query(
        "sales",
        {"cashier_id": cashier_id, "created_at__gte": opened_at},
        order_by="created_at",
    )

    payments_by_sale: dict[int, list[dict]] = {}
    if sales:
        rows = store.query("sale_payments", {"sale_id__in": [s["id"] for s in sales]})
        for row in rows:
            payments_by_sale.setdefault(row["sale_id"], []).append(row)

    totals = {method: 0 for method in PAYMENT_METHODS}
    for sale in sales:
        rows = payments_by_sale.get(sale["id"])
        if rows:
            for row in rows:
                totals[row["method"]] = totals.get(row["method"], 0) + row["amount_cents"]
            totals[METHOD_CASH] -= sale.get("change_given_cents") or 0
        elif sale["payment_method"] in totals:
            totals[sale["payment_method"]] += sale["total_cents"]
        else:
            logger.warning("Sale %s has no payment rows and label %r; left out of method totals",
                           sale["id"], sale["payment_method"])

    return ShiftSummary(
        register_id=register_id,
        cashier_id=cashier_id,
        opening_cents=opening_cents,
        opened_at=opened_at,
        method_totals=totals,
        total_sales_cents=sum(s["total_cents"] for s in sales),
        transaction_count=len(sales),
        expected_cents=opening_cents + totals[METHOD_CASH],
    )


def shift_summary(session: CashierSession, store: RecordStore) -> ShiftSummary:
    """Current totals for the open shift. Safe to call repeatedly to refresh."""
    reg = require_open_register(session, store)
    return compute_shift_summary(
        store,
        register_id=reg.register_id,
        cashier_id=session.cashier_id,
        opening_cents=reg.opening_cents,
        opened_at=reg.opened_at,
    )


def close_register(
    session: CashierSession,
    store: RecordStore,
    closing_cents: int,
    notes: str | None = None,
) -> ShiftCloseResult:
    """
    Close the cashier's shift and calculate cash variance.

    IMMUTABLE: Once closed, the session cannot be reopened or modified.

    The local open state is cleared only after the closed row is written and
    the result (summary included) is built; a failed write leaves the shift
    open so the cashier can retry.

    Raises:
        NotOpenError: no open shift
        ValidationError: negative count
        StoreError: write failed, shift still open
    """
    if closing_cents is None or closing_cents < 0:
        raise ValidationError("Closing amount cannot be negative")

    reg = require_open_register(session, store)
    row = store.get("cash_registers", reg.register_id)
    if row is None or row["status"] != STATUS_OPEN:
        session.register = None
        raise NotOpenError()

    summary = shift_summary(session, store)
    variance = closing_cents - summary.expected_cents
    totals = summary.method_totals

    try:
        closed = store.update("cash_registers", reg.register_id, {
            "status": STATUS_CLOSED,
            "closed_at": utcnow(),
            "closing_cents": closing_cents,
            "expected_cents": summary.expected_cents,
            "variance_cents": variance,
            "cash_sales_cents": totals.get("cash", 0),
            "card_sales_cents": totals.get("card", 0),
            "mobile_money_sales_cents": totals.get("mobile_money", 0),
            "credit_sales_cents": totals.get("credit", 0),
            "total_sales_cents": summary.total_sales_cents,
            "transaction_count": summary.transaction_count,
            "notes": notes or row.get("notes"),
        })
    except StoreError:
        logger.warning("Closing register %s failed; shift stays open", reg.register_id)
        raise

    result = ShiftCloseResult(
        register=closed,
        summary=summary,
        closing_cents=closing_cents,
        variance_cents=variance,
    )
    session.register = None

    logger.info("Register %s closed: expected %d, counted %d, variance %d (%s)",
                reg.register_id, summary.expected_cents, closing_cents, variance, result.variance_status)
    return result


# =============================================================================
# REPORTING
# =============================================================================

def list_sessions(
    store: RecordStore,
    cashier_id: int | None = None,
    status: str | None = None,
    limit: int = 20,
) -> list[dict]:
    filters = {}
    if cashier_id is not None:
        filters["cashier_id"] = cashier_id
    if status:
        filters["status"] = status
    return store.query("cash_registers", filters, order_by="opened_at", descending=True, limit=limit)
