# Overview: Sale commit protocol; writes a sale across four record types.

"""
Sale Commit Protocol

WHY: A sale is four kinds of record (header, items, payments, customer
balance) written through a store with no cross-call transaction. The
commit runs them as a saga: each step is its own write, and a failing
step undoes what the earlier steps wrote before the error reaches the
caller.

COMPENSATION TABLE:

    step              on failure                              retry
    ----------------  --------------------------------------  ----------------
    header            nothing written                         same cart
    items             delete header                           same cart
    payments          delete items, header                    same cart
    customer_credit   delete payments, items, header          same cart

If an undo itself fails, SaleCommitError.requires_reconciliation is set
and the leftover record ids are attached; those need an operator.

The cart and payments are only cleared after every step succeeded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from ..errors import (
    BelowFloorError,
    EmptyCartError,
    InsufficientStockError,
    NotFoundError,
    SaleCommitError,
    StoreError,
)
from ..time_utils import to_utc_z, utcnow
from .cart_service import CartLine, CartTotals
from .customer_service import add_credit, exceeds_credit_limit
from .payment_service import PaymentEntry
from .record_store import RecordStore
from .register_service import require_open_register
from .session_context import CashierSession
from .settings_service import StoreProfile

logger = logging.getLogger(__name__)


STEP_HEADER = "header"
STEP_ITEMS = "items"
STEP_PAYMENTS = "payments"
STEP_CUSTOMER_CREDIT = "customer_credit"


# =============================================================================
# RECEIPT PROJECTION
# =============================================================================

@dataclass
class ReceiptItem:
    name: str
    qty: int
    price_cents: int
    total_cents: int


@dataclass
class Receipt:
    """
    Everything the printing collaborator needs, and nothing about layout.
    """
    sale_id: int
    store_name: str
    store_address: str
    store_phone: str
    cashier_id: int
    cashier_name: str | None
    created_at: datetime
    customer_name: str | None
    tax_rate: str
    items: list[ReceiptItem]
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int
    payments: list[dict]
    change_cents: int
    footer: str
    previous_balance_cents: int | None = None
    new_balance_cents: int | None = None

    @property
    def receipt_number(self) -> str:
        return f"SALE-{self.sale_id:08d}"

    def to_dict(self) -> dict:
        return {
            "sale_id": self.sale_id,
            "receipt_number": self.receipt_number,
            "store_name": self.store_name,
            "store_address": self.store_address,
            "store_phone": self.store_phone,
            "cashier_id": self.cashier_id,
            "cashier_name": self.cashier_name,
            "created_at": to_utc_z(self.created_at),
            "customer_name": self.customer_name,
            "tax_rate": self.tax_rate,
            "items": [
                {"name": i.name, "qty": i.qty, "price_cents": i.price_cents, "total_cents": i.total_cents}
                for i in self.items
            ],
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "payments": self.payments,
            "change_cents": self.change_cents,
            "footer": self.footer,
            "previous_balance_cents": self.previous_balance_cents,
            "new_balance_cents": self.new_balance_cents,
        }


@dataclass
class CommitResult:
    sale: dict
    receipt: Receipt
    over_credit_limit: bool = False
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        sale = dict(self.sale)
        sale["created_at"] = to_utc_z(sale.get("created_at"))
        return {
            "sale": sale,
            "receipt": self.receipt.to_dict(),
            "over_credit_limit": self.over_credit_limit,
            "warnings": self.warnings,
        }


def build_receipt(
    sale: dict,
    lines: list[CartLine],
    entries: list[PaymentEntry],
    totals: CartTotals,
    profile: StoreProfile,
    session: CashierSession,
    customer: dict | None,
    previous_balance: int | None = None,
    new_balance: int | None = None,
) -> Receipt:
    return Receipt(
        sale_id=sale["id"],
        store_name=profile.store_name,
        store_address=profile.store_address,
        store_phone=profile.store_phone,
        cashier_id=session.cashier_id,
        cashier_name=session.cashier_name,
        created_at=sale["created_at"],
        customer_name=customer.get("name") if customer else None,
        tax_rate=str(totals.tax_rate),
        items=[
            ReceiptItem(line.product_name, line.quantity, line.unit_price_cents, line.total_price_cents)
            for line in lines
        ],
        subtotal_cents=totals.subtotal_cents,
        discount_cents=totals.discount_cents,
        tax_cents=totals.tax_cents,
        total_cents=totals.total_cents,
        payments=[{"method": e.method, "amount_cents": e.amount_cents} for e in entries],
        change_cents=sale["change_given_cents"],
        footer=profile.receipt_footer,
        previous_balance_cents=previous_balance,
        new_balance_cents=new_balance,
    )


# =============================================================================
# COMMIT
# =============================================================================

def _revalidate_stock(store: RecordStore, lines: list[CartLine]) -> None:
    """Re-read stock at commit time; closes the add-then-commit oversell window."""
    insufficient = []
    for line in lines:
        product = store.get("products", line.product_id)
        on_hand = product.get("stock_quantity", 0) if product else 0
        if on_hand < line.quantity:
            insufficient.append({
                "product_id": line.product_id,
                "requested_quantity": line.quantity,
                "on_hand": on_hand,
            })
    if insufficient:
        raise InsufficientStockError(
            "Insufficient stock to complete sale",
            details={"items": insufficient},
        )


def _compensate(store: RecordStore, step: str, cause: Exception, sale_id: int, written: list[tuple[str, list[int]]]) -> SaleCommitError:
    """
    Undo earlier writes, newest first.

    Stops at the first failing delete so a header is never removed while
    rows that reference it remain.
    """
    logger.warning("Sale %s failed at %s (%s); compensating", sale_id, step, cause)

    pending = list(reversed(written))
    for index, (table, ids) in enumerate(pending):
        try:
            for record_id in ids:
                store.delete(table, record_id)
        except StoreError as exc:
            orphaned = {t: list(i) for t, i in pending[index:]}
            logger.error(
                "Compensation for sale %s failed on %s: %s. Manual reconciliation required: %s",
                sale_id, table, exc, orphaned,
            )
            return SaleCommitError(step, cause, sale_id=sale_id, compensated=False, orphaned=orphaned)

    return SaleCommitError(step, cause, sale_id=sale_id, compensated=True)


def commit_sale(
    session: CashierSession,
    store: RecordStore,
    profile: StoreProfile,
    *,
    revalidate_stock: bool = False,
) -> CommitResult:
    """
    Persist the session's cart as a sale.

    Args:
        session: cashier context holding cart, payments and customer
        store: record store
        profile: store settings (tax rate, receipt identity)
        revalidate_stock: re-read product stock before writing anything

    Returns:
        CommitResult with the sale header and receipt projection

    Raises:
        ValidationError subclasses: nothing written, cart untouched
        NotOpenError: the cashier has no open shift, nothing written
        SaleCommitError: a write failed; see compensation table above
    """
    cart = session.cart
    if cart.is_empty():
        raise EmptyCartError()

    # every sale belongs to an open shift
    require_open_register(session, store)

    below_floor = cart.below_floor_lines()
    if below_floor:
        line = below_floor[0]
        raise BelowFloorError(line.product_id, line.unit_price_cents, line.selling_price_cents)

    totals = session.totals(profile.tax_rate)
    payments = session.payments
    payments.set_total(totals.total_cents)

    customer = session.customer
    payments.validate(session.customer_id)

    if revalidate_stock:
        _revalidate_stock(store, cart.lines)

    lines = list(cart.lines)
    entries = list(payments.entries)
    credit = payments.credit_amount()

    header = {
        "location_id": session.location_id,
        "cashier_id": session.cashier_id,
        "customer_id": session.customer_id,
        "subtotal_cents": totals.subtotal_cents,
        "discount_cents": totals.discount_cents,
        "tax_cents": totals.tax_cents,
        "total_cents": totals.total_cents,
        "payment_method": payments.sale_label(),
        "amount_paid_cents": payments.total_paid(),
        "change_given_cents": payments.change_due(),
        "created_at": utcnow(),
    }

    # Step 1: header
    try:
        sale_id = store.insert("sales", header)
    except StoreError as exc:
        logger.warning("Sale header write failed for cashier %s: %s", session.cashier_id, exc)
        raise SaleCommitError(STEP_HEADER, exc) from exc

    written: list[tuple[str, list[int]]] = [("sales", [sale_id])]
    logger.info("Sale %s header written (cashier %s, total %d)", sale_id, session.cashier_id, totals.total_cents)

    # Step 2: items
    try:
        item_ids = store.insert_many("sale_items", [
            {
                "sale_id": sale_id,
                "product_id": line.product_id,
                "product_name": line.product_name,
                "quantity": line.quantity,
                "unit_price_cents": line.unit_price_cents,
                "total_price_cents": line.total_price_cents,
            }
            for line in lines
        ])
    except StoreError as exc:
        raise _compensate(store, STEP_ITEMS, exc, sale_id, written) from exc
    written.append(("sale_items", item_ids))

    # Step 3: payments
    try:
        payment_ids = store.insert_many("sale_payments", [
            {"sale_id": sale_id, "method": entry.method, "amount_cents": entry.amount_cents}
            for entry in entries
        ])
    except StoreError as exc:
        raise _compensate(store, STEP_PAYMENTS, exc, sale_id, written) from exc
    written.append(("sale_payments", payment_ids))

    # Step 4: customer credit
    previous_balance = new_balance = None
    over_limit = False
    if credit > 0 and customer is not None:
        try:
            previous_balance, new_balance = add_credit(store, customer["id"], credit)
        except (StoreError, NotFoundError) as exc:
            raise _compensate(store, STEP_CUSTOMER_CREDIT, exc, sale_id, written) from exc
        over_limit = exceeds_credit_limit(
            {**customer, "outstanding_balance_cents": new_balance}
        )

    sale = dict(header, id=sale_id)
    receipt = build_receipt(
        sale, lines, entries, totals, profile, session, customer,
        previous_balance=previous_balance, new_balance=new_balance,
    )

    result = CommitResult(sale=sale, receipt=receipt, over_credit_limit=over_limit)
    if over_limit:
        result.warnings.append("Customer balance is over the credit limit")

    session.reset_transaction()
    logger.info("Sale %s committed (%s, change %d)", sale_id, header["payment_method"], header["change_given_cents"])

    return result


# =============================================================================
# READS
# =============================================================================

def get_sale(store: RecordStore, sale_id: int) -> dict:
    """Sale header with its items and payments."""
    sale = store.get("sales", sale_id)
    if sale is None:
        raise NotFoundError(f"Sale {sale_id} not found")
    sale["items"] = store.query("sale_items", {"sale_id": sale_id})
    sale["payments"] = store.query("sale_payments", {"sale_id": sale_id})
    return sale


def list_recent_sales(
    store: RecordStore,
    location_id: int | None = None,
    limit: int = 10,
    since: datetime | None = None,
) -> list[dict]:
    """Newest sales first, each with its payment rows."""
    filters = {}
    if location_id is not None:
        filters["location_id"] = location_id
    if since is not None:
        filters["created_at__gte"] = since
    sales = store.query("sales", filters, order_by="created_at", descending=True, limit=limit)
    if not sales:
        return sales

    payments = store.query("sale_payments", {"sale_id__in": [s["id"] for s in sales]})
    by_sale: dict[int, list[dict]] = {}
    for row in payments:
        by_sale.setdefault(row["sale_id"], []).append(row)
    for sale in sales:
        sale["payments"] = by_sale.get(sale["id"], [])
    return sales
