# Overview: Split-payment allocation across tender types.

"""
Payment Allocator

WHY: A sale may be settled with several tenders at once (cash + M-Pesa,
card + credit, ...). The allocator keeps one entry per method, tells the
cashier how much is still uncovered, and decides the single label the
sale header carries.

DESIGN PRINCIPLES:
- At most one entry per method; methods are offered in declaration order
- There is always at least one entry
- Over-tender is allowed on any method; the excess is change
- Credit is a debt against the selected customer, so it needs one
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import count

from ..errors import (
    AllocationError,
    CreditRequiresCustomerError,
    InsufficientPaymentError,
    NotFoundError,
)


# =============================================================================
# TENDER TYPES (CONSTANTS)
# =============================================================================

METHOD_CASH = "cash"
METHOD_CARD = "card"
METHOD_MOBILE_MONEY = "mobile_money"
METHOD_CREDIT = "credit"

# Declaration order matters: add() offers the first unused method
PAYMENT_METHODS = (
    METHOD_CASH,
    METHOD_CARD,
    METHOD_MOBILE_MONEY,
    METHOD_CREDIT,
)

SPLIT_LABEL = "split"


@dataclass
class PaymentEntry:
    id: int
    method: str
    amount_cents: int = 0

    def to_dict(self) -> dict:
        return {"id": self.id, "method": self.method, "amount_cents": self.amount_cents}


class PaymentAllocator:
    """Ordered, method-unique list of payment entries against one total."""

    def __init__(self, total_cents: int = 0):
        self._ids = count(1)
        self.total_cents = total_cents
        self.entries: list[PaymentEntry] = []
        self.reset(total_cents)

    def reset(self, total_cents: int) -> None:
        """Single cash entry covering the whole total."""
        self.total_cents = max(0, total_cents)
        self.entries = [PaymentEntry(next(self._ids), METHOD_CASH, self.total_cents)]

    def set_total(self, total_cents: int) -> None:
        """Retarget the allocator without touching the entries."""
        self.total_cents = max(0, total_cents)

    def _get(self, entry_id: int) -> PaymentEntry:
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        raise NotFoundError(f"Payment entry {entry_id} not found")

    def _used_methods(self) -> set[str]:
        return {entry.method for entry in self.entries}

    # ------------------------------------------------------------------
    # edits
    # ------------------------------------------------------------------

    def add(self) -> PaymentEntry:
        """Append the first unused method, pre-filled with what is still owed."""
        used = self._used_methods()
        method = next((m for m in PAYMENT_METHODS if m not in used), None)
        if method is None:
            raise AllocationError("Every payment method is already in use")
        entry = PaymentEntry(next(self._ids), method, max(0, self.remaining()))
        self.entries.append(entry)
        return entry

    def remove(self, entry_id: int) -> None:
        entry = self._get(entry_id)
        if len(self.entries) <= 1:
            raise AllocationError("At least one payment method is required")
        self.entries.remove(entry)

    def update(self, entry_id: int, field: str, value) -> PaymentEntry:
        entry = self._get(entry_id)

        if field == "method":
            if value not in PAYMENT_METHODS:
                raise AllocationError(f"Invalid payment method: {value}. Must be one of {list(PAYMENT_METHODS)}")
            if value != entry.method and value in self._used_methods():
                raise AllocationError(f"Payment method {value} is already in use")
            entry.method = value
        elif field == "amount":
            if value is None or value < 0:
                raise AllocationError("Payment amount cannot be negative")
            entry.amount_cents = value
        else:
            raise AllocationError(f"Unknown payment field: {field}")

        return entry

    def fill_remaining(self, entry_id: int) -> PaymentEntry:
        """Set the entry so all entries sum to the total exactly (floored at 0)."""
        entry = self._get(entry_id)
        others = sum(e.amount_cents for e in self.entries if e.id != entry_id)
        entry.amount_cents = max(0, self.total_cents - others)
        return entry

    # ------------------------------------------------------------------
    # derived values
    # ------------------------------------------------------------------

    def total_paid(self) -> int:
        return sum(entry.amount_cents for entry in self.entries)

    def remaining(self) -> int:
        """Uncovered amount; negative when over-tendered."""
        return self.total_cents - self.total_paid()

    def is_fully_paid(self) -> bool:
        return self.total_paid() >= self.total_cents

    def change_due(self) -> int:
        return max(0, self.total_paid() - self.total_cents)

    def credit_amount(self) -> int:
        for entry in self.entries:
            if entry.method == METHOD_CREDIT:
                return entry.amount_cents
        return 0

    def primary_method(self) -> str:
        """Method with the largest amount; the first declared wins ties."""
        primary = self.entries[0]
        for entry in self.entries[1:]:
            if entry.amount_cents > primary.amount_cents:
                primary = entry
        return primary.method

    def sale_label(self) -> str:
        nonzero = [entry for entry in self.entries if entry.amount_cents > 0]
        if len(nonzero) > 1:
            return SPLIT_LABEL
        return self.primary_method()

    def validate(self, customer_id=None) -> None:
        """
        Gate before commit.

        Raises:
            InsufficientPaymentError: entries do not cover the total
            CreditRequiresCustomerError: credit tendered with no customer selected
        """
        if not self.is_fully_paid():
            raise InsufficientPaymentError(self.total_cents, self.total_paid())
        if self.credit_amount() > 0 and customer_id is None:
            raise CreditRequiresCustomerError()

    def to_dict(self) -> dict:
        return {
            "entries": [entry.to_dict() for entry in self.entries],
            "total_cents": self.total_cents,
            "total_paid_cents": self.total_paid(),
            "remaining_cents": max(0, self.remaining()),
            "change_cents": self.change_due(),
            "is_fully_paid": self.is_fully_paid(),
            "label": self.sale_label(),
        }
