# Overview: Exception taxonomy shared by services and routes.

"""
Error taxonomy for the transaction engine.

- ValidationError: local, nothing was written. Caller re-prompts.
- PersistenceError: the record store failed. SaleCommitError says which
  commit step failed and whether the partial write was undone.
- NotFoundError: a referenced record does not exist.

Routes map these to HTTP codes; see routes/__init__.py.
"""

from __future__ import annotations


class PosError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


# =============================================================================
# VALIDATION
# =============================================================================

class ValidationError(PosError, ValueError):
    """400-level input problem. Always recoverable."""


class BelowFloorError(ValidationError):
    """A unit price was set below the product's selling price.

    The line has already been clamped back to its floor when this is raised.
    """

    def __init__(self, product_id, requested_cents: int, floor_cents: int):
        super().__init__(
            f"Cannot sell below selling price ({floor_cents} cents)",
            details={
                "product_id": product_id,
                "requested_cents": requested_cents,
                "floor_cents": floor_cents,
            },
        )
        self.product_id = product_id
        self.requested_cents = requested_cents
        self.floor_cents = floor_cents


class DiscountCapError(ValidationError):
    """Discount exceeded the cap for a non-privileged role (clamped to cap)."""

    def __init__(self, requested_cents: int, cap_cents: int):
        super().__init__(
            f"Max discount is {cap_cents} cents",
            details={"requested_cents": requested_cents, "cap_cents": cap_cents},
        )
        self.requested_cents = requested_cents
        self.cap_cents = cap_cents


class InsufficientPaymentError(ValidationError):
    def __init__(self, total_cents: int, paid_cents: int):
        short = total_cents - paid_cents
        super().__init__(
            f"Short by {short} cents",
            details={"total_cents": total_cents, "paid_cents": paid_cents, "short_cents": short},
        )
        self.short_cents = short


class CreditRequiresCustomerError(ValidationError):
    def __init__(self):
        super().__init__("Select a customer for credit")


class AllocationError(ValidationError):
    """Invalid change to the payment entry list."""


class EmptyCartError(ValidationError):
    def __init__(self):
        super().__init__("Cart is empty")


class OutOfStockError(ValidationError):
    def __init__(self, product_id, product_name: str | None = None):
        super().__init__(
            f"{product_name or 'Product'} is out of stock",
            details={"product_id": product_id},
        )


class InsufficientStockError(ValidationError):
    """A line would exceed the stock on hand (add, quantity edit or commit re-check)."""


class RegisterStateError(ValidationError):
    """Register transition attempted from the wrong state."""


class AlreadyOpenError(RegisterStateError):
    def __init__(self, register_id=None):
        super().__init__(
            "Register already open for this cashier",
            details={"register_id": register_id},
        )


class NotOpenError(RegisterStateError):
    def __init__(self):
        super().__init__("No open register for this cashier")


# =============================================================================
# PERSISTENCE
# =============================================================================

class PersistenceError(PosError):
    """Remote record store read/write failure."""

    retryable = True


class StoreError(PersistenceError):
    """A single record store call failed."""

    def __init__(self, table: str, operation: str, message: str):
        super().__init__(
            f"{operation} on {table} failed: {message}",
            details={"table": table, "operation": operation},
        )
        self.table = table
        self.operation = operation


class SaleCommitError(PersistenceError):
    """
    A sale commit step failed.

    step: header | items | payments | customer_credit
    compensated: every record written before the failure was removed again
    requires_reconciliation: compensation failed, orphaned records remain
    """

    def __init__(
        self,
        step: str,
        cause: Exception,
        *,
        sale_id=None,
        compensated: bool = False,
        orphaned: dict | None = None,
    ):
        self.step = step
        self.cause = cause
        self.sale_id = sale_id
        self.compensated = compensated
        self.orphaned = orphaned or {}
        self.requires_reconciliation = bool(self.orphaned)
        self.retryable = not self.requires_reconciliation
        super().__init__(
            f"Sale commit failed at {step}: {cause}",
            details={
                "step": step,
                "sale_id": sale_id,
                "compensated": compensated,
                "requires_reconciliation": self.requires_reconciliation,
                "orphaned": self.orphaned,
            },
        )


# =============================================================================
# LOOKUP
# =============================================================================

class NotFoundError(PosError, LookupError):
    """Referenced record does not exist (or is not visible to this cashier)."""
