# Overview: Per-cashier session state passed to every engine operation.

"""
Cashier Session Context

WHY: Cart, payments, selected customer and the open register belong to
one cashier's session and nobody else's. Operations receive this object
explicitly instead of reaching for module-level state, so two cashiers in
the same process never see each other's cart.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from threading import Lock

from ..errors import DiscountCapError, InsufficientStockError, ValidationError
from .cart_service import CartEngine, CartLine, CartTotals, line_from_product
from .payment_service import PaymentAllocator

DEFAULT_DISCOUNT_CAP_PERCENT = 30
DEFAULT_PRIVILEGED_ROLES = ("owner",)


@dataclass
class OpenRegister:
    """Local view of the cashier's open cash drawer session."""
    register_id: int
    opening_cents: int
    opened_at: datetime


class CashierSession:
    def __init__(
        self,
        cashier_id: int,
        location_id: int | None = None,
        role: str = "cashier",
        *,
        cashier_name: str | None = None,
        privileged_roles=DEFAULT_PRIVILEGED_ROLES,
    ):
        self.cashier_id = cashier_id
        self.location_id = location_id
        self.role = role
        self.cashier_name = cashier_name
        self.privileged_roles = tuple(privileged_roles)

        self.cart = CartEngine()
        self.payments = PaymentAllocator()
        self.register: OpenRegister | None = None

    @property
    def is_privileged(self) -> bool:
        return self.role in self.privileged_roles

    @property
    def customer(self) -> dict | None:
        return self.cart.customer

    @property
    def customer_id(self):
        return self.cart.customer["id"] if self.cart.customer else None

    def set_customer(self, customer: dict | None) -> None:
        self.cart.customer = customer

    def add_product(self, product: dict, quantity: int = 1) -> CartLine:
        """
        Add a product at its selling price.

        Stock is checked here, against the stock the product had when read,
        including what is already in the cart.
        """
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")
        line = line_from_product(product, quantity)
        existing = self.cart.find(line.product_id)
        in_cart = existing.quantity if existing else 0
        if in_cart + quantity > line.stock_quantity:
            raise InsufficientStockError(
                f"Only {line.stock_quantity} of {line.product_name} in stock",
                details={
                    "product_id": line.product_id,
                    "requested_quantity": in_cart + quantity,
                    "on_hand": line.stock_quantity,
                },
            )
        return self.cart.add(line)

    def set_quantity(self, product_id, quantity: int) -> CartLine | None:
        """Edit a line's quantity, held to the stock the line was added with."""
        line = self.cart.find(product_id)
        if line is not None and quantity > line.stock_quantity:
            raise InsufficientStockError(
                f"Only {line.stock_quantity} of {line.product_name} in stock",
                details={
                    "product_id": line.product_id,
                    "requested_quantity": quantity,
                    "on_hand": line.stock_quantity,
                },
            )
        return self.cart.set_quantity(product_id, quantity)

    def apply_discount(self, amount_cents: int, cap_percent: int = DEFAULT_DISCOUNT_CAP_PERCENT) -> int:
        """
        Set the cart discount under the role's cap.

        Non-privileged roles are held to cap_percent of the raw subtotal:
        a larger request is clamped to the cap and DiscountCapError raised.
        """
        if amount_cents < 0:
            raise ValidationError("Discount cannot be negative")
        if not self.is_privileged:
            cap = self.cart.max_discount(cap_percent)
            if amount_cents > cap:
                self.cart.set_discount(cap)
                raise DiscountCapError(amount_cents, cap)
        self.cart.set_discount(amount_cents)
        return amount_cents

    def totals(self, tax_rate) -> CartTotals:
        return self.cart.totals(tax_rate)

    def begin_checkout(self, tax_rate) -> CartTotals:
        """Point the allocator at the current total with a single cash entry."""
        totals = self.totals(tax_rate)
        self.payments.reset(totals.total_cents)
        return totals

    def reset_transaction(self) -> None:
        self.cart.clear()
        self.payments.reset(0)


class SessionRegistry:
    """One CashierSession per cashier id for the lifetime of the process."""

    def __init__(self, privileged_roles=DEFAULT_PRIVILEGED_ROLES):
        self.privileged_roles = tuple(privileged_roles)
        self._sessions: dict[int, CashierSession] = {}
        self._lock = Lock()

    def get_or_create(self, cashier_id: int, location_id: int | None = None, role: str = "cashier") -> CashierSession:
        with self._lock:
            session = self._sessions.get(cashier_id)
            if session is None:
                session = CashierSession(
                    cashier_id,
                    location_id,
                    role,
                    privileged_roles=self.privileged_roles,
                )
                self._sessions[cashier_id] = session
            else:
                session.location_id = location_id
                session.role = role
            return session

    def drop(self, cashier_id: int) -> None:
        with self._lock:
            self._sessions.pop(cashier_id, None)

    def __len__(self) -> int:
        return len(self._sessions)
