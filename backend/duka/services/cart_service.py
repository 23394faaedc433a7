# Overview: Cart engine; line merging, price floor and cart totals.

"""
Cart Engine

WHY: Holds the lines of one cashier's in-progress sale and derives every
money figure the rest of the engine uses.

PRICING RULES (all amounts in cents):
- line total = unit price x quantity
- subtotal = max(0, sum(line totals) - discount)
- tax = subtotal x rate, rounded half-up to the cent (applied post-discount)
- total = subtotal + tax

A unit price may be raised but never dropped below the product's selling
price. The discount cap is policy and lives with the caller
(CashierSession.apply_discount); the engine only exposes the raw subtotal
the cap is computed from.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP

from ..errors import BelowFloorError, NotFoundError, OutOfStockError, ValidationError


@dataclass
class CartLine:
    product_id: int
    product_name: str
    unit_price_cents: int
    selling_price_cents: int
    quantity: int = 1
    stock_quantity: int = 0

    @property
    def total_price_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit_price_cents": self.unit_price_cents,
            "selling_price_cents": self.selling_price_cents,
            "quantity": self.quantity,
            "stock_quantity": self.stock_quantity,
            "total_price_cents": self.total_price_cents,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CartLine":
        try:
            return cls(
                product_id=data["product_id"],
                product_name=data["product_name"],
                unit_price_cents=int(data["unit_price_cents"]),
                selling_price_cents=int(data["selling_price_cents"]),
                quantity=int(data["quantity"]),
                stock_quantity=int(data.get("stock_quantity") or 0),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError(f"Malformed cart line: {exc}") from exc


def line_from_product(product: dict, quantity: int = 1) -> CartLine:
    """Build a cart line at the product's selling price."""
    stock = product.get("stock_quantity") or 0
    if stock <= 0:
        raise OutOfStockError(product.get("id"), product.get("name"))
    return CartLine(
        product_id=product["id"],
        product_name=product["name"],
        unit_price_cents=product["selling_price_cents"],
        selling_price_cents=product["selling_price_cents"],
        quantity=quantity,
        stock_quantity=stock,
    )


def as_rate(rate) -> Decimal:
    """Normalize a tax rate fraction (0.16 for 16%) to Decimal."""
    value = rate if isinstance(rate, Decimal) else Decimal(str(rate or 0))
    if value < 0:
        raise ValidationError("Tax rate cannot be negative")
    return value


def compute_tax(subtotal_cents: int, rate) -> int:
    value = as_rate(rate)
    if value == 0 or subtotal_cents <= 0:
        return 0
    return int((Decimal(subtotal_cents) * value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class CartTotals:
    raw_subtotal_cents: int
    discount_cents: int
    subtotal_cents: int
    tax_cents: int
    total_cents: int
    tax_rate: Decimal

    def to_dict(self) -> dict:
        return {
            "raw_subtotal_cents": self.raw_subtotal_cents,
            "discount_cents": self.discount_cents,
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "tax_rate": str(self.tax_rate),
        }


class CartEngine:
    """Lines, discount and selected customer for one cashier."""

    def __init__(self):
        self.lines: list[CartLine] = []
        self.discount_cents: int = 0
        self.customer: dict | None = None

    def __len__(self) -> int:
        return len(self.lines)

    def __iter__(self):
        return iter(self.lines)

    def is_empty(self) -> bool:
        return not self.lines

    def find(self, product_id) -> CartLine | None:
        for line in self.lines:
            if line.product_id == product_id:
                return line
        return None

    def _require(self, product_id) -> CartLine:
        line = self.find(product_id)
        if line is None:
            raise NotFoundError(f"Product {product_id} is not in the cart")
        return line

    # ------------------------------------------------------------------
    # line edits
    # ------------------------------------------------------------------

    def add(self, line: CartLine) -> CartLine:
        """
        Add a line, merging into an existing line for the same product.

        The merged line keeps its current unit price; only the quantity grows.
        Stock is checked by the caller against line.stock_quantity.
        """
        if line.quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        existing = self.find(line.product_id)
        if existing is not None:
            existing.quantity += line.quantity
            return existing

        added = replace(line)
        self.lines.append(added)
        return added

    def set_quantity(self, product_id, quantity: int) -> CartLine | None:
        """Quantity below 1 removes the line (returns None)."""
        line = self._require(product_id)
        if quantity < 1:
            self.remove(product_id)
            return None
        line.quantity = quantity
        return line

    def set_unit_price(self, product_id, price_cents: int) -> CartLine:
        """
        Change a line's unit price.

        Below the selling price the line is clamped to the floor and
        BelowFloorError is raised so the caller can tell the cashier.
        """
        line = self._require(product_id)
        if price_cents < line.selling_price_cents:
            line.unit_price_cents = line.selling_price_cents
            raise BelowFloorError(product_id, price_cents, line.selling_price_cents)
        line.unit_price_cents = price_cents
        return line

    def remove(self, product_id) -> None:
        self.lines = [line for line in self.lines if line.product_id != product_id]

    def clear(self) -> None:
        """Start a fresh transaction: lines, discount and customer all reset."""
        self.lines = []
        self.discount_cents = 0
        self.customer = None

    def set_discount(self, amount_cents: int) -> None:
        if amount_cents < 0:
            raise ValidationError("Discount cannot be negative")
        self.discount_cents = amount_cents

    # ------------------------------------------------------------------
    # totals
    # ------------------------------------------------------------------

    def raw_subtotal(self) -> int:
        return sum(line.total_price_cents for line in self.lines)

    def subtotal(self, discount_cents: int | None = None) -> int:
        discount = self.discount_cents if discount_cents is None else discount_cents
        return max(0, self.raw_subtotal() - discount)

    def tax(self, rate, discount_cents: int | None = None) -> int:
        return compute_tax(self.subtotal(discount_cents), rate)

    def total(self, rate, discount_cents: int | None = None) -> int:
        subtotal = self.subtotal(discount_cents)
        return subtotal + compute_tax(subtotal, rate)

    def totals(self, rate, discount_cents: int | None = None) -> CartTotals:
        discount = self.discount_cents if discount_cents is None else discount_cents
        subtotal = self.subtotal(discount)
        tax = compute_tax(subtotal, rate)
        return CartTotals(
            raw_subtotal_cents=self.raw_subtotal(),
            discount_cents=discount,
            subtotal_cents=subtotal,
            tax_cents=tax,
            total_cents=subtotal + tax,
            tax_rate=as_rate(rate),
        )

    def max_discount(self, cap_percent: int) -> int:
        """Largest discount allowed under a percentage cap, floored to the cent."""
        cap = Decimal(self.raw_subtotal()) * Decimal(cap_percent) / Decimal(100)
        return int(cap.to_integral_value(rounding=ROUND_FLOOR))

    def below_floor_lines(self) -> list[CartLine]:
        return [line for line in self.lines if line.unit_price_cents < line.selling_price_cents]

    def snapshot(self) -> list[dict]:
        return [line.to_dict() for line in self.lines]
