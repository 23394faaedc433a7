# Overview: Flask API routes for the till: cart, payments, checkout and held orders.

# backend/duka/routes/pos.py
"""
Point of Sale API Routes

WHY: Drive one cashier's transaction over HTTP. Every route works on the
CashierSession resolved from the request headers; nothing here touches
another cashier's cart.

DESIGN:
- Cart edits return the full cart state (lines, totals, payments)
- Checkout points the payment allocator at the current total
- Commit runs the sale commit protocol; on failure the cart is untouched
- Held orders are per cashier
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import get_store, require_cashier
from ..errors import NotFoundError, PosError
from ..services import customer_service, sales_service, suspend_service
from ..services.settings_service import load_store_settings
from ..time_utils import parse_iso_datetime, serialize_record
from ..validation import json_payload, optional_int, optional_str, require_cents, require_int
from . import error_response


pos_bp = Blueprint("pos", __name__, url_prefix="/api/pos")


def _profile():
    return load_store_settings(get_store(), g.location_id)


def _cart_state(profile=None):
    profile = profile or _profile()
    session = g.cashier_session
    payments = session.payments
    totals = session.totals(profile.tax_rate)
    payments.set_total(totals.total_cents)
    return {
        "lines": session.cart.snapshot(),
        "totals": totals.to_dict(),
        "customer": serialize_record(session.customer),
        "payments": payments.to_dict(),
        "max_discount_cents": None if session.is_privileged else session.cart.max_discount(profile.discount_cap_percent),
    }


def _load_product(product_id: int) -> dict:
    product = get_store().get("products", product_id)
    if product is None or not product.get("is_active", True):
        raise NotFoundError(f"Product {product_id} not found")
    return product


# =============================================================================
# CART
# =============================================================================

@pos_bp.get("/cart")
@require_cashier
def get_cart_route():
    try:
        return jsonify({"cart": _cart_state()}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load cart")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.post("/cart/items")
@require_cashier
def add_cart_item_route():
    """
    Add a product to the cart at its selling price.

    Request body:
    {
        "product_id": 1,
        "quantity": 2  (optional, default 1)
    }
    """
    try:
        data = json_payload(request.get_json(silent=True))
        product_id = require_int(data, "product_id")
        quantity = optional_int(data, "quantity", 1)

        product = _load_product(product_id)
        line = g.cashier_session.add_product(product, quantity)

        return jsonify({"line": line.to_dict(), "cart": _cart_state()}), 201
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add cart item")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.patch("/cart/items/<int:product_id>")
@require_cashier
def update_cart_item_route(product_id: int):
    """
    Change a line's quantity and/or unit price.

    Request body (either or both):
    {
        "quantity": 3,            (< 1 removes the line)
        "unit_price_cents": 12000 (not below the selling price)
    }
    """
    try:
        data = json_payload(request.get_json(silent=True))
        session = g.cashier_session

        if "quantity" in data:
            session.set_quantity(product_id, require_int(data, "quantity"))
        if "unit_price_cents" in data:
            session.cart.set_unit_price(product_id, require_cents(data, "unit_price_cents"))

        return jsonify({"cart": _cart_state()}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update cart item")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.delete("/cart/items/<int:product_id>")
@require_cashier
def remove_cart_item_route(product_id: int):
    try:
        g.cashier_session.cart.remove(product_id)
        return jsonify({"cart": _cart_state()}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to remove cart item")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.delete("/cart")
@require_cashier
def clear_cart_route():
    try:
        g.cashier_session.reset_transaction()
        return jsonify({"cart": _cart_state()}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to clear cart")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.put("/cart/discount")
@require_cashier
def set_discount_route():
    """
    Set the cart discount.

    Non-owner roles are held to the store's discount cap; a larger request is
    clamped to the cap and answered with 400 plus the cap in details.
    """
    try:
        data = json_payload(request.get_json(silent=True))
        amount = require_cents(data, "discount_cents")
        profile = _profile()

        g.cashier_session.apply_discount(amount, profile.discount_cap_percent)

        return jsonify({"cart": _cart_state(profile)}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to set discount")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.put("/cart/customer")
@require_cashier
def set_customer_route():
    """Attach a customer (or detach with {"customer_id": null})."""
    try:
        data = json_payload(request.get_json(silent=True))
        customer_id = optional_int(data, "customer_id")

        customer_service.select_customer(g.cashier_session, get_store(), customer_id)

        return jsonify({"cart": _cart_state()}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to set customer")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PAYMENTS
# =============================================================================

@pos_bp.post("/checkout")
@require_cashier
def begin_checkout_route():
    """Start payment: one cash entry covering the whole total."""
    try:
        profile = _profile()
        g.cashier_session.begin_checkout(profile.tax_rate)
        return jsonify({"cart": _cart_state(profile)}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to begin checkout")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.post("/payments")
@require_cashier
def add_payment_route():
    """Add a split entry using the next unused method."""
    try:
        profile = _profile()
        session = g.cashier_session
        session.payments.set_total(session.totals(profile.tax_rate).total_cents)
        entry = session.payments.add()
        return jsonify({"entry": entry.to_dict(), "cart": _cart_state(profile)}), 201
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add payment entry")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.patch("/payments/<int:entry_id>")
@require_cashier
def update_payment_route(entry_id: int):
    """
    Change an entry's method and/or amount.

    Request body:
    {
        "method": "card",
        "amount_cents": 14800
    }
    """
    try:
        data = json_payload(request.get_json(silent=True))
        payments = g.cashier_session.payments

        if "method" in data:
            payments.update(entry_id, "method", data.get("method"))
        if "amount_cents" in data:
            payments.update(entry_id, "amount", require_cents(data, "amount_cents"))

        return jsonify({"cart": _cart_state()}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update payment entry")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.post("/payments/<int:entry_id>/fill")
@require_cashier
def fill_payment_route(entry_id: int):
    """Set an entry to whatever the other entries leave uncovered."""
    try:
        profile = _profile()
        session = g.cashier_session
        session.payments.set_total(session.totals(profile.tax_rate).total_cents)
        session.payments.fill_remaining(entry_id)
        return jsonify({"cart": _cart_state(profile)}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to fill payment entry")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.delete("/payments/<int:entry_id>")
@require_cashier
def remove_payment_route(entry_id: int):
    try:
        g.cashier_session.payments.remove(entry_id)
        return jsonify({"cart": _cart_state()}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to remove payment entry")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# SALES
# =============================================================================

@pos_bp.post("/sales")
@require_cashier
def commit_sale_route():
    """
    Commit the current cart as a sale.

    Returns 201 with the sale header and receipt. On a write failure the
    response carries the failed step and whether partial writes were undone;
    the cart is left as it was so the cashier can retry.
    """
    try:
        result = sales_service.commit_sale(
            g.cashier_session,
            get_store(),
            _profile(),
            revalidate_stock=current_app.config.get("REVALIDATE_STOCK_AT_COMMIT", False),
        )
        return jsonify(result.to_dict()), 201
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to commit sale")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.get("/sales")
@require_cashier
def list_sales_route():
    """
    Recent sales for the cashier's location.

    Query params:
    - limit: max rows (default 10)
    - since: ISO-8601 lower bound on created_at
    """
    try:
        limit = request.args.get("limit", default=10, type=int)
        try:
            since = parse_iso_datetime(request.args.get("since"))
        except ValueError:
            return jsonify({"error": "since must be an ISO-8601 datetime"}), 400

        sales = sales_service.list_recent_sales(get_store(), g.location_id, limit=limit, since=since)

        return jsonify({"sales": [serialize_record(s) for s in sales]}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.get("/sales/<int:sale_id>")
@require_cashier
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(get_store(), sale_id)
        return jsonify({"sale": serialize_record(sale)}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get sale")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# HELD ORDERS
# =============================================================================

@pos_bp.get("/suspended")
@require_cashier
def list_suspended_route():
    try:
        orders = suspend_service.list_suspended(g.cashier_session, get_store())
        return jsonify({"orders": [serialize_record(o) for o in orders]}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list suspended orders")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.post("/suspended")
@require_cashier
def suspend_order_route():
    """
    Park the current cart.

    Request body (optional):
    {
        "label": "Table 4"
    }

    An empty cart returns 200 with "order": null.
    """
    try:
        data = json_payload(request.get_json(silent=True))
        label = optional_str(data, "label", max_length=128)

        order = suspend_service.suspend_order(g.cashier_session, get_store(), label)
        if order is None:
            return jsonify({"order": None, "cart": _cart_state()}), 200

        return jsonify({"order": serialize_record(order), "cart": _cart_state()}), 201
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to suspend order")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.post("/suspended/<int:order_id>/resume")
@require_cashier
def resume_order_route(order_id: int):
    try:
        order = suspend_service.resume_order(g.cashier_session, get_store(), order_id)
        return jsonify({"order": serialize_record(order), "cart": _cart_state()}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to resume order")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# SETTINGS
# =============================================================================

@pos_bp.get("/settings")
@require_cashier
def get_settings_route():
    """Resolved store settings for the cashier's location."""
    try:
        return jsonify({"settings": _profile().to_dict()}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load settings")
        return jsonify({"error": "Internal server error"}), 500
