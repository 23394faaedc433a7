# Overview: Flask API routes for customer balances and debt collection.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import get_store, require_cashier
from ..errors import PosError
from ..services import customer_service
from ..time_utils import serialize_record
from ..validation import json_payload, optional_str, require_cents
from . import error_response


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("/<int:customer_id>")
@require_cashier
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(get_store(), customer_id)
        return jsonify({"customer": serialize_record(customer)}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>/payments")
@require_cashier
def list_customer_payments_route(customer_id: int):
    try:
        store = get_store()
        customer_service.get_customer(store, customer_id)
        limit = request.args.get("limit", default=50, type=int)
        payments = customer_service.list_customer_payments(store, customer_id, limit=limit)
        return jsonify({"payments": [serialize_record(p) for p in payments]}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list customer payments")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.post("/<int:customer_id>/payments")
@require_cashier
def collect_debt_route(customer_id: int):
    """
    Record a payment against the customer's outstanding balance.

    Request body:
    {
        "amount_cents": 50000,
        "notes": "Paid via M-Pesa"  (optional)
    }

    Amounts above the balance are clamped; applied_cents says what was taken.
    """
    try:
        data = json_payload(request.get_json(silent=True))
        amount_cents = require_cents(data, "amount_cents")
        notes = optional_str(data, "notes", max_length=1000)

        customer, applied = customer_service.collect_debt(
            get_store(),
            customer_id,
            amount_cents,
            notes=notes,
            location_id=g.location_id,
        )

        # keep a customer attached to the cart in step with the new balance
        session = g.cashier_session
        if session.customer_id == customer_id:
            session.set_customer(customer)

        return jsonify({"customer": serialize_record(customer), "applied_cents": applied}), 201
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to collect customer payment")
        return jsonify({"error": "Internal server error"}), 500
