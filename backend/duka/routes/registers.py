# Overview: Flask API routes for register shifts; parses input and returns JSON responses.

# backend/duka/routes/registers.py
"""
Register Shift API Routes

WHY: Enable shift accountability for the cashier at the till.

DESIGN:
- Shift lifecycle: open -> close (immutable once closed)
- Summary can be refreshed any number of times while the shift is open
- Close returns the summary and the closed row in one response
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import get_store, require_cashier
from ..errors import PosError
from ..services import register_service
from ..time_utils import serialize_record
from ..validation import json_payload, optional_str, require_cents
from . import error_response


registers_bp = Blueprint("registers", __name__, url_prefix="/api/registers")


# =============================================================================
# SHIFT MANAGEMENT
# =============================================================================

@registers_bp.post("/open")
@require_cashier
def open_register_route():
    """
    Open a shift for the calling cashier.

    Request body:
    {
        "opening_cents": 500000,
        "notes": "Morning shift"  (optional)
    }

    Returns 409 if the cashier already has an open shift.
    """
    try:
        data = json_payload(request.get_json(silent=True))
        opening_cents = require_cents(data, "opening_cents")
        notes = optional_str(data, "notes", max_length=1000)

        register = register_service.open_register(g.cashier_session, get_store(), opening_cents, notes)

        return jsonify({"register": serialize_record(register)}), 201
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to open register")
        return jsonify({"error": "Internal server error"}), 500


@registers_bp.get("/current")
@require_cashier
def current_register_route():
    """
    The cashier's open shift, or null.

    Reloads a persisted open shift when this process has no local state
    for the cashier (e.g. after a restart).
    """
    try:
        session = g.cashier_session
        store = get_store()

        if session.register is None:
            register = register_service.restore_open_register(session, store)
        else:
            register = store.get("cash_registers", session.register.register_id)

        return jsonify({"register": serialize_record(register)}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load current register")
        return jsonify({"error": "Internal server error"}), 500


@registers_bp.get("/summary")
@require_cashier
def shift_summary_route():
    """Per-method totals and expected cash for the open shift."""
    try:
        summary = register_service.shift_summary(g.cashier_session, get_store())
        return jsonify({"summary": summary.to_dict()}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to compute shift summary")
        return jsonify({"error": "Internal server error"}), 500


@registers_bp.post("/close")
@require_cashier
def close_register_route():
    """
    Close the cashier's shift.

    Request body:
    {
        "closing_cents": 600000,
        "notes": "All good"  (optional)
    }

    Response includes the closed row, the shift summary, variance and
    variance_status (balanced / overage / shortage).
    """
    try:
        data = json_payload(request.get_json(silent=True))
        closing_cents = require_cents(data, "closing_cents")
        notes = optional_str(data, "notes", max_length=1000)

        result = register_service.close_register(g.cashier_session, get_store(), closing_cents, notes)

        return jsonify(result.to_dict()), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to close register")
        return jsonify({"error": "Internal server error"}), 500


@registers_bp.get("/sessions")
@require_cashier
def list_sessions_route():
    """
    The calling cashier's shifts, newest first.

    Query params:
    - status: open | closed
    - limit: max rows (default 20)
    """
    try:
        status = request.args.get("status")
        limit = request.args.get("limit", default=20, type=int)

        rows = register_service.list_sessions(
            get_store(),
            cashier_id=g.cashier_session.cashier_id,
            status=status,
            limit=limit,
        )

        return jsonify({"sessions": [serialize_record(r) for r in rows]}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list register sessions")
        return jsonify({"error": "Internal server error"}), 500
