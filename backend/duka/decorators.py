# Overview: Request decorators that resolve the calling cashier's session.

from functools import wraps
from flask import current_app, g, jsonify, request

from .errors import ValidationError
from .validation import coerce_int


STORE_KEY = "duka.store"
SESSIONS_KEY = "duka.sessions"


def get_store():
    """Record store configured on the running app."""
    return current_app.extensions[STORE_KEY]


def get_sessions():
    return current_app.extensions[SESSIONS_KEY]


def _header_int(name: str):
    raw = request.headers.get(name)
    if raw is None or not raw.strip():
        return None
    return coerce_int(raw, name)


def require_cashier(f):
    """
    Resolve the cashier context from request headers.

    Sets the following Flask g attributes:
    - g.cashier_session: the CashierSession for X-Cashier-Id
    - g.location_id: X-Location-Id (may be None)

    Authentication happens upstream; these headers are trusted as given.
    Returns 401 when X-Cashier-Id is missing or not an integer.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            cashier_id = _header_int("X-Cashier-Id")
            location_id = _header_int("X-Location-Id")
        except ValidationError as e:
            return jsonify({"error": str(e)}), 401

        if cashier_id is None:
            return jsonify({"error": "Cashier identification required"}), 401

        role = (request.headers.get("X-Cashier-Role") or "cashier").strip().lower()

        g.location_id = location_id
        g.cashier_session = get_sessions().get_or_create(cashier_id, location_id, role)
        name = request.headers.get("X-Cashier-Name")
        if name:
            g.cashier_session.cashier_name = name.strip()

        return f(*args, **kwargs)

    return decorated_function
