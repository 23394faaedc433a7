# backend/duka/routes/system.py
"""
System health endpoint.

Reports whether the record store answers and how many cashier sessions
this process is holding.
"""

import time
from flask import Blueprint, current_app

from ..decorators import get_sessions, get_store
from ..errors import StoreError
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_store_health() -> dict:
    """Round-trip a small query through the record store."""
    start_time = time.time()
    try:
        settings_rows = len(get_store().query("store_settings", limit=1))
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"settings_configured": settings_rows > 0},
        }
    except StoreError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Record store health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Record store error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: record store reachable
    - 503: record store failing
    """
    store_health = check_store_health()
    http_status = 503 if store_health["status"] == "unhealthy" else 200

    return {
        "status": store_health["status"],
        "timestamp": to_utc_z(utcnow()),
        "checks": {"record_store": store_health},
        "cashier_sessions": len(get_sessions()),
    }, http_status
