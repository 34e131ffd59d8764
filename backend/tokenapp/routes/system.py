# backend/tokenapp/routes/system.py
"""
System health and version endpoints.
"""

import platform
import time
from flask import Blueprint, current_app

from ..extensions import db
from ..models import Vendor, Voucher, SequenceCounter
from tokenapp.time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        vendor_count = db.session.query(Vendor).count()
        voucher_count = db.session.query(Voucher).count()
        counter_count = db.session.query(SequenceCounter).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "vendors": vendor_count,
                "vouchers": voucher_count,
                "sequence_counters": counter_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_integrations() -> dict:
    """Configuration presence for the payment gateway and vending API."""
    config = current_app.config
    missing = []
    if not config.get("PAYMENT_GATEWAY_SERVER_KEY"):
        missing.append("PAYMENT_GATEWAY_SERVER_KEY")
    for key in ("VENDING_API_URL", "VENDING_COMPANY_NAME", "VENDING_USERNAME", "VENDING_PASSWORD"):
        if not config.get(key):
            missing.append(key)

    if missing:
        return {"status": "degraded", "warning": f"Missing settings: {', '.join(missing)}"}
    return {"status": "healthy"}


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded (integrations not configured)
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    integrations = check_integrations()

    if database_health["status"] == "unhealthy":
        overall_status = "unhealthy"
        http_status = 503
    elif integrations["status"] == "degraded":
        overall_status = "degraded"
        http_status = 200
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "integrations": integrations,
        }
    }

    return response, http_status


@system_bp.get("/version")
def version():
    """Non-sensitive deployment information."""
    return {
        "api_version": "1.0.0",
        "environment": "testing" if current_app.config.get("TESTING") else "production",
        "python_version": platform.python_version(),
        "timestamp": utcnow().isoformat() + "Z",
    }
