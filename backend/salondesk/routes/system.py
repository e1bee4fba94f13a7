# backend/salondesk/routes/system.py
"""
System health endpoint.

Checks database connectivity and that payment instruments are configured.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import PaymentInstrument, CatalogEntry
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        active_instruments = db.session.query(PaymentInstrument).filter_by(is_active=True).count()
        catalog_entries = db.session.query(CatalogEntry).count()

        elapsed_ms = (time.time() - start_time) * 1000

        if active_instruments == 0:
            return {
                "status": "degraded",
                "latency_ms": round(elapsed_ms, 2),
                "warning": "No active payment instruments; run `flask instruments seed`",
                "details": {"active_instruments": 0, "catalog_entries": catalog_entries},
            }

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "active_instruments": active_instruments,
                "catalog_entries": catalog_entries,
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


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded (still operational)
    - 503: database unreachable
    """
    start_time = time.time()
    database_health = check_database_health()

    if database_health["status"] == "unhealthy":
        http_status = 503
    else:
        http_status = 200

    response = {
        "status": database_health["status"],
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
        }
    }

    return response, http_status
