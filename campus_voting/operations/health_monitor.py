# campus_voting/operations/health_monitor.py
# Liveness/Readiness health checks (DB, disk, realtime outbox)

import os
import shutil
from typing import Dict

from flask import Blueprint, jsonify
from sqlalchemy import text

from campus_voting import db
from campus_voting.realtime.events import latest_seq

MIN_FREE_DISK_GB = float(os.getenv("MIN_FREE_DISK_GB", "1"))

health_bp = Blueprint("health", __name__)


def _check_db() -> Dict:
    try:
        db.session.execute(text("SELECT 1"))
        return {"ok": True, "detail": f"{db.engine.dialect.name} ok"}
    except Exception as e:
        db.session.rollback()
        return {"ok": False, "error": str(e)}


def _check_disk() -> Dict:
    total, used, free = shutil.disk_usage(".")
    free_gb = free / (1024**3)
    return {"ok": free_gb >= MIN_FREE_DISK_GB, "free_gb": round(free_gb, 2), "min_required_gb": MIN_FREE_DISK_GB}


def _check_events() -> Dict:
    try:
        return {"ok": True, "latest_seq": latest_seq()}
    except Exception as e:
        db.session.rollback()
        return {"ok": False, "error": str(e)}


def check_health() -> Dict:
    """Aggregate overall system health."""
    database = _check_db()
    disk = _check_disk()
    events = _check_events()
    overall = database["ok"] and disk["ok"] and events["ok"]
    return {"db": database, "disk": disk, "events": events, "overall_ok": overall}


@health_bp.get("/health")
def liveness():
    res = check_health()
    code = 200 if res["overall_ok"] else 503
    return jsonify(res), code


@health_bp.get("/ready")
def readiness():
    # readiness: DB + disk only
    database = _check_db()
    disk = _check_disk()
    ok = database["ok"] and disk["ok"]
    res = {"db": database, "disk": disk, "overall_ok": ok}
    code = 200 if ok else 503
    return jsonify(res), code
