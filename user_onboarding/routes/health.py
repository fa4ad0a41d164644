# user_onboarding/routes/health.py
"""
Health check endpoints.
"""

import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from user_onboarding.db.pool import db_health_check
from user_onboarding.services.redis_client import fast_redis

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "user-onboarding"}


@router.get("/readyz")
async def readyz():
    """Readiness check covering Redis and the database pool."""
    checks = {}

    t0 = time.time()
    try:
        redis_ok = await fast_redis.ping()
        checks["redis"] = {"ok": bool(redis_ok), "latency_ms": round((time.time() - t0) * 1000, 1)}
    except Exception as e:
        checks["redis"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}

    t0 = time.time()
    try:
        db_health = await db_health_check()
        checks["database"] = {
            "ok": bool(db_health.get("healthy", False)),
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        if "error" in db_health:
            checks["database"]["error"] = db_health["error"]
    except Exception as e:
        checks["database"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}

    overall_ok = all(check["ok"] for check in checks.values())
    return JSONResponse(
        status_code=200 if overall_ok else 503,
        content={"overall_ok": overall_ok, "checks": checks},
    )
