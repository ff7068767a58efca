"""
Health endpoints.

Liveness never touches the store; readiness checks the database only when the
SQL store is configured.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from brainjourney.core.config import settings
from brainjourney.core.database import check_connection

logger = logging.getLogger("brainjourney")

root_router = APIRouter(tags=["health"])


@root_router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@root_router.get("/readyz")
def readyz():
    """Readiness check: store backend reachable."""
    backend = settings.STORE_BACKEND
    ready = True
    if backend == "sql":
        ready = check_connection()
        if not ready:
            logger.warning("readyz: database unreachable")
    body = {
        "ok": ready,
        "store_backend": backend,
        "computed_at": datetime.now(timezone.utc).isoformat(),
    }
    return JSONResponse(status_code=200 if ready else 503, content=body)
