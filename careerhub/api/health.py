"""
Operational endpoints: liveness, readiness and Prometheus metrics.
No auth, no secrets in responses.
"""

import logging

from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from careerhub.core.database import get_engine, metadata
from careerhub.core.metrics import METRICS

logger = logging.getLogger("careerhub")

router = APIRouter(tags=["ops"])

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4"


@router.get("/healthz")
def healthz():
    """Process is up; touches nothing else."""
    return {"status": "ok"}


@router.get("/readyz")
def readyz():
    """Database reachable and every ledger/artifact table present."""
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.exec_driver_sql("SELECT 1")

        inspector = inspect(engine)
        missing = [name for name in sorted(metadata.tables) if not inspector.has_table(name)]
    except (ValueError, SQLAlchemyError) as e:
        logger.error(f"[readyz] readiness check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})

    if missing:
        detail = f"missing tables: {', '.join(missing)}"
        logger.warning(f"[readyz] {detail}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": detail})
    return {"status": "ok"}


@router.get("/metrics")
def metrics():
    return Response(
        content=METRICS.export_prometheus(),
        media_type=PROMETHEUS_CONTENT_TYPE,
        headers={"Cache-Control": "no-store"},
    )
