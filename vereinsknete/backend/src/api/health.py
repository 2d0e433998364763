"""Health check and metrics endpoints."""

from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from vereinsknete.backend.src.core.config import get_settings
from vereinsknete.backend.src.db import get_session_dependency
from vereinsknete.backend.src.models import Invoice

router = APIRouter(tags=["health"])


@router.get("/health/live")
def liveness() -> dict[str, str]:
    return {"status": "live"}


@router.get("/health/ready")
def readiness(session: Session = Depends(get_session_dependency)) -> dict[str, object]:
    """Confirm the invoice table is reachable and report where documents go."""

    invoice_count = session.execute(select(func.count(Invoice.id))).scalar_one()
    invoice_dir = Path(get_settings().invoice_dir)
    return {
        "status": "ready",
        "database": session.get_bind().dialect.name,
        "invoices": invoice_count,
        "invoice_dir_exists": invoice_dir.is_dir(),
    }


@router.get("/metrics")
def metrics() -> Response:
    """Expose Prometheus metrics."""

    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
