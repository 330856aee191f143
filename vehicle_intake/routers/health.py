# vehicle_intake/routers/health.py
"""
System health check endpoint.
Returns status of backend + DB.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from vehicle_intake.database import get_db
from vehicle_intake.config import settings
from datetime import datetime

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(db: Session = Depends(get_db)):
    """
    Returns:
    - Backend status
    - Database connectivity
    - Whether the intake API key is configured
    """
    result = {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "backend": "ok",
        "database": "unknown",
        "intake_auth": "configured" if settings.VEHICLE_API_KEY else "missing",
    }

    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
    except SQLAlchemyError as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    if not settings.VEHICLE_API_KEY:
        result["status"] = "degraded"

    return result
