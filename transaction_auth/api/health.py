"""
Health check endpoint.

Used by load balancers and monitoring to verify the
service is running and can reach its database.
"""

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from transaction_auth.config import get_settings
from transaction_auth.models.base import get_db

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Return application health status including database connectivity.

    If the probe query fails the status is "degraded", which
    tells the load balancer this instance is unhealthy.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError as e:
        logger.warning("health_check_database_failed", error=str(e))
        db_status = "unhealthy"

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "service": "transaction-auth",
        "version": get_settings().APP_VERSION,
        "database": db_status,
    }
