from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from product_api.database import Database, get_database
from product_api.schemas.product import HealthResponse

router = APIRouter(prefix="/health", tags=["Health"])


@router.get(
    "",
    response_model=HealthResponse,
    summary="Health check",
    description="Liveness probe. Does not touch the database."
)
def health_check():
    """Simple health check."""
    return HealthResponse(message="Server is running", timestamp=datetime.now(timezone.utc))


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check whether the database connection is usable."
)
def readiness_check(database: Database = Depends(get_database)):
    """
    Readiness check.

    Returns 200 when MongoDB answers, 503 otherwise.
    """
    if database.ping():
        return {"success": True, "message": "Ready", "checks": {"database": True}}

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"success": False, "message": "Database unavailable", "checks": {"database": False}}
    )
