from fastapi import APIRouter, HTTPException
from datetime import datetime
from app.core.config import settings
from app.database import check_database_health

router = APIRouter(tags=["Health"])


def _connection_state(value):
    if value is None:
        return "disabled"
    return "connected" if value else "disconnected"


@router.get("/health")
async def health_check():
    """Application health check endpoint"""
    db_health = await check_database_health()

    overall_status = "healthy" if db_health["overall"] else "unhealthy"

    return {
        "status": overall_status,
        "timestamp": datetime.utcnow(),
        "databases": {
            "mysql": _connection_state(db_health["mysql"]),
            "redis": _connection_state(db_health["redis"])
        },
        "broadcast_backend": settings.broadcast_backend,
        "service": settings.app_name
    }


@router.get("/health/ready")
async def readiness_check():
    """Kubernetes readiness probe endpoint"""
    db_health = await check_database_health()

    if not db_health["overall"]:
        raise HTTPException(
            status_code=503,
            detail="Service not ready - database connections failed"
        )

    return {"status": "ready"}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes liveness probe endpoint"""
    return {"status": "alive", "timestamp": datetime.utcnow()}
