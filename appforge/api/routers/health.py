"""Health check endpoints for AppForge.

- /health: Basic health check
- /health/live: Liveness probe
- /health/ready: Readiness probe (database reachable, RBAC seeded)
"""

from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import func, text
from sqlalchemy.orm import Session

from appforge import __version__
from appforge.api.deps import get_db
from appforge.db.models import Permission, Role

router = APIRouter(tags=["health"])


def check_database(db: Session) -> Dict[str, Any]:
    """Check database connectivity."""
    try:
        db.execute(text("SELECT 1")).fetchone()
        return {"status": "healthy", "dialect": db.get_bind().dialect.name}
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}


def check_rbac_seed(db: Session) -> Dict[str, Any]:
    """Check that the permission catalog and system roles exist."""
    try:
        permissions = db.query(func.count(Permission.id)).filter(Permission.resource_id.is_(None)).scalar()
        system_roles = db.query(func.count(Role.id)).filter(Role.is_system.is_(True)).scalar()
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}

    return {
        "status": "healthy" if permissions and system_roles else "unhealthy",
        "permissions": permissions,
        "system_roles": system_roles,
    }


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint.

    Returns 200 if the application is running.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.get("/health/live")
async def liveness_probe():
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={
            "status": "alive",
            "timestamp": datetime.utcnow().isoformat(),
        },
    )


@router.get("/health/ready")
async def readiness_probe(db: Session = Depends(get_db)):
    """
    Readiness probe.

    Returns 503 until the database is reachable and ``initialize`` has run.
    """
    checks = {
        "database": check_database(db),
        "rbac": check_rbac_seed(db),
    }

    unhealthy = [name for name, check in checks.items() if check["status"] == "unhealthy"]

    if unhealthy:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "checks": checks,
                "failed": unhealthy,
                "timestamp": datetime.utcnow().isoformat(),
            },
        )

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={
            "status": "ready",
            "checks": checks,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )
