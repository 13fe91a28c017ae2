"""
Health check endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_registry
from app.core.database import get_db
from app.realtime.sessions import SessionRegistry

router = APIRouter()


@router.get("/health")
async def health_check(registry: SessionRegistry = Depends(get_registry)):
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "service": "homemanager",
        "version": "0.1.0",
        "realtime_sessions": registry.session_count(),
    }


@router.get("/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """Readiness check for load balancers; fails when the database is unreachable."""
    await db.execute(text("SELECT 1"))
    return {
        "status": "ready",
    }
