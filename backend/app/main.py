"""
HomeManager FastAPI Application Entry Point.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.core.database import init_db
from app.realtime.sessions import SessionRegistry
from app.services.broadcaster import ChangeBroadcaster
from app.services.mailer import Mailer
from app.services.notification_service import NotificationService
from app.services.push import WebPushSender
from app.api.routes import (
    auth,
    devices,
    health,
    houses,
    invitations,
    notifications,
    push,
    shopping,
    tasks,
    users,
    ws,
)

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if get_settings().debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()

    # Initialize database
    await init_db()
    logger.info("Database initialized")

    # Realtime fan-out and delivery channels
    app.state.sessions = SessionRegistry()
    app.state.broadcaster = ChangeBroadcaster(app.state.sessions)
    app.state.notifier = NotificationService(app.state.broadcaster, WebPushSender(settings))
    app.state.mailer = Mailer(settings)
    if not settings.has_smtp:
        logger.warning("SMTP not configured - invitation emails will be logged only")

    logger.info(f"HomeManager v0.1.0 started in {settings.app_env} mode")

    yield

    logger.info(
        f"HomeManager shutdown complete "
        f"({app.state.sessions.session_count()} realtime session(s) open)"
    )


# Create FastAPI application
app = FastAPI(
    title="HomeManager API",
    description="Household tasks, shopping list and devices with real-time updates",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(houses.router, prefix="/api/houses", tags=["Houses"])
app.include_router(invitations.router, prefix="/api", tags=["Invitations"])
app.include_router(tasks.router, prefix="/api/tasks", tags=["Tasks"])
app.include_router(devices.router, prefix="/api/devices", tags=["Devices"])
app.include_router(shopping.router, prefix="/api/shopping-items", tags=["Shopping List"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])
app.include_router(push.router, prefix="/api/push", tags=["Web Push"])
app.include_router(ws.router, prefix="/api", tags=["Realtime"])


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
