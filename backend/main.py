"""
Autoplan - Main Application Entry Point

Automatic task scheduling around calendar availability.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import get_settings
from app.core.logger import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    settings = get_settings()
    logger.info(f"Starting Autoplan in {settings.ENVIRONMENT} mode...")

    if settings.is_local:
        from app.infrastructure.local.database import init_db

        await init_db()

    from app.api.deps import get_event_bus, get_notifier
    from app.services.background_scheduler import (
        start_background_scheduler,
        stop_background_scheduler,
    )
    from app.services.reminder_service import ReminderService

    reminders = ReminderService(get_notifier())
    await reminders.attach(get_event_bus())
    await start_background_scheduler()

    yield

    # Shutdown
    logger.info("Shutting down Autoplan...")
    await stop_background_scheduler()
    await reminders.detach()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Autoplan",
        description="Automatic task scheduling around calendar availability",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    from app.api import calendar, reports, schedule, tasks, users

    app.include_router(tasks.router, prefix="/api/tasks", tags=["tasks"])
    app.include_router(schedule.router, prefix="/api/schedule", tags=["schedule"])
    app.include_router(users.router, prefix="/api/users", tags=["users"])
    app.include_router(calendar.router, prefix="/api/calendar", tags=["calendar"])
    app.include_router(reports.router, prefix="/api/reports", tags=["reports"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "environment": settings.ENVIRONMENT,
            "version": "0.1.0"
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
