"""
Station Admin API - Main Application

Admin login with new-device approval and email OTP:
- POST /login              → credentials, device trust, OTP issuance
- POST /verify-login-otp   → OTP check, session token
- POST /approve-device     → approver accepts or blocks a new device
- /admin/notifications/... → approver notification feed
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy import text

from database import DatabaseConnection, init_db
from database.seed import seed_super_admin
from core.config import Settings, settings as default_settings
from core.exceptions import AppError
from core.rate_limit import RateLimiter
from routers import auth_router, devices_router, notifications_router
from services.email_notifier import EmailNotifier
from services.expiry_sweeper import ExpirySweeper
from services.geolocation import GeoLocator


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings = app.state.settings
    database = app.state.database
    logger.info(f"🚀 Starting {settings.app_name}...")

    try:
        init_db(database)
        logger.info("✅ Database initialized")

        # Seed super admin (first run only)
        with database.get_session() as session:
            if seed_super_admin(session, settings):
                logger.info("✅ Super admin seeded")

    except Exception as e:
        logger.error(f"❌ Database initialization failed: {e}")
        raise

    sweeper = None
    sweeper_task = None
    if settings.sweeper_enabled:
        sweeper = ExpirySweeper.from_settings(database, settings)
        sweeper_task = asyncio.create_task(sweeper.run())
        logger.info("🧹 Login attempt sweeper started")

    logger.info(f"✅ {settings.app_name} started successfully!")

    yield

    # Shutdown
    if sweeper is not None:
        sweeper.stop()
        sweeper_task.cancel()
    database.dispose()
    logger.info(f"👋 Shutting down {settings.app_name}...")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application around one settings object and one database."""
    settings = settings or default_settings

    app = FastAPI(
        title=settings.app_name,
        description="""
        Admin authentication for the station dashboard.

        * **Login** - password check, device trust, email OTP
        * **Devices** - approve or block new devices, attempt history
        * **Notifications** - approver feed of login attempts
        * **Accounts** - registration and password reset by OTP
        """,
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.settings = settings
    app.state.database = DatabaseConnection(settings.database_url, echo=False)
    app.state.notifier = EmailNotifier.from_settings(settings)
    app.state.geolocator = GeoLocator.from_settings(settings)
    app.state.login_limiter = RateLimiter(settings.login_max_attempts, settings.login_window_seconds)
    app.state.otp_limiter = RateLimiter(settings.otp_verify_max_attempts, settings.otp_verify_window_seconds)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "Internal server error",
                "detail": str(exc) if settings.debug else None
            }
        )

    # ==================== HEALTH ====================

    @app.get("/", tags=["Health"])
    async def root():
        return {
            "message": settings.app_name,
            "version": "1.0.0",
            "status": "running"
        }

    @app.get("/health", tags=["Health"])
    async def health_check():
        try:
            with app.state.database.get_session() as session:
                session.execute(text("SELECT 1"))
            return {"status": "healthy", "database": "connected"}
        except Exception as e:
            return JSONResponse(
                status_code=503,
                content={"status": "unhealthy", "database": "disconnected", "error": str(e)}
            )

    # ==================== ROUTES ====================

    app.include_router(auth_router, tags=["Authentication"])
    app.include_router(devices_router, tags=["Devices"])
    app.include_router(notifications_router, prefix="/admin", tags=["Notifications"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=8000,
        reload=default_settings.debug
    )
