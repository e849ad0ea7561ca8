"""
Habitcoin Backend - Main Application

FastAPI application for habit and mood tracking with a coin ledger.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from habitcoin.config import settings
from habitcoin.api.routes import router
from habitcoin.database import init_db
from habitcoin.exceptions import HabitcoinError
from habitcoin.services.firebase import firebase_service

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan: init database and Firebase on startup.

    Database or credential problems abort startup instead of leaving a
    server that cannot persist anything.
    """
    logger.info("Starting Habitcoin Backend...")

    logger.info("Initializing database...")
    init_db()
    app.state.db_initialized = True
    logger.info("Database initialized successfully")

    logger.info("Initializing Firebase...")
    app.state.firebase_initialized = firebase_service.initialize()
    if not app.state.firebase_initialized:
        logger.warning("Firebase not initialized - auth will reject all tokens")

    yield

    logger.info("Shutting down Habitcoin Backend...")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.API_TITLE,
        version=settings.API_VERSION,
        description="Habit and mood tracking with coins, streaks and levels",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    @app.exception_handler(HabitcoinError)
    async def habitcoin_error_handler(request: Request, exc: HabitcoinError):
        if exc.status_code >= 500:
            logger.error(f"{exc.__class__.__name__} on {request.url.path}: {exc.message}")
        else:
            logger.info(f"{exc.__class__.__name__} on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/")
    async def root():
        """Root endpoint with API info."""
        return {
            "name": settings.API_TITLE,
            "version": settings.API_VERSION,
            "status": "running",
            "db_initialized": getattr(app.state, "db_initialized", False),
            "firebase_initialized": getattr(app.state, "firebase_initialized", False),
        }

    return app


app = create_app()
