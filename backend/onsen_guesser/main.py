import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import Settings, get_settings
from .database.session import Database
from .routers import game, rankings, users
from .services.catalog import LocationCatalog
from .services.engine import SessionEngine
from .services.seed import seed_sample_locations
from .services.stats import StatsAggregator
from .services.users import UserService

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application around one settings object and one database."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    database = Database(settings.DATABASE_URL, timeout=settings.STORAGE_TIMEOUT_SEC)
    stats = StatsAggregator(
        database.session_factory,
        weekly_window_days=settings.WEEKLY_WINDOW_DAYS,
        timeout=settings.STORAGE_TIMEOUT_SEC,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifecycle events for the application."""
        # Startup: Initialize database
        if settings.AUTO_CREATE_TABLES:
            await database.init_db()
        if settings.SEED_SAMPLE_DATA:
            await seed_sample_locations(database.session_factory)
        logger.info("Onsen Guesser ready on %s", database.engine.url.render_as_string(hide_password=True))
        yield
        # Shutdown: release pooled connections
        await database.dispose()

    # Create FastAPI application
    app = FastAPI(
        title="Onsen Guesser",
        description="Guess where a hot spring photo was taken and climb the daily leaderboard",
        version=__version__,
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.database = database
    app.state.stats = stats
    app.state.session_engine = SessionEngine(
        database.session_factory,
        LocationCatalog(database.session_factory),
        stats,
        rounds_per_game=settings.ROUNDS_PER_GAME,
        max_rounds_per_game=settings.MAX_ROUNDS_PER_GAME,
        time_limit_sec=settings.ROUND_TIME_LIMIT_SEC,
        timeout=settings.STORAGE_TIMEOUT_SEC,
    )
    app.state.user_service = UserService(database.session_factory, timeout=settings.STORAGE_TIMEOUT_SEC)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(game.router, prefix="/api")
    app.include_router(rankings.router, prefix="/api")
    app.include_router(users.router, prefix="/api")

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": "Welcome to Onsen Guesser API",
            "docs": "/docs",
            "health": "ok"
        }

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app
